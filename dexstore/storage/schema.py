"""Table and index definitions for the current schema version."""

from __future__ import annotations

import sqlite3
from typing import Dict, List, Tuple

SCHEMA_VERSION = 3

OFFER_COLUMNS = (
    "idTransaction", "hash", "pubKey", "countryIso", "currencyIso",
    "paymentMethod", "price", "minAmount", "timeCreate", "timeToExpiration",
    "timeModification", "shortInfo", "details", "editingVersion", "editsign",
)
MY_OFFER_COLUMNS = OFFER_COLUMNS + ("type", "status")


def _offers_table(name: str) -> str:
    return (
        f"CREATE TABLE IF NOT EXISTS {name} (idTransaction TEXT NOT NULL, "
        "hash TEXT NOT NULL, pubKey TEXT, countryIso VARCHAR(2), "
        "currencyIso VARCHAR(3), paymentMethod TINYINT, price UNSIGNED BIG INT, "
        "minAmount UNSIGNED BIG INT, timeCreate UNSIGNED BIG INT, timeToExpiration UNSIGNED BIG INT, "
        "timeModification UNSIGNED BIG INT, shortInfo VARCHAR(140), details TEXT, "
        "editingVersion UNSIGNED INT, editsign VARCHAR(150))"
    )


# Ordered: currencies before countries so seeding can resolve currencyId.
TABLES: List[Tuple[str, str]] = [
    ("dbversion", "CREATE TABLE IF NOT EXISTS dbversion (version BIG INT)"),
    (
        "currencies",
        "CREATE TABLE IF NOT EXISTS currencies (id INTEGER PRIMARY KEY, iso VARCHAR(3) UNIQUE, "
        "name VARCHAR(100), symbol VARCHAR(10), enabled BOOLEAN, sortOrder INT)",
    ),
    (
        "countries",
        "CREATE TABLE IF NOT EXISTS countries (iso VARCHAR(2) NOT NULL PRIMARY KEY, "
        "name VARCHAR(100), enabled BOOLEAN, currencyId INT, sortOrder INT)",
    ),
    (
        "paymentMethods",
        "CREATE TABLE IF NOT EXISTS paymentMethods (type TINYINT NOT NULL PRIMARY KEY, "
        "name VARCHAR(100), description BLOB, sortOrder INT)",
    ),
    ("offersSell", _offers_table("offersSell")),
    ("offersBuy", _offers_table("offersBuy")),
    (
        "myOffers",
        "CREATE TABLE IF NOT EXISTS myOffers (hash TEXT NOT NULL PRIMARY KEY, "
        "idTransaction TEXT, pubKey TEXT, countryIso VARCHAR(2), "
        "currencyIso VARCHAR(3), paymentMethod TINYINT, price UNSIGNED BIG INT, "
        "minAmount UNSIGNED BIG INT, timeCreate UNSIGNED BIG INT, timeToExpiration UNSIGNED BIG INT, "
        "timeModification UNSIGNED BIG INT, shortInfo VARCHAR(140), details TEXT, "
        "type INT, status INT, editingVersion INT, editsign VARCHAR(150))",
    ),
    ("filterList", "CREATE TABLE IF NOT EXISTS filterList (filter VARCHAR(100) NOT NULL PRIMARY KEY)"),
]

INDEXES: List[Tuple[str, str]] = [
    ("idx_offersSell_timeexp", "CREATE INDEX IF NOT EXISTS idx_offersSell_timeexp ON offersSell(timeToExpiration)"),
    ("idx_offersBuy_timeexp", "CREATE INDEX IF NOT EXISTS idx_offersBuy_timeexp ON offersBuy(timeToExpiration)"),
    ("idx_offersMy_timeexp", "CREATE INDEX IF NOT EXISTS idx_offersMy_timeexp ON myOffers(timeToExpiration)"),
    (
        "hash_editing_version_buy",
        "CREATE UNIQUE INDEX IF NOT EXISTS hash_editing_version_buy ON offersBuy (hash, editingVersion)",
    ),
    (
        "hash_editing_version_sell",
        "CREATE UNIQUE INDEX IF NOT EXISTS hash_editing_version_sell ON offersSell (hash, editingVersion)",
    ),
    ("idx_offersSell_timemod", "CREATE INDEX IF NOT EXISTS idx_offersSell_timemod ON offersSell(timeModification)"),
    ("idx_offersBuy_timemod", "CREATE INDEX IF NOT EXISTS idx_offersBuy_timemod ON offersBuy(timeModification)"),
]

# Tables carried across a migration (dbversion is recreated instead).
DATA_TABLES = [name for name, _ in TABLES if name != "dbversion"]

# Value for a column the previous schema did not have, keyed by table.
# Expressions are evaluated against the <table>_old row.
COLUMN_DEFAULTS: Dict[str, Dict[str, str]] = {
    "currencies": {"symbol": "''", "enabled": "1", "sortOrder": "0"},
    "countries": {"enabled": "1", "currencyId": "NULL", "sortOrder": "0"},
    "paymentMethods": {"description": "''", "sortOrder": "0"},
    "offersSell": {"timeModification": "timeCreate", "editingVersion": "0", "editsign": "''"},
    "offersBuy": {"timeModification": "timeCreate", "editingVersion": "0", "editsign": "''"},
    "myOffers": {
        "timeModification": "timeCreate",
        "editingVersion": "0",
        "editsign": "''",
        "type": "0",
        "status": "0",
    },
    "filterList": {},
}


def create_tables(conn: sqlite3.Connection) -> None:
    for _, ddl in TABLES:
        conn.execute(ddl)


def create_indexes(conn: sqlite3.Connection) -> None:
    for _, ddl in INDEXES:
        conn.execute(ddl)


def read_schema(conn: sqlite3.Connection) -> Dict[str, str]:
    """Map of object name to its stored CREATE statement."""
    rows = conn.execute("SELECT name, sql FROM sqlite_master WHERE sql NOT NULL").fetchall()
    return {name: sql for name, sql in rows}


def reference_schema() -> Dict[str, str]:
    """Schema map of a freshly built store, used to detect tampering."""
    mem = sqlite3.connect(":memory:")
    try:
        create_tables(mem)
        create_indexes(mem)
        return read_schema(mem)
    finally:
        mem.close()
