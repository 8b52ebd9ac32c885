"""Schema version detection, verification and migration for the offer store."""

from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from dexstore.storage import schema
from dexstore.storage.defaults import DefaultDataProvider, YamlDefaultData
from dexstore.storage.exceptions import IntegrityError, MigrationError

logger = logging.getLogger(__name__)


def is_empty(conn: sqlite3.Connection) -> bool:
    row = conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
    return row[0] == 0


def get_stored_version(conn: sqlite3.Connection) -> int:
    """Schema version recorded in the store, or 0 if there is none."""
    try:
        row = conn.execute("SELECT MAX(version) FROM dbversion").fetchone()
    except sqlite3.OperationalError:
        return 0
    return int(row[0]) if row and row[0] is not None else 0


def check_integrity(conn: sqlite3.Connection) -> None:
    rows = conn.execute("PRAGMA integrity_check").fetchall()
    result = "".join(str(r[0]) for r in rows)
    if result != "ok":
        raise IntegrityError(f"Integrity check failed: {result}")


def check_schema(conn: sqlite3.Connection) -> None:
    """Compare the live schema text with a freshly built reference store."""
    live = schema.read_schema(conn)
    expected = schema.reference_schema()
    if live != expected:
        missing = sorted(set(expected) - set(live))
        extra = sorted(set(live) - set(expected))
        changed = sorted(n for n in set(live) & set(expected) if live[n] != expected[n])
        logger.error(
            "Schema mismatch: missing=%s extra=%s changed=%s", missing, extra, changed
        )
        raise IntegrityError("Store schema is incorrect")


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name = ?", (name,)
    ).fetchone()
    return row is not None


def _table_columns(conn: sqlite3.Connection, name: str) -> List[str]:
    return [r[1] for r in conn.execute(f"PRAGMA table_info({name})").fetchall()]


def _table_count(conn: sqlite3.Connection, name: str) -> int:
    return conn.execute(f"SELECT count(*) FROM {name}").fetchone()[0]


class SchemaManager:
    """Brings a store file to the compiled schema version at open.

    Usage:
        manager = SchemaManager(conn)
        manager.open()
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        default_data: Optional[DefaultDataProvider] = None,
        version: int = schema.SCHEMA_VERSION,
    ):
        self.conn = conn
        self.default_data = default_data or YamlDefaultData()
        self.version = version
        self.offers_rescan = False

    def open(self) -> None:
        """Create, migrate or verify the store. Raises IntegrityError or MigrationError."""
        if is_empty(self.conn):
            logger.info("Empty store, creating schema v%d", self.version)
            self._run_in_transaction(self._create_fresh, MigrationError)
            return

        check_integrity(self.conn)

        stored = get_stored_version(self.conn)
        if stored > self.version:
            raise IntegrityError(
                f"Store schema v{stored} is newer than this application (v{self.version})"
            )
        if stored < self.version:
            logger.info("Migrating store schema v%d -> v%d", stored, self.version)
            self._run_in_transaction(self._migrate, MigrationError)
            logger.info("Store schema migrated to v%d", self.version)
        else:
            check_schema(self.conn)
            logger.debug("Store schema v%d verified", stored)

    def _run_in_transaction(self, step, error_cls) -> None:
        self.conn.execute("BEGIN")
        try:
            step()
            self.conn.execute("COMMIT")
        except Exception as exc:
            self.conn.execute("ROLLBACK")
            self.offers_rescan = False
            logger.exception("Schema change rolled back")
            if isinstance(exc, error_cls):
                raise
            raise error_cls(f"Schema change failed: {exc}") from exc

    def _create_fresh(self) -> None:
        schema.create_tables(self.conn)
        schema.create_indexes(self.conn)
        self.offers_rescan = True
        self.seed_defaults()

    def _migrate(self) -> None:
        for name, _ in schema.INDEXES:
            self.conn.execute(f"DROP INDEX IF EXISTS {name}")

        renamed = []
        for table in schema.DATA_TABLES:
            if _table_exists(self.conn, table):
                self.conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old")
                renamed.append(table)
        self.conn.execute("DROP TABLE IF EXISTS dbversion")

        schema.create_tables(self.conn)
        self.offers_rescan = True

        for table in renamed:
            self._copy_rows(table)

        schema.create_indexes(self.conn)

        for table in renamed:
            self.conn.execute(f"DROP TABLE IF EXISTS {table}_old")

        self.seed_defaults()

    def _copy_rows(self, table: str) -> None:
        old_columns = set(_table_columns(self.conn, f"{table}_old"))
        new_columns = _table_columns(self.conn, table)
        defaults = schema.COLUMN_DEFAULTS.get(table, {})

        select = []
        for column in new_columns:
            if column in old_columns:
                select.append(column)
            elif column in defaults:
                select.append(defaults[column])
            else:
                select.append("NULL")

        cursor = self.conn.execute(
            f"INSERT INTO {table} ({', '.join(new_columns)}) "
            f"SELECT {', '.join(select)} FROM {table}_old"
        )
        logger.debug("Migrated %d rows into %s", cursor.rowcount, table)

    def seed_defaults(self) -> None:
        """Fill empty catalog tables and record the schema version if missing."""
        conn = self.conn

        if _table_count(conn, "dbversion") <= 0:
            conn.execute("INSERT INTO dbversion (version) VALUES (?)", (self.version,))

        if _table_count(conn, "currencies") <= 0:
            currencies = sorted(self.default_data.currencies(), key=lambda c: c.sort_order)
            conn.executemany(
                "INSERT INTO currencies (iso, name, symbol, enabled, sortOrder) VALUES (?, ?, ?, ?, ?)",
                [(c.iso, c.name, c.symbol, int(c.enabled), c.sort_order) for c in currencies],
            )
            logger.debug("Seeded %d currencies", len(currencies))

        if _table_count(conn, "countries") <= 0:
            countries = sorted(self.default_data.countries(), key=lambda c: c.name)
            countries.sort(key=lambda c: c.sort_order)
            conn.executemany(
                "INSERT INTO countries (iso, name, currencyId, enabled, sortOrder) "
                "VALUES (?, ?, (SELECT id FROM currencies WHERE iso = ?), 1, ?)",
                [(c.iso, c.name, c.currency, order) for order, c in enumerate(countries)],
            )
            logger.debug("Seeded %d countries", len(countries))

        if _table_count(conn, "paymentMethods") <= 0:
            methods = self.default_data.payment_methods()
            conn.executemany(
                "INSERT INTO paymentMethods (type, name, description, sortOrder) VALUES (?, ?, ?, ?)",
                [(m.type, m.name, m.description, m.sort_order) for m in methods],
            )
            logger.debug("Seeded %d payment methods", len(methods))
