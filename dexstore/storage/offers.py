"""Generic CRUD and query layer over the offersSell, offersBuy and myOffers tables."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from dexstore.storage.models import (
    MyOffer,
    Offer,
    OfferFilter,
    OfferStatus,
    OffersPeriod,
    TableName,
    TableOperation,
    hash_from_hex,
    hash_to_hex,
)
from dexstore.storage.schema import MY_OFFER_COLUMNS, OFFER_COLUMNS

if TYPE_CHECKING:
    from dexstore.storage.db import DexStore

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(time.time())


def build_filter_clause(
    filters: Optional[OfferFilter],
    with_ownership: bool = False,
) -> Tuple[str, Dict[str, Any]]:
    """Compose the WHERE clause for optional equality predicates.

    Only predicates that are set are included, joined with AND. Returns an
    empty clause when nothing is set.
    """
    if filters is None:
        return "", {}

    conditions: List[str] = []
    params: Dict[str, Any] = {}

    if filters.country_iso:
        conditions.append("countryIso = :countryIso")
        params["countryIso"] = filters.country_iso
    if filters.currency_iso:
        conditions.append("currencyIso = :currencyIso")
        params["currencyIso"] = filters.currency_iso
    if filters.payment_method:
        conditions.append("paymentMethod = :paymentMethod")
        params["paymentMethod"] = int(filters.payment_method)
    if with_ownership:
        if filters.offer_type is not None:
            conditions.append("type = :type")
            params["type"] = int(filters.offer_type)
        if filters.status is not None:
            conditions.append("status = :status")
            params["status"] = int(filters.status)

    if not conditions:
        return "", {}
    return " WHERE " + " AND ".join(conditions), params


def _period_clause(period: OffersPeriod, cutoff: int) -> Tuple[str, Dict[str, Any]]:
    if period == OffersPeriod.BEFORE:
        return " WHERE timeModification < :timeMod", {"timeMod": int(cutoff)}
    if period == OffersPeriod.AFTER:
        return " WHERE timeModification >= :timeMod", {"timeMod": int(cutoff)}
    return "", {}


class OfferRepository:
    """Offer table access, parametrized by table name.

    Reads of a missing row return a zero-valued record; use exists() or
    exists_by_hash() to tell "not found" apart from a stored default.
    """

    columns: Tuple[str, ...] = OFFER_COLUMNS
    # Columns rewritten by edit(); hash is the key.
    edit_columns: Tuple[str, ...] = tuple(c for c in OFFER_COLUMNS if c not in ("hash", "idTransaction"))
    with_ownership = False

    def __init__(self, store: DexStore, table: TableName):
        self._store = store
        self.table = table

    # --- Row mapping ---

    def _record(self, row: Optional[Dict[str, Any]]) -> Any:
        return Offer.from_row(row) if row else Offer()

    def _params(self, offer: Any) -> Dict[str, Any]:
        return offer.to_params()

    @property
    def _select(self) -> str:
        return f"SELECT {', '.join(self.columns)} FROM {self.table.value}"

    def _fetch_one(self, where: str, params: Dict[str, Any]) -> Any:
        def _query(conn):
            row = conn.execute(self._select + where, params).fetchone()
            return dict(row) if row else None

        return self._record(self._store.run(self.table, TableOperation.READ, _query))

    def _fetch_all(self, sql: str, params: Dict[str, Any]) -> List[Any]:
        def _query(conn):
            return [dict(r) for r in conn.execute(sql, params).fetchall()]

        rows = self._store.run(self.table, TableOperation.READ, _query)
        return [self._record(r) for r in rows]

    def _scalar(self, sql: str, params: Dict[str, Any]) -> Any:
        def _query(conn):
            row = conn.execute(sql, params).fetchone()
            return row[0] if row else None

        return self._store.run(self.table, TableOperation.READ, _query)

    def _write(self, operation: TableOperation, sql: str, params: Any) -> int:
        def _command(conn):
            return conn.execute(sql, params).rowcount

        affected = self._store.run(self.table, operation, _command)
        logger.debug("%s %s: %d row(s)", operation.value, self.table.value, affected)
        return affected

    # --- Mutations ---

    def add(self, offer: Any) -> None:
        placeholders = ", ".join(f":{c}" for c in self.columns)
        sql = f"INSERT INTO {self.table.value} ({', '.join(self.columns)}) VALUES ({placeholders})"
        self._write(TableOperation.ADD, sql, self._params(offer))

    def edit(self, offer: Any) -> int:
        """Update every stored revision with the offer's hash. Returns rows changed."""
        assignments = ", ".join(f"{c} = :{c}" for c in self.edit_columns)
        sql = f"UPDATE {self.table.value} SET {assignments} WHERE hash = :hash"
        return self._write(TableOperation.EDIT, sql, self._params(offer))

    def delete(self, id_transaction: bytes) -> int:
        return self._write(
            TableOperation.DELETE,
            f"DELETE FROM {self.table.value} WHERE idTransaction = ?",
            (hash_to_hex(id_transaction),),
        )

    def delete_by_hash(self, offer_hash: bytes) -> int:
        return self._write(
            TableOperation.DELETE,
            f"DELETE FROM {self.table.value} WHERE hash = ?",
            (hash_to_hex(offer_hash),),
        )

    def delete_expired(self, now: Optional[int] = None) -> int:
        """Remove rows whose expiration time is at or before now."""
        current = _now() if now is None else int(now)
        return self._write(
            TableOperation.DELETE,
            f"DELETE FROM {self.table.value} WHERE timeToExpiration <= :currentTime",
            {"currentTime": current},
        )

    # --- Point reads ---

    def exists(self, id_transaction: bytes) -> bool:
        count = self._scalar(
            f"SELECT count() FROM {self.table.value} WHERE idTransaction = :id",
            {"id": hash_to_hex(id_transaction)},
        )
        return bool(count)

    def exists_by_hash(self, offer_hash: bytes) -> bool:
        count = self._scalar(
            f"SELECT count() FROM {self.table.value} WHERE hash = :hash",
            {"hash": hash_to_hex(offer_hash)},
        )
        return bool(count)

    def get(self, id_transaction: bytes) -> Any:
        return self._fetch_one(" WHERE idTransaction = :id", {"id": hash_to_hex(id_transaction)})

    def get_by_hash(self, offer_hash: bytes) -> Any:
        return self._fetch_one(" WHERE hash = :hash", {"hash": hash_to_hex(offer_hash)})

    # --- Queries ---

    def list(
        self,
        filters: Optional[OfferFilter] = None,
        limit: int = 0,
        offset: int = 0,
    ) -> List[Any]:
        where, params = build_filter_clause(filters, self.with_ownership)
        sql = self._select + where
        if limit > 0:
            sql += " LIMIT :limit"
            params["limit"] = int(limit)
            if offset > 0:
                sql += " OFFSET :offset"
                params["offset"] = int(offset)
        return self._fetch_all(sql, params)

    def count(self, filters: Optional[OfferFilter] = None) -> int:
        where, params = build_filter_clause(filters, self.with_ownership)
        return self._scalar(f"SELECT count(*) FROM {self.table.value}" + where, params) or 0

    def count_period(self, period: OffersPeriod = OffersPeriod.ALL, cutoff: int = 0) -> int:
        where, params = _period_clause(period, cutoff)
        return self._scalar(f"SELECT count(*) FROM {self.table.value}" + where, params) or 0

    def last_modification(self) -> int:
        """Latest timeModification in the table, 0 when empty."""
        return self._scalar(f"SELECT MAX(timeModification) FROM {self.table.value}", {}) or 0

    def hashes(self) -> List[bytes]:
        def _query(conn):
            return [r[0] for r in conn.execute(f"SELECT hash FROM {self.table.value}").fetchall()]

        return [hash_from_hex(h) for h in self._store.run(self.table, TableOperation.READ, _query)]

    def hashes_and_versions(
        self,
        period: OffersPeriod = OffersPeriod.ALL,
        cutoff: int = 0,
    ) -> List[Tuple[bytes, int]]:
        """Distinct (hash, editingVersion) pairs for reconciliation with remote peers."""
        where, params = _period_clause(period, cutoff)
        sql = f"SELECT DISTINCT hash, editingVersion FROM {self.table.value}" + where

        def _query(conn):
            return [(r[0], r[1]) for r in conn.execute(sql, params).fetchall()]

        rows = self._store.run(self.table, TableOperation.READ, _query)
        return [(hash_from_hex(h), int(v or 0)) for h, v in rows]


class MyOfferRepository(OfferRepository):
    """The wallet's own offers: one row per hash, with direction and status."""

    columns = MY_OFFER_COLUMNS
    edit_columns = tuple(c for c in MY_OFFER_COLUMNS if c not in ("hash", "pubKey"))
    with_ownership = True

    def __init__(self, store: DexStore):
        super().__init__(store, TableName.MY_OFFERS)

    def _record(self, row: Optional[Dict[str, Any]]) -> MyOffer:
        return MyOffer.from_row(row) if row else MyOffer()

    def set_expired_status(self, now: Optional[int] = None) -> int:
        """Mark offers past their expiration time as Expired."""
        current = _now() if now is None else int(now)
        return self._write(
            TableOperation.EDIT,
            "UPDATE myOffers SET status = :status WHERE timeToExpiration < :currentTime",
            {"status": int(OfferStatus.EXPIRED), "currentTime": current},
        )

    def set_status(self, id_transaction: bytes, status: OfferStatus) -> int:
        return self._write(
            TableOperation.EDIT,
            "UPDATE myOffers SET status = :status WHERE idTransaction = :id",
            {"status": int(OfferStatus(status)), "id": hash_to_hex(id_transaction)},
        )
