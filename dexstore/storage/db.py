"""Refcounted handle owning the single SQLite connection of the offer store."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar

from dexstore.storage import schema
from dexstore.storage.defaults import DefaultDataProvider
from dexstore.storage.exceptions import StatementError, StoreClosedError
from dexstore.storage.filters import FilterRepository
from dexstore.storage.migrations import SchemaManager, get_stored_version
from dexstore.storage.models import OperationStatus, TableName, TableOperation
from dexstore.storage.observers import ObserverHub
from dexstore.storage.offers import MyOfferRepository, OfferRepository
from dexstore.storage.reference import ReferenceDataCache

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5000

T = TypeVar("T")


class DexStore:
    """Process-wide store handle shared by explicit ownership.

    The application constructs one handle and passes it to every owner. Each
    owner calls acquire() before use and release() when done; the connection
    is opened by the first acquire and closed by the last release.

    Usage:
        store = DexStore("data/dex.db")
        with store:
            store.offers_sell.add(offer)
    """

    def __init__(
        self,
        db_path: str,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        default_data: Optional[DefaultDataProvider] = None,
        observers: Optional[ObserverHub] = None,
    ):
        self.db_path = str(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self.default_data = default_data
        self.observers = observers or ObserverHub()
        self.offers_rescan = False
        self._conn: Optional[sqlite3.Connection] = None
        self._refcount = 0
        self._handle_lock = threading.Lock()
        self._statement_lock = threading.RLock()

        self.offers_sell = OfferRepository(self, TableName.OFFERS_SELL)
        self.offers_buy = OfferRepository(self, TableName.OFFERS_BUY)
        self.my_offers = MyOfferRepository(self)
        self.reference = ReferenceDataCache(self)
        self.filters = FilterRepository(self)

    # --- Lifecycle ---

    def acquire(self) -> DexStore:
        """Open on first use, otherwise take another reference to the open handle."""
        with self._handle_lock:
            if self._refcount == 0:
                self._open()
            self._refcount += 1
            return self

    def release(self) -> None:
        """Drop one reference; the last one closes the connection."""
        with self._handle_lock:
            if self._refcount == 0:
                return
            self._refcount -= 1
            if self._refcount == 0:
                self._close()

    def __enter__(self) -> DexStore:
        return self.acquire()

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def refcount(self) -> int:
        return self._refcount

    def _open(self) -> None:
        path = Path(self.db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        uri = f"{path.resolve().as_uri()}?cache=shared"
        conn = sqlite3.connect(
            uri,
            uri=True,
            timeout=self.busy_timeout_ms / 1000.0,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")

        try:
            manager = SchemaManager(conn, default_data=self.default_data)
            manager.open()
        except Exception:
            conn.close()
            raise

        self.offers_rescan = manager.offers_rescan
        self._conn = conn
        logger.info("Store opened: %s", self.db_path)

    def _close(self) -> None:
        with self._statement_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        self.reference.reset()
        logger.info("Store closed: %s", self.db_path)

    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreClosedError(f"Store {self.db_path} is not open")
        return self._conn

    # --- Statements ---

    def run(
        self,
        table: TableName,
        operation: TableOperation,
        fn: Callable[[sqlite3.Connection], T],
    ) -> T:
        """Run one statement under the connection lock and notify observers.

        On failure observers receive Error before StatementError is raised.
        """
        try:
            with self._statement_lock:
                result = fn(self.connection())
        except sqlite3.Error as exc:
            self.observers.notify(table, operation, OperationStatus.ERROR)
            raise StatementError(
                f"{operation.value} on {table.value} failed: {exc}",
                table=table.value,
                operation=operation.value,
                code=exc.sqlite_errorcode,
                code_name=exc.sqlite_errorname,
            ) from exc
        self.observers.notify(table, operation, OperationStatus.OK)
        return result

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the connection for an explicit BEGIN/COMMIT block."""
        with self._statement_lock:
            conn = self.connection()
            conn.execute("BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    # --- Maintenance ---

    def schema_version(self) -> int:
        with self._statement_lock:
            return get_stored_version(self.connection())

    def vacuum(self) -> None:
        """Run VACUUM to reclaim space and defragment."""
        with self._statement_lock:
            self.connection().execute("VACUUM")

    def backup_to(self, dest_path: str) -> None:
        """Hot backup of the live connection into dest_path."""
        with self._statement_lock:
            source = self.connection()
            dest = sqlite3.connect(str(dest_path))
            try:
                source.backup(dest)
            finally:
                dest.close()

    def stats(self) -> Dict[str, Any]:
        """Row counts per table and file size."""
        out: Dict[str, Any] = {}
        with self._statement_lock:
            conn = self.connection()
            for name, _ in schema.TABLES:
                out[name] = conn.execute(f"SELECT COUNT(*) FROM {name}").fetchone()[0]
            row = conn.execute(
                "SELECT page_count * page_size FROM pragma_page_count(), pragma_page_size()"
            ).fetchone()
        out["db_size_bytes"] = row[0] if row else 0
        out["schema_version"] = self.schema_version()
        return out
