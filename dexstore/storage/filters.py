"""The filterList table: a flat set of unique filter strings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from dexstore.storage.models import TableName, TableOperation

if TYPE_CHECKING:
    from dexstore.storage.db import DexStore

logger = logging.getLogger(__name__)


class FilterRepository:
    """Flat list of unique filter strings. Adding a duplicate is a StatementError."""

    def __init__(self, store: DexStore):
        self._store = store

    def add(self, value: str) -> None:
        self._store.run(
            TableName.FILTER_LIST,
            TableOperation.ADD,
            lambda conn: conn.execute("INSERT INTO filterList (filter) VALUES (?)", (value,)),
        )
        logger.debug("Filter added: %s", value)

    def delete(self, value: str) -> None:
        self._store.run(
            TableName.FILTER_LIST,
            TableOperation.DELETE,
            lambda conn: conn.execute("DELETE FROM filterList WHERE filter = ?", (value,)),
        )
        logger.debug("Filter deleted: %s", value)

    def list(self) -> List[str]:
        return self._store.run(
            TableName.FILTER_LIST,
            TableOperation.READ,
            lambda conn: [r[0] for r in conn.execute("SELECT filter FROM filterList").fetchall()],
        )
