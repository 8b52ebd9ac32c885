"""Observer registry notified after every store operation."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Dict, List, Protocol

from dexstore.storage.models import OperationStatus, TableName, TableOperation

logger = logging.getLogger(__name__)


class TableObserver(Protocol):
    """Callback contract for store consumers (views, sync services)."""

    def on_table_operation(
        self,
        table: TableName,
        operation: TableOperation,
        outcome: OperationStatus,
    ) -> None:
        ...


class Subscription:
    """Opaque token returned by ObserverHub.subscribe."""

    __slots__ = ("_id",)

    def __init__(self, token_id: int):
        self._id = token_id

    def __repr__(self) -> str:
        return f"<Subscription {self._id}>"


class ObserverHub:
    """Refcounted subscriber registry with synchronous fan-out.

    The same observer may subscribe several times; it is notified once per
    operation until every one of its subscriptions has been released.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        # observer id -> [observer, refcount]; dict order is first-subscription order
        self._observers: Dict[int, list] = {}
        self._tokens: Dict[Subscription, int] = {}

    def subscribe(self, observer: TableObserver) -> Subscription:
        token = Subscription(next(self._ids))
        with self._lock:
            entry = self._observers.get(id(observer))
            if entry is None:
                self._observers[id(observer)] = [observer, 1]
            else:
                entry[1] += 1
            self._tokens[token] = id(observer)
        return token

    def unsubscribe(self, token: Subscription) -> None:
        """Release one subscription. Unknown or spent tokens are ignored."""
        with self._lock:
            key = self._tokens.pop(token, None)
            if key is None:
                return
            entry = self._observers[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._observers[key]

    def subscription_count(self, observer: TableObserver) -> int:
        with self._lock:
            entry = self._observers.get(id(observer))
            return entry[1] if entry else 0

    def observers(self) -> List[TableObserver]:
        with self._lock:
            return [entry[0] for entry in self._observers.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)

    def notify(
        self,
        table: TableName,
        operation: TableOperation,
        outcome: OperationStatus,
    ) -> None:
        """Deliver one notification to each live observer, in subscription order."""
        for observer in self.observers():
            try:
                observer.on_table_operation(table, operation, outcome)
            except Exception:
                logger.exception(
                    "Observer %r failed on %s/%s", observer, table.value, operation.value
                )
