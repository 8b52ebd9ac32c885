"""Storage layer - SQLite offer store with schema migration, caching and observers."""

from dexstore.storage.backup import BackupManager, BackupReport
from dexstore.storage.db import DexStore
from dexstore.storage.exceptions import (
    IntegrityError,
    MigrationError,
    StatementError,
    StoreClosedError,
    StoreError,
)
from dexstore.storage.models import (
    CountryInfo,
    CurrencyInfo,
    MyOffer,
    Offer,
    OfferFilter,
    OfferStatus,
    OfferType,
    OffersPeriod,
    OperationStatus,
    PaymentMethodInfo,
    TableName,
    TableOperation,
)
from dexstore.storage.observers import ObserverHub, Subscription, TableObserver

__all__ = [
    "BackupManager",
    "BackupReport",
    "DexStore",
    "IntegrityError",
    "MigrationError",
    "StatementError",
    "StoreClosedError",
    "StoreError",
    "CountryInfo",
    "CurrencyInfo",
    "MyOffer",
    "Offer",
    "OfferFilter",
    "OfferStatus",
    "OfferType",
    "OffersPeriod",
    "OperationStatus",
    "PaymentMethodInfo",
    "TableName",
    "TableOperation",
    "ObserverHub",
    "Subscription",
    "TableObserver",
]
