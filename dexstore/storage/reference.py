"""Lazy in-memory cache of the country, currency and payment-method catalogs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from dexstore.storage.models import (
    CountryInfo,
    CurrencyInfo,
    PaymentMethodInfo,
    TableName,
    TableOperation,
)

if TYPE_CHECKING:
    from dexstore.storage.db import DexStore

logger = logging.getLogger(__name__)


class ReferenceDataCache:
    """Reference catalogs, each read from storage at most once per store lifetime.

    Writes go to storage and to the cached list together. Bulk edits replace
    the cached list only when the incoming list has the cached length; on a
    mismatch storage is updated and the cache keeps its previous contents.

    The cache is filled or changed inside the statement callback, after the
    statement succeeded and before observers are notified, so an observer
    reacting to a notification always sees the new cache state.
    """

    def __init__(self, store: DexStore):
        self._store = store
        self._countries: Optional[List[CountryInfo]] = None
        self._currencies: Optional[List[CurrencyInfo]] = None
        self._payments: Optional[List[PaymentMethodInfo]] = None

    def reset(self) -> None:
        """Forget cached catalogs; the next read goes to storage."""
        self._countries = None
        self._currencies = None
        self._payments = None

    # --- Countries ---

    def countries(self) -> List[CountryInfo]:
        if self._countries is None:

            def _load(conn):
                rows = conn.execute(
                    "SELECT iso, name, enabled, sortOrder FROM countries ORDER BY sortOrder"
                ).fetchall()
                self._countries = [CountryInfo.from_row(dict(r)) for r in rows]
                logger.debug("Loaded %d countries", len(self._countries))

            self._store.run(TableName.COUNTRIES, TableOperation.READ, _load)
        return list(self._countries or [])

    def country(self, iso: str) -> CountryInfo:
        """Country by ISO code; unknown codes give a record with only iso set."""
        if self._countries is not None:
            return next((c for c in self._countries if c.iso == iso), CountryInfo(iso=iso))

        row = self._store.run(
            TableName.COUNTRIES,
            TableOperation.READ,
            lambda conn: conn.execute(
                "SELECT iso, name, enabled, sortOrder FROM countries WHERE iso = ?", (iso,)
            ).fetchone(),
        )
        return CountryInfo.from_row(dict(row)) if row else CountryInfo(iso=iso)

    def add_country(
        self,
        iso: str,
        name: str,
        currency_iso: str = "",
        enabled: bool = True,
        sort_order: int = 0,
    ) -> None:
        def _command(conn):
            conn.execute(
                "INSERT INTO countries (iso, name, currencyId, enabled, sortOrder) "
                "VALUES (?, ?, (SELECT id FROM currencies WHERE iso = ?), ?, ?)",
                (iso, name, currency_iso, int(enabled), sort_order),
            )
            if self._countries is not None:
                self._countries.append(
                    CountryInfo(iso=iso, name=name, enabled=enabled, sort_order=sort_order)
                )

        self._store.run(TableName.COUNTRIES, TableOperation.ADD, _command)

    def edit_countries(self, countries: List[CountryInfo]) -> None:
        """Persist enabled flags and list order (as 0-based sortOrder).

        Statements are applied one by one without a surrounding transaction;
        the first failure stops the sequence and leaves the cache as it was.
        """
        ordered = [
            CountryInfo(iso=c.iso, name=c.name, enabled=c.enabled, sort_order=i)
            for i, c in enumerate(countries)
        ]

        def _command(conn):
            for c in ordered:
                conn.execute(
                    "UPDATE countries SET enabled = ?, sortOrder = ? WHERE iso = ?",
                    (int(c.enabled), c.sort_order, c.iso),
                )
            if self._countries is not None and len(self._countries) == len(ordered):
                self._countries = ordered

        self._store.run(TableName.COUNTRIES, TableOperation.EDIT, _command)

    def delete_country(self, iso: str) -> None:
        def _command(conn):
            conn.execute("DELETE FROM countries WHERE iso = ?", (iso,))
            if self._countries is not None:
                self._countries = [c for c in self._countries if c.iso != iso]

        self._store.run(TableName.COUNTRIES, TableOperation.DELETE, _command)

    # --- Currencies ---

    def currencies(self) -> List[CurrencyInfo]:
        if self._currencies is None:

            def _load(conn):
                rows = conn.execute(
                    "SELECT iso, name, symbol, enabled, sortOrder FROM currencies ORDER BY sortOrder"
                ).fetchall()
                self._currencies = [CurrencyInfo.from_row(dict(r)) for r in rows]
                logger.debug("Loaded %d currencies", len(self._currencies))

            self._store.run(TableName.CURRENCIES, TableOperation.READ, _load)
        return list(self._currencies or [])

    def currency(self, iso: str) -> CurrencyInfo:
        if self._currencies is not None:
            return next((c for c in self._currencies if c.iso == iso), CurrencyInfo(iso=iso))

        row = self._store.run(
            TableName.CURRENCIES,
            TableOperation.READ,
            lambda conn: conn.execute(
                "SELECT iso, name, symbol, enabled, sortOrder FROM currencies WHERE iso = ?", (iso,)
            ).fetchone(),
        )
        return CurrencyInfo.from_row(dict(row)) if row else CurrencyInfo(iso=iso)

    def add_currency(
        self,
        iso: str,
        name: str,
        symbol: str = "",
        enabled: bool = True,
        sort_order: int = 0,
    ) -> None:
        def _command(conn):
            conn.execute(
                "INSERT INTO currencies (iso, name, symbol, enabled, sortOrder) VALUES (?, ?, ?, ?, ?)",
                (iso, name, symbol, int(enabled), sort_order),
            )
            if self._currencies is not None:
                self._currencies.append(
                    CurrencyInfo(iso=iso, name=name, symbol=symbol, enabled=enabled, sort_order=sort_order)
                )

        self._store.run(TableName.CURRENCIES, TableOperation.ADD, _command)

    def edit_currencies(self, currencies: List[CurrencyInfo]) -> None:
        """Same contract as edit_countries."""
        ordered = [
            CurrencyInfo(iso=c.iso, name=c.name, symbol=c.symbol, enabled=c.enabled, sort_order=i)
            for i, c in enumerate(currencies)
        ]

        def _command(conn):
            for c in ordered:
                conn.execute(
                    "UPDATE currencies SET enabled = ?, sortOrder = ? WHERE iso = ?",
                    (int(c.enabled), c.sort_order, c.iso),
                )
            if self._currencies is not None and len(self._currencies) == len(ordered):
                self._currencies = ordered

        self._store.run(TableName.CURRENCIES, TableOperation.EDIT, _command)

    def delete_currency(self, iso: str) -> None:
        def _command(conn):
            conn.execute("DELETE FROM currencies WHERE iso = ?", (iso,))
            if self._currencies is not None:
                self._currencies = [c for c in self._currencies if c.iso != iso]

        self._store.run(TableName.CURRENCIES, TableOperation.DELETE, _command)

    # --- Payment methods ---

    def payment_methods(self) -> List[PaymentMethodInfo]:
        if self._payments is None:

            def _load(conn):
                rows = conn.execute(
                    "SELECT type, name, description, sortOrder FROM paymentMethods ORDER BY sortOrder"
                ).fetchall()
                self._payments = [PaymentMethodInfo.from_row(dict(r)) for r in rows]

            self._store.run(TableName.PAYMENT_METHODS, TableOperation.READ, _load)
        return list(self._payments or [])

    def payment_method(self, method_type: int) -> PaymentMethodInfo:
        if self._payments is not None:
            return next(
                (p for p in self._payments if p.type == method_type),
                PaymentMethodInfo(type=method_type),
            )

        row = self._store.run(
            TableName.PAYMENT_METHODS,
            TableOperation.READ,
            lambda conn: conn.execute(
                "SELECT type, name, description, sortOrder FROM paymentMethods WHERE type = ?",
                (method_type,),
            ).fetchone(),
        )
        return PaymentMethodInfo.from_row(dict(row)) if row else PaymentMethodInfo(type=method_type)

    def add_payment_method(
        self,
        method_type: int,
        name: str,
        description: str = "",
        sort_order: int = 0,
    ) -> None:
        def _command(conn):
            conn.execute(
                "INSERT INTO paymentMethods (type, name, description, sortOrder) VALUES (?, ?, ?, ?)",
                (method_type, name, description, sort_order),
            )
            if self._payments is not None:
                self._payments.append(
                    PaymentMethodInfo(type=method_type, name=name, description=description, sort_order=sort_order)
                )

        self._store.run(TableName.PAYMENT_METHODS, TableOperation.ADD, _command)

    def delete_payment_method(self, method_type: int) -> None:
        def _command(conn):
            conn.execute("DELETE FROM paymentMethods WHERE type = ?", (method_type,))
            if self._payments is not None:
                self._payments = [p for p in self._payments if p.type != method_type]

        self._store.run(TableName.PAYMENT_METHODS, TableOperation.DELETE, _command)
