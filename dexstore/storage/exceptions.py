"""Exception hierarchy for the offer store."""

from __future__ import annotations

from typing import Optional


class StoreError(Exception):
    """Base exception for all store errors."""


class IntegrityError(StoreError):
    """Raised at open when the store file fails its integrity or schema check."""


class MigrationError(StoreError):
    """Raised when a schema migration fails. The migration was rolled back."""


class StoreClosedError(StoreError):
    """Raised when a repository is used while the store handle is closed."""


class StatementError(StoreError):
    """Raised when a single CRUD statement fails.

    Carries the extended SQLite result code and its name, taken from
    sqlite3.Error.sqlite_errorcode / sqlite_errorname (Python 3.11+).
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        code: Optional[int] = None,
        code_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.table = table
        self.operation = operation
        self.code = code
        self.code_name = code_name
