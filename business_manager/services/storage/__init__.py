"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Two backends ship: in-process memory and Google Sheets.
"""

from business_manager.services.storage.interface import (
    AlreadyWonError,
    AuditStorageInterface,
    ChitStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from business_manager.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryChitStorage,
    InMemoryLedgerStorage,
)
from business_manager.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsChitStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    SheetTable,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ChitStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "AlreadyWonError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryChitStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsChitStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "SheetTable",
]
