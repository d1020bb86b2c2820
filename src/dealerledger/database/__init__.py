"""Storage layer for dealerledger."""

from dealerledger.database.base import Document, DocumentStore
from dealerledger.database.factories import create_sqlite_database

__all__ = ["Document", "DocumentStore", "create_sqlite_database"]

