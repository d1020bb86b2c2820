"""Document store construction."""

from pathlib import Path
from typing import Optional

from dealerledger.config import load_config
from dealerledger.database.sqlalchemy_db import SQLAlchemyDocumentStore

IN_MEMORY = ":memory:"


def default_database_path() -> Path:
    """Location of the ledger database when none is configured."""
    return Path.home() / ".dealerledger" / "dealerledger.db"


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDocumentStore:
    """Open the ledger's SQLite document store, creating the file if needed.

    The path comes from the argument, then DEALERLEDGER_DB_PATH, then
    ``default_database_path()``. ``":memory:"`` opens a throwaway in-memory
    store. Missing parent directories are created.
    """
    if database_path is None:
        database_path = load_config().database_path
    if database_path == IN_MEMORY:
        return SQLAlchemyDocumentStore("sqlite://")

    path = Path(database_path) if database_path else default_database_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    return SQLAlchemyDocumentStore(f"sqlite:///{path}")
