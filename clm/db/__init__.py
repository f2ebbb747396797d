"""Database package."""

from clm.db.session import (
    AsyncSessionLocal,
    Base,
    SyncSessionLocal,
    async_engine,
    get_db,
    get_sync_db,
    init_db,
    run_in_transaction,
    sync_engine,
)

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "SyncSessionLocal",
    "async_engine",
    "get_db",
    "get_sync_db",
    "init_db",
    "run_in_transaction",
    "sync_engine",
]
