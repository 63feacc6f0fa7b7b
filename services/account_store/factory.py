from typing import Optional

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.logging import get_database_logger_safe
from .interfaces import AccountStore

logger = get_database_logger_safe("account_store_factory")


def create_account_store(settings: Settings, db_manager: Optional[DatabaseManager] = None) -> AccountStore:
    """Select the store backend once, at process startup.

    A configured `database.url` selects the relational store; otherwise the
    in-memory store is used.
    """
    # Import stores here so the in-memory path never needs a database driver
    if settings.database.url:
        from .sql_store import SqlAccountStore
        db_manager = db_manager or DatabaseManager(settings.database.url, echo=settings.database.echo)
        logger.info("Using SQL account store")
        return SqlAccountStore(settings, db_manager)

    from .memory_store import InMemoryAccountStore
    logger.info("No database configured; using in-memory account store")
    return InMemoryAccountStore(settings)
