from .interfaces import AccountStore
from .factory import create_account_store
from .memory_store import InMemoryAccountStore

__all__ = [
    "AccountStore",
    "InMemoryAccountStore",
    "create_account_store",
]
