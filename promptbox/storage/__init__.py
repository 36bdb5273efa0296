from .local_storage import KeyValueStorage, MemoryStorage, FileStorage
from .store_adapter import (
    PersistentStoreAdapter,
    DOCUMENT_KEY,
    HANDOFF_KEY,
    FILTERS_KEY,
    APP_KEYS,
)

__all__ = [
    'KeyValueStorage',
    'MemoryStorage',
    'FileStorage',
    'PersistentStoreAdapter',
    'DOCUMENT_KEY',
    'HANDOFF_KEY',
    'FILTERS_KEY',
    'APP_KEYS',
]
