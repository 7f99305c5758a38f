from functools import lru_cache

from eventhub.core.config import get_settings
from eventhub.storage.base import StorageAdapter
from eventhub.storage.local import LocalStorageAdapter


@lru_cache(maxsize=1)
def get_storage() -> StorageAdapter:
    return LocalStorageAdapter(get_settings().UPLOAD_DIR)


__all__ = ["StorageAdapter", "LocalStorageAdapter", "get_storage"]
