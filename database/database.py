"""
Durable blob stores backing the cache, transaction history and app state.

Values are opaque strings owned by the caller. Every backend exposes the same
async surface: ``get_item``, ``set_item``, ``remove_item``, ``get_all_keys``
and ``multi_remove``.
"""

import logging
from typing import Dict, Iterable, List, Optional

import rocksdict
from rocksdict import WriteBatch

from errors.exceptions import StorageError

logger = logging.getLogger(__name__)


class BlobStore:
    """Interface for durable key/value string storage"""

    async def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def remove_item(self, key: str) -> None:
        raise NotImplementedError

    async def get_all_keys(self) -> List[str]:
        raise NotImplementedError

    async def multi_remove(self, keys: Iterable[str]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class MemoryBlobStore(BlobStore):
    """Process-local store, used by tests and the ``memory`` backend"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"Value for {key} must be a string, got {type(value).__name__}")
        self.data[key] = value

    async def remove_item(self, key: str) -> None:
        self.data.pop(key, None)

    async def get_all_keys(self) -> List[str]:
        return list(self.data.keys())

    async def multi_remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.data.pop(key, None)


class RocksBlobStore(BlobStore):
    """RocksDB-backed store via rocksdict"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        try:
            self.db = rocksdict.Rdict(db_path)
            logger.info(f"Blob store initialized at {db_path}")
        except Exception as e:
            logger.error(f"Failed to initialize RocksDB at {db_path}: {e}")
            raise StorageError(f"Failed to open blob store at {db_path}: {e}") from e

    async def get_item(self, key: str) -> Optional[str]:
        try:
            value = self.db.get(key)
        except Exception as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set_item(self, key: str, value: str) -> None:
        try:
            self.db[key] = value
        except Exception as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    async def remove_item(self, key: str) -> None:
        try:
            if key in self.db:
                del self.db[key]
        except Exception as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e

    async def get_all_keys(self) -> List[str]:
        try:
            return [k.decode() if isinstance(k, bytes) else k for k in self.db.keys()]
        except Exception as e:
            raise StorageError(f"Failed to list keys: {e}") from e

    async def multi_remove(self, keys: Iterable[str]) -> None:
        batch = WriteBatch()
        for key in keys:
            batch.delete(key)
        try:
            self.db.write(batch)
        except Exception as e:
            raise StorageError(f"Failed to remove keys in batch: {e}") from e

    def close(self) -> None:
        self.db.close()
        logger.info("Blob store closed")


def open_store(backend: str, db_path: Optional[str] = None) -> BlobStore:
    """Create the blob store named by ``backend`` ("rocksdb" or "memory")"""
    if backend == "memory":
        logger.info("Using in-memory blob store")
        return MemoryBlobStore()
    if backend == "rocksdb":
        if not db_path:
            raise StorageError("RocksDB backend requires a storage path")
        return RocksBlobStore(db_path)
    raise StorageError(f"Unknown storage backend: {backend}")
