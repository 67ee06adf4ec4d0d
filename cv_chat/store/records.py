import logging
import os
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from cv_chat.utils.errors import ConfigurationError
from cv_chat.utils.settings import Settings

logger = logging.getLogger(__name__)


def record_key(file: str, index: int) -> str:
    return f"{file}-chunk-{index}"


class EmbeddingRecord(BaseModel):
    """One embedded paragraph of a profile document, stored as JSON."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    vector: List[float]
    file: str
    chunk_index: int = Field(alias="chunkIndex")
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def key(self) -> str:
        return record_key(self.file, self.chunk_index)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class RecordStore(Protocol):
    def list_keys(self) -> List[str]:
        ...

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str) -> None:
        ...


class MemoryRecordStore:
    """Dict-backed store. Keys list in sorted order, like a hosted KV."""

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(items or {})
        self._lock = threading.Lock()

    def list_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._items)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def put_record(self, record: EmbeddingRecord) -> None:
        self.put(record.key, record.to_json())

    def __len__(self) -> int:
        return len(self._items)


def persist_dir(preferred: str, fallback: str) -> str:
    """Preferred directory, or the fallback when it cannot be created (read-only fs)."""
    try:
        os.makedirs(preferred, exist_ok=True)
        return preferred
    except OSError:
        logger.warning("cannot create %s, using %s", preferred, fallback)
        os.makedirs(fallback, exist_ok=True)
        return fallback


def build_store(settings: Settings) -> RecordStore:
    backend = settings.record_store.lower()
    if backend == "memory":
        return MemoryRecordStore()
    if backend == "chroma":
        # chromadb is heavy to import, only load it when selected
        from cv_chat.store.chroma import ChromaRecordStore

        path = persist_dir(settings.chroma_dir, settings.chroma_dir_fallback)
        return ChromaRecordStore.persistent(path, settings.chroma_collection)
    raise ConfigurationError("Server is not configured", details=f"unknown RECORD_STORE {backend!r}")
