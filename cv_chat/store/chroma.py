import json
import logging
from typing import Any, Dict, List, Optional

import chromadb

from cv_chat.utils.errors import MalformedInput

logger = logging.getLogger(__name__)


class ChromaRecordStore:
    """Record store on a Chroma collection.

    The raw JSON record is kept as the document so reads return exactly what
    was written; the record's vector becomes the collection embedding.
    """

    def __init__(self, collection):
        self.collection = collection

    @classmethod
    def persistent(cls, path: str, name: str) -> "ChromaRecordStore":
        client = chromadb.PersistentClient(path=path)
        return cls(client.get_or_create_collection(name, embedding_function=None))

    def list_keys(self) -> List[str]:
        res = self.collection.get(include=["metadatas"])
        return sorted(res.get("ids") or [])

    def get(self, key: str) -> Optional[str]:
        res = self.collection.get(ids=[key], include=["documents"])
        docs = res.get("documents") or []
        return docs[0] if docs else None

    def put(self, key: str, value: str) -> None:
        try:
            data = json.loads(value)
        except ValueError:
            raise MalformedInput("Stored value must be JSON")
        vector = data.get("vector") if isinstance(data, dict) else None
        if not isinstance(vector, list) or not vector:
            raise MalformedInput("Only embedding records with a vector can be stored")

        meta: Dict[str, Any] = {}
        for field in ("file", "chunkIndex", "timestamp"):
            if data.get(field) is not None:
                meta[field] = data[field]

        self.collection.upsert(
            ids=[key],
            documents=[value],
            embeddings=[vector],
            metadatas=[meta] if meta else None,
        )
        logger.debug("stored %s (%d dims)", key, len(vector))
