import json
import logging
from typing import List

from cv_chat.store.records import RecordStore
from cv_chat.utils.errors import StoreError

logger = logging.getLogger(__name__)


class ContextRetriever:
    """Collects profile text from the first ``limit`` stored records.

    This is not a similarity search. The query and the stored vectors are
    ignored and the result is whatever sorts first in the store.
    """

    def __init__(self, store: RecordStore, limit: int = 10):
        self.store = store
        self.limit = limit

    def retrieve(self) -> List[str]:
        try:
            keys = self.store.list_keys()
        except Exception as e:
            logger.exception("listing record store failed")
            raise StoreError("Profile vectors not available", details=str(e))
        logger.info("found %d stored records", len(keys))

        chunks: List[str] = []
        for key in keys[: self.limit]:
            try:
                stored = self.store.get(key)
                if not stored:
                    continue
                data = json.loads(stored)
            except Exception:
                logger.warning("failed to parse stored data for key %s", key)
                continue
            content = data.get("content") if isinstance(data, dict) else None
            if isinstance(content, str) and content:
                chunks.append(content)

        logger.info("retrieved %d context chunks", len(chunks))
        return chunks
