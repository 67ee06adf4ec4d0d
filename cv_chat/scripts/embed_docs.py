"""
Embed profile documents and load them into the record store.

Each file in DOCS_DIR is split into paragraphs (blank-line separated), every
paragraph is embedded, and one record per paragraph is written under
"<file>-chunk-<i>". Re-running overwrites existing records.

Usage:
    python -m cv_chat.scripts.embed_docs src/docs --target store
    python -m cv_chat.scripts.embed_docs src/docs --target api --server-url http://localhost:8000
"""

import argparse
import logging
import os
import re
import sys
from typing import List, Optional, Protocol

import requests
from tenacity import Retrying, stop_after_attempt, wait_incrementing

from cv_chat.store.records import EmbeddingRecord, RecordStore, build_store
from cv_chat.utils.log import configure_logging
from cv_chat.utils.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"
RETRIES = 3
# 1s, then 2s between attempts
DEFAULT_WAIT = wait_incrementing(start=1, increment=1)

PARAGRAPH_SPLIT = re.compile(r"\n\n+")


def split_chunks(text: str) -> List[str]:
    return [c for c in PARAGRAPH_SPLIT.split(text) if c.strip()]


class Embedder(Protocol):
    def embed(self, text: str) -> List[float]:
        ...


class SentenceTransformerEmbedder:
    def __init__(self, model_name: str = DEFAULT_MODEL):
        # loading the model is slow, keep it out of module import
        from sentence_transformers import SentenceTransformer

        self.model = SentenceTransformer(model_name)

    def embed(self, text: str) -> List[float]:
        return self.model.encode([text], normalize_embeddings=True)[0].tolist()


class StoreWriter:
    def __init__(self, store: RecordStore):
        self.store = store

    def write(self, record: EmbeddingRecord) -> None:
        self.store.put(record.key, record.to_json())


class ApiWriter:
    """Writes through a running development server's /api/kv and reads it back."""

    def __init__(self, base_url: str, session=None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def write(self, record: EmbeddingRecord) -> None:
        value = record.model_dump(by_alias=True)
        resp = self.session.post(
            f"{self.base_url}/api/kv",
            json={"key": record.key, "value": value},
            timeout=self.timeout,
        )
        resp.raise_for_status()

        check = self.session.post(
            f"{self.base_url}/api/kv-get",
            json={"key": record.key},
            timeout=self.timeout,
        )
        check.raise_for_status()
        stored = (check.json() or {}).get("value") or {}
        if stored.get("content") != record.content:
            raise RuntimeError(f"verification failed for {record.key}")
        logger.info("verified %s (%s...)", record.key, record.content[:50])


def _retrying(wait) -> Retrying:
    return Retrying(reraise=True, stop=stop_after_attempt(RETRIES), wait=wait)


def ingest(docs_dir: str, embedder: Embedder, writer, wait=DEFAULT_WAIT) -> int:
    """Embed every document in ``docs_dir``; returns the number of records written."""
    total = 0
    for name in sorted(os.listdir(docs_dir)):
        path = os.path.join(docs_dir, name)
        if not os.path.isfile(path):
            continue
        with open(path, encoding="utf-8") as f:
            chunks = split_chunks(f.read())
        logger.info("processing %s: %d chunks", name, len(chunks))

        for i, chunk in enumerate(chunks):
            for attempt in _retrying(wait):
                with attempt:
                    vector = embedder.embed(chunk)
            record = EmbeddingRecord(content=chunk, vector=vector, file=name, chunkIndex=i)
            for attempt in _retrying(wait):
                with attempt:
                    writer.write(record)
            logger.info("stored %s (%d dims)", record.key, len(vector))
            total += 1

    logger.info("processed %d chunks", total)
    return total


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Embed profile documents into the record store")
    parser.add_argument("docs_dir", help="directory of plain-text documents")
    parser.add_argument("--target", choices=["store", "api"], default="store")
    parser.add_argument(
        "--server-url",
        default=os.getenv("DEV_SERVER_URL", "http://localhost:8000"),
        help="development server for --target api",
    )
    parser.add_argument("--model", default=DEFAULT_MODEL, help="sentence-transformers model")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if not os.path.isdir(args.docs_dir):
        logger.error("not a directory: %s", args.docs_dir)
        return 1

    if args.target == "api":
        writer = ApiWriter(args.server_url)
    else:
        if settings.record_store == "memory":
            logger.warning("RECORD_STORE=memory, records will not outlive this process")
        writer = StoreWriter(build_store(settings))

    try:
        ingest(args.docs_dir, SentenceTransformerEmbedder(args.model), writer)
    except Exception:
        logger.exception("ingestion failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
