import json

import pytest

chromadb = pytest.importorskip("chromadb")

from cv_chat.services.retriever import ContextRetriever
from cv_chat.store.chroma import ChromaRecordStore
from cv_chat.store.records import build_store
from cv_chat.utils.errors import MalformedInput
from cv_chat.utils.settings import Settings

from conftest import make_record


@pytest.fixture
def chroma_store(tmp_path):
    return ChromaRecordStore.persistent(str(tmp_path / "chroma"), "profile_vectors_test")


def test_put_get_list(chroma_store):
    rec = make_record("doc.txt", 0, "Hello world")
    chroma_store.put(rec.key, rec.to_json())
    assert chroma_store.list_keys() == ["doc.txt-chunk-0"]
    assert json.loads(chroma_store.get("doc.txt-chunk-0"))["content"] == "Hello world"
    assert chroma_store.get("missing") is None


def test_upsert_overwrites(chroma_store):
    chroma_store.put("doc.txt-chunk-0", make_record("doc.txt", 0, "old").to_json())
    chroma_store.put("doc.txt-chunk-0", make_record("doc.txt", 0, "new").to_json())
    assert ContextRetriever(chroma_store).retrieve() == ["new"]


@pytest.mark.parametrize("value", ["not json", json.dumps({"content": "no vector"}), json.dumps([1, 2])])
def test_rejects_non_records(chroma_store, value):
    with pytest.raises(MalformedInput):
        chroma_store.put("k", value)


def test_build_store_selects_chroma(tmp_path):
    settings = Settings(record_store="chroma", chroma_dir=str(tmp_path / "db"), chroma_collection="profile_vectors")
    assert isinstance(build_store(settings), ChromaRecordStore)
