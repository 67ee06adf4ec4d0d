import dataclasses
import json
from typing import List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from cv_chat.api.main import create_app
from cv_chat.services.challenge import ChallengeVerifier
from cv_chat.store.records import EmbeddingRecord, MemoryRecordStore
from cv_chat.utils.settings import Settings

VERIFY_URL = "https://challenges.example/turnstile/v0/siteverify"


class FakeLLM:
    """Stands in for LLMClient; records what it was asked."""

    def __init__(self, reply: str = "Mariano has six years of AWS experience.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_message: str) -> str:
        self.calls.append((system_prompt, user_message))
        if self.error is not None:
            raise self.error
        return self.reply


class TurnstileStub:
    """Fake siteverify endpoint: "good" passes, "bad" is rejected, "down" is a 503."""

    def __init__(self):
        self.forms: List[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.forms.append(form)
        token = form.get("response")
        if token == "down":
            return httpx.Response(503, text="unavailable")
        if token == "good":
            return httpx.Response(200, json={"success": True, "hostname": "cv.example", "error-codes": []})
        return httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-response"]})


def make_record(file: str, index: int, content: str) -> EmbeddingRecord:
    return EmbeddingRecord(content=content, vector=[0.1, 0.2, 0.3], file=file, chunkIndex=index)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        llm_api_key="test-key",
        turnstile_secret="turnstile-secret",
        turnstile_verify_url=VERIFY_URL,
        session_secret="test-session-secret",
        rate_limit_points=1000,
    )


@pytest.fixture
def store() -> MemoryRecordStore:
    s = MemoryRecordStore()
    s.put_record(make_record("profile.txt", 0, "Mariano holds the AWS Solutions Architect Professional certification."))
    s.put_record(make_record("profile.txt", 1, "He has led cloud migrations for fintech clients."))
    return s


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def turnstile() -> TurnstileStub:
    return TurnstileStub()


@pytest.fixture
def make_client(settings, store, llm, turnstile):
    def _make(**overrides) -> TestClient:
        cfg = dataclasses.replace(settings, **overrides)
        verifier = ChallengeVerifier.from_settings(cfg, transport=httpx.MockTransport(turnstile))
        app = create_app(cfg, store=store, llm=llm, verifier=verifier)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def post_chat(client: TestClient, payload) -> httpx.Response:
    body = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)
    return client.post("/api/chat", content=body, headers={"Content-Type": "application/json"})
