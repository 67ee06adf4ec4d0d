import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from cv_chat.services.challenge import (
    ChallengeGate,
    ChallengeSession,
    ChallengeVerifier,
    SessionSigner,
    expiry_millis,
    parse_expiry,
)
from cv_chat.utils.errors import ChallengeRejected, ChallengeServiceError

from conftest import VERIFY_URL, TurnstileStub

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_expiry_accepts_millis_and_date_strings():
    ms = expiry_millis(NOW)
    assert parse_expiry(ms) == NOW
    assert parse_expiry("2026-03-01T12:00:00.000Z") == NOW
    assert parse_expiry("2026-03-01T12:00:00+00:00") == NOW
    assert parse_expiry("Sun, 01 Mar 2026 12:00:00 GMT") == NOW


@pytest.mark.parametrize("raw", [None, "", "tomorrow", "12:00"])
def test_parse_expiry_unreadable(raw):
    assert parse_expiry(raw) is None


def test_session_validity_is_a_pure_predicate():
    future = NOW + timedelta(minutes=5)
    assert ChallengeSession("tok", future).is_valid(NOW)
    assert not ChallengeSession("tok", NOW).is_valid(NOW)
    assert not ChallengeSession("tok", NOW - timedelta(seconds=1)).is_valid(NOW)
    assert not ChallengeSession(None, future).is_valid(NOW)
    assert not ChallengeSession("tok", None).is_valid(NOW)


def test_session_from_cookies():
    cookies = {"captcha_verified": "tok", "captcha_expires": expiry_millis(NOW)}
    session = ChallengeSession.from_cookies(cookies)
    assert session == ChallengeSession("tok", NOW)
    assert ChallengeSession.from_cookies({}) == ChallengeSession(None, None)


def test_minted_session_is_signed():
    signer = SessionSigner("secret")
    session = ChallengeSession.mint(signer, ttl_seconds=1800)
    assert session.is_valid(datetime.now(timezone.utc))
    assert signer.verify(session.token)
    assert not SessionSigner("other-secret").verify(session.token)
    assert not signer.verify("not-a-jwt")


def test_minted_tokens_are_unique():
    signer = SessionSigner("secret")
    a = ChallengeSession.mint(signer, 60, now=NOW)
    b = ChallengeSession.mint(signer, 60, now=NOW)
    assert a.token != b.token
    assert a.expires_at == NOW + timedelta(seconds=60)


def make_verifier(stub):
    return ChallengeVerifier("turnstile-secret", VERIFY_URL, transport=httpx.MockTransport(stub))


def test_verifier_posts_form_and_accepts():
    stub = TurnstileStub()
    outcome = asyncio.run(make_verifier(stub).verify("good", "198.51.100.4"))
    assert outcome.success
    assert outcome.hostname == "cv.example"
    assert stub.forms == [{"secret": "turnstile-secret", "response": "good", "remoteip": "198.51.100.4"}]


def test_verifier_rejection_carries_error_codes():
    with pytest.raises(ChallengeRejected) as exc:
        asyncio.run(make_verifier(TurnstileStub()).verify("bad", "198.51.100.4"))
    assert exc.value.status_code == 403
    assert exc.value.details == ["invalid-input-response"]


def test_verifier_non_2xx_is_service_error():
    with pytest.raises(ChallengeServiceError) as exc:
        asyncio.run(make_verifier(TurnstileStub()).verify("down", "198.51.100.4"))
    assert exc.value.status_code == 500


def test_verifier_transport_failure_is_service_error():
    def boom(request):
        raise httpx.ConnectError("no route", request=request)

    with pytest.raises(ChallengeServiceError):
        asyncio.run(make_verifier(boom).verify("good", "198.51.100.4"))


def test_gate_protected_paths():
    gate = ChallengeGate(make_verifier(TurnstileStub()), SessionSigner("s"), ["/api/chat"])
    assert gate.is_protected("/api/chat")
    assert gate.is_protected("/api/chat/extra")
    assert not gate.is_protected("/api/chatter")
    assert not gate.is_protected("/api/kv")


def test_gate_requires_signature_and_expiry():
    signer = SessionSigner("s")
    gate = ChallengeGate(make_verifier(TurnstileStub()), signer, ["/api/chat"])
    live = ChallengeSession.mint(signer, 600)
    assert gate.session_valid(live)
    assert not gate.session_valid(ChallengeSession("forged", live.expires_at))
    assert not gate.session_valid(ChallengeSession(live.token, datetime.now(timezone.utc) - timedelta(seconds=1)))
    assert not gate.session_valid(None)
