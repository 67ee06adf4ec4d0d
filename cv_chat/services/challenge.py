"""
Turnstile challenge verification and the short-lived session that caches a
successful solve.

A solved challenge is remembered in two cookies: a signed verification token
and an absolute expiry timestamp. Protected routes accept the pair in place
of a fresh token until the expiry passes.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import httpx
from jose import JWTError, jwt
from pydantic import BaseModel, Field

from cv_chat.utils.constants import EXPIRES_COOKIE, SESSION_COOKIE, VERIFY_USER_AGENT
from cv_chat.utils.errors import ChallengeRejected, ChallengeServiceError
from cv_chat.utils.settings import Settings

logger = logging.getLogger(__name__)

JWT_ALG = "HS256"
JWT_ISS = "cv-site-captcha"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_expiry(raw: Optional[str]) -> Optional[datetime]:
    """Read the expiry cookie.

    Accepts epoch milliseconds (what we write) or a date string, either
    ISO-8601 or the RFC 1123 form browsers use. Returns None when unreadable.
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    if raw.lstrip("-").isdigit():
        try:
            return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def expiry_millis(expires_at: datetime) -> str:
    return str(int(expires_at.timestamp() * 1000))


class SessionSigner:
    def __init__(self, secret: str):
        self.secret = secret

    def sign(self, expires_at: datetime) -> str:
        now = int(_utcnow().timestamp())
        return jwt.encode(
            {
                "jti": uuid.uuid4().hex,
                "iss": JWT_ISS,
                "iat": now,
                "exp": int(expires_at.timestamp()),
            },
            self.secret,
            algorithm=JWT_ALG,
        )

    def verify(self, token: str) -> bool:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALG], issuer=JWT_ISS)
        except JWTError:
            return False
        return bool(payload.get("jti"))


@dataclass(frozen=True)
class ChallengeSession:
    token: Optional[str]
    expires_at: Optional[datetime]

    def is_valid(self, now: datetime) -> bool:
        return bool(self.token) and self.expires_at is not None and self.expires_at > now

    @classmethod
    def from_cookies(cls, cookies: Dict[str, str]) -> "ChallengeSession":
        return cls(
            token=cookies.get(SESSION_COOKIE) or None,
            expires_at=parse_expiry(cookies.get(EXPIRES_COOKIE)),
        )

    @classmethod
    def mint(cls, signer: SessionSigner, ttl_seconds: int, now: Optional[datetime] = None) -> "ChallengeSession":
        expires_at = (now or _utcnow()) + timedelta(seconds=ttl_seconds)
        return cls(token=signer.sign(expires_at), expires_at=expires_at)


class Verification(BaseModel):
    success: bool
    challenge_ts: Optional[str] = None
    hostname: Optional[str] = None
    action: Optional[str] = None
    cdata: Optional[str] = None
    error_codes: List[str] = Field(default_factory=list, alias="error-codes")


class ChallengeVerifier:
    def __init__(
        self,
        secret: str,
        verify_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret = secret
        self.verify_url = verify_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "ChallengeVerifier":
        return cls(settings.turnstile_secret, settings.turnstile_verify_url, **kwargs)

    async def verify(self, token: str, client_ip: str) -> Verification:
        form = {"secret": self.secret, "response": token, "remoteip": client_ip}
        headers = {"User-Agent": VERIFY_USER_AGENT}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self.verify_url, data=form, headers=headers)
            except httpx.HTTPError as e:
                logger.exception("turnstile request failed")
                raise ChallengeServiceError("CAPTCHA verification service error", details=str(e))

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.error("turnstile returned HTTP %s", resp.status_code)
            raise ChallengeServiceError(
                "CAPTCHA verification service error", details=f"HTTP {resp.status_code}"
            )
        try:
            outcome = Verification.model_validate(resp.json())
        except ValueError as e:
            raise ChallengeServiceError("CAPTCHA verification service error", details=str(e))

        logger.info(
            "turnstile outcome success=%s hostname=%s ip=%s",
            outcome.success, outcome.hostname, client_ip,
        )
        if not outcome.success:
            raise ChallengeRejected("CAPTCHA verification failed", details=outcome.error_codes)
        return outcome


class ChallengeGate:
    """Admits protected requests on a live session or a freshly solved token."""

    def __init__(self, verifier: ChallengeVerifier, signer: SessionSigner, protected_paths: List[str]):
        self.verifier = verifier
        self.signer = signer
        self.protected_paths = list(protected_paths)

    def is_protected(self, path: str) -> bool:
        return any(path == p or path.startswith(p.rstrip("/") + "/") for p in self.protected_paths)

    def session_valid(self, session: Optional[ChallengeSession], now: Optional[datetime] = None) -> bool:
        if session is None or not session.is_valid(now or _utcnow()):
            return False
        return self.signer.verify(session.token)

    async def admit(self, session: Optional[ChallengeSession], token: Optional[str], client_ip: str) -> None:
        if self.session_valid(session):
            logger.debug("challenge session accepted for %s", client_ip)
            return
        if not token:
            raise ChallengeRejected("CAPTCHA verification required")
        await self.verifier.verify(token, client_ip)
