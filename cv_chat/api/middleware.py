import logging
import secrets
from typing import List
from urllib.parse import urlsplit

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cv_chat.services.challenge import ChallengeGate, ChallengeSession
from cv_chat.services.rate_limit import RateLimiter, client_key
from cv_chat.utils.constants import CHAT_PATH, LLM_ORIGIN
from cv_chat.utils.errors import RateLimited
from cv_chat.utils.settings import Settings

logger = logging.getLogger(__name__)


def _origin(url: str) -> str:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return LLM_ORIGIN
    return f"{parts.scheme}://{parts.netloc}"


def build_csp(nonce: str, challenge_origin: str, llm_origin: str, hostname: str) -> str:
    directives: List[str] = [
        "default-src 'self'",
        f"script-src 'self' 'nonce-{nonce}' {challenge_origin} 'wasm-unsafe-eval'",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: https:",
        "font-src 'self' data:",
        f"connect-src 'self' {llm_origin} {challenge_origin}",
        f"frame-src {challenge_origin}",
        "worker-src 'self'",
        "manifest-src 'self'",
        "media-src 'self'",
        "object-src 'none'",
        "base-uri 'self'",
        "form-action 'self'",
        "frame-ancestors 'none'",
    ]
    if hostname != "localhost":
        directives.append("upgrade-insecure-requests")
    return "; ".join(directives)


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


def install_middleware(app: FastAPI, settings: Settings, limiter: RateLimiter, gate: ChallengeGate) -> None:
    """Register the HTTP middleware stack.

    Starlette wraps each new middleware around the previous ones, so the last
    registered runs first: security headers, then rate limiting, then the
    challenge-session check.
    """
    llm_origin = _origin(settings.llm_base_url)

    @app.middleware("http")
    async def challenge_session(request: Request, call_next):
        path = request.url.path
        if path != CHAT_PATH and gate.is_protected(path):
            if not gate.session_valid(ChallengeSession.from_cookies(request.cookies)):
                logger.info("no challenge session for %s", path)
                return JSONResponse({"error": "CAPTCHA verification required"}, status_code=403)
        return await call_next(request)

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        key = client_key(request, settings.client_ip_header)
        try:
            limiter.consume(key, 1)
        except RateLimited as e:
            return JSONResponse({"error": e.message}, status_code=e.status_code)
        return await call_next(request)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        nonce = secrets.token_urlsafe(16)
        request.state.csp_nonce = nonce
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("unhandled error on %s %s", request.method, request.url.path)
            response = JSONResponse({"error": "Internal server error"}, status_code=500)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        response.headers["Content-Security-Policy"] = build_csp(
            nonce, settings.challenge_origin, llm_origin, request.url.hostname or ""
        )
        return response
