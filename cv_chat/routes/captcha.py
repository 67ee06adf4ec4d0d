# cv_chat/routes/captcha.py
import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from cv_chat.services.challenge import ChallengeSession, expiry_millis
from cv_chat.services.rate_limit import client_key
from cv_chat.utils.constants import EXPIRES_COOKIE, SESSION_COOKIE
from cv_chat.utils.errors import AppError, MalformedInput, MissingField
from cv_chat.utils.responses import error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["captcha"])


async def _read_token(request: Request) -> str:
    try:
        body = json.loads(await request.body())
    except ValueError:
        raise MalformedInput("Invalid JSON in request body")
    token = body.get("token") if isinstance(body, dict) else None
    if not token or not isinstance(token, str):
        raise MissingField("Invalid CAPTCHA token")
    return token


@router.post("/auth/verify-captcha")
async def verify_captcha(request: Request):
    """Verify a Turnstile token and open a verification session via cookies."""
    state = request.app.state
    settings = state.settings
    ip = client_key(request, settings.client_ip_header)
    try:
        token = await _read_token(request)
        logger.info("verifying captcha token from %s", ip)
        await state.verifier.verify(token, ip)
    except AppError as e:
        return error_response(e, settings.is_production, valid=False)

    session = ChallengeSession.mint(state.signer, settings.session_ttl_seconds)
    resp = JSONResponse(
        {
            "valid": True,
            "verificationToken": session.token,
            "expiresAt": session.expires_at.isoformat().replace("+00:00", "Z"),
            "message": "CAPTCHA verified successfully",
        }
    )
    cookie_opts = dict(
        max_age=settings.session_ttl_seconds,
        path="/",
        secure=settings.is_production,
        httponly=False,  # page script reads the pair
        samesite="strict",
    )
    resp.set_cookie(SESSION_COOKIE, session.token, **cookie_opts)
    resp.set_cookie(EXPIRES_COOKIE, expiry_millis(session.expires_at), **cookie_opts)
    logger.info("captcha verified for %s", ip)
    return resp


@router.post("/validate-turnstile")
async def validate_turnstile(request: Request):
    """Stateless check, no session cookies."""
    state = request.app.state
    settings = state.settings
    try:
        token = await _read_token(request)
        await state.verifier.verify(token, client_key(request, settings.client_ip_header))
    except AppError as e:
        status = 400 if e.status_code < 500 else e.status_code
        resp = error_response(e, settings.is_production, valid=False)
        resp.status_code = status
        return resp
    return {"valid": True}
