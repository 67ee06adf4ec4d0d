# cv_chat/routes/chat.py
import logging

from fastapi import APIRouter, Request

from cv_chat.services.challenge import ChallengeSession
from cv_chat.services.rate_limit import client_key
from cv_chat.utils.errors import PayloadTooLarge

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length") or 0)
    except ValueError:
        return 0


@router.post("/chat")
async def chat(request: Request):
    """
    Body: {"message": str, "turnstileToken"?: str}
    Returns {"response": str, "contextUsed": bool}.
    """
    state = request.app.state
    validator = state.validator

    # refuse oversized uploads before buffering them
    if _declared_length(request) > validator.max_body_bytes:
        raise PayloadTooLarge("Request body too large")
    raw = await request.body()
    msg = validator.validate(raw)
    logger.info("chat message accepted (%d chars)", len(msg.message))

    ip = client_key(request, state.settings.client_ip_header)
    session = ChallengeSession.from_cookies(request.cookies)
    await state.gate.admit(session, msg.turnstile_token, ip)

    reply = await state.pipeline.answer(msg.message)
    return {"response": reply.response, "contextUsed": reply.context_used}
