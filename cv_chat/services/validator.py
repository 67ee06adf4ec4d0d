import json
import logging
from typing import List, Optional, Pattern

from pydantic import BaseModel

from cv_chat.utils.constants import SUSPICIOUS_PATTERNS
from cv_chat.utils.errors import (
    MalformedInput,
    MissingField,
    PayloadTooLarge,
    SuspiciousContent,
    TooLong,
)

logger = logging.getLogger(__name__)


class ValidatedMessage(BaseModel):
    message: str
    turnstile_token: Optional[str] = None


class ContentValidator:
    """Size, shape and denylist checks for an inbound chat body.

    Checks run in a fixed order and the first failure wins. Nothing is
    sanitized: a suspicious message is rejected as-is.
    """

    def __init__(
        self,
        max_body_bytes: int = 10 * 1024,
        max_message_chars: int = 1000,
        patterns: Optional[List[Pattern]] = None,
    ):
        self.max_body_bytes = max_body_bytes
        self.max_message_chars = max_message_chars
        self.patterns = SUSPICIOUS_PATTERNS if patterns is None else patterns

    def validate(self, raw_body: bytes) -> ValidatedMessage:
        if len(raw_body) > self.max_body_bytes:
            raise PayloadTooLarge("Request body too large")

        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, ValueError):
            raise MalformedInput("Invalid JSON in request body")

        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, str) or not message.strip():
            raise MissingField("Message is required and must be a string")

        if len(message) > self.max_message_chars:
            raise TooLong(f"Message too long (max {self.max_message_chars} characters)")

        for pattern in self.patterns:
            if pattern.search(message):
                logger.warning("rejected message matching %r", pattern.pattern)
                raise SuspiciousContent("Message contains disallowed content")

        token = payload.get("turnstileToken")
        return ValidatedMessage(
            message=message,
            turnstile_token=token if isinstance(token, str) and token else None,
        )
