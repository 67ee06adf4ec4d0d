import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from cv_chat.utils.constants import (
    CHALLENGE_ORIGIN,
    DEFAULT_LLM_BASE_URL,
    DEFAULT_LLM_MODEL,
    TURNSTILE_VERIFY_URL,
)
from cv_chat.utils.errors import ConfigurationError


def _get_list(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass
class Settings:
    """Process-wide configuration, assembled once at startup.

    Components receive the instance in their constructors instead of
    reading the environment themselves.
    """

    environment: str = "development"
    log_level: str = "INFO"

    llm_api_key: str = ""
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_model: str = DEFAULT_LLM_MODEL
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1000
    llm_timeout: float = 30.0

    turnstile_secret: str = ""
    turnstile_verify_url: str = TURNSTILE_VERIFY_URL
    challenge_origin: str = CHALLENGE_ORIGIN

    session_secret: str = ""
    session_ttl_seconds: int = 30 * 60

    rate_limit_points: int = 30
    rate_limit_window: int = 60
    client_ip_header: str = "cf-connecting-ip"

    max_body_bytes: int = 10 * 1024
    max_message_chars: int = 1000

    context_limit: int = 10
    record_store: str = "memory"
    chroma_dir: str = "./data/chroma_store"
    chroma_dir_fallback: str = "/tmp/chroma_store"
    chroma_collection: str = "profile_vectors"

    profile_name: str = "Mariano Elorga"
    profile_title: str = "an AWS Solutions Architect"

    protected_paths: List[str] = field(default_factory=lambda: ["/api/chat"])

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            environment=os.getenv("APP_ENV", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            llm_api_key=os.getenv("GROQ_API_KEY", ""),
            llm_base_url=os.getenv("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            llm_model=os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", "1000")),
            llm_timeout=float(os.getenv("LLM_TIMEOUT", "30")),
            turnstile_secret=os.getenv("TURNSTILE_SECRET", ""),
            turnstile_verify_url=os.getenv("TURNSTILE_VERIFY_URL", TURNSTILE_VERIFY_URL),
            session_secret=os.getenv("SESSION_SECRET", ""),
            session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", str(30 * 60))),
            rate_limit_points=int(os.getenv("RATE_LIMIT_POINTS", "30")),
            rate_limit_window=int(os.getenv("RATE_LIMIT_WINDOW", "60")),
            client_ip_header=os.getenv("CLIENT_IP_HEADER", "cf-connecting-ip"),
            context_limit=int(os.getenv("CONTEXT_LIMIT", "10")),
            record_store=os.getenv("RECORD_STORE", "memory"),
            chroma_dir=os.getenv("CHROMA_DIR", "./data/chroma_store"),
            chroma_dir_fallback=os.getenv("CHROMA_DIR_FALLBACK", "/tmp/chroma_store"),
            chroma_collection=os.getenv("CHROMA_COLLECTION", "profile_vectors"),
            profile_name=os.getenv("PROFILE_NAME", "Mariano Elorga"),
            profile_title=os.getenv("PROFILE_TITLE", "an AWS Solutions Architect"),
            protected_paths=_get_list(os.getenv("PROTECTED_PATHS"), ["/api/chat"]),
        )

    def check(self) -> "Settings":
        """Raise ConfigurationError if a required secret is absent."""
        missing = []
        if not self.llm_api_key:
            missing.append("GROQ_API_KEY")
        if not self.turnstile_secret:
            missing.append("TURNSTILE_SECRET")
        if self.is_production and not self.session_secret:
            missing.append("SESSION_SECRET")
        if missing:
            raise ConfigurationError(
                "Server is not configured",
                details=f"missing required settings: {', '.join(missing)}",
            )
        if not self.session_secret:
            # dev only, tokens signed with this do not survive a real deploy
            self.session_secret = "change_me"
        return self
