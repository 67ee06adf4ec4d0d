import logging
from typing import Optional

from fastapi import FastAPI

from cv_chat.api.middleware import install_middleware
from cv_chat.routes.captcha import router as captcha_router
from cv_chat.routes.chat import router as chat_router
from cv_chat.routes.kv import router as kv_router
from cv_chat.services.challenge import ChallengeGate, ChallengeVerifier, SessionSigner
from cv_chat.services.llm import LLMClient
from cv_chat.services.pipeline import ChatPipeline
from cv_chat.services.prompt import Identity
from cv_chat.services.rate_limit import CounterStore, InMemoryCounterStore, RateLimiter
from cv_chat.services.retriever import ContextRetriever
from cv_chat.services.validator import ContentValidator
from cv_chat.store.records import RecordStore, build_store
from cv_chat.utils.log import configure_logging
from cv_chat.utils.responses import install_error_handlers
from cv_chat.utils.settings import Settings

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[RecordStore] = None,
    llm: Optional[LLMClient] = None,
    verifier: Optional[ChallengeVerifier] = None,
    counters: Optional[CounterStore] = None,
) -> FastAPI:
    """Build the app. Run with ``uvicorn cv_chat.api.main:create_app --factory``.

    Configuration is read and checked once here; a missing secret stops
    startup instead of failing individual requests.
    """
    settings = (settings or Settings.from_env()).check()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="CV Site Chat API",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
        openapi_url=None if settings.is_production else "/openapi.json",
    )

    store = store if store is not None else build_store(settings)
    verifier = verifier or ChallengeVerifier.from_settings(settings)
    signer = SessionSigner(settings.session_secret)
    gate = ChallengeGate(verifier, signer, settings.protected_paths)
    limiter = RateLimiter(
        counters or InMemoryCounterStore(settings.rate_limit_points, settings.rate_limit_window)
    )

    app.state.settings = settings
    app.state.store = store
    app.state.verifier = verifier
    app.state.signer = signer
    app.state.gate = gate
    app.state.limiter = limiter
    app.state.validator = ContentValidator(settings.max_body_bytes, settings.max_message_chars)
    app.state.pipeline = ChatPipeline(
        ContextRetriever(store, settings.context_limit),
        llm or LLMClient(settings),
        Identity(settings.profile_name, settings.profile_title),
    )

    install_middleware(app, settings, limiter, gate)
    install_error_handlers(app, settings.is_production)

    @app.get("/health")
    def health():
        return {"ok": True}

    app.include_router(chat_router)
    app.include_router(captcha_router)
    if not settings.is_production:
        app.include_router(kv_router)
        logger.info("development KV routes enabled")

    logger.info(
        "app ready env=%s store=%s rate=%d/%ds",
        settings.environment, settings.record_store,
        settings.rate_limit_points, settings.rate_limit_window,
    )
    return app
