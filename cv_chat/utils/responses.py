# cv_chat/utils/responses.py
import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cv_chat.utils.errors import AppError, UpstreamError

logger = logging.getLogger(__name__)


def error_body(exc: AppError, production: bool, **extra: Any) -> Dict[str, Any]:
    """
    JSON error envelope.

      {"error": "<safe message>", ...extra}
      {"error": "...", "details": ...}   # outside production only
    """
    body: Dict[str, Any] = dict(extra)
    body["error"] = exc.message
    if not production and exc.details is not None:
        body["details"] = exc.details
    return body


def error_response(exc: AppError, production: bool, **extra: Any) -> JSONResponse:
    return JSONResponse(error_body(exc, production, **extra), status_code=exc.status_code)


def install_error_handlers(app: FastAPI, production: bool) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if isinstance(exc, UpstreamError) or exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
        return error_response(exc, production)

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        body: Dict[str, Any] = {"error": "Invalid request body"}
        if not production:
            body["details"] = jsonable_encoder(exc.errors())
        return JSONResponse(body, status_code=400)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)
