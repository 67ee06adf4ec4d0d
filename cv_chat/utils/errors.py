from typing import Any, Optional


class AppError(Exception):
    """Base for errors that map onto an HTTP status.

    ``message`` is safe to show to a client. ``details`` is diagnostic and is
    only rendered outside production.
    """

    status_code = 500

    def __init__(self, message: str, *, details: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


# ----- client-caused -----

class ValidationError(AppError):
    status_code = 400


class PayloadTooLarge(ValidationError):
    status_code = 413


class MalformedInput(ValidationError):
    pass


class MissingField(ValidationError):
    pass


class TooLong(ValidationError):
    pass


class SuspiciousContent(ValidationError):
    pass


class RateLimited(AppError):
    status_code = 429

    def __init__(self, message: str = "Rate limited", **kwargs):
        super().__init__(message, **kwargs)


class ChallengeRejected(AppError):
    status_code = 403


# ----- operator / upstream -----

class ConfigurationError(AppError):
    status_code = 500


class UpstreamError(AppError):
    status_code = 500


class ChallengeServiceError(UpstreamError):
    pass


class StoreError(UpstreamError):
    pass
