"""Error taxonomy for the recommendation and image-analysis pipelines.

Every failure a request can hit is one of the exceptions below.  Each carries
the HTTP status code it maps to and a message that is safe to show to the
caller; the FastAPI layer converts them to JSON responses at the endpoint
boundary, so none of them is fatal to the process.

========================  ======  ============================================
Exception                 Status  Raised when
========================  ======  ============================================
``ValidationError``       400     Input is missing or malformed
``RateLimitError``        429     The client exhausted its request window
``ModelError``            500     The upstream model call failed
``ParseError``            500     No JSON could be recovered from model text
========================  ======  ============================================
"""

from __future__ import annotations


class EverydayMagicError(Exception):
    """Base class for all errors surfaced to API callers.

    Attributes:
        message: User-visible message.
        status_code: HTTP status code the error maps to.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EverydayMagicError):
    """Missing or malformed request input."""

    status_code = 400


class RateLimitError(EverydayMagicError):
    """The client sent too many requests in the current window."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.") -> None:
        super().__init__(message)


class ModelError(EverydayMagicError):
    """The external model call failed (transport, auth, quota, or timeout).

    Attributes:
        cause: The underlying exception, if any.
        upstream_status: HTTP status reported by the model service, when the
            SDK exposes one.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        upstream_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.upstream_status = upstream_status

    @property
    def is_api_key_error(self) -> bool:
        """Whether the failure looks like a missing or rejected API key."""
        if self.upstream_status in (401, 403):
            return True
        text = self.message
        if self.cause is not None:
            text = f"{text} {self.cause}"
        return "api key" in text.lower()


class ParseError(EverydayMagicError):
    """The model response contained no recoverable JSON."""

    status_code = 500

    def __init__(self, message: str = "Could not extract valid JSON from the response") -> None:
        super().__init__(message)
