"""Error taxonomy shared by every adapter.

Transports translate library exceptions (``openai``, ``httpx``) into
these classes so callers and the retry policy only ever see one
hierarchy.
"""


class LLMError(Exception):
    """Base class for all llmrelay failures."""


class TransportError(LLMError):
    """Network-level failure: connection refused, reset, dropped stream."""


class HTTPError(LLMError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status: int, body: str = "", message: str | None = None):
        self.status = status
        self.body = body
        super().__init__(message or f"HTTP {status}: {body[:200]}")


class AuthFailure(HTTPError):
    """Invalid or expired credentials. Never retried."""


class RateLimited(HTTPError):
    """The backend rejected the call with 429."""


class TimedOut(LLMError):
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Request timed out after {timeout:g}s")


class EmptyResponse(LLMError):
    def __init__(self, message: str = "Received empty response from API"):
        super().__init__(message)


class ExtractionError(LLMError):
    """Structured payload could not be pulled out of model output.

    Args:
        message: Human readable reason.
        snippet: Bounded prefix of the offending text.
    """

    def __init__(self, message: str, snippet: str = ""):
        self.snippet = snippet
        super().__init__(message)


class NoJSONFound(ExtractionError):
    pass


class InvalidJSON(ExtractionError):
    pass


class UnsupportedOperation(LLMError):
    """The adapter does not implement the requested capability."""


def is_fatal_error(exc: BaseException) -> bool:
    """Default fatal predicate: only credential failures are fatal."""
    return isinstance(exc, AuthFailure)
