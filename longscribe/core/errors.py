"""Exception hierarchy for Longscribe."""

from typing import List, Optional


class LongscribeError(Exception):
    """Base class for all errors raised by Longscribe."""


class ConfigurationError(LongscribeError):
    """Invalid configuration or input, detected before any processing starts."""


class MediaError(LongscribeError):
    """ffmpeg/ffprobe failed to probe or extract media."""


class CompletionError(LongscribeError):
    """Base class for errors coming back from the completion service."""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message)
        self.model = model


class QuotaError(CompletionError):
    """Rate limit, resource exhausted or overloaded. Retryable on another model."""


class ResponseParseError(CompletionError):
    """The response did not match the expected schema."""

    def __init__(self, message: str, model: Optional[str] = None, raw_text: str = ""):
        super().__init__(message, model)
        self.raw_text = raw_text


class FatalCompletionError(CompletionError):
    """Any non-quota failure (bad request, auth, network). Never retried."""


class ModelsExhaustedError(CompletionError):
    """Every model in the fallback list failed with a retryable error."""

    def __init__(self, models: List[str], last_error: Optional[Exception] = None):
        message = f"All models exhausted ({', '.join(models)})"
        if last_error:
            message += f". Last error: {last_error}"
        super().__init__(message)
        self.models = models
        self.last_error = last_error
