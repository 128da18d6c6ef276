"""Error types raised by the transformer engine.

Every failure surfaces to the caller as one of these types. The engine never
retries and never swallows errors; callers decide how to present them.
"""

from __future__ import annotations

from typing import Optional


class TransformerError(Exception):
    """Base error for the transformer engine."""

    pass


class ConfigurationError(TransformerError):
    """Invalid or missing configuration."""

    pass


class ContextUnavailable(TransformerError):
    """No document is open, or no repository files matched the include patterns."""

    pass


class EmptyPromptError(TransformerError):
    """The user prompt is empty or whitespace-only."""

    pass


class InvalidRequestError(TransformerError):
    """A generation request is missing a required field."""

    pass


class AuthenticationError(TransformerError):
    """An access token could not be obtained."""

    pass


class TransportError(TransformerError):
    """The backend call failed at the HTTP or SDK level."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CacheCreationError(TransformerError):
    """The server-side context cache could not be created."""

    pass


class NoResponseError(TransformerError):
    """The backend call succeeded but returned no response envelope."""

    pass


class EmptyCandidateError(TransformerError):
    """The response envelope contained zero candidates."""

    pass


class IncompleteGenerationError(TransformerError):
    """Generation stopped for a reason other than STOP.

    The network call itself succeeded. ``partial_text`` carries whatever text
    the backend produced before stopping, so callers may still display it.
    """

    def __init__(
        self,
        reason: str,
        partial_text: str = "",
        finish_message: Optional[str] = None,
        total_token_count: Optional[int] = None,
    ):
        message = f"Generation finished with reason: {reason}"
        if finish_message:
            message += f" ({finish_message})"
        super().__init__(message)
        self.reason = reason
        self.partial_text = partial_text
        self.finish_message = finish_message
        self.total_token_count = total_token_count


class Cancelled(TransformerError):
    """The request was cancelled by the caller."""

    pass
