"""Core types and protocols for the transformer engine.

The collaborators the engine talks to (the workspace, the credentials source
and the backend transport) are defined as Protocols. Using structural
subtyping lets tests and alternative integrations plug in without explicit
inheritance.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Union, runtime_checkable

from .errors import EmptyPromptError, InvalidRequestError

STOP = "STOP"


class SourceScope(enum.Enum):
    """Where the code context for a request comes from."""

    ACTIVE_DOCUMENT = "ActiveDocument"
    REPOSITORY = "Repository"

    @classmethod
    def parse(cls, value: str) -> SourceScope:
        """Parse a caller-supplied scope name.

        Accepts ``Repository`` and ``ActiveDocument`` (or the legacy
        ``OpenTab``), case-insensitively.
        """
        normalized = value.strip().lower()
        if normalized == "repository":
            return cls.REPOSITORY
        if normalized in ("activedocument", "opentab"):
            return cls.ACTIVE_DOCUMENT
        raise ValueError(f"Unknown source scope: '{value}'")


@dataclass(frozen=True)
class Document:
    """A source file read from the workspace."""

    path: str
    text: str


@dataclass(frozen=True)
class ContextBlock:
    """Formatted code context, one fragment per document."""

    scope: SourceScope
    fragments: tuple[str, ...]

    @property
    def file_count(self) -> int:
        return len(self.fragments)

    def render(self) -> str:
        if self.scope is SourceScope.REPOSITORY:
            body = "<files>\n" + "\n".join(self.fragments) + "\n</files>"
        else:
            body = "\n".join(self.fragments)
        return f"<context>\n{body}\n</context>"


@dataclass
class GenerationRequest:
    """A caller's request to generate a response."""

    scope: SourceScope
    prompt: str
    model_id: str
    use_cache: bool = False

    def validate(self) -> None:
        if not self.prompt or not self.prompt.strip():
            raise EmptyPromptError("Prompt must not be empty")
        if not self.model_id or not self.model_id.strip():
            raise InvalidRequestError("Model id must not be empty")


@dataclass(frozen=True)
class FreshRequest:
    """Request carrying the system instruction and full context inline."""

    system_instruction: str
    user_parts: tuple[str, ...]

    def to_contents(self) -> list[dict]:
        return [{"role": "user", "parts": [{"text": part} for part in self.user_parts]}]


@dataclass(frozen=True)
class CachedRequest:
    """Request referencing a server-side context cache plus the new prompt."""

    cached_content: str
    user_parts: tuple[str, ...]

    def to_contents(self) -> list[dict]:
        return [{"role": "user", "parts": [{"text": part} for part in self.user_parts]}]


ModelRequest = Union[FreshRequest, CachedRequest]


@dataclass
class ModelResponse:
    """Parsed response from the generate endpoint."""

    text: str
    finish_reason: str
    total_token_count: Optional[int] = None
    finish_message: Optional[str] = None
    raw_response: Optional[dict] = field(default=None, repr=False)

    @property
    def completed(self) -> bool:
        return self.finish_reason == STOP


@dataclass
class GenerationSettings:
    """Sampling parameters sent as ``generationConfig``."""

    max_output_tokens: int = 8192
    temperature: float = 0.2
    top_p: float = 1.0
    candidate_count: int = 1

    def to_wire(self) -> dict[str, Any]:
        return {
            "candidateCount": self.candidate_count,
            "maxOutputTokens": self.max_output_tokens,
            "temperature": self.temperature,
            "topP": self.top_p,
        }


@dataclass(frozen=True)
class AccessToken:
    """OAuth bearer token with its expiry (epoch seconds, if known)."""

    token: str
    expiry: Optional[float] = None


@runtime_checkable
class ContextSource(Protocol):
    """Supplies documents from the editor or workspace."""

    def get_active_document(self) -> Optional[Document]:
        """Return the currently active document, or None if nothing is open."""
        ...

    def find_files(self, pattern: str) -> list[Document]:
        """Return every document matching a glob pattern, in match order."""
        ...


@runtime_checkable
class CredentialsProvider(Protocol):
    """Supplies bearer tokens for the backend."""

    def get_access_token(self) -> AccessToken:
        ...


@runtime_checkable
class BackendTransport(Protocol):
    """Sends a generate-content call and returns the raw response envelope.

    Implementations return the JSON envelope as a dict (``candidates``,
    ``usageMetadata``), or None when the call succeeded without a payload.
    """

    def generate_content(
        self,
        model_request: ModelRequest,
        model_id: str,
        settings: GenerationSettings,
        timeout: float,
    ) -> Optional[dict]:
        ...
