"""Code transformer: prompt a Gemini model on Vertex AI over source-code context.

Context comes from the active document or from every repository file matching
the configured include patterns. Repository requests can opt into a
server-side context cache so follow-up prompts do not re-send the code.

Usage:
    from transformer import GenerationRequest, SourceScope, TransformerConfig, create_transformer

    config = TransformerConfig.from_env()
    transformer = create_transformer(config, Path("."))
    text = transformer.generate(
        GenerationRequest(
            scope=SourceScope.REPOSITORY,
            prompt="Migrate this project to .NET 8",
            model_id=config.model_id,
            use_cache=True,
        )
    )
"""

from .base import (
    BackendTransport,
    CachedRequest,
    ContextBlock,
    ContextSource,
    CredentialsProvider,
    Document,
    FreshRequest,
    GenerationRequest,
    GenerationSettings,
    ModelRequest,
    ModelResponse,
    SourceScope,
)
from .cache import CacheDecision, CacheEntry, CacheManager
from .client import GenerationClient
from .config import TransformerConfig
from .context import ContextAssembler
from .errors import (
    AuthenticationError,
    CacheCreationError,
    Cancelled,
    ConfigurationError,
    ContextUnavailable,
    EmptyCandidateError,
    EmptyPromptError,
    IncompleteGenerationError,
    InvalidRequestError,
    NoResponseError,
    TransformerError,
    TransportError,
)
from .factory import create_transformer, create_transport, get_available_models, get_available_transports
from .orchestrator import Transformer
from .prompts import PromptComposer
from .workspace import WorkspaceContextSource

__all__ = [
    # Core types
    "CachedRequest",
    "ContextBlock",
    "Document",
    "FreshRequest",
    "GenerationRequest",
    "GenerationSettings",
    "ModelRequest",
    "ModelResponse",
    "SourceScope",
    # Protocols
    "BackendTransport",
    "ContextSource",
    "CredentialsProvider",
    # Components
    "CacheDecision",
    "CacheEntry",
    "CacheManager",
    "ContextAssembler",
    "GenerationClient",
    "PromptComposer",
    "Transformer",
    "TransformerConfig",
    "WorkspaceContextSource",
    # Factory
    "create_transformer",
    "create_transport",
    "get_available_models",
    "get_available_transports",
    # Errors
    "AuthenticationError",
    "CacheCreationError",
    "Cancelled",
    "ConfigurationError",
    "ContextUnavailable",
    "EmptyCandidateError",
    "EmptyPromptError",
    "IncompleteGenerationError",
    "InvalidRequestError",
    "NoResponseError",
    "TransformerError",
    "TransportError",
]
