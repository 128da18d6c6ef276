"""Factory functions for wiring a Transformer.

The transport used for uncached requests is chosen by configuration. Cached
requests and cache creation always use the REST transport.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from .base import BackendTransport, ContextSource, CredentialsProvider
from .config import TRANSPORTS, TransformerConfig
from .credentials import GoogleCredentialsProvider, ProviderCredentials, StaticTokenProvider
from .errors import ConfigurationError
from .orchestrator import Transformer
from .transports.rest_client import VertexRestClient
from .workspace import WorkspaceContextSource

# Models offered by default; any Vertex Gemini model id is accepted.
AVAILABLE_MODELS = (
    "gemini-1.5-pro-preview-0514",
    "gemini-1.5-flash-preview-0514",
    "gemini-1.0-pro",
)


def create_credentials() -> CredentialsProvider:
    """Create a credentials provider.

    Uses VERTEX_ACCESS_TOKEN when set, otherwise Application Default
    Credentials.
    """
    return StaticTokenProvider.from_env() or GoogleCredentialsProvider()


def create_transport(
    name: str,
    config: TransformerConfig,
    rest_client: Optional[VertexRestClient] = None,
    credentials: Optional[CredentialsProvider] = None,
) -> BackendTransport:
    """Create the transport for uncached requests.

    Args:
        name: Transport name, "rest" or "genai".
        config: Transformer configuration.
        rest_client: Existing REST client to reuse for the "rest" transport.
        credentials: Token provider for the new client. Both transports
            authenticate with it so fresh and cached requests behave alike.

    Raises:
        ConfigurationError: If the transport name is unknown.
    """
    name = name.lower().strip()
    if name not in TRANSPORTS:
        raise ConfigurationError(
            f"Unknown transport: '{name}'. "
            f"Supported transports: {', '.join(sorted(TRANSPORTS))}"
        )

    if name == "rest" and rest_client is not None:
        return rest_client

    credentials = credentials or (rest_client.credentials if rest_client else create_credentials())
    if name == "rest":
        return VertexRestClient(config.project_id, config.location, credentials)

    from .transports.genai_client import GenAIClient

    return GenAIClient(
        config.project_id,
        config.location,
        credentials=ProviderCredentials(credentials),
    )


def create_transformer(
    config: TransformerConfig,
    workspace_root: Path,
    active_path: Optional[Path] = None,
    source: Optional[ContextSource] = None,
    credentials: Optional[CredentialsProvider] = None,
    on_warning: Optional[Callable[[Exception], None]] = None,
) -> Transformer:
    """Create a Transformer for a workspace.

    Examples:
        config = TransformerConfig.from_env()
        transformer = create_transformer(config, Path("."), active_path=Path("src/a.cs"))
        text = transformer.generate(request)
    """
    source = source or WorkspaceContextSource(workspace_root, active_path=active_path)
    credentials = credentials or create_credentials()
    rest_client = VertexRestClient(config.project_id, config.location, credentials)
    fresh_transport = create_transport(
        config.transport, config, rest_client=rest_client, credentials=credentials
    )
    return Transformer(
        config,
        source,
        fresh_transport=fresh_transport,
        cached_transport=rest_client,
        on_warning=on_warning,
    )


def get_available_transports() -> list[str]:
    """Get list of available transport names.

    Returns:
        Sorted list of transport names.
    """
    return sorted(TRANSPORTS)


def get_available_models() -> list[str]:
    return list(AVAILABLE_MODELS)
