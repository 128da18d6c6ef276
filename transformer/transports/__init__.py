"""Backend transports for the Vertex AI generate and cache APIs.

- VertexRestClient: raw HTTP over requests; supports context caches.
- GenAIClient: google-genai SDK; uncached requests only.

Both implement the BackendTransport protocol defined in transformer.base.
"""

from .genai_client import GenAIClient
from .rest_client import VertexRestClient

__all__ = ["VertexRestClient", "GenAIClient"]
