"""Library-backed transport using the google-genai SDK."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..base import CachedRequest, GenerationSettings, ModelRequest
from ..errors import TransportError

logger = logging.getLogger(__name__)


def _enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", None) or getattr(value, "name", None) or str(value)


def response_to_envelope(response: Any) -> Optional[dict]:
    """Convert an SDK GenerateContentResponse to the REST envelope shape."""
    if response is None:
        return None

    candidates = []
    for candidate in response.candidates or []:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        candidates.append(
            {
                "content": {
                    "role": getattr(content, "role", None),
                    "parts": [{"text": part.text} for part in parts if getattr(part, "text", None)],
                },
                "finishReason": _enum_value(getattr(candidate, "finish_reason", None)),
                "finishMessage": getattr(candidate, "finish_message", None),
            }
        )

    envelope: dict = {"candidates": candidates}
    usage = getattr(response, "usage_metadata", None)
    if usage is not None and getattr(usage, "total_token_count", None) is not None:
        envelope["usageMetadata"] = {"totalTokenCount": usage.total_token_count}
    return envelope


class GenAIClient:
    """google-genai client implementing the BackendTransport protocol.

    Handles fresh requests only; cache-referencing requests go over the
    REST transport.
    """

    def __init__(self, project_id: str, location: str, credentials: Any = None):
        """Initialize the client.

        Args:
            project_id: Google Cloud project id.
            location: Vertex AI region.
            credentials: Optional google-auth credentials; defaults to ADC.
        """
        self.project_id = project_id
        self.location = location
        self.credentials = credentials
        self._client = None

    def _get_client(self):
        """Lazy initialization of the google-genai client."""
        if self._client is None:
            try:
                from google import genai
            except ImportError:
                raise TransportError(
                    "google-genai package not installed. "
                    "Install with: pip install google-genai"
                )
            self._client = genai.Client(
                vertexai=True,
                project=self.project_id,
                location=self.location,
                credentials=self.credentials,
            )
        return self._client

    def generate_content(
        self,
        model_request: ModelRequest,
        model_id: str,
        settings: GenerationSettings,
        timeout: float,
    ) -> Optional[dict]:
        """Call generate_content through the SDK.

        Raises:
            TransportError: If the request is cache-shaped or the call fails.
        """
        if isinstance(model_request, CachedRequest):
            raise TransportError("GenAIClient does not send cache-referencing requests")

        from google.genai import errors, types

        client = self._get_client()

        contents = [
            types.Content(
                role="user",
                parts=[types.Part(text=text) for text in model_request.user_parts],
            )
        ]
        config = types.GenerateContentConfig(
            system_instruction=model_request.system_instruction,
            max_output_tokens=settings.max_output_tokens,
            temperature=settings.temperature,
            top_p=settings.top_p,
            candidate_count=settings.candidate_count,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

        try:
            response = client.models.generate_content(
                model=model_id,
                contents=contents,
                config=config,
            )
        except errors.APIError as e:
            raise TransportError(f"Vertex AI request failed: {e}", status_code=e.code) from e
        except Exception as e:
            raise TransportError(f"Vertex AI request failed: {e}") from e

        return response_to_envelope(response)
