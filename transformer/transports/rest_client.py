"""Raw-HTTP client for the Vertex AI REST API.

This is the only transport that can create and reference context caches.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

from ..base import (
    CachedRequest,
    CredentialsProvider,
    FreshRequest,
    GenerationSettings,
    ModelRequest,
)
from ..errors import TransportError

logger = logging.getLogger(__name__)


class VertexRestClient:
    """Vertex AI REST client implementing the BackendTransport protocol."""

    def __init__(
        self,
        project_id: str,
        location: str,
        credentials: CredentialsProvider,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            project_id: Google Cloud project id.
            location: Vertex AI region, e.g. us-central1.
            credentials: Source of bearer tokens.
            session: Optional requests session to send calls through.
        """
        self.project_id = project_id
        self.location = location
        self.credentials = credentials
        self.session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return f"https://{self.location}-aiplatform.googleapis.com/v1"

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}/locations/{self.location}"

    def model_resource(self, model_id: str) -> str:
        return f"{self.parent}/publishers/google/models/{model_id}"

    def _build_generate_body(
        self,
        model_request: ModelRequest,
        settings: GenerationSettings,
    ) -> dict:
        body: dict = {
            "contents": model_request.to_contents(),
            "generationConfig": settings.to_wire(),
        }
        if isinstance(model_request, CachedRequest):
            body["cachedContent"] = model_request.cached_content
        elif isinstance(model_request, FreshRequest):
            body["systemInstruction"] = {
                "role": "system",
                "parts": [{"text": model_request.system_instruction}],
            }
        else:
            raise TypeError(f"Unsupported request type: {type(model_request).__name__}")
        return body

    def _headers(self) -> dict:
        token = self.credentials.get_access_token()
        return {
            "Authorization": f"Bearer {token.token}",
            "Accept": "application/json",
            "Content-Type": "application/json; charset=utf-8",
        }

    def _post(self, url: str, body: dict, timeout: float) -> Optional[dict]:
        headers = self._headers()

        try:
            response = self.session.post(url, headers=headers, json=body, timeout=timeout)
        except requests.Timeout as e:
            raise TransportError(f"Request timed out after {timeout}s: {e}") from e
        except requests.RequestException as e:
            raise TransportError(f"Request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"API returned status code {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if not response.content or not response.content.strip():
            return None

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON response: {e}") from e

    def generate_content(
        self,
        model_request: ModelRequest,
        model_id: str,
        settings: GenerationSettings,
        timeout: float,
    ) -> Optional[dict]:
        """Call the generateContent endpoint.

        Returns:
            The response envelope, or None if the body was empty.

        Raises:
            TransportError: If the request fails or returns a non-2xx status.
            AuthenticationError: If no access token could be obtained.
        """
        url = f"{self.base_url}/{self.model_resource(model_id)}:generateContent"
        body = self._build_generate_body(model_request, settings)
        return self._post(url, body, timeout)

    def create_cached_content(
        self,
        model_id: str,
        system_instruction: str,
        contents: list[dict],
        ttl_seconds: int,
        timeout: float,
    ) -> Optional[dict]:
        """Create a cachedContents resource.

        Returns:
            The created resource; its ``name`` is the cache id.
        """
        url = f"{self.base_url}/{self.parent}/cachedContents"
        body = {
            "model": self.model_resource(model_id),
            "systemInstruction": {
                "role": "system",
                "parts": [{"text": system_instruction}],
            },
            "contents": contents,
            "ttl": f"{ttl_seconds}s",
        }
        return self._post(url, body, timeout)
