"""Dispatches generate-content calls and interprets the response."""

from __future__ import annotations

import logging
from typing import Optional

from .base import (
    STOP,
    BackendTransport,
    CachedRequest,
    GenerationSettings,
    ModelRequest,
    ModelResponse,
)
from .errors import EmptyCandidateError, IncompleteGenerationError, NoResponseError

logger = logging.getLogger(__name__)


def parse_response(data: Optional[dict]) -> ModelResponse:
    """Parse a generateContent response envelope.

    Only the first candidate is read. Text from all of its parts is joined.

    Raises:
        NoResponseError: If the envelope is missing or not a JSON object.
        EmptyCandidateError: If there are no candidates.
    """
    if data is None:
        raise NoResponseError("Backend returned no response")
    if not isinstance(data, dict):
        raise NoResponseError(f"Backend returned an unexpected response: {data!r}")

    candidates = data.get("candidates") or []
    if not candidates:
        raise EmptyCandidateError("Backend response contained no candidates")

    candidate = candidates[0]
    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))

    usage = data.get("usageMetadata") or {}

    return ModelResponse(
        text=text,
        finish_reason=candidate.get("finishReason") or "FINISH_REASON_UNSPECIFIED",
        total_token_count=usage.get("totalTokenCount"),
        finish_message=candidate.get("finishMessage"),
        raw_response=data,
    )


class GenerationClient:
    """Sends a ModelRequest over the transport matching its shape.

    Cached requests always go over the raw-HTTP transport, since that is the
    only path that can reference a context cache. Fresh requests use the
    configured transport.
    """

    def __init__(
        self,
        fresh_transport: BackendTransport,
        cached_transport: BackendTransport,
        settings: GenerationSettings,
        timeout: float,
    ):
        """Initialize the client.

        Args:
            fresh_transport: Transport for requests carrying full context.
            cached_transport: Raw-HTTP transport for cache-referencing requests.
            settings: Sampling parameters.
            timeout: Per-call timeout in seconds.
        """
        self.fresh_transport = fresh_transport
        self.cached_transport = cached_transport
        self.settings = settings
        self.timeout = timeout

    def _select_transport(self, model_request: ModelRequest) -> BackendTransport:
        if isinstance(model_request, CachedRequest):
            return self.cached_transport
        return self.fresh_transport

    def invoke(self, model_request: ModelRequest, model_id: str) -> ModelResponse:
        """Send the request and return the parsed response.

        Raises:
            NoResponseError: If the backend returned no envelope.
            EmptyCandidateError: If the envelope had no candidates.
            IncompleteGenerationError: If generation stopped for a reason
                other than STOP. Carries the partial text.
            TransportError: If the call failed.
        """
        transport = self._select_transport(model_request)
        logger.debug(
            "Sending %s request to %s via %s",
            type(model_request).__name__,
            model_id,
            type(transport).__name__,
        )

        data = transport.generate_content(
            model_request,
            model_id,
            settings=self.settings,
            timeout=self.timeout,
        )
        response = parse_response(data)

        if response.total_token_count is not None:
            logger.info("Used %d tokens", response.total_token_count)

        if response.finish_reason != STOP:
            raise IncompleteGenerationError(
                reason=response.finish_reason,
                partial_text=response.text,
                finish_message=response.finish_message,
                total_token_count=response.total_token_count,
            )

        return response
