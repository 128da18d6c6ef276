"""Transformer: sequences context assembly, caching, composition and generation."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .base import BackendTransport, ContextBlock, ContextSource, GenerationRequest, SourceScope
from .cache import CacheManager
from .cancellation import CancellationToken
from .client import GenerationClient
from .config import TransformerConfig
from .context import ContextAssembler
from .errors import IncompleteGenerationError
from .prompts import PromptComposer

logger = logging.getLogger(__name__)


def _log_warning(error: Exception) -> None:
    logger.warning("%s", error)


class Transformer:
    """Generates a response for a prompt over active-document or repository context.

    The public surface is ``generate`` and ``cancel``. Each instance owns one
    context-cache slot through its CacheManager.
    """

    def __init__(
        self,
        config: TransformerConfig,
        source: ContextSource,
        fresh_transport: BackendTransport,
        cached_transport: BackendTransport,
        cache_manager: Optional[CacheManager] = None,
        on_warning: Optional[Callable[[Exception], None]] = None,
    ):
        """Initialize the transformer.

        Args:
            config: Transformer configuration.
            source: Supplies the active document and repository files.
            fresh_transport: Transport for requests carrying full context.
            cached_transport: Raw-HTTP transport; also creates context caches.
            cache_manager: Cache slot owner. Defaults to one backed by
                cached_transport.
            on_warning: Receives non-fatal conditions such as an incomplete
                generation whose partial text is being returned. Defaults to
                logging a warning.
        """
        self.config = config
        self.source = source
        self.assembler = ContextAssembler(config.include_patterns)
        self.composer = PromptComposer()
        self.cache_manager = cache_manager or CacheManager(
            cached_transport,
            ttl_seconds=config.cache_ttl_seconds,
            timeout=config.timeout_seconds,
        )
        self.client = GenerationClient(
            fresh_transport,
            cached_transport,
            settings=config.generation_settings,
            timeout=config.timeout_seconds,
        )
        self.on_warning = on_warning or _log_warning
        self._tokens: set[CancellationToken] = set()
        self._tokens_lock = threading.Lock()

    def cancel(self) -> None:
        """Cancel every generate call currently in flight."""
        with self._tokens_lock:
            tokens = list(self._tokens)
        for token in tokens:
            token.cancel()
        if tokens:
            logger.info("Cancellation requested for %d request(s)", len(tokens))

    def generate(self, request: GenerationRequest) -> Optional[str]:
        """Generate a response for the request.

        Returns:
            The generated text. For an incomplete generation with partial
            text, the partial text is returned after the condition is passed
            to ``on_warning``.

        Raises:
            EmptyPromptError, InvalidRequestError: If the request is invalid.
            ContextUnavailable: If no context could be gathered.
            CacheCreationError: If a requested context cache could not be created.
            NoResponseError, EmptyCandidateError: If the response is malformed.
            IncompleteGenerationError: If generation stopped early with no text.
            Cancelled: If ``cancel`` was called while the request was in flight.
        """
        request.validate()

        token = CancellationToken()
        with self._tokens_lock:
            self._tokens.add(token)
        try:
            return self._generate(request, token)
        finally:
            with self._tokens_lock:
                self._tokens.discard(token)

    def _generate(self, request: GenerationRequest, token: CancellationToken) -> Optional[str]:
        context_block: Optional[ContextBlock] = None
        cache_ref: Optional[str] = None

        if request.scope is SourceScope.REPOSITORY and request.use_cache:
            cache_ref, context_block = self._resolve_cache(request, token)
        else:
            context_block = self.assembler.build(request.scope, self.source)
            token.raise_if_cancelled()

        model_request = self.composer.compose(
            context_block,
            self.config.system_prompt,
            request.prompt,
            cache_ref=cache_ref,
        )

        token.raise_if_cancelled()
        try:
            response = self.client.invoke(model_request, request.model_id)
        except IncompleteGenerationError as e:
            token.raise_if_cancelled()
            if not e.partial_text:
                raise
            self.on_warning(e)
            return e.partial_text
        token.raise_if_cancelled()

        return response.text

    def _resolve_cache(
        self,
        request: GenerationRequest,
        token: CancellationToken,
    ) -> tuple[Optional[str], Optional[ContextBlock]]:
        """Reuse or create the context cache for a repository request.

        Returns the cache reference to send and, when no cache applies, the
        context block for a fresh request.
        """
        with self.cache_manager.lock:
            now = self.cache_manager.now()
            context_block = None
            if self.cache_manager.active_entry(request.model_id, now) is None:
                context_block = self.assembler.build(request.scope, self.source)
                token.raise_if_cancelled()

            decision = self.cache_manager.resolve(
                request.scope,
                request.use_cache,
                request.model_id,
                context_block,
                now=now,
            )
            if decision.reuse is not None:
                return decision.reuse.id, None

            if decision.create_from_context is None:
                return None, context_block

            entry = self.cache_manager.create_cache(
                decision.create_from_context,
                self.config.system_prompt,
                request.model_id,
            )
            # A cancelled request leaves the slot untouched.
            token.raise_if_cancelled()
            self.cache_manager.store(entry)
            return entry.id, None
