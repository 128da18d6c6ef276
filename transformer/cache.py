"""Server-side context cache lifecycle.

A CacheManager owns a single cache slot. The slot is either empty or holds
one CacheEntry for one model. Entries are never deleted explicitly; they
expire server-side, and an expired or mismatched entry is simply not reused.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from .base import ContextBlock, SourceScope
from .config import DEFAULT_CACHE_TTL_SECONDS, DEFAULT_TIMEOUT_SECONDS
from .errors import CacheCreationError, TransformerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A live server-side context cache."""

    id: str
    model_id: str
    created_at: float
    ttl_seconds: int

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheDecision:
    """Outcome of CacheManager.resolve.

    At most one field is set: ``reuse`` when a live entry can be referenced,
    ``create_from_context`` when the caller must create a new entry.
    """

    reuse: Optional[CacheEntry] = None
    create_from_context: Optional[ContextBlock] = None


NO_CACHE = CacheDecision()


@runtime_checkable
class CachingTransport(Protocol):
    """Backend capable of creating context caches."""

    def create_cached_content(
        self,
        model_id: str,
        system_instruction: str,
        contents: list[dict],
        ttl_seconds: int,
        timeout: float,
    ) -> Optional[dict]:
        ...


class CacheManager:
    """Owns the single context-cache slot of a Transformer."""

    def __init__(
        self,
        transport: CachingTransport,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the manager.

        Args:
            transport: Backend used to create caches.
            ttl_seconds: Lifetime requested for new caches.
            timeout: Timeout for the cache-creation call.
            clock: Returns the current time in epoch seconds.
        """
        self.transport = transport
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self._clock = clock
        self._entry: Optional[CacheEntry] = None
        # Guards check -> decide -> create -> store as one unit.
        self.lock = threading.RLock()

    @property
    def entry(self) -> Optional[CacheEntry]:
        return self._entry

    def now(self) -> float:
        return self._clock()

    def active_entry(self, model_id: str, now: Optional[float] = None) -> Optional[CacheEntry]:
        """Return the stored entry if it is unexpired and belongs to model_id."""
        entry = self._entry
        if entry is None:
            return None
        if now is None:
            now = self.now()
        if entry.model_id != model_id or entry.is_expired(now):
            return None
        return entry

    def resolve(
        self,
        scope: SourceScope,
        use_cache: bool,
        model_id: str,
        context_block: Optional[ContextBlock],
        now: Optional[float] = None,
    ) -> CacheDecision:
        """Decide whether to reuse the cache, create one, or bypass caching.

        Caching only applies to repository-scope requests that opt in. This
        method never mutates the slot.
        """
        if scope is not SourceScope.REPOSITORY or not use_cache:
            return NO_CACHE

        entry = self.active_entry(model_id, now)
        if entry is not None:
            logger.debug("Reusing context cache %s for %s", entry.id, model_id)
            return CacheDecision(reuse=entry)

        if self._entry is not None:
            logger.debug(
                "Context cache %s is expired or for another model (%s)",
                self._entry.id,
                self._entry.model_id,
            )
        return CacheDecision(create_from_context=context_block)

    def create_cache(
        self,
        context_block: ContextBlock,
        system_prompt: str,
        model_id: str,
    ) -> CacheEntry:
        """Create a server-side cache holding the system prompt and context.

        The returned entry is not stored; call ``store`` to make it current.

        Raises:
            CacheCreationError: On any transport, auth or backend failure.
        """
        contents = [{"role": "user", "parts": [{"text": context_block.render()}]}]
        created_at = self.now()
        try:
            data = self.transport.create_cached_content(
                model_id=model_id,
                system_instruction=system_prompt,
                contents=contents,
                ttl_seconds=self.ttl_seconds,
                timeout=self.timeout,
            )
        except TransformerError as e:
            raise CacheCreationError(f"Failed to create context cache: {e}") from e

        name = data.get("name") if isinstance(data, dict) else None
        if not name:
            raise CacheCreationError("Cache creation response did not include a cache name")

        logger.info(
            "Created context cache %s for %s (%d file(s), ttl %ds)",
            name,
            model_id,
            context_block.file_count,
            self.ttl_seconds,
        )
        return CacheEntry(
            id=name,
            model_id=model_id,
            created_at=created_at,
            ttl_seconds=self.ttl_seconds,
        )

    def store(self, entry: CacheEntry) -> None:
        with self.lock:
            previous = self._entry
            if previous is not None and previous.model_id != entry.model_id:
                logger.info(
                    "Replacing context cache for %s with one for %s",
                    previous.model_id,
                    entry.model_id,
                )
            self._entry = entry

    def reset(self) -> None:
        with self.lock:
            self._entry = None
