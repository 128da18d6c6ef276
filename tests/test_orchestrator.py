"""End-to-end tests for Transformer.generate over fake collaborators."""
from __future__ import annotations

import threading

import pytest

from conftest import FakeSource, FakeTransport, make_envelope
from transformer.base import CachedRequest, FreshRequest, GenerationRequest, SourceScope
from transformer.cache import CacheEntry, CacheManager
from transformer.errors import (
    CacheCreationError,
    Cancelled,
    ContextUnavailable,
    EmptyCandidateError,
    EmptyPromptError,
    IncompleteGenerationError,
    InvalidRequestError,
    TransportError,
)
from transformer.orchestrator import Transformer


@pytest.fixture
def fresh_transport() -> FakeTransport:
    return FakeTransport(envelope=make_envelope("fresh answer"))


@pytest.fixture
def warnings() -> list:
    return []


@pytest.fixture
def transformer(config, source, fresh_transport, transport, clock, warnings) -> Transformer:
    cache_manager = CacheManager(
        transport,
        ttl_seconds=config.cache_ttl_seconds,
        timeout=config.timeout_seconds,
        clock=clock,
    )
    return Transformer(
        config,
        source,
        fresh_transport=fresh_transport,
        cached_transport=transport,
        cache_manager=cache_manager,
        on_warning=warnings.append,
    )


def repo_request(prompt: str = "migrate", model_id: str = "m1", use_cache: bool = True) -> GenerationRequest:
    return GenerationRequest(
        scope=SourceScope.REPOSITORY, prompt=prompt, model_id=model_id, use_cache=use_cache
    )


class TestValidation:
    """Tests for request validation."""

    def test_empty_prompt(self, transformer, fresh_transport):
        with pytest.raises(EmptyPromptError):
            transformer.generate(GenerationRequest(SourceScope.ACTIVE_DOCUMENT, "  ", "m1"))

        assert fresh_transport.generate_calls == []

    def test_empty_model(self, transformer):
        with pytest.raises(InvalidRequestError):
            transformer.generate(GenerationRequest(SourceScope.ACTIVE_DOCUMENT, "hi", ""))


class TestActiveDocument:
    """Tests for active-document requests."""

    @pytest.mark.parametrize("use_cache", [True, False])
    def test_no_cache_interaction(self, transformer, fresh_transport, transport, use_cache):
        """Test active-document requests never touch the cache."""
        request = GenerationRequest(SourceScope.ACTIVE_DOCUMENT, "explain", "m1", use_cache=use_cache)

        text = transformer.generate(request)

        assert text == "fresh answer"
        assert transport.cache_calls == []
        assert transport.generate_calls == []
        assert transformer.cache_manager.entry is None
        model_request, model_id = fresh_transport.generate_calls[0]
        assert isinstance(model_request, FreshRequest)
        assert model_id == "m1"
        assert "<code filename='../src/a.cs'>class A{}</code>" in model_request.user_parts[0]
        assert model_request.user_parts[1] == "explain"

    def test_active_cache_entry_untouched(self, transformer, clock):
        entry = CacheEntry(id="c1", model_id="m1", created_at=clock.now, ttl_seconds=3600)
        transformer.cache_manager.store(entry)

        transformer.generate(GenerationRequest(SourceScope.ACTIVE_DOCUMENT, "explain", "m1", use_cache=True))

        assert transformer.cache_manager.entry == entry

    def test_no_open_document(self, config, fresh_transport, transport):
        transformer = Transformer(config, FakeSource(active=None), fresh_transport, transport)

        with pytest.raises(ContextUnavailable):
            transformer.generate(GenerationRequest(SourceScope.ACTIVE_DOCUMENT, "explain", "m1"))

        assert fresh_transport.generate_calls == []


class TestRepositoryWithoutCache:
    """Tests for uncached repository requests."""

    def test_sends_fresh_request(self, transformer, fresh_transport, transport, config):
        text = transformer.generate(repo_request(use_cache=False))

        assert text == "fresh answer"
        model_request, _ = fresh_transport.generate_calls[0]
        assert isinstance(model_request, FreshRequest)
        assert model_request.system_instruction == config.system_prompt
        assert model_request.user_parts[0].startswith("<context>\n<files>\n")
        assert transport.cache_calls == []

    def test_zero_files_fails_before_network(self, config, fresh_transport, transport):
        """Test no matching files fails with ContextUnavailable and no network call."""
        transformer = Transformer(config, FakeSource(files={"README.md": "#"}), fresh_transport, transport)

        with pytest.raises(ContextUnavailable):
            transformer.generate(repo_request(use_cache=False))
        with pytest.raises(ContextUnavailable):
            transformer.generate(repo_request(use_cache=True))

        assert fresh_transport.generate_calls == []
        assert transport.generate_calls == []
        assert transport.cache_calls == []


class TestRepositoryWithCache:
    """Tests for cached repository requests."""

    def test_first_request_creates_cache(self, transformer, transport, fresh_transport, config):
        transformer.generate(repo_request())

        assert len(transport.cache_calls) == 1
        assert transport.cache_calls[0]["system_instruction"] == config.system_prompt
        entry = transformer.cache_manager.entry
        assert entry is not None and entry.model_id == "m1"
        model_request, _ = transport.generate_calls[0]
        assert model_request == CachedRequest(cached_content=entry.id, user_parts=("migrate",))
        assert fresh_transport.generate_calls == []

    def test_second_request_reuses_cache(self, transformer, transport, source, clock):
        """Test a follow-up request before TTL does not create a cache again."""
        transformer.generate(repo_request())
        source.find_calls.clear()
        clock.advance(60)

        transformer.generate(repo_request(prompt="now the tests"))

        assert len(transport.cache_calls) == 1
        assert source.find_calls == []
        model_request, _ = transport.generate_calls[1]
        assert isinstance(model_request, CachedRequest)
        assert model_request.user_parts == ("now the tests",)

    def test_cached_request_carries_no_context(self, transformer, transport):
        transformer.generate(repo_request())
        transformer.generate(repo_request())

        for model_request, _ in transport.generate_calls:
            assert isinstance(model_request, CachedRequest)
            assert all("<context>" not in part for part in model_request.user_parts)

    def test_expired_cache_recreated(self, transformer, transport, clock, config):
        transformer.generate(repo_request())
        clock.advance(config.cache_ttl_seconds)

        transformer.generate(repo_request())

        assert len(transport.cache_calls) == 2
        assert transformer.cache_manager.entry.created_at == clock.now

    def test_model_switch_creates_new_cache(self, transformer, transport):
        transformer.generate(repo_request(model_id="model-a"))

        transformer.generate(repo_request(model_id="model-b"))

        assert [call["model_id"] for call in transport.cache_calls] == ["model-a", "model-b"]
        assert transformer.cache_manager.entry.model_id == "model-b"

    def test_cache_reused_across_scopes(self, transformer, transport):
        """Test an active-document request in between does not reset the cache."""
        transformer.generate(repo_request())
        transformer.generate(GenerationRequest(SourceScope.ACTIVE_DOCUMENT, "explain", "m1", use_cache=True))
        transformer.generate(repo_request())

        assert len(transport.cache_calls) == 1

    def test_cache_creation_failure_no_fallback(self, transformer, transport, fresh_transport):
        """Test a failed cache creation surfaces without an uncached fallback."""
        transport.cache_error = TransportError("permission denied", status_code=403)

        with pytest.raises(CacheCreationError):
            transformer.generate(repo_request())

        assert fresh_transport.generate_calls == []
        assert transport.generate_calls == []
        assert transformer.cache_manager.entry is None

    def test_concurrent_requests_create_one_cache(self, transformer, transport):
        """Test concurrent first requests for one model create a single cache."""
        errors = []

        def run():
            try:
                transformer.generate(repo_request())
            except Exception as e:  # pragma: no cover - surfaced by the assert below
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(transport.cache_calls) == 1
        assert len(transport.generate_calls) == 5


class TestIncompleteGeneration:
    """Tests for non-STOP finish reasons."""

    def test_safety_returns_partial_text(self, transformer, fresh_transport, warnings):
        """Test SAFETY returns partial text and reports the condition."""
        fresh_transport.envelope = make_envelope("partial text", finish_reason="SAFETY")

        text = transformer.generate(repo_request(use_cache=False))

        assert text == "partial text"
        assert len(warnings) == 1
        assert isinstance(warnings[0], IncompleteGenerationError)
        assert warnings[0].reason == "SAFETY"

    def test_incomplete_without_text_raises(self, transformer, fresh_transport, warnings):
        fresh_transport.envelope = make_envelope("", finish_reason="MAX_TOKENS")

        with pytest.raises(IncompleteGenerationError):
            transformer.generate(repo_request(use_cache=False))

        assert warnings == []

    def test_empty_candidates_raise(self, transformer, fresh_transport):
        fresh_transport.envelope = {"candidates": []}

        with pytest.raises(EmptyCandidateError):
            transformer.generate(repo_request(use_cache=False))


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_during_generation(self, transformer, fresh_transport):
        """Test the in-flight result is discarded once cancelled."""
        fresh_transport.on_generate = transformer.cancel

        with pytest.raises(Cancelled):
            transformer.generate(repo_request(use_cache=False))

    def test_cancel_during_cache_creation_keeps_slot(self, transformer, transport):
        """Test cancellation after cache creation leaves the cache slot empty."""
        original = transport.create_cached_content

        def create_then_cancel(**kwargs):
            result = original(**kwargs)
            transformer.cancel()
            return result

        transport.create_cached_content = create_then_cancel

        with pytest.raises(Cancelled):
            transformer.generate(repo_request())

        assert transformer.cache_manager.entry is None
        assert transport.generate_calls == []

    def test_cancel_does_not_affect_later_requests(self, transformer, fresh_transport):
        transformer.cancel()

        assert transformer.generate(repo_request(use_cache=False)) == "fresh answer"

    def test_cancel_during_incomplete_generation(self, transformer, fresh_transport, warnings):
        fresh_transport.envelope = make_envelope("partial", finish_reason="SAFETY")
        fresh_transport.on_generate = transformer.cancel

        with pytest.raises(Cancelled):
            transformer.generate(repo_request(use_cache=False))

        assert warnings == []
