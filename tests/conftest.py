"""Shared fixtures: in-memory workspace, scripted backend, controllable clock."""
from __future__ import annotations

from typing import Optional

import pytest

from transformer.base import Document, GenerationSettings, ModelRequest
from transformer.config import TransformerConfig


def make_envelope(
    text: str = "Hello",
    finish_reason: str = "STOP",
    total_tokens: Optional[int] = 42,
    finish_message: Optional[str] = None,
) -> dict:
    candidate = {
        "content": {"role": "model", "parts": [{"text": text}]},
        "finishReason": finish_reason,
    }
    if finish_message is not None:
        candidate["finishMessage"] = finish_message
    envelope = {"candidates": [candidate]}
    if total_tokens is not None:
        envelope["usageMetadata"] = {"totalTokenCount": total_tokens}
    return envelope


class FakeSource:
    """ContextSource backed by a dict of path -> text."""

    def __init__(self, files: Optional[dict] = None, active: Optional[Document] = None):
        self.files = files or {}
        self.active = active
        self.find_calls: list[str] = []

    def get_active_document(self) -> Optional[Document]:
        return self.active

    def find_files(self, pattern: str) -> list[Document]:
        self.find_calls.append(pattern)
        suffix = pattern.replace("**/", "").replace("*", "")
        return [
            Document(path=path, text=text)
            for path, text in self.files.items()
            if suffix in path
        ]


class FakeTransport:
    """Records requests and replays scripted generate/cache responses."""

    def __init__(self, envelope: Optional[dict] = None, cache_name: str = "projects/p/locations/l/cachedContents/1"):
        self.envelope = envelope if envelope is not None else make_envelope()
        self.cache_name = cache_name
        self.generate_calls: list[tuple[ModelRequest, str]] = []
        self.cache_calls: list[dict] = []
        self.generate_error: Optional[Exception] = None
        self.cache_error: Optional[Exception] = None
        self.on_generate = None

    def generate_content(
        self,
        model_request: ModelRequest,
        model_id: str,
        settings: GenerationSettings,
        timeout: float,
    ) -> Optional[dict]:
        self.generate_calls.append((model_request, model_id))
        if self.on_generate is not None:
            self.on_generate()
        if self.generate_error is not None:
            raise self.generate_error
        return self.envelope

    def create_cached_content(
        self,
        model_id: str,
        system_instruction: str,
        contents: list[dict],
        ttl_seconds: int,
        timeout: float,
    ) -> Optional[dict]:
        self.cache_calls.append(
            {
                "model_id": model_id,
                "system_instruction": system_instruction,
                "contents": contents,
                "ttl_seconds": ttl_seconds,
                "timeout": timeout,
            }
        )
        if self.cache_error is not None:
            raise self.cache_error
        name = f"{self.cache_name}-{len(self.cache_calls)}"
        return {"name": name}


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config() -> TransformerConfig:
    return TransformerConfig(project_id="test-project", include_patterns=["**/*.cs"])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource(
        files={"src/a.cs": "class A{}", "src/b.cs": "class B{}"},
        active=Document(path="src/a.cs", text="class A{}"),
    )
