"""Configuration for the transformer engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from .base import GenerationSettings
from .errors import ConfigurationError
from .prompts import DEFAULT_SYSTEM_PROMPT

DEFAULT_LOCATION = "us-central1"
DEFAULT_MODEL_ID = "gemini-1.5-pro-preview-0514"
DEFAULT_INCLUDE_PATTERNS = ("**/*.cs*",)

# Repository-scale requests routinely take 30+ seconds on Vertex.
MIN_TIMEOUT_SECONDS = 30
MAX_TIMEOUT_SECONDS = 120
DEFAULT_TIMEOUT_SECONDS = 60

DEFAULT_CACHE_TTL_SECONDS = 3600

TRANSPORTS = frozenset({"rest", "genai"})
DEFAULT_TRANSPORT = "rest"


@dataclass
class TransformerConfig:
    """Configuration for a Transformer instance.

    Attributes:
        project_id: Google Cloud project hosting the Vertex AI endpoint.
        location: Vertex AI region.
        model_id: Default Gemini model id.
        include_patterns: Glob patterns gathered for repository-scope requests.
        max_output_tokens: Maximum tokens in the response.
        temperature: Sampling temperature.
        top_p: Nucleus sampling parameter.
        timeout_seconds: Per-call timeout for generate and cache-create calls.
        cache_ttl_seconds: Lifetime of a server-side context cache.
        transport: Transport used for uncached requests ("rest" or "genai").
        system_prompt: System instruction sent with every fresh request.
    """

    project_id: str
    location: str = DEFAULT_LOCATION
    model_id: str = DEFAULT_MODEL_ID
    include_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))
    max_output_tokens: int = 8192
    temperature: float = 0.2
    top_p: float = 1.0
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    transport: str = DEFAULT_TRANSPORT
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check field values.

        Raises:
            ConfigurationError: If any field is out of range or missing.
        """
        if not self.project_id:
            raise ConfigurationError("Missing configuration variable: project_id")
        if not self.location:
            raise ConfigurationError("Missing configuration variable: location")
        if not MIN_TIMEOUT_SECONDS <= self.timeout_seconds <= MAX_TIMEOUT_SECONDS:
            raise ConfigurationError(
                f"timeout_seconds must be between {MIN_TIMEOUT_SECONDS} and "
                f"{MAX_TIMEOUT_SECONDS}, got {self.timeout_seconds}"
            )
        if self.cache_ttl_seconds <= 0:
            raise ConfigurationError(
                f"cache_ttl_seconds must be positive, got {self.cache_ttl_seconds}"
            )
        if self.max_output_tokens <= 0:
            raise ConfigurationError(
                f"max_output_tokens must be positive, got {self.max_output_tokens}"
            )
        for pattern in self.include_patterns:
            if not pattern or not pattern.strip():
                raise ConfigurationError("include_patterns must not contain empty patterns")
            if Path(pattern).is_absolute():
                raise ConfigurationError(
                    f"include_patterns must be relative to the workspace, got '{pattern}'"
                )
        if self.transport not in TRANSPORTS:
            raise ConfigurationError(
                f"Unknown transport: '{self.transport}'. "
                f"Supported transports: {', '.join(sorted(TRANSPORTS))}"
            )

    @property
    def generation_settings(self) -> GenerationSettings:
        return GenerationSettings(
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
        )

    @classmethod
    def from_env(cls) -> TransformerConfig:
        """Create config from environment variables."""
        project_id = os.getenv("VERTEX_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT")
        if not project_id:
            raise ConfigurationError(
                "VERTEX_PROJECT_ID or GOOGLE_CLOUD_PROJECT environment variable is required"
            )

        patterns = os.getenv("TRANSFORMER_INCLUDE_PATTERNS")
        include_patterns = (
            _split_patterns(patterns) if patterns is not None else list(DEFAULT_INCLUDE_PATTERNS)
        )

        try:
            return cls(
                project_id=project_id,
                location=os.getenv("VERTEX_LOCATION", DEFAULT_LOCATION),
                model_id=os.getenv("VERTEX_MODEL_ID", DEFAULT_MODEL_ID),
                include_patterns=include_patterns,
                timeout_seconds=float(os.getenv("TRANSFORMER_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)),
                cache_ttl_seconds=int(os.getenv("TRANSFORMER_CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS)),
                transport=os.getenv("TRANSFORMER_TRANSPORT", DEFAULT_TRANSPORT).lower().strip(),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}") from e

    @classmethod
    def from_yaml(cls, yaml_path: Path, project_id: Optional[str] = None) -> TransformerConfig:
        """Create config from a YAML file.

        The YAML file should contain keys matching TransformerConfig fields.
        ``project_id`` falls back to the argument, then to the environment.

        Args:
            yaml_path: Path to the YAML configuration file.
            project_id: Project id used when the file does not set one.

        Returns:
            TransformerConfig with values from the file.

        Raises:
            ConfigurationError: If the file is missing or contains invalid configuration.
        """
        import yaml

        if not yaml_path.exists():
            raise ConfigurationError(f"Configuration file not found: {yaml_path}")

        with yaml_path.open("r", encoding="utf-8") as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {yaml_path}: {e}") from e

        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"Expected a mapping in {yaml_path}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(yaml_config) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys in {yaml_path}: {', '.join(unknown)}"
            )

        yaml_config.setdefault(
            "project_id",
            project_id or os.getenv("VERTEX_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT"),
        )
        if isinstance(yaml_config.get("include_patterns"), str):
            yaml_config["include_patterns"] = _split_patterns(yaml_config["include_patterns"])

        try:
            return cls(**yaml_config)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration in {yaml_path}: {e}") from e


def _split_patterns(value: str) -> list[str]:
    return [pattern.strip() for pattern in value.split(",") if pattern.strip()]
