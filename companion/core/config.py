from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModelProfileSettings(BaseModel):
    model: str = Field("llama3.1", min_length=1, description="Ollama model served for this profile.")
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(4096, ge=64, description="Upper bound passed to Ollama as num_predict.")


class LLMSettings(BaseModel):
    host: str = Field("http://localhost", description="Base URL where Ollama is running.")
    port: int = Field(11434, ge=1, le=65535)
    timeout_seconds: float = Field(30.0, gt=0.0, description="Per-call bound on backend requests.")
    fast: ModelProfileSettings = Field(
        default_factory=lambda: ModelProfileSettings(temperature=0.3, max_output_tokens=1024)
    )  # type: ignore[arg-type]
    precise: ModelProfileSettings = Field(
        default_factory=lambda: ModelProfileSettings(temperature=0.7, max_output_tokens=4096)
    )  # type: ignore[arg-type]
    creative: ModelProfileSettings = Field(
        default_factory=lambda: ModelProfileSettings(temperature=0.9, max_output_tokens=4096)
    )  # type: ignore[arg-type]

    def profile(self, name: str) -> ModelProfileSettings:
        profile = getattr(self, name, None)
        if not isinstance(profile, ModelProfileSettings):
            raise KeyError(f"Unknown model profile '{name}'")
        return profile


class RoutingSettings(BaseModel):
    heuristics_enabled: bool = Field(True, description="Try keyword heuristics before calling the router model.")
    heuristic_confidence: float = Field(0.9, ge=0.8, le=1.0)
    fallback_confidence: float = Field(0.3, ge=0.0, le=1.0)
    classification_language: str = Field("en", min_length=2)


class CacheSettings(BaseModel):
    enabled: bool = Field(True)
    ttl_seconds: float = Field(3600.0, gt=0.0)
    max_size: int = Field(100, ge=1)
    enabled_agents: list[str] = Field(default_factory=lambda: ["general", "learning"])


class ToolSettings(BaseModel):
    invocation_timeout_seconds: float = Field(15.0, gt=0.0)
    circuit_break_failures: int = Field(5, ge=1, description="Failures before a tool's circuit opens.")
    circuit_break_reset_seconds: float = Field(30.0, ge=0.0)


class AgentSettings(BaseModel):
    default_language: str = Field("en", min_length=2)
    history_limit: int = Field(10, ge=0, description="Most recent history entries forwarded to agents.")
    pending_task_preview: int = Field(5, ge=0)


class ObservabilitySettings(BaseModel):
    prometheus_enabled: bool = Field(True)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    max_response_time_samples: int = Field(100, ge=1)
    max_error_samples: int = Field(50, ge=1)


class Settings(BaseSettings):
    environment: Literal["local", "test", "production"] = Field("local")
    api_v1_prefix: str = Field("/api/v1")

    llm: LLMSettings = Field(default_factory=LLMSettings)  # type: ignore[arg-type]
    routing: RoutingSettings = Field(default_factory=RoutingSettings)  # type: ignore[arg-type]
    cache: CacheSettings = Field(default_factory=CacheSettings)  # type: ignore[arg-type]
    tools: ToolSettings = Field(default_factory=ToolSettings)  # type: ignore[arg-type]
    agents: AgentSettings = Field(default_factory=AgentSettings)  # type: ignore[arg-type]
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)  # type: ignore[arg-type]

    frontend_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Origins permitted to access the API via CORS.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def _get_cached_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Return settings, using cached defaults unless overrides are provided."""
    if overrides:
        return Settings(**dict(overrides))
    return _get_cached_settings()
