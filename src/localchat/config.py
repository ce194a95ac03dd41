"""Configuration for localchat.

Centralizes the model catalog and the settings a session is built from.
Settings come from ``LOCALCHAT_*`` environment variables, optionally
loaded from a ``.env`` file.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

DEFAULT_MODELS = [
    "Llama-3.1-8B-Instruct-q4f32_1-MLC",
    "Llama-3.2-3B-Instruct-q4f32_1-MLC",
    "Phi-3.5-mini-instruct-q4f32_1-MLC",
    "Qwen2.5-7B-Instruct-q4f32_1-MLC",
    "gemma-2-2b-it-q4f32_1-MLC",
]

DEFAULT_BASE_URL = "http://localhost:8080/v1"
DEFAULT_TEMPERATURE = 0.7

# Packaging suffix hidden from display names
MODEL_ID_SUFFIX = "-MLC"


class ModelCatalogEntry(BaseModel):
    """A model the user can pick."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Model identifier passed to the engine")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_name(self) -> str:
        """Identifier without the packaging suffix."""
        return self.id.replace(MODEL_ID_SUFFIX, "")


def build_catalog(model_ids: list[str]) -> list[ModelCatalogEntry]:
    """Build catalog entries, dropping blanks and duplicates but keeping order."""
    seen: set[str] = set()
    entries = []
    for model_id in model_ids:
        model_id = model_id.strip()
        if not model_id or model_id in seen:
            continue
        seen.add(model_id)
        entries.append(ModelCatalogEntry(id=model_id))
    return entries


class ChatSettings(BaseModel):
    """Everything needed to assemble a chat session."""

    engine_backend: str = Field(default="openai", description="Inference engine backend")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="OpenAI-compatible server URL")
    api_key: str = Field(default="not-needed", description="API key for the server")
    models: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MODELS),
        min_length=1,
        description="Catalog of model ids"
    )
    default_model: str | None = Field(
        default=None,
        description="Model loaded at startup (default: first catalog entry)"
    )
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)
    stream_flush_threshold: int = Field(
        default=0,
        ge=0,
        description="Characters buffered before the message is updated (0 = every increment)"
    )
    log_level: str = Field(default="warning", description="debug, info, warning or error")

    @model_validator(mode="after")
    def _check_default_model(self) -> "ChatSettings":
        if self.default_model is None:
            self.default_model = self.models[0]
        elif self.default_model not in self.models:
            raise ValueError(f"default_model {self.default_model!r} is not in models")
        return self

    @property
    def catalog(self) -> list[ModelCatalogEntry]:
        return build_catalog(self.models)

    def engine_config(self) -> dict[str, object]:
        """Keyword arguments for ``create_inference_engine``."""
        if self.engine_backend.lower() == "echo":
            return {}
        return {"base_url": self.base_url, "api_key": self.api_key}


def load_settings(env_file: str | None = None) -> ChatSettings:
    """Create settings from environment variables.

    Environment variables:
        LOCALCHAT_ENGINE: Engine backend (openai, echo; default: openai)
        LOCALCHAT_BASE_URL: Server URL (default: http://localhost:8080/v1)
        LOCALCHAT_API_KEY: API key (default: not-needed)
        LOCALCHAT_MODELS: Comma separated model ids (default: built-in catalog)
        LOCALCHAT_DEFAULT_MODEL: Model loaded at startup (default: first model)
        LOCALCHAT_TEMPERATURE: Sampling temperature (default: 0.7)
        LOCALCHAT_MAX_TOKENS: Generation limit (default: none)
        LOCALCHAT_STREAM_FLUSH: Stream batching threshold in characters (default: 0)
        LOCALCHAT_LOG_LEVEL: Log level (default: warning)

    Raises:
        pydantic.ValidationError: If a value is out of range
    """
    load_dotenv(env_file)

    values: dict[str, object] = {}
    env_map = {
        "LOCALCHAT_ENGINE": "engine_backend",
        "LOCALCHAT_BASE_URL": "base_url",
        "LOCALCHAT_API_KEY": "api_key",
        "LOCALCHAT_DEFAULT_MODEL": "default_model",
        "LOCALCHAT_TEMPERATURE": "temperature",
        "LOCALCHAT_MAX_TOKENS": "max_tokens",
        "LOCALCHAT_STREAM_FLUSH": "stream_flush_threshold",
        "LOCALCHAT_LOG_LEVEL": "log_level",
    }
    for env_name, field_name in env_map.items():
        value = os.getenv(env_name)
        if value:
            values[field_name] = value

    models = os.getenv("LOCALCHAT_MODELS")
    if models:
        values["models"] = [m.strip() for m in models.split(",") if m.strip()]

    return ChatSettings(**values)
