"""Unit tests for configuration, logging and session wiring."""
import io
import logging

import pytest
from pydantic import ValidationError
from rich.console import Console

from localchat.config import (
    DEFAULT_MODELS,
    ChatSettings,
    ModelCatalogEntry,
    build_catalog,
    load_settings,
)
from localchat.conversation import greeting_text
from localchat.engine import EchoEngine, OpenAICompatibleEngine
from localchat.errors import EngineConstructionError, StreamError, describe_error
from localchat.lifecycle import Ready
from localchat.log import LOGGER_NAME, configure_logging, parse_level
from localchat.session import create_session

ENV_NAMES = [
    "LOCALCHAT_ENGINE",
    "LOCALCHAT_BASE_URL",
    "LOCALCHAT_API_KEY",
    "LOCALCHAT_MODELS",
    "LOCALCHAT_DEFAULT_MODEL",
    "LOCALCHAT_TEMPERATURE",
    "LOCALCHAT_MAX_TOKENS",
    "LOCALCHAT_STREAM_FLUSH",
    "LOCALCHAT_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Clear LOCALCHAT_* variables and run from an empty directory.

    Each variable is set before it is deleted so monkeypatch restores it,
    including values written by load_dotenv.
    """
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def restore_logger():
    """Remove handlers added to the localchat logger during a test."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)


class TestCatalog:
    """Tests for the model catalog."""

    def test_display_name_strips_suffix(self):
        entry = ModelCatalogEntry(id="Llama-3.1-8B-Instruct-q4f32_1-MLC")
        assert entry.display_name == "Llama-3.1-8B-Instruct-q4f32_1"

    def test_display_name_without_suffix(self):
        assert ModelCatalogEntry(id="M1").display_name == "M1"

    def test_build_catalog_drops_blanks_and_duplicates(self):
        catalog = build_catalog(["M1", " M2 ", "", "M1", "M3"])
        assert [entry.id for entry in catalog] == ["M1", "M2", "M3"]

    def test_default_catalog(self):
        assert len(DEFAULT_MODELS) == 5
        assert all(model.endswith("-MLC") for model in DEFAULT_MODELS)


class TestChatSettings:
    """Tests for ChatSettings."""

    def test_defaults(self):
        settings = ChatSettings()

        assert settings.engine_backend == "openai"
        assert settings.temperature == 0.7
        assert settings.max_tokens is None
        assert settings.default_model == DEFAULT_MODELS[0]
        assert [entry.id for entry in settings.catalog] == DEFAULT_MODELS

    def test_default_model_must_be_in_catalog(self):
        with pytest.raises(ValidationError, match="not in models"):
            ChatSettings(models=["M1"], default_model="M2")

    def test_empty_catalog_rejected(self):
        with pytest.raises(ValidationError):
            ChatSettings(models=[])

    @pytest.mark.parametrize("temperature", [-0.1, 2.5])
    def test_temperature_range(self, temperature):
        with pytest.raises(ValidationError):
            ChatSettings(temperature=temperature)

    def test_engine_config(self):
        settings = ChatSettings(base_url="http://gpu-box:8000/v1", api_key="secret")
        assert settings.engine_config() == {"base_url": "http://gpu-box:8000/v1", "api_key": "secret"}
        assert ChatSettings(engine_backend="echo").engine_config() == {}


class TestLoadSettings:
    """Tests for load_settings."""

    def test_without_environment(self, clean_env):
        settings = load_settings()
        assert settings == ChatSettings()

    def test_reads_environment(self, clean_env):
        clean_env.setenv("LOCALCHAT_ENGINE", "echo")
        clean_env.setenv("LOCALCHAT_MODELS", "M1, M2,,M3")
        clean_env.setenv("LOCALCHAT_DEFAULT_MODEL", "M2")
        clean_env.setenv("LOCALCHAT_TEMPERATURE", "0.2")
        clean_env.setenv("LOCALCHAT_MAX_TOKENS", "256")
        clean_env.setenv("LOCALCHAT_STREAM_FLUSH", "16")

        settings = load_settings()

        assert settings.engine_backend == "echo"
        assert settings.models == ["M1", "M2", "M3"]
        assert settings.default_model == "M2"
        assert settings.temperature == 0.2
        assert settings.max_tokens == 256
        assert settings.stream_flush_threshold == 16

    def test_reads_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / "chat.env"
        env_file.write_text("LOCALCHAT_BASE_URL=http://127.0.0.1:11434/v1\n")

        settings = load_settings(str(env_file))

        assert settings.base_url == "http://127.0.0.1:11434/v1"

    def test_invalid_value_rejected(self, clean_env):
        clean_env.setenv("LOCALCHAT_TEMPERATURE", "hot")

        with pytest.raises(ValidationError):
            load_settings()


class TestErrors:
    """Tests for error descriptions."""

    def test_describe_error(self):
        assert describe_error(RuntimeError("  OOM ")) == "OOM"
        assert describe_error(MemoryError()) == "MemoryError"

    def test_wrapped_errors_keep_cause(self):
        cause = RuntimeError("OOM")

        load_error = EngineConstructionError("M1", cause)
        stream_error = StreamError("abc", cause)

        assert load_error.cause is cause
        assert str(load_error) == "Failed to load M1: OOM"
        assert stream_error.message_id == "abc"
        assert "OOM" in str(stream_error)


class TestLogging:
    """Tests for logging setup."""

    @pytest.mark.parametrize("name, level", [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        (" warning ", logging.WARNING),
        ("error", logging.ERROR),
        ("nonsense", logging.DEBUG),
        (logging.ERROR, logging.ERROR),
    ])
    def test_parse_level(self, name, level):
        assert parse_level(name) == level

    def test_configure_logging_writes_to_console(self, restore_logger):
        output = io.StringIO()
        logger = configure_logging("info", console=Console(file=output, width=120))

        logging.getLogger("localchat.lifecycle.manager").info("Loading model M1")
        logging.getLogger("localchat.session").debug("hidden")

        assert logger.level == logging.INFO
        assert "Loading model M1" in output.getvalue()
        assert "hidden" not in output.getvalue()

    def test_configure_logging_replaces_previous_handler(self, restore_logger):
        before = len(restore_logger.handlers)

        configure_logging("debug", console=Console(file=io.StringIO()))
        configure_logging("error", console=Console(file=io.StringIO()))

        assert len(restore_logger.handlers) == before + 1
        assert restore_logger.level == logging.ERROR


class TestCreateSession:
    """Tests for create_session."""

    def test_builds_configured_engine(self):
        settings = ChatSettings(base_url="http://localhost:1234/v1", models=["M1"])

        session = create_session(settings, setup_logging=False)

        assert isinstance(session.manager.engine, OpenAICompatibleEngine)
        assert session.manager.engine.base_url == "http://localhost:1234/v1"
        assert [entry.id for entry in session.catalog] == ["M1"]

    def test_unsupported_backend(self):
        with pytest.raises(ValueError):
            create_session(ChatSettings(engine_backend="webgpu"), setup_logging=False)

    @pytest.mark.asyncio
    async def test_echo_session_end_to_end(self):
        settings = ChatSettings(engine_backend="echo", models=["M1", "M2"], temperature=0.3)
        session = create_session(settings, setup_logging=False)

        await session.start()
        assert isinstance(session.manager.state, Ready)
        assert session.store.messages[0].content == greeting_text("M1")

        assert await session.send_message("hello there") is True
        assert session.store.messages[-1].content == "You said: hello there"

        await session.switch_model("M2")
        assert session.manager.model_id == "M2"
        assert len(session.store) == 1

        await session.aclose()

    @pytest.mark.asyncio
    async def test_explicit_engine_overrides_settings(self, restore_logger):
        engine = EchoEngine(known_models=["M1"])
        session = create_session(ChatSettings(models=["M1"]), engine=engine)

        await session.start()

        assert session.manager.engine is engine
        assert session.manager.is_ready
        await session.aclose()
