from pathlib import Path

import pytest
from pydantic import ValidationError

from notebridge.config import (
    DEFAULT_PROMPT_TEMPLATE,
    BotConfig,
    env_config_provider,
    static_config_provider,
)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    for key in ("NOTEBRIDGE_BOT_TOKEN", "NOTEBRIDGE_SAVE_FOLDER", "NOTEBRIDGE_OPENAI_HOST"):
        monkeypatch.delenv(key, raising=False)


def test_config_defaults() -> None:
    config = BotConfig()

    assert config.bot_token == ""
    assert config.save_folder == "Telegram"
    assert config.openai_host == "https://api.openai.com"
    assert config.openai_model == "gpt-4.1-mini"
    assert config.openai_temperature == 0.7
    assert config.openai_max_tokens == 4096
    assert config.min_response_length == 100
    assert config.poll_timeout_seconds == 30
    assert "{original_content}" in DEFAULT_PROMPT_TEMPLATE
    assert "{message}" in DEFAULT_PROMPT_TEMPLATE


def test_config_reads_prefixed_env(monkeypatch) -> None:
    monkeypatch.setenv("NOTEBRIDGE_BOT_TOKEN", " 123:abc ")
    monkeypatch.setenv("NOTEBRIDGE_SAVE_FOLDER", "Inbox/Telegram")

    config = BotConfig()

    assert config.bot_token == "123:abc"
    assert config.save_folder == "Inbox/Telegram"


def test_config_strips_trailing_slash_from_hosts() -> None:
    config = BotConfig(
        openai_host="https://llm.example.com/",
        telegram_api_base="http://localhost:8081/",
    )

    assert config.openai_host == "https://llm.example.com"
    assert config.telegram_api_base == "http://localhost:8081"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"openai_temperature": 2.5},
        {"openai_max_tokens": 0},
        {"min_response_length": -1},
        {"poll_timeout_seconds": 0},
    ],
)
def test_config_rejects_out_of_range_values(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        _ = BotConfig(**kwargs)


def test_config_is_frozen() -> None:
    config = BotConfig()

    with pytest.raises(ValidationError):
        config.bot_token = "changed"  # type: ignore[misc]


def test_env_config_provider_rereads_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / "bridge.env"
    env_file.write_text("NOTEBRIDGE_SAVE_FOLDER=First\n", encoding="utf-8")
    provider = env_config_provider(env_file)

    assert provider().save_folder == "First"

    env_file.write_text("NOTEBRIDGE_SAVE_FOLDER=Second\n", encoding="utf-8")

    assert provider().save_folder == "Second"


def test_static_config_provider_returns_same_snapshot() -> None:
    config = BotConfig(bot_token="t")
    provider = static_config_provider(config)

    assert provider() is config
