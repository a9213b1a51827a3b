"""Bridge runtime configuration.

`BotConfig` is an immutable snapshot. Callers never hold one across
operations; they ask a `ConfigProvider` for a fresh snapshot at the start of
each poll iteration or message, so edits to the environment / `.env` file
apply to the next cycle and never mid-flight.
"""

from collections.abc import Callable
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = "You are note-taking helper for personal knowledge base."

DEFAULT_PROMPT_TEMPLATE = """Merge these notes into a well-structured markdown document.
Preserve all information, remove duplicates, organize logically. Follow author's language.

Existing notes:
{original_content}

New notes:
{message}
"""


class BotConfig(BaseSettings):
    """Settings loaded from constructor kwargs and `NOTEBRIDGE_*` environment variables.

    Invariant:
        `openai_host` and `telegram_api_base` never end with `/`.
        Numeric model knobs are range-checked at init time.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTEBRIDGE_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # Telegram
    bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    save_folder: str = "Telegram"
    poll_timeout_seconds: int = Field(default=30, gt=0)

    # Completion API
    openai_api_key: str = ""
    openai_host: str = "https://api.openai.com"
    openai_model: str = "gpt-4.1-mini"
    openai_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    openai_max_tokens: int = Field(default=4096, gt=0)
    openai_timeout_seconds: float = Field(default=120.0, gt=0)

    # Prompts
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE

    # Validation
    min_response_length: int = Field(default=100, ge=0)

    @field_validator("openai_host", "telegram_api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("bot_token", "openai_api_key")
    @classmethod
    def _strip_credentials(cls, value: str) -> str:
        return value.strip()


type ConfigProvider = Callable[[], BotConfig]


def env_config_provider(env_file: Path | None = None) -> ConfigProvider:
    """Return a provider that rebuilds `BotConfig` from the environment on every call."""

    if env_file is None:
        return BotConfig

    def provide() -> BotConfig:
        return BotConfig(_env_file=env_file)  # type: ignore[call-arg]

    return provide


def static_config_provider(config: BotConfig) -> ConfigProvider:
    return lambda: config
