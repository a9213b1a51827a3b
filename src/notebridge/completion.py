"""OpenAI-compatible chat completion client.

One `complete()` call performs one request/response cycle and reduces it to a
`CompletionOutcome`. Transport errors, non-2xx statuses, unparsable bodies,
and empty completions all become `CompletionFailure`; only cancellation
escapes.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from logging import getLogger
from typing import Any, Final

import httpx

from notebridge.config import BotConfig, ConfigProvider
from notebridge.entities import (
    CompletionFailure,
    CompletionOutcome,
    CompletionSuccess,
)

logger = getLogger(__name__)

RAW_EXCERPT_LIMIT: Final[int] = 200

_PLACEHOLDER_RE: Final[re.Pattern[str]] = re.compile(r"\{(original_content|message)\}")


def render_prompt(template: str, *, original_content: str, message: str) -> str:
    """Substitute `{original_content}` and `{message}` into `template`.

    Single pass: placeholder-looking text inside the substituted values is left
    as-is. Other braces in the template are not interpreted.
    """

    values = {"original_content": original_content, "message": message}
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)


def build_request_body(config: BotConfig, prompt: str) -> dict[str, Any]:
    return {
        "model": config.openai_model,
        "messages": [
            {"role": "system", "content": config.system_prompt},
            {"role": "user", "content": prompt},
        ],
        "temperature": config.openai_temperature,
        "max_tokens": config.openai_max_tokens,
    }


def parse_completion_response(status_code: int, body: str) -> CompletionOutcome:
    """Classify a raw completion HTTP response."""

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return CompletionFailure(
            reason=f"Can not parse response: {body[:RAW_EXCERPT_LIMIT]}"
        )
    if not isinstance(data, dict):
        data = {}

    if not 200 <= status_code < 300:
        return CompletionFailure(reason=_error_message(data) or f"HTTP {status_code}")

    content = _first_choice_content(data)
    if content is None:
        return CompletionFailure(reason="Empty API response")
    return CompletionSuccess(content=content.strip())


def _error_message(data: dict[str, Any]) -> str | None:
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    message = data.get("message")
    if isinstance(message, str) and message:
        return message
    return None


def _first_choice_content(data: dict[str, Any]) -> str | None:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str) or not content:
        return None
    return content


@dataclass(slots=True)
class CompletionClient:
    """Completion endpoint wrapper.

    Config is fetched from `config_provider` on every call so edits apply to
    the next message.
    """

    config_provider: ConfigProvider
    client: httpx.AsyncClient | None = None

    async def complete(self, original_content: str, message: str) -> CompletionOutcome:
        config = self.config_provider()
        if not config.openai_api_key:
            return CompletionFailure(reason="API key is not set")

        prompt = render_prompt(
            config.prompt_template,
            original_content=original_content,
            message=message,
        )
        url = f"{config.openai_host}/v1/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.openai_api_key}",
        }
        body = build_request_body(config, prompt)
        timeout = httpx.Timeout(config.openai_timeout_seconds, connect=10.0)

        try:
            if self.client is not None:
                response = await self.client.post(
                    url, headers=headers, json=body, timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(url, headers=headers, json=body)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.warning("completion request failed: %s: %s", type(e).__name__, e)
            return CompletionFailure(reason=str(e) or type(e).__name__)

        outcome = parse_completion_response(response.status_code, response.text)
        if isinstance(outcome, CompletionFailure):
            logger.info(
                "completion rejected: status=%s reason=%s",
                response.status_code,
                outcome.reason,
            )
        return outcome
