"""Telegram Bot API client used by the long-poll loop.

`get_updates` never raises for expected failures: every response is reduced to
a `PollBatch` or a `PollFailure` at this boundary. Cancellation (anyio cancel
scopes) is not a failure and propagates normally.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from logging import getLogger
from typing import Any, Final

import httpx

from notebridge.entities import PollBatch, PollFailure, PollOutcome, Update

logger = getLogger(__name__)

TELEGRAM_API_BASE: Final[str] = "https://api.telegram.org"
CONFLICT_ERROR_CODE: Final[int] = 409


class TelegramBotApiError(RuntimeError):
    """Raised when the client is constructed without a usable token."""


@dataclass(slots=True)
class TelegramBotApi:
    """Minimal Telegram Bot API client for `getUpdates` polling.

    `client` is optional; when omitted each call opens a short-lived
    `httpx.AsyncClient`.
    """

    token: str
    api_base: str = TELEGRAM_API_BASE
    client: httpx.AsyncClient | None = None

    def __post_init__(self) -> None:
        if not self.token.strip():
            raise TelegramBotApiError("Telegram bot token must not be empty")

    def _method_url(self, method: str) -> str:
        # Never log/print this URL; it embeds the bot token.
        return f"{self.api_base.rstrip('/')}/bot{self.token}/{method}"

    async def get_updates(self, *, offset: int, timeout_seconds: int) -> PollOutcome:
        """Long-poll `getUpdates` and classify the result."""

        params: dict[str, Any] = {"offset": offset, "timeout": timeout_seconds}
        # Client timeout should exceed server long-poll timeout.
        timeout = httpx.Timeout(max(5, timeout_seconds + 15), connect=10.0)

        try:
            if self.client is not None:
                response = await self.client.get(
                    self._method_url("getUpdates"), params=params, timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(
                        self._method_url("getUpdates"), params=params
                    )
        except httpx.InvalidURL:
            # Raised while building the request (bad base URL or token).
            return PollFailure(kind="api", description="invalid Telegram API URL")
        except httpx.HTTPError as e:
            # `str(e)` may embed the request URL (and thus the token).
            return PollFailure(kind="network", description=type(e).__name__)
        except OSError as e:
            return PollFailure(kind="network", description=f"{type(e).__name__}: {e}")

        return parse_get_updates_response(response.status_code, response.text)


def parse_get_updates_response(status_code: int, body: str) -> PollOutcome:
    """Reduce a raw `getUpdates` HTTP response to a `PollOutcome`.

    Telegram sends JSON error bodies with non-2xx statuses (e.g. 409), so the
    body is classified first and the status only matters when it is not JSON.
    """

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return PollFailure(
            kind="malformed",
            description=f"HTTP {status_code}: invalid JSON",
            error_code=status_code,
        )

    if not isinstance(payload, dict):
        return PollFailure(
            kind="malformed", description="response is not a JSON object"
        )

    if payload.get("ok") is not True:
        error_code = payload.get("error_code")
        if not isinstance(error_code, int):
            error_code = None
        desc = payload.get("description")
        description = desc if isinstance(desc, str) and desc else f"HTTP {status_code}"
        if error_code == CONFLICT_ERROR_CODE:
            return PollFailure(
                kind="conflict", description=description, error_code=error_code
            )
        return PollFailure(kind="api", description=description, error_code=error_code)

    result = payload.get("result", [])
    if not isinstance(result, list):
        return PollFailure(kind="malformed", description="missing result list")

    updates: list[Update] = []
    for item in result:
        if not isinstance(item, dict):
            continue
        update = Update.from_payload(item)
        if update is None:
            logger.warning("dropping update without integer update_id")
            continue
        updates.append(update)
    return PollBatch(updates=tuple(updates))
