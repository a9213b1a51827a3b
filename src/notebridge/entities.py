"""Shared value types for the bridge pipeline.

Keep these isolated from the API/router/loop wiring so every layer can import
them without creating import cycles.

External calls never raise for expected failures; they return one of the
tagged variants below (`CompletionOutcome`, `PollOutcome`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal


@dataclass(frozen=True, slots=True)
class Update:
    """A single inbound Telegram message reduced to what the router needs."""

    update_id: int
    text: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Update | None:
        """Build an `Update` from a raw `getUpdates` item.

        Returns `None` when `update_id` is missing or not an int. Message
        `text` takes priority over `caption`; empty strings count as absent.
        """

        update_id = payload.get("update_id")
        if not isinstance(update_id, int) or isinstance(update_id, bool):
            return None

        message = payload.get("message")
        text: str | None = None
        if isinstance(message, dict):
            for key in ("text", "caption"):
                value = message.get(key)
                if isinstance(value, str) and value:
                    text = value
                    break
        return cls(update_id=update_id, text=text)


@dataclass(frozen=True, slots=True)
class RoutingDecision:
    file_name: str
    folder: str
    prompt_message: str

    @property
    def target_path(self) -> str:
        return f"{self.folder}/{self.file_name}" if self.folder else self.file_name


@dataclass(frozen=True, slots=True)
class CompletionSuccess:
    content: str
    ok: Literal[True] = True


@dataclass(frozen=True, slots=True)
class CompletionFailure:
    reason: str
    ok: Literal[False] = False


type CompletionOutcome = CompletionSuccess | CompletionFailure


type PollFailureKind = Literal["network", "conflict", "api", "malformed"]


@dataclass(frozen=True, slots=True)
class PollBatch:
    updates: tuple[Update, ...]


@dataclass(frozen=True, slots=True)
class PollFailure:
    """A failed `getUpdates` call.

    `kind`:
    - `network`: transport-level error (DNS, reset, client timeout)
    - `conflict`: `error_code == 409`, another consumer holds the long poll
    - `api`: any other `ok: false` response
    - `malformed`: body is not JSON or lacks a `result` list
    """

    kind: PollFailureKind
    description: str
    error_code: int | None = None


type PollOutcome = PollBatch | PollFailure
