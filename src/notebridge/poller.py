"""Long-poll state machine over Telegram `getUpdates`.

Phases: `IDLE -> POLLING -> (ROUTING | BACKOFF) -> POLLING ... -> STOPPED`.

Design notes / invariants:
- One iteration at a time: a single `getUpdates` call is in flight, and the
  updates of a batch are routed strictly one after another.
- The cursor is set from each update *before* it is routed. A message whose
  completion or store step fails is therefore never fetched again.
- `PollerState.request_stop()` clears `active` and cancels the current cancel
  scope, which covers the poll call and every backoff sleep but never routing.
  A cancelled poll call does not touch the cursor or dispatch anything.
- Poll failures never escape `run()`; they map to a `BackoffRule`.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from types import MappingProxyType
from typing import Final, Protocol

import anyio
import httpx
from pydantic import ValidationError

from notebridge.config import BotConfig, ConfigProvider
from notebridge.entities import PollFailure, PollFailureKind, PollOutcome, Update
from notebridge.notify import Notifier
from notebridge.telegram import TelegramBotApi

logger = getLogger(__name__)


class PollPhase(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    ROUTING = "routing"
    BACKOFF = "backoff"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class BackoffRule:
    delay_seconds: float
    notify: bool


DEFAULT_BACKOFF_POLICY: Final[Mapping[PollFailureKind, BackoffRule]] = (
    MappingProxyType(
        {
            "network": BackoffRule(delay_seconds=5.0, notify=False),
            "conflict": BackoffRule(delay_seconds=5.0, notify=True),
            "api": BackoffRule(delay_seconds=10.0, notify=True),
            "malformed": BackoffRule(delay_seconds=5.0, notify=False),
        }
    )
)

CONFIG_ERROR_DELAY_SECONDS: Final[float] = 5.0


@dataclass(slots=True)
class PollerState:
    """Lifecycle state shared by one controller and its loop task."""

    active: bool = False
    cursor: int = 0
    phase: PollPhase = PollPhase.IDLE
    cancel_scope: anyio.CancelScope | None = field(default=None, repr=False)

    def request_stop(self) -> None:
        """Clear `active` and abort the in-flight poll or sleep (idempotent)."""

        self.active = False
        if self.cancel_scope is not None:
            self.cancel_scope.cancel()


class UpdateSource(Protocol):
    async def get_updates(self, *, offset: int, timeout_seconds: int) -> PollOutcome: ...


class UpdateHandler(Protocol):
    async def handle_update(self, update: Update) -> None: ...


type UpdateSourceFactory = Callable[[BotConfig], UpdateSource]


def telegram_source_factory(
    client: httpx.AsyncClient | None = None,
) -> UpdateSourceFactory:
    """Build a `TelegramBotApi` per iteration so token/base edits apply next poll."""

    def factory(config: BotConfig) -> UpdateSource:
        return TelegramBotApi(
            token=config.bot_token,
            api_base=config.telegram_api_base,
            client=client,
        )

    return factory


def failure_notice(failure: PollFailure) -> str:
    if failure.kind == "conflict":
        return "connection conflict detected, reconnecting..."
    return f"telegram bot got error: {failure.description}"


@dataclass(slots=True)
class PollLoop:
    source_factory: UpdateSourceFactory
    router: UpdateHandler
    notify: Notifier
    config_provider: ConfigProvider
    policy: Mapping[PollFailureKind, BackoffRule] = DEFAULT_BACKOFF_POLICY
    sleep: Callable[[float], Awaitable[None]] = anyio.sleep

    async def run(self, state: PollerState) -> None:
        """Poll until `state.active` is cleared or the token disappears."""

        logger.info("polling loop started at cursor=%d", state.cursor)
        try:
            while state.active:
                try:
                    config = self.config_provider()
                except ValidationError as e:
                    logger.error("invalid configuration: %s", e)
                    self.notify("invalid configuration, retrying...")
                    await self._sleep_cancellable(state, CONFIG_ERROR_DELAY_SECONDS)
                    continue

                if not config.bot_token:
                    self.notify("telegram's bot token is not set")
                    break

                outcome = await self._poll_once(state, config)
                if outcome is None:
                    logger.info("poll cancelled")
                    break

                if isinstance(outcome, PollFailure):
                    await self._back_off(state, outcome)
                    continue

                await self._dispatch(state, outcome.updates)
        finally:
            state.active = False
            state.cancel_scope = None
            state.phase = PollPhase.STOPPED
            logger.info("polling loop ended at cursor=%d", state.cursor)

    async def _poll_once(self, state: PollerState, config: BotConfig) -> PollOutcome | None:
        """Run one `getUpdates` call; `None` means cancelled or stopped meanwhile."""

        source = self.source_factory(config)
        state.phase = PollPhase.POLLING
        outcome: PollOutcome | None = None
        with anyio.CancelScope() as scope:
            state.cancel_scope = scope
            outcome = await source.get_updates(
                offset=state.cursor + 1,
                timeout_seconds=config.poll_timeout_seconds,
            )
        state.cancel_scope = None

        # `stop()` may have run while the call was completing.
        if scope.cancel_called or not state.active:
            return None
        return outcome

    async def _dispatch(self, state: PollerState, updates: tuple[Update, ...]) -> None:
        if updates:
            logger.info(
                "telegram recv updates=%d ids=%d..%d",
                len(updates),
                updates[0].update_id,
                updates[-1].update_id,
            )
        for update in updates:
            state.cursor = max(state.cursor, update.update_id)
            if not state.active:
                break
            state.phase = PollPhase.ROUTING
            await self.router.handle_update(update)

    async def _back_off(self, state: PollerState, failure: PollFailure) -> None:
        rule = self.policy[failure.kind]
        logger.warning(
            "telegram poll failed kind=%s code=%s: %s",
            failure.kind,
            failure.error_code,
            failure.description,
        )
        if rule.notify:
            self.notify(failure_notice(failure))
        await self._sleep_cancellable(state, rule.delay_seconds)

    async def _sleep_cancellable(self, state: PollerState, delay: float) -> None:
        if not state.active:
            return
        state.phase = PollPhase.BACKOFF
        with anyio.CancelScope() as scope:
            state.cancel_scope = scope
            await self.sleep(delay)
        state.cancel_scope = None
