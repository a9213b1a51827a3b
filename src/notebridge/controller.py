"""Bot lifecycle: start/stop/restart around a `PollLoop` task.

`BotController` must be used as an async context manager; it owns the task
group the loop runs in. Leaving the context stops the loop and waits for it
(an in-flight message finishes routing first).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Self

import anyio
import httpx
from anyio.abc import TaskGroup
from pydantic import ValidationError

from notebridge.completion import CompletionClient
from notebridge.config import BotConfig, ConfigProvider
from notebridge.documents import DocumentStore
from notebridge.notify import Notifier
from notebridge.poller import PollerState, PollLoop, telegram_source_factory
from notebridge.router import MessageRouter

logger = getLogger(__name__)

RESTART_SETTLE_SECONDS = 1.0


@dataclass(slots=True)
class BotController:
    config_provider: ConfigProvider
    loop: PollLoop
    notify: Notifier
    restart_delay_seconds: float = RESTART_SETTLE_SECONDS
    sleep: Callable[[float], Awaitable[None]] = anyio.sleep
    state: PollerState = field(default_factory=PollerState)

    _task_group: TaskGroup | None = field(default=None, init=False, repr=False)
    _exit_stack: AsyncExitStack | None = field(default=None, init=False, repr=False)
    _loop_done: anyio.Event | None = field(default=None, init=False, repr=False)

    @classmethod
    def create(
        cls,
        *,
        config_provider: ConfigProvider,
        store: DocumentStore,
        notify: Notifier,
        client: httpx.AsyncClient | None = None,
    ) -> BotController:
        """Wire the default Telegram -> router -> completion pipeline."""

        router = MessageRouter(
            store=store,
            completion=CompletionClient(config_provider=config_provider, client=client),
            notify=notify,
            config_provider=config_provider,
        )
        loop = PollLoop(
            source_factory=telegram_source_factory(client),
            router=router,
            notify=notify,
            config_provider=config_provider,
        )
        return cls(config_provider=config_provider, loop=loop, notify=notify)

    async def __aenter__(self) -> Self:
        stack = AsyncExitStack()
        self._task_group = await stack.enter_async_context(anyio.create_task_group())
        self._exit_stack = stack
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool | None:
        self.stop()
        stack, self._exit_stack = self._exit_stack, None
        try:
            if stack is not None:
                return await stack.__aexit__(exc_type, exc, tb)
            return None
        finally:
            self._task_group = None

    @property
    def is_running(self) -> bool:
        """True while the loop is active or still unwinding after `stop()`."""

        return self.state.active or (
            self._loop_done is not None and not self._loop_done.is_set()
        )

    def start(self) -> bool:
        """Launch the poll loop in the background. Returns whether it started."""

        if self._task_group is None:
            raise RuntimeError("BotController must be entered before start()")

        try:
            config = self.config_provider()
        except ValidationError as e:
            logger.error("invalid configuration: %s", e)
            self.notify("invalid configuration, bot not started")
            return False
        if not config.bot_token:
            self.notify("telegram's bot token is not set")
            return False

        if self.is_running:
            logger.warning("bot already running, skipping start")
            return False

        self.state.active = True
        done = anyio.Event()
        self._loop_done = done
        self._task_group.start_soon(self._run_loop, done)
        self.notify("telegram bot is online")
        return True

    def stop(self) -> None:
        if self.state.active:
            logger.info("stopping bot")
        self.state.request_stop()

    async def wait_stopped(self) -> None:
        if self._loop_done is not None:
            await self._loop_done.wait()

    async def restart(self) -> bool:
        self.stop()
        await self.sleep(self.restart_delay_seconds)
        await self.wait_stopped()
        self.state.cursor = 0
        return self.start()

    async def config_changed(self, previous: BotConfig, current: BotConfig) -> None:
        """Settings hook: re-initialize when the Telegram connection settings change.

        Other settings need no action; they are read fresh per poll/message.
        """

        if (previous.bot_token, previous.telegram_api_base) == (
            current.bot_token,
            current.telegram_api_base,
        ):
            return
        if not current.bot_token:
            self.stop()
            return
        await self.restart()

    async def _run_loop(self, done: anyio.Event) -> None:
        try:
            await self.loop.run(self.state)
        finally:
            done.set()
