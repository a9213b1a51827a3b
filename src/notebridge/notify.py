"""User-facing notifications.

Notifications are fire-and-forget text. A `Notifier` must not raise; the
pipeline calls it from error paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Protocol

from rich import print
from rich.markup import escape

logger = getLogger(__name__)

NOTICE_PREFIX = "notebridge"


class Notifier(Protocol):
    def __call__(self, message: str) -> None: ...


@dataclass(slots=True)
class RichNotifier:
    """Print notices to the console and mirror them to the log."""

    prefix: str = NOTICE_PREFIX

    def __call__(self, message: str) -> None:
        logger.info("notice: %s", message)
        print(f"[bold cyan]{self.prefix}[/bold cyan]: {escape(message)}")


@dataclass(slots=True)
class RecordingNotifier:
    """Collect notices in memory (embedding hosts and tests)."""

    messages: list[str] = field(default_factory=list)

    def __call__(self, message: str) -> None:
        self.messages.append(message)
