"""Message routing: text -> target document -> completion -> commit.

Routing rules:
- A first line shorter than `TITLE_MAX_LENGTH` (after trimming) is the title.
  The remaining lines are the note body; a single-line message is both its
  own title and body.
- Otherwise there is no usable title: the document is named after the current
  local time (`YYYY-MM-DD-HH-mm-ss`) and the whole text is the body.
- Names are sanitized, suffixed with `.md`, and placed under the configured
  folder.

Commit rules:
- Existing document content is merged by the completion endpoint with the new
  body. Failures and too-short completions never touch the store.

`MessageRouter.process_message` is the error boundary for a single message:
nothing raised by the store or the completion client escapes it.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from logging import getLogger
from typing import Final

import anyio.to_thread as to_thread

from notebridge.completion import CompletionClient
from notebridge.config import ConfigProvider
from notebridge.documents import DocumentStore, ensure_folder
from notebridge.entities import CompletionFailure, RoutingDecision, Update
from notebridge.notify import Notifier

logger = getLogger(__name__)

TITLE_MAX_LENGTH: Final[int] = 100
DOCUMENT_SUFFIX: Final[str] = ".md"

_FORBIDDEN_CHARS_RE: Final[re.Pattern[str]] = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE_RE: Final[re.Pattern[str]] = re.compile(r"\s+")


def sanitize_file_name(name: str) -> str:
    """Make `name` safe as a single path segment.

    `\\ / : * ? " < > |` become `-`, whitespace runs collapse to one space, and
    the result is trimmed. Idempotent.
    """

    name = _FORBIDDEN_CHARS_RE.sub("-", name)
    return _WHITESPACE_RE.sub(" ", name).strip()


def timestamp_file_name(now: datetime) -> str:
    return now.strftime("%Y-%m-%d-%H-%M-%S")


def normalize_folder(folder: str) -> str:
    return "/".join(p for p in folder.strip().split("/") if p.strip())


def route_text(text: str, *, folder: str, now: datetime) -> RoutingDecision:
    """Decide the target document and the prompt body for `text`."""

    lines = text.split("\n")
    first_line = lines[0].strip()

    file_name = ""
    if len(first_line) < TITLE_MAX_LENGTH:
        file_name = sanitize_file_name(first_line)
        prompt_message = "\n".join(lines[1:]).strip() or first_line
    else:
        prompt_message = text
    if not file_name:
        # Over-long or blank/unsanitizable first line.
        file_name = timestamp_file_name(now)

    if not file_name.endswith(DOCUMENT_SUFFIX):
        file_name += DOCUMENT_SUFFIX

    return RoutingDecision(
        file_name=file_name,
        folder=normalize_folder(folder),
        prompt_message=prompt_message,
    )


@dataclass(slots=True)
class MessageRouter:
    """Turn one message into at most one document create/modify."""

    store: DocumentStore
    completion: CompletionClient
    notify: Notifier
    config_provider: ConfigProvider
    now: Callable[[], datetime] = field(default=datetime.now)

    async def handle_update(self, update: Update) -> None:
        if not update.text:
            logger.debug("update %s has no text; skipped", update.update_id)
            return
        await self.process_message(update.text)

    async def process_message(self, text: str) -> None:
        try:
            config = self.config_provider()
            decision = route_text(text, folder=config.save_folder, now=self.now())
            logger.info(
                "routing message to %s (%d chars)",
                decision.target_path,
                len(decision.prompt_message),
            )
            await self._merge_and_commit(decision, min_length=config.min_response_length)
        except Exception as e:
            logger.exception("failed to process message")
            self.notify(f"error: {e}")

    async def _merge_and_commit(self, decision: RoutingDecision, *, min_length: int) -> None:
        store = self.store
        path = decision.target_path

        if decision.folder:
            await to_thread.run_sync(ensure_folder, store, decision.folder)

        existed = await to_thread.run_sync(store.exists, path)
        original_content = await to_thread.run_sync(store.read, path) if existed else ""

        self.notify("AI running...")
        outcome = await self.completion.complete(original_content, decision.prompt_message)

        if isinstance(outcome, CompletionFailure):
            self.notify(f"AI error! {outcome.reason}")
            return

        if len(outcome.content) < min_length:
            logger.warning(
                "completion for %s too short (%d < %d); store untouched",
                path,
                len(outcome.content),
                min_length,
            )
            self.notify(
                f"AI's response is too short ({len(outcome.content)} symbols). "
                "I suppose it's some error, file not changed."
            )
            return

        if existed:
            await to_thread.run_sync(store.modify, path, outcome.content)
            self.notify(f"file updated - {decision.file_name}")
        else:
            await to_thread.run_sync(store.create, path, outcome.content)
            self.notify(f"file created - {decision.file_name}")
