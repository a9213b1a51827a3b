"""Telegram -> chat completion -> markdown notes bridge.

This package long-polls the Telegram Bot API `getUpdates` endpoint and, for
each text message (or media caption):

- picks a target markdown document from the first line (or a timestamp when
  the first line is too long to be a title),
- sends the existing document content plus the new text to an
  OpenAI-compatible `/v1/chat/completions` endpoint,
- writes the merged result back to a `DocumentStore`.

Design notes / boundaries:
- Poll state (the `update_id` cursor) is in-memory only. Restarts may
  reprocess updates that are still pending server-side.
- The cursor advances before a message is routed, so a message whose
  completion or store step fails is skipped rather than retried.
- Completions shorter than `min_response_length` are treated as errors and
  never overwrite a document.
- Only one poll call and one completion call are ever in flight.

Implementation note:
- Internal logic is split across `notebridge.*` submodules; this package
  re-exports the public surface.
"""

from __future__ import annotations

from .cli import main, run
from .completion import CompletionClient, render_prompt
from .config import BotConfig, ConfigProvider, env_config_provider, static_config_provider
from .controller import BotController
from .documents import DocumentStore, FolderDocumentStore, ensure_folder
from .entities import (
    CompletionFailure,
    CompletionOutcome,
    CompletionSuccess,
    PollBatch,
    PollFailure,
    PollOutcome,
    RoutingDecision,
    Update,
)
from .notify import Notifier, RecordingNotifier, RichNotifier
from .poller import BackoffRule, PollerState, PollLoop, PollPhase
from .router import MessageRouter, route_text, sanitize_file_name
from .telegram import TelegramBotApi, TelegramBotApiError

__all__ = [
    "BackoffRule",
    "BotConfig",
    "BotController",
    "CompletionClient",
    "CompletionFailure",
    "CompletionOutcome",
    "CompletionSuccess",
    "ConfigProvider",
    "DocumentStore",
    "FolderDocumentStore",
    "MessageRouter",
    "Notifier",
    "PollBatch",
    "PollFailure",
    "PollLoop",
    "PollOutcome",
    "PollPhase",
    "PollerState",
    "RecordingNotifier",
    "RichNotifier",
    "RoutingDecision",
    "TelegramBotApi",
    "TelegramBotApiError",
    "Update",
    "ensure_folder",
    "env_config_provider",
    "main",
    "render_prompt",
    "route_text",
    "run",
    "sanitize_file_name",
    "static_config_provider",
]
