from __future__ import annotations

import json
import re
from pathlib import Path

import anyio
import httpx
import pytest

from notebridge.config import BotConfig, static_config_provider
from notebridge.controller import BotController
from notebridge.documents import FolderDocumentStore
from notebridge.notify import RecordingNotifier

MERGED = "# Groceries\n\n- milk\n- eggs\n\n" + "Merged by the assistant. " * 5


async def _run_single_update(
    tmp_path: Path, text: str, completion_content: str
) -> tuple[RecordingNotifier, list[dict[str, object]]]:
    completion_bodies: list[dict[str, object]] = []
    bot: BotController | None = None

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "tg.local":
            assert request.url.path == "/bot123:abc/getUpdates"
            return httpx.Response(
                200,
                json={"ok": True, "result": [{"update_id": 1, "message": {"text": text}}]},
            )
        assert str(request.url) == "http://llm.local/v1/chat/completions"
        completion_bodies.append(json.loads(request.content))
        return httpx.Response(
            200, json={"choices": [{"message": {"content": completion_content}}]}
        )

    class StopAfterMessage(RecordingNotifier):
        def __call__(self, message: str) -> None:
            super().__call__(message)
            if bot is not None and message != "AI running..." and message != "telegram bot is online":
                bot.stop()

    notifier = StopAfterMessage()
    config = BotConfig(
        bot_token="123:abc",
        telegram_api_base="http://tg.local",
        openai_api_key="sk-test",
        openai_host="http://llm.local",
        prompt_template="{original_content}|{message}",
    )
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with anyio.fail_after(5):
            async with BotController.create(
                config_provider=static_config_provider(config),
                store=FolderDocumentStore(root=tmp_path),
                notify=notifier,
                client=client,
            ) as bot:
                assert bot.start() is True
                await bot.wait_stopped()
            assert bot.state.cursor == 1
    return notifier, completion_bodies


@pytest.mark.anyio
async def test_message_with_title_creates_note(tmp_path: Path) -> None:
    notifier, bodies = await _run_single_update(tmp_path, "Groceries\nmilk, eggs", MERGED)

    note = tmp_path / "Telegram" / "Groceries.md"
    assert note.read_text(encoding="utf-8") == MERGED.strip()
    assert bodies[0]["messages"][1] == {"role": "user", "content": "|milk, eggs"}  # type: ignore[index]
    assert notifier.messages[-1] == "file created - Groceries.md"


@pytest.mark.anyio
async def test_long_untitled_message_creates_timestamp_note(tmp_path: Path) -> None:
    text = "word " * 30

    _notifier, bodies = await _run_single_update(tmp_path, text, MERGED)

    notes = list((tmp_path / "Telegram").iterdir())
    assert len(notes) == 1
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}\.md", notes[0].name)
    assert bodies[0]["messages"][1]["content"] == "|" + text  # type: ignore[index]


@pytest.mark.anyio
async def test_short_completion_does_not_create_note(tmp_path: Path) -> None:
    notifier, _bodies = await _run_single_update(tmp_path, "Groceries\nmilk", "ok")

    assert not (tmp_path / "Telegram" / "Groceries.md").exists()
    assert "too short" in notifier.messages[-1]
