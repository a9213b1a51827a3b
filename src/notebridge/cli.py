"""CLI entrypoint: run the bridge over a folder of markdown files."""

from __future__ import annotations

import argparse
import logging
import signal
from pathlib import Path

import anyio
import logfire
from pydantic import ValidationError
from rich import print
from rich.markup import escape

from notebridge.config import ConfigProvider, env_config_provider
from notebridge.controller import BotController
from notebridge.documents import FolderDocumentStore
from notebridge.notify import RichNotifier


def _parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="notebridge",
        description=(
            "Telegram long-poll bridge (getUpdates -> chat completion -> markdown notes). "
            "Settings come from NOTEBRIDGE_* environment variables or an env file."
        ),
    )
    parser.add_argument(
        "--vault",
        default=".",
        help="Root folder of the document store (default: current directory).",
    )
    parser.add_argument(
        "--env-file",
        default="",
        help="Optional env file re-read before every poll and message (default: .env).",
    )
    return parser.parse_args(argv)


async def _restart_on_sighup(bot: BotController) -> None:
    with anyio.open_signal_receiver(signal.SIGHUP) as signals:
        async for _ in signals:
            print("[yellow]SIGHUP[/yellow]: restarting bot")
            await bot.restart()


async def run(*, vault: str = ".", env_file: str = "") -> None:
    """Function entrypoint. Returns when the bot cannot start or is stopped."""

    logfire.configure(send_to_logfire="if-token-present")
    logging.basicConfig(level=logging.INFO, handlers=[logfire.LogfireLoggingHandler()])

    raw_env_file = str(env_file).strip()
    config_provider: ConfigProvider = env_config_provider(
        Path(raw_env_file).expanduser() if raw_env_file else None
    )
    try:
        config = config_provider()
    except ValidationError as e:
        print(f"[red]invalid configuration[/red]: {escape(str(e))}")
        return
    store = FolderDocumentStore(root=Path(vault))

    print(
        "\n".join(
            [
                "notebridge running (polling getUpdates).",
                f"- vault: {store.root}",
                f"- save_folder: {config.save_folder!r}",
                f"- model: {config.openai_model}",
                f"- openai_host: {config.openai_host}",
                f"- min_response_length: {config.min_response_length}",
                f"- poll_timeout_seconds: {config.poll_timeout_seconds}",
            ]
        )
    )

    async with BotController.create(
        config_provider=config_provider,
        store=store,
        notify=RichNotifier(),
    ) as bot:
        if not bot.start():
            return
        # The host stays up after the loop ends (e.g. token removed) so a
        # SIGHUP can bring it back once the settings are fixed.
        if hasattr(signal, "SIGHUP"):
            await _restart_on_sighup(bot)
        else:  # pragma: no cover (windows)
            await anyio.sleep_forever()


async def main() -> None:
    """CLI entrypoint."""
    args = _parse_cli_args()
    await run(vault=args.vault, env_file=args.env_file)


def entrypoint() -> None:
    anyio.run(main)
