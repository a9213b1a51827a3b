from pathlib import Path

import pytest

from notebridge import cli


@pytest.mark.anyio
async def test_run_reports_invalid_configuration_and_returns(
    tmp_path: Path, monkeypatch, capsys
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli.logfire, "configure", lambda **kwargs: None)
    monkeypatch.setattr(cli.logging, "basicConfig", lambda **kwargs: None)
    env_file = tmp_path / "bridge.env"
    env_file.write_text(
        "NOTEBRIDGE_BOT_TOKEN=t\nNOTEBRIDGE_OPENAI_TEMPERATURE=5\n", encoding="utf-8"
    )

    await cli.run(vault=str(tmp_path), env_file=str(env_file))

    out = capsys.readouterr().out
    assert "invalid configuration" in out
    assert "openai_temperature" in out
    assert "notebridge running" not in out
