"""Tests for the Typer command line interface."""

import json
from unittest.mock import AsyncMock, MagicMock

from typer.testing import CliRunner

from truthcast.cli import main as cli
from truthcast.data_management.schemas import Verdict, VerdictLabel, claim_hash

runner = CliRunner()

CLAIM = "Global temperatures have risen by 1.1°C since pre-industrial times."


def _fake_service(verdict: Verdict) -> MagicMock:
    service = MagicMock()
    service.check_claim = AsyncMock(return_value=verdict)
    service.shutdown = AsyncMock()
    return service


class TestLoadTranscript:
    def test_plain_text_lines(self, tmp_path):
        path = tmp_path / "episode.txt"
        path.write_text("First line here.\n\n  Second line here.  \n", encoding="utf-8")

        units = cli.load_transcript(path, offset_step_ms=2000)

        assert [u.text for u in units] == ["First line here.", "Second line here."]
        assert [u.start_offset_ms for u in units] == [0, 2000]
        assert units[1].end_offset_ms == 4000

    def test_json_units(self, tmp_path):
        path = tmp_path / "episode.json"
        path.write_text(
            json.dumps({"units": [{"text": CLAIM, "start_offset_ms": 1000, "end_offset_ms": 3000}]}),
            encoding="utf-8",
        )

        units = cli.load_transcript(path)

        assert len(units) == 1
        assert units[0].start_offset_ms == 1000

    def test_format_offset(self):
        assert cli._format_offset(65_000) == "01:05"


class TestCommands:
    def test_version(self):
        result = runner.invoke(cli.app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_status(self):
        result = runner.invoke(cli.app, ["status"])
        assert result.exit_code == 0
        assert "Thresholds" in result.output

    def test_claim(self, monkeypatch):
        verdict = Verdict(
            claim_id="claim-1",
            parent_work_id="adhoc",
            claim_text=CLAIM,
            claim_hash=claim_hash(CLAIM),
            label=VerdictLabel.VERIFIED,
            confidence=92,
            explanation="Verified with 92% confidence.",
        )
        service = _fake_service(verdict)
        monkeypatch.setattr(cli, "build_service", lambda: service)

        result = runner.invoke(cli.app, ["claim", CLAIM])

        assert result.exit_code == 0
        assert "VERIFIED" in result.output
        service.check_claim.assert_awaited_once_with(CLAIM, "")
        service.shutdown.assert_awaited_once()

    def test_check_missing_file(self, tmp_path):
        result = runner.invoke(cli.app, ["check", str(tmp_path / "missing.txt")])
        assert result.exit_code != 0
