"""
Smoke tests for the CLI commands that need no remote store.
"""

import json

from typer.testing import CliRunner

from vstation.cli.main import app

runner = CliRunner()


class TestCli:
    """Tests for command wiring."""

    def test_score_with_case(self, tmp_path):
        submission = tmp_path / "submission.json"
        submission.write_text(
            json.dumps(
                {
                    "judgment": {"result": "hazardous", "characteristics": ["toxicity"]},
                    "spent_budget": 1100,
                    "user_path": ["det_cr6", "det_ni"],
                    "elapsed_seconds": 120,
                }
            )
        )

        result = runner.invoke(app, ["score", str(submission), "--case", "case_001"])

        assert result.exit_code == 0
        assert "TOTAL" in result.output
        assert "gold" in result.output

    def test_score_invalid_input(self, tmp_path):
        submission = tmp_path / "submission.json"
        submission.write_text(json.dumps({"judgment": {"result": "hazardous"}}))

        result = runner.invoke(app, ["score", str(submission)])

        assert result.exit_code == 1
        assert "correct_answer" in result.output

    def test_classify(self):
        result = runner.invoke(app, ["classify", "Invalid date format", "--rule", "date"])

        assert result.exit_code == 0
        assert "format" in result.output

    def test_leaderboard(self, tmp_path):
        entries = tmp_path / "entries.json"
        entries.write_text(
            json.dumps(
                [
                    {"competition_id": "c1", "user_id": "A", "score": 80, "time_spent_seconds": 120},
                    {"competition_id": "c1", "user_id": "C", "score": 90, "time_spent_seconds": 150},
                ]
            )
        )

        result = runner.invoke(app, ["leaderboard", str(entries), "--report"])

        assert result.exit_code == 0
        assert "Participants: 2" in result.output

    def test_progress_show_empty(self, tmp_path):
        result = runner.invoke(app, ["progress", "show", "u1", "hazwaste-lab", "--db", str(tmp_path / "p.db")])

        assert result.exit_code == 0
        assert "No saved progress" in result.output
