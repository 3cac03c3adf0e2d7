"""Tests for the command-line interface."""

import json
import logging

import pytest
from click.testing import CliRunner
from rich.console import Console

from sortbox import __version__
from sortbox.cli import main
from sortbox.logging import set_item_context


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point sortbox at a temporary home directory."""
    monkeypatch.setenv("SORTBOX_HOME", str(tmp_path))
    monkeypatch.setattr("sortbox.cli.console", Console(width=200))
    yield tmp_path
    set_item_context(None)
    logger = logging.getLogger("sortbox")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def runner():
    return CliRunner()


def teach_projects(runner):
    """Record three corrections that derive a Projects rule."""
    for subject, sender in [
        ("Milestone review", "alice@acme.io"),
        ("Next milestone", "bob@acme.io"),
        ("Milestone reached", "carol@acme.io"),
    ]:
        result = runner.invoke(
            main,
            ["feedback", subject, "Projects", "--sender", sender, "--body", "milestone planning"],
        )
        assert result.exit_code == 0
    return result


class TestClassify:
    """Tests for the classify command."""

    def test_version(self, home, runner):
        """Test --version prints the package version."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_json_output(self, home, runner):
        """Test classification as JSON."""
        result = runner.invoke(
            main,
            [
                "classify",
                "Ihre Rechnung",
                "--body",
                "zahlung fällig",
                "--sender",
                "billing@amazon.de",
                "-b",
                "Finanzen",
                "-b",
                "Arbeit",
                "--json",
            ],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["suggested_bucket"] == "Finanzen"
        assert data["confidence"] == pytest.approx(0.94)
        assert data["auto_move"] is True

    def test_human_output(self, home, runner):
        """Test the default output names the suggestion."""
        result = runner.invoke(main, ["classify", "Hallo", "-b", "Finanzen"])

        assert result.exit_code == 0
        assert "Inbox" in result.output
        assert "No strong classification signals" in result.output

    def test_no_buckets_fails(self, home, runner):
        """Test classify without candidates exits with an error."""
        result = runner.invoke(main, ["classify", "Hello"])

        assert result.exit_code == 1
        assert "candidate bucket" in result.output

    def test_buckets_from_config(self, home, runner):
        """Test default candidate buckets come from config.json."""
        (home / "config.json").write_text(json.dumps({"buckets": ["Finanzen", "Arbeit"]}))

        result = runner.invoke(
            main, ["classify", "Ihre Rechnung", "--sender", "billing@amazon.de", "--json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["suggested_bucket"] == "Finanzen"

    def test_missing_rules_file_fails(self, home, runner):
        """Test a configured but missing rules file is reported."""
        (home / "config.json").write_text(json.dumps({"rules_file": str(home / "nope.json")}))

        result = runner.invoke(main, ["classify", "Hello", "-b", "Finanzen"])

        assert result.exit_code == 1
        assert "Rules file not found" in result.output


class TestFeedback:
    """Tests for feedback and rule listing."""

    def test_feedback_recorded(self, home, runner):
        """Test a single correction."""
        result = runner.invoke(
            main, ["feedback", "Milestone review", "Projects", "--sender", "alice@acme.io"]
        )

        assert result.exit_code == 0
        assert "Feedback recorded" in result.output

    def test_third_feedback_learns_rule(self, home, runner):
        """Test the third correction reports a new rule."""
        result = teach_projects(runner)
        assert "New rule learned for Projects" in result.output

        rules = runner.invoke(main, ["rules"])
        assert rules.exit_code == 0
        assert "Projects" in rules.output
        assert "derived" in rules.output

    def test_learning_changes_classification(self, home, runner):
        """Test a learned rule is used by later runs."""
        teach_projects(runner)

        result = runner.invoke(
            main,
            [
                "classify",
                "Status",
                "--body",
                "milestone slipped",
                "--sender",
                "alice@acme.io",
                "-b",
                "Projects",
                "-b",
                "Arbeit",
                "--json",
            ],
        )

        data = json.loads(result.stdout)
        assert data["suggested_bucket"] == "Projects"
        assert data["confidence"] == pytest.approx(0.82)
        assert data["auto_move"] is True


class TestExportImport:
    """Tests for moving feedback between installs."""

    def test_export_to_stdout(self, home, runner):
        """Test export prints rules and feedback."""
        teach_projects(runner)

        result = runner.invoke(main, ["export"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["version"] == __version__
        assert len(data["feedback"]) == 3
        assert "Projects" in [rule["bucket_name"] for rule in data["rules"]]

    def test_export_reset_import(self, home, runner):
        """Test feedback survives export, reset and import."""
        teach_projects(runner)
        export_path = home / "export.json"
        assert runner.invoke(main, ["export", "-o", str(export_path)]).exit_code == 0
        assert runner.invoke(main, ["reset", "--yes"]).exit_code == 0

        result = runner.invoke(main, ["import", str(export_path)])

        assert result.exit_code == 0
        assert "Imported 3 feedback records" in result.output
        assert "created rule for 'Projects'" in result.output

    def test_import_invalid_json(self, home, runner):
        """Test a broken import file exits with an error."""
        path = home / "broken.json"
        path.write_text("{")

        result = runner.invoke(main, ["import", str(path)])

        assert result.exit_code == 1
        assert "Import file is not valid JSON" in result.output

    def test_import_invalid_record(self, home, runner):
        """Test a record without a bucket is rejected."""
        path = home / "bad.json"
        path.write_text(json.dumps({"feedback": [{"item": {"subject": "x"}}]}))

        result = runner.invoke(main, ["import", str(path)])

        assert result.exit_code == 1
        assert "Invalid feedback record" in result.output


class TestStatusReset:
    """Tests for status and reset."""

    def test_status(self, home, runner):
        """Test status reports learning counts."""
        teach_projects(runner)

        result = runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "Feedback records: 3" in result.output
        assert "(1 learned)" in result.output

    def test_reset_requires_confirmation(self, home, runner):
        """Test reset can be cancelled."""
        teach_projects(runner)

        result = runner.invoke(main, ["reset"], input="n\n")

        assert "Cancelled" in result.output
        status = runner.invoke(main, ["status"])
        assert "Feedback records: 3" in status.output

    def test_reset_yes(self, home, runner):
        """Test reset --yes clears everything."""
        teach_projects(runner)

        assert runner.invoke(main, ["reset", "--yes"]).exit_code == 0

        status = runner.invoke(main, ["status"])
        assert "Feedback records: 0" in status.output


class TestLogging:
    """Tests for log output from commands."""

    def test_item_id_tags_scoring_logs(self, home, runner):
        """Test --id appears on every scoring log line of the command."""
        (home / "config.json").write_text(
            json.dumps({"logging": {"json_format": True, "log_to_file": True}})
        )

        result = runner.invoke(
            main, ["-v", "classify", "Ihre Rechnung", "--id", "msg-42", "-b", "Finanzen"]
        )

        assert result.exit_code == 0
        lines = (home / "logs" / "sortbox.log").read_text(encoding="utf-8").splitlines()
        entries = [json.loads(line) for line in lines]
        scoring = [e for e in entries if e["logger"] == "sortbox.classifier.scorer"]
        assert scoring
        assert all(e["item_id"] == "msg-42" for e in scoring)
