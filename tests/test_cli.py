"""Tests for the command-line interface."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from conftest import FakeEventSource, authored, pr_event, push_event
from github_activity_report.cli import app
from github_activity_report.errors import EventSourceError

runner = CliRunner()

CONFIG = """\
github:
  tokens:
    - token: tok-octocat
      username: octocat
fetch:
  page_retries: 1
  timeout: 30
days: 7
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    return path


def recent():
    return datetime.now(timezone.utc) - timedelta(days=1)


def fake_source(**kwargs):
    """Patch the GitHub source so every built aggregator reads ``source``."""
    source = FakeEventSource(**kwargs)
    created = []

    def factory(**options):
        created.append(options)
        return source

    return source, created, patch("github_activity_report.cli.GitHubEventSource", side_effect=factory)


class TestValidate:
    def test_valid_config(self, config_file):
        result = runner.invoke(app, ["validate", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "Tokens configured: 1" in result.output
        assert "Users: octocat" in result.output

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("days: 7\n")
        result = runner.invoke(app, ["validate", "--config", str(path)])

        assert result.exit_code == 1
        assert "Configuration is invalid" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["validate", "--config", str(tmp_path / "absent.yaml")])
        assert result.exit_code != 0


class TestGenerate:
    def test_writes_report(self, config_file, tmp_path):
        at = recent()
        source, created, patcher = fake_source(
            pages=[[push_event(commits=[("abc123", "Fix parser")], at=at), pr_event(number=42, at=at)]],
            commit_details={"abc123": authored(additions=3, deletions=1)},
        )
        output = tmp_path / "report.md"

        with patcher:
            result = runner.invoke(app, ["generate", "--config", str(config_file), "--output", str(output)])

        assert result.exit_code == 0, result.output
        assert created[0]["token"] == "tok-octocat"
        content = output.read_text()
        assert "## octocat" in content
        assert "octo/app#42" in content
        assert "`abc123`" in content

    def test_user_option_overrides_config(self, config_file, tmp_path):
        source, created, patcher = fake_source(pages=[[]])
        output = tmp_path / "report.md"

        with patcher:
            result = runner.invoke(
                app,
                ["generate", "-c", str(config_file), "-u", "hubot", "-o", str(output)],
            )

        assert result.exit_code == 0, result.output
        # hubot has no bound token and falls back to the first one.
        assert created[0]["token"] == "tok-octocat"
        assert "## hubot" in output.read_text()

    def test_fetch_failure_exits_nonzero(self, config_file, tmp_path):
        source, created, patcher = fake_source(
            pages=[[]], page_errors={None: [EventSourceError("boom", status_code=500)]}
        )
        output = tmp_path / "report.md"

        with patcher:
            result = runner.invoke(app, ["generate", "-c", str(config_file), "-o", str(output)])

        assert result.exit_code == 1
        assert "Error fetching activity for octocat" in result.output
        assert not output.exists()

    def test_no_users(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("github:\n  token: anonymous\n")
        result = runner.invoke(app, ["generate", "-c", str(path)])

        assert result.exit_code == 1
        assert "no users to report on" in result.output

    def test_llm_report_is_sent(self, config_file, tmp_path):
        source, created, patcher = fake_source(pages=[[]])
        output = tmp_path / "report.md"

        with patcher, patch("github_activity_report.cli.LLMClient") as llm_class:
            llm_class.return_value.generate_report.return_value = "# prose report"
            result = runner.invoke(
                app, ["generate", "-c", str(config_file), "-o", str(output), "--llm"]
            )

        assert result.exit_code == 0, result.output
        assert "# prose report" in result.output
        llm_class.return_value.generate_report.assert_called_once()

    @pytest.mark.parametrize("days", ["0", "-3"])
    def test_non_positive_days_is_rejected(self, config_file, tmp_path, days):
        source, created, patcher = fake_source(pages=[[]])
        output = tmp_path / "report.md"

        with patcher:
            result = runner.invoke(
                app, ["generate", "-c", str(config_file), "-o", str(output), f"--days={days}"]
            )

        assert result.exit_code == 1
        assert "--days must be a positive number" in result.output
        assert created == []
        assert not output.exists()

    def test_days_option_sets_window(self, config_file, tmp_path):
        old = datetime.now(timezone.utc) - timedelta(days=10)
        source, created, patcher = fake_source(pages=[[pr_event(number=1, at=old)]])
        output = tmp_path / "report.md"

        with patcher:
            result = runner.invoke(
                app, ["generate", "-c", str(config_file), "-o", str(output), "--days=30"]
            )

        assert result.exit_code == 0, result.output
        assert "octo/app#1" in output.read_text()


class TestStats:
    def test_prints_statistics(self, config_file):
        at = recent()
        source, created, patcher = fake_source(pages=[[pr_event(number=1, at=at), pr_event(number=2, at=at)]])

        with patcher:
            result = runner.invoke(app, ["stats", "octocat", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Total prs" in result.output
        assert "API calls: 3" in result.output

    def test_fetch_failure(self, config_file):
        source, created, patcher = fake_source(
            pages=[[]], page_errors={None: [EventSourceError("boom")]}
        )

        with patcher:
            result = runner.invoke(app, ["stats", "octocat", "--config", str(config_file)])

        assert result.exit_code == 1
        assert "Error fetching activity" in result.output

    def test_zero_days_is_rejected(self, config_file):
        source, created, patcher = fake_source(pages=[[]])

        with patcher:
            result = runner.invoke(app, ["stats", "octocat", "--config", str(config_file), "--days=0"])

        assert result.exit_code == 1
        assert "--days must be a positive number" in result.output
        assert source.page_requests == []
