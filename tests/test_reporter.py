"""Unit tests for reporter.py."""

import json
from unittest.mock import MagicMock

import pytest

from conftest import SINCE, UNTIL, FakeEventSource, authored, pr_event, push_event
from github_activity_report.aggregator import ActivityAggregator
from github_activity_report.reporter import Reporter


def make_reporter(pages, commit_details=None):
    source = FakeEventSource(pages=pages, commit_details=commit_details)
    llm_client = MagicMock()
    llm_client.generate_report.return_value = "# octocat weekly GitHub activity"
    return Reporter(ActivityAggregator(source), llm_client), llm_client


class TestReporter:
    def test_generate_report_fetches_and_formats(self):
        reporter, llm_client = make_reporter(
            [[push_event(commits=[("abc123", "Fix parser")]), pr_event(number=42)]],
            commit_details={"abc123": authored(additions=4, deletions=1)},
        )

        report = reporter.generate_report("octocat", SINCE, UNTIL)

        assert report == "# octocat weekly GitHub activity"
        llm_client.generate_report.assert_called_once()
        activity_data, username = llm_client.generate_report.call_args.args
        assert username == "octocat"
        data = json.loads(activity_data)
        assert data["statistics"]["total_commits"] == 1
        assert data["statistics"]["total_prs"] == 1
        assert data["commits"][0]["sha"] == "abc123"
        assert data["pull_requests"][0]["number"] == 42

    def test_write_report_uses_existing_record(self):
        reporter, llm_client = make_reporter([[]])
        record = reporter.aggregator.fetch("octocat", SINCE, UNTIL)
        reporter.aggregator.source.page_requests.clear()

        assert reporter.write_report(record) == "# octocat weekly GitHub activity"
        assert reporter.aggregator.source.page_requests == []
        data = json.loads(llm_client.generate_report.call_args.args[0])
        assert data["statistics"]["total_commits"] == 0

    def test_llm_errors_propagate(self):
        reporter, llm_client = make_reporter([[]])
        llm_client.generate_report.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(RuntimeError, match="quota exceeded"):
            reporter.generate_report("octocat", SINCE, UNTIL)
