"""Unit tests for report.py."""

import json
from datetime import datetime, timezone

from conftest import IN_WINDOW, SINCE, UNTIL
from github_activity_report.models import (
    ActivityRecord,
    CommitRecord,
    IssueRecord,
    PullRequestRecord,
    ReviewRecord,
)
from github_activity_report.report import (
    build_markdown,
    format_activity_data,
    generate_markdown_report,
)

MERGED = datetime(2024, 5, 4, 9, 30, tzinfo=timezone.utc)


def sample_record(username="octocat"):
    return ActivityRecord(
        username=username,
        since=SINCE,
        until=UNTIL,
        commits=(
            CommitRecord(
                sha="0123456789abcdef",
                message="Fix parser\n\nLonger body",
                repo="octo/app",
                url="https://api.github.com/repos/octo/app/commits/0123456789abcdef",
                author="Octo Cat",
                date=IN_WINDOW,
                additions=10,
                deletions=3,
            ),
        ),
        pull_requests=(
            PullRequestRecord(
                number=42,
                repo="octo/app",
                title="Add | pipes",
                url="https://github.com/octo/app/pull/42",
                state="closed",
                created_at=IN_WINDOW,
                event_at=IN_WINDOW,
                merged_at=MERGED,
                additions=30,
                deletions=5,
            ),
            PullRequestRecord(
                number=43,
                repo="octo/lib",
                title="Draft",
                url="https://github.com/octo/lib/pull/43",
                state="open",
                created_at=IN_WINDOW,
                event_at=IN_WINDOW,
            ),
        ),
        issues=(
            IssueRecord(
                number=7,
                repo="octo/app",
                title="Crash on start",
                url="https://github.com/octo/app/issues/7",
                state="open",
                created_at=IN_WINDOW,
                event_at=IN_WINDOW,
            ),
        ),
        reviews=(
            ReviewRecord(
                repo="octo/docs",
                pr_number=5,
                pr_title="Fix typo",
                state="APPROVED",
                url="https://github.com/octo/docs/pull/5#pullrequestreview-1",
                created_at=IN_WINDOW,
            ),
        ),
    )


class TestFormatActivityData:
    def test_top_level_fields(self):
        data = json.loads(format_activity_data(sample_record()))

        assert data["username"] == "octocat"
        assert data["time_range"] == "2024-05-01 ~ 2024-05-08"
        assert data["statistics"]["total_commits"] == 1
        assert data["statistics"]["merged_prs"] == 1
        assert data["statistics"]["code_additions"] == 40
        assert data["statistics"]["net_code_changes"] == 32

    def test_commit_uses_short_sha(self):
        commit = json.loads(format_activity_data(sample_record()))["commits"][0]

        assert commit["sha"] == "0123456"
        assert commit["date"] == "2024-05-03 12:00"
        assert commit["additions"] == 10

    def test_merged_only_when_set(self):
        merged, draft = json.loads(format_activity_data(sample_record()))["pull_requests"]

        assert merged["merged"] == "2024-05-04"
        assert "merged" not in draft

    def test_closed_only_when_set(self):
        issue = json.loads(format_activity_data(sample_record()))["issues"][0]
        assert "closed" not in issue
        assert issue["created"] == "2024-05-03"

    def test_reviews(self):
        review = json.loads(format_activity_data(sample_record()))["reviews"][0]
        assert review == {
            "pr_number": 5,
            "pr_title": "Fix typo",
            "repo": "octo/docs",
            "state": "APPROVED",
            "url": "https://github.com/octo/docs/pull/5#pullrequestreview-1",
            "created": "2024-05-03",
        }

    def test_non_ascii_is_kept(self):
        record = ActivityRecord(username="测试", since=SINCE, until=UNTIL)
        assert "测试" in format_activity_data(record)

    def test_empty_record(self):
        data = json.loads(format_activity_data(ActivityRecord("octocat", SINCE, UNTIL)))
        assert data["commits"] == []
        assert data["statistics"]["net_code_changes"] == 0


class TestMarkdown:
    def test_sections(self):
        content = build_markdown([sample_record()])

        assert content.startswith("# GitHub Activity Report")
        assert "**Report Period:** May 01, 2024 - May 08, 2024" in content
        assert "## Overall Summary" in content
        assert "| octocat | 1 | 2 | 1 | 1 | 0 | 1 | 40 | 8 | 32 |" in content
        assert "## octocat" in content
        assert "### Pull Requests" in content
        assert "### Issues" in content
        assert "### Reviews" in content
        assert "### Commits" in content

    def test_activity_lines(self):
        content = build_markdown([sample_record()])

        assert "- [octo/app#42](https://github.com/octo/app/pull/42) Add \\| pipes (merged, +30/-5)" in content
        assert "(open, +0/-0)" in content
        assert "Fix typo (approved)" in content
        assert "- `0123456` octo/app: Fix parser (+10/-3)" in content

    def test_user_without_activity(self):
        content = build_markdown([ActivityRecord("ghost", SINCE, UNTIL)])

        assert "## ghost" in content
        assert "*No activity found in this period.*" in content
        assert "### Commits" not in content

    def test_summary_rows_sorted_by_user(self):
        content = build_markdown([sample_record("zed"), sample_record("Amy")])
        assert content.index("| Amy |") < content.index("| zed |")

    def test_writes_file(self, tmp_path):
        path = tmp_path / "report.md"
        generate_markdown_report([sample_record()], path)

        content = path.read_text()
        assert content.startswith("# GitHub Activity Report")
        assert "## octocat" in content
        assert "*Report generated on" in content
