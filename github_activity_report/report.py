"""Rendering of activity records as JSON data and Markdown reports."""

import json
from datetime import datetime
from pathlib import Path

from .models import (
    ActivityRecord,
    CommitRecord,
    IssueRecord,
    PullRequestRecord,
    ReviewRecord,
    Statistics,
)

SHORT_SHA_LENGTH = 7


def format_activity_data(record: ActivityRecord) -> str:
    """Format an activity record as indented JSON for the text-generation call.

    Args:
        record: Completed activity record

    Returns:
        JSON document with the username, time range, statistics and one
        list per activity kind
    """
    data = {
        "username": record.username,
        "time_range": f"{record.since.strftime('%Y-%m-%d')} ~ {record.until.strftime('%Y-%m-%d')}",
        "statistics": record.statistics().as_dict(),
        "commits": [_commit_data(c) for c in record.commits],
        "pull_requests": [_pull_request_data(pr) for pr in record.pull_requests],
        "issues": [_issue_data(issue) for issue in record.issues],
        "reviews": [_review_data(review) for review in record.reviews],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def _commit_data(commit: CommitRecord) -> dict:
    return {
        "sha": commit.sha[:SHORT_SHA_LENGTH],
        "message": commit.message,
        "repo": commit.repo,
        "author": commit.author,
        "date": commit.date.strftime("%Y-%m-%d %H:%M"),
        "additions": commit.additions,
        "deletions": commit.deletions,
    }


def _pull_request_data(pr: PullRequestRecord) -> dict:
    data = {
        "number": pr.number,
        "title": pr.title,
        "repo": pr.repo,
        "state": pr.state,
        "url": pr.url,
        "created": pr.created_at.strftime("%Y-%m-%d"),
        "additions": pr.additions,
        "deletions": pr.deletions,
        "comments": pr.comments,
    }
    if pr.merged_at is not None:
        data["merged"] = pr.merged_at.strftime("%Y-%m-%d")
    return data


def _issue_data(issue: IssueRecord) -> dict:
    data = {
        "number": issue.number,
        "title": issue.title,
        "repo": issue.repo,
        "state": issue.state,
        "url": issue.url,
        "created": issue.created_at.strftime("%Y-%m-%d"),
        "comments": issue.comments,
    }
    if issue.closed_at is not None:
        data["closed"] = issue.closed_at.strftime("%Y-%m-%d")
    return data


def _review_data(review: ReviewRecord) -> dict:
    return {
        "pr_number": review.pr_number,
        "pr_title": review.pr_title,
        "repo": review.repo,
        "state": review.state,
        "url": review.url,
        "created": review.created_at.strftime("%Y-%m-%d"),
    }


def generate_markdown_report(records: list[ActivityRecord], output_path: str | Path) -> None:
    """Generate a Markdown report and write it to a file.

    Args:
        records: Activity records, one per user
        output_path: Path where the report should be written
    """
    output_path = Path(output_path)

    md_content = build_markdown(records)

    with open(output_path, "w") as f:
        f.write(md_content)


def build_markdown(records: list[ActivityRecord]) -> str:
    """Build the complete Markdown content for the report.

    Args:
        records: Activity records, one per user

    Returns:
        Complete Markdown document as a string
    """
    lines = []

    lines.append("# GitHub Activity Report")
    lines.append("")
    if records:
        since = min(r.since for r in records)
        until = max(r.until for r in records)
        lines.append(
            f"**Report Period:** {since.strftime('%B %d, %Y')} - "
            f"{until.strftime('%B %d, %Y')}"
        )
        lines.append("")
    lines.append("---")
    lines.append("")

    lines.append("## Overall Summary")
    lines.append("")
    lines.extend(_build_summary_table(records))
    lines.append("")

    for record in records:
        lines.append(f"## {record.username}")
        lines.append("")
        lines.extend(_build_stats_table(record.statistics()))
        lines.append("")
        lines.extend(_build_activity_sections(record))

    lines.append("---")
    lines.append("")
    lines.append(
        f"*Report generated on {datetime.now().strftime('%B %d, %Y at %I:%M %p')}*"
    )

    return "\n".join(lines)


def _build_summary_table(records: list[ActivityRecord]) -> list[str]:
    """Build a table with one row of statistics per user.

    Args:
        records: Activity records, one per user

    Returns:
        List of Markdown table lines
    """
    lines = []
    lines.append(
        "| User | Commits | PRs | PRs Merged | Issues | Issues Closed | "
        "Reviews | Additions | Deletions | Net |"
    )
    lines.append(
        "|------|---------|-----|------------|--------|---------------|"
        "---------|-----------|-----------|-----|"
    )

    for record in sorted(records, key=lambda r: r.username.lower()):
        s = record.statistics()
        lines.append(
            f"| {record.username} | {s.total_commits} | {s.total_prs} | "
            f"{s.merged_prs} | {s.total_issues} | {s.closed_issues} | "
            f"{s.total_reviews} | {s.code_additions} | {s.code_deletions} | "
            f"{s.net_code_changes} |"
        )

    return lines


def _build_stats_table(stats: Statistics) -> list[str]:
    """Build a statistics table for a single user.

    Args:
        stats: Statistics of the user's record

    Returns:
        List of Markdown table lines
    """
    lines = []
    lines.append("| Metric | Count |")
    lines.append("|--------|-------|")
    lines.append(f"| Commits | {stats.total_commits} |")
    lines.append(f"| PRs | {stats.total_prs} |")
    lines.append(f"| PRs Merged | {stats.merged_prs} |")
    lines.append(f"| Issues | {stats.total_issues} |")
    lines.append(f"| Issues Closed | {stats.closed_issues} |")
    lines.append(f"| Reviews | {stats.total_reviews} |")
    lines.append(f"| Lines Added | {stats.code_additions} |")
    lines.append(f"| Lines Deleted | {stats.code_deletions} |")
    lines.append(f"| Net Change | {stats.net_code_changes} |")

    return lines


def _build_activity_sections(record: ActivityRecord) -> list[str]:
    lines = []

    if record.pull_requests:
        lines.append("### Pull Requests")
        lines.append("")
        for pr in record.pull_requests:
            status = "merged" if pr.merged else pr.state
            lines.append(
                f"- [{pr.repo}#{pr.number}]({pr.url}) {_escape(pr.title)} "
                f"({status}, +{pr.additions}/-{pr.deletions})"
            )
        lines.append("")

    if record.issues:
        lines.append("### Issues")
        lines.append("")
        for issue in record.issues:
            lines.append(f"- [{issue.repo}#{issue.number}]({issue.url}) {_escape(issue.title)} ({issue.state})")
        lines.append("")

    if record.reviews:
        lines.append("### Reviews")
        lines.append("")
        for review in record.reviews:
            lines.append(
                f"- [{review.repo}#{review.pr_number}]({review.url}) "
                f"{_escape(review.pr_title)} ({review.state.lower()})"
            )
        lines.append("")

    if record.commits:
        lines.append("### Commits")
        lines.append("")
        for commit in record.commits:
            summary = commit.message.splitlines()[0] if commit.message else ""
            lines.append(
                f"- `{commit.sha[:SHORT_SHA_LENGTH]}` {commit.repo}: {_escape(summary)} "
                f"(+{commit.additions}/-{commit.deletions})"
            )
        lines.append("")

    if not (record.pull_requests or record.issues or record.reviews or record.commits):
        lines.append("*No activity found in this period.*")
        lines.append("")

    return lines


def _escape(text: str) -> str:
    """Escape characters that would break a Markdown list line."""
    return text.replace("|", "\\|").replace("\n", " ")
