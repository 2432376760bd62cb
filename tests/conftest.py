"""Shared pytest fixtures: a scripted event source and event builders."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from github_activity_report.event_source import EventSource
from github_activity_report.models import CommitDetail, PullRequestDetail

SINCE = datetime(2024, 5, 1, tzinfo=timezone.utc)
UNTIL = datetime(2024, 5, 8, tzinfo=timezone.utc)
IN_WINDOW = datetime(2024, 5, 3, 12, 0, tzinfo=timezone.utc)


def ts(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def push_event(repo="octo/app", commits=(), at=IN_WINDOW, event_id="1"):
    return {
        "id": event_id,
        "type": "PushEvent",
        "created_at": ts(at),
        "repo": {"name": repo},
        "payload": {
            "commits": [
                {
                    "sha": sha,
                    "message": message,
                    "author": {"name": "Octo Cat"},
                    "url": f"https://api.github.com/repos/{repo}/commits/{sha}",
                }
                for sha, message in commits
            ]
        },
    }


def pr_event(repo="octo/app", number=42, at=IN_WINDOW, merged_at=None, state="open", title="Add thing"):
    return {
        "id": f"pr-{number}",
        "type": "PullRequestEvent",
        "created_at": ts(at),
        "repo": {"name": repo},
        "payload": {
            "action": "opened",
            "number": number,
            "pull_request": {
                "number": number,
                "title": title,
                "html_url": f"https://github.com/{repo}/pull/{number}",
                "state": state,
                "created_at": ts(at),
                "merged_at": ts(merged_at) if merged_at else None,
                "comments": 2,
            },
        },
    }


def issue_event(repo="octo/app", number=7, at=IN_WINDOW, closed_at=None, is_pr=False):
    issue = {
        "number": number,
        "title": "Something broke",
        "html_url": f"https://github.com/{repo}/issues/{number}",
        "state": "closed" if closed_at else "open",
        "created_at": ts(at),
        "closed_at": ts(closed_at) if closed_at else None,
        "comments": 1,
    }
    if is_pr:
        issue["pull_request"] = {"url": f"https://api.github.com/repos/{repo}/pulls/{number}"}
    return {
        "id": f"issue-{number}",
        "type": "IssuesEvent",
        "created_at": ts(at),
        "repo": {"name": repo},
        "payload": {"action": "opened", "issue": issue},
    }


def review_event(repo="octo/app", number=5, at=IN_WINDOW, reviewer="octocat", state="approved"):
    return {
        "id": f"review-{number}",
        "type": "PullRequestReviewEvent",
        "created_at": ts(at),
        "repo": {"name": repo},
        "payload": {
            "action": "created",
            "review": {
                "state": state,
                "html_url": f"https://github.com/{repo}/pull/{number}#pullrequestreview-1",
                "user": {"login": reviewer},
            },
            "pull_request": {"number": number, "title": "Fix parser"},
        },
    }


class FakeEventSource(EventSource):
    """Event source serving scripted pages and details.

    ``pages`` is a list of event lists; page N links to page N+1 and the
    last page reports no next cursor. Entries of ``page_errors`` (cursor ->
    list of exceptions) are raised, in order, before a page is served.
    ``commit_details`` and ``pr_details`` map keys to a detail value or to
    an exception instance to raise.
    """

    def __init__(self, pages=None, commit_details=None, pr_details=None, page_errors=None):
        super().__init__(token=None)
        self.pages = pages if pages is not None else [[]]
        self.commit_details = commit_details or {}
        self.pr_details = pr_details or {}
        self.page_errors = {k: list(v) for k, v in (page_errors or {}).items()}
        self.page_requests: list[int | None] = []
        self.commit_requests: list[tuple[str, str, str]] = []
        self.pr_requests: list[tuple[str, str, int]] = []
        self._lock = threading.Lock()

    def get_source_name(self) -> str:
        return "Fake"

    def list_events(self, username, cursor):
        self._count_call()
        with self._lock:
            self.page_requests.append(cursor)
            errors = self.page_errors.get(cursor)
            if errors:
                raise errors.pop(0)
        index = (cursor or 1) - 1
        next_cursor = index + 2 if index + 1 < len(self.pages) else None
        return list(self.pages[index]), next_cursor

    def get_commit_detail(self, owner, repo, sha):
        self._count_call()
        with self._lock:
            self.commit_requests.append((owner, repo, sha))
        detail = self.commit_details.get(sha)
        if isinstance(detail, Exception):
            raise detail
        if detail is None:
            raise RuntimeError(f"no commit {sha}")
        return detail

    def get_pull_request_detail(self, owner, repo, number):
        self._count_call()
        with self._lock:
            self.pr_requests.append((owner, repo, number))
        detail = self.pr_details.get(f"{owner}/{repo}#{number}", PullRequestDetail())
        if isinstance(detail, Exception):
            raise detail
        return detail


def authored(login="octocat", additions=0, deletions=0, committer=None):
    return CommitDetail(
        author_login=login, committer_login=committer, additions=additions, deletions=deletions
    )


@pytest.fixture
def window():
    return SINCE, UNTIL


@pytest.fixture
def one_second_before_since():
    return SINCE - timedelta(seconds=1)
