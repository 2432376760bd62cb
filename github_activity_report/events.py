"""Decoding of timeline event envelopes into typed events.

The timeline delivers one envelope shape whose ``payload`` depends on the
``type`` tag. ``decode_event`` maps each envelope onto a closed set of
event classes; kinds the report does not use decode to ``OtherEvent``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

from .errors import MalformedEvent

PUSH_EVENT = "PushEvent"
PULL_REQUEST_EVENT = "PullRequestEvent"
ISSUES_EVENT = "IssuesEvent"
PULL_REQUEST_REVIEW_EVENT = "PullRequestReviewEvent"


@dataclass(frozen=True)
class PushedCommit:
    """One commit entry from a push payload."""

    sha: str
    message: str
    author_name: str
    url: str


@dataclass(frozen=True)
class PushEvent:
    repo: str
    created_at: datetime
    commits: tuple[PushedCommit, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PullRequestEvent:
    repo: str
    created_at: datetime
    action: str
    number: int
    title: str
    url: str
    state: str
    opened_at: datetime
    merged_at: datetime | None = None
    comments: int = 0


@dataclass(frozen=True)
class IssuesEvent:
    repo: str
    created_at: datetime
    action: str
    number: int
    title: str
    url: str
    state: str
    opened_at: datetime
    closed_at: datetime | None = None
    comments: int = 0
    is_pull_request: bool = False


@dataclass(frozen=True)
class PullRequestReviewEvent:
    repo: str
    created_at: datetime
    pr_number: int
    pr_title: str
    state: str
    url: str
    reviewer: str | None = None


@dataclass(frozen=True)
class OtherEvent:
    kind: str
    repo: str
    created_at: datetime


Event = Union[PushEvent, PullRequestEvent, IssuesEvent, PullRequestReviewEvent, OtherEvent]


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp as sent by the API.

    Returns None for missing or unparseable values. Naive timestamps are
    taken to be UTC.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; aware datetimes are returned as is."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def event_timestamp(raw: dict) -> datetime | None:
    """Return the envelope's ``created_at`` timestamp, or None."""
    if not isinstance(raw, dict):
        return None
    return parse_timestamp(raw.get("created_at"))


def in_window(timestamp: datetime | None, since: datetime, until: datetime) -> bool:
    """Return True if ``timestamp`` lies in the closed interval [since, until]."""
    if timestamp is None:
        return False
    return since <= timestamp <= until


def decode_event(raw: dict) -> Event:
    """Decode a raw timeline envelope.

    Args:
        raw: Event envelope as returned by the events API

    Returns:
        The typed event for the envelope's kind

    Raises:
        MalformedEvent: If the envelope or its payload does not have the
            shape its ``type`` declares
    """
    if not isinstance(raw, dict):
        raise MalformedEvent("event", "envelope is not an object")

    kind = raw.get("type")
    if not isinstance(kind, str) or not kind:
        raise MalformedEvent("event", "missing type")

    created_at = event_timestamp(raw)
    if created_at is None:
        raise MalformedEvent(kind, "missing or invalid created_at")

    repo = _repo_name(raw)
    decoder = _DECODERS.get(kind)
    if decoder is None:
        return OtherEvent(kind=kind, repo=repo, created_at=created_at)

    payload = raw.get("payload")
    if not isinstance(payload, dict):
        raise MalformedEvent(kind, "payload is not an object")
    if not repo:
        raise MalformedEvent(kind, "missing repository name")

    try:
        return decoder(payload, repo, created_at)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise MalformedEvent(kind, str(e) or type(e).__name__) from e


def _repo_name(raw: dict) -> str:
    repo = raw.get("repo")
    if isinstance(repo, dict):
        name = repo.get("name")
        if isinstance(name, str):
            return name
    return ""


def _require_dict(payload: dict, key: str) -> dict:
    value = payload.get(key)
    if not isinstance(value, dict):
        raise ValueError(f"payload.{key} is not an object")
    return value


def _int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"expected integer, got {value!r}")
    return int(value)


def _str(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"expected string, got {value!r}")
    return value


def _decode_push(payload: dict, repo: str, created_at: datetime) -> PushEvent:
    raw_commits = payload.get("commits") or []
    if not isinstance(raw_commits, list):
        raise ValueError("payload.commits is not a list")

    commits = []
    for entry in raw_commits:
        if not isinstance(entry, dict):
            raise ValueError("commit entry is not an object")
        author = entry.get("author") or {}
        commits.append(
            PushedCommit(
                sha=_str(entry.get("sha")),
                message=_str(entry.get("message")),
                author_name=_str(author.get("name")) if isinstance(author, dict) else "",
                url=_str(entry.get("url")),
            )
        )
    return PushEvent(repo=repo, created_at=created_at, commits=tuple(commits))


def _decode_pull_request(payload: dict, repo: str, created_at: datetime) -> PullRequestEvent:
    pr = _require_dict(payload, "pull_request")
    number = _int(pr.get("number", payload.get("number")))
    if number <= 0:
        raise ValueError("pull request number missing")

    return PullRequestEvent(
        repo=repo,
        created_at=created_at,
        action=_str(payload.get("action")),
        number=number,
        title=_str(pr.get("title")),
        url=_str(pr.get("html_url")),
        state=_str(pr.get("state")),
        opened_at=parse_timestamp(pr.get("created_at")) or created_at,
        merged_at=parse_timestamp(pr.get("merged_at")),
        comments=_int(pr.get("comments")),
    )


def _decode_issue(payload: dict, repo: str, created_at: datetime) -> IssuesEvent:
    issue = _require_dict(payload, "issue")
    number = _int(issue.get("number"))
    if number <= 0:
        raise ValueError("issue number missing")

    return IssuesEvent(
        repo=repo,
        created_at=created_at,
        action=_str(payload.get("action")),
        number=number,
        title=_str(issue.get("title")),
        url=_str(issue.get("html_url")),
        state=_str(issue.get("state")),
        opened_at=parse_timestamp(issue.get("created_at")) or created_at,
        closed_at=parse_timestamp(issue.get("closed_at")),
        comments=_int(issue.get("comments")),
        is_pull_request=issue.get("pull_request") is not None,
    )


def _decode_review(payload: dict, repo: str, created_at: datetime) -> PullRequestReviewEvent:
    review = _require_dict(payload, "review")
    pr = _require_dict(payload, "pull_request")

    reviewer = None
    user = review.get("user")
    if isinstance(user, dict) and user.get("login"):
        reviewer = _str(user["login"])

    return PullRequestReviewEvent(
        repo=repo,
        created_at=created_at,
        pr_number=_int(pr.get("number")),
        pr_title=_str(pr.get("title")),
        state=_str(review.get("state")),
        url=_str(review.get("html_url")),
        reviewer=reviewer,
    )


_DECODERS = {
    PUSH_EVENT: _decode_push,
    PULL_REQUEST_EVENT: _decode_pull_request,
    ISSUES_EVENT: _decode_issue,
    PULL_REQUEST_REVIEW_EVENT: _decode_review,
}
