"""Data models for collected activity."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime


def make_key(repo: str, number: int) -> str:
    """Build the composite key identifying a pull request or issue."""
    return f"{repo}#{number}"


@dataclass(frozen=True)
class CommitRecord:
    """A pushed commit whose authorship has been verified."""

    sha: str
    message: str
    repo: str
    url: str
    author: str
    date: datetime
    additions: int = 0
    deletions: int = 0


@dataclass(frozen=True)
class PullRequestRecord:
    """A pull request seen on the timeline.

    ``event_at`` is the timestamp of the timeline entry that produced the
    record; ``created_at`` is the platform's creation time of the pull
    request itself and may predate the report window.
    """

    number: int
    repo: str
    title: str
    url: str
    state: str
    created_at: datetime
    event_at: datetime
    merged_at: datetime | None = None
    additions: int = 0
    deletions: int = 0
    comments: int = 0

    @property
    def key(self) -> str:
        return make_key(self.repo, self.number)

    @property
    def merged(self) -> bool:
        return self.merged_at is not None


@dataclass(frozen=True)
class IssueRecord:
    """An issue seen on the timeline."""

    number: int
    repo: str
    title: str
    url: str
    state: str
    created_at: datetime
    event_at: datetime
    closed_at: datetime | None = None
    comments: int = 0

    @property
    def key(self) -> str:
        return make_key(self.repo, self.number)

    @property
    def closed(self) -> bool:
        return self.closed_at is not None


@dataclass(frozen=True)
class ReviewRecord:
    """A single code review submitted by the user."""

    repo: str
    pr_number: int
    pr_title: str
    state: str
    url: str
    created_at: datetime


@dataclass(frozen=True)
class CommitDetail:
    """Verified commit identity and line counts from a commit lookup."""

    author_login: str | None = None
    committer_login: str | None = None
    additions: int = 0
    deletions: int = 0


@dataclass(frozen=True)
class PullRequestDetail:
    """Line counts and merge time from a pull request lookup."""

    additions: int = 0
    deletions: int = 0
    merged_at: datetime | None = None


@dataclass(frozen=True)
class Statistics:
    """Counts derived from an activity record."""

    total_commits: int = 0
    total_prs: int = 0
    merged_prs: int = 0
    total_issues: int = 0
    closed_issues: int = 0
    total_reviews: int = 0
    code_additions: int = 0
    code_deletions: int = 0

    @property
    def net_code_changes(self) -> int:
        return self.code_additions - self.code_deletions

    def as_dict(self) -> dict[str, int]:
        """Return the statistics as a string-keyed map."""
        return {
            "total_commits": self.total_commits,
            "total_prs": self.total_prs,
            "merged_prs": self.merged_prs,
            "total_issues": self.total_issues,
            "closed_issues": self.closed_issues,
            "total_reviews": self.total_reviews,
            "code_additions": self.code_additions,
            "code_deletions": self.code_deletions,
            "net_code_changes": self.net_code_changes,
        }


def compute_statistics(
    commits: Sequence[CommitRecord],
    pull_requests: Sequence[PullRequestRecord],
    issues: Sequence[IssueRecord],
    reviews: Sequence[ReviewRecord],
) -> Statistics:
    """Compute statistics from the four activity sequences.

    Additions and deletions are summed across both commits and pull
    requests.
    """
    additions = sum(c.additions for c in commits) + sum(pr.additions for pr in pull_requests)
    deletions = sum(c.deletions for c in commits) + sum(pr.deletions for pr in pull_requests)

    return Statistics(
        total_commits=len(commits),
        total_prs=len(pull_requests),
        merged_prs=sum(1 for pr in pull_requests if pr.merged),
        total_issues=len(issues),
        closed_issues=sum(1 for issue in issues if issue.closed),
        total_reviews=len(reviews),
        code_additions=additions,
        code_deletions=deletions,
    )


@dataclass(frozen=True)
class ActivityRecord:
    """All activity collected for one user over one time window."""

    username: str
    since: datetime
    until: datetime
    commits: tuple[CommitRecord, ...] = field(default_factory=tuple)
    pull_requests: tuple[PullRequestRecord, ...] = field(default_factory=tuple)
    issues: tuple[IssueRecord, ...] = field(default_factory=tuple)
    reviews: tuple[ReviewRecord, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.since > self.until:
            raise ValueError(
                f"since ({self.since.isoformat()}) must not be after until ({self.until.isoformat()})"
            )

    def statistics(self) -> Statistics:
        """Recompute statistics from the record's sequences."""
        return compute_statistics(self.commits, self.pull_requests, self.issues, self.reviews)

    def repos(self) -> list[str]:
        """Return the sorted set of repositories that appear in the record."""
        names = {c.repo for c in self.commits}
        names.update(pr.repo for pr in self.pull_requests)
        names.update(issue.repo for issue in self.issues)
        names.update(review.repo for review in self.reviews)
        return sorted(names)
