"""Base class for event timeline sources."""

import threading
from abc import ABC, abstractmethod

from .models import CommitDetail, PullRequestDetail


class EventSource(ABC):
    """Abstract base class for event timeline sources.

    The aggregation engine talks to the hosting platform only through the
    three operations defined here, so a fake source is enough to drive it
    in tests. Implementations must be safe to call from several threads:
    detail lookups for one timeline page run concurrently.
    """

    def __init__(self, token: str | None = None):
        """Initialize the event source.

        Args:
            token: API token for authentication (optional)
        """
        self.token = token
        self.api_call_count = 0
        self._count_lock = threading.Lock()

    @abstractmethod
    def list_events(
        self, username: str, cursor: int | None
    ) -> tuple[list[dict], int | None]:
        """Fetch one page of a user's event timeline.

        Args:
            username: Account whose timeline is read
            cursor: Page cursor; None requests the first page

        Returns:
            A tuple of (raw events, next cursor). The next cursor is None
            when there are no further pages.
        """
        pass

    @abstractmethod
    def get_commit_detail(self, owner: str, repo: str, sha: str) -> CommitDetail:
        """Look up the verified identities and line counts of a commit.

        Args:
            owner: Repository owner
            repo: Repository name
            sha: Full commit SHA

        Returns:
            CommitDetail for the commit
        """
        pass

    @abstractmethod
    def get_pull_request_detail(
        self, owner: str, repo: str, number: int
    ) -> PullRequestDetail:
        """Look up line counts and merge time of a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number

        Returns:
            PullRequestDetail for the pull request
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Return the name of this source (e.g., 'GitHub').

        Returns:
            Human-readable name of the source
        """
        pass

    def _count_call(self) -> None:
        with self._count_lock:
            self.api_call_count += 1

    def get_api_call_count(self) -> int:
        """Get the number of API calls made by this source.

        Returns:
            Total number of API calls
        """
        return self.api_call_count

    def reset_api_call_count(self) -> None:
        """Reset the API call counter to zero."""
        with self._count_lock:
            self.api_call_count = 0


def split_repo_name(full_name: str) -> tuple[str, str]:
    """Split an ``owner/name`` repository name.

    Returns:
        A tuple of (owner, name). Both empty strings if the name has no
        owner part.
    """
    owner, sep, name = full_name.partition("/")
    if not sep or not owner or not name:
        return "", ""
    return owner, name
