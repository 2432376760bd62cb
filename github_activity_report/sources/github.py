"""GitHub REST API event source."""

import logging

import httpx

from ..errors import EventSourceError
from ..event_source import EventSource
from ..events import parse_timestamp
from ..models import CommitDetail, PullRequestDetail

logger = logging.getLogger(__name__)


class GitHubEventSource(EventSource):
    """GitHub API client for reading user timelines and commit/PR details."""

    def __init__(
        self,
        token: str | None = None,
        endpoint: str = "https://api.github.com",
        per_page: int = 100,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize GitHub event source.

        Args:
            token: GitHub personal access token
            endpoint: API endpoint URL (for GitHub Enterprise)
            per_page: Page size requested from the events API
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport, used to stub the network
        """
        super().__init__(token)
        self.endpoint = endpoint.rstrip("/")
        self.per_page = per_page
        self.timeout = timeout
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    def get_source_name(self) -> str:
        """Return the source name."""
        return "GitHub"

    def list_events(
        self, username: str, cursor: int | None
    ) -> tuple[list[dict], int | None]:
        """Fetch one page of events performed by a user.

        Args:
            username: GitHub username
            cursor: Page number; None for the first page

        Returns:
            A tuple of (events, next page number or None)
        """
        url = f"{self.endpoint}/users/{username}/events"
        params = {"per_page": self.per_page, "page": cursor or 1}

        response = self._get(url, params)
        data = self._json(response)
        if not isinstance(data, list):
            raise EventSourceError(f"GitHub API: expected a list of events from {url}")

        logger.debug(f"GitHub API: Received {len(data)} events")
        next_cursor = self._get_next_page(response.headers.get("Link", ""))
        return data, next_cursor

    def get_commit_detail(self, owner: str, repo: str, sha: str) -> CommitDetail:
        """Fetch a single commit.

        Args:
            owner: Repository owner
            repo: Repository name
            sha: Commit SHA

        Returns:
            CommitDetail with the platform accounts of author and committer
        """
        url = f"{self.endpoint}/repos/{owner}/{repo}/commits/{sha}"
        data = self._json(self._get(url))
        if not isinstance(data, dict):
            raise EventSourceError(f"GitHub API: unexpected commit response from {url}")

        stats = data.get("stats") or {}
        return CommitDetail(
            author_login=_login(data.get("author")),
            committer_login=_login(data.get("committer")),
            additions=stats.get("additions") or 0,
            deletions=stats.get("deletions") or 0,
        )

    def get_pull_request_detail(
        self, owner: str, repo: str, number: int
    ) -> PullRequestDetail:
        """Fetch a single pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number

        Returns:
            PullRequestDetail with line counts and merge time
        """
        url = f"{self.endpoint}/repos/{owner}/{repo}/pulls/{number}"
        data = self._json(self._get(url))
        if not isinstance(data, dict):
            raise EventSourceError(f"GitHub API: unexpected pull request response from {url}")

        return PullRequestDetail(
            additions=data.get("additions") or 0,
            deletions=data.get("deletions") or 0,
            merged_at=parse_timestamp(data.get("merged_at")),
        )

    def _get(self, url: str, params: dict | None = None) -> httpx.Response:
        """Make a single GET request to the GitHub API.

        Args:
            url: API endpoint URL
            params: Query parameters

        Returns:
            The successful response

        Raises:
            EventSourceError: On transport errors and non-2xx responses
        """
        logger.debug(f"GitHub API: GET {url} (params: {params})")
        try:
            with httpx.Client(
                headers=self.headers, timeout=self.timeout, transport=self.transport
            ) as client:
                response = client.get(url, params=params)
                self._count_call()
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EventSourceError(
                f"GitHub API: GET {url} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise EventSourceError(f"GitHub API: GET {url} failed: {e}") from e
        return response

    def _json(self, response: httpx.Response):
        try:
            return response.json()
        except ValueError as e:
            raise EventSourceError(
                f"GitHub API: invalid JSON from {response.request.url}"
            ) from e

    def _get_next_page(self, link_header: str) -> int | None:
        """Extract next page number from Link header.

        Args:
            link_header: GitHub Link header value

        Returns:
            Number of the next page or None if no more pages
        """
        if not link_header:
            return None

        for link in link_header.split(","):
            parts = link.split(";")
            if len(parts) == 2 and 'rel="next"' in parts[1]:
                next_url = httpx.URL(parts[0].strip("<> "))
                page = next_url.params.get("page")
                if page and page.isdigit():
                    return int(page)

        return None


def _login(account) -> str | None:
    if isinstance(account, dict):
        return account.get("login") or None
    return None
