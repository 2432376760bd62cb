"""Aggregation of a user's event timeline into an activity record.

Pages are read strictly in source order (newest first) and each page is
folded before the next one is requested. Within a page, commit and pull
request detail lookups run on a bounded thread pool; their results are
folded back in the order the events appeared, so the first sighting of a
pull request or issue is always the most recent one.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from functools import partial

from .errors import (
    DetailLookupFailed,
    FetchCancelled,
    MalformedEvent,
    SourceUnavailable,
    UnverifiedAuthor,
)
from .event_source import EventSource, split_repo_name
from .events import (
    Event,
    IssuesEvent,
    PullRequestEvent,
    PullRequestReviewEvent,
    PushEvent,
    PushedCommit,
    decode_event,
    ensure_utc,
    event_timestamp,
    in_window,
)
from .models import (
    ActivityRecord,
    CommitDetail,
    CommitRecord,
    IssueRecord,
    PullRequestRecord,
    ReviewRecord,
    Statistics,
    compute_statistics,
    make_key,
)

# How often a blocked wait re-checks the cancel signal and the deadline.
_POLL_INTERVAL = 0.1


def same_login(a: str | None, b: str | None) -> bool:
    """Compare two account logins ignoring case.

    GitHub treats logins case-insensitively, so this deliberately differs
    from an exact string comparison. A missing login never matches.
    """
    if not a or not b:
        return False
    return a.casefold() == b.casefold()


class Deduplicator:
    """Tracks pull requests and issues already recorded in one fetch."""

    def __init__(self):
        self.seen_pull_requests: set[str] = set()
        self.seen_issues: set[str] = set()

    def claim_pull_request(self, repo: str, number: int) -> bool:
        """Return True on the first sighting of a pull request, False after."""
        return self._claim(self.seen_pull_requests, make_key(repo, number))

    def claim_issue(self, repo: str, number: int) -> bool:
        """Return True on the first sighting of an issue, False after."""
        return self._claim(self.seen_issues, make_key(repo, number))

    @staticmethod
    def _claim(seen: set[str], key: str) -> bool:
        if key in seen:
            return False
        seen.add(key)
        return True


class ActivityAggregator:
    """Folds a user's event timeline into an ActivityRecord.

    One aggregator runs one fetch at a time. Independent fetches (other
    users or other windows) should use their own aggregator instances;
    they share no state.
    """

    def __init__(
        self,
        source: EventSource,
        max_workers: int = 4,
        page_retries: int = 3,
        backoff_base: float = 1.0,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        stop_at_window_start: bool = False,
        logger: logging.Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the aggregator.

        Args:
            source: Event source the timeline and details are read from
            max_workers: Upper bound on concurrent detail lookups
            page_retries: Attempts per timeline page before giving up
            backoff_base: Delay before the first page retry; doubles after
            timeout: Overall deadline for one fetch in seconds (optional)
            cancel_event: Event that aborts the fetch when set (optional)
            stop_at_window_start: Stop paginating once a page reaches
                events older than the window start
            logger: Logger receiving progress and drop diagnostics
            sleep: Sleep function used between page retries
            clock: Monotonic clock used for the deadline
        """
        self.source = source
        self.max_workers = max(1, max_workers)
        self.page_retries = max(1, page_retries)
        self.backoff_base = backoff_base
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.stop_at_window_start = stop_at_window_start
        self.logger = logger or logging.getLogger(__name__)
        self._sleep_fn = sleep
        self._clock = clock

        self._handlers: dict[type, Callable[[Event], list[Callable[[], None]]]] = {
            PushEvent: self._handle_push,
            PullRequestEvent: self._handle_pull_request,
            IssuesEvent: self._handle_issue,
            PullRequestReviewEvent: self._handle_review,
        }
        self._begin("", None, None)

    def fetch(self, username: str, since: datetime, until: datetime) -> ActivityRecord:
        """Collect all activity of ``username`` between ``since`` and ``until``.

        Args:
            username: GitHub username
            since: Start of the window (inclusive)
            until: End of the window (inclusive)

        Returns:
            The completed ActivityRecord

        Raises:
            SourceUnavailable: If a timeline page cannot be fetched
            FetchCancelled: If the cancel event is set or the deadline passes
            ValueError: If ``since`` is after ``until``
        """
        since = ensure_utc(since)
        until = ensure_utc(until)
        if since > until:
            raise ValueError("since must not be after until")

        self._begin(username, since, until)
        if self.timeout is not None:
            self._deadline = self._clock() + self.timeout

        self.logger.info(f"Fetching activity for {username} ({since.isoformat()} - {until.isoformat()})")
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="activity-lookup"
        )
        completed = False
        try:
            for events in self._pages(username):
                self._process_page(events)
                if self.stop_at_window_start and _reaches_before(events, since):
                    self.logger.debug(f"Reached events before {since.isoformat()}, stopping pagination")
                    break
            completed = True
        finally:
            # Abandon in-flight lookups when the fetch fails or is cancelled.
            self._executor.shutdown(wait=completed, cancel_futures=True)
            self._executor = None

        record = self.record()
        stats = record.statistics()
        self.logger.info(
            f"Collected activity for {username}: {stats.total_commits} commits, "
            f"{stats.total_prs} pull requests, {stats.total_issues} issues, "
            f"{stats.total_reviews} reviews"
        )
        return record

    def record(self) -> ActivityRecord:
        """Return an immutable snapshot of the record built so far."""
        if self._since is None or self._until is None:
            raise RuntimeError("no fetch has been started")
        return ActivityRecord(
            username=self._username,
            since=self._since,
            until=self._until,
            commits=tuple(self._commits),
            pull_requests=tuple(self._pull_requests),
            issues=tuple(self._issues),
            reviews=tuple(self._reviews),
        )

    def statistics(self) -> Statistics:
        """Compute statistics over the current record; has no side effects."""
        return compute_statistics(
            tuple(self._commits),
            tuple(self._pull_requests),
            tuple(self._issues),
            tuple(self._reviews),
        )

    def _begin(self, username: str, since: datetime | None, until: datetime | None) -> None:
        self._username = username
        self._since = since
        self._until = until
        self._commits: list[CommitRecord] = []
        self._pull_requests: list[PullRequestRecord] = []
        self._issues: list[IssueRecord] = []
        self._reviews: list[ReviewRecord] = []
        self._dedup = Deduplicator()
        self._deadline: float | None = None
        self._executor: ThreadPoolExecutor | None = None

    # -- pagination ---------------------------------------------------------

    def _pages(self, username: str) -> Iterator[list[dict]]:
        """Yield timeline pages until the source reports no next page."""
        cursor = None
        page_count = 0
        while True:
            events, next_cursor = self._fetch_page(username, cursor)
            page_count += 1
            self.logger.debug(f"Page {page_count} for {username}: {len(events)} events")
            yield events
            if next_cursor is None:
                return
            cursor = next_cursor

    def _fetch_page(self, username: str, cursor: int | None) -> tuple[list[dict], int | None]:
        last_error: Exception | None = None
        for attempt in range(self.page_retries):
            if attempt:
                delay = self.backoff_base * 2 ** (attempt - 1)
                self.logger.warning(
                    f"Retrying timeline page for {username} in {delay:g}s "
                    f"(attempt {attempt + 1}/{self.page_retries}): {last_error}"
                )
                self._sleep(delay)
            future = self._executor.submit(self.source.list_events, username, cursor)
            try:
                events, next_cursor = self._await(future)
            except FetchCancelled:
                raise
            except Exception as e:
                last_error = e
                continue
            return list(events or []), next_cursor

        raise SourceUnavailable(username, cursor, str(last_error)) from last_error

    # -- classification -----------------------------------------------------

    def _process_page(self, events: list[dict]) -> None:
        finishers: list[Callable[[], None]] = []
        for raw in events:
            timestamp = event_timestamp(raw)
            if timestamp is None:
                self.logger.debug("Dropping event without a timestamp")
                continue
            if not in_window(timestamp, self._since, self._until):
                continue

            try:
                event = decode_event(raw)
            except MalformedEvent as e:
                self.logger.warning(f"Skipping event {raw.get('id', '?')}: {e}")
                continue

            handler = self._handlers.get(type(event))
            if handler is not None:
                finishers.extend(handler(event))

        for finish in finishers:
            finish()

    def _handle_push(self, event: PushEvent) -> list[Callable[[], None]]:
        owner, name = split_repo_name(event.repo)
        finishers = []
        for commit in event.commits:
            if not commit.sha or not commit.message:
                self.logger.debug(f"Skipping commit without sha or message in {event.repo}")
                continue
            if not owner:
                self.logger.debug(f"Skipping commit {commit.sha[:7]}: bad repository name {event.repo!r}")
                continue
            future = self._executor.submit(self.source.get_commit_detail, owner, name, commit.sha)
            finishers.append(partial(self._finish_commit, event, commit, future))
        return finishers

    def _handle_pull_request(self, event: PullRequestEvent) -> list[Callable[[], None]]:
        if not self._dedup.claim_pull_request(event.repo, event.number):
            self.logger.debug(f"Skipping repeated pull request {make_key(event.repo, event.number)}")
            return []

        owner, name = split_repo_name(event.repo)
        future = None
        if owner:
            future = self._executor.submit(
                self.source.get_pull_request_detail, owner, name, event.number
            )
        return [partial(self._finish_pull_request, event, future)]

    def _handle_issue(self, event: IssuesEvent) -> list[Callable[[], None]]:
        if event.is_pull_request:
            return []
        if not self._dedup.claim_issue(event.repo, event.number):
            self.logger.debug(f"Skipping repeated issue {make_key(event.repo, event.number)}")
            return []

        self._issues.append(
            IssueRecord(
                number=event.number,
                repo=event.repo,
                title=event.title,
                url=event.url,
                state=event.state,
                created_at=event.opened_at,
                event_at=event.created_at,
                closed_at=event.closed_at,
                comments=event.comments,
            )
        )
        return []

    def _handle_review(self, event: PullRequestReviewEvent) -> list[Callable[[], None]]:
        if not same_login(event.reviewer, self._username):
            self.logger.debug(f"Skipping review by {event.reviewer or 'unknown'} in {event.repo}")
            return []

        self._reviews.append(
            ReviewRecord(
                repo=event.repo,
                pr_number=event.pr_number,
                pr_title=event.pr_title,
                state=event.state,
                url=event.url,
                created_at=event.created_at,
            )
        )
        return []

    # -- detail lookups -----------------------------------------------------

    def _finish_commit(self, event: PushEvent, commit: PushedCommit, future: Future) -> None:
        try:
            detail = self._lookup(future, "commit", f"{event.repo}@{commit.sha[:7]}")
            self._verify_author(commit.sha, detail)
        except DetailLookupFailed as e:
            self.logger.warning(f"Dropping commit: {e}")
            return
        except UnverifiedAuthor as e:
            self.logger.debug(f"Skipping commit: {e}")
            return

        self._commits.append(
            CommitRecord(
                sha=commit.sha,
                message=commit.message,
                repo=event.repo,
                url=commit.url,
                author=commit.author_name,
                date=event.created_at,
                additions=detail.additions,
                deletions=detail.deletions,
            )
        )

    def _verify_author(self, sha: str, detail: CommitDetail) -> None:
        """Raise UnverifiedAuthor unless the user authored or committed ``sha``."""
        if same_login(detail.author_login, self._username):
            return
        if same_login(detail.committer_login, self._username):
            return
        raise UnverifiedAuthor(sha, detail.author_login, self._username)

    def _finish_pull_request(self, event: PullRequestEvent, future: Future | None) -> None:
        additions = deletions = 0
        merged_at = event.merged_at
        if future is not None:
            try:
                detail = self._lookup(future, "pull request", make_key(event.repo, event.number))
            except DetailLookupFailed as e:
                self.logger.warning(f"Keeping pull request without line counts: {e}")
            else:
                additions = detail.additions
                deletions = detail.deletions
                if detail.merged_at is not None:
                    merged_at = detail.merged_at

        self._pull_requests.append(
            PullRequestRecord(
                number=event.number,
                repo=event.repo,
                title=event.title,
                url=event.url,
                state=event.state,
                created_at=event.opened_at,
                event_at=event.created_at,
                merged_at=merged_at,
                additions=additions,
                deletions=deletions,
                comments=event.comments,
            )
        )

    def _lookup(self, future: Future, kind: str, target: str):
        try:
            return self._await(future)
        except FetchCancelled:
            raise
        except Exception as e:
            raise DetailLookupFailed(kind, target, str(e)) from e

    # -- cancellation -------------------------------------------------------

    def _remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return self._deadline - self._clock()

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise FetchCancelled(self._username, "cancelled")
        remaining = self._remaining()
        if remaining is not None and remaining <= 0:
            raise FetchCancelled(self._username, f"deadline of {self.timeout:g}s exceeded")

    def _await(self, future: Future):
        """Wait for ``future`` while watching the cancel signal and deadline."""
        while True:
            self._check_cancelled()
            wait = _POLL_INTERVAL
            remaining = self._remaining()
            if remaining is not None:
                wait = min(wait, max(remaining, 0.0))
            try:
                return future.result(timeout=wait)
            except FutureTimeoutError:
                if future.done():
                    raise

    def _sleep(self, delay: float) -> None:
        remaining = self._remaining()
        if remaining is not None and delay >= remaining:
            raise FetchCancelled(self._username, f"deadline of {self.timeout:g}s exceeded")
        if self.cancel_event is not None:
            if self.cancel_event.wait(delay):
                raise FetchCancelled(self._username, "cancelled")
        else:
            self._sleep_fn(delay)


def _reaches_before(events: list[dict], since: datetime) -> bool:
    """Return True if any timestamped event on the page is older than ``since``."""
    for raw in events:
        timestamp = event_timestamp(raw)
        if timestamp is not None and timestamp < since:
            return True
    return False
