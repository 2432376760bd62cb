"""Exception types raised while collecting and reporting activity."""


class ActivityError(Exception):
    """Base class for all errors raised by github-activity-report."""


class EventSourceError(ActivityError):
    """An event source request failed at the transport or HTTP level."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SourceUnavailable(ActivityError):
    """A timeline page could not be fetched; the whole fetch is aborted."""

    def __init__(self, username: str, cursor: int | None, reason: str = ""):
        self.username = username
        self.cursor = cursor
        location = "first page" if cursor is None else f"page {cursor}"
        message = f"event timeline for {username} unavailable at {location}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MalformedEvent(ActivityError):
    """An event payload does not match the shape of its declared kind."""

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"malformed {kind}: {reason}")


class UnverifiedAuthor(ActivityError):
    """Neither the verified author nor committer of a commit is the target user."""

    def __init__(self, sha: str, author_login: str | None, username: str):
        self.sha = sha
        self.author_login = author_login
        self.username = username
        super().__init__(
            f"commit {sha[:7]} authored by {author_login or 'unknown'}, not {username}"
        )


class DetailLookupFailed(ActivityError):
    """A secondary commit or pull request lookup failed."""

    def __init__(self, kind: str, target: str, reason: str = ""):
        self.kind = kind
        self.target = target
        message = f"{kind} lookup failed for {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FetchCancelled(ActivityError):
    """The fetch was cancelled or ran past its deadline."""

    def __init__(self, username: str, reason: str):
        self.username = username
        self.reason = reason
        super().__init__(f"fetch for {username} aborted: {reason}")


class ConfigError(ActivityError):
    """The configuration file is missing required values or is invalid."""


class LLMError(ActivityError):
    """The text-generation backend returned an error."""


class NotifierError(ActivityError):
    """A chat webhook rejected a notification."""
