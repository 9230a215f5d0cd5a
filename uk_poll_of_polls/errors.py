from typing import Optional


class PollOfPollsError(Exception):
    """Base error for the poll-of-polls pipeline."""


class FetchError(PollOfPollsError):
    """Raised when the source document cannot be retrieved."""

    def __init__(
        self, url: str, status: Optional[int] = None, reason: str = ""
    ) -> None:
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            message = f"Failed to fetch {url}: HTTP {status} {reason}".rstrip()
        else:
            message = f"Failed to fetch {url}: {reason}"
        super().__init__(message)


class BaselineError(PollOfPollsError):
    """Raised when a ward baseline file is missing or malformed."""
