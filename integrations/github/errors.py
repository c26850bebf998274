"""Exceptions raised by the GitHub client."""

# Error text GitHub client libraries use for an HTTP 202 Accepted answer. Kept so callers that
# only see the error text can still recognise the condition.
UPDATE_SCHEDULED_SENTINEL = "job scheduled on GitHub side; try again later"


class GitHubError(Exception):
    """Base exception for GitHub integration errors."""

    pass


class AuthError(GitHubError):
    """Installation credentials could not be obtained."""

    pass


class GitHubAPIError(GitHubError):
    """A GitHub API call failed.

    Attributes:
        status_code: HTTP status of the failed response, or None when the
            request never produced one (timeouts, connection errors).
        message: Error message reported by GitHub, or the full error text
            when GitHub sent none.
    """

    def __init__(
        self,
        text: str,
        status_code: int | None = None,
        message: str | None = None,
    ) -> None:
        super().__init__(text)
        self.status_code = status_code
        self.message = text if message is None else message


class UpdateScheduledError(GitHubAPIError):
    """GitHub accepted a branch update but will run it asynchronously.

    The string form is the well-known sentinel; ``message`` holds the text
    GitHub returned in the response body.
    """

    def __init__(self, message: str = "", status_code: int | None = 202) -> None:
        super().__init__(UPDATE_SCHEDULED_SENTINEL, status_code, message)


def is_update_scheduled(error: BaseException) -> bool:
    """Check whether an error means the update was scheduled by GitHub.

    Args:
        error: Error raised by a branch update request.

    Returns:
        True for UpdateScheduledError or any error carrying the sentinel text.
    """
    return isinstance(error, UpdateScheduledError) or str(error) == UPDATE_SCHEDULED_SENTINEL
