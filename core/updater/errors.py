"""Errors raised while handling a push event."""


class BranchUpdateError(Exception):
    """Base exception for branch update handling errors."""

    pass


class DecodeError(BranchUpdateError):
    """The webhook payload is not a well-formed push event."""

    pass


class AuthResolutionError(BranchUpdateError):
    """The push event carries no installation to authenticate as."""

    pass


class ListError(BranchUpdateError):
    """Listing the repository's open pull requests failed."""

    pass


class CompareError(BranchUpdateError):
    """Comparing a pull request's base and head failed."""

    def __init__(self, message: str, pr_number: int) -> None:
        super().__init__(message)
        self.pr_number = pr_number


class UpdateError(BranchUpdateError):
    """GitHub rejected a branch update.

    The originating client error is chained as ``__cause__``.
    """

    def __init__(self, message: str, pr_number: int) -> None:
        super().__init__(message)
        self.pr_number = pr_number


class CommentError(BranchUpdateError):
    """Posting a comment on a pull request failed."""

    def __init__(self, message: str, pr_number: int) -> None:
        super().__init__(message)
        self.pr_number = pr_number
