"""Pull request branch updater.

Reacts to pushes on a repository's default branch by merging the new
default branch into every eligible open pull request that fell behind.
"""

from .errors import (
    AuthResolutionError,
    BranchUpdateError,
    CommentError,
    CompareError,
    DecodeError,
    ListError,
    UpdateError,
)
from .handler import UPDATE_FAILED_TEMPLATE, BranchUpdateHandler, InstallationClientFactory
from .labels import has_all_labels, normalize_labels

__all__ = [
    # Handler
    "BranchUpdateHandler",
    "InstallationClientFactory",
    "UPDATE_FAILED_TEMPLATE",
    # Labels
    "has_all_labels",
    "normalize_labels",
    # Errors
    "BranchUpdateError",
    "DecodeError",
    "AuthResolutionError",
    "ListError",
    "CompareError",
    "UpdateError",
    "CommentError",
]
