"""Label filtering for pull requests."""

from collections.abc import Iterable


def normalize_labels(labels: Iterable[str]) -> frozenset[str]:
    """Return labels case-folded and stripped, with empty names dropped."""
    return frozenset(name.strip().casefold() for name in labels if name.strip())


def has_all_labels(required: Iterable[str], labels: Iterable[str]) -> bool:
    """Check that every required label is present, ignoring case.

    An empty ``required`` set means no filter: every pull request matches.

    Args:
        required: Label names that must all be present.
        labels: Label names carried by the pull request.

    Returns:
        True if no required label is missing.
    """
    return normalize_labels(required) <= normalize_labels(labels)
