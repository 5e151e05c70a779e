"""Exception types raised by the review engine."""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for every error the review engine raises on purpose."""


class PullRequestFetchError(ReviewError):
    """PR metadata or the changed-file list could not be fetched.

    Fatal: no review is possible without them.
    """


class BackendError(ReviewError):
    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class ResponseParseError(ReviewError):
    """A backend answered, but not with a usable comment array."""


class DispatchError(ReviewError):
    """Every enabled backend failed during dispatch."""

    def __init__(self, failures: dict[str, Exception]):
        self.failures = failures
        detail = "; ".join(f"{name}: {err}" for name, err in failures.items())
        super().__init__(f"all {len(failures)} enabled backend(s) failed: {detail}")


class ClassificationError(ReviewError):
    pass


class VerdictParseError(ReviewError):
    """Approval response did not match `approve[: reason]` or `reject: reason`."""
