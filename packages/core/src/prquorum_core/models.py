"""Data carried through a review run.

InternalReviewComment is the central entity: classification, validation and
posting record their decisions on it as field changes. A rejected comment is
never removed from a list; it carries a non-empty rejection_reason instead,
so the poster sees the full audit trail.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field


@dataclass(frozen=True)
class PullRequestFile:
    """One changed file of a pull request, as returned by the VCS."""

    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str = ""


@dataclass(frozen=True)
class ReviewRequest:
    """Pull request metadata fetched at the start of a review."""

    owner: str
    repo: str
    pr_number: int
    head_sha: str
    base_sha: str
    title: str = ""
    body: str = ""
    author: str = ""
    files: tuple[PullRequestFile, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class InternalReviewComment:
    path: str
    line: int
    body: str
    provider: str = ""
    model: str = ""
    commit_sha: str = ""
    start_line: int | None = None
    category: str = ""
    rejection_reason: str = ""
    rejection_model: str = ""
    acceptance_reason: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def first_line(self) -> int:
        if self.start_line is not None and self.start_line <= self.line:
            return self.start_line
        return self.line

    @property
    def is_rejected(self) -> bool:
        return bool(self.rejection_reason)

    def reject(self, reason: str, model: str) -> None:
        self.rejection_reason = reason
        self.rejection_model = model

    def accept(self, reason: str) -> None:
        self.acceptance_reason = reason


@dataclass
class ModelResult:
    """Outcome of one backend's review call.

    An empty comment list with no error means the backend found no issues.
    """

    backend: str
    comments: list[InternalReviewComment] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class TokenBudget:
    estimated: int
    ceiling: int
    # Only set on a token-mismatch retry.
    adjusted_ceiling: int | None = None

    @property
    def effective_ceiling(self) -> int:
        return self.adjusted_ceiling if self.adjusted_ceiling is not None else self.ceiling


@dataclass(frozen=True)
class ApprovalVerdict:
    approve: bool
    reason: str = ""


@dataclass(frozen=True)
class PriorComment:
    """A review comment already present on the pull request."""

    path: str
    line: int | None
    body: str
    author: str = ""
    is_bot: bool = False


@dataclass
class AuthorContext:
    """PR description plus the author's own earlier comments on the PR."""

    description: str = ""
    author_comments: list[str] = field(default_factory=list)
    has_content: bool = True

    @classmethod
    def empty(cls) -> AuthorContext:
        return cls(description="", author_comments=[], has_content=False)


@dataclass
class ReviewOutcome:
    """What the orchestrator hands back to its caller.

    ``error`` is set when dispatch failed after the files were fetched; the
    files are still returned so callers can report on them.
    """

    comments: list[InternalReviewComment] = field(default_factory=list)
    files: list[PullRequestFile] = field(default_factory=list)
    error: Exception | None = None
    skipped: bool = False
    request: ReviewRequest | None = None
    prior_comments: list[PriorComment] = field(default_factory=list)
    author_context: AuthorContext | None = None


@dataclass
class PostOutcome:
    posted: list[InternalReviewComment] = field(default_factory=list)
    filtered: list[InternalReviewComment] = field(default_factory=list)
    verdict: ApprovalVerdict | None = None
    approved: bool = False
