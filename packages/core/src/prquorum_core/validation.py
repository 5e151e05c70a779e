"""Multi-pass validation of merged review comments.

Passes run strictly one after another; each returns the working list that
the next pass reads. A pass annotates comments (rejection or acceptance
reason) and never removes one. After the passes, two per-comment checks run
on everything not yet rejected: no-op suggestion detection, then the
inappropriateness check.
"""

from __future__ import annotations

import json
import logging

from prquorum_core import flags as flag_names
from prquorum_core.dedupe import is_duplicate
from prquorum_core.errors import ResponseParseError
from prquorum_core.flags import FeatureFlags
from prquorum_core.models import AuthorContext, InternalReviewComment, PriorComment, PullRequestFile
from prquorum_core.parsing import extract_suggestion, load_json
from prquorum_core.providers.base import BackendCaller
from prquorum_core.utils.diff import DiffHunk, get_patch_range_content, parse_patch

logger = logging.getLogger(__name__)

NO_OP_REASON = "Suggested change is identical to the code it targets."
NO_OP_MODEL = "no_op_detection"

_VALIDATOR_SYSTEM = """You are double-checking automated code review comments before they are posted.
For every comment decide whether it is correct, relevant to the diff and worth the author's time.

Respond with **only** a JSON list, one entry per comment id you were given:
[{"id": "<id>", "verdict": "accept" | "reject", "reason": "<one sentence>"}]"""

_INAPPROPRIATE_SYSTEM = """You check whether an automated review comment is inappropriate to post.
A comment is inappropriate if it is factually wrong about the diff, contradicts or repeats a
previous comment, addresses code the PR does not touch, or is not actionable.

Respond with **only** a JSON object: {"inappropriate": true | false, "reason": "<one sentence>"}"""


def _same_code(a: str, b: str) -> bool:
    left = [line.rstrip() for line in a.rstrip("\n").splitlines()]
    right = [line.rstrip() for line in b.rstrip("\n").splitlines()]
    return left == right


def is_no_op(comment: InternalReviewComment, patches: dict[str, str]) -> bool:
    """True when the comment's ```suggestion block equals the code it targets."""
    suggestion = extract_suggestion(comment.body)
    if suggestion is None:
        return False
    original = get_patch_range_content(patches.get(comment.path, ""), comment.first_line, comment.line)
    if original is None:
        return False
    return _same_code(suggestion, original)


def _target_code(comment: InternalReviewComment, patches: dict[str, str]) -> str:
    return get_patch_range_content(patches.get(comment.path, ""), comment.first_line, comment.line) or ""


class ModelValidator:
    """One model-backed validation pass."""

    def __init__(self, backend: BackendCaller):
        self.backend = backend

    def validate(
        self,
        comments: list[InternalReviewComment],
        files: list[PullRequestFile],
        author_context: AuthorContext | None,
    ) -> list[InternalReviewComment]:
        pending = [c for c in comments if not c.is_rejected]
        if not pending:
            return list(comments)

        patches = {f.filename: f.patch for f in files}
        payload = [
            {
                "id": c.id,
                "path": c.path,
                "start_line": c.first_line,
                "line": c.line,
                "category": c.category or "general",
                "body": c.body,
                "code": _target_code(c, patches),
            }
            for c in pending
        ]
        parts = []
        if author_context is not None and author_context.has_content:
            parts.append(f"## PR Description\n{author_context.description}")
        parts.append("## Comments\n" + json.dumps(payload, indent=2))
        raw = self.backend.call(_VALIDATOR_SYSTEM, "\n\n".join(parts))

        data = load_json(raw)
        if isinstance(data, dict) and isinstance(data.get("verdicts"), list):
            data = data["verdicts"]
        if not isinstance(data, list):
            raise ResponseParseError(f"validator returned {type(data).__name__}, expected a list")

        by_id = {c.id: c for c in pending}
        for entry in data:
            if not isinstance(entry, dict):
                continue
            comment = by_id.get(str(entry.get("id")))
            if comment is None:
                continue
            verdict = str(entry.get("verdict", "")).strip().lower()
            reason = str(entry.get("reason") or "").strip()
            if verdict == "reject":
                comment.reject(reason or "Rejected during validation.", self.backend.model)
            elif verdict == "accept":
                comment.accept(reason or "Accepted during validation.")
        return list(comments)


class InappropriatenessValidator:
    """Deterministic checks against the diff and earlier comments, then a model check."""

    def __init__(self, backend: BackendCaller):
        self.backend = backend

    def check(
        self,
        comment: InternalReviewComment,
        prior_comments: list[PriorComment],
        diff: dict[str, list[DiffHunk]],
    ) -> tuple[bool, str]:
        hunks = diff.get(comment.path)
        if not hunks:
            return True, "Comment targets a file that is not part of this diff."
        visible: set[int] = set()
        for hunk in hunks:
            visible.update(hunk.new_lines)
        if comment.line not in visible:
            return True, "Comment targets a line outside the diff."
        for prior in prior_comments:
            if is_duplicate(comment, prior):
                return True, f"Repeats an earlier comment by {prior.author or 'another reviewer'}."

        related = [p for p in prior_comments if p.path == comment.path]
        hunk_text = "\n".join(
            f"{n}: {text}" for hunk in hunks for n, text in sorted(hunk.new_lines.items()) if abs(n - comment.line) <= 10
        )
        user = (
            f"## Comment on `{comment.path}` lines {comment.first_line}-{comment.line}\n{comment.body}\n\n"
            f"## Surrounding New-File Lines\n{hunk_text}\n\n"
            "## Previous Comments On This File\n"
            + ("\n".join(f"- line {p.line} ({p.author}): {p.body}" for p in related) or "(none)")
        )
        data = load_json(self.backend.call(_INAPPROPRIATE_SYSTEM, user))
        if not isinstance(data, dict) or "inappropriate" not in data:
            raise ResponseParseError("inappropriateness check returned no verdict")
        return bool(data["inappropriate"]), str(data.get("reason") or "").strip()


class ValidationPipeline:
    def __init__(
        self,
        flags: FeatureFlags,
        company_id: str,
        passes: list[tuple[str, ModelValidator]],
        inappropriateness: InappropriatenessValidator | None = None,
        bot_login: str = "",
    ):
        self.flags = flags
        self.company_id = company_id
        self.passes = passes
        self.inappropriateness = inappropriateness
        self.bot_login = bot_login

    def run(
        self,
        comments: list[InternalReviewComment],
        files: list[PullRequestFile],
        author_context: AuthorContext | None = None,
        prior_comments: list[PriorComment] | None = None,
    ) -> list[InternalReviewComment]:
        working = list(comments)
        for flag, validator in self.passes:
            if not self.flags.is_enabled(flag, self.company_id):
                continue
            try:
                working = validator.validate(working, files, author_context)
            except Exception as e:
                logger.warning(
                    "Validation pass %s (%s) failed; keeping comments as they were: %s",
                    flag,
                    validator.backend.name,
                    e,
                )
                continue
            rejected = sum(1 for c in working if c.is_rejected)
            logger.info("Validation pass %s complete: %d/%d rejected.", flag, rejected, len(working))

        patches = {f.filename: f.patch for f in files}
        diff = {f.filename: parse_patch(f.patch) for f in files if f.patch}
        # Comments by other bots are noise for this comparison; ours stay in.
        human_comments = [p for p in (prior_comments or []) if not p.is_bot or p.author == self.bot_login]
        no_op_enabled = self.flags.is_enabled(flag_names.NO_OP_DETECTION, self.company_id)

        for comment in working:
            if comment.is_rejected:
                continue
            if no_op_enabled and is_no_op(comment, patches):
                comment.reject(NO_OP_REASON, NO_OP_MODEL)
                continue
            if self.inappropriateness is None:
                continue
            try:
                inappropriate, reason = self.inappropriateness.check(comment, human_comments, diff)
            except Exception as e:
                logger.warning(
                    "Inappropriateness check failed for %s:%d; leaving it as is: %s",
                    comment.path,
                    comment.line,
                    e,
                )
                continue
            if inappropriate:
                comment.reject(reason or "Deemed inappropriate to post.", self.inappropriateness.backend.model)
        return working
