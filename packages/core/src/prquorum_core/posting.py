"""Posting validated comments and the auto-approval decision."""

from __future__ import annotations

import logging
from typing import Callable

from prquorum_core import flags as flag_names
from prquorum_core import notify
from prquorum_core.flags import FeatureFlags
from prquorum_core.models import ApprovalVerdict, InternalReviewComment, PostOutcome, ReviewRequest
from prquorum_core.parsing import category_from_body, parse_approval_verdict
from prquorum_core.providers.base import BackendCaller

logger = logging.getLogger(__name__)

CATEGORY_TIERS = {
    "security": 1,
    "bug": 1,
    "performance": 2,
    "maintainability": 3,
    "style": 4,
    "documentation": 4,
}
_UNCLASSIFIED_TIER = 3

TIERED_FILTER_MODEL = "tiered_filter"
POST_FAILURE_MODEL = "post_failure"
GENERIC_APPROVAL_REASON = "Automated review found no issues in this pull request."

_APPROVAL_SYSTEM = """You decide whether a pull request can be approved automatically.
You are given the review comments that were raised and then withheld from posting.
Approve only if none of them points at a real defect the author must fix.

Answer in exactly one of these forms, nothing else:
approve: <short reason>
reject: <short reason>"""

# (comment, company_id) → None; persists one posted comment.
Recorder = Callable[[InternalReviewComment, str], None]


class TieredFilter:
    """Company-policy filter applied to comments no validator has vouched for.

    A policy is ``{max_tier: int, max_comments: int}``; companies without one
    use ``policies["default"]``. Comments above ``max_tier`` are dropped, then
    the rest is capped at ``max_comments``, keeping lower tiers first.
    """

    def __init__(self, policies: dict | None = None):
        self.policies = policies or {}

    def policy_for(self, company_id: str) -> dict:
        return self.policies.get(company_id) or self.policies.get("default") or {}

    def apply(
        self,
        comments: list[InternalReviewComment],
        company_id: str,
    ) -> tuple[list[InternalReviewComment], list[InternalReviewComment]]:
        policy = self.policy_for(company_id)
        max_tier = policy.get("max_tier")
        max_comments = policy.get("max_comments")

        kept, dropped = [], []
        for comment in comments:
            tier = CATEGORY_TIERS.get(comment.category, _UNCLASSIFIED_TIER)
            if max_tier is not None and tier > max_tier:
                comment.reject(f"Filtered by company policy: tier {tier} exceeds {max_tier}.", TIERED_FILTER_MODEL)
                dropped.append(comment)
            else:
                kept.append(comment)

        if max_comments is not None and len(kept) > max_comments:
            ranked = sorted(kept, key=lambda c: CATEGORY_TIERS.get(c.category, _UNCLASSIFIED_TIER))
            overflow = {id(c) for c in ranked[max_comments:]}
            for comment in kept:
                if id(comment) in overflow:
                    comment.reject(
                        f"Filtered by company policy: over the {max_comments} comment cap.",
                        TIERED_FILTER_MODEL,
                    )
                    dropped.append(comment)
            kept = [c for c in kept if id(c) not in overflow]

        return kept, dropped


def build_approval_message(comments: list[InternalReviewComment]) -> str:
    lines = [f"The automated review raised {len(comments)} comment(s), none of which were posted:", ""]
    for index, comment in enumerate(comments, 1):
        label = category_from_body(comment.body, comment.category or "general")
        lines.append(f"{index}. [{label}] `{comment.path}`:{comment.line}")
        lines.append(f"   {comment.body.strip()}")
        if comment.rejection_reason:
            lines.append(f"   (withheld: {comment.rejection_reason})")
    return "\n".join(lines)


class ReviewPoster:
    def __init__(
        self,
        vcs,
        flags: FeatureFlags,
        company_id: str,
        notifier: notify.Notifier,
        approver: BackendCaller | None = None,
        tiered_filter: TieredFilter | None = None,
        recorder: Recorder | None = None,
    ):
        self.vcs = vcs
        self.flags = flags
        self.company_id = company_id
        self.notifier = notifier
        self.approver = approver
        self.tiered_filter = tiered_filter or TieredFilter()
        self.recorder = recorder

    def post(self, request: ReviewRequest, comments: list[InternalReviewComment]) -> PostOutcome:
        """Post every comment that survives filtering; every input ends up posted or filtered."""
        outcome = PostOutcome()
        prospective: list[InternalReviewComment] = []
        unvetted: list[InternalReviewComment] = []

        for comment in comments:
            if comment.is_rejected:
                logger.info(
                    "Not posting %s:%d (%s): %s",
                    comment.path,
                    comment.line,
                    comment.rejection_model or "unknown",
                    comment.rejection_reason,
                )
                outcome.filtered.append(comment)
            elif comment.acceptance_reason:
                prospective.append(comment)
            else:
                unvetted.append(comment)

        kept, dropped = self.tiered_filter.apply(unvetted, self.company_id)
        outcome.filtered.extend(dropped)
        prospective.extend(kept)

        for comment in prospective:
            try:
                self.vcs.post_review_comment(request.pr_number, comment)
            except Exception as e:
                logger.warning("Failed to post comment on %s:%d: %s", comment.path, comment.line, e)
                comment.reject(f"Failed to post: {e}", POST_FAILURE_MODEL)
                outcome.filtered.append(comment)
                continue
            outcome.posted.append(comment)
            if self.recorder is not None:
                try:
                    self.recorder(comment, self.company_id)
                except Exception as e:
                    logger.warning("Could not persist posted comment %s: %s", comment.id, e)

        logger.info("Posted %d comment(s); %d filtered.", len(outcome.posted), len(outcome.filtered))

        if not outcome.posted and self.flags.is_enabled(flag_names.AUTO_APPROVE, self.company_id):
            self._approve_if_clean(request, comments, outcome)
        return outcome

    def decide(self, comments: list[InternalReviewComment]) -> ApprovalVerdict:
        if not comments:
            return ApprovalVerdict(approve=True, reason=GENERIC_APPROVAL_REASON)
        if self.approver is None:
            raise RuntimeError("no backend configured for approval decisions")
        raw = self.approver.call(_APPROVAL_SYSTEM, build_approval_message(comments))
        return parse_approval_verdict(raw)

    def _approve_if_clean(
        self,
        request: ReviewRequest,
        comments: list[InternalReviewComment],
        outcome: PostOutcome,
    ) -> None:
        try:
            verdict = self.decide(comments)
        except Exception as e:
            logger.warning("Approval decision failed for PR #%d; not approving: %s", request.pr_number, e)
            return
        outcome.verdict = verdict
        if not verdict.approve:
            logger.info("Approval declined for PR #%d: %s", request.pr_number, verdict.reason)
            return

        reason = verdict.reason or GENERIC_APPROVAL_REASON
        try:
            self.vcs.approve(request.pr_number, reason)
        except Exception as e:
            logger.warning("Could not approve PR #%d: %s", request.pr_number, e)
            return
        outcome.approved = True
        self.notifier.notify(notify.PR_APPROVED, f"Approved {request.full_name}#{request.pr_number}: {reason}")
