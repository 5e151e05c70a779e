"""Post-hoc duplicate detection against comments already on the PR."""

from __future__ import annotations

import difflib
import logging
import re

from prquorum_core.models import InternalReviewComment, PriorComment

logger = logging.getLogger(__name__)

DUPLICATE_MODEL = "duplicate_detection"
SIMILARITY_THRESHOLD = 0.70

_PREFIX_RE = re.compile(r"^\s*(?:\*\*)?\[[A-Z_ ]+\](?:\*\*)?\s*", re.IGNORECASE)


def _normalize(text: str) -> str:
    return " ".join(_PREFIX_RE.sub("", text or "").lower().split())


def is_similar(a: str, b: str, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    """Similar when one text contains the other or their difflib ratio reaches ``threshold``."""
    left, right = _normalize(a), _normalize(b)
    if not left or not right:
        return False
    if left in right or right in left:
        return True
    return difflib.SequenceMatcher(None, left, right).ratio() >= threshold


def is_duplicate(comment: InternalReviewComment, existing: PriorComment) -> bool:
    if comment.path != existing.path or existing.line is None:
        return False
    if not comment.first_line <= existing.line <= comment.line:
        return False
    return is_similar(comment.body, existing.body)


def mark_duplicates(
    comments: list[InternalReviewComment],
    existing: list[PriorComment],
) -> list[InternalReviewComment]:
    """Reject comments repeating an existing PR comment; nothing is removed."""
    marked = 0
    for comment in comments:
        if comment.is_rejected:
            continue
        match = next((e for e in existing if is_duplicate(comment, e)), None)
        if match is None:
            continue
        comment.reject(
            f"Duplicates an existing comment by {match.author or 'another reviewer'} on line {match.line}.",
            DUPLICATE_MODEL,
        )
        marked += 1
    if marked:
        logger.info("Marked %d comment(s) as duplicates of existing PR comments.", marked)
    return comments
