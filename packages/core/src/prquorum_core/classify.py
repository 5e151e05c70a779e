"""Comment categorisation and the canonical category prefix."""

from __future__ import annotations

import re

from prquorum_core.errors import ClassificationError
from prquorum_core.providers.base import BackendCaller

CATEGORIES = ("bug", "security", "performance", "maintainability", "style", "documentation")

_SYSTEM = (
    "You label code review comments. Answer with exactly one word from this list: "
    + ", ".join(CATEGORIES)
    + ". No punctuation, no explanation."
)


class CommentClassifier:
    def __init__(self, backend: BackendCaller):
        self.backend = backend

    def classify(self, body: str, patch_text: str) -> str:
        user = f"## Review Comment\n{body}\n\n## Patch\n```diff\n{patch_text}\n```"
        try:
            raw = self.backend.call(_SYSTEM, user)
        except Exception as e:
            raise ClassificationError(f"classification call failed: {e}") from e
        label = raw.strip().strip(".`*[]\"'").lower()
        if label not in CATEGORIES:
            raise ClassificationError(f"unknown category {raw.strip()[:40]!r}")
        return label


def normalize_category_prefix(body: str, category: str) -> str:
    """Return ``body`` led by exactly one ``**[CATEGORY]**`` line and a blank line.

    Any existing ``[CATEGORY]`` or ``**[CATEGORY]**`` prefix for the same
    category is removed first, so applying this twice gives the same result
    as applying it once.
    """
    label = category.upper()
    escaped = re.escape(label)
    prefix_re = re.compile(rf"^\s*(?:\*\*\s*\[\s*{escaped}\s*\]\s*\*\*|\[\s*{escaped}\s*\])", re.IGNORECASE)
    rest = body or ""
    while True:
        stripped = prefix_re.sub("", rest, count=1)
        if stripped == rest:
            break
        rest = stripped
    rest = rest.lstrip()
    return f"**[{label}]**\n\n{rest}"
