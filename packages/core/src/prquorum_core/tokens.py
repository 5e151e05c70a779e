"""Token estimation and prompt pruning.

Estimation uses the ~4 characters per token rule of thumb. It is
deliberately cheap and provider-agnostic; when a provider disagrees and
rejects a prompt, the retrying caller reads the real count out of the error
and re-prunes with a corrected ceiling.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import re

from prquorum_core.models import TokenBudget
from prquorum_core.prompts import CONTEXT_DROP_ORDER, PromptBundle

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

# Share of the ceiling available to system + user content; the rest is left
# for the model's answer.
USER_SHARE = 0.75

# Multiplier applied to a provider-reported count when deriving a retry ceiling.
SAFETY_FACTOR = 1.1

_MIN_PATCH_CHARS = 200

_TOKEN_COUNT_PATTERNS = [
    # Anthropic: "prompt is too long: 208310 tokens > 200000 maximum"
    re.compile(r"prompt is too long:\s*(\d+)\s*tokens", re.IGNORECASE),
    # OpenAI: "... However, your messages resulted in 130532 tokens."
    re.compile(r"resulted in\s*(\d+)\s*tokens", re.IGNORECASE),
    # Gemini: "The input token count (1200000) exceeds the maximum ..."
    re.compile(r"input token count\s*\(?(\d+)\)?", re.IGNORECASE),
]


def extract_actual_token_count(error: BaseException | str) -> int | None:
    """Return the provider-reported prompt size from a rejection error, or None."""
    text = str(error)
    for pattern in _TOKEN_COUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def adjusted_ceiling(budget: TokenBudget, actual: int) -> int:
    """Scale the ceiling down by how far the estimate undershot the real count."""
    if actual <= 0 or budget.estimated <= 0:
        return budget.ceiling
    scaled = budget.ceiling * budget.estimated / (actual * SAFETY_FACTOR)
    return max(1, min(budget.ceiling, int(scaled)))


class TokenBudgetService:
    def estimate(self, text: str) -> int:
        return math.ceil(len(text) / CHARS_PER_TOKEN) if text else 0

    def user_allowance(self, system: str, ceiling: int) -> int:
        return int(ceiling * USER_SHARE) - self.estimate(system)

    def budget(self, system: str, user: str, ceiling: int) -> TokenBudget:
        return TokenBudget(estimated=self.estimate(system) + self.estimate(user), ceiling=ceiling)

    def prune(self, bundle: PromptBundle, ceiling: int) -> tuple[str, str]:
        """Render the bundle so the user message fits the allowance for ``ceiling``.

        Sections are dropped lowest-value first: extra context sections, then
        existing comments, then the author's notes. If that is not enough the
        per-file patch cap is halved until it fits or hits a floor. The
        system message is never pruned.
        """
        system, user = bundle.render()
        allowance = self.user_allowance(system, ceiling)
        if self.estimate(user) <= allowance:
            return system, user

        current = bundle
        for key in CONTEXT_DROP_ORDER:
            if key in current.context:
                current = dataclasses.replace(current, context={k: v for k, v in current.context.items() if k != key})
                system, user = current.render()
                if self.estimate(user) <= allowance:
                    return system, user

        if current.context:
            current = dataclasses.replace(current, context={})
            system, user = current.render()
            if self.estimate(user) <= allowance:
                return system, user

        if current.existing_comments:
            current = dataclasses.replace(current, existing_comments=())
            system, user = current.render()
            if self.estimate(user) <= allowance:
                return system, user

        if current.author_context is not None and current.author_context.author_comments:
            author = dataclasses.replace(current.author_context, author_comments=[])
            current = dataclasses.replace(current, author_context=author)
            system, user = current.render()
            if self.estimate(user) <= allowance:
                return system, user

        longest = max((len(f.patch) for f in current.files), default=0)
        limit = longest
        while limit > _MIN_PATCH_CHARS:
            limit = max(_MIN_PATCH_CHARS, limit // 2)
            current = dataclasses.replace(current, patch_limit=limit)
            system, user = current.render()
            if self.estimate(user) <= allowance:
                return system, user

        logger.warning(
            "Prompt still exceeds its allowance after pruning (%d > %d tokens).",
            self.estimate(user),
            allowance,
        )
        return system, user
