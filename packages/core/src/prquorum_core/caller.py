"""One backend call with a single token-mismatch recovery.

Protocol:
    call backend ─ ok ──────────────────────────────→ parse → stamp → ModelResult
                 └ error → provider token count found? ─ no → notify, return error
                                                       └ yes → notify mismatch,
                                                               re-prune to the adjusted
                                                               ceiling, call once more,
                                                               notify outcome

There is never a third attempt, whatever the retry returns.
"""

from __future__ import annotations

import dataclasses
import logging

from prquorum_core import notify
from prquorum_core.errors import BackendError, ResponseParseError
from prquorum_core.models import InternalReviewComment, ModelResult
from prquorum_core.parsing import parse_comment_items
from prquorum_core.prompts import PromptBundle
from prquorum_core.providers.base import BackendCaller
from prquorum_core.tokens import TokenBudgetService, adjusted_ceiling, extract_actual_token_count

logger = logging.getLogger(__name__)


class RetryingModelCaller:
    def __init__(
        self,
        backend: BackendCaller,
        tokens: TokenBudgetService,
        notifier: notify.Notifier,
        ceiling: int,
    ):
        self.backend = backend
        self.tokens = tokens
        self.notifier = notifier
        self.ceiling = ceiling

    @property
    def name(self) -> str:
        return self.backend.name

    def call(self, bundle: PromptBundle, system: str, user: str, commit_sha: str) -> ModelResult:
        try:
            raw = self.backend.call(system, user)
        except Exception as e:
            return self._recover(bundle, system, user, commit_sha, e)
        return self._to_result(raw, commit_sha)

    def _recover(
        self,
        bundle: PromptBundle,
        system: str,
        user: str,
        commit_sha: str,
        error: Exception,
    ) -> ModelResult:
        actual = extract_actual_token_count(error)
        if actual is None:
            self.notifier.notify(
                notify.UNKNOWN_FAILURE,
                f"{self.name} ({self.backend.model}) failed and the cause could not be determined: {error}",
            )
            return ModelResult(backend=self.name, error=BackendError(self.name, str(error)))

        budget = self.tokens.budget(system, user, self.ceiling)
        budget = dataclasses.replace(budget, adjusted_ceiling=adjusted_ceiling(budget, actual))
        self.notifier.notify(
            notify.TOKEN_MISMATCH,
            f"{self.name} reported {actual} tokens against an estimate of {budget.estimated}; "
            f"retrying with ceiling {budget.effective_ceiling} (was {budget.ceiling}).",
        )

        retry_system, retry_user = self.tokens.prune(bundle, budget.effective_ceiling)
        try:
            raw = self.backend.call(retry_system, retry_user)
        except Exception as retry_error:
            self.notifier.notify(
                notify.RETRY_FAILED,
                f"{self.name} retry with reduced ceiling {budget.effective_ceiling} failed: {retry_error}",
            )
            return ModelResult(backend=self.name, error=BackendError(self.name, str(retry_error)))

        self.notifier.notify(
            notify.RETRY_SUCCEEDED,
            f"{self.name} retry with reduced ceiling {budget.effective_ceiling} succeeded.",
        )
        return self._to_result(raw, commit_sha)

    def _to_result(self, raw: str, commit_sha: str) -> ModelResult:
        try:
            items = parse_comment_items(raw)
        except ResponseParseError as e:
            logger.warning("%s: discarding unparseable response: %s", self.name, e)
            return ModelResult(backend=self.name, error=e)

        comments = [
            InternalReviewComment(
                path=item["path"],
                line=item["line"],
                start_line=item["start_line"],
                body=item["body"],
                provider=self.name,
                model=self.backend.model,
                commit_sha=commit_sha,
            )
            for item in items
        ]
        logger.debug("%s produced %d comment(s).", self.name, len(comments))
        return ModelResult(backend=self.name, comments=comments)
