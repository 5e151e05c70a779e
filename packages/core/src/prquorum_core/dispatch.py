"""Concurrent multi-backend review dispatch.

One task per enabled backend runs inside an asyncio.TaskGroup. Every task
turns its own failure (exception or timeout) into a ModelResult carrying the
error, so the group always completes with exactly one result per launched
backend. The fan-in barrier never returns early and never drops a result.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor

from prquorum_core.caller import RetryingModelCaller
from prquorum_core.classify import CommentClassifier, normalize_category_prefix
from prquorum_core.errors import BackendError, ClassificationError, DispatchError
from prquorum_core.models import InternalReviewComment, ModelResult
from prquorum_core.prompts import PromptBundle

logger = logging.getLogger(__name__)


def comments_overlap(a: InternalReviewComment, b: InternalReviewComment) -> bool:
    """True when both comments target the same path with intersecting line ranges.

    A comment's range is [start_line, line] (inclusive), or just [line, line]
    when it has no start_line.
    """
    return a.path == b.path and a.first_line <= b.line and b.first_line <= a.line


def merge_results(results: list[ModelResult]) -> list[InternalReviewComment]:
    """Merge backend results given in priority order; the first result is the primary.

    The primary's comments are taken in full. A lower-priority comment is
    added only if its body is non-empty and it overlaps nothing merged so far.
    """
    merged: list[InternalReviewComment] = []
    for index, result in enumerate(results):
        if not result.ok:
            continue
        if index == 0:
            merged.extend(result.comments)
            continue
        for comment in result.comments:
            if not comment.body.strip():
                continue
            if any(comments_overlap(comment, existing) for existing in merged):
                logger.debug(
                    "Dropping %s comment on %s:%d (overlaps a higher-priority comment).",
                    result.backend,
                    comment.path,
                    comment.line,
                )
                continue
            merged.append(comment)
    return merged


class MultiModelDispatcher:
    def __init__(
        self,
        callers: dict[str, RetryingModelCaller],
        primary: str,
        classifier: CommentClassifier | None = None,
        timeout: float | None = None,
    ):
        if primary not in callers:
            raise ValueError(f"Primary backend {primary!r} has no caller.")
        self.callers = callers
        self.primary = primary
        self.classifier = classifier
        self.timeout = timeout

    def enabled_backends(self, enabled: dict[str, bool]) -> list[str]:
        """Backends to launch, in merge priority order. The primary is always first."""
        names = [self.primary]
        for name in self.callers:
            if name != self.primary and enabled.get(name, False):
                names.append(name)
        return names

    async def _run_one(
        self, executor: ThreadPoolExecutor, name: str, bundle: PromptBundle, system: str, user: str, commit_sha: str
    ) -> ModelResult:
        caller = self.callers[name]
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(executor, functools.partial(caller.call, bundle, system, user, commit_sha)),
                timeout=self.timeout,
            )
        except TimeoutError:
            logger.error("%s did not answer within %ss; treating as failed.", name, self.timeout)
            return ModelResult(backend=name, error=BackendError(name, f"timed out after {self.timeout}s"))
        except Exception as e:
            logger.error("%s dispatch task failed: %s", name, e)
            return ModelResult(backend=name, error=e)

    async def gather(
        self,
        bundle: PromptBundle,
        system: str,
        user: str,
        commit_sha: str,
        enabled: dict[str, bool],
    ) -> list[ModelResult]:
        names = self.enabled_backends(enabled)
        logger.info("Dispatching review to %d backend(s): %s", len(names), ", ".join(names))
        # Private pool: asyncio.run joins the default executor on exit, and a
        # timed-out backend call may still be running in it.
        executor = ThreadPoolExecutor(max_workers=len(names), thread_name_prefix="prquorum-dispatch")
        try:
            async with asyncio.TaskGroup() as group:
                tasks = {
                    name: group.create_task(self._run_one(executor, name, bundle, system, user, commit_sha))
                    for name in names
                }
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        results = [tasks[name].result() for name in names]
        if len(results) != len(names):
            raise RuntimeError(f"dispatch expected {len(names)} results, got {len(results)}")
        return results

    def dispatch(
        self,
        bundle: PromptBundle,
        system: str,
        user: str,
        commit_sha: str,
        patch_text: str,
        enabled: dict[str, bool],
    ) -> list[InternalReviewComment]:
        """Run every enabled backend, merge their comments and classify the result.

        Raises DispatchError only when every launched backend failed.
        """
        results = asyncio.run(self.gather(bundle, system, user, commit_sha, enabled))

        failures = {r.backend: r.error for r in results if not r.ok}
        if len(failures) == len(results):
            raise DispatchError(failures)
        for name, error in failures.items():
            logger.warning("Backend %s failed; continuing with the others: %s", name, error)

        merged = merge_results(results)
        logger.info("Merged %d comment(s) from %d backend(s).", len(merged), len(results) - len(failures))
        self.classify(merged, patch_text)
        return merged

    def classify(self, comments: list[InternalReviewComment], patch_text: str) -> None:
        if self.classifier is None:
            return
        for comment in comments:
            try:
                category = self.classifier.classify(comment.body, patch_text)
            except ClassificationError as e:
                logger.warning("Could not classify comment on %s:%d: %s", comment.path, comment.line, e)
                continue
            comment.category = category
            comment.body = normalize_category_prefix(comment.body, category)
