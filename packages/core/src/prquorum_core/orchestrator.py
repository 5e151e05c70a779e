"""Review orchestration: fetch → context → dispatch → validate.

All collaborators travel in an explicit ReviewContext rather than module
globals, so each stage can be built and tested on its own.

Failure handling per step:
  - PR metadata and file list: fatal, raised as PullRequestFetchError
  - existing comments, author context, extra context, flag lookups,
    duplicate detection: logged, replaced by a safe default
  - dispatch: returned in ReviewOutcome.error together with the files
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

from rich.console import Console

from prquorum_core import flags as flag_names
from prquorum_core.caller import RetryingModelCaller
from prquorum_core.classify import CommentClassifier
from prquorum_core.config import backend_setting
from prquorum_core.dedupe import mark_duplicates
from prquorum_core.dispatch import MultiModelDispatcher
from prquorum_core.flags import FeatureFlags
from prquorum_core.models import AuthorContext, InternalReviewComment, PullRequestFile, ReviewOutcome, ReviewRequest
from prquorum_core.notify import Notifier
from prquorum_core.parsing import has_suggestion
from prquorum_core.prompts import PromptBundle
from prquorum_core.providers.base import BackendCaller
from prquorum_core.tokens import TokenBudgetService
from prquorum_core.utils.code import is_code_file
from prquorum_core.utils.context import ContextAssembler, strip_error_sections
from prquorum_core.validation import InappropriatenessValidator, ModelValidator, ValidationPipeline

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_TOKEN_CEILING = 100_000

SUGGESTION_DISCLAIMER = "> _This suggestion was generated automatically. Review it carefully before committing it._"


@dataclass
class ReviewContext:
    repo: str
    company_id: str
    config: dict
    vcs: object
    flags: FeatureFlags
    tokens: TokenBudgetService
    notifier: Notifier
    backends: dict[str, BackendCaller]

    @property
    def primary(self) -> str:
        return self.config["primary_backend"]

    @property
    def primary_backend(self) -> BackendCaller:
        return self.backends[self.primary]

    def token_ceiling(self, backend: str) -> int:
        return backend_setting(self.config, backend, "token_ceiling", DEFAULT_TOKEN_CEILING)

    def is_enabled(self, flag: str) -> bool:
        return self.flags.is_enabled(flag, self.company_id)


def build_dispatcher(ctx: ReviewContext) -> MultiModelDispatcher:
    callers = {
        name: RetryingModelCaller(backend, ctx.tokens, ctx.notifier, ceiling=ctx.token_ceiling(name))
        for name, backend in ctx.backends.items()
    }
    return MultiModelDispatcher(
        callers,
        primary=ctx.primary,
        classifier=CommentClassifier(ctx.primary_backend),
        timeout=ctx.config.get("backend_timeout_seconds"),
    )


def build_validation_pipeline(ctx: ReviewContext) -> ValidationPipeline:
    passes = [(flag_names.VALIDATION_PASS, ModelValidator(ctx.primary_backend))]

    second = ctx.backends.get(ctx.config.get("second_validation_backend") or "")
    if second is not None:
        passes.append((flag_names.VALIDATION_SECOND_PASS, ModelValidator(second)))

    third = ctx.backends.get(ctx.config.get("third_validation_backend") or "")
    if third is not None:
        variant = ctx.config.get("validation_model")
        if variant:
            third = third.with_model(variant)
        passes.append((flag_names.VALIDATION_THIRD_PASS, ModelValidator(third)))

    return ValidationPipeline(
        ctx.flags,
        ctx.company_id,
        passes,
        inappropriateness=InappropriatenessValidator(ctx.primary_backend),
        bot_login=ctx.config.get("bot_login", ""),
    )


def build_author_context(vcs, request: ReviewRequest) -> AuthorContext:
    comments = vcs.get_author_comments(request.pr_number, request.author) if request.author else []
    return AuthorContext(
        description=request.body,
        author_comments=comments,
        has_content=bool(request.body.strip() or comments),
    )


def combined_patch(files: list[PullRequestFile]) -> str:
    return "\n".join(f"--- {f.filename}\n{f.patch}" for f in files if f.patch)


def add_suggestion_disclaimers(comments: list[InternalReviewComment]) -> None:
    for comment in comments:
        if comment.is_rejected or not has_suggestion(comment.body):
            continue
        if SUGGESTION_DISCLAIMER in comment.body:
            continue
        comment.body = f"{comment.body.rstrip()}\n\n{SUGGESTION_DISCLAIMER}"


class ReviewOrchestrator:
    def __init__(
        self,
        ctx: ReviewContext,
        dispatcher: MultiModelDispatcher | None = None,
        pipeline: ValidationPipeline | None = None,
    ):
        self.ctx = ctx
        self.dispatcher = dispatcher or build_dispatcher(ctx)
        self.pipeline = pipeline or build_validation_pipeline(ctx)

    def review(
        self,
        pr_number: int,
        assembler: ContextAssembler | None = None,
        skip_if_approved: bool = False,
        dedupe: bool = False,
    ) -> ReviewOutcome:
        ctx = self.ctx
        request = ctx.vcs.get_review_request(pr_number)

        if skip_if_approved:
            try:
                if ctx.vcs.has_approving_review(pr_number):
                    console.print(f"[yellow]PR #{pr_number} is already approved. Nothing to do.[/yellow]")
                    return ReviewOutcome(skipped=True, request=request)
            except Exception as e:
                logger.warning("Could not check existing approvals for PR #%d; reviewing anyway: %s", pr_number, e)

        files = ctx.vcs.get_files(pr_number)
        request = dataclasses.replace(request, files=tuple(files))
        console.print(f"[cyan]Reviewing {request.full_name}#{pr_number}: {len(files)} changed file(s)[/cyan]")

        # Prior comments always feed validation; dedupe only decides whether
        # they are also used to suppress repeats.
        try:
            prior = ctx.vcs.get_review_comments(pr_number)
        except Exception as e:
            logger.warning("Could not fetch existing comments; continuing without them: %s", e)
            prior = []
        existing = prior if dedupe else []

        try:
            author_context = build_author_context(ctx.vcs, request)
        except Exception as e:
            logger.warning("Could not build author context: %s", e)
            author_context = AuthorContext.empty()

        extra: dict = {}
        if assembler is not None:
            try:
                extra = assembler.assemble(request, ctx.company_id) or {}
            except Exception as e:
                logger.warning("Context assembly failed; continuing without extra context: %s", e)
        extra = strip_error_sections(extra)

        try:
            separate_dedupe = ctx.is_enabled(flag_names.SEPARATE_DUPLICATE_DETECTION)
        except Exception as e:
            logger.warning("Flag lookup failed; folding existing comments into the prompt: %s", e)
            separate_dedupe = False

        enabled = {
            name: ctx.is_enabled(flag_names.dispatch_flag(name)) for name in ctx.backends if name != ctx.primary
        }
        # Every launched backend receives the same prompt; size it to the smallest window.
        ceiling = min(ctx.token_ceiling(name) for name in [ctx.primary, *(n for n, on in enabled.items() if on)])

        bundle = PromptBundle(
            request=request,
            files=tuple(f for f in files if is_code_file(f.filename)),
            persona=ctx.config.get("persona"),
            author_context=author_context,
            context=extra,
            existing_comments=() if separate_dedupe else tuple(existing),
        )
        system, user = ctx.tokens.prune(bundle, ceiling)
        logger.debug("Prompt budget: %s", ctx.tokens.budget(system, user, ceiling))

        try:
            comments = self.dispatcher.dispatch(bundle, system, user, request.head_sha, combined_patch(files), enabled)
        except Exception as e:
            logger.error("Review generation failed for PR #%d: %s", pr_number, e)
            return ReviewOutcome(
                files=files,
                error=e,
                request=request,
                prior_comments=prior,
                author_context=author_context,
            )

        if separate_dedupe and existing:
            try:
                mark_duplicates(comments, existing)
            except Exception as e:
                logger.warning("Duplicate detection failed: %s", e)

        comments = self.pipeline.run(comments, files, author_context, prior)
        add_suggestion_disclaimers(comments)

        live = sum(1 for c in comments if not c.is_rejected)
        console.print(f"  {len(comments)} comment(s) generated, {live} passed validation.")
        return ReviewOutcome(
            comments=comments,
            files=files,
            request=request,
            prior_comments=prior,
            author_context=author_context,
        )
