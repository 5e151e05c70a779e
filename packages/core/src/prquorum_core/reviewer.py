"""Entry point that wires a full review run from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from rich.console import Console

from prquorum_core.flags import FeatureFlags
from prquorum_core.gh.pull_request import GitHubClient
from prquorum_core.models import InternalReviewComment
from prquorum_core.notify import build_notifier
from prquorum_core.orchestrator import ReviewContext, ReviewOrchestrator
from prquorum_core.posting import Recorder, ReviewPoster, TieredFilter
from prquorum_core.providers.registry import build_backends
from prquorum_core.tokens import TokenBudgetService
from prquorum_core.utils.context import RepoContextAssembler

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class ReviewSummary:
    """Result returned by run_review.

    Decoupled from prquorum_store; the CLI persists posted comments through
    the recorder callback it passes in.
    """

    repo: str
    pr_number: int
    head_sha: str
    reviewed_files: list[str] = field(default_factory=list)
    posted: list[InternalReviewComment] = field(default_factory=list)
    filtered: list[InternalReviewComment] = field(default_factory=list)
    approved: bool = False
    skipped: bool = False
    error: str | None = None
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def build_context(repo: str, config: dict, repo_obj=None, backends=None) -> ReviewContext:
    return ReviewContext(
        repo=repo,
        company_id=config.get("company_id", "default"),
        config=config,
        vcs=GitHubClient(repo, token=config.get("github_token"), repo_obj=repo_obj),
        flags=FeatureFlags(config.get("flags")),
        tokens=TokenBudgetService(),
        notifier=build_notifier(config),
        backends=backends if backends is not None else build_backends(config),
    )


def print_shadow_comments(comments: list[InternalReviewComment]) -> None:
    """Print review comments to the terminal without posting to GitHub."""
    if not comments:
        console.print("[yellow]Shadow mode: no comments generated.[/yellow]")
        return
    console.print(f"\n[bold]Shadow review — {len(comments)} comment(s) (not posted)[/bold]\n")
    for c in comments:
        status = f"[red]REJECTED ({c.rejection_model})[/red]" if c.is_rejected else "[green]OK[/green]"
        console.print(
            f"[bold cyan]{c.path}[/bold cyan]  line [bold]{c.line}[/bold]  "
            f"[dim]{c.provider}/{c.model}[/dim]  {status}"
        )
        console.print(f"  {c.body}")
        if c.is_rejected:
            console.print(f"  [dim]reason: {c.rejection_reason}[/dim]")
        console.print()


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    shadow: bool = False,
    skip_if_approved: bool = False,
    dedupe: bool = False,
    recorder: Recorder | None = None,
    repo_obj=None,
    backends=None,
) -> ReviewSummary:
    """Review a pull request end to end and return a ReviewSummary.

    Raises PullRequestFetchError when the PR or its files cannot be fetched.
    A dispatch failure is reported in ``summary.error`` instead.
    """
    ctx = build_context(repo, config, repo_obj=repo_obj, backends=backends)
    orchestrator = ReviewOrchestrator(ctx)
    assembler = RepoContextAssembler(ctx.vcs.repo, config)

    outcome = orchestrator.review(pr_number, assembler=assembler, skip_if_approved=skip_if_approved, dedupe=dedupe)
    head_sha = outcome.request.head_sha if outcome.request else ""
    summary = ReviewSummary(
        repo=repo,
        pr_number=pr_number,
        head_sha=head_sha,
        reviewed_files=[f.filename for f in outcome.files],
        skipped=outcome.skipped,
    )
    if outcome.skipped:
        return summary
    if outcome.error is not None:
        console.print(f"[red]Review generation failed: {outcome.error}[/red]")
        summary.error = str(outcome.error)
        return summary

    if shadow:
        print_shadow_comments(outcome.comments)
        summary.filtered = [c for c in outcome.comments if c.is_rejected]
        return summary

    poster = ReviewPoster(
        ctx.vcs,
        ctx.flags,
        ctx.company_id,
        ctx.notifier,
        approver=ctx.primary_backend,
        tiered_filter=TieredFilter(config.get("policies")),
        recorder=recorder,
    )
    result = poster.post(outcome.request, outcome.comments)
    summary.posted = result.posted
    summary.filtered = result.filtered
    summary.approved = result.approved

    console.print(f"\n[green]Posted {len(result.posted)} comment(s); {len(result.filtered)} filtered.[/green]")
    if result.approved:
        console.print("[green]Pull request approved.[/green]")
    return summary
