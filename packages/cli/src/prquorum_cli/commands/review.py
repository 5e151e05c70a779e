"""review command: run the multi-model review on a pull request."""

from __future__ import annotations

import click
from rich.console import Console

from prquorum_core.errors import ReviewError
from prquorum_core.models import InternalReviewComment
from prquorum_core.reviewer import run_review
from prquorum_store.models import CommentRecord

console = Console()


def _comment_to_record(comment: InternalReviewComment, company_id: str, repo: str, pr_number: int) -> CommentRecord:
    """Map a posted InternalReviewComment to a CommentRecord for the store.

    The CLI owns this mapping; prquorum_core has no store knowledge and
    prquorum_store has no core knowledge.
    """
    return CommentRecord(
        company_id=company_id,
        repo=repo,
        pr_number=pr_number,
        path=comment.path,
        line=comment.line,
        body=comment.body,
        category=comment.category,
        provider=comment.provider,
        model=comment.model,
        commit_sha=comment.commit_sha,
    )


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option(
    "--primary",
    type=click.Choice(["anthropic", "openai", "gemini"]),
    default=None,
    help="Primary backend. Overrides config file.",
)
@click.option("--skip-if-approved", is_flag=True, help="Do nothing if the PR already has an approving review.")
@click.option("--dedupe", is_flag=True, help="Skip comments that repeat existing PR comments.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print review comments without posting to GitHub.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int,
    primary: str | None,
    skip_if_approved: bool,
    dedupe: bool,
    shadow: bool,
):
    """Review a pull request with every enabled AI backend.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    For the anthropic backend
      OPENAI_API_KEY       For the openai backend
      GEMINI_API_KEY       For the gemini backend
    """
    config = dict(ctx.obj["config"])
    if primary:
        config["primary_backend"] = primary

    if not config.get("github_token"):
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    key_name = f"{config['primary_backend']}_api_key"
    if not config.get(key_name):
        raise click.UsageError(f"{key_name.upper()} environment variable is not set.")

    store = ctx.obj.get("store")

    def record(comment: InternalReviewComment, company_id: str) -> None:
        store.save_comment(_comment_to_record(comment, company_id, repo, pr_number))

    try:
        summary = run_review(
            repo=repo,
            pr_number=pr_number,
            config=config,
            shadow=shadow,
            skip_if_approved=skip_if_approved,
            dedupe=dedupe,
            recorder=record if store is not None else None,
        )
    except (ReviewError, ValueError) as e:
        raise click.ClickException(str(e))

    if summary.error:
        raise click.ClickException(f"Review of {repo}#{pr_number} failed: {summary.error}")
