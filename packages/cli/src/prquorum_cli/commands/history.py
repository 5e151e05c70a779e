"""history command: display posted comments from the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.command("history")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, default=None, help="Filter by PR number.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.pass_context
def history_cmd(ctx, repo: str, pr_number: int | None, limit: int):
    """Show comments prquorum has posted on a repository.

    Only comments from the configured company are listed. Requires
    `store: sqlite` in .prquorum.yml.
    """
    from prquorum_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError("No store configured. Add 'store: sqlite' to .prquorum.yml.")

    company_id = ctx.obj["config"].get("company_id", "default")
    records = store.list_comments(repo, pr_number=pr_number, company_id=company_id)
    if not records:
        console.print("[yellow]No posted comments found.[/yellow]")
        return

    # Most recent first, capped at --limit.
    records = list(reversed(records))[:limit]

    table = Table(title=f"Posted Comments — {repo}", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Location", max_width=40)
    table.add_column("Category", width=16)
    table.add_column("Backend", width=24)
    table.add_column("Posted At", width=20)

    for r in records:
        table.add_row(
            f"#{r.pr_number}",
            f"{r.path}:{r.line}",
            r.category or "—",
            f"{r.provider}/{r.model}",
            r.posted_at[:19].replace("T", " "),
        )

    console.print(table)
