"""Prompt construction for the review call.

A PromptBundle holds every input the prompts are rendered from. Keeping the
inputs (rather than only the rendered strings) lets the token budget service
re-render a smaller pair by dropping sections when a backend rejects the
prompt as too long.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from prquorum_core.models import AuthorContext, PriorComment, PullRequestFile, ReviewRequest

PERSONAS = {
    "strict": "You are a strict senior reviewer. Flag every correctness and security problem you can justify.",
    "mentor": "You are a patient mentor. Explain the reasoning behind each issue so the author learns from it.",
    "security": "You are an application-security reviewer. Prioritise injection, authz, secrets and unsafe input handling.",
}

_BASE_SYSTEM = """You are a precise senior code reviewer working on a pull request.

Rules:
- Focus on added lines (starting with '+') for direct violations.
- Also consider implications of removed lines (starting with '-'), e.g. deleted null checks,
  removed error handling, dropped permission guards.
- Do not comment on code that already follows best practices.
- Do not repeat issues already raised in existing review comments.
- Avoid assumptions when context is unclear. Be concise and actionable."""

_OUTPUT_FORMAT = """### Output Format:
Respond with **only** a valid JSON list:

[
  {
    "path": "<file path exactly as shown in the diff>",
    "line": <last line of the target range in the new file (integer)>,
    "start_line": <first line of the target range, omit for single-line comments>,
    "body": "<concise, actionable comment in GitHub-flavored markdown>"
  }
]

When you propose a concrete replacement, put the full replacement for lines
start_line..line in a ```suggestion fenced block inside "body".

If there are no issues, return: []
Do not return any text outside the JSON block."""

# Context sections in the order they are dropped when pruning.
CONTEXT_DROP_ORDER = ("knowledge_base", "code_index", "language_signals", "dependency_graph")


@dataclass(frozen=True)
class PromptBundle:
    request: ReviewRequest
    files: tuple[PullRequestFile, ...]
    persona: str | None = None
    author_context: AuthorContext | None = None
    context: dict = field(default_factory=dict)
    existing_comments: tuple[PriorComment, ...] = ()
    # Per-file patch character cap applied when rendering; None = no cap.
    patch_limit: int | None = None

    def render(self) -> tuple[str, str]:
        return render_system(self), render_user(self)


def render_system(bundle: PromptBundle) -> str:
    persona = PERSONAS.get(bundle.persona or "")
    if persona:
        return f"{persona}\n\n{_BASE_SYSTEM}"
    return _BASE_SYSTEM


def _render_patch(patch: str, limit: int | None) -> str:
    if limit is not None and len(patch) > limit:
        return patch[:limit] + "\n... [diff truncated]"
    return patch


def _render_context_value(value) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def render_user(bundle: PromptBundle) -> str:
    request = bundle.request
    parts = [f"You are reviewing pull request #{request.pr_number} in `{request.full_name}`: {request.title}"]

    author = bundle.author_context
    if author is not None and author.has_content:
        parts.append(f"## PR Description\n{author.description or '(none)'}")
        if author.author_comments:
            notes = "\n".join(f"- {c}" for c in author.author_comments)
            parts.append(f"## Notes From The Author\n{notes}")

    for key, value in bundle.context.items():
        title = key.replace("_", " ").title()
        parts.append(f"## {title}\n{_render_context_value(value)}")

    if bundle.existing_comments:
        lines = [
            f"- `{c.path}`:{c.line if c.line is not None else '?'} ({c.author or 'unknown'}): {c.body.strip()}"
            for c in bundle.existing_comments
        ]
        parts.append("## Existing Review Comments\n" + "\n".join(lines))

    diff_blocks = []
    for f in bundle.files:
        if not f.patch:
            continue
        diff_blocks.append(f"### {f.filename} ({f.status})\n```diff\n{_render_patch(f.patch, bundle.patch_limit)}\n```")
    parts.append("## Diff\n" + "\n\n".join(diff_blocks))
    parts.append(_OUTPUT_FORMAT)
    return "\n\n".join(parts)
