"""Parsers for free-text model output."""

from __future__ import annotations

import json
import re

from prquorum_core.errors import ResponseParseError, VerdictParseError
from prquorum_core.models import ApprovalVerdict

_SUGGESTION_RE = re.compile(r"```suggestion[^\n]*\n(.*?)```", re.DOTALL)
_APPROVE_RE = re.compile(r"^approve\s*(?::\s*(?P<reason>.*))?$", re.IGNORECASE | re.DOTALL)
_REJECT_RE = re.compile(r"^reject\s*:\s*(?P<reason>.*\S.*)$", re.IGNORECASE | re.DOTALL)


def strip_fences(raw: str) -> str:
    # Strip only the outer ```json ... ``` fence the model wraps the response
    # in, never backticks inside string values.
    cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
    return re.sub(r"\s*```$", "", cleaned.strip())


def load_json(raw: str):
    """Decode a model's JSON answer, tolerating an outer markdown fence."""
    try:
        return json.loads(strip_fences(raw))
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"response is not valid JSON ({e.msg}): {raw[:200]!r}") from e


def parse_comment_items(raw: str) -> list[dict]:
    """Extract the list of raw comment dicts from a review response.

    Accepts a bare JSON list or an object wrapping it under ``comments``.
    Items missing a path, a positive integer line or a body are dropped;
    anything that is not a list of objects at all is a ResponseParseError.
    """
    data = load_json(raw)
    if isinstance(data, dict) and isinstance(data.get("comments"), list):
        data = data["comments"]
    if not isinstance(data, list):
        raise ResponseParseError(f"expected a JSON list of comments, got {type(data).__name__}")

    items = []
    for entry in data:
        if not isinstance(entry, dict):
            raise ResponseParseError(f"comment entries must be objects, got {type(entry).__name__}")
        path = entry.get("path") or entry.get("file")
        body = entry.get("body") or entry.get("comment")
        try:
            line = int(entry.get("line"))
        except (TypeError, ValueError):
            continue
        if not path or not body or line <= 0:
            continue
        start_line = entry.get("start_line")
        try:
            start_line = int(start_line) if start_line is not None else None
        except (TypeError, ValueError):
            start_line = None
        items.append({"path": str(path), "line": line, "start_line": start_line, "body": str(body)})
    return items


def extract_suggestion(body: str) -> str | None:
    """Return the contents of the first ```suggestion block, or None."""
    match = _SUGGESTION_RE.search(body or "")
    if match is None:
        return None
    return match.group(1)


def has_suggestion(body: str) -> bool:
    return "```suggestion" in (body or "")


def category_from_body(body: str, default: str = "general") -> str:
    """Best-effort category of a JSON-shaped comment body; ``default`` otherwise."""
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return default
    if isinstance(data, dict):
        category = data.get("category")
        if isinstance(category, str) and category.strip():
            return category.strip()
    return default


def parse_approval_verdict(text: str) -> ApprovalVerdict:
    """Parse ``approve[: reason]`` or ``reject: reason`` (prefix is case-insensitive).

    Any other shape, including ``approved`` or a reject without a reason,
    raises VerdictParseError.
    """
    cleaned = (text or "").strip()
    match = _APPROVE_RE.match(cleaned)
    if match:
        return ApprovalVerdict(approve=True, reason=(match.group("reason") or "").strip())
    match = _REJECT_RE.match(cleaned)
    if match:
        return ApprovalVerdict(approve=False, reason=match.group("reason").strip())
    raise VerdictParseError(f"unrecognised approval response: {cleaned[:200]!r}")
