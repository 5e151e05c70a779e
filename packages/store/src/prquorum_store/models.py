"""Posted-comment data models.

Decoupled from prquorum_core so the store layer can be used independently
and prquorum_core has no knowledge of persistence concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class CommentRecord:
    """One review comment that was successfully posted, scoped to a company.

    Created by the CLI's recorder callback right after the poster posts the
    comment to GitHub.
    """

    company_id: str
    repo: str
    pr_number: int
    path: str
    line: int
    body: str
    category: str = ""
    provider: str = ""
    model: str = ""
    commit_sha: str = ""
    posted_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())  # ISO-8601 UTC
