"""SQLiteStore: local file-based store of posted comments.

Schema:
  posted_comments: one row per comment successfully posted to GitHub,
                    indexed for the (company, repo, PR) lookups the history
                    command makes.
"""

from __future__ import annotations

import logging
import sqlite3

from prquorum_store.base import BaseStore
from prquorum_store.models import CommentRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS posted_comments (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id  TEXT NOT NULL,
    repo        TEXT NOT NULL,
    pr_number   INTEGER NOT NULL,
    path        TEXT NOT NULL,
    line        INTEGER NOT NULL,
    body        TEXT,
    category    TEXT,
    provider    TEXT,
    model       TEXT,
    commit_sha  TEXT,
    posted_at   TEXT
);
CREATE INDEX IF NOT EXISTS idx_posted_repo    ON posted_comments (repo);
CREATE INDEX IF NOT EXISTS idx_posted_pr      ON posted_comments (repo, pr_number);
CREATE INDEX IF NOT EXISTS idx_posted_company ON posted_comments (company_id, repo);
"""

_COLUMNS = ("company_id", "repo", "pr_number", "path", "line", "body", "category", "provider", "model", "commit_sha")


class SQLiteStore(BaseStore):
    """Stores posted comments in a local SQLite database file.

    The path defaults to `.prquorum.db` in the current working directory.
    Configure via .prquorum.yml: `store_path: /path/to/prquorum.db`.
    """

    def __init__(self, db_path: str = ".prquorum.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def save_comment(self, record: CommentRecord) -> None:
        self._conn.execute(
            """
            INSERT INTO posted_comments
              (company_id, repo, pr_number, path, line, body,
               category, provider, model, commit_sha, posted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (*(getattr(record, col) for col in _COLUMNS), record.posted_at),
        )
        self._conn.commit()

    def list_comments(
        self,
        repo: str,
        pr_number: int | None = None,
        company_id: str | None = None,
    ) -> list[CommentRecord]:
        query = "SELECT * FROM posted_comments WHERE repo=?"
        params: list = [repo]
        if pr_number is not None:
            query += " AND pr_number=?"
            params.append(pr_number)
        if company_id is not None:
            query += " AND company_id=?"
            params.append(company_id)
        rows = self._conn.execute(query + " ORDER BY posted_at, id", params).fetchall()
        return [self._row_to_record(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> CommentRecord:
        return CommentRecord(
            company_id=row["company_id"],
            repo=row["repo"],
            pr_number=row["pr_number"],
            path=row["path"],
            line=row["line"],
            body=row["body"] or "",
            category=row["category"] or "",
            provider=row["provider"] or "",
            model=row["model"] or "",
            commit_sha=row["commit_sha"] or "",
            posted_at=row["posted_at"] or "",
        )
