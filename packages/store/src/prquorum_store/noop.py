"""No-op store, the default when no store is configured."""

from __future__ import annotations

from typing import TYPE_CHECKING

from prquorum_store.base import BaseStore

if TYPE_CHECKING:
    from prquorum_store.models import CommentRecord


class NoOpStore(BaseStore):
    """Discards every record; comments are posted to GitHub but kept nowhere else."""

    def save_comment(self, record: CommentRecord) -> None:
        pass

    def list_comments(
        self,
        repo: str,
        pr_number: int | None = None,
        company_id: str | None = None,
    ) -> list[CommentRecord]:
        return []
