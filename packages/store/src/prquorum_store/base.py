"""Abstract store interface.

The CLI depends on BaseStore, not on a concrete backend, so backends are
swappable without touching CLI code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prquorum_store.models import CommentRecord


class BaseStore(ABC):
    """Persistence for posted review comments."""

    @abstractmethod
    def save_comment(self, record: CommentRecord) -> None:
        """Persist one posted comment."""

    @abstractmethod
    def list_comments(
        self,
        repo: str,
        pr_number: int | None = None,
        company_id: str | None = None,
    ) -> list[CommentRecord]:
        """Return posted comments for a repo, oldest first, optionally filtered.

        Returns an empty list if none exist; never raises.
        """

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """
