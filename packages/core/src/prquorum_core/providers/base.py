"""Backend callers: one raw request/response exchange with one AI provider.

Every provider exposes the same two things:
  - call(system, user) → raw text, raising on any failure
  - model             → identifier of the model currently bound

Retrying, parsing and stamping comments with provenance live in
prquorum_core.caller, so a provider stays a thin SDK adapter.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096


class BackendCaller(ABC):
    NAME: str = ""
    DEFAULT_MODEL: str = ""
    MAX_TOKENS: int = _MAX_TOKENS
    TEMPERATURE: float = 0.2

    def __init__(self, model: str | None = None):
        self._model = model or self.DEFAULT_MODEL

    @property
    def name(self) -> str:
        return self.NAME or self.__class__.__name__

    @property
    def model(self) -> str:
        return self._model

    def with_model(self, model: str) -> BackendCaller:
        """Return a caller sharing this one's client but bound to another model."""
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone._model = model
        return clone

    def call(self, system_prompt: str, user_prompt: str) -> str:
        logger.debug("%s: calling %s (%d chars)", self.name, self.model, len(system_prompt) + len(user_prompt))
        return self._call_api(system_prompt, user_prompt)

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        Should raise on failure; the provider's own error text is kept intact
        because token-mismatch recovery reads counts out of it.
        """
