from __future__ import annotations

from anthropic import Anthropic
from anthropic.types import TextBlock

from prquorum_core.providers.base import BackendCaller


class AnthropicCaller(BackendCaller):
    NAME = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    # Slightly higher than OpenAI for more natural phrasing in comments.
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, model: str | None = None):
        super().__init__(model)
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
