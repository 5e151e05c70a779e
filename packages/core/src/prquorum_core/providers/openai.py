from __future__ import annotations

from openai import OpenAI

from prquorum_core.providers.base import BackendCaller


class OpenAICaller(BackendCaller):
    NAME = "openai"
    DEFAULT_MODEL = "gpt-4o"
    # Lower than Anthropic's 0.3 to lean toward deterministic JSON output.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        super().__init__(model)
        self.client = OpenAI(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        return response.choices[0].message.content or ""
