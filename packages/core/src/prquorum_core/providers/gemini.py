from __future__ import annotations

from google import genai
from google.genai import types

from prquorum_core.providers.base import BackendCaller


class GeminiCaller(BackendCaller):
    NAME = "gemini"
    DEFAULT_MODEL = "gemini-2.5-flash"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        super().__init__(model)
        self.client = genai.Client(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=user_prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.TEMPERATURE,
                max_output_tokens=self.MAX_TOKENS,
            ),
        )
        return (response.text or "").strip()
