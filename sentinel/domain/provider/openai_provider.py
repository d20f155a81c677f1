from typing import Dict, List

from sentinel.domain.models.session_state import Turn
from .base_provider import BaseProvider

OPENAI_MODELS = ["gpt-4o", "gpt-4-turbo", "gpt-3.5-turbo", "gpt-4o-mini"]


class OpenAIProvider(BaseProvider):
    """OpenAI chat completions API"""

    display_name = "OpenAI"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.descriptor.credential}"}

    async def _complete(self, messages: List[Dict[str, str]]) -> str:
        data = await self._request_json(
            "POST",
            f"{self.descriptor.endpoint.rstrip('/')}/chat/completions",
            json_body={"model": self.descriptor.model, "messages": messages},
            headers=self._headers()
        )
        return self._extract_text(data, "choices", 0, "message", "content")

    async def ask(self, prompt: str) -> str:
        return await self._complete([{"role": "user", "content": prompt}])

    async def chat(self, transcript: List[Turn]) -> str:
        return await self._complete([turn.to_message() for turn in transcript])

    async def list_models(self) -> List[str]:
        return list(OPENAI_MODELS)
