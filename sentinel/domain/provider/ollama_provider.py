from typing import List

from sentinel.domain.models.errors import ProviderError
from sentinel.domain.models.session_state import Turn
from .base_provider import BaseProvider


class OllamaProvider(BaseProvider):
    """Local Ollama server"""

    display_name = "Ollama"

    @property
    def api_url(self) -> str:
        return self.descriptor.endpoint.rstrip("/")

    @property
    def tags_url(self) -> str:
        # Endpoint normally ends in /api; the tags route lives under the server root
        base = self.api_url
        if base.endswith("/api"):
            base = base[:-len("/api")]
        return f"{base}/api/tags"

    async def ask(self, prompt: str) -> str:
        data = await self._request_json(
            "POST",
            f"{self.api_url}/generate",
            json_body={"model": self.descriptor.model, "prompt": prompt, "stream": False}
        )
        return self._extract_text(data, "response")

    async def chat(self, transcript: List[Turn]) -> str:
        data = await self._request_json(
            "POST",
            f"{self.api_url}/chat",
            json_body={
                "model": self.descriptor.model,
                "messages": [turn.to_message() for turn in transcript],
                "stream": False
            }
        )
        return self._extract_text(data, "message", "content")

    async def list_models(self) -> List[str]:
        data = await self._request_json("GET", self.tags_url)

        models = data.get("models")
        if not isinstance(models, list):
            raise ProviderError("Invalid response format", kind="parse", provider=self.name)

        return [m["name"] for m in models if isinstance(m, dict) and isinstance(m.get("name"), str)]

    def describe(self) -> str:
        return f"Ollama (Model: {self.descriptor.model}, URL: {self.descriptor.endpoint})"
