from typing import Dict, Any, List

from sentinel.domain.models.session_state import Turn, TurnRole
from .base_provider import BaseProvider

GEMINI_MODELS = ["gemini-pro", "gemini-1.5-pro", "gemini-1.5-flash"]


class GeminiProvider(BaseProvider):
    """Google Gemini generateContent API"""

    display_name = "Gemini"

    @staticmethod
    def build_payload(transcript: List[Turn]) -> Dict[str, Any]:
        """Map turns to Gemini contents; system turns become the system instruction"""

        system_parts = [{"text": t.content} for t in transcript if t.role == TurnRole.SYSTEM]
        contents = [
            {
                "role": "model" if t.role == TurnRole.ASSISTANT else "user",
                "parts": [{"text": t.content}]
            }
            for t in transcript
            if t.role != TurnRole.SYSTEM
        ]

        payload: Dict[str, Any] = {"contents": contents}
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    async def _generate(self, payload: Dict[str, Any]) -> str:
        url = f"{self.descriptor.endpoint.rstrip('/')}/{self.descriptor.model}:generateContent"
        data = await self._request_json(
            "POST",
            url,
            json_body=payload,
            params={"key": self.descriptor.credential}
        )
        return self._extract_text(data, "candidates", 0, "content", "parts", 0, "text")

    async def ask(self, prompt: str) -> str:
        return await self._generate({"contents": [{"parts": [{"text": prompt}]}]})

    async def chat(self, transcript: List[Turn]) -> str:
        return await self._generate(self.build_payload(transcript))

    async def list_models(self) -> List[str]:
        return list(GEMINI_MODELS)
