from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional
from datetime import datetime
import math
import re

import httpx

from sentinel.domain.models.errors import ProviderError
from sentinel.domain.models.provider_models import ProviderDescriptor
from sentinel.domain.models.session_state import Turn

_WORD = re.compile(r"\S+")


def estimate_tokens(text: str) -> int:
    """Local token estimate: ~4 characters per token, never below the word count"""
    if not text:
        return 0
    return max(math.ceil(len(text) / 4), len(_WORD.findall(text)))


class BaseProvider(ABC):
    """Uniform capability surface over one AI backend.

    Implementations translate the Turn list into their wire format and turn
    any failure into a single ProviderError.
    """

    display_name: str = ""

    def __init__(self, descriptor: ProviderDescriptor, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.descriptor = descriptor
        self.transport = transport
        self.created_at = datetime.utcnow()

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    async def ask(self, prompt: str) -> str:
        """Single-shot question"""
        pass

    @abstractmethod
    async def chat(self, transcript: List[Turn]) -> str:
        """Multi-turn completion over the full transcript"""
        pass

    @abstractmethod
    async def list_models(self) -> List[str]:
        pass

    def count_tokens(self, text: str) -> int:
        return estimate_tokens(text)

    def describe(self) -> str:
        return f"{self.display_name} (Model: {self.descriptor.model})"

    def _client(self) -> httpx.AsyncClient:
        # One client per call; a replaced provider keeps serving in-flight calls
        return httpx.AsyncClient(transport=self.transport, timeout=None)

    async def _request_json(
        self,
        method: str,
        url: str,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """Send a request and return the decoded JSON object"""

        try:
            async with self._client() as client:
                response = await client.request(method, url, json=json_body, headers=headers, params=params)
        except httpx.HTTPError as e:
            raise ProviderError(f"Request failed: {e}", kind="network", provider=self.name) from e

        if response.status_code in (401, 403):
            raise ProviderError(f"Authentication failed: {response.status_code}", kind="auth", provider=self.name)
        if response.is_error:
            raise ProviderError(f"API Error: {response.status_code}", kind="api", provider=self.name)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Parse error: {e}", kind="parse", provider=self.name) from e

        if not isinstance(data, dict):
            raise ProviderError("Parse error: expected a JSON object", kind="parse", provider=self.name)
        return data

    def _extract_text(self, data: Dict[str, Any], *path: Any) -> str:
        """Walk a nested response, raising a parse error when the shape is wrong"""

        node: Any = data
        try:
            for key in path:
                node = node[key]
        except (KeyError, IndexError, TypeError):
            raise ProviderError("No content in response", kind="parse", provider=self.name)

        if not isinstance(node, str):
            raise ProviderError("No content in response", kind="parse", provider=self.name)
        return node

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "model": self.descriptor.model,
            "endpoint": self.descriptor.endpoint,
            "description": self.describe(),
            "created_at": self.created_at.isoformat()
        }
