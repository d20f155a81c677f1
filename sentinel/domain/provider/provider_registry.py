from typing import Dict, List, Optional, Type

import httpx

from sentinel.domain.models.errors import SessionError
from sentinel.domain.models.provider_models import ProviderDescriptor, DEFAULT_DESCRIPTORS
from .base_provider import BaseProvider
from .gemini_provider import GeminiProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider


class ProviderRegistry:
    """Closed lookup from provider name to backend implementation"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport
        self.kinds: Dict[str, Type[BaseProvider]] = {}
        self._register_builtin_kinds()

    def _register_builtin_kinds(self):
        for name, kind in (
            ("openai", OpenAIProvider),
            ("gemini", GeminiProvider),
            ("ollama", OllamaProvider),
        ):
            self.kinds[name] = kind

    @staticmethod
    def normalize(name: Optional[str]) -> str:
        return (name or "").strip().lower()

    def is_known(self, name: Optional[str]) -> bool:
        return self.normalize(name) in self.kinds

    def known_providers(self) -> List[str]:
        return sorted(self.kinds)

    def resolve(self, name: Optional[str]) -> Type[BaseProvider]:
        """Resolve a provider name, rejecting anything outside the known set"""

        normalized = self.normalize(name)
        if normalized not in self.kinds:
            raise SessionError(
                f"Unknown provider '{name}'. Available: {', '.join(self.known_providers())}"
            )
        return self.kinds[normalized]

    def default_descriptor(self, name: str) -> ProviderDescriptor:
        return DEFAULT_DESCRIPTORS[self.normalize(name)]

    def create(self, descriptor: ProviderDescriptor) -> BaseProvider:
        kind = self.resolve(descriptor.name)
        return kind(descriptor, transport=self.transport)
