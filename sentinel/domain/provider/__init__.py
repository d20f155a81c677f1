from .base_provider import BaseProvider, estimate_tokens
from .openai_provider import OpenAIProvider
from .gemini_provider import GeminiProvider
from .ollama_provider import OllamaProvider
from .provider_registry import ProviderRegistry
from .provider_manager import ProviderManager
from .rw_lock import ReadWriteLock

__all__ = [
    "BaseProvider", "estimate_tokens",
    "OpenAIProvider", "GeminiProvider", "OllamaProvider",
    "ProviderRegistry", "ProviderManager", "ReadWriteLock",
]
