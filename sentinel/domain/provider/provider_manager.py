from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar
import time

import structlog
from pydantic import ValidationError

from sentinel.domain.models.errors import ConfigError, ProviderError
from sentinel.domain.models.provider_models import ProviderDescriptor, SwitchResult, DEFAULT_PROVIDER
from sentinel.domain.models.session_state import Turn
from sentinel.domain.persistence.contracts import ConfigStore, GlobalSelection
from sentinel.infrastructure.observability.logging import sentinel_logger, metrics
from .base_provider import BaseProvider
from .provider_registry import ProviderRegistry
from .rw_lock import ReadWriteLock

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ProviderManager:
    """Process-wide handle on the active AI provider.

    Calls capture the bound instance under a shared lock and talk to the
    backend outside it; a switch takes the lock exclusively only for the
    pointer swap, so calls already in flight finish against the old instance.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        selection: GlobalSelection,
        registry: Optional[ProviderRegistry] = None,
        default_provider: str = DEFAULT_PROVIDER
    ):
        self.config_store = config_store
        self.selection = selection
        self.registry = registry or ProviderRegistry()
        self.default_provider = self.registry.normalize(default_provider)
        self.registry.resolve(self.default_provider)
        self._lock = ReadWriteLock()
        self._provider: BaseProvider = self.registry.create(
            self.registry.default_descriptor(self.default_provider)
        )

    @property
    def active_name(self) -> str:
        return self._provider.name

    def known_providers(self) -> List[str]:
        return self.registry.known_providers()

    async def load(self) -> BaseProvider:
        """Bind the persisted selection, falling back to compiled-in defaults"""

        name = self.default_provider
        try:
            stored = await self.selection.load()
        except ConfigError as e:
            logger.warning("Provider selection unavailable, using default", error=e.message, provider=name)
            stored = None

        if stored:
            if self.registry.is_known(stored):
                name = self.registry.normalize(stored)
            else:
                logger.warning("Ignoring unknown stored provider", stored=stored, provider=name)

        provider = self.registry.create(await self._load_descriptor(name))
        async with self._lock.write():
            self._provider = provider

        logger.info("Provider loaded", provider=provider.name, model=provider.descriptor.model)
        return provider

    async def _load_descriptor(self, name: str) -> ProviderDescriptor:
        default = self.registry.default_descriptor(name)
        try:
            settings = await self.config_store.load(name)
        except ConfigError as e:
            logger.warning("Provider settings unavailable, using defaults", provider=name, error=e.message)
            return default

        if not settings:
            return default

        try:
            return ProviderDescriptor.from_settings(name, settings, default)
        except ValidationError as e:
            logger.warning("Malformed provider settings, using defaults", provider=name, error=str(e))
            return default

    async def current(self) -> BaseProvider:
        """Capture the bound provider instance"""

        async with self._lock.read():
            return self._provider

    async def _call(
        self,
        operation: str,
        func: Callable[[BaseProvider], Awaitable[T]],
        conversation_id: Optional[str] = None
    ) -> T:
        provider = await self.current()
        started = time.perf_counter()
        try:
            result = await func(provider)
        except ProviderError as e:
            duration_ms = (time.perf_counter() - started) * 1000
            metrics.increment_counter("provider.errors", tags={"provider": provider.name, "kind": e.kind})
            sentinel_logger.log_provider_call(
                provider.name, operation, conversation_id, duration_ms, success=False, error=e.message
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_latency(f"provider.{operation}", duration_ms, tags={"provider": provider.name})
        sentinel_logger.log_provider_call(provider.name, operation, conversation_id, duration_ms)
        return result

    async def ask(self, prompt: str) -> str:
        return await self._call("ask", lambda p: p.ask(prompt))

    async def ask_with_context(self, question: str, context: str) -> str:
        return await self.ask(f"Context:\n{context}\n\nQuestion: {question}")

    async def chat(self, transcript: List[Turn], conversation_id: Optional[str] = None) -> str:
        return await self._call("chat", lambda p: p.chat(transcript), conversation_id)

    async def list_models(self) -> List[str]:
        return await self._call("list_models", lambda p: p.list_models())

    async def count_tokens(self, text: str) -> int:
        provider = await self.current()
        return provider.count_tokens(text)

    async def describe(self) -> str:
        provider = await self.current()
        return provider.describe()

    async def _swap(self, provider: BaseProvider) -> BaseProvider:
        async with self._lock.write():
            previous = self._provider
            self._provider = provider
        return previous

    async def _persist_selection(self, name: str) -> Tuple[bool, Optional[str]]:
        try:
            await self.selection.save(name)
        except ConfigError as e:
            logger.warning("Provider selection not persisted", provider=name, error=e.message)
            return False, f"selection not saved ({e.message})"
        return True, None

    async def set_provider(self, name: str) -> SwitchResult:
        """Switch the active provider; unknown names leave the binding untouched"""

        self.registry.resolve(name)
        normalized = self.registry.normalize(name)

        provider = self.registry.create(await self._load_descriptor(normalized))
        previous = await self._swap(provider)

        persisted, warning = await self._persist_selection(normalized)
        sentinel_logger.log_provider_switch(previous.name, normalized, persisted, warning)

        return SwitchResult(
            provider=normalized,
            description=provider.describe(),
            persisted=persisted,
            warning=warning
        )

    async def update_settings(
        self,
        name: str,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
        credential: Optional[str] = None
    ) -> SwitchResult:
        """Replace a provider's descriptor and rebind it when it is active"""

        self.registry.resolve(name)
        normalized = self.registry.normalize(name)

        active = await self.current()
        if active.name == normalized:
            base = active.descriptor
        else:
            base = await self._load_descriptor(normalized)

        updates: Dict[str, Any] = {}
        if model:
            updates["model"] = model
        if endpoint:
            updates["endpoint"] = endpoint
        if credential is not None:
            updates["credential"] = credential
        descriptor = base.model_copy(update=updates)

        persisted, warning = True, None
        try:
            await self.config_store.save(normalized, descriptor.to_settings())
        except ConfigError as e:
            logger.warning("Provider settings not persisted", provider=normalized, error=e.message)
            persisted, warning = False, f"settings not saved ({e.message})"

        provider = self.registry.create(descriptor)
        if self.active_name == normalized:
            await self._swap(provider)

        logger.info("Provider settings updated", provider=normalized, model=descriptor.model, persisted=persisted)
        return SwitchResult(
            provider=normalized,
            description=provider.describe(),
            persisted=persisted,
            warning=warning
        )
