"""
Maps inbound chat text to session engine and provider manager operations.

Slash commands are handled here; any other text is a user turn for the
conversation's session.
"""

from typing import Awaitable, Callable, Dict, List, Optional, Tuple
import time

import structlog

from sentinel.domain.models.errors import ConfigError, EncodingError, ExecutorError, ProviderError, SessionError
from sentinel.domain.orchestration.core.session_engine import SessionEngine
from sentinel.domain.provider.provider_manager import ProviderManager
from sentinel.domain.tool.command_executor import TargetDirectory
from sentinel.domain.tool.discovery import DISCOVERY_QUESTION, discover
from sentinel.infrastructure.observability.logging import sentinel_logger
from .reply_events import reply_to_event
from .schema.events import BaseEvent, ErrorEvent, MarkdownEvent

logger = structlog.get_logger(__name__)

Handler = Callable[[str, str], Awaitable[BaseEvent]]

COMMANDS_INFO: List[Tuple[str, str]] = [
    ("/start <server>", "Start an AI session bound to a server"),
    ("/end", "End the current session"),
    ("/servers", "List configured servers"),
    ("/add <alias> <host> <user> [port]", "Add a server (key-based auth)"),
    ("/remove <alias>", "Remove a server"),
    ("/exec <alias> <command>", "Run a command on a server directly"),
    ("/discover <alias>", "Gather a server report and have the AI analyse it"),
    ("/provider [name]", "Show or switch the AI provider"),
    ("/config <provider> <model> [url]", "Set a provider's model and endpoint"),
    ("/models", "List available AI models"),
    ("/ai", "Show the current AI provider"),
    ("/tokens <text>", "Estimate the token count of text"),
    ("/ask <question>", "Ask the AI a one-off question"),
    ("/status", "Check service status"),
    ("/help", "Show this help message"),
]


class CommandRouter:
    """Turns operator input into exactly one outbound event.

    Known targets come from the directory when one is given, otherwise from
    the static ``targets`` list; with neither, any alias is accepted.
    """

    def __init__(
        self,
        engine: SessionEngine,
        providers: ProviderManager,
        targets: Optional[List[str]] = None,
        directory: Optional[TargetDirectory] = None
    ):
        self.engine = engine
        self.providers = providers
        self.targets = targets
        self.directory = directory
        self._handlers: Dict[str, Handler] = {
            "/start": self._start,
            "/end": self._end,
            "/servers": self._servers,
            "/add": self._add,
            "/remove": self._remove,
            "/exec": self._exec,
            "/discover": self._discover,
            "/provider": self._provider,
            "/config": self._config,
            "/models": self._models,
            "/ai": self._ai,
            "/tokens": self._tokens,
            "/ask": self._ask,
            "/status": self._status,
            "/help": self._help,
        }

    async def handle_text(self, conversation_id: str, text: str) -> BaseEvent:
        text = text.strip()
        try:
            if text.startswith("/"):
                command, _, argument = text.partition(" ")
                handler = self._handlers.get(command.lower())
                if handler is None:
                    return self._markdown(conversation_id, "Unknown command. Type /help for assistance.")
                return await handler(conversation_id, argument.strip())

            reply = await self.engine.user_input(conversation_id, text)
            return reply_to_event(conversation_id, reply)

        except (SessionError, EncodingError) as e:
            return self._error(conversation_id, e.message, "session_error")
        except ProviderError as e:
            return self._error(conversation_id, f"AI Error: {e.message}", "provider_error")

    async def handle_confirmation(self, conversation_id: str, label: str, token: Optional[str] = None) -> BaseEvent:
        try:
            reply = await self.engine.resolve(conversation_id, label, token)
        except (SessionError, EncodingError) as e:
            return self._error(conversation_id, e.message, "session_error")
        return reply_to_event(conversation_id, reply)

    def known_targets(self) -> Optional[List[str]]:
        if self.directory is not None:
            return self.directory.list_targets()
        return self.targets

    def _is_known(self, alias: str) -> bool:
        known = self.known_targets()
        return known is None or alias in known

    # Sessions

    async def _start(self, conversation_id: str, argument: str) -> BaseEvent:
        if not argument:
            return self._markdown(conversation_id, "Usage: /start <server>")
        if not self._is_known(argument):
            return self._markdown(conversation_id, f"Server '{argument}' not found.")
        reply = await self.engine.start(conversation_id, argument)
        return reply_to_event(conversation_id, reply)

    async def _end(self, conversation_id: str, argument: str) -> BaseEvent:
        if await self.engine.end(conversation_id):
            return self._markdown(conversation_id, "Session ended.")
        return self._markdown(conversation_id, "No active session.")

    # Servers

    async def _servers(self, conversation_id: str, argument: str) -> BaseEvent:
        known = self.known_targets()
        if not known:
            return self._markdown(conversation_id, "No servers configured.")
        lines = "\n".join(f"- {alias}" for alias in known)
        return self._markdown(conversation_id, f"Configured Servers:\n{lines}")

    async def _add(self, conversation_id: str, argument: str) -> BaseEvent:
        if self.directory is None:
            return self._markdown(conversation_id, "Server management is not available.")

        parts = argument.split()
        if len(parts) not in (3, 4) or (len(parts) == 4 and not parts[3].isdigit()):
            return self._markdown(conversation_id, "Usage: /add <alias> <host> <user> [port]")
        alias, host, user = parts[:3]
        port = int(parts[3]) if len(parts) == 4 else 22
        if not 1 <= port <= 65535:
            return self._markdown(conversation_id, "Usage: /add <alias> <host> <user> [port]")

        message = f"Server '{alias}' added successfully (Key-based auth assumed)."
        try:
            await self.directory.add_target(alias, host, user, port)
        except ConfigError as e:
            message += f"\nWarning: server list not saved ({e.message})"
        return self._markdown(conversation_id, message)

    async def _remove(self, conversation_id: str, argument: str) -> BaseEvent:
        if self.directory is None:
            return self._markdown(conversation_id, "Server management is not available.")
        if not argument:
            return self._markdown(conversation_id, "Usage: /remove <alias>")

        try:
            removed = await self.directory.remove_target(argument)
        except ConfigError as e:
            return self._markdown(
                conversation_id, f"Server '{argument}' removed.\nWarning: server list not saved ({e.message})"
            )
        if not removed:
            return self._markdown(conversation_id, f"Server '{argument}' not found.")
        return self._markdown(conversation_id, f"Server '{argument}' removed.")

    async def _exec(self, conversation_id: str, argument: str) -> BaseEvent:
        alias, _, command = argument.partition(" ")
        command = command.strip()
        if not alias or not command:
            return self._markdown(conversation_id, "Usage: /exec <alias> <command>")
        if not self._is_known(alias):
            return self._markdown(conversation_id, f"Server '{alias}' not found. Use /add to configure it.")

        started = time.perf_counter()
        try:
            output = await self.engine.executor.run(alias, command)
        except ExecutorError as e:
            sentinel_logger.log_command_execution(
                conversation_id, alias, command, (time.perf_counter() - started) * 1000,
                success=False, error=e.message
            )
            return self._markdown(conversation_id, f"Error executing on {alias}: {e.message}")

        sentinel_logger.log_command_execution(conversation_id, alias, command, (time.perf_counter() - started) * 1000)
        return self._markdown(conversation_id, f"Output from {alias}:\n{output}")

    async def _discover(self, conversation_id: str, argument: str) -> BaseEvent:
        if not argument:
            return self._markdown(conversation_id, "Usage: /discover <alias>")
        if not self._is_known(argument):
            return self._markdown(conversation_id, f"Server '{argument}' not found. Use /add to configure it.")

        try:
            report = await discover(self.engine.executor, argument)
        except ExecutorError as e:
            return self._markdown(conversation_id, f"Discovery failed on {argument}: {e.message}")

        report_json = report.model_dump_json(indent=2)
        try:
            analysis = await self.providers.ask_with_context(DISCOVERY_QUESTION, report_json)
        except ProviderError as e:
            return self._markdown(
                conversation_id,
                f"Discovery successful but AI analysis failed: {e.message}\nReport:\n{report_json}"
            )
        return self._markdown(
            conversation_id, f"Discovery Report for {argument}:\n\n{report_json}\n\nAI Analysis:\n{analysis}"
        )

    # Providers

    async def _provider(self, conversation_id: str, argument: str) -> BaseEvent:
        if not argument:
            known = ", ".join(self.providers.known_providers())
            description = await self.providers.describe()
            return self._markdown(conversation_id, f"Current AI Provider: {description}\nAvailable: {known}")

        result = await self.providers.set_provider(argument)
        return self._markdown(conversation_id, result.message)

    async def _config(self, conversation_id: str, argument: str) -> BaseEvent:
        parts = argument.split()
        if len(parts) not in (2, 3):
            return self._markdown(conversation_id, "Usage: /config <provider> <model> [url]")

        name, model = parts[0], parts[1]
        endpoint = parts[2] if len(parts) == 3 else None
        result = await self.providers.update_settings(name, model=model, endpoint=endpoint)

        message = f"AI settings updated: {result.description}"
        if result.warning:
            message += f"\nWarning: {result.warning}"
        return self._markdown(conversation_id, message)

    async def _models(self, conversation_id: str, argument: str) -> BaseEvent:
        try:
            models = await self.providers.list_models()
        except ProviderError as e:
            return self._error(conversation_id, f"Failed to list models: {e.message}", "provider_error")
        lines = "\n".join(f"- {m}" for m in models)
        return self._markdown(conversation_id, f"Available Models:\n{lines}")

    async def _ai(self, conversation_id: str, argument: str) -> BaseEvent:
        description = await self.providers.describe()
        return self._markdown(conversation_id, f"Current AI Provider: {description}")

    async def _tokens(self, conversation_id: str, argument: str) -> BaseEvent:
        if not argument:
            return self._markdown(conversation_id, "Usage: /tokens <text>")
        count = await self.providers.count_tokens(argument)
        return self._markdown(conversation_id, f"Estimated token count: {count}")

    async def _ask(self, conversation_id: str, argument: str) -> BaseEvent:
        if not argument:
            return self._markdown(conversation_id, "Usage: /ask <question>")
        answer = await self.providers.ask(argument)
        return self._markdown(conversation_id, answer)

    async def _status(self, conversation_id: str, argument: str) -> BaseEvent:
        session = self.engine.get_session(conversation_id)
        state = session.status.value if session else "no session"
        return self._markdown(conversation_id, f"System status: Operational\nSession: {state}")

    async def _help(self, conversation_id: str, argument: str) -> BaseEvent:
        lines = "\n".join(f"  {cmd} - {desc}" for cmd, desc in COMMANDS_INFO)
        return self._markdown(conversation_id, f"Available commands:\n{lines}")

    @staticmethod
    def _markdown(conversation_id: str, text: str) -> MarkdownEvent:
        return MarkdownEvent(conversation_id=conversation_id, payload=text)

    @staticmethod
    def _error(conversation_id: str, message: str, code: str) -> ErrorEvent:
        logger.info("Rejected operator input", conversation_id=conversation_id, error=message)
        return ErrorEvent(conversation_id=conversation_id, payload={"message": message}, error_code=code)
