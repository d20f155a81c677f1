from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from typing import Any, Dict, List, Optional
import asyncio
from datetime import datetime
import structlog

from .command_router import CommandRouter
from .connection_manager import ConnectionManager
from .schema.events import EventType, UserMessage, ConfirmationResponse
from sentinel.application.api.route.provider import router as provider_router
from sentinel.domain.context.prompt_templates import PromptTemplates
from sentinel.domain.directive.command_codec import get_codec
from sentinel.domain.orchestration.core.session_engine import SessionEngine
from sentinel.domain.provider.provider_manager import ProviderManager
from sentinel.domain.models.errors import ConfigError
from sentinel.domain.tool.command_executor import CommandExecutor, TargetDirectory
from sentinel.infrastructure.config.settings import Settings, get_settings
from sentinel.infrastructure.executor.ssh_executor import SshExecutor, load_targets
from sentinel.infrastructure.observability.logging import setup_logging
from sentinel.infrastructure.persistence import (
    JsonConfigStore, JsonGlobalSelection, JsonlHistoryStore, InMemoryHistoryStore
)

logger = structlog.get_logger(__name__)


def build_executor(settings: Settings) -> SshExecutor:
    """SSH executor over the target table; an unreadable table starts empty"""

    try:
        targets = load_targets(settings.targets_file)
    except ConfigError as e:
        # keep the broken file for the operator to repair instead of overwriting it
        logger.warning("Target table unavailable, starting with no targets", error=e.message)
        return SshExecutor({})
    return SshExecutor(targets, targets_file=settings.targets_file)


def build_engine(settings: Settings, executor: Optional[CommandExecutor] = None) -> SessionEngine:
    """Wire the default file-backed stores, SSH executor and provider manager"""

    providers = ProviderManager(
        config_store=JsonConfigStore(settings.config_dir),
        selection=JsonGlobalSelection(settings.selection_file),
        default_provider=settings.default_provider
    )
    if settings.history_file:
        history = JsonlHistoryStore(settings.history_file)
    else:
        history = InMemoryHistoryStore()

    if executor is None:
        executor = build_executor(settings)

    return SessionEngine(
        providers=providers,
        executor=executor,
        codec=get_codec(settings.codec),
        templates=PromptTemplates(),
        history=history
    )


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[SessionEngine] = None,
    targets: Optional[List[str]] = None
) -> FastAPI:
    """Build the websocket/REST application around one session engine"""

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    engine = engine or build_engine(settings)
    directory = None
    if targets is None and isinstance(engine.executor, TargetDirectory):
        directory = engine.executor

    connection_manager = ConnectionManager(stale_after_seconds=settings.stale_after_seconds)
    command_router = CommandRouter(engine, engine.providers, targets, directory)

    app = FastAPI(title="Sentinel Operator Server")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.providers = engine.providers
    app.state.connection_manager = connection_manager
    app.state.command_router = command_router
    app.include_router(provider_router)

    background_tasks: List[asyncio.Task] = []

    @app.on_event("startup")
    async def startup_event():
        """Bind the persisted provider and start background tasks"""
        await engine.providers.load()
        background_tasks.append(asyncio.create_task(connection_manager.health_check()))
        logger.info("WebSocket server started", provider=engine.providers.active_name)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        for task in background_tasks:
            task.cancel()

        for conversation_id in list(connection_manager.active_connections.keys()):
            await connection_manager.disconnect(conversation_id)

        logger.info("WebSocket server shutdown")

    @app.websocket("/ws/agent/{conversation_id}")
    async def agent_websocket(websocket: WebSocket, conversation_id: str):
        """Operator chat endpoint, one websocket per conversation"""

        await connection_manager.connect(websocket, conversation_id)

        try:
            while True:
                data = await websocket.receive_json()
                connection_manager.touch(conversation_id)

                structlog.contextvars.bind_contextvars(conversation_id=conversation_id)
                try:
                    await dispatch_event(conversation_id, data)
                except ValidationError as e:
                    await connection_manager.send_error(conversation_id, f"Invalid event: {e}", "invalid_event")
                finally:
                    structlog.contextvars.unbind_contextvars("conversation_id")

        except WebSocketDisconnect:
            logger.info("Client disconnected", conversation_id=conversation_id)
        except Exception as e:
            logger.error("WebSocket error", error=str(e), conversation_id=conversation_id)
        finally:
            await connection_manager.disconnect(conversation_id)

    async def dispatch_event(conversation_id: str, data: Dict[str, Any]):
        event_type = data.get("type")

        if event_type == EventType.USER_MESSAGE:
            message = UserMessage(**data)
            event = await command_router.handle_text(conversation_id, message.content)

        elif event_type == EventType.CONFIRMATION_RESPONSE:
            response = ConfirmationResponse(**data)
            event = await command_router.handle_confirmation(conversation_id, response.label, response.token)

        else:
            await connection_manager.send_error(
                conversation_id, f"Unsupported event type: {event_type}", "invalid_event"
            )
            return

        await connection_manager.send_event(conversation_id, event)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "provider": engine.providers.active_name,
            "active_sessions": len(await engine.store.get_all_active_sessions()),
            "active_connections": len(connection_manager.active_connections),
            "timestamp": datetime.utcnow().isoformat()
        }

    return app


if __name__ == "__main__":
    import uvicorn

    server_settings = get_settings()
    uvicorn.run(create_app(server_settings), host=server_settings.host, port=server_settings.port)
