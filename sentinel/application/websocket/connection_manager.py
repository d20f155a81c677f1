from typing import Dict, Set, Optional
from fastapi import WebSocket
import asyncio
from datetime import datetime
import structlog

from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and delivers events per conversation"""

    def __init__(self, stale_after_seconds: int = 300):
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_metadata: Dict[str, Dict] = {}
        self.stale_after_seconds = stale_after_seconds
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, conversation_id: str, operator: Optional[str] = None):
        """Accept the socket and announce the connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[conversation_id] = websocket
            self.connection_metadata[conversation_id] = {
                "operator": operator,
                "connected_at": datetime.utcnow(),
                "last_activity": datetime.utcnow()
            }

        await self.send_event(
            conversation_id,
            ConnectionEvent(
                status="connected",
                conversation_id=conversation_id
            )
        )

        logger.info("WebSocket connected", conversation_id=conversation_id, operator=operator)

    async def disconnect(self, conversation_id: str):
        """Forget the socket and close it if still open"""
        async with self._lock:
            ws = self.active_connections.pop(conversation_id, None)
            self.connection_metadata.pop(conversation_id, None)

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug("WebSocket already closed", conversation_id=conversation_id, error=str(e))

            logger.info("WebSocket disconnected", conversation_id=conversation_id)

    async def send_event(self, conversation_id: str, event: BaseEvent) -> bool:
        """Deliver an event to a conversation"""
        websocket = self.active_connections.get(conversation_id)
        if websocket is None:
            logger.warning("Attempted to send to disconnected conversation", conversation_id=conversation_id)
            return False

        if event.conversation_id is None:
            event.conversation_id = conversation_id

        try:
            await websocket.send_json(event.model_dump(mode="json"))

            if conversation_id in self.connection_metadata:
                self.connection_metadata[conversation_id]["last_activity"] = datetime.utcnow()

            return True

        except Exception as e:
            logger.error("Failed to send event", conversation_id=conversation_id, error=str(e))
            await self.disconnect(conversation_id)
            return False

    async def send_error(self, conversation_id: str, error_message: str, error_code: Optional[str] = None):
        """Deliver an error frame"""
        error_event = ErrorEvent(
            payload={"message": error_message},
            error_code=error_code,
            conversation_id=conversation_id
        )
        await self.send_event(conversation_id, error_event)

    def touch(self, conversation_id: str):
        if conversation_id in self.connection_metadata:
            self.connection_metadata[conversation_id]["last_activity"] = datetime.utcnow()

    def get_active_conversations(self) -> Set[str]:
        return set(self.active_connections.keys())

    def find_stale_conversations(self, now: Optional[datetime] = None) -> Set[str]:
        current_time = now or datetime.utcnow()
        stale = set()
        for conversation_id, metadata in self.connection_metadata.items():
            last_activity = metadata.get("last_activity")
            if last_activity and (current_time - last_activity).total_seconds() > self.stale_after_seconds:
                stale.add(conversation_id)
        return stale

    async def health_check(self):
        """Periodic sweep that closes idle connections"""
        while True:
            try:
                for conversation_id in self.find_stale_conversations():
                    logger.warning("Disconnecting stale conversation", conversation_id=conversation_id)
                    await self.disconnect(conversation_id)

            except Exception as e:
                logger.error("Health check error", error=str(e))

            await asyncio.sleep(60)
