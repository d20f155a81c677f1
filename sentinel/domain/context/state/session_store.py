from typing import Dict, Any, Optional
import asyncio

from sentinel.domain.models.session_state import Session


class SessionStore:
    """Conversation id -> Session map shared by all workers.

    ``lock`` guards map mutation only and is never held across a provider or
    executor call. Each conversation also gets a FIFO lock so its events are
    processed in arrival order.
    """

    def __init__(self):
        self.sessions: Dict[str, Session] = {}
        self.lock = asyncio.Lock()
        self._conversation_locks: Dict[str, asyncio.Lock] = {}

    def get(self, conversation_id: str) -> Optional[Session]:
        """Lookup; plain dict reads never interleave with a mutation on the loop"""
        return self.sessions.get(conversation_id)

    def holds(self, session: Session) -> bool:
        """True while this exact session object is still the live one"""
        return self.sessions.get(session.conversation_id) is session

    def conversation_lock(self, conversation_id: str) -> asyncio.Lock:
        lock = self._conversation_locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._conversation_locks[conversation_id] = lock
        return lock

    async def put(self, session: Session) -> Optional[Session]:
        """Insert a session, returning the one it replaced"""

        async with self.lock:
            previous = self.sessions.get(session.conversation_id)
            self.sessions[session.conversation_id] = session
            return previous

    async def remove(self, conversation_id: str) -> Optional[Session]:
        async with self.lock:
            return self.sessions.pop(conversation_id, None)

    async def get_all_active_sessions(self) -> Dict[str, Dict[str, Any]]:
        async with self.lock:
            return {cid: session.get_state_summary() for cid, session in self.sessions.items()}
