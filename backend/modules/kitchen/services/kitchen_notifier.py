# backend/modules/kitchen/services/kitchen_notifier.py

"""
Real-time push channel for kitchen displays.

One logical channel per restaurant. Every display session owns a bounded
outbound queue drained by its own writer task, so ``publish`` never awaits a
socket and a slow display cannot hold up the others.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from pydantic import ValidationError

from ..config.kitchen_config import get_kitchen_config
from ..exceptions import ChannelDeliveryFailure
from ..schemas.kitchen_schemas import (
    AckMessage,
    PingMessage,
    SubscribeMessage,
    SubscriptionFilters,
    UnsubscribeMessage,
    client_message_adapter,
)
from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_TIMEOUT_SECONDS = 60
DEFAULT_QUEUE_SIZE = 100


class KitchenDisplaySession:
    """One connected kitchen display"""

    def __init__(self, websocket: WebSocket, restaurant_id: str, queue_size: int):
        self.id = str(uuid.uuid4())
        self.websocket = websocket
        self.restaurant_id = restaurant_id
        self.last_heartbeat = utcnow()
        self.filters = SubscriptionFilters()
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.writer: Optional[asyncio.Task] = None

    def wants(self, event: Dict[str, Any]) -> bool:
        ticket = event.get("ticket")
        if ticket is None:
            return True
        return self.filters.matches(ticket)

    def enqueue(self, message: Dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            raise ChannelDeliveryFailure(self.id, "outbound queue full")

    async def send(self, message: Dict[str, Any]) -> None:
        try:
            await self.websocket.send_text(json.dumps(message, default=str))
        except Exception as e:
            raise ChannelDeliveryFailure(self.id, str(e)) from e


class KitchenNotifier:
    """Manages kitchen display sessions and fans out ticket events"""

    def __init__(
        self,
        heartbeat_timeout_seconds: int = DEFAULT_HEARTBEAT_TIMEOUT_SECONDS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self.heartbeat_timeout_seconds = heartbeat_timeout_seconds
        self.queue_size = queue_size
        # restaurant_id -> session_id -> session
        self.channels: Dict[str, Dict[str, KitchenDisplaySession]] = {}
        self.sessions: Dict[str, KitchenDisplaySession] = {}
        # Socket closes scheduled for dropped sessions
        self._closing: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket, restaurant_id: str) -> KitchenDisplaySession:
        """Accept a display and subscribe it to its restaurant's channel"""
        await websocket.accept()

        session = KitchenDisplaySession(websocket, restaurant_id, self.queue_size)
        self.sessions[session.id] = session
        self.channels.setdefault(restaurant_id, {})[session.id] = session
        session.writer = asyncio.create_task(self._writer(session))

        logger.info(
            f"Kitchen display {session.id} connected to restaurant {restaurant_id}. "
            f"Total connections: {len(self.channels[restaurant_id])}"
        )

        self._deliver(
            session,
            {
                "type": "connected",
                "client_id": session.id,
                "restaurant_id": restaurant_id,
                "timestamp": utcnow().isoformat(),
            },
        )
        return session

    def disconnect(self, session_id: str) -> None:
        """Forget a session; unknown ids are ignored"""
        session = self.sessions.pop(session_id, None)
        if session is None:
            return

        channel = self.channels.get(session.restaurant_id)
        if channel is not None:
            channel.pop(session_id, None)
            if not channel:
                del self.channels[session.restaurant_id]

        if session.writer is not None and not session.writer.done():
            session.writer.cancel()

        logger.info(
            f"Kitchen display {session_id} disconnected from restaurant "
            f"{session.restaurant_id}"
        )

    def publish(self, restaurant_id: str, event: Dict[str, Any]) -> int:
        """
        Queue an event for every matching session on a restaurant's channel.

        Returns:
            Number of sessions the event was queued for
        """
        queued = 0
        for session in list(self.channels.get(restaurant_id, {}).values()):
            if not session.wants(event):
                continue
            if self._deliver(session, event):
                queued += 1
        return queued

    async def handle_client_message(self, session: KitchenDisplaySession, raw: str) -> None:
        """Process one inbound frame from a display"""
        if session.id not in self.sessions:
            logger.debug(f"Ignoring message from dropped kitchen display {session.id}")
            return

        session.last_heartbeat = utcnow()

        try:
            message = client_message_adapter.validate_python(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Invalid message from kitchen display {session.id}: {str(e)}")
            self._deliver(session, self._error("Invalid message format"))
            return

        if isinstance(message, PingMessage):
            self._deliver(session, {"type": "pong", "timestamp": utcnow().isoformat()})

        elif isinstance(message, SubscribeMessage):
            session.filters = message.filters
            self._deliver(
                session,
                {
                    "type": "subscribed",
                    "filters": message.filters.model_dump(mode="json"),
                    "timestamp": utcnow().isoformat(),
                },
            )

        elif isinstance(message, UnsubscribeMessage):
            session.filters = SubscriptionFilters()
            self._deliver(
                session,
                {"type": "unsubscribed", "timestamp": utcnow().isoformat()},
            )

        elif isinstance(message, AckMessage):
            logger.debug(f"Kitchen display {session.id} acknowledged {message.message_id}")

    async def expire_stale_sessions(self, now: Optional[datetime] = None) -> int:
        """Close sessions that have not been heard from within the timeout"""
        now = now or utcnow()
        cutoff = now - timedelta(seconds=self.heartbeat_timeout_seconds)

        stale = [s for s in list(self.sessions.values()) if s.last_heartbeat < cutoff]
        for session in stale:
            logger.warning(
                f"Kitchen display {session.id} missed heartbeat; closing session"
            )
            self.disconnect(session.id)
            await self._close_socket(session)

        return len(stale)

    def connection_counts(self) -> Dict[str, int]:
        return {rid: len(channel) for rid, channel in self.channels.items()}

    def health_check(self) -> Dict[str, Any]:
        counts = self.connection_counts()
        return {
            "status": "healthy",
            "total_connections": sum(counts.values()),
            "restaurants": counts,
            "timestamp": utcnow().isoformat(),
        }

    async def close_all(self) -> None:
        """Close all display sessions"""
        sessions = list(self.sessions.values())
        for session in sessions:
            self.disconnect(session.id)

        pending = [self._close_socket(session) for session in sessions]
        pending.extend(self._closing)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("All kitchen display connections closed")

    # ========== Internals ==========

    def _deliver(self, session: KitchenDisplaySession, message: Dict[str, Any]) -> bool:
        try:
            session.enqueue(message)
            return True
        except ChannelDeliveryFailure as e:
            self._drop(session, e)
            return False

    def _drop(self, session: KitchenDisplaySession, failure: ChannelDeliveryFailure) -> None:
        """Unregister a session and close its socket so the display reconnects"""
        logger.warning(f"Dropping kitchen display session: {failure.message}")
        self.disconnect(session.id)

        task = asyncio.create_task(self._close_socket(session))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _writer(self, session: KitchenDisplaySession) -> None:
        while True:
            message = await session.queue.get()
            try:
                await session.send(message)
            except ChannelDeliveryFailure as e:
                session.writer = None
                self._drop(session, e)
                return

    async def _close_socket(self, session: KitchenDisplaySession) -> None:
        try:
            await session.websocket.close()
        except Exception as e:
            logger.debug(f"Error closing kitchen display {session.id}: {str(e)}")

    @staticmethod
    def _error(message: str) -> Dict[str, Any]:
        return {"type": "error", "message": message, "timestamp": utcnow().isoformat()}


# Global instance
_config = get_kitchen_config()
kitchen_notifier = KitchenNotifier(
    heartbeat_timeout_seconds=_config.HEARTBEAT_TIMEOUT_SECONDS,
    queue_size=_config.SESSION_QUEUE_SIZE,
)
