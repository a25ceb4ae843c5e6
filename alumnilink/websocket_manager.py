import json
import asyncio
import logging
from typing import Dict, List, Optional

from fastapi import WebSocket, Request

from alumnilink.config import settings

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps a connected user id to its single live WebSocket.

    The last registration for a user wins. Register, unregister and lookup
    take one lock; ``is_online`` and ``connected_users`` are lock-free
    snapshots for reporting.
    """

    def __init__(self):
        self._connections: Dict[int, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: int, websocket: WebSocket) -> Optional[WebSocket]:
        async with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = websocket
        logger.info("User %s registered a live connection", user_id)
        return previous if previous is not websocket else None

    async def unregister(self, user_id: int, websocket: WebSocket) -> bool:
        async with self._lock:
            if self._connections.get(user_id) is not websocket:
                return False
            del self._connections[user_id]
        logger.info("User %s connection removed", user_id)
        return True

    async def lookup(self, user_id: int) -> Optional[WebSocket]:
        async with self._lock:
            return self._connections.get(user_id)

    def is_online(self, user_id: int) -> bool:
        return user_id in self._connections

    def connected_users(self) -> List[int]:
        return list(self._connections.keys())


class DeliveryRelay:
    """Best-effort push of events to a recipient's live connection.

    Each push is bounded by ``send_timeout``; a stalled socket is handled
    like a broken one.
    """

    def __init__(self, registry: ConnectionRegistry, send_timeout: float = None):
        self.registry = registry
        self.send_timeout = send_timeout or settings.RELAY_SEND_TIMEOUT_SECONDS

    async def send_personal(self, user_id: int, event: dict) -> bool:
        websocket = await self.registry.lookup(user_id)
        if websocket is None:
            return False

        try:
            await asyncio.wait_for(websocket.send_text(json.dumps(event, default=str)), self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning("Push to user %s timed out after %ss", user_id, self.send_timeout)
            await self.registry.unregister(user_id, websocket)
            return False
        except Exception as e:
            # Stale handle; the stored message is still readable later
            logger.warning("Push to user %s failed: %s", user_id, e)
            await self.registry.unregister(user_id, websocket)
            return False
        return True

    async def deliver(self, recipient_id: int, message_data: dict) -> bool:
        delivered = await self.send_personal(
            recipient_id,
            {"type": "new_message", "data": message_data},
        )
        if delivered:
            logger.debug("Message %s relayed to user %s", message_data.get("id"), recipient_id)
        return delivered


def get_relay(request: Request) -> DeliveryRelay:
    return request.app.state.relay
