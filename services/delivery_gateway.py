import asyncio
from typing import Dict, Optional, Set

import socketio
from pydantic import BaseModel

from logger.logger import logger
from models.events_model import GatewayEvent, PresencePayload

# Global gateway - created by init_gateway at start-up
gateway: Optional["DeliveryGateway"] = None


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def conversation_room(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


class DeliveryGateway:
    """
    Maps live Socket.IO connections (sids) to users and conversations.

    Two independent groupings are kept: one room per user id, used for direct
    delivery, and one room per conversation id, used for broadcast to whoever is
    viewing it. Delivery is fire-and-forget: nothing is queued for users
    without a live connection.
    """

    def __init__(self, server: socketio.AsyncServer, namespace: str = "/"):
        self.server = server
        self.namespace = namespace
        self._user_sids: Dict[str, Set[str]] = {}
        self._sid_user: Dict[str, str] = {}
        # One dispatch point: per-connection order equals broadcast call order.
        # Created on first dispatch so it binds to the serving event loop.
        self._dispatch_lock: Optional[asyncio.Lock] = None

    # Room membership

    async def join(self, sid: str, user_id: str) -> None:
        """Attach a connection to its user's room and announce the user online"""
        previous = self._sid_user.get(sid)
        if previous is not None and previous != user_id:
            await self._forget(sid)

        await self.server.enter_room(sid, user_room(user_id), namespace=self.namespace)
        self._sid_user[sid] = user_id
        self._user_sids.setdefault(user_id, set()).add(sid)
        logger.info(f"User {user_id} joined on {sid} ({len(self._user_sids[user_id])} live connection(s))")

        await self.broadcast_to_all(GatewayEvent.PRESENCE_ONLINE, PresencePayload(user_id=user_id))

    async def enter_conversation(self, sid: str, conversation_id: str) -> None:
        await self.server.enter_room(sid, conversation_room(conversation_id), namespace=self.namespace)
        logger.info(f"{sid} entered conversation {conversation_id}")

    async def leave_conversation(self, sid: str, conversation_id: str) -> None:
        await self.server.leave_room(sid, conversation_room(conversation_id), namespace=self.namespace)
        logger.info(f"{sid} left conversation {conversation_id}")

    async def disconnect(self, sid: str) -> None:
        """
        Drop a lost connection. The user is announced offline only once their
        last live connection is gone.
        """
        user_id = await self._forget(sid)
        if user_id is None:
            return
        if user_id not in self._user_sids:
            logger.info(f"User {user_id} went offline")
            await self.broadcast_to_all(GatewayEvent.PRESENCE_OFFLINE, PresencePayload(user_id=user_id))

    async def _forget(self, sid: str) -> Optional[str]:
        user_id = self._sid_user.pop(sid, None)
        if user_id is None:
            return None
        sids = self._user_sids.get(user_id)
        if sids is not None:
            sids.discard(sid)
            if not sids:
                del self._user_sids[user_id]
        await self.server.leave_room(sid, user_room(user_id), namespace=self.namespace)
        return user_id

    def is_online(self, user_id: str) -> bool:
        return bool(self._user_sids.get(user_id))

    # Broadcast

    async def broadcast_to_user(self, user_id: str, event: GatewayEvent, payload: BaseModel) -> None:
        await self._dispatch(event, payload, room=user_room(user_id))

    async def broadcast_to_conversation(self, conversation_id: str, event: GatewayEvent, payload: BaseModel) -> None:
        await self._dispatch(event, payload, room=conversation_room(conversation_id))

    async def broadcast_to_all(self, event: GatewayEvent, payload: BaseModel) -> None:
        await self._dispatch(event, payload, room=None)

    async def _dispatch(self, event: GatewayEvent, payload: BaseModel, room: Optional[str]) -> None:
        expected = event.payload_model
        if not isinstance(payload, expected):
            raise TypeError(f"{event.value} expects {expected.__name__}, got {type(payload).__name__}")

        data = payload.model_dump(mode="json")
        if self._dispatch_lock is None:
            self._dispatch_lock = asyncio.Lock()
        async with self._dispatch_lock:
            await self.server.emit(event.value, data, room=room, namespace=self.namespace)


def init_gateway(server: socketio.AsyncServer, namespace: str = "/") -> DeliveryGateway:
    global gateway
    gateway = DeliveryGateway(server, namespace=namespace)
    return gateway


def get_gateway() -> DeliveryGateway:
    """
    Dependency function to get the delivery gateway.
    For use with FastAPI Depends().
    """
    if gateway is None:
        raise RuntimeError("Delivery gateway not initialised")
    return gateway
