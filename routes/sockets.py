"""Socket.IO namespace: authentication, room membership and typing indicators."""

from http.cookies import SimpleCookie
from typing import Any, Dict, Optional

import socketio
from fastapi import HTTPException

from db.db import get_db
from db.mongodb import is_valid_object_id, convert_to_object_id
from helpers.auth import AuthError, authenticate_token
from logger.logger import logger
from models.events_model import GatewayEvent, TypingPayload
from repos.conversation_repo import ConversationRepository
from repos.user_repo import UserRepository
from services.delivery_gateway import get_gateway


def _cookie_token(environ: dict) -> Optional[str]:
    raw = environ.get("HTTP_COOKIE")
    if not raw:
        return None
    morsel = SimpleCookie(raw).get("token")
    return morsel.value if morsel else None


def _field(data: Any, name: str) -> Optional[str]:
    """Clients send either a bare id or an object carrying it"""
    if isinstance(data, dict):
        value = data.get(name)
    else:
        value = data
    return str(value) if value else None


class ChatNamespace(socketio.AsyncNamespace):
    """Authenticates every connection and keeps the delivery gateway's rooms current."""

    def __init__(self, namespace: str = "/"):
        super().__init__(namespace)
        self._sessions: Dict[str, Dict[str, str]] = {}

    async def on_connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        token = auth.get("token") if isinstance(auth, dict) else None
        token = token or _cookie_token(environ)
        try:
            user = await authenticate_token(token, UserRepository(await get_db()))
        except AuthError as e:
            logger.warning(f"Socket {sid} refused: {e.detail}")
            raise ConnectionRefusedError(e.detail)
        except HTTPException:
            raise ConnectionRefusedError("Service unavailable")

        self._sessions[sid] = {"user_id": user.id, "username": user.username}
        logger.info(f"Socket {sid} connected as {user.id}")

    async def on_join(self, sid: str, data: Any = None) -> Dict[str, Any]:
        session = self._sessions.get(sid)
        if session is None:
            return {"ok": False, "error": "unauthenticated"}
        user_id = _field(data, "user_id") or session["user_id"]
        if user_id != session["user_id"]:
            logger.warning(f"Socket {sid} tried to join as {user_id}")
            return {"ok": False, "error": "forbidden"}
        await get_gateway().join(sid, user_id)
        return {"ok": True}

    async def on_enter_conversation(self, sid: str, data: Any = None) -> Dict[str, Any]:
        conversation_id = _field(data, "conversation_id")
        if sid not in self._sessions or not conversation_id:
            return {"ok": False}
        if not await self._is_participant(sid, conversation_id):
            logger.warning(f"Socket {sid} refused entry to conversation {conversation_id}")
            return {"ok": False, "error": "forbidden"}
        await get_gateway().enter_conversation(sid, conversation_id)
        return {"ok": True}

    async def _is_participant(self, sid: str, conversation_id: str) -> bool:
        session = self._sessions.get(sid)
        if session is None or not is_valid_object_id(conversation_id):
            return False
        conversation = await ConversationRepository(await get_db()).find_by_id(
            convert_to_object_id(conversation_id)
        )
        if conversation is None:
            return False
        return convert_to_object_id(session["user_id"]) in conversation.get("participants", [])

    async def on_leave_conversation(self, sid: str, data: Any = None) -> Dict[str, Any]:
        conversation_id = _field(data, "conversation_id")
        if sid not in self._sessions or not conversation_id:
            return {"ok": False}
        await get_gateway().leave_conversation(sid, conversation_id)
        return {"ok": True}

    async def on_typing_start(self, sid: str, data: Any = None) -> None:
        await self._typing(sid, data, GatewayEvent.TYPING_START)

    async def on_typing_stop(self, sid: str, data: Any = None) -> None:
        await self._typing(sid, data, GatewayEvent.TYPING_STOP)

    async def _typing(self, sid: str, data: Any, event: GatewayEvent) -> None:
        session = self._sessions.get(sid)
        conversation_id = _field(data, "conversation_id")
        if session is None or not conversation_id:
            return
        if not await self._is_participant(sid, conversation_id):
            return
        await get_gateway().broadcast_to_conversation(
            conversation_id,
            event,
            TypingPayload(
                conversation_id=conversation_id,
                user_id=session["user_id"],
                username=session["username"],
            ),
        )

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        self._sessions.pop(sid, None)
        await get_gateway().disconnect(sid)
        logger.info(f"Socket {sid} disconnected")
