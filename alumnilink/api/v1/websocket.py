import json
import logging
from typing import Optional

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from alumnilink.auth import get_user_from_token
from alumnilink.database import get_db
from alumnilink.errors import AppError, AuthenticationError, ValidationError
from alumnilink.models.user import User
from alumnilink.repositories.message_repository import MessageRepository
from alumnilink.repositories.user_repository import UserRepository
from alumnilink.schemas.message import MessageCreate, WebSocketAction, serialize_message
from alumnilink.websocket_manager import DeliveryRelay

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_event(code: str, message: str) -> str:
    return json.dumps({"type": "error", "code": code, "message": message})


def _session(websocket: WebSocket):
    """Open a session through ``get_db`` so dependency overrides apply."""
    provider = websocket.app.dependency_overrides.get(get_db, get_db)
    return provider()


@router.websocket("")
async def websocket_chat(websocket: WebSocket, token: Optional[str] = None):
    if not token:
        await websocket.close(code=1008, reason="Token required")
        return

    sessions = _session(websocket)
    try:
        db = await sessions.__anext__()
        user = await get_user_from_token(token, db)
    except AuthenticationError as e:
        await websocket.close(code=1008, reason=e.message)
        return
    finally:
        await sessions.aclose()

    relay: DeliveryRelay = websocket.app.state.relay
    await websocket.accept()

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                await websocket.send_text(_error_event("INVALID_FRAME", "Only text frames are supported"))
                continue
            try:
                frame = WebSocketAction(**json.loads(raw))
            except (json.JSONDecodeError, TypeError, PydanticValidationError):
                await websocket.send_text(_error_event("INVALID_FRAME", "Invalid JSON format"))
                continue

            try:
                await handle_action(frame, user, websocket, relay)
            except AppError as e:
                await websocket.send_text(_error_event(e.code, e.message))
            except Exception:
                logger.exception("Error processing %s from user %s", frame.action, user.id)
                await websocket.send_text(_error_event("INTERNAL_ERROR", "Error processing message"))
    except WebSocketDisconnect:
        pass
    finally:
        await relay.registry.unregister(user.id, websocket)


async def handle_action(frame: WebSocketAction, user: User, websocket: WebSocket, relay: DeliveryRelay):
    if frame.action == "join":
        claimed = frame.data.get("user_id", frame.data.get("userId"))
        if claimed is not None and str(claimed) != str(user.id):
            raise AuthenticationError("Cannot join as another user", code="USER_MISMATCH")
        await relay.registry.register(user.id, websocket)
        await websocket.send_text(json.dumps({"type": "joined", "data": {"user_id": user.id}}))

    elif frame.action == "send_message":
        sessions = _session(websocket)
        try:
            db = await sessions.__anext__()
            payload = await handle_send_message(frame.data, user, db)
        finally:
            await sessions.aclose()
        await relay.deliver(payload["recipient"]["id"], payload)
        await websocket.send_text(json.dumps({"type": "message_sent", "data": payload}))

    elif frame.action == "ping":
        await websocket.send_text(json.dumps({"type": "pong"}))

    else:
        raise ValidationError(f"Unknown action: {frame.action}", code="UNKNOWN_ACTION")


async def handle_send_message(data: dict, user: User, db: AsyncSession) -> dict:
    try:
        message_data = MessageCreate(**data)
    except PydanticValidationError:
        raise ValidationError("Recipient and content or attachment are required")

    if message_data.recipient == user.id:
        raise ValidationError("Cannot send message to yourself")
    await UserRepository(db).get_active_by_id(message_data.recipient)

    message = await MessageRepository(db).send(
        sender_id=user.id,
        recipient_id=message_data.recipient,
        content=message_data.content,
        message_type=message_data.message_type,
        attachment_url=message_data.attachment_url,
    )
    return serialize_message(message)


@router.get("/online-users")
async def get_online_users(request: Request):
    connected_users = request.app.state.relay.registry.connected_users()
    return {"online_users": connected_users, "count": len(connected_users)}
