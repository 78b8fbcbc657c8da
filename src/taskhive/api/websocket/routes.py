"""WebSocket route for realtime notification delivery."""

import asyncio
import json
import logging
import time

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from taskhive.api.auth.dependencies import authenticate_token
from taskhive.db import get_db
from taskhive.notifications import broker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

# Maximum incoming message size (4 KB); clients only send pings
_MAX_MESSAGE_SIZE = 4096

# Re-validate token every 5 minutes
_TOKEN_REVALIDATION_INTERVAL = 300


def _validate_message(raw: str) -> tuple[dict | None, str | None]:
    """Validate and parse an incoming WebSocket message.

    Returns (parsed_message, error_string). On success error is None.
    """
    if len(raw) > _MAX_MESSAGE_SIZE:
        return None, "Message too large"

    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        return None, "Invalid JSON"

    if not isinstance(message, dict):
        return None, "Message must be a JSON object"

    msg_type = message.get("type")
    if not isinstance(msg_type, str):
        return None, "Missing or invalid 'type' field"

    if msg_type != "ping":
        return None, f"Unknown message type: {msg_type}"

    return message, None


async def _authenticate(token: str):
    async for db in get_db():
        return await authenticate_token(db, token)
    return None


@router.websocket("/ws/notifications")
async def notifications_websocket(
    websocket: WebSocket,
    token: str = Query(...),
):
    """
    WebSocket endpoint for realtime notifications.

    Connect with: ws://host/ws/notifications?token={jwt_token}

    Message types:
    - Incoming:
        - {"type": "ping", "timestamp": 123}
    - Outgoing:
        - {"type": "notification.insert", "data": {...notification row...}}
        - {"type": "pong", "timestamp": 123}
        - {"type": "error", "message": "..."}
    """
    user = await _authenticate(token)
    if user is None:
        await websocket.close(code=4001, reason="Invalid token")
        return

    await websocket.accept()

    async def deliver(message: dict) -> None:
        await websocket.send_json(message)

    async with broker.subscribe(user.id, deliver):
        logger.info("Notification socket connected: user=%s", user.username)
        last_revalidation = time.monotonic()

        try:
            while True:
                try:
                    data = await asyncio.wait_for(
                        websocket.receive_text(),
                        timeout=_TOKEN_REVALIDATION_INTERVAL,
                    )
                except TimeoutError:
                    data = None

                now = time.monotonic()
                if data is None or now - last_revalidation > _TOKEN_REVALIDATION_INTERVAL:
                    if await _authenticate(token) is None:
                        logger.info("Notification socket token expired: user=%s", user.username)
                        await websocket.send_json(
                            {"type": "error", "message": "Session expired. Please reconnect."}
                        )
                        await websocket.close(code=4001, reason="Token expired")
                        break
                    last_revalidation = now
                    if data is None:
                        continue

                message, error = _validate_message(data)
                if error:
                    await websocket.send_json({"type": "error", "message": error})
                    continue

                await websocket.send_json({"type": "pong", "timestamp": message.get("timestamp")})

        except WebSocketDisconnect:
            logger.info("Notification socket disconnected: user=%s", user.username)
        except Exception as e:
            logger.warning("Notification socket error for user=%s: %s", user.username, e)
