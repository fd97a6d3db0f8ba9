# =============================================================================
# notilisten -- WebSocket Transport
# =============================================================================
#
# Topic stream over a WebSocket.  Frames are JSON objects, optionally
# preceded by a category prefix ("WSE" system, "S" snapshot, "U" update):
#
#   U{"t": "orders", "p": {"id": 42}, "sender": 7}
#
# "t" is the topic and "p" the payload.  Subscriptions are requested with a
# "subscription_update" system frame.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from typing import Any

import websockets
import websockets.asyncio.client
from websockets.exceptions import ConnectionClosed

from ._logging import logger
from .constants import (
    WS_CLOSE_NORMAL,
    WS_CONNECTION_TIMEOUT,
    WS_MAX_MESSAGE_SIZE,
    WS_PREFIXES,
    WS_PROTOCOL_VERSION,
)
from .errors import ConnectError, SessionError, SubscribeError
from .session import Connect
from .types import Notification

try:
    import orjson

    def _json_loads(data: str | bytes) -> Any:
        return orjson.loads(data)

    def _json_dumps(obj: Any) -> str:
        return orjson.dumps(obj).decode()

except ImportError:

    def _json_loads(data: str | bytes) -> Any:
        return json.loads(data)

    def _json_dumps(obj: Any) -> str:
        return json.dumps(obj, separators=(",", ":"))


def encode_subscribe(topic: str) -> str:
    msg = {
        "t": "subscription_update",
        "p": {"action": "subscribe", "topics": [topic]},
        "v": WS_PROTOCOL_VERSION,
    }
    return f"WSE{_json_dumps(msg)}"


def decode_frame(data: str | bytes) -> Notification | None:
    """Turn a frame into a notification.

    Returns None for frames that carry no topic (acks, heartbeats, ...) and
    for corrupt frames, which are logged and dropped.
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Corrupt binary frame (%d bytes, not UTF-8), dropping", len(data))
            return None

    body = data
    for prefix in WS_PREFIXES:
        if body.startswith(prefix + "{"):
            body = body[len(prefix):]
            break

    try:
        parsed = _json_loads(body)
    except ValueError:
        logger.warning("Corrupt frame (%d chars, invalid JSON), dropping", len(data))
        return None
    if not isinstance(parsed, dict):
        logger.warning("Frame is not a JSON object (%s), dropping", type(parsed).__name__)
        return None

    topic = parsed.get("t")
    if not isinstance(topic, str) or topic == "subscription_update":
        return None

    payload = parsed.get("p", "")
    if not isinstance(payload, str):
        payload = _json_dumps(payload)

    sender = parsed.get("sender")
    return Notification(
        topic=topic,
        payload=payload,
        sender_id=sender if isinstance(sender, int) else None,
    )


class WebSocketSession:
    """One WebSocket connection streaming topic notifications."""

    def __init__(self, ws: websockets.asyncio.client.ClientConnection) -> None:
        self._ws = ws
        self._closed = False

    async def subscribe(self, topic: str) -> None:
        try:
            await self._ws.send(encode_subscribe(topic))
        except ConnectionClosed as exc:
            raise SubscribeError(topic, f"Connection closed while subscribing: {exc}") from exc

    async def wait_for_notification(self) -> Notification:
        while True:
            try:
                frame = await self._ws.recv()
            except ConnectionClosed as exc:
                raise SessionError(f"WebSocket closed: {exc}") from exc
            notification = decode_frame(frame)
            if notification is not None:
                return notification
            logger.debug("Ignoring frame without topic")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close(WS_CLOSE_NORMAL, "Client disconnect")
        except ConnectionClosed:
            pass


def connect_websocket(
    url: str,
    *,
    token: str | None = None,
    extra_headers: dict[str, str] | None = None,
    open_timeout: float = WS_CONNECTION_TIMEOUT,
) -> Connect:
    """Build a :data:`~notilisten.session.Connect` for a WebSocket endpoint.

    Args:
        url: Server URL, e.g. ``"ws://localhost:5006/wse"``.
        token: Bearer token sent in the Authorization header.
        extra_headers: Additional HTTP headers for the handshake.
        open_timeout: Seconds allowed for the opening handshake.
    """
    headers = dict(extra_headers or {})
    if token:
        headers["Authorization"] = f"Bearer {token}"

    async def connect() -> WebSocketSession:
        try:
            ws = await asyncio.wait_for(
                websockets.asyncio.client.connect(
                    url,
                    additional_headers=headers,
                    max_size=WS_MAX_MESSAGE_SIZE,
                    open_timeout=None,  # asyncio.wait_for handles timeout
                ),
                timeout=open_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ConnectError(f"Connection timed out after {open_timeout}s") from exc
        except (OSError, websockets.exceptions.WebSocketException) as exc:
            raise ConnectError(f"Failed to connect: {exc}") from exc
        return WebSocketSession(ws)

    return connect
