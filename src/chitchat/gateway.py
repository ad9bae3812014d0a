"""Binds one websocket connection to a broadcaster subscription.

A session relays every broadcast event to its peer and, at the same time,
drains whatever the peer sends until it closes. Whichever duty ends first
(peer closed, a send failed, or the session was cancelled) stops the other.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

import anyio
from fastapi import WebSocket
from fastapi.websockets import WebSocketState
from pydantic import BaseModel

from .broadcast import Broadcaster, Subscription

logger = logging.getLogger("chitchat.gateway")


class SessionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionGateway:
    """Lifecycle of a single websocket client: ``CONNECTING -> ACTIVE -> CLOSED``."""

    def __init__(self, websocket: WebSocket, broadcaster: Broadcaster) -> None:
        self.websocket = websocket
        self.broadcaster = broadcaster
        self.state = SessionState.CONNECTING
        self._subscription: Optional[Subscription] = None

    async def run(self) -> None:
        """Serve the connection until it closes. Never raises on peer failure."""
        # Subscribe before completing the handshake so that anything published
        # once the client sees the connection open is delivered to it.
        self._subscription = self.broadcaster.subscribe()
        try:
            await self.websocket.accept()
            self.state = SessionState.ACTIVE
            logger.info("websocket client connected")

            # Whichever duty returns first cancels the group, stopping the other.
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._relay, self._subscription, tg.cancel_scope)
                tg.start_soon(self._drain, tg.cancel_scope)
        finally:
            self._close_subscription()
            with anyio.CancelScope(shield=True):
                await self._close_socket()

    # --------- duties ----------
    async def _relay(self, subscription: Subscription, scope: anyio.CancelScope) -> None:
        try:
            async for event in subscription:
                payload = event.model_dump_json() if isinstance(event, BaseModel) else str(event)
                try:
                    await self.websocket.send_text(payload)
                except Exception as e:  # noqa: BLE001 - any send failure means the peer is gone
                    logger.warning("failed to send websocket message: %s", e)
                    return
        finally:
            scope.cancel()

    async def _drain(self, scope: anyio.CancelScope) -> None:
        # Inbound data is ignored; only the close matters.
        try:
            while True:
                try:
                    message = await self.websocket.receive()
                except RuntimeError as e:
                    logger.warning("failed to read websocket message: %s", e)
                    return
                if message.get("type") == "websocket.disconnect":
                    logger.info("websocket client disconnected")
                    return
        finally:
            scope.cancel()

    # --------- teardown ----------
    def _close_subscription(self) -> None:
        self.state = SessionState.CLOSED
        if self._subscription is not None:
            self._subscription.close()

    async def _close_socket(self) -> None:
        if (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        ):
            try:
                await self.websocket.close()
            except Exception as e:  # noqa: BLE001
                logger.debug("websocket close failed: %s", e)


__all__ = ["SessionGateway", "SessionState"]
