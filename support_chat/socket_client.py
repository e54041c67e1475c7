# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Push channel client for the support chat view.

This module implements a Socket.IO based client for receiving newMessage and
newChatSession events from the dashboard backend.
"""

import asyncio
from typing import Callable, Dict, Optional

import socketio

from shared.logger import setup_logger
from shared.utils.http_client import normalize_token
from support_chat.config import Settings
from support_chat.credentials import get_access_token
from support_chat.events import ConnectionEvents
from support_chat.exceptions import PushChannelError

logger = setup_logger(__name__)


class PushSocketClient:
    """Socket.IO client for the backend push channel.

    Features:
    - Automatic reconnection with exponential backoff
    - Authentication via bearer token
    - Connection state management
    - Handlers that can be detached again with off()
    """

    def __init__(
        self,
        url: str,
        auth_token: Optional[str] = None,
        namespace: str = "/",
        socketio_path: str = "/socket.io",
        reconnection: bool = True,
        reconnection_attempts: int = 0,  # 0 = infinite
        reconnection_delay: int = 1,
        reconnection_delay_max: int = 30,
    ):
        """Initialize the push channel client.

        Args:
            url: Backend Socket.IO URL.
            auth_token: Authentication token, optional Bearer prefix stripped.
            namespace: Socket.IO namespace the chat events are emitted on.
            socketio_path: Socket.IO endpoint path on the server.
            reconnection: Enable automatic reconnection. Defaults to True.
            reconnection_attempts: Max reconnection attempts (0 for infinite).
            reconnection_delay: Initial reconnection delay in seconds.
            reconnection_delay_max: Maximum reconnection delay in seconds.
        """
        self.url = url
        self.auth_token = normalize_token(auth_token)
        self.namespace = namespace
        self.socketio_path = socketio_path

        self.sio = socketio.AsyncClient(
            reconnection=reconnection,
            reconnection_attempts=reconnection_attempts,
            reconnection_delay=reconnection_delay,
            reconnection_delay_max=reconnection_delay_max,
            logger=False,
            engineio_logger=False,
        )

        self._connected = False
        self._connecting = False
        self._connection_error: Optional[str] = None

        self._handlers: Dict[str, Callable] = {}

        self._setup_internal_handlers()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PushSocketClient":
        return cls(
            url=settings.SOCKET_URL,
            auth_token=get_access_token(settings),
            namespace=settings.SOCKET_NAMESPACE,
            socketio_path=settings.SOCKET_PATH,
            reconnection_delay=settings.SOCKET_RECONNECT_DELAY,
            reconnection_delay_max=settings.SOCKET_RECONNECT_MAX_DELAY,
        )

    def _setup_internal_handlers(self) -> None:
        """Setup internal event handlers for connection lifecycle."""

        @self.sio.on(ConnectionEvents.CONNECT, namespace=self.namespace)
        async def on_connect():
            self._connected = True
            self._connecting = False
            self._connection_error = None
            logger.info(f"Push channel connected to {self.url} ({self.namespace})")

        @self.sio.on(ConnectionEvents.DISCONNECT, namespace=self.namespace)
        async def on_disconnect(*args):
            self._connected = False
            logger.info("Push channel disconnected")

        @self.sio.on(ConnectionEvents.CONNECT_ERROR, namespace=self.namespace)
        async def on_connect_error(data):
            self._connected = False
            self._connecting = False
            self._connection_error = str(data) if data else "Unknown connection error"
            logger.error(f"Push channel connection error: {self._connection_error}")

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def connection_error(self) -> Optional[str]:
        return self._connection_error

    @property
    def handlers(self) -> Dict[str, Callable]:
        """Currently attached application handlers by event name."""
        return dict(self._handlers)

    async def connect(self, wait_timeout: float = 10.0) -> bool:
        """Connect to the backend push channel.

        Args:
            wait_timeout: Maximum time to wait for connection in seconds.

        Returns:
            True if connected successfully, False otherwise.
        """
        if not self.url:
            raise PushChannelError(
                "Socket URL not configured. Set SUPPORT_CHAT_SOCKET_URL."
            )

        if self._connected:
            logger.info("Push channel already connected")
            return True

        if self._connecting:
            logger.info("Push channel connection already in progress")
            waited = 0.0
            while self._connecting and waited < wait_timeout:
                await asyncio.sleep(0.1)
                waited += 0.1
            return self._connected

        self._connecting = True
        self._connection_error = None

        try:
            logger.info(f"Connecting push channel: {self.url}")
            await self.sio.connect(
                self.url,
                auth={"token": self.auth_token} if self.auth_token else None,
                transports=["websocket"],
                wait_timeout=wait_timeout,
                namespaces=[self.namespace],
                socketio_path=self.socketio_path,
            )
            return self._connected

        except Exception as e:
            self._connecting = False
            self._connection_error = str(e)
            logger.error(f"Failed to connect push channel: {e}")
            return False

    async def disconnect(self) -> None:
        """Disconnect from the push channel."""
        if self._connected:
            try:
                await self.sio.disconnect()
                logger.info("Push channel disconnected gracefully")
            except Exception as e:
                logger.warning(f"Error during push channel disconnect: {e}")
        self._connected = False

    def on(self, event: str, handler: Callable) -> None:
        """Register an event handler.

        Args:
            event: Event name to listen for.
            handler: Async function to handle the event.
        """
        self._handlers[event] = handler
        self.sio.on(event, handler, namespace=self.namespace)
        logger.debug(f"Registered handler for event: {event}")

    def off(self, event: str) -> None:
        """Unregister an event handler so it is no longer called.

        Args:
            event: Event name to stop listening for.
        """
        self._handlers.pop(event, None)
        self.sio.handlers.get(self.namespace, {}).pop(event, None)
        logger.debug(f"Unregistered handler for event: {event}")

    async def wait(self) -> None:
        """Wait until disconnected."""
        await self.sio.wait()
