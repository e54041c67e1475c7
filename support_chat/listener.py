# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Push event listener for the support chat view.

Push payloads are never spliced into the stores. Each event only decides
which store must go back to the REST source of truth:
- newMessage      -> timeline refetch (active chat) + session list refetch
- newChatSession  -> session list refetch
"""

import asyncio
from typing import TYPE_CHECKING, Any, Optional

from shared.logger import chat_context, setup_logger
from support_chat.events import ChatEvents

if TYPE_CHECKING:
    from support_chat.socket_client import PushSocketClient
    from support_chat.stores import MessageTimelineStore, SessionSummaryStore

logger = setup_logger(__name__)

_CHAT_ID_KEYS = ("chatId", "chat_id", "chat")


def extract_chat_id(payload: Any) -> Optional[str]:
    """Find the chat a push payload belongs to.

    Accepts a bare message, {"chatId": ..., "message": {...}} envelopes and
    populated or unpopulated "chat" references.
    """
    if not isinstance(payload, dict):
        return None
    for candidate in (payload, payload.get("message")):
        if not isinstance(candidate, dict):
            continue
        for key in _CHAT_ID_KEYS:
            value = candidate.get(key)
            if isinstance(value, dict):
                value = value.get("_id") or value.get("id")
            if value not in (None, ""):
                return str(value)
    return None


class PushEventListener:
    """Keeps one logical subscription to the chat push events.

    Usage:
        async with PushEventListener(socket, summaries, timeline):
            ...  # handlers attached
        # handlers detached, also when the block raised
    """

    def __init__(
        self,
        socket: "PushSocketClient",
        summaries: "SessionSummaryStore",
        timeline: "MessageTimelineStore",
    ):
        self.socket = socket
        self.summaries = summaries
        self.timeline = timeline
        self._subscribed = False

    @property
    def subscribed(self) -> bool:
        return self._subscribed

    def subscribe(self) -> None:
        if self._subscribed:
            logger.warning("Push listener already subscribed")
            return
        self.socket.on(ChatEvents.NEW_MESSAGE, self.handle_new_message)
        self._subscribed = True
        try:
            self.socket.on(ChatEvents.NEW_CHAT_SESSION, self.handle_new_chat_session)
        except Exception:
            self.unsubscribe()
            raise
        logger.info("Push listener subscribed")

    def unsubscribe(self) -> None:
        """Detach both handlers; each one is released even if the other fails."""
        if not self._subscribed:
            return
        self._subscribed = False
        try:
            self.socket.off(ChatEvents.NEW_MESSAGE)
        finally:
            self.socket.off(ChatEvents.NEW_CHAT_SESSION)
        logger.info("Push listener unsubscribed")

    async def __aenter__(self) -> "PushEventListener":
        self.subscribe()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()

    async def handle_new_message(self, data: Any) -> None:
        """Handle a newMessage push.

        The timeline is refetched when the message belongs to the open chat,
        or when the payload does not say which chat it belongs to. The session
        list is refetched in every case, its previews and unread counts moved.
        """
        chat_id = extract_chat_id(data)
        with chat_context(chat_id):
            logger.info(f"Received {ChatEvents.NEW_MESSAGE} for chat {chat_id}")
            refetches = [self.summaries.refetch()]
            active = self.timeline.active_chat_id
            if active is not None and (chat_id is None or chat_id == active):
                refetches.append(self.timeline.refetch())
            await self._run(refetches)

    async def handle_new_chat_session(self, data: Any) -> None:
        """Handle a newChatSession push by refetching the session list."""
        chat_id = extract_chat_id({"chat": data}) if isinstance(data, dict) else None
        with chat_context(chat_id):
            logger.info(f"Received {ChatEvents.NEW_CHAT_SESSION}")
            await self._run([self.summaries.refetch()])

    async def _run(self, refetches) -> None:
        results = await asyncio.gather(*refetches, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"Push-triggered refetch failed: {result!r}")
