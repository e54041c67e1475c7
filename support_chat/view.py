# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Support chat view: the stores, push listener, compose pipeline and poller
wired together for one agent.

Control flow:
    push event  -> PushEventListener -> store refetch -> sessions / messages
    agent send  -> ComposePipeline -> REST -> optimistic patch + refetch
"""

import asyncio
from typing import TYPE_CHECKING, List, Optional

from shared.logger import chat_context, setup_logger
from support_chat.compose import ComposePipeline
from support_chat.config import Settings
from support_chat.listener import PushEventListener
from support_chat.models import (
    AgentIdentity,
    ChatSession,
    Message,
    TimelineEntry,
    UnreadPolicy,
)
from support_chat.poller import SummaryPoller
from support_chat.stores import MessageTimelineStore, SessionSummaryStore

if TYPE_CHECKING:
    from support_chat.api_client import ChatApiClient
    from support_chat.socket_client import PushSocketClient

logger = setup_logger(__name__)


class SupportChatView:
    """One agent's live view over all support conversations.

    Usage:
        async with SupportChatView(api, socket, identity) as view:
            await view.select_session(view.sessions[0].id)
            await view.send("Hello")
    """

    def __init__(
        self,
        api: "ChatApiClient",
        socket: "PushSocketClient",
        identity: AgentIdentity,
        default_avatar: str = "",
        unread_policy: UnreadPolicy = UnreadPolicy.RESET_ON_OPEN,
        refresh_interval: float = 0,
    ):
        self.identity = identity
        self.summaries = SessionSummaryStore(
            api,
            identity=identity,
            default_avatar=default_avatar,
            unread_policy=unread_policy,
        )
        self.timeline = MessageTimelineStore(api)
        self.listener = PushEventListener(socket, self.summaries, self.timeline)
        self.compose = ComposePipeline(
            api, self.summaries, self.timeline, identity=identity
        )
        self.poller = SummaryPoller(self.summaries, refresh_interval)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        api: "ChatApiClient",
        socket: "PushSocketClient",
        identity: AgentIdentity,
    ) -> "SupportChatView":
        return cls(
            api,
            socket,
            identity,
            default_avatar=settings.DEFAULT_AVATAR_URL,
            unread_policy=settings.UNREAD_POLICY,
            refresh_interval=settings.SUMMARY_REFRESH_INTERVAL,
        )

    async def open(self) -> None:
        """Subscribe to push events, start polling and load the session list."""
        self.listener.subscribe()
        try:
            await self.poller.start()
            await self.summaries.refetch()
        except BaseException:
            await self.close()
            raise

    async def close(self) -> None:
        """Stop polling and drop the push subscription."""
        try:
            await self.poller.stop()
        finally:
            self.listener.unsubscribe()

    async def __aenter__(self) -> "SupportChatView":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def sessions(self) -> List[ChatSession]:
        return self.summaries.sessions

    @property
    def messages(self) -> List[TimelineEntry]:
        return self.timeline.read(self.identity)

    @property
    def selected(self) -> Optional[ChatSession]:
        chat_id = self.timeline.active_chat_id
        return self.summaries.get(chat_id) if chat_id else None

    def active_count(self) -> int:
        return self.summaries.active_count()

    async def select_session(self, chat_id: Optional[str]) -> bool:
        """Open a chat (or none) and load its timeline.

        Returns:
            True if the new timeline was loaded
        """
        self.timeline.activate(chat_id)
        self.summaries.mark_opened(chat_id)
        if chat_id is None:
            return False
        with chat_context(chat_id):
            logger.info("Chat opened")
        return await self.timeline.refetch()

    async def refresh(self) -> None:
        """Manual refresh of both stores, e.g. after an error."""
        await asyncio.gather(self.summaries.refetch(), self.timeline.refetch())

    async def send(self, text: Optional[str] = None) -> Optional[Message]:
        """Send text (or the current buffer) to the open chat."""
        if text is not None:
            self.compose.set_text(text)
        return await self.compose.submit()
