# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Session summary and message timeline stores.

Both stores are written by exactly one agent view running on one event loop.
Every refetch is a full replacement with the latest server snapshot, so the
last fetch to resolve wins regardless of dispatch order. Failures are kept
local to the store that saw them: status becomes ERROR, error holds the
message and the previous data stays readable.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from shared.logger import chat_context, setup_logger
from support_chat.exceptions import ApiError
from support_chat.models import (
    AgentIdentity,
    ChatSession,
    Message,
    TimelineEntry,
    UnreadPolicy,
)
from support_chat.reconciliation import (
    Confirmed,
    Optimistic,
    SessionState,
    SessionUpdate,
    active_count,
    annotate_messages,
    chronological,
    displayed_unread,
    map_message,
    map_sessions,
    rebase_unread,
    reduce_sessions,
    sort_sessions,
)

if TYPE_CHECKING:
    from support_chat.api_client import ChatApiClient

logger = setup_logger(__name__)


class FetchStatus(str, Enum):
    """Fetch state of a store. IDLE means nothing was requested yet."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


class SessionSummaryStore:
    """Holds the chat session list and derives the sorted display view."""

    def __init__(
        self,
        api: "ChatApiClient",
        identity: Optional[AgentIdentity] = None,
        default_avatar: str = "",
        unread_policy: UnreadPolicy = UnreadPolicy.RESET_ON_OPEN,
    ):
        self.api = api
        self.identity = identity
        self.default_avatar = default_avatar
        self.unread_policy = unread_policy

        self.status = FetchStatus.IDLE
        self.error: Optional[str] = None

        self._state = SessionState()
        self._baselines: Dict[str, int] = {}
        self._open_chat_id: Optional[str] = None

    @property
    def sessions(self) -> List[ChatSession]:
        """Display list: patches applied, unread policy applied, newest first.

        Recomputed on every access; the stored order is never changed.
        """
        shown = [
            displayed_unread(s, self._baselines, self.unread_policy)
            for s in self._state.view()
        ]
        return sort_sessions(shown)

    def get(self, chat_id: str) -> Optional[ChatSession]:
        for session in self.sessions:
            if session.id == chat_id:
                return session
        return None

    def active_count(self) -> int:
        return active_count(self._state.confirmed)

    def apply(self, update: SessionUpdate) -> None:
        """Fold an Optimistic patch or a Confirmed snapshot into the store."""
        self._state = reduce_sessions(self._state, update)
        if isinstance(update, Confirmed):
            self._baselines = rebase_unread(
                self._baselines, update.sessions, self._open_chat_id
            )

    def patch_last_message(
        self, chat_id: str, text: str, timestamp: Optional[datetime]
    ) -> None:
        """Optimistically move a session's last message ahead of the next snapshot."""
        self.apply(
            Optimistic(chat_id=chat_id, last_message=text, last_message_time=timestamp)
        )

    def mark_opened(self, chat_id: Optional[str]) -> None:
        """Record that the agent is now looking at chat_id (None for no session)."""
        self._open_chat_id = chat_id
        if chat_id is None:
            return
        for session in self._state.confirmed:
            if session.id == chat_id:
                self._baselines[chat_id] = session.unread_count
                break

    async def refetch(self) -> bool:
        """Replace the session list with the server's current first page.

        Returns:
            True if the snapshot was applied, False if the fetch failed
        """
        self.status = FetchStatus.LOADING
        try:
            raw = await self.api.list_chats()
        except ApiError as e:
            self.status = FetchStatus.ERROR
            self.error = str(e)
            logger.error(f"Failed to refresh chat sessions: {e}")
            return False

        sessions = map_sessions(
            raw, identity=self.identity, default_avatar=self.default_avatar
        )
        self.apply(Confirmed(sessions=tuple(sessions)))
        self.status = FetchStatus.READY
        self.error = None
        logger.debug(f"Chat sessions refreshed: {len(sessions)} sessions")
        return True


class MessageTimelineStore:
    """Holds the chronological timeline of at most one active session.

    Every activation bumps a monotonic token. A fetch remembers the token it
    was issued under and commits only if that token is still current, so a
    late response for a session the agent has left is dropped.
    """

    def __init__(self, api: "ChatApiClient"):
        self.api = api

        self.status = FetchStatus.IDLE
        self.error: Optional[str] = None

        self._active_chat_id: Optional[str] = None
        self._token = 0
        self._messages: Tuple[Message, ...] = ()
        self._pending: Tuple[Message, ...] = ()

    @property
    def active_chat_id(self) -> Optional[str]:
        return self._active_chat_id

    @property
    def token(self) -> int:
        return self._token

    @property
    def messages(self) -> List[Message]:
        """Committed timeline followed by local messages it does not hold yet."""
        committed_ids = {m.id for m in self._messages}
        return list(self._messages) + [
            m for m in self._pending if m.id not in committed_ids
        ]

    def read(self, identity: AgentIdentity) -> List[TimelineEntry]:
        """Timeline as seen by the given agent, is_admin computed now."""
        return annotate_messages(self.messages, identity)

    def activate(self, chat_id: Optional[str]) -> int:
        """Switch to chat_id, dropping the previous timeline.

        Returns:
            The new session token
        """
        self._token += 1
        self._active_chat_id = chat_id
        self._messages = ()
        self._pending = ()
        self.status = FetchStatus.IDLE
        self.error = None
        logger.debug(f"Timeline switched to chat {chat_id} (token {self._token})")
        return self._token

    def is_current(self, token: int, chat_id: Optional[str]) -> bool:
        return token == self._token and chat_id == self._active_chat_id

    def add_pending(self, message: Message) -> None:
        """Show a message that was submitted but not confirmed yet."""
        if message.chat_id != self._active_chat_id:
            return
        self._pending = self._pending + (message,)

    def resolve_pending(self, local_id: str, confirmed: Optional[Message]) -> None:
        """Swap a pending message for the server's record, or drop it on failure.

        A confirmed record stays visible until a committed page contains it.
        """
        pending = []
        for message in self._pending:
            if message.id != local_id:
                pending.append(message)
            elif confirmed is not None and confirmed.chat_id == self._active_chat_id:
                pending.append(confirmed)
        self._pending = tuple(pending)

    async def refetch(self) -> bool:
        """Replace the active session's timeline with the server's latest page.

        Returns:
            True if the result was committed, False if there is no active
            session, the fetch failed or the result went stale
        """
        chat_id = self._active_chat_id
        token = self._token
        if chat_id is None:
            return False

        with chat_context(chat_id):
            self.status = FetchStatus.LOADING
            try:
                raw = await self.api.list_messages(chat_id)
            except ApiError as e:
                if not self.is_current(token, chat_id):
                    logger.debug("Ignoring failure of a stale timeline fetch")
                    return False
                self.status = FetchStatus.ERROR
                self.error = str(e)
                logger.error(f"Failed to load messages: {e}")
                return False

            if not self.is_current(token, chat_id):
                logger.info(
                    f"Discarding stale timeline for chat {chat_id}, "
                    f"active chat is now {self._active_chat_id}"
                )
                return False

            page = [m for m in (map_message(r, chat_id=chat_id) for r in raw) if m]
            self._messages = tuple(chronological(page))
            committed_ids = {m.id for m in self._messages}
            self._pending = tuple(
                m for m in self._pending if m.id not in committed_ids
            )
            self.status = FetchStatus.READY
            self.error = None
            logger.debug(f"Timeline refreshed: {len(self._messages)} messages")
            return True
