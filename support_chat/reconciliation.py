# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Reconciliation policy for the support chat engine.

Everything in this module is a pure function over immutable records:
- mapping raw wire dictionaries into ChatSession / Message
- the derived, stably sorted session list
- the one-shot chronological transform of a fetched message page
- per-viewer is_admin annotation
- the session reducer that merges optimistic patches with confirmed snapshots
- unread-count bookkeeping under an UnreadPolicy

Stores call into here; nothing here performs I/O or keeps state.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from shared.logger import setup_logger
from support_chat.models import (
    AgentIdentity,
    ChatSession,
    ChatStatus,
    Message,
    TimelineEntry,
    UnreadPolicy,
    WireChat,
    WireMessage,
    WireUser,
)

logger = setup_logger(__name__)

UNKNOWN_USER_NAME = "Unknown user"

# Sessions without any timestamp sink to the bottom of the list
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_status(value: Optional[str]) -> ChatStatus:
    """Map a wire status of any casing onto ChatStatus.

    Missing or unrecognized values fall back to ACTIVE.
    """
    if not value:
        return ChatStatus.ACTIVE
    try:
        return ChatStatus(value.strip().upper())
    except ValueError:
        logger.warning(f"Unknown chat status {value!r}, treating as ACTIVE")
        return ChatStatus.ACTIVE


def display_name(user: Optional[WireUser]) -> str:
    """Participant name, else the local part of the email, else a placeholder."""
    if user is None:
        return UNKNOWN_USER_NAME
    if user.name and user.name.strip():
        return user.name.strip()
    if user.email and "@" in user.email:
        local_part = user.email.split("@", 1)[0]
        if local_part:
            return local_part
    return UNKNOWN_USER_NAME


def _pick_customer(
    participants: List[WireUser], identity: Optional[AgentIdentity]
) -> Optional[WireUser]:
    if not participants:
        return None
    if identity is not None:
        for participant in participants:
            if participant.id != identity.id:
                return participant
    return participants[0]


def map_session(
    raw: Any,
    identity: Optional[AgentIdentity] = None,
    default_avatar: str = "",
) -> Optional[ChatSession]:
    """
    Map one raw chat summary into a ChatSession.

    Args:
        raw: Dictionary as sent by GET /chats or a newChatSession event
        identity: Current agent, used to tell the customer apart from the agent
        default_avatar: Placeholder used when the customer has no avatar

    Returns:
        ChatSession, or None when the record has no usable id
    """
    try:
        chat = WireChat.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Skipping malformed chat record: {e.error_count()} errors")
        return None

    if not chat.id:
        logger.warning("Skipping chat record without id")
        return None

    customer = _pick_customer(chat.participants, identity)
    last_message = chat.last_message
    last_text = last_message.text if last_message is not None else None
    last_time = None
    if last_message is not None:
        last_time = last_message.updated_at or last_message.created_at
    avatar = None
    if customer is not None:
        avatar = customer.avatar or customer.image

    return ChatSession(
        id=chat.id,
        user_name=display_name(customer),
        user_email=(customer.email if customer and customer.email else ""),
        avatar=avatar or default_avatar,
        last_message=last_text or None,
        last_message_time=last_time,
        updated_at=chat.updated_at,
        unread_count=chat.unread_count or 0,
        status=normalize_status(chat.status),
        participant_id=customer.id if customer else None,
    )


def map_sessions(
    raw_items: Iterable[Any],
    identity: Optional[AgentIdentity] = None,
    default_avatar: str = "",
) -> List[ChatSession]:
    """Map a page of chat summaries, dropping unusable records, keeping order."""
    sessions = []
    for raw in raw_items:
        session = map_session(raw, identity=identity, default_avatar=default_avatar)
        if session is not None:
            sessions.append(session)
    return sessions


def map_message(raw: Any, chat_id: Optional[str] = None) -> Optional[Message]:
    """
    Map one raw message into a Message.

    Args:
        raw: Dictionary as sent by the messages endpoint, a send echo or a push
        chat_id: Session the message was fetched for, used when the record
            does not name its chat

    Returns:
        Message, or None when the record has no usable id
    """
    try:
        wire = WireMessage.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Skipping malformed message record: {e.error_count()} errors")
        return None

    if not wire.id:
        logger.warning("Skipping message record without id")
        return None

    sender = wire.sender
    return Message(
        id=wire.id,
        chat_id=wire.chat_id or chat_id,
        sender_id=sender.id if sender else None,
        sender_name=display_name(sender),
        text=wire.text or "",
        timestamp=wire.created_at,
    )


def chronological(newest_first: Iterable[Message]) -> List[Message]:
    """
    Turn a newest-first page into an oldest-first timeline.

    Returns a new list and never touches its input. The page is reversed once
    and then stably ordered by timestamp, so applying this to the same page
    any number of times yields the same order. Messages without a timestamp
    keep their reversed position after all timestamped ones.
    """
    oldest_first = list(reversed(list(newest_first)))
    return sorted(
        oldest_first,
        key=lambda m: (m.timestamp is None, m.timestamp or _EPOCH),
    )


def sort_sessions(sessions: Iterable[ChatSession]) -> List[ChatSession]:
    """Sessions by last_message_date, newest first, ties kept in arrival order."""
    return sorted(
        sessions,
        key=lambda s: s.last_message_date or _EPOCH,
        reverse=True,
    )


def is_admin(message: Message, identity: AgentIdentity) -> bool:
    """Whether the message was written by the given agent."""
    return message.sender_id is not None and message.sender_id == identity.id


def annotate_messages(
    messages: Iterable[Message], identity: AgentIdentity
) -> List[TimelineEntry]:
    return [TimelineEntry(message=m, is_admin=is_admin(m, identity)) for m in messages]


def active_count(sessions: Iterable[ChatSession]) -> int:
    return sum(1 for s in sessions if s.status is ChatStatus.ACTIVE)


# ---------------------------------------------------------------------------
# Session reducer: optimistic patches vs confirmed snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Optimistic:
    """A local, unconfirmed change to one session's last message."""

    chat_id: str
    last_message: str
    last_message_time: Optional[datetime]


@dataclass(frozen=True)
class Confirmed:
    """A full server snapshot of the session list."""

    sessions: Tuple[ChatSession, ...]


SessionUpdate = Union[Optimistic, Confirmed]


@dataclass(frozen=True)
class SessionState:
    confirmed: Tuple[ChatSession, ...] = ()
    optimistic: Mapping[str, Optimistic] = field(default_factory=dict)

    def view(self) -> List[ChatSession]:
        """Confirmed sessions with pending optimistic patches applied, unsorted."""
        return [apply_patch(s, self.optimistic.get(s.id)) for s in self.confirmed]


def apply_patch(session: ChatSession, patch: Optional[Optimistic]) -> ChatSession:
    if patch is None or patch.chat_id != session.id:
        return session
    return replace(
        session,
        last_message=patch.last_message,
        last_message_time=patch.last_message_time,
    )


def reduce_sessions(state: SessionState, update: SessionUpdate) -> SessionState:
    """
    Fold one update into the session state.

    A Confirmed snapshot replaces the session list and discards optimistic
    patches for every session it contains, whatever order the two arrived
    in. Patches for sessions the snapshot does not contain are kept.
    An Optimistic patch replaces any earlier patch for the same session.
    """
    if isinstance(update, Confirmed):
        confirmed_ids = {s.id for s in update.sessions}
        remaining = {
            chat_id: patch
            for chat_id, patch in state.optimistic.items()
            if chat_id not in confirmed_ids
        }
        return SessionState(confirmed=tuple(update.sessions), optimistic=remaining)

    if isinstance(update, Optimistic):
        optimistic = dict(state.optimistic)
        optimistic[update.chat_id] = update
        return SessionState(confirmed=state.confirmed, optimistic=optimistic)

    raise TypeError(f"Unsupported session update: {type(update).__name__}")


# ---------------------------------------------------------------------------
# Unread-count bookkeeping
# ---------------------------------------------------------------------------


def rebase_unread(
    baselines: Mapping[str, int],
    sessions: Iterable[ChatSession],
    active_chat_id: Optional[str],
) -> Dict[str, int]:
    """
    Advance read baselines against a new snapshot.

    The open session's baseline follows the server count (it reads as 0);
    any other baseline only ever moves down, to follow a server-side reset.
    """
    result = dict(baselines)
    for session in sessions:
        if session.id == active_chat_id:
            result[session.id] = session.unread_count
        elif session.id in result:
            result[session.id] = min(result[session.id], session.unread_count)
    return result


def displayed_unread(
    session: ChatSession, baselines: Mapping[str, int], policy: UnreadPolicy
) -> ChatSession:
    if policy is UnreadPolicy.SERVER:
        return session
    baseline = baselines.get(session.id, 0)
    unread = max(0, session.unread_count - baseline)
    if unread == session.unread_count:
        return session
    return replace(session, unread_count=unread)
