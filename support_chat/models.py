# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Data definitions for the support chat engine.

Two layers live here:
- Wire records (pydantic) describe what the REST backend and the push
  channel send. They are lenient: unknown keys are ignored, unparseable
  timestamps become None and half-populated references are coerced.
- Domain records (frozen dataclasses) are what the stores hold and what the
  presentation layer reads. They are produced only by support_chat.reconciliation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    WrapValidator,
    field_validator,
    model_validator,
)

NO_MESSAGES_PREVIEW = "No messages yet"


class ChatStatus(str, Enum):
    """Lifecycle status of a support conversation."""

    ACTIVE = "ACTIVE"
    WAITING = "WAITING"
    CLOSED = "CLOSED"


class UnreadPolicy(str, Enum):
    """How the displayed unread count relates to the server's count."""

    SERVER = "server"
    RESET_ON_OPEN = "reset_on_open"


def _lenient_datetime(value: Any, handler) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        parsed = handler(value)
    except ValidationError:
        return None
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


LenientDatetime = Annotated[Optional[datetime], WrapValidator(_lenient_datetime)]


class WireRecord(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )


class WireUser(WireRecord):
    """A participant or message sender as embedded by the backend."""

    id: Optional[str] = Field(default=None, alias="_id")
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def coerce(cls, value: Any) -> Any:
        """Turn an unpopulated reference (bare id) into a record."""
        if isinstance(value, (str, int)):
            return {"_id": str(value)}
        return value


class WireLastMessage(WireRecord):
    text: Optional[str] = None
    updated_at: LenientDatetime = Field(default=None, alias="updatedAt")
    created_at: LenientDatetime = Field(default=None, alias="createdAt")


class WireChat(WireRecord):
    """One entry of GET /chats, or the payload of a newChatSession event."""

    id: Optional[str] = Field(default=None, alias="_id")
    participants: List[WireUser] = Field(default_factory=list)
    last_message: Optional[WireLastMessage] = Field(default=None, alias="lastMessage")
    updated_at: LenientDatetime = Field(default=None, alias="updatedAt")
    unread_count: Optional[int] = Field(default=0, alias="unreadCount")
    status: Optional[str] = None

    @field_validator("participants", mode="before")
    @classmethod
    def _coerce_participants(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [WireUser.coerce(item) for item in value if item is not None]

    @field_validator("last_message", mode="before")
    @classmethod
    def _coerce_last_message(cls, value: Any) -> Any:
        # An unpopulated reference carries no text or time
        if not isinstance(value, dict):
            return None
        return value

    @field_validator("unread_count", mode="before")
    @classmethod
    def _coerce_unread(cls, value: Any) -> Any:
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return 0

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None


class WireMessage(WireRecord):
    """One entry of GET /chats/{id}/messages, a send echo or a newMessage payload."""

    id: Optional[str] = Field(default=None, alias="_id")
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    sender: Optional[WireUser] = None
    text: Optional[str] = None
    created_at: LenientDatetime = Field(default=None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def _normalize_references(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("chatId") and not data.get("chat_id"):
            chat = data.get("chat")
            if isinstance(chat, dict):
                chat = chat.get("_id") or chat.get("id")
            if chat is not None:
                data["chatId"] = str(chat)
        # Older payloads carry the body under "message"
        if data.get("text") is None and isinstance(data.get("message"), str):
            data["text"] = data["message"]
        return data

    @field_validator("sender", mode="before")
    @classmethod
    def _coerce_sender(cls, value: Any) -> Any:
        if value is None:
            return None
        coerced = WireUser.coerce(value)
        return coerced if isinstance(coerced, dict) else None


@dataclass(frozen=True)
class AgentIdentity:
    """The authenticated support agent, as persisted after login."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ChatSession:
    """Summary of one support conversation."""

    id: str
    user_name: str
    user_email: str
    avatar: str
    last_message: Optional[str]
    last_message_time: Optional[datetime]
    updated_at: Optional[datetime]
    unread_count: int
    status: ChatStatus
    participant_id: Optional[str] = None

    @property
    def last_message_date(self) -> Optional[datetime]:
        """Sort key: the last message's time, else the session's own update time."""
        if self.last_message_time is not None:
            return self.last_message_time
        return self.updated_at

    @property
    def last_message_preview(self) -> str:
        return self.last_message if self.last_message else NO_MESSAGES_PREVIEW

    @property
    def initials(self) -> str:
        return "".join(part[0] for part in self.user_name.split() if part).upper()


@dataclass(frozen=True)
class Message:
    """One message of a session timeline.

    is_admin is not stored: it depends on the viewing agent, see
    support_chat.reconciliation.annotate_messages.
    """

    id: str
    chat_id: Optional[str]
    sender_id: Optional[str]
    sender_name: str
    text: str
    timestamp: Optional[datetime]


@dataclass(frozen=True)
class TimelineEntry:
    """A message as displayed to a specific agent."""

    message: Message
    is_admin: bool
