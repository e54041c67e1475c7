# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import asyncio
import sys
from pathlib import Path

# Add project root to Python path to allow imports without installing
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from support_chat.exceptions import ApiError
from support_chat.models import AgentIdentity

AGENT_ID = "agent-1"


class FakeChatApi:
    """In-memory stand-in for ChatApiClient.

    messages are stored newest first, as the backend returns them. A chat id
    in `gates` holds list_messages for that chat until the event is set; the
    page returned is the one that existed when the request was issued.
    """

    def __init__(self):
        self.chats = []
        self.messages = {}
        self.sent = []
        self.gates = {}
        self.fail_list_chats = False
        self.fail_list_messages = False
        self.fail_send = False
        self.clock = "2024-01-15T12:00:00Z"
        self.list_chats_calls = 0
        self.list_messages_calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def list_chats(self, page=1, limit=None):
        self.list_chats_calls += 1
        if self.fail_list_chats:
            raise ApiError("GET /chats returned an error", status_code=500)
        return [dict(chat) for chat in self.chats]

    async def list_messages(self, chat_id, page=1, limit=None):
        self.list_messages_calls.append(chat_id)
        page_snapshot = list(self.messages.get(chat_id, []))
        gate = self.gates.get(chat_id)
        if gate is not None:
            await gate.wait()
        if self.fail_list_messages:
            raise ApiError("GET messages returned an error", status_code=500)
        return page_snapshot

    async def send_message(self, chat_id, text):
        self.sent.append((chat_id, text))
        if self.fail_send:
            raise ApiError("POST messages returned an error", status_code=502)
        created = {
            "_id": f"sent-{len(self.sent)}",
            "chatId": chat_id,
            "sender": {"_id": AGENT_ID, "name": "Support Agent"},
            "text": text,
            "createdAt": self.clock,
        }
        self.messages.setdefault(chat_id, []).insert(0, created)
        for chat in self.chats:
            if chat["_id"] == chat_id:
                chat["lastMessage"] = {"text": text, "updatedAt": self.clock}
        return created


class FakeSocket:
    """In-memory stand-in for PushSocketClient handler registration."""

    def __init__(self):
        self.handlers = {}
        self.off_calls = []

    def on(self, event, handler):
        self.handlers[event] = handler

    def off(self, event):
        self.off_calls.append(event)
        self.handlers.pop(event, None)

    async def push(self, event, data):
        handler = self.handlers.get(event)
        if handler is not None:
            await handler(data)


def chat_record(
    chat_id,
    name="Customer",
    email="customer@example.com",
    last_text="Hi",
    last_at="2024-01-15T10:00:00Z",
    updated_at="2024-01-15T09:00:00Z",
    unread=0,
    status="active",
):
    record = {
        "_id": chat_id,
        "participants": [
            {"_id": AGENT_ID, "name": "Support Agent", "email": "agent@shop.test"},
            {"_id": f"user-{chat_id}", "name": name, "email": email},
        ],
        "updatedAt": updated_at,
        "unreadCount": unread,
        "status": status,
    }
    if last_text is not None:
        record["lastMessage"] = {"text": last_text, "updatedAt": last_at}
    return record


def message_record(message_id, text, created_at, sender_id="user-1", name="Customer"):
    return {
        "_id": message_id,
        "sender": {"_id": sender_id, "name": name},
        "text": text,
        "createdAt": created_at,
    }


@pytest.fixture
def identity():
    return AgentIdentity(id=AGENT_ID, email="agent@shop.test", name="Support Agent")


@pytest.fixture
def fake_api():
    return FakeChatApi()


@pytest.fixture
def fake_socket():
    return FakeSocket()


@pytest.fixture
def make_chat():
    return chat_record


@pytest.fixture
def make_message():
    return message_record


@pytest.fixture
def gate():
    """An unset asyncio.Event used to hold a fake request open."""
    return asyncio.Event()
