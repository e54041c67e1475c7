# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for the session summary and message timeline stores."""

import asyncio
from datetime import datetime, timezone

import pytest

from support_chat.models import Message, UnreadPolicy
from support_chat.stores import FetchStatus, MessageTimelineStore, SessionSummaryStore
from support_chat.view import SupportChatView


class TestSessionSummaryStore:
    @pytest.mark.asyncio
    async def test_refetch_sorts_newest_first(self, fake_api, identity, make_chat):
        fake_api.chats = [
            make_chat("old", last_at="2024-01-15T08:00:00Z"),
            make_chat("new", last_at="2024-01-15T11:00:00Z"),
            make_chat("mid", last_at="2024-01-15T09:30:00Z"),
        ]
        store = SessionSummaryStore(fake_api, identity=identity)

        assert store.status is FetchStatus.IDLE
        assert await store.refetch() is True

        assert store.status is FetchStatus.READY
        assert store.error is None
        assert [s.id for s in store.sessions] == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_failed_refetch_keeps_previous_list(
        self, fake_api, identity, make_chat
    ):
        fake_api.chats = [make_chat("c1"), make_chat("c2")]
        store = SessionSummaryStore(fake_api, identity=identity)
        await store.refetch()

        fake_api.fail_list_chats = True
        assert await store.refetch() is False

        assert store.status is FetchStatus.ERROR
        assert "status=500" in store.error
        assert {s.id for s in store.sessions} == {"c1", "c2"}

    @pytest.mark.asyncio
    async def test_recovers_after_error(self, fake_api, identity, make_chat):
        fake_api.chats = [make_chat("c1")]
        fake_api.fail_list_chats = True
        store = SessionSummaryStore(fake_api, identity=identity)
        await store.refetch()
        assert store.status is FetchStatus.ERROR

        fake_api.fail_list_chats = False
        await store.refetch()
        assert store.status is FetchStatus.READY
        assert store.error is None

    @pytest.mark.asyncio
    async def test_malformed_records_are_skipped(self, fake_api, identity, make_chat):
        fake_api.chats = [{"participants": []}, make_chat("c1")]
        store = SessionSummaryStore(fake_api, identity=identity)
        await store.refetch()
        assert [s.id for s in store.sessions] == ["c1"]

    @pytest.mark.asyncio
    async def test_optimistic_patch_until_next_snapshot(
        self, fake_api, identity, make_chat
    ):
        fake_api.chats = [
            make_chat("c1", last_text="old", last_at="2024-01-15T08:00:00Z"),
            make_chat("c2", last_at="2024-01-15T10:00:00Z"),
        ]
        store = SessionSummaryStore(fake_api, identity=identity)
        await store.refetch()

        store.patch_last_message(
            "c1", "Hello", datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        )
        assert store.sessions[0].id == "c1"
        assert store.sessions[0].last_message == "Hello"

        await store.refetch()
        assert store.sessions[0].id == "c2"
        assert store.get("c1").last_message == "old"

    @pytest.mark.asyncio
    async def test_active_count(self, fake_api, identity, make_chat):
        fake_api.chats = [
            make_chat("c1", status="active"),
            make_chat("c2", status="WAITING"),
            make_chat("c3", status="Active"),
        ]
        store = SessionSummaryStore(fake_api, identity=identity)
        await store.refetch()
        assert store.active_count() == 2

    @pytest.mark.asyncio
    async def test_reset_on_open_unread(self, fake_api, identity, make_chat):
        fake_api.chats = [make_chat("c1", unread=3)]
        store = SessionSummaryStore(
            fake_api, identity=identity, unread_policy=UnreadPolicy.RESET_ON_OPEN
        )
        await store.refetch()
        assert store.get("c1").unread_count == 3

        store.mark_opened("c1")
        assert store.get("c1").unread_count == 0

        fake_api.chats = [make_chat("c1", unread=5)]
        await store.refetch()
        assert store.get("c1").unread_count == 0

        store.mark_opened("c2")
        fake_api.chats = [make_chat("c1", unread=7)]
        await store.refetch()
        assert store.get("c1").unread_count == 2

    @pytest.mark.asyncio
    async def test_server_unread(self, fake_api, identity, make_chat):
        fake_api.chats = [make_chat("c1", unread=3)]
        store = SessionSummaryStore(
            fake_api, identity=identity, unread_policy=UnreadPolicy.SERVER
        )
        await store.refetch()
        store.mark_opened("c1")
        assert store.get("c1").unread_count == 3


class TestMessageTimelineStore:
    @pytest.mark.asyncio
    async def test_refetch_is_chronological(self, fake_api, make_message):
        fake_api.messages["c1"] = [
            make_message("m3", "third", "2024-01-15T10:03:00Z"),
            make_message("m2", "second", "2024-01-15T10:02:00Z"),
            make_message("m1", "first", "2024-01-15T10:01:00Z"),
        ]
        timeline = MessageTimelineStore(fake_api)
        timeline.activate("c1")

        assert await timeline.refetch() is True
        assert [m.id for m in timeline.messages] == ["m1", "m2", "m3"]
        assert all(m.chat_id == "c1" for m in timeline.messages)

    @pytest.mark.asyncio
    async def test_refetch_twice_gives_same_order(self, fake_api, make_message):
        fake_api.messages["c1"] = [
            make_message("m2", "b", "2024-01-15T10:02:00Z"),
            make_message("m1", "a", "2024-01-15T10:01:00Z"),
        ]
        timeline = MessageTimelineStore(fake_api)
        timeline.activate("c1")

        await timeline.refetch()
        first = timeline.messages
        await timeline.refetch()
        assert timeline.messages == first

    @pytest.mark.asyncio
    async def test_no_active_chat_does_nothing(self, fake_api):
        timeline = MessageTimelineStore(fake_api)
        assert await timeline.refetch() is False
        assert fake_api.list_messages_calls == []
        assert timeline.status is FetchStatus.IDLE

    @pytest.mark.asyncio
    async def test_failed_refetch_keeps_previous_messages(
        self, fake_api, make_message
    ):
        fake_api.messages["c1"] = [make_message("m1", "a", "2024-01-15T10:01:00Z")]
        timeline = MessageTimelineStore(fake_api)
        timeline.activate("c1")
        await timeline.refetch()

        fake_api.fail_list_messages = True
        assert await timeline.refetch() is False
        assert timeline.status is FetchStatus.ERROR
        assert [m.id for m in timeline.messages] == ["m1"]

    def test_activate_clears_and_bumps_token(self):
        timeline = MessageTimelineStore(api=None)
        first = timeline.activate("c1")
        second = timeline.activate("c2")

        assert second > first
        assert timeline.messages == []
        assert timeline.is_current(second, "c2")
        assert not timeline.is_current(first, "c1")
        assert not timeline.is_current(second, "c1")

    @pytest.mark.asyncio
    async def test_pending_message_until_committed(
        self, fake_api, identity, make_message
    ):
        timeline = MessageTimelineStore(fake_api)
        timeline.activate("c1")
        local = Message("local-1", "c1", identity.id, "", "Hello", None)
        confirmed = Message("s1", "c1", identity.id, "Agent", "Hello", None)

        timeline.add_pending(local)
        timeline.add_pending(Message("local-2", "c2", None, "", "elsewhere", None))
        assert [m.id for m in timeline.messages] == ["local-1"]
        assert timeline.read(identity)[0].is_admin is True

        timeline.resolve_pending("local-1", confirmed)
        assert [m.id for m in timeline.messages] == ["s1"]

        fake_api.messages["c1"] = [
            make_message("s1", "Hello", "2024-01-15T10:00:00Z", identity.id)
        ]
        await timeline.refetch()
        assert [m.id for m in timeline.messages] == ["s1"]

        timeline.activate("c2")
        assert timeline.messages == []

    def test_failed_pending_message_is_dropped(self):
        timeline = MessageTimelineStore(api=None)
        timeline.activate("c1")
        timeline.add_pending(Message("local-1", "c1", None, "", "Hello", None))
        timeline.resolve_pending("local-1", None)
        assert timeline.messages == []


class TestStaleFetches:
    @pytest.mark.asyncio
    async def test_late_response_for_left_chat_is_discarded(
        self, fake_api, fake_socket, identity, make_message, gate
    ):
        fake_api.messages["A"] = [make_message("a1", "from A", "2024-01-15T10:00:00Z")]
        fake_api.messages["B"] = [make_message("b1", "from B", "2024-01-15T10:00:00Z")]
        fake_api.gates["A"] = gate
        view = SupportChatView(fake_api, fake_socket, identity)

        slow_a = asyncio.create_task(view.select_session("A"))
        await asyncio.sleep(0)
        assert await view.select_session("B") is True

        gate.set()
        assert await slow_a is False

        assert view.timeline.active_chat_id == "B"
        assert [m.id for m in view.timeline.messages] == ["b1"]
        assert view.timeline.status is FetchStatus.READY

    @pytest.mark.asyncio
    async def test_late_failure_for_left_chat_is_ignored(
        self, fake_api, fake_socket, identity, make_message, gate
    ):
        fake_api.messages["B"] = [make_message("b1", "from B", "2024-01-15T10:00:00Z")]
        fake_api.gates["A"] = gate
        view = SupportChatView(fake_api, fake_socket, identity)

        slow_a = asyncio.create_task(view.select_session("A"))
        await asyncio.sleep(0)
        await view.select_session("B")

        fake_api.fail_list_messages = True
        gate.set()
        assert await slow_a is False

        assert view.timeline.status is FetchStatus.READY
        assert view.timeline.error is None
        assert [m.id for m in view.timeline.messages] == ["b1"]
