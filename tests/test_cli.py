# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for the support-chat CLI."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner

from support_chat.api_client import ChatApiClient
from support_chat.cli.main import cli
from support_chat.cli.output import format_age
from support_chat.config import get_settings
from support_chat.socket_client import PushSocketClient


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path):
    (tmp_path / "user.json").write_text(
        json.dumps({"_id": "agent-1", "email": "agent@shop.test"})
    )
    get_settings.cache_clear()
    yield {
        "SUPPORT_CHAT_CREDENTIALS_DIR": str(tmp_path),
        "SUPPORT_CHAT_ACCESS_TOKEN": "token",
        "COLUMNS": "200",
    }
    get_settings.cache_clear()


@pytest.fixture
def patched_api(mocker, fake_api):
    mocker.patch.object(ChatApiClient, "from_settings", return_value=fake_api)
    return fake_api


class TestSessionsCommand:
    def test_lists_sessions(self, runner, cli_env, patched_api, make_chat):
        patched_api.chats = [
            make_chat("c1", name="Jane", last_text="Where is my order?"),
            make_chat("c2", name="Bob", status="waiting"),
        ]

        result = runner.invoke(cli, ["sessions"], env=cli_env)

        assert result.exit_code == 0, result.output
        assert "1 active chats" in result.output
        assert "Jane" in result.output
        assert "Where is my order?" in result.output

    def test_empty(self, runner, cli_env, patched_api):
        result = runner.invoke(cli, ["sessions"], env=cli_env)
        assert result.exit_code == 0
        assert "No chat sessions found" in result.output

    def test_backend_error(self, runner, cli_env, patched_api):
        patched_api.fail_list_chats = True
        result = runner.invoke(cli, ["sessions"], env=cli_env)
        assert result.exit_code == 1
        assert "Failed to load sessions" in result.output

    def test_missing_identity(self, runner, tmp_path, patched_api):
        get_settings.cache_clear()
        result = runner.invoke(
            cli,
            ["sessions"],
            env={"SUPPORT_CHAT_CREDENTIALS_DIR": str(tmp_path / "nowhere")},
        )
        get_settings.cache_clear()
        assert result.exit_code == 1
        assert "No persisted identity" in result.output


class TestMessagesCommand:
    def test_shows_timeline(self, runner, cli_env, patched_api, make_message):
        patched_api.messages["c1"] = [
            make_message("m2", "On its way", "2024-01-15T10:05:00Z", "agent-1"),
            make_message("m1", "Where is it?", "2024-01-15T10:00:00Z"),
        ]

        result = runner.invoke(cli, ["messages", "c1"], env=cli_env)

        assert result.exit_code == 0, result.output
        assert result.output.index("Where is it?") < result.output.index("On its way")
        assert "You" in result.output

    def test_empty_timeline(self, runner, cli_env, patched_api):
        result = runner.invoke(cli, ["messages", "c1"], env=cli_env)
        assert result.exit_code == 0
        assert "No messages yet" in result.output


class TestSendCommand:
    def test_send(self, runner, cli_env, patched_api, make_chat):
        patched_api.chats = [make_chat("c1")]

        result = runner.invoke(cli, ["send", "c1", "Hello"], env=cli_env)

        assert result.exit_code == 0, result.output
        assert patched_api.sent == [("c1", "Hello")]
        assert "Sent" in result.output

    def test_send_failure(self, runner, cli_env, patched_api):
        patched_api.fail_send = True
        result = runner.invoke(cli, ["send", "c1", "Hello"], env=cli_env)
        assert result.exit_code == 1
        assert "Send failed" in result.output

    def test_blank_text(self, runner, cli_env, patched_api):
        result = runner.invoke(cli, ["send", "c1", "   "], env=cli_env)
        assert result.exit_code == 1
        assert patched_api.sent == []
        assert "Nothing to send" in result.output


class TestWatchCommand:
    def test_push_channel_unavailable(self, runner, cli_env, patched_api, mocker):
        socket = mocker.Mock()
        socket.connect = mocker.AsyncMock(return_value=False)
        socket.disconnect = mocker.AsyncMock()
        socket.connection_error = "refused"
        mocker.patch.object(PushSocketClient, "from_settings", return_value=socket)

        result = runner.invoke(cli, ["watch"], env=cli_env)

        assert result.exit_code == 1
        assert "Push channel unavailable" in result.output


class TestFormatAge:
    NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(seconds=30), "just now"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3), "3h ago"),
            (timedelta(days=2), "2d ago"),
        ],
    )
    def test_relative(self, delta, expected):
        assert format_age(self.NOW - delta, now=self.NOW) == expected

    def test_missing(self):
        assert format_age(None) == "-"


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "support-chat" in result.output
