# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Event type definitions for the support chat push channel.
"""


class ConnectionEvents:
    """Socket.IO connection lifecycle events."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    CONNECT_ERROR = "connect_error"


class ChatEvents:
    """Chat events pushed by the backend (Socket.IO event names)."""

    NEW_MESSAGE = "newMessage"
    NEW_CHAT_SESSION = "newChatSession"
