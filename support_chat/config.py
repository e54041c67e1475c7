# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from support_chat.models import UnreadPolicy


class Settings(BaseSettings):
    # REST backend
    API_BASE_URL: str = "http://localhost:5003/api/v1"
    REQUEST_TIMEOUT: float = 30.0  # seconds
    ACCESS_TOKEN: str = ""  # falls back to <CREDENTIALS_DIR>/access_token

    # Push channel (Socket.IO)
    SOCKET_URL: str = "http://localhost:3001"
    SOCKET_NAMESPACE: str = "/"
    SOCKET_PATH: str = "/socket.io"
    SOCKET_CONNECT_TIMEOUT: float = 10.0
    SOCKET_RECONNECT_DELAY: int = 1
    SOCKET_RECONNECT_MAX_DELAY: int = 30

    # Pagination
    CHATS_PAGE_SIZE: int = 50
    MESSAGES_PAGE_SIZE: int = 100

    # Presentation fallbacks
    DEFAULT_AVATAR_URL: str = "https://www.gravatar.com/avatar/?d=mp"

    # Reconciliation
    UNREAD_POLICY: UnreadPolicy = UnreadPolicy.RESET_ON_OPEN
    SUMMARY_REFRESH_INTERVAL: float = 30.0  # seconds, 0 disables polling

    # Persisted agent credentials (access_token, user.json)
    CREDENTIALS_DIR: Path = Path.home() / ".support-chat"

    model_config = SettingsConfigDict(
        env_prefix="SUPPORT_CHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
