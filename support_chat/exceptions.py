# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

from typing import Optional


class SupportChatError(Exception):
    """Base error for the support chat engine."""


class ApiError(SupportChatError):
    """A REST call failed at the transport level or returned a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (status={self.status_code})"
        return base


class IdentityError(SupportChatError):
    """The persisted agent identity is missing or unreadable."""


class PushChannelError(SupportChatError):
    """The push channel is not connected or could not connect."""
