# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Authorized HTTP client utilities.

Provides a factory for httpx clients that attach the bearer token to every
outbound request and tag it with the chat id bound by
shared.logger.chat_context(), so callers don't need to manually build
headers at every call site.

Usage:
    from shared.utils.http_client import authorized_async_client

    async with authorized_async_client(base_url, token, timeout=10.0) as client:
        response = await client.get("/chats", params={"page": 1})
"""

from typing import Optional

import httpx

from shared.logger import get_chat_id

CHAT_ID_HEADER = "X-Chat-ID"


def normalize_token(token: Optional[str]) -> str:
    """Strip whitespace and an optional Bearer prefix from a token."""
    if not token:
        return ""
    token = token.strip()
    if token.lower().startswith("bearer "):
        return token.split(" ", 1)[1].strip()
    return token


def build_auth_headers(token: Optional[str]) -> dict:
    """Build the Authorization header for a token, empty when no token."""
    token = normalize_token(token)
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


async def _chat_id_request_hook(request: httpx.Request) -> None:
    """Event hook that tags every request with the current chat id.

    httpx.AsyncClient requires event hooks to be async functions.
    """
    chat_id = get_chat_id()
    if chat_id and CHAT_ID_HEADER not in request.headers:
        request.headers[CHAT_ID_HEADER] = chat_id


def authorized_async_client(
    base_url: str,
    token: Optional[str],
    timeout: Optional[float] = None,
    **kwargs,
) -> httpx.AsyncClient:
    """Create an httpx.AsyncClient with bearer auth and chat id tagging.

    Args:
        base_url: API root every relative request is resolved against
        token: Access token, with or without a Bearer prefix
        timeout: Request timeout in seconds
        **kwargs: Additional arguments passed to httpx.AsyncClient

    Returns:
        httpx.AsyncClient with auth headers and chat id event hook
    """
    headers = dict(kwargs.pop("headers", None) or {})
    headers.update(build_auth_headers(token))

    event_hooks = kwargs.pop("event_hooks", {})
    existing_request_hooks = event_hooks.get("request", [])
    event_hooks["request"] = [_chat_id_request_hook] + list(existing_request_hooks)

    if timeout is not None:
        kwargs["timeout"] = timeout

    return httpx.AsyncClient(
        base_url=base_url, headers=headers, event_hooks=event_hooks, **kwargs
    )
