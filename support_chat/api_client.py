# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
REST client for the chat endpoints of the dashboard backend.

Endpoints used:
- GET  /chats?page=&limit=                  session summaries
- GET  /chats/{chat_id}/messages?page=&limit= messages, newest first
- POST /chats/{chat_id}/messages            multipart, "data" = JSON {"text": ...}

Responses are returned as raw dictionaries; mapping into domain records is
the job of support_chat.reconciliation.
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from shared.logger import setup_logger
from shared.utils.http_client import authorized_async_client
from support_chat.config import Settings
from support_chat.credentials import get_access_token
from support_chat.exceptions import ApiError

logger = setup_logger(__name__)

_LIST_KEYS = ("result", "results", "chats", "messages", "items", "docs")
_BODY_EXCERPT = 200


def extract_items(payload: Any) -> List[Dict[str, Any]]:
    """Unwrap a list response: bare list, {"data": [...]} or {"data": {"<key>": [...]}}.

    Only the keys in _LIST_KEYS are searched; any other object yields no items.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []

    data = payload.get("data", payload)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in _LIST_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
    return []


def extract_record(payload: Any) -> Dict[str, Any]:
    """Unwrap a single-record response: bare object or {"data": {...}}."""
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict):
            return data
        return payload
    return {}


class ChatApiClient:
    """Async client for the chat REST endpoints.

    Usage:
        async with ChatApiClient.from_settings(settings) as api:
            chats = await api.list_chats()
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        chats_page_size: int = 50,
        messages_page_size: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the API client.

        Args:
            base_url: API root, e.g. http://localhost:5003/api/v1
            token: Bearer token, optional prefix stripped
            timeout: HTTP request timeout in seconds
            chats_page_size: Default limit for GET /chats
            messages_page_size: Default limit for GET /chats/{id}/messages
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url
        self.chats_page_size = chats_page_size
        self.messages_page_size = messages_page_size

        client_kwargs = {}
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = authorized_async_client(
            base_url, token, timeout=timeout, **client_kwargs
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ChatApiClient":
        return cls(
            base_url=settings.API_BASE_URL,
            token=get_access_token(settings),
            timeout=settings.REQUEST_TIMEOUT,
            chats_page_size=settings.CHATS_PAGE_SIZE,
            messages_page_size=settings.MESSAGES_PAGE_SIZE,
            transport=transport,
        )

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[ChatApiClient] {method} {url} failed: {e}")
            raise ApiError(f"{method} {url} failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            body = response.text[:_BODY_EXCERPT]
            logger.warning(
                f"[ChatApiClient] {method} {url} returned "
                f"{response.status_code} {body}"
            )
            raise ApiError(
                f"{method} {url} returned an error",
                status_code=response.status_code,
                body=body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"{method} {url} returned invalid JSON",
                status_code=response.status_code,
                body=response.text[:_BODY_EXCERPT],
            ) from e

    async def list_chats(
        self, page: int = 1, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Fetch one page of chat session summaries.

        Raises:
            ApiError: On transport failure or non-2xx status
        """
        params = {"page": page, "limit": limit or self.chats_page_size}
        payload = await self._request("GET", "/chats", params=params)
        items = extract_items(payload)
        logger.debug(f"[ChatApiClient] Fetched {len(items)} chats (page {page})")
        return items

    async def list_messages(
        self, chat_id: str, page: int = 1, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Fetch one page of messages for a chat, newest first.

        Raises:
            ApiError: On transport failure or non-2xx status
        """
        params = {"page": page, "limit": limit or self.messages_page_size}
        payload = await self._request(
            "GET", f"/chats/{chat_id}/messages", params=params
        )
        items = extract_items(payload)
        logger.debug(
            f"[ChatApiClient] Fetched {len(items)} messages for chat {chat_id}"
        )
        return items

    async def send_message(self, chat_id: str, text: str) -> Dict[str, Any]:
        """Post a message to a chat and return the created record.

        The body is multipart with a single "data" field holding the JSON
        encoded {"text": ...} payload.

        Raises:
            ApiError: On transport failure or non-2xx status
        """
        files = {"data": (None, json.dumps({"text": text}), "application/json")}
        payload = await self._request(
            "POST", f"/chats/{chat_id}/messages", files=files
        )
        record = extract_record(payload)
        logger.info(f"[ChatApiClient] Sent message to chat {chat_id}")
        return record
