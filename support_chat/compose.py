# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Compose/send pipeline for agent replies.

State machine per outgoing message:

    COMPOSING --submit--> SUBMITTING --ok--> CONFIRMED
                                     \\-error-> FAILED

Blank input never leaves COMPOSING. While SUBMITTING the message is shown in
the timeline under a local id, swapped for the server record on confirmation
and removed on failure. A failed send keeps the buffer so the agent can
retry; nothing is retried automatically.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from shared.logger import chat_context, setup_logger
from support_chat.exceptions import ApiError
from support_chat.models import AgentIdentity, Message
from support_chat.reconciliation import map_message

if TYPE_CHECKING:
    from support_chat.api_client import ChatApiClient
    from support_chat.stores import MessageTimelineStore, SessionSummaryStore

logger = setup_logger(__name__)

SUBMIT_KEY = "Enter"
LOCAL_ID_PREFIX = "local-"


class ComposeState(str, Enum):
    COMPOSING = "composing"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class ComposePipeline:
    """Input buffer plus submission of one message at a time to the active chat."""

    def __init__(
        self,
        api: "ChatApiClient",
        summaries: "SessionSummaryStore",
        timeline: "MessageTimelineStore",
        identity: Optional[AgentIdentity] = None,
    ):
        self.api = api
        self.summaries = summaries
        self.timeline = timeline
        self.identity = identity

        self.buffer = ""
        self.state = ComposeState.COMPOSING
        self.last_error: Optional[str] = None
        self.last_sent: Optional[Message] = None

    def set_text(self, text: str) -> None:
        """Replace the input buffer, as typing does."""
        self.buffer = text
        if self.state in (ComposeState.CONFIRMED, ComposeState.FAILED):
            self.state = ComposeState.COMPOSING

    def _local_message(self, chat_id: str, text: str) -> Message:
        return Message(
            id=f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}",
            chat_id=chat_id,
            sender_id=self.identity.id if self.identity else None,
            sender_name=(self.identity.name or "") if self.identity else "",
            text=text,
            timestamp=datetime.now(timezone.utc),
        )

    def _fail(self, local_id: str, error: str) -> None:
        self.timeline.resolve_pending(local_id, None)
        self.state = ComposeState.FAILED
        self.last_error = error

    async def handle_key(self, key: str) -> Optional[Message]:
        """Submit on Enter; any other key is ignored here."""
        if key != SUBMIT_KEY:
            return None
        return await self.submit()

    async def submit(self) -> Optional[Message]:
        """
        Send the buffer to the active chat.

        Returns:
            The server-confirmed message, or None when nothing was sent or
            the send failed (state tells which)
        """
        text = self.buffer
        chat_id = self.timeline.active_chat_id
        if not text.strip() or chat_id is None:
            return None
        if self.state is ComposeState.SUBMITTING:
            logger.debug("Send already in flight, ignoring submit")
            return None

        token = self.timeline.token
        self.state = ComposeState.SUBMITTING
        self.last_error = None
        local = self._local_message(chat_id, text)
        self.timeline.add_pending(local)

        with chat_context(chat_id):
            try:
                raw = await self.api.send_message(chat_id, text)
            except ApiError as e:
                self._fail(local.id, str(e))
                logger.error(f"Failed to send message: {e}")
                return None
            except BaseException as e:
                # Cancelled or unexpected error: leave SUBMITTING, then propagate
                self._fail(local.id, repr(e))
                logger.warning(f"Send interrupted: {e!r}")
                raise

            message = map_message(raw, chat_id=chat_id)
            self.timeline.resolve_pending(local.id, message)
            self.state = ComposeState.CONFIRMED
            self.last_sent = message
            # Keep whatever the agent typed while the request was in flight
            if self.buffer == text:
                self.buffer = ""

            sent_at = (
                message.timestamp
                if message and message.timestamp
                else datetime.now(timezone.utc)
            )
            self.summaries.patch_last_message(
                chat_id, message.text if message else text, sent_at
            )
            logger.info(f"Message confirmed: {message.id if message else '?'}")

            refetches = [self.summaries.refetch()]
            if self.timeline.is_current(token, chat_id):
                refetches.append(self.timeline.refetch())
            await asyncio.gather(*refetches)
            return message
