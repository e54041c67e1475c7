# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Output formatting utilities."""

from datetime import datetime, timezone
from typing import Iterable, Optional

from rich.table import Table

from support_chat.models import ChatSession, ChatStatus, TimelineEntry

STATUS_STYLES = {
    ChatStatus.ACTIVE: "green",
    ChatStatus.WAITING: "yellow",
    ChatStatus.CLOSED: "bright_black",
}


def format_age(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Format timestamp as a relative age such as "5m ago"."""
    if timestamp is None:
        return "-"

    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    seconds = (now - timestamp).total_seconds()

    if seconds < 60:
        return "just now"
    elif seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    elif seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    else:
        return f"{int(seconds // 86400)}d ago"


def sessions_table(
    sessions: Iterable[ChatSession], active_chats: int, selected: Optional[str] = None
) -> Table:
    """Build the conversation list table."""
    table = Table(title=f"Active Conversations ({active_chats} active chats)")
    table.add_column("ID", style="dim")
    table.add_column("Customer")
    table.add_column("Status")
    table.add_column("Last message")
    table.add_column("When", justify="right")
    table.add_column("Unread", justify="right")

    for session in sessions:
        marker = "> " if session.id == selected else ""
        customer = f"{marker}{session.user_name}"
        if session.user_email:
            customer += f" <{session.user_email}>"
        style = STATUS_STYLES.get(session.status, "")
        table.add_row(
            session.id,
            customer,
            f"[{style}]{session.status.value.lower()}[/{style}]",
            session.last_message_preview,
            format_age(session.last_message_date),
            str(session.unread_count) if session.unread_count else "",
        )
    return table


def messages_table(entries: Iterable[TimelineEntry], title: str = "") -> Table:
    """Build the timeline table, agent messages highlighted."""
    table = Table(title=title or None, show_header=False)
    table.add_column("Time", style="dim")
    table.add_column("From")
    table.add_column("Message")

    for entry in entries:
        message = entry.message
        when = message.timestamp.strftime("%H:%M:%S") if message.timestamp else "-"
        sender = "You" if entry.is_admin else message.sender_name
        style = "blue" if entry.is_admin else ""
        table.add_row(when, sender, message.text, style=style)
    return table
