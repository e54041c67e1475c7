# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Watch command - follow sessions and one chat live over the push channel.
"""

import asyncio
import sys

import click
from rich.console import Console, Group
from rich.live import Live

from support_chat.api_client import ChatApiClient
from support_chat.cli.output import messages_table, sessions_table
from support_chat.config import get_settings
from support_chat.credentials import load_identity
from support_chat.exceptions import IdentityError
from support_chat.socket_client import PushSocketClient
from support_chat.stores import FetchStatus
from support_chat.view import SupportChatView


@click.command()
@click.option("--chat", "chat_id", default=None, help="Also follow this chat's timeline")
def watch(chat_id):
    """Follow chat sessions live until interrupted (Ctrl+C).

    Examples:

        support-chat watch

        support-chat watch --chat 64f1c2e9a1b2c3d4e5f60718
    """
    try:
        asyncio.run(_watch_async(chat_id))
    except KeyboardInterrupt:
        pass


def _render(view: SupportChatView):
    parts = [
        sessions_table(
            view.sessions, view.active_count(), selected=view.timeline.active_chat_id
        )
    ]
    if view.summaries.status is FetchStatus.ERROR:
        parts.append(f"[red]Session list stale:[/red] {view.summaries.error}")
    if view.timeline.active_chat_id:
        selected = view.selected
        title = selected.user_name if selected else view.timeline.active_chat_id
        parts.append(messages_table(view.messages, title=title))
        if view.timeline.status is FetchStatus.ERROR:
            parts.append(f"[red]Timeline stale:[/red] {view.timeline.error}")
    return Group(*parts)


async def _watch_async(chat_id):
    settings = get_settings()
    try:
        identity = load_identity(settings)
    except IdentityError as e:
        raise click.ClickException(str(e)) from e
    console = Console()

    socket = PushSocketClient.from_settings(settings)
    async with ChatApiClient.from_settings(settings) as api:
        connected = await socket.connect(wait_timeout=settings.SOCKET_CONNECT_TIMEOUT)
        if not connected:
            console.print(
                f"[red]Push channel unavailable:[/red] {socket.connection_error}"
            )
            sys.exit(1)

        try:
            view = SupportChatView.from_settings(settings, api, socket, identity)
            async with view:
                if chat_id:
                    await view.select_session(chat_id)
                with Live(_render(view), console=console, refresh_per_second=2) as live:
                    while True:
                        await asyncio.sleep(0.5)
                        live.update(_render(view))
        finally:
            await socket.disconnect()
