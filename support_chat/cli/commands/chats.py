# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
One-shot chat commands - list sessions, read a timeline, send a reply.
"""

import asyncio
import sys

import click
from rich.console import Console

from support_chat.api_client import ChatApiClient
from support_chat.cli.output import messages_table, sessions_table
from support_chat.compose import ComposePipeline, ComposeState
from support_chat.config import get_settings
from support_chat.credentials import load_identity
from support_chat.exceptions import IdentityError
from support_chat.stores import FetchStatus, MessageTimelineStore, SessionSummaryStore


def _identity_or_exit(settings):
    try:
        return load_identity(settings)
    except IdentityError as e:
        raise click.ClickException(str(e)) from e


@click.command()
@click.option(
    "--limit",
    "-n",
    default=None,
    type=int,
    help="Show at most this many sessions",
)
def sessions(limit):
    """List chat sessions, most recent conversation first.

    Examples:

        support-chat sessions

        support-chat sessions --limit 10
    """
    asyncio.run(_sessions_async(limit))


async def _sessions_async(limit):
    settings = get_settings()
    identity = _identity_or_exit(settings)
    console = Console()

    async with ChatApiClient.from_settings(settings) as api:
        store = SessionSummaryStore(
            api,
            identity=identity,
            default_avatar=settings.DEFAULT_AVATAR_URL,
            unread_policy=settings.UNREAD_POLICY,
        )
        await store.refetch()

    if store.status is FetchStatus.ERROR:
        console.print(f"[red]Failed to load sessions:[/red] {store.error}")
        sys.exit(1)

    shown = store.sessions[:limit] if limit else store.sessions
    if not shown:
        console.print("[dim]No chat sessions found.[/dim]")
        return
    console.print(sessions_table(shown, store.active_count()))


@click.command()
@click.argument("chat_id")
def messages(chat_id):
    """Show the timeline of one chat, oldest message first."""
    asyncio.run(_messages_async(chat_id))


async def _messages_async(chat_id):
    settings = get_settings()
    identity = _identity_or_exit(settings)
    console = Console()

    async with ChatApiClient.from_settings(settings) as api:
        timeline = MessageTimelineStore(api)
        timeline.activate(chat_id)
        await timeline.refetch()

    if timeline.status is FetchStatus.ERROR:
        console.print(f"[red]Failed to load messages:[/red] {timeline.error}")
        sys.exit(1)

    entries = timeline.read(identity)
    if not entries:
        console.print("[dim]No messages yet.[/dim]")
        return
    console.print(messages_table(entries, title=f"Chat {chat_id}"))


@click.command()
@click.argument("chat_id")
@click.argument("text")
def send(chat_id, text):
    """Send TEXT to the chat CHAT_ID."""
    asyncio.run(_send_async(chat_id, text))


async def _send_async(chat_id, text):
    settings = get_settings()
    identity = _identity_or_exit(settings)
    console = Console()

    async with ChatApiClient.from_settings(settings) as api:
        summaries = SessionSummaryStore(api, identity=identity)
        timeline = MessageTimelineStore(api)
        timeline.activate(chat_id)
        pipeline = ComposePipeline(api, summaries, timeline, identity=identity)
        pipeline.set_text(text)
        message = await pipeline.submit()

    if pipeline.state is ComposeState.FAILED:
        console.print(f"[red]Send failed:[/red] {pipeline.last_error}")
        sys.exit(1)
    if pipeline.state is ComposeState.COMPOSING:
        console.print("[yellow]Nothing to send.[/yellow]")
        sys.exit(1)

    sent_id = message.id if message else "?"
    console.print(f"[green]Sent[/green] message {sent_id} to chat {chat_id}")
