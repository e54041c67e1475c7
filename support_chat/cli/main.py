# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Support chat CLI main entry point.
"""

import click

from support_chat import __version__


@click.group()
@click.version_option(version=__version__, prog_name="support-chat")
def cli():
    """Support Chat - agent console for the admin dashboard.

    Reads the session list, opens conversations, replies to customers and
    follows push updates from the backend.
    """
    pass


from support_chat.cli.commands.chats import messages, send, sessions
from support_chat.cli.commands.watch import watch

cli.add_command(sessions)
cli.add_command(messages)
cli.add_command(send)
cli.add_command(watch)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
