#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Common logging module, configures and provides logging functionality for the application.

Supports automatic chat_id injection into log messages via ContextVar, so that
every line written while a chat session is being reconciled names that session.
"""

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_current_chat_id: ContextVar[Optional[str]] = ContextVar(
    "support_chat_current_chat_id", default=None
)


def get_chat_id() -> Optional[str]:
    """Return the chat id bound to the current context, if any."""
    return _current_chat_id.get()


@contextmanager
def chat_context(chat_id: Optional[str]) -> Iterator[None]:
    """Bind chat_id to log records emitted inside the block."""
    token = _current_chat_id.set(chat_id)
    try:
        yield
    finally:
        _current_chat_id.reset(token)


class ChatIdFilter(logging.Filter):
    """
    A logging filter that adds chat_id to log records.

    This filter reads the chat_id from the ContextVar set by chat_context()
    and adds it to each log record, making it available in the log format string.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Add chat_id to the log record.

        Args:
            record: The log record to modify

        Returns:
            True (always allow the record to be logged)
        """
        chat_id = get_chat_id()
        record.chat_id = chat_id if chat_id else "-"
        return True


class NonBlockingStreamHandler(logging.StreamHandler):
    """
    Custom stream handler that handles BlockingIOError gracefully
    """

    def emit(self, record):
        try:
            super().emit(record)
        except BlockingIOError:
            # Stdout pipe is full; drop the record
            pass


def setup_logger(
    name,
    level=logging.INFO,
    format="%(asctime)s - [%(chat_id)s] - [in %(pathname)s:%(lineno)d] - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    include_chat_id=True,
):
    """
    Configure and return a logger instance

    If environment variable LOG_LEVEL is set to DEBUG, force log level to DEBUG.

    Args:
        name: Logger name
        level: Logging level, default is INFO
        format: Log message format, default includes line number and chat_id
        datefmt: Date format for timestamps
        include_chat_id: Whether to inject chat_id into records (default: True)

    Returns:
        logging.Logger: Configured logger instance
    """
    env_log_level = os.environ.get("LOG_LEVEL")
    if env_log_level and env_log_level.upper() == "DEBUG":
        level = logging.DEBUG

    logger = logging.getLogger(name)

    # Prevent adding duplicate handlers
    if logger.handlers:
        logger.setLevel(level)
        return logger

    logger.setLevel(level)

    # Prevent propagation to root logger to avoid duplicate logs
    logger.propagate = False

    if not include_chat_id:
        format = format.replace("[%(chat_id)s] - ", "")

    console_handler = NonBlockingStreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(format, datefmt))

    if include_chat_id:
        console_handler.addFilter(ChatIdFilter())

    logger.addHandler(console_handler)

    return logger
