# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Support chat reconciliation engine for the e-commerce admin dashboard.

Keeps a support agent's view of concurrent chat sessions consistent across
paginated REST fetches and Socket.IO push events.
"""

__version__ = "1.0.0"
