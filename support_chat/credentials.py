# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Persisted agent credentials with environment override.

The dashboard keeps the access token and the logged-in user record after
login. This module reads them back with the following priority:
1. Settings / environment variable (SUPPORT_CHAT_ACCESS_TOKEN)
2. File at {CREDENTIALS_DIR}/access_token (token) or user.json (identity)
3. None, or IdentityError for the identity
"""

import json
from pathlib import Path
from typing import Optional

from shared.logger import setup_logger
from shared.utils.http_client import normalize_token
from support_chat.config import Settings
from support_chat.exceptions import IdentityError
from support_chat.models import AgentIdentity

logger = setup_logger(__name__)

TOKEN_FILE_NAME = "access_token"
IDENTITY_FILE_NAME = "user.json"


def _read_text(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    try:
        content = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning(f"Failed to read credentials file {path}: {e}")
        return None
    return content or None


def get_access_token(settings: Settings) -> Optional[str]:
    """
    Get the bearer token used for REST and push channel authentication.

    Args:
        settings: Active settings

    Returns:
        Token without any Bearer prefix, or None when nothing is configured
    """
    token = settings.ACCESS_TOKEN or _read_text(
        Path(settings.CREDENTIALS_DIR).expanduser() / TOKEN_FILE_NAME
    )
    return normalize_token(token) or None


def load_identity(settings: Settings) -> AgentIdentity:
    """
    Load the authenticated agent from the persisted user record.

    Accepts both the backend's {"_id": ...} and a plain {"id": ...} shape,
    optionally wrapped in {"user": {...}} as the login response stores it.

    Raises:
        IdentityError: When the record is missing, unreadable or has no id
    """
    path = Path(settings.CREDENTIALS_DIR).expanduser() / IDENTITY_FILE_NAME
    raw = _read_text(path)
    if raw is None:
        raise IdentityError(f"No persisted identity at {path}")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise IdentityError(f"Identity file {path} is not valid JSON: {e}") from e

    if isinstance(data, dict) and isinstance(data.get("user"), dict):
        data = data["user"]
    if not isinstance(data, dict):
        raise IdentityError(f"Identity file {path} does not hold an object")

    agent_id = data.get("_id") or data.get("id")
    if agent_id in (None, ""):
        raise IdentityError(f"Identity file {path} has no user id")

    identity = AgentIdentity(
        id=str(agent_id), email=data.get("email"), name=data.get("name")
    )
    logger.debug(f"Loaded agent identity {identity.id}")
    return identity
