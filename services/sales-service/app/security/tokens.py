"""Utilities for issuing and validating session JWTs."""

from __future__ import annotations

import time
from typing import Any

import jwt

from ..config import Settings, get_settings

ALGORITHM = "HS256"
SUBJECT_CLAIM = "userId"


def issue_access_token(*, account_id: int, settings: Settings | None = None) -> tuple[str, int]:
    """Create a signed JWT bound to a single account.

    Parameters
    ----------
    account_id:
        Account identifier embedded in the ``userId`` claim.
    settings:
        Optional settings override; defaults to the process-wide settings.

    Returns
    -------
    tuple[str, int]
        The encoded JWT string and its TTL in seconds.
    """

    settings = settings or get_settings()
    now = int(time.time())
    expires_in = settings.jwt_ttl_seconds
    payload: dict[str, Any] = {
        SUBJECT_CLAIM: account_id,
        "iat": now,
        "exp": now + expires_in,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)
    return token, expires_in


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Verify the signature and expiry of ``token`` and return its claims.

    Raises
    ------
    jwt.PyJWTError
        When the token is malformed, expired, or signed with another key.
    """

    settings = settings or get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[ALGORITHM],
        options={"require": ["exp"]},
    )
