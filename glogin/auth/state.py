from __future__ import annotations

import hmac
from typing import Optional

from glogin.auth.util import random_token

STATE_COOKIE_NAME = "google_oauth2_state"

# 32 random bytes -> 43 base64url chars (256 bits).
STATE_NBYTES = 32


def generate_state() -> str:
    """Fresh CSRF state for one login attempt; never reuse across attempts."""
    return random_token(STATE_NBYTES)


def verify_state(stored: Optional[str], received: Optional[str]) -> bool:
    """
    True iff both values are present and identical.

    Exact match only: no stripping, no case folding.
    """
    if not stored or not received:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), received.encode("utf-8"))
