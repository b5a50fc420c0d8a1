from __future__ import annotations

import base64
import os


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def random_token(nbytes: int = 32) -> str:
    return b64url(os.urandom(nbytes))


def redact(value: str | None, keep: int = 6) -> str:
    """
    Shorten an opaque value for log lines: `abcdef...` (never the full token).
    """
    v = value or ""
    if not v:
        return "<empty>"
    if len(v) <= keep:
        return "***"
    return f"{v[:keep]}..."
