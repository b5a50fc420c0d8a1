from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from itsdangerous import BadData, URLSafeTimedSerializer
from starlette.responses import Response

from glogin.auth.config import AuthConfig
from glogin.auth.errors import SessionDecodeError
from glogin.auth.util import random_token, redact

logger = logging.getLogger(__name__)

SESSION_SALT = "glogin-session-v1"
USER_KEY = "user"


def session_cookie_name(cookie_secure: bool) -> str:
    # `__Host-` requires Secure + Path=/ + no Domain; browsers may reject it on HTTP.
    return "__Host-glogin_session" if cookie_secure else "glogin_session"


def _derive_fernet_key(secret: str) -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=f"{SESSION_SALT}:encryption".encode("ascii"),
    )
    return base64.urlsafe_b64encode(hkdf.derive(secret.encode("utf-8")))


class Session:
    """
    Per-browser key/value state for one request.

    Load it, mutate it, then hand it back to `SessionStore.commit` together with
    the outgoing response. Nothing reaches the browser until the commit.
    """

    def __init__(self, *, session_id: str, data: Optional[Dict[str, Any]] = None, is_new: bool = True) -> None:
        self.id = session_id
        self._data: Dict[str, Any] = dict(data or {})
        self.is_new = is_new
        self.modified = False
        self.destroyed = False

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def data(self) -> Dict[str, Any]:
        return dict(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.modified = True
        self.destroyed = False

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self.modified = True

    def destroy(self) -> None:
        self._data.clear()
        self.modified = True
        self.destroyed = True


class SessionStore:
    """
    Cookie-backed session store.

    Cookie value = itsdangerous timed signature over a Fernet token that holds
    `{"id": ..., "data": ...}`. The signature timestamp is refreshed on every
    commit, so `ttl_seconds` is an idle timeout.
    """

    def __init__(self, *, encryption_key: str, ttl_seconds: int = 900, cookie_secure: bool = False) -> None:
        if not encryption_key:
            raise ValueError("Session encryption key not configured (SESSION_ENCRYPTION_KEY)")
        self.ttl_seconds = ttl_seconds
        self.cookie_secure = cookie_secure
        self._fernet = Fernet(_derive_fernet_key(encryption_key))
        self._serializer = URLSafeTimedSerializer(secret_key=encryption_key, salt=SESSION_SALT)

    @classmethod
    def from_config(cls, cfg: AuthConfig) -> "SessionStore":
        return cls(
            encryption_key=cfg.session_encryption_key or "",
            ttl_seconds=cfg.session_ttl_seconds,
            cookie_secure=cfg.cookie_secure,
        )

    @property
    def cookie_name(self) -> str:
        return session_cookie_name(self.cookie_secure)

    def new_session(self) -> Session:
        return Session(session_id=random_token(16))

    def encode(self, session: Session) -> str:
        raw = json.dumps({"id": session.id, "data": session.data}, separators=(",", ":"), sort_keys=True)
        token = self._fernet.encrypt(raw.encode("utf-8")).decode("ascii")
        return self._serializer.dumps(token)

    def decode(self, value: str) -> Session:
        try:
            token = self._serializer.loads(value, max_age=self.ttl_seconds)
        except BadData as e:
            # Covers bad signatures, expired timestamps and garbled payloads.
            raise SessionDecodeError(f"Session cookie rejected: {type(e).__name__}") from e
        if not isinstance(token, str):
            raise SessionDecodeError("Session payload is not a token")
        try:
            payload = json.loads(self._fernet.decrypt(token.encode("ascii")))
        except (InvalidToken, ValueError) as e:
            raise SessionDecodeError(f"Session cookie undecryptable: {type(e).__name__}") from e

        if not isinstance(payload, dict):
            raise SessionDecodeError("Session payload is not an object")
        session_id = payload.get("id")
        data = payload.get("data")
        if not isinstance(session_id, str) or not session_id or not isinstance(data, dict):
            raise SessionDecodeError("Session payload is missing id/data")
        return Session(session_id=session_id, data=data, is_new=False)

    def load(self, value: Optional[str]) -> Session:
        """
        Return the session carried by the cookie, or a fresh one.

        Fails closed: a tampered, expired or undecryptable cookie yields an
        empty (anonymous) session instead of an error.
        """
        if not value:
            return self.new_session()
        try:
            return self.decode(value)
        except SessionDecodeError as e:
            logger.info("Discarding session cookie: %s", str(e))
            return self.new_session()

    def commit(self, session: Session, response: Response) -> None:
        if session.destroyed:
            response.set_cookie(**self.clear_cookie_kwargs())
            logger.debug("Session %s destroyed", redact(session.id))
            return
        if session.is_new and not session.modified:
            # Untouched anonymous visitor: no cookie.
            return
        response.set_cookie(**self.cookie_kwargs(self.encode(session)))

    def clear_cookie_kwargs(self) -> dict:
        return {
            "key": self.cookie_name,
            "value": "",
            "max_age": 0,
            "httponly": True,
            "secure": self.cookie_secure,
            "samesite": "lax",
            "path": "/",
        }

    def cookie_kwargs(self, value: str) -> dict:
        return {
            "key": self.cookie_name,
            "value": value,
            "max_age": self.ttl_seconds,
            "httponly": True,
            "secure": self.cookie_secure,
            "samesite": "lax",
            "path": "/",
        }
