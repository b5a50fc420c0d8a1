from __future__ import annotations

from typing import Optional


class AuthFlowError(ValueError):
    """Base class for login-flow failures. Terminal for the current request."""


class CallbackRequestError(AuthFlowError):
    """The callback request itself is malformed (client error, HTTP 400)."""


class StateMismatchError(CallbackRequestError):
    """CSRF state missing from the callback/cookie, or the two differ."""


class MissingCodeError(CallbackRequestError):
    """Valid state but no `code` query parameter."""


class AuthorizationDeniedError(AuthFlowError):
    """The provider redirected back with an `error` (e.g. the user declined consent)."""

    def __init__(self, message: str, *, error: str) -> None:
        super().__init__(message)
        self.error = error


class TokenExchangeError(AuthFlowError):
    """The provider rejected the authorization code, or the exchange itself failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


class ProfileFetchError(AuthFlowError):
    """The userinfo endpoint failed after a valid token was obtained."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionDecodeError(AuthFlowError):
    """Session cookie is tampered, undecryptable or expired. Never escapes the store."""
