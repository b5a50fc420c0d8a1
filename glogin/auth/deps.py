from __future__ import annotations

from typing import Optional

from fastapi import Request

from glogin.auth.flow import LoginFlowController
from glogin.auth.models import UserProfile
from glogin.auth.session import USER_KEY, Session


def get_login_flow(request: Request) -> LoginFlowController:
    """The controller built once by the app factory."""
    return request.app.state.login_flow


def load_session(request: Request) -> Session:
    """
    Load (or lazily create) the session for this request.

    The handler owns the returned value and must commit it onto its response.
    """
    sessions = get_login_flow(request).sessions
    return sessions.load(request.cookies.get(sessions.cookie_name))


def authenticate_request(request: Request) -> Optional[UserProfile]:
    """
    Return the logged-in user's profile, or None for anonymous visitors.

    Fails closed: an invalid or expired session cookie means "not logged in".
    """
    user = load_session(request).get(USER_KEY)
    if isinstance(user, dict):
        return user
    return None
