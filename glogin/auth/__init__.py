"""
Google login over the OAuth2 authorization-code flow.

Design goals:
- Single provider (Google), no token refresh.
- CSRF state round-tripped through a short-lived HttpOnly cookie.
- Cookie-based session (encrypted + signed, HttpOnly); the server is the only writer.
"""
