from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Provider-returned claims (id, name, picture, ...). Opaque beyond "is a JSON object".
UserProfile = Dict[str, Any]

_RESERVED_PARAMS = ("response_type", "client_id", "state", "scope", "redirect_uri")


def dedupe_scopes(scopes: Sequence[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for s in scopes:
        if s and s not in out:
            out.append(s)
    return tuple(out)


@dataclass(frozen=True)
class AuthorizationRequest:
    """Everything needed to render the provider's authorize URL. Never persisted."""

    state: str
    redirect_uri: str
    scopes: Tuple[str, ...] = ()
    extra_params: Dict[str, str] = field(default_factory=dict)

    def query_params(self, client_id: str) -> List[Tuple[str, str]]:
        params = [
            ("response_type", "code"),
            ("client_id", client_id),
            ("state", self.state),
        ]
        if self.scopes:
            params.append(("scope", " ".join(self.scopes)))
        params.append(("redirect_uri", self.redirect_uri))
        for k, v in self.extra_params.items():
            if k not in _RESERVED_PARAMS:
                params.append((k, v))
        return params

    def to_url(self, authorization_endpoint: str, client_id: str) -> str:
        # Keep any query the endpoint already carries (e.g. a tenant hint).
        parts = urlsplit(authorization_endpoint)
        existing = parse_qsl(parts.query, keep_blank_values=True)
        query = urlencode(existing + self.query_params(client_id))
        return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))

    @classmethod
    def from_url(cls, url: str) -> "AuthorizationRequest":
        """Parse an authorize URL back into its request (last value wins per key)."""
        params = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
        extra = {k: v for k, v in params.items() if k not in _RESERVED_PARAMS}
        return cls(
            state=params.get("state", ""),
            redirect_uri=params.get("redirect_uri", ""),
            scopes=dedupe_scopes(params.get("scope", "").split(" ")),
            extra_params=extra,
        )


class TokenExchangeResult(BaseModel):
    """Token endpoint response. Lives only for the duration of the callback."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    id_token: Optional[str] = None

    @field_validator("access_token", mode="before")
    @classmethod
    def _access_token_str(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("token_type", mode="before")
    @classmethod
    def _token_type_default(cls, v: Any) -> str:
        return str(v).strip() if v else "Bearer"

    def expires_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        if self.expires_in is None:
            return None
        base = now or datetime.now(timezone.utc)
        return base + timedelta(seconds=self.expires_in)
