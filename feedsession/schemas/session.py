"""Session and OAuth app registration schemas"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def sanitize_server_url(server: str) -> str:
    """Remove the scheme and anything after the host: 'https://x.social/abc' -> 'x.social'"""
    server = server.strip()
    server = re.sub(r"^https?://", "", server, flags=re.IGNORECASE)
    return server.split("/")[0].lower()


def server_base_url(server: str) -> str:
    return f"https://{sanitize_server_url(server)}"


class AppRegistration(BaseModel):
    """OAuth application registered on a home server"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    client_id: str = Field(..., min_length=1, alias="clientId")
    client_secret: str = Field(..., min_length=1, alias="clientSecret")
    redirect_uri: Optional[str] = Field(None, alias="redirectUri")
    vapid_key: Optional[str] = Field(None, alias="vapidKey")


class UserSession(BaseModel):
    """Authenticated identity and credentials for one logged-in user"""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    id: str = Field(..., min_length=1, description="Remote account id")
    username: str
    server: str = Field(..., description="Home server URL")
    profile_picture: Optional[str] = None

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        if not sanitize_server_url(v):
            raise ValueError("server must be a host name or URL")
        return server_base_url(v)

    @property
    def server_name(self) -> str:
        return sanitize_server_url(self.server)

    def __repr__(self) -> str:
        return f"UserSession(id={self.id!r}, username={self.username!r}, server={self.server!r})"

    __str__ = __repr__


class ServerRecord(BaseModel):
    """What we keep per home server: the app registration and the logged-in user"""

    app: Optional[AppRegistration] = None
    user: Optional[UserSession] = None


class AccountIdentity(BaseModel):
    """Verified account returned by the remote verify-credentials call"""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    username: str
    acct: str
    display_name: str = ""
    url: Optional[str] = None
    avatar: Optional[str] = None
