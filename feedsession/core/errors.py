"""Exception taxonomy shared by the session orchestration layer."""

from typing import Optional

# Message fragment the ranking engine puts in its "already loading" error
GET_FEED_BUSY_MSG = "Load in progress"

# Fragment Mastodon puts in the 401 body when an OAuth token was revoked
ACCESS_TOKEN_REVOKED_FRAGMENT = "access token was revoked"


class FeedSessionError(Exception):
    """Base class for all feedsession errors"""
    pass


class EngineBusyError(FeedSessionError):
    """The feed engine is already running a load and refused to start another"""

    def __init__(self, message: str = GET_FEED_BUSY_MSG):
        super().__init__(message)


class StorageError(FeedSessionError):
    """Raised when durable client storage cannot be written"""
    pass


class RemoteServiceError(FeedSessionError):
    """A call to the remote social-network service failed"""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (HTTP {self.status_code})"
        return base


class TransportError(RemoteServiceError):
    """Network level failure: DNS, connection refused, TLS, read timeout"""
    pass


class CredentialRevokedError(RemoteServiceError):
    """The stored access token was revoked on the server"""

    def __init__(self, message: str = "The access token was revoked", url: Optional[str] = None):
        super().__init__(message, status_code=401, url=url)


def is_busy_error(error: BaseException) -> bool:
    """True if the error is the engine's 'load already running' signal"""
    if isinstance(error, EngineBusyError):
        return True
    return GET_FEED_BUSY_MSG in str(error)


def is_access_token_revoked_error(error: BaseException) -> bool:
    if isinstance(error, CredentialRevokedError):
        return True
    return (
        isinstance(error, RemoteServiceError)
        and error.status_code == 401
        and ACCESS_TOKEN_REVOKED_FRAGMENT in str(error).lower()
    )


def is_permission_error(error: BaseException) -> bool:
    """True for 401/403 responses, usually an OAuth scope the app never asked for"""
    return isinstance(error, RemoteServiceError) and error.status_code in (401, 403)
