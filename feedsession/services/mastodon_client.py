import logging
from typing import Any, Dict, Optional

import httpx

from feedsession.core.config import settings
from feedsession.core.errors import (
    ACCESS_TOKEN_REVOKED_FRAGMENT,
    CredentialRevokedError,
    RemoteServiceError,
    TransportError,
)
from feedsession.schemas.session import AccountIdentity, server_base_url

logger = logging.getLogger(__name__)

VERIFY_CREDENTIALS_PATH = "/api/v1/accounts/verify_credentials"
VERIFY_APP_CREDENTIALS_PATH = "/api/v1/apps/verify_credentials"
INSTANCE_V2_PATH = "/api/v2/instance"
INSTANCE_V1_PATH = "/api/v1/instance"
REVOKE_TOKEN_PATH = "/oauth/revoke"

# Instance v2 is missing on older servers and some alternate implementations
INSTANCE_FALLBACK_STATUSES = (404, 410, 501)


class MastodonApiClient:
    """Thin async client for the handful of Mastodon REST calls the session layer makes"""

    def __init__(
        self,
        server: str,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            server: home server host name or URL
            access_token: user OAuth token; anonymous calls when None
            timeout: per-request timeout in seconds, defaults to HTTP_TIMEOUT_SECONDS
            transport: custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = server_base_url(server)
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "MastodonApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and map failures onto the feedsession error taxonomy"""
        logger.debug(f"{method} {self.base_url}{path}")

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            # Transport failures plus decoding, redirect and URL errors
            logger.warning(f"Network error calling {method} {path}: {e}")
            raise TransportError(f"Network error calling {path}: {e}", url=f"{self.base_url}{path}") from e

        if response.status_code >= 400:
            raise self._error_for(response, path)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    def _error_for(self, response: httpx.Response, path: str) -> RemoteServiceError:
        url = f"{self.base_url}{path}"
        detail = _error_detail(response)

        if response.status_code == 401 and ACCESS_TOKEN_REVOKED_FRAGMENT in detail.lower():
            return CredentialRevokedError(detail or "The access token was revoked", url=url)

        return RemoteServiceError(
            f"{path} failed: {detail or response.reason_phrase}",
            status_code=response.status_code,
            url=url,
        )

    # Identity

    async def verify_credentials(self) -> AccountIdentity:
        data = await self._request("GET", VERIFY_CREDENTIALS_PATH)
        return AccountIdentity.model_validate(data)

    async def verify_app_credentials(self) -> Dict[str, Any]:
        return await self._request("GET", VERIFY_APP_CREDENTIALS_PATH)

    async def instance(self) -> Dict[str, Any]:
        """Instance info, v2 when the server has it and v1 otherwise"""
        try:
            return await self._request("GET", INSTANCE_V2_PATH)
        except TransportError:
            raise
        except RemoteServiceError as e:
            if e.status_code not in INSTANCE_FALLBACK_STATUSES:
                raise
            logger.info(f"{INSTANCE_V2_PATH} unavailable on {self.base_url}, falling back to v1")
            return await self._request("GET", INSTANCE_V1_PATH)

    async def revoke_token(self, token: str, client_id: str, client_secret: str) -> None:
        await self._request(
            "POST",
            REVOKE_TOKEN_PATH,
            data={"token": token, "client_id": client_id, "client_secret": client_secret},
        )

    # Status actions

    async def favourite(self, status_id: str) -> Dict[str, Any]:
        return await self._status_action(status_id, "favourite")

    async def unfavourite(self, status_id: str) -> Dict[str, Any]:
        return await self._status_action(status_id, "unfavourite")

    async def reblog(self, status_id: str) -> Dict[str, Any]:
        return await self._status_action(status_id, "reblog")

    async def unreblog(self, status_id: str) -> Dict[str, Any]:
        return await self._status_action(status_id, "unreblog")

    async def bookmark(self, status_id: str) -> Dict[str, Any]:
        return await self._status_action(status_id, "bookmark")

    async def unbookmark(self, status_id: str) -> Dict[str, Any]:
        return await self._status_action(status_id, "unbookmark")

    # Account actions

    async def follow(self, account_id: str) -> Dict[str, Any]:
        return await self._account_action(account_id, "follow")

    async def unfollow(self, account_id: str) -> Dict[str, Any]:
        return await self._account_action(account_id, "unfollow")

    async def mute(self, account_id: str) -> Dict[str, Any]:
        return await self._account_action(account_id, "mute")

    async def unmute(self, account_id: str) -> Dict[str, Any]:
        return await self._account_action(account_id, "unmute")

    async def _status_action(self, status_id: str, verb: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/v1/statuses/{status_id}/{verb}")

    async def _account_action(self, account_id: str, verb: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/v1/accounts/{account_id}/{verb}")


def _error_detail(response: httpx.Response) -> str:
    """Mastodon puts the human readable reason in {"error": ...}"""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()

    if isinstance(body, dict):
        return str(body.get("error_description") or body.get("error") or "")
    return ""
