import logging
from typing import Optional

from feedsession.core.error_reporter import ErrorReporter
from feedsession.core.errors import TransportError, is_access_token_revoked_error
from feedsession.core.messages import (
    ACCESS_TOKEN_REVOKED_MSG,
    OAUTH_ERROR_MSG,
    VERIFY_CREDENTIALS_FAILED_MSG,
)
from feedsession.schemas.session import AccountIdentity
from feedsession.services.auth_manager import AuthManager
from feedsession.services.mastodon_client import MastodonApiClient

logger = logging.getLogger(__name__)


class CredentialGate:
    """Checks the stored credentials against the server, once per session construction.

    Any failure is terminal for the session: the user is logged out (keeping the
    error report visible) and verify() returns None. There is no retry; a gate
    instance refuses to run twice so repeated failures can't loop silently.
    """

    def __init__(self, api: MastodonApiClient, auth: AuthManager, reporter: ErrorReporter):
        self.api = api
        self.auth = auth
        self.reporter = reporter
        self._used = False

    async def verify(self) -> Optional[AccountIdentity]:
        if self._used:
            raise RuntimeError("CredentialGate.verify() may only be called once")
        self._used = True

        try:
            identity = await self.api.verify_credentials()
        except TransportError as e:
            logger.error(f"Network error verifying credentials, logging out: {e}")
        except Exception as e:
            if is_access_token_revoked_error(e):
                self.reporter.report_error(ACCESS_TOKEN_REVOKED_MSG, error=e, log=logger)
            else:
                self.reporter.report_error(VERIFY_CREDENTIALS_FAILED_MSG, error=e, log=logger)
        else:
            logger.info(f"Verified credentials for @{identity.acct} (id {identity.id})")
            return identity

        await self.auth.logout(preserve_app_errors=True)
        return None

    async def check_app_credentials(self) -> bool:
        """Verify the OAuth app registration; failure is a warning, never a logout"""
        try:
            await self.api.verify_app_credentials()
        except Exception as e:
            logger.warning(f"App credential check failed: {e}")
            self.reporter.report_error("Failed to verify app credentials", error=e, note=OAUTH_ERROR_MSG, log=logger)
            return False

        logger.debug("App credentials verified")
        return True
