import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from feedsession.core.config import settings
from feedsession.core.error_reporter import ErrorReporter
from feedsession.core.utils.durable_store import DurableStore
from feedsession.schemas.session import AppRegistration, ServerRecord, UserSession, sanitize_server_url
from feedsession.services.mastodon_client import MastodonApiClient

logger = logging.getLogger(__name__)

SERVER_KEY = "server"
SERVER_USERS_KEY = "serverUsers"

# Keys whose values carry OAuth secrets
CREDENTIAL_KEYS = (SERVER_USERS_KEY,)

Navigator = Callable[[str], None]
ClientFactory = Callable[[str], MastodonApiClient]


def _log_navigation(path: str) -> None:
    logger.info(f"Navigate to {path}")


class AuthManager:
    """Service for the logged-in user and the OAuth app of the current home server.

    Everything lives in durable storage under two keys: the current server name
    and a map of sanitized server name -> ServerRecord(app, user).
    """

    def __init__(
        self,
        store: DurableStore,
        reporter: ErrorReporter,
        navigate: Optional[Navigator] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self._store = store
        self._reporter = reporter
        self._navigate = navigate or _log_navigation
        self._client_factory = client_factory or MastodonApiClient

    # Storage

    @property
    def server(self) -> str:
        return sanitize_server_url(self._store.get(SERVER_KEY, "") or "")

    def set_server(self, server: str) -> None:
        self._store.set(SERVER_KEY, sanitize_server_url(server))

    def server_users(self) -> Dict[str, ServerRecord]:
        """Every stored server record; unreadable entries are skipped"""
        raw = self._store.get(SERVER_USERS_KEY, {})
        if not isinstance(raw, dict):
            logger.error(f"'{SERVER_USERS_KEY}' holds {type(raw).__name__}, expected a mapping")
            return {}

        records: Dict[str, ServerRecord] = {}
        for server, record in raw.items():
            try:
                records[server] = ServerRecord.model_validate(record or {})
            except ValidationError as e:
                logger.warning(f"Ignoring unreadable session record for {server}: {e.error_count()} errors")
        return records

    def _save_record(self, record: ServerRecord) -> None:
        records = self.server_users()
        records[self.server] = record
        payload: Dict[str, Any] = {name: rec.model_dump(mode="json") for name, rec in records.items()}
        self._store.set(SERVER_USERS_KEY, payload)

    @property
    def record(self) -> ServerRecord:
        return self.server_users().get(self.server) or ServerRecord()

    @property
    def app(self) -> Optional[AppRegistration]:
        return self.record.app

    @property
    def user(self) -> Optional[UserSession]:
        return self.record.user

    # Mutations

    def set_app(self, app: Optional[AppRegistration]) -> None:
        logger.debug(f"set_app() for '{self.server}'")
        self._save_record(ServerRecord(app=app, user=self.user))

    def set_user(self, user: Optional[UserSession]) -> None:
        logger.debug(f"set_user() for '{self.server}'")
        self._save_record(ServerRecord(app=self.app, user=user))

    def set_logged_in_user(self, user: UserSession) -> None:
        """Store the user after a completed OAuth flow and go to the feed"""
        if not self.server:
            self.set_server(user.server)
        self.set_user(user)
        logger.info(f"Logged in user '{user.username}' on {self.server}")
        self._navigate(settings.HOME_PATH)

    async def logout(self, preserve_app_errors: bool = False) -> None:
        """Revoke the OAuth token and forget the user.

        Args:
            preserve_app_errors: keep the current error report, used by forced
                logouts so the reason is still shown on the login page
        """
        logger.info(f"logout() called with preserve_app_errors={preserve_app_errors}")
        app, user = self.app, self.user

        if user is not None and app is not None:
            await self._revoke_token(user, app)
        elif user is not None:
            logger.warning("No app registration stored, skipping token revocation")

        if not preserve_app_errors:
            self._reporter.reset()

        self._save_record(ServerRecord(app=app, user=None))
        self._navigate(settings.LOGIN_PATH)

    async def wipe_all_user_data(self) -> None:
        """Log out and drop the app registration as well (fixes stale OAuth scopes)"""
        logger.warning(f"Wiping all user data for '{self.server}'")
        await self.logout()
        self.set_app(None)

    async def _revoke_token(self, user: UserSession, app: AppRegistration) -> None:
        try:
            async with self._client_factory(user.server) as client:
                await client.revoke_token(user.access_token, app.client_id, app.client_secret)
            logger.debug(f"Revoked access token for '{user.username}'")
        except Exception as e:
            # Logout goes ahead whatever the revoke call did
            logger.warning(f"(Probably innocuous) error while revoking the access token: {e}")
