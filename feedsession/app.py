"""
Composition root.

Wires storage, error reporting, authentication and the per-session
controller together for a host UI. The host supplies the feed engine factory
and calls ``start_session()`` after login and ``focus.dispatch()`` whenever
its window gains focus.
"""

import logging
from typing import Optional

from sqlalchemy import Engine

from feedsession.core.config import Settings, settings
from feedsession.core.error_reporter import ErrorReporter
from feedsession.core.logging_config import init_application_logging, set_session_id
from feedsession.core.persistent_flags import PersistentFlagStore
from feedsession.core.utils.durable_store import DurableStore
from feedsession.db.session import create_storage_engine
from feedsession.schemas.load_state import SessionState
from feedsession.services.auth_manager import CREDENTIAL_KEYS, AuthManager, ClientFactory, Navigator
from feedsession.services.auto_refresh import AutoRefreshWatcher, FocusEventSource
from feedsession.services.feed_engine import EngineFactory
from feedsession.services.load_trigger import LoadTrigger
from feedsession.services.optimistic_actions import OptimisticActionGuard
from feedsession.services.session_controller import ApiFactory, SessionController

logger = logging.getLogger("feedsession.app")


class FeedSessionApp:
    """Long-lived services plus the controller of the current session"""

    def __init__(
        self,
        engine_factory: EngineFactory,
        app_settings: Optional[Settings] = None,
        db_engine: Optional[Engine] = None,
        navigate: Optional[Navigator] = None,
        client_factory: Optional[ClientFactory] = None,
        api_factory: Optional[ApiFactory] = None,
    ):
        self.settings = app_settings or settings
        self.engine_factory = engine_factory
        self.api_factory = api_factory

        self.db_engine = db_engine or create_storage_engine(self.settings.DATABASE_URL)
        secret_key = self.settings.SECRET_KEY if self.settings.SECURE_CREDENTIAL_STORAGE else None
        self.store = DurableStore(self.db_engine, secret_key=secret_key, encrypted_keys=CREDENTIAL_KEYS)

        self.reporter = ErrorReporter()
        self.flags = PersistentFlagStore(self.store)
        self.auth = AuthManager(self.store, self.reporter, navigate=navigate, client_factory=client_factory)
        self.focus = FocusEventSource()

        self.controller: Optional[SessionController] = None
        self.watcher: Optional[AutoRefreshWatcher] = None
        self.actions: Optional[OptimisticActionGuard] = None

    def _build_controller(self) -> SessionController:
        load_trigger = LoadTrigger(self.reporter, serialize=self.settings.SERIALIZE_LOADS)
        controller = SessionController(
            self.auth,
            self.engine_factory,
            self.reporter,
            load_trigger=load_trigger,
            api_factory=self.api_factory,
            locale=self.settings.DEFAULT_LOCALE,
        )
        self.watcher = AutoRefreshWatcher(
            controller,
            self.flags,
            self.focus,
            threshold_minutes=self.settings.AUTOLOAD_ON_FOCUS_AFTER_MINUTES,
        )
        self.actions = OptimisticActionGuard(controller, self.reporter)
        return controller

    async def start_session(self) -> bool:
        """Build (or reuse) the controller for the logged-in user and start it"""
        controller = self.controller
        if controller is not None and controller.state not in (SessionState.LOGGED_OUT, SessionState.CLOSED):
            return controller.is_ready

        if controller is not None:
            await controller.close()

        self.controller = self._build_controller()
        started = await self.controller.start()
        if started:
            self.watcher.arm()
        return started

    async def logout(self) -> None:
        await self.auth.logout()
        await self.close_session()

    async def wipe_all_user_data(self) -> None:
        """Reset the engine's data, drop the app registration and log out"""
        if self.controller is not None and self.controller.engine is not None:
            try:
                await self.controller.engine.reset()
            except Exception as e:
                logger.warning(f"Engine reset failed while wiping user data: {e}")
        await self.auth.wipe_all_user_data()
        await self.close_session()

    async def close_session(self) -> None:
        if self.watcher is not None:
            self.watcher.disarm()
        if self.controller is not None:
            await self.controller.close()
        set_session_id(None)

    async def aclose(self) -> None:
        await self.close_session()
        self.db_engine.dispose()
        logger.info("Feed session app shut down")


def create_app(engine_factory: EngineFactory, **kwargs) -> FeedSessionApp:
    """Initialize logging from settings and build the app"""
    init_application_logging()
    app = FeedSessionApp(engine_factory, **kwargs)
    logger.info(f"{app.settings.APP_NAME} {app.settings.VERSION} started ({app.settings.ENVIRONMENT})")
    return app
