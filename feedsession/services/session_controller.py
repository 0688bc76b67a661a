"""
Session controller: lifecycle of one authenticated feed session.

Verifies the stored credentials, builds the feed engine, runs the first
refresh and then exposes the load triggers. Everything that reads loading
state goes through the snapshots published here; only the LoadTrigger
writes it.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Set

from feedsession.core.config import settings
from feedsession.core.error_reporter import ErrorReporter
from feedsession.core.logging_config import set_session_id
from feedsession.schemas.load_state import ControllerSnapshot, LoadOutcome, LoadState, LoadTransition, SessionState
from feedsession.schemas.server_metadata import ServerMetadata, is_goto_social_instance
from feedsession.schemas.session import UserSession
from feedsession.services.auth_manager import AuthManager
from feedsession.services.credential_gate import CredentialGate
from feedsession.services.feed_engine import EngineFactory, FeedEngine
from feedsession.services.load_trigger import LoadTrigger
from feedsession.services.mastodon_client import MastodonApiClient

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[ControllerSnapshot], None]
ApiFactory = Callable[[UserSession], MastodonApiClient]

TERMINAL_STATES = (SessionState.LOGGED_OUT, SessionState.CLOSED)


def default_api_factory(user: UserSession) -> MastodonApiClient:
    return MastodonApiClient(user.server, access_token=user.access_token)


class SessionController:
    """Owns the engine handle of one logged-in user and the triggers built on it."""

    def __init__(
        self,
        auth: AuthManager,
        engine_factory: EngineFactory,
        reporter: ErrorReporter,
        load_trigger: Optional[LoadTrigger] = None,
        api_factory: Optional[ApiFactory] = None,
        locale: Optional[str] = None,
    ):
        self.auth = auth
        self.engine_factory = engine_factory
        self.reporter = reporter
        self.load_trigger = load_trigger or LoadTrigger(reporter)
        self.locale = locale or settings.DEFAULT_LOCALE
        self._api_factory = api_factory or default_api_factory

        self._state = SessionState.UNINITIALIZED
        self._session: Optional[UserSession] = None
        self._api: Optional[MastodonApiClient] = None
        self._engine: Optional[FeedEngine] = None
        self._server_metadata: Optional[ServerMetadata] = None
        self._fetching_metadata = False
        self._timeline: List[Any] = []
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[SnapshotListener] = []

        self._unsubscribe_loads = self.load_trigger.subscribe(self._on_load_transition)

    # Readers

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[UserSession]:
        return self._session

    @property
    def engine(self) -> Optional[FeedEngine]:
        return self._engine

    @property
    def api(self) -> Optional[MastodonApiClient]:
        return self._api

    @property
    def server_metadata(self) -> Optional[ServerMetadata]:
        return self._server_metadata

    @property
    def timeline(self) -> List[Any]:
        return self._timeline

    @property
    def load_state(self) -> LoadState:
        return self.load_trigger.state

    @property
    def is_loading(self) -> bool:
        return self.load_trigger.is_loading

    @property
    def is_ready(self) -> bool:
        return self._state in (SessionState.READY, SessionState.LOADING)

    def snapshot(self) -> ControllerSnapshot:
        load_state = self.load_trigger.state
        return ControllerSnapshot(
            state=self._state,
            is_loading=load_state.is_loading,
            last_load_duration_seconds=load_state.last_load_duration_seconds,
            server_metadata=self._server_metadata,
            timeline_size=len(self._timeline),
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register for snapshots; returns a callable that unsubscribes"""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # Lifecycle

    async def start(self) -> bool:
        """Verify credentials, build the engine and kick off the first refresh.

        Returns:
            True once the controller is ready, False if the user was logged out
        """
        if self._state != SessionState.UNINITIALIZED or self._engine is not None:
            logger.warning(f"start() called in state {self._state.value}, ignoring")
            return self.is_ready

        user = self.auth.user
        if user is None:
            logger.warning("start() called without a logged in user, skipping initial load")
            return False

        self._session = user
        set_session_id(f"{user.server_name}/{user.id}")
        self._set_state(SessionState.CONSTRUCTING)
        logger.info(f"Constructing feed for user id {user.id} on {user.server_name}")

        self._api = self._api_factory(user)
        gate = CredentialGate(self._api, self.auth, self.reporter)
        identity = await gate.verify()
        if identity is None:
            self._set_state(SessionState.LOGGED_OUT)
            return False

        try:
            self._engine = await self.engine_factory.create(
                api=self._api,
                user=identity,
                on_timeline_update=self._on_timeline_update,
                locale=self.locale,
            )
        except Exception as e:
            self.reporter.report_error("Failed to set up your feed, logging out", error=e, log=logger)
            await self.auth.logout(preserve_app_errors=True)
            self._set_state(SessionState.LOGGED_OUT)
            return False

        if await self._is_goto_social():
            logger.info("GoToSocial server, skipping app credential check")
        else:
            await gate.check_app_credentials()

        self._set_state(SessionState.READY)
        self._spawn(self.trigger_feed_update(), "initial feed update")
        return True

    async def wait_for_pending(self) -> None:
        """Wait for every background task the controller has started"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        if self._state == SessionState.CLOSED:
            return

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

        self._unsubscribe_loads()
        if self._api is not None:
            await self._api.aclose()

        self._engine = None
        self._set_state(SessionState.CLOSED)
        logger.info("Session controller closed")

    # Triggers

    async def trigger_feed_update(self) -> LoadOutcome:
        return await self._trigger("trigger_feed_update")

    async def trigger_backfill(self) -> LoadOutcome:
        return await self._trigger("trigger_home_timeline_backfill")

    async def trigger_moar_data(self) -> LoadOutcome:
        return await self._trigger("trigger_moar_data")

    async def trigger_pull_all_user_data(self) -> LoadOutcome:
        return await self._trigger("trigger_pull_all_user_data")

    async def reset(self) -> LoadOutcome:
        """Wipe the engine's own state (handle and session are kept) and reload.

        Runs as one load so it can't wipe the engine under another load.
        """
        engine = self._engine
        if engine is None or self._state in TERMINAL_STATES:
            logger.warning("reset() called without an engine, skipping")
            return LoadOutcome.SKIPPED

        async def _reset_and_reload() -> None:
            self.reporter.reset()
            await engine.reset()
            self._on_timeline_update([])
            await engine.trigger_feed_update()

        outcome = await self.load_trigger.run(_reset_and_reload, label="reset")

        if outcome == LoadOutcome.COMPLETED:
            await self._load_server_metadata(engine)

        return outcome

    async def _trigger(self, operation: str) -> LoadOutcome:
        engine = self._engine
        if engine is None or self._state in TERMINAL_STATES:
            logger.warning(f"{operation}() called without an engine, skipping")
            return LoadOutcome.SKIPPED

        load_fn: Callable[[], Awaitable[None]] = getattr(engine, operation)
        outcome = await self.load_trigger.run(load_fn, label=operation)

        if outcome == LoadOutcome.COMPLETED:
            await self._load_server_metadata(engine)

        return outcome

    # Internals

    async def _is_goto_social(self) -> bool:
        try:
            instance = await self._api.instance()
        except Exception as e:
            logger.warning(f"Could not fetch instance info to detect the server type: {e}")
            return False
        return is_goto_social_instance(instance)

    async def _load_server_metadata(self, engine: FeedEngine) -> None:
        """Fetch server limits once; a failure is retried after the next completed load"""
        if self._server_metadata is not None or self._fetching_metadata:
            return

        self._fetching_metadata = True
        try:
            info = await engine.server_info()
            self._server_metadata = ServerMetadata.from_instance(info or {})
            logger.info(f"Loaded server metadata for {self._server_metadata.domain}")
            self._publish()
        except Exception as e:
            logger.warning(f"Failed to load server metadata, will retry after next load: {e}")
        finally:
            self._fetching_metadata = False

    def _on_timeline_update(self, timeline: List[Any]) -> None:
        self._timeline = list(timeline)
        self._publish()

    def _on_load_transition(self, transition: LoadTransition) -> None:
        if transition.is_loading and self._state == SessionState.READY:
            self._state = SessionState.LOADING
        elif not transition.is_loading and self._state == SessionState.LOADING and not self.is_loading:
            self._state = SessionState.READY
        self._publish()

    def _set_state(self, state: SessionState) -> None:
        logger.debug(f"Session state {self._state.value} -> {state.value}")
        self._state = state
        self._publish()

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")

    def _spawn(self, coro: Awaitable[Any], name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"Background task '{name}' failed", exc_info=t.exception())

        task.add_done_callback(_done)
        return task
