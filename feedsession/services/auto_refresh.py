"""
Focus-driven background refresh.

When the host window regains focus and the user has turned auto-update on,
reload the feed if its newest item is older than the configured threshold.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional

from feedsession.core.config import settings
from feedsession.core.persistent_flags import FlagName, PersistentFlagStore
from feedsession.schemas.load_state import ControllerSnapshot, LoadOutcome, SessionState
from feedsession.services.session_controller import SessionController

logger = logging.getLogger(__name__)

FOCUS = "focus"

FocusHandler = Callable[[], Awaitable[Any]]


class Subscription:
    """Handle returned by FocusEventSource.subscribe(); cancel() detaches the handler"""

    def __init__(self, source: "FocusEventSource", handler: FocusHandler):
        self._source = source
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._source._remove(self._handler)
            self._active = False


class FocusEventSource:
    """A single named event the host fires when its window gains focus"""

    def __init__(self, name: str = FOCUS):
        self.name = name
        self._handlers: List[FocusHandler] = []

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: FocusHandler) -> Subscription:
        self._handlers.append(handler)
        return Subscription(self, handler)

    def _remove(self, handler: FocusHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def dispatch(self) -> None:
        """Run every attached handler in subscription order"""
        logger.debug(f"Dispatching '{self.name}' to {len(self._handlers)} handler(s)")
        for handler in list(self._handlers):
            try:
                await handler()
            except Exception:
                logger.exception(f"'{self.name}' handler failed")


class AutoRefreshWatcher:
    """Reloads a stale feed on focus while armed.

    Usable as an async context manager so the focus handler is always detached.
    """

    def __init__(
        self,
        controller: SessionController,
        flags: PersistentFlagStore,
        focus_source: FocusEventSource,
        threshold_minutes: Optional[float] = None,
    ):
        threshold_minutes = settings.AUTOLOAD_ON_FOCUS_AFTER_MINUTES if threshold_minutes is None else threshold_minutes
        if threshold_minutes <= 0:
            raise ValueError("threshold_minutes must be positive")

        self.controller = controller
        self.flags = flags
        self.focus_source = focus_source
        self.threshold_minutes = threshold_minutes
        self._subscription: Optional[Subscription] = None
        self._unsubscribe_controller: Optional[Callable[[], None]] = None

    @property
    def threshold_seconds(self) -> float:
        return self.threshold_minutes * 60

    @property
    def armed(self) -> bool:
        return self._subscription is not None

    def arm(self) -> bool:
        """Attach to the focus event; only possible with both a session and an engine"""
        if self.armed:
            return True

        if self.controller.session is None or self.controller.engine is None:
            logger.debug("Not arming auto refresh: no session or engine yet")
            return False
        if self.controller.state in (SessionState.LOGGED_OUT, SessionState.CLOSED):
            logger.debug(f"Not arming auto refresh: controller is {self.controller.state.value}")
            return False

        self._subscription = self.focus_source.subscribe(self.handle_focus)
        self._unsubscribe_controller = self.controller.subscribe(self._on_snapshot)
        logger.info(f"Auto refresh armed (threshold {self.threshold_minutes} minutes)")
        return True

    def disarm(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
            logger.info("Auto refresh disarmed")
        if self._unsubscribe_controller is not None:
            self._unsubscribe_controller()
            self._unsubscribe_controller = None

    async def __aenter__(self) -> "AutoRefreshWatcher":
        self.arm()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.disarm()

    def _on_snapshot(self, snapshot: ControllerSnapshot) -> None:
        if snapshot.state in (SessionState.LOGGED_OUT, SessionState.CLOSED):
            self.disarm()

    def should_reload(self) -> bool:
        if not self.flags.is_enabled(FlagName.AUTO_UPDATE):
            return False

        engine = self.controller.engine
        if engine is None:
            return False

        should = False
        is_loading = self.controller.is_loading
        engine_loading = engine.is_loading()

        if is_loading or engine_loading:
            msg = "load in progress"
            if not is_loading:
                logger.error(f"Engine reports {msg} but the session isn't loading")
        else:
            age = engine.most_recent_home_toot_age_in_seconds()
            if age is None:
                msg = f"{len(self.controller.timeline)} toots in feed but no most recent toot found!"
                logger.warning(msg)
            else:
                msg = f"feed is {age:.0f}s old"
                should = age > self.threshold_seconds

        logger.info(f"should_reload() returning {should} ({msg})")
        return should

    async def handle_focus(self) -> Optional[LoadOutcome]:
        if not self.should_reload():
            return None
        return await self.controller.trigger_feed_update()
