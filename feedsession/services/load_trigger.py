"""
Uniform wrapper around engine loads.

``LoadTrigger.run()`` flips the shared loading flag on, awaits the load and
always flips it back off, whatever the outcome. The engine's "busy" error is
treated as a soft condition (informational message only); anything else is
reported through the ErrorReporter. Only this class writes LoadState.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, List, Optional

from feedsession.core.config import settings
from feedsession.core.error_reporter import ErrorReporter
from feedsession.core.errors import is_busy_error
from feedsession.core.messages import LOAD_FAILED_MSG, LOADING_ERROR_MSG
from feedsession.schemas.load_state import LoadOutcome, LoadState, LoadTransition

logger = logging.getLogger(__name__)

LoadFn = Callable[[], Awaitable[None]]
TransitionListener = Callable[[LoadTransition], None]
Clock = Callable[[], float]

MAX_TRANSITION_HISTORY = 200


class LoadTrigger:
    """Runs loads and publishes the LoadState transitions they cause."""

    def __init__(
        self,
        reporter: ErrorReporter,
        clock: Clock = time.monotonic,
        serialize: Optional[bool] = None,
    ):
        """
        Args:
            reporter: channel for user-facing messages
            clock: monotonic time source in seconds
            serialize: refuse to start a load while another one holds the
                token; defaults to SERIALIZE_LOADS
        """
        self.reporter = reporter
        self.serialize = settings.SERIALIZE_LOADS if serialize is None else serialize
        self._clock = clock
        self._state = LoadState()
        self._transitions: Deque[LoadTransition] = deque(maxlen=MAX_TRANSITION_HISTORY)
        self._listeners: List[TransitionListener] = []
        self._token: Optional[object] = None
        self._token_label: Optional[str] = None

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def transitions(self) -> List[LoadTransition]:
        return list(self._transitions)

    @property
    def holder(self) -> Optional[str]:
        """Label of the load currently holding the token, if any"""
        return self._token_label

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def run(self, load_fn: LoadFn, label: str = "load") -> LoadOutcome:
        """Run one load. Never raises for ordinary exceptions; cancellation propagates."""
        if self.serialize and self._token is not None:
            logger.warning(f"'{label}' requested while '{self._token_label}' is still running, skipping")
            self.reporter.report_info(LOADING_ERROR_MSG, log=logger)
            return LoadOutcome.SKIPPED

        token = object()
        if self.serialize:
            self._token, self._token_label = token, label

        started_at = self._clock()
        self._start(started_at, label)
        outcome = LoadOutcome.FAILED

        try:
            await load_fn()
            outcome = LoadOutcome.COMPLETED
            logger.info(f"'{label}' finished")
        except asyncio.CancelledError:
            logger.warning(f"'{label}' was cancelled")
            raise
        except Exception as e:
            if is_busy_error(e):
                # The engine serializes loads internally; not a failure
                logger.warning(f"'{label}': {LOADING_ERROR_MSG}")
                self.reporter.report_info(LOADING_ERROR_MSG, log=logger)
                outcome = LoadOutcome.BUSY
            else:
                self.reporter.report_error(f"{LOAD_FAILED_MSG} ({label})", error=e, log=logger)
        finally:
            self._settle(started_at, label, outcome)
            if self._token is token:
                self._token, self._token_label = None, None

        return outcome

    def _start(self, started_at: float, label: str) -> None:
        logger.debug(f"'{label}' started at {started_at:.3f}")
        self._state = LoadState(
            is_loading=True,
            last_load_started_at=started_at,
            last_load_duration_seconds=self._state.last_load_duration_seconds,
        )
        self._publish(LoadTransition(is_loading=True, started_at=started_at, label=label))

    def _settle(self, started_at: float, label: str, outcome: LoadOutcome) -> None:
        duration = self._state.last_load_duration_seconds
        transition_duration = None

        if outcome in (LoadOutcome.COMPLETED, LoadOutcome.BUSY):
            transition_duration = max(0.0, self._clock() - started_at)
            duration = transition_duration
            logger.debug(f"'{label}' settled as {outcome.value} after {duration:.2f}s")

        self._state = LoadState(
            is_loading=False,
            last_load_started_at=self._state.last_load_started_at,
            last_load_duration_seconds=duration,
        )
        self._publish(
            LoadTransition(
                is_loading=False,
                started_at=started_at,
                label=label,
                outcome=outcome,
                duration_seconds=transition_duration,
            )
        )

    def _publish(self, transition: LoadTransition) -> None:
        self._transitions.append(transition)
        for listener in list(self._listeners):
            try:
                listener(transition)
            except Exception:
                logger.exception("Load state listener failed")
