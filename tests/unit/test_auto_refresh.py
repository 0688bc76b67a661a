"""
Unit tests for FocusEventSource and AutoRefreshWatcher
"""

import asyncio
import logging

import pytest

from feedsession.core.persistent_flags import FlagName
from feedsession.schemas.load_state import LoadOutcome
from feedsession.services.auto_refresh import AutoRefreshWatcher, FocusEventSource

pytestmark = pytest.mark.unit

THRESHOLD_MINUTES = 5


@pytest.fixture
def focus():
    return FocusEventSource()


@pytest.fixture
def watcher(started_controller, flags, focus):
    flags.enable(FlagName.AUTO_UPDATE)
    watcher = AutoRefreshWatcher(started_controller, flags, focus, threshold_minutes=THRESHOLD_MINUTES)
    yield watcher
    watcher.disarm()


def refreshes(engine) -> int:
    # The initial load from start() is not a focus refresh
    return engine.count("trigger_feed_update") - 1


class TestFocusEventSource:
    """Test the focus event plumbing"""

    @pytest.mark.asyncio
    async def test_dispatch_runs_handlers_until_cancelled(self, focus):
        calls = []

        async def _handler():
            calls.append("focus")

        subscription = focus.subscribe(_handler)
        await focus.dispatch()
        subscription.cancel()
        await focus.dispatch()

        assert calls == ["focus"]
        assert subscription.active is False
        assert focus.handler_count == 0

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self, focus):
        calls = []

        async def _bad():
            raise RuntimeError("handler failed")

        async def _good():
            calls.append("good")

        focus.subscribe(_bad)
        focus.subscribe(_good)
        await focus.dispatch()

        assert calls == ["good"]


class TestArming:
    """Test the listener lifecycle"""

    def test_threshold_must_be_positive(self, controller, flags, focus):
        with pytest.raises(ValueError):
            AutoRefreshWatcher(controller, flags, focus, threshold_minutes=0)

    def test_cannot_arm_without_engine(self, controller, flags, focus):
        watcher = AutoRefreshWatcher(controller, flags, focus)

        assert watcher.arm() is False
        assert focus.handler_count == 0

    @pytest.mark.asyncio
    async def test_arm_and_disarm(self, watcher, focus):
        assert watcher.arm() is True
        assert watcher.arm() is True
        assert focus.handler_count == 1

        watcher.disarm()
        assert watcher.armed is False
        assert focus.handler_count == 0

    @pytest.mark.asyncio
    async def test_context_manager_releases_listener(self, watcher, focus):
        async with watcher:
            assert focus.handler_count == 1
        assert focus.handler_count == 0

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self, watcher, focus):
        with pytest.raises(KeyError):
            async with watcher:
                raise KeyError("boom")
        assert focus.handler_count == 0

    @pytest.mark.asyncio
    async def test_disarms_when_controller_closes(self, watcher, started_controller, focus):
        watcher.arm()

        await started_controller.close()

        assert watcher.armed is False
        assert focus.handler_count == 0

    def test_default_threshold_from_settings(self, controller, flags, focus, test_settings):
        test_settings.AUTOLOAD_ON_FOCUS_AFTER_MINUTES = 7
        assert AutoRefreshWatcher(controller, flags, focus).threshold_seconds == 420


class TestRefreshDecision:
    """Test when a focus event reloads the feed"""

    @pytest.mark.asyncio
    async def test_stale_feed_refreshes_once(self, watcher, engine, focus):
        engine.age_seconds = (THRESHOLD_MINUTES + 1) * 60
        watcher.arm()

        await focus.dispatch()

        assert refreshes(engine) == 1

    @pytest.mark.asyncio
    async def test_fresh_feed_does_not_refresh(self, watcher, engine, focus):
        engine.age_seconds = (THRESHOLD_MINUTES - 1) * 60
        watcher.arm()

        await focus.dispatch()

        assert refreshes(engine) == 0

    @pytest.mark.asyncio
    async def test_exactly_threshold_is_not_stale(self, watcher, engine):
        engine.age_seconds = THRESHOLD_MINUTES * 60

        assert watcher.should_reload() is False

    @pytest.mark.asyncio
    async def test_auto_update_off_is_a_no_op(self, watcher, engine, flags, focus):
        flags.disable(FlagName.AUTO_UPDATE)
        engine.age_seconds = 3600
        watcher.arm()

        await focus.dispatch()

        assert refreshes(engine) == 0

    @pytest.mark.asyncio
    async def test_missing_age_warns_and_does_nothing(self, watcher, engine, caplog):
        engine.age_seconds = None

        with caplog.at_level(logging.WARNING, logger="feedsession.services.auto_refresh"):
            outcome = await watcher.handle_focus()

        assert outcome is None
        assert refreshes(engine) == 0
        assert "no most recent toot found" in caplog.text

    @pytest.mark.asyncio
    async def test_engine_loading_logs_mismatch(self, watcher, engine, caplog):
        engine.age_seconds = 3600
        engine.loading = True

        with caplog.at_level(logging.ERROR, logger="feedsession.services.auto_refresh"):
            outcome = await watcher.handle_focus()

        assert outcome is None
        assert refreshes(engine) == 0
        assert "isn't loading" in caplog.text

    @pytest.mark.asyncio
    async def test_no_refresh_while_session_is_loading(self, watcher, started_controller, engine, focus):
        engine.age_seconds = 3600
        engine.block()
        watcher.arm()
        manual = asyncio.ensure_future(started_controller.trigger_feed_update())
        await asyncio.sleep(0)

        await focus.dispatch()
        engine.release()
        await manual

        assert refreshes(engine) == 1

    @pytest.mark.asyncio
    async def test_handle_focus_returns_outcome(self, watcher, engine):
        engine.age_seconds = 3600

        assert await watcher.handle_focus() == LoadOutcome.COMPLETED
