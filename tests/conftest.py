"""
Global test configuration and fixtures for feedsession

Shared fixtures: a temporary SQLite durable store, the error reporter, an
httpx.MockTransport backed Mastodon server, a stub feed engine and a
SessionController wired to all of them.
"""

import logging
from typing import List

import pytest
import pytest_asyncio

from feedsession.core.config import settings
from feedsession.core.error_reporter import ErrorReporter
from feedsession.core.persistent_flags import PersistentFlagStore
from feedsession.core.utils.durable_store import DurableStore
from feedsession.db.session import create_storage_engine
from feedsession.services.auth_manager import AuthManager
from feedsession.services.load_trigger import LoadTrigger
from feedsession.services.session_controller import SessionController
from tests.utils.factories import (
    MockMastodonServer,
    SessionFactory,
    StubEngine,
    StubEngineFactory,
)
from tests.utils.helpers import ManualClock, ReportRecorder


# ============================================================================
# Test Environment Setup
# ============================================================================

@pytest.fixture(scope="function")
def test_settings():
    """Override settings for testing"""
    original_values = {}

    test_overrides = {
        "ENVIRONMENT": "test",
        "SECRET_KEY": "test-secret-key-for-testing-only",
        "SERIALIZE_LOADS": True,
        "AUTOLOAD_ON_FOCUS_AFTER_MINUTES": 5,
    }

    for key, value in test_overrides.items():
        original_values[key] = getattr(settings, key)
        setattr(settings, key, value)

    yield settings

    for key, value in original_values.items():
        setattr(settings, key, value)


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """SQLite storage engine on a temporary file"""
    engine = create_storage_engine(f"sqlite:///{tmp_path / 'feedsession.db'}")
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def store(db_engine):
    return DurableStore(db_engine)


@pytest.fixture(scope="function")
def flags(store):
    return PersistentFlagStore(store)


# ============================================================================
# Reporting Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def reporter():
    return ErrorReporter()


@pytest.fixture(scope="function")
def recorder(reporter):
    """Every report published during the test"""
    return ReportRecorder(reporter)


@pytest.fixture(scope="function")
def clock():
    return ManualClock()


# ============================================================================
# Remote Service Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def mastodon():
    """Mock Mastodon server with the default happy-path routes"""
    return MockMastodonServer()


@pytest.fixture(scope="function")
def navigations() -> List[str]:
    return []


@pytest.fixture(scope="function")
def auth(store, reporter, mastodon, navigations):
    return AuthManager(
        store,
        reporter,
        navigate=navigations.append,
        client_factory=lambda server: mastodon.client(server, access_token=None),
    )


@pytest.fixture(scope="function")
def logged_in_auth(auth, navigations):
    """AuthManager with an app registration and a logged-in user stored"""
    user = SessionFactory.create_user()
    auth.set_server(user.server)
    auth.set_app(SessionFactory.create_app())
    auth.set_logged_in_user(user)
    navigations.clear()
    return auth


# ============================================================================
# Engine and Controller Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def engine():
    return StubEngine()


@pytest.fixture(scope="function")
def engine_factory(engine):
    return StubEngineFactory(engine)


@pytest.fixture(scope="function")
def load_trigger(reporter, clock):
    return LoadTrigger(reporter, clock=clock, serialize=True)


@pytest.fixture(scope="function")
def controller(logged_in_auth, engine_factory, reporter, load_trigger, mastodon):
    return SessionController(
        logged_in_auth,
        engine_factory,
        reporter,
        load_trigger=load_trigger,
        api_factory=lambda user: mastodon.client(user.server, access_token=user.access_token),
        locale="en-CA",
    )


@pytest_asyncio.fixture
async def started_controller(controller):
    """Controller after start() with the initial feed update settled"""
    assert await controller.start()
    await controller.wait_for_pending()
    yield controller
    await controller.close()


# ============================================================================
# Logging Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def restore_package_logger():
    """Undo setup_logging() so later tests can still capture logs"""
    package_logger = logging.getLogger("feedsession")
    saved = (list(package_logger.handlers), package_logger.level, package_logger.propagate)

    yield package_logger

    for handler in package_logger.handlers:
        if handler not in saved[0]:
            handler.close()
    package_logger.handlers[:] = saved[0]
    package_logger.setLevel(saved[1])
    package_logger.propagate = saved[2]
