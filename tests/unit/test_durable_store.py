"""
Unit tests for DurableStore

Uses a temporary SQLite database per test.
"""

import pytest
from sqlalchemy import select

from feedsession.core.utils.durable_store import SALT_KEY, DurableStore
from feedsession.db.models.storage_entry import StorageEntry
from feedsession.db.session import make_session_factory, session_scope

pytestmark = pytest.mark.unit

SECRET = "test-secret-key-for-testing-only"
CREDENTIAL_KEY = "serverUsers"


def raw_value(db_engine, key):
    with session_scope(make_session_factory(db_engine)) as db:
        return db.scalar(select(StorageEntry.data).where(StorageEntry.key == key))


class TestPlainStorage:
    """Test unencrypted get/set/clear"""

    def test_missing_key_returns_default(self, store):
        assert store.get("nothing") is None
        assert store.get("nothing", {"a": 1}) == {"a": 1}
        assert store.contains("nothing") is False

    def test_set_then_get(self, store):
        store.set("server", "mastodon.example")
        store.set("serverUsers", {"mastodon.example": {"app": None, "user": None}})

        assert store.get("server") == "mastodon.example"
        assert store.get("serverUsers")["mastodon.example"]["user"] is None
        assert store.contains("server") is True

    def test_overwrite(self, store):
        store.set("autoUpdate", False)
        store.set("autoUpdate", True)

        assert store.get("autoUpdate") is True

    def test_falsy_values_survive(self, store):
        store.set("hideLinkPreviews", False)
        store.set("count", 0)

        assert store.get("hideLinkPreviews", True) is False
        assert store.get("count", 7) == 0

    def test_clear(self, store):
        store.set("server", "mastodon.example")
        store.clear("server")

        assert store.get("server") is None
        assert store.contains("server") is False

    def test_clear_missing_key_is_fine(self, store):
        store.clear("never-set")

    def test_values_survive_a_new_store(self, db_engine, store):
        store.set("server", "mastodon.example")

        assert DurableStore(db_engine).get("server") == "mastodon.example"


class TestEncryptedStorage:
    """Test at-rest encryption of credential keys"""

    @pytest.fixture
    def secure_store(self, db_engine):
        return DurableStore(db_engine, secret_key=SECRET, encrypted_keys=[CREDENTIAL_KEY])

    def test_credentials_are_encrypted_at_rest(self, db_engine, secure_store):
        value = {"mastodon.example": {"user": {"access_token": "super-secret-token"}}}
        secure_store.set(CREDENTIAL_KEY, value)

        stored = raw_value(db_engine, CREDENTIAL_KEY)
        assert isinstance(stored, str)
        assert "super-secret-token" not in stored
        assert secure_store.get(CREDENTIAL_KEY) == value

    def test_other_keys_stay_plain(self, db_engine, secure_store):
        secure_store.set("server", "mastodon.example")

        assert raw_value(db_engine, "server") == "mastodon.example"

    def test_salt_is_reused(self, db_engine, secure_store):
        salt = raw_value(db_engine, SALT_KEY)
        secure_store.set(CREDENTIAL_KEY, {"x": 1})

        reopened = DurableStore(db_engine, secret_key=SECRET, encrypted_keys=[CREDENTIAL_KEY])

        assert raw_value(db_engine, SALT_KEY) == salt
        assert reopened.get(CREDENTIAL_KEY) == {"x": 1}

    def test_wrong_secret_returns_default_not_ciphertext(self, db_engine, secure_store):
        secure_store.set(CREDENTIAL_KEY, {"x": 1})

        other = DurableStore(db_engine, secret_key="a-different-secret", encrypted_keys=[CREDENTIAL_KEY])

        assert other.get(CREDENTIAL_KEY, {}) == {}

    def test_unencrypted_legacy_value_is_ignored(self, db_engine):
        DurableStore(db_engine).set(CREDENTIAL_KEY, {"plain": True})

        secure = DurableStore(db_engine, secret_key=SECRET, encrypted_keys=[CREDENTIAL_KEY])

        assert secure.get(CREDENTIAL_KEY, {}) == {}

    def test_corrupted_token_returns_default(self, db_engine, secure_store):
        DurableStore(db_engine).set(CREDENTIAL_KEY, "not-a-fernet-token")

        assert secure_store.get(CREDENTIAL_KEY) is None
