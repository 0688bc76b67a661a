"""Durable client-side key-value storage on SQLite.

The analogue of a browser's localStorage: small JSON values under string keys,
synchronously readable at startup, every write committed immediately. Reads
never raise; a missing or unreadable value falls back to the caller's default.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import Engine, delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from feedsession.core.errors import StorageError
from feedsession.core.utils.encryption import CredentialEncryption, generate_salt
from feedsession.db.base import Base
from feedsession.db.models.storage_entry import StorageEntry
from feedsession.db.session import make_session_factory, session_scope

logger = logging.getLogger(__name__)

SALT_KEY = "_encryption_salt"


class DurableStore:
    """Key-value storage with optional at-rest encryption for credential keys."""

    def __init__(
        self,
        engine: Engine,
        secret_key: Optional[str] = None,
        encrypted_keys: Iterable[str] = (),
    ):
        """
        Args:
            engine: SQLAlchemy engine for the storage database
            secret_key: when set, values under encrypted_keys are stored encrypted
            encrypted_keys: keys whose values hold credentials
        """
        self._engine = engine
        self._session_factory = make_session_factory(engine)
        self._encrypted_keys = frozenset(encrypted_keys)
        Base.metadata.create_all(bind=engine, tables=[StorageEntry.__table__], checkfirst=True)
        self._cipher = self._build_cipher(secret_key) if secret_key and self._encrypted_keys else None

    def _build_cipher(self, secret_key: str) -> CredentialEncryption:
        salt = self._read_raw(SALT_KEY)
        if not isinstance(salt, str):
            salt = generate_salt()
            self._write_raw(SALT_KEY, salt)
            logger.info("Created new encryption salt for credential storage")
        return CredentialEncryption(secret_key, salt)

    def _should_encrypt(self, key: str) -> bool:
        return self._cipher is not None and key in self._encrypted_keys

    def _read_raw(self, key: str) -> Any:
        with session_scope(self._session_factory) as db:
            row = db.scalar(select(StorageEntry).where(StorageEntry.key == key))
            return None if row is None else row.data

    def _write_raw(self, key: str, value: Any) -> None:
        with session_scope(self._session_factory) as db:
            try:
                result = db.execute(
                    update(StorageEntry)
                    .where(StorageEntry.key == key)
                    .values(data=value)
                )

                # If no rows were updated, insert a new record
                if result.rowcount == 0:
                    db.add(StorageEntry(key=key, data=value))

                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Storage write failed for key {key}: {e}")
                raise StorageError(f"Failed to write '{key}' to durable storage") from e

    def contains(self, key: str) -> bool:
        try:
            with session_scope(self._session_factory) as db:
                return db.scalar(select(StorageEntry.id).where(StorageEntry.key == key)) is not None
        except SQLAlchemyError as e:
            logger.error(f"Storage lookup failed for key {key}: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve the value for the given key, or default if absent or unreadable."""
        try:
            value = self._read_raw(key)
        except (SQLAlchemyError, ValueError) as e:
            # ValueError covers rows whose JSON no longer parses
            logger.error(f"Storage read failed for key {key}: {e}")
            return default

        if value is None:
            return default

        if self._should_encrypt(key):
            if not isinstance(value, str):
                logger.warning(f"Expected encrypted value under '{key}', ignoring stored data")
                return default
            decrypted = self._cipher.decrypt(value)
            # Never hand back raw ciphertext
            return default if decrypted is None else decrypted

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Store a value with the given key, durable once this returns.

        Raises:
            StorageError: If the write can't be committed
        """
        stored_value = self._cipher.encrypt(value) if self._should_encrypt(key) else value
        self._write_raw(key, stored_value)

    def clear(self, key: str) -> None:
        """Remove the entry for the given key."""
        with session_scope(self._session_factory) as db:
            try:
                db.execute(delete(StorageEntry).where(StorageEntry.key == key))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StorageError(f"Failed to clear '{key}' from durable storage") from e
