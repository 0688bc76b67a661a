"""Persistent Flags Module

Small user preferences (booleans, short strings) kept in durable client storage
so they survive restarts. Each flag is an independent named cell: reads are
synchronous and fall back to a default, writes are durable immediately.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from feedsession.core.errors import StorageError
from feedsession.core.utils.durable_store import DurableStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FlagName(str, Enum):
    """Keys of the flags the client knows about"""

    AUTO_UPDATE = "autoUpdate"
    HIDE_LINK_PREVIEWS = "hideLinkPreviews"
    CONTROL_PANEL_STICKY = "isControlPanelSticky"
    HIDE_SENSITIVE_MEDIA = "hideSensitiveMedia"


@dataclass
class PersistentFlagsConfig:
    """Default values used when a flag was never written or can't be read"""

    autoUpdate: bool = False
    hideLinkPreviews: bool = False
    isControlPanelSticky: bool = True
    hideSensitiveMedia: bool = True


class PersistentFlag(Generic[T]):
    """A single durable preference cell bound to its store."""

    def __init__(self, store: "PersistentFlagStore", key: str, default: T):
        self.store = store
        self.key = key
        self.default = default
        self._value: T = store.get(key, default)

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self.store.set(self.key, value)
        self._value = value

    def __bool__(self) -> bool:
        return bool(self._value)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<PersistentFlag(key={self.key!r}, value={self._value!r})>"


class PersistentFlagStore:
    """Reads and writes named preference flags in durable storage."""

    def __init__(self, store: DurableStore, config: Optional[PersistentFlagsConfig] = None):
        self._store = store
        self.config = config or PersistentFlagsConfig()

    def default_for(self, key: str) -> Any:
        return getattr(self.config, key, None)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a flag, seeding storage with the default when the key is absent.

        Never raises: unreadable or mistyped values resolve to the default.
        """
        key = _key_name(key)
        default = self.default_for(key) if default is None else default

        if not self._store.contains(key):
            try:
                self._store.set(key, default)
            except StorageError as e:
                logger.error(f"Failed to seed default for flag '{key}': {e}")
            return default

        value = self._store.get(key, default)
        if default is not None and not isinstance(value, type(default)):
            logger.error(f"Flag '{key}' holds {value!r}, expected {type(default).__name__}; using default")
            return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Write a flag durably. Raises StorageError if the write fails."""
        key = _key_name(key)
        self._store.set(key, value)
        logger.debug(f"Flag '{key}' set to {value!r}")

    def flag(self, key: str, default: Any = None) -> PersistentFlag:
        key = _key_name(key)
        return PersistentFlag(self, key, self.default_for(key) if default is None else default)

    def is_enabled(self, key: str) -> bool:
        return bool(self.get(key))

    def enable(self, key: str) -> None:
        self.set(key, True)

    def disable(self, key: str) -> None:
        self.set(key, False)

    def snapshot(self) -> Dict[str, Any]:
        """Current value of every known flag"""
        return {key: self.get(key) for key in asdict(self.config)}


def _key_name(key: Any) -> str:
    return key.value if isinstance(key, FlagName) else str(key)
