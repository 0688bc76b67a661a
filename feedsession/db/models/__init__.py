"""Storage models"""

from feedsession.db.models.storage_entry import StorageEntry

__all__ = ["StorageEntry"]
