"""
Interface of the external feed-ranking engine.

The engine is opaque to this package. It owns fetching, scoring and caching
of timeline items; the session layer only constructs it, triggers its loads
and reads a few status values back. While a load is already running inside
the engine, any further trigger fails with ``EngineBusyError`` (or an error
whose message contains ``GET_FEED_BUSY_MSG``).
"""

from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from feedsession.schemas.session import AccountIdentity

TimelineCallback = Callable[[List[Any]], None]


@runtime_checkable
class FeedEngine(Protocol):
    """Handle to one user's ranking engine, owned by a single SessionController"""

    async def trigger_feed_update(self) -> None: ...

    async def trigger_home_timeline_backfill(self) -> None: ...

    async def trigger_moar_data(self) -> None: ...

    async def trigger_pull_all_user_data(self) -> None: ...

    async def reset(self) -> None: ...

    async def server_info(self) -> Dict[str, Any]: ...

    def most_recent_home_toot_age_in_seconds(self) -> Optional[float]: ...

    def is_loading(self) -> bool: ...


class EngineFactory(Protocol):
    """Builds a FeedEngine once the user's credentials have been verified"""

    async def create(
        self,
        *,
        api: Any,
        user: AccountIdentity,
        on_timeline_update: TimelineCallback,
        locale: str,
    ) -> FeedEngine: ...
