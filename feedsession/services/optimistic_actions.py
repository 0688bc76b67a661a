"""
Optimistic toggles of boolean properties on statuses and accounts.

The local object is changed before the server answers. If the remote call
fails the exact values captured beforehand are put back and the failure is
reported; it never logs the user out.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from feedsession.core.error_reporter import ErrorReporter
from feedsession.core.errors import TransportError, is_permission_error
from feedsession.core.messages import NETWORK_ERROR_NOTE, OAUTH_ERROR_MSG
from feedsession.schemas.resources import StatusResource
from feedsession.services.mastodon_client import MastodonApiClient
from feedsession.services.session_controller import SessionController

logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")


async def apply_optimistic(
    snapshot: Callable[[], S],
    apply: Callable[[S], None],
    restore: Callable[[S], None],
    attempt: Callable[[], Awaitable[T]],
) -> T:
    """Apply a local change, run the remote attempt, restore the snapshot if it fails.

    The value handed to restore() is the one snapshot() returned, so the rollback
    target can't drift from what was captured. Exceptions are re-raised.
    """
    saved = snapshot()
    apply(saved)
    try:
        return await attempt()
    except (Exception, asyncio.CancelledError):
        restore(saved)
        raise


class TootAction(str, Enum):
    FAVOURITE = "favourite"
    REBLOG = "reblog"
    BOOKMARK = "bookmark"


class AccountAction(str, Enum):
    FOLLOW = "follow"
    MUTE = "mute"


ButtonAction = Union[TootAction, AccountAction]


@dataclass(frozen=True)
class ActionInfo:
    boolean_name: str
    on_call: str
    off_call: str
    count_name: Optional[str] = None


ACTION_INFO: Dict[ButtonAction, ActionInfo] = {
    TootAction.FAVOURITE: ActionInfo("favourited", "favourite", "unfavourite", count_name="favourites_count"),
    TootAction.REBLOG: ActionInfo("reblogged", "reblog", "unreblog", count_name="reblogs_count"),
    TootAction.BOOKMARK: ActionInfo("bookmarked", "bookmark", "unbookmark"),
    AccountAction.FOLLOW: ActionInfo("following", "follow", "unfollow"),
    AccountAction.MUTE: ActionInfo("muted", "mute", "unmute"),
}


@dataclass(frozen=True)
class PropertySnapshot:
    """Values of one boolean and its counter before an optimistic change"""

    state: bool
    count: Any = None


class OptimisticActionGuard:
    """Runs favourite/reblog/bookmark/follow/mute toggles with rollback."""

    def __init__(
        self,
        controller: SessionController,
        reporter: ErrorReporter,
        api: Optional[MastodonApiClient] = None,
    ):
        self.controller = controller
        self.reporter = reporter
        self._api = api

    @property
    def api(self) -> Optional[MastodonApiClient]:
        return self._api or self.controller.api

    async def toggle(self, status: StatusResource, action: ButtonAction) -> bool:
        """Flip `action`'s boolean on the status (or its account) and sync it to the server.

        Returns:
            True if the server accepted the change, False if it was rolled back
        """
        api = self.api
        if api is None:
            logger.warning(f"{action.value}() called without an API client, ignoring")
            return False

        info = ACTION_INFO[action]
        is_account = isinstance(action, AccountAction)
        target = status.account if is_account else status
        new_state = not bool(getattr(target, info.boolean_name))
        remote_call = getattr(api, info.on_call if new_state else info.off_call)

        def snapshot() -> PropertySnapshot:
            count = getattr(target, info.count_name) if info.count_name else None
            return PropertySnapshot(state=bool(getattr(target, info.boolean_name)), count=count)

        def apply(saved: PropertySnapshot) -> None:
            setattr(target, info.boolean_name, not saved.state)
            if info.count_name:
                count = saved.count or 0
                setattr(target, info.count_name, count + 1 if not saved.state else max(0, count - 1))

        def restore(saved: PropertySnapshot) -> None:
            setattr(target, info.boolean_name, saved.state)
            if info.count_name:
                setattr(target, info.count_name, saved.count)

        logger.debug(f"{action.value}() {'account' if is_account else 'toot'} {target.id} -> {new_state}")

        try:
            await apply_optimistic(snapshot, apply, restore, lambda: remote_call(target.id))
        except Exception as e:
            self._report_failure(action, is_account, e)
            return False

        logger.info(f"Successfully changed {action.value} to {new_state} for {target.id}")
        if action == AccountAction.MUTE:
            await self._refresh_muted_accounts()
        return True

    def _report_failure(self, action: ButtonAction, is_account: bool, error: Exception) -> None:
        note = None
        if is_permission_error(error):
            note = OAUTH_ERROR_MSG
        elif isinstance(error, TransportError):
            note = NETWORK_ERROR_NOTE

        msg = f"Failed to {action.value} {'account' if is_account else 'toot'}!"
        self.reporter.report_error(msg, error=error, note=note, log=logger)

    async def _refresh_muted_accounts(self) -> None:
        engine = self.controller.engine
        refresh = getattr(engine, "refresh_muted_accounts", None)
        if refresh is None:
            return

        try:
            await refresh()
        except Exception as e:
            logger.warning(f"Engine failed to refresh muted accounts: {e}")
