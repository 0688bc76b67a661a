"""Session services.

This package contains the orchestration layer proper: credential verification,
load tracking, the per-session controller, focus-driven refresh and optimistic
actions, plus the thin Mastodon REST client they share.
"""

from feedsession.services.auth_manager import AuthManager
from feedsession.services.auto_refresh import AutoRefreshWatcher, FocusEventSource
from feedsession.services.credential_gate import CredentialGate
from feedsession.services.load_trigger import LoadTrigger
from feedsession.services.mastodon_client import MastodonApiClient
from feedsession.services.optimistic_actions import AccountAction, OptimisticActionGuard, TootAction
from feedsession.services.session_controller import SessionController

__all__ = [
    "AccountAction",
    "AuthManager",
    "AutoRefreshWatcher",
    "CredentialGate",
    "FocusEventSource",
    "LoadTrigger",
    "MastodonApiClient",
    "OptimisticActionGuard",
    "SessionController",
    "TootAction",
]
