"""Pydantic schemas for sessions, load state, server metadata and remote resources"""

from feedsession.schemas.resources import AccountResource, StatusResource

__all__ = ["AccountResource", "StatusResource"]
