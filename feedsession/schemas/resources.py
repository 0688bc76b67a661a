"""Remote resources a user can act on (statuses and their authors)"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class AccountResource(BaseModel):
    """Author of a status; the follow/mute booleans are mutated optimistically"""

    model_config = ConfigDict(extra="ignore")

    id: str
    acct: str = ""
    following: bool = False
    muted: bool = False


class StatusResource(BaseModel):
    """A status (toot) as far as the action buttons care about it"""

    model_config = ConfigDict(extra="ignore")

    id: str
    uri: Optional[str] = None
    account: AccountResource
    favourited: bool = False
    favourites_count: int = 0
    reblogged: bool = False
    reblogs_count: int = 0
    bookmarked: bool = False
    replies_count: int = 0
