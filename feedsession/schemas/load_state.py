"""Load state and controller snapshots"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from feedsession.schemas.server_metadata import ServerMetadata


class LoadOutcome(str, Enum):
    """How one LoadTrigger.run() call settled"""

    COMPLETED = "completed"
    BUSY = "busy"
    FAILED = "failed"
    SKIPPED = "skipped"


class LoadState(BaseModel):
    """Whether a load is in flight and how long the last one took"""

    model_config = ConfigDict(frozen=True)

    is_loading: bool = False
    last_load_started_at: Optional[float] = None
    last_load_duration_seconds: Optional[float] = Field(None, ge=0)


class LoadTransition(BaseModel):
    """One flip of the loading flag, tagged with the run it belongs to"""

    model_config = ConfigDict(frozen=True)

    is_loading: bool
    started_at: float
    label: str
    outcome: Optional[LoadOutcome] = None
    duration_seconds: Optional[float] = Field(None, ge=0)


class SessionState(str, Enum):
    """Lifecycle of one SessionController"""

    UNINITIALIZED = "uninitialized"
    CONSTRUCTING = "constructing"
    READY = "ready"
    LOADING = "loading"
    LOGGED_OUT = "logged_out"
    CLOSED = "closed"


class ControllerSnapshot(BaseModel):
    """What a SessionController publishes to its readers on every transition"""

    model_config = ConfigDict(frozen=True)

    state: SessionState
    is_loading: bool = False
    last_load_duration_seconds: Optional[float] = Field(None, ge=0)
    server_metadata: Optional[ServerMetadata] = None
    timeline_size: int = 0
