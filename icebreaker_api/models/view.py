"""Snapshots pushed to live viewers."""

from enum import Enum

from pydantic import BaseModel, Field

from .activity import ActivitySelection
from .message import Message
from .session import SessionStatus


class DisplayMode(str, Enum):
    """What a session viewer should render."""

    WAITING = "waiting"
    LIVE = "live"
    ENDED_REDIRECT = "ended_redirect"
    ENDED_HISTORY = "ended_history"


class HostState(str, Enum):
    """Owner console state for a channel."""

    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"


class HostView(BaseModel):
    """Owner console snapshot: latest session mapped to idle / active / ended."""

    channel_id: str
    state: HostState
    session_id: str | None = None
    can_start: bool = True


class Navigation(BaseModel):
    """Request to move the viewer to another view."""

    view: str = "summary"
    channel_id: str
    session_id: str


class SessionView(BaseModel):
    """Immutable render state emitted by the session orchestrator."""

    model_config = {"frozen": True}

    channel_id: str
    session_id: str
    history: bool = False
    mode: DisplayMode | None = None
    status: SessionStatus | None = None
    status_text: str = ""
    composer_enabled: bool = False
    tags: list[str] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    activity: ActivitySelection | None = None
    redirect: Navigation | None = None
    halted: bool = False
