"""
Pydantic models for the activity audit trail.

Records are stored newest-first. ``type`` and ``action`` are written from
the closed enums below, but records read back keep whatever string was
stored so that unknown values still render.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActivityType(str, Enum):
    """Entity category an activity belongs to."""

    RISK = "risk"
    CONTROL = "control"
    REPORT = "report"
    REGISTER = "register"
    USER = "user"
    TEAM_MEMBER = "team-member"
    SETTINGS = "settings"
    WORKSPACE = "workspace"
    DATA = "data"


class ActivityAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    ADDED = "added"
    REMOVED = "removed"
    LINKED = "linked"
    UNLINKED = "unlinked"
    EXPORTED = "exported"
    IMPORTED = "imported"
    RENAMED = "renamed"
    SHARED = "shared"
    EDITED = "edited"
    COMMENTED = "commented"
    BULK_DELETED = "bulk_deleted"
    UNSHARED = "unshared"
    TRANSFERRED = "transferred"


class ActivityRecord(BaseModel):
    """
    One audited mutation.

    ``date`` (DD/MM/YYYY) and ``time`` (HH:MM) are derived from the same
    instant as ``timestamp``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    action: str
    entity_type: Optional[str] = Field(default=None, alias="entityType")
    entity_name: Optional[str] = Field(default=None, alias="entityName")
    details: Dict[str, Any] = Field(default_factory=dict)
    user: Optional[str] = "Unknown User"
    user_id: Optional[str] = Field(default=None, alias="userId")
    timestamp: datetime
    date: str
    time: str


class ActivityCreate(BaseModel):
    """Request body for logging an activity over HTTP."""

    model_config = ConfigDict(populate_by_name=True)

    type: ActivityType
    action: ActivityAction
    entity_type: Optional[str] = Field(default=None, alias="entityType")
    entity_name: Optional[str] = Field(default=None, alias="entityName")
    details: Dict[str, Any] = Field(default_factory=dict)
