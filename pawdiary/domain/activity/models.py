"""
Activity domain models.

Mirror of the activity record exposed by the remote store, plus the
create/update payloads sent to it.

The identity of an activity is a tagged union:

  * TemporaryId: assigned locally while an optimistic create is in flight
  * ConfirmedId: assigned by the remote store

so reconciliation code never has to guess whether a numeric id is real.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


class ActivityCategory(str, Enum):
    """Top-level activity category."""

    HEALTH = "health"
    GROWTH = "growth"
    DIET = "diet"
    LIFESTYLE = "lifestyle"
    EXPENSE = "expense"


class ActivityMode(str, Enum):
    """Editor mode the activity was recorded with."""

    QUICK = "quick"
    GUIDED = "guided"
    ADVANCED = "advanced"


def _ensure_utc(v: datetime) -> datetime:
    """Naive datetime → assume UTC."""
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]


class TemporaryId(BaseModel):
    """
    Local identifier of an activity not yet confirmed by the remote store.

    Example:
        >>> ref = TemporaryId.generate()
        >>> ref.kind
        'temporary'
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["temporary"] = "temporary"
    local_id: str = Field(..., min_length=1)

    @classmethod
    def generate(cls) -> TemporaryId:
        return cls(local_id=f"temp-{uuid4().hex}")

    def __str__(self) -> str:
        return self.local_id


class ConfirmedId(BaseModel):
    """
    Identifier assigned by the remote store.

    Example:
        >>> ConfirmedId(server_id=42).server_id
        42
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["confirmed"] = "confirmed"
    server_id: int = Field(..., gt=0)

    def __str__(self) -> str:
        return str(self.server_id)


ActivityRef = Annotated[Union[TemporaryId, ConfirmedId], Field(discriminator="kind")]


def as_ref(activity_id: Union[int, TemporaryId, ConfirmedId]) -> Union[TemporaryId, ConfirmedId]:
    """Normalize a bare server id to a ConfirmedId."""
    if isinstance(activity_id, (TemporaryId, ConfirmedId)):
        return activity_id
    return ConfirmedId(server_id=activity_id)


class ActivityData(BaseModel):
    """Category-specific payload of an activity."""

    model_config = ConfigDict(frozen=True)

    template_id: str = "default"
    blocks: Dict[str, Any] = Field(default_factory=dict)
    mode: ActivityMode = ActivityMode.GUIDED


class Activity(BaseModel):
    """
    Activity as held in the local cache.

    Attributes:
        id: TemporaryId while optimistic, ConfirmedId once stored remotely
        pet_id: Owning pet (reference into the remote store)
        category: Activity category
        subcategory: Free-form subcategory (e.g. "Vaccination")
        title: Display title
        description: Optional long description
        activity_date: When the activity happened
        activity_data: Template id, structured blocks and editor mode
        created_at: Server creation time (provisional while temporary)
        updated_at: Last modification time
    """

    model_config = ConfigDict(frozen=True)

    id: ActivityRef
    pet_id: int = Field(..., gt=0)
    category: ActivityCategory
    subcategory: str = ""
    title: str
    description: Optional[str] = None
    activity_date: UtcDatetime
    activity_data: ActivityData = Field(default_factory=ActivityData)
    created_at: UtcDatetime
    updated_at: UtcDatetime

    @property
    def is_temporary(self) -> bool:
        return isinstance(self.id, TemporaryId)

    @property
    def server_id(self) -> Optional[int]:
        """Remote id, or None while the activity is still temporary."""
        if isinstance(self.id, ConfirmedId):
            return self.id.server_id
        return None

    def apply_update(self, update: ActivityUpdate, updated_at: datetime) -> Activity:
        """
        Return a copy with the explicitly set fields of `update` applied.

        template_id, blocks and mode are stored inside activity_data.

        Args:
            update: Partial update payload
            updated_at: Value for the new updated_at

        Returns:
            Patched Activity (self is left untouched)
        """
        changes = update.model_dump(exclude_unset=True)
        data_changes = {
            k: changes.pop(k) for k in ("template_id", "blocks", "mode") if k in changes
        }

        if data_changes:
            changes["activity_data"] = self.activity_data.model_copy(update=data_changes)
        changes["updated_at"] = updated_at

        return self.model_copy(update=changes)


class ActivityInput(BaseModel):
    """Payload for creating an activity."""

    pet_id: int = Field(..., gt=0)
    category: ActivityCategory
    subcategory: str = ""
    template_id: str = "default"
    blocks: Dict[str, Any] = Field(default_factory=dict)
    mode: ActivityMode = ActivityMode.GUIDED
    title: str = ""
    description: Optional[str] = None
    activity_date: Optional[UtcDatetime] = None


class ActivityUpdate(BaseModel):
    """
    Partial payload for updating an activity.

    Only fields explicitly set by the caller are applied
    (model_dump(exclude_unset=True)).
    """

    category: Optional[ActivityCategory] = None
    subcategory: Optional[str] = None
    template_id: Optional[str] = None
    blocks: Optional[Dict[str, Any]] = None
    mode: Optional[ActivityMode] = None
    title: Optional[str] = None
    description: Optional[str] = None
    activity_date: Optional[UtcDatetime] = None
