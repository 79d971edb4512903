"""
Draft domain models.

A draft is a locally durable, not-yet-committed activity edit.
Drafts mirror the editable shape of an Activity and carry their own
optimistic-concurrency counter (version), compared only against itself.
"""

from __future__ import annotations

import secrets
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from pawdiary.domain.activity.models import ActivityCategory, UtcDatetime

# Fields a draft update (or an auto-save edit) may change.
# pet_id is fixed at creation: a draft always belongs to exactly one pet.
EDITABLE_FIELDS = frozenset(
    {"category", "subcategory", "title", "timestamp", "blocks", "notes", "tags"}
)


def generate_draft_id() -> str:
    """
    Generate an opaque draft identifier.

    Format: draft-<epoch ms>-<9 random chars>. Never sent to the remote store.
    """
    return f"draft-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


class DraftInput(BaseModel):
    """
    Input for creating a draft.

    Only pet_id and category are required; the remaining fields get the
    defaults of an empty editor.
    """

    pet_id: int = Field(..., gt=0)
    category: ActivityCategory
    subcategory: str = ""
    title: str = ""
    timestamp: Optional[UtcDatetime] = None
    blocks: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class DraftUpdate(BaseModel):
    """
    Partial draft update.

    Only explicitly set fields are merged into the stored draft.
    """

    category: Optional[ActivityCategory] = None
    subcategory: Optional[str] = None
    title: Optional[str] = None
    timestamp: Optional[UtcDatetime] = None
    blocks: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class Draft(BaseModel):
    """
    Persisted activity draft.

    Attributes:
        id: Opaque local identifier
        pet_id: Owning pet
        category, subcategory, title, timestamp, blocks, notes, tags:
            editable content, same shape as a committed activity
        created_at: Creation time (UTC)
        last_modified: Last successful write (UTC, non-decreasing)
        version: Starts at 1, +1 on every in-place update

    Example:
        >>> draft = Draft(
        ...     id="draft-1700000000000-a1b2c3d4e",
        ...     pet_id=7,
        ...     category=ActivityCategory.DIET,
        ...     title="Breakfast",
        ...     timestamp=now, created_at=now, last_modified=now,
        ... )
        >>> draft.version
        1
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    pet_id: int = Field(..., gt=0)
    category: ActivityCategory
    subcategory: str = ""
    title: str = ""
    timestamp: UtcDatetime
    blocks: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    created_at: UtcDatetime
    last_modified: UtcDatetime
    version: int = Field(default=1, ge=1)

    def editable_fields(self) -> Dict[str, Any]:
        """Editable content only (what a DraftUpdate may carry)."""
        return self.model_dump(include=set(EDITABLE_FIELDS))


class DraftStats(BaseModel):
    """Summary of the draft store contents."""

    total_drafts: int = 0
    drafts_by_pet: Dict[int, int] = Field(default_factory=dict)
    oldest_draft: Optional[datetime] = None
    newest_draft: Optional[datetime] = None
