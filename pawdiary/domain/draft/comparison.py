"""Structural comparison of a draft against reference data.

Used to decide whether a recovered or edited draft differs from what the
editor was opened with (and so whether to offer discard/keep).
"""

from datetime import timedelta
from typing import Any, Dict, Mapping, Union

from pydantic import BaseModel

from pawdiary.domain.draft.models import Draft, DraftUpdate

TIMESTAMP_TOLERANCE = timedelta(seconds=60)

# Values a freshly created draft gets when the field is not provided
_TEXT_FIELD_DEFAULTS: Dict[str, Any] = {"title": "", "subcategory": "", "notes": None}


def _as_mapping(reference: Union[BaseModel, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(reference, BaseModel):
        return reference.model_dump(exclude_unset=True)
    return DraftUpdate.model_validate(dict(reference)).model_dump(exclude_unset=True)


def has_unsaved_changes(
    draft: Draft, reference: Union[BaseModel, Mapping[str, Any]]
) -> bool:
    """
    Check whether a draft differs from reference data.

    Comparison rules:
    - title, subcategory, notes: exact match (absent reference fields
      compare against the defaults of a new draft)
    - timestamp: only if the reference has one, 60 seconds tolerance
    - blocks: only if the reference has blocks, same block ids and deep
      equality block by block
    - tags: only if the reference has tags, same sequence

    Args:
        draft: Stored or working draft
        reference: DraftInput / DraftUpdate / plain mapping

    Returns:
        True if any compared field differs
    """
    ref = _as_mapping(reference)

    for field, default in _TEXT_FIELD_DEFAULTS.items():
        if getattr(draft, field) != ref.get(field, default):
            return True

    ref_timestamp = ref.get("timestamp")
    if ref_timestamp is not None:
        if abs(draft.timestamp - ref_timestamp) > TIMESTAMP_TOLERANCE:
            return True

    ref_blocks = ref.get("blocks")
    if ref_blocks is not None:
        if set(draft.blocks) != set(ref_blocks):
            return True
        for block_id, block_data in draft.blocks.items():
            if block_data != ref_blocks[block_id]:
                return True

    ref_tags = ref.get("tags")
    if ref_tags is not None:
        if list(draft.tags or []) != list(ref_tags):
            return True

    return False
