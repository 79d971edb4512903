"""Unit tests for draft models and unsaved-change detection."""

import re
from datetime import timedelta

import pytest

from pawdiary.domain.activity.models import ActivityCategory
from pawdiary.domain.draft.comparison import has_unsaved_changes
from pawdiary.domain.draft.models import Draft, DraftInput, DraftUpdate, generate_draft_id


@pytest.fixture
def draft(clock) -> Draft:
    return Draft(
        id="draft-1740816000000-abc123def",
        pet_id=7,
        category=ActivityCategory.HEALTH,
        subcategory="Vaccination",
        title="Rabies shot",
        timestamp=clock.now,
        blocks={"vet": {"name": "Dr. Rossi"}, "cost": {"amount": 40}},
        tags=["yearly"],
        created_at=clock.now,
        last_modified=clock.now,
    )


class TestDraftModels:
    """Test draft id generation and models."""

    def test_generate_draft_id_format(self) -> None:
        draft_id = generate_draft_id()

        assert re.fullmatch(r"draft-\d+-[0-9a-f]{9}", draft_id)

    def test_generate_draft_id_is_unique(self) -> None:
        assert len({generate_draft_id() for _ in range(100)}) == 100

    def test_draft_update_has_no_pet_id(self) -> None:
        update = DraftUpdate.model_validate({"title": "x", "pet_id": 9})

        assert update.model_dump(exclude_unset=True) == {"title": "x"}

    def test_editable_fields(self, draft: Draft) -> None:
        fields = draft.editable_fields()

        assert set(fields) == {
            "category",
            "subcategory",
            "title",
            "timestamp",
            "blocks",
            "notes",
            "tags",
        }

    def test_version_starts_at_one(self, draft: Draft) -> None:
        assert draft.version == 1


class TestHasUnsavedChanges:
    """Test has_unsaved_changes comparison rules."""

    def test_identical_reference(self, draft: Draft) -> None:
        reference = draft.editable_fields()

        assert has_unsaved_changes(draft, reference) is False

    def test_title_differs(self, draft: Draft) -> None:
        reference = {**draft.editable_fields(), "title": "Rabies"}

        assert has_unsaved_changes(draft, reference) is True

    def test_absent_title_compares_with_empty_default(self, draft: Draft) -> None:
        reference = DraftInput(pet_id=7, category="health", subcategory="Vaccination")

        assert has_unsaved_changes(draft, reference) is True
        assert has_unsaved_changes(draft.model_copy(update={"title": ""}), reference) is False

    def test_timestamp_within_tolerance(self, draft: Draft) -> None:
        reference = {
            **draft.editable_fields(),
            "timestamp": draft.timestamp + timedelta(seconds=59),
        }

        assert has_unsaved_changes(draft, reference) is False

    def test_timestamp_beyond_tolerance(self, draft: Draft) -> None:
        reference = {
            **draft.editable_fields(),
            "timestamp": draft.timestamp - timedelta(seconds=61),
        }

        assert has_unsaved_changes(draft, reference) is True

    def test_naive_reference_timestamp_is_utc(self, draft: Draft) -> None:
        reference = {**draft.editable_fields(), "timestamp": draft.timestamp.replace(tzinfo=None)}

        assert has_unsaved_changes(draft, reference) is False

    def test_string_reference_timestamp_is_parsed(self, draft: Draft) -> None:
        reference = {
            "title": "Rabies shot",
            "subcategory": "Vaccination",
            "timestamp": "2025-03-01T08:00:30Z",
        }

        assert has_unsaved_changes(draft, reference) is False
        assert has_unsaved_changes(draft, {**reference, "timestamp": "2025-03-01T08:02:00Z"}) is True

    def test_block_added(self, draft: Draft) -> None:
        reference = {**draft.editable_fields(), "blocks": {"vet": {"name": "Dr. Rossi"}}}

        assert has_unsaved_changes(draft, reference) is True

    def test_block_content_differs(self, draft: Draft) -> None:
        blocks = {"vet": {"name": "Dr. Rossi"}, "cost": {"amount": 45}}
        reference = {**draft.editable_fields(), "blocks": blocks}

        assert has_unsaved_changes(draft, reference) is True

    def test_block_order_is_irrelevant(self, draft: Draft) -> None:
        blocks = {"cost": {"amount": 40}, "vet": {"name": "Dr. Rossi"}}
        reference = {**draft.editable_fields(), "blocks": blocks}

        assert has_unsaved_changes(draft, reference) is False

    def test_tags_differ(self, draft: Draft) -> None:
        reference = {**draft.editable_fields(), "tags": ["yearly", "booster"]}

        assert has_unsaved_changes(draft, reference) is True

    def test_fields_missing_from_reference_are_skipped(self, draft: Draft) -> None:
        reference = {"title": "Rabies shot", "subcategory": "Vaccination"}

        assert has_unsaved_changes(draft, reference) is False
