"""Unit tests for activity domain models."""

from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter, ValidationError

from pawdiary.domain.activity.models import (
    Activity,
    ActivityMode,
    ActivityRef,
    ActivityUpdate,
    ConfirmedId,
    TemporaryId,
    as_ref,
)


class TestActivityRef:
    """Test the temporary/confirmed id union."""

    def test_generate_temporary_id(self) -> None:
        ref = TemporaryId.generate()

        assert ref.kind == "temporary"
        assert ref.local_id.startswith("temp-")
        assert ref != TemporaryId.generate()

    def test_confirmed_id_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ConfirmedId(server_id=0)

    def test_refs_of_different_kind_never_equal(self) -> None:
        assert TemporaryId(local_id="42") != ConfirmedId(server_id=42)

    def test_refs_are_hashable(self) -> None:
        refs = {ConfirmedId(server_id=1), ConfirmedId(server_id=1), TemporaryId(local_id="a")}
        assert len(refs) == 2

    def test_discriminated_union_parses_both_variants(self) -> None:
        adapter = TypeAdapter(ActivityRef)

        assert adapter.validate_python({"kind": "confirmed", "server_id": 3}) == ConfirmedId(
            server_id=3
        )
        assert adapter.validate_python({"kind": "temporary", "local_id": "temp-x"}) == TemporaryId(
            local_id="temp-x"
        )

    def test_as_ref_wraps_bare_ints(self) -> None:
        temp = TemporaryId.generate()

        assert as_ref(5) == ConfirmedId(server_id=5)
        assert as_ref(temp) is temp


class TestActivity:
    """Test Activity entity."""

    def test_server_id_and_is_temporary(self, activity_factory) -> None:
        confirmed = activity_factory(12)
        temporary = confirmed.model_copy(update={"id": TemporaryId.generate()})

        assert confirmed.server_id == 12
        assert confirmed.is_temporary is False
        assert temporary.server_id is None
        assert temporary.is_temporary is True

    def test_naive_datetimes_are_treated_as_utc(self, activity_factory) -> None:
        activity = activity_factory(1, activity_date=datetime(2025, 3, 1, 9, 0))

        assert activity.activity_date.tzinfo == timezone.utc

    def test_apply_update_only_touches_set_fields(self, activity_factory) -> None:
        activity = activity_factory(1, title="Walk", description="Park")
        now = datetime(2025, 3, 2, tzinfo=timezone.utc)

        updated = activity.apply_update(ActivityUpdate(title="Long walk"), now)

        assert updated.title == "Long walk"
        assert updated.description == "Park"
        assert updated.updated_at == now
        assert activity.title == "Walk"

    def test_apply_update_routes_blocks_into_activity_data(self, activity_factory) -> None:
        activity = activity_factory(1)
        now = datetime(2025, 3, 2, tzinfo=timezone.utc)

        updated = activity.apply_update(
            ActivityUpdate(blocks={"notes": {"text": "muddy"}}, mode=ActivityMode.QUICK), now
        )

        assert updated.activity_data.blocks == {"notes": {"text": "muddy"}}
        assert updated.activity_data.mode == ActivityMode.QUICK
        assert updated.activity_data.template_id == activity.activity_data.template_id

    def test_activity_is_immutable(self, activity_factory) -> None:
        activity = activity_factory(1)

        with pytest.raises(ValidationError):
            activity.title = "changed"  # type: ignore[misc]

    def test_round_trip_keeps_ref_variant(self, activity_factory) -> None:
        activity = activity_factory(1).model_copy(update={"id": TemporaryId(local_id="temp-1")})

        restored = Activity.model_validate_json(activity.model_dump_json())

        assert restored.id == TemporaryId(local_id="temp-1")
