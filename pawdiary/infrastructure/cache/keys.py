"""Hierarchical cache keys.

A key is an ordered path of hashable segments. Prefix comparison is done
segment by segment, so ("activities", "list", 7) is never a prefix of
("activities", "list", 70).

Layout used for activities:

    activities
    ├── list
    │   └── <pet_id>               every activity of one pet
    ├── detail
    │   └── <ActivityRef>          one activity (temporary or confirmed)
    └── drafts
        └── <pet_id>               drafts of one pet
"""

from dataclasses import dataclass
from typing import Hashable, Iterator, Tuple, Union

from pawdiary.domain.activity.models import ConfirmedId, TemporaryId, as_ref
from pawdiary.domain.shared.errors import CacheError


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache address.

    Example:
        >>> key = CacheKey.of("activities", "list", 7)
        >>> CacheKey.of("activities").is_prefix_of(key)
        True
    """

    segments: Tuple[Hashable, ...]

    def __post_init__(self) -> None:
        if not self.segments:
            raise CacheError("Cache key must have at least one segment")

    @classmethod
    def of(cls, *segments: Hashable) -> "CacheKey":
        return cls(tuple(segments))

    def child(self, *segments: Hashable) -> "CacheKey":
        """Key one or more levels below this one."""
        return CacheKey(self.segments + tuple(segments))

    def is_prefix_of(self, other: "CacheKey") -> bool:
        """True if `other` equals this key or lies below it."""
        n = len(self.segments)
        return len(other.segments) >= n and other.segments[:n] == self.segments

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.segments)

    def __str__(self) -> str:
        return "/".join(str(s) for s in self.segments)


class ActivityKeys:
    """Key factory for everything activity-related."""

    all = CacheKey.of("activities")

    @classmethod
    def lists(cls) -> CacheKey:
        return cls.all.child("list")

    @classmethod
    def list(cls, pet_id: int) -> CacheKey:
        return cls.lists().child(pet_id)

    @classmethod
    def details(cls) -> CacheKey:
        return cls.all.child("detail")

    @classmethod
    def detail(cls, activity_id: Union[int, TemporaryId, ConfirmedId]) -> CacheKey:
        """Detail key; bare ints are treated as server ids."""
        return cls.details().child(as_ref(activity_id))

    @classmethod
    def drafts(cls) -> CacheKey:
        return cls.all.child("drafts")

    @classmethod
    def pet_drafts(cls, pet_id: int) -> CacheKey:
        return cls.drafts().child(pet_id)
