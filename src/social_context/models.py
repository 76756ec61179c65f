"""
Data model for social-context clustering.

Defines user profiles, content items (learning objects), canopies and
ranked assignments, with dict conversion for Firestore storage.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UserProfile:
    """
    A user as seen by the clustering algorithm.

    Attributes:
        user_id: Unique user identifier
        subjects: Subject name -> interest weight. ``None`` means the profile
            was stored without any subject data and cannot be compared.
        biography: Free-text biography (informational only)
        top_subjects: Subjects the user declared as favourites
    """

    user_id: int
    subjects: Optional[Dict[str, float]] = field(default_factory=dict)
    biography: str = ""
    top_subjects: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "subjects": dict(self.subjects) if self.subjects is not None else None,
            "biography": self.biography,
            "top_subjects": list(self.top_subjects),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        subjects = data.get("subjects")
        return cls(
            user_id=int(data["user_id"]),
            subjects=dict(subjects) if subjects is not None else None,
            biography=data.get("biography") or "",
            top_subjects=list(data.get("top_subjects") or []),
        )


@dataclass(frozen=True)
class ContentItem:
    """
    A learning object that can be recommended to a cluster.

    Items are compared by popularity (visit count) only; identity is
    ``item_id``.
    """

    item_id: int
    popularity: int
    owner_id: Optional[int] = None
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "popularity": self.popularity,
            "owner_id": self.owner_id,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentItem":
        owner_id = data.get("owner_id")
        return cls(
            item_id=int(data["item_id"]),
            popularity=int(data.get("popularity", 0)),
            owner_id=int(owner_id) if owner_id is not None else None,
            title=data.get("title") or "",
        )


@dataclass
class Canopy:
    """
    One social cluster produced by canopy clustering.

    Attributes:
        canopy_id: Sequential id assigned at creation
        center: Profile that seeded the canopy
        member_ids: Loose members in insertion order (center first)
    """

    canopy_id: int
    center: UserProfile
    member_ids: List[int] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utc_now)

    def add_member(self, user_id: int) -> None:
        if user_id not in self.member_ids:
            self.member_ids.append(user_id)

    def __contains__(self, user_id: int) -> bool:
        return user_id in self.member_ids

    def __len__(self) -> int:
        return len(self.member_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canopy_id": self.canopy_id,
            "center": self.center.to_dict(),
            "member_ids": list(self.member_ids),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Canopy":
        created_at = data.get("created_at") or _utc_now()
        return cls(
            canopy_id=int(data["canopy_id"]),
            center=UserProfile.from_dict(data["center"]),
            member_ids=[int(m) for m in data.get("member_ids") or []],
            created_at=created_at,
        )


@dataclass(frozen=True)
class RankedAssignment:
    """A content item's dense 1-based rank within one cluster."""

    item: ContentItem
    canopy_id: int
    position: int

    def __post_init__(self):
        if self.position < 1:
            raise ValueError(f"Position must be >= 1, got {self.position}")
