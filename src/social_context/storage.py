"""
Storage collaborators for social-context clustering.

``ClusterStore`` is the interface the clustering core reads profiles and
content from and writes clusters and rankings to. ``InMemoryClusterStore``
keeps everything in dictionaries and backs tests and local runs;
``firestore_store.FirestoreClusterStore`` is the production implementation.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from .errors import NotFound
from .models import Canopy, ContentItem, UserProfile

logger = logging.getLogger(__name__)


class ClusterStore(ABC):
    """
    Abstract storage for profiles, content items, clusters and rankings.

    Implementations raise ``StorageFailure`` for any I/O failure and
    ``NotFound`` when a requested profile does not exist.
    """

    @abstractmethod
    def fetch_all_profiles(self) -> List[UserProfile]:
        """Return every user profile, in a stable order."""
        pass

    @abstractmethod
    def fetch_top_feature_dimensions(self, k: int) -> List[str]:
        """Return the ``k`` most used subjects, most used first."""
        pass

    @abstractmethod
    def fetch_profile(self, user_id: int) -> UserProfile:
        """Return one profile. Raises ``NotFound`` if it does not exist."""
        pass

    @abstractmethod
    def fetch_content_items_for_user(self, user_id: int) -> List[ContentItem]:
        """Return the content items owned by a user."""
        pass

    @abstractmethod
    def reset_clusters(self) -> None:
        """Remove all persisted clusters, memberships and rankings."""
        pass

    @abstractmethod
    def persist_canopy(self, canopy: Canopy) -> None:
        """Store a canopy and its memberships."""
        pass

    @abstractmethod
    def fetch_members_of_canopy(self, canopy_id: int) -> List[UserProfile]:
        """Return the member profiles of a persisted canopy."""
        pass

    @abstractmethod
    def persist_ranked_assignment(
        self, item: ContentItem, position: int, canopy_id: int
    ) -> None:
        """Store one content item at a position of a cluster ranking."""
        pass

    @abstractmethod
    def fetch_all_canopies(self) -> List[Canopy]:
        """Return every persisted canopy, ordered by id."""
        pass

    @abstractmethod
    def fetch_existing_cluster_id_for_user(self, user_id: int) -> Optional[int]:
        """Return the id of a cluster the user belongs to, or None."""
        pass


class InMemoryClusterStore(ClusterStore):
    """
    Dictionary-backed store.

    Args:
        profiles: Source profiles, in the order they are returned
        content_items: Source content items, grouped by ``owner_id``
        subject_counts: Usage count per subject. If omitted, counts are the
            summed interest weights over all profiles.
    """

    def __init__(
        self,
        profiles: Iterable[UserProfile] = (),
        content_items: Iterable[ContentItem] = (),
        subject_counts: Optional[Dict[str, float]] = None,
    ):
        self.profiles: Dict[int, UserProfile] = {p.user_id: p for p in profiles}
        self.content_by_user: Dict[int, List[ContentItem]] = defaultdict(list)
        for item in content_items:
            self.content_by_user[item.owner_id].append(item)
        self.subject_counts = subject_counts

        self.canopies: Dict[int, Canopy] = {}
        self.rankings: Dict[int, Dict[int, ContentItem]] = defaultdict(dict)

    def fetch_all_profiles(self) -> List[UserProfile]:
        return list(self.profiles.values())

    def fetch_top_feature_dimensions(self, k: int) -> List[str]:
        counts = self.subject_counts
        if counts is None:
            counts = defaultdict(float)
            for profile in self.profiles.values():
                for subject, weight in (profile.subjects or {}).items():
                    counts[subject] += weight
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return [subject for subject, _ in ranked[:k]]

    def fetch_profile(self, user_id: int) -> UserProfile:
        try:
            return self.profiles[user_id]
        except KeyError:
            raise NotFound("User profile not found", {"user_id": user_id})

    def fetch_content_items_for_user(self, user_id: int) -> List[ContentItem]:
        return list(self.content_by_user.get(user_id, []))

    def reset_clusters(self) -> None:
        logger.info(
            f"Clearing {len(self.canopies)} clusters and "
            f"{len(self.rankings)} rankings"
        )
        self.canopies.clear()
        self.rankings.clear()

    def persist_canopy(self, canopy: Canopy) -> None:
        self.canopies[canopy.canopy_id] = Canopy(
            canopy_id=canopy.canopy_id,
            center=canopy.center,
            member_ids=list(canopy.member_ids),
            created_at=canopy.created_at,
        )

    def fetch_members_of_canopy(self, canopy_id: int) -> List[UserProfile]:
        canopy = self.canopies.get(canopy_id)
        if canopy is None:
            return []
        return [self.profiles[m] for m in canopy.member_ids if m in self.profiles]

    def persist_ranked_assignment(
        self, item: ContentItem, position: int, canopy_id: int
    ) -> None:
        self.rankings[canopy_id][position] = item

    def fetch_ranking(self, canopy_id: int) -> List[ContentItem]:
        """Return a stored ranking ordered by position."""
        ranking = self.rankings.get(canopy_id, {})
        return [ranking[pos] for pos in sorted(ranking)]

    def fetch_all_canopies(self) -> List[Canopy]:
        return [self.canopies[cid] for cid in sorted(self.canopies)]

    def fetch_existing_cluster_id_for_user(self, user_id: int) -> Optional[int]:
        for canopy_id in sorted(self.canopies):
            if user_id in self.canopies[canopy_id]:
                return canopy_id
        return None
