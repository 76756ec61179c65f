"""
Content ranking for social clusters.

Collects the learning objects of every member of a cluster, removes
duplicates and orders them by popularity (most visited first).
"""

import logging
from typing import Iterable, List, Optional

from .errors import SocialContextError
from .models import Canopy, ContentItem, RankedAssignment
from .storage import ClusterStore

logger = logging.getLogger(__name__)


def deduplicate(items: Iterable[ContentItem]) -> List[ContentItem]:
    """Keep the first occurrence of every item id, preserving order."""
    seen = set()
    unique = []
    for item in items:
        if item.item_id in seen:
            continue
        seen.add(item.item_id)
        unique.append(item)
    return unique


def order_by_popularity(items: Iterable[ContentItem]) -> List[ContentItem]:
    """
    Order items from most to least popular.

    Sorts ascending (stable) and reverses the whole list, so items with equal
    popularity come out in the reverse of their input order. This is not the
    same as ``sorted(..., reverse=True)``, which keeps ties in input order.
    """
    ordered = sorted(items, key=lambda item: item.popularity)
    ordered.reverse()
    return ordered


class ClusterContentRanker:
    """
    Ranks the content items related to a cluster.

    Args:
        max_items: Keep at most this many ranked items per cluster
            (default: None, keep all)
    """

    def __init__(self, max_items: Optional[int] = None):
        self.max_items = max_items

    def rank(self, canopy: Canopy, store: ClusterStore) -> List[RankedAssignment]:
        """
        Build the full ranking of a cluster.

        Membership is re-read from storage rather than taken from
        ``canopy.member_ids``.

        Args:
            canopy: Cluster to rank
            store: Storage holding memberships and content items

        Returns:
            Assignments with dense 1-based positions. Empty if the cluster has
            no members.

        Raises:
            StorageFailure: Propagated from storage, annotated with the canopy id
        """
        try:
            members = store.fetch_members_of_canopy(canopy.canopy_id)

            cluster_items: List[ContentItem] = []
            for member in members:
                cluster_items.extend(store.fetch_content_items_for_user(member.user_id))
        except SocialContextError as e:
            e.add_context(canopy_id=canopy.canopy_id)
            raise

        ranked = order_by_popularity(deduplicate(cluster_items))
        if self.max_items is not None:
            ranked = ranked[: self.max_items]

        logger.info(
            f"Cluster {canopy.canopy_id}: {len(members)} members, "
            f"{len(cluster_items)} items collected, {len(ranked)} ranked"
        )

        return [
            RankedAssignment(item=item, canopy_id=canopy.canopy_id, position=position)
            for position, item in enumerate(ranked, start=1)
        ]
