"""Unit tests for cluster content ranking."""

import pytest
from unittest.mock import Mock

from social_context.errors import StorageFailure
from social_context.models import Canopy, ContentItem, UserProfile
from social_context.ranking import (
    ClusterContentRanker,
    deduplicate,
    order_by_popularity,
)
from social_context.storage import InMemoryClusterStore


def make_store(members, items):
    """Store with one persisted canopy (id 1) holding ``members``."""
    profiles = [UserProfile(user_id=m, subjects={"x": 0.0}) for m in members]
    store = InMemoryClusterStore(profiles=profiles, content_items=items)
    canopy = Canopy(canopy_id=1, center=profiles[0], member_ids=list(members))
    store.persist_canopy(canopy)
    return store, canopy


def ids(assignments):
    return [a.item.item_id for a in assignments]


class TestDeduplicate:
    """Test first-occurrence deduplication."""

    def test_keeps_first_occurrence(self):
        first = ContentItem(item_id=7, popularity=3, owner_id=1)
        later = ContentItem(item_id=7, popularity=10, owner_id=2)
        other = ContentItem(item_id=8, popularity=1, owner_id=2)

        result = deduplicate([first, other, later])

        assert result == [first, other]
        assert result[0].popularity == 3

    def test_empty(self):
        assert deduplicate([]) == []


class TestOrderByPopularity:
    """Test popularity ordering and its tie-break."""

    def test_most_popular_first(self):
        items = [
            ContentItem(item_id=1, popularity=2),
            ContentItem(item_id=2, popularity=9),
            ContentItem(item_id=3, popularity=5),
        ]

        assert [i.item_id for i in order_by_popularity(items)] == [2, 3, 1]

    def test_ties_come_out_reversed(self):
        x = ContentItem(item_id=1, popularity=5)
        y = ContentItem(item_id=2, popularity=5)
        z = ContentItem(item_id=3, popularity=9)

        assert order_by_popularity([x, y, z]) == [z, y, x]

    def test_differs_from_descending_sort(self):
        items = [ContentItem(item_id=i, popularity=1) for i in range(4)]

        ordered = order_by_popularity(items)

        assert [i.item_id for i in ordered] == [3, 2, 1, 0]
        assert ordered != sorted(items, key=lambda i: i.popularity, reverse=True)


class TestClusterContentRanker:
    """Test ranking a cluster through storage."""

    def test_tie_break_across_members(self):
        # Concatenation order is X, Y (member 1) then Z (member 2)
        items = [
            ContentItem(item_id=10, popularity=5, owner_id=1, title="X"),
            ContentItem(item_id=11, popularity=5, owner_id=1, title="Y"),
            ContentItem(item_id=12, popularity=9, owner_id=2, title="Z"),
        ]
        store, canopy = make_store([1, 2], items)

        assignments = ClusterContentRanker().rank(canopy, store)

        assert [a.item.title for a in assignments] == ["Z", "Y", "X"]
        assert [a.position for a in assignments] == [1, 2, 3]
        assert all(a.canopy_id == 1 for a in assignments)

    def test_duplicate_items_ranked_once(self):
        items = [
            ContentItem(item_id=10, popularity=4, owner_id=1),
            ContentItem(item_id=10, popularity=4, owner_id=2),
            ContentItem(item_id=11, popularity=1, owner_id=2),
        ]
        store, canopy = make_store([1, 2], items)

        assignments = ClusterContentRanker().rank(canopy, store)

        assert ids(assignments) == [10, 11]
        assert [a.position for a in assignments] == [1, 2]

    def test_membership_read_from_storage(self):
        items = [
            ContentItem(item_id=10, popularity=1, owner_id=1),
            ContentItem(item_id=20, popularity=2, owner_id=2),
        ]
        store, stored_canopy = make_store([1, 2], items)
        stale = Canopy(canopy_id=1, center=stored_canopy.center, member_ids=[1])

        assignments = ClusterContentRanker().rank(stale, store)

        assert ids(assignments) == [20, 10]

    def test_cluster_without_members(self):
        store = InMemoryClusterStore()
        canopy = Canopy(canopy_id=5, center=UserProfile(user_id=1))

        assert ClusterContentRanker().rank(canopy, store) == []

    def test_ranking_is_idempotent(self):
        items = [
            ContentItem(item_id=i, popularity=i % 3, owner_id=1 + i % 2)
            for i in range(12)
        ]
        store, canopy = make_store([1, 2], items)
        ranker = ClusterContentRanker()

        assert ranker.rank(canopy, store) == ranker.rank(canopy, store)

    def test_max_items(self):
        items = [ContentItem(item_id=i, popularity=i, owner_id=1) for i in range(5)]
        store, canopy = make_store([1], items)

        assignments = ClusterContentRanker(max_items=2).rank(canopy, store)

        assert ids(assignments) == [4, 3]
        assert [a.position for a in assignments] == [1, 2]

    def test_storage_failure_propagates_with_canopy_id(self):
        store = Mock()
        store.fetch_members_of_canopy.return_value = [UserProfile(user_id=1)]
        store.fetch_content_items_for_user.side_effect = StorageFailure(
            "read failed", {"user_id": 1}
        )
        canopy = Canopy(canopy_id=3, center=UserProfile(user_id=1), member_ids=[1])

        with pytest.raises(StorageFailure) as exc_info:
            ClusterContentRanker().rank(canopy, store)

        assert exc_info.value.context == {"user_id": 1, "canopy_id": 3}
