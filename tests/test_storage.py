"""Unit tests for the in-memory cluster store."""

import pytest

from social_context.errors import NotFound
from social_context.models import Canopy, ContentItem, UserProfile
from social_context.storage import ClusterStore, InMemoryClusterStore


@pytest.fixture
def profiles():
    return [
        UserProfile(user_id=1, subjects={"math": 4.0, "art": 1.0}),
        UserProfile(user_id=2, subjects={"art": 2.0, "music": 3.0}),
        UserProfile(user_id=3, subjects={}),
    ]


class TestInMemoryClusterStore:
    """Test InMemoryClusterStore source reads and cluster writes."""

    def test_is_a_cluster_store(self):
        assert isinstance(InMemoryClusterStore(), ClusterStore)

    def test_profiles_keep_insertion_order(self, profiles):
        store = InMemoryClusterStore(profiles=profiles)

        assert [p.user_id for p in store.fetch_all_profiles()] == [1, 2, 3]

    def test_top_dimensions_from_profile_weights(self, profiles):
        store = InMemoryClusterStore(profiles=profiles)

        # math=4, art=3, music=3 (ties by name)
        assert store.fetch_top_feature_dimensions(5) == ["math", "art", "music"]
        assert store.fetch_top_feature_dimensions(1) == ["math"]

    def test_top_dimensions_from_subject_counts(self, profiles):
        store = InMemoryClusterStore(
            profiles=profiles, subject_counts={"history": 10, "math": 2}
        )

        assert store.fetch_top_feature_dimensions(2) == ["history", "math"]

    def test_fetch_profile(self, profiles):
        store = InMemoryClusterStore(profiles=profiles)

        assert store.fetch_profile(2) == profiles[1]

    def test_fetch_missing_profile(self, profiles):
        store = InMemoryClusterStore(profiles=profiles)

        with pytest.raises(NotFound) as exc_info:
            store.fetch_profile(42)

        assert exc_info.value.context == {"user_id": 42}

    def test_content_items_grouped_by_owner(self):
        items = [
            ContentItem(item_id=1, popularity=1, owner_id=1),
            ContentItem(item_id=2, popularity=1, owner_id=2),
            ContentItem(item_id=3, popularity=1, owner_id=1),
        ]
        store = InMemoryClusterStore(content_items=items)

        assert [i.item_id for i in store.fetch_content_items_for_user(1)] == [1, 3]
        assert store.fetch_content_items_for_user(9) == []

    def test_persist_and_fetch_canopies(self, profiles):
        store = InMemoryClusterStore(profiles=profiles)
        store.persist_canopy(Canopy(canopy_id=2, center=profiles[1], member_ids=[2, 3]))
        store.persist_canopy(Canopy(canopy_id=1, center=profiles[0], member_ids=[1, 2]))

        assert [c.canopy_id for c in store.fetch_all_canopies()] == [1, 2]
        assert [p.user_id for p in store.fetch_members_of_canopy(2)] == [2, 3]
        assert store.fetch_members_of_canopy(7) == []

    def test_persisted_canopy_is_a_copy(self, profiles):
        store = InMemoryClusterStore(profiles=profiles)
        canopy = Canopy(canopy_id=1, center=profiles[0], member_ids=[1])
        store.persist_canopy(canopy)

        canopy.add_member(2)

        assert store.fetch_all_canopies()[0].member_ids == [1]

    def test_existing_cluster_is_lowest_id(self, profiles):
        store = InMemoryClusterStore(profiles=profiles)
        store.persist_canopy(Canopy(canopy_id=4, center=profiles[1], member_ids=[2]))
        store.persist_canopy(Canopy(canopy_id=3, center=profiles[0], member_ids=[1, 2]))

        assert store.fetch_existing_cluster_id_for_user(2) == 3
        assert store.fetch_existing_cluster_id_for_user(3) is None

    def test_rankings_ordered_by_position(self):
        store = InMemoryClusterStore()
        first = ContentItem(item_id=1, popularity=9)
        second = ContentItem(item_id=2, popularity=3)
        store.persist_ranked_assignment(second, 2, canopy_id=1)
        store.persist_ranked_assignment(first, 1, canopy_id=1)

        assert store.fetch_ranking(1) == [first, second]
        assert store.fetch_ranking(2) == []

    def test_reset_clusters(self, profiles):
        store = InMemoryClusterStore(profiles=profiles)
        store.persist_canopy(Canopy(canopy_id=1, center=profiles[0], member_ids=[1]))
        store.persist_ranked_assignment(ContentItem(item_id=1, popularity=1), 1, 1)

        store.reset_clusters()

        assert store.fetch_all_canopies() == []
        assert store.fetch_ranking(1) == []
        assert store.fetch_existing_cluster_id_for_user(1) is None
        # Source data is untouched
        assert len(store.fetch_all_profiles()) == 3
