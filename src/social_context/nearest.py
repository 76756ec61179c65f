"""
Closest-cluster lookup for users that are not in a cluster yet.
"""

import logging
from typing import Optional

from .distance import DistanceMeasure
from .errors import NotFound, SocialContextError
from .storage import ClusterStore

logger = logging.getLogger(__name__)

# Returned when no cluster can be found for a user
NO_CLUSTER = -1


class NearestClusterFinder:
    """
    Finds the cluster a user belongs to, or the closest one by center distance.

    Args:
        store: Storage holding clusters, memberships and profiles
        measure: Distance measure (should match the one used for clustering)
        top_subjects: Number of top subject dimensions to compare over
    """

    def __init__(self, store: ClusterStore, measure: DistanceMeasure, top_subjects: int = 5):
        self.store = store
        self.measure = measure
        self.top_subjects = top_subjects

    def find(self, user_id: int) -> int:
        """
        Return the id of the user's cluster.

        If the user is already a member of a cluster that id is returned
        without computing any distance. Otherwise the cluster whose center is
        strictly closest wins; on ties the first cluster encountered is kept.

        Returns:
            Cluster id, or ``NO_CLUSTER`` if there are no clusters or the
            user profile does not exist

        Raises:
            StorageFailure: If storage cannot be read
            MalformedProfile: If a distance cannot be computed
        """
        logger.info(f"Discovering the closest cluster to the user with id: {user_id}")

        existing = self.store.fetch_existing_cluster_id_for_user(user_id)
        if existing is not None:
            logger.info(f"User {user_id} already in cluster {existing}")
            return existing

        try:
            target = self.store.fetch_profile(user_id)
        except NotFound:
            logger.warning(f"User {user_id} not found, no cluster assigned")
            return NO_CLUSTER

        canopies = self.store.fetch_all_canopies()
        if not canopies:
            logger.info("No clusters exist yet")
            return NO_CLUSTER

        dimensions = self.store.fetch_top_feature_dimensions(self.top_subjects)

        closest_id = NO_CLUSTER
        min_distance: Optional[float] = None
        for canopy in canopies:
            try:
                d = self.measure.distance(canopy.center, target, dimensions)
            except SocialContextError as e:
                e.add_context(user_id=user_id, canopy_id=canopy.canopy_id)
                raise
            if min_distance is None or d < min_distance:
                min_distance = d
                closest_id = canopy.canopy_id

        logger.info(
            f"Closest cluster to user {user_id}: {closest_id} (distance={min_distance})"
        )
        return closest_id
