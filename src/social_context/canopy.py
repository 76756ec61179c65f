"""
Canopy clustering of user profiles.

Groups profiles into possibly-overlapping social clusters using two
distance thresholds:
- loose: candidates closer than this join the canopy (overlap allowed)
- tight: candidates closer than this are also removed from the pool and can
  never seed or join a later canopy
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Sequence

import numpy as np

from .distance import DistanceMeasure
from .errors import ConfigurationError, SocialContextError
from .models import Canopy, UserProfile

logger = logging.getLogger(__name__)


class CanopyClusterer:
    """
    Canopy clusterer over a pluggable distance measure.

    Args:
        measure: Distance measure used for center-to-candidate comparisons
        loose: Loose threshold (membership), must be greater than ``tight``
        tight: Tight threshold (pool removal), must be >= 0
        first_canopy_id: Id given to the first canopy of a run (default: 1)

    Raises:
        ConfigurationError: If ``loose > tight >= 0`` does not hold
    """

    def __init__(
        self,
        measure: DistanceMeasure,
        loose: float,
        tight: float,
        first_canopy_id: int = 1,
    ):
        if not tight >= 0:
            raise ConfigurationError(
                f"Tight threshold must be >= 0, got {tight}",
                {"loose": loose, "tight": tight},
            )
        if not loose > tight:
            raise ConfigurationError(
                f"Loose threshold must be greater than tight threshold, "
                f"got loose={loose}, tight={tight}",
                {"loose": loose, "tight": tight},
            )

        self.measure = measure
        self.loose = loose
        self.tight = tight
        self.first_canopy_id = first_canopy_id

        logger.info(
            f"Initialized CanopyClusterer: measure={type(measure).__name__}, "
            f"loose={loose}, tight={tight}"
        )

    def create_canopies(
        self, profiles: Sequence[UserProfile], dimensions: Sequence[str]
    ) -> List[Canopy]:
        """
        Cluster profiles into canopies.

        Args:
            profiles: All profiles to cluster, in the order they seed canopies
            dimensions: Top subject dimensions the distance is computed over

        Returns:
            Canopies in creation order. Empty if ``profiles`` is empty.

        Raises:
            MalformedProfile: Propagated from the distance measure; no partial
                result is returned
        """
        if not profiles:
            logger.info("No profiles to cluster")
            return []

        logger.info(
            f"Clustering {len(profiles)} profiles over {len(dimensions)} dimensions"
        )

        pool: List[UserProfile] = list(profiles)
        canopies: List[Canopy] = []
        next_id = self.first_canopy_id

        while pool:
            center = pool.pop(0)
            canopy = Canopy(canopy_id=next_id, center=center)
            canopy.add_member(center.user_id)
            next_id += 1

            remaining = []
            for candidate in pool:
                d = self._distance(center, candidate, dimensions, canopy.canopy_id)
                if d < self.loose:
                    canopy.add_member(candidate.user_id)
                if d >= self.tight:
                    remaining.append(candidate)
            pool = remaining

            logger.debug(
                f"Canopy {canopy.canopy_id}: center={center.user_id}, "
                f"{len(canopy)} members, {len(pool)} profiles left in pool"
            )
            canopies.append(canopy)

        stats = compute_statistics(canopies, len(profiles))
        logger.info(
            f"Canopy clustering complete: {stats['n_canopies']} canopies, "
            f"{stats['n_overlapping_profiles']} overlapping profiles, "
            f"{stats['n_singletons']} singletons"
        )

        return canopies

    def _distance(
        self,
        center: UserProfile,
        candidate: UserProfile,
        dimensions: Sequence[str],
        canopy_id: int,
    ) -> float:
        try:
            return self.measure.distance(center, candidate, dimensions)
        except SocialContextError as e:
            e.add_context(
                user_id=candidate.user_id,
                center_id=center.user_id,
                canopy_id=canopy_id,
            )
            raise


def compute_statistics(canopies: Sequence[Canopy], n_profiles: int) -> Dict[str, Any]:
    """
    Summarize a clustering run.

    Args:
        canopies: Canopies produced by a run
        n_profiles: Number of profiles that were clustered

    Returns:
        Dictionary with canopy counts, size statistics and overlap counts
    """
    stats: Dict[str, Any] = {
        "n_canopies": len(canopies),
        "n_profiles": n_profiles,
    }

    sizes = [len(c) for c in canopies]
    if sizes:
        stats["min_canopy_size"] = int(min(sizes))
        stats["max_canopy_size"] = int(max(sizes))
        stats["mean_canopy_size"] = float(np.mean(sizes))
        stats["median_canopy_size"] = float(np.median(sizes))

    memberships = Counter(m for c in canopies for m in c.member_ids)
    stats["n_overlapping_profiles"] = sum(1 for n in memberships.values() if n > 1)
    stats["n_singletons"] = sum(1 for size in sizes if size == 1)

    return stats
