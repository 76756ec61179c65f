"""
Social context generation.

Sequences a full clustering run:
1. Cluster all user profiles into canopies and persist them
2. Rank the learning objects of every cluster's members and persist the rankings

Also answers "which cluster does this user belong to" for new users.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional

from .canopy import CanopyClusterer, compute_statistics
from .config import ClusteringConfig
from .distance import DistanceMeasure, get_measure
from .errors import SocialContextError
from .models import Canopy, RankedAssignment
from .nearest import NearestClusterFinder
from .ranking import ClusterContentRanker
from .storage import ClusterStore

logger = logging.getLogger(__name__)


class ClusteringOrchestrator:
    """
    Generates the social clusters and their content rankings.

    Args:
        store: Storage for profiles, content, clusters and rankings
        config: Clustering settings (default: ``ClusteringConfig()``)
        measure: Distance measure (default: the one named in ``config``)
        dry_run: If True, cluster but don't write anything
    """

    def __init__(
        self,
        store: ClusterStore,
        config: Optional[ClusteringConfig] = None,
        measure: Optional[DistanceMeasure] = None,
        dry_run: bool = False,
    ):
        self.store = store
        self.config = config or ClusteringConfig()
        self.measure = measure or get_measure(self.config.distance_measure)
        self.dry_run = dry_run

        self.clusterer = CanopyClusterer(
            self.measure,
            loose=self.config.loose,
            tight=self.config.tight,
            first_canopy_id=self.config.first_canopy_id,
        )
        self.ranker = ClusterContentRanker(max_items=self.config.max_items_per_cluster)
        self.finder = NearestClusterFinder(
            store, self.measure, top_subjects=self.config.top_subjects
        )

    def generate_social_context(self) -> List[Canopy]:
        """Run user profile clustering followed by content assignment."""
        logger.info("=" * 60)
        logger.info("SOCIAL CONTEXT GENERATION - START")
        logger.info("=" * 60)

        if self.dry_run:
            logger.warning("DRY RUN MODE - No writes will be performed")

        start_time = time.time()

        logger.info("[Step 1/2] Clustering user profiles...")
        canopies = self.cluster_profiles()

        logger.info(f"[Step 2/2] Assigning content to {len(canopies)} clusters...")
        if self.dry_run:
            logger.info("[DRY RUN] Would assign content to clusters")
        else:
            self.assign_content(canopies)

        elapsed = time.time() - start_time
        logger.info("=" * 60)
        logger.info("SOCIAL CONTEXT GENERATION - COMPLETE")
        logger.info("=" * 60)
        logger.info(f"Total time: {elapsed:.2f} seconds")
        logger.info(f"Clusters created: {len(canopies)}")

        return canopies

    def cluster_profiles(self) -> List[Canopy]:
        """
        Cluster every stored profile and persist the resulting canopies.

        Previously stored clusters are removed first.
        """
        logger.info("User profile clustering started")

        profiles = self.store.fetch_all_profiles()
        dimensions = self.store.fetch_top_feature_dimensions(self.config.top_subjects)
        canopies = self.clusterer.create_canopies(profiles, dimensions)

        stats = compute_statistics(canopies, len(profiles))
        logger.info(f"Clustering statistics: {stats}")

        if self.dry_run:
            logger.info(f"[DRY RUN] Would persist {len(canopies)} clusters")
            return canopies

        self.store.reset_clusters()
        for canopy in canopies:
            self.store.persist_canopy(canopy)

        logger.info("User profile clustering finished")
        return canopies

    def assign_content(self, canopies: List[Canopy]) -> Dict[int, List[RankedAssignment]]:
        """
        Rank and persist the learning objects of every cluster.

        Clusters are independent, so with ``ranking_workers > 1`` they are
        ranked in parallel. The first failure aborts the pass and is re-raised.

        Returns:
            Mapping of canopy id to its persisted ranking
        """
        logger.info("Learning object assignment started")

        results: Dict[int, List[RankedAssignment]] = {}
        workers = self.config.ranking_workers

        if workers == 1:
            for canopy in canopies:
                results[canopy.canopy_id] = self._assign_cluster(canopy)
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(self._assign_cluster, canopy): canopy.canopy_id
                    for canopy in canopies
                }
                for future in as_completed(futures):
                    canopy_id = futures[future]
                    try:
                        results[canopy_id] = future.result()
                    except Exception as e:
                        logger.error(f"Content assignment failed for cluster {canopy_id}: {e}")
                        for pending in futures:
                            pending.cancel()
                        raise

        total = sum(len(r) for r in results.values())
        logger.info(f"Learning object assignment finished: {total} assignments")
        return {cid: results[cid] for cid in sorted(results)}

    def _assign_cluster(self, canopy: Canopy) -> List[RankedAssignment]:
        assignments = self.ranker.rank(canopy, self.store)
        try:
            for assignment in assignments:
                self.store.persist_ranked_assignment(
                    assignment.item, assignment.position, canopy.canopy_id
                )
        except SocialContextError as e:
            e.add_context(canopy_id=canopy.canopy_id)
            raise
        return assignments

    def discover_user_cluster(self, user_id: int) -> int:
        """Return the user's cluster id, or the closest one (-1 if none)."""
        return self.finder.find(user_id)

    def clusters_information(self) -> str:
        """Describe the stored clusters: how many, and users per cluster."""
        canopies = self.store.fetch_all_canopies()

        separator = "*" * 41
        lines = [
            "",
            separator,
            f"Number of social clusters created: {len(canopies)}",
            separator,
        ]
        for canopy in canopies:
            members = self.store.fetch_members_of_canopy(canopy.canopy_id)
            lines.append(f"Cluster {canopy.canopy_id} : {len(members)} users")

        return "\n".join(lines) + "\n\n"
