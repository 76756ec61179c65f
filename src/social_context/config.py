"""
Clustering configuration.

Settings are read from environment variables with defaults matching the
production setup (loose/tight thresholds 6 and 2 over the top 5 subjects).

Environment variables:
    GCP_PROJECT: Google Cloud project ID
    CANOPY_LOOSE_THRESHOLD: Loose canopy threshold (default: 6)
    CANOPY_TIGHT_THRESHOLD: Tight canopy threshold (default: 2)
    TOP_SUBJECTS: Number of top subjects used as dimensions (default: 5)
    FIRST_CANOPY_ID: Id of the first canopy of a run (default: 1)
    RANKING_WORKERS: Parallel workers for content ranking (default: 1)
    MAX_ITEMS_PER_CLUSTER: Cap on ranked items per cluster (default: unlimited)
    DISTANCE_MEASURE: 'subject' (euclidean) or 'cosine' (default: subject)
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .distance import MEASURES
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ClusteringConfig:
    """Settings for a social-context clustering run."""

    project_id: Optional[str] = None
    loose: float = 6.0
    tight: float = 2.0
    top_subjects: int = 5
    first_canopy_id: int = 1
    ranking_workers: int = 1
    max_items_per_cluster: Optional[int] = None
    distance_measure: str = "subject"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check the settings are usable.

        Raises:
            ConfigurationError: On the first invalid setting
        """
        if not self.tight >= 0:
            raise ConfigurationError(f"Tight threshold must be >= 0, got {self.tight}")
        if not self.loose > self.tight:
            raise ConfigurationError(
                f"Loose threshold must be greater than tight threshold, "
                f"got loose={self.loose}, tight={self.tight}"
            )
        if self.top_subjects < 1:
            raise ConfigurationError(f"TOP_SUBJECTS must be >= 1, got {self.top_subjects}")
        if self.ranking_workers < 1:
            raise ConfigurationError(
                f"RANKING_WORKERS must be >= 1, got {self.ranking_workers}"
            )
        if self.max_items_per_cluster is not None and self.max_items_per_cluster < 1:
            raise ConfigurationError(
                f"MAX_ITEMS_PER_CLUSTER must be >= 1, got {self.max_items_per_cluster}"
            )
        if self.distance_measure.lower() not in MEASURES:
            raise ConfigurationError(
                f"Unknown distance measure '{self.distance_measure}'. "
                f"Choose one of: {', '.join(sorted(MEASURES))}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClusteringConfig":
        """Build a config from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ

        max_items = env.get("MAX_ITEMS_PER_CLUSTER")
        config = cls(
            project_id=env.get("GCP_PROJECT") or None,
            loose=_parse(env, "CANOPY_LOOSE_THRESHOLD", float, 6.0),
            tight=_parse(env, "CANOPY_TIGHT_THRESHOLD", float, 2.0),
            top_subjects=_parse(env, "TOP_SUBJECTS", int, 5),
            first_canopy_id=_parse(env, "FIRST_CANOPY_ID", int, 1),
            ranking_workers=_parse(env, "RANKING_WORKERS", int, 1),
            max_items_per_cluster=(
                _parse(env, "MAX_ITEMS_PER_CLUSTER", int, None) if max_items else None
            ),
            distance_measure=env.get("DISTANCE_MEASURE", "subject"),
        )
        logger.info(
            f"Loaded config: loose={config.loose}, tight={config.tight}, "
            f"top_subjects={config.top_subjects}, measure={config.distance_measure}"
        )
        return config


def _parse(env: Mapping[str, str], name: str, cast, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}", {"variable": name})
