"""
Social context clustering.

Groups users into similarity-based clusters with canopy clustering over
their subject interests, then ranks learning objects per cluster.

Two entry points:
1. Full run: cluster every profile and rank content for every cluster
2. Lookup: find the cluster (or the closest one) for a single user
"""

from .canopy import CanopyClusterer, compute_statistics
from .config import ClusteringConfig
from .distance import CosineSubjectDistance, DistanceMeasure, SubjectDistance
from .errors import (
    ConfigurationError,
    MalformedProfile,
    NotFound,
    SocialContextError,
    StorageFailure,
)
from .manager import ClusteringOrchestrator
from .models import Canopy, ContentItem, RankedAssignment, UserProfile
from .nearest import NO_CLUSTER, NearestClusterFinder
from .ranking import ClusterContentRanker
from .storage import ClusterStore, InMemoryClusterStore

__all__ = [
    "Canopy",
    "CanopyClusterer",
    "ClusterContentRanker",
    "ClusterStore",
    "ClusteringConfig",
    "ClusteringOrchestrator",
    "ConfigurationError",
    "ContentItem",
    "CosineSubjectDistance",
    "DistanceMeasure",
    "InMemoryClusterStore",
    "MalformedProfile",
    "NO_CLUSTER",
    "NearestClusterFinder",
    "NotFound",
    "RankedAssignment",
    "SocialContextError",
    "StorageFailure",
    "SubjectDistance",
    "UserProfile",
    "compute_statistics",
]
