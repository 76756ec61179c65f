"""
Distance measures between user profiles.

Profiles are compared on their subject-interest weights, restricted to the
top-K subjects of the platform. ``SubjectDistance`` is the production
measure; any ``DistanceMeasure`` subclass can be substituted in the
clusterer and the nearest-cluster lookup.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_distances

from .errors import MalformedProfile
from .models import UserProfile

logger = logging.getLogger(__name__)


def profile_vector(profile: UserProfile, dimensions: Sequence[str]) -> np.ndarray:
    """
    Build the feature vector of a profile over the given subject dimensions.

    Subjects the profile never mentions count as 0.0.

    Args:
        profile: Profile to vectorize
        dimensions: Ordered subject names (top-K subjects)

    Returns:
        1D float array with one entry per dimension

    Raises:
        MalformedProfile: If the profile has no subject data or a weight is
            not a finite, non-negative number
    """
    if profile.subjects is None:
        raise MalformedProfile(
            "Profile has no subject data", {"user_id": profile.user_id}
        )

    values = []
    for subject in dimensions:
        weight = profile.subjects.get(subject, 0.0)
        try:
            weight = float(weight)
        except (TypeError, ValueError):
            raise MalformedProfile(
                f"Non-numeric weight for subject '{subject}'",
                {"user_id": profile.user_id},
            )
        if not math.isfinite(weight) or weight < 0:
            raise MalformedProfile(
                f"Invalid weight {weight} for subject '{subject}'",
                {"user_id": profile.user_id},
            )
        values.append(weight)

    return np.array(values, dtype=np.float64)


class DistanceMeasure(ABC):
    """
    Abstract dissimilarity between two profiles.

    Implementations must be deterministic and side-effect free and return a
    value >= 0. Symmetry is expected but not enforced; callers always pass the
    canopy center as ``a``.
    """

    @abstractmethod
    def distance(
        self, a: UserProfile, b: UserProfile, dimensions: Sequence[str]
    ) -> float:
        """Return the distance between ``a`` and ``b`` over ``dimensions``."""
        pass

    def _vectors(self, a: UserProfile, b: UserProfile, dimensions: Sequence[str]):
        vec_a = profile_vector(a, dimensions)
        vec_b = profile_vector(b, dimensions)
        if vec_a.shape != vec_b.shape:
            raise MalformedProfile(
                f"Feature vectors differ in shape: {vec_a.shape} vs {vec_b.shape}",
                {"user_id": b.user_id, "center_id": a.user_id},
            )
        return vec_a, vec_b


class SubjectDistance(DistanceMeasure):
    """Euclidean distance between subject-interest vectors."""

    def distance(
        self, a: UserProfile, b: UserProfile, dimensions: Sequence[str]
    ) -> float:
        vec_a, vec_b = self._vectors(a, b, dimensions)
        return float(np.linalg.norm(vec_a - vec_b))


class CosineSubjectDistance(DistanceMeasure):
    """
    Cosine distance between subject-interest vectors, in [0, 2].

    Two empty (all-zero) profiles are identical (0.0); an empty profile is
    orthogonal to any non-empty one (1.0).
    """

    def distance(
        self, a: UserProfile, b: UserProfile, dimensions: Sequence[str]
    ) -> float:
        vec_a, vec_b = self._vectors(a, b, dimensions)
        empty_a = not np.any(vec_a)
        empty_b = not np.any(vec_b)
        if empty_a and empty_b:
            return 0.0
        if empty_a or empty_b:
            return 1.0

        value = cosine_distances(vec_a.reshape(1, -1), vec_b.reshape(1, -1))[0, 0]
        # Rounding can push identical vectors slightly below zero
        return float(max(value, 0.0))


MEASURES = {
    "subject": SubjectDistance,
    "cosine": CosineSubjectDistance,
}


def get_measure(name: str) -> DistanceMeasure:
    """
    Instantiate a registered distance measure by name.

    Raises:
        KeyError: If no measure is registered under ``name``
    """
    measure = MEASURES[name.lower()]()
    logger.debug(f"Using distance measure: {type(measure).__name__}")
    return measure
