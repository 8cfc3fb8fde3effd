"""Embedding comparison.

Distances are Euclidean. The model emits L2-normalised embeddings, so the
largest possible distance between two of them is 2.0, which anchors the
similarity percentage.
"""

import math
from dataclasses import dataclass

import numpy as np

DEFAULT_THRESHOLD = 0.425
MAX_DISTANCE = 2.0


class MatchingError(Exception):
    """Base exception for embedding comparison errors."""
    pass


class ShapeMismatchError(MatchingError):
    """Exception raised when two embeddings have different lengths."""
    pass


@dataclass(frozen=True)
class MatchScore:
    distance: float
    similarity: float
    is_match: bool


def euclidean_distance(emb_a: np.ndarray, emb_b: np.ndarray) -> float:
    """Compute the L2 distance between two embeddings.

    Raises:
        ShapeMismatchError: If the embeddings differ in length.
    """
    a = np.asarray(emb_a, dtype=np.float64).reshape(-1)
    b = np.asarray(emb_b, dtype=np.float64).reshape(-1)
    if a.shape != b.shape:
        raise ShapeMismatchError(
            f"Embedding lengths differ: {a.shape[0]} != {b.shape[0]}"
        )
    return float(np.sqrt(np.sum((a - b) ** 2)))


def distance_to_similarity(distance: float, max_distance: float = MAX_DISTANCE) -> float:
    """Convert a distance to a similarity percentage (0-100, one decimal)."""
    similarity = min(max(0.0, (1.0 - distance / max_distance) * 100.0), 100.0)
    # Halves round up, not to even
    return math.floor(similarity * 10.0 + 0.5) / 10.0


def is_match(distance: float, threshold: float = DEFAULT_THRESHOLD) -> bool:
    return distance < threshold


class Matcher:
    """Scores embedding pairs against a calibrated distance threshold."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD, max_distance: float = MAX_DISTANCE):
        self.threshold = threshold
        self.max_distance = max_distance

    def score_distance(self, distance: float) -> MatchScore:
        return MatchScore(
            distance=distance,
            similarity=distance_to_similarity(distance, self.max_distance),
            is_match=is_match(distance, self.threshold),
        )

    def score(self, emb_a: np.ndarray, emb_b: np.ndarray) -> MatchScore:
        return self.score_distance(euclidean_distance(emb_a, emb_b))
