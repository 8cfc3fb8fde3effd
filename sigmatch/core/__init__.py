"""Core signature embedding and matching functionality"""
from .embedding import (
    EmbeddingCache,
    EmbeddingError,
    InferenceError,
    ModelLoadError,
    ModelSession,
    SignatureEmbedder
)
from .matching import (
    Matcher,
    MatchingError,
    MatchScore,
    ShapeMismatchError,
    distance_to_similarity,
    euclidean_distance,
    is_match
)
from .preprocessing import preprocess
from .verification import (
    SignatureVerifier,
    VerificationResult,
    select_best_match
)

__all__ = [
    'EmbeddingCache',
    'EmbeddingError',
    'InferenceError',
    'ModelLoadError',
    'ModelSession',
    'SignatureEmbedder',
    'Matcher',
    'MatchingError',
    'MatchScore',
    'ShapeMismatchError',
    'distance_to_similarity',
    'euclidean_distance',
    'is_match',
    'preprocess',
    'SignatureVerifier',
    'VerificationResult',
    'select_best_match'
]
