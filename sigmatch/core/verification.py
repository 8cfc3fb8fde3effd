"""One-to-one verification and one-to-many search.

Both modes are stateless across calls. Gallery embeddings are computed on a
thread pool, but the closest entry is always picked by folding over the
results in gallery order, so scheduling never changes the outcome.
"""

import logging
import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from functools import reduce
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..gallery import GalleryEntry
from ..utils.image import ImageProcessingError, ImageSource
from .embedding import EmbeddingError, InferenceError, SignatureEmbedder
from .matching import Matcher, MatchScore, MatchingError

logger = logging.getLogger(__name__)

UNKNOWN_IDENTITY = "Unknown"


@dataclass(frozen=True)
class VerificationResult:
    distance: float
    similarity: float
    is_match: bool
    matched_identity: Optional[str] = None

    @classmethod
    def no_match(cls) -> "VerificationResult":
        return cls(
            distance=math.inf,
            similarity=0.0,
            is_match=False,
            matched_identity=UNKNOWN_IDENTITY,
        )

    @classmethod
    def from_score(cls, score: MatchScore, identity: Optional[str] = None) -> "VerificationResult":
        return cls(
            distance=score.distance,
            similarity=score.similarity,
            is_match=score.is_match,
            matched_identity=identity,
        )


Candidate = Tuple[str, MatchScore]


def closer(best: Optional[Candidate], candidate: Candidate) -> Optional[Candidate]:
    """Keep the candidate with the smaller distance; the earlier one wins ties."""
    if best is None or candidate[1].distance < best[1].distance:
        return candidate
    return best


def select_best_match(candidates: Sequence[Candidate]) -> VerificationResult:
    """Reduce scored gallery entries to the closest one, or the no-match sentinel."""
    best = reduce(closer, candidates, None)
    if best is None:
        return VerificationResult.no_match()
    identity, score = best
    return VerificationResult.from_score(score, identity)


class EmbeddingJob:
    """An embedding queued on the verifier's pool.

    The timeout is measured from the moment a worker picks the job up, so
    time spent queued behind other requests does not count against it.
    """

    def __init__(self, executor: ThreadPoolExecutor, embed, source: ImageSource):
        self.started = threading.Event()
        self.started_at: Optional[float] = None
        self.future: "Future[np.ndarray]" = executor.submit(self._run, embed, source)
        # Cancelled or finished jobs must not leave waiters blocked
        self.future.add_done_callback(lambda _: self.started.set())

    def _run(self, embed, source: ImageSource) -> np.ndarray:
        self.started_at = time.monotonic()
        self.started.set()
        return embed(source)

    def result(self, timeout: Optional[float]) -> np.ndarray:
        self.started.wait()
        if timeout is None or self.started_at is None:
            return self.future.result()

        remaining = max(0.0, timeout - (time.monotonic() - self.started_at))
        try:
            return self.future.result(timeout=remaining)
        except FutureTimeoutError:
            raise InferenceError(f"Embedding timed out after {timeout} seconds")


class SignatureVerifier:
    """Verifies captured signatures against anchors."""

    def __init__(
        self,
        embedder: SignatureEmbedder,
        matcher: Matcher,
        gallery: Optional[Sequence[GalleryEntry]] = None,
        max_workers: int = 4,
        embedding_timeout: Optional[float] = 30.0,
    ):
        """Initialize the verifier.

        Args:
            embedder: Embedding service shared by all requests.
            matcher: Distance scorer holding the decision threshold.
            gallery: Default roster used when a search names no gallery.
            max_workers: Threads used to embed gallery images (1 is sequential).
            embedding_timeout: Seconds allowed per embedding, None for no limit.
        """
        self.embedder = embedder
        self.matcher = matcher
        self.gallery: List[GalleryEntry] = list(gallery or [])
        self.embedding_timeout = embedding_timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix='sigmatch-embed',
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _submit(self, source: ImageSource) -> EmbeddingJob:
        return EmbeddingJob(self._executor, self.embedder.embed, source)

    def _wait(self, job: EmbeddingJob) -> np.ndarray:
        return job.result(self.embedding_timeout)

    def embed(self, source: ImageSource) -> np.ndarray:
        """Embed one image with the configured timeout."""
        return self._wait(self._submit(source))

    def verify_one_to_one(self, captured: ImageSource, reference: ImageSource) -> VerificationResult:
        """Compare a captured signature with a single reference signature.

        Raises:
            ImageProcessingError: If either image cannot be loaded.
            EmbeddingError: If the model cannot produce an embedding.
            ShapeMismatchError: If the embeddings differ in length.
        """
        captured_job = self._submit(captured)
        reference_job = self._submit(reference)
        captured_emb = self._wait(captured_job)
        reference_emb = self._wait(reference_job)

        score = self.matcher.score(captured_emb, reference_emb)
        logger.info(
            f"One-to-one verification: distance={score.distance:.4f}, "
            f"similarity={score.similarity}%, match={score.is_match}"
        )
        return VerificationResult.from_score(score)

    def _score_entries(
        self,
        captured_emb: np.ndarray,
        entries: Sequence[GalleryEntry],
    ) -> List[Candidate]:
        jobs = [(entry, self._submit(entry.image_ref)) for entry in entries]

        candidates: List[Candidate] = []
        for entry, job in jobs:
            try:
                anchor_emb = self._wait(job)
                score = self.matcher.score(captured_emb, anchor_emb)
            except (ImageProcessingError, EmbeddingError, MatchingError) as e:
                logger.warning(f"Skipping gallery entry {entry.display_name}: {e}")
                continue
            if not math.isfinite(score.distance):
                logger.warning(f"Skipping gallery entry {entry.display_name}: non-finite distance")
                continue
            candidates.append((entry.display_name, score))
        return candidates

    def verify_one_to_many(
        self,
        captured: ImageSource,
        gallery: Optional[Sequence[GalleryEntry]] = None,
    ) -> VerificationResult:
        """Find the enrolled identity closest to a captured signature.

        Gallery images that cannot be embedded are skipped. An empty gallery,
        or one where every entry fails, yields the "Unknown" sentinel.

        Raises:
            ImageProcessingError: If the captured image cannot be loaded.
            EmbeddingError: If the captured image cannot be embedded.
        """
        entries = self.gallery if gallery is None else list(gallery)
        captured_emb = self.embed(captured)

        if not entries:
            logger.warning("One-to-many search requested against an empty gallery")
            return VerificationResult.no_match()

        candidates = self._score_entries(captured_emb, entries)
        if len(candidates) < len(entries):
            logger.warning(
                f"Searched {len(candidates)} of {len(entries)} gallery entries"
            )

        result = select_best_match(candidates)
        logger.info(
            f"One-to-many search: best={result.matched_identity}, "
            f"distance={result.distance:.4f}, match={result.is_match}"
        )
        return result
