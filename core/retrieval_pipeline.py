# core/retrieval_pipeline.py

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from core.errors import ImageEmbeddingError, OracleError
from core.feature_cache import FeatureCache
from core.interfaces import EmbeddingOracle, ImagePreprocessor
from core.results import RetrievalResult, ScoredCandidate
from core.similarity import SimilarityEngine
from utils.logging_config import PerformanceLogger

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 32


def ranking_key(candidate: ScoredCandidate) -> Tuple[bool, float]:
    """Sort key for best-first ordering; NaN similarities rank last"""
    similarity = float(candidate.similarity)
    if math.isnan(similarity):
        return (True, 0.0)
    return (False, -similarity)


def rank_candidates(candidates: Sequence[ScoredCandidate],
                    top_k: int) -> List[ScoredCandidate]:
    """Stable descending sort truncated to top_k"""
    return sorted(candidates, key=ranking_key)[:top_k]


class RetrievalPipeline:
    """
    Ranks a collection of images against one text query.

    Images are processed in consecutive batches of at most batch_size.
    Batching bounds memory only: the result equals a single-batch run.
    The pipeline keeps no state between runs besides the cache it was given.
    """

    def __init__(self,
                 cache: FeatureCache,
                 oracle: EmbeddingOracle,
                 preprocessor: ImagePreprocessor,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 n_workers: int = 1,
                 engine: Optional[SimilarityEngine] = None,
                 show_progress: bool = False,
                 performance: Optional[PerformanceLogger] = None):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if n_workers < 1:
            raise ValueError(f"n_workers must be at least 1, got {n_workers}")

        self.cache = cache
        self.oracle = oracle
        self.preprocessor = preprocessor
        self.batch_size = batch_size
        self.n_workers = n_workers
        self.engine = engine or SimilarityEngine()
        self.show_progress = show_progress
        self.performance = performance or PerformanceLogger()
        self.stats: Dict[str, int] = {}

    def run(self,
            image_identities: Sequence[str],
            query_text: str,
            threshold: float,
            top_k: int) -> RetrievalResult:
        """
        Rank image_identities by similarity to query_text

        Returns at most top_k candidates scoring >= threshold, best first.
        An empty result means nothing matched and is not an error.

        Raises:
            OracleError: the query could not be embedded
            OSError: an image file could not be stat'ed
            DimensionMismatchError, DegenerateVectorError: model mismatch
        """
        if top_k < 0:
            raise ValueError(f"top_k must not be negative, got {top_k}")

        image_identities = list(image_identities)
        hits_before = self.cache.hits
        misses_before = self.cache.misses
        self.stats = {'images': len(image_identities), 'cache_hits': 0,
                      'cache_misses': 0, 'skipped': 0, 'matched': 0}

        query_vector = self._embed_query(query_text)

        batches = [
            image_identities[i:i + self.batch_size]
            for i in range(0, len(image_identities), self.batch_size)
        ]

        accumulator: List[ScoredCandidate] = []
        executor = ThreadPoolExecutor(max_workers=self.n_workers) \
            if self.n_workers > 1 else None

        try:
            for batch_number, batch in enumerate(tqdm(batches,
                                                      desc="Processing batches",
                                                      disable=not self.show_progress), 1):
                logger.debug(f"Processing batch {batch_number}/{len(batches)}")
                start = time.time()
                accumulator.extend(
                    self._process_batch(batch, query_vector, threshold, executor)
                )
                self.performance.log_metric(
                    'batch', time.time() - start,
                    batch=batch_number, size=len(batch)
                )
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        self.stats['cache_hits'] = self.cache.hits - hits_before
        self.stats['cache_misses'] = self.cache.misses - misses_before
        self.stats['matched'] = len(accumulator)

        ranked = rank_candidates(accumulator, top_k)
        logger.info(
            f"Scored {len(image_identities) - self.stats['skipped']} images, "
            f"{len(accumulator)} at or above threshold {threshold}, "
            f"returning {len(ranked)}"
        )

        return RetrievalResult.from_candidates(ranked)

    def _embed_query(self, query_text: str) -> np.ndarray:
        start = time.time()
        try:
            vector = self.oracle.embed_text(query_text)
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(f"Failed to embed query '{query_text}': {e}") from e

        self.performance.log_metric('query_embedding', time.time() - start)
        return np.asarray(vector, dtype=np.float32).reshape(-1)

    def _process_batch(self,
                       batch: List[str],
                       query_vector: np.ndarray,
                       threshold: float,
                       executor: Optional[ThreadPoolExecutor]) -> List[ScoredCandidate]:
        if executor is not None:
            futures = [executor.submit(self._resolve, identity) for identity in batch]
            resolved = [future.result() for future in futures]
        else:
            resolved = [self._resolve(identity) for identity in batch]

        identities = [identity for identity, vector in zip(batch, resolved)
                      if vector is not None]
        vectors = [vector for vector in resolved if vector is not None]
        self.stats['skipped'] += len(batch) - len(vectors)

        if not vectors:
            return []

        similarities = self.engine.score(vectors, query_vector)

        return [
            ScoredCandidate(identity, float(similarity))
            for identity, similarity in zip(identities, similarities)
            if similarity >= threshold
        ]

    def _resolve(self, identity: str) -> Optional[np.ndarray]:
        try:
            return self.cache.get_or_compute(identity, self.preprocessor, self.oracle)
        except ImageEmbeddingError as e:
            logger.warning(f"Skipping {identity}: {e.__cause__ or e}")
            return None


def run_retrieval(image_identities: Sequence[str],
                  query_text: str,
                  threshold: float,
                  top_k: int,
                  cache: FeatureCache,
                  oracle: EmbeddingOracle,
                  preprocessor: ImagePreprocessor,
                  batch_size: int = DEFAULT_BATCH_SIZE) -> RetrievalResult:
    """One-shot sequential retrieval run"""
    pipeline = RetrievalPipeline(cache, oracle, preprocessor, batch_size=batch_size)
    return pipeline.run(image_identities, query_text, threshold, top_k)
