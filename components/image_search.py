# components/image_search.py

import json
import logging
import time
from pathlib import Path
from typing import Optional

from config import SystemConfig
from core.feature_cache import FeatureCache
from core.interfaces import EmbeddingOracle, ImagePreprocessor
from core.results import RetrievalResult
from core.retrieval_pipeline import RetrievalPipeline
from utils.file_utils import get_image_files
from utils.logging_config import PerformanceLogger

logger = logging.getLogger(__name__)


class ImageSearchService:
    """
    Text-to-image search over one directory

    Wires directory scanning, the feature cache, the embedding model and
    the retrieval pipeline together. The cache file is read once before
    the run and, only when save_cache is enabled, written once after it.
    A run that fails part way leaves the cache file untouched.
    """

    def __init__(self, config: SystemConfig,
                 oracle: Optional[EmbeddingOracle] = None,
                 preprocessor: Optional[ImagePreprocessor] = None):
        self.config = config
        self.oracle = oracle
        self.preprocessor = preprocessor
        self.performance = PerformanceLogger()
        self.last_query: Optional[str] = None
        self.elapsed: float = 0.0

    def _initialize_models(self):
        """Load the CLIP model and preprocessor if none were injected"""
        if self.oracle is None:
            from core.feature_extractors import CLIPEmbeddingOracle

            model_config = self.config.model
            self.oracle = CLIPEmbeddingOracle(
                model_name=model_config.model_name,
                tokenizer_name=model_config.tokenizer_name,
                device=model_config.device
            )

        if self.preprocessor is None:
            from utils.image_utils import CLIPImagePreprocessor

            image_size = getattr(self.oracle, 'image_size', 224)
            self.preprocessor = CLIPImagePreprocessor(image_size=image_size)

    def load_cache(self) -> FeatureCache:
        cache_file = self.config.cache.cache_file
        if cache_file and Path(cache_file).exists():
            logger.info(f"Loading feature cache from {cache_file}")
            return FeatureCache.restore(cache_file)

        logger.info("Creating new feature cache")
        return FeatureCache.create_empty()

    def search(self, query: Optional[str] = None) -> RetrievalResult:
        """
        Run one query against the configured image directory

        Returns an empty result when there is nothing to search.
        """
        start = time.time()
        retrieval = self.config.retrieval
        query = query if query is not None else retrieval.query
        self.last_query = query

        if not self.config.image_dir:
            logger.warning("No image directory configured, please set image_dir")
            return RetrievalResult()

        image_paths = get_image_files(self.config.image_dir)
        if not image_paths:
            logger.info(f"No images found in {self.config.image_dir}")
            return RetrievalResult()

        logger.info(f"Found {len(image_paths)} images in {self.config.image_dir}")

        cache = self.load_cache()
        self._initialize_models()

        pipeline = RetrievalPipeline(
            cache, self.oracle, self.preprocessor,
            batch_size=retrieval.batch_size,
            n_workers=retrieval.n_workers,
            show_progress=self.config.show_progress,
            performance=self.performance
        )

        logger.info(f"Processing query: '{query}'")
        result = pipeline.run(
            image_paths, query, retrieval.similarity_threshold, retrieval.top_k
        )
        logger.info(
            f"Cache hits: {pipeline.stats['cache_hits']}, "
            f"misses: {pipeline.stats['cache_misses']}, "
            f"skipped: {pipeline.stats['skipped']}"
        )

        if self.config.cache.save_cache and self.config.cache.cache_file:
            cache.persist(self.config.cache.cache_file)

        self.elapsed = time.time() - start
        self.performance.log_metric('search', self.elapsed, images=len(image_paths))
        for operation in ('query_embedding', 'batch', 'search'):
            stats = self.performance.get_statistics(operation)
            if stats:
                logger.info(
                    f"{operation}: {stats['count']} calls, "
                    f"mean {stats['mean']:.3f}s, total {stats['total']:.3f}s"
                )
        return result

    def format_report(self, result: RetrievalResult) -> str:
        """Human-readable summary of a search"""
        retrieval = self.config.retrieval
        lines = [
            f"Search Results for: '{self.last_query or retrieval.query}'",
            f"Similarity threshold: {retrieval.similarity_threshold}",
            f"Time taken: {self.elapsed:.2f}s",
            "",
            f"Top {retrieval.top_k} results:",
        ]

        for i, candidate in enumerate(result, 1):
            lines.append(f"{i}. {candidate.identity} (similarity: {candidate.similarity:.4f})")

        if not result:
            lines.append("")
            lines.append("No images found matching the query with similarity above threshold.")

        return "\n".join(lines)

    @staticmethod
    def export_results(result: RetrievalResult, output_path: str):
        """Save results to a JSON file"""
        with open(output_path, 'w') as f:
            json.dump(result.to_dicts(), f, indent=2)
        logger.info(f"Results saved to: {output_path}")
