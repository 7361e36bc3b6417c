# core/feature_cache.py

import json
import logging
import os
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

import numpy as np

from core.errors import CacheCorruptError, ImageEmbeddingError
from core.interfaces import EmbeddingOracle, ImagePreprocessor

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class CacheEntry:
    """Cached embedding of one image file"""
    identity: str
    vector: np.ndarray
    last_modified: int

    def to_dict(self) -> Dict:
        return {
            'path': self.identity,
            'features': [float(x) for x in self.vector],
            'last_modified': self.last_modified,
        }


def file_timestamp(path: PathLike) -> int:
    """Modification time in whole seconds since the epoch"""
    return int(os.stat(path).st_mtime)


class FeatureCache:
    """
    Image embeddings keyed by path, invalidated by modification time.

    A stored vector is reused only while the file's mtime (in whole
    seconds) equals the one recorded when it was computed. Content is
    never hashed, so a rewrite that keeps the same mtime goes unnoticed.

    Nothing is written to disk until persist() is called.
    """

    def __init__(self, entries: Optional[Dict[str, CacheEntry]] = None):
        self._entries: Dict[str, CacheEntry] = dict(entries or {})
        self._lock = threading.Lock()
        self._in_flight: Dict[str, Future] = {}
        self.hits = 0
        self.misses = 0

    @classmethod
    def create_empty(cls) -> 'FeatureCache':
        return cls()

    @classmethod
    def restore(cls, snapshot_path: PathLike) -> 'FeatureCache':
        """
        Load a cache previously written by persist().

        Raises:
            OSError: file cannot be read
            CacheCorruptError: contents are not a valid cache snapshot
        """
        snapshot_path = str(snapshot_path)
        with open(snapshot_path, 'r', encoding='utf-8') as f:
            content = f.read()

        try:
            raw = json.loads(content)
        except json.JSONDecodeError as e:
            raise CacheCorruptError(
                f"Feature cache {snapshot_path} is not valid JSON: {e}",
                path=snapshot_path
            ) from e

        entries = _parse_snapshot(raw, snapshot_path)
        logger.info(f"Loaded {len(entries)} cached features from {snapshot_path}")
        return cls(entries)

    def persist(self, snapshot_path: PathLike):
        """Write every entry to snapshot_path as pretty-printed JSON"""
        with self._lock:
            snapshot = {
                identity: entry.to_dict()
                for identity, entry in self._entries.items()
            }

        with open(snapshot_path, 'w', encoding='utf-8') as f:
            json.dump(snapshot, f, indent=2)

        logger.info(f"Saved {len(snapshot)} cached features to {snapshot_path}")

    def get_or_compute(self,
                       identity: str,
                       preprocessor: ImagePreprocessor,
                       oracle: EmbeddingOracle) -> np.ndarray:
        """
        Return the embedding for identity, computing it on a cache miss.

        Safe to call from several threads. Concurrent misses for the same
        identity share one computation; callers that receive the shared
        vector count as hits.

        Raises:
            OSError: file cannot be stat'ed (fatal for the whole run)
            ImageEmbeddingError: preprocessing or embedding failed
        """
        last_modified = file_timestamp(identity)

        with self._lock:
            entry = self._entries.get(identity)
            if entry is not None and entry.last_modified == last_modified:
                self.hits += 1
                return entry.vector

            pending = self._in_flight.get(identity)
            if pending is None:
                pending = Future()
                self._in_flight[identity] = pending
                owner = True
            else:
                owner = False

        if not owner:
            vector = pending.result()
            with self._lock:
                self.hits += 1
            return vector

        try:
            vector = self._compute(identity, preprocessor, oracle)
        except BaseException as e:
            with self._lock:
                del self._in_flight[identity]
            pending.set_exception(e)
            raise

        with self._lock:
            self._entries[identity] = CacheEntry(identity, vector, last_modified)
            self.misses += 1
            del self._in_flight[identity]
        pending.set_result(vector)

        return vector

    def _compute(self, identity: str,
                 preprocessor: ImagePreprocessor,
                 oracle: EmbeddingOracle) -> np.ndarray:
        logger.debug(f"Computing features for {identity}")
        try:
            image = preprocessor.preprocess(identity)
            features = oracle.embed_image(image)
            return np.asarray(features, dtype=np.float32).reshape(-1)
        except Exception as e:
            raise ImageEmbeddingError(
                f"Failed to embed {identity}: {e}", path=identity
            ) from e

    def get(self, identity: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(identity)

    def entries(self) -> Iterator[CacheEntry]:
        with self._lock:
            snapshot = list(self._entries.values())
        return iter(snapshot)

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _parse_snapshot(raw, source: str) -> Dict[str, CacheEntry]:
    """Validate a decoded snapshot and build cache entries from it"""
    if not isinstance(raw, dict):
        raise CacheCorruptError(
            f"Feature cache {source} must contain a JSON object", path=source
        )

    entries = {}
    dimension = None

    for identity, record in raw.items():
        if not isinstance(record, dict):
            raise CacheCorruptError(
                f"Feature cache {source}: entry for {identity} is not an object",
                path=source
            )

        features = record.get('features')
        last_modified = record.get('last_modified')

        if not isinstance(features, list) or not all(
            isinstance(x, (int, float)) and not isinstance(x, bool)
            for x in features
        ):
            raise CacheCorruptError(
                f"Feature cache {source}: entry for {identity} has invalid features",
                path=source
            )

        if isinstance(last_modified, bool) or not isinstance(last_modified, int) \
                or last_modified < 0:
            raise CacheCorruptError(
                f"Feature cache {source}: entry for {identity} has invalid last_modified",
                path=source
            )

        if dimension is None:
            dimension = len(features)
        elif len(features) != dimension:
            raise CacheCorruptError(
                f"Feature cache {source}: entry for {identity} has {len(features)} "
                f"features, expected {dimension}",
                path=source
            )

        entries[identity] = CacheEntry(
            identity=identity,
            vector=np.asarray(features, dtype=np.float32),
            last_modified=last_modified
        )

    return entries
