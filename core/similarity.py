# core/similarity.py

from typing import Sequence, Union

import numpy as np

from core.errors import DegenerateVectorError, DimensionMismatchError

Vectors = Union[np.ndarray, Sequence[np.ndarray]]


class SimilarityEngine:
    """
    Cosine similarity between a query embedding and a batch of candidates.

    Each row is normalized and reduced on its own, so a candidate's score
    does not depend on which batch it was scored in. Scores are not
    clamped and may fall a rounding error outside [-1, 1].
    """

    def score(self, candidates: Vectors, query: np.ndarray) -> np.ndarray:
        """
        Score every candidate against query.

        Args:
            candidates: N vectors (or an N x D array)
            query: vector of dimension D

        Returns:
            float32 array of N cosine similarities, in input order
        """
        query = np.asarray(query, dtype=np.float32)
        if query.ndim != 1:
            raise DimensionMismatchError(
                f"Query embedding must be 1-D, got shape {query.shape}"
            )

        matrix = self._stack(candidates, query.shape[0])
        if matrix.shape[0] == 0:
            return np.zeros(0, dtype=np.float32)

        query_norm = np.sqrt(np.sum(query * query))
        if query_norm == 0:
            raise DegenerateVectorError("Query embedding has zero norm")

        norms = np.sqrt(np.sum(matrix * matrix, axis=1))
        zero_rows = np.flatnonzero(norms == 0)
        if len(zero_rows) > 0:
            raise DegenerateVectorError(
                f"Candidate embedding at position {zero_rows[0]} has zero norm"
            )

        normalized = matrix / norms[:, np.newaxis]
        normalized_query = query / query_norm

        return np.sum(normalized * normalized_query, axis=1).astype(np.float32)

    @staticmethod
    def _stack(candidates: Vectors, dimension: int) -> np.ndarray:
        if isinstance(candidates, np.ndarray) and candidates.ndim == 2:
            matrix = candidates.astype(np.float32, copy=False)
        else:
            rows = [np.asarray(c, dtype=np.float32) for c in candidates]
            if not rows:
                return np.zeros((0, dimension), dtype=np.float32)
            for i, row in enumerate(rows):
                if row.ndim != 1 or row.shape[0] != dimension:
                    raise DimensionMismatchError(
                        f"Candidate embedding at position {i} has shape {row.shape}, "
                        f"expected ({dimension},)"
                    )
            matrix = np.stack(rows)

        if matrix.shape[1] != dimension:
            raise DimensionMismatchError(
                f"Candidate embeddings have dimension {matrix.shape[1]}, "
                f"query has {dimension}"
            )

        return matrix


def cosine_similarity(candidates: Vectors, query: np.ndarray) -> np.ndarray:
    """Shortcut for SimilarityEngine().score"""
    return SimilarityEngine().score(candidates, query)
