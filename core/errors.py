# core/errors.py

from typing import Optional


class RetrievalError(Exception):
    """Base class for retrieval failures"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class CacheCorruptError(RetrievalError):
    """Persisted feature cache could not be parsed"""


class DimensionMismatchError(RetrievalError):
    """Embeddings of different dimensions were compared"""


class DegenerateVectorError(RetrievalError):
    """Zero-norm embedding, cosine similarity is undefined"""


class OracleError(RetrievalError):
    """Embedding model failed to produce a vector"""


class ImageLoadError(RetrievalError):
    """Image file could not be decoded"""


class ImageEmbeddingError(RetrievalError):
    """
    Embedding one image failed (decode or model error).

    Confined to a single candidate: the pipeline skips the image and
    carries on with the rest of the batch.
    """
