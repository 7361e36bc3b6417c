# core/interfaces.py

from typing import Any, Protocol

import numpy as np


class EmbeddingOracle(Protocol):
    """Anything that can turn images and text into embeddings"""

    def embed_image(self, image: Any) -> np.ndarray:
        ...

    def embed_text(self, text: str) -> np.ndarray:
        ...


class ImagePreprocessor(Protocol):
    """Turns an image path into the input expected by an EmbeddingOracle"""

    def preprocess(self, path: str) -> Any:
        ...
