"""
Image utility functions
"""

import cv2
import numpy as np
from PIL import Image
from typing import Sequence

from core.errors import ImageLoadError

# Normalization constants CLIP was trained with
CLIP_MEAN = (0.48145466, 0.4578275, 0.40821073)
CLIP_STD = (0.26862954, 0.26130258, 0.27577711)


def load_rgb(image_path: str) -> np.ndarray:
    """Decode an image file into an RGB uint8 array (first frame for GIFs)"""
    try:
        with Image.open(image_path) as img:
            return np.array(img.convert('RGB'))
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageLoadError(f"Cannot load image: {image_path} ({e})",
                             path=image_path) from e


def resize_to_fill(image: np.ndarray, size: int) -> np.ndarray:
    """Scale so the short side covers size, then center crop to size x size"""
    h, w = image.shape[:2]
    scale = max(size / w, size / h)
    new_w = max(size, int(round(w * scale)))
    new_h = max(size, int(round(h * scale)))

    resized = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_LINEAR)

    top = (new_h - size) // 2
    left = (new_w - size) // 2
    return resized[top:top + size, left:left + size]


class CLIPImagePreprocessor:
    """
    Turns an image file into a normalized (3, size, size) float32 array
    """

    def __init__(self, image_size: int = 224,
                 mean: Sequence[float] = CLIP_MEAN,
                 std: Sequence[float] = CLIP_STD):
        self.image_size = image_size
        self.mean = np.asarray(mean, dtype=np.float32)
        self.std = np.asarray(std, dtype=np.float32)

    def preprocess(self, path: str) -> np.ndarray:
        img = resize_to_fill(load_rgb(path), self.image_size)
        img = img.astype(np.float32) / 255.0
        img = (img - self.mean) / self.std
        return np.ascontiguousarray(img.transpose(2, 0, 1))
