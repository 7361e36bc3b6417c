# core/feature_extractors.py

import logging
from typing import Optional

import numpy as np
import torch
from transformers import CLIPModel, CLIPTokenizer

from core.errors import OracleError

logger = logging.getLogger(__name__)

DEFAULT_CLIP_MODEL = "openai/clip-vit-base-patch32"


def _features_tensor(output) -> torch.Tensor:
    # Newer transformers releases wrap projected features in a model output
    if isinstance(output, torch.Tensor):
        return output
    return output.pooler_output


class CLIPEmbeddingOracle:
    """
    CLIP image and text embeddings in a shared space

    Returns the raw projected features; normalization is left to the
    similarity engine.
    """

    def __init__(self,
                 model_name: str = DEFAULT_CLIP_MODEL,
                 tokenizer_name: Optional[str] = None,
                 device: str = 'cpu',
                 model: Optional[CLIPModel] = None,
                 tokenizer=None):
        self.device = device

        if model is None:
            logger.info(f"Loading CLIP model from {model_name}")
            model = CLIPModel.from_pretrained(model_name)
        if tokenizer is None:
            tokenizer = CLIPTokenizer.from_pretrained(tokenizer_name or model_name)

        self.model = model
        self.tokenizer = tokenizer
        self.model.to(device)
        self.model.eval()

    @property
    def image_size(self) -> int:
        """Side length of the square input the vision tower expects"""
        return self.model.config.vision_config.image_size

    @torch.no_grad()
    def embed_image(self, image: np.ndarray) -> np.ndarray:
        """Embed one preprocessed (3, H, W) image"""
        try:
            pixel_values = torch.from_numpy(
                np.ascontiguousarray(image, dtype=np.float32)
            ).unsqueeze(0).to(self.device)
            features = _features_tensor(
                self.model.get_image_features(pixel_values=pixel_values)
            )
        except Exception as e:
            raise OracleError(f"CLIP image embedding failed: {e}") from e

        return features.cpu().numpy().astype(np.float32).flatten()

    @torch.no_grad()
    def embed_text(self, text: str) -> np.ndarray:
        """Embed a natural-language query"""
        try:
            inputs = self.tokenizer(
                [text], padding=True, truncation=True, return_tensors="pt"
            )
            inputs = {k: v.to(self.device) for k, v in inputs.items()}
            features = _features_tensor(self.model.get_text_features(**inputs))
        except Exception as e:
            raise OracleError(f"CLIP text embedding failed for '{text}': {e}") from e

        return features.cpu().numpy().astype(np.float32).flatten()
