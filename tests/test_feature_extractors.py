# tests/test_feature_extractors.py

import numpy as np
import pytest

torch = pytest.importorskip("torch")
transformers = pytest.importorskip("transformers")

from core.errors import OracleError
from core.feature_extractors import CLIPEmbeddingOracle


class TinyTokenizer:
    """Maps characters to ids, enough to drive a randomly initialised text tower"""

    def __call__(self, texts, padding=True, truncation=True, return_tensors="pt"):
        ids = [[1] + [3 + (ord(ch) % 90) for ch in text][:10] + [2] for text in texts]
        width = max(len(row) for row in ids)
        input_ids = [row + [0] * (width - len(row)) for row in ids]
        mask = [[1] * len(row) + [0] * (width - len(row)) for row in ids]
        return {
            'input_ids': torch.tensor(input_ids),
            'attention_mask': torch.tensor(mask),
        }


@pytest.fixture(scope="module")
def oracle():
    torch.manual_seed(0)
    config = transformers.CLIPConfig(
        text_config={
            'vocab_size': 99, 'hidden_size': 32, 'intermediate_size': 37,
            'num_attention_heads': 4, 'num_hidden_layers': 2,
            'max_position_embeddings': 32,
        },
        vision_config={
            'image_size': 32, 'patch_size': 8, 'hidden_size': 32,
            'intermediate_size': 37, 'num_attention_heads': 4,
            'num_hidden_layers': 2,
        },
        projection_dim=16,
    )
    model = transformers.CLIPModel(config)
    return CLIPEmbeddingOracle(model=model, tokenizer=TinyTokenizer())


def test_image_size_from_model(oracle):
    assert oracle.image_size == 32


def test_image_embedding_shape(oracle):
    image = np.random.default_rng(0).normal(size=(3, 32, 32)).astype(np.float32)

    features = oracle.embed_image(image)

    assert features.shape == (16,)
    assert features.dtype == np.float32


def test_text_embedding_shape(oracle):
    features = oracle.embed_text("a photo of a cat")

    assert features.shape == (16,)
    assert features.dtype == np.float32


def test_embeddings_are_deterministic(oracle):
    image = np.ones((3, 32, 32), dtype=np.float32)

    np.testing.assert_array_equal(oracle.embed_image(image), oracle.embed_image(image))
    np.testing.assert_array_equal(oracle.embed_text("dog"), oracle.embed_text("dog"))


def test_wrong_image_shape_raises_oracle_error(oracle):
    with pytest.raises(OracleError):
        oracle.embed_image(np.ones((5, 5), dtype=np.float32))
