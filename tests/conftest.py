# tests/conftest.py

import pytest

from tests.fakes import FakeOracle


@pytest.fixture
def make_images(tmp_path):
    """Create placeholder image files and return their paths"""
    def _make(names):
        paths = []
        for name in names:
            path = tmp_path / name
            path.write_bytes(b"not really an image")
            paths.append(str(path))
        return paths
    return _make


@pytest.fixture
def fake_oracle():
    return FakeOracle()
