# tests/test_main.py

import json
import logging

import pytest
import yaml

import main


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    for handler in handlers:
        root.removeHandler(handler)

    def _write(**settings):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({'log_dir': None, **settings}))
        monkeypatch.setenv("RETRIEVAL_CONFIG", str(path))
        return path

    yield _write

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_no_image_dir_exits_cleanly(config_file, capsys):
    config_file(image_dir=None)

    assert main.main() == 0
    assert "No images found matching the query" in capsys.readouterr().out


def test_empty_directory_exits_cleanly(config_file, tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()
    config_file(image_dir=str(empty))

    assert main.main() == 0


def test_unreadable_directory_fails(config_file, tmp_path):
    config_file(image_dir=str(tmp_path / "missing"))

    assert main.main() == 1


def test_metrics_written_when_configured(config_file, tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()
    metrics = tmp_path / "metrics.json"
    config_file(image_dir=str(empty), metrics_path=str(metrics))

    assert main.main() == 0
    assert json.loads(metrics.read_text()) == []


def test_unwritable_metrics_path_fails(config_file, tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()
    config_file(image_dir=str(empty), metrics_path=str(tmp_path / "no_such_dir" / "m.json"))

    assert main.main() == 1
