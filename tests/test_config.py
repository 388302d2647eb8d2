# tests/test_config.py
# Tests for metalRough option parsing and validation
# Exists to ensure options load the same way from dataclass, mapping and JSON file
# RELEVANT FILES: python/pbrconvert/config.py, python/pbrconvert/metal_rough.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pbrconvert.config import MetalRoughOptions, load_options


def test_defaults():
    opts = load_options()
    assert opts.to_dict() == {"vectorized": True, "max_workers": 2, "prune_textures": True}


def test_mapping_keys_are_normalised():
    opts = load_options({"Max-Workers": "4", "prune": "no", "vectorize": 0})
    assert opts.max_workers == 4
    assert opts.prune_textures is False
    assert opts.vectorized is False


def test_dataclass_is_copied():
    original = MetalRoughOptions(max_workers=3)
    opts = load_options(original)
    assert opts == original
    assert opts is not original


def test_overrides_apply_on_top(tmp_path: Path) -> None:
    path = tmp_path / "metal_rough.json"
    path.write_text(json.dumps({"max_workers": 8, "vectorized": False}), encoding="utf-8")
    opts = load_options(path, overrides={"vectorized": True})
    assert opts.max_workers == 8
    assert opts.vectorized is True

    opts = load_options(str(path))
    assert opts.vectorized is False


def test_invalid_values_raise():
    with pytest.raises(ValueError, match="max_workers must be >= 1"):
        load_options({"max_workers": 0})
    with pytest.raises(ValueError, match="boolean"):
        load_options({"prune_textures": "sometimes"})
    with pytest.raises(ValueError, match="integer"):
        load_options({"max_workers": True})
    with pytest.raises(ValueError, match="Unknown metalRough option"):
        load_options({"ior": 1.5})
    with pytest.raises(TypeError, match="options must be"):
        load_options(42)  # type: ignore[arg-type]


def test_unsupported_file_format(tmp_path: Path) -> None:
    path = tmp_path / "options.yaml"
    path.write_text("max_workers: 2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported options file format"):
        load_options(path)
