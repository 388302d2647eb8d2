# python/pbrconvert/config.py
# Option parsing for the metal/rough conversion transform
# Exists to accept options as dataclass, mapping or JSON file with one validation path
# RELEVANT FILES: python/pbrconvert/metal_rough.py, tests/test_config.py
from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

OptionsSource = Union["MetalRoughOptions", Mapping[str, Any], str, Path, None]

# Accepted spellings, normalised with _normalize_key
_OPTION_KEYS: Dict[str, str] = {
    "vectorized": "vectorized",
    "vectorize": "vectorized",
    "maxworkers": "max_workers",
    "workers": "max_workers",
    "prunetextures": "prune_textures",
    "prune": "prune_textures",
    "cleanup": "prune_textures",
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def _normalize_key(value: Any) -> str:
    return "".join(
        c
        for c in str(value).strip().lower()
        if c not in {"-", "_", " ", "."}
    )


def _to_bool(value: Any, label: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        key = value.strip().lower()
        if key in _TRUE_STRINGS:
            return True
        if key in _FALSE_STRINGS:
            return False
    raise ValueError(f"{label} must be a boolean, got {value!r}")


def _to_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{label} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label} must be an integer, got {value!r}") from exc


@dataclass
class MetalRoughOptions:
    vectorized: bool = True
    max_workers: int = 2
    prune_textures: bool = True

    def to_dict(self) -> dict:
        return {
            "vectorized": self.vectorized,
            "max_workers": self.max_workers,
            "prune_textures": self.prune_textures,
        }

    def copy(self) -> "MetalRoughOptions":
        return copy.deepcopy(self)

    def validate(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], default: Optional["MetalRoughOptions"] = None
    ) -> "MetalRoughOptions":
        base = copy.deepcopy(default) if default is not None else cls()
        for raw_key, value in data.items():
            key = _OPTION_KEYS.get(_normalize_key(raw_key))
            if key is None:
                raise ValueError(f"Unknown metalRough option: {raw_key!r}")
            if key == "max_workers":
                base.max_workers = _to_int(value, key)
            else:
                setattr(base, key, _to_bool(value, key))
        return base


def _load_from_path(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in {".json", ""}:
        data = json.loads(text)
        if not isinstance(data, Mapping):
            raise ValueError(f"Options file must contain a JSON object: {path}")
        return data
    raise ValueError(f"Unsupported options file format: {path}")


def load_options(
    options: OptionsSource = None, overrides: Optional[Mapping[str, Any]] = None
) -> MetalRoughOptions:
    if isinstance(options, MetalRoughOptions):
        opts = options.copy()
    elif isinstance(options, Mapping):
        opts = MetalRoughOptions.from_mapping(options)
    elif isinstance(options, (str, Path)):
        opts = MetalRoughOptions.from_mapping(_load_from_path(Path(options)))
    elif options is None:
        opts = MetalRoughOptions()
    else:
        raise TypeError("options must be MetalRoughOptions, mapping, path, or None")

    if overrides:
        opts = MetalRoughOptions.from_mapping(overrides, opts)
    opts.validate()
    return opts
