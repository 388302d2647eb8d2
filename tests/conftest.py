# Make `import pbrconvert` work from a fresh clone:
# put repo/python on sys.path so the package is importable without prior install.
# Tests marked `asyncio` are skipped when pytest-asyncio is not installed.
import sys
from pathlib import Path

import pytest


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _ensure_python_path():
    pkg_dir = _repo_root() / "python"
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


_ensure_python_path()


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as asyncio (requires pytest-asyncio)")
    config.addinivalue_line("markers", "textures: tests that decode or encode images")


def pytest_collection_modifyitems(config, items):
    try:
        import pytest_asyncio  # noqa: F401
        has_asyncio = True
    except ImportError:
        has_asyncio = False

    if has_asyncio:
        return

    skip_asyncio = pytest.mark.skip(reason="pytest-asyncio not installed; skipping asyncio tests")
    for item in items:
        if "asyncio" in item.keywords:
            item.add_marker(skip_asyncio)
