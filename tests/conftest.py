# conftest.py
from __future__ import annotations

import os, shutil, uuid, pytest
from pathlib import Path
from typing import Iterator


def pytest_configure(config) -> None:
    config.addinivalue_line("markers", "unit_tests: fast tests of a single module")
    config.addinivalue_line("markers", "validation_tests: statistical end-to-end checks")


def _compute_base_tmp(worker_id: str) -> Path:
    """Compute a per-worker temp root.

    Layout:
        <BASE>/<worker_id>

    Where:
        BASE: $GAUSSIANIZER_BASE_TMP or <tests>/IMAGES/tmp
        worker_id: "master" (no xdist) or "gw<N>" (xdist)
    """
    default_base = Path(__file__).resolve().parent / "IMAGES" / "tmp"
    base = Path(os.getenv("GAUSSIANIZER_BASE_TMP", default_base)).resolve()
    return base / worker_id


def _safe_rmtree(path: Path) -> None:
    """Remove a path if it exists; a missing path is not an error."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return


@pytest.fixture(scope="session", autouse=True)
def _session_tmp_root(request) -> Path:
    """Create/clean the per-worker temp root at session start."""
    worker_input = getattr(request.config, "workerinput", {}) or {}
    worker_id = worker_input.get("workerid", "master")

    root = _compute_base_tmp(worker_id)
    _safe_rmtree(root)
    root.mkdir(parents=True, exist_ok=True)
    return root


@pytest.fixture
def test_tmpdir(_session_tmp_root: Path) -> Iterator[Path]:
    """Function-scoped unique temp dir under the per-worker session root."""
    d: Path = _session_tmp_root / f"case-{uuid.uuid4().hex[:12]}"
    d.mkdir(parents=True, exist_ok=False)
    try:
        yield d
    finally:
        _safe_rmtree(d)

