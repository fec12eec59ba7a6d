# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import shutil
from pathlib import Path

import pytest

TESTDATA = Path(__file__).resolve().parents[1] / "testdata"


@pytest.fixture
def backend_tree(tmp_path: Path) -> Path:
	"""A writable copy of the example backend directory."""
	root = tmp_path / "backend"
	shutil.copytree(TESTDATA / "exampleRealBackend", root)
	return root
