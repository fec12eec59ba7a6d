# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
from pathlib import Path

import pytest

from xfork.config import DEFAULT_CONVENTIONS, Conventions, load_conventions
from xfork.errors import ConfigError


def _write_json(path: Path, obj: object) -> Path:
	path.write_text(json.dumps(obj), encoding="utf-8")
	return path


def test_defaults() -> None:
	conv = DEFAULT_CONVENTIONS
	assert conv.linkname_target("NewSHA1") == "crypto/internal/backend.NewSHA1"
	assert conv.fallback_type("RandReader") == ("io.Reader", "io")
	assert conv.fallback_type("NewSHA1") is None
	assert conv.dev_subdir == "backendproxy"


def test_overrides_are_applied(tmp_path: Path) -> None:
	conv = load_conventions(
		_write_json(
			tmp_path / "c.json",
			{
				"canonical_root": "vendor/backend",
				"fallback_types": [["Rand", "io.Reader", "io"], ["Clock", "time.Time", "time"]],
			},
		)
	)
	assert conv.linkname_target("F") == "vendor/backend.F"
	assert conv.fallback_type("Clock") == ("time.Time", "time")
	assert conv.fallback_type("RandReader") is None
	assert conv.enabled_name == "Enabled"


def test_base_conventions_are_layered(tmp_path: Path) -> None:
	base = Conventions(enabled_name="Available")
	conv = load_conventions(_write_json(tmp_path / "c.json", {"reference_backend": "stub"}), base)
	assert (conv.enabled_name, conv.reference_backend) == ("Available", "stub")


@pytest.mark.parametrize(
	("obj", "expected"),
	[
		({"nope": "x", "also": "y"}, "unknown convention keys: also, nope"),
		(["enabled_name"], "must contain a JSON object"),
		({"enabled_name": ""}, "must be a non-empty string"),
		({"dev_subdir": 3}, "must be a non-empty string"),
		({"fallback_types": [["RandReader", "io.Reader"]]}, "fallback_types must be a list"),
	],
)
def test_invalid_conventions(tmp_path: Path, obj: object, expected: str) -> None:
	path = _write_json(tmp_path / "c.json", obj)
	with pytest.raises(ConfigError) as excinfo:
		load_conventions(path)
	assert expected in excinfo.value.message
	assert excinfo.value.filename == str(path)


def test_unreadable_conventions(tmp_path: Path) -> None:
	(tmp_path / "bad.json").write_text("{", encoding="utf-8")
	with pytest.raises(ConfigError) as excinfo:
		load_conventions(tmp_path / "bad.json")
	assert excinfo.value.message.startswith("cannot read conventions:")
	with pytest.raises(ConfigError):
		load_conventions(tmp_path / "missing.json")
