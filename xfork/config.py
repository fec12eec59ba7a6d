# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Naming conventions and run options.

Every name the engine treats specially lives in `Conventions` so the
convention is visible in one place and can be overridden from a JSON file.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional, Tuple

from xfork.errors import ConfigError


@dataclass(frozen=True)
class Conventions:
	# Top-level value whose presence marks a file as a backend.
	enabled_name: str = "Enabled"
	# File stem of the placeholder backend that defines the API shape.
	reference_backend: str = "nobackend"
	# Import path the linkname bindings point into.
	canonical_root: str = "crypto/internal/backend"
	# Prefix of directive comments, after `//` and optional spaces.
	directive_prefix: str = "xcrypto_backend_map:"
	build_prefix: str = "//go:build "
	# (symbol, type, import path) used when a forwarded var has no type.
	fallback_types: Tuple[Tuple[str, str, str], ...] = (("RandReader", "io.Reader", "io"),)
	# Output directory under the input tree in development mode.
	dev_subdir: str = "backendproxy"
	# Output directory under the staged snapshot when generating into a fork.
	backend_subdir: str = "backend"
	generator_name: str = "xcrypto_backend_map"

	def linkname_target(self, name: str) -> str:
		return f"{self.canonical_root}.{name}"

	def fallback_type(self, name: str) -> Optional[Tuple[str, str]]:
		for symbol, type_text, import_path in self.fallback_types:
			if symbol == name:
				return type_text, import_path
		return None


DEFAULT_CONVENTIONS = Conventions()


def load_conventions(path: Path, base: Conventions = DEFAULT_CONVENTIONS) -> Conventions:
	"""
	Read convention overrides from a JSON object.

	Keys are `Conventions` field names; `fallback_types` is a list of
	`[symbol, type, import_path]` triples.
	"""
	try:
		obj = json.loads(path.read_text(encoding="utf-8"))
	except (OSError, ValueError) as err:
		raise ConfigError(message=f"cannot read conventions: {err}", filename=str(path)) from err
	if not isinstance(obj, dict):
		raise ConfigError(message="conventions file must contain a JSON object", filename=str(path))
	known = {f.name for f in fields(Conventions)}
	unknown = sorted(set(obj) - known)
	if unknown:
		raise ConfigError(message=f"unknown convention keys: {', '.join(unknown)}", filename=str(path))
	overrides: dict[str, Any] = {}
	for key, value in obj.items():
		if key == "fallback_types":
			if not isinstance(value, list) or not all(
				isinstance(item, list) and len(item) == 3 and all(isinstance(s, str) for s in item) for item in value
			):
				raise ConfigError(
					message="fallback_types must be a list of [symbol, type, import_path] triples",
					filename=str(path),
				)
			overrides[key] = tuple(tuple(item) for item in value)
			continue
		if not isinstance(value, str) or not value:
			raise ConfigError(message=f"convention '{key}' must be a non-empty string", filename=str(path))
		overrides[key] = value
	return replace(base, **overrides)


@dataclass(frozen=True)
class GenOptions:
	"""
	Options for one generation run.

	`output=None` with `dev=False` streams generated files to stdout.
	"""

	pattern: str
	output: Optional[Path] = None
	dev: bool = False
	no_prompt: bool = False
	# Git tree whose committed snapshot is staged into `output` first.
	snapshot_from: Optional[Path] = None
	verbose: bool = False
	conventions: Conventions = field(default_factory=Conventions)


@dataclass(frozen=True)
class SnapshotOptions:
	git_dir: Path
	out_dir: Path
	prompt: bool = True


__all__ = [
	"Conventions",
	"DEFAULT_CONVENTIONS",
	"GenOptions",
	"SnapshotOptions",
	"load_conventions",
]
