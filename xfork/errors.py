# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
	from xfork.parser.ast import Located


@dataclass(frozen=True)
class XforkError(Exception):
	"""
	A structured error for xfork tooling.

	Fatal errors abort processing of one file; the batch driver decides whether
	the rest of the batch continues.
	"""

	reason_code: str
	message: str
	filename: Optional[str] = None
	loc: Optional[Located] = None

	def __str__(self) -> str:
		return self.format_human()

	def position(self) -> str:
		parts = [p for p in (self.filename, str(self.loc) if self.loc is not None else None) if p]
		return ":".join(parts)

	def format_human(self) -> str:
		where = self.position()
		if where:
			return f"[{self.reason_code}] {where}: {self.message}"
		return f"[{self.reason_code}] {self.message}"


@dataclass(frozen=True)
class ParseError(XforkError):
	reason_code: str = "parse-error"
	message: str = ""


@dataclass(frozen=True)
class ClassificationError(XforkError):
	reason_code: str = "classification-error"
	message: str = ""


@dataclass(frozen=True)
class TrimError(XforkError):
	reason_code: str = "trim-error"
	message: str = ""
	# Every symbol the trimmer could not handle, in source order.
	symbols: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GenerationError(XforkError):
	reason_code: str = "generation-error"
	message: str = ""


@dataclass(frozen=True)
class ConfigError(XforkError):
	reason_code: str = "config-error"
	message: str = ""


@dataclass(frozen=True)
class SnapshotError(XforkError):
	reason_code: str = "snapshot-error"
	message: str = ""


@dataclass(frozen=True)
class PromptAbortedError(XforkError):
	"""The user declined a destructive operation; not a file error."""

	reason_code: str = "prompt-aborted"
	message: str = ""


@dataclass(frozen=True)
class SkipNotice:
	"""A declaration intentionally left out of generated output."""

	name: str
	reason: str
	loc: Optional[Located] = None

	def format(self) -> str:
		return f'Skipped "{self.name}": {self.reason}'


@dataclass(frozen=True)
class MissingSymbol:
	"""An API member the backend does not provide."""

	name: str
	kind: str
	reason: str

	def format(self) -> str:
		return f'Missing "{self.name}": {self.reason}'


__all__ = [
	"ClassificationError",
	"ConfigError",
	"GenerationError",
	"MissingSymbol",
	"ParseError",
	"PromptAbortedError",
	"SkipNotice",
	"SnapshotError",
	"TrimError",
	"XforkError",
]
