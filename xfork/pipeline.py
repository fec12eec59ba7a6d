# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Batch drivers behind the `proxy` and `trim` commands.

A file that fails to parse, classify, trim or generate is recorded in the
`BatchReport` and the batch continues. Failing to produce the reference API,
staging errors, prompt rejection and filesystem errors while writing output
propagate to the caller.
"""

from __future__ import annotations

import glob
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Dict, List, Optional, Tuple

from xfork.classify import is_backend_module
from xfork.config import Conventions, GenOptions, SnapshotOptions
from xfork.emit import render_generated
from xfork.errors import (
	ClassificationError,
	ConfigError,
	GenerationError,
	MissingSymbol,
	ParseError,
	SkipNotice,
	TrimError,
	XforkError,
)
from xfork.parser import load
from xfork.parser.ast import SourceFile
from xfork.proxy import generate_proxy
from xfork.snapshot import git_checkout_to
from xfork.trim import trim


@dataclass(frozen=True)
class FileFailure:
	path: Path
	error: XforkError


@dataclass
class BatchReport:
	written: List[Path] = field(default_factory=list)
	failures: List[FileFailure] = field(default_factory=list)
	skipped: Dict[Path, Tuple[SkipNotice, ...]] = field(default_factory=dict)
	missing: Dict[Path, Tuple[MissingSymbol, ...]] = field(default_factory=dict)

	@property
	def ok(self) -> bool:
		return not self.failures


def find_backend_files(
	pattern: str,
	conventions: Conventions,
	failures: Optional[List[FileFailure]] = None,
) -> List[SourceFile]:
	"""
	Parse every file matching `pattern` and return the backend modules, sorted by path.

	Parse failures are appended to `failures` when given, raised otherwise.
	"""
	backends: List[SourceFile] = []
	for match in sorted(glob.glob(pattern)):
		path = Path(match).resolve()
		if not path.is_file():
			continue
		try:
			tree = load(path, conventions)
		except ParseError as err:
			if failures is None:
				raise
			failures.append(FileFailure(path=path, error=err))
			continue
		if is_backend_module(tree, conventions):
			backends.append(tree)
	return backends


def output_path(source: Path, opts: GenOptions) -> Optional[Path]:
	"""Where the generated file for `source` goes; None means standard output."""
	if opts.dev:
		return source.parent / opts.conventions.dev_subdir / source.name
	if opts.output is not None:
		if opts.snapshot_from is not None:
			return opts.output / opts.conventions.backend_subdir / source.name
		return opts.output / source.name
	return None


def write_output(text: str, target: Optional[Path], stdout: IO[str]) -> None:
	if target is None:
		stdout.write(text)
		return
	target.parent.mkdir(parents=True, exist_ok=True)
	with open(target, "w", encoding="utf-8") as f:
		f.write(text)


def _stage_snapshot(opts: GenOptions, stdin: IO[str], stdout: IO[str], stderr: IO[str]) -> None:
	if opts.snapshot_from is None:
		return
	if opts.output is None:
		raise ConfigError(message="staging a snapshot requires an output directory")
	git_checkout_to(
		SnapshotOptions(git_dir=opts.snapshot_from, out_dir=opts.output, prompt=not opts.no_prompt),
		stdin=stdin,
		stdout=stdout,
		stderr=stderr,
	)


def run_proxy(
	opts: GenOptions,
	*,
	stdin: Optional[IO[str]] = None,
	stdout: Optional[IO[str]] = None,
	stderr: Optional[IO[str]] = None,
) -> BatchReport:
	"""
	Trim the reference backend into the API and write one proxy per other backend.

	The API is written under the reference file's name, each proxy under its
	backend's name.
	"""
	stdin = stdin or sys.stdin
	stdout = stdout or sys.stdout
	stderr = stderr or sys.stderr
	conv = opts.conventions
	report = BatchReport()
	_stage_snapshot(opts, stdin, stdout, stderr)

	backends = find_backend_files(opts.pattern, conv, report.failures)
	references = [b for b in backends if Path(b.filename or "").stem == conv.reference_backend]
	if not references:
		for failure in report.failures:
			if failure.path.stem == conv.reference_backend:
				raise failure.error
		raise ClassificationError(
			message=f"no {conv.reference_backend} backend among files matching {opts.pattern!r}",
		)
	if len(references) > 1:
		raise ClassificationError(
			message=f"several {conv.reference_backend} backends match {opts.pattern!r}: "
			+ ", ".join(str(r.filename) for r in references),
		)
	reference = references[0]
	ref_path = Path(reference.filename or "")
	trimmed = trim(reference, conv)
	target = output_path(ref_path, opts)
	write_output(render_generated(trimmed.api, conv, skipped=trimmed.skipped), target, stdout)
	report.skipped[ref_path] = trimmed.skipped
	if target is not None:
		report.written.append(target)

	for backend in backends:
		if backend is reference:
			continue
		path = Path(backend.filename or "")
		try:
			result = generate_proxy(backend, trimmed.api, conv)
		except (ClassificationError, GenerationError) as err:
			report.failures.append(FileFailure(path=path, error=err))
			continue
		target = output_path(path, opts)
		write_output(render_generated(result.proxy, conv, missing=result.missing, proxy=True), target, stdout)
		report.missing[path] = result.missing
		if target is not None:
			report.written.append(target)
	return report


def run_trim(
	opts: GenOptions,
	*,
	stdin: Optional[IO[str]] = None,
	stdout: Optional[IO[str]] = None,
	stderr: Optional[IO[str]] = None,
) -> BatchReport:
	"""Trim each backend independently into its own linkname mapping."""
	stdin = stdin or sys.stdin
	stdout = stdout or sys.stdout
	stderr = stderr or sys.stderr
	conv = opts.conventions
	report = BatchReport()
	_stage_snapshot(opts, stdin, stdout, stderr)

	for backend in find_backend_files(opts.pattern, conv, report.failures):
		path = Path(backend.filename or "")
		try:
			result = trim(backend, conv)
		except (ClassificationError, TrimError) as err:
			report.failures.append(FileFailure(path=path, error=err))
			continue
		target = output_path(path, opts)
		write_output(render_generated(result.api, conv, skipped=result.skipped), target, stdout)
		report.skipped[path] = result.skipped
		if target is not None:
			report.written.append(target)
	return report


__all__ = [
	"BatchReport",
	"FileFailure",
	"find_backend_files",
	"output_path",
	"run_proxy",
	"run_trim",
	"write_output",
]
