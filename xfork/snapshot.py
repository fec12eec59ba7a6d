# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Snapshot staging: replace an output directory with a checkout of a git tree's index.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path
from typing import IO, List, Optional

from xfork.config import SnapshotOptions
from xfork.errors import PromptAbortedError, SnapshotError


def confirm_delete(directory: Path, stdin: IO[str], stdout: IO[str]) -> None:
	stdout.write(f"Delete `{directory}`? [y/N] ")
	stdout.flush()
	answer = stdin.readline().rstrip("\r\n")
	if answer != "y":
		raise PromptAbortedError(message=f"aborting: {answer!r} not 'y'", filename=str(directory))
	stdout.write("\n")


def remove_dir_content(
	directory: Path,
	*,
	prompt: bool = True,
	stdin: Optional[IO[str]] = None,
	stdout: Optional[IO[str]] = None,
) -> None:
	"""Delete every entry under `directory`, creating it when missing."""
	if prompt:
		confirm_delete(directory, stdin or sys.stdin, stdout or sys.stdout)
	try:
		directory.mkdir(parents=True, exist_ok=True)
		for entry in sorted(directory.iterdir()):
			if entry.is_dir() and not entry.is_symlink():
				shutil.rmtree(entry)
			else:
				entry.unlink()
	except OSError as err:
		raise SnapshotError(message=f"cannot clear output directory: {err}", filename=str(directory)) from err


def checkout_command(out_dir: Path) -> List[str]:
	# The trailing slash makes git treat the prefix as a directory.
	return ["git", "checkout-index", "--all", "-f", f"--prefix={out_dir}/"]


def git_checkout_to(
	opts: SnapshotOptions,
	stdin: Optional[IO[str]] = None,
	stdout: Optional[IO[str]] = None,
	stderr: Optional[IO[str]] = None,
) -> Path:
	"""
	Clear `opts.out_dir` and populate it from the index of `opts.git_dir`.

	Returns the absolute output directory.
	"""
	out_dir = opts.out_dir.resolve()
	remove_dir_content(out_dir, prompt=opts.prompt, stdin=stdin, stdout=stdout)
	cmd = checkout_command(out_dir)
	err_stream = stderr or sys.stderr
	print(f"In `{opts.git_dir}`, running {' '.join(cmd)}", file=err_stream, flush=True)
	try:
		proc = subprocess.run(cmd, cwd=str(opts.git_dir), capture_output=True, text=True)
	except OSError as err:
		raise SnapshotError(message=f"cannot run git: {err}", filename=str(opts.git_dir)) from err
	if proc.stderr:
		err_stream.write(proc.stderr)
	if proc.returncode != 0:
		raise SnapshotError(
			message=f"git checkout-index failed with exit status {proc.returncode}",
			filename=str(opts.git_dir),
		)
	return out_dir


__all__ = [
	"checkout_command",
	"confirm_delete",
	"git_checkout_to",
	"remove_dir_content",
]
