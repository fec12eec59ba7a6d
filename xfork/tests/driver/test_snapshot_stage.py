# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import io
import shutil
import subprocess
from pathlib import Path

import pytest

from xfork.config import GenOptions, SnapshotOptions
from xfork.errors import PromptAbortedError, SnapshotError
from xfork.pipeline import run_proxy
from xfork.snapshot import checkout_command, git_checkout_to, remove_dir_content


def _populate(directory: Path) -> None:
	(directory / "nested").mkdir(parents=True)
	(directory / "nested" / "old.go").write_text("package old\n", encoding="utf-8")
	(directory / "stale.txt").write_text("x", encoding="utf-8")


def test_prompt_rejection_keeps_content(tmp_path: Path) -> None:
	_populate(tmp_path / "out")
	prompt = io.StringIO()
	with pytest.raises(PromptAbortedError) as excinfo:
		remove_dir_content(tmp_path / "out", stdin=io.StringIO("n\n"), stdout=prompt)
	assert excinfo.value.message == "aborting: 'n' not 'y'"
	assert prompt.getvalue() == f"Delete `{tmp_path / 'out'}`? [y/N] "
	assert (tmp_path / "out" / "stale.txt").exists()


def test_empty_answer_is_rejected(tmp_path: Path) -> None:
	with pytest.raises(PromptAbortedError):
		remove_dir_content(tmp_path / "out", stdin=io.StringIO(""), stdout=io.StringIO())
	assert not (tmp_path / "out").exists()


def test_confirmed_prompt_clears_directory(tmp_path: Path) -> None:
	_populate(tmp_path / "out")
	remove_dir_content(tmp_path / "out", stdin=io.StringIO("y\n"), stdout=io.StringIO())
	assert list((tmp_path / "out").iterdir()) == []


def test_no_prompt_creates_missing_directory(tmp_path: Path) -> None:
	remove_dir_content(tmp_path / "a" / "b", prompt=False)
	assert (tmp_path / "a" / "b").is_dir()


def test_checkout_command_uses_directory_prefix(tmp_path: Path) -> None:
	assert checkout_command(tmp_path) == ["git", "checkout-index", "--all", "-f", f"--prefix={tmp_path}/"]


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_git_checkout_to_copies_index(tmp_path: Path) -> None:
	repo = tmp_path / "fork"
	(repo / "src" / "crypto").mkdir(parents=True)
	(repo / "src" / "crypto" / "nobackend.go").write_text("package backend\n", encoding="utf-8")
	subprocess.run(["git", "init", "-q"], cwd=repo, check=True)
	subprocess.run(["git", "add", "src"], cwd=repo, check=True)
	out = tmp_path / "out"
	_populate(out)

	log = io.StringIO()
	got = git_checkout_to(SnapshotOptions(git_dir=repo, out_dir=out, prompt=False), stderr=log)
	assert got == out.resolve()
	assert (out / "src" / "crypto" / "nobackend.go").read_text(encoding="utf-8") == "package backend\n"
	assert not (out / "stale.txt").exists()
	assert log.getvalue().startswith(f"In `{repo}`, running git checkout-index --all -f --prefix=")


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_git_failure_is_snapshot_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
	plain = tmp_path / "plain"
	plain.mkdir()
	with pytest.raises(SnapshotError) as excinfo:
		git_checkout_to(SnapshotOptions(git_dir=plain, out_dir=tmp_path / "out", prompt=False), stderr=io.StringIO())
	assert "exit status" in excinfo.value.message


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_fork_generation_writes_under_backend_dir(backend_tree: Path, tmp_path: Path) -> None:
	repo = tmp_path / "fork"
	repo.mkdir()
	(repo / "README").write_text("fork\n", encoding="utf-8")
	subprocess.run(["git", "init", "-q"], cwd=repo, check=True)
	subprocess.run(["git", "add", "README"], cwd=repo, check=True)
	out = tmp_path / "out"

	opts = GenOptions(pattern=str(backend_tree / "*.go"), output=out, snapshot_from=repo, no_prompt=True)
	report = run_proxy(opts, stderr=io.StringIO())
	assert report.ok
	assert {p.parent for p in report.written} == {out / "backend"}
	assert (out / "README").read_text(encoding="utf-8") == "fork\n"
	assert (out / "backend" / "nobackend.go").is_file()
	assert not (out / "nobackend.go").exists()
