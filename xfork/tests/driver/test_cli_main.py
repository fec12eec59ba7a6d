# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import io
import json
import subprocess
import sys
from pathlib import Path

import pytest

from xfork.cli import main as xfork_main

REPO_ROOT = Path(__file__).resolve().parents[3]


def _run_xfork(argv: list[str]) -> subprocess.CompletedProcess[str]:
	return subprocess.run([sys.executable, "-m", "xfork", *argv], text=True, capture_output=True, cwd=REPO_ROOT)


def test_proxy_command_succeeds(backend_tree: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	out = tmp_path / "out"
	rc = xfork_main(["proxy", "-f", str(backend_tree / "*.go"), "-o", str(out)])
	assert rc == 0
	assert (out / "nobackend.go").is_file()
	assert capsys.readouterr().err == ""


def test_verbose_reports_skips_and_gaps(backend_tree: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	rc = xfork_main(["proxy", "-v", "-f", str(backend_tree / "*.go"), "-o", str(tmp_path / "out")])
	assert rc == 0
	err = capsys.readouterr().err
	assert 'nobackend.go: Skipped "ExpandHKDF": generic function' in err
	assert 'cng_windows.go: Missing "NewGCMTLS": not declared by backend' in err


def test_trim_command_reports_failures(backend_tree: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	rc = xfork_main(["trim", "-f", str(backend_tree / "*.go"), "-o", str(tmp_path / "out")])
	assert rc == 1
	err = capsys.readouterr().err
	assert "xfork: [trim-error] " in err
	assert "could not determine type for SupportsHash" in err
	assert err.rstrip().endswith("xfork: 1 file(s) failed")
	assert (tmp_path / "out" / "openssl_linux.go").is_file()


def test_missing_reference_is_fatal(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	rc = xfork_main(["proxy", "-f", str(tmp_path / "*.go")])
	assert rc == 1
	assert capsys.readouterr().err.startswith("xfork: [classification-error] no nobackend backend")


def test_unparsable_reference_reports_its_parse_error(
	backend_tree: Path,
	tmp_path: Path,
	capsys: pytest.CaptureFixture[str],
) -> None:
	(backend_tree / "nobackend.go").write_text("package backend\n\nfunc Digest( {}\n", encoding="utf-8")
	rc = xfork_main(["proxy", "-f", str(backend_tree / "*.go"), "-o", str(tmp_path / "out")])
	assert rc == 1
	err = capsys.readouterr().err
	assert err.startswith("xfork: [parse-error] ")
	assert "nobackend.go:3:" in err
	assert "classification-error" not in err


def test_fork_requires_output(tmp_path: Path) -> None:
	with pytest.raises(SystemExit) as excinfo:
		xfork_main(["proxy", "-f", "*.go", "--fork", str(tmp_path)])
	assert excinfo.value.code == 2


def test_out_and_dev_are_exclusive() -> None:
	with pytest.raises(SystemExit):
		xfork_main(["trim", "-f", "*.go", "-o", "out", "--dev"])


def test_conventions_file_overrides_dev_subdir(backend_tree: Path, tmp_path: Path) -> None:
	conv = tmp_path / "conventions.json"
	conv.write_text(json.dumps({"dev_subdir": "proxies"}), encoding="utf-8")
	rc = xfork_main(["proxy", "--dev", "--conventions", str(conv), "-f", str(backend_tree / "*.go")])
	assert rc == 0
	assert (backend_tree / "proxies" / "cng_windows.go").is_file()
	assert not (backend_tree / "backendproxy").exists()


def test_bad_conventions_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	conv = tmp_path / "conventions.json"
	conv.write_text(json.dumps({"colour": "blue"}), encoding="utf-8")
	rc = xfork_main(["trim", "--conventions", str(conv), "-f", str(tmp_path / "*.go")])
	assert rc == 1
	assert "unknown convention keys: colour" in capsys.readouterr().err


def test_snapshot_prompt_rejection(
	tmp_path: Path,
	monkeypatch: pytest.MonkeyPatch,
	capsys: pytest.CaptureFixture[str],
) -> None:
	out = tmp_path / "out"
	out.mkdir()
	(out / "keep.go").write_text("package keep\n", encoding="utf-8")
	monkeypatch.setattr(sys, "stdin", io.StringIO("no\n"))
	rc = xfork_main(["snapshot", "--fork", str(tmp_path), "--out", str(out)])
	assert rc == 1
	captured = capsys.readouterr()
	assert captured.out.startswith("Delete `")
	assert captured.err.strip() == "aborting: 'no' not 'y'"
	assert (out / "keep.go").exists()


def test_module_entry_point_help() -> None:
	cp = _run_xfork(["--help"])
	assert cp.returncode == 0
	assert "proxy" in cp.stdout and "snapshot" in cp.stdout


def test_module_entry_point_writes_stdout(backend_tree: Path) -> None:
	cp = _run_xfork(["trim", "-f", str(backend_tree / "openssl_linux.go")])
	assert cp.returncode == 0, cp.stderr
	assert cp.stdout.startswith("// Code generated by xcrypto_backend_map. DO NOT EDIT.\n")
	assert "//go:linkname SupportsHash crypto/internal/backend.SupportsHash\n" in cp.stdout
