# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from xfork.config import DEFAULT_CONVENTIONS, Conventions, GenOptions, SnapshotOptions, load_conventions
from xfork.errors import PromptAbortedError, XforkError
from xfork.pipeline import BatchReport, run_proxy, run_trim
from xfork.snapshot import git_checkout_to


def _add_gen_args(p: argparse.ArgumentParser) -> None:
	p.add_argument("-f", dest="pattern", required=True, help="Backend Go file glob")
	out = p.add_mutually_exclusive_group()
	out.add_argument("-o", "--out", dest="output", type=Path, default=None, help="Output directory (default: stdout)")
	out.add_argument(
		"--dev",
		action="store_true",
		help="Write output beside the inputs, in the conventional subdirectory (default: backendproxy)",
	)
	p.add_argument("--conventions", type=Path, default=None, help="JSON file overriding naming conventions")
	p.add_argument("-v", "--verbose", action="store_true", help="Report skipped and missing symbols on stderr")


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="xfork", description="Backend API extraction and linkname proxy generation")
	sub = p.add_subparsers(dest="cmd", required=True)

	proxy = sub.add_parser("proxy", help="Trim the reference backend into an API and write a proxy per backend")
	_add_gen_args(proxy)
	proxy.add_argument("--fork", type=Path, default=None, help="Git tree whose index is staged into the output first; files then go to <out>/backend")
	proxy.add_argument("-y", dest="yes", action="store_true", help="Delete old output without prompting")

	trim = sub.add_parser("trim", help="Write the linkname mapping of every backend file independently")
	_add_gen_args(trim)

	snapshot = sub.add_parser("snapshot", help="Replace an output directory with a checkout of a git tree")
	snapshot.add_argument("--fork", type=Path, required=True, help="Git tree to check out")
	snapshot.add_argument("--out", type=Path, required=True, help="Output directory (its contents are deleted)")
	snapshot.add_argument("-y", dest="yes", action="store_true", help="Delete old output without prompting")
	return p


def _report(report: BatchReport, verbose: bool) -> int:
	if verbose:
		for path, notices in report.skipped.items():
			for notice in notices:
				print(f"{path}: {notice.format()}", file=sys.stderr)
		for path, missing in report.missing.items():
			for m in missing:
				print(f"{path}: {m.format()}", file=sys.stderr)
	for failure in report.failures:
		print(f"xfork: {failure.error.format_human()}", file=sys.stderr)
	if report.failures:
		print(f"xfork: {len(report.failures)} file(s) failed", file=sys.stderr)
		return 1
	return 0


def _conventions(path: Optional[Path]) -> Conventions:
	if path is None:
		return DEFAULT_CONVENTIONS
	return load_conventions(path)


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)

	try:
		if args.cmd == "snapshot":
			git_checkout_to(SnapshotOptions(git_dir=args.fork, out_dir=args.out, prompt=not args.yes))
			return 0

		if args.cmd == "proxy" and args.fork is not None and args.output is None:
			p.error("--fork requires -o/--out")
		opts = GenOptions(
			pattern=args.pattern,
			output=args.output,
			dev=bool(args.dev),
			no_prompt=bool(getattr(args, "yes", False)),
			snapshot_from=getattr(args, "fork", None),
			verbose=bool(args.verbose),
			conventions=_conventions(args.conventions),
		)
		if args.cmd == "proxy":
			report = run_proxy(opts)
		else:
			report = run_trim(opts)
		return _report(report, opts.verbose)
	except PromptAbortedError as err:
		print(err.message, file=sys.stderr)
		return 1
	except XforkError as err:
		print(f"xfork: {err.format_human()}", file=sys.stderr)
		return 1
	except OSError as err:
		print(f"xfork: {err}", file=sys.stderr)
		return 1


if __name__ == "__main__":
	sys.exit(main())
