# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Comment grouping, attachment and directive parsing.

Go attaches a comment group to a declaration when the group ends on the line
right above it; a same-line comment after a spec is its line comment. Groups
that land nowhere are "detached" and stay on the file (build constraints,
license headers). Comments inside function bodies belong to the body text.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Set, Tuple

from lark import Token

from xfork.errors import ParseError
from .ast import Comment, CommentGroup, Directive, Located

LINKNAME_PRAGMA = "//go:linkname "
# Pragmas we read back from generated files and re-emit on forwarding funcs.
KNOWN_PRAGMAS = ("noescape", "noinline")

Span = Tuple[Tuple[int, int], Tuple[int, int]]


def comments_from_tokens(tokens: Sequence[Token], source: str) -> List[Comment]:
	lines = source.split("\n")
	out: List[Comment] = []
	for tok in tokens:
		prefix = lines[tok.line - 1][: tok.column - 1] if tok.line - 1 < len(lines) else ""
		out.append(
			Comment(
				text=str(tok.value).rstrip("\r"),
				loc=Located(line=tok.line, column=tok.column),
				end_line=tok.end_line if tok.end_line is not None else tok.line,
				trailing=bool(prefix.strip()),
			)
		)
	out.sort(key=lambda c: (c.loc.line, c.loc.column))
	return out


def group_comments(comments: Iterable[Comment]) -> List[CommentGroup]:
	"""Own-line comments on consecutive lines form one group; trailing comments stand alone."""
	groups: List[CommentGroup] = []
	current: List[Comment] = []
	for c in comments:
		if c.trailing:
			if current:
				groups.append(CommentGroup(tuple(current)))
				current = []
			groups.append(CommentGroup((c,)))
			continue
		if current and c.loc.line != current[-1].end_line + 1:
			groups.append(CommentGroup(tuple(current)))
			current = []
		current.append(c)
	if current:
		groups.append(CommentGroup(tuple(current)))
	return groups


class CommentIndex:
	"""Hands out comment groups to declarations; whatever is left is detached."""

	def __init__(self, comments: Sequence[Comment]) -> None:
		self.groups = group_comments(comments)
		self._used: Set[int] = set()

	def doc_for(self, line: int) -> Optional[CommentGroup]:
		for idx, group in enumerate(self.groups):
			if idx in self._used or group.comments[0].trailing:
				continue
			if group.end_line == line - 1:
				self._used.add(idx)
				return group
		return None

	def trailing_for(self, line: int, column: int) -> Optional[CommentGroup]:
		for idx, group in enumerate(self.groups):
			if idx in self._used:
				continue
			first = group.comments[0]
			if first.trailing and first.loc.line == line and first.loc.column >= column:
				self._used.add(idx)
				return group
		return None

	def detached(self, spans: Sequence[Span]) -> Tuple[CommentGroup, ...]:
		out: List[CommentGroup] = []
		for idx, group in enumerate(self.groups):
			if idx in self._used:
				continue
			pos = (group.comments[0].loc.line, group.comments[0].loc.column)
			if any(start <= pos <= end for start, end in spans):
				continue
			out.append(group)
		return tuple(out)


def parse_directives(
	groups: Sequence[Optional[CommentGroup]],
	prefix: str,
	*,
	filename: Optional[str] = None,
) -> Tuple[Directive, ...]:
	"""
	Parse `//<prefix>key[=value]` commands out of the given groups, in order.

	Whitespace between `//` and the prefix is allowed (formatters insert it).
	"""
	out: List[Directive] = []
	for group in groups:
		if group is None:
			continue
		for c in group.comments:
			if not c.is_line:
				continue
			body = c.text[2:].lstrip()
			if not body.startswith(prefix):
				continue
			cmd = body[len(prefix) :].strip()
			key, sep, value = cmd.partition("=")
			key = key.strip()
			if not key:
				raise ParseError(
					message=f"malformed directive {c.text.strip()!r}: missing command",
					filename=filename,
					loc=c.loc,
				)
			out.append(Directive(key=key, value=value.strip() if sep else None, loc=c.loc))
	return tuple(out)


def parse_pragmas(group: Optional[CommentGroup]) -> Tuple[Optional[str], Tuple[str, ...]]:
	"""Return the `//go:linkname` target and known `//go:` pragmas of a doc group."""
	linkname: Optional[str] = None
	pragmas: List[str] = []
	if group is None:
		return None, ()
	for c in group.comments:
		text = c.text.strip()
		if text.startswith(LINKNAME_PRAGMA):
			parts = text.split()
			if len(parts) >= 3:
				linkname = parts[2]
			continue
		for pragma in KNOWN_PRAGMAS:
			if text == f"//go:{pragma}" and pragma not in pragmas:
				pragmas.append(pragma)
	return linkname, tuple(pragmas)


__all__ = [
	"CommentIndex",
	"KNOWN_PRAGMAS",
	"comments_from_tokens",
	"group_comments",
	"parse_directives",
	"parse_pragmas",
]
