# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Import normalization and Go source serialization.

Output is a pure function of the tree: imports are sorted by path, declarations
keep tree order, and spacing is fixed, so emitting the same tree twice yields
identical text.
"""

from __future__ import annotations

from dataclasses import replace
from typing import IO, Iterable, List, Optional, Sequence, Set

from xfork.config import DEFAULT_CONVENTIONS, Conventions
from xfork.errors import MissingSymbol, SkipNotice
from xfork.parser.ast import (
	ArrayType,
	ChanType,
	CommentGroup,
	ConstDecl,
	Declaration,
	EllipsisType,
	Field,
	FuncDecl,
	FuncType,
	ImportSpec,
	MapType,
	OpaqueType,
	PointerType,
	SliceType,
	SourceFile,
	TypeDecl,
	TypeExpr,
	TypeName,
	VarDecl,
)

PROXY_NOTE = "// This file implements a proxy that links into a specific crypto backend."
SKIPPED_HEADER = "// Some backend functionality was skipped during mapping generation:"
MISSING_HEADER = "// This backend does not implement part of the API:"


# ---- types ------------------------------------------------------------------


_CHAN_PREFIX = {"both": "chan ", "send": "chan<- ", "recv": "<-chan "}


def render_type(t: TypeExpr) -> str:
	if isinstance(t, TypeName):
		name = f"{t.package}.{t.name}" if t.package else t.name
		return name + (t.args or "")
	if isinstance(t, PointerType):
		return "*" + render_type(t.elem)
	if isinstance(t, SliceType):
		return "[]" + render_type(t.elem)
	if isinstance(t, ArrayType):
		return f"[{t.length}]" + render_type(t.elem)
	if isinstance(t, MapType):
		return f"map[{render_type(t.key)}]{render_type(t.value)}"
	if isinstance(t, ChanType):
		return _CHAN_PREFIX[t.direction] + render_type(t.elem)
	if isinstance(t, EllipsisType):
		return "..." + render_type(t.elem)
	if isinstance(t, FuncType):
		return "func" + render_signature(t)
	if isinstance(t, OpaqueType):
		return t.text
	raise TypeError(f"unknown type node {type(t).__name__}")


def _render_field(f: Field) -> str:
	if f.names:
		return f"{', '.join(f.names)} {render_type(f.type)}"
	return render_type(f.type)


def render_signature(sig: FuncType) -> str:
	params = "(" + ", ".join(_render_field(f) for f in sig.params) + ")"
	if not sig.results:
		return params
	if len(sig.results) == 1 and not sig.results[0].names:
		return f"{params} {render_type(sig.results[0].type)}"
	return params + " (" + ", ".join(_render_field(f) for f in sig.results) + ")"


def type_packages(t: Optional[TypeExpr]) -> Set[str]:
	"""Package qualifiers a type expression refers to."""
	if t is None:
		return set()
	# Instantiation arguments are opaque text.
	if isinstance(t, TypeName):
		return {t.package} if t.package else set()
	if isinstance(t, (PointerType, SliceType, ArrayType, ChanType, EllipsisType)):
		return type_packages(t.elem)
	if isinstance(t, MapType):
		return type_packages(t.key) | type_packages(t.value)
	if isinstance(t, FuncType):
		out: Set[str] = set()
		for f in t.params + t.results:
			out |= type_packages(f.type)
		return out
	# Opaque struct/interface bodies are not inspected.
	return set()


# ---- imports ----------------------------------------------------------------


def referenced_packages(decls: Iterable[Declaration]) -> Set[str]:
	used: Set[str] = set()
	for d in decls:
		if isinstance(d, (ConstDecl, VarDecl)):
			used |= type_packages(d.type)
			if d.value is not None:
				used |= d.value.refs
		elif isinstance(d, TypeDecl):
			used |= type_packages(d.type)
		elif isinstance(d, FuncDecl):
			used |= type_packages(d.type)
			if d.receiver is not None:
				used |= type_packages(d.receiver.type)
			if d.body is not None:
				used |= d.body.refs
	return used


def normalize_imports(tree: SourceFile) -> SourceFile:
	"""
	Keep only imports some declaration refers to, plus blank and dot imports.

	The result is sorted by path with exact duplicates removed.
	"""
	used = referenced_packages(tree.decls)
	kept: List[ImportSpec] = []
	seen = set()
	for spec in tree.imports:
		key = (spec.path, spec.name)
		if key in seen:
			continue
		if spec.side_effect or spec.local_name in used:
			seen.add(key)
			kept.append(replace(spec, loc=None))
	kept.sort(key=lambda s: (s.path, s.name or ""))
	return replace(tree, imports=tuple(kept))


# ---- declarations -----------------------------------------------------------


def build_constraint(tree: SourceFile, conventions: Conventions = DEFAULT_CONVENTIONS) -> Optional[str]:
	for group in tree.comments:
		for c in group.comments:
			if c.text.startswith(conventions.build_prefix):
				return c.text.rstrip()
	return None


def _doc_lines(decl: Declaration) -> List[str]:
	if decl.doc is not None:
		return list(decl.doc.lines())
	out: List[str] = []
	linkname = getattr(decl, "linkname", None)
	if linkname:
		out.append(f"//go:linkname {decl.name} {linkname}")
	for pragma in getattr(decl, "pragmas", ()):
		out.append(f"//go:{pragma}")
	return out


def _render_spec(decl: Declaration) -> str:
	if isinstance(decl, (ConstDecl, VarDecl)):
		text = decl.name
		if decl.type is not None:
			text += " " + render_type(decl.type)
		if decl.value is not None:
			text += " = " + decl.value.text
		return text
	if isinstance(decl, TypeDecl):
		assert decl.type is not None
		mark = "= " if decl.alias else ""
		return f"{decl.name}{decl.type_params or ''} {mark}{render_type(decl.type)}"
	raise TypeError(f"not a spec declaration: {type(decl).__name__}")


def _keyword(decl: Declaration) -> str:
	if isinstance(decl, ConstDecl):
		return "const"
	if isinstance(decl, VarDecl):
		return "var"
	if isinstance(decl, TypeDecl):
		return "type"
	return "func"


def _render_func(decl: FuncDecl) -> str:
	text = "func "
	if decl.receiver is not None:
		text += f"({_render_field(decl.receiver)}) "
	text += decl.name + (decl.type_params or "") + render_signature(decl.type)
	if decl.body is not None:
		text += " " + decl.body.text
	return text


def _render_group(decls: Sequence[Declaration]) -> str:
	lines: List[str] = []
	head: Optional[CommentGroup] = decls[0].group_doc
	if head is not None:
		lines.extend(head.lines())
	lines.append(f"{_keyword(decls[0])} (")
	for d in decls:
		lines.extend("\t" + line for line in _doc_lines(d))
		lines.append("\t" + _render_spec(d))
	lines.append(")")
	return "\n".join(lines)


def _render_decl(decl: Declaration) -> str:
	lines = _doc_lines(decl)
	if isinstance(decl, FuncDecl):
		lines.append(_render_func(decl))
	else:
		lines.append(f"{_keyword(decl)} {_render_spec(decl)}")
	return "\n".join(lines)


def _chunks(decls: Sequence[Declaration]) -> List[List[Declaration]]:
	"""Split declarations into runs that came from the same `(...)` block."""
	chunks: List[List[Declaration]] = []
	for d in decls:
		prev = chunks[-1][-1] if chunks else None
		if (
			prev is not None
			and d.group is not None
			and prev.group == d.group
			and _keyword(prev) == _keyword(d)
		):
			chunks[-1].append(d)
		else:
			chunks.append([d])
	return chunks


def _render_imports(imports: Sequence[ImportSpec]) -> str:
	def spec(i: ImportSpec) -> str:
		return f'{i.name} "{i.path}"' if i.name else f'"{i.path}"'

	if len(imports) == 1:
		return "import " + spec(imports[0])
	return "import (\n" + "".join(f"\t{spec(i)}\n" for i in imports) + ")"


def emit(tree: SourceFile, conventions: Conventions = DEFAULT_CONVENTIONS) -> str:
	parts: List[str] = []
	constraint = build_constraint(tree, conventions)
	if constraint:
		parts.append(constraint)
	parts.append(f"package {tree.package}")
	if tree.imports:
		parts.append(_render_imports(tree.imports))
	for chunk in _chunks(tree.decls):
		if chunk[0].group is not None:
			parts.append(_render_group(chunk))
		else:
			parts.append(_render_decl(chunk[0]))
	return "\n\n".join(parts) + "\n"


def write(tree: SourceFile, stream: IO[str], conventions: Conventions = DEFAULT_CONVENTIONS) -> None:
	stream.write(emit(tree, conventions))


def render_generated(
	tree: SourceFile,
	conventions: Conventions = DEFAULT_CONVENTIONS,
	*,
	skipped: Sequence[SkipNotice] = (),
	missing: Sequence[MissingSymbol] = (),
	proxy: bool = False,
) -> str:
	"""
	Render a generated file: banner, optional skip and missing blocks, then the tree.

	The tree is emitted as-is; callers normalize imports first.
	"""
	blocks = [f"// Code generated by {conventions.generator_name}. DO NOT EDIT."]
	if proxy:
		blocks.append(PROXY_NOTE)
	if skipped:
		blocks.append("\n".join([SKIPPED_HEADER, "//"] + [f"// {s.format()}" for s in skipped]))
	if missing:
		blocks.append("\n".join([MISSING_HEADER, "//"] + [f"// {m.format()}" for m in missing]))
	return "\n\n".join(blocks) + "\n\n" + emit(tree, conventions)


__all__ = [
	"MISSING_HEADER",
	"PROXY_NOTE",
	"SKIPPED_HEADER",
	"build_constraint",
	"emit",
	"normalize_imports",
	"referenced_packages",
	"render_generated",
	"render_signature",
	"render_type",
	"type_packages",
	"write",
]
