# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
API trimming.

Reduces a backend file to the declarations a proxy can re-declare:

- pass 1 drops every type declaration and every unexported value, keeps
  `Enabled` as a constant and turns every other exported value into a
  bodiless linkname variable;
- pass 2 drops methods and unexported functions, skips generic functions and
  functions whose signatures are not simple, and strips the bodies of the
  rest.

Type-resolution failures are collected across the whole file and raised as a
single `TrimError`; skipped functions are returned as notices.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Set, Tuple

from xfork.classify import PRAGMA_DIRECTIVES, enabled_decl, has_directive, unknown_directives
from xfork.config import DEFAULT_CONVENTIONS, Conventions
from xfork.emit import normalize_imports, render_type
from xfork.errors import ParseError, SkipNotice, TrimError
from xfork.parser.ast import (
	ArrayType,
	ConstDecl,
	Declaration,
	EllipsisType,
	FuncDecl,
	FuncType,
	ImportSpec,
	Located,
	PointerType,
	SliceType,
	SourceFile,
	TypeDecl,
	TypeExpr,
	TypeName,
	VarDecl,
)
from xfork.parser.parser import parse_type


class NotSimpleError(ValueError):
	"""A type expression cannot be re-declared outside its backend."""


@dataclass(frozen=True)
class TrimResult:
	api: SourceFile
	skipped: Tuple[SkipNotice, ...] = ()


def accepted_imports(tree: SourceFile) -> Dict[str, ImportSpec]:
	"""
	Imports a proxy may keep, keyed by local name.

	Standard library only: no `internal` path element and no `.` in the first
	element (which would be a module host).
	"""
	out: Dict[str, ImportSpec] = {}
	for spec in tree.imports:
		elems = spec.path.split("/")
		if "internal" in elems or "." in elems[0]:
			continue
		if spec.side_effect:
			continue
		out[spec.local_name] = spec
	return out


def ensure_simple(t: TypeExpr, accepted: Dict[str, ImportSpec], local_types: Set[str]) -> None:
	if isinstance(t, TypeName):
		if t.args is not None:
			raise NotSimpleError(f"uses generic type {render_type(t)}")
		if t.package is None:
			if t.name in local_types:
				raise NotSimpleError(f"uses locally declared type {t.name}")
			return
		if t.package not in accepted:
			raise NotSimpleError(f"{t.package}.{t.name} uses unimported package")
		return
	if isinstance(t, (PointerType, SliceType, ArrayType, EllipsisType)):
		ensure_simple(t.elem, accepted, local_types)
		return
	if isinstance(t, FuncType):
		for f in t.params + t.results:
			ensure_simple(f.type, accepted, local_types)
		return
	raise NotSimpleError(f"unsupported type {render_type(t)}")


class _Problems:
	"""Hard failures collected over one file."""

	def __init__(self, filename: Optional[str]) -> None:
		self.filename = filename
		self.items: List[Tuple[str, Optional[Located], str]] = []

	def add(self, symbol: str, loc: Optional[Located], message: str) -> None:
		self.items.append((symbol, loc, message))

	def raise_if_any(self) -> None:
		if not self.items:
			return
		lines = []
		for _, loc, message in self.items:
			where = ":".join(p for p in (self.filename, str(loc) if loc else None) if p)
			lines.append(f"{where}: {message}" if where else message)
		symbols = tuple(dict.fromkeys(symbol for symbol, _, _ in self.items))
		raise TrimError(
			message="failed to trim backend file:\n  " + "\n  ".join(lines),
			filename=self.filename,
			loc=self.items[0][1],
			symbols=symbols,
		)


def _check_directives(decl: Declaration, problems: _Problems, conventions: Conventions) -> None:
	for d in unknown_directives(decl):
		problems.add(
			decl.name,
			d.loc,
			f"unrecognized {conventions.directive_prefix.rstrip(':')} command {str(d)!r} on {decl.name}",
		)


def _resolve_var_type(
	decl: Declaration,
	conventions: Conventions,
	problems: _Problems,
	filename: Optional[str],
) -> Tuple[Optional[TypeExpr], Optional[ImportSpec]]:
	"""Declared type, else first `type=` directive, else a conventional fallback."""
	declared = getattr(decl, "type", None)
	if declared is not None:
		return declared, None
	for d in decl.directives:
		if d.key != "type":
			continue
		if not d.value:
			problems.add(decl.name, d.loc, f"empty type directive on {decl.name}")
			return None, None
		try:
			return parse_type(d.value, filename=filename, loc=d.loc), None
		except ParseError:
			problems.add(decl.name, d.loc, f"invalid type directive {d.value!r} on {decl.name}")
			return None, None
	fallback = conventions.fallback_type(decl.name)
	if fallback is not None:
		type_text, import_path = fallback
		return parse_type(type_text), ImportSpec(path=import_path)
	problems.add(
		decl.name,
		decl.loc,
		f"could not determine type for {decl.name}; define it, or use "
		f'"// {conventions.directive_prefix}type=<...>"',
	)
	return None, None


def _pragmas(decl: FuncDecl) -> Tuple[str, ...]:
	out: List[str] = list(decl.pragmas)
	for key in PRAGMA_DIRECTIVES:
		if has_directive(decl, key) and key not in out:
			out.append(key)
	return tuple(out)


def trim(tree: SourceFile, conventions: Conventions = DEFAULT_CONVENTIONS) -> TrimResult:
	enabled = enabled_decl(tree, conventions)
	problems = _Problems(tree.filename)
	accepted = accepted_imports(tree)
	local_types = {d.name for d in tree.decls if isinstance(d, TypeDecl)}
	extra_imports: List[ImportSpec] = []
	skipped: List[SkipNotice] = []
	kept: List[Declaration] = []

	# Every declaration, consumed or not, must use the known vocabulary.
	for decl in tree.decls:
		_check_directives(decl, problems, conventions)

	for decl in tree.decls:
		if isinstance(decl, TypeDecl):
			continue

		if isinstance(decl, (ConstDecl, VarDecl)):
			if not decl.exported:
				continue
			if decl is enabled:
				kept.append(
					ConstDecl(
						name=decl.name,
						exported=True,
						loc=decl.loc,
						type=decl.type,
						value=decl.value,
					)
				)
				continue
			var_type, extra = _resolve_var_type(decl, conventions, problems, tree.filename)
			if var_type is None:
				continue
			if extra is not None and extra.local_name not in accepted:
				accepted[extra.local_name] = extra
				extra_imports.append(extra)
			try:
				ensure_simple(var_type, accepted, local_types)
			except NotSimpleError as err:
				skipped.append(SkipNotice(name=decl.name, reason=str(err), loc=decl.loc))
				continue
			kept.append(
				VarDecl(
					name=decl.name,
					exported=True,
					loc=decl.loc,
					type=var_type,
					linkname=conventions.linkname_target(decl.name),
				)
			)
			continue

		assert isinstance(decl, FuncDecl)
		if decl.is_method or not decl.exported:
			continue
		if decl.generic:
			skipped.append(SkipNotice(name=decl.name, reason="generic function", loc=decl.loc))
			continue
		try:
			ensure_simple(decl.type, accepted, local_types)
		except NotSimpleError as err:
			skipped.append(SkipNotice(name=decl.name, reason=str(err), loc=decl.loc))
			continue
		kept.append(
			FuncDecl(
				name=decl.name,
				exported=True,
				loc=decl.loc,
				type=decl.type,
				linkname=conventions.linkname_target(decl.name),
				pragmas=_pragmas(decl),
			)
		)

	problems.raise_if_any()
	imports = tuple(s for s in tree.imports if accepted.get(s.local_name) == s or s.path == "unsafe")
	api = replace(tree, imports=imports + tuple(extra_imports), decls=tuple(kept))
	return TrimResult(api=normalize_imports(api), skipped=tuple(skipped))


__all__ = [
	"NotSimpleError",
	"TrimResult",
	"accepted_imports",
	"ensure_simple",
	"trim",
]
