# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Proxy generation.

A proxy re-declares every API symbol without a body and binds it with
`//go:linkname` to the canonical location, so the chosen backend provides
the implementation at link time. Imports come from the API tree only; the
backend's own imports point at internal and vendored packages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from xfork.classify import PRAGMA_DIRECTIVES, enabled_decl, find_value, has_directive, lookup, unknown_directives
from xfork.config import DEFAULT_CONVENTIONS, Conventions
from xfork.emit import normalize_imports
from xfork.errors import GenerationError, MissingSymbol
from xfork.parser.ast import (
	ConstDecl,
	Declaration,
	FuncDecl,
	ImportSpec,
	SourceFile,
	TypeDecl,
	VarDecl,
)

UNSAFE_IMPORT = ImportSpec(path="unsafe", name="_")


@dataclass(frozen=True)
class ProxyResult:
	proxy: SourceFile
	# API members the backend does not provide, in API order.
	missing: Tuple[MissingSymbol, ...] = ()

	@property
	def complete(self) -> bool:
		return not self.missing


def _kind(decl: Declaration) -> str:
	if isinstance(decl, ConstDecl):
		return "const"
	if isinstance(decl, VarDecl):
		return "var"
	if isinstance(decl, TypeDecl):
		return "type"
	return "func"


def _check_directives(decl: Declaration, backend: SourceFile, conventions: Conventions) -> None:
	for d in unknown_directives(decl):
		raise GenerationError(
			message=f"unknown {conventions.directive_prefix.rstrip(':')} command {str(d)!r} on {decl.name}",
			filename=backend.filename,
			loc=d.loc,
		)


def generate_proxy(
	backend: SourceFile,
	api: SourceFile,
	conventions: Conventions = DEFAULT_CONVENTIONS,
) -> ProxyResult:
	enabled = enabled_decl(backend, conventions)
	decls: List[Declaration] = []
	missing: List[MissingSymbol] = []

	for decl in backend.decls:
		_check_directives(decl, backend, conventions)

	for want in api.decls:
		if isinstance(want, TypeDecl):
			continue

		if want.name == conventions.enabled_name:
			decls.append(
				ConstDecl(
					name=enabled.name,
					exported=True,
					loc=enabled.loc,
					type=enabled.type,
					value=enabled.value,
				)
			)
			continue

		if isinstance(want, (ConstDecl, VarDecl)):
			have = find_value(backend, want.name)
			if have is None:
				missing.append(MissingSymbol(name=want.name, kind="var", reason="no value declared by backend"))
				continue
			decls.append(
				VarDecl(
					name=want.name,
					exported=True,
					loc=have.loc,
					type=want.type,
					linkname=conventions.linkname_target(want.name),
				)
			)
			continue

		assert isinstance(want, FuncDecl)
		found = lookup(backend, want.name)
		if found is None:
			missing.append(MissingSymbol(name=want.name, kind="func", reason="not declared by backend"))
			continue
		if not isinstance(found, FuncDecl):
			missing.append(
				MissingSymbol(
					name=want.name,
					kind="func",
					reason=f"declared as {_kind(found)}, not a function",
				)
			)
			continue
		# The backend's signature may be more specific than the API's.
		pragmas = list(found.pragmas)
		for key in PRAGMA_DIRECTIVES:
			if has_directive(found, key) and key not in pragmas:
				pragmas.append(key)
		decls.append(
			FuncDecl(
				name=want.name,
				exported=True,
				loc=found.loc,
				type=found.type,
				linkname=conventions.linkname_target(want.name),
				pragmas=tuple(pragmas),
			)
		)

	imports = api.imports
	if UNSAFE_IMPORT not in imports:
		imports = imports + (UNSAFE_IMPORT,)
	proxy = SourceFile(
		package=backend.package,
		imports=imports,
		decls=tuple(decls),
		comments=backend.comments,
	)
	return ProxyResult(proxy=normalize_imports(proxy), missing=tuple(missing))


__all__ = [
	"ProxyResult",
	"UNSAFE_IMPORT",
	"generate_proxy",
]
