# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Declaration classification.

A file is a backend when it declares the `Enabled` marker at top level.
Methods are not part of the top-level scope; every lookup here skips them.
"""

from __future__ import annotations

from typing import List, Optional, Union

from xfork.config import DEFAULT_CONVENTIONS, Conventions
from xfork.errors import ClassificationError
from xfork.parser.ast import ConstDecl, Declaration, Directive, FuncDecl, SourceFile, VarDecl

# Closed directive vocabulary. Anything else is rejected by the consumer.
DIRECTIVE_KEYS = ("type", "noescape", "noinline")
# Directives that become `//go:` pragmas on forwarding functions.
PRAGMA_DIRECTIVES = ("noescape", "noinline")

ValueDecl = Union[ConstDecl, VarDecl]


def top_level(tree: SourceFile, name: str) -> List[Declaration]:
	"""All top-level declarations named `name`, in source order."""
	return [d for d in tree.decls if d.name == name and not (isinstance(d, FuncDecl) and d.is_method)]


def lookup(tree: SourceFile, name: str) -> Optional[Declaration]:
	found = top_level(tree, name)
	return found[0] if found else None


def find_value(tree: SourceFile, name: str) -> Optional[ValueDecl]:
	for d in top_level(tree, name):
		if isinstance(d, (ConstDecl, VarDecl)):
			return d
	return None


def find_function(tree: SourceFile, name: str) -> Optional[FuncDecl]:
	for d in top_level(tree, name):
		if isinstance(d, FuncDecl):
			return d
	return None


def is_backend_module(tree: SourceFile, conventions: Conventions = DEFAULT_CONVENTIONS) -> bool:
	decl = find_value(tree, conventions.enabled_name)
	return decl is not None and decl.exported


def extract_directives(decl: Declaration) -> List[Directive]:
	return list(decl.directives)


def directive_value(decl: Declaration, key: str) -> Optional[str]:
	"""Value of the first directive with `key`; later duplicates are ignored."""
	for d in decl.directives:
		if d.key == key:
			return d.value
	return None


def has_directive(decl: Declaration, key: str) -> bool:
	return any(d.key == key for d in decl.directives)


def unknown_directives(decl: Declaration) -> List[Directive]:
	return [d for d in decl.directives if d.key not in DIRECTIVE_KEYS]


def enabled_decl(tree: SourceFile, conventions: Conventions = DEFAULT_CONVENTIONS) -> ValueDecl:
	"""
	Return the single, well-formed `Enabled` declaration.

	It must be one value spec with one name and one boolean literal; each
	other shape is reported with the expectation it violates.
	"""
	name = conventions.enabled_name
	found = top_level(tree, name)

	def fail(message: str, decl: Optional[Declaration] = None) -> ClassificationError:
		return ClassificationError(
			message=message,
			filename=tree.filename,
			loc=decl.loc if decl is not None else None,
		)

	if not found:
		raise fail(f"no {name} declaration")
	if len(found) > 1:
		raise fail(f"multiple declarations for {name}", found[1])
	decl = found[0]
	if not isinstance(decl, (ConstDecl, VarDecl)):
		raise fail(f"expected value declaration for {name}", decl)
	if decl.arity != 1:
		raise fail(f"declaration for {name} includes multiple names", decl)
	if decl.value is None:
		raise fail(f"expected single value for {name}", decl)
	if not decl.value.is_bool_literal():
		raise fail(f"expected boolean literal value for {name}, got {decl.value.text!r}", decl)
	return decl


def is_enabled_true(tree: SourceFile, conventions: Conventions = DEFAULT_CONVENTIONS) -> bool:
	decl = enabled_decl(tree, conventions)
	assert decl.value is not None
	return decl.value.text == "true"


__all__ = [
	"DIRECTIVE_KEYS",
	"PRAGMA_DIRECTIVES",
	"directive_value",
	"enabled_decl",
	"extract_directives",
	"find_function",
	"find_value",
	"has_directive",
	"is_backend_module",
	"is_enabled_true",
	"lookup",
	"top_level",
	"unknown_directives",
]
