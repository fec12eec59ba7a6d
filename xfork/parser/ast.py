# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Declaration tree for Go backend sources.

Only the top-level declaration shape is modeled. Value expressions, function
bodies and other balanced token runs are kept as verbatim source text so the
emitter can reproduce them without understanding them.

All nodes are frozen; passes build new trees with `dataclasses.replace`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple, Union


@dataclass(frozen=True)
class Located:
	line: int
	column: int

	def __str__(self) -> str:
		return f"{self.line}:{self.column}"


# ---- comments and directives ------------------------------------------------


@dataclass(frozen=True)
class Comment:
	text: str
	loc: Located
	end_line: int
	# True when code precedes the comment on its first line.
	trailing: bool = False

	@property
	def is_line(self) -> bool:
		return self.text.startswith("//")


@dataclass(frozen=True)
class CommentGroup:
	comments: Tuple[Comment, ...]

	@property
	def line(self) -> int:
		return self.comments[0].loc.line

	@property
	def end_line(self) -> int:
		return self.comments[-1].end_line

	def lines(self) -> Tuple[str, ...]:
		return tuple(c.text for c in self.comments)


@dataclass(frozen=True)
class Directive:
	"""A `key` or `key=value` command parsed from a prefixed line comment."""

	key: str
	value: Optional[str]
	loc: Located

	def __str__(self) -> str:
		if self.value is None:
			return self.key
		return f"{self.key}={self.value}"


# ---- type expressions -------------------------------------------------------


@dataclass(frozen=True)
class TypeName:
	name: str
	package: Optional[str] = None
	# Instantiation arguments as written, brackets included (`[K, V]`).
	args: Optional[str] = None


@dataclass(frozen=True)
class PointerType:
	elem: "TypeExpr"


@dataclass(frozen=True)
class SliceType:
	elem: "TypeExpr"


@dataclass(frozen=True)
class ArrayType:
	length: str
	elem: "TypeExpr"


@dataclass(frozen=True)
class MapType:
	key: "TypeExpr"
	value: "TypeExpr"


@dataclass(frozen=True)
class ChanType:
	elem: "TypeExpr"
	# "both", "send" (`chan<- T`) or "recv" (`<-chan T`).
	direction: str = "both"


@dataclass(frozen=True)
class EllipsisType:
	"""Variadic parameter type (`...T`); only valid as the last parameter."""

	elem: "TypeExpr"


@dataclass(frozen=True)
class Field:
	names: Tuple[str, ...]
	type: "TypeExpr"


@dataclass(frozen=True)
class FuncType:
	params: Tuple[Field, ...] = ()
	results: Tuple[Field, ...] = ()


@dataclass(frozen=True)
class OpaqueType:
	"""struct/interface literal types, kept verbatim."""

	kind: str
	text: str


TypeExpr = Union[TypeName, PointerType, SliceType, ArrayType, MapType, ChanType, EllipsisType, FuncType, OpaqueType]


# ---- values and bodies ------------------------------------------------------


@dataclass(frozen=True)
class Expr:
	text: str
	# Identifiers used as `X.Sel` qualifiers; candidates for package references.
	refs: FrozenSet[str] = frozenset()

	def is_bool_literal(self) -> bool:
		return self.text in ("true", "false")


@dataclass(frozen=True)
class Body:
	text: str
	refs: FrozenSet[str] = frozenset()


# ---- declarations -----------------------------------------------------------


@dataclass(frozen=True)
class ImportSpec:
	path: str
	name: Optional[str] = None
	loc: Optional[Located] = None

	@property
	def local_name(self) -> str:
		if self.name is not None:
			return self.name
		elems = self.path.split("/")
		# Module major-version suffix: ".../openssl/v2" declares package openssl.
		if len(elems) > 1 and elems[-1][:1] == "v" and elems[-1][1:].isdigit():
			return elems[-2]
		return elems[-1]

	@property
	def side_effect(self) -> bool:
		"""Blank and dot imports are kept without a named reference."""
		return self.name in ("_", ".")


@dataclass(frozen=True)
class Decl:
	name: str
	exported: bool
	loc: Optional[Located] = None
	doc: Optional[CommentGroup] = None
	directives: Tuple[Directive, ...] = ()
	# Index of the parenthesized source block (`var ( ... )`) the spec came from.
	group: Optional[int] = None
	group_doc: Optional[CommentGroup] = None


@dataclass(frozen=True)
class ConstDecl(Decl):
	type: Optional[TypeExpr] = None
	value: Optional[Expr] = None
	arity: int = 1


@dataclass(frozen=True)
class VarDecl(Decl):
	type: Optional[TypeExpr] = None
	value: Optional[Expr] = None
	arity: int = 1
	linkname: Optional[str] = None


@dataclass(frozen=True)
class TypeDecl(Decl):
	type: Optional[TypeExpr] = None
	alias: bool = False
	generic: bool = False
	type_params: Optional[str] = None


@dataclass(frozen=True)
class FuncDecl(Decl):
	type: FuncType = field(default_factory=FuncType)
	receiver: Optional[Field] = None
	type_params: Optional[str] = None
	body: Optional[Body] = None
	linkname: Optional[str] = None
	pragmas: Tuple[str, ...] = ()

	@property
	def generic(self) -> bool:
		return self.type_params is not None

	@property
	def is_method(self) -> bool:
		return self.receiver is not None


Declaration = Union[ConstDecl, VarDecl, TypeDecl, FuncDecl]


@dataclass(frozen=True)
class SourceFile:
	package: str
	imports: Tuple[ImportSpec, ...] = ()
	decls: Tuple[Declaration, ...] = ()
	# Comment groups not attached to any declaration, in source order.
	comments: Tuple[CommentGroup, ...] = ()
	filename: Optional[str] = None


__all__ = [
	"ArrayType",
	"Body",
	"ChanType",
	"Comment",
	"CommentGroup",
	"ConstDecl",
	"Decl",
	"Declaration",
	"Directive",
	"EllipsisType",
	"Expr",
	"Field",
	"FuncDecl",
	"FuncType",
	"ImportSpec",
	"Located",
	"MapType",
	"OpaqueType",
	"PointerType",
	"SliceType",
	"SourceFile",
	"TypeDecl",
	"TypeExpr",
	"TypeName",
	"VarDecl",
]
