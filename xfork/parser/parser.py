# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import codecs
import re
import threading
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from xfork.config import DEFAULT_CONVENTIONS, Conventions
from xfork.errors import ParseError
from .ast import (
	ArrayType,
	Body,
	ChanType,
	CommentGroup,
	ConstDecl,
	Declaration,
	EllipsisType,
	Expr,
	Field,
	FuncDecl,
	FuncType,
	ImportSpec,
	Located,
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
from .comments import CommentIndex, Span, comments_from_tokens, parse_directives, parse_pragmas

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()


class GoTerminatorInserter:
	"""
	Go automatic semicolon insertion.

	A newline becomes TERMINATOR when the last token on the line could end a
	statement. Comments are collected for attachment and never reach the parser;
	a block comment spanning lines counts as a newline.
	"""

	always_accept = ("NEWLINE", "SEMI", "LINE_COMMENT", "BLOCK_COMMENT")

	TERMINABLE = {
		"NAME",
		"NUMBER",
		"STRING",
		"RAW_STRING",
		"CHAR",
		"RPAR",
		"RSQB",
		"RBRACE",
	}

	TERMINABLE_OPS = {"++", "--"}

	def __init__(self) -> None:
		self._reset()

	def _reset(self) -> None:
		self.can_terminate = False
		self.last: Optional[Token] = None
		self.comments: List[Token] = []

	def process(self, stream):
		self._reset()
		for token in stream:
			ttype = token.type
			if ttype in ("LINE_COMMENT", "BLOCK_COMMENT"):
				self.comments.append(token)
				if ttype == "BLOCK_COMMENT" and "\n" in token.value and self.can_terminate:
					yield Token.new_borrow_pos("TERMINATOR", token.value, token)
					self.can_terminate = False
				continue
			if ttype == "NEWLINE":
				if self.can_terminate:
					yield Token.new_borrow_pos("TERMINATOR", token.value, token)
					self.can_terminate = False
				continue
			if ttype == "SEMI":
				yield Token.new_borrow_pos("TERMINATOR", token.value, token)
				self.can_terminate = False
				continue
			yield token
			self.last = token
			self.can_terminate = self._is_terminable(token)
		if self.can_terminate and self.last is not None:
			yield Token.new_borrow_pos("TERMINATOR", "", self.last)
			self.can_terminate = False

	def _is_terminable(self, token: Token) -> bool:
		if token.type == "OP":
			return token.value in self.TERMINABLE_OPS
		return token.type in self.TERMINABLE


_POSTLEX = GoTerminatorInserter()
_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
	postlex=_POSTLEX,
)
# The post-lexer keeps per-parse state (collected comments).
_PARSE_LOCK = threading.Lock()

_TYPE_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="type_expr",
	propagate_positions=True,
	maybe_placeholders=False,
)

# `X.Sel` where X is not itself a selector; X may name an imported package.
_QUALIFIER_RE = re.compile(r"(?<![\w.])([^\W\d]\w*)\s*\.\s*[^\W\d]")
_LITERAL_RE = re.compile(r'"(?:\\.|[^"\\\n])*"|`[^`]*`|\'(?:\\[^\n]+?|[^\'\\\n])\'|//[^\n]*|/\*[\s\S]*?\*/')
# `[T any]`, `[K comparable, V any]`, `[T ~int]`: a type parameter list, not an array length.
_TYPE_PARAMS_RE = re.compile(r"^\s*[^\W\d]\w*(\s*,\s*[^\W\d]\w*)*\s+(~|[^\W\d])")


def parse_source(
	source: str,
	filename: Optional[str] = None,
	conventions: Conventions = DEFAULT_CONVENTIONS,
) -> SourceFile:
	with _PARSE_LOCK:
		try:
			tree = _PARSER.parse(source)
		except UnexpectedInput as err:
			raise _parse_error(err, filename) from err
		tokens = list(_POSTLEX.comments)
	ctx = _BuildContext(source, filename, conventions, CommentIndex(comments_from_tokens(tokens, source)))
	return _build_file(tree, ctx)


def load(path: Path, conventions: Conventions = DEFAULT_CONVENTIONS) -> SourceFile:
	"""Read and parse one Go source file."""
	try:
		source = path.read_text(encoding="utf-8")
	except OSError as err:
		raise ParseError(message=f"cannot read file: {err.strerror or err}", filename=str(path)) from err
	except UnicodeDecodeError as err:
		raise ParseError(
			message=f"invalid UTF-8 at byte offset {err.start}",
			filename=str(path),
		) from err
	return parse_source(source, filename=str(path), conventions=conventions)


def parse_type(text: str, filename: Optional[str] = None, loc: Optional[Located] = None) -> TypeExpr:
	"""
	Parse a standalone type expression such as `io.Reader` or `func([]byte) error`.

	Used for directive values. No terminator insertion is performed, so the
	text must fit on one line.
	"""
	try:
		tree = _TYPE_PARSER.parse(text)
	except UnexpectedInput as err:
		raise ParseError(message=f"invalid type expression {text!r}", filename=filename, loc=loc) from err
	ctx = _BuildContext(text, filename, DEFAULT_CONVENTIONS, CommentIndex(()))
	return _build_type(tree, ctx)


def _parse_error(err: UnexpectedInput, filename: Optional[str]) -> ParseError:
	if isinstance(err, UnexpectedToken):
		message = f"unexpected {_describe_token(err.token)}"
	elif isinstance(err, UnexpectedCharacters):
		message = f"unexpected character {err.char!r}"
	elif isinstance(err, UnexpectedEOF):
		message = "unexpected end of file"
	else:
		message = "syntax error"
	line = getattr(err, "line", -1)
	column = getattr(err, "column", -1)
	loc = Located(line=line, column=column) if isinstance(line, int) and line > 0 else None
	return ParseError(message=message, filename=filename, loc=loc)


def _describe_token(tok: Token) -> str:
	if tok.type == "$END":
		return "end of file"
	if tok.type == "TERMINATOR":
		return "newline" if tok.value in ("\n", "") else repr(str(tok.value))
	return repr(str(tok.value))


class _BuildContext:
	def __init__(self, source: str, filename: Optional[str], conventions: Conventions, comments: CommentIndex) -> None:
		self.source = source
		self.filename = filename
		self.conventions = conventions
		self.comments = comments
		self.next_group = 0

	def text(self, node: Tree) -> str:
		return self.source[node.meta.start_pos : node.meta.end_pos]

	def error(self, message: str, loc: Optional[Located]) -> ParseError:
		return ParseError(message=message, filename=self.filename, loc=loc)


def _name(node: Tree) -> str:
	return node.data if isinstance(node.data, str) else node.data.value


def _loc(node: object) -> Located:
	if isinstance(node, Token):
		return Located(line=node.line, column=node.column)
	meta = getattr(node, "meta", None)
	return Located(line=getattr(meta, "line", 0), column=getattr(meta, "column", 0))


def _trees(node: Tree) -> List[Tree]:
	return [c for c in node.children if isinstance(c, Tree)]


def _tokens(node: Tree, ttype: str) -> List[Token]:
	return [c for c in node.children if isinstance(c, Token) and c.type == ttype]


def _span(node: Tree) -> Span:
	return (node.meta.line, node.meta.column), (node.meta.end_line, node.meta.end_column)


def _refs(text: str) -> FrozenSet[str]:
	stripped = _LITERAL_RE.sub(" ", text)
	return frozenset(_QUALIFIER_RE.findall(stripped))


def _unquote(tok: Token) -> str:
	if tok.type == "RAW_STRING":
		return tok.value[1:-1]
	return codecs.decode(tok.value[1:-1], "unicode_escape")


# ---- file -------------------------------------------------------------------


def _build_file(tree: Tree, ctx: _BuildContext) -> SourceFile:
	package = ""
	imports: List[ImportSpec] = []
	decls: List[Declaration] = []
	spans: List[Span] = []
	for child in _trees(tree):
		kind = _name(child)
		if kind == "package_clause":
			package = _tokens(child, "NAME")[0].value
		elif kind == "import_decl":
			imports.extend(_build_import(spec, ctx) for spec in _trees(child))
		elif kind in ("const_decl", "var_decl", "type_decl"):
			spans.append(_span(child))
			decls.extend(_build_gen_decl(child, ctx))
		elif kind == "func_decl":
			spans.append(_span(child))
			decls.append(_build_func(child, ctx))
		else:
			raise ctx.error(f"unexpected top-level node {kind}", _loc(child))
	return SourceFile(
		package=package,
		imports=tuple(imports),
		decls=tuple(decls),
		comments=ctx.comments.detached(spans),
		filename=ctx.filename,
	)


def _build_import(node: Tree, ctx: _BuildContext) -> ImportSpec:
	name: Optional[str] = None
	path_tok: Optional[Token] = None
	for child in node.children:
		if isinstance(child, Tree) and _name(child) == "import_alias":
			alias = child.children[0]
			name = "." if isinstance(alias, Tree) else alias.value
		elif isinstance(child, Token) and child.type in ("STRING", "RAW_STRING"):
			path_tok = child
	if path_tok is None:
		raise ctx.error("import without path", _loc(node))
	return ImportSpec(path=_unquote(path_tok), name=name, loc=_loc(node))


# ---- const / var / type -----------------------------------------------------


def _build_gen_decl(node: Tree, ctx: _BuildContext) -> List[Declaration]:
	kind = _name(node)
	specs = _trees(node)
	keyword = kind.split("_", 1)[0]
	grouped = ctx.text(node)[len(keyword) :].lstrip().startswith("(")
	group: Optional[int] = None
	group_doc: Optional[CommentGroup] = None
	if grouped:
		group = ctx.next_group
		ctx.next_group += 1
		group_doc = ctx.comments.doc_for(node.meta.line)
	out: List[Declaration] = []
	for spec in specs:
		if grouped:
			doc = ctx.comments.doc_for(spec.meta.line)
			docs = (group_doc, doc)
		else:
			doc = ctx.comments.doc_for(node.meta.line)
			docs = (doc,)
		trailing = ctx.comments.trailing_for(spec.meta.end_line, spec.meta.end_column)
		directives = parse_directives(
			docs + (trailing,),
			ctx.conventions.directive_prefix,
			filename=ctx.filename,
		)
		if kind == "type_decl":
			out.append(_build_type_spec(spec, ctx, doc, directives, group, group_doc))
		else:
			out.extend(_build_value_spec(spec, ctx, kind == "const_decl", doc, directives, group, group_doc))
	return out


def _build_value_spec(
	node: Tree,
	ctx: _BuildContext,
	const: bool,
	doc: Optional[CommentGroup],
	directives,
	group: Optional[int],
	group_doc: Optional[CommentGroup],
) -> List[Declaration]:
	names: List[Token] = []
	type_: Optional[TypeExpr] = None
	values: List[Expr] = []
	for child in _trees(node):
		kind = _name(child)
		if kind == "name_list":
			names = _tokens(child, "NAME")
		elif kind == "expr_list":
			values = [Expr(text=ctx.text(e), refs=_refs(ctx.text(e))) for e in _trees(child)]
		else:
			type_ = _build_type(child, ctx)
	if values and len(values) != len(names):
		raise ctx.error(
			f"assignment count mismatch: {len(names)} names, {len(values)} values",
			_loc(names[0]),
		)
	linkname, _ = parse_pragmas(doc)
	out: List[Declaration] = []
	for idx, tok in enumerate(names):
		value = values[idx] if values else None
		common = dict(
			name=tok.value,
			exported=tok.value[:1].isupper(),
			loc=_loc(tok),
			doc=doc,
			directives=directives,
			group=group,
			group_doc=group_doc,
			type=type_,
			value=value,
			arity=len(names),
		)
		if const:
			out.append(ConstDecl(**common))
		else:
			out.append(VarDecl(linkname=linkname, **common))
	return out


def _build_type_spec(
	node: Tree,
	ctx: _BuildContext,
	doc: Optional[CommentGroup],
	directives,
	group: Optional[int],
	group_doc: Optional[CommentGroup],
) -> TypeDecl:
	name_tok = _tokens(node, "NAME")[0]
	alias = False
	type_node: Optional[Tree] = None
	for child in _trees(node):
		if _name(child) == "alias_mark":
			alias = True
		else:
			type_node = child
	if type_node is None:
		raise ctx.error(f"type {name_tok.value} has no underlying type", _loc(name_tok))
	type_params: Optional[str] = None
	if _name(type_node) == "array_type":
		length = _bracket_text(_trees(type_node)[0], ctx)
		if _TYPE_PARAMS_RE.match(length) and not alias:
			type_params = f"[{length}]"
	if type_params is not None:
		type_ = _build_type(_trees(type_node)[1], ctx)
	else:
		type_ = _build_type(type_node, ctx)
	return TypeDecl(
		name=name_tok.value,
		exported=name_tok.value[:1].isupper(),
		loc=_loc(name_tok),
		doc=doc,
		directives=directives,
		group=group,
		group_doc=group_doc,
		type=type_,
		alias=alias,
		generic=type_params is not None,
		type_params=type_params,
	)


# ---- func -------------------------------------------------------------------


def _build_func(node: Tree, ctx: _BuildContext) -> FuncDecl:
	doc = ctx.comments.doc_for(node.meta.line)
	receiver: Optional[Field] = None
	type_params: Optional[str] = None
	sig = FuncType()
	body = None
	name_tok: Optional[Token] = None
	for child in node.children:
		if isinstance(child, Token):
			if child.type == "NAME":
				name_tok = child
			continue
		kind = _name(child)
		if kind == "receiver":
			fields = _build_fields(child.children[0], ctx)
			if len(fields) != 1 or len(fields[0].names) > 1:
				raise ctx.error("method has multiple receivers", _loc(child))
			receiver = fields[0]
		elif kind == "type_params":
			type_params = ctx.text(child)
		elif kind == "signature":
			sig = _build_signature(child, ctx)
		elif kind == "body":
			text = ctx.text(child)
			body = Body(text=text, refs=_refs(text))
	if name_tok is None:
		raise ctx.error("function without name", _loc(node))
	# The line comment sits after the signature for body-less funcs.
	end = node.meta
	trailing = ctx.comments.trailing_for(end.end_line, end.end_column) if body is None else None
	directives = parse_directives((doc, trailing), ctx.conventions.directive_prefix, filename=ctx.filename)
	linkname, pragmas = parse_pragmas(doc)
	return FuncDecl(
		name=name_tok.value,
		exported=name_tok.value[:1].isupper(),
		loc=_loc(name_tok),
		doc=doc,
		directives=directives,
		type=sig,
		receiver=receiver,
		type_params=type_params,
		body=body,
		linkname=linkname,
		pragmas=pragmas,
	)


def _build_signature(node: Tree, ctx: _BuildContext) -> FuncType:
	params: Tuple[Field, ...] = ()
	results: Tuple[Field, ...] = ()
	for child in _trees(node):
		kind = _name(child)
		if kind == "parameters":
			params = _build_fields(child, ctx)
		elif kind == "result":
			inner = child.children[0]
			if isinstance(inner, Tree) and _name(inner) == "parameters":
				results = _build_fields(inner, ctx)
			else:
				results = (Field(names=(), type=_build_type(inner, ctx)),)
	return FuncType(params=params, results=results)


def _build_fields(node: Tree, ctx: _BuildContext) -> Tuple[Field, ...]:
	"""
	Apply Go's parameter grouping: in `(a, b int, c string)` the bare `a`
	is a name sharing the next item's type. Either every item is named or
	none is.
	"""
	items: List[Tuple[Optional[Token], TypeExpr, Tree]] = []
	for item in _trees(node):
		name_tok: Optional[Token] = None
		type_: Optional[TypeExpr] = None
		for child in item.children:
			if isinstance(child, Token) and child.type == "NAME":
				name_tok = child
			elif isinstance(child, Tree) and _name(child) == "variadic":
				type_ = EllipsisType(elem=_build_type(child.children[0], ctx))
			elif isinstance(child, Tree):
				type_ = _build_type(child, ctx)
		assert type_ is not None
		items.append((name_tok, type_, item))
	if not any(name is not None for name, _, _ in items):
		return tuple(Field(names=(), type=t) for _, t, _ in items)
	fields: List[Field] = []
	pending: List[str] = []
	for name_tok, type_, item in items:
		if name_tok is None:
			if isinstance(type_, TypeName) and type_.package is None:
				pending.append(type_.name)
				continue
			raise ctx.error("mixed named and unnamed parameters", _loc(item))
		fields.append(Field(names=tuple(pending + [name_tok.value]), type=type_))
		pending = []
	if pending:
		raise ctx.error("mixed named and unnamed parameters", _loc(node))
	return tuple(fields)


# ---- types ------------------------------------------------------------------


_CHAN_DIRECTIONS = {"chan_type": "both", "send_chan_type": "send", "recv_chan_type": "recv"}


def _bracket_text(node: Tree, ctx: _BuildContext) -> str:
	return ctx.text(node).strip()[1:-1].strip()


def _build_type(node: object, ctx: _BuildContext) -> TypeExpr:
	assert isinstance(node, Tree)
	kind = _name(node)
	if kind == "type_name":
		names = [t.value for t in _tokens(node, "NAME")]
		args = None
		for child in _trees(node):
			args = f"[{_bracket_text(child, ctx)}]"
		if len(names) == 2:
			return TypeName(name=names[1], package=names[0], args=args)
		return TypeName(name=names[0], args=args)
	if kind == "pointer_type":
		return PointerType(elem=_build_type(node.children[0], ctx))
	if kind == "slice_type":
		return SliceType(elem=_build_type(_trees(node)[0], ctx))
	if kind == "array_type":
		length_node, elem = _trees(node)
		return ArrayType(length=_bracket_text(length_node, ctx), elem=_build_type(elem, ctx))
	if kind == "map_type":
		key, value = _trees(node)
		return MapType(key=_build_type(key, ctx), value=_build_type(value, ctx))
	if kind in _CHAN_DIRECTIONS:
		return ChanType(elem=_build_type(_trees(node)[0], ctx), direction=_CHAN_DIRECTIONS[kind])
	if kind == "func_type":
		return _build_signature(_trees(node)[0], ctx)
	if kind in ("struct_type", "interface_type"):
		return OpaqueType(kind=kind.split("_", 1)[0], text=ctx.text(node))
	raise ctx.error(f"unsupported type syntax {kind}", _loc(node))


__all__ = [
	"GoTerminatorInserter",
	"load",
	"parse_source",
	"parse_type",
]
