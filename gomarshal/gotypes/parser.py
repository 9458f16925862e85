# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Go front end: lark grammar plus the post-lexer that gives it Go's lexical
structure, and the builder from parse trees to `gomarshal.gotypes.ast`.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput, UnexpectedToken

from gomarshal.errors import GoSyntaxError
from gomarshal.gotypes.ast import (
	ArrayExpr,
	ChanExpr,
	FieldDecl,
	File,
	FuncDecl,
	FuncExpr,
	ImportSpec,
	InterfaceExpr,
	MapExpr,
	NameExpr,
	ParamDecl,
	PointerExpr,
	SliceExpr,
	StructExpr,
	Tok,
	TypeExpr,
	TypeParamDecl,
	TypeSpec,
	ValueSpec,
)

_GRAMMAR_PATH = Path(__file__).with_name("go.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_SIMPLE_ESCAPES = {
	"a": 0x07,
	"b": 0x08,
	"f": 0x0C,
	"n": 0x0A,
	"r": 0x0D,
	"t": 0x09,
	"v": 0x0B,
	"\\": 0x5C,
	"'": 0x27,
	'"': 0x22,
}


def _decode_escapes(body: str) -> bytes:
	"""Decode Go escape sequences; \\x and octal escapes produce raw bytes."""
	out = bytearray()
	i = 0
	while i < len(body):
		ch = body[i]
		if ch != "\\":
			out += ch.encode("utf-8")
			i += 1
			continue
		esc = body[i + 1] if i + 1 < len(body) else ""
		if esc in _SIMPLE_ESCAPES:
			out.append(_SIMPLE_ESCAPES[esc])
			i += 2
		elif esc == "x":
			out.append(int(body[i + 2:i + 4], 16))
			i += 4
		elif esc in "01234567" and esc:
			out.append(int(body[i + 1:i + 4], 8) & 0xFF)
			i += 4
		elif esc == "u":
			out += chr(int(body[i + 2:i + 6], 16)).encode("utf-8", "surrogatepass")
			i += 6
		elif esc == "U":
			out += chr(int(body[i + 2:i + 10], 16)).encode("utf-8", "surrogatepass")
			i += 10
		else:
			raise ValueError(f"unknown escape sequence \\{esc}")
	return bytes(out)


def unquote_string(text: str) -> str:
	"""Value of a Go string literal (interpreted or raw)."""
	if text.startswith("`"):
		return text[1:-1].replace("\r", "")
	return _decode_escapes(text[1:-1]).decode("utf-8", errors="replace")


def rune_value(text: str) -> int:
	body = text[1:-1]
	if not body.startswith("\\"):
		return ord(body)
	if body[1] in "xX01234567":
		return _decode_escapes(body)[0]
	return ord(_decode_escapes(body).decode("utf-8"))


class BodyCollapser:
	"""
	Fold brace groups into single `BODY` tokens.

	Only braces that open a struct or interface type literal carry
	declaration structure; function bodies and composite literals are folded
	so the grammar never has to look inside them.
	"""

	KEEP_AFTER = ("STRUCT", "INTERFACE")

	def process(self, stream: Iterator[Token]) -> Iterator[Token]:
		prev: str | None = None
		it = iter(stream)
		for tok in it:
			ttype = tok.type
			if ttype == "LBRACE" and prev not in self.KEEP_AFTER:
				depth = 1
				for inner in it:
					if inner.type == "LBRACE":
						depth += 1
					elif inner.type == "RBRACE":
						depth -= 1
						if depth == 0:
							break
				else:
					raise GoSyntaxError("unterminated brace group", line=tok.line, column=tok.column)
				yield Token.new_borrow_pos("BODY", "{...}", tok)
				prev = "BODY"
				continue
			yield tok
			if ttype not in ("NEWLINE", "BLOCK_COMMENT"):
				prev = ttype


class SemicolonInserter:
	"""
	Turn newlines into `SEMI` tokens the way the Go lexer does.

	A newline becomes a semicolon when the last token on the line is an
	identifier, a literal, one of break/continue/fallthrough/return, `++`,
	`--`, or a closing bracket. A block comment spanning lines counts as a
	newline. Repeated semicolons are collapsed and a final one is supplied at
	end of input.
	"""

	TERMINABLE = {
		"NAME",
		"NUMBER",
		"STRING",
		"RUNE",
		"BREAK",
		"CONTINUE",
		"FALLTHROUGH",
		"RETURN",
		"RPAR",
		"RSQB",
		"RBRACE",
		"BODY",
	}

	def process(self, stream: Iterator[Token]) -> Iterator[Token]:
		last: Token | None = None
		can_terminate = False
		for tok in stream:
			ttype = tok.type
			if ttype == "NEWLINE" or (ttype == "BLOCK_COMMENT" and "\n" in tok.value):
				if can_terminate:
					last = Token.new_borrow_pos("SEMI", "\n", tok)
					yield last
				can_terminate = False
				continue
			if ttype == "BLOCK_COMMENT":
				continue
			if ttype == "SEMI" and (last is None or last.type == "SEMI"):
				continue
			yield tok
			last = tok
			can_terminate = ttype in self.TERMINABLE or (ttype == "OP" and tok.value in ("++", "--"))
		if last is not None and last.type != "SEMI":
			yield Token.new_borrow_pos("SEMI", "\n", last)


class GoPostLex:
	# NEWLINE and BLOCK_COMMENT never reach the grammar but must survive lexing.
	always_accept = ("NEWLINE", "BLOCK_COMMENT")

	def __init__(self) -> None:
		self._bodies = BodyCollapser()
		self._semicolons = SemicolonInserter()

	def process(self, stream):
		return self._semicolons.process(self._bodies.process(stream))


_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="earley",
	lexer="basic",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
	postlex=GoPostLex(),
)


def parse_file(name: str, data: bytes | str) -> File:
	"""Parse one Go source file. Raises `GoSyntaxError`."""
	text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
	if text.startswith("\ufeff"):
		text = text[1:]
	try:
		tree = _PARSER.parse(text)
	except UnexpectedToken as err:
		tok = err.token
		raise GoSyntaxError(
			f"unexpected {tok.type} {tok.value!r}",
			file=name,
			line=getattr(tok, "line", None),
			column=getattr(tok, "column", None),
		) from err
	except UnexpectedInput as err:
		line = getattr(err, "line", None)
		raise GoSyntaxError(
			"syntax error",
			file=name,
			line=line if line is not None and line >= 0 else None,
			column=getattr(err, "column", None),
		) from err
	except GoSyntaxError as err:
		raise replace(err, file=name) from None
	try:
		return _build_file(tree, name)
	except GoSyntaxError as err:
		raise replace(err, file=name) from None


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	return node.type


def _line(node: Tree | Token) -> int:
	if isinstance(node, Token):
		return node.line or 0
	return getattr(node.meta, "line", 0) or 0


def _subtree(tree: Tree, kind: str) -> Optional[Tree]:
	return next((c for c in tree.children if isinstance(c, Tree) and _name(c) == kind), None)


def _subtrees(tree: Tree) -> List[Tree]:
	return [c for c in tree.children if isinstance(c, Tree)]


def _tokens(tree: Tree, ttype: str) -> List[Token]:
	return [c for c in tree.children if isinstance(c, Token) and c.type == ttype]


def _soup(tree: Tree) -> List[Tok]:
	return [Tok(t.type, t.value, t.line or 0) for t in tree.scan_values(lambda v: isinstance(v, Token))]


def _split_commas(toks: List[Tok]) -> List[List[Tok]]:
	parts: List[List[Tok]] = [[]]
	depth = 0
	for tok in toks:
		if tok.kind in ("LPAR", "LSQB", "LBRACE"):
			depth += 1
		elif tok.kind in ("RPAR", "RSQB", "RBRACE"):
			depth -= 1
		if tok.kind == "COMMA" and depth == 0:
			parts.append([])
			continue
		parts[-1].append(tok)
	return [p for p in parts if p]


def _build_file(tree: Tree, name: str) -> File:
	out = File(name=name, package="")
	for child in _subtrees(tree):
		kind = _name(child)
		if kind == "package_clause":
			out.package = _tokens(child, "NAME")[0].value
		elif kind == "import_decl":
			out.imports.extend(_build_import_spec(spec) for spec in _subtrees(child))
		elif kind == "type_decl":
			out.types.extend(_build_type_spec(spec) for spec in _subtrees(child))
		elif kind == "func_decl":
			out.funcs.append(_build_func_decl(child))
		elif kind == "value_decl":
			out.values.extend(_build_value_decl(child))
	return out


def _build_import_spec(tree: Tree) -> ImportSpec:
	alias: str | None = None
	path = ""
	for tok in tree.children:
		if tok.type in ("NAME", "DOT"):
			alias = tok.value
		elif tok.type == "STRING":
			path = unquote_string(tok.value)
	return ImportSpec(path=path, name=alias, line=_line(tree))


def _build_type_spec(tree: Tree) -> TypeSpec:
	name_tok = tree.children[0]
	tparams = _subtree(tree, "type_params")
	type_node = [c for c in _subtrees(tree) if _name(c) != "type_params"][-1]
	return TypeSpec(
		name=name_tok.value,
		type=_build_type(type_node),
		type_params=_build_type_params(tparams) if tparams is not None else [],
		alias=_name(tree) == "alias_def",
		line=_line(name_tok),
	)


def _build_type_params(tree: Tree) -> List[TypeParamDecl]:
	out: List[TypeParamDecl] = []
	for group in _subtrees(tree):
		constraint = _subtree(group, "constraint")
		terms = [_build_type(_subtrees(term)[0]) for term in _subtrees(constraint)] if constraint is not None else []
		for tok in _tokens(group, "NAME"):
			out.append(TypeParamDecl(name=tok.value, constraint=terms))
	return out


def _build_type(node: Tree) -> TypeExpr:
	kind = _name(node)
	line = _line(node)
	if kind == "type_name":
		names = _tokens(node, "NAME")
		args_node = _subtree(node, "type_args")
		args = [_build_type(c) for c in _subtrees(args_node)] if args_node is not None else []
		if len(names) == 2:
			return NameExpr(line, names[1].value, pkg=names[0].value, args=args)
		return NameExpr(line, names[0].value, args=args)
	if kind == "array_type":
		return ArrayExpr(line, _soup(_subtree(node, "array_len")), _build_type(_subtrees(node)[-1]))
	if kind == "slice_type":
		return SliceExpr(line, _build_type(_subtrees(node)[-1]))
	if kind == "pointer_type":
		return PointerExpr(line, _build_type(_subtrees(node)[-1]))
	if kind == "map_type":
		key, value = _subtrees(node)
		return MapExpr(line, _build_type(key), _build_type(value))
	if kind == "chan_type":
		return ChanExpr(line, _build_type(_subtrees(node)[-1]))
	if kind == "send_chan_type":
		return ChanExpr(line, _build_type(_subtrees(node)[-1]), dir="send")
	if kind == "recv_chan_type":
		return ChanExpr(line, _build_type(_subtrees(node)[-1]), dir="recv")
	if kind == "func_type":
		return _build_signature(_subtree(node, "signature"))
	if kind == "struct_type":
		fields: List[FieldDecl] = []
		for decl in _subtrees(node):
			fields.extend(_build_field_decl(decl))
		return StructExpr(line, fields)
	if kind == "interface_type":
		return InterfaceExpr(line, _soup(node)[2:-1])
	raise GoSyntaxError(f"unexpected type node {kind}", line=line)


def _build_field_decl(tree: Tree) -> List[FieldDecl]:
	tags = _tokens(tree, "STRING")
	tag = unquote_string(tags[0].value) if tags else None
	type_node = _subtrees(tree)[0]
	texpr = _build_type(type_node)
	if _name(tree) == "embedded_field":
		if _tokens(tree, "STAR"):
			texpr = PointerExpr(_line(tree), texpr)
		base = type_node
		return [FieldDecl(name=_tokens(base, "NAME")[-1].value, type=texpr, tag=tag, embedded=True, line=_line(tree))]
	return [FieldDecl(name=tok.value, type=texpr, tag=tag, line=tok.line or 0) for tok in _tokens(tree, "NAME")]


def _build_signature(tree: Tree) -> FuncExpr:
	params, variadic = _build_parameters(_subtree(tree, "parameters"))
	results: List[ParamDecl] = []
	res_node = _subtree(tree, "result")
	if res_node is not None:
		inner = _subtrees(res_node)[0]
		if _name(inner) == "parameters":
			results, _ = _build_parameters(inner)
		else:
			results = [ParamDecl(None, _build_type(inner))]
	return FuncExpr(_line(tree), params, results, variadic)


def _build_parameters(tree: Tree) -> Tuple[List[ParamDecl], bool]:
	items: List[Tuple[Optional[str], TypeExpr, bool]] = []
	for param in _subtrees(tree):
		ellipsis = bool(_tokens(param, "ELLIPSIS"))
		texpr = _build_type(_subtrees(param)[-1])
		if ellipsis:
			texpr = SliceExpr(texpr.line, texpr)
		names = _tokens(param, "NAME") if _name(param) == "named_param" else []
		items.append((names[0].value if names else None, texpr, ellipsis))
	variadic = bool(items) and items[-1][2]

	if not any(name is not None for name, _, _ in items):
		return [ParamDecl(None, texpr) for _, texpr, _ in items], variadic

	# `(a, b int, c string)`: bare identifiers take the type of the next named entry.
	out: List[ParamDecl] = []
	pending: List[str] = []
	for name, texpr, ellipsis in items:
		if name is None:
			if isinstance(texpr, NameExpr) and texpr.is_bare and not ellipsis:
				pending.append(texpr.name)
				continue
			raise GoSyntaxError("mixed named and unnamed parameters", line=_line(tree))
		out.extend(ParamDecl(p, texpr) for p in pending)
		pending = []
		out.append(ParamDecl(name, texpr))
	if pending:
		raise GoSyntaxError("mixed named and unnamed parameters", line=_line(tree))
	return out, variadic


def _build_func_decl(tree: Tree) -> FuncDecl:
	recv: ParamDecl | None = None
	recv_node = _subtree(tree, "receiver")
	if recv_node is not None:
		params, _ = _build_parameters(_subtrees(recv_node)[0])
		if len(params) != 1:
			raise GoSyntaxError("method has multiple receivers", line=_line(recv_node))
		recv = params[0]
	tparams = _subtree(tree, "type_params")
	name_tok = _tokens(tree, "NAME")[0]
	return FuncDecl(
		name=name_tok.value,
		recv=recv,
		type_params=_build_type_params(tparams) if tparams is not None else [],
		sig=_build_signature(_subtree(tree, "signature")),
		has_body=bool(_tokens(tree, "BODY")),
		line=_line(name_tok),
	)


def _build_value_decl(tree: Tree) -> List[ValueSpec]:
	kind = "const" if _tokens(tree, "CONST") else "var"
	out: List[ValueSpec] = []
	prev_type: TypeExpr | None = None
	prev_values: List[List[Tok]] = []
	for iota, spec in enumerate(_subtrees(tree)):
		init_node = _subtree(spec, "initializer")
		type_nodes = [c for c in _subtrees(spec) if _name(c) != "initializer"]
		texpr = _build_type(type_nodes[0]) if type_nodes else None
		values = _split_commas(_soup(init_node)) if init_node is not None else []
		if kind == "const":
			if not values and texpr is None:
				texpr, values = prev_type, prev_values
			else:
				prev_type, prev_values = texpr, values
		out.append(
			ValueSpec(
				kind=kind,
				names=[t.value for t in _tokens(spec, "NAME")],
				type=texpr,
				values=values,
				iota=iota,
				line=_line(spec),
			)
		)
	return out


__all__ = ["GoPostLex", "parse_file", "rune_value", "unquote_string"]
