# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Integer constant expressions.

Array lengths and constant initialisers arrive from the parser as token
lists. This evaluates the integer subset of Go constant expressions over them
with a Pratt parser: literals, runes, `iota`, (qualified) constant names,
unary and binary operators at Go precedence, parentheses, conversions to
integer types and `len` of a string literal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from gomarshal.errors import TypeCheckError
from gomarshal.gotypes.ast import Tok
from gomarshal.gotypes.parser import rune_value, unquote_string

_UNSIGNED_WIDTH = {
	"uint8": 8,
	"byte": 8,
	"uint16": 16,
	"uint32": 32,
	"uint64": 64,
	"uint": 64,
	"uintptr": 64,
}

_INTEGER_KINDS = set(_UNSIGNED_WIDTH) | {"int", "int8", "int16", "int32", "rune", "int64"}

_BINARY_PRECEDENCE = {
	"||": 1,
	"&&": 2,
	"==": 3,
	"!=": 3,
	"<": 3,
	"<=": 3,
	">": 3,
	">=": 3,
	"+": 4,
	"-": 4,
	"|": 4,
	"^": 4,
	"*": 5,
	"/": 5,
	"%": 5,
	"<<": 5,
	">>": 5,
	"&": 5,
	"&^": 5,
}


@dataclass(frozen=True)
class ConstValue:
	"""An integer constant; `kind` is the basic type name once typed."""

	value: int
	kind: Optional[str] = None


# resolve(qualifier, name) returns the constant, or the basic type name (""
# for non-basic types) when the name denotes a type.
Resolver = Callable[[Optional[str], str], Union[ConstValue, str]]


def _trunc_div(a: int, b: int) -> int:
	q = abs(a) // abs(b)
	return q if (a >= 0) == (b >= 0) else -q


class _Evaluator:
	def __init__(self, toks: List[Tok], resolve: Resolver, iota: Optional[int]) -> None:
		self.toks = toks
		self.pos = 0
		self.resolve = resolve
		self.iota = iota

	def fail(self, message: str) -> TypeCheckError:
		line = self.toks[min(self.pos, len(self.toks) - 1)].line if self.toks else 0
		return TypeCheckError(f"{message} (line {line})")

	def peek(self) -> Optional[Tok]:
		return self.toks[self.pos] if self.pos < len(self.toks) else None

	def next(self) -> Tok:
		tok = self.peek()
		if tok is None:
			raise self.fail("unexpected end of constant expression")
		self.pos += 1
		return tok

	def expect(self, kind: str) -> Tok:
		tok = self.next()
		if tok.kind != kind:
			raise self.fail(f"expected {kind}, found {tok.value!r}")
		return tok

	def binary_op(self) -> Optional[str]:
		tok = self.peek()
		if tok is None or tok.kind not in ("OP", "SYM", "STAR", "PIPE"):
			return None
		return tok.value if tok.value in _BINARY_PRECEDENCE else None

	def expression(self, min_prec: int = 1) -> ConstValue:
		left = self.unary()
		while True:
			op = self.binary_op()
			if op is None or _BINARY_PRECEDENCE[op] < min_prec:
				return left
			self.pos += 1
			right = self.expression(_BINARY_PRECEDENCE[op] + 1)
			left = self.apply(op, left, right)

	def apply(self, op: str, a: ConstValue, b: ConstValue) -> ConstValue:
		kind = a.kind or b.kind
		x, y = a.value, b.value
		if op in ("/", "%") and y == 0:
			raise self.fail("division by zero")
		if op in ("<<", ">>"):
			if y < 0:
				raise self.fail("negative shift count")
			return ConstValue(x << y if op == "<<" else x >> y, a.kind)
		if op in ("==", "!=", "<", "<=", ">", ">=", "&&", "||"):
			result = {
				"==": x == y,
				"!=": x != y,
				"<": x < y,
				"<=": x <= y,
				">": x > y,
				">=": x >= y,
				"&&": bool(x) and bool(y),
				"||": bool(x) or bool(y),
			}[op]
			return ConstValue(int(result))
		if op == "/":
			return ConstValue(_trunc_div(x, y), kind)
		if op == "%":
			return ConstValue(x - y * _trunc_div(x, y), kind)
		value = {
			"+": lambda: x + y,
			"-": lambda: x - y,
			"*": lambda: x * y,
			"|": lambda: x | y,
			"^": lambda: x ^ y,
			"&": lambda: x & y,
			"&^": lambda: x & ~y,
		}[op]()
		return ConstValue(value, kind)

	def unary(self) -> ConstValue:
		tok = self.peek()
		if tok is not None and tok.kind == "SYM" and tok.value in ("+", "-", "!", "^"):
			self.pos += 1
			operand = self.unary()
			if tok.value == "-":
				return ConstValue(-operand.value, operand.kind)
			if tok.value == "!":
				return ConstValue(int(not operand.value))
			if tok.value == "^":
				width = _UNSIGNED_WIDTH.get(operand.kind or "")
				if width is not None:
					return ConstValue(((1 << width) - 1) ^ operand.value, operand.kind)
				return ConstValue(-operand.value - 1, operand.kind)
			return operand
		return self.primary()

	def primary(self) -> ConstValue:
		tok = self.next()
		if tok.kind == "NUMBER":
			return ConstValue(self.number(tok))
		if tok.kind == "RUNE":
			return ConstValue(rune_value(tok.value))
		if tok.kind == "LPAR":
			inner = self.expression()
			self.expect("RPAR")
			return inner
		if tok.kind == "NAME":
			return self.name(tok)
		raise self.fail(f"unsupported token {tok.value!r} in constant expression")

	def number(self, tok: Tok) -> int:
		text = tok.value.replace("_", "")
		try:
			if text[:2] in ("0x", "0X", "0b", "0B", "0o", "0O"):
				return int(text, 0)
			if len(text) > 1 and text[0] == "0" and text.isdigit():
				return int(text, 8)
			return int(text, 10)
		except ValueError:
			pass
		try:
			value = float(text)
		except ValueError:
			raise self.fail(f"malformed number {tok.value!r}") from None
		if not value.is_integer():
			raise self.fail(f"constant {tok.value} is not an integer")
		return int(value)

	def name(self, tok: Tok) -> ConstValue:
		qualifier: Optional[str] = None
		name = tok.value
		nxt = self.peek()
		if nxt is not None and nxt.kind == "DOT":
			self.pos += 1
			qualifier, name = name, self.expect("NAME").value
		if qualifier is None and name == "iota":
			if self.iota is None:
				raise self.fail("cannot use iota outside constant declaration")
			return ConstValue(self.iota)
		if qualifier is None and name == "len":
			return self.builtin_len()
		resolved = self.resolve(qualifier, name)
		if isinstance(resolved, ConstValue):
			return resolved
		# A type name: must be a conversion.
		self.expect("LPAR")
		inner = self.expression()
		self.expect("RPAR")
		if resolved not in _INTEGER_KINDS:
			raise self.fail(f"cannot convert constant to {name}")
		return ConstValue(inner.value, resolved)

	def builtin_len(self) -> ConstValue:
		self.expect("LPAR")
		tok = self.next()
		if tok.kind != "STRING":
			raise self.fail("len of a non-constant operand")
		self.expect("RPAR")
		return ConstValue(len(unquote_string(tok.value).encode("utf-8")), "int")


def evaluate(toks: List[Tok], resolve: Resolver, *, iota: Optional[int] = None) -> ConstValue:
	"""Evaluate the integer constant expression in `toks`. Raises `TypeCheckError`."""
	if not toks:
		raise TypeCheckError("missing constant expression")
	ev = _Evaluator(toks, resolve, iota)
	value = ev.expression()
	if ev.peek() is not None:
		raise ev.fail(f"unexpected {ev.peek().value!r} in constant expression")
	return value


__all__ = ["ConstValue", "Resolver", "evaluate"]
