# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import pytest

from gomarshal.errors import TypeCheckError
from gomarshal.gotypes.constexpr import ConstValue, evaluate
from gomarshal.gotypes.parser import parse_file

CONSTS = {
	(None, "Four"): ConstValue(4),
	(None, "Mask"): ConstValue(0x0F, "uint8"),
	("pkg", "Width"): ConstValue(16, "int"),
}
TYPES = {"int32": "int32", "uint8": "uint8", "uint16": "uint16", "Point": ""}


def _resolve(qualifier, name):
	if (qualifier, name) in CONSTS:
		return CONSTS[(qualifier, name)]
	if qualifier is None and name in TYPES:
		return TYPES[name]
	raise TypeCheckError(f"undefined: {name}")


def _toks(expr):
	# The length of an array type is kept as a raw token list.
	tree = parse_file("x.go", f"package x\ntype T [{expr}]int\n")
	return tree.types[0].type.length


@pytest.mark.parametrize(
	("expr", "value"),
	[
		("8", 8),
		("1_000", 1000),
		("0x10", 16),
		("0b101", 5),
		("0o17", 15),
		("017", 15),
		("1e3", 1000),
		("2 + 3 * 4", 14),
		("(2 + 3) * 4", 20),
		("1 << 4 | 1", 17),
		("7 / 2", 3),
		("-7 / 2", -3),
		("-7 % 2", -1),
		("10 &^ 3", 8),
		("2 * Four", 8),
		("pkg.Width / 2", 8),
		("'a' - 'A'", 32),
		("len(\"héllo\")", 6),
		("int32(Four) + 1", 5),
		("^uint8(0)", 255),
		("^Mask", 0xF0),
		("^0", -1),
		("3 > 2", 1),
		("1 == 2 || 2 == 2", 1),
	],
)
def test_evaluate(expr, value):
	assert evaluate(_toks(expr), _resolve).value == value


def test_iota():
	toks = _toks("iota * 10")
	assert evaluate(toks, _resolve, iota=3).value == 30
	with pytest.raises(TypeCheckError):
		evaluate(toks, _resolve)


def test_conversion_keeps_kind():
	assert evaluate(_toks("uint16(300)"), _resolve).kind == "uint16"


@pytest.mark.parametrize("expr", ["1.5", "Point(1)", "Unknown + 1", "1 / 0", "1 +"])
def test_errors(expr):
	with pytest.raises(TypeCheckError):
		evaluate(_toks(expr), _resolve)
