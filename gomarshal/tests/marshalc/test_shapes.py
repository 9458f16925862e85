# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import pytest

from gomarshal.marshalc.shapes import Capability, PrimKind, ShapeField, ShapeKind, ShapeTable


def test_ids_are_distinct_and_nonzero():
	table = ShapeTable()
	a = table.new_primitive(PrimKind.INT, 32)
	b = table.new_primitive(PrimKind.INT, 32)
	assert 0 not in (a, b)
	assert a != b
	assert table.ids() == [a, b]
	assert len(table) == 2


def test_self_referential_named_shape():
	# type Node struct { Next *Node; Value string }
	table = ShapeTable()
	node = table.new_named("example.com/list", "Node")
	assert table.is_pending(node)
	with pytest.raises(ValueError):
		table.resolve(node)

	next_ptr = table.new_optional(node)
	value = table.new_primitive(PrimKind.STRING)
	body = table.new_struct([ShapeField("Next", next_ptr), ShapeField("Value", value)])
	table.backfill(node, body, frozenset({Capability.WRITE_TO}))

	assert not table.is_pending(node)
	sdef = table.get(node)
	assert sdef.inner == body
	assert sdef.implements == {Capability.WRITE_TO}
	assert sdef.qualified_name == "example.com/list.Node"
	assert table.resolve(node).kind is ShapeKind.STRUCT
	assert table.get(table.resolve(node).fields[0].shape).elem == node
	assert table.describe(body) == "struct{Next *example.com/list.Node; Value string}"


def test_backfill_twice_is_rejected():
	table = ShapeTable()
	named = table.new_named("p", "T")
	table.backfill(named, table.new_primitive(PrimKind.BOOL))
	with pytest.raises(ValueError):
		table.backfill(named, table.new_primitive(PrimKind.BOOL))
	with pytest.raises(ValueError):
		table.backfill(table.new_primitive(PrimKind.BOOL), named)


def test_resolve_follows_named_chains():
	table = ShapeTable()
	prim = table.new_primitive(PrimKind.UINT, 16)
	inner = table.new_named("p", "A")
	table.backfill(inner, prim)
	outer = table.new_named("p", "B")
	table.backfill(outer, inner)
	assert table.resolve(outer) == table.get(prim)


def test_describe():
	table = ShapeTable()
	key = table.new_primitive(PrimKind.STRING)
	val = table.new_slice(table.new_primitive(PrimKind.FLOAT, 64))
	arr = table.new_array(4, table.new_primitive(PrimKind.UINT, 8))
	hidden = ShapeField("secret", None, exported=False)
	assert table.describe(table.new_map(key, val)) == "map[string][]float64"
	assert table.describe(arr) == "[4]uint8"
	assert table.describe(table.new_struct([hidden])) == "struct{}"
	assert table.describe(table.new_empty("chan int")) == "<chan int>"
	assert table.describe(table.new_primitive(PrimKind.BOOL)) == "bool"


def test_capability_signatures():
	assert Capability.WRITE_TO.method_name == "WriteTo"
	assert Capability.WRITE_TO.params == ("io.Writer",)
	assert Capability.UNMARSHAL_BINARY.results == ("error",)
