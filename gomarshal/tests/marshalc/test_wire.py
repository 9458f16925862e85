# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import struct

import pytest

from gomarshal.marshalc.shapes import Capability, PrimKind, ShapeField, ShapeTable
from gomarshal.marshalc.wire import Decoder, WireError, append_uintx, decode, encode


def _varint(value):
	out = bytearray()
	append_uintx(out, value)
	return bytes(out)


@pytest.mark.parametrize(
	("value", "data"),
	[
		(0, b"\x00"),
		(1, b"\x01"),
		(127, b"\x7f"),
		(128, b"\x80\x01"),
		(300, b"\xac\x02"),
		(2**64 - 1, b"\xff" * 9 + b"\x01"),
	],
)
def test_varints(value, data):
	assert _varint(value) == data
	assert Decoder(ShapeTable(), data).read_uintx() == value


def test_varint_errors():
	with pytest.raises(WireError):
		_varint(-1)
	with pytest.raises(WireError):
		Decoder(ShapeTable(), b"\xff" * 10 + b"\x01").read_uintx()
	with pytest.raises(WireError):
		Decoder(ShapeTable(), b"\x80").read_uintx()


@pytest.fixture
def record():
	# type Record struct {
	#	ID    uint16
	#	Name  string
	#	Score int
	#	Tags  []string
	#	Attrs map[string]bool
	#	Pos   [2]float32
	#	Next  *Record
	#	Z     complex64
	#	note  string
	# }
	table = ShapeTable()
	rec = table.new_named("example.com/app", "Record")
	string = table.new_primitive(PrimKind.STRING)
	body = table.new_struct(
		[
			ShapeField("ID", table.new_primitive(PrimKind.UINT, 16)),
			ShapeField("Name", string),
			ShapeField("Score", table.new_primitive(PrimKind.INT)),
			ShapeField("Tags", table.new_slice(string)),
			ShapeField("Attrs", table.new_map(string, table.new_primitive(PrimKind.BOOL))),
			ShapeField("Pos", table.new_array(2, table.new_primitive(PrimKind.FLOAT, 32))),
			ShapeField("Next", table.new_optional(rec)),
			ShapeField("Z", table.new_primitive(PrimKind.COMPLEX, 64)),
			ShapeField("note", None, exported=False),
		]
	)
	table.backfill(rec, body)
	return table, rec


def test_record_layout(record):
	table, rec = record
	value = {
		"ID": 0x0102,
		"Name": "hé",
		"Score": -2,
		"Tags": ["a", "bc"],
		"Attrs": {"x": True},
		"Pos": [1.5, -0.25],
		"Next": {
			"ID": 7,
			"Name": "",
			"Score": 0,
			"Tags": [],
			"Attrs": {},
			"Pos": [0.0, 0.0],
			"Next": None,
			"Z": 0j,
		},
		"Z": complex(1, 2),
	}
	data = encode(table, rec, value)
	expected = b"".join(
		[
			b"\x02\x01",
			b"\x03h\xc3\xa9",
			struct.pack("<q", -2),
			b"\x02\x01a\x02bc",
			b"\x01\x01x\x01",
			struct.pack("<ff", 1.5, -0.25),
			b"\x01",
			b"\x07\x00",
			b"\x00",
			struct.pack("<q", 0),
			b"\x00",
			b"\x00",
			struct.pack("<ff", 0.0, 0.0),
			b"\x00",
			struct.pack("<ff", 0.0, 0.0),
			struct.pack("<ff", 1.0, 2.0),
		]
	)
	assert data == expected
	assert decode(table, rec, data) == value


def test_short_and_trailing_input(record):
	table, rec = record
	string = table.new_primitive(PrimKind.STRING)
	with pytest.raises(WireError):
		decode(table, string, b"\x05abc")
	with pytest.raises(WireError):
		decode(table, string, b"\x01ab")
	with pytest.raises(WireError):
		decode(table, rec, b"")


def test_values_out_of_range():
	table = ShapeTable()
	u8 = table.new_primitive(PrimKind.UINT, 8)
	with pytest.raises(WireError):
		encode(table, u8, 256)
	with pytest.raises(WireError):
		encode(table, table.new_array(2, u8), [1])
	with pytest.raises(WireError):
		encode(table, table.new_empty("chan int"), None)


def test_map_with_array_keys():
	table = ShapeTable()
	key = table.new_array(2, table.new_primitive(PrimKind.INT, 8))
	m = table.new_map(key, table.new_primitive(PrimKind.UINT, 32))
	data = encode(table, m, {(1, -1): 9})
	assert data == b"\x01\x01\xff\x09\x00\x00\x00"
	assert decode(table, m, data) == {(1, -1): 9}


def test_delegated_named_type_is_a_blob():
	# type Stamp int64 with its own MarshalBinary/UnmarshalBinary
	table = ShapeTable()
	stamp = table.new_named("example.com/app", "Stamp")
	table.backfill(stamp, table.new_primitive(PrimKind.INT, 64), frozenset({Capability.MARSHAL_BINARY, Capability.UNMARSHAL_BINARY}))
	holder = table.new_struct([ShapeField("At", stamp)])

	data = encode(table, holder, {"At": b"\x01\x02\x03"})
	assert data == b"\x03\x01\x02\x03"
	assert decode(table, holder, data) == {"At": b"\x01\x02\x03"}

	# At the top level the type is encoded structurally.
	assert encode(table, stamp, 5) == struct.pack("<q", 5)


def test_half_implemented_type_is_not_delegated():
	table = ShapeTable()
	stamp = table.new_named("example.com/app", "Stamp")
	table.backfill(stamp, table.new_primitive(PrimKind.BOOL), frozenset({Capability.MARSHAL_BINARY}))
	holder = table.new_slice(stamp)
	assert encode(table, holder, [True, False]) == b"\x02\x01\x00"
