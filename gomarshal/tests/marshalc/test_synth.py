# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import pytest

from gomarshal.errors import UnsupportedShapeError
from gomarshal.gotypes.checker import check_package, guess_package_name
from gomarshal.gotypes.parser import parse_file
from gomarshal.gotypes.types import Package
from gomarshal.marshalc.synth import ImportSet, MethodSynthesizer, mangle
from gomarshal.marshalc.walker import TypeGraphWalker
from gomarshal.options import MethodNames

DEP = """package dep

type inner struct {
	A uint8
}

type Outer struct {
	In inner
	P  *inner
	L  []inner
	M  map[string]inner
}

type node struct {
	Next *node
}

type List struct {
	Head *node
}

type ID int32

type Keyed struct {
	M map[ID]inner
}
"""

APP = """package app

import "example.com/dep"

type Node struct {
	Next  *Node
	Kids  []Node
	Attrs map[string]uint
}

type Stamp int64

func (s Stamp) MarshalBinary() ([]byte, error) { return nil, nil }

func (s *Stamp) UnmarshalBinary(b []byte) error { return nil }

type Event struct {
	At    Stamp
	Level float64
	C     complex64
}

type Holder struct {
	O dep.Outer
}

type Chain struct {
	L dep.List
}

type Bad struct {
	Name string
	C    chan int
}

type Tagged struct {
	X dep.ID
}

type InSlice struct {
	S []chan int
}

type InMap struct {
	M map[string]chan int
}

type InPointer struct {
	P *chan int
}
"""


def _checked(path, src, packages):
	def importer(p):
		if p in packages:
			return packages[p]
		return Package(p, guess_package_name(p), opaque=True)

	return check_package(path, [parse_file(path + "/x.go", src)], importer)


@pytest.fixture(scope="module")
def app():
	dep = _checked("example.com/dep", DEP, {})
	return _checked("example.com/app", APP, {"example.com/dep": dep})


def _synth(app, name, **kwargs):
	walker = TypeGraphWalker()
	synth = MethodSynthesizer(walker.table, app.path, **kwargs)
	sid = walker.classify(app.scope.lookup(name).type)
	method_set = synth.request(sid, MethodNames())
	return synth, method_set


def test_mangle():
	assert mangle("Point") == "Point"
	assert mangle("dep.Outer") == "dep_Outer"
	assert mangle("my_type") == "my__type"


def test_import_set_aliases_clashing_names():
	imports = ImportSet("example.com/app")
	a = Package("example.com/a/util", "util")
	b = Package("example.com/b/util", "util")
	io_pkg = Package("example.com/io", "io")
	assert imports.qualifier(a) == "util"
	assert imports.qualifier(b) == "util2"
	assert imports.qualifier(a) == "util"
	assert imports.qualifier(io_pkg) == "io2"
	assert imports.specs() == [
		("example.com/a/util", None),
		("example.com/b/util", "util2"),
		("example.com/io", "io2"),
	]


def test_recursive_type_routines(app):
	synth, method_set = _synth(app, "Node")
	assert method_set.encode == "_marshal_Node"
	assert method_set.decode == "_unmarshal_Node"
	assert method_set.methods == ("AppendBinary", "MarshalBinary", "WriteTo", "UnmarshalBinary", "ReadFrom")
	marshal, unmarshal = synth.routines()
	assert marshal == """func _marshal_Node[W byteio.StickyWriter](t *Node, w W) error {
	w.WriteBool(t.Next != nil)
	if t.Next != nil {
		if err := _marshal_Node(t.Next, w); err != nil {
			return err
		}
	}
	w.WriteUintX(uint64(len(t.Kids)))
	for n0 := range t.Kids {
		if err := _marshal_Node(&t.Kids[n0], w); err != nil {
			return err
		}
	}
	w.WriteUintX(uint64(len(t.Attrs)))
	for k0, v0 := range t.Attrs {
		w.WriteStringX(k0)
		w.WriteUint64(uint64(v0))
	}

	return nil
}"""
	assert unmarshal == """func _unmarshal_Node[R byteio.StickyReader](t *Node, r R) error {
	if r.ReadBool() {
		t.Next = new(Node)
		if err := _unmarshal_Node(t.Next, r); err != nil {
			return err
		}
	} else {
		t.Next = nil
	}
	t.Kids = make([]Node, r.ReadUintX())
	for n0 := range t.Kids {
		if err := _unmarshal_Node(&t.Kids[n0], r); err != nil {
			return err
		}
	}
	t.Attrs = make(map[string]uint)
	for range r.ReadUintX() {
		var k0 string
		var v0 uint
		k0 = r.ReadStringX()
		v0 = uint(r.ReadUint64())
		t.Attrs[k0] = v0
	}

	return nil
}"""
	assert synth.helpers() == []


def test_requested_named_primitive(app):
	synth, _ = _synth(app, "Stamp")
	marshal, unmarshal = synth.routines()
	assert "\tw.WriteInt64(int64(*t))\n" in marshal
	assert "\t*t = Stamp(r.ReadInt64())\n" in unmarshal
	assert synth.helpers() == []


def test_self_marshalling_field_is_delegated(app):
	synth, _ = _synth(app, "Event")
	marshal, unmarshal = synth.routines()
	assert "if err := _marshal_binary(w, &t.At); err != nil {" in marshal
	assert "\tw.WriteFloat64(t.Level)\n" in marshal
	assert "\tw.WriteFloat32(real(t.C))\n\tw.WriteFloat32(imag(t.C))\n" in marshal
	assert "if err := _unmarshal_binary(r, &t.At); err != nil {" in unmarshal
	assert "\tt.C = complex(r.ReadFloat32(), r.ReadFloat32())\n" in unmarshal
	helpers = synth.helpers()
	assert len(helpers) == 2
	assert helpers[0].startswith("func _marshal_binary[W byteio.StickyWriter]")
	assert helpers[1].startswith("func _unmarshal_binary[R byteio.StickyReader]")


def test_inaccessible_types_are_inlined(app):
	synth, _ = _synth(app, "Holder")
	routines = synth.routines()
	assert [r.split("[", 1)[0] for r in routines] == [
		"func _marshal_Holder",
		"func _unmarshal_Holder",
		"func _marshal_dep_Outer",
		"func _unmarshal_dep_Outer",
	]
	assert "if err := _marshal_dep_Outer(&t.O, w); err != nil {" in routines[0]
	assert routines[2].startswith("func _marshal_dep_Outer[W byteio.StickyWriter](t *dep.Outer, w W) error {")
	marshal_outer, unmarshal_outer = routines[2], routines[3]
	assert "\tw.WriteUint8(t.In.A)\n" in marshal_outer
	assert "\t\tw.WriteUint8(t.P.A)\n" in marshal_outer
	assert "\t_new(&t.P)\n" in unmarshal_outer
	assert "\t_make_slice(&t.L, r.ReadUintX())\n" in unmarshal_outer
	assert "\t_make_map(&t.M)\n" in unmarshal_outer
	assert "\tk0, v0 := _map_key_value(t.M)\n" in unmarshal_outer
	assert "\tv0.A = r.ReadUint8()\n" in unmarshal_outer
	assert [h.split("[", 1)[0] for h in synth.helpers()] == [
		"func _new",
		"func _make_slice",
		"func _make_map",
		"func _map_key_value",
	]
	assert synth.imports.specs() == [("example.com/dep", None)]


def test_recursive_inaccessible_type_is_rejected(app):
	synth, _ = _synth(app, "Chain")
	with pytest.raises(UnsupportedShapeError) as excinfo:
		synth.routines()
	assert "example.com/dep.node" in excinfo.value.message


def test_unsupported_field(app):
	synth, _ = _synth(app, "Bad")
	with pytest.raises(UnsupportedShapeError) as excinfo:
		synth.routines()
	assert excinfo.value.message == "cannot marshal chan int at Bad.C"
	assert excinfo.value.type_name == "example.com/app.Bad"


def test_decode_only(app):
	synth, method_set = _synth(app, "Node", encode=False)
	assert method_set.encode is None
	(routine,) = synth.routines()
	assert routine.startswith("func _unmarshal_Node[")


def test_wrappers(app):
	synth, method_set = _synth(app, "Node")
	names = MethodNames(write_to="", append_binary="Append", read_from="")
	wrappers = synth.wrappers(method_set, names)
	assert len(wrappers) == 3
	assert wrappers[0] == """// Append appends the binary form of the receiver to b.
func (t *Node) Append(b []byte) ([]byte, error) {
	w := byteio.MemLittleEndian(b)
	err := _marshal_Node(t, &w)

	return w, err
}"""
	assert wrappers[1].startswith("// MarshalBinary implements the encoding.BinaryMarshaler interface.\nfunc (t *Node) MarshalBinary() ([]byte, error) {")
	assert wrappers[2] == """// UnmarshalBinary implements the encoding.BinaryUnmarshaler interface.
func (t *Node) UnmarshalBinary(b []byte) error {
	eb := byteio.MemLittleEndian(b)

	return _unmarshal_Node(t, &eb)
}"""


@pytest.mark.parametrize(
	("name", "where"),
	[
		("InSlice", "InSlice.S[]"),
		("InMap", "InMap.M[]"),
		("InPointer", "InPointer.P.*"),
	],
)
@pytest.mark.parametrize("encode", [True, False])
def test_unsupported_shape_inside_block(app, name, where, encode):
	synth, _ = _synth(app, name, encode=encode, decode=not encode)
	with pytest.raises(UnsupportedShapeError) as excinfo:
		synth.routines()
	verb = "marshal" if encode else "unmarshal"
	assert excinfo.value.message == f"cannot {verb} chan int at {where}"


def test_encode_only_foreign_primitive_adds_no_import(app):
	synth, _ = _synth(app, "Tagged", decode=False)
	(marshal,) = synth.routines()
	assert "\tw.WriteInt32(int32(t.X))\n" in marshal
	assert "dep." not in marshal
	assert synth.imports.specs() == []


def test_decode_only_foreign_primitive_is_imported(app):
	synth, _ = _synth(app, "Tagged", encode=False)
	(unmarshal,) = synth.routines()
	assert "\tt.X = dep.ID(r.ReadInt32())\n" in unmarshal
	assert synth.imports.specs() == [("example.com/dep", None)]


def test_unspellable_type_adds_no_import(app):
	dep = app.scope.lookup("Tagged").type.underlying().fields[0].type.obj.pkg
	keyed = dep.scope.lookup("Keyed").type.underlying().fields[0].type
	synth = MethodSynthesizer(TypeGraphWalker().table, app.path)
	assert not synth.can_spell(keyed)
	assert synth.spell(keyed) is None
	assert synth.imports.specs() == []
	assert synth.spell(keyed.key) == "dep.ID"
	assert synth.imports.specs() == [("example.com/dep", None)]
