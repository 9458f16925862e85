# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import pytest

from gomarshal.errors import TypeCheckError
from gomarshal.gotypes.checker import check_package, guess_package_name
from gomarshal.gotypes.parser import parse_file
from gomarshal.gotypes.types import (
	Array,
	Basic,
	BasicKind,
	Const,
	Interface,
	Map,
	Named,
	Opaque,
	Package,
	Pointer,
	Slice,
	Struct,
	TypeName,
	identical,
	type_string,
)


def _check(path, sources, packages=None):
	packages = packages or {}

	def importer(p):
		if p in packages:
			return packages[p]
		return Package(p, guess_package_name(p), opaque=True)

	files = [parse_file(f"{path}/{name}", text) for name, text in sources.items()]
	return check_package(path, files, importer)


def _dep():
	return _check(
		"example.com/dep/v2",
		{
			"dep.go": """package dep

const Width = 3

type Exported struct {
	A int
	hidden string
}

type unexported int
""",
		},
	)


@pytest.mark.parametrize(
	("path", "name"),
	[
		("example.com/dep/v2", "dep"),
		("gopkg.in/yaml.v3", "yaml"),
		("github.com/mattn/go-isatty", "isatty"),
		("example.com/some-thing", "some_thing"),
		("fmt", "fmt"),
	],
)
def test_guess_package_name(path, name):
	assert guess_package_name(path) == name


def test_struct_with_imported_and_local_types():
	dep = _dep()
	pkg = _check(
		"example.com/app",
		{
			"a.go": """package app

import (
	"example.com/dep/v2"
	"io"
)

const N = dep.Width * 2

type Record struct {
	ID     uint64
	Data   [N]byte
	Ext    dep.Exported
	Next   *Record
	Tags   map[string][]int16
	Reader io.Reader
	Kind
}

type Kind uint8
""",
		},
		{"example.com/dep/v2": dep},
	)
	record = pkg.scope.lookup("Record")
	assert isinstance(record, TypeName)
	named = record.type
	assert isinstance(named, Named)
	st = named.underlying()
	assert isinstance(st, Struct)
	types = {f.name: f.type for f in st.fields}
	assert types["ID"] is not None and types["ID"].kind is BasicKind.UINT64
	assert isinstance(types["Data"], Array) and types["Data"].length == 6
	assert types["Ext"] is dep.scope.lookup("Exported").type
	assert isinstance(types["Next"], Pointer) and types["Next"].elem is named
	assert isinstance(types["Tags"], Map) and isinstance(types["Tags"].elem, Slice)
	assert isinstance(types["Reader"].underlying(), Opaque)
	assert type_string(types["Reader"]) == "io.Reader"
	kind_field = st.fields[-1]
	assert kind_field.embedded and kind_field.name == "Kind"
	assert type_string(named) == "example.com/app.Record"


def test_constants_and_iota():
	pkg = _check(
		"example.com/c",
		{
			"c.go": """package c

const (
	Zero = iota
	One
	Two
	_
	Four
)

const Mask uint8 = 1<<Two - 1
""",
		},
	)
	values = {name: pkg.scope.lookup(name).value for name in ("Zero", "One", "Two", "Four", "Mask")}
	assert values == {"Zero": 0, "One": 1, "Two": 2, "Four": 4, "Mask": 3}
	mask = pkg.scope.lookup("Mask")
	assert isinstance(mask, Const) and mask.kind == "uint8"


def test_aliases_and_byte():
	pkg = _check(
		"example.com/a",
		{
			"a.go": """package a

type Bytes = []byte

type Holder struct {
	B Bytes
	R rune
	E error
	X any
}
""",
		},
	)
	st = pkg.scope.lookup("Holder").type.underlying()
	b, r, e, x = (f.type for f in st.fields)
	assert isinstance(b, Slice) and type_string(b, canonical=True) == "[]uint8"
	assert type_string(b) == "[]byte"
	assert isinstance(r, Basic) and r.kind is BasicKind.INT32
	assert type_string(e) == "error"
	assert isinstance(x, Interface) and x.is_empty


def test_methods_and_signatures():
	pkg = _check(
		"example.com/m",
		{
			"m.go": """package m

import "io"

type T struct{ A int }

func (t *T) WriteTo(w io.Writer) (int64, error) { return 0, nil }

func (t T) MarshalBinary() ([]byte, error) { return nil, nil }
""",
		},
	)
	named = pkg.scope.lookup("T").type
	methods = {m.name: m for m in named.method_set()}
	assert set(methods) == {"WriteTo", "MarshalBinary"}
	assert methods["WriteTo"].pointer_recv
	assert not methods["MarshalBinary"].pointer_recv
	sig = methods["WriteTo"].signature
	assert [type_string(v.type) for v in sig.params] == ["io.Writer"]
	assert [type_string(v.type) for v in sig.results] == ["int64", "error"]
	assert isinstance(sig.recv.type, Pointer)


def test_generics_are_instantiated():
	pkg = _check(
		"example.com/g",
		{
			"g.go": """package g

type Pair[K comparable, V any] struct {
	Key K
	Value V
}

type Uses struct {
	P Pair[string, int]
	Q Pair[string, int]
}
""",
		},
	)
	pair = pkg.scope.lookup("Pair").type
	assert pair.is_generic
	p, q = (f.type for f in pkg.scope.lookup("Uses").type.underlying().fields)
	assert p is q
	assert p.origin is pair
	fields = p.underlying().fields
	assert [type_string(f.type) for f in fields] == ["string", "int"]
	assert identical(p, q)


def test_multiple_files_share_scope():
	pkg = _check(
		"example.com/two",
		{
			"a.go": "package two\n\ntype A struct{ B B }\n",
			"b.go": "package two\n\ntype B [2]A2\n\ntype A2 int\n",
		},
	)
	b = pkg.scope.lookup("A").type.underlying().fields[0].type
	assert isinstance(b.underlying(), Array)
	assert pkg.files == ["example.com/two/a.go", "example.com/two/b.go"]


@pytest.mark.parametrize(
	("source", "message"),
	[
		("package e\n\ntype T int\n\ntype T string\n", "redeclared"),
		("package e\n\ntype T struct{ A Missing }\n", "undefined"),
		("package e\n\ntype T struct{ A, A int }\n", "duplicate field"),
		("package e\n\ntype T [-1]int\n", "invalid array length"),
		("package e\n\ntype T U\n\ntype U T\n", "invalid recursive type"),
		("package e\n\ntype T struct{ X dep.Thing }\n", "undefined: dep"),
		("package e\n\ntype T int\n\nfunc (T) M() {}\n\nfunc (T) M() {}\n", "already declared"),
	],
)
def test_check_errors(source, message):
	with pytest.raises(TypeCheckError) as excinfo:
		pkg = _check("example.com/e", {"e.go": source})
		for obj in list(pkg.scope):
			if isinstance(obj, TypeName):
				under = obj.type.underlying()
				if isinstance(under, Struct):
					for f in under.fields:
						if isinstance(f.type, Named):
							f.type.underlying()
	assert message in excinfo.value.message


def test_unexported_qualified_name_is_rejected():
	dep = _dep()
	pkg = _check(
		"example.com/u",
		{"u.go": 'package u\n\nimport "example.com/dep/v2"\n\ntype T struct{ X dep.unexported }\n'},
		{"example.com/dep/v2": dep},
	)
	with pytest.raises(TypeCheckError):
		pkg.scope.lookup("T").type.underlying()


def test_import_under_a_different_name():
	dep = Package("example.com/go-thing", "thing")
	dep_obj = TypeName("Value", dep)
	dep_obj._type = Named(dep_obj, underlying=Basic(BasicKind.INT64, "int64"))
	dep.scope.insert(dep_obj)
	pkg = _check(
		"example.com/n",
		{"n.go": 'package n\n\nimport "example.com/go-thing"\n\ntype T struct{ V thing.Value }\n'},
		{"example.com/go-thing": dep},
	)
	field = pkg.scope.lookup("T").type.underlying().fields[0]
	assert field.type is dep_obj.type
