# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import os

import pytest

from gomarshal.errors import MethodConflictError, NotATypeError, NotFoundError, UnsupportedGenericType, UnsupportedShapeError
from gomarshal.gotypes.checker import check_package, guess_package_name
from gomarshal.gotypes.parser import parse_file
from gomarshal.gotypes.types import Package
from gomarshal.marshalc.generate import GENERATED_HEADER, encode_opts, generate, lookup_named, write_atomic
from gomarshal.options import MethodNames

SRC = """package geo

import (
	"io"
	"time"
)

type Point struct {
	X, Y int32
}

type Path struct {
	Points []Point
}

type Track struct {
	When time.Duration
}

type Writer struct {
	N int
}

func (w *Writer) WriteTo(out io.Writer) (int64, error) { return 0, nil }

type Alias = Point

type Duration = time.Duration

type Box[T any] struct {
	V T
}

const Zero = 0
"""

POINT_FILE = """// Code generated by gomarshal; DO NOT EDIT.
//go:generate gomarshal -o point.go Point

package geo

import (
	"cmp"
	"io"

	"vimagination.zapto.org/byteio"
)

// AppendBinary implements the encoding.BinaryAppender interface.
func (t *Point) AppendBinary(b []byte) ([]byte, error) {
	w := byteio.MemLittleEndian(b)
	err := _marshal_Point(t, &w)

	return w, err
}

// MarshalBinary implements the encoding.BinaryMarshaler interface.
func (t *Point) MarshalBinary() ([]byte, error) {
	var w byteio.MemLittleEndian

	err := _marshal_Point(t, &w)

	return w, err
}

// WriteTo implements the io.WriterTo interface.
func (t *Point) WriteTo(w io.Writer) (int64, error) {
	sw := byteio.StickyLittleEndianWriter{Writer: w}
	err := cmp.Or(_marshal_Point(t, &sw), sw.Err)

	return sw.Count, err
}

// UnmarshalBinary implements the encoding.BinaryUnmarshaler interface.
func (t *Point) UnmarshalBinary(b []byte) error {
	eb := byteio.MemLittleEndian(b)

	return _unmarshal_Point(t, &eb)
}

// ReadFrom implements the io.ReaderFrom interface.
func (t *Point) ReadFrom(r io.Reader) (int64, error) {
	if sr, ok := r.(*byteio.StickyLittleEndianReader); ok {
		l := sr.Count
		sr.Err = cmp.Or(sr.Err, _unmarshal_Point(t, sr))

		return sr.Count - l, sr.Err
	}

	sr := byteio.StickyLittleEndianReader{Reader: r}
	err := cmp.Or(_unmarshal_Point(t, &sr), sr.Err)

	return sr.Count, err
}

func _marshal_Point[W byteio.StickyWriter](t *Point, w W) error {
	w.WriteInt32(t.X)
	w.WriteInt32(t.Y)

	return nil
}

func _unmarshal_Point[R byteio.StickyReader](t *Point, r R) error {
	t.X = r.ReadInt32()
	t.Y = r.ReadInt32()

	return nil
}
"""


@pytest.fixture(scope="module")
def pkg():
	def importer(path):
		return Package(path, guess_package_name(path), opaque=True)

	return check_package("example.com/geo", [parse_file("geo/geo.go", SRC)], importer)


def test_full_file(pkg):
	assert generate(pkg, ["Point"], args=["-o", "point.go", "Point"]) == POINT_FILE


def test_header_without_arguments(pkg):
	text = generate(pkg, ["Point"])
	assert text.startswith(GENERATED_HEADER + "\n//go:generate gomarshal\n\npackage geo\n")


def test_marshal_only_skips_io_imports(pkg):
	names = MethodNames(write_to="", read_from="", append_binary="", unmarshal_binary="")
	text = generate(pkg, ["Point"], names)
	assert '"cmp"' not in text and '"io"' not in text
	assert 'import (\n\t"vimagination.zapto.org/byteio"\n)' in text
	assert "func (t *Point) MarshalBinary() ([]byte, error) {" in text
	assert "_unmarshal_Point" not in text


def test_unmarshal_only(pkg):
	names = MethodNames(write_to="", append_binary="", marshal_binary="")
	text = generate(pkg, ["Point"], names)
	assert "_marshal_Point" not in text
	assert "func _unmarshal_Point[R byteio.StickyReader](t *Point, r R) error {" in text
	assert "func (t *Point) ReadFrom(r io.Reader) (int64, error) {" in text


def test_every_type_is_requested_once(pkg):
	text = generate(pkg, ["Path", "Point", "Path"])
	assert text.count("func (t *Path) MarshalBinary()") == 1
	assert text.count("func (t *Point) MarshalBinary()") == 1
	assert text.count("func _marshal_Point[") == 1
	assert text.index("func (t *Path) AppendBinary") < text.index("func (t *Point) AppendBinary")
	assert "if err := _marshal_Point(&t.Points[n0], w); err != nil {" in text


def test_opaque_field_is_unsupported(pkg):
	with pytest.raises(UnsupportedShapeError) as excinfo:
		generate(pkg, ["Track"])
	assert "time.Duration" in excinfo.value.message


def test_existing_method_conflicts(pkg):
	with pytest.raises(MethodConflictError):
		generate(pkg, ["Writer"])
	text = generate(pkg, ["Writer"], MethodNames(write_to="WriteBinaryTo"))
	assert "func (t *Writer) WriteBinaryTo(w io.Writer) (int64, error) {" in text
	assert "// WriteBinaryTo writes the binary form of the receiver to w." in text


def test_duplicate_method_names(pkg):
	with pytest.raises(MethodConflictError):
		generate(pkg, ["Point"], MethodNames(write_to="Encode", marshal_binary="Encode"))


@pytest.mark.parametrize(
	("name", "error"),
	[
		("Missing", NotFoundError),
		("Zero", NotATypeError),
		("Duration", NotATypeError),
		("Box", UnsupportedGenericType),
	],
)
def test_lookup_errors(pkg, name, error):
	with pytest.raises(error) as excinfo:
		lookup_named(pkg, name)
	assert excinfo.value.type_name == name


def test_alias_to_local_type(pkg):
	assert lookup_named(pkg, "Alias") is lookup_named(pkg, "Point")


def test_encode_opts():
	assert encode_opts(["-o", "out.go", "T"]) == "-o out.go T"
	assert encode_opts(["-w", "", "T"]) == '-w "" T'
	assert encode_opts(["--tags", "a b"]) == '--tags "a b"'
	assert encode_opts([]) == ""


def test_write_atomic(tmp_path):
	target = tmp_path / "out.go"
	target.write_text("old")
	write_atomic(target, "new")
	assert target.read_text() == "new"
	assert os.listdir(tmp_path) == ["out.go"]


def test_write_atomic_into_missing_directory(tmp_path):
	target = tmp_path / "missing" / "out.go"
	with pytest.raises(OSError):
		write_atomic(target, "new")
	assert not target.exists()
