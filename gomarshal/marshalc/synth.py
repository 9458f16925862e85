# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Go source for encode/decode routines over classified shapes.

Each routine-bearing named type gets a pair of generic routines,

	func _marshal_T[W byteio.StickyWriter](t *T, w W) error
	func _unmarshal_T[R byteio.StickyReader](t *T, r R) error

emitted as one flat batch: a reference to a named type that has its own
routine becomes a call, so recursive types need no special casing. Named
types the generated file cannot spell (unexported types of other packages)
are expanded inline instead; where even that needs a type name
(allocation, map locals) the code goes through generic helpers emitted once
per file.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from gomarshal.errors import UnsupportedShapeError
from gomarshal.gotypes.types import (
	UNSAFE_POINTER,
	Array,
	Basic,
	Map,
	Named,
	Package,
	Pointer,
	Slice,
	Type,
	type_string,
)
from gomarshal.log import get_logger
from gomarshal.marshalc.shapes import PrimKind, ShapeDef, ShapeId, ShapeKind, ShapeTable
from gomarshal.marshalc.wire import delegates
from gomarshal.options import MethodNames

logger = get_logger("marshalc.synth")

BYTEIO_PATH = "vimagination.zapto.org/byteio"

# (kind, width) -> (byteio method suffix, Go type the method reads/writes)
_PRIMITIVE_IO = {
	(PrimKind.BOOL, 0): ("Bool", "bool"),
	(PrimKind.INT, 0): ("Int64", "int64"),
	(PrimKind.INT, 8): ("Int8", "int8"),
	(PrimKind.INT, 16): ("Int16", "int16"),
	(PrimKind.INT, 32): ("Int32", "int32"),
	(PrimKind.INT, 64): ("Int64", "int64"),
	(PrimKind.UINT, 0): ("Uint64", "uint64"),
	(PrimKind.UINT, 8): ("Uint8", "uint8"),
	(PrimKind.UINT, 16): ("Uint16", "uint16"),
	(PrimKind.UINT, 32): ("Uint32", "uint32"),
	(PrimKind.UINT, 64): ("Uint64", "uint64"),
	(PrimKind.FLOAT, 32): ("Float32", "float32"),
	(PrimKind.FLOAT, 64): ("Float64", "float64"),
	(PrimKind.STRING, 0): ("StringX", "string"),
}

_CANONICAL_BASIC = {"byte": "uint8", "rune": "int32"}

HELPER_NAMES = ("_new", "_make_slice", "_make_map", "_map_key_value", "_marshal_binary", "_unmarshal_binary")

_HELPERS = {
	"_new": """func _new[P ~*T, T any](ptr *P) {
	*ptr = new(T)
}""",
	"_make_slice": """func _make_slice[S ~[]E, E any](ptr *S, size uint64) {
	*ptr = make(S, size)
}""",
	"_make_map": """func _make_map[M ~map[K]V, K comparable, V any](ptr *M) {
	*ptr = make(M)
}""",
	"_map_key_value": """func _map_key_value[M ~map[K]V, K comparable, V any](_ M) (K, V) {
	var (
		k K
		v V
	)

	return k, v
}""",
	"_marshal_binary": """func _marshal_binary[W byteio.StickyWriter](w W, v interface{ MarshalBinary() ([]byte, error) }) error {
	b, err := v.MarshalBinary()
	if err != nil {
		return err
	}

	w.WriteStringX(string(b))

	return nil
}""",
	"_unmarshal_binary": """func _unmarshal_binary[R byteio.StickyReader](r R, v interface{ UnmarshalBinary([]byte) error }) error {
	return v.UnmarshalBinary([]byte(r.ReadStringX()))
}""",
}


def mangle(name: str) -> str:
	return name.replace("_", "__").replace(".", "_")


class ImportSet:
	"""Qualifiers for the packages generated code refers to, aliased on clashes."""

	def __init__(self, own_path: str, reserved: Tuple[str, ...] = ("cmp", "io", "byteio")) -> None:
		self.own_path = own_path
		self._by_path: Dict[str, Tuple[str, str]] = {}  # path -> (qualifier, declared name)
		self._taken: Set[str] = set(reserved)

	def qualifier(self, pkg: Package) -> str:
		entry = self._by_path.get(pkg.path)
		if entry is not None:
			return entry[0]
		candidate = pkg.name
		n = 2
		while candidate in self._taken:
			candidate = f"{pkg.name}{n}"
			n += 1
		self._taken.add(candidate)
		self._by_path[pkg.path] = (candidate, pkg.name)
		return candidate

	def specs(self) -> List[Tuple[str, Optional[str]]]:
		"""(path, alias) pairs; alias is None when the package name is used as is."""
		out = []
		for path, (qualifier, name) in sorted(self._by_path.items()):
			out.append((path, None if qualifier == name else qualifier))
		return out


class _Expr:
	"""
	A Go expression for the value being encoded or decoded. With `ptr` the
	text is a pointer to that value.
	"""

	def __init__(self, text: str, *, ptr: bool = False) -> None:
		self.text = text
		self.ptr = ptr

	def _paren(self) -> str:
		return f"({self.text})" if self.text.startswith("*") or self.text.startswith("&") else self.text

	def value(self) -> str:
		return f"*{self.text}" if self.ptr else self.text

	def operand(self) -> str:
		return f"(*{self.text})" if self.ptr else self._paren()

	def addr(self) -> str:
		return self.text if self.ptr else f"&{self.text}"

	def field(self, name: str) -> "_Expr":
		return _Expr(f"{self._paren()}.{name}")

	def index(self, idx: str) -> "_Expr":
		return _Expr(f"{self.operand()}[{idx}]")

	def pointee(self) -> "_Expr":
		return _Expr(self.value(), ptr=True)


class _Code:
	def __init__(self, depth: int = 1) -> None:
		self.lines: List[str] = []
		self.depth = depth

	def line(self, text: str = "") -> None:
		self.lines.append("\t" * self.depth + text if text else "")

	@contextmanager
	def block(self, head: str) -> Iterator[None]:
		self.line(head + " {")
		self.depth += 1
		yield
		self.depth -= 1
		self.line("}")

	def else_(self) -> None:
		self.depth -= 1
		self.line("} else {")
		self.depth += 1

	def check(self, call: str) -> None:
		with self.block(f"if err := {call}; err != nil"):
			self.line("return err")


@dataclass(frozen=True)
class GeneratedMethodSet:
	type_name: str
	encode: Optional[str]
	decode: Optional[str]
	methods: Tuple[str, ...] = ()


@dataclass
class MethodSynthesizer:
	table: ShapeTable
	pkg_path: str
	imports: ImportSet = None  # type: ignore[assignment]
	encode: bool = True
	decode: bool = True
	needs_new: bool = False
	needs_slice: bool = False
	needs_map: bool = False
	needs_marshal_binary: bool = False
	needs_unmarshal_binary: bool = False
	_names: Dict[ShapeId, Tuple[str, str]] = field(default_factory=dict)
	_order: List[ShapeId] = field(default_factory=list)
	_requested: Set[ShapeId] = field(default_factory=set)
	_used: Set[str] = field(default_factory=lambda: set(HELPER_NAMES))
	_inlining: Set[ShapeId] = field(default_factory=set)
	_root: str = ""

	def __post_init__(self) -> None:
		if self.imports is None:
			self.imports = ImportSet(self.pkg_path)

	# Type spelling

	def spell(self, typ: Optional[Type]) -> Optional[str]:
		"""
		Go spelling of `typ` in the generated file, or None if it cannot be
		named there. Only call this for text that is emitted: the packages the
		spelling refers to are added to the file's imports.
		"""
		if not self.can_spell(typ):
			return None
		return self._spelling(typ, self.imports.qualifier)

	def can_spell(self, typ: Optional[Type]) -> bool:
		return self._spelling(typ, lambda pkg: pkg.name) is not None

	def _spelling(self, typ: Optional[Type], qualify: Callable[[Package], str]) -> Optional[str]:
		if isinstance(typ, Named):
			pkg = typ.obj.pkg
			if typ.is_generic:
				return None
			if pkg is None or pkg.path == self.pkg_path:
				return typ.obj.name
			if not typ.obj.exported:
				return None
			return f"{qualify(pkg)}.{typ.obj.name}"
		if isinstance(typ, Basic):
			return None if typ is UNSAFE_POINTER else typ.name
		if isinstance(typ, Pointer):
			elem = self._spelling(typ.elem, qualify)
			return None if elem is None else "*" + elem
		if isinstance(typ, Slice):
			elem = self._spelling(typ.elem, qualify)
			return None if elem is None else "[]" + elem
		if isinstance(typ, Array):
			elem = self._spelling(typ.elem, qualify)
			return None if elem is None else f"[{typ.length}]{elem}"
		if isinstance(typ, Map):
			key = self._spelling(typ.key, qualify)
			value = self._spelling(typ.elem, qualify)
			return None if key is None or value is None else f"map[{key}]{value}"
		return None

	# Routine bookkeeping

	def _has_routine(self, sid: ShapeId) -> bool:
		sdef = self.table.get(sid)
		if sid in self._requested:
			return True
		if sdef.kind is not ShapeKind.NAMED or not self.can_spell(sdef.go_type):
			return False
		inner = self.table.get(sdef.inner).kind
		return inner not in (ShapeKind.PRIMITIVE, ShapeKind.EMPTY)

	def routine_names(self, sid: ShapeId) -> Tuple[str, str]:
		names = self._names.get(sid)
		if names is not None:
			return names
		sdef = self.table.get(sid)
		named = sdef.go_type
		label = sdef.name
		if isinstance(named, Named) and named.obj.pkg is not None and named.obj.pkg.path != self.pkg_path:
			label = f"{named.obj.pkg.name}.{sdef.name}"
		base = mangle(label)
		candidate = base
		n = 2
		while f"_marshal_{candidate}" in self._used or f"_unmarshal_{candidate}" in self._used:
			candidate = f"{base}_{n}"
			n += 1
		names = (f"_marshal_{candidate}", f"_unmarshal_{candidate}")
		self._used.update(names)
		self._names[sid] = names
		self._order.append(sid)
		return names

	def request(self, sid: ShapeId, names: MethodNames) -> GeneratedMethodSet:
		"""Register a requested named type; its routines are emitted first."""
		sdef = self.table.get(sid)
		self._requested.add(sid)
		marshal, unmarshal = self.routine_names(sid)
		return GeneratedMethodSet(
			type_name=sdef.name,
			encode=marshal if self.encode else None,
			decode=unmarshal if self.decode else None,
			methods=tuple(names.enabled()),
		)

	# Output

	def routines(self) -> List[str]:
		"""Render every routine, following references discovered on the way."""
		out: List[str] = []
		i = 0
		while i < len(self._order):
			sid = self._order[i]
			i += 1
			if self.encode:
				out.append(self._marshal_routine(sid))
			if self.decode:
				out.append(self._unmarshal_routine(sid))
		return out

	def helpers(self) -> List[str]:
		wanted = [
			("_new", self.needs_new),
			("_make_slice", self.needs_slice),
			("_make_map", self.needs_map),
			("_map_key_value", self.needs_map),
			("_marshal_binary", self.needs_marshal_binary),
			("_unmarshal_binary", self.needs_unmarshal_binary),
		]
		return [_HELPERS[name] for name, needed in wanted if needed]

	def _type_name(self, sid: ShapeId) -> str:
		spelled = self.spell(self.table.get(sid).go_type)
		if spelled is None:
			raise UnsupportedShapeError(f"no routine can be declared for {self.table.describe(sid)}", type_name=self.table.describe(sid))
		return spelled

	def _fail(self, message: str, path: str) -> UnsupportedShapeError:
		return UnsupportedShapeError(f"{message} at {path}", type_name=self._root)

	def _marshal_routine(self, sid: ShapeId) -> str:
		sdef = self.table.get(sid)
		name = self.routine_names(sid)[0]
		type_name = self._type_name(sid)
		self._root = sdef.qualified_name
		code = _Code()
		self._inlining = {sid}
		self._write(sdef.inner, _Expr("t", ptr=True), code, sdef.name, 0)
		self._inlining = set()
		if code.lines:
			code.line()
		code.line("return nil")
		body = "\n".join(code.lines)
		return f"func {name}[W byteio.StickyWriter](t *{type_name}, w W) error {{\n{body}\n}}"

	def _unmarshal_routine(self, sid: ShapeId) -> str:
		sdef = self.table.get(sid)
		name = self.routine_names(sid)[1]
		type_name = self._type_name(sid)
		self._root = sdef.qualified_name
		code = _Code()
		self._inlining = {sid}
		self._read(sdef.inner, _Expr("t", ptr=True), code, sdef.name, 0)
		self._inlining = set()
		if code.lines:
			code.line()
		code.line("return nil")
		body = "\n".join(code.lines)
		return f"func {name}[R byteio.StickyReader](t *{type_name}, r R) error {{\n{body}\n}}"

	# Encoding

	def _write_named(self, sid: ShapeId, sdef: ShapeDef, expr: _Expr, code: _Code, path: str, depth: int) -> None:
		if sid not in self._requested and delegates(self.table, sid):
			self.needs_marshal_binary = True
			code.check(f"_marshal_binary(w, {expr.addr()})")
			return
		if self._has_routine(sid):
			code.check(f"{self.routine_names(sid)[0]}({expr.addr()}, w)")
			return
		if sid in self._inlining:
			raise self._fail(f"recursive type {sdef.qualified_name} is not accessible from package {self.pkg_path}", path)
		self._inlining.add(sid)
		self._write(sdef.inner, expr, code, path, depth)
		self._inlining.discard(sid)

	def _write(self, sid: ShapeId, expr: _Expr, code: _Code, path: str, depth: int) -> None:
		sdef = self.table.get(sid)
		kind = sdef.kind
		if kind is ShapeKind.NAMED:
			self._write_named(sid, sdef, expr, code, path, depth)
		elif kind is ShapeKind.PRIMITIVE:
			self._write_primitive(sdef, expr, code)
		elif kind is ShapeKind.STRUCT:
			for f in sdef.fields:
				if f.exported and f.shape is not None:
					self._write(f.shape, expr.field(f.name), code, f"{path}.{f.name}", depth)
		elif kind is ShapeKind.ARRAY:
			idx = f"n{depth}"
			with code.block(f"for {idx} := range {expr.operand()}"):
				self._write(sdef.elem, expr.index(idx), code, f"{path}[]", depth + 1)
		elif kind is ShapeKind.SLICE:
			code.line(f"w.WriteUintX(uint64(len({expr.value()})))")
			idx = f"n{depth}"
			with code.block(f"for {idx} := range {expr.operand()}"):
				self._write(sdef.elem, expr.index(idx), code, f"{path}[]", depth + 1)
		elif kind is ShapeKind.MAP:
			code.line(f"w.WriteUintX(uint64(len({expr.value()})))")
			k, v = f"k{depth}", f"v{depth}"
			with code.block(f"for {k}, {v} := range {expr.operand()}"):
				self._write(sdef.key, _Expr(k), code, f"{path}[key]", depth + 1)
				self._write(sdef.value, _Expr(v), code, f"{path}[]", depth + 1)
		elif kind is ShapeKind.OPTIONAL:
			code.line(f"w.WriteBool({expr.value()} != nil)")
			with code.block(f"if {expr.value()} != nil"):
				self._write(sdef.elem, expr.pointee(), code, f"{path}.*", depth)
		else:
			raise self._fail(f"cannot marshal {sdef.reason or 'value'}", path)

	def _write_primitive(self, sdef: ShapeDef, expr: _Expr, code: _Code) -> None:
		value = expr.value()
		if sdef.prim is PrimKind.COMPLEX:
			method = "WriteFloat32" if sdef.width == 64 else "WriteFloat64"
			code.line(f"w.{method}(real({value}))")
			code.line(f"w.{method}(imag({value}))")
			return
		suffix, io_type = _PRIMITIVE_IO[(sdef.prim, sdef.width)]
		if not self._same_basic(sdef.go_type, io_type):
			value = f"{io_type}({value})"
		code.line(f"w.Write{suffix}({value})")

	@staticmethod
	def _same_basic(typ: Optional[Type], io_type: str) -> bool:
		return isinstance(typ, Basic) and _CANONICAL_BASIC.get(typ.name, typ.name) == io_type

	# Decoding

	def _read_named(self, sid: ShapeId, sdef: ShapeDef, expr: _Expr, code: _Code, path: str, depth: int) -> None:
		if sid not in self._requested and delegates(self.table, sid):
			self.needs_unmarshal_binary = True
			code.check(f"_unmarshal_binary(r, {expr.addr()})")
			return
		if self._has_routine(sid):
			code.check(f"{self.routine_names(sid)[1]}({expr.addr()}, r)")
			return
		if sid in self._inlining:
			raise self._fail(f"recursive type {sdef.qualified_name} is not accessible from package {self.pkg_path}", path)
		self._inlining.add(sid)
		self._read(sdef.inner, expr, code, path, depth)
		self._inlining.discard(sid)

	def _read(self, sid: ShapeId, expr: _Expr, code: _Code, path: str, depth: int) -> None:
		sdef = self.table.get(sid)
		kind = sdef.kind
		if kind is ShapeKind.NAMED:
			self._read_named(sid, sdef, expr, code, path, depth)
		elif kind is ShapeKind.PRIMITIVE:
			self._read_primitive(sdef, expr, code, path)
		elif kind is ShapeKind.STRUCT:
			for f in sdef.fields:
				if f.exported and f.shape is not None:
					self._read(f.shape, expr.field(f.name), code, f"{path}.{f.name}", depth)
		elif kind is ShapeKind.ARRAY:
			idx = f"n{depth}"
			with code.block(f"for {idx} := range {expr.operand()}"):
				self._read(sdef.elem, expr.index(idx), code, f"{path}[]", depth + 1)
		elif kind is ShapeKind.SLICE:
			spelled = self.spell(sdef.go_type)
			if spelled is not None:
				code.line(f"{expr.value()} = make({spelled}, r.ReadUintX())")
			else:
				self.needs_slice = True
				code.line(f"_make_slice({expr.addr()}, r.ReadUintX())")
			idx = f"n{depth}"
			with code.block(f"for {idx} := range {expr.operand()}"):
				self._read(sdef.elem, expr.index(idx), code, f"{path}[]", depth + 1)
		elif kind is ShapeKind.MAP:
			self._read_map(sdef, expr, code, path, depth)
		elif kind is ShapeKind.OPTIONAL:
			elem_type = self.spell(self.table.get(sdef.elem).go_type)
			with code.block("if r.ReadBool()"):
				if elem_type is not None:
					code.line(f"{expr.value()} = new({elem_type})")
				else:
					self.needs_new = True
					code.line(f"_new({expr.addr()})")
				self._read(sdef.elem, expr.pointee(), code, f"{path}.*", depth)
				code.else_()
				code.line(f"{expr.value()} = nil")
		else:
			raise self._fail(f"cannot unmarshal {sdef.reason or 'value'}", path)

	def _read_map(self, sdef: ShapeDef, expr: _Expr, code: _Code, path: str, depth: int) -> None:
		k, v = f"k{depth}", f"v{depth}"
		map_type = self.spell(sdef.go_type)
		key_go = self.table.get(sdef.key).go_type
		value_go = self.table.get(sdef.value).go_type
		if map_type is not None:
			code.line(f"{expr.value()} = make({map_type})")
		else:
			self.needs_map = True
			code.line(f"_make_map({expr.addr()})")
		with code.block("for range r.ReadUintX()"):
			if self.can_spell(key_go) and self.can_spell(value_go):
				code.line(f"var {k} {self.spell(key_go)}")
				code.line(f"var {v} {self.spell(value_go)}")
			else:
				self.needs_map = True
				code.line(f"{k}, {v} := _map_key_value({expr.value()})")
			self._read(sdef.key, _Expr(k), code, f"{path}[key]", depth + 1)
			self._read(sdef.value, _Expr(v), code, f"{path}[]", depth + 1)
			code.line(f"{expr.operand()}[{k}] = {v}")

	def _read_primitive(self, sdef: ShapeDef, expr: _Expr, code: _Code, path: str) -> None:
		if sdef.prim is PrimKind.COMPLEX:
			method = "ReadFloat32" if sdef.width == 64 else "ReadFloat64"
			value = f"complex(r.{method}(), r.{method}())"
			io_type = "complex64" if sdef.width == 64 else "complex128"
		else:
			suffix, io_type = _PRIMITIVE_IO[(sdef.prim, sdef.width)]
			value = f"r.Read{suffix}()"
		if not self._same_basic(sdef.go_type, io_type):
			spelled = self.spell(sdef.go_type)
			if spelled is None:
				raise self._fail(f"type {type_string(sdef.go_type)} is not accessible from package {self.pkg_path}", path)
			value = f"{spelled}({value})"
		code.line(f"{expr.value()} = {value}")

	# Wrapper methods

	def wrappers(self, method_set: GeneratedMethodSet, names: MethodNames) -> List[str]:
		"""Exported methods for one requested type, in append, marshal, write, unmarshal, read order."""
		t = method_set.type_name
		marshal, unmarshal = method_set.encode, method_set.decode
		out: List[str] = []
		if names.append_binary:
			out.append(_append_binary(t, names.append_binary, marshal))
		if names.marshal_binary:
			out.append(_marshal_binary(t, names.marshal_binary, marshal))
		if names.write_to:
			out.append(_write_to(t, names.write_to, marshal))
		if names.unmarshal_binary:
			out.append(_unmarshal_binary(t, names.unmarshal_binary, unmarshal))
		if names.read_from:
			out.append(_read_from(t, names.read_from, unmarshal))
		return out


def _append_binary(t: str, name: str, routine: str) -> str:
	doc = "// AppendBinary implements the encoding.BinaryAppender interface." if name == "AppendBinary" else f"// {name} appends the binary form of the receiver to b."
	return f"""{doc}
func (t *{t}) {name}(b []byte) ([]byte, error) {{
	w := byteio.MemLittleEndian(b)
	err := {routine}(t, &w)

	return w, err
}}"""


def _marshal_binary(t: str, name: str, routine: str) -> str:
	doc = "// MarshalBinary implements the encoding.BinaryMarshaler interface." if name == "MarshalBinary" else f"// {name} encodes the receiver into binary form."
	return f"""{doc}
func (t *{t}) {name}() ([]byte, error) {{
	var w byteio.MemLittleEndian

	err := {routine}(t, &w)

	return w, err
}}"""


def _write_to(t: str, name: str, routine: str) -> str:
	doc = "// WriteTo implements the io.WriterTo interface."
	if name != "WriteTo":
		doc = (
			f"// {name} writes the binary form of the receiver to w.\n//\n"
			"// The return value n is the number of bytes written. Any error encountered during the write is also returned."
		)
	return f"""{doc}
func (t *{t}) {name}(w io.Writer) (int64, error) {{
	sw := byteio.StickyLittleEndianWriter{{Writer: w}}
	err := cmp.Or({routine}(t, &sw), sw.Err)

	return sw.Count, err
}}"""


def _unmarshal_binary(t: str, name: str, routine: str) -> str:
	doc = "// UnmarshalBinary implements the encoding.BinaryUnmarshaler interface." if name == "UnmarshalBinary" else f"// {name} decodes the receiver from the binary form."
	return f"""{doc}
func (t *{t}) {name}(b []byte) error {{
	eb := byteio.MemLittleEndian(b)

	return {routine}(t, &eb)
}}"""


def _read_from(t: str, name: str, routine: str) -> str:
	doc = "// ReadFrom implements the io.ReaderFrom interface."
	if name != "ReadFrom":
		doc = (
			f"// {name} reads data from r until the type is fully decoded.\n//\n"
			"// The return value n is the number of bytes read. Any error encountered during the read is also returned."
		)
	return f"""{doc}
func (t *{t}) {name}(r io.Reader) (int64, error) {{
	if sr, ok := r.(*byteio.StickyLittleEndianReader); ok {{
		l := sr.Count
		sr.Err = cmp.Or(sr.Err, {routine}(t, sr))

		return sr.Count - l, sr.Err
	}}

	sr := byteio.StickyLittleEndianReader{{Reader: r}}
	err := cmp.Or({routine}(t, &sr), sr.Err)

	return sr.Count, err
}}"""


__all__ = ["BYTEIO_PATH", "GeneratedMethodSet", "HELPER_NAMES", "ImportSet", "MethodSynthesizer", "mangle"]
