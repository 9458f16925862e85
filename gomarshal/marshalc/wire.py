# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reference codec for the binary format the generated methods use.

Little endian throughout. Counts and string lengths are unsigned varints
(7 bits per byte, high bit set on every byte but the last). Native `int` and
`uint` travel as 64 bits, complex numbers as two floats, pointers as a
presence bool followed by the pointee. Struct values are dicts keyed by
exported field name; unexported fields are not part of the format. A named
type that marshals itself is a length-prefixed blob, given here as `bytes`.

Python values: bool, int, float, complex, str, list (arrays and slices),
dict (maps and structs), None (nil pointer).
"""

from __future__ import annotations

import struct
from typing import Any, Dict, List

from gomarshal.marshalc.shapes import Capability, PrimKind, ShapeId, ShapeKind, ShapeTable

_INT_FORMATS = {
	(PrimKind.INT, 0): "<q",
	(PrimKind.INT, 8): "<b",
	(PrimKind.INT, 16): "<h",
	(PrimKind.INT, 32): "<i",
	(PrimKind.INT, 64): "<q",
	(PrimKind.UINT, 0): "<Q",
	(PrimKind.UINT, 8): "<B",
	(PrimKind.UINT, 16): "<H",
	(PrimKind.UINT, 32): "<I",
	(PrimKind.UINT, 64): "<Q",
	(PrimKind.FLOAT, 32): "<f",
	(PrimKind.FLOAT, 64): "<d",
}

_DELEGATED = frozenset({Capability.MARSHAL_BINARY, Capability.UNMARSHAL_BINARY})


class WireError(ValueError):
	pass


def delegates(table: ShapeTable, sid: ShapeId) -> bool:
	"""Whether a named shape is written through its own MarshalBinary."""
	sdef = table.get(sid)
	return sdef.kind is ShapeKind.NAMED and _DELEGATED <= sdef.implements


def append_uintx(out: bytearray, value: int) -> None:
	if value < 0:
		raise WireError(f"negative count {value}")
	while value >= 0x80:
		out.append((value & 0x7F) | 0x80)
		value >>= 7
	out.append(value)


class Encoder:
	def __init__(self, table: ShapeTable, *, delegate_named: bool = True) -> None:
		self.table = table
		self.delegate_named = delegate_named
		self.out = bytearray()

	def encode(self, sid: ShapeId, value: Any, *, top: bool = True) -> bytes:
		self._write(sid, value, top)
		return bytes(self.out)

	def _write(self, sid: ShapeId, value: Any, top: bool = False) -> None:
		sdef = self.table.get(sid)
		kind = sdef.kind
		if kind is ShapeKind.NAMED:
			if self.delegate_named and not top and delegates(self.table, sid):
				blob = bytes(value)
				append_uintx(self.out, len(blob))
				self.out += blob
				return
			self._write(sdef.inner, value)
		elif kind is ShapeKind.PRIMITIVE:
			self._primitive(sdef.prim, sdef.width, value)
		elif kind is ShapeKind.STRUCT:
			for field in sdef.fields:
				if field.exported and field.shape is not None:
					self._write(field.shape, value[field.name])
		elif kind is ShapeKind.ARRAY:
			if len(value) != sdef.length:
				raise WireError(f"array of length {sdef.length} given {len(value)} elements")
			for item in value:
				self._write(sdef.elem, item)
		elif kind is ShapeKind.SLICE:
			append_uintx(self.out, len(value))
			for item in value:
				self._write(sdef.elem, item)
		elif kind is ShapeKind.MAP:
			append_uintx(self.out, len(value))
			for k, v in value.items():
				self._write(sdef.key, k)
				self._write(sdef.value, v)
		elif kind is ShapeKind.OPTIONAL:
			self.out.append(0 if value is None else 1)
			if value is not None:
				self._write(sdef.elem, value)
		else:
			raise WireError(f"cannot encode {self.table.describe(sid)}")

	def _primitive(self, prim: PrimKind, width: int, value: Any) -> None:
		if prim is PrimKind.BOOL:
			self.out.append(1 if value else 0)
		elif prim is PrimKind.STRING:
			data = value.encode("utf-8")
			append_uintx(self.out, len(data))
			self.out += data
		elif prim is PrimKind.COMPLEX:
			fmt = "<f" if width == 64 else "<d"
			self.out += struct.pack(fmt, complex(value).real)
			self.out += struct.pack(fmt, complex(value).imag)
		else:
			try:
				self.out += struct.pack(_INT_FORMATS[(prim, width)], value)
			except struct.error as err:
				raise WireError(f"{value!r} does not fit {prim.name.lower()}{width or ''}: {err}") from err


class Decoder:
	def __init__(self, table: ShapeTable, data: bytes, *, delegate_named: bool = True) -> None:
		self.table = table
		self.data = memoryview(data)
		self.pos = 0
		self.delegate_named = delegate_named

	def _take(self, n: int) -> bytes:
		if self.pos + n > len(self.data):
			raise WireError(f"short input: need {n} bytes at offset {self.pos}")
		chunk = bytes(self.data[self.pos:self.pos + n])
		self.pos += n
		return chunk

	def read_uintx(self) -> int:
		value = 0
		shift = 0
		while True:
			byte = self._take(1)[0]
			value |= (byte & 0x7F) << shift
			if byte < 0x80:
				return value
			shift += 7
			if shift > 63:
				raise WireError("varint overflows 64 bits")

	def decode(self, sid: ShapeId, *, top: bool = True) -> Any:
		value = self._read(sid, top)
		return value

	def _read(self, sid: ShapeId, top: bool = False) -> Any:
		sdef = self.table.get(sid)
		kind = sdef.kind
		if kind is ShapeKind.NAMED:
			if self.delegate_named and not top and delegates(self.table, sid):
				return self._take(self.read_uintx())
			return self._read(sdef.inner)
		if kind is ShapeKind.PRIMITIVE:
			return self._primitive(sdef.prim, sdef.width)
		if kind is ShapeKind.STRUCT:
			out: Dict[str, Any] = {}
			for field in sdef.fields:
				if field.exported and field.shape is not None:
					out[field.name] = self._read(field.shape)
			return out
		if kind is ShapeKind.ARRAY:
			return [self._read(sdef.elem) for _ in range(sdef.length)]
		if kind is ShapeKind.SLICE:
			count = self.read_uintx()
			items: List[Any] = []
			for _ in range(count):
				items.append(self._read(sdef.elem))
			return items
		if kind is ShapeKind.MAP:
			count = self.read_uintx()
			mapping: Dict[Any, Any] = {}
			for _ in range(count):
				k = self._read(sdef.key)
				mapping[_hashable(k)] = self._read(sdef.value)
			return mapping
		if kind is ShapeKind.OPTIONAL:
			present = self._take(1)[0]
			return self._read(sdef.elem) if present else None
		raise WireError(f"cannot decode {self.table.describe(sid)}")

	def _primitive(self, prim: PrimKind, width: int) -> Any:
		if prim is PrimKind.BOOL:
			return self._take(1)[0] != 0
		if prim is PrimKind.STRING:
			return self._take(self.read_uintx()).decode("utf-8")
		if prim is PrimKind.COMPLEX:
			fmt, size = ("<f", 4) if width == 64 else ("<d", 8)
			real = struct.unpack(fmt, self._take(size))[0]
			imag = struct.unpack(fmt, self._take(size))[0]
			return complex(real, imag)
		fmt = _INT_FORMATS[(prim, width)]
		return struct.unpack(fmt, self._take(struct.calcsize(fmt)))[0]


def _hashable(value: Any) -> Any:
	if isinstance(value, list):
		return tuple(_hashable(v) for v in value)
	if isinstance(value, dict):
		return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
	return value


def encode(table: ShapeTable, sid: ShapeId, value: Any) -> bytes:
	return Encoder(table).encode(sid, value)


def decode(table: ShapeTable, sid: ShapeId, data: bytes) -> Any:
	"""Decode one value; trailing bytes are an error."""
	decoder = Decoder(table, data)
	value = decoder.decode(sid)
	if decoder.pos != len(decoder.data):
		raise WireError(f"{len(decoder.data) - decoder.pos} trailing bytes")
	return value


__all__ = ["Decoder", "Encoder", "WireError", "append_uintx", "decode", "delegates", "encode"]
