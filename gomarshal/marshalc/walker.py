# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Classify checked Go types into structural shapes.

One walker is one generation run: its named-type cache guarantees that every
named type is classified exactly once and that recursive types terminate.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Sequence

from gomarshal.errors import UnsupportedGenericType
from gomarshal.gotypes.types import (
	Array,
	Basic,
	BasicKind,
	Func,
	Map,
	Named,
	Pointer,
	Slice,
	Struct,
	Type,
	type_string,
)
from gomarshal.log import get_logger
from gomarshal.marshalc.shapes import Capability, PrimKind, ShapeField, ShapeId, ShapeTable

logger = get_logger("marshalc.walker")

_BASIC_SHAPES = {
	BasicKind.BOOL: (PrimKind.BOOL, 0),
	BasicKind.INT: (PrimKind.INT, 0),
	BasicKind.INT8: (PrimKind.INT, 8),
	BasicKind.INT16: (PrimKind.INT, 16),
	BasicKind.INT32: (PrimKind.INT, 32),
	BasicKind.INT64: (PrimKind.INT, 64),
	BasicKind.UINT: (PrimKind.UINT, 0),
	BasicKind.UINT8: (PrimKind.UINT, 8),
	BasicKind.UINT16: (PrimKind.UINT, 16),
	BasicKind.UINT32: (PrimKind.UINT, 32),
	BasicKind.UINT64: (PrimKind.UINT, 64),
	BasicKind.UINTPTR: (PrimKind.UINT, 64),
	BasicKind.FLOAT32: (PrimKind.FLOAT, 32),
	BasicKind.FLOAT64: (PrimKind.FLOAT, 64),
	BasicKind.COMPLEX64: (PrimKind.COMPLEX, 64),
	BasicKind.COMPLEX128: (PrimKind.COMPLEX, 128),
	BasicKind.STRING: (PrimKind.STRING, 0),
}


def named_key(named: Named) -> str:
	return named.obj.id()


def method_matches(method: Func, cap: Capability) -> bool:
	"""Whether `method` has the name and exact signature of `cap`."""
	if method.name != cap.method_name:
		return False
	sig = method.signature
	if sig.variadic or len(sig.params) != len(cap.params) or len(sig.results) != len(cap.results):
		return False
	for var, want in zip(sig.params, cap.params):
		if type_string(var.type, canonical=True) != want:
			return False
	for var, want in zip(sig.results, cap.results):
		if type_string(var.type, canonical=True) != want:
			return False
	return True


def implemented_capabilities(named: Named, capabilities: Iterable[Capability] = tuple(Capability)) -> FrozenSet[Capability]:
	found = set()
	for method in named.method_set():
		for cap in capabilities:
			if cap not in found and method_matches(method, cap):
				found.add(cap)
	return frozenset(found)


class TypeGraphWalker:
	def __init__(self, table: ShapeTable | None = None, capabilities: Sequence[Capability] = tuple(Capability)) -> None:
		self.table = table or ShapeTable()
		self.capabilities = tuple(capabilities)
		self._named: Dict[str, ShapeId] = {}
		self.discovered: List[ShapeId] = []

	def named_shape(self, named: Named) -> ShapeId | None:
		return self._named.get(named_key(named))

	def classify(self, typ: Type) -> ShapeId:
		if isinstance(typ, Named):
			return self._classify_named(typ)
		return self._classify_structure(typ, typ)

	def _classify_named(self, named: Named) -> ShapeId:
		key = named_key(named)
		cached = self._named.get(key)
		if cached is not None:
			return cached
		if named.is_generic:
			raise UnsupportedGenericType(
				f"generic type {type_string(named)} cannot be marshalled",
				type_name=type_string(named),
			)
		pkg = named.obj.pkg
		sid = self.table.new_named(pkg.path if pkg is not None else "", named.obj.name, named)
		self._named[key] = sid
		self.discovered.append(sid)
		inner = self._classify_structure(named.underlying(), named)
		implements = implemented_capabilities(named, self.capabilities)
		self.table.backfill(sid, inner, implements)
		logger.debug("classified %s as %s", key, self.table.describe(inner))
		return sid

	def _classify_structure(self, typ: Type, origin: Type) -> ShapeId:
		table = self.table
		if isinstance(typ, Basic):
			spec = _BASIC_SHAPES.get(typ.kind)
			if spec is None:
				return table.new_empty(f"basic type {typ.name}", origin)
			return table.new_primitive(spec[0], spec[1], origin)
		if isinstance(typ, Struct):
			fields: List[ShapeField] = []
			for var, tag in zip(typ.fields, typ.tags):
				exported = var.exported
				shape = self.classify(var.type) if exported else None
				fields.append(ShapeField(var.name, shape, tag, exported, var.embedded))
			return table.new_struct(fields, origin)
		if isinstance(typ, Array):
			return table.new_array(typ.length, self.classify(typ.elem), origin)
		if isinstance(typ, Slice):
			return table.new_slice(self.classify(typ.elem), origin)
		if isinstance(typ, Map):
			return table.new_map(self.classify(typ.key), self.classify(typ.elem), origin)
		if isinstance(typ, Pointer):
			return table.new_optional(self.classify(typ.elem), origin)
		return table.new_empty(type_string(typ), origin)


__all__ = ["TypeGraphWalker", "implemented_capabilities", "method_matches", "named_key"]
