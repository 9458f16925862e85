# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structural shapes of Go types.

ShapeIds are opaque ints indexing into a ShapeTable. A named type is entered
as a placeholder before its underlying type is classified, so a type that
reaches itself (through a pointer, a slice or a map) refers to its own id;
`backfill` fills the placeholder in once the underlying shape is known.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

ShapeId = int  # opaque handle into the ShapeTable; 0 is never handed out


class ShapeKind(Enum):
	EMPTY = auto()
	PRIMITIVE = auto()
	ARRAY = auto()
	SLICE = auto()
	MAP = auto()
	OPTIONAL = auto()
	STRUCT = auto()
	NAMED = auto()


class PrimKind(Enum):
	BOOL = auto()
	INT = auto()
	UINT = auto()
	FLOAT = auto()
	COMPLEX = auto()
	STRING = auto()


class Capability(Enum):
	"""Methods a named type may already implement, with their Go signatures."""

	APPEND_BINARY = ("AppendBinary", ("[]uint8",), ("[]uint8", "error"))
	MARSHAL_BINARY = ("MarshalBinary", (), ("[]uint8", "error"))
	UNMARSHAL_BINARY = ("UnmarshalBinary", ("[]uint8",), ("error",))
	WRITE_TO = ("WriteTo", ("io.Writer",), ("int64", "error"))
	READ_FROM = ("ReadFrom", ("io.Reader",), ("int64", "error"))

	@property
	def method_name(self) -> str:
		return self.value[0]

	@property
	def params(self) -> Tuple[str, ...]:
		return self.value[1]

	@property
	def results(self) -> Tuple[str, ...]:
		return self.value[2]


@dataclass(frozen=True)
class ShapeField:
	name: str
	shape: Optional[ShapeId]  # None for unexported fields, which are never classified
	tag: str = ""
	exported: bool = True
	embedded: bool = False


@dataclass(frozen=True)
class ShapeDef:
	kind: ShapeKind
	prim: Optional[PrimKind] = None
	width: int = 0  # bits; 0 for bool and string
	length: Optional[int] = None  # arrays only
	elems: Tuple[ShapeId, ...] = ()  # element / key, value / named inner
	fields: Tuple[ShapeField, ...] = ()
	package: str = ""  # named only; "" for predeclared names
	name: str = ""
	implements: FrozenSet[Capability] = frozenset()
	pending: bool = False  # named placeholder not yet backfilled
	reason: str = ""  # what an empty shape stands for
	go_type: Any = None  # the checked type this shape was classified from

	@property
	def elem(self) -> ShapeId:
		return self.elems[0]

	@property
	def inner(self) -> ShapeId:
		return self.elems[0]

	@property
	def key(self) -> ShapeId:
		return self.elems[0]

	@property
	def value(self) -> ShapeId:
		return self.elems[1]

	@property
	def qualified_name(self) -> str:
		return f"{self.package}.{self.name}" if self.package else self.name


class ShapeTable:
	def __init__(self) -> None:
		self._defs: Dict[ShapeId, ShapeDef] = {}
		self._next_id: ShapeId = 1

	def __len__(self) -> int:
		return len(self._defs)

	def _add(self, sdef: ShapeDef) -> ShapeId:
		sid = self._next_id
		self._next_id += 1
		self._defs[sid] = sdef
		return sid

	def get(self, sid: ShapeId) -> ShapeDef:
		return self._defs[sid]

	def ids(self) -> List[ShapeId]:
		return sorted(self._defs)

	def new_primitive(self, prim: PrimKind, width: int = 0, go_type: Any = None) -> ShapeId:
		return self._add(ShapeDef(ShapeKind.PRIMITIVE, prim=prim, width=width, go_type=go_type))

	def new_empty(self, reason: str, go_type: Any = None) -> ShapeId:
		return self._add(ShapeDef(ShapeKind.EMPTY, reason=reason, go_type=go_type))

	def new_array(self, length: int, elem: ShapeId, go_type: Any = None) -> ShapeId:
		return self._add(ShapeDef(ShapeKind.ARRAY, length=length, elems=(elem,), go_type=go_type))

	def new_slice(self, elem: ShapeId, go_type: Any = None) -> ShapeId:
		return self._add(ShapeDef(ShapeKind.SLICE, elems=(elem,), go_type=go_type))

	def new_map(self, key: ShapeId, value: ShapeId, go_type: Any = None) -> ShapeId:
		return self._add(ShapeDef(ShapeKind.MAP, elems=(key, value), go_type=go_type))

	def new_optional(self, elem: ShapeId, go_type: Any = None) -> ShapeId:
		return self._add(ShapeDef(ShapeKind.OPTIONAL, elems=(elem,), go_type=go_type))

	def new_struct(self, fields: List[ShapeField], go_type: Any = None) -> ShapeId:
		return self._add(ShapeDef(ShapeKind.STRUCT, fields=tuple(fields), go_type=go_type))

	def new_named(self, package: str, name: str, go_type: Any = None) -> ShapeId:
		"""Register a named placeholder; `backfill` completes it."""
		return self._add(ShapeDef(ShapeKind.NAMED, package=package, name=name, pending=True, go_type=go_type))

	def backfill(self, sid: ShapeId, inner: ShapeId, implements: FrozenSet[Capability] = frozenset()) -> None:
		sdef = self._defs[sid]
		if sdef.kind is not ShapeKind.NAMED or not sdef.pending:
			raise ValueError(f"shape {sid} is not a pending named shape")
		self._defs[sid] = replace(sdef, elems=(inner,), implements=frozenset(implements), pending=False)

	def is_pending(self, sid: ShapeId) -> bool:
		return self._defs[sid].pending

	def resolve(self, sid: ShapeId) -> ShapeDef:
		"""Follow named shapes down to the structural shape they wrap."""
		seen = set()
		sdef = self._defs[sid]
		while sdef.kind is ShapeKind.NAMED:
			if sdef.pending or sid in seen:
				raise ValueError(f"named shape {sdef.qualified_name} has no structure")
			seen.add(sid)
			sid = sdef.inner
			sdef = self._defs[sid]
		return sdef

	def describe(self, sid: ShapeId) -> str:
		"""Short human-readable rendering, used in logs and error messages."""
		sdef = self._defs[sid]
		if sdef.kind is ShapeKind.PRIMITIVE:
			return sdef.prim.name.lower() + (str(sdef.width) if sdef.width else "")
		if sdef.kind is ShapeKind.NAMED:
			return sdef.qualified_name
		if sdef.kind is ShapeKind.ARRAY:
			return f"[{sdef.length}]{self.describe(sdef.elem)}"
		if sdef.kind is ShapeKind.SLICE:
			return f"[]{self.describe(sdef.elem)}"
		if sdef.kind is ShapeKind.MAP:
			return f"map[{self.describe(sdef.key)}]{self.describe(sdef.value)}"
		if sdef.kind is ShapeKind.OPTIONAL:
			return f"*{self.describe(sdef.elem)}"
		if sdef.kind is ShapeKind.STRUCT:
			parts = [f"{f.name} {self.describe(f.shape)}" for f in sdef.fields if f.shape is not None]
			return "struct{" + "; ".join(parts) + "}"
		return f"<{sdef.reason or 'empty'}>"


__all__ = ["Capability", "PrimKind", "ShapeDef", "ShapeField", "ShapeId", "ShapeKind", "ShapeTable"]
