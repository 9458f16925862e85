# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type model for checked Go declarations.

Named types resolve their underlying type and method signatures lazily through
a resolver installed by the checker, so a package can be handed out before the
types it declares have been looked at. Only what is actually walked pulls in
imports.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Callable, Dict, Iterator, List, Optional


class BasicKind(Enum):
	INVALID = auto()
	BOOL = auto()
	INT = auto()
	INT8 = auto()
	INT16 = auto()
	INT32 = auto()
	INT64 = auto()
	UINT = auto()
	UINT8 = auto()
	UINT16 = auto()
	UINT32 = auto()
	UINT64 = auto()
	UINTPTR = auto()
	FLOAT32 = auto()
	FLOAT64 = auto()
	COMPLEX64 = auto()
	COMPLEX128 = auto()
	STRING = auto()
	UNSAFE_POINTER = auto()
	UNTYPED_INT = auto()
	UNTYPED_NIL = auto()


class Type:
	def underlying(self) -> "Type":
		return self

	def __str__(self) -> str:
		return type_string(self)


class Basic(Type):
	def __init__(self, kind: BasicKind, name: str) -> None:
		self.kind = kind
		self.name = name

	def __repr__(self) -> str:
		return f"Basic({self.name})"


class Pointer(Type):
	def __init__(self, elem: Type) -> None:
		self.elem = elem


class Slice(Type):
	def __init__(self, elem: Type) -> None:
		self.elem = elem


class Array(Type):
	def __init__(self, length: int, elem: Type) -> None:
		self.length = length
		self.elem = elem


class Map(Type):
	def __init__(self, key: Type, elem: Type) -> None:
		self.key = key
		self.elem = elem


class Chan(Type):
	def __init__(self, elem: Type, dir: str = "both") -> None:
		self.elem = elem
		self.dir = dir


class Struct(Type):
	def __init__(self, fields: List["Var"], tags: List[str]) -> None:
		self.fields = fields
		self.tags = tags


class Signature(Type):
	def __init__(self, params: List["Var"], results: List["Var"], variadic: bool = False, recv: Optional["Var"] = None) -> None:
		self.params = params
		self.results = results
		self.variadic = variadic
		self.recv = recv


class Interface(Type):
	"""Interface type; only emptiness and source text are tracked."""

	def __init__(self, text: str = "") -> None:
		self.text = text

	@property
	def is_empty(self) -> bool:
		return not self.text


class TypeParam(Type):
	def __init__(self, name: str, constraint: List[Type] | None = None) -> None:
		self.name = name
		self.constraint = constraint or []


class Opaque(Type):
	"""Underlying type of declarations whose source is not available."""

	def __init__(self, desc: str) -> None:
		self.desc = desc


class Named(Type):
	def __init__(self, obj: "TypeName", *, underlying: Optional[Type] = None) -> None:
		self.obj = obj
		self._underlying = underlying
		self._resolve_underlying: Optional[Callable[["Named"], Type]] = None
		self.resolving = False
		self.methods: List["Func"] = []
		self.type_params: List[TypeParam] = []
		self.type_args: List[Type] = []
		self.origin: Optional["Named"] = None

	def __repr__(self) -> str:
		return f"Named({type_string(self)})"

	def set_resolver(self, resolve: Callable[["Named"], Type]) -> None:
		self._resolve_underlying = resolve

	def underlying(self) -> Type:
		if self._underlying is None:
			if self._resolve_underlying is None:
				raise RuntimeError(f"named type {self.obj.name} has no underlying type")
			self._underlying = self._resolve_underlying(self)
		return self._underlying

	def method_set(self) -> List["Func"]:
		if self.origin is not None:
			return self.origin.method_set()
		return self.methods

	@property
	def is_generic(self) -> bool:
		return bool(self.type_params) or bool(self.type_args)


class Object:
	def __init__(self, name: str, pkg: Optional["Package"]) -> None:
		self.name = name
		self.pkg = pkg

	@property
	def exported(self) -> bool:
		return bool(self.name) and self.name[0].isupper()

	def id(self) -> str:
		"""Identity of the object: package path plus name."""
		return f"{self.pkg.path}.{self.name}" if self.pkg is not None else self.name

	def __repr__(self) -> str:
		return f"{type(self).__name__}({self.id()})"


class TypeName(Object):
	def __init__(self, name: str, pkg: Optional["Package"], typ: Optional[Type] = None, *, alias: bool = False) -> None:
		super().__init__(name, pkg)
		self._type = typ
		self._resolve: Optional[Callable[[], Type]] = None
		self.resolving = False
		self.alias = alias

	@property
	def type(self) -> Type:
		if self._type is None:
			if self._resolve is None:
				raise RuntimeError(f"type name {self.name} has no type")
			self._type = self._resolve()
		return self._type

	def set_resolver(self, resolve: Callable[[], Type]) -> None:
		self._resolve = resolve


class Var(Object):
	def __init__(self, name: str, pkg: Optional["Package"], typ: Optional[Type], *, embedded: bool = False, is_field: bool = False) -> None:
		super().__init__(name, pkg)
		self.type = typ
		self.embedded = embedded
		self.is_field = is_field


class Const(Object):
	"""
	An integer constant. `value` may be a thunk returning `(value, kind)`,
	evaluated on first use; `kind` is the basic type name of a typed constant.
	"""

	def __init__(self, name: str, pkg: Optional["Package"], value: Callable[[], tuple] | int | None = None, kind: Optional[str] = None) -> None:
		super().__init__(name, pkg)
		self._value = value
		self.kind = kind

	@property
	def value(self) -> int | None:
		if callable(self._value):
			self._value, self.kind = self._value()
		return self._value


class Func(Object):
	def __init__(self, name: str, pkg: Optional["Package"], signature: Callable[[], Signature] | Signature, *, pointer_recv: bool = False) -> None:
		super().__init__(name, pkg)
		self._signature = signature
		self.pointer_recv = pointer_recv

	@property
	def signature(self) -> Signature:
		if callable(self._signature):
			self._signature = self._signature()
		return self._signature


class Scope:
	def __init__(self, parent: Optional["Scope"] = None) -> None:
		self.parent = parent
		self._names: Dict[str, Object] = {}

	def insert(self, obj: Object) -> Optional[Object]:
		"""Insert `obj`; return the existing object of that name instead if there is one."""
		existing = self._names.get(obj.name)
		if existing is not None:
			return existing
		self._names[obj.name] = obj
		return None

	def lookup(self, name: str) -> Optional[Object]:
		return self._names.get(name)

	def lookup_parent(self, name: str) -> Optional[Object]:
		scope: Optional[Scope] = self
		while scope is not None:
			obj = scope.lookup(name)
			if obj is not None:
				return obj
			scope = scope.parent
		return None

	def names(self) -> List[str]:
		return sorted(self._names)

	def __iter__(self) -> Iterator[Object]:
		return iter(self._names.values())


class OpaqueScope(Scope):
	"""Scope of a package without source: every exported name is an opaque type."""

	def __init__(self, pkg: "Package") -> None:
		super().__init__(None)
		self._pkg = pkg

	def lookup(self, name: str) -> Optional[Object]:
		obj = super().lookup(name)
		if obj is None and name[:1].isupper():
			obj = TypeName(name, self._pkg)
			obj._type = Named(obj, underlying=Opaque(f"{self._pkg.path}.{name}"))
			self.insert(obj)
		return obj


class Package:
	def __init__(self, path: str, name: str, *, opaque: bool = False) -> None:
		self.path = path
		self.name = name
		self.opaque = opaque
		self.scope: Scope = OpaqueScope(self) if opaque else Scope(UNIVERSE)
		self.imports: List["Package"] = []
		self.files: List[str] = []

	def __repr__(self) -> str:
		return f"Package({self.path!r}, {self.name!r})"


def _basic(kind: BasicKind, name: str) -> Basic:
	return Basic(kind, name)


BASIC_TYPES: Dict[str, Basic] = {
	"bool": _basic(BasicKind.BOOL, "bool"),
	"int": _basic(BasicKind.INT, "int"),
	"int8": _basic(BasicKind.INT8, "int8"),
	"int16": _basic(BasicKind.INT16, "int16"),
	"int32": _basic(BasicKind.INT32, "int32"),
	"int64": _basic(BasicKind.INT64, "int64"),
	"uint": _basic(BasicKind.UINT, "uint"),
	"uint8": _basic(BasicKind.UINT8, "uint8"),
	"uint16": _basic(BasicKind.UINT16, "uint16"),
	"uint32": _basic(BasicKind.UINT32, "uint32"),
	"uint64": _basic(BasicKind.UINT64, "uint64"),
	"uintptr": _basic(BasicKind.UINTPTR, "uintptr"),
	"float32": _basic(BasicKind.FLOAT32, "float32"),
	"float64": _basic(BasicKind.FLOAT64, "float64"),
	"complex64": _basic(BasicKind.COMPLEX64, "complex64"),
	"complex128": _basic(BasicKind.COMPLEX128, "complex128"),
	"string": _basic(BasicKind.STRING, "string"),
	# byte and rune are aliases; they keep their spelling in type strings.
	"byte": _basic(BasicKind.UINT8, "byte"),
	"rune": _basic(BasicKind.INT32, "rune"),
}

UNSAFE_POINTER = Basic(BasicKind.UNSAFE_POINTER, "unsafe.Pointer")
INVALID = Basic(BasicKind.INVALID, "invalid type")

UNIVERSE = Scope(None)


def _init_universe() -> None:
	for name, typ in BASIC_TYPES.items():
		UNIVERSE.insert(TypeName(name, None, typ, alias=name in ("byte", "rune")))
	error_obj = TypeName("error", None)
	error_obj._type = Named(error_obj, underlying=Interface("Error() string"))
	error_named = error_obj._type
	error_named.methods.append(Func("Error", None, Signature([], [Var("", None, BASIC_TYPES["string"])])))
	UNIVERSE.insert(error_obj)
	comparable_obj = TypeName("comparable", None)
	comparable_obj._type = Named(comparable_obj, underlying=Interface("comparable"))
	UNIVERSE.insert(comparable_obj)
	UNIVERSE.insert(TypeName("any", None, Interface(), alias=True))
	for name in ("true", "false"):
		UNIVERSE.insert(Const(name, None, 1 if name == "true" else 0))
	UNIVERSE.insert(Const("iota", None))
	UNIVERSE.insert(Var("nil", None, Basic(BasicKind.UNTYPED_NIL, "untyped nil")))


_init_universe()


def unsafe_package() -> Package:
	pkg = Package("unsafe", "unsafe")
	pkg.scope.insert(TypeName("Pointer", pkg, UNSAFE_POINTER))
	return pkg


def _tuple_string(vars_: List[Var], variadic: bool, canonical: bool) -> str:
	parts: List[str] = []
	for i, v in enumerate(vars_):
		t = v.type
		if variadic and i == len(vars_) - 1 and isinstance(t, Slice):
			parts.append("..." + type_string(t.elem, canonical=canonical))
		else:
			parts.append(type_string(t, canonical=canonical) if t is not None else "invalid type")
	return "(" + ", ".join(parts) + ")"


def type_string(t: Type, *, canonical: bool = False) -> str:
	"""
	Spell a type the way go/types does, qualifying named types by their full
	package path. With `canonical`, byte and rune are spelled uint8 and int32.
	"""
	if isinstance(t, Basic):
		if canonical and t.name == "byte":
			return "uint8"
		if canonical and t.name == "rune":
			return "int32"
		return t.name
	if isinstance(t, Named):
		prefix = f"{t.obj.pkg.path}." if t.obj.pkg is not None else ""
		args = ""
		if t.type_args:
			args = "[" + ", ".join(type_string(a, canonical=canonical) for a in t.type_args) + "]"
		return prefix + t.obj.name + args
	if isinstance(t, Pointer):
		return "*" + type_string(t.elem, canonical=canonical)
	if isinstance(t, Slice):
		return "[]" + type_string(t.elem, canonical=canonical)
	if isinstance(t, Array):
		return f"[{t.length}]" + type_string(t.elem, canonical=canonical)
	if isinstance(t, Map):
		return f"map[{type_string(t.key, canonical=canonical)}]{type_string(t.elem, canonical=canonical)}"
	if isinstance(t, Chan):
		prefix = {"both": "chan ", "send": "chan<- ", "recv": "<-chan "}[t.dir]
		return prefix + type_string(t.elem, canonical=canonical)
	if isinstance(t, Signature):
		out = "func" + _tuple_string(t.params, t.variadic, canonical)
		if len(t.results) == 1 and not t.results[0].name:
			out += " " + type_string(t.results[0].type, canonical=canonical)
		elif t.results:
			out += " " + _tuple_string(t.results, False, canonical)
		return out
	if isinstance(t, Struct):
		fields = []
		for f, tag in zip(t.fields, t.tags):
			text = type_string(f.type, canonical=canonical) if f.embedded else f"{f.name} {type_string(f.type, canonical=canonical)}"
			if tag:
				text += " " + _quote(tag)
			fields.append(text)
		return "struct{" + "; ".join(fields) + "}"
	if isinstance(t, Interface):
		return "interface{" + t.text + "}"
	if isinstance(t, TypeParam):
		return t.name
	if isinstance(t, Opaque):
		return t.desc
	return "invalid type"


def _quote(text: str) -> str:
	return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def identical(a: Type, b: Type) -> bool:
	return type_string(a, canonical=True) == type_string(b, canonical=True)


__all__ = [
	"Array",
	"BASIC_TYPES",
	"Basic",
	"BasicKind",
	"Chan",
	"Const",
	"Func",
	"INVALID",
	"Interface",
	"Map",
	"Named",
	"Object",
	"Opaque",
	"Package",
	"Pointer",
	"Scope",
	"Signature",
	"Slice",
	"Struct",
	"Type",
	"TypeName",
	"TypeParam",
	"UNIVERSE",
	"UNSAFE_POINTER",
	"Var",
	"identical",
	"type_string",
	"unsafe_package",
]
