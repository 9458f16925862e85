# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Declaration checker: syntax trees of one package plus an importer in, a
`Package` out.

Checking is lazy. `check()` only declares the package-level objects and
attaches methods to their receiver types; a type expression is resolved the
first time something asks for a named type's underlying type, a method's
signature or a constant's value. Imports are loaded the first time a
qualified identifier needs them, so walking one struct only pulls in the
packages its fields actually name.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Tuple, Union

from gomarshal.errors import TypeCheckError
from gomarshal.gotypes import constexpr
from gomarshal.gotypes.ast import (
	ArrayExpr,
	ChanExpr,
	File,
	FuncDecl,
	FuncExpr,
	ImportSpec,
	InterfaceExpr,
	MapExpr,
	NameExpr,
	ParamDecl,
	PointerExpr,
	SliceExpr,
	StructExpr,
	TypeExpr,
	TypeParamDecl,
	TypeSpec,
	ValueSpec,
)
from gomarshal.gotypes.types import (
	UNIVERSE,
	Array,
	Basic,
	Chan,
	Const,
	Func,
	Interface,
	Map,
	Named,
	Object,
	Package,
	Pointer,
	Signature,
	Slice,
	Struct,
	Type,
	TypeName,
	TypeParam,
	Var,
	type_string,
)
from gomarshal.log import get_logger

logger = get_logger("gotypes.checker")

Importer = Callable[[str], Package]

_MAJOR_VERSION = re.compile(r"^v[0-9]+$")
_DOT_VERSION = re.compile(r"\.v[0-9]+$")

TypeParams = Dict[str, TypeParam]


def guess_package_name(path: str) -> str:
	"""The name a package at `path` conventionally declares."""
	elems = path.split("/")
	name = elems[-1]
	if _MAJOR_VERSION.match(name) and len(elems) > 1:
		name = elems[-2]
	name = _DOT_VERSION.sub("", name)
	if name.startswith("go-"):
		name = name[3:]
	return name.replace("-", "_").replace(".", "_")


class FileScope:
	"""Import bindings of one source file."""

	def __init__(self, checker: "Checker", file: File) -> None:
		self.checker = checker
		self.file = file
		self._qualified: Dict[str, Package] = {}
		self._dot_imports: Optional[List[Package]] = None

	def _fail(self, message: str, line: int = 0) -> TypeCheckError:
		suffix = f" (line {line})" if line else ""
		return TypeCheckError(message + suffix, path=self.checker.path, file=self.file.name)

	def package(self, qualifier: str, line: int = 0) -> Package:
		pkg = self._qualified.get(qualifier)
		if pkg is not None:
			return pkg
		pkg = self._find_package(qualifier)
		if pkg is None:
			raise self._fail(f"undefined: {qualifier}", line)
		self._qualified[qualifier] = pkg
		return pkg

	def _find_package(self, qualifier: str) -> Optional[Package]:
		plain: List[ImportSpec] = []
		for spec in self.file.imports:
			if spec.name == qualifier:
				return self.checker.import_(spec.path)
			if spec.name is None:
				plain.append(spec)
		# The conventional name settles it without loading anything else.
		for spec in plain:
			if guess_package_name(spec.path) == qualifier:
				pkg = self.checker.import_(spec.path)
				if pkg.name == qualifier:
					return pkg
		for spec in plain:
			if guess_package_name(spec.path) != qualifier:
				pkg = self.checker.import_(spec.path)
				if pkg.name == qualifier:
					return pkg
		return None

	def dot_imports(self) -> List[Package]:
		if self._dot_imports is None:
			self._dot_imports = [self.checker.import_(spec.path) for spec in self.file.imports if spec.name == "."]
		return self._dot_imports

	def lookup(self, qualifier: Optional[str], name: str, line: int = 0) -> Object:
		if qualifier is not None:
			pkg = self.package(qualifier, line)
			obj = pkg.scope.lookup(name)
			if obj is None or not obj.exported:
				raise self._fail(f"undefined: {qualifier}.{name}", line)
			return obj
		obj = self.checker.pkg.scope.lookup(name)
		if obj is not None:
			return obj
		if any(spec.name == "." for spec in self.file.imports):
			for pkg in self.dot_imports():
				obj = pkg.scope.lookup(name)
				if obj is not None and obj.exported:
					return obj
		obj = UNIVERSE.lookup(name)
		if obj is None:
			raise self._fail(f"undefined: {name}", line)
		return obj


class Checker:
	def __init__(self, path: str, files: List[File], importer: Importer) -> None:
		self.path = path
		self.files = files
		self.importer = importer
		self.pkg = Package(path, files[0].package if files else guess_package_name(path))
		self.pkg.files = [f.name for f in files]
		self._imports: Dict[str, Package] = {}
		self._instances: Dict[Tuple[int, str], Named] = {}

	def import_(self, path: str) -> Package:
		pkg = self._imports.get(path)
		if pkg is None:
			if path == "C":
				raise TypeCheckError("cgo is not supported", path=self.path)
			pkg = self.importer(path)
			self._imports[path] = pkg
			self.pkg.imports.append(pkg)
		return pkg

	def _fail(self, message: str, file: Optional[File] = None, line: int = 0) -> TypeCheckError:
		suffix = f" (line {line})" if line else ""
		return TypeCheckError(message + suffix, path=self.path, file=file.name if file else None)

	def check(self) -> Package:
		"""Declare every package-level object and attach methods."""
		scopes = [FileScope(self, f) for f in self.files]
		for fscope in scopes:
			for spec in fscope.file.types:
				self._declare(self._declare_type(spec, fscope), fscope, spec.line)
			for spec in fscope.file.values:
				for i, name in enumerate(spec.names):
					self._declare(self._declare_value(spec, i, name, fscope), fscope, spec.line)
			for decl in fscope.file.funcs:
				if decl.recv is None and decl.name != "init":
					self._declare(Func(decl.name, self.pkg, self._lazy_signature(decl, fscope, {})), fscope, decl.line)
		for fscope in scopes:
			for decl in fscope.file.funcs:
				if decl.recv is not None:
					self._attach_method(decl, fscope)
		logger.debug("declared %d objects in %s", len(self.pkg.scope.names()), self.path)
		return self.pkg

	def _declare(self, obj: Object, fscope: FileScope, line: int) -> None:
		if obj.name == "_":
			return
		if self.pkg.scope.insert(obj) is not None:
			raise self._fail(f"{obj.name} redeclared in this block", fscope.file, line)

	# Declarations

	def _declare_type(self, spec: TypeSpec, fscope: FileScope) -> TypeName:
		obj = TypeName(spec.name, self.pkg, alias=spec.alias)
		if spec.alias:
			if spec.type_params:
				raise self._fail(f"generic type alias {spec.name} is not supported", fscope.file, spec.line)

			def resolve_alias() -> Type:
				if obj.resolving:
					raise self._fail(f"invalid recursive type alias {spec.name}", fscope.file, spec.line)
				obj.resolving = True
				try:
					return self.resolve_type(spec.type, fscope, {})
				finally:
					obj.resolving = False

			obj.set_resolver(resolve_alias)
			return obj

		named = Named(obj)
		obj._type = named
		named.type_params = self._type_params(spec.type_params)
		tparams = {tp.name: tp for tp in named.type_params}

		def resolve_underlying(n: Named) -> Type:
			if n.resolving:
				raise self._fail(f"invalid recursive type {spec.name}", fscope.file, spec.line)
			n.resolving = True
			try:
				return self.resolve_type(spec.type, fscope, tparams).underlying()
			finally:
				n.resolving = False

		named.set_resolver(resolve_underlying)
		return obj

	def _type_params(self, decls: List[TypeParamDecl]) -> List[TypeParam]:
		# Constraints never affect layout; they are kept unresolved.
		return [TypeParam(d.name) for d in decls]

	def _declare_value(self, spec: ValueSpec, index: int, name: str, fscope: FileScope) -> Object:
		if spec.kind == "var":
			return Var(name, self.pkg, None)
		obj = Const(name, self.pkg)
		guard = {"busy": False}

		def evaluate() -> Tuple[int, Optional[str]]:
			if guard["busy"]:
				raise self._fail(f"initialization cycle for constant {name}", fscope.file, spec.line)
			if index >= len(spec.values):
				raise self._fail(f"missing init expr for constant {name}", fscope.file, spec.line)
			guard["busy"] = True
			try:
				value = constexpr.evaluate(spec.values[index], self._const_resolver(fscope), iota=spec.iota)
			finally:
				guard["busy"] = False
			kind = value.kind
			if spec.type is not None:
				typ = self.resolve_type(spec.type, fscope, {}).underlying()
				kind = typ.name if isinstance(typ, Basic) else None
			return value.value, kind

		obj._value = evaluate
		return obj

	def _const_resolver(self, fscope: FileScope) -> constexpr.Resolver:
		def resolve(qualifier: Optional[str], name: str) -> Union[constexpr.ConstValue, str]:
			obj = fscope.lookup(qualifier, name)
			if isinstance(obj, Const):
				value = obj.value
				if value is None:
					raise TypeCheckError(f"{name} is not an integer constant", path=self.path, file=fscope.file.name)
				return constexpr.ConstValue(value, obj.kind)
			if isinstance(obj, TypeName):
				typ = obj.type.underlying()
				return typ.name if isinstance(typ, Basic) else ""
			raise TypeCheckError(f"{name} is not constant", path=self.path, file=fscope.file.name)

		return resolve

	def _attach_method(self, decl: FuncDecl, fscope: FileScope) -> None:
		recv_type = decl.recv.type
		pointer = isinstance(recv_type, PointerExpr)
		if pointer:
			recv_type = recv_type.elem
		if not isinstance(recv_type, NameExpr) or recv_type.pkg is not None:
			raise self._fail(f"invalid receiver type for method {decl.name}", fscope.file, decl.line)
		base = self.pkg.scope.lookup(recv_type.name)
		if not isinstance(base, TypeName):
			raise self._fail(f"undefined receiver type {recv_type.name}", fscope.file, decl.line)
		if base.alias:
			logger.debug("method %s declared on alias %s ignored", decl.name, base.name)
			return
		named = base.type
		tparams: TypeParams = {}
		for i, arg in enumerate(recv_type.args):
			if isinstance(arg, NameExpr) and arg.is_bare and i < len(named.type_params):
				tparams[arg.name] = named.type_params[i]
		if decl.name != "_" and any(m.name == decl.name for m in named.methods):
			raise self._fail(f"method {recv_type.name}.{decl.name} already declared", fscope.file, decl.line)
		named.methods.append(Func(decl.name, self.pkg, self._lazy_signature(decl, fscope, tparams), pointer_recv=pointer))

	def _lazy_signature(self, decl: FuncDecl, fscope: FileScope, tparams: TypeParams) -> Callable[[], Signature]:
		def build() -> Signature:
			scope = dict(tparams)
			scope.update((tp.name, tp) for tp in self._type_params(decl.type_params))
			sig = self._signature(decl.sig, fscope, scope)
			if decl.recv is not None:
				sig.recv = Var(decl.recv.name or "", self.pkg, self.resolve_type(decl.recv.type, fscope, scope))
			return sig

		return build

	# Type expressions

	def _vars(self, params: List[ParamDecl], fscope: FileScope, tparams: TypeParams) -> List[Var]:
		return [Var(p.name or "", self.pkg, self.resolve_type(p.type, fscope, tparams)) for p in params]

	def _signature(self, expr: FuncExpr, fscope: FileScope, tparams: TypeParams) -> Signature:
		return Signature(
			self._vars(expr.params, fscope, tparams),
			self._vars(expr.results, fscope, tparams),
			variadic=expr.variadic,
		)

	def resolve_type(self, expr: TypeExpr, fscope: FileScope, tparams: TypeParams) -> Type:
		if isinstance(expr, NameExpr):
			return self._resolve_name(expr, fscope, tparams)
		if isinstance(expr, PointerExpr):
			return Pointer(self.resolve_type(expr.elem, fscope, tparams))
		if isinstance(expr, SliceExpr):
			return Slice(self.resolve_type(expr.elem, fscope, tparams))
		if isinstance(expr, ArrayExpr):
			length = constexpr.evaluate(expr.length, self._const_resolver(fscope)).value
			if length < 0:
				raise self._fail(f"invalid array length {length}", fscope.file, expr.line)
			return Array(length, self.resolve_type(expr.elem, fscope, tparams))
		if isinstance(expr, MapExpr):
			return Map(self.resolve_type(expr.key, fscope, tparams), self.resolve_type(expr.value, fscope, tparams))
		if isinstance(expr, ChanExpr):
			return Chan(self.resolve_type(expr.elem, fscope, tparams), expr.dir)
		if isinstance(expr, FuncExpr):
			return self._signature(expr, fscope, tparams)
		if isinstance(expr, StructExpr):
			fields: List[Var] = []
			tags: List[str] = []
			seen: set[str] = set()
			for f in expr.fields:
				if f.name != "_" and f.name in seen:
					raise self._fail(f"duplicate field {f.name}", fscope.file, f.line)
				seen.add(f.name)
				fields.append(Var(f.name, self.pkg, self.resolve_type(f.type, fscope, tparams), embedded=f.embedded, is_field=True))
				tags.append(f.tag or "")
			return Struct(fields, tags)
		if isinstance(expr, InterfaceExpr):
			return Interface("" if expr.is_empty else " ".join(t.value for t in expr.tokens if t.kind != "SEMI"))
		raise self._fail(f"unsupported type expression {type(expr).__name__}", fscope.file, expr.line)

	def _resolve_name(self, expr: NameExpr, fscope: FileScope, tparams: TypeParams) -> Type:
		if expr.pkg is None and expr.name in tparams:
			return tparams[expr.name]
		obj = fscope.lookup(expr.pkg, expr.name, expr.line)
		if not isinstance(obj, TypeName):
			raise self._fail(f"{expr.name} is not a type", fscope.file, expr.line)
		typ = obj.type
		if not expr.args:
			return typ
		if not isinstance(typ, Named) or not typ.type_params:
			raise self._fail(f"{expr.name} is not a generic type", fscope.file, expr.line)
		args = [self.resolve_type(a, fscope, tparams) for a in expr.args]
		if len(args) != len(typ.type_params):
			raise self._fail(f"wrong number of type arguments for {expr.name}", fscope.file, expr.line)
		return self.instantiate(typ, args)

	def instantiate(self, origin: Named, args: List[Type]) -> Named:
		key = (id(origin), ",".join(type_string(a) for a in args))
		inst = self._instances.get(key)
		if inst is not None:
			return inst
		inst = Named(origin.obj)
		inst.origin = origin
		inst.type_args = args
		mapping = {id(tp): arg for tp, arg in zip(origin.type_params, args)}
		inst.set_resolver(lambda n: substitute(origin.underlying(), mapping, self))
		self._instances[key] = inst
		return inst


def substitute(t: Type, mapping: Dict[int, Type], checker: Checker) -> Type:
	"""Replace type parameters in `t` according to `mapping` (keyed by id)."""
	if isinstance(t, TypeParam):
		return mapping.get(id(t), t)
	if isinstance(t, Pointer):
		return Pointer(substitute(t.elem, mapping, checker))
	if isinstance(t, Slice):
		return Slice(substitute(t.elem, mapping, checker))
	if isinstance(t, Array):
		return Array(t.length, substitute(t.elem, mapping, checker))
	if isinstance(t, Map):
		return Map(substitute(t.key, mapping, checker), substitute(t.elem, mapping, checker))
	if isinstance(t, Chan):
		return Chan(substitute(t.elem, mapping, checker), t.dir)
	if isinstance(t, Signature):
		params = [Var(v.name, v.pkg, substitute(v.type, mapping, checker)) for v in t.params]
		results = [Var(v.name, v.pkg, substitute(v.type, mapping, checker)) for v in t.results]
		return Signature(params, results, t.variadic)
	if isinstance(t, Struct):
		fields = [Var(f.name, f.pkg, substitute(f.type, mapping, checker), embedded=f.embedded, is_field=True) for f in t.fields]
		return Struct(fields, list(t.tags))
	if isinstance(t, Named) and t.type_args:
		origin = t.origin or t
		return checker.instantiate(origin, [substitute(a, mapping, checker) for a in t.type_args])
	return t


def check_package(path: str, files: List[File], importer: Importer) -> Package:
	return Checker(path, files, importer).check()


__all__ = ["Checker", "FileScope", "Importer", "check_package", "guess_package_name", "substitute"]
