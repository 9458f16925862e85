# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Assemble the generated Go file for a set of requested types.

Layout: header comment and `//go:generate` line, package clause, imports,
the exported wrapper methods of every requested type, the generic routines,
then the helpers the routines called for. Nothing is written until the whole
file has been produced.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Sequence, Tuple

from gomarshal.errors import MethodConflictError, NotATypeError, NotFoundError, UnsupportedGenericType
from gomarshal.gotypes.types import Named, Package, TypeName
from gomarshal.log import get_logger
from gomarshal.marshalc.synth import BYTEIO_PATH, GeneratedMethodSet, MethodSynthesizer
from gomarshal.marshalc.walker import TypeGraphWalker
from gomarshal.options import MethodNames

logger = get_logger("marshalc.generate")

GENERATED_HEADER = "// Code generated by gomarshal; DO NOT EDIT."


def encode_opts(args: Sequence[str]) -> str:
	"""Join recorded arguments, quoting empty ones and the ones that contain a space."""
	out = []
	for arg in args:
		if " " in arg or not arg:
			out.append('"' + arg.replace("\\", "\\\\").replace('"', '\\"') + '"')
		else:
			out.append(arg)
	return " ".join(out)


def lookup_named(pkg: Package, type_name: str) -> Named:
	"""
	Find the named type `type_name` declared in `pkg`.

	Raises NotFoundError, NotATypeError or UnsupportedGenericType.
	"""
	obj = pkg.scope.lookup(type_name)
	if obj is None:
		raise NotFoundError(f"typename not found: {type_name}", path=pkg.path, type_name=type_name)
	if not isinstance(obj, TypeName):
		raise NotATypeError(f"identifier is not a named type: {type_name}", path=pkg.path, type_name=type_name)
	named = obj.type
	if not isinstance(named, Named):
		raise NotATypeError(f"identifier is not a named type: {type_name}", path=pkg.path, type_name=type_name)
	if named.obj.pkg is not pkg:
		raise NotATypeError(
			f"{type_name} names a type of package {named.obj.pkg.path if named.obj.pkg else '(builtin)'}; methods can only be added to local types",
			path=pkg.path,
			type_name=type_name,
		)
	if named.is_generic:
		raise UnsupportedGenericType(f"generic type {type_name} cannot be marshalled", path=pkg.path, type_name=type_name)
	return named


def _check_conflicts(named: Named, names: MethodNames) -> None:
	enabled = set(names.enabled())
	for method in named.methods:
		if method.name in enabled:
			raise MethodConflictError(
				f"{named.obj.name} already declares method {method.name}",
				path=named.obj.pkg.path,
				type_name=named.obj.name,
			)
	if len(enabled) != len(names.enabled()):
		raise MethodConflictError(f"method names are not distinct: {', '.join(names.enabled())}", type_name=named.obj.name)


def _import_block(std: List[str], other: List[Tuple[str, str | None]]) -> str:
	lines = [f'\t"{path}"' for path in std]
	if std and other:
		lines.append("")
	for path, alias in other:
		lines.append(f'\t{alias} "{path}"' if alias else f'\t"{path}"')
	if not lines:
		return ""
	return "import (\n" + "\n".join(lines) + "\n)"


def generate(pkg: Package, type_names: Sequence[str], names: MethodNames | None = None, args: Sequence[str] = ()) -> str:
	"""Return the Go source implementing the enabled methods for `type_names` in `pkg`."""
	names = names or MethodNames()
	requested: List[Named] = []
	for type_name in type_names:
		named = lookup_named(pkg, type_name)
		_check_conflicts(named, names)
		if named not in requested:
			requested.append(named)

	walker = TypeGraphWalker()
	synth = MethodSynthesizer(walker.table, pkg.path, encode=names.needs_encoder, decode=names.needs_decoder)
	method_sets: List[GeneratedMethodSet] = []
	for named in requested:
		sid = walker.classify(named)
		method_sets.append(synth.request(sid, names))
	logger.debug("%d named types reachable from %s", len(walker.discovered), ", ".join(n.obj.name for n in requested))

	wrappers: List[str] = []
	for method_set in method_sets:
		wrappers.extend(synth.wrappers(method_set, names))
	routines = synth.routines()
	helpers = synth.helpers()

	std = ["cmp", "io"] if names.write_to or names.read_from else []
	other: List[Tuple[str, str | None]] = []
	if routines or helpers:
		other.append((BYTEIO_PATH, None))
	other.extend(synth.imports.specs())
	other.sort(key=lambda spec: spec[0])

	directive = "//go:generate gomarshal"
	if args:
		directive += " " + encode_opts(args)
	parts = [GENERATED_HEADER + "\n" + directive, f"package {pkg.name}"]
	imports = _import_block(std, other)
	if imports:
		parts.append(imports)
	parts.extend(wrappers)
	parts.extend(routines)
	parts.extend(helpers)
	logger.info("generated %d wrappers, %d routines, %d helpers for package %s", len(wrappers), len(routines), len(helpers), pkg.path)
	return "\n\n".join(parts) + "\n"


def write_atomic(path: Path | str, text: str) -> None:
	"""Replace `path` with `text` in one step; a failed write leaves the old file alone."""
	path = Path(path)
	tmp = path.with_name(path.name + f".tmp.{os.getpid()}")
	try:
		tmp.write_text(text, encoding="utf-8")
		os.replace(tmp, path)
	finally:
		if tmp.exists():
			tmp.unlink()


__all__ = ["GENERATED_HEADER", "encode_opts", "generate", "lookup_named", "write_atomic"]
