# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Package loading across a module's dependency graph.

`TypeLoader.resolve_package` finds the module that owns a directory, then
loads the package at that directory. Every import the type checker asks for
goes through `TypeLoader.import_`: the module's requirements decide where the
source lives (`ImportResolver` + `ArchiveCache`), the build context picks the
files, the type-checking service turns them into a `Package`. Each import
path is loaded at most once per module.
"""

from __future__ import annotations

import posixpath
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple

from gomarshal.errors import MalformedManifest, MultiplePackagesError, NoManifestFound, TypeCheckError
from gomarshal.gomod.archive_cache import ArchiveCache
from gomarshal.gomod.manifest import ModuleManifest, parse_manifest
from gomarshal.gomod.resolver import ImportResolver
from gomarshal.gomod.vsource import DirSource, VirtualSource
from gomarshal.gotypes.ast import File
from gomarshal.gotypes.buildctx import BuildContext
from gomarshal.gotypes.checker import Importer, check_package, guess_package_name
from gomarshal.gotypes.parser import parse_file
from gomarshal.gotypes.types import Package, unsafe_package
from gomarshal.log import get_logger
from gomarshal.options import ResolveOptions

logger = get_logger("gotypes.loader")


class TypeCheckService(Protocol):
	def parse_file(self, name: str, data: bytes) -> File: ...

	def check(self, path: str, files: List[File], importer: Importer) -> Package: ...


class GoTypeService:
	"""Declaration-level Go front end from `gomarshal.gotypes`."""

	def parse_file(self, name: str, data: bytes) -> File:
		return parse_file(name, data)

	def check(self, path: str, files: List[File], importer: Importer) -> Package:
		return check_package(path, files, importer)


@dataclass
class ImportMemo:
	packages: Dict[str, Package] = field(default_factory=dict)
	in_progress: Set[str] = field(default_factory=set)
	lock: threading.RLock = field(default_factory=threading.RLock)


@dataclass
class ResolvedModule:
	identity: str
	root: Path
	manifest: ModuleManifest
	resolver: ImportResolver
	# import path -> names of the files that made up the package
	files: Dict[str, List[str]] = field(default_factory=dict)
	memo: ImportMemo = field(default_factory=ImportMemo)

	@property
	def dependencies(self):
		return self.manifest.dependencies


def _ancestors(start: Path) -> Iterable[Tuple[Path, str]]:
	"""Yield (directory, sub path) pairs from `start` up to the filesystem root."""
	parts: List[str] = []
	current = start
	while True:
		yield current, "/".join(reversed(parts))
		if current.parent == current:
			return
		parts.append(current.name)
		current = current.parent


class TypeLoader:
	def __init__(
		self,
		options: ResolveOptions | None = None,
		service: TypeCheckService | None = None,
		cache: ArchiveCache | None = None,
	) -> None:
		self.options = options or ResolveOptions()
		self.service = service or GoTypeService()
		self.cache = cache or ArchiveCache(self.options)
		self.build = BuildContext.from_options(self.options)
		self.module: Optional[ResolvedModule] = None
		self._memo = ImportMemo()

	def close(self) -> None:
		self.cache.close()

	def __enter__(self) -> "TypeLoader":
		return self

	def __exit__(self, *exc: object) -> None:
		self.close()

	def open_module(self, root: Path | str) -> ResolvedModule:
		"""Parse `<root>/go.mod` and make it the module imports resolve against."""
		root = Path(root)
		manifest_file = root / "go.mod"
		manifest = parse_manifest(manifest_file.read_bytes(), file=str(manifest_file))
		module = ResolvedModule(
			identity=manifest.identity,
			root=root,
			manifest=manifest,
			resolver=ImportResolver(manifest, str(root)),
		)
		logger.info("module %s at %s", module.identity, root)
		self.module = module
		return module

	def resolve_package(self, start_path: Path | str, ignore: Iterable[str] = ()) -> Package:
		"""
		Load the package in directory `start_path`.

		The nearest ancestor holding a valid go.mod is the module root; the rest of
		the path is the package's directory inside the module. `ignore` names
		files to leave out, typically the output file of a previous run.
		"""
		start = Path(start_path).absolute()
		for directory, sub_path in _ancestors(start):
			if not (directory / "go.mod").is_file():
				continue
			try:
				module = self.open_module(directory)
			except MalformedManifest as err:
				logger.debug("skipping %s: %s", directory / "go.mod", err)
				continue
			break
		else:
			raise NoManifestFound("no go.mod in this directory or any parent", path=str(start))
		import_path = module.identity if not sub_path else f"{module.identity}/{sub_path}"
		return self.import_path(import_path, ignore)

	def import_(self, path: str) -> Package:
		"""Import callback handed to the type checker."""
		return self.import_path(path)

	def import_path(self, path: str, ignore: Iterable[str] = ()) -> Package:
		ignore = tuple(ignore)
		memo = self.module.memo if self.module is not None else self._memo
		with memo.lock:
			if not ignore and path in memo.packages:
				return memo.packages[path]
			if path in memo.in_progress:
				raise TypeCheckError(f"import cycle through {path}", path=path)
			memo.in_progress.add(path)
			try:
				pkg = self._load(path, ignore)
			finally:
				memo.in_progress.discard(path)
			if not ignore:
				memo.packages[path] = pkg
			return pkg

	def _load(self, path: str, ignore: Tuple[str, ...]) -> Package:
		if path == "unsafe":
			return unsafe_package()
		coord = self.module.resolver.resolve(path) if self.module is not None else None
		if coord is None:
			return self._default_import(path)
		logger.debug("import %s -> %s@%s %s", path, coord.base, coord.version or "(dir)", coord.sub_path)
		source = self.cache.materialize(coord, relative_to=self.module.root)
		return self.parse_package(source, path, ignore)

	def _default_import(self, path: str) -> Package:
		goroot = self.options.goroot
		if goroot is not None:
			for candidate in (Path(goroot) / "src" / path, Path(goroot) / "src" / "vendor" / path):
				if candidate.is_dir():
					logger.debug("import %s from GOROOT %s", path, candidate)
					return self.parse_package(DirSource(candidate), path)
		logger.debug("no source for %s; using an opaque package", path)
		return Package(path, guess_package_name(path), opaque=True)

	def parse_package(self, source: VirtualSource, declared_path: str, ignore: Iterable[str] = ()) -> Package:
		"""Select, parse and check the package in `source` as `declared_path`."""
		ignore = set(ignore)
		selected = self.build.select_files(source, declared_path)
		if ignore:
			selected = [(name, data) for name, data in selected if name not in ignore]
		if self.module is not None:
			self.module.files[declared_path] = [name for name, _ in selected]

		trees: List[File] = []
		for name, data in selected:
			tree = self.service.parse_file(posixpath.join(declared_path, name), data)
			if trees and tree.package != trees[0].package:
				raise MultiplePackagesError(
					f"found packages {trees[0].package} and {tree.package}",
					path=declared_path,
					file=tree.name,
				)
			trees.append(tree)
		if not trees:
			logger.debug("every file of %s is ignored", declared_path)
			return Package(declared_path, guess_package_name(declared_path))
		return self.service.check(declared_path, trees, self.import_)


__all__ = ["GoTypeService", "ImportMemo", "ResolvedModule", "TypeCheckService", "TypeLoader"]
