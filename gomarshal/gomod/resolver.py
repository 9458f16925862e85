# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass

from gomarshal.gomod.manifest import ModuleManifest
from gomarshal.log import get_logger

logger = get_logger("gomod.resolver")


@dataclass(frozen=True)
class DependencyCoordinate:
	"""
	Where the source of an import path lives.

	`base` is either a module path (fetched by version) or a local directory
	path; `version` is empty exactly when `base` is a directory. `sub_path` is
	the package directory inside that module, `.` for the module root.
	"""

	base: str
	version: str
	sub_path: str

	@property
	def is_local(self) -> bool:
		return self.version == ""


class ImportResolver:
	"""Classify import paths against a module's manifest."""

	def __init__(self, manifest: ModuleManifest, root: str) -> None:
		self.manifest = manifest
		self.root = root
		# Longest path first so nested modules win over their parents.
		self._deps = sorted(manifest.dependencies.items(), key=lambda kv: len(kv[0]), reverse=True)

	def resolve(self, import_path: str) -> DependencyCoordinate | None:
		identity = self.manifest.identity
		if import_path == identity:
			return DependencyCoordinate(self.root, "", ".")
		if import_path.startswith(identity + "/"):
			return DependencyCoordinate(self.root, "", import_path[len(identity) + 1:])

		for dep_path, mod in self._deps:
			if import_path == dep_path:
				return DependencyCoordinate(mod.path, mod.version, ".")
		for dep_path, mod in self._deps:
			if import_path.startswith(dep_path + "/"):
				return DependencyCoordinate(mod.path, mod.version, import_path[len(dep_path) + 1:])

		logger.debug("%s is not provided by %s or its requirements", import_path, identity)
		return None


__all__ = ["DependencyCoordinate", "ImportResolver"]
