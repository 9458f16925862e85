# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Turn dependency coordinates into readable sources.

Lookup order for a versioned module:

1. the local module cache, `<cache>/<escaped path>@<escaped version>/`;
2. the module proxy archive, `<proxy>/<escaped path>/@v/<escaped version>.zip`,
   opened with ranged reads and never written to the cache.

Directory coordinates (local replacements and the main module itself) are
read in place.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

from gomarshal.errors import InvalidModulePath, SourceUnavailable
from gomarshal.gomod.httprange import HTTPRangeReader
from gomarshal.gomod.module_path import escape_path, escape_version, is_directory_path
from gomarshal.gomod.resolver import DependencyCoordinate
from gomarshal.gomod.vsource import ArchiveSource, DirSource, VirtualSource
from gomarshal.log import get_logger
from gomarshal.options import ResolveOptions

logger = get_logger("gomod.archive_cache")


def cache_dir_name(coord: DependencyCoordinate) -> str:
	return f"{escape_path(coord.base)}@{escape_version(coord.version)}"


def remote_url(coord: DependencyCoordinate, proxy: str = "https://proxy.golang.org") -> str:
	return f"{proxy.rstrip('/')}/{escape_path(coord.base)}/@v/{escape_version(coord.version)}.zip"


def _join_sub(base: str, sub_path: str) -> str:
	return base if sub_path in ("", ".") else f"{base}/{sub_path}"


class ArchiveCache:
	def __init__(self, options: ResolveOptions | None = None) -> None:
		self.options = options or ResolveOptions()
		self._opened: list[ArchiveSource] = []

	def close(self) -> None:
		for src in self._opened:
			src.close()
		self._opened.clear()

	def materialize(self, coord: DependencyCoordinate, *, relative_to: Path | str | None = None) -> VirtualSource:
		"""
		Return a source rooted at the package directory `coord` names.

		Relative directory bases are taken relative to `relative_to`, the root
		of the module whose manifest declared them.
		"""
		if coord.version == "" or is_directory_path(coord.base):
			base = Path(coord.base)
			if not base.is_absolute() and relative_to is not None:
				base = Path(relative_to) / base
			root = base if coord.sub_path in ("", ".") else base / coord.sub_path
			logger.debug("directory source %s", root)
			return DirSource(root)

		try:
			cached = Path(self.options.mod_cache_dir) / cache_dir_name(coord)
			url = remote_url(coord, self.options.proxy_url)
		except InvalidModulePath as err:
			raise SourceUnavailable(f"cannot locate {coord.base}@{coord.version}: {err.message}", path=coord.base, version=coord.version) from err

		if cached.is_dir():
			logger.debug("module cache hit %s", cached)
			return DirSource(cached if coord.sub_path in ("", ".") else cached / coord.sub_path)

		logger.info("fetching %s@%s from %s", coord.base, coord.version, url)
		reader = HTTPRangeReader(url, timeout=self.options.fetch_timeout)
		try:
			archive = zipfile.ZipFile(reader)
		except SourceUnavailable:
			reader.close()
			raise
		except (zipfile.BadZipFile, OSError) as err:
			reader.close()
			raise SourceUnavailable(f"{url} is not a readable module archive: {err}", path=coord.base, version=coord.version) from err
		src = ArchiveSource(archive, _join_sub(f"{coord.base}@{coord.version}", coord.sub_path), owned=reader)
		self._opened.append(src)
		return src


__all__ = ["ArchiveCache", "cache_dir_name", "remote_url"]
