# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Read-only views over a module's files.

Both variants take slash-separated paths relative to the package directory
they were created for; `.` names that directory itself. Missing files raise
`FileNotFoundError` from either variant.
"""

from __future__ import annotations

import posixpath
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol


@dataclass(frozen=True)
class SourceEntry:
	name: str
	is_dir: bool


class VirtualSource(Protocol):
	def open(self, path: str) -> BinaryIO: ...

	def is_dir(self, path: str) -> bool: ...

	def list_dir(self, path: str) -> list[SourceEntry]: ...

	def read_file(self, path: str) -> bytes: ...


def _clean(path: str) -> str:
	cleaned = posixpath.normpath(path.replace("\\", "/") or ".")
	if cleaned == ".." or cleaned.startswith("../") or cleaned.startswith("/"):
		raise FileNotFoundError(f"path escapes the source root: {path}")
	return cleaned


class DirSource:
	"""A VirtualSource over a directory on disk."""

	def __init__(self, root: Path | str) -> None:
		self.root = Path(root)

	def __repr__(self) -> str:
		return f"DirSource({str(self.root)!r})"

	def _full(self, path: str) -> Path:
		cleaned = _clean(path)
		return self.root if cleaned == "." else self.root / cleaned

	def open(self, path: str) -> BinaryIO:
		return self._full(path).open("rb")

	def is_dir(self, path: str) -> bool:
		return self._full(path).is_dir()

	def list_dir(self, path: str) -> list[SourceEntry]:
		full = self._full(path)
		if not full.is_dir():
			raise FileNotFoundError(f"not a directory: {full}")
		return sorted((SourceEntry(p.name, p.is_dir()) for p in full.iterdir()), key=lambda e: e.name)

	def read_file(self, path: str) -> bytes:
		return self._full(path).read_bytes()


class ArchiveSource:
	"""
	A VirtualSource over the members of a zip archive below `base`.

	Zip files need not carry directory members, so directories are inferred:
	a name is a directory when some member continues below it.
	"""

	def __init__(self, archive: zipfile.ZipFile, base: str = "", *, owned: BinaryIO | None = None) -> None:
		self.archive = archive
		self.base = _clean(base) if base else "."
		self._owned = owned
		self._names = [n for n in archive.namelist() if n and not n.startswith("/")]

	def __repr__(self) -> str:
		return f"ArchiveSource(base={self.base!r}, members={len(self._names)})"

	def close(self) -> None:
		self.archive.close()
		if self._owned is not None:
			self._owned.close()

	def __enter__(self) -> "ArchiveSource":
		return self

	def __exit__(self, *exc: object) -> None:
		self.close()

	def _full(self, path: str) -> str:
		cleaned = _clean(path)
		if self.base == ".":
			return cleaned
		return self.base if cleaned == "." else f"{self.base}/{cleaned}"

	@staticmethod
	def _prefix(full: str) -> str:
		return "" if full == "." else full + "/"

	def open(self, path: str) -> BinaryIO:
		full = self._full(path)
		try:
			info = self.archive.getinfo(full)
		except KeyError:
			raise FileNotFoundError(f"no such archive member: {full}") from None
		if info.is_dir():
			raise IsADirectoryError(f"archive member is a directory: {full}")
		return self.archive.open(info)

	def is_dir(self, path: str) -> bool:
		full = self._full(path)
		prefix = self._prefix(full)
		return full == "." or any(n.startswith(prefix) for n in self._names)

	def list_dir(self, path: str) -> list[SourceEntry]:
		prefix = self._prefix(self._full(path))
		entries: dict[str, bool] = {}
		for name in self._names:
			if not name.startswith(prefix):
				continue
			rest = name[len(prefix):]
			if not rest:
				continue
			first, sep, _ = rest.partition("/")
			if not first:
				continue
			entries[first] = entries.get(first, False) or bool(sep)
		if not entries and not self.is_dir(path):
			raise FileNotFoundError(f"not a directory: {self._full(path)}")
		return [SourceEntry(name, is_dir) for name, is_dir in sorted(entries.items())]

	def read_file(self, path: str) -> bytes:
		with self.open(path) as fh:
			return fh.read()


__all__ = ["ArchiveSource", "DirSource", "SourceEntry", "VirtualSource"]
