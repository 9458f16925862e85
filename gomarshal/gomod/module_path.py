# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Module path helpers: case-escaping for cache and proxy paths, and detection of
local directory replacements.

Module proxies and the module cache live on case-insensitive filesystems, so
upper-case letters are encoded as `!` followed by the lower-case letter
(`github.com/Azure` -> `github.com/!azure`).
"""

from __future__ import annotations

from gomarshal.errors import InvalidModulePath

_PATH_PUNCT = set("-._~/")
_VERSION_PUNCT = set("-._~+")


def _is_ascii_alnum(ch: str) -> bool:
	return ch.isascii() and ch.isalnum()


def _escape(text: str) -> str:
	out: list[str] = []
	for ch in text:
		if "A" <= ch <= "Z":
			out.append("!" + ch.lower())
		else:
			out.append(ch)
	return "".join(out)


def check_import_path(path: str) -> None:
	if not path:
		raise InvalidModulePath("empty module path", path=path)
	if path.startswith("/") or path.endswith("/"):
		raise InvalidModulePath("module path must not begin or end with a slash", path=path)
	for elem in path.split("/"):
		if not elem:
			raise InvalidModulePath("module path has an empty element", path=path)
		if elem in (".", ".."):
			raise InvalidModulePath(f"module path has a {elem!r} element", path=path)
		if elem.endswith("."):
			raise InvalidModulePath("module path element ends in a dot", path=path)
		for ch in elem:
			if not (_is_ascii_alnum(ch) or ch in _PATH_PUNCT):
				raise InvalidModulePath(f"invalid character {ch!r} in module path", path=path)


def escape_path(path: str) -> str:
	"""Return the case-escaped form of a module path."""
	check_import_path(path)
	return _escape(path)


def escape_version(version: str) -> str:
	"""Return the case-escaped form of a module version."""
	if not version:
		raise InvalidModulePath("empty module version", version=version)
	for ch in version:
		if not (_is_ascii_alnum(ch) or ch in _VERSION_PUNCT):
			raise InvalidModulePath(f"invalid character {ch!r} in module version", version=version)
	return _escape(version)


def is_directory_path(path: str) -> bool:
	"""
	Report whether a replacement target names a local directory rather than a
	module path: `.`/`..`-relative, rooted, or a Windows drive path.
	"""
	if path in (".", ".."):
		return True
	if path.startswith(("./", ".\\", "../", "..\\", "/", "\\")):
		return True
	return len(path) >= 2 and path[0].isascii() and path[0].isalpha() and path[1] == ":"


__all__ = [
	"check_import_path",
	"escape_path",
	"escape_version",
	"is_directory_path",
]
