# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structured errors raised by gomarshal.

Every failure that ends a run is a `MarshalError` subclass carrying a stable
reason code plus whatever context locates the problem (a module path, a
version, a file, a Go type name). The CLI prints `format_human()`; tooling can
use `to_dict()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(eq=False)
class MarshalError(Exception):
	reason_code: ClassVar[str] = "MARSHAL_ERROR"

	message: str
	path: str | None = None
	version: str | None = None
	file: str | None = None
	type_name: str | None = None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"path": self.path,
			"version": self.version,
			"file": self.file,
			"type_name": self.type_name,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.path:
			parts.append(f"path={self.path}")
		if self.version:
			parts.append(f"version={self.version}")
		if self.file:
			parts.append(f"file={self.file}")
		if self.type_name:
			parts.append(f"type={self.type_name}")
		return " ".join(parts)


@dataclass(eq=False)
class MalformedManifest(MarshalError):
	reason_code: ClassVar[str] = "MALFORMED_MANIFEST"


@dataclass(eq=False)
class NoManifestFound(MarshalError):
	reason_code: ClassVar[str] = "NO_MANIFEST"


@dataclass(eq=False)
class MultiplePackagesError(MarshalError):
	reason_code: ClassVar[str] = "MULTIPLE_PACKAGES"


@dataclass(eq=False)
class SourceUnavailable(MarshalError):
	reason_code: ClassVar[str] = "SOURCE_UNAVAILABLE"


@dataclass(eq=False)
class NotFoundError(MarshalError):
	reason_code: ClassVar[str] = "TYPE_NOT_FOUND"


@dataclass(eq=False)
class NotATypeError(MarshalError):
	reason_code: ClassVar[str] = "NOT_A_TYPE"


@dataclass(eq=False)
class UnsupportedGenericType(MarshalError):
	reason_code: ClassVar[str] = "UNSUPPORTED_GENERIC"


@dataclass(eq=False)
class InvalidModulePath(MarshalError):
	reason_code: ClassVar[str] = "INVALID_MODULE_PATH"


@dataclass(eq=False)
class GoSyntaxError(MarshalError):
	reason_code: ClassVar[str] = "GO_SYNTAX"

	line: int | None = None
	column: int | None = None

	def format_human(self) -> str:
		text = super().format_human()
		if self.line is not None:
			text += f" at={self.line}:{self.column}"
		return text


@dataclass(eq=False)
class TypeCheckError(MarshalError):
	reason_code: ClassVar[str] = "TYPE_CHECK"


@dataclass(eq=False)
class NoGoFiles(MarshalError):
	reason_code: ClassVar[str] = "NO_GO_FILES"


@dataclass(eq=False)
class UnsupportedShapeError(MarshalError):
	reason_code: ClassVar[str] = "UNSUPPORTED_SHAPE"


@dataclass(eq=False)
class MethodConflictError(MarshalError):
	reason_code: ClassVar[str] = "METHOD_CONFLICT"


__all__ = [
	"GoSyntaxError",
	"InvalidModulePath",
	"MalformedManifest",
	"MarshalError",
	"MethodConflictError",
	"MultiplePackagesError",
	"NoGoFiles",
	"NoManifestFound",
	"NotATypeError",
	"NotFoundError",
	"SourceUnavailable",
	"TypeCheckError",
	"UnsupportedGenericType",
	"UnsupportedShapeError",
]
