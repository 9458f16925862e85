# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Syntax tree for the declaration level of a Go source file.

Only what type checking of declarations needs is kept. Function bodies are
dropped; expression positions the checker may have to evaluate (constant
initialisers, array lengths) keep their raw tokens.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Tok:
	kind: str
	value: str
	line: int = 0


@dataclass
class TypeExpr:
	line: int


@dataclass
class NameExpr(TypeExpr):
	name: str
	pkg: Optional[str] = None
	args: List[TypeExpr] = field(default_factory=list)

	@property
	def is_bare(self) -> bool:
		return self.pkg is None and not self.args


@dataclass
class ArrayExpr(TypeExpr):
	length: List[Tok]
	elem: TypeExpr


@dataclass
class SliceExpr(TypeExpr):
	elem: TypeExpr


@dataclass
class PointerExpr(TypeExpr):
	elem: TypeExpr


@dataclass
class MapExpr(TypeExpr):
	key: TypeExpr
	value: TypeExpr


@dataclass
class ChanExpr(TypeExpr):
	elem: TypeExpr
	dir: str = "both"  # "both" | "send" | "recv"


@dataclass
class ParamDecl:
	name: Optional[str]
	type: TypeExpr


@dataclass
class FuncExpr(TypeExpr):
	params: List[ParamDecl]
	results: List[ParamDecl]
	variadic: bool = False


@dataclass
class FieldDecl:
	name: str
	type: TypeExpr
	tag: Optional[str] = None
	embedded: bool = False
	line: int = 0


@dataclass
class StructExpr(TypeExpr):
	fields: List[FieldDecl]


@dataclass
class InterfaceExpr(TypeExpr):
	tokens: List[Tok]

	@property
	def is_empty(self) -> bool:
		return not any(t.kind != "SEMI" for t in self.tokens)


@dataclass
class TypeParamDecl:
	name: str
	constraint: List[TypeExpr]


@dataclass
class ImportSpec:
	path: str
	name: Optional[str]
	line: int


@dataclass
class TypeSpec:
	name: str
	type: TypeExpr
	type_params: List[TypeParamDecl]
	alias: bool
	line: int


@dataclass
class FuncDecl:
	name: str
	recv: Optional[ParamDecl]
	type_params: List[TypeParamDecl]
	sig: FuncExpr
	has_body: bool
	line: int


@dataclass
class ValueSpec:
	"""
	One `const` or `var` spec. For constants, `values` and `type` are already
	filled in from the previous spec of the group when the source leaves them
	implicit, and `iota` is the spec's index within its group.
	"""

	kind: str  # "const" | "var"
	names: List[str]
	type: Optional[TypeExpr]
	values: List[List[Tok]]
	iota: int
	line: int


@dataclass
class File:
	name: str
	package: str
	imports: List[ImportSpec] = field(default_factory=list)
	types: List[TypeSpec] = field(default_factory=list)
	funcs: List[FuncDecl] = field(default_factory=list)
	values: List[ValueSpec] = field(default_factory=list)
