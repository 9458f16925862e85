# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Which files of a package directory take part in a build.

Follows the `go/build` rules: `.go` files only, no tests, no files starting
with `_` or `.`, `_GOOS`/`_GOARCH` name suffixes must match, build
constraints in the file header must hold, and cgo files are dropped unless
cgo is enabled.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput

from gomarshal.errors import NoGoFiles, TypeCheckError
from gomarshal.gomod.vsource import VirtualSource
from gomarshal.log import get_logger
from gomarshal.options import ResolveOptions

logger = get_logger("gotypes.buildctx")

KNOWN_OS = frozenset(
	"aix android darwin dragonfly freebsd hurd illumos ios js linux nacl netbsd openbsd plan9 solaris wasip1 windows zos".split()
)
KNOWN_ARCH = frozenset(
	"386 amd64 amd64p32 arm armbe arm64 arm64be loong64 mips mipsle mips64 mips64le mips64p32 mips64p32le "
	"ppc ppc64 ppc64le riscv riscv64 s390 s390x sparc sparc64 wasm".split()
)
UNIX_OS = frozenset("aix android darwin dragonfly freebsd hurd illumos ios linux netbsd openbsd solaris".split())

GO_RELEASE = 25

_CONSTRAINT_GRAMMAR = r"""
?start: or_expr
?or_expr: and_expr ("||" and_expr)*
?and_expr: not_expr ("&&" not_expr)*
?not_expr: "!" not_expr -> not_expr
         | atom
?atom: TAG -> tag
     | "(" or_expr ")"
TAG: /[A-Za-z0-9_.]+/
%ignore /[ \t]+/
"""

_CONSTRAINT_PARSER = Lark(_CONSTRAINT_GRAMMAR, parser="lalr", lexer="basic")

_CGO_IMPORT = re.compile(r'^\s*(import\s+)?"C"\s*$', re.MULTILINE)
_FIRST_DECL = re.compile(r"^(func|type|var|const)\b", re.MULTILINE)


class _Evaluate(Transformer):
	def __init__(self, ctx: "BuildContext") -> None:
		super().__init__()
		self.ctx = ctx

	def tag(self, children):
		return self.ctx.match_tag(str(children[0]))

	def not_expr(self, children):
		return not children[0]

	def and_expr(self, children):
		return all(children)

	def or_expr(self, children):
		return any(children)


@dataclass(frozen=True)
class BuildContext:
	goos: str = "linux"
	goarch: str = "amd64"
	build_tags: Tuple[str, ...] = ()
	cgo_enabled: bool = False

	@classmethod
	def from_options(cls, options: ResolveOptions) -> "BuildContext":
		return cls(options.goos, options.goarch, tuple(options.build_tags), options.cgo_enabled)

	def match_tag(self, name: str) -> bool:
		if name in (self.goos, self.goarch, "gc") or name in self.build_tags:
			return True
		if name == "cgo":
			return self.cgo_enabled
		if name == "unix":
			return self.goos in UNIX_OS
		if name == "linux" and self.goos == "android":
			return True
		if name == "solaris" and self.goos == "illumos":
			return True
		if name == "darwin" and self.goos == "ios":
			return True
		if name.startswith("go1."):
			minor = name[4:]
			return minor.isdigit() and 1 <= int(minor) <= GO_RELEASE
		return False

	def good_os_arch_file(self, name: str) -> bool:
		stem = name.split(".", 1)[0]
		i = stem.find("_")
		if i < 0:
			return True
		parts = stem[i:].split("_")
		if parts and parts[-1] == "test":
			parts = parts[:-1]
		n = len(parts)
		if n >= 2 and parts[-2] in KNOWN_OS and parts[-1] in KNOWN_ARCH:
			return self.match_tag(parts[-2]) and self.match_tag(parts[-1])
		if n >= 1 and (parts[-1] in KNOWN_OS or parts[-1] in KNOWN_ARCH):
			return self.match_tag(parts[-1])
		return True

	def eval_expr(self, expr: str) -> bool:
		"""Evaluate a `//go:build` expression."""
		try:
			tree = _CONSTRAINT_PARSER.parse(expr)
		except UnexpectedInput as err:
			raise TypeCheckError(f"malformed build constraint {expr!r}") from err
		if isinstance(tree, bool):
			return tree
		return bool(_Evaluate(self).transform(tree))

	def eval_plus_build(self, line: str) -> bool:
		"""Evaluate a legacy `// +build` line: spaces are OR, commas are AND."""
		for option in line.split():
			if all(self._plus_term(t) for t in option.split(",")):
				return True
		return False

	def _plus_term(self, term: str) -> bool:
		if term.startswith("!"):
			return not self.match_tag(term[1:])
		return self.match_tag(term)

	def should_build(self, content: bytes) -> bool:
		go_build, plus_build = _header_constraints(content)
		if go_build is not None:
			return self.eval_expr(go_build)
		return all(self.eval_plus_build(line) for line in plus_build)

	def match_file(self, name: str, content: bytes) -> bool:
		if not name.endswith(".go") or name.endswith("_test.go"):
			return False
		if name.startswith("_") or name.startswith("."):
			return False
		if not self.good_os_arch_file(name):
			return False
		if not self.should_build(content):
			return False
		if not self.cgo_enabled and _imports_c(content):
			return False
		return True

	def select_files(self, source: VirtualSource, path: str = ".") -> List[Tuple[str, bytes]]:
		"""Read the build-relevant files of `source`. Raises `NoGoFiles`."""
		try:
			entries = source.list_dir(".")
		except FileNotFoundError as err:
			raise NoGoFiles(f"no such package directory: {err}", path=path) from err
		selected: List[Tuple[str, bytes]] = []
		for entry in entries:
			if entry.is_dir or not entry.name.endswith(".go"):
				continue
			content = source.read_file(entry.name)
			if self.match_file(entry.name, content):
				selected.append((entry.name, content))
			else:
				logger.debug("excluded %s/%s", path, entry.name)
		if not selected:
			raise NoGoFiles(f"no buildable Go source files for {self.goos}/{self.goarch}", path=path)
		return selected


def _header_constraints(content: bytes) -> Tuple[str | None, List[str]]:
	"""Collect build constraints from the comment block before the package clause."""
	text = content.decode("utf-8", errors="replace")
	go_build: str | None = None
	plus_build: List[str] = []
	in_block = False
	for raw in text.splitlines():
		line = raw.strip()
		if in_block:
			if "*/" in line:
				in_block = False
			continue
		if not line:
			continue
		if line.startswith("/*"):
			in_block = "*/" not in line[2:]
			continue
		if not line.startswith("//"):
			break
		body = line[2:]
		if body.startswith("go:build ") and go_build is None:
			go_build = body[len("go:build "):].strip()
		elif body.strip().startswith("+build "):
			plus_build.append(body.strip()[len("+build "):])
	return go_build, plus_build


def _imports_c(content: bytes) -> bool:
	text = content.decode("utf-8", errors="replace")
	first = _FIRST_DECL.search(text)
	head = text[: first.start()] if first else text
	return _CGO_IMPORT.search(head) is not None


__all__ = ["BuildContext", "KNOWN_ARCH", "KNOWN_OS", "UNIX_OS"]
