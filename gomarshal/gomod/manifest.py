# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
go.mod parsing.

The grammar (`gomod.lark`) only splits the file into directives and their
arguments; this module gives the directives meaning and applies the replace
policy that the resolver relies on:

- a `replace old => new` with no old version applies to whatever version of
  `old` is required;
- a `replace old v1 => new` applies only if `old` is required at exactly `v1`,
  and then takes precedence over an unversioned rule for `old`;
- a replace for a path that is not required has no effect.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from gomarshal.errors import MalformedManifest
from gomarshal.gomod.module_path import is_directory_path
from gomarshal.log import get_logger

_GRAMMAR_PATH = Path(__file__).with_name("gomod.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

_KNOWN_VERBS = {
	"module",
	"go",
	"toolchain",
	"godebug",
	"require",
	"exclude",
	"replace",
	"retract",
	"tool",
	"ignore",
}

logger = get_logger("gomod.manifest")


@dataclass(frozen=True)
class ModuleVersion:
	path: str
	version: str = ""


@dataclass(frozen=True)
class Requirement:
	mod: ModuleVersion
	indirect: bool = False


@dataclass(frozen=True)
class Rewrite:
	old: ModuleVersion
	new: ModuleVersion


@dataclass(frozen=True)
class ModuleManifest:
	"""Parsed form of a go.mod file."""

	identity: str
	go_version: str | None = None
	toolchain: str | None = None
	requirements: tuple[Requirement, ...] = ()
	rewrites: tuple[Rewrite, ...] = ()
	excludes: tuple[ModuleVersion, ...] = ()
	retracts: tuple[str, ...] = ()
	dependencies: Mapping[str, ModuleVersion] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class _Directive:
	verb: str
	args: list[str]
	comment: str
	line: int


def _unquote(tok: Token) -> str:
	text = tok.value
	if tok.type != "QUOTED":
		return text
	if text.startswith("`"):
		return text[1:-1]
	return codecs.decode(text[1:-1], "unicode_escape")


def _comment_text(children: list) -> str:
	for child in children:
		if isinstance(child, Token) and child.type == "COMMENT":
			return child.value[2:].strip()
	return ""


def _args(children: list) -> list[str]:
	out: list[str] = []
	for child in children:
		if isinstance(child, Token) and child.type in ("WORD", "QUOTED", "ARROW"):
			out.append("=>" if child.type == "ARROW" else _unquote(child))
	return out


def _directives(tree: Tree) -> list[_Directive]:
	out: list[_Directive] = []
	for node in tree.children:
		if not isinstance(node, Tree) or node.data == "comment_line":
			continue
		verb_tok = node.children[0]
		verb = verb_tok.value
		if node.data == "line_directive":
			out.append(_Directive(verb, _args(node.children[1:]), _comment_text(node.children), verb_tok.line))
			continue
		for entry in node.children[1:]:
			if isinstance(entry, Tree) and entry.data == "entry":
				out.append(_Directive(verb, _args(entry.children), _comment_text(entry.children), entry.meta.line))
	return out


def _fail(message: str, line: int, file: str) -> MalformedManifest:
	return MalformedManifest(f"{message} (line {line})", file=file)


def _parse_replace(d: _Directive, file: str) -> Rewrite:
	try:
		arrow = d.args.index("=>")
	except ValueError:
		raise _fail("replace is missing '=>'", d.line, file) from None
	old, new = d.args[:arrow], d.args[arrow + 1:]
	if len(old) not in (1, 2) or len(new) not in (1, 2):
		raise _fail("usage: replace module/path [v1.2.3] => other/module v1.4 or => ../local/directory", d.line, file)
	old_mod = ModuleVersion(old[0], old[1] if len(old) == 2 else "")
	new_mod = ModuleVersion(new[0], new[1] if len(new) == 2 else "")
	if is_directory_path(new_mod.path):
		if new_mod.version:
			raise _fail("replacement directory cannot have a version", d.line, file)
	elif not new_mod.version:
		raise _fail("replacement module without version must be a directory path (rooted or starting with ./ or ../)", d.line, file)
	return Rewrite(old_mod, new_mod)


def apply_rewrites(requirements: tuple[Requirement, ...], rewrites: tuple[Rewrite, ...]) -> dict[str, ModuleVersion]:
	"""Map each required path to the module that provides it after replaces."""
	required = {req.mod.path: req.mod for req in requirements}
	exact: dict[str, ModuleVersion] = {}
	any_version: dict[str, ModuleVersion] = {}
	for rw in rewrites:
		mod = required.get(rw.old.path)
		if mod is None:
			continue
		if rw.old.version == "":
			any_version[rw.old.path] = rw.new
		elif rw.old.version == mod.version:
			exact[rw.old.path] = rw.new
	deps: dict[str, ModuleVersion] = {}
	for path, mod in required.items():
		deps[path] = exact.get(path) or any_version.get(path) or mod
	return deps


def parse_manifest(data: bytes | str, *, file: str = "go.mod") -> ModuleManifest:
	"""
	Parse the bytes of a go.mod file.

	Raises `MalformedManifest` for anything the go command would reject at the
	directive level: unparsable text, unknown verbs, wrong argument counts, a
	missing or repeated module directive.
	"""
	if isinstance(data, bytes):
		try:
			text = data.decode("utf-8")
		except UnicodeDecodeError as err:
			raise MalformedManifest(f"manifest is not valid UTF-8: {err}", file=file) from err
	else:
		text = data
	if not text.endswith("\n"):
		text += "\n"
	try:
		tree = _PARSER.parse(text)
	except UnexpectedInput as err:
		raise MalformedManifest(f"syntax error at line {err.line}, column {err.column}", file=file) from err

	identity: str | None = None
	go_version: str | None = None
	toolchain: str | None = None
	requirements: list[Requirement] = []
	rewrites: list[Rewrite] = []
	excludes: list[ModuleVersion] = []
	retracts: list[str] = []

	for d in _directives(tree):
		if d.verb not in _KNOWN_VERBS:
			raise _fail(f"unknown directive: {d.verb}", d.line, file)
		if d.verb == "module":
			if identity is not None:
				raise _fail("repeated module statement", d.line, file)
			if len(d.args) != 1:
				raise _fail("usage: module module/path", d.line, file)
			identity = d.args[0]
		elif d.verb == "go":
			if len(d.args) != 1:
				raise _fail("usage: go 1.23", d.line, file)
			go_version = d.args[0]
		elif d.verb == "toolchain":
			if len(d.args) != 1:
				raise _fail("usage: toolchain name", d.line, file)
			toolchain = d.args[0]
		elif d.verb in ("require", "exclude"):
			if len(d.args) != 2:
				raise _fail(f"usage: {d.verb} module/path v1.2.3", d.line, file)
			mod = ModuleVersion(d.args[0], d.args[1])
			if d.verb == "require":
				requirements.append(Requirement(mod, indirect=d.comment == "indirect" or d.comment.startswith("indirect;")))
			else:
				excludes.append(mod)
		elif d.verb == "replace":
			rewrites.append(_parse_replace(d, file))
		elif d.verb == "retract":
			if not d.args:
				raise _fail("usage: retract version", d.line, file)
			retracts.append(" ".join(d.args))
		elif not d.args:
			raise _fail(f"usage: {d.verb} argument", d.line, file)

	if identity is None:
		raise MalformedManifest("no module directive found", file=file)

	reqs = tuple(requirements)
	rws = tuple(rewrites)
	manifest = ModuleManifest(
		identity=identity,
		go_version=go_version,
		toolchain=toolchain,
		requirements=reqs,
		rewrites=rws,
		excludes=tuple(excludes),
		retracts=tuple(retracts),
		dependencies=MappingProxyType(apply_rewrites(reqs, rws)),
	)
	logger.debug("parsed manifest for %s: %d requirements, %d replaces", identity, len(reqs), len(rws))
	return manifest


__all__ = ["ModuleManifest", "ModuleVersion", "Requirement", "Rewrite", "apply_rewrites", "parse_manifest"]
