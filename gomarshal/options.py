# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Run configuration.

`ResolveOptions` controls where module sources come from and which files of a
package count for the target platform. `MethodNames` selects which of the five
method roles are generated and what they are called.
"""

from __future__ import annotations

import os
import platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_PROXY = "https://proxy.golang.org"
DEFAULT_FETCH_TIMEOUT = 30.0

_GOOS_BY_PLATFORM = {
	"linux": "linux",
	"darwin": "darwin",
	"win32": "windows",
	"cygwin": "windows",
	"freebsd": "freebsd",
	"openbsd": "openbsd",
	"netbsd": "netbsd",
	"sunos5": "solaris",
	"aix": "aix",
}

_GOARCH_BY_MACHINE = {
	"x86_64": "amd64",
	"amd64": "amd64",
	"aarch64": "arm64",
	"arm64": "arm64",
	"i386": "386",
	"i686": "386",
	"x86": "386",
	"armv7l": "arm",
	"armv6l": "arm",
	"ppc64le": "ppc64le",
	"ppc64": "ppc64",
	"s390x": "s390x",
	"riscv64": "riscv64",
	"mips64": "mips64",
	"loongarch64": "loong64",
}


def host_goos() -> str:
	for prefix, goos in _GOOS_BY_PLATFORM.items():
		if sys.platform.startswith(prefix):
			return goos
	return sys.platform


def host_goarch() -> str:
	machine = platform.machine().lower()
	return _GOARCH_BY_MACHINE.get(machine, machine or "amd64")


def _proxy_from_env(value: str | None) -> str:
	"""Pick the first HTTP(S) proxy out of a GOPROXY list."""
	if not value:
		return DEFAULT_PROXY
	for entry in value.replace("|", ",").split(","):
		entry = entry.strip()
		if entry.startswith("https://") or entry.startswith("http://"):
			return entry.rstrip("/")
	return DEFAULT_PROXY


def _tags_from_goflags(value: str | None) -> tuple[str, ...]:
	if not value:
		return ()
	args = value.split()
	for i, arg in enumerate(args):
		if arg.startswith("-tags=") or arg.startswith("--tags="):
			return tuple(t for t in arg.split("=", 1)[1].split(",") if t)
		if arg in ("-tags", "--tags") and i + 1 < len(args):
			return tuple(t for t in args[i + 1].split(",") if t)
	return ()


def default_mod_cache(env: Mapping[str, str]) -> Path:
	if env.get("GOMODCACHE"):
		return Path(env["GOMODCACHE"])
	gopath = env.get("GOPATH", "")
	first = gopath.split(os.pathsep)[0] if gopath else ""
	root = Path(first) if first else Path.home() / "go"
	return root / "pkg" / "mod"


@dataclass(frozen=True)
class ResolveOptions:
	goos: str = "linux"
	goarch: str = "amd64"
	build_tags: tuple[str, ...] = ()
	cgo_enabled: bool = False
	mod_cache_dir: Path = Path.home() / "go" / "pkg" / "mod"
	proxy_url: str = DEFAULT_PROXY
	goroot: Path | None = None
	fetch_timeout: float = DEFAULT_FETCH_TIMEOUT

	@classmethod
	def from_env(cls, env: Mapping[str, str] | None = None, **overrides) -> "ResolveOptions":
		env = os.environ if env is None else env
		goroot = env.get("GOROOT")
		values = dict(
			goos=env.get("GOOS") or host_goos(),
			goarch=env.get("GOARCH") or host_goarch(),
			build_tags=_tags_from_goflags(env.get("GOFLAGS")),
			mod_cache_dir=default_mod_cache(env),
			proxy_url=_proxy_from_env(env.get("GOPROXY")),
			goroot=Path(goroot) if goroot else None,
		)
		values.update(overrides)
		return cls(**values)


@dataclass(frozen=True)
class MethodNames:
	"""Names for the generated methods; an empty name disables that role."""

	write_to: str = "WriteTo"
	read_from: str = "ReadFrom"
	append_binary: str = "AppendBinary"
	marshal_binary: str = "MarshalBinary"
	unmarshal_binary: str = "UnmarshalBinary"

	@property
	def needs_encoder(self) -> bool:
		return bool(self.write_to or self.append_binary or self.marshal_binary)

	@property
	def needs_decoder(self) -> bool:
		return bool(self.read_from or self.unmarshal_binary)

	def enabled(self) -> list[str]:
		return [n for n in (self.append_binary, self.marshal_binary, self.write_to, self.unmarshal_binary, self.read_from) if n]


__all__ = ["DEFAULT_PROXY", "MethodNames", "ResolveOptions", "default_mod_cache", "host_goarch", "host_goos"]
