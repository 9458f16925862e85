# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import pytest

from gomarshal.gomod.manifest import parse_manifest
from gomarshal.gomod.resolver import DependencyCoordinate, ImportResolver

GO_MOD = """module vimagination.zapto.org/marshal

go 1.25.5

require (
	golang.org/x/mod v0.31.0
	golang.org/x/tools v0.39.0
	golang.org/x/tools/gopls v0.20.0
	vimagination.zapto.org/httpreaderat v1.0.0
)

replace golang.org/x/tools => somewhere.org/tools v0.1.0

replace vimagination.zapto.org/httpreaderat => ../httpreaderat

replace golang.org/x/mod v0.30.0 => ../mod
"""


@pytest.fixture
def resolver():
	return ImportResolver(parse_manifest(GO_MOD), "/src/marshal")


@pytest.mark.parametrize(
	("path", "expected"),
	[
		("golang.org/x/mod", DependencyCoordinate("golang.org/x/mod", "v0.31.0", ".")),
		("golang.org/x/mod/modfile", DependencyCoordinate("golang.org/x/mod", "v0.31.0", "modfile")),
		("golang.org/x/tools", DependencyCoordinate("somewhere.org/tools", "v0.1.0", ".")),
		("golang.org/x/tools/go/packages", DependencyCoordinate("somewhere.org/tools", "v0.1.0", "go/packages")),
		("golang.org/x/tools/gopls/cache", DependencyCoordinate("golang.org/x/tools/gopls", "v0.20.0", "cache")),
		("vimagination.zapto.org/httpreaderat", DependencyCoordinate("../httpreaderat", "", ".")),
		("vimagination.zapto.org/httpreaderat/sub", DependencyCoordinate("../httpreaderat", "", "sub")),
		("vimagination.zapto.org/marshal", DependencyCoordinate("/src/marshal", "", ".")),
		("vimagination.zapto.org/marshal/internal/x", DependencyCoordinate("/src/marshal", "", "internal/x")),
	],
)
def test_resolve(resolver, path, expected):
	assert resolver.resolve(path) == expected


@pytest.mark.parametrize(
	"path",
	[
		"fmt",
		"encoding/binary",
		"golang.org/x/modx",
		"vimagination.zapto.org/marshalling",
		"golang.org/x/sync",
	],
)
def test_unresolved(resolver, path):
	assert resolver.resolve(path) is None


def test_local_coordinates(resolver):
	assert resolver.resolve("vimagination.zapto.org/httpreaderat").is_local
	assert not resolver.resolve("golang.org/x/mod").is_local
