# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import pytest

from gomarshal.errors import InvalidModulePath
from gomarshal.gomod.module_path import (
	check_import_path,
	escape_path,
	escape_version,
	is_directory_path,
)


def test_escape_upper_case():
	assert escape_path("github.com/Azure/azure-sdk-for-go") == "github.com/!azure/azure-sdk-for-go"
	assert escape_path("github.com/BurntSushi/toml") == "github.com/!burnt!sushi/toml"
	assert escape_version("v1.0.0-RC1") == "v1.0.0-!r!c1"
	assert escape_path("golang.org/x/mod") == "golang.org/x/mod"


@pytest.mark.parametrize("path", ["", "/abs", "a//b", "a/./b", "a/../b", "a/b.", "a/b c", "a/é"])
def test_bad_import_paths(path):
	with pytest.raises(InvalidModulePath):
		check_import_path(path)


def test_bad_version():
	with pytest.raises(InvalidModulePath):
		escape_version("")
	with pytest.raises(InvalidModulePath):
		escape_version("v1/2")


@pytest.mark.parametrize(
	("path", "expected"),
	[
		("./local", True),
		("../sibling", True),
		("..", True),
		("/abs/path", True),
		("C:\\go\\mod", True),
		("example.com/mod", False),
		("golang.org/x/tools", False),
	],
)
def test_directory_paths(path, expected):
	assert is_directory_path(path) is expected
