# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
gomarshal: binary marshalling code generation for Go types.

Packages:
  gomod:    go.mod parsing, import resolution and module source access
  gotypes:  declaration-level Go parser, checker and package loader
  marshalc: type-graph classification and Go method synthesis
"""

__all__ = ["gomod", "gotypes", "marshalc"]
