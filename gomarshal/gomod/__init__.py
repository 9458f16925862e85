# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Module-aware package resolution: go.mod parsing, import classification and source access."""
