# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Go declarations: parsing, lazy type checking and package loading."""
