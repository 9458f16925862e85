# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Shape classification of checked Go types and synthesis of marshalling methods."""
