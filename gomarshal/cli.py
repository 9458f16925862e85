# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from gomarshal.errors import MarshalError
from gomarshal.gotypes.loader import TypeLoader
from gomarshal.log import configure_logging, get_logger
from gomarshal.marshalc.generate import generate, write_atomic
from gomarshal.options import MethodNames, ResolveOptions

logger = get_logger("cli")


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="gomarshal", description="Generate binary marshaling methods for Go types")
	p.add_argument("-o", dest="output", type=Path, required=True, help="Output file; its directory is the package to load")
	p.add_argument("-w", dest="write_to", default="WriteTo", help="Alternate name for the WriteTo method (empty disables it)")
	p.add_argument("-r", dest="read_from", default="ReadFrom", help="Alternate name for the ReadFrom method (empty disables it)")
	p.add_argument("-a", dest="append_binary", default="AppendBinary", help="Alternate name for the AppendBinary method (empty disables it)")
	p.add_argument("-m", dest="marshal_binary", default="MarshalBinary", help="Alternate name for the MarshalBinary method (empty disables it)")
	p.add_argument(
		"-u",
		dest="unmarshal_binary",
		default="UnmarshalBinary",
		help="Alternate name for the UnmarshalBinary method (empty disables it)",
	)
	p.add_argument("--tags", default="", help="Comma separated build tags added to the ones from GOFLAGS")
	p.add_argument("-v", "--verbose", action="store_true", help="Log resolution and generation steps to stderr")
	p.add_argument("--log-file", type=Path, default=None, help="Also write a debug log to this file")
	p.add_argument("types", nargs="+", metavar="TYPE", help="Named types to generate methods for")
	return p


def _role_values(names: MethodNames) -> tuple[str, ...]:
	return (names.write_to, names.read_from, names.append_binary, names.marshal_binary, names.unmarshal_binary)


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)
	configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

	options = ResolveOptions.from_env()
	extra_tags = tuple(t for t in args.tags.split(",") if t)
	if extra_tags:
		options = ResolveOptions.from_env(build_tags=options.build_tags + extra_tags)
	names = MethodNames(
		write_to=args.write_to,
		read_from=args.read_from,
		append_binary=args.append_binary,
		marshal_binary=args.marshal_binary,
		unmarshal_binary=args.unmarshal_binary,
	)
	output: Path = args.output.absolute()
	recorded = ["-o", output.name]
	for flag, given, default in zip(("-w", "-r", "-a", "-m", "-u"), _role_values(names), _role_values(MethodNames())):
		if given != default:
			recorded += [flag, given]
	recorded += args.types

	try:
		with TypeLoader(options) as loader:
			pkg = loader.resolve_package(output.parent, ignore=[output.name])
			text = generate(pkg, args.types, names, recorded)
		write_atomic(output, text)
	except MarshalError as err:
		print(f"gomarshal: {err.format_human()}", file=sys.stderr)
		return 1
	except OSError as err:
		print(f"gomarshal: {err}", file=sys.stderr)
		return 1

	logger.info("wrote %s", output)
	return 0


def main_entry() -> None:
	sys.exit(main())


__all__ = ["main", "main_entry"]
