"""Command line interface for the build matrix tool."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List
import logging
import sys

from .command_runner import RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import CONFIG_STEM, load_config
from .errors import BuildMatrixError, CellExecutionFailure
from .executor import MatrixExecutor
from .matrix import plan_matrix
from .report import RunReporter
from .scaffold import RENDERERS, write_default_config


PROG = "buildmatrix"

USAGE = f"""\
usage: {PROG} <path> [--strict] [--dry-run] [--verbose]
       {PROG} config [--format {{toml,json,yaml}}] [--force]
       {PROG} help

Configure one out-of-tree CMake build directory per toolchain and build type.

commands:
  <path>   directory holding {CONFIG_STEM}.toml (or .json/.yaml/.yml); configures
           <build_root>/<toolchain>-<build_type> for gcc, clang and cross-mingw64
           in release and debug, and writes every command and its output to
           the run log under the build root
  config   write a commented default configuration to the current directory
  help     show this message

exit status:
  0  all cells attempted (and, with --strict, all succeeded)
  1  configuration directory or file missing, unreadable or invalid
  2  CMakeLists.txt missing at the project root
  3  at least one cell failed in strict mode
  4  a build directory could not be created
  5  the run log could not be written
"""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _parse_run_arguments(argv: List[str]) -> Namespace:
    parser = ArgumentParser(prog=PROG, usage=f"{PROG} <path> [options]", add_help=False)
    parser.add_argument("path", help="Directory containing the configuration file")
    parser.add_argument("--strict", action="store_true", help="Exit non-zero when any cell fails")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing them")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging and list failed cells")
    return parser.parse_args(argv)


def _parse_config_arguments(argv: List[str]) -> Namespace:
    parser = ArgumentParser(prog=f"{PROG} config", description="Write a default configuration file")
    parser.add_argument("--format", dest="fmt", choices=sorted(RENDERERS), default="toml", help="Configuration format")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing configuration file")
    return parser.parse_args(argv)


def main(argv: Iterable[str] | None = None) -> int:
    arguments = list(sys.argv[1:] if argv is None else argv)

    if not arguments or arguments[0] in {"help", "-h", "--help"}:
        print(USAGE, end="")
        return 0
    if arguments[0] == "config":
        return _handle_config(_parse_config_arguments(arguments[1:]), Path.cwd())

    args = _parse_run_arguments(arguments)
    _configure_logging(args.verbose)
    try:
        return _handle_run(args)
    except BuildMatrixError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_code


def _handle_config(args: Namespace, workspace: Path) -> int:
    try:
        path = write_default_config(workspace, fmt=args.fmt, force=args.force)
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"Wrote {path}")
    return 0


def _handle_run(args: Namespace) -> int:
    config = load_config(Path(args.path))
    cells = plan_matrix(config)

    if args.dry_run:
        runner = RecordingCommandRunner()
        MatrixExecutor(runner=runner).run(config, cells, provision=False)
        for line in runner.iter_formatted():
            print(line)
        return 0

    reporter = RunReporter(config.log_path, verbose=args.verbose)
    executor = MatrixExecutor(runner=SubprocessCommandRunner(), reporter=reporter)
    result = executor.run(config, cells)

    if (args.strict or config.strict) and not result.succeeded:
        failure = CellExecutionFailure([outcome.cell.label for outcome in result.failures])
        print(f"Error: {failure}", file=sys.stderr)
        return failure.exit_code
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
