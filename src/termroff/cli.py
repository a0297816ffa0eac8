"""Command-line interface for termroff."""

from __future__ import annotations

import argparse
import logging
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from termroff.errors import InterpretError

CONFIG_FILENAME = "termroff.toml"


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_file: Path | None  # None reads stdin
    output_file: Path | None
    section: str | None
    columns: int | None
    trace: bool
    debug: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="termroff",
        description="Render man-page markup as terminal text",
    )
    p.add_argument("input", help="Input man-page source ('-' for stdin)")
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    p.add_argument(
        "-s",
        "--section",
        metavar="NAME",
        help="Only render one section: name, synopsis, description or options",
    )
    p.add_argument(
        "-w",
        "--width",
        type=int,
        default=None,
        metavar="COLUMNS",
        help="Terminal width in columns (default: detected)",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help=f"Config file (default: auto-discover {CONFIG_FILENAME})",
    )
    p.add_argument("--trace", action="store_true", help="Print the consumed-token trace to stderr")
    p.add_argument("--debug", action="store_true", help="Dump tokens and debug logs to stderr")
    return p


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / CONFIG_FILENAME

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.
    """
    input_file = None if args.input == "-" else Path(args.input)
    input_dir = input_file.parent if input_file is not None else Path(".")
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)

    section: str | None = None
    columns: int | None = None
    cfg_render = config.get("render")
    if isinstance(cfg_render, dict):
        cfg_section = cfg_render.get("section")
        if cfg_section is not None:
            if not isinstance(cfg_section, str):
                raise argparse.ArgumentTypeError(
                    f"invalid config value for render.section: {cfg_section!r}"
                )
            section = cfg_section
        cfg_width = cfg_render.get("width")
        if cfg_width is not None:
            if not isinstance(cfg_width, int) or isinstance(cfg_width, bool):
                raise argparse.ArgumentTypeError(
                    f"invalid config value for render.width: {cfg_width!r}"
                )
            columns = cfg_width

    if args.section is not None:
        section = args.section
    if args.width is not None:
        columns = args.width

    output_file = Path(args.output) if args.output else None

    return CliOptions(
        input_file=input_file,
        output_file=output_file,
        section=section,
        columns=columns,
        trace=args.trace,
        debug=args.debug,
    )


def render_file(options: CliOptions) -> str:
    """Read, tokenize and interpret a man-page source to terminal text."""
    from termroff.builtins import Section
    from termroff.debug import dump_tokens
    from termroff.interpreter import interpret
    from termroff.layout import LayoutEngine, line_width_for
    from termroff.lexer import tokenize

    if options.input_file is None:
        source = sys.stdin.read()
    else:
        source = options.input_file.read_text(encoding="utf-8", errors="replace")

    tokens = tokenize(source)
    if options.debug:
        dump_tokens(tokens, file=sys.stderr)

    section = Section.from_name(options.section) if options.section is not None else None
    width = line_width_for(options.columns) if options.columns is not None else None

    interpreter = interpret(tokens, section, layout=LayoutEngine(width), source=source)

    if options.trace:
        print(interpreter.trace, file=sys.stderr)

    return interpreter.text


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        options = resolve_options(args)
    except (argparse.ArgumentTypeError, tomllib.TOMLDecodeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    try:
        text = render_file(options)
    except InterpretError as exc:
        filename = str(options.input_file) if options.input_file else "<stdin>"
        print(exc.format(filename), file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if options.output_file:
        options.output_file.write_text(text + "\n", encoding="utf-8")
    else:
        sys.stdout.write(text + "\n")

    return 0
