"""--debug token dump to stderr, and the interpreter's trace entry format."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import TextIO

from termroff.tokens import Token


def format_trace_token(token: Token) -> str:
    """One trace entry: ``CLASS('value')``, starting a new line with the source line."""
    prefix = "\n" if token.starts_line else ""
    return f"{prefix}{token.type.name}({token.value!r}) "


def dump_tokens(tokens: Iterable[Token], *, file: TextIO = sys.stderr) -> None:
    """Print one token per line to *file*, marking tokens that start a line."""
    for tok in tokens:
        marker = "^" if tok.starts_line else " "
        file.write(f"{tok.line:>4}:{tok.column:<3} {marker} {tok.type.name:<17} {tok.value!r}\n")
