"""Render man-page markup as wrapped, ANSI-styled terminal text."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from termroff.builtins import Section

__version__ = "0.1.0"


def render(
    source: str,
    section: str | Section | None = None,
    *,
    width: int | None = None,
) -> str:
    """Tokenize and interpret man-page source, returning the terminal text.

    ``section`` isolates one section (a case-insensitive name or a Section);
    ``width`` is the maximum line width, taken from the terminal when omitted.
    """
    from termroff.builtins import Section
    from termroff.interpreter import interpret
    from termroff.layout import LayoutEngine
    from termroff.lexer import tokenize

    if isinstance(section, str):
        section = Section.from_name(section)

    tokens = tokenize(source)
    return interpret(tokens, section, layout=LayoutEngine(width), source=source).text
