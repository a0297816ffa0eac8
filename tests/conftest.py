"""Shared test fixtures and helpers."""

from __future__ import annotations

import re

import pytest

from termroff.builtins import Section
from termroff.interpreter import Interpreter, interpret
from termroff.layout import LayoutEngine
from termroff.lexer import tokenize
from termroff.tokens import Token, TokenType

_ANSI = re.compile(r"\x1b\[[0-9;]*m")

FIXTURE_PAGE = """\
.SH NAME
foo - does a thing
.SH SYNOPSIS
foo [OPTIONS]
.SH DESCRIPTION
Full description.
"""


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns the token list."""

    def _lex(source: str) -> list[Token]:
        return tokenize(source)

    return _lex


@pytest.fixture
def shape():
    """Return a helper reducing tokens to (type, value, starts_line) triples."""

    def _shape(tokens: list[Token]) -> list[tuple[TokenType, str, bool]]:
        return [(t.type, t.value, t.starts_line) for t in tokens]

    return _shape


@pytest.fixture
def run():
    """Return a helper that interprets source and returns the Interpreter."""

    def _run(source: str, section: Section | None = None, width: int = 72) -> Interpreter:
        return interpret(tokenize(source), section, layout=LayoutEngine(width), source=source)

    return _run


@pytest.fixture
def render_plain(run):
    """Return a helper that renders source and strips ANSI styling."""

    def _render(source: str, section: Section | None = None, width: int = 72) -> str:
        return _ANSI.sub("", run(source, section, width).text)

    return _render


@pytest.fixture
def render_raw(run):
    """Return a helper that renders source keeping ANSI styling."""

    def _render(source: str, section: Section | None = None, width: int = 72) -> str:
        return run(source, section, width).text

    return _render


@pytest.fixture
def engine() -> LayoutEngine:
    """A layout engine with a small, fixed line width."""
    return LayoutEngine(40)


@pytest.fixture
def page() -> str:
    return FIXTURE_PAGE
