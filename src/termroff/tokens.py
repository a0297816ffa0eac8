"""Token types, data structures, and character classification helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    # Line structure
    MACRO = auto()  # .SH, .TP, ... (whole first chunk of a line)
    EMPTY_LINE = auto()  # blank source line
    WHITESPACE = auto()  # run of one repeated whitespace character

    # Content
    TEXT_WORD = auto()  # plain text between specials
    DOUBLE_QUOTE = auto()  # "

    # Escapes
    BACKSLASH = auto()  # \
    ESCAPE_COMMAND = auto()  # character right after \ (the f in \fB)
    COMMAND_ARG = auto()  # argument to an escape command (the B in \fB)
    ARG_OPEN_BRACKET = auto()  # [ in \f[B]
    ARG_CLOSE_BRACKET = auto()  # ] in \f[B] and \[bu]
    ARG_OPEN_PAREN = auto()  # ( in \f(BI


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexer token.

    ``starts_line`` marks the first token of a physical source line. ``line`` and
    ``column`` are 1-based and only used for diagnostics.
    """

    type: TokenType
    value: str
    starts_line: bool = False
    line: int = 1
    column: int = 1


# Characters that split a non-whitespace chunk into separate tokens
SPECIAL_CHARS: dict[str, TokenType] = {
    "\\": TokenType.BACKSLASH,
    '"': TokenType.DOUBLE_QUOTE,
}

# Token types that only ever appear as part of an escape sequence
ESCAPE_ARG_TYPES = frozenset(
    {
        TokenType.COMMAND_ARG,
        TokenType.ARG_OPEN_BRACKET,
        TokenType.ARG_CLOSE_BRACKET,
        TokenType.ARG_OPEN_PAREN,
    }
)


def is_special(ch: str) -> bool:
    """Return True if ch is split out of a word as its own token."""
    return ch in SPECIAL_CHARS


def is_blank(line: str) -> bool:
    """Return True if line is empty or contains only whitespace."""
    return not line or line.isspace()
