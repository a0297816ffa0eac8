"""Builtin macro registry: aliases, escape tables and document sections."""

from __future__ import annotations

from enum import Enum

# Alias map: alternate name -> canonical name
ALIASES: dict[str, str] = {
    ".LP": ".PP",
    ".P": ".PP",
}

# Canonical names of every macro the interpreter handles
MACROS: frozenset[str] = frozenset(
    {
        ".TH",
        ".SH",
        ".SS",
        ".sp",
        ".br",
        ".nf",
        ".fi",
        ".TP",
        ".IP",
        ".PD",
        ".PP",
        ".B",
        ".I",
        ".BR",
        ".RB",
        ".BI",
        ".IB",
        ".IR",
        ".RI",
        ".RS",
        ".RE",
        ".if",
    }
)


def resolve_name(name: str) -> str:
    """Resolve an alias to its canonical name."""
    return ALIASES.get(name, name)


def is_known_macro(name: str) -> bool:
    return resolve_name(name) in MACROS


# Escape commands that take one trailing argument: font, colour, point size, string
ARG_COMMANDS: frozenset[str] = frozenset("fms*")

# Escape commands that name a special character: \(xy and \[name]
SPECIAL_CHAR_COMMANDS: frozenset[str] = frozenset("([")

# Special-character mnemonics; anything missing renders as nothing
SPECIAL_CHARACTERS: dict[str, str] = {
    "cq": "'",
}

# Single-character escapes that render literally
LITERAL_ESCAPES: dict[str, str] = {
    "-": "-",
    "e": "\\",
    "\\": "\\",
}

# Escapes that start a comment running to the end of the line
COMMENT_ESCAPES: frozenset[str] = frozenset('"#')


class FontArg(Enum):
    """Meaning of the argument to a \\f escape."""

    BOLD = "B"
    ITALIC = "I"
    ROMAN = "R"
    PREVIOUS = "P"


def font_arg(value: str) -> FontArg | None:
    """Map a \\f argument to a FontArg, or None when it is not supported."""
    try:
        return FontArg(value)
    except ValueError:
        return None


class Section(Enum):
    """The closed set of document sections a caller can isolate."""

    UNKNOWN = "UNKNOWN"
    NAME = "NAME"
    SYNOPSIS = "SYNOPSIS"
    DESCRIPTION = "DESCRIPTION"
    OPTIONS = "OPTIONS"

    @classmethod
    def from_title(cls, title: str) -> Section:
        """Map literal .SH title text; only the exact upper-case names match."""
        try:
            return cls(title)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_name(cls, name: str) -> Section:
        """Map a user-supplied section request, ignoring case."""
        return cls.from_title(name.strip().upper())
