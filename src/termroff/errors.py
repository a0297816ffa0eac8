"""Error types with formatted source context."""

from __future__ import annotations

from dataclasses import dataclass

from termroff.tokens import Token


class InterpretError(Exception):
    """Raised when the token stream breaks the interpreter's grammar contract.

    These are never caused by merely unusual markup; they mean the lexer and
    interpreter disagree, the stream ended where a value was required, or the
    document pops more margin scopes than it pushed.
    """

    def __init__(self, message: str, token: Token | None, source: str = "") -> None:
        self.message = message
        self.token = token
        self.source = source
        super().__init__(self.format())

    def format(self, filename: str = "input.man") -> str:
        if self.token is None:
            return f"error: {self.message}\n  --> {filename}: at end of input"

        lines = self.source.splitlines()
        line_idx = self.token.line - 1
        col = self.token.column

        if 0 <= line_idx < len(lines):
            source_line = lines[line_idx]
        else:
            source_line = ""

        underline_len = max(1, len(self.token.value))
        pad = " " * (col - 1)
        carets = "^" * underline_len

        line_num = str(self.token.line)
        gutter_width = len(line_num) + 1

        blank_gutter = " " * gutter_width + "|"
        line_gutter = f"{line_num:>{gutter_width - 1}} |"

        return (
            f"error: {self.message}\n"
            f"{' ' * gutter_width}--> {filename}:{self.token.line}:{col}\n"
            f"{blank_gutter}\n"
            f"{line_gutter} {source_line}\n"
            f"{blank_gutter} {pad}{carets}"
        )


class MarginUnderflowError(Exception):
    """Raised when a margin scope is popped with none left on the stack."""


@dataclass(frozen=True, slots=True)
class ParseWarning:
    """A soft anomaly: recorded, then parsing continues."""

    message: str
    line: int
    column: int

    def format(self, filename: str = "input.man") -> str:
        return f"warning: {self.message}\n  --> {filename}:{self.line}:{self.column}"
