"""Terminal layout engine: styled, width-wrapped output with indentation scopes."""

from __future__ import annotations

import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum, auto

from termroff.errors import MarginUnderflowError

LINEBREAK = "\n"
SPACE = " "

DEFAULT_COLUMNS = 80
MIN_LINE_LENGTH = 80
RIGHT_MARGIN_LENGTH = 8

# Margin restored after each top-level section header
DEFAULT_LEFT_MARGIN = 7

# Fallback for .TP, .IP and .RS when no indent has been stored yet
DEFAULT_INDENT = 7

# ANSI SGR sequences
_BOLD = "\x1b[1m"
_ITALIC = "\x1b[3m"
_UNDERLINE = "\x1b[4m"
_RESET = "\x1b[0m"


def line_width_for(columns: int) -> int:
    """Usable line width for a terminal of the given column count."""
    return max(columns, MIN_LINE_LENGTH) - RIGHT_MARGIN_LENGTH


def terminal_line_width() -> int:
    """Usable line width for the current terminal (honours $COLUMNS)."""
    columns = shutil.get_terminal_size((DEFAULT_COLUMNS, 24)).columns
    return line_width_for(columns)


class FontStyle(Enum):
    BOLD = auto()
    ITALIC = auto()
    UNDERLINE = auto()
    REGULAR = auto()  # not a flag: setting it clears the others


@dataclass
class StyleState:
    """Independent bold/italic/underline flags."""

    bold: bool = False
    italic: bool = False
    underline: bool = False

    def set(self, style: FontStyle, value: bool) -> None:
        match style:
            case FontStyle.BOLD:
                self.bold = value
            case FontStyle.ITALIC:
                self.italic = value
            case FontStyle.UNDERLINE:
                self.underline = value
            case FontStyle.REGULAR:
                self.reset()

    def reset(self) -> None:
        self.bold = False
        self.italic = False
        self.underline = False

    def stylize(self, text: str) -> str:
        """Wrap text in the highest-precedence active style.

        Whitespace is never styled.
        """
        if not text or text.isspace():
            return text
        if self.bold:
            return f"{_BOLD}{text}{_RESET}"
        if self.italic:
            return f"{_ITALIC}{text}{_RESET}"
        if self.underline:
            return f"{_UNDERLINE}{text}{_RESET}"
        return text


@dataclass
class LineInfo:
    """Visible length of the current output line, split by character class.

    A word is classified by its first character; callers pass text that is all
    whitespace or all non-whitespace.
    """

    whitespace_len: int = 0
    nonwhitespace_len: int = 0

    @property
    def length(self) -> int:
        return self.whitespace_len + self.nonwhitespace_len

    def increase(self, word: str) -> None:
        if not word:
            return
        if word[0].isspace():
            self.whitespace_len += len(word)
        else:
            self.nonwhitespace_len += len(word)

    def is_whitespace_only(self) -> bool:
        return self.nonwhitespace_len == 0

    def reset(self) -> None:
        self.whitespace_len = 0
        self.nonwhitespace_len = 0


class LayoutEngine:
    """Accumulate styled terminal text, wrapping at ``max_line_width``.

    Every new line starts with ``margin + indent`` spaces. The margin is only
    changed through a stack of pushed amounts, so it can always be unwound
    exactly; the indent is set directly and can remember one stored value.
    """

    def __init__(self, max_line_width: int | None = None) -> None:
        if max_line_width is None:
            max_line_width = terminal_line_width()
        self.max_line_width = max(1, max_line_width)

        self.style = StyleState()
        self.nofill = False

        self.indent = 0
        self._stored_indent: int | None = None
        self._margin_stack: list[int] = []

        self._parts: list[str] = []
        self._line_start = 0  # index into _parts where the current line begins
        self._line = LineInfo()
        # (text, styled text) appended inside keep_together, None outside it
        self._word: list[tuple[str, str]] | None = None
        self._word_start = 0
        self._word_after_text = False

    # ------------------------------------------------------------------
    # Style
    # ------------------------------------------------------------------

    def set_style(self, style: FontStyle) -> None:
        self.style.set(style, True)

    def unset_style(self, style: FontStyle) -> None:
        self.style.set(style, False)

    def reset_style(self) -> None:
        self.style.reset()

    # ------------------------------------------------------------------
    # Indent
    # ------------------------------------------------------------------

    def zero_indent(self) -> None:
        self.indent = 0

    @property
    def stored_indent(self) -> int | None:
        return self._stored_indent

    def store_indent(self) -> None:
        self._stored_indent = self.indent

    def clear_stored_indent(self) -> None:
        self._stored_indent = None

    def stored_or_default_indent(self) -> int:
        if self._stored_indent is None:
            return DEFAULT_INDENT
        return self._stored_indent

    # ------------------------------------------------------------------
    # Margin
    # ------------------------------------------------------------------

    @property
    def margin(self) -> int:
        return sum(self._margin_stack)

    @property
    def margin_stack(self) -> tuple[int, ...]:
        return tuple(self._margin_stack)

    def push_margin(self, amount: int) -> None:
        """Open a margin scope that widens the left margin by amount."""
        self._margin_stack.append(amount)

    def pop_margin(self) -> int:
        """Close the innermost margin scope and return its amount."""
        if not self._margin_stack:
            raise MarginUnderflowError("no margin scope left to close")
        return self._margin_stack.pop()

    def reset_margin(self) -> None:
        self._margin_stack.clear()

    def default_margin(self) -> None:
        self.reset_margin()
        self.push_margin(DEFAULT_LEFT_MARGIN)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        """The rendered output, without trailing whitespace or blank lines."""
        return "".join(self._parts).rstrip()

    @property
    def line_length(self) -> int:
        """Visible length of the current line (style escapes excluded)."""
        return self._line.length

    def is_line_blank(self) -> bool:
        return self._line.is_whitespace_only()

    def append(self, text: str) -> None:
        """Append text, breaking the line first if it would overflow."""
        if not text:
            return
        if text == LINEBREAK:
            self.break_line()
            return

        if self._word is not None:
            # Wrapping is decided once the whole word is known
            styled = self.style.stylize(text)
            self._line.increase(text)
            self._parts.append(styled)
            self._word.append((text, styled))
            return

        if self._line.length + len(text) > self.max_line_width:
            if text == SPACE:
                # A space at the wrap point is dropped, never carried over
                if not self._line.is_whitespace_only():
                    self.break_line()
                return
            # Breaking a line holding only padding would just repeat it
            if not self._line.is_whitespace_only():
                self.break_line()

        self._line.increase(text)
        self._parts.append(self.style.stylize(text))

    @contextmanager
    def keep_together(self) -> Iterator[None]:
        """Treat everything appended inside the block as one unbreakable word.

        If the word overflows a line that already holds text, it moves to the
        next line whole.
        """
        if self._word is not None:
            yield
            return

        self._word = []
        self._word_start = len(self._parts)
        self._word_after_text = not self._line.is_whitespace_only()
        try:
            yield
        finally:
            word, self._word = self._word, None
            if word and self._word_after_text and self._line.length > self.max_line_width:
                self._carry_word(word)

    def _carry_word(self, word: list[tuple[str, str]]) -> None:
        del self._parts[self._word_start :]
        self.break_line()
        for text, styled in word:
            self._line.increase(text)
            self._parts.append(styled)

    def append_space(self) -> None:
        """Append a single word separator unless the line already ends in one."""
        if self._line.is_whitespace_only():
            return
        if self._parts and self._parts[-1].isspace():
            return
        self.append(SPACE)

    def break_line(self) -> None:
        """End the current line and pad the next one to margin + indent."""
        self._trim_line_end()
        self._parts.append(LINEBREAK)
        self._start_line()

    def line_break(self) -> None:
        """Break unless the current line is blank, in which case re-pad it."""
        if self._line.is_whitespace_only():
            self._repad()
        else:
            self.break_line()

    def blank_line(self) -> None:
        """End the current line and leave one empty line, unless already blank."""
        if self._line.is_whitespace_only():
            self._repad()
            return
        self.break_line()
        self.break_line()

    def _start_line(self) -> None:
        self._line_start = len(self._parts)
        self._word = None
        self._line.reset()
        # Padding never exceeds the line, so it can never trigger a wrap itself
        for _ in range(min(self.margin + self.indent, self.max_line_width)):
            self.append(SPACE)

    def _repad(self) -> None:
        # Only called on whitespace-only lines, whose parts are never styled
        del self._parts[self._line_start :]
        self._start_line()

    def _trim_line_end(self) -> None:
        while len(self._parts) > self._line_start and self._parts[-1].isspace():
            self._parts.pop()
