"""Macro interpreter: walks the token stream and drives the layout engine."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace

from termroff.builtins import (
    COMMENT_ESCAPES,
    LITERAL_ESCAPES,
    SPECIAL_CHARACTERS,
    FontArg,
    Section,
    font_arg,
    resolve_name,
)
from termroff.debug import format_trace_token
from termroff.errors import InterpretError, MarginUnderflowError, ParseWarning
from termroff.layout import FontStyle, LayoutEngine
from termroff.tokens import ESCAPE_ARG_TYPES, Token, TokenType

logger = logging.getLogger(__name__)

# Numeric macro argument, optionally scaled in ens/ems (both taken as one column)
_NUMBER = re.compile(r"([+-]?(?:\d+(?:\.\d*)?|\.\d+))[nm]?")

DEFAULT_SP_LINES = 2

# Alternating-font macros: (style of odd arguments, style of even arguments)
_ALTERNATING: dict[str, tuple[FontStyle, FontStyle]] = {
    ".BR": (FontStyle.BOLD, FontStyle.REGULAR),
    ".RB": (FontStyle.REGULAR, FontStyle.BOLD),
    ".BI": (FontStyle.BOLD, FontStyle.UNDERLINE),
    ".IB": (FontStyle.UNDERLINE, FontStyle.BOLD),
    ".IR": (FontStyle.UNDERLINE, FontStyle.REGULAR),
    ".RI": (FontStyle.REGULAR, FontStyle.UNDERLINE),
}


class Interpreter:
    """Single-use interpreter for a man-page token stream.

    Construct one per document, call :meth:`parse` once, then read
    :attr:`text` and :attr:`trace`. When a section is requested, only output
    produced while that section is current reaches the layout engine; style,
    indent and margin changes are applied regardless.
    """

    def __init__(
        self,
        section: Section | None = None,
        *,
        layout: LayoutEngine | None = None,
        source: str = "",
    ) -> None:
        self._requested = section
        self._current: Section | None = None
        self._layout = layout if layout is not None else LayoutEngine()
        self._source = source
        self._tokens: list[Token] = []
        self._pos = 0
        self._parsed = False
        self._trace: list[str] = []
        self.warnings: list[ParseWarning] = []

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return self._layout.text

    @property
    def trace(self) -> str:
        """Every consumed token with its class, one source line per line."""
        return "".join(self._trace).strip()

    @property
    def layout(self) -> LayoutEngine:
        return self._layout

    @property
    def requested_section(self) -> Section | None:
        return self._requested

    @property
    def current_section(self) -> Section | None:
        return self._current

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _at(self, *types: TokenType) -> bool:
        tok = self._peek()
        return tok is not None and tok.type in types

    def _at_line_end(self) -> bool:
        """True when no token is left on the current source line."""
        tok = self._peek()
        return tok is None or tok.starts_line

    def _advance(self) -> Token:
        tok = self._peek()
        if tok is None:
            raise self._error("unexpected end of input", None)
        self._pos += 1
        self._trace.append(format_trace_token(tok))
        return tok

    def _expect(self, tt: TokenType, value: str | None = None) -> Token:
        tok = self._peek()
        expected = tt.name if value is None else f"{tt.name} {value!r}"
        if tok is None:
            raise self._error(f"expected {expected}, found end of input", None)
        if tok.type is not tt or (value is not None and tok.value != value):
            raise self._error(f"expected {expected}, found {tok.type.name} {tok.value!r}", tok)
        return self._advance()

    def _skip_whitespace(self) -> None:
        while self._at(TokenType.WHITESPACE) and not self._at_line_end():
            self._advance()

    def _skip_line(self) -> None:
        while not self._at_line_end():
            self._advance()

    def _error(self, message: str, token: Token | None) -> InterpretError:
        return InterpretError(message, token, self._source)

    def _warn(self, message: str, token: Token) -> None:
        logger.debug("line %d: %s", token.line, message)
        self.warnings.append(ParseWarning(message, token.line, token.column))

    # ------------------------------------------------------------------
    # Section-filtered output
    # ------------------------------------------------------------------

    def _visible(self) -> bool:
        return self._requested is None or self._requested == self._current

    def _emit(self, text: str) -> None:
        if self._visible():
            self._layout.append(text)

    def _emit_space(self) -> None:
        if self._visible():
            self._layout.append_space()

    def _line_break(self) -> None:
        if self._visible():
            self._layout.line_break()

    def _blank_line(self) -> None:
        if self._visible():
            self._layout.blank_line()

    @contextmanager
    def _styled(self, style: FontStyle) -> Iterator[None]:
        """Render with one style, restoring the previous style state after."""
        saved = replace(self._layout.style)
        if style is FontStyle.REGULAR:
            self._layout.reset_style()
        else:
            self._layout.set_style(style)
        try:
            yield
        finally:
            self._layout.style = saved

    # ------------------------------------------------------------------
    # Top level
    # ------------------------------------------------------------------

    def parse(self, tokens: Sequence[Token]) -> None:
        """Consume the whole token sequence, rendering into the layout engine."""
        if self._parsed:
            raise self._error("interpreter has already consumed its tokens", None)
        self._parsed = True
        self._tokens = list(tokens)

        while self._peek() is not None:
            self._parse_token()

    def _parse_token(self) -> None:
        tok = self._peek()
        assert tok is not None

        if self._layout.nofill and tok.starts_line:
            self._line_break()

        match tok.type:
            case TokenType.MACRO:
                self._parse_macro()
            case TokenType.EMPTY_LINE:
                self._parse_empty_line()
            case _:
                self._parse_line()

    def _parse_empty_line(self) -> None:
        self._expect(TokenType.EMPTY_LINE)
        if self._layout.nofill:
            # Literal blank line, kept verbatim
            if self._visible():
                self._layout.break_line()
        else:
            self._blank_line()

    def _parse_line(self) -> None:
        """Parse words up to the first token of the next source line."""
        self._parse_run()
        while not self._at_line_end():
            self._parse_run()
        if not self._layout.nofill:
            self._emit_space()

    def _parse_run(self) -> None:
        """Parse one whitespace token, or a whole word wrapped as one unit.

        A word is every token of one source chunk, so ``\\-\\-verbose`` never
        splits across lines.
        """
        if self._at(TokenType.WHITESPACE):
            self._parse_word()
            return

        with self._layout.keep_together():
            self._parse_word()
            while not self._at_line_end() and not self._at(TokenType.WHITESPACE):
                self._parse_word()

    def _parse_word(self) -> None:
        tok = self._peek()
        assert tok is not None

        match tok.type:
            case TokenType.MACRO:
                self._parse_macro()
            case TokenType.EMPTY_LINE:
                self._parse_empty_line()
            case TokenType.BACKSLASH:
                self._parse_escape()
            case TokenType.WHITESPACE:
                self._advance()
                if self._layout.nofill:
                    self._emit(tok.value)
                else:
                    self._emit_space()
            case tt if tt in ESCAPE_ARG_TYPES:
                raise self._error(f"unexpected {tt.name} outside an escape", tok)
            case _:
                self._advance()
                self._emit(tok.value)

    # ------------------------------------------------------------------
    # Macro arguments
    # ------------------------------------------------------------------

    def _skip_to_arg(self) -> bool:
        """Skip same-line whitespace; True if an argument follows."""
        self._skip_whitespace()
        return not self._at_line_end()

    def _arg_text(self) -> str | None:
        """Consume the next argument and return its raw text, quotes removed."""
        if not self._skip_to_arg():
            return None

        parts: list[str] = []
        if self._at(TokenType.DOUBLE_QUOTE):
            self._advance()
            while not self._at_line_end():
                tok = self._advance()
                if tok.type is TokenType.DOUBLE_QUOTE:
                    break
                parts.append(tok.value)
            return "".join(parts)

        while not self._at_line_end() and not self._at(TokenType.WHITESPACE):
            parts.append(self._advance().value)
        return "".join(parts)

    def _render_arg(self) -> None:
        """Render the argument at the cursor; a quoted group is one unit."""
        if self._at(TokenType.DOUBLE_QUOTE):
            self._advance()
            while not self._at_line_end():
                if self._at(TokenType.DOUBLE_QUOTE):
                    self._advance()
                    return
                self._parse_word()
            return

        with self._layout.keep_together():
            while not self._at_line_end() and not self._at(TokenType.WHITESPACE):
                self._parse_word()

    def _render_args(self) -> None:
        first = True
        while self._skip_to_arg():
            if not first:
                self._emit_space()
            self._render_arg()
            first = False

    def _render_args_or_next_line(self) -> None:
        """Render the rest of this line, or the next text line if this one is empty."""
        if self._skip_to_arg():
            self._render_args()
            return
        if self._peek() is not None and not self._at(TokenType.MACRO, TokenType.EMPTY_LINE):
            self._parse_line()

    def _line_text(self) -> str:
        parts = [self._advance().value]
        while not self._at_line_end():
            parts.append(self._advance().value)
        return "".join(parts).strip()

    def _number(self, text: str, token: Token) -> int | None:
        match = _NUMBER.fullmatch(text)
        if match is None:
            self._warn(f"expected a number, found {text!r}", token)
            return None
        return int(float(match.group(1)))

    def _indent_arg(self, token: Token) -> int | None:
        text = self._arg_text()
        if text is None:
            return None
        value = self._number(text, token)
        if value is None:
            return None
        return max(0, value)

    # ------------------------------------------------------------------
    # Macros
    # ------------------------------------------------------------------

    def _parse_macro(self) -> None:
        tok = self._peek()
        assert tok is not None

        name = resolve_name(tok.value)
        match name:
            case ".TH":
                self._parse_th()
            case ".SH":
                self._parse_sh()
            case ".SS":
                self._parse_ss()
            case ".sp":
                self._parse_sp()
            case ".br":
                self._parse_br()
            case ".nf":
                self._parse_nf()
            case ".fi":
                self._parse_fi()
            case ".TP":
                self._parse_tp()
            case ".IP":
                self._parse_ip()
            case ".PD":
                self._parse_pd()
            case ".PP":
                self._parse_pp()
            case ".B":
                self._parse_font_macro(FontStyle.BOLD)
            case ".I":
                self._parse_font_macro(FontStyle.ITALIC)
            case _ if name in _ALTERNATING:
                self._parse_alternating(*_ALTERNATING[name])
            case ".RS":
                self._parse_rs()
            case ".RE":
                self._parse_re()
            case ".if":
                self._parse_if()
            case _:
                self._parse_unknown_macro()

    def _parse_unknown_macro(self) -> None:
        # Same-line arguments are left in place and render as ordinary text
        tok = self._advance()
        self._trace.append(f"[skipping unknown macro: {tok.value!r}] ")
        self._warn(f"unknown macro {tok.value!r}", tok)

    def _parse_th(self) -> None:
        """.TH title section [date ...]: page header, not rendered."""
        self._expect(TokenType.MACRO, ".TH")
        self._skip_line()

    def _parse_sh(self) -> None:
        """.SH title: section header.

        When isolating a section this only tracks which section is current.
        Otherwise the title is rendered bold at column zero and the default
        margin is restored for the section body.
        """
        self._expect(TokenType.MACRO, ".SH")

        if self._requested is not None:
            self._current = Section.from_title(self._title_text())
            self._skip_line()
            return

        self._layout.reset_margin()
        self._layout.zero_indent()
        self._blank_line()

        with self._styled(FontStyle.BOLD):
            self._render_args_or_next_line()

        self._layout.default_margin()
        self._layout.zero_indent()
        self._line_break()

    def _title_text(self) -> str:
        text = self._arg_text()
        if text is not None:
            return text
        if self._peek() is None or self._at(TokenType.MACRO, TokenType.EMPTY_LINE):
            return ""
        return self._line_text()

    def _parse_ss(self) -> None:
        """.SS title: subsection header, bold, at the current margin."""
        self._expect(TokenType.MACRO, ".SS")
        self._blank_line()

        with self._styled(FontStyle.BOLD):
            self._render_args_or_next_line()

        self._line_break()

    def _parse_sp(self) -> None:
        """.sp [n]: finish the pending line, then leave n empty lines (default 2)."""
        tok = self._expect(TokenType.MACRO, ".sp")

        lines = DEFAULT_SP_LINES
        text = self._arg_text()
        if text is not None:
            value = self._number(text, tok)
            if value is not None and value > 0:
                lines = value
            elif value is not None:
                self._warn(f"ignoring non-positive .sp argument {value}", tok)
        self._skip_line()

        if self._visible() and not self._layout.is_line_blank():
            self._layout.break_line()
            for _ in range(lines):
                self._layout.break_line()

    def _parse_br(self) -> None:
        self._expect(TokenType.MACRO, ".br")
        self._skip_line()
        self._line_break()

    def _parse_nf(self) -> None:
        """.nf: begin no-fill mode: source lines and whitespace kept as-is."""
        self._expect(TokenType.MACRO, ".nf")
        self._skip_line()
        self._line_break()
        self._layout.nofill = True

    def _parse_fi(self) -> None:
        self._expect(TokenType.MACRO, ".fi")
        self._skip_line()
        self._layout.nofill = False

    def _parse_tp(self) -> None:
        """.TP [indent]: tagged paragraph.

        The next input line is the tag, printed flush with the margin. Text
        after it is indented by ``indent``, or by the stored indent when no
        argument is given.
        """
        tok = self._expect(TokenType.MACRO, ".TP")
        indent = self._indent_arg(tok)
        self._skip_line()
        if indent is None:
            indent = self._layout.stored_or_default_indent()

        self._layout.zero_indent()
        self._line_break()

        if self._peek() is not None and not self._at(TokenType.EMPTY_LINE):
            if self._at(TokenType.MACRO):
                self._parse_macro()
            else:
                self._parse_line()

        self._layout.indent = indent
        self._layout.store_indent()
        self._line_break()

    def _parse_ip(self) -> None:
        """.IP [marker [width]]: indented paragraph with an optional marker."""
        tok = self._expect(TokenType.MACRO, ".IP")

        self._layout.zero_indent()
        self._blank_line()

        if self._skip_to_arg():
            self._render_arg()
            self._emit_space()

        indent = self._indent_arg(tok)
        self._skip_line()
        if indent is None:
            indent = self._layout.stored_or_default_indent()

        self._layout.indent = indent
        self._layout.store_indent()
        self._line_break()

    def _parse_pd(self) -> None:
        """.PD [n]: set the indent directly, 0 when no argument is given."""
        tok = self._expect(TokenType.MACRO, ".PD")
        indent = self._indent_arg(tok)
        self._skip_line()
        self._layout.indent = indent if indent is not None else 0

    def _parse_pp(self) -> None:
        """.PP, .LP or .P: new paragraph: reset indent and font, blank line."""
        self._expect(TokenType.MACRO)
        self._skip_line()
        self._layout.zero_indent()
        self._layout.reset_style()
        self._blank_line()

    def _parse_font_macro(self, style: FontStyle) -> None:
        """.B / .I: style the rest of the line, or the next line if empty."""
        self._expect(TokenType.MACRO)
        self._layout.set_style(style)
        self._render_args_or_next_line()
        self._layout.unset_style(style)
        self._emit_space()

    def _parse_alternating(self, first: FontStyle, second: FontStyle) -> None:
        """.BR, .IR and friends: arguments alternate between two styles.

        Whitespace between arguments is rendered unstyled and moves on to the
        other style; a quoted argument is styled as one unit.
        """
        self._expect(TokenType.MACRO)
        self._skip_whitespace()
        styles = (first, second)
        index = 0
        while not self._at_line_end():
            if self._at(TokenType.WHITESPACE):
                self._parse_word()
                continue
            with self._styled(styles[index % 2]):
                self._render_arg()
            index += 1
        self._emit_space()

    def _parse_rs(self) -> None:
        """.RS [n]: open a margin scope n columns deeper."""
        tok = self._expect(TokenType.MACRO, ".RS")
        amount = self._indent_arg(tok)
        self._skip_line()
        if amount is None:
            amount = self._layout.stored_or_default_indent()

        self._layout.push_margin(amount)
        self._layout.zero_indent()
        self._line_break()

    def _parse_re(self) -> None:
        """.RE [n]: close n margin scopes (default 1)."""
        tok = self._expect(TokenType.MACRO, ".RE")
        count = self._indent_arg(tok)
        self._skip_line()
        if count is None:
            count = 1

        for _ in range(count):
            try:
                self._layout.pop_margin()
            except MarginUnderflowError as exc:
                raise self._error(".RE closes more margin scopes than .RS opened", tok) from exc

        self._layout.zero_indent()
        self._layout.clear_stored_indent()

    def _parse_if(self) -> None:
        """.if: conditions are never evaluated and always taken as false."""
        self._expect(TokenType.MACRO, ".if")
        self._skip_line()

    # ------------------------------------------------------------------
    # Escapes
    # ------------------------------------------------------------------

    def _parse_escape(self) -> None:
        """Parse a backslash escape: \\-, \\(cq, \\fB, \\m[red], ..."""
        self._expect(TokenType.BACKSLASH)
        if self._at_line_end() or not self._at(TokenType.ESCAPE_COMMAND):
            # Trailing backslash at the end of a word
            return

        command_tok = self._advance()
        command = command_tok.value

        match command:
            case "f":
                self._parse_font_escape(command_tok)
            case "m" | "s":
                # Colour and point size have no terminal rendering
                self._take_escape_arg()
            case "*":
                name = self._take_escape_arg()
                self._warn(f"unsupported string escape '\\*{name or ''}'", command_tok)
            case "(" | "[":
                self._parse_special_character(command, command_tok)
            case _ if command in LITERAL_ESCAPES:
                self._emit(LITERAL_ESCAPES[command])
            case _ if command in COMMENT_ESCAPES:
                self._skip_line()
            case _:
                self._warn(f"unsupported escape '\\{command}'", command_tok)

    def _take_escape_arg(self) -> str | None:
        """Consume one escape argument in any of its (xx, [name] or x forms."""
        if self._at_line_end():
            return None

        if self._at(TokenType.ARG_OPEN_PAREN):
            self._advance()
            return self._expect(TokenType.COMMAND_ARG).value

        if self._at(TokenType.ARG_OPEN_BRACKET):
            self._advance()
            value = self._expect(TokenType.COMMAND_ARG).value
            if self._at(TokenType.ARG_CLOSE_BRACKET):
                self._advance()
            return value

        if self._at(TokenType.COMMAND_ARG):
            return self._advance().value

        return None

    def _parse_font_escape(self, command_tok: Token) -> None:
        value = self._take_escape_arg()
        if value is not None:
            match font_arg(value):
                case FontArg.BOLD:
                    self._layout.set_style(FontStyle.BOLD)
                case FontArg.ITALIC:
                    self._layout.set_style(FontStyle.ITALIC)
                case FontArg.ROMAN | FontArg.PREVIOUS:
                    self._layout.reset_style()
                case None:
                    self._warn(f"unsupported font {value!r}", command_tok)

        # Keep a trailing style change from gluing this word to the next line
        if self._at_line_end():
            self._emit_space()

    def _parse_special_character(self, command: str, command_tok: Token) -> None:
        if self._at_line_end() or not self._at(TokenType.COMMAND_ARG):
            return

        name = self._advance().value
        if command == "[" and self._at(TokenType.ARG_CLOSE_BRACKET):
            self._advance()

        text = SPECIAL_CHARACTERS.get(name)
        if text is None:
            self._warn(f"unknown special character {name!r}", command_tok)
            return
        self._emit(text)


def interpret(
    tokens: Sequence[Token],
    section: Section | None = None,
    *,
    layout: LayoutEngine | None = None,
    source: str = "",
) -> Interpreter:
    """Convenience function: run a fresh Interpreter over tokens and return it."""
    interpreter = Interpreter(section, layout=layout, source=source)
    interpreter.parse(tokens)
    return interpreter
