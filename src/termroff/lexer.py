"""Man-page lexer: converts line-oriented markup into a flat token stream."""

from __future__ import annotations

from termroff.builtins import ARG_COMMANDS, SPECIAL_CHAR_COMMANDS
from termroff.tokens import SPECIAL_CHARS, Token, TokenType, is_blank, is_special

# Line-start prefixes that turn the whole line into a comment
_COMMENT_LEADERS = ('\\"', '.\\"', "'\\\"", "\\#")


def split_chunks(line: str) -> list[tuple[int, str]]:
    """Split a line into (offset, chunk) pairs, keeping the whitespace.

    A chunk is either a run of one repeated whitespace character or a maximal
    run of non-whitespace characters. Tabs and spaces never share a chunk.
    """
    chunks: list[tuple[int, str]] = []
    pos = 0
    while pos < len(line):
        start = pos
        ch = line[pos]
        pos += 1
        if ch.isspace():
            while pos < len(line) and line[pos] == ch:
                pos += 1
        else:
            while pos < len(line) and not line[pos].isspace():
                pos += 1
        chunks.append((start, line[start:pos]))
    return chunks


def is_comment(chunk: str) -> bool:
    """Return True if a line-initial chunk starts a comment line."""
    return chunk == "." or chunk.startswith(_COMMENT_LEADERS)


class _ChunkLexer:
    """Split one chunk into tokens, decoding escapes and their arguments."""

    def __init__(self, chunk: str, starts_line: bool, line: int, column: int) -> None:
        self._chunk = chunk
        self._starts_line = starts_line
        self._line = line
        self._column = column
        self._pos = 0
        self._tokens: list[Token] = []

    def lex(self) -> list[Token]:
        chunk = self._chunk
        if not chunk:
            return self._tokens

        if self._starts_line and chunk.startswith("."):
            # Macros are never split further
            self._emit(TokenType.MACRO, chunk, 0)
            return self._tokens

        if chunk[0].isspace():
            self._emit(TokenType.WHITESPACE, chunk, 0)
            return self._tokens

        word_start = 0
        while self._pos < len(chunk):
            ch = chunk[self._pos]
            if not is_special(ch):
                self._pos += 1
                continue

            if self._pos > word_start:
                self._emit(TokenType.TEXT_WORD, chunk[word_start : self._pos], word_start)

            self._emit(SPECIAL_CHARS[ch], ch, self._pos)
            self._pos += 1

            if ch == "\\":
                self._lex_escape()
            word_start = self._pos

        if word_start < len(chunk):
            self._emit(TokenType.TEXT_WORD, chunk[word_start:], word_start)

        return self._tokens

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, tt: TokenType, value: str, offset: int) -> None:
        # Only the first token of a chunk inherits its start-of-line flag
        starts_line = self._starts_line and not self._tokens
        self._tokens.append(Token(tt, value, starts_line, self._line, self._column + offset))

    def _rest(self) -> str:
        return self._chunk[self._pos :]

    # ------------------------------------------------------------------
    # Escapes
    # ------------------------------------------------------------------

    def _lex_escape(self) -> None:
        """Consume the command character after a backslash, plus any argument."""
        if self._pos >= len(self._chunk):
            return

        command = self._chunk[self._pos]
        self._emit(TokenType.ESCAPE_COMMAND, command, self._pos)
        self._pos += 1

        if command in ARG_COMMANDS:
            self._lex_escape_arg()
        elif command in SPECIAL_CHAR_COMMANDS:
            self._lex_special_name(command)

    def _lex_escape_arg(self) -> None:
        """Decode one argument: (xx, [name], +n / -n, or a single character."""
        rest = self._rest()
        if not rest:
            return

        start = self._pos
        first = rest[0]

        if first == "(":
            self._emit(TokenType.ARG_OPEN_PAREN, "(", start)
            arg = rest[1:3]
            self._emit(TokenType.COMMAND_ARG, arg, start + 1)
            self._pos += 1 + len(arg)
            return

        if first == "[":
            self._emit(TokenType.ARG_OPEN_BRACKET, "[", start)
            self._lex_bracketed(start + 1)
            return

        if first in "+-":
            arg = rest[:2]
            self._emit(TokenType.COMMAND_ARG, arg, start)
            self._pos += len(arg)
            return

        self._emit(TokenType.COMMAND_ARG, first, start)
        self._pos += 1

    def _lex_special_name(self, command: str) -> None:
        """Read the mnemonic after \\( (two characters) or \\[ (up to ])."""
        if command == "[":
            self._lex_bracketed(self._pos)
            return

        name = self._rest()[:2]
        if name:
            self._emit(TokenType.COMMAND_ARG, name, self._pos)
            self._pos += len(name)

    def _lex_bracketed(self, start: int) -> None:
        """Read up to the next ] as a CommandArg; unterminated runs to chunk end."""
        close = self._chunk.find("]", start)
        if close == -1:
            self._emit(TokenType.COMMAND_ARG, self._chunk[start:], start)
            self._pos = len(self._chunk)
            return

        self._emit(TokenType.COMMAND_ARG, self._chunk[start:close], start)
        self._emit(TokenType.ARG_CLOSE_BRACKET, "]", close)
        self._pos = close + 1


def generate(chunk: str, starts_line: bool, line: int = 1, column: int = 1) -> list[Token]:
    """Tokenize a single chunk produced by split_chunks."""
    return _ChunkLexer(chunk, starts_line, line, column).lex()


class Lexer:
    """Tokenize man-page markup into a stream of Token objects."""

    def __init__(self, source: str) -> None:
        self._source = source
        self._tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        """Tokenize the full source and return the token list."""
        for lineno, line in enumerate(self._source.splitlines(), start=1):
            self._lex_line(line, lineno)
        return self._tokens

    def _lex_line(self, line: str, lineno: int) -> None:
        if is_blank(line):
            self._tokens.append(Token(TokenType.EMPTY_LINE, "", True, lineno, 1))
            return

        for index, (offset, chunk) in enumerate(split_chunks(line)):
            starts_line = index == 0
            if starts_line and is_comment(chunk):
                return
            self._tokens.extend(generate(chunk, starts_line, lineno, offset + 1))


def tokenize(source: str) -> list[Token]:
    """Convenience function: tokenize source text and return token list."""
    return Lexer(source).tokenize()
