"""Interpreter tests: macros, fill and no-fill text, paragraphs and margins."""

import pytest

from termroff.builtins import Section
from termroff.errors import InterpretError
from termroff.interpreter import Interpreter
from termroff.layout import LayoutEngine
from termroff.lexer import tokenize
from termroff.tokens import Token, TokenType

BOLD = "\x1b[1m"
ITALIC = "\x1b[3m"
UNDERLINE = "\x1b[4m"
RESET = "\x1b[0m"


class TestText:
    def test_words_joined_by_single_spaces(self, render_plain):
        assert render_plain("one   two\nthree") == "one two three"

    def test_wraps_at_width(self, render_plain):
        assert render_plain("aaa bbb ccc ddd eee fff", width=20) == "aaa bbb ccc ddd eee\nfff"

    def test_no_line_exceeds_width(self, render_plain):
        text = render_plain(".RS 4\n" + " ".join(["word"] * 40), width=30)
        assert all(len(line) <= 30 for line in text.splitlines())

    def test_escaped_word_wraps_whole(self, render_plain):
        assert render_plain("aaaa bbbb \\-\\-verbose", width=12) == "aaaa bbbb\n--verbose"

    def test_escaped_word_fits(self, render_plain):
        assert render_plain("aaaa \\-\\-verbose", width=20) == "aaaa --verbose"

    def test_empty_line_is_paragraph_break(self, render_plain):
        assert render_plain("a\n\nb") == "a\n\nb"

    def test_repeated_empty_lines_collapse(self, render_plain):
        assert render_plain("a\n\n\n\nb") == "a\n\nb"

    def test_empty_document(self, render_plain):
        assert render_plain("") == ""


class TestHeaders:
    def test_th_is_not_rendered(self, run):
        interp = run(".TH LS 1 2020-01-01 GNU\nhello")
        assert interp.text == "hello"
        assert interp.warnings == []

    def test_sh_whole_document(self, render_raw):
        text = render_raw(".SH NAME\nfoo")
        assert text == f"{BOLD}NAME{RESET}\n       foo"

    def test_sh_title_on_next_line(self, render_plain):
        assert render_plain(".SH\nNAME\ntext") == "NAME\n       text"

    def test_sh_resets_margin(self, render_plain):
        text = render_plain(".SH ONE\n.RS 4\nx\n.SH TWO\ny")
        assert text == "ONE\n           x\n\nTWO\n       y"

    def test_ss(self, render_plain):
        assert render_plain("intro\n.SS Sub Head\nbody") == "intro\n\nSub Head\nbody"

    def test_ss_is_bold(self, render_raw):
        assert f"{BOLD}Sub{RESET}" in render_raw(".SS Sub\nbody")


class TestBreaks:
    def test_br(self, render_plain):
        assert render_plain("one\n.br\ntwo") == "one\ntwo"

    def test_consecutive_br(self, render_plain):
        assert render_plain("one\n.br\n.br\ntwo") == "one\ntwo"

    def test_sp_default(self, render_plain):
        assert render_plain("one\n.sp\ntwo") == "one\n\n\ntwo"

    def test_sp_one(self, render_plain):
        assert render_plain("one\n.sp 1\ntwo") == "one\n\ntwo"

    def test_sp_count(self, render_plain):
        assert render_plain("one\n.sp 3\ntwo") == "one\n\n\n\ntwo"

    def test_sp_on_blank_line(self, render_plain):
        assert render_plain(".sp\ntwo") == "two"

    def test_sp_zero_warns(self, run):
        interp = run("one\n.sp 0\ntwo")
        assert interp.text == "one\n\n\ntwo"
        assert len(interp.warnings) == 1

    def test_sp_bad_number_warns(self, run):
        interp = run("one\n.sp x\ntwo")
        assert interp.text == "one\n\n\ntwo"
        assert "expected a number" in interp.warnings[0].message


class TestNoFill:
    def test_lines_and_whitespace_kept(self, render_plain):
        source = "a\n.nf\nx   y\n  z\n.fi\nb c"
        assert render_plain(source) == "a\nx   y\n  z\nb c"

    def test_empty_line_kept(self, render_plain):
        assert render_plain("a\n.nf\nx\n\ny\n.fi") == "a\nx\n\ny"

    def test_fill_resumes(self, run):
        interp = run(".nf\nx\n.fi\ny\nz")
        assert interp.text == "x\ny z"
        assert not interp.layout.nofill


class TestParagraphs:
    def test_pp(self, render_plain):
        assert render_plain("one\n.PP\ntwo") == "one\n\ntwo"

    @pytest.mark.parametrize("macro", [".LP", ".P"])
    def test_aliases(self, render_plain, macro):
        assert render_plain(f"one\n{macro}\ntwo") == "one\n\ntwo"

    def test_pp_resets_style(self, render_raw):
        assert render_raw("\\fBbold\n.PP\nplain") == f"{BOLD}bold{RESET}\n\nplain"

    def test_pp_resets_indent(self, run):
        interp = run(".PD 4\n.PP\ntext")
        assert interp.layout.indent == 0

    def test_pd(self, render_plain):
        assert render_plain(".PD 3\ntext\n.br\nmore") == "text\n   more"

    def test_pd_without_argument(self, run):
        interp = run(".PD 3\n.PD")
        assert interp.layout.indent == 0


class TestTaggedParagraphs:
    def test_tp(self, render_plain):
        source = ".TP\n\\-a\nall entries\n.TP 4\n\\-b\nbrief\n.TP\n\\-c\ncompact"
        assert render_plain(source) == "-a\n       all entries\n-b\n    brief\n-c\n    compact"

    def test_tp_tag_macro(self, render_plain):
        assert render_plain(".TP\n.B \\-v\nverbose") == "-v\n       verbose"

    def test_tp_stores_indent(self, run):
        interp = run(".TP 5\ntag\nbody")
        assert interp.layout.stored_indent == 5
        assert interp.layout.indent == 5

    def test_ip(self, render_plain):
        source = ".IP * 4\nfirst\n.IP\nsecond"
        assert render_plain(source) == "*\n    first\n\n    second"

    def test_ip_fractional_width(self, render_plain):
        assert render_plain(".IP - 2.9\nx") == "-\n  x"

    def test_ip_quoted_marker(self, render_plain):
        assert render_plain('.IP "[1]" 5\ntext') == "[1]\n     text"

    def test_ip_negative_width_clamped(self, run):
        interp = run(".IP x -3\ntext")
        assert interp.layout.indent == 0


class TestFontMacros:
    def test_b(self, render_raw):
        text = render_raw(".B bold words\nafter")
        assert text == f"{BOLD}bold{RESET} {BOLD}words{RESET} after"

    def test_b_next_line(self, render_plain):
        assert render_plain(".B\nnext line\nafter") == "next line after"

    def test_b_quoted(self, render_plain):
        assert render_plain('.B "two words"') == "two words"

    def test_i(self, render_raw):
        assert render_raw(".I word") == f"{ITALIC}word{RESET}"

    def test_br(self, render_raw):
        assert render_raw(".BR ls (1)") == f"{BOLD}ls{RESET} (1)"

    def test_ir_keeps_spaces(self, render_raw):
        text = render_raw(".IR file name here")
        assert text == f"{UNDERLINE}file{RESET} name {UNDERLINE}here{RESET}"

    def test_ir_plain(self, render_plain):
        assert render_plain(".IR file name here") == "file name here"

    def test_rb(self, render_plain):
        assert render_plain(".RB [ \\-v ]") == "[ -v ]"

    def test_bi_quoted_group(self, render_plain):
        assert render_plain('.BI "a b" c') == "a b c"

    def test_alternating_restores_style(self, run):
        interp = run(".BR ls (1)\ntext")
        assert interp.text.endswith(" text")
        assert not interp.layout.style.bold


class TestMarginScopes:
    def test_rs_re(self, render_plain):
        source = "top\n.RS 4\ninner\n.RS\ndeeper\n.RE\n.br\nback\n.RE 1\n.br\nout"
        assert render_plain(source) == "top\n    inner\n           deeper\n    back\nout"

    def test_stack_tracks_scopes(self, run):
        interp = run(".RS 3\n.RS 5\n.RE")
        assert interp.layout.margin_stack == (3,)
        assert interp.layout.margin == 3

    def test_rs_uses_stored_indent(self, run):
        interp = run(".TP 4\ntag\nbody\n.RS")
        assert interp.layout.margin_stack == (4,)

    def test_re_clears_stored_indent(self, run):
        interp = run(".TP 4\ntag\n.RS\n.RE")
        assert interp.layout.stored_indent is None

    def test_re_without_rs(self, run):
        with pytest.raises(InterpretError, match="more margin scopes"):
            run("text\n.RE")

    def test_re_count_too_large(self, run):
        with pytest.raises(InterpretError):
            run(".RS 2\n.RE 2")


class TestConditionals:
    def test_if_line_skipped(self, render_plain):
        assert render_plain(".if n .ds x y\ntext") == "text"


class TestUnknownMacros:
    def test_skipped_with_arguments_as_text(self, run):
        interp = run(".XY arg\ntext")
        assert interp.text == "arg text"
        assert len(interp.warnings) == 1
        assert "unknown macro" in interp.warnings[0].message

    def test_recorded_in_trace(self, run):
        interp = run(".XY\ntext")
        assert "[skipping unknown macro: '.XY']" in interp.trace


class TestTrace:
    def test_one_source_line_per_line(self, run):
        interp = run(".SH NAME\nfoo")
        assert interp.trace == "MACRO('.SH') WHITESPACE(' ') TEXT_WORD('NAME') \nTEXT_WORD('foo')"

    def test_trace_includes_hidden_sections(self, run, page):
        interp = run(page, Section.NAME)
        assert "TEXT_WORD('description.')" in interp.trace


class TestContract:
    def test_parse_twice(self):
        interp = Interpreter(layout=LayoutEngine(72))
        interp.parse(tokenize("a"))
        with pytest.raises(InterpretError, match="already consumed"):
            interp.parse(tokenize("b"))

    def test_missing_escape_argument(self):
        tokens = [
            Token(TokenType.BACKSLASH, "\\", True),
            Token(TokenType.ESCAPE_COMMAND, "f"),
            Token(TokenType.ARG_OPEN_PAREN, "("),
        ]
        with pytest.raises(InterpretError, match="end of input") as info:
            Interpreter(layout=LayoutEngine(72)).parse(tokens)
        assert info.value.token is None

    def test_stray_escape_argument(self):
        tokens = [Token(TokenType.COMMAND_ARG, "B", True)]
        with pytest.raises(InterpretError, match="outside an escape"):
            Interpreter(layout=LayoutEngine(72)).parse(tokens)

    def test_wrong_escape_argument(self):
        bad = Token(TokenType.TEXT_WORD, "x", False, 1, 4)
        tokens = [
            Token(TokenType.BACKSLASH, "\\", True),
            Token(TokenType.ESCAPE_COMMAND, "f"),
            Token(TokenType.ARG_OPEN_PAREN, "("),
            bad,
        ]
        with pytest.raises(InterpretError, match="expected COMMAND_ARG") as info:
            Interpreter(layout=LayoutEngine(72)).parse(tokens)
        assert info.value.token == bad
