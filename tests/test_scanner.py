# tests/test_scanner.py
"""
Tests for the character-level scanner.
"""

import pytest

from dllsig.errors import Codes, UnexpectedEOFError, UnexpectedTokenError
from dllsig.errors import SyntaxError as DeclSyntaxError
from dllsig.scanner import Scanner


class TestBlanks:

    def test_leading_whitespace_and_comments_skipped(self):
        sc = Scanner("  /* block */ // line\n  int")
        assert sc.peek_symbol() == "int"
        assert sc.line == 2
        assert sc.column == 3

    def test_empty_input_is_at_end(self):
        assert Scanner("").at_end
        assert Scanner("  // only a comment").at_end

    def test_unterminated_block_comment(self):
        with pytest.raises(DeclSyntaxError) as ei:
            Scanner("/* never closed")
        assert ei.value.code == Codes.UNTERMINATED_COMMENT

    def test_position_tracking_across_lines(self):
        sc = Scanner("a\n  b")
        sc.read_identifier()
        span = sc.span()
        assert (span.line, span.column, span.index) == (2, 3, 4)

    def test_advance_at_end_raises(self):
        sc = Scanner("")
        with pytest.raises(UnexpectedEOFError):
            sc.advance()


class TestLookahead:

    def test_identifier_literal_needs_boundary(self):
        sc = Scanner("int64 x")
        assert not sc.lookahead("int")
        assert sc.peek_symbol() == "int64"

    def test_identifier_literal_consumed(self):
        sc = Scanner("int x")
        assert sc.lookahead("int")
        assert sc.peek_symbol() == "x"

    def test_punctuation_has_no_boundary(self):
        sc = Scanner("*p")
        assert sc.lookahead("*")
        assert sc.peek_symbol() == "p"

    def test_failed_lookahead_does_not_move(self):
        sc = Scanner("struct")
        before = sc.save()
        assert not sc.lookahead("union")
        assert sc.save() == before

    def test_expect_reports_what_was_found(self):
        sc = Scanner("int x")
        with pytest.raises(UnexpectedTokenError) as ei:
            sc.expect(";")
        assert ei.value.got == "int"
        assert 'expecting ";"' in ei.value.message

    def test_expect_at_end(self):
        sc = Scanner("x")
        sc.read_identifier()
        with pytest.raises(UnexpectedEOFError):
            sc.expect("}")


class TestSaveRestore:

    def test_restore_resets_line_and_column(self):
        sc = Scanner("first\n second third")
        pos = sc.save()
        sc.read_identifier()
        sc.read_identifier()
        assert sc.line == 2
        sc.restore(pos)
        assert (sc.line, sc.column, sc.index) == (1, 1, 0)
        assert sc.peek_symbol() == "first"


class TestIdentifiers:

    def test_read_identifier(self):
        sc = Scanner("_foo42 bar")
        assert sc.read_identifier() == "_foo42"
        assert sc.read_identifier() == "bar"

    def test_read_identifier_rejects_digit(self):
        with pytest.raises(UnexpectedTokenError):
            Scanner("42").read_identifier()

    def test_qualified_identifier_strips_spaces(self):
        sc = Scanner("N :: inner::foo x")
        assert sc.read_qualified_identifier() == "N::inner::foo"
        assert sc.peek_symbol() == "x"

    def test_global_qualifier(self):
        assert Scanner("::foo").peek_qualified() == "::foo"


class TestNumbers:

    @pytest.mark.parametrize("text, value", [
        ("0", 0),
        ("42", 42),
        ("0x1F", 31),
        ("010", 8),
        ("42UL", 42),
        ("-5", -5),
        ("+7", 7),
    ])
    def test_integer_literals(self, text, value):
        assert Scanner(text).read_integer() == value

    def test_number_incoming_with_sign(self):
        assert Scanner("- 3").number_incoming()
        assert not Scanner("-x").number_incoming()

    def test_identifier_glued_to_number(self):
        with pytest.raises(DeclSyntaxError) as ei:
            Scanner("12abc").read_integer()
        assert ei.value.code == Codes.INVALID_NUMBER

    def test_bad_octal(self):
        with pytest.raises(DeclSyntaxError) as ei:
            Scanner("089").read_integer()
        assert ei.value.code == Codes.INVALID_NUMBER


class TestQuotedStrings:

    def test_single_quoted(self):
        assert Scanner("'abc' x").read_quoted_string() == "abc"

    def test_escapes(self):
        sc = Scanner(r"'a\x41\101\n\t'")
        assert sc.read_quoted_string() == "aAA\n\t"

    def test_escaped_quote(self):
        assert Scanner(r'"say \"hi\""').read_quoted_string() == 'say "hi"'

    def test_comment_markers_inside_string_are_kept(self):
        assert Scanner('"a /* b */ c"').read_quoted_string() == "a /* b */ c"

    def test_unterminated_string(self):
        with pytest.raises(DeclSyntaxError) as ei:
            Scanner("'abc").read_quoted_string()
        assert ei.value.code == Codes.UNTERMINATED_STRING

    def test_invalid_escape(self):
        with pytest.raises(DeclSyntaxError) as ei:
            Scanner(r"'\q'").read_quoted_string()
        assert ei.value.code == Codes.INVALID_ESCAPE

    def test_skips_blanks_after_closing_quote(self):
        sc = Scanner("'x'   next")
        sc.read_quoted_string()
        assert sc.peek_symbol() == "next"


class TestAnnotations:

    def test_sal_and_declspec_skipped(self):
        sc = Scanner("_In_opt_ __declspec(dllimport) _Out_writes_(n * 2) int")
        assert sc.skip_annotations() == 3
        assert sc.peek_symbol() == "int"

    def test_rpc_markers_skipped(self):
        sc = Scanner("__RPC__in __RPC_FAR void")
        sc.skip_annotations()
        assert sc.peek_symbol() == "void"

    def test_ordinary_identifier_kept(self):
        sc = Scanner("HWND hwnd")
        assert sc.skip_annotations() == 0
        assert sc.peek_symbol() == "HWND"
