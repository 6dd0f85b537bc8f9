"""dllsig/scanner.py – character-level cursor over declaration text.

The scanner never produces a token stream.  The parser asks it questions
(``peek_symbol``, ``lookahead("struct")``) and consumes input one construct
at a time, which is what lets the parser try a type-name reading, look at
the result, and roll back with :meth:`Scanner.restore` when the guess was
wrong.

Whitespace and comments (``// ...`` and ``/* ... */``) are skipped after
every successful read, so the cursor always rests on a significant
character.  Raw reads (quoted strings) pass ``include_spaces`` and
``include_comments`` to :meth:`Scanner.advance` to see every character.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from dllsig.errors import (
    Codes,
    SourceSpan,
    SyntaxError,
    UnexpectedEOFError,
    UnexpectedTokenError,
)

__all__ = ["ScanPosition", "Scanner"]


_RE_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_RE_QUALIFIED = re.compile(
    r"(?:::\s*)?[A-Za-z_][A-Za-z0-9_]*(?:\s*::\s*[A-Za-z_][A-Za-z0-9_]*)*"
)
_RE_INTEGER = re.compile(
    r"(?P<sign>[-+]?)\s*(?:0[xX](?P<hex>[0-9A-Fa-f]+)|(?P<dec>[0-9]+))(?P<suffix>[uUlL]*)"
)
_RE_IDENT_CHAR = re.compile(r"[A-Za-z0-9_]")
_RE_IDENT_SHAPED = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# SAL / MIDL parameter annotations that carry no type information.
_RE_ANNOTATION = re.compile(
    r"_[A-Z][A-Za-z0-9_]*_"
    r"|__RPC__[A-Za-z0-9_]+"
    r"|__(?:in|out|inout|reserved)(?:_[A-Za-z0-9_]+)?"
    r"|IN|OUT|OPTIONAL"
    r"|__RPC_FAR|FAR|NEAR|__ptr32|__ptr64|__restrict|__unaligned|restrict"
)

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    "'": "'",
    '"': '"',
    "?": "?",
}


@dataclass(frozen=True)
class ScanPosition:
    """A full cursor snapshot, used for speculative reads."""

    index: int
    line: int
    column: int


class Scanner:
    """Cursor over a declaration string with line/column tracking."""

    def __init__(self, text: str, filename: str = "") -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = 1
        self.column = 1
        self.skip_blanks()

    # ------------------------------------------------------------------
    # Position
    # ------------------------------------------------------------------

    @property
    def at_end(self) -> bool:
        return self.index >= len(self.text)

    def save(self) -> ScanPosition:
        return ScanPosition(self.index, self.line, self.column)

    def restore(self, pos: ScanPosition) -> None:
        self.index = pos.index
        self.line = pos.line
        self.column = pos.column

    def span(self) -> SourceSpan:
        return SourceSpan(
            line=self.line, column=self.column, index=self.index, file=self.filename
        )

    # ------------------------------------------------------------------
    # Character level
    # ------------------------------------------------------------------

    def peek_char(self, offset: int = 0) -> str:
        """Return the character at the cursor (plus *offset*), or ``""``."""
        i = self.index + offset
        if i < len(self.text):
            return self.text[i]
        return ""

    def _step(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1

    def advance(self, include_spaces: bool = False, include_comments: bool = False) -> None:
        """Move past the current character.

        Unless told otherwise, whitespace and comments following the
        character are skipped as well.
        """
        if self.at_end:
            raise UnexpectedEOFError(span=self.span())
        self._step()
        while True:
            skipped = False
            if not include_comments:
                skipped = self._skip_comment()
            if not include_spaces:
                skipped = self._skip_spaces() or skipped
            if not skipped:
                break

    def skip_blanks(self) -> None:
        while self._skip_comment() or self._skip_spaces():
            pass

    def _skip_spaces(self) -> bool:
        start = self.index
        while not self.at_end and self.text[self.index].isspace():
            self._step()
        return self.index != start

    def _skip_comment(self) -> bool:
        if self.peek_char() != "/":
            return False
        nxt = self.peek_char(1)
        if nxt == "/":
            while not self.at_end and self.text[self.index] != "\n":
                self._step()
            return True
        if nxt == "*":
            start = self.span()
            self._step()
            self._step()
            while not (self.peek_char() == "*" and self.peek_char(1) == "/"):
                if self.at_end:
                    raise SyntaxError(
                        "unterminated block comment",
                        code=Codes.UNTERMINATED_COMMENT,
                        span=start,
                    )
                self._step()
            self._step()
            self._step()
            return True
        return False

    # ------------------------------------------------------------------
    # Literal matching
    # ------------------------------------------------------------------

    def lookahead(self, literal: str) -> bool:
        """Consume *literal* if it comes next; leave the cursor alone if not.

        An identifier-shaped literal only matches at a word boundary, so
        ``lookahead("int")`` fails on ``int64``.
        """
        end = self.index + len(literal)
        if self.text[self.index:end] != literal:
            return False
        if _RE_IDENT_SHAPED.fullmatch(literal) and end < len(self.text):
            if _RE_IDENT_CHAR.match(self.text[end]):
                return False
        for _ in literal:
            self._step()
        self.skip_blanks()
        return True

    def expect(self, literal: str) -> None:
        if not self.lookahead(literal):
            self.unexpected(json.dumps(literal))

    def peek_symbol(self) -> Optional[str]:
        """Return the identifier at the cursor without consuming it."""
        m = _RE_IDENT.match(self.text, self.index)
        return m.group(0) if m else None

    def peek_qualified(self) -> Optional[str]:
        """Return the (possibly ``::``-qualified) identifier at the cursor."""
        m = _RE_QUALIFIED.match(self.text, self.index)
        if not m:
            return None
        return re.sub(r"\s+", "", m.group(0))

    def identifier_incoming(self) -> bool:
        return self.peek_symbol() is not None

    def number_incoming(self) -> bool:
        ch = self.peek_char()
        if ch in "+-":
            ch = self.text[self.index + 1:].lstrip()[:1]
        return ch.isdigit()

    # ------------------------------------------------------------------
    # Token readers
    # ------------------------------------------------------------------

    def read_identifier(self) -> str:
        name = self.peek_symbol()
        if name is None:
            self.unexpected("identifier")
        self._consume_raw(len(name))
        return name

    def read_qualified_identifier(self) -> str:
        m = _RE_QUALIFIED.match(self.text, self.index)
        if not m:
            self.unexpected("identifier")
        self._consume_raw(len(m.group(0)))
        return re.sub(r"\s+", "", m.group(0))

    def read_integer(self) -> int:
        """Read a signed decimal, octal or hex integer literal."""
        m = _RE_INTEGER.match(self.text, self.index)
        if not m:
            self.unexpected("integer constant")
        end = m.end()
        if end < len(self.text) and _RE_IDENT_CHAR.match(self.text[end]):
            raise SyntaxError(
                f"invalid integer constant {self.text[self.index:end + 1]!r}",
                code=Codes.INVALID_NUMBER,
                span=self.span(),
            )
        if m.group("hex"):
            value = int(m.group("hex"), 16)
        else:
            digits = m.group("dec")
            if len(digits) > 1 and digits.startswith("0"):
                try:
                    value = int(digits, 8)
                except ValueError:
                    raise SyntaxError(
                        f"invalid octal constant {digits!r}",
                        code=Codes.INVALID_NUMBER,
                        span=self.span(),
                    ) from None
            else:
                value = int(digits)
        if m.group("sign") == "-":
            value = -value
        self._consume_raw(end - self.index)
        return value

    def read_quoted_string(self) -> str:
        """Read a single- or double-quoted literal, decoding escapes."""
        quote = self.peek_char()
        if quote not in ("'", '"'):
            self.unexpected("quoted string")
        start = self.span()
        self.advance(include_spaces=True, include_comments=True)
        chars = []
        while self.peek_char() != quote:
            if self.at_end:
                raise SyntaxError(
                    f"unterminated string literal (missing closing {quote})",
                    code=Codes.UNTERMINATED_STRING,
                    span=start,
                )
            if self.peek_char() == "\\":
                self.advance(include_spaces=True, include_comments=True)
                chars.append(self._read_escape())
            else:
                chars.append(self.peek_char())
                self.advance(include_spaces=True, include_comments=True)
        self.advance()
        return "".join(chars)

    def _read_escape(self) -> str:
        ch = self.peek_char()
        if ch == "x":
            self.advance(include_spaces=True, include_comments=True)
            digits = ""
            while self.peek_char() and self.peek_char() in "0123456789abcdefABCDEF":
                digits += self.peek_char()
                self.advance(include_spaces=True, include_comments=True)
            if not digits:
                raise SyntaxError(
                    "\\x used with no following hex digits",
                    code=Codes.INVALID_ESCAPE,
                    span=self.span(),
                )
            return chr(int(digits, 16))
        if ch and ch in "01234567":
            digits = ""
            while len(digits) < 3 and self.peek_char() and self.peek_char() in "01234567":
                digits += self.peek_char()
                self.advance(include_spaces=True, include_comments=True)
            return chr(int(digits, 8))
        if ch in _SIMPLE_ESCAPES:
            self.advance(include_spaces=True, include_comments=True)
            return _SIMPLE_ESCAPES[ch]
        if self.at_end:
            raise UnexpectedEOFError(expected=["escape sequence"], span=self.span())
        raise SyntaxError(
            f"invalid escape sequence \\{ch}",
            code=Codes.INVALID_ESCAPE,
            span=self.span(),
        )

    def skip_annotations(self) -> int:
        """Discard SAL/MIDL annotations and ``__declspec(...)`` groups."""
        count = 0
        while True:
            sym = self.peek_symbol()
            if sym is None:
                return count
            if sym == "__declspec":
                self._consume_raw(len(sym))
                self._skip_parenthesized(required=True)
            elif _RE_ANNOTATION.fullmatch(sym):
                self._consume_raw(len(sym))
                self._skip_parenthesized(required=False)
            else:
                return count
            count += 1

    def _skip_parenthesized(self, required: bool) -> None:
        if self.peek_char() != "(":
            if required:
                self.unexpected('"("')
            return
        depth = 0
        while True:
            if self.at_end:
                raise UnexpectedEOFError(expected=['")"'], span=self.span())
            ch = self.peek_char()
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    self.advance()
                    return
            self.advance()

    def _consume_raw(self, count: int) -> None:
        for _ in range(count):
            self._step()
        self.skip_blanks()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def describe_current(self) -> str:
        if self.at_end:
            return "EOF"
        sym = self.peek_symbol()
        if sym is not None:
            return sym
        return json.dumps(self.peek_char())

    def unexpected(self, *expected: str):
        """Raise the appropriate syntax error for the current position."""
        want: Sequence[str] = list(expected)
        if self.at_end:
            raise UnexpectedEOFError(expected=want, span=self.span())
        raise UnexpectedTokenError(self.describe_current(), expected=want, span=self.span())
