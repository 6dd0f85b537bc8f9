# dllsig/errors.py
"""
Declaration compiler error types and reporting.

Every failure inside :meth:`dllsig.session.DeclSession.parse` is raised as a
subclass of :class:`DeclError`.  The error carries a structured
:class:`ErrorMessage` (code, kind, position, hint) so that host code can
either print a GCC-style message or serialize the error as JSON.

Error hierarchy
───────────────
┌──────────────────────────────────────────────────────────────────────┐
│  DeclError (base)                                                    │
│  ├── SyntaxError         - unexpected token / premature end of input │
│  │   ├── UnexpectedTokenError                                        │
│  │   └── UnexpectedEOFError                                          │
│  ├── TypeNameError       - unknown or invalid type names, bad void   │
│  ├── RedefinitionError   - composite defined twice, namespace clash  │
│  ├── StructuralError     - invalid declarator shapes                 │
│  └── InterfaceError      - bad base interface, malformed GUID        │
└──────────────────────────────────────────────────────────────────────┘

Error codes follow the pattern ``DSIG-NNNN``:
  - 1000-1999: syntax errors
  - 2000-2999: type-name errors
  - 3000-3999: redefinition errors
  - 4000-4999: structural errors
  - 5000-5999: interface errors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Dict, List, Optional, Sequence

__all__ = [
    "ErrorKind",
    "ErrorCode",
    "Codes",
    "SourceSpan",
    "ErrorMessage",
    "DeclError",
    "SyntaxError",
    "UnexpectedTokenError",
    "UnexpectedEOFError",
    "TypeNameError",
    "RedefinitionError",
    "StructuralError",
    "InterfaceError",
]


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorKind(Enum):
    """The five families of declaration errors."""

    SYNTAX = "syntax"
    TYPE_NAME = "type-name"
    REDEFINITION = "redefinition"
    STRUCTURAL = "structural"
    INTERFACE = "interface"


class ErrorCode:
    """
    Structured error code.

    ``ErrorCode("DSIG", 1000, ErrorKind.SYNTAX)`` renders as ``DSIG-1000``.
    Codes compare equal to their string rendering, which keeps test
    assertions short.
    """

    __slots__ = ("prefix", "number", "kind")

    def __init__(self, prefix: str, number: int, kind: ErrorKind) -> None:
        self.prefix = prefix
        self.number = number
        self.kind = kind

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.kind.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


# ───────────────────────────────────────────────────────────────────────────────
# PREDEFINED ERROR CODES
# ───────────────────────────────────────────────────────────────────────────────

class Codes:
    """Predefined error codes."""

    # SYNTAX (1000-1999)
    UNEXPECTED_TOKEN = ErrorCode("DSIG", 1000, ErrorKind.SYNTAX)
    UNEXPECTED_EOF = ErrorCode("DSIG", 1001, ErrorKind.SYNTAX)
    UNTERMINATED_COMMENT = ErrorCode("DSIG", 1002, ErrorKind.SYNTAX)
    UNTERMINATED_STRING = ErrorCode("DSIG", 1003, ErrorKind.SYNTAX)
    INVALID_ESCAPE = ErrorCode("DSIG", 1004, ErrorKind.SYNTAX)
    INVALID_NUMBER = ErrorCode("DSIG", 1005, ErrorKind.SYNTAX)
    FUNCTION_BODY = ErrorCode("DSIG", 1006, ErrorKind.SYNTAX)

    # TYPE NAME (2000-2999)
    UNKNOWN_TYPE = ErrorCode("DSIG", 2000, ErrorKind.TYPE_NAME)
    INVALID_SPECIFIERS = ErrorCode("DSIG", 2001, ErrorKind.TYPE_NAME)
    INVALID_VOID = ErrorCode("DSIG", 2002, ErrorKind.TYPE_NAME)
    UNKNOWN_CONSTANT = ErrorCode("DSIG", 2003, ErrorKind.TYPE_NAME)

    # REDEFINITION (3000-3999)
    REDEFINED_TYPE = ErrorCode("DSIG", 3000, ErrorKind.REDEFINITION)
    REDEFINED_CONSTANT = ErrorCode("DSIG", 3001, ErrorKind.REDEFINITION)
    NAMESPACE_MISMATCH = ErrorCode("DSIG", 3002, ErrorKind.REDEFINITION)

    # STRUCTURAL (4000-4999)
    FUNCTION_RETURNS_ARRAY = ErrorCode("DSIG", 4000, ErrorKind.STRUCTURAL)
    FUNCTION_RETURNS_FUNCTION = ErrorCode("DSIG", 4001, ErrorKind.STRUCTURAL)
    ARRAY_OF_FUNCTIONS = ErrorCode("DSIG", 4002, ErrorKind.STRUCTURAL)
    BAD_ARRAY_DIMENSION = ErrorCode("DSIG", 4003, ErrorKind.STRUCTURAL)
    FUNCTION_PARAMETER = ErrorCode("DSIG", 4004, ErrorKind.STRUCTURAL)
    MIXED_SPECIFIERS = ErrorCode("DSIG", 4005, ErrorKind.STRUCTURAL)
    NON_FUNCTION_MEMBER = ErrorCode("DSIG", 4006, ErrorKind.STRUCTURAL)
    CALLING_CONVENTION = ErrorCode("DSIG", 4007, ErrorKind.STRUCTURAL)
    QUALIFIED_MEMBER = ErrorCode("DSIG", 4008, ErrorKind.STRUCTURAL)

    # INTERFACE (5000-5999)
    UNKNOWN_BASE = ErrorCode("DSIG", 5000, ErrorKind.INTERFACE)
    UNDEFINED_BASE = ErrorCode("DSIG", 5001, ErrorKind.INTERFACE)
    MALFORMED_GUID = ErrorCode("DSIG", 5002, ErrorKind.INTERFACE)
    NOT_AN_INTERFACE = ErrorCode("DSIG", 5003, ErrorKind.INTERFACE)
    MISSING_GUID = ErrorCode("DSIG", 5004, ErrorKind.INTERFACE)


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE LOCATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """
    A best-effort position in the declaration text.

    ``line`` and ``column`` are 1-based; ``index`` is the 0-based absolute
    character offset.  ``file`` is whatever name the caller gave the input
    (``<string>`` by default).
    """

    line: int = 0
    column: int = 0
    index: int = 0
    file: str = ""

    def __str__(self) -> str:
        if self.line == 0:
            return f"{self.file or '<unknown location>'}"
        where = f"line {self.line}, col {self.column} (index {self.index})"
        return f"{self.file}: {where}" if self.file else where


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR MESSAGE FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ErrorMessage:
    """A complete error message with all context."""

    code: ErrorCode
    message: str
    span: SourceSpan = field(default_factory=SourceSpan)
    hint: str = ""
    source_line: str = ""

    @property
    def kind(self) -> ErrorKind:
        return self.code.kind

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        lines = [f"{self.span}: error: {self.message} [{self.code}]"]

        if self.source_line:
            lines.append(f"    {self.source_line}")
            if self.span.column > 0:
                lines.append(f"    {' ' * (self.span.column - 1)}^")

        if self.hint:
            lines.append(f"hint: {self.hint}")

        return "\n".join(lines)

    def to_json(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "code": self.code.code,
            "kind": self.kind.value,
            "message": self.message,
            "location": {
                "file": self.span.file,
                "line": self.span.line,
                "column": self.span.column,
                "index": self.span.index,
            },
            "hint": self.hint,
        }

    def __str__(self) -> str:
        return self.to_gcc_format()


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class DeclError(Exception):
    """
    Base exception for all declaration compiler errors.

    The exception message (``str(exc)``) is the plain human-readable text
    prefixed with the position, e.g.
    ``line 1, col 9 (index 8): array dimension must be positive``.
    """

    default_code: ErrorCode = Codes.UNEXPECTED_TOKEN

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        hint: str = "",
    ) -> None:
        self.error_message = ErrorMessage(
            code=code or self.default_code,
            message=message,
            span=span or SourceSpan(),
            hint=hint,
        )
        super().__init__(self._plain())

    def _plain(self) -> str:
        em = self.error_message
        if em.span.line:
            return f"{em.span}: {em.message}"
        return em.message

    @property
    def code(self) -> ErrorCode:
        return self.error_message.code

    @property
    def kind(self) -> ErrorKind:
        return self.error_message.code.kind

    @property
    def span(self) -> SourceSpan:
        return self.error_message.span

    @property
    def message(self) -> str:
        return self.error_message.message

    def with_hint(self, hint: str) -> "DeclError":
        self.error_message.hint = hint
        return self

    def with_source(self, text: str) -> "DeclError":
        """Attach the offending source line (looked up from the full input)."""
        if self.span.line > 0:
            lines = text.splitlines()
            if self.span.line <= len(lines):
                self.error_message.source_line = lines[self.span.line - 1]
        return self

    def to_gcc_format(self) -> str:
        return self.error_message.to_gcc_format()

    def to_json(self) -> Dict[str, Any]:
        return self.error_message.to_json()

    def __str__(self) -> str:
        return self._plain()


class SyntaxError(DeclError):  # noqa: A001 - mirrors the builtin on purpose
    """Unexpected token or premature end of input."""

    default_code = Codes.UNEXPECTED_TOKEN

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        expected: Optional[Sequence[str]] = None,
        got: str = "",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, code=code, span=span, **kwargs)
        self.expected: List[str] = list(expected) if expected else []
        self.got = got


class UnexpectedTokenError(SyntaxError):
    """Found something other than what the grammar allows here."""

    def __init__(
        self,
        got: str,
        expected: Optional[Sequence[str]] = None,
        span: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        if expected:
            want = expected[0] if len(expected) == 1 else " or ".join(expected)
            message = f"expecting {want}, found {got}"
        else:
            message = f"unexpected {got}"
        super().__init__(
            message,
            code=Codes.UNEXPECTED_TOKEN,
            span=span,
            expected=expected,
            got=got,
            **kwargs,
        )


class UnexpectedEOFError(SyntaxError):
    """Input ended in the middle of a construct."""

    def __init__(
        self,
        expected: Optional[Sequence[str]] = None,
        span: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        message = "unexpected end of input"
        if expected:
            message += f", expecting {' or '.join(expected)}"
        super().__init__(
            message,
            code=Codes.UNEXPECTED_EOF,
            span=span,
            expected=expected,
            got="EOF",
            **kwargs,
        )


class TypeNameError(DeclError):
    """Unknown type name, invalid specifier combination, misplaced ``void``."""

    default_code = Codes.UNKNOWN_TYPE


class RedefinitionError(DeclError):
    """A composite defined twice, or a namespace qualification mismatch."""

    default_code = Codes.REDEFINED_TYPE


class StructuralError(DeclError):
    """A declarator shape C does not allow (function returning array, ...)."""

    default_code = Codes.FUNCTION_RETURNS_ARRAY


class InterfaceError(DeclError):
    """Bad base interface or malformed GUID literal."""

    default_code = Codes.UNKNOWN_BASE
