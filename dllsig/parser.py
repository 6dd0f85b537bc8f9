"""dllsig/parser.py – recursive-descent parser for C/C++ declarations.

Grammar (simplified)::

    input        → statement*
    statement    → ';'
                 | 'namespace' IDENT '{' statement* '}' ';'?
                 | 'typedef' decl_spec declarator (',' declarator)* ';'
                 | decl_spec declarator ';'
    decl_spec    → (qualifier | ignored | composite | type_word)+
    composite    → ('struct' | 'union') QNAME? ('{' member* '}')?
                 | 'enum' QNAME? ('{' enumerator (',' enumerator)* ','? '}')?
                 | interface                       (see dllsig.interfaces)
    member       → decl_spec (declarator (',' declarator)*)? ';'
    declarator   → ptr* callconv? direct
    ptr          → ('*' | '&') qualifier*
    direct       → ( '(' callconv? declarator ')' | IDENT )? postfix*
    postfix      → '(' params ')' | '[' dimension? ']'
    params       → ε | param (',' param)*
    param        → decl_spec declarator

A declarator is not turned into a type while it is being read.  Each
pointer, array and function suffix is recorded as a pending derivation and
the list is replayed onto the base type once the whole declarator is known:
pointers first, then postfixes right to left, then whatever the nested
parenthesized declarator recorded.  This yields C's inside-out reading
(``int (*p)(int)`` is a pointer to a function) without placeholder nodes.

Every statement is parsed against the shared :class:`~dllsig.registry.Registry`;
typedefs and tags become visible to the statements that follow, including
later statements of the same input.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from dllsig import interfaces
from dllsig.errors import (
    Codes,
    RedefinitionError,
    SourceSpan,
    StructuralError,
    SyntaxError,
    TypeNameError,
)
from dllsig.normalizer import Normalizer
from dllsig.primitives import (
    CALLING_CONVENTIONS,
    COMPOSITE_KEYWORDS,
    DEFAULT_CALLING_CONVENTION,
    IGNORED_SPECIFIERS,
    INTERFACE_CALLING_CONVENTION,
    QUALIFIERS,
    TYPE_MODIFIERS,
)
from dllsig.registry import SCOPE_SEP, Registry, TableKind
from dllsig.scanner import Scanner
from dllsig.typenodes import (
    COMPOSITE_TYPES,
    Array,
    Declaration,
    EnumDef,
    Function,
    IncompleteArray,
    InterfaceDef,
    Member,
    Param,
    Pointer,
    RecordDef,
    Reference,
    Statement,
    TypeDefStatement,
    TypeNode,
    is_void,
    with_qualifiers,
)

__all__ = ["DeclParser", "Derivation"]

logger = logging.getLogger(__name__)

#: A pending declarator suffix: takes the type built so far, returns the next.
Derivation = Callable[[TypeNode], TypeNode]

# Words that spell primitive types on their own.  After a typedef or tag
# name, one of these is an error; any other identifier is the declarator.
_KEYWORD_WORDS = frozenset({
    "bool", "char", "short", "int", "long", "signed", "unsigned", "float",
    "double", "void", "wchar_t", "__wchar_t", "__int8", "__int16", "__int32",
    "__int64", "__uint8", "__uint16", "__uint32", "__uint64",
})

_ACCESS_SPECIFIERS = ("public", "protected", "private")

_RECORD_TABLES = {"struct": TableKind.STRUCT, "union": TableKind.UNION}


def _word_rank(word: str) -> int:
    if word in ("signed", "unsigned"):
        return 0
    if word in TYPE_MODIFIERS:
        return 1
    return 2


class DeclParser:
    """Parse declaration text into statements against a registry.

    Parameters
    ----------
    registry:
        Session symbol tables; updated as typedefs and tags are seen.
    encode:
        Callable that turns a type tree into its wire string.  It is bound
        into every produced statement.
    on_complete:
        Called with the definition each time a named struct, union or
        interface body is finished.
    default_calling_convention / interface_calling_convention:
        Wire letters used when a function or interface method has no
        explicit convention.
    """

    def __init__(
        self,
        registry: Registry,
        encode: Optional[Callable[[TypeNode], str]] = None,
        on_complete: Optional[Callable[[object], None]] = None,
        default_calling_convention: str = DEFAULT_CALLING_CONVENTION,
        interface_calling_convention: str = INTERFACE_CALLING_CONVENTION,
        filename: str = "",
    ) -> None:
        self.registry = registry
        self.encode = encode
        self.on_complete = on_complete
        self.default_calling_convention = default_calling_convention
        self.interface_calling_convention = interface_calling_convention
        self.filename = filename
        self.scanner = Scanner("", filename)

    # ════════════════════════════════════════════════════════════════════
    # Statements
    # ════════════════════════════════════════════════════════════════════

    def parse(self, text: str) -> List[Statement]:
        """Parse *text* into an ordered list of statements.

        Namespace contents are flattened into the result.  On error the
        namespace path is unwound to where it was before the call.
        """
        self.scanner = Scanner(text, self.filename)
        depth = len(self.registry.namespace_path)
        statements: List[Statement] = []
        try:
            self._parse_statements(statements, in_namespace=False)
        finally:
            while len(self.registry.namespace_path) > depth:
                self.registry.leave_namespace()
        logger.debug("parsed %d statement(s)", len(statements))
        return statements

    def _parse_statements(self, out: List[Statement], in_namespace: bool) -> None:
        sc = self.scanner
        while True:
            if sc.at_end:
                if in_namespace:
                    sc.unexpected('"}"')
                return
            if in_namespace and sc.lookahead("}"):
                return
            self._parse_statement(out)

    def _parse_statement(self, out: List[Statement]) -> None:
        sc = self.scanner
        if sc.lookahead(";"):
            return

        if sc.lookahead("namespace"):
            name = sc.read_identifier()
            sc.expect("{")
            self.registry.enter_namespace(name)
            self._parse_statements(out, in_namespace=True)
            self.registry.leave_namespace()
            sc.lookahead(";")
            return

        if sc.lookahead("typedef"):
            base = self.parse_decl_spec()
            while True:
                span = sc.span()
                name, node = self.parse_declarator(base)
                if name is None:
                    raise SyntaxError("typedef name expected", span=span)
                self.registry.define_typedef(name, node)
                out.append(TypeDefStatement(name, node, self.encode))
                if not sc.lookahead(","):
                    break
            self._end_statement()
            return

        span = sc.span()
        base = self.parse_decl_spec()
        name, node = self.parse_declarator(base)
        if isinstance(node, Function) and sc.peek_char() == "{":
            raise SyntaxError(
                "function bodies are not supported",
                code=Codes.FUNCTION_BODY,
                span=sc.span(),
            )
        self._end_statement()
        if name is None and isinstance(node, COMPOSITE_TYPES):
            self._forward_declare(node.definition, span)
        out.append(Declaration(name, node, self.encode))

    def _forward_declare(
        self, definition: "RecordDef | EnumDef | InterfaceDef", span: SourceSpan
    ) -> None:
        """A bare ``struct foo;`` may appear once before the body and freely after it."""
        if definition.defined:
            return
        if definition.forward_declared:
            raise RedefinitionError(
                f"{definition.name} is already forward-declared",
                code=Codes.REDEFINED_TYPE,
                span=span,
            )
        definition.forward_declared = True

    def _end_statement(self) -> None:
        sc = self.scanner
        if sc.lookahead(";") or sc.at_end:
            return
        sc.unexpected('";"')

    # ════════════════════════════════════════════════════════════════════
    # Declaration specifiers
    # ════════════════════════════════════════════════════════════════════

    def parse_decl_spec(self) -> TypeNode:
        """Read qualifiers and type specifiers and build the base type."""
        sc = self.scanner
        start = sc.span()
        const = volatile = False
        words: List[str] = []
        named: Optional[TypeNode] = None
        composite: Optional[TypeNode] = None

        while True:
            sc.skip_annotations()
            span = sc.span()
            sym = sc.peek_symbol()

            if sym in QUALIFIERS:
                sc.read_identifier()
                if QUALIFIERS[sym] == "const":
                    const = True
                else:
                    volatile = True
                continue

            if sym in IGNORED_SPECIFIERS:
                sc.read_identifier()
                if sym == "extern" and sc.peek_char() in ("'", '"'):
                    sc.read_quoted_string()
                continue

            if sym in COMPOSITE_KEYWORDS:
                if composite is not None or words or named is not None:
                    raise StructuralError(
                        f"'{sym}' cannot be combined with other type specifiers",
                        code=Codes.MIXED_SPECIFIERS,
                        span=span,
                    )
                sc.read_identifier()
                composite = self._parse_composite(sym, span)
                continue

            if sym is None and sc.peek_char() != ":":
                break
            pos = sc.save()
            word = sc.peek_qualified()
            if word is None:
                break

            if word in _KEYWORD_WORDS:
                if composite is not None:
                    raise StructuralError(
                        f"'{word}' cannot be combined with a composite type",
                        code=Codes.MIXED_SPECIFIERS,
                        span=span,
                    )
                if named is not None:
                    raise TypeNameError(
                        f"'{word}' cannot be combined with a named type",
                        code=Codes.INVALID_SPECIFIERS,
                        span=span,
                    )
                sc.read_identifier()
                words.append(word)
                continue

            if composite is not None and self._typedef_name_then_declarator(word):
                raise StructuralError(
                    f"'{word}' cannot be combined with a composite type",
                    code=Codes.MIXED_SPECIFIERS,
                    span=span,
                )
            if composite is not None or named is not None or words:
                # the declarator name
                break

            sc.read_qualified_identifier()
            found = self.registry.lookup_type_name(word)
            if found is None:
                sc.restore(pos)
                break
            named = found

        if composite is not None:
            base = composite
        elif named is not None:
            base = named
        elif words:
            base = self._combine_words(words, start)
        else:
            sym = sc.peek_symbol()
            if sym is not None and sym not in CALLING_CONVENTIONS:
                raise TypeNameError(f"unknown type name \"{sym}\"", span=sc.span())
            sc.unexpected("type specifier")

        return with_qualifiers(base, const, volatile)

    def _typedef_name_then_declarator(self, word: str) -> bool:
        """True for ``struct foo DWORD x``, false for ``struct foo DWORD;``."""
        if self.registry.lookup_ordinary(word) is None:
            return False
        sc = self.scanner
        pos = sc.save()
        try:
            sc.read_qualified_identifier()
            sc.skip_annotations()
            return sc.identifier_incoming() or sc.peek_char() in ("*", "&")
        finally:
            sc.restore(pos)

    def _combine_words(self, words: List[str], span: SourceSpan) -> TypeNode:
        ordered = sorted(words, key=_word_rank)
        combined = " ".join(ordered)
        found = self.registry.lookup_type_name(combined)
        if found is None:
            raise TypeNameError(
                f"invalid type name \"{' '.join(words)}\"",
                code=Codes.INVALID_SPECIFIERS,
                span=span,
            )
        return found

    def parse_calling_convention(self) -> Optional[str]:
        """Consume a calling convention keyword and return its wire letter."""
        sc = self.scanner
        sc.skip_annotations()
        sym = sc.peek_symbol()
        if sym in CALLING_CONVENTIONS:
            sc.read_identifier()
            return CALLING_CONVENTIONS[sym]
        return None

    # ════════════════════════════════════════════════════════════════════
    # Declarators
    # ════════════════════════════════════════════════════════════════════

    def parse_declarator(
        self, base: TypeNode, default_cc: Optional[str] = ""
    ) -> Tuple[Optional[str], TypeNode]:
        """Read one declarator and apply it to *base*.

        *default_cc* is the convention given to a function suffix with no
        explicit one; the empty string means the parser default and
        ``None`` leaves the convention unset for the caller to decide.
        """
        if default_cc == "":
            default_cc = self.default_calling_convention
        name, derivations, _ = self._declarator(default_cc)
        node = base
        for derive in derivations:
            node = derive(node)
        return name, node

    def _declarator(
        self, default_cc: Optional[str]
    ) -> Tuple[Optional[str], List[Derivation], Optional[str]]:
        sc = self.scanner
        pointers: List[Derivation] = []
        while True:
            sc.skip_annotations()
            span = sc.span()
            if sc.lookahead("*"):
                reference = False
            elif sc.lookahead("&"):
                reference = True
            else:
                break
            const = volatile = False
            while True:
                sc.skip_annotations()
                sym = sc.peek_symbol()
                if sym not in QUALIFIERS:
                    break
                sc.read_identifier()
                if QUALIFIERS[sym] == "const":
                    const = True
                else:
                    volatile = True
            pointers.append(self._pointer_to(reference, const, volatile, span))

        cc = self.parse_calling_convention()
        name, direct, unused_cc = self._direct_declarator(cc, default_cc)
        return name, pointers + direct, unused_cc

    def _direct_declarator(
        self, cc: Optional[str], default_cc: Optional[str]
    ) -> Tuple[Optional[str], List[Derivation], Optional[str]]:
        sc = self.scanner
        name: Optional[str] = None
        inner: List[Derivation] = []

        if self._nested_declarator_incoming():
            sc.expect("(")
            inner_cc = self.parse_calling_convention()
            name, inner, passed_cc = self._declarator(default_cc)
            sc.expect(")")
            cc = cc or inner_cc or passed_cc
        elif sc.identifier_incoming():
            name = sc.read_qualified_identifier()

        postfixes: List[Derivation] = []
        while True:
            span = sc.span()
            if sc.lookahead("("):
                params = self._parse_parameters()
                convention = cc or default_cc
                cc = None
                postfixes.append(self._function_returning(convention, params, span))
            elif sc.lookahead("["):
                if sc.lookahead("]"):
                    postfixes.append(self._array_of(None, span))
                else:
                    length = self._parse_array_dimension()
                    sc.expect("]")
                    postfixes.append(self._array_of(length, span))
            else:
                break

        postfixes.reverse()
        return name, postfixes + inner, cc

    def _nested_declarator_incoming(self) -> bool:
        """Tell ``(*p)`` style nesting apart from a parameter list."""
        sc = self.scanner
        if sc.peek_char() != "(":
            return False
        pos = sc.save()
        try:
            sc.advance()
            sc.skip_annotations()
            ch = sc.peek_char()
            if ch in ("*", "&", "("):
                return True
            sym = sc.peek_qualified()
            if sym is None:
                return False
            if sym in CALLING_CONVENTIONS:
                return True
            if (
                sym in QUALIFIERS
                or sym in IGNORED_SPECIFIERS
                or sym in COMPOSITE_KEYWORDS
                or sym in _KEYWORD_WORDS
            ):
                return False
            return self.registry.lookup_type_name(sym) is None
        finally:
            sc.restore(pos)

    def _parse_parameters(self) -> Tuple[Param, ...]:
        sc = self.scanner
        if sc.lookahead(")"):
            return ()
        collected: List[Tuple[Param, SourceSpan]] = []
        while True:
            span = sc.span()
            base = self.parse_decl_spec()
            name, node = self.parse_declarator(base)
            collected.append((Param(name, node), span))
            if sc.lookahead(")"):
                break
            if not sc.lookahead(","):
                sc.unexpected('","', '")"')

        normalizer = Normalizer(self.registry)
        resolved = [normalizer.normalize(p.type) for p, _ in collected]
        if len(collected) == 1 and is_void(resolved[0]):
            return ()
        for (param, span), node in zip(collected, resolved):
            if is_void(node):
                raise TypeNameError(
                    "'void' must be the only parameter",
                    code=Codes.INVALID_VOID,
                    span=span,
                )
            if isinstance(node, Function):
                label = f"parameter {param.name}" if param.name else "parameter"
                raise StructuralError(
                    f"{label} has function type; use a function pointer",
                    code=Codes.FUNCTION_PARAMETER,
                    span=span,
                )
        return tuple(p for p, _ in collected)

    def _parse_array_dimension(self) -> int:
        span = self.scanner.span()
        value = self.parse_constant_expression()
        if value <= 0:
            raise StructuralError(
                f"array dimension must be positive, got {value}",
                code=Codes.BAD_ARRAY_DIMENSION,
                span=span,
            )
        return value

    def parse_constant_expression(self, pending: Optional[Dict[str, int]] = None) -> int:
        """An optionally signed integer literal or enum constant.

        *pending* holds constants of an enum body still being read.
        """
        sc = self.scanner
        negative = False
        if sc.lookahead("-"):
            negative = True
        else:
            sc.lookahead("+")
        if sc.number_incoming():
            value = sc.read_integer()
        elif sc.peek_qualified() is not None:
            span = sc.span()
            name = sc.read_qualified_identifier()
            found = None
            if pending is not None:
                found = pending.get(name)
            if found is None:
                found = self.registry.lookup_constant(name)
            if found is None:
                raise TypeNameError(
                    f"unknown constant \"{name}\"",
                    code=Codes.UNKNOWN_CONSTANT,
                    span=span,
                )
            value = found
        else:
            sc.unexpected("integer constant")
        return -value if negative else value

    # ── derivations ─────────────────────────────────────────────────────

    def _resolve(self, node: TypeNode) -> TypeNode:
        return Normalizer(self.registry).normalize(node)

    def _pointer_to(
        self, reference: bool, const: bool, volatile: bool, span: SourceSpan
    ) -> Derivation:
        def derive(target: TypeNode) -> TypeNode:
            if reference:
                if is_void(self._resolve(target)):
                    raise TypeNameError(
                        "reference to 'void' is invalid",
                        code=Codes.INVALID_VOID,
                        span=span,
                    )
                return Reference(target, const, volatile)
            return Pointer(target, const, volatile)

        return derive

    def _array_of(self, length: Optional[int], span: SourceSpan) -> Derivation:
        def derive(target: TypeNode) -> TypeNode:
            resolved = self._resolve(target)
            if isinstance(resolved, Function):
                raise StructuralError(
                    "array of functions is invalid",
                    code=Codes.ARRAY_OF_FUNCTIONS,
                    span=span,
                )
            if is_void(resolved):
                raise TypeNameError(
                    "array of 'void' is invalid",
                    code=Codes.INVALID_VOID,
                    span=span,
                )
            if length is None:
                return IncompleteArray(target)
            return Array(target, length)

        return derive

    def _function_returning(
        self, convention: Optional[str], params: Tuple[Param, ...], span: SourceSpan
    ) -> Derivation:
        def derive(ret: TypeNode) -> TypeNode:
            resolved = self._resolve(ret)
            if isinstance(resolved, (Array, IncompleteArray)):
                raise StructuralError(
                    "function cannot return an array",
                    code=Codes.FUNCTION_RETURNS_ARRAY,
                    span=span,
                )
            if isinstance(resolved, Function):
                raise StructuralError(
                    "function cannot return a function",
                    code=Codes.FUNCTION_RETURNS_FUNCTION,
                    span=span,
                )
            return Function(convention, ret, params)  # type: ignore[arg-type]

        return derive

    # ════════════════════════════════════════════════════════════════════
    # Composites
    # ════════════════════════════════════════════════════════════════════

    def _parse_composite(self, keyword: str, span: SourceSpan) -> TypeNode:
        if keyword in _RECORD_TABLES:
            return self._parse_record(keyword)
        if keyword == "enum":
            return self._parse_enum()
        return interfaces.parse_interface(self, keyword, span)

    def begin_definition(self, kind: TableKind, name: Optional[str], span: SourceSpan):
        """Look up the definition a body is about to fill.

        Raises :class:`RedefinitionError` when the composite already has a
        body, or when an explicitly qualified name does not match an
        existing declaration.
        """
        definition, existed = self.registry.declare_tag(kind, name, local=True)
        if name is not None and SCOPE_SEP in name and not existed:
            raise RedefinitionError(
                f"{kind.value} {name} does not name a declared {kind.value}",
                code=Codes.NAMESPACE_MISMATCH,
                span=span,
            )
        if definition.defined:
            raise RedefinitionError(
                f"{kind.value} {definition.name} is already defined",
                code=Codes.REDEFINED_TYPE,
                span=span,
            )
        return definition

    def complete(self, definition: "RecordDef | EnumDef | InterfaceDef") -> None:
        """Mark a body finished and report named structs, unions and interfaces."""
        definition.defined = True
        if isinstance(definition, EnumDef):
            logger.debug("enum %s defined", definition.name)
            return
        logger.debug("%s %s defined", definition.kind, definition.name)
        if self.on_complete is not None and not definition.anonymous:
            self.on_complete(definition)

    def _parse_record(self, keyword: str) -> TypeNode:
        sc = self.scanner
        kind = _RECORD_TABLES[keyword]
        span = sc.span()
        name: Optional[str] = None
        if not sc.lookahead("{"):
            name = sc.read_qualified_identifier()
            if not sc.lookahead("{"):
                definition, _ = self.registry.declare_tag(kind, name)
                return self.registry.handle(definition)

        definition = self.begin_definition(kind, name, span)
        members: List[Member] = []
        while not sc.lookahead("}"):
            if sc.at_end:
                sc.unexpected('"}"')
            self._parse_member_declaration(members)
        definition.members = members
        self.complete(definition)
        return self.registry.handle(definition)

    def _parse_member_declaration(self, members: List[Member]) -> None:
        sc = self.scanner
        for access in _ACCESS_SPECIFIERS:
            if sc.lookahead(access):
                sc.expect(":")
                return
        base = self.parse_decl_spec()
        if sc.lookahead(";"):
            # unnamed nested struct or union
            members.append(Member(None, base))
            return
        while True:
            span = sc.span()
            name, node = self.parse_declarator(base)
            self.check_member_name(name, span)
            members.append(Member(name, node))
            if not sc.lookahead(","):
                break
        sc.expect(";")

    def check_member_name(self, name: Optional[str], span: SourceSpan) -> None:
        """Members live in their composite, never in a namespace."""
        if name is not None and SCOPE_SEP in name:
            raise StructuralError(
                f"member name {name} cannot be qualified",
                code=Codes.QUALIFIED_MEMBER,
                span=span,
            )

    def _parse_enum(self) -> TypeNode:
        sc = self.scanner
        span = sc.span()
        name: Optional[str] = None
        if not sc.lookahead("{"):
            name = sc.read_qualified_identifier()
            if not sc.lookahead("{"):
                definition, _ = self.registry.declare_tag(TableKind.ENUM, name)
                return self.registry.handle(definition)

        definition = self.begin_definition(TableKind.ENUM, name, span)
        pending: Dict[str, int] = {}
        next_value = 0
        while sc.identifier_incoming():
            const_span = sc.span()
            constant = sc.read_identifier()
            if sc.lookahead("="):
                next_value = self.parse_constant_expression(pending)
            if constant in pending or self.registry.has_local_constant(constant):
                raise RedefinitionError(
                    f"enum constant {constant} is already defined",
                    code=Codes.REDEFINED_CONSTANT,
                    span=const_span,
                )
            pending[constant] = next_value
            next_value += 1
            if not sc.lookahead(","):
                break
        sc.expect("}")
        # registered only once the whole body has been read
        for constant, value in pending.items():
            self.registry.define_constant(constant, value)
        definition.members = list(pending.items())
        self.complete(definition)
        return self.registry.handle(definition)
