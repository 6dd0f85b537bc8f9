"""dllsig/interfaces.py – COM interface declarations.

Two spellings are accepted, both usable wherever a struct could appear::

    interface IFoo ['GUID'] [: [public] IBase] { members }
    MIDL_INTERFACE("GUID") IFoo : public IBase { members }

Only function members are allowed.  Each gets an implicit leading
``void *`` receiver and the interface calling convention (``__stdcall``
unless configured otherwise); an explicit different convention is
rejected.  ``virtual``, access specifiers and a trailing ``= 0`` are
accepted and ignored.

The vtable is the base interface's vtable followed by the members declared
in the body, in declaration order.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import TYPE_CHECKING, List, Optional

from dllsig.errors import Codes, InterfaceError, SourceSpan, StructuralError
from dllsig.primitives import DEFAULT_CALLING_CONVENTION
from dllsig.registry import TableKind
from dllsig.typenodes import (
    VOID_PTR,
    Array,
    Function,
    IncompleteArray,
    Interface,
    InterfaceDef,
    Member,
    Param,
    Pointer,
    Reference,
    TypeNode,
)

if TYPE_CHECKING:
    from dllsig.parser import DeclParser

__all__ = [
    "RECEIVER",
    "normalize_guid",
    "build_member",
    "inherit_vtable",
    "parse_interface",
    "guid_of",
]

logger = logging.getLogger(__name__)

_RE_GUID = re.compile(
    r"(\{)?([0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12})(\})?"
)

#: The implicit ``this`` argument prepended to every method.
RECEIVER = Param("this", VOID_PTR)


def normalize_guid(text: str, span: Optional[SourceSpan] = None) -> str:
    """Validate a GUID literal and return it upper-cased without braces."""
    m = _RE_GUID.fullmatch(text.strip())
    if not m or bool(m.group(1)) != bool(m.group(3)):
        raise InterfaceError(
            f"malformed GUID {text!r}",
            code=Codes.MALFORMED_GUID,
            span=span,
            hint="expected XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX",
        )
    return m.group(2).upper()


def _fill_conventions(node: TypeNode, cc: str) -> TypeNode:
    """Give every function without a convention under *node* the convention *cc*."""
    if isinstance(node, Function):
        ret = _fill_conventions(node.return_type, cc)
        if node.calling_convention is None or ret is not node.return_type:
            return Function(node.calling_convention or cc, ret, node.params)
        return node
    if isinstance(node, (Pointer, Reference, Array, IncompleteArray)):
        target = _fill_conventions(node.target, cc)
        if target is not node.target:
            return dataclasses.replace(node, target=target)
    return node


def build_member(
    name: Optional[str],
    node: TypeNode,
    interface_cc: str,
    span: Optional[SourceSpan] = None,
    default_cc: str = DEFAULT_CALLING_CONVENTION,
) -> Member:
    """Turn a parsed member declarator into a vtable entry.

    Functions nested in the return type that were written without a
    convention get *default_cc*; only the method itself takes
    *interface_cc*.
    """
    if not isinstance(node, Function):
        raise StructuralError(
            f"interface member {name or '<anonymous>'} is not a function",
            code=Codes.NON_FUNCTION_MEMBER,
            span=span,
        )
    convention = node.calling_convention or interface_cc
    if convention != interface_cc:
        raise StructuralError(
            f"interface method {name} must use calling convention "
            f"{interface_cc!r}, not {convention!r}",
            code=Codes.CALLING_CONVENTION,
            span=span,
        )
    ret = _fill_conventions(node.return_type, default_cc)
    return Member(name, Function(convention, ret, (RECEIVER,) + node.params))


def inherit_vtable(base: Optional[InterfaceDef]) -> List[Member]:
    """Starting vtable for an interface deriving from *base*."""
    if base is None:
        return []
    return list(base.vtable)


def guid_of(node: TypeNode) -> str:
    """The GUID of an interface type node."""
    if not isinstance(node, Interface):
        raise InterfaceError(
            "uuidof requires an interface type",
            code=Codes.NOT_AN_INTERFACE,
        )
    if node.guid is None:
        raise InterfaceError(
            f"interface {node.name} has no GUID",
            code=Codes.MISSING_GUID,
        )
    return node.guid


# ════════════════════════════════════════════════════════════════════════
# Parsing
# ════════════════════════════════════════════════════════════════════════


def parse_interface(parser: "DeclParser", keyword: str, span: SourceSpan) -> Interface:
    """Parse an interface specifier after its introducing keyword."""
    sc = parser.scanner
    registry = parser.registry

    guid: Optional[str] = None
    if keyword == "MIDL_INTERFACE":
        sc.expect("(")
        guid_span = sc.span()
        guid = normalize_guid(sc.read_quoted_string(), guid_span)
        sc.expect(")")

    name_span = sc.span()
    name = sc.read_qualified_identifier()

    if sc.peek_char() in ("'", '"'):
        guid_span = sc.span()
        guid = normalize_guid(sc.read_quoted_string(), guid_span)

    base: Optional[InterfaceDef] = None
    has_head = guid is not None
    if sc.lookahead(":"):
        has_head = True
        sc.lookahead("public")
        base_span = sc.span()
        base_name = sc.read_qualified_identifier()
        found = registry.lookup_tag(TableKind.INTERFACE, base_name)
        if found is None:
            raise InterfaceError(
                f"unknown base interface {base_name}",
                code=Codes.UNKNOWN_BASE,
                span=base_span,
            )
        if not found.defined:
            raise InterfaceError(
                f"base interface {base_name} is declared but not defined",
                code=Codes.UNDEFINED_BASE,
                span=base_span,
            )
        base = found  # type: ignore[assignment]

    if not sc.lookahead("{"):
        if has_head:
            sc.unexpected('"{"')
        definition, _ = registry.declare_tag(TableKind.INTERFACE, name)
        return Interface(definition)  # type: ignore[arg-type]

    definition = parser.begin_definition(TableKind.INTERFACE, name, name_span)
    vtable = inherit_vtable(base)
    while not sc.lookahead("}"):
        if sc.at_end:
            sc.unexpected('"}"')
        member = _parse_method(parser)
        if member is not None:
            vtable.append(member)

    definition.guid = guid
    definition.base = base
    definition.vtable = vtable
    logger.debug(
        "interface %s: %d method(s), %d inherited",
        definition.name,
        len(vtable),
        len(base.vtable) if base is not None else 0,
    )
    parser.complete(definition)
    return Interface(definition)


def _parse_method(parser: "DeclParser") -> Optional[Member]:
    sc = parser.scanner
    for access in ("public", "protected", "private"):
        if sc.lookahead(access):
            sc.expect(":")
            return None
    span = sc.span()
    sc.lookahead("virtual")
    base = parser.parse_decl_spec()
    name, node = parser.parse_declarator(base, default_cc=None)
    parser.check_member_name(name, span)
    member = build_member(
        name, node, parser.interface_calling_convention, span,
        default_cc=parser.default_calling_convention,
    )
    if sc.lookahead("="):
        sc.expect("0")
    sc.expect(";")
    return member
