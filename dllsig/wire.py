"""
dllsig/wire.py
==============

PEG grammar for the wire notation, written independently of the encoder.

The marshalling layer reads encoded types without access to the parser's
type trees; this module plays that role.  It decodes a wire string into a
small tree of plain dicts and is used by the ``dllsig check`` command and
by the test-suite to confirm that every encoding is mechanically
re-parsable.

Decoded shapes (every node has ``kind`` and ``const``)::

    {"kind": "primitive", "code": "i"}
    {"kind": "pointer" | "reference", "target": node}
    {"kind": "array", "length": 4 | None, "target": node}
    {"kind": "function", "convention": "S", "return": node, "params": [node]}
    {"kind": "struct" | "union", "members": [(name | None, node)]}
    {"kind": "interface", "guid": str | None, "members": [(name, node)]}
    {"kind": "ref", "tag": "S" | "U" | "I", "name": "N::foo"}
    {"kind": "enum", "name": "foo"}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from parsimonious.exceptions import IncompleteParseError, ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

__all__ = ["WIRE_GRAMMAR", "WireFormatError", "parse_wire", "is_valid_wire"]


WIRE_GRAMMAR = r"""
    type         = qualifiers core
    qualifiers   = "%"*
    core         = pointer / reference / array / function / record
                 / interface / tagref / enum / primitive

    pointer      = "*" type
    reference    = "&" type
    array        = "[" length "]" type
    length       = ~"[0-9]*"

    function     = "(" convention type params ")"
    convention   = ~"[A-Z]"
    params       = param*
    param        = " " type

    record       = "{" record_kind members " "? "}"
    record_kind  = ~"[SU]"
    interface    = "{I " guid members "}"
    guid         = ~"[0-9A-F]{8}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{12}" / "-"
    members      = member_item*
    member_item  = " " member
    member       = member_name ":" type
    member_name  = ~"[A-Za-z0-9_]*"

    tagref       = "@" tag_kind "." qname
    tag_kind     = ~"[SUI]"
    enum         = "E" enum_name
    enum_name    = qname / "<anonymous>"
    qname        = ~"[A-Za-z_][A-Za-z0-9_]*(::[A-Za-z_][A-Za-z0-9_]*)*"

    primitive    = ~"[bcCsSiIlLfdvZzPHtT]"
"""

_GRAMMAR = Grammar(WIRE_GRAMMAR)


class WireFormatError(ValueError):
    """Raised when a string is not valid wire notation."""


class _WireVisitor(NodeVisitor):
    """Turn a parse tree into the plain-dict shapes documented above."""

    def visit_type(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        qualifiers, core = visited_children
        decoded = dict(core)
        decoded["const"] = qualifiers > 0
        return decoded

    def visit_qualifiers(self, node: Node, visited_children: List[Any]) -> int:
        return len(node.text)

    def visit_core(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        return visited_children[0]

    def visit_pointer(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        return {"kind": "pointer", "target": visited_children[1]}

    def visit_reference(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        return {"kind": "reference", "target": visited_children[1]}

    def visit_array(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        _, length, _, target = visited_children
        return {"kind": "array", "length": length, "target": target}

    def visit_length(self, node: Node, visited_children: List[Any]) -> Optional[int]:
        return int(node.text) if node.text else None

    def visit_function(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        _, convention, ret, params, _ = visited_children
        return {
            "kind": "function",
            "convention": convention,
            "return": ret,
            "params": params,
        }

    def visit_convention(self, node: Node, visited_children: List[Any]) -> str:
        return node.text

    def visit_params(self, node: Node, visited_children: List[Any]) -> List[Any]:
        return list(visited_children)

    def visit_param(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        return visited_children[1]

    def visit_record(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        _, kind, members, _, _ = visited_children
        return {"kind": "struct" if kind == "S" else "union", "members": members}

    def visit_record_kind(self, node: Node, visited_children: List[Any]) -> str:
        return node.text

    def visit_interface(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        _, guid, members, _ = visited_children
        return {"kind": "interface", "guid": guid, "members": members}

    def visit_guid(self, node: Node, visited_children: List[Any]) -> Optional[str]:
        return None if node.text == "-" else node.text

    def visit_members(self, node: Node, visited_children: List[Any]) -> List[Any]:
        return list(visited_children)

    def visit_member_item(self, node: Node, visited_children: List[Any]) -> Any:
        return visited_children[1]

    def visit_member(self, node: Node, visited_children: List[Any]) -> Any:
        name, _, member_type = visited_children
        return (name or None, member_type)

    def visit_member_name(self, node: Node, visited_children: List[Any]) -> str:
        return node.text

    def visit_tagref(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        _, tag, _, name = visited_children
        return {"kind": "ref", "tag": tag, "name": name}

    def visit_tag_kind(self, node: Node, visited_children: List[Any]) -> str:
        return node.text

    def visit_enum(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        return {"kind": "enum", "name": visited_children[1]}

    def visit_enum_name(self, node: Node, visited_children: List[Any]) -> str:
        return node.text

    def visit_qname(self, node: Node, visited_children: List[Any]) -> str:
        return node.text

    def visit_primitive(self, node: Node, visited_children: List[Any]) -> Dict[str, Any]:
        return {"kind": "primitive", "code": node.text}

    def generic_visit(self, node: Node, visited_children: List[Any]) -> Any:
        return visited_children or node


def parse_wire(text: str) -> Dict[str, Any]:
    """Decode one wire string.  Raises :class:`WireFormatError`."""
    try:
        tree = _GRAMMAR.parse(text)
    except (ParseError, IncompleteParseError) as exc:
        raise WireFormatError(f"invalid wire string {text!r}: {exc}") from exc
    try:
        return _WireVisitor().visit(tree)
    except VisitationError as exc:
        raise WireFormatError(f"cannot decode wire string {text!r}: {exc}") from exc


def is_valid_wire(text: str) -> bool:
    try:
        _GRAMMAR.parse(text)
    except (ParseError, IncompleteParseError):
        return False
    return True
