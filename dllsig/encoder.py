"""dllsig/encoder.py – serialize normalized type trees to the wire notation.

Notation
--------
============================  ==========================================
``i``, ``L``, ``H`` ...       primitive code
``%T``                        const-qualified ``T``
``*T`` / ``&T``               pointer / reference to ``T``
``[N]T`` / ``[]T``            array of ``N`` ``T`` / incomplete array
``(Cr a b)``                  function: convention, return, parameters
``{S name:T ...}``            anonymous struct body (``U`` for unions)
``@S.tag``                    named struct (``@U.`` union, ``@I.`` interface)
``Etag``                      enum
============================  ==========================================

Named composites are always written as tag references, which keeps
self-referential structures finite.  Their bodies travel separately: each
time a named body is completed the session pushes ``S.tag`` (or ``U.tag``,
``I.tag``) with :meth:`Encoder.encode_body` to its named-type sink.

Interface bodies are ``{I GUID name:(S...) ...}`` with ``-`` in place of a
missing GUID; the entries are the whole vtable, inherited ones first.
"""

from __future__ import annotations

from typing import List, Union

from dllsig.normalizer import Normalizer
from dllsig.registry import Registry
from dllsig.typenodes import (
    Array,
    Enum,
    Function,
    IncompleteArray,
    Interface,
    InterfaceDef,
    Member,
    Pointer,
    Primitive,
    RecordDef,
    Reference,
    Struct,
    TypeNode,
    Union as UnionNode,
)

__all__ = ["Encoder", "tag_key"]

_RECORD_LETTERS = {"struct": "S", "union": "U"}


def tag_key(definition: Union[RecordDef, InterfaceDef]) -> str:
    """Sink key for a named composite: ``S.name``, ``U.name`` or ``I.name``."""
    if isinstance(definition, InterfaceDef):
        return f"I.{definition.name}"
    return f"{_RECORD_LETTERS[definition.kind]}.{definition.name}"


class Encoder:
    """Wire encoder bound to a registry for typedef resolution."""

    def __init__(self, registry: Registry) -> None:
        self.registry = registry

    def encode(self, node: TypeNode) -> str:
        """Normalize *node* and return its wire string."""
        normalizer = Normalizer(self.registry)
        return self._encode(normalizer.normalize(node), normalizer)

    def encode_body(self, definition: Union[RecordDef, InterfaceDef]) -> str:
        """Full body of a struct, union or interface definition."""
        normalizer = Normalizer(self.registry)
        return self._body(definition, normalizer)

    # ------------------------------------------------------------------

    def _encode(self, node: TypeNode, normalizer: Normalizer) -> str:
        prefix = "%" if node.const else ""

        if isinstance(node, Primitive):
            return prefix + node.code
        if isinstance(node, Pointer):
            return prefix + "*" + self._encode(node.target, normalizer)
        if isinstance(node, Reference):
            return prefix + "&" + self._encode(node.target, normalizer)
        if isinstance(node, Array):
            return f"{prefix}[{node.length}]" + self._encode(node.target, normalizer)
        if isinstance(node, IncompleteArray):
            return prefix + "[]" + self._encode(node.target, normalizer)
        if isinstance(node, Function):
            parts = [self._encode(node.return_type, normalizer)]
            parts.extend(self._encode(p.type, normalizer) for p in node.params)
            return f"({node.calling_convention}" + " ".join(parts) + ")"
        if isinstance(node, (Struct, UnionNode)):
            if node.definition.anonymous:
                return prefix + self._body(node.definition, normalizer)
            return prefix + "@" + tag_key(node.definition)
        if isinstance(node, Interface):
            return prefix + "@" + tag_key(node.definition)
        if isinstance(node, Enum):
            return prefix + "E" + node.name
        raise TypeError(f"cannot encode {node!r}")

    def _members(self, members: List[Member], normalizer: Normalizer) -> List[str]:
        return [
            f"{m.name or ''}:" + self._encode(normalizer.normalize(m.type), normalizer)
            for m in members
        ]

    def _body(self, definition: Union[RecordDef, InterfaceDef], normalizer: Normalizer) -> str:
        if isinstance(definition, InterfaceDef):
            head = definition.guid or "-"
            entries = self._members(definition.vtable, normalizer)
            return "{I " + " ".join([head] + entries) + "}"
        letter = _RECORD_LETTERS[definition.kind]
        entries = self._members(definition.members, normalizer)
        return "{" + letter + " " + " ".join(entries) + "}"
