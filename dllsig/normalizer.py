"""dllsig/normalizer.py – resolve typedef references in a type tree.

The parser leaves ordinary type names as :class:`~dllsig.typenodes.Named`
references.  :class:`Normalizer` replaces each one with the registry's
definition, carrying the reference's own qualifiers onto the result, so the
encoder only ever sees concrete shapes.

Each node is visited once.  It is entered into the visited map *before*
its children are walked, which both cuts cycles and lets nodes reachable
along several paths share one result.  The map is keyed by node identity;
trees themselves are never modified.

Composite handles are returned unchanged so that every use of a struct
still points at the one shared definition.  Their member types are
normalized on request with :meth:`Normalizer.normalize_members`.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List, Tuple

from dllsig.errors import Codes, TypeNameError
from dllsig.registry import Registry
from dllsig.typenodes import (
    Array,
    Enum,
    EnumDef,
    Function,
    IncompleteArray,
    Interface,
    InterfaceDef,
    Member,
    Named,
    Param,
    Pointer,
    Primitive,
    RecordDef,
    Reference,
    Struct,
    TypeNode,
    Union,
    with_qualifiers,
)

__all__ = ["Normalizer", "normalize"]

logger = logging.getLogger(__name__)


class Normalizer:
    """Memoized typedef resolution against one registry."""

    def __init__(self, registry: Registry) -> None:
        self._registry = registry
        # id(node) -> (node, result); the node is kept so its id stays unique
        self._visited: Dict[int, Tuple[TypeNode, TypeNode]] = {}

    def normalize(self, node: TypeNode) -> TypeNode:
        key = id(node)
        seen = self._visited.get(key)
        if seen is not None:
            return seen[1]
        self._visited[key] = (node, node)
        result = self._normalize(node)
        self._visited[key] = (node, result)
        return result

    def _normalize(self, node: TypeNode) -> TypeNode:
        if isinstance(node, Primitive):
            return node

        if isinstance(node, Named):
            target = self._registry.ordinary.get(node.name)
            if target is None:
                raise TypeNameError(
                    f"unknown type name \"{node.name}\"", code=Codes.UNKNOWN_TYPE
                )
            resolved = self.normalize(target)
            return with_qualifiers(resolved, node.const, node.volatile)

        if isinstance(node, (Pointer, Reference, Array, IncompleteArray)):
            target = self.normalize(node.target)
            if target is node.target:
                return node
            return dataclasses.replace(node, target=target)

        if isinstance(node, Function):
            ret = self.normalize(node.return_type)
            params = tuple(Param(p.name, self.normalize(p.type)) for p in node.params)
            if ret is node.return_type and all(
                a.type is b.type for a, b in zip(params, node.params)
            ):
                return node
            return Function(node.calling_convention, ret, params)

        if isinstance(node, (Struct, Union, Enum, Interface)):
            return node

        raise TypeError(f"unhandled type node {node!r}")

    def normalize_members(self, definition: RecordDef | InterfaceDef) -> List[Member]:
        """Normalized members of a struct/union, or vtable of an interface."""
        if isinstance(definition, InterfaceDef):
            members = definition.vtable
        else:
            members = definition.members
        return [Member(m.name, self.normalize(m.type)) for m in members]


def normalize(node: TypeNode, registry: Registry) -> TypeNode:
    """One-shot convenience wrapper around :class:`Normalizer`."""
    return Normalizer(registry).normalize(node)
