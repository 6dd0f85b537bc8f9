"""dllsig/registry.py – session-scoped symbol tables.

A :class:`Registry` owns six independent tables and the namespace path
stack:

* ``ordinary``   – typedef names and the seeded primitive aliases
* ``structs``    – ``struct`` tags
* ``unions``     – ``union`` tags
* ``enums``      – ``enum`` tags
* ``interfaces`` – interface tags
* ``constants``  – enum constant values

Tags live apart from ordinary names, so ``struct foo`` never collides with
an ordinary ``foo``.  Bare identifiers look in the ordinary table first and
fall back to the tag tables, which is what lets ``foo *p`` refer to a
previously declared ``struct foo`` when no typedef named ``foo`` exists.

Entries are only ever added.  Keys are fully qualified (``N::foo``); names
declared at global scope carry no prefix.
"""

from __future__ import annotations

import enum
import logging
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from dllsig import primitives
from dllsig.typenodes import (
    ANONYMOUS,
    Enum,
    EnumDef,
    Interface,
    InterfaceDef,
    Named,
    Pointer,
    Primitive,
    RecordDef,
    Struct,
    TypeNode,
    Union as UnionNode,
    with_qualifiers,
)

__all__ = ["TableKind", "Registry", "primitive_from_code", "SCOPE_SEP"]

logger = logging.getLogger(__name__)

SCOPE_SEP = "::"

TagDef = Union[RecordDef, EnumDef, InterfaceDef]


class TableKind(enum.Enum):
    ORDINARY = "ordinary"
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    INTERFACE = "interface"
    CONSTANT = "constant"


TAG_KINDS = (TableKind.STRUCT, TableKind.UNION, TableKind.ENUM, TableKind.INTERFACE)


def primitive_from_code(code: str) -> TypeNode:
    """Build a type node from a seeded code such as ``i``, ``%t`` or ``*v``."""
    if code.startswith("%"):
        return with_qualifiers(primitive_from_code(code[1:]), const=True)
    if code.startswith("*"):
        return Pointer(primitive_from_code(code[1:]))
    return Primitive(code)


class Registry:
    """Symbol tables plus the active namespace path."""

    def __init__(self, extra_primitives: Optional[Mapping[str, str]] = None) -> None:
        self.ordinary: Dict[str, TypeNode] = {}
        self.structs: Dict[str, RecordDef] = {}
        self.unions: Dict[str, RecordDef] = {}
        self.enums: Dict[str, EnumDef] = {}
        self.interfaces: Dict[str, InterfaceDef] = {}
        self.constants: Dict[str, int] = {}
        self._namespaces: List[str] = []
        self._primitive_names: set = set()

        seeds = dict(primitives.PRIMITIVE_TYPES)
        if extra_primitives:
            seeds.update(extra_primitives)
        for name, code in seeds.items():
            self.ordinary[name] = primitive_from_code(code)
            self._primitive_names.add(name)
        self._primitive_words = {w for name in seeds for w in name.split()}
        logger.debug("registry seeded with %d primitive aliases", len(seeds))

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def table(self, kind: TableKind) -> Dict[str, object]:
        return {
            TableKind.ORDINARY: self.ordinary,
            TableKind.STRUCT: self.structs,
            TableKind.UNION: self.unions,
            TableKind.ENUM: self.enums,
            TableKind.INTERFACE: self.interfaces,
            TableKind.CONSTANT: self.constants,
        }[kind]

    def is_type_name(self, name: str) -> bool:
        return self.lookup_type_name(name) is not None

    __contains__ = is_type_name

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    @property
    def namespace_path(self) -> Tuple[str, ...]:
        return tuple(self._namespaces)

    def enter_namespace(self, name: str) -> None:
        self._namespaces.append(name)
        logger.debug("entering namespace %s", SCOPE_SEP.join(self._namespaces))

    def leave_namespace(self) -> str:
        if not self._namespaces:
            raise IndexError("no namespace to leave")
        name = self._namespaces.pop()
        logger.debug("leaving namespace %s", name)
        return name

    def qualify(self, name: str) -> str:
        """Place *name* in the innermost active namespace."""
        return SCOPE_SEP.join(self._namespaces + [name])

    def resolve_qualified(self, name: str, kind: TableKind) -> str:
        """Resolve *name* against the table for *kind*.

        A leading ``::`` pins the name to global scope.  Otherwise each
        enclosing namespace is tried from the innermost outward, and the
        first key present in the table wins.  A name found nowhere is
        synthesized in the innermost namespace.
        """
        if name.startswith(SCOPE_SEP):
            return name[len(SCOPE_SEP):]
        table = self.table(kind)
        for depth in range(len(self._namespaces), -1, -1):
            candidate = SCOPE_SEP.join(self._namespaces[:depth] + [name])
            if candidate in table:
                return candidate
        return self.qualify(name)

    def _find(self, name: str, kind: TableKind) -> Optional[str]:
        key = self.resolve_qualified(name, kind)
        return key if key in self.table(kind) else None

    # ------------------------------------------------------------------
    # Ordinary names
    # ------------------------------------------------------------------

    def lookup_ordinary(self, name: str) -> Optional[TypeNode]:
        key = self._find(name, TableKind.ORDINARY)
        return self.ordinary[key] if key is not None else None

    def is_primitive(self, key: str) -> bool:
        return key in self._primitive_names

    def is_primitive_word(self, word: str) -> bool:
        return word in self._primitive_words

    def define_typedef(self, name: str, node: TypeNode) -> str:
        key = self.qualify(name)
        if key in self.ordinary:
            logger.debug("typedef %s replaces an earlier definition", key)
        self.ordinary[key] = node
        self._primitive_names.discard(key)
        logger.debug("typedef %s registered", key)
        return key

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def lookup_tag(self, kind: TableKind, name: str) -> Optional[TagDef]:
        key = self._find(name, kind)
        return self.table(kind)[key] if key is not None else None  # type: ignore[return-value]

    def declare_tag(
        self, kind: TableKind, name: Optional[str], local: bool = False
    ) -> Tuple[TagDef, bool]:
        """Return the shared definition for a tag, creating it if needed.

        The second element tells whether the definition already existed.
        Anonymous composites get a fresh definition that is not registered.
        With *local*, an unqualified name is placed in the innermost
        namespace instead of resolving to an outer one; this is how a body
        definition shadows an outer tag of the same name.
        """
        if name is None:
            return self._new_def(kind, ANONYMOUS), False
        if local and SCOPE_SEP not in name:
            key = self.qualify(name)
        else:
            key = self.resolve_qualified(name, kind)
        table = self.table(kind)
        if key in table:
            return table[key], True  # type: ignore[return-value]
        definition = self._new_def(kind, key)
        table[key] = definition
        logger.debug("%s %s declared", kind.value, key)
        return definition, False

    @staticmethod
    def _new_def(kind: TableKind, name: str) -> TagDef:
        if kind is TableKind.STRUCT:
            return RecordDef("struct", name)
        if kind is TableKind.UNION:
            return RecordDef("union", name)
        if kind is TableKind.ENUM:
            return EnumDef(name)
        if kind is TableKind.INTERFACE:
            return InterfaceDef(name)
        raise ValueError(f"{kind} is not a tag table")

    @staticmethod
    def handle(definition: TagDef) -> TypeNode:
        """Wrap a definition in the matching type node."""
        if isinstance(definition, InterfaceDef):
            return Interface(definition)
        if isinstance(definition, EnumDef):
            return Enum(definition)
        if definition.kind == "union":
            return UnionNode(definition)
        return Struct(definition)

    # ------------------------------------------------------------------
    # Combined type-name lookup
    # ------------------------------------------------------------------

    def lookup_type_name(self, name: str) -> Optional[TypeNode]:
        """Resolve an identifier used as a type name.

        Ordinary names yield an unresolved :class:`Named` reference keyed by
        the fully qualified name; tag names yield the composite handle.
        """
        key = self._find(name, TableKind.ORDINARY)
        if key is not None:
            return Named(key)
        for kind in TAG_KINDS:
            definition = self.lookup_tag(kind, name)
            if definition is not None:
                return self.handle(definition)
        return None

    # ------------------------------------------------------------------
    # Enum constants
    # ------------------------------------------------------------------

    def lookup_constant(self, name: str) -> Optional[int]:
        key = self._find(name, TableKind.CONSTANT)
        return self.constants[key] if key is not None else None

    def has_local_constant(self, name: str) -> bool:
        return self.qualify(name) in self.constants

    def define_constant(self, name: str, value: int) -> str:
        key = self.qualify(name)
        self.constants[key] = value
        return key

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def iter_tags(self) -> Iterator[Tuple[TableKind, str, TagDef]]:
        for kind in TAG_KINDS:
            for key, definition in self.table(kind).items():
                yield kind, key, definition  # type: ignore[misc]
