"""dllsig/typenodes.py – the type tree produced by the declarator parser.

Design invariants
-----------------
* One frozen dataclass per node kind: ``Primitive``, ``Named``, ``Pointer``,
  ``Reference``, ``Array``, ``IncompleteArray``, ``Function``, ``Struct``,
  ``Union``, ``Enum`` and ``Interface``.
* Every node except ``Function`` carries independent ``const`` and
  ``volatile`` flags.
* Composite nodes (``Struct``, ``Union``, ``Enum``, ``Interface``) are
  use-site *handles*.  The members live on a mutable definition object
  (``RecordDef``, ``EnumDef``, ``InterfaceDef``) owned by the registry.  A
  forward reference and the later definition share one definition object,
  which is filled in place when the body is parsed.
* Trees are never mutated after construction; only definitions are.

Statements
----------
``Declaration`` and ``TypeDefStatement`` pair a name with a type and know
how to produce their wire encoding on demand.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union as _U

__all__ = [
    "TypeNode",
    "Primitive",
    "Named",
    "Pointer",
    "Reference",
    "Array",
    "IncompleteArray",
    "Function",
    "Param",
    "Member",
    "RecordDef",
    "EnumDef",
    "InterfaceDef",
    "Struct",
    "Union",
    "Enum",
    "Interface",
    "CompositeNode",
    "COMPOSITE_TYPES",
    "Declaration",
    "TypeDefStatement",
    "Statement",
    "ANONYMOUS",
    "with_qualifiers",
    "is_void",
    "VOID",
    "VOID_PTR",
]

#: Name given to composites declared without a tag.
ANONYMOUS = "<anonymous>"


class TypeNode:
    """Marker base class for every type tree node."""

    __slots__ = ()

    const: bool
    volatile: bool


# ════════════════════════════════════════════════════════════════════════
# §1  Leaf and derived types
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Primitive(TypeNode):
    """A primitive type, identified by its wire code (``i``, ``L``, ``H``...)."""

    code: str
    const: bool = False
    volatile: bool = False


@dataclass(frozen=True, slots=True)
class Named(TypeNode):
    """An unresolved reference to an ordinary (typedef) name."""

    name: str
    const: bool = False
    volatile: bool = False


@dataclass(frozen=True, slots=True)
class Pointer(TypeNode):
    target: TypeNode
    const: bool = False
    volatile: bool = False


@dataclass(frozen=True, slots=True)
class Reference(TypeNode):
    target: TypeNode
    const: bool = False
    volatile: bool = False


@dataclass(frozen=True, slots=True)
class Array(TypeNode):
    target: TypeNode
    length: int
    const: bool = False
    volatile: bool = False


@dataclass(frozen=True, slots=True)
class IncompleteArray(TypeNode):
    target: TypeNode
    const: bool = False
    volatile: bool = False


@dataclass(frozen=True, slots=True)
class Param:
    """A function parameter; *name* is ``None`` for unnamed parameters."""

    name: Optional[str]
    type: TypeNode


@dataclass(frozen=True, slots=True)
class Function(TypeNode):
    """A raw function type.  Qualifiers are meaningless here and absent."""

    calling_convention: str
    return_type: TypeNode
    params: Tuple[Param, ...] = ()

    @property
    def const(self) -> bool:  # type: ignore[override]
        return False

    @property
    def volatile(self) -> bool:  # type: ignore[override]
        return False


# ════════════════════════════════════════════════════════════════════════
# §2  Composite definitions (shared, filled in place)
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Member:
    """A struct/union member or an interface vtable entry."""

    name: Optional[str]
    type: TypeNode


@dataclass(eq=False)
class RecordDef:
    """Body of a struct or union.  ``kind`` is ``"struct"`` or ``"union"``."""

    kind: str
    name: str
    members: List[Member] = field(default_factory=list)
    defined: bool = False
    forward_declared: bool = False

    @property
    def anonymous(self) -> bool:
        return self.name == ANONYMOUS


@dataclass(eq=False)
class EnumDef:
    name: str
    members: List[Tuple[str, int]] = field(default_factory=list)
    defined: bool = False
    forward_declared: bool = False

    @property
    def anonymous(self) -> bool:
        return self.name == ANONYMOUS


@dataclass(eq=False)
class InterfaceDef:
    """A COM-style interface: ordered vtable, optional GUID and base."""

    name: str
    guid: Optional[str] = None
    vtable: List[Member] = field(default_factory=list)
    base: Optional["InterfaceDef"] = None
    defined: bool = False
    forward_declared: bool = False

    kind = "interface"

    @property
    def anonymous(self) -> bool:
        return False

    @property
    def own_members(self) -> List[Member]:
        """The members declared by this interface, without inherited ones."""
        inherited = len(self.base.vtable) if self.base is not None else 0
        return self.vtable[inherited:]


# ════════════════════════════════════════════════════════════════════════
# §3  Composite handles
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Struct(TypeNode):
    definition: RecordDef
    const: bool = False
    volatile: bool = False

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def members(self) -> List[Member]:
        return self.definition.members


@dataclass(frozen=True, slots=True)
class Union(TypeNode):
    definition: RecordDef
    const: bool = False
    volatile: bool = False

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def members(self) -> List[Member]:
        return self.definition.members


@dataclass(frozen=True, slots=True)
class Enum(TypeNode):
    definition: EnumDef
    const: bool = False
    volatile: bool = False

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def members(self) -> List[Tuple[str, int]]:
        return self.definition.members


@dataclass(frozen=True, slots=True)
class Interface(TypeNode):
    definition: InterfaceDef
    const: bool = False
    volatile: bool = False

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def guid(self) -> Optional[str]:
        return self.definition.guid

    @property
    def vtable(self) -> List[Member]:
        return self.definition.vtable

    @property
    def base_name(self) -> Optional[str]:
        base = self.definition.base
        return base.name if base is not None else None


CompositeNode = _U[Struct, Union, Enum, Interface]
COMPOSITE_TYPES = (Struct, Union, Enum, Interface)


# ════════════════════════════════════════════════════════════════════════
# §4  Helpers
# ════════════════════════════════════════════════════════════════════════

VOID = Primitive("v")
VOID_PTR = Pointer(VOID)


def with_qualifiers(node: TypeNode, const: bool = False, volatile: bool = False) -> TypeNode:
    """Return *node* with the given qualifiers added (never removed).

    Qualifying an array qualifies its elements, as in C.
    """
    if isinstance(node, Function) or not (const or volatile):
        return node
    if isinstance(node, (Array, IncompleteArray)):
        return dataclasses.replace(
            node, target=with_qualifiers(node.target, const, volatile)
        )
    if (node.const or not const) and (node.volatile or not volatile):
        return node
    return dataclasses.replace(
        node, const=node.const or const, volatile=node.volatile or volatile
    )


def is_void(node: TypeNode) -> bool:
    return isinstance(node, Primitive) and node.code == "v"


# ════════════════════════════════════════════════════════════════════════
# §5  Statements
# ════════════════════════════════════════════════════════════════════════


@dataclass
class Declaration:
    """An ordinary declarator.  ``name`` is ``None`` when anonymous."""

    name: Optional[str]
    type: TypeNode
    _encoder: Optional[Callable[[TypeNode], str]] = field(
        default=None, repr=False, compare=False
    )

    kind = "declaration"

    def encode(self) -> str:
        """Produce the wire encoding of this declaration's type."""
        if self._encoder is None:
            raise RuntimeError("statement is not bound to a session")
        return self._encoder(self.type)

    @property
    def is_function(self) -> bool:
        return isinstance(self.type, Function)


@dataclass
class TypeDefStatement:
    """A ``typedef``; ``name`` has been registered in the ordinary table."""

    name: str
    type: TypeNode
    _encoder: Optional[Callable[[TypeNode], str]] = field(
        default=None, repr=False, compare=False
    )

    kind = "typedef"

    def encode(self) -> str:
        if self._encoder is None:
            raise RuntimeError("statement is not bound to a session")
        return self._encoder(self.type)

    @property
    def is_function(self) -> bool:
        return isinstance(self.type, Function)


Statement = _U[Declaration, TypeDefStatement]
