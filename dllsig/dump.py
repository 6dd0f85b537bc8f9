"""dllsig/dump.py – human-oriented renderings of normalized type trees.

Two forms are produced from the same walk:

* S-expressions, written with ``sexpdata``::

      (declaration "p" (pointer (function "C" (primitive "i") (primitive "i"))))

* plain dicts for ``json.dumps``.

Named composites are written as ``(struct "name")`` without their members;
:func:`definition_to_data` renders a body on its own.  That keeps dumps of
self-referential structures finite, mirroring the wire notation.
"""

from __future__ import annotations

from typing import Any, Dict, List, Union

try:
    import sexpdata
    from sexpdata import Symbol
except ImportError:  # pragma: no cover
    raise ImportError(
        "The 'sexpdata' package is required for S-expression dumps. "
        "Install it with:  pip install sexpdata"
    )

from dllsig.normalizer import Normalizer
from dllsig.typenodes import (
    Array,
    Enum,
    EnumDef,
    Function,
    IncompleteArray,
    Interface,
    InterfaceDef,
    Named,
    Pointer,
    Primitive,
    RecordDef,
    Reference,
    Statement,
    Struct,
    TypeNode,
    Union as UnionNode,
)

__all__ = [
    "to_sexp_data",
    "to_sexp",
    "to_dict",
    "statement_to_sexp",
    "statement_to_dict",
    "definition_to_data",
]

Definition = Union[RecordDef, EnumDef, InterfaceDef]


def _flags(node: TypeNode) -> List[Symbol]:
    flags = []
    if node.const:
        flags.append(Symbol(":const"))
    if node.volatile:
        flags.append(Symbol(":volatile"))
    return flags


def to_sexp_data(node: TypeNode) -> List[Any]:
    """Nested lists of symbols, strings and ints for *node*."""
    if isinstance(node, Primitive):
        return [Symbol("primitive")] + _flags(node) + [node.code]
    if isinstance(node, Named):
        return [Symbol("named")] + _flags(node) + [node.name]
    if isinstance(node, Pointer):
        return [Symbol("pointer")] + _flags(node) + [to_sexp_data(node.target)]
    if isinstance(node, Reference):
        return [Symbol("reference")] + _flags(node) + [to_sexp_data(node.target)]
    if isinstance(node, Array):
        return [Symbol("array")] + _flags(node) + [node.length, to_sexp_data(node.target)]
    if isinstance(node, IncompleteArray):
        return [Symbol("array")] + _flags(node) + [to_sexp_data(node.target)]
    if isinstance(node, Function):
        out: List[Any] = [Symbol("function"), node.calling_convention or "",
                          to_sexp_data(node.return_type)]
        for param in node.params:
            item = to_sexp_data(param.type)
            if param.name:
                item = [Symbol("param"), param.name, item]
            out.append(item)
        return out
    if isinstance(node, (Struct, UnionNode)):
        head = [Symbol(node.definition.kind)] + _flags(node)
        if node.definition.anonymous:
            return head + _member_data(node.definition)
        return head + [node.name]
    if isinstance(node, Enum):
        return [Symbol("enum")] + _flags(node) + [node.name]
    if isinstance(node, Interface):
        return [Symbol("interface")] + _flags(node) + [node.name]
    raise TypeError(f"cannot dump {node!r}")


def _member_data(definition: RecordDef) -> List[Any]:
    return [
        [Symbol("member"), m.name or "", to_sexp_data(m.type)]
        for m in definition.members
    ]


def definition_to_data(definition: Definition) -> List[Any]:
    """S-expression data for a composite body."""
    if isinstance(definition, EnumDef):
        return [Symbol("enum"), definition.name] + [
            [Symbol("constant"), name, value] for name, value in definition.members
        ]
    if isinstance(definition, InterfaceDef):
        out: List[Any] = [Symbol("interface"), definition.name]
        if definition.guid:
            out.append([Symbol("guid"), definition.guid])
        if definition.base is not None:
            out.append([Symbol("base"), definition.base.name])
        out.extend(
            [Symbol("method"), m.name or "", to_sexp_data(m.type)]
            for m in definition.vtable
        )
        return out
    return [Symbol(definition.kind), definition.name] + _member_data(definition)


def to_sexp(node: TypeNode) -> str:
    return sexpdata.dumps(to_sexp_data(node))


def statement_to_sexp(statement: Statement, normalizer: Normalizer) -> str:
    """``(typedef "NAME" type)`` or ``(declaration "name" type)``."""
    data: List[Any] = [Symbol(statement.kind)]
    if statement.name:
        data.append(statement.name)
    data.append(to_sexp_data(normalizer.normalize(statement.type)))
    return sexpdata.dumps(data)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def _to_plain(data: Any) -> Any:
    if isinstance(data, Symbol):
        # older sexpdata wraps the name, newer releases subclass str
        value = getattr(data, "value", None)
        return value() if callable(value) else str(data)
    if isinstance(data, list):
        return [_to_plain(item) for item in data]
    return data


def to_dict(node: TypeNode) -> Dict[str, Any]:
    """JSON-ready form: ``{"kind": ..., "flags": [...], "args": [...]}``."""
    data = _to_plain(to_sexp_data(node))
    return _list_to_dict(data)


def _list_to_dict(data: List[Any]) -> Dict[str, Any]:
    kind, rest = data[0], data[1:]
    flags = [item[1:] for item in rest if isinstance(item, str) and item.startswith(":")]
    args = [
        _list_to_dict(item) if isinstance(item, list) else item
        for item in rest
        if not (isinstance(item, str) and item.startswith(":"))
    ]
    return {"kind": kind, "flags": flags, "args": args}


def statement_to_dict(statement: Statement, normalizer: Normalizer) -> Dict[str, Any]:
    return {
        "kind": statement.kind,
        "name": statement.name,
        "type": to_dict(normalizer.normalize(statement.type)),
    }
