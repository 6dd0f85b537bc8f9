"""
dllsig/session.py
=================

Top-level façade tying the pieces together.

* ``SessionConfig``  – configuration dataclass
* ``NamedTypeSink``  – receives ``S.name`` / ``U.name`` / ``I.name`` bodies
* ``ParseOutcome``   – result object returned by :meth:`DeclSession.try_parse`
* ``DeclSession``    – owns the registry and parses declaration text

Usage::

    session = DeclSession()
    session.define("typedef struct point { int x, y; } POINT;")
    [decl] = session.parse("BOOL WINAPI GetCursorPos(POINT *pt);")
    decl.encode()                  # '(Si *@S.point)'
    session.named_types["S.point"] # '{S x:i y:i}'

A session is meant to live for a whole binding domain: every statement it
parses adds to the same registry, so later calls can use the typedefs,
tags and constants of earlier ones.  Sessions are not thread-safe.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from dllsig import primitives
from dllsig.encoder import Encoder, tag_key
from dllsig.errors import DeclError, InterfaceError
from dllsig.interfaces import guid_of
from dllsig.normalizer import Normalizer
from dllsig.parser import DeclParser
from dllsig.registry import Registry
from dllsig.typenodes import InterfaceDef, RecordDef, Statement, TypeNode

__all__ = ["SessionConfig", "NamedTypeSink", "ParseOutcome", "DeclSession"]

logger = logging.getLogger(__name__)

_CONVENTION_LETTERS = frozenset(primitives.CALLING_CONVENTIONS.values())


# ===================================================================== #
#  Configuration                                                         #
# ===================================================================== #

@dataclass
class SessionConfig:
    """Tuning knobs for a declaration session."""
    filename: str = "<string>"
    load_prelude: bool = True
    default_calling_convention: str = primitives.DEFAULT_CALLING_CONVENTION
    interface_calling_convention: str = primitives.INTERFACE_CALLING_CONVENTION
    extra_primitives: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.default_calling_convention not in _CONVENTION_LETTERS:
            warnings.append(
                f"unknown default calling convention {self.default_calling_convention!r}"
            )
        if self.interface_calling_convention not in _CONVENTION_LETTERS:
            warnings.append(
                f"unknown interface calling convention {self.interface_calling_convention!r}"
            )
        for name, code in self.extra_primitives.items():
            if not code.lstrip("%*"):
                warnings.append(f"primitive {name!r} has an empty code")
        return warnings

    @classmethod
    def from_file(cls, path: str) -> "SessionConfig":
        """Load a config from a JSON object whose keys match the fields."""
        with open(path, "r", encoding="utf-8") as fh:
            return cls.from_json(fh.read(), path)

    @classmethod
    def from_json(cls, text: str, source: str = "<config>") -> "SessionConfig":
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"{source}: expected a JSON object")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"{source}: unknown config key(s): {', '.join(unknown)}")
        return cls(**data)


# ===================================================================== #
#  Side channel                                                          #
# ===================================================================== #

class NamedTypeSink:
    """
    Collects full bodies of named composites as they are completed.

    Keys are ``S.<name>``, ``U.<name>`` and ``I.<name>``.  An optional
    *callback* receives every ``(key, body)`` pair as it arrives, which is
    how a marshalling layer gets told about new types.
    """

    def __init__(self, callback: Optional[Callable[[str, str], None]] = None) -> None:
        self._bodies: Dict[str, str] = {}
        self._callback = callback

    def register(self, key: str, body: str) -> None:
        self._bodies[key] = body
        logger.debug("named type %s = %s", key, body)
        if self._callback is not None:
            self._callback(key, body)

    def __getitem__(self, key: str) -> str:
        return self._bodies[key]

    def __contains__(self, key: object) -> bool:
        return key in self._bodies

    def __len__(self) -> int:
        return len(self._bodies)

    def __iter__(self) -> Iterator[str]:
        return iter(self._bodies)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._bodies.get(key, default)

    def items(self) -> List[Tuple[str, str]]:
        return list(self._bodies.items())


@dataclass
class ParseOutcome:
    """Statements on success, the structured error otherwise."""
    statements: List[Statement] = field(default_factory=list)
    error: Optional[DeclError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ===================================================================== #
#  DeclSession — top-level façade                                        #
# ===================================================================== #

class DeclSession:
    """
    Owns a :class:`~dllsig.registry.Registry` and everything bound to it.

    Parameters
    ----------
    config:
        Session configuration; defaults to :class:`SessionConfig()`.
    on_named_type:
        Optional callback forwarded to the :class:`NamedTypeSink`.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        on_named_type: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.config = config or SessionConfig()
        for warning in self.config.validate():
            logger.warning("config: %s", warning)

        self.registry = Registry(self.config.extra_primitives)
        self.encoder = Encoder(self.registry)
        self.named_types = NamedTypeSink(on_named_type)
        self._parser = DeclParser(
            self.registry,
            encode=self.encoder.encode,
            on_complete=self._register_body,
            default_calling_convention=self.config.default_calling_convention,
            interface_calling_convention=self.config.interface_calling_convention,
            filename=self.config.filename,
        )
        if self.config.load_prelude:
            self.define(primitives.PRELUDE)
            logger.debug("prelude loaded")

    def _register_body(self, definition: Union[RecordDef, InterfaceDef]) -> None:
        self.named_types.register(tag_key(definition), self.encoder.encode_body(definition))

    # -- parsing -----------------------------------------------------------

    def parse(self, text: str) -> List[Statement]:
        """Parse *text* and return its statements in source order.

        Raises a :class:`~dllsig.errors.DeclError` subclass on the first
        error; registrations made by earlier calls stay in place.
        """
        try:
            return self._parser.parse(text)
        except DeclError as exc:
            exc.with_source(text)
            logger.debug("parse failed: %s", exc)
            raise

    def define(self, text: str) -> None:
        """Parse *text* only for its registry side effects."""
        self.parse(text)

    def encode(self, text: str) -> List[str]:
        """Wire strings of every statement in *text*."""
        return [stmt.encode() for stmt in self.parse(text)]

    def try_parse(self, text: str) -> ParseOutcome:
        """Like :meth:`parse` but reports failure in the returned outcome."""
        try:
            return ParseOutcome(statements=self.parse(text))
        except DeclError as exc:
            return ParseOutcome(error=exc)

    # -- queries -----------------------------------------------------------

    def resolve(self, type_text: str) -> TypeNode:
        """Normalized type of a single declaration such as ``"IUnknown *"``."""
        statements = self.parse(type_text)
        if len(statements) != 1:
            raise ValueError(
                f"expected exactly one declaration, got {len(statements)}"
            )
        return Normalizer(self.registry).normalize(statements[0].type)

    def uuidof(self, type_text: str) -> str:
        """GUID of the interface named by *type_text*."""
        node = self.resolve(type_text)
        try:
            return guid_of(node)
        except InterfaceError as exc:
            exc.with_hint(f"while evaluating uuidof({type_text})")
            raise
