"""dllsig — compile C/C++ declarations into a compact call-signature notation.

The package parses a practical subset of C/C++ declaration syntax
(typedefs, structs, unions, enums, pointers, references, arrays, function
pointers, calling conventions, namespaces and COM interfaces) and encodes
each declaration into the linear type strings read by a native
argument-marshalling layer.

Submodules
----------
scanner
    Character cursor with comment skipping and save/restore.
registry
    The six session symbol tables and the namespace path.
parser
    Recursive-descent declaration parser.
interfaces
    COM interface blocks, vtables and GUID literals.
normalizer
    Typedef resolution over type trees.
encoder
    Wire notation output.
wire
    Independent PEG grammar of the wire notation (parsimonious).
dump
    S-expression (sexpdata) and JSON dumps of type trees.
session
    ``DeclSession`` façade, ``SessionConfig`` and the named-type sink.
errors
    ``DeclError`` hierarchy with ``DSIG-XXXX`` codes.
main
    CLI entry-point: ``encode``, ``types``, ``dump``, ``uuidof``, ``check``.

Usage
-----
Command-line::

    python -m dllsig encode -e "HRESULT WINAPI CoInitialize(LPVOID);"

Programmatic::

    from dllsig import DeclSession

    session = DeclSession()
    session.encode("int (*compare)(const void *, const void *);")
    # ['*(Ci *%v *%v)']
"""

from __future__ import annotations

__version__: str = "0.1.0"

from dllsig.errors import DeclError  # noqa: E402
from dllsig.session import DeclSession, ParseOutcome, SessionConfig  # noqa: E402

__all__: list[str] = [
    "__version__",
    "DeclError",
    "DeclSession",
    "ParseOutcome",
    "SessionConfig",
]
