# tests/test_dump.py
"""
Tests for S-expression and JSON dumps of type trees.
"""

import sexpdata
from sexpdata import Symbol

from dllsig.dump import (
    definition_to_data,
    statement_to_dict,
    statement_to_sexp,
    to_dict,
    to_sexp,
)
from dllsig.normalizer import Normalizer
from dllsig.typenodes import Array, Pointer, Primitive

from tests.conftest import COM_DECLS, POINT_DECL


class TestSexp:

    def test_primitive(self):
        assert to_sexp(Primitive("i")) == '(primitive "i")'

    def test_flags(self):
        node = Pointer(Primitive("c", const=True), volatile=True)
        assert to_sexp(node) == '(pointer :volatile (primitive :const "c"))'

    def test_array_length(self):
        assert to_sexp(Array(Primitive("C"), 8)) == '(array 8 (primitive "C"))'

    def test_function_statement(self, session):
        [stmt] = session.parse("int (*p)(int);")
        text = statement_to_sexp(stmt, Normalizer(session.registry))
        assert text == (
            '(declaration "p" (pointer (function "C" (primitive "i") (primitive "i"))))'
        )

    def test_named_parameters(self, session):
        [stmt] = session.parse("int f(int count);")
        text = statement_to_sexp(stmt, Normalizer(session.registry))
        assert '(param "count" (primitive "i"))' in text

    def test_typedef_statement_is_normalized(self, session):
        stmts = session.parse(POINT_DECL)
        text = statement_to_sexp(stmts[1], Normalizer(session.registry))
        assert text == '(typedef "PPOINT" (pointer (struct "point")))'

    def test_anonymous_struct_inline(self, session):
        [stmt] = session.parse("struct { int a; } v;")
        data = sexpdata.loads(statement_to_sexp(stmt, Normalizer(session.registry)))
        assert data[2][0] == Symbol("struct")
        assert data[2][1] == [Symbol("member"), "a", [Symbol("primitive"), "i"]]


class TestDefinitions:

    def test_enum(self, session):
        session.define("enum color { RED, GREEN = 5 };")
        data = definition_to_data(session.registry.enums["color"])
        assert data == [
            Symbol("enum"), "color",
            [Symbol("constant"), "RED", 0],
            [Symbol("constant"), "GREEN", 5],
        ]

    def test_interface(self, session):
        session.define(COM_DECLS)
        data = definition_to_data(session.registry.interfaces["IBase"])
        assert data[:4] == [
            Symbol("interface"), "IBase",
            [Symbol("guid"), "01234567-89AB-CDEF-0123-456789ABCDEF"],
            [Symbol("base"), "IUnknown"],
        ]
        assert [item[1] for item in data[4:]] == [
            "QueryInterface", "AddRef", "Release", "First", "Second",
        ]

    def test_record(self, session):
        session.define(POINT_DECL)
        data = definition_to_data(session.registry.structs["point"])
        assert data[:2] == [Symbol("struct"), "point"]
        assert len(data) == 4


class TestDict:

    def test_to_dict(self):
        node = Pointer(Primitive("c", const=True))
        assert to_dict(node) == {
            "kind": "pointer",
            "flags": [],
            "args": [{"kind": "primitive", "flags": ["const"], "args": ["c"]}],
        }

    def test_statement_to_dict(self, session):
        [stmt] = session.parse("HWND hwnd;")
        assert statement_to_dict(stmt, Normalizer(session.registry)) == {
            "kind": "declaration",
            "name": "hwnd",
            "type": {"kind": "primitive", "flags": [], "args": ["H"]},
        }
