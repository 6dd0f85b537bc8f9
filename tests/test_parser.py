# tests/test_parser.py
"""
Tests for the declaration parser: decl-specs, declarators, composites,
enums and namespaces.
"""

import pytest

from dllsig.errors import (
    Codes,
    RedefinitionError,
    StructuralError,
    TypeNameError,
    UnexpectedEOFError,
    UnexpectedTokenError,
)
from dllsig.errors import SyntaxError as DeclSyntaxError
from dllsig.encoder import Encoder
from dllsig.parser import DeclParser
from dllsig.typenodes import (
    Declaration,
    Function,
    Pointer,
    Primitive,
    TypeDefStatement,
)

from tests.conftest import LIST_NODE_DECL, POINT_DECL


def last_wire(parser, text):
    return parser.parse(text)[-1].encode()


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

class TestStatements:

    def test_simple_declaration(self, parser):
        [stmt] = parser.parse("int x;")
        assert isinstance(stmt, Declaration)
        assert stmt.name == "x"
        assert stmt.type == Primitive("i")
        assert stmt.encode() == "i"

    def test_empty_statements_are_skipped(self, parser):
        assert parser.parse(" ; ;; ") == []

    def test_source_order(self, parser):
        stmts = parser.parse("int a; char b; typedef long c;")
        assert [s.name for s in stmts] == ["a", "b", "c"]
        assert isinstance(stmts[2], TypeDefStatement)

    def test_typedef_list(self, parser, registry):
        stmts = parser.parse("typedef unsigned int UINT_T, *PUINT_T;")
        assert [s.name for s in stmts] == ["UINT_T", "PUINT_T"]
        assert stmts[1].encode() == "*I"
        assert "PUINT_T" in registry.ordinary

    def test_typedef_needs_a_name(self, parser):
        with pytest.raises(DeclSyntaxError):
            parser.parse("typedef int;")

    def test_final_semicolon_optional_at_end(self, parser):
        assert last_wire(parser, "int x") == "i"

    def test_missing_semicolon(self, parser):
        with pytest.raises(UnexpectedTokenError) as ei:
            parser.parse("int x int y;")
        assert ei.value.got == "int"

    def test_semicolon_required_before_closing_brace(self, parser, registry):
        with pytest.raises(UnexpectedTokenError) as ei:
            parser.parse("namespace N { int x }")
        assert ei.value.got == '"}"'
        assert registry.namespace_path == ()

    def test_function_body_rejected(self, parser):
        with pytest.raises(DeclSyntaxError) as ei:
            parser.parse("int f(int a) { return a; }")
        assert ei.value.code == Codes.FUNCTION_BODY

    def test_registrations_persist_across_calls(self, parser):
        parser.parse("typedef int MYINT;")
        assert last_wire(parser, "MYINT x;") == "i"

    def test_is_function(self, parser):
        [stmt] = parser.parse("void f(void);")
        assert stmt.is_function
        assert isinstance(stmt.type, Function)


# ---------------------------------------------------------------------------
# Declaration specifiers
# ---------------------------------------------------------------------------

class TestDeclSpec:

    @pytest.mark.parametrize("text, wire", [
        ("int long unsigned x;", "I"),
        ("long unsigned x;", "I"),
        ("long long x;", "l"),
        ("unsigned x;", "I"),
        ("signed char c;", "c"),
        ("unsigned short int s;", "S"),
        ("const volatile int v;", "%i"),
        ("int const c;", "%i"),
        ("static inline double d;", "d"),
    ])
    def test_word_combinations(self, parser, text, wire):
        assert last_wire(parser, text) == wire

    def test_invalid_word_combination(self, parser):
        with pytest.raises(TypeNameError) as ei:
            parser.parse("long char c;")
        assert ei.value.code == Codes.INVALID_SPECIFIERS

    def test_keyword_after_named_type(self, parser):
        with pytest.raises(TypeNameError) as ei:
            parser.parse("DWORD int x;")
        assert ei.value.code == Codes.INVALID_SPECIFIERS

    def test_composite_after_primitive(self, parser):
        with pytest.raises(StructuralError) as ei:
            parser.parse("int struct foo x;")
        assert ei.value.code == Codes.MIXED_SPECIFIERS

    def test_primitive_after_composite(self, parser):
        with pytest.raises(StructuralError) as ei:
            parser.parse("struct foo int x;")
        assert ei.value.code == Codes.MIXED_SPECIFIERS

    @pytest.mark.parametrize("text", [
        "struct foo DWORD x;",
        "union u HANDLE *h;",
        "enum e DWORD WINAPI f(void);",
    ])
    def test_named_type_after_composite(self, parser, text):
        with pytest.raises(StructuralError) as ei:
            parser.parse(text)
        assert ei.value.code == Codes.MIXED_SPECIFIERS

    def test_typedef_name_as_declarator_after_composite(self, parser):
        stmts = parser.parse("typedef struct foo FOO; typedef struct foo FOO, *PFOO;")
        assert [s.name for s in stmts] == ["FOO", "FOO", "PFOO"]

    def test_unknown_type(self, parser):
        with pytest.raises(TypeNameError) as ei:
            parser.parse("foo x;")
        assert ei.value.code == Codes.UNKNOWN_TYPE
        assert '"foo"' in ei.value.message

    def test_missing_type(self, parser):
        with pytest.raises(DeclSyntaxError):
            parser.parse("*p;")

    def test_extern_c_and_declspec(self, parser):
        text = 'extern "C" __declspec(dllimport) BOOL WINAPI CloseHandle(HANDLE h);'
        assert last_wire(parser, text) == "(Si H)"

    def test_sal_annotations(self, parser):
        text = "HRESULT f(_In_ LPCWSTR name, _Out_opt_ DWORD *count);"
        assert last_wire(parser, text) == "(Ci %T *I)"


# ---------------------------------------------------------------------------
# Declarators
# ---------------------------------------------------------------------------

class TestDeclarators:

    @pytest.mark.parametrize("text, wire", [
        ("const char *s;", "*%c"),
        ("char * const p;", "%*c"),
        ("const char * const p;", "%*%c"),
        ("int **pp;", "**i"),
        ("int &r;", "&i"),
        ("int *a[4];", "[4]*i"),
        ("int (*a)[4];", "*[4]i"),
        ("int m[2][3];", "[2][3]i"),
        ("char buf[];", "[]c"),
        ("int a[0x10];", "[16]i"),
        ("const char s[8];", "[8]%c"),
        ("void f(void);", "(Cv)"),
        ("int f();", "(Ci)"),
        ("int (*p)(int);", "*(Ci i)"),
        ("void (__stdcall *cb)(int);", "*(Sv i)"),
        ("void __stdcall f(int);", "(Sv i)"),
        ("int (*getfn(void))(int);", "(C*(Ci i))"),
        ("int (*table[2])(void);", "[2]*(Ci)"),
    ])
    def test_shapes(self, parser, text, wire):
        assert last_wire(parser, text) == wire

    def test_declarator_tree(self, parser):
        [stmt] = parser.parse("int (*p)(int);")
        assert stmt.name == "p"
        assert isinstance(stmt.type, Pointer)
        assert stmt.type.target.params[0].type == Primitive("i")

    def test_function_pointer_parameter(self, parser):
        text = (
            "void qsort(void *base, size_t n, size_t w,"
            " int (*cmp)(const void *, const void *));"
        )
        assert last_wire(parser, text) == "(Cv *v Z Z *(Ci *%v *%v))"

    def test_parameter_names_kept(self, parser):
        [stmt] = parser.parse("int f(int a, char *);")
        assert [p.name for p in stmt.type.params] == ["a", None]

    def test_typedef_function_pointer_matches_inline(self, parser):
        parser.parse("typedef int (*FN)(int);")
        assert last_wire(parser, "FN p;") == last_wire(parser, "int (*p)(int);")

    def test_void_and_empty_parameter_lists_match(self, parser):
        assert last_wire(parser, "void f(void);") == last_wire(parser, "void g();")

    def test_void_typedef_collapses(self, parser):
        parser.parse("typedef void V;")
        assert last_wire(parser, "int f(V);") == "(Ci)"

    def test_const_applies_to_array_elements(self, parser):
        parser.parse("typedef int ROW[4];")
        assert last_wire(parser, "const ROW r;") == "[4]%i"


class TestDeclaratorValidation:

    def test_void_with_other_parameters(self, parser):
        with pytest.raises(TypeNameError) as ei:
            parser.parse("int f(void, int);")
        assert ei.value.code == Codes.INVALID_VOID

    def test_function_typed_parameter(self, parser):
        with pytest.raises(StructuralError) as ei:
            parser.parse("int f(int g(int));")
        assert ei.value.code == Codes.FUNCTION_PARAMETER
        assert "g" in ei.value.message

    def test_function_returning_array(self, parser):
        with pytest.raises(StructuralError) as ei:
            parser.parse("int f(void)[3];")
        assert ei.value.code == Codes.FUNCTION_RETURNS_ARRAY

    def test_function_returning_function(self, parser):
        with pytest.raises(StructuralError) as ei:
            parser.parse("int f(void)(int);")
        assert ei.value.code == Codes.FUNCTION_RETURNS_FUNCTION

    def test_array_of_functions(self, parser):
        with pytest.raises(StructuralError) as ei:
            parser.parse("int a[3](int);")
        assert ei.value.code == Codes.ARRAY_OF_FUNCTIONS

    @pytest.mark.parametrize("text", ["int a[0];", "int a[-1];"])
    def test_non_positive_dimension(self, parser, text):
        with pytest.raises(StructuralError) as ei:
            parser.parse(text)
        assert ei.value.code == Codes.BAD_ARRAY_DIMENSION

    def test_dimension_error_position(self, parser):
        with pytest.raises(StructuralError) as ei:
            parser.parse("int a[0];")
        span = ei.value.span
        assert (span.line, span.column, span.index) == (1, 7, 6)

    def test_dimension_from_enum_constant(self, parser):
        assert last_wire(parser, "enum { N = 4 }; int a[N];") == "[4]i"

    def test_unknown_dimension_constant(self, parser):
        with pytest.raises(TypeNameError) as ei:
            parser.parse("int a[M];")
        assert ei.value.code == Codes.UNKNOWN_CONSTANT

    def test_array_of_void(self, parser):
        with pytest.raises(TypeNameError) as ei:
            parser.parse("void a[2];")
        assert ei.value.code == Codes.INVALID_VOID

    def test_reference_to_void(self, parser):
        with pytest.raises(TypeNameError) as ei:
            parser.parse("void &r;")
        assert ei.value.code == Codes.INVALID_VOID


# ---------------------------------------------------------------------------
# Structs and unions
# ---------------------------------------------------------------------------

class TestComposites:

    def test_anonymous_struct_inline(self, parser):
        assert last_wire(parser, "struct { int a; char *b; } v;") == "{S a:i b:*c}"

    def test_empty_body(self, parser, registry):
        parser.parse("struct e {};")
        assert Encoder(registry).encode_body(registry.structs["e"]) == "{S }"

    def test_named_struct_is_tag_reference(self, parser, registry):
        parser.parse(POINT_DECL)
        assert last_wire(parser, "POINT *p;") == "*@S.point"
        assert Encoder(registry).encode_body(registry.structs["point"]) == "{S x:i y:i}"

    def test_forward_declaration_shares_definition(self, parser, registry):
        stmts = parser.parse("struct foo; struct foo *p; struct foo { int a; };")
        definition = registry.structs["foo"]
        assert stmts[1].type.target.definition is definition
        assert definition.defined
        assert len(stmts[1].type.target.members) == 1

    def test_repeated_forward_declaration(self, parser, registry):
        parser.parse("struct foo;")
        with pytest.raises(RedefinitionError) as ei:
            parser.parse("struct foo;")
        assert ei.value.code == Codes.REDEFINED_TYPE
        assert not registry.structs["foo"].defined

    def test_reference_before_forward_declaration(self, parser, registry):
        parser.parse("struct foo *p; struct foo; struct foo { int a; };")
        assert registry.structs["foo"].defined

    def test_forward_declaration_after_body(self, parser):
        stmts = parser.parse("struct foo { int a; }; struct foo; struct foo;")
        assert stmts[-1].encode() == "@S.foo"

    def test_qualified_member_name(self, parser):
        with pytest.raises(StructuralError) as ei:
            parser.parse("struct s { int N::x; };")
        assert ei.value.code == Codes.QUALIFIED_MEMBER

    def test_redefinition(self, parser):
        with pytest.raises(RedefinitionError) as ei:
            parser.parse("struct foo { int a; }; struct foo { int b; };")
        assert ei.value.code == Codes.REDEFINED_TYPE

    def test_bare_tag_name(self, parser):
        assert last_wire(parser, "struct foo { int a; }; foo *p;") == "*@S.foo"

    def test_bare_tag_name_is_same_definition(self, parser, registry):
        [stmt] = parser.parse("struct foo { int a; }; foo *p;")[-1:]
        assert stmt.type.target.definition is registry.structs["foo"]

    def test_tag_and_ordinary_names_are_separate(self, parser):
        stmts = parser.parse(
            "typedef int foo; struct foo { char c; }; foo x; struct foo y;"
        )
        assert stmts[2].encode() == "i"
        assert stmts[3].encode() == "@S.foo"

    def test_typedef_same_name_as_tag(self, parser):
        parser.parse("typedef struct foo foo;")
        assert last_wire(parser, "foo *p;") == "*@S.foo"

    def test_self_reference(self, parser, registry):
        parser.parse(LIST_NODE_DECL)
        body = Encoder(registry).encode_body(registry.structs["node"])
        assert body == "{S value:i next:*@S.node}"

    def test_anonymous_member(self, parser, registry):
        parser.parse("struct outer { union { int a; float b; }; int c; };")
        body = Encoder(registry).encode_body(registry.structs["outer"])
        assert body == "{S :{U a:i b:f} c:i}"

    def test_access_specifiers(self, parser, registry):
        parser.parse("struct c { public: int a; private: int b; };")
        assert Encoder(registry).encode_body(registry.structs["c"]) == "{S a:i b:i}"

    def test_union_reference(self, parser):
        assert last_wire(parser, "union u { int i; float f; }; union u *p;") == "*@U.u"

    def test_eof_inside_body(self, parser):
        with pytest.raises(UnexpectedEOFError):
            parser.parse("struct s { int a;")

    def test_completion_callback(self, registry):
        seen = []
        parser = DeclParser(registry, on_complete=seen.append)
        parser.parse(POINT_DECL + " struct { int z; } anon; enum e { A };")
        assert seen == [registry.structs["point"]]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TestEnums:

    def test_values(self, parser, registry):
        wire = last_wire(parser, "enum color { RED, GREEN = 5, BLUE };")
        assert wire == "Ecolor"
        assert registry.enums["color"].members == [("RED", 0), ("GREEN", 5), ("BLUE", 6)]
        assert registry.constants["BLUE"] == 6

    def test_negative_values(self, parser, registry):
        parser.parse("enum e { A = -2, B };")
        assert registry.enums["e"].members == [("A", -2), ("B", -1)]

    def test_value_from_constant(self, parser, registry):
        parser.parse("enum { X = 3 }; enum { Y = X };")
        assert registry.constants["Y"] == 3

    def test_trailing_comma(self, parser, registry):
        parser.parse("enum t { A, B, };")
        assert [name for name, _ in registry.enums["t"].members] == ["A", "B"]

    def test_anonymous_enum(self, parser):
        assert last_wire(parser, "enum { Q };") == "E<anonymous>"

    def test_duplicate_constant(self, parser):
        with pytest.raises(RedefinitionError) as ei:
            parser.parse("enum a { K }; enum b { K };")
        assert ei.value.code == Codes.REDEFINED_CONSTANT

    def test_duplicate_in_same_body(self, parser, registry):
        with pytest.raises(RedefinitionError) as ei:
            parser.parse("enum d { K, K };")
        assert ei.value.code == Codes.REDEFINED_CONSTANT
        assert "K" not in registry.constants

    def test_value_from_earlier_constant_in_body(self, parser, registry):
        parser.parse("enum f { P = 4, Q = P };")
        assert registry.enums["f"].members == [("P", 4), ("Q", 4)]

    def test_retry_after_failed_body(self, parser, registry):
        with pytest.raises(TypeNameError) as ei:
            parser.parse("enum e { A, B = MISSING };")
        assert ei.value.code == Codes.UNKNOWN_CONSTANT
        assert "A" not in registry.constants
        parser.parse("enum e { A, B = 1 };")
        assert registry.enums["e"].members == [("A", 0), ("B", 1)]
        assert registry.enums["e"].defined


# ---------------------------------------------------------------------------
# Namespaces
# ---------------------------------------------------------------------------

class TestNamespaces:

    def test_contents_are_flattened(self, parser, registry):
        stmts = parser.parse("namespace N { typedef int T; struct S { T a; }; }")
        assert [s.kind for s in stmts] == ["typedef", "declaration"]
        assert "N::T" in registry.ordinary
        assert "N::S" in registry.structs
        assert registry.namespace_path == ()

    def test_qualified_type_name(self, parser):
        parser.parse("namespace N { typedef char T; };")
        assert last_wire(parser, "N::T x;") == "c"

    def test_qualified_tag(self, parser):
        parser.parse("namespace N { struct foo { int a; }; }")
        assert last_wire(parser, "struct N::foo *p;") == "*@S.N::foo"

    def test_path_unwound_after_error(self, parser, registry):
        with pytest.raises(TypeNameError):
            parser.parse("namespace N { namespace M { foo bar; } }")
        assert registry.namespace_path == ()

    def test_unclosed_namespace(self, parser):
        with pytest.raises(UnexpectedEOFError):
            parser.parse("namespace N { int x;")

    def test_qualified_definition_must_match(self, parser):
        with pytest.raises(RedefinitionError) as ei:
            parser.parse("struct N::missing { int a; };")
        assert ei.value.code == Codes.NAMESPACE_MISMATCH

    def test_qualified_definition_of_forward_declaration(self, parser, registry):
        parser.parse("namespace N { struct fwd; } struct N::fwd { int a; };")
        assert registry.structs["N::fwd"].defined

    def test_qualified_name_matches_inner_use(self, parser):
        inside = parser.parse("namespace N { struct foo { int a; }; struct foo *p; }")[-1]
        [outside] = parser.parse("N::foo *q;")
        assert outside.type.target.definition is inside.type.target.definition

    def test_inner_definition_shadows_outer(self, parser, registry):
        stmts = parser.parse(
            "struct foo { int a; };"
            " namespace N { struct foo { char c; }; struct foo *p; }"
        )
        assert stmts[-1].encode() == "*@S.N::foo"
        assert len(registry.structs["foo"].members) == 1
        assert registry.structs["N::foo"].members[0].name == "c"
