# tests/conftest.py
"""
Shared fixtures and declaration sources for the dllsig test-suite.
"""

import pytest

from dllsig.encoder import Encoder
from dllsig.parser import DeclParser
from dllsig.registry import Registry
from dllsig.session import DeclSession, SessionConfig


IUNKNOWN_GUID = "00000000-0000-0000-C000-000000000046"

IUNKNOWN_VTABLE = (
    "QueryInterface:(Si *v &%@S._GUID **v) "
    "AddRef:(SI *v) "
    "Release:(SI *v)"
)

POINT_DECL = "typedef struct point { int x, y; } POINT, *PPOINT;"

LIST_NODE_DECL = "struct node { int value; struct node *next; };"

COM_DECLS = """
interface IBase '01234567-89ab-cdef-0123-456789abcdef' : IUnknown {
    HRESULT First(int a);
    HRESULT Second(void);
};
interface IDerived : IBase {
    HRESULT Third(LPCWSTR name);
};
"""

MIDL_DECL = """
MIDL_INTERFACE("{6D5140C1-7436-11CE-8034-00AA006009FA}")
IServiceProvider : public IUnknown
{
public:
    virtual /* [local] */ HRESULT STDMETHODCALLTYPE QueryService(
        /* [in] */ REFGUID guidService,
        /* [in] */ REFIID riid,
        /* [out] */ void **ppvObject) = 0;
};
"""


@pytest.fixture
def session():
    """A session with the GUID/IUnknown prelude loaded."""
    return DeclSession()


@pytest.fixture
def bare_session():
    """A session with only the seeded primitive types."""
    return DeclSession(SessionConfig(load_prelude=False))


@pytest.fixture
def registry():
    return Registry()


@pytest.fixture
def parser(registry):
    return DeclParser(registry, encode=Encoder(registry).encode)


def encode_one(session, text):
    """Encode the single statement in *text*."""
    [stmt] = session.parse(text)
    return stmt.encode()


def encode_last(session, text):
    """Encode the last statement in *text*."""
    return session.parse(text)[-1].encode()
