# dllsig/primitives.py

# ═════════════════════════════════════════════════════════════════════════
# Calling conventions
# ═════════════════════════════════════════════════════════════════════════
#
# The wire code is the capitalized first letter of the Microsoft __xxx
# keyword; the SDK macros map onto the keyword they expand to.

CALLING_CONVENTIONS = {
    "__cdecl": "C",
    "__stdcall": "S",
    "__fastcall": "F",
    "__thiscall": "T",
    "__vectorcall": "V",
    "_cdecl": "C",
    "_stdcall": "S",
    "CDECL": "C",
    "STDCALL": "S",
    "WINAPI": "S",
    "WINAPIV": "C",
    "APIENTRY": "S",
    "CALLBACK": "S",
    "PASCAL": "S",
    "STDMETHODCALLTYPE": "S",
    "STDAPICALLTYPE": "S",
}

DEFAULT_CALLING_CONVENTION = "C"
INTERFACE_CALLING_CONVENTION = "S"

# ═════════════════════════════════════════════════════════════════════════
# Decl-spec words
# ═════════════════════════════════════════════════════════════════════════

QUALIFIERS = {"const": "const", "CONST": "const", "volatile": "volatile"}

# Words that combine with a following base word ("unsigned" "long" "int").
TYPE_MODIFIERS = {"long", "short", "signed", "unsigned"}

# Storage classes and friends that carry no type information.
IGNORED_SPECIFIERS = {"extern", "static", "inline", "__inline", "__forceinline"}

COMPOSITE_KEYWORDS = {"struct", "union", "enum", "interface", "MIDL_INTERFACE"}

# ═════════════════════════════════════════════════════════════════════════
# Primitive types
# ═════════════════════════════════════════════════════════════════════════
#
# Mappings follow the Microsoft compiler's sizes, which are the same in x86
# and x64 mode for the fixed types.  Lower case is signed, upper case is
# unsigned.  Codes may carry '%' (const) and '*' (pointer) prefixes.

C_PRIMITIVES = {
    "bool": "b",
    "char": "c",
    "signed char": "c",
    "unsigned char": "C",
    "short": "s",
    "short int": "s",
    "signed short": "s",
    "signed short int": "s",
    "unsigned short": "S",
    "unsigned short int": "S",
    "int": "i",
    "signed": "i",
    "signed int": "i",
    "unsigned": "I",
    "unsigned int": "I",
    "long": "i",
    "long int": "i",
    "signed long": "i",
    "signed long int": "i",
    "unsigned long": "I",
    "unsigned long int": "I",
    "long long": "l",
    "long long int": "l",
    "signed long long": "l",
    "signed long long int": "l",
    "unsigned long long": "L",
    "unsigned long long int": "L",
    "float": "f",
    "double": "d",
    "long double": "d",
    "void": "v",
    "wchar_t": "S",
    "__wchar_t": "S",
}

# Fixed-width aliases.
FIXED_WIDTH = {
    "__int8": "c",
    "__uint8": "C",
    "__int16": "s",
    "__uint16": "S",
    "__int32": "i",
    "__uint32": "I",
    "__int64": "l",
    "__uint64": "L",
    "unsigned __int8": "C",
    "unsigned __int16": "S",
    "unsigned __int32": "I",
    "unsigned __int64": "L",
    "int8_t": "c",
    "uint8_t": "C",
    "int16_t": "s",
    "uint16_t": "S",
    "int32_t": "i",
    "uint32_t": "I",
    "int64_t": "l",
    "uint64_t": "L",
    "BOOL": "i",
    "BOOLEAN": "c",
    "BYTE": "C",
    "CHAR": "c",
    "CCHAR": "c",
    "UCHAR": "C",
    "INT8": "c",
    "UINT8": "C",
    "WCHAR": "S",
    "ATOM": "S",
    "LANGID": "S",
    "WORD": "S",
    "INT16": "s",
    "UINT16": "S",
    "SHORT": "s",
    "USHORT": "S",
    "INT": "i",
    "UINT": "I",
    "INT32": "i",
    "UINT32": "I",
    "LONG": "i",
    "LONG32": "i",
    "ULONG": "I",
    "ULONG32": "I",
    "DWORD": "I",
    "DWORD32": "I",
    "COLORREF": "I",
    "LCID": "I",
    "LCTYPE": "I",
    "LGRPID": "I",
    "HRESULT": "i",
    "INT64": "l",
    "UINT64": "L",
    "LONG64": "l",
    "ULONG64": "L",
    "LONGLONG": "l",
    "ULONGLONG": "L",
    "DWORDLONG": "L",
    "DWORD64": "L",
    "FLOAT": "f",
    "DOUBLE": "d",
    "VOID": "v",
}

# Types whose size follows the pointer size (32/64-bit mode).
POINTER_SIZED = {
    "size_t": "Z",
    "SIZE_T": "Z",
    "ssize_t": "z",
    "SSIZE_T": "z",
    "ptrdiff_t": "z",
    "intptr_t": "z",
    "uintptr_t": "Z",
    "INT_PTR": "P",
    "UINT_PTR": "P",
    "LONG_PTR": "P",
    "ULONG_PTR": "P",
    "DWORD_PTR": "P",
    "LPARAM": "P",
    "WPARAM": "P",
    "LRESULT": "P",
}

# Opaque handles; the marshalling layer wraps these in native objects.
HANDLES = {
    name: "H"
    for name in (
        "HANDLE", "HACCEL", "HBITMAP", "HBRUSH", "HCOLORSPACE", "HCONV",
        "HCURSOR", "HDC", "HDDEDATA", "HDESK", "HDROP", "HDWP",
        "HENHMETAFILE", "HFONT", "HGDIOBJ", "HGLOBAL", "HHOOK", "HICON",
        "HINSTANCE", "HKEY", "HKL", "HLOCAL", "HMENU", "HMETAFILE",
        "HMODULE", "HMONITOR", "HPALETTE", "HPEN", "HRGN", "HRSRC", "HSZ",
        "HWINSTA", "HWND",
    )
}
HANDLES["HFILE"] = "i"

# Zero-terminated strings: 't' is ANSI, 'T' is Unicode.
STRINGS = {
    "LPSTR": "t",
    "PSTR": "t",
    "LPCSTR": "%t",
    "PCSTR": "%t",
    "LPWSTR": "T",
    "PWSTR": "T",
    "LPCWSTR": "%T",
    "PCWSTR": "%T",
    "LPTSTR": "T",
    "LPCTSTR": "%T",
    "BSTR": "T",
}

GENERIC_POINTERS = {
    "PVOID": "*v",
    "LPVOID": "*v",
    "LPCVOID": "*%v",
}

PRIMITIVE_TYPES = {
    **C_PRIMITIVES,
    **FIXED_WIDTH,
    **POINTER_SIZED,
    **HANDLES,
    **STRINGS,
    **GENERIC_POINTERS,
}

# Every single word that may appear in a multi-word primitive name.
PRIMITIVE_WORDS = {
    word for name in PRIMITIVE_TYPES for word in name.split()
}

# ═════════════════════════════════════════════════════════════════════════
# Prelude
# ═════════════════════════════════════════════════════════════════════════
#
# Declarations loaded into every new session (unless disabled), so COM
# interfaces can be declared the way the SDK headers do.

PRELUDE = """
    struct _GUID { ULONG Data1; USHORT Data2; USHORT Data3; UCHAR Data4[8]; };
    typedef struct _GUID GUID, IID, CLSID;
    typedef const GUID &REFGUID;
    typedef const IID &REFIID;
    typedef const CLSID &REFCLSID;

    typedef interface IUnknown '00000000-0000-0000-C000-000000000046' {
        HRESULT QueryInterface(REFIID riid, void **ppvObject);
        ULONG AddRef();
        ULONG Release();
    } *LPUNKNOWN;
"""
