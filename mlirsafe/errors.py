from __future__ import annotations


class MlirSafeError(Exception):
    """Base class for every error raised by ``mlirsafe``."""


class LibraryNotFoundError(MlirSafeError):
    """No shared library exporting the MLIR C API could be located."""


class MissingSymbolError(MlirSafeError, AttributeError):
    """The loaded library does not export a requested C API function."""


class OwnershipError(MlirSafeError):
    """A caller violated the ownership contract of a native handle.

    Raised when a borrowed-only wrapper is constructed directly, when an owned
    wrapper is used after it was destroyed or moved into a container, or when
    a context is destroyed while IR it allocated is still owned.
    """


class DanglingReferenceError(OwnershipError):
    """A borrowed reference outlived the owner it was derived from."""


class PrintError(MlirSafeError):
    """Writing printer output to the destination sink failed."""
