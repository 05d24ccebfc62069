"""Lifetime-checked Python bindings to the MLIR C API."""

import logging

from mlirsafe.config import settings
from mlirsafe.context import Context, ContextRef, DialectRegistry
from mlirsafe.dialect import Dialect, DialectHandle
from mlirsafe.errors import (
    DanglingReferenceError,
    LibraryNotFoundError,
    MissingSymbolError,
    MlirSafeError,
    OwnershipError,
    PrintError,
)
from mlirsafe.graph import build_graph
from mlirsafe.passes import (
    LogicalResult,
    Pass,
    PassManager,
    create_canonicalizer_pass,
    create_cse_pass,
    create_symbol_dce_pass,
)

logging.getLogger(__name__).setLevel(settings.log_level)

__all__ = [
    "Context",
    "ContextRef",
    "DanglingReferenceError",
    "Dialect",
    "DialectHandle",
    "DialectRegistry",
    "LibraryNotFoundError",
    "LogicalResult",
    "MissingSymbolError",
    "MlirSafeError",
    "OwnershipError",
    "Pass",
    "PassManager",
    "PrintError",
    "build_graph",
    "create_canonicalizer_pass",
    "create_cse_pass",
    "create_symbol_dce_pass",
]
