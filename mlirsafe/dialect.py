"""Dialects and the process-wide dialect handles used to register them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mlirsafe._capi import MlirDialectHandle, capi
from mlirsafe.errors import MissingSymbolError
from mlirsafe.ownership import Borrowed
from mlirsafe.strings import decode

if TYPE_CHECKING:
    from mlirsafe.context import ContextRef, DialectRegistry

logger = logging.getLogger(__name__)


class Dialect(Borrowed):
    """A dialect loaded into a context.

    Compared by identity of the context's dialect entry, not by namespace
    text: the same namespace loaded into two contexts gives unequal dialects.
    """

    _equal_fn = "mlirDialectEqual"

    @property
    def context(self) -> ContextRef:
        from mlirsafe.context import ContextRef

        return ContextRef.from_raw(capi().mlirDialectGetContext(self.to_raw()), self._anchor())

    @property
    def namespace(self) -> str:
        return decode(capi().mlirDialectGetNamespace(self.to_raw()))

    def __str__(self) -> str:
        return self.namespace


class DialectHandle:
    """Static descriptor of a dialect compiled into the native library.

    Handles are plain values: they are not owned by any context and need no
    release.  Obtain one with :meth:`lookup`.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: MlirDialectHandle) -> None:
        self._raw = raw

    @classmethod
    def lookup(cls, namespace: str) -> DialectHandle | None:
        """Return the handle of dialect *namespace* (e.g. ``"func"``).

        Returns ``None`` when the native library does not export a handle for it.
        """
        getter = _handle_getter(namespace)
        if getter is None:
            return None
        return cls(getter())

    def to_raw(self) -> MlirDialectHandle:
        return self._raw

    @property
    def namespace(self) -> str:
        return decode(capi().mlirDialectHandleGetNamespace(self._raw))

    def insert_into_registry(self, registry: DialectRegistry) -> None:
        capi().mlirDialectHandleInsertDialect(self._raw, registry.to_raw())

    def register_with_context(self, context) -> None:
        """Register the dialect with *context* without loading it."""
        capi().mlirDialectHandleRegisterDialect(self._raw, context.to_raw())

    def load_into_context(self, context) -> Dialect:
        raw = capi().mlirDialectHandleLoadDialect(self._raw, context.to_raw())
        return Dialect.from_raw(raw, context._interned_owner())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DialectHandle):
            return NotImplemented
        return self._raw.ptr == other._raw.ptr

    def __hash__(self) -> int:
        return hash(self._raw.ptr)

    def __repr__(self) -> str:
        return f"DialectHandle({self.namespace!r})"


def _handle_getter(namespace: str):
    symbol = f"mlirGetDialectHandle__{namespace}__"
    try:
        return capi().bind(symbol, MlirDialectHandle, [])
    except MissingSymbolError:
        logger.debug("No dialect handle exported for %r", namespace)
        return None
