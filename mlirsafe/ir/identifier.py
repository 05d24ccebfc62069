from __future__ import annotations

from mlirsafe._capi import capi
from mlirsafe.ownership import Borrowed
from mlirsafe.strings import StringRef, decode


class Identifier(Borrowed):
    """A name string interned in a context."""

    _equal_fn = "mlirIdentifierEqual"

    @classmethod
    def get(cls, context, text: str) -> Identifier:
        raw = capi().mlirIdentifierGet(context.to_raw(), StringRef(text).to_raw())
        return cls.from_raw(raw, context._interned_owner())

    @property
    def context(self):
        from mlirsafe.context import ContextRef

        return ContextRef.from_raw(capi().mlirIdentifierGetContext(self.to_raw()), self._anchor())

    @property
    def value(self) -> str:
        return decode(capi().mlirIdentifierStr(self.to_raw()))

    def __str__(self) -> str:
        return self.value
