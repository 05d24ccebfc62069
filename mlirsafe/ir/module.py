from __future__ import annotations

from typing import TYPE_CHECKING

from mlirsafe._capi import capi
from mlirsafe.errors import OwnershipError
from mlirsafe.ir.block import BlockRef
from mlirsafe.ir.location import Location
from mlirsafe.ir.operation import Operation, OperationRef
from mlirsafe.ownership import Owned
from mlirsafe.strings import StringRef

if TYPE_CHECKING:
    from mlirsafe.context import ContextRef


class Module(Owned):
    """A ``builtin.module`` operation and the single block it contains."""

    _destroy_fn = "mlirModuleDestroy"

    @classmethod
    def parse(cls, context, source: str) -> Module | None:
        """Parse *source*, returning ``None`` if it is not valid IR."""
        raw = capi().mlirModuleCreateParse(
            context.to_raw(), StringRef.null_terminated(source).to_raw()
        )
        return cls.try_from_raw(raw, context._context_anchor())

    @classmethod
    def empty(cls, location: Location) -> Module:
        return cls.from_raw(capi().mlirModuleCreateEmpty(location.to_raw()), location._context_anchor())

    @classmethod
    def from_operation(cls, operation: Operation) -> Module | None:
        """Wrap a standalone ``builtin.module`` operation, taking ownership of it.

        Returns ``None``, leaving *operation* untouched, if it is not a module.
        """
        if not isinstance(operation, Operation):
            raise OwnershipError("Only a standalone operation can become a module")
        raw = capi().mlirModuleFromOperation(operation.to_raw())
        module = cls.try_from_raw(raw, operation._context_anchor())
        if module is not None:
            operation._transfer(module)
        return module

    @property
    def context(self) -> ContextRef:
        from mlirsafe.context import ContextRef

        return ContextRef.from_raw(capi().mlirModuleGetContext(self.to_raw()), self)

    @property
    def operation(self) -> OperationRef:
        return OperationRef.from_raw(capi().mlirModuleGetOperation(self.to_raw()), self)

    @property
    def body(self) -> BlockRef:
        return BlockRef.from_raw(capi().mlirModuleGetBody(self.to_raw()), self)

    def __str__(self) -> str:
        return str(self.operation)
