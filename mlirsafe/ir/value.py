"""SSA values and their use lists."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

from mlirsafe._capi import capi
from mlirsafe.ir.types import Type
from mlirsafe.ownership import Borrowed
from mlirsafe.strings import print_to_string

if TYPE_CHECKING:
    from mlirsafe.ir.block import BlockRef
    from mlirsafe.ir.operation import OperationRef


class Value(Borrowed):
    """A block argument or an operation result.

    Values are never owned: they live as long as the block or operation that
    defines them.
    """

    _equal_fn = "mlirValueEqual"

    @property
    def type(self) -> Type:
        return Type.from_raw(capi().mlirValueGetType(self.to_raw()), self._interned_owner())

    def set_type(self, type: Type) -> None:
        self._check_context(type, "type")
        capi().mlirValueSetType(self.to_raw(), type.to_raw())

    def is_block_argument(self) -> bool:
        return bool(capi().mlirValueIsABlockArgument(self.to_raw()))

    def is_op_result(self) -> bool:
        return bool(capi().mlirValueIsAOpResult(self.to_raw()))

    @property
    def owner(self) -> BlockRef | OperationRef:
        """The block declaring this argument, or the operation producing this result."""
        from mlirsafe.ir.block import BlockRef
        from mlirsafe.ir.operation import OperationRef

        if self.is_block_argument():
            return BlockRef.from_raw(capi().mlirBlockArgumentGetOwner(self.to_raw()), self._owner)
        return OperationRef.from_raw(capi().mlirOpResultGetOwner(self.to_raw()), self._owner)

    @property
    def index(self) -> int:
        """Argument number or result number, depending on the kind of value."""
        if self.is_block_argument():
            return capi().mlirBlockArgumentGetArgNumber(self.to_raw())
        return capi().mlirOpResultGetResultNumber(self.to_raw())

    @property
    def first_use(self) -> OpOperand | None:
        return OpOperand.lift(capi().mlirValueGetFirstUse(self.to_raw()), self._owner)

    @property
    def uses(self) -> Iterator[OpOperand]:
        use = self.first_use
        while use is not None:
            yield use
            use = use.next_use

    def replace_all_uses_with(self, other: Value) -> None:
        self._check_context(other, "replacement value")
        capi().mlirValueReplaceAllUsesOfWith(self.to_raw(), other.to_raw())

    def __str__(self) -> str:
        return print_to_string("mlirValuePrint", self.to_raw())


class OpOperand(Borrowed):
    """One use of a value: an ``(operation, operand number)`` pair.

    The native end of a use list is a null operand, which :meth:`lift` turns
    into ``None``.
    """

    @classmethod
    def lift(cls, raw, owner) -> OpOperand | None:
        if capi().mlirOpOperandIsNull(raw):
            return None
        return cls.from_raw(raw, owner)

    def is_null(self) -> bool:
        return bool(capi().mlirOpOperandIsNull(self.to_raw()))

    @property
    def value(self) -> Value:
        return Value.from_raw(capi().mlirOpOperandGetValue(self.to_raw()), self._owner)

    @property
    def owner(self) -> OperationRef:
        from mlirsafe.ir.operation import OperationRef

        return OperationRef.from_raw(capi().mlirOpOperandGetOwner(self.to_raw()), self._owner)

    @property
    def operand_number(self) -> int:
        return capi().mlirOpOperandGetOperandNumber(self.to_raw())

    @property
    def next_use(self) -> OpOperand | None:
        return OpOperand.lift(capi().mlirOpOperandGetNextUse(self.to_raw()), self._owner)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OpOperand):
            return NotImplemented
        return self.to_raw().ptr == other.to_raw().ptr

    def __hash__(self) -> int:
        return hash(self._raw.ptr)
