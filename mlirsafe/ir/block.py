"""Blocks: ordered operations plus typed arguments."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from mlirsafe._capi import MlirLocation, MlirOperation, MlirType, capi
from mlirsafe.errors import OwnershipError
from mlirsafe.ir.location import Location
from mlirsafe.ir.operation import Operation, OperationRef, iterate_siblings
from mlirsafe.ir.types import Type
from mlirsafe.ir.value import Value
from mlirsafe.ownership import Borrowed, Owned, retire_node
from mlirsafe.strings import print_to_string

if TYPE_CHECKING:
    from mlirsafe.ir.region import RegionRef


def _consume(operation: Operation, new_owner):
    if not isinstance(operation, Operation):
        raise OwnershipError(
            f"Only standalone operations can be inserted, got {type(operation).__name__}; "
            "detach it first with remove_from_parent()"
        )
    new_owner._check_context(operation, "operation")
    return operation._transfer(new_owner)


class _BlockMethods:
    _equal_fn = "mlirBlockEqual"
    _tracks_node = True

    # -- Arguments ------------------------------------------------------

    @property
    def num_arguments(self) -> int:
        return capi().mlirBlockGetNumArguments(self.to_raw())

    def argument(self, index: int) -> Value:
        count = self.num_arguments
        if not 0 <= index < count:
            raise IndexError(f"argument_index {index} out of range (block has {count} arguments)")
        return Value.from_raw(capi().mlirBlockGetArgument(self.to_raw(), index), self._anchor())

    @property
    def arguments(self) -> list[Value]:
        return [self.argument(i) for i in range(self.num_arguments)]

    def add_argument(self, type: Type, location: Location) -> Value:
        self._check_context(type, "argument type")
        type._check_context(location, "argument location")
        raw = capi().mlirBlockAddArgument(self.to_raw(), type.to_raw(), location.to_raw())
        return Value.from_raw(raw, self._anchor())

    # -- Operations -----------------------------------------------------

    @property
    def first_operation(self) -> OperationRef | None:
        raw = capi().mlirBlockGetFirstOperation(self.to_raw())
        return OperationRef.try_from_raw(raw, self._anchor())

    @property
    def operations(self) -> list[OperationRef]:
        return list(iterate_siblings(self.first_operation))

    @property
    def terminator(self) -> OperationRef | None:
        raw = capi().mlirBlockGetTerminator(self.to_raw())
        return OperationRef.try_from_raw(raw, self._anchor())

    def append_operation(self, operation: Operation) -> OperationRef:
        """Move *operation* to the end of this block.

        The block takes ownership; *operation* can no longer be used and the
        returned reference replaces it.
        """
        raw_block = self.to_raw()
        raw = _consume(operation, self._anchor())
        capi().mlirBlockAppendOwnedOperation(raw_block, raw)
        return OperationRef.from_raw(raw, self._anchor())

    def insert_operation(self, position: int, operation: Operation) -> OperationRef:
        raw_block = self.to_raw()
        count = len(self.operations)
        if not 0 <= position <= count:
            raise IndexError(f"position {position} out of range (block has {count} operations)")
        raw = _consume(operation, self._anchor())
        capi().mlirBlockInsertOwnedOperation(raw_block, position, raw)
        return OperationRef.from_raw(raw, self._anchor())

    def insert_operation_after(
        self, reference: OperationRef | None, operation: Operation
    ) -> OperationRef:
        """Insert *operation* after *reference*; ``None`` inserts at the front."""
        raw_block = self.to_raw()
        raw_reference = reference.to_raw() if reference is not None else MlirOperation()
        raw = _consume(operation, self._anchor())
        capi().mlirBlockInsertOwnedOperationAfter(raw_block, raw_reference, raw)
        return OperationRef.from_raw(raw, self._anchor())

    def insert_operation_before(
        self, reference: OperationRef | None, operation: Operation
    ) -> OperationRef:
        """Insert *operation* before *reference*; ``None`` appends."""
        raw_block = self.to_raw()
        raw_reference = reference.to_raw() if reference is not None else MlirOperation()
        raw = _consume(operation, self._anchor())
        capi().mlirBlockInsertOwnedOperationBefore(raw_block, raw_reference, raw)
        return OperationRef.from_raw(raw, self._anchor())

    # -- Parents --------------------------------------------------------

    @property
    def parent_region(self) -> RegionRef | None:
        from mlirsafe.ir.region import RegionRef

        return RegionRef.try_from_raw(
            capi().mlirBlockGetParentRegion(self.to_raw()), self._parent_anchor()
        )

    @property
    def parent_operation(self) -> OperationRef | None:
        raw = capi().mlirBlockGetParentOperation(self.to_raw())
        return OperationRef.try_from_raw(raw, self._parent_anchor())

    @property
    def next_in_region(self) -> BlockRef | None:
        raw = capi().mlirBlockGetNextInRegion(self.to_raw())
        return BlockRef.try_from_raw(raw, self._parent_anchor())

    def __str__(self) -> str:
        return print_to_string("mlirBlockPrint", self.to_raw())


class Block(_BlockMethods, Owned):
    """A standalone block owned by this wrapper until it is moved into a region."""

    _destroy_fn = "mlirBlockDestroy"

    def __init__(
        self, arg_types: Sequence[Type] = (), locations: Sequence[Location] = ()
    ) -> None:
        if len(arg_types) != len(locations):
            raise ValueError(
                f"Got {len(arg_types)} argument types but {len(locations)} locations"
            )
        for type, location in zip(arg_types, locations):
            arg_types[0]._check_context(type, "argument type")
            arg_types[0]._check_context(location, "argument location")
        types = (MlirType * len(arg_types))(*(t.to_raw() for t in arg_types))
        locs = (MlirLocation * len(locations))(*(loc.to_raw() for loc in locations))
        raw = capi().mlirBlockCreate(len(arg_types), types, locs)
        context = arg_types[0]._context_anchor() if arg_types else None
        self._adopt(raw, context)


class BlockRef(_BlockMethods, Borrowed):
    """A block owned by the region it lives in."""

    def detach(self) -> Block:
        """Unlink this block from its region and return it as a standalone block.

        Like :meth:`OperationRef.remove_from_parent`, this invalidates other
        references to the block; this one follows the returned block.
        """
        if self.parent_region is None:
            raise OwnershipError("Block is not attached to a region")
        raw = self.to_raw()
        context = self._context_anchor()
        capi().mlirBlockDetach(raw)
        retire_node(self)
        block = Block.from_raw(raw, context)
        self._reattach(block)
        return block
