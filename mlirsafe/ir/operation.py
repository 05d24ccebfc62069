"""Operations: standalone (:class:`Operation`) and attached (:class:`OperationRef`).

An :class:`Operation` owns its native operation until it is moved into a
block, at which point the block owns it and the caller continues with the
returned :class:`OperationRef`.
"""

from __future__ import annotations

import ctypes
import enum
import logging
from typing import TYPE_CHECKING, Callable, Iterator

from mlirsafe._capi import MlirOperationWalkCallback, capi
from mlirsafe.errors import OwnershipError
from mlirsafe.ir.attributes import Attribute, NamedAttribute
from mlirsafe.ir.identifier import Identifier
from mlirsafe.ir.location import Location
from mlirsafe.ir.value import Value
from mlirsafe.ownership import Borrowed, Owned, retire_node
from mlirsafe.strings import StringRef, print_to_string

if TYPE_CHECKING:
    from mlirsafe.context import ContextRef
    from mlirsafe.ir.block import BlockRef
    from mlirsafe.ir.region import RegionRef

logger = logging.getLogger(__name__)


class WalkOrder(enum.IntEnum):
    PRE_ORDER = 0
    POST_ORDER = 1


# MlirWalkResult values.
_WALK_ADVANCE = 0
_WALK_INTERRUPT = 1


class _WalkState:
    def __init__(self, callback: Callable[[OperationRef], object], owner) -> None:
        self.callback = callback
        self.owner = owner
        self.error: BaseException | None = None


@MlirOperationWalkCallback
def _walk_callback(raw_op, user_data):
    state = ctypes.cast(user_data, ctypes.POINTER(ctypes.py_object)).contents.value
    if state.error is not None:
        return _WALK_INTERRUPT
    try:
        state.callback(OperationRef.from_raw(raw_op, state.owner))
    except BaseException as exc:  # re-raised once the native walk returns
        state.error = exc
        return _WALK_INTERRUPT
    return _WALK_ADVANCE


def _check_index(kind: str, index: int, count: int) -> None:
    if not 0 <= index < count:
        raise IndexError(f"{kind}_index {index} out of range (op has {count} {kind}s)")


class _OperationMethods:
    """Behaviour shared by :class:`Operation` and :class:`OperationRef`."""

    _equal_fn = "mlirOperationEqual"
    _tracks_node = True

    @property
    def context(self) -> ContextRef:
        from mlirsafe.context import ContextRef

        return ContextRef.from_raw(capi().mlirOperationGetContext(self.to_raw()), self._anchor())

    @property
    def name(self) -> Identifier:
        return Identifier.from_raw(capi().mlirOperationGetName(self.to_raw()), self._interned_owner())

    @property
    def location(self) -> Location:
        return Location.from_raw(capi().mlirOperationGetLocation(self.to_raw()), self._interned_owner())

    def verify(self) -> bool:
        """Run the native verifier on this operation and everything nested in it."""
        return bool(capi().mlirOperationVerify(self.to_raw()))

    def clone(self) -> Operation:
        """Deep-copy this operation into a new standalone operation."""
        raw = capi().mlirOperationClone(self.to_raw())
        return Operation.from_raw(raw, self._context_anchor())

    # -- Parents and siblings -------------------------------------------

    @property
    def parent_operation(self) -> OperationRef | None:
        raw = capi().mlirOperationGetParentOperation(self.to_raw())
        return OperationRef.try_from_raw(raw, self._parent_anchor())

    @property
    def parent_block(self) -> BlockRef | None:
        from mlirsafe.ir.block import BlockRef

        return BlockRef.try_from_raw(
            capi().mlirOperationGetBlock(self.to_raw()), self._parent_anchor()
        )

    @property
    def next_in_parent_block(self) -> OperationRef | None:
        raw = capi().mlirOperationGetNextInBlock(self.to_raw())
        return OperationRef.try_from_raw(raw, self._parent_anchor())

    # -- Operands, regions, results -------------------------------------

    @property
    def num_operands(self) -> int:
        return capi().mlirOperationGetNumOperands(self.to_raw())

    def operand(self, index: int) -> Value:
        _check_index("operand", index, self.num_operands)
        return Value.from_raw(capi().mlirOperationGetOperand(self.to_raw(), index), self._anchor())

    def set_operand(self, index: int, value: Value) -> None:
        _check_index("operand", index, self.num_operands)
        self._check_context(value, "operand")
        capi().mlirOperationSetOperand(self.to_raw(), index, value.to_raw())

    @property
    def operands(self) -> list[Value]:
        return [self.operand(i) for i in range(self.num_operands)]

    @property
    def num_regions(self) -> int:
        return capi().mlirOperationGetNumRegions(self.to_raw())

    def region(self, index: int) -> RegionRef:
        from mlirsafe.ir.region import RegionRef

        _check_index("region", index, self.num_regions)
        return RegionRef.from_raw(capi().mlirOperationGetRegion(self.to_raw(), index), self._anchor())

    @property
    def first_region(self) -> RegionRef | None:
        from mlirsafe.ir.region import RegionRef

        if not self.num_regions:
            return None
        return RegionRef.from_raw(capi().mlirOperationGetFirstRegion(self.to_raw()), self._anchor())

    @property
    def regions(self) -> list[RegionRef]:
        return [self.region(i) for i in range(self.num_regions)]

    @property
    def num_results(self) -> int:
        return capi().mlirOperationGetNumResults(self.to_raw())

    def result(self, index: int) -> Value:
        _check_index("result", index, self.num_results)
        return Value.from_raw(capi().mlirOperationGetResult(self.to_raw(), index), self._anchor())

    @property
    def results(self) -> list[Value]:
        return [self.result(i) for i in range(self.num_results)]

    # -- Attributes -----------------------------------------------------
    #
    # The generic accessors see every attribute.  Inherent attributes are
    # the ones defined by the operation itself (stored as properties for
    # most registered ops); discardable attributes are the free-form
    # dictionary beside them.

    @property
    def num_attributes(self) -> int:
        return capi().mlirOperationGetNumAttributes(self.to_raw())

    def attribute_at(self, index: int) -> NamedAttribute:
        _check_index("attribute", index, self.num_attributes)
        raw = capi().mlirOperationGetAttribute(self.to_raw(), index)
        return NamedAttribute.from_raw(raw, self._interned_owner())

    @property
    def attributes(self) -> list[NamedAttribute]:
        return [self.attribute_at(i) for i in range(self.num_attributes)]

    def attribute(self, name: str) -> Attribute | None:
        raw = capi().mlirOperationGetAttributeByName(self.to_raw(), StringRef(name).to_raw())
        return Attribute.try_from_raw(raw, self._interned_owner())

    def set_attribute(self, name: str, attribute: Attribute) -> None:
        self._check_context(attribute, "attribute")
        capi().mlirOperationSetAttributeByName(
            self.to_raw(), StringRef(name).to_raw(), attribute.to_raw()
        )

    def remove_attribute(self, name: str) -> bool:
        """Remove attribute *name*; returns whether it was present."""
        return bool(capi().mlirOperationRemoveAttributeByName(self.to_raw(), StringRef(name).to_raw()))

    def has_inherent_attribute(self, name: str) -> bool:
        raw_name = StringRef(name).to_raw()
        return bool(capi().mlirOperationHasInherentAttributeByName(self.to_raw(), raw_name))

    def inherent_attribute(self, name: str) -> Attribute | None:
        raw_name = StringRef(name).to_raw()
        raw = capi().mlirOperationGetInherentAttributeByName(self.to_raw(), raw_name)
        return Attribute.try_from_raw(raw, self._interned_owner())

    def set_inherent_attribute(self, name: str, attribute: Attribute) -> None:
        self._check_context(attribute, "attribute")
        capi().mlirOperationSetInherentAttributeByName(
            self.to_raw(), StringRef(name).to_raw(), attribute.to_raw()
        )

    def remove_inherent_attribute(self, name: str) -> bool:
        # No dedicated C entry point; generic removal also reaches inherent attributes.
        if self.inherent_attribute(name) is None:
            return False
        return self.remove_attribute(name)

    @property
    def num_discardable_attributes(self) -> int:
        return capi().mlirOperationGetNumDiscardableAttributes(self.to_raw())

    def discardable_attribute_at(self, index: int) -> NamedAttribute:
        _check_index("discardable_attribute", index, self.num_discardable_attributes)
        raw = capi().mlirOperationGetDiscardableAttribute(self.to_raw(), index)
        return NamedAttribute.from_raw(raw, self._interned_owner())

    def discardable_attribute(self, name: str) -> Attribute | None:
        raw_name = StringRef(name).to_raw()
        raw = capi().mlirOperationGetDiscardableAttributeByName(self.to_raw(), raw_name)
        return Attribute.try_from_raw(raw, self._interned_owner())

    def set_discardable_attribute(self, name: str, attribute: Attribute) -> None:
        self._check_context(attribute, "attribute")
        capi().mlirOperationSetDiscardableAttributeByName(
            self.to_raw(), StringRef(name).to_raw(), attribute.to_raw()
        )

    def remove_discardable_attribute(self, name: str) -> bool:
        raw_name = StringRef(name).to_raw()
        return bool(capi().mlirOperationRemoveDiscardableAttributeByName(self.to_raw(), raw_name))

    # -- Traversal and printing -----------------------------------------

    def walk(
        self,
        callback: Callable[[OperationRef], object],
        order: WalkOrder = WalkOrder.POST_ORDER,
    ) -> None:
        """Call *callback* on this operation and every operation nested in it.

        An exception raised by *callback* stops the walk and is re-raised
        here once the native walker has returned.
        """
        state = _WalkState(callback, self._anchor())
        cell = ctypes.py_object(state)
        user_data = ctypes.cast(ctypes.pointer(cell), ctypes.c_void_p)
        capi().mlirOperationWalk(self.to_raw(), _walk_callback, user_data, int(order))
        if state.error is not None:
            raise state.error

    def __str__(self) -> str:
        return print_to_string("mlirOperationPrint", self.to_raw())


class Operation(_OperationMethods, Owned):
    """A standalone operation owned by this wrapper."""

    _destroy_fn = "mlirOperationDestroy"

    @classmethod
    def parse(cls, context, source: str, filename: str = "-") -> Operation | None:
        """Parse a single top-level operation, returning ``None`` on failure."""
        raw = capi().mlirOperationCreateParse(
            context.to_raw(),
            StringRef.null_terminated(source).to_raw(),
            StringRef(filename).to_raw(),
        )
        return cls.try_from_raw(raw, context._context_anchor())


class OperationRef(_OperationMethods, Borrowed):
    """An operation owned by the block (or module) it lives in."""

    def remove_from_parent(self) -> Operation:
        """Detach this operation from its block and return it as a standalone operation.

        Other references to the operation, and everything reached through
        them, are invalidated.  This reference stays usable for as long as
        the returned operation is.
        """
        if self.parent_block is None:
            raise OwnershipError(f"{self.name.value} is not attached to a block")
        logger.debug("Detaching %r from its parent block", self)
        raw = self.to_raw()
        context = self._context_anchor()
        capi().mlirOperationRemoveFromParent(raw)
        retire_node(self)
        operation = Operation.from_raw(raw, context)
        self._reattach(operation)
        return operation

    def erase(self) -> None:
        """Detach and destroy this operation."""
        self.remove_from_parent().close()

    def _check_movable(self, other: _OperationMethods) -> None:
        if self.parent_block is None or other.parent_block is None:
            raise OwnershipError("Both operations must be attached to a block to move them")
        self._check_context(other, "operation")

    def move_after(self, other: OperationRef) -> None:
        """Move this operation right after *other*, possibly into another block."""
        self._check_movable(other)
        capi().mlirOperationMoveAfter(self.to_raw(), other.to_raw())

    def move_before(self, other: OperationRef) -> None:
        self._check_movable(other)
        capi().mlirOperationMoveBefore(self.to_raw(), other.to_raw())


def iterate_siblings(first: OperationRef | None) -> Iterator[OperationRef]:
    op = first
    while op is not None:
        yield op
        op = op.next_in_parent_block
