from __future__ import annotations

from mlirsafe._capi import MlirBlock, capi
from mlirsafe.errors import OwnershipError
from mlirsafe.ir.block import Block, BlockRef
from mlirsafe.ownership import Borrowed, Owned


def _consume(block: Block, new_owner):
    if not isinstance(block, Block):
        raise OwnershipError(
            f"Only standalone blocks can be inserted, got {type(block).__name__}; "
            "detach it first with detach()"
        )
    new_owner._check_context(block, "block")
    return block._transfer(new_owner)


class _RegionMethods:
    _equal_fn = "mlirRegionEqual"
    _tracks_node = True

    @property
    def first_block(self) -> BlockRef | None:
        return BlockRef.try_from_raw(capi().mlirRegionGetFirstBlock(self.to_raw()), self._anchor())

    @property
    def blocks(self) -> list[BlockRef]:
        blocks = []
        block = self.first_block
        while block is not None:
            blocks.append(block)
            block = block.next_in_region
        return blocks

    def append_block(self, block: Block) -> BlockRef:
        """Move *block* to the end of this region and return a reference to it."""
        raw_region = self.to_raw()
        raw = _consume(block, self._anchor())
        capi().mlirRegionAppendOwnedBlock(raw_region, raw)
        return BlockRef.from_raw(raw, self._anchor())

    def insert_block_after(self, reference: BlockRef | None, block: Block) -> BlockRef:
        """Insert *block* after *reference*; ``None`` inserts at the front."""
        raw_region = self.to_raw()
        raw_reference = reference.to_raw() if reference is not None else MlirBlock()
        raw = _consume(block, self._anchor())
        capi().mlirRegionInsertOwnedBlockAfter(raw_region, raw_reference, raw)
        return BlockRef.from_raw(raw, self._anchor())

    def insert_block_before(self, reference: BlockRef | None, block: Block) -> BlockRef:
        """Insert *block* before *reference*; ``None`` appends."""
        raw_region = self.to_raw()
        raw_reference = reference.to_raw() if reference is not None else MlirBlock()
        raw = _consume(block, self._anchor())
        capi().mlirRegionInsertOwnedBlockBefore(raw_region, raw_reference, raw)
        return BlockRef.from_raw(raw, self._anchor())


class Region(_RegionMethods, Owned):
    """A standalone region, owned by this wrapper until an operation adopts it."""

    _destroy_fn = "mlirRegionDestroy"

    def __init__(self) -> None:
        self._adopt(capi().mlirRegionCreate(), None)


class RegionRef(_RegionMethods, Borrowed):
    """A region owned by the operation it belongs to."""

    @property
    def next_in_operation(self) -> RegionRef | None:
        raw = capi().mlirRegionGetNextInOperation(self.to_raw())
        return RegionRef.try_from_raw(raw, self._owner)
