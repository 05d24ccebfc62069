"""Plain-data snapshots of an IR tree.

:func:`build_graph` walks an operation and everything nested in it through
the safe wrappers and returns an :class:`~mlirsafe.models.ir_schema.IRGraph`.
The snapshot holds only strings and integers, so it stays usable after the
IR (or its context) is destroyed.
"""

from __future__ import annotations

from mlirsafe.ir.block import BlockRef
from mlirsafe.ir.operation import OperationRef
from mlirsafe.ir.value import Value
from mlirsafe.models.ir_schema import (
    AttributeInfo,
    BlockInfo,
    EdgeInfo,
    IRGraph,
    OperationInfo,
    RegionInfo,
    ValueInfo,
)


def build_graph(operation) -> IRGraph:
    """Snapshot *operation* (an operation, operation reference or module)."""
    from mlirsafe.ir.module import Module

    if isinstance(operation, Module):
        operation = operation.operation
    return _GraphBuilder().build(operation)


class _GraphBuilder:
    def __init__(self) -> None:
        self._op_ids: dict[OperationRef, str] = {}
        self._value_ids: dict[Value, str] = {}
        # Sequential counters for deterministic IDs
        self._id_counters: dict[str, int] = {}
        self.operations: list[OperationInfo] = []
        self.blocks: list[BlockInfo] = []
        self.regions: list[RegionInfo] = []
        self.values: list[ValueInfo] = []
        self.edges: list[EdgeInfo] = []
        self._pending_operands: list[tuple[OperationInfo, list[Value]]] = []

    def _gen_id(self, prefix: str) -> str:
        n = self._id_counters.get(prefix, 0)
        self._id_counters[prefix] = n + 1
        return f"{prefix}_{n}"

    def _register_value(self, value: Value) -> ValueInfo:
        val_id = self._gen_id("val")
        self._value_ids[value] = val_id
        info = ValueInfo(
            value_id=val_id,
            type=str(value.type),
            kind="block_argument" if value.is_block_argument() else "op_result",
            index=value.index,
        )
        self.values.append(info)
        return info

    def _resolve_value(self, value: Value) -> str:
        val_id = self._value_ids.get(value)
        if val_id is None:
            # Defined outside the snapshot root.
            val_id = self._register_value(value).value_id
        return val_id

    def build(self, root) -> IRGraph:
        root_id = self._gen_id("op")
        self._op_ids[root] = root_id
        self._visit_op(root, root_id, parent_block=None, position=0)
        for info, operands in self._pending_operands:
            info.operands = [self._resolve_value(operand) for operand in operands]
        self._collect_edges()
        return IRGraph(
            root_id=root_id,
            operations=self.operations,
            blocks=self.blocks,
            regions=self.regions,
            values=self.values,
            edges=self.edges,
        )

    def _visit_op(self, op, op_id: str, parent_block: str | None, position: int) -> None:
        results = [self._register_value(result) for result in op.results]

        region_ids = [self._visit_region(region, op_id) for region in op.regions]

        attrs: dict[str, AttributeInfo] = {}
        for named in op.attributes:
            attr = named.attribute.downcast()
            attrs[named.name.value] = AttributeInfo(type=type(attr).__name__, value=str(attr))

        op_name = op.name.value
        dialect = op_name.split(".")[0] if "." in op_name else ""

        info = OperationInfo(
            op_id=op_id,
            name=op_name,
            dialect=dialect,
            location=str(op.location),
            attributes=attrs,
            operands=[],
            results=results,
            regions=region_ids,
            parent_block=parent_block,
            position=position,
        )
        self.operations.append(info)
        # Resolved once the whole tree is numbered; an operand may be defined
        # in a block that is listed later.
        self._pending_operands.append((info, op.operands))

    def _visit_region(self, region, parent_op: str) -> str:
        region_id = self._gen_id("region")
        block_ids = [self._visit_block(block, region_id) for block in region.blocks]
        self.regions.append(RegionInfo(region_id=region_id, parent_op=parent_op, blocks=block_ids))
        return region_id

    def _visit_block(self, block: BlockRef, region_id: str) -> str:
        block_id = self._gen_id("block")
        arguments = [self._register_value(arg) for arg in block.arguments]

        child_op_ids: list[str] = []
        for pos, child_op in enumerate(block.operations):
            child_op_id = self._gen_id("op")
            self._op_ids[child_op] = child_op_id
            child_op_ids.append(child_op_id)
            self._visit_op(child_op, child_op_id, parent_block=block_id, position=pos)

        self.blocks.append(BlockInfo(
            block_id=block_id,
            arguments=arguments,
            parent_region=region_id,
            operations=child_op_ids,
        ))
        return block_id

    def _collect_edges(self) -> None:
        """One edge per use, read from each value's use list."""
        for value, val_id in list(self._value_ids.items()):
            for use in value.uses:
                to_op = self._op_ids.get(use.owner)
                if to_op is None:
                    continue  # user lies outside the snapshot
                self.edges.append(EdgeInfo(
                    from_value=val_id,
                    to_op=to_op,
                    to_operand_index=use.operand_number,
                ))
        order = {op_id: n for n, op_id in enumerate(self._op_ids.values())}
        self.edges.sort(key=lambda e: (order[e.to_op], e.to_operand_index))
