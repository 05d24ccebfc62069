from __future__ import annotations

from pydantic import BaseModel


class ValueInfo(BaseModel):
    value_id: str
    type: str
    kind: str  # "block_argument" | "op_result"
    index: int  # argument or result number


class AttributeInfo(BaseModel):
    type: str  # wrapper class, e.g. "IntegerAttribute"
    value: str


class OperationInfo(BaseModel):
    op_id: str
    name: str
    dialect: str
    location: str
    attributes: dict[str, AttributeInfo]
    operands: list[str]  # value_ids
    results: list[ValueInfo]
    regions: list[str]  # region_ids
    parent_block: str | None  # None for the root operation
    position: int


class BlockInfo(BaseModel):
    block_id: str
    arguments: list[ValueInfo]
    parent_region: str
    operations: list[str]  # op_ids in order


class RegionInfo(BaseModel):
    region_id: str
    parent_op: str
    blocks: list[str]  # block_ids in order


class EdgeInfo(BaseModel):
    from_value: str
    to_op: str
    to_operand_index: int


class IRGraph(BaseModel):
    root_id: str
    operations: list[OperationInfo]
    blocks: list[BlockInfo]
    regions: list[RegionInfo]
    values: list[ValueInfo]
    edges: list[EdgeInfo]

    def operation(self, op_id: str) -> OperationInfo:
        for op in self.operations:
            if op.op_id == op_id:
                return op
        raise KeyError(op_id)

    def users_of(self, value_id: str) -> list[str]:
        """op_ids consuming *value_id*, in use-list order (may repeat)."""
        return [edge.to_op for edge in self.edges if edge.from_value == value_id]
