from mlirsafe.ir.attributes import (
    Attribute,
    BoolAttribute,
    DenseBoolArrayAttribute,
    DenseElementsAttribute,
    DenseI32ArrayAttribute,
    DenseStringElementsAttribute,
    FloatAttribute,
    IntegerAttribute,
    NamedAttribute,
    StringAttribute,
)
from mlirsafe.ir.block import Block, BlockRef
from mlirsafe.ir.builder import OperationBuilder
from mlirsafe.ir.identifier import Identifier
from mlirsafe.ir.location import Location
from mlirsafe.ir.module import Module
from mlirsafe.ir.operation import Operation, OperationRef, WalkOrder
from mlirsafe.ir.region import Region, RegionRef
from mlirsafe.ir.types import (
    FloatType,
    IndexType,
    IntegerType,
    NoneType,
    RankedTensorType,
    Type,
)
from mlirsafe.ir.value import OpOperand, Value

__all__ = [
    "Attribute",
    "Block",
    "BlockRef",
    "BoolAttribute",
    "DenseBoolArrayAttribute",
    "DenseElementsAttribute",
    "DenseI32ArrayAttribute",
    "DenseStringElementsAttribute",
    "FloatAttribute",
    "FloatType",
    "Identifier",
    "IndexType",
    "IntegerAttribute",
    "IntegerType",
    "Location",
    "Module",
    "NamedAttribute",
    "NoneType",
    "OpOperand",
    "Operation",
    "OperationBuilder",
    "OperationRef",
    "RankedTensorType",
    "Region",
    "RegionRef",
    "StringAttribute",
    "Type",
    "Value",
    "WalkOrder",
]
