"""Tests for OperationBuilder."""

import pytest

from mlirsafe.errors import OwnershipError
from mlirsafe.ir import (
    Block,
    IntegerAttribute,
    IntegerType,
    Location,
    OperationBuilder,
    Region,
)
from tests.conftest import requires_mlir

pytestmark = requires_mlir


class TestBuild:
    def test_results_and_attributes(self, unregistered_context):
        location = Location.unknown(unregistered_context)
        i1 = IntegerType.signless(unregistered_context, 1)
        i16 = IntegerType.signless(unregistered_context, 16)
        attr = IntegerAttribute.get(IntegerType.signless(unregistered_context, 32), 42)

        op = (
            OperationBuilder("dialect.op1", location)
            .add_results([i1, i16])
            .add_attributes([attr.with_name("attribute name")])
            .build()
        )

        assert str(op) == (
            '%0:2 = "dialect.op1"() {"attribute name" = 42 : i32} : () -> (i1, i16)\n'
        )
        assert op.is_owned
        assert op.location == location
        op.close()

    def test_operands(self, unregistered_context):
        i32 = IntegerType.signless(unregistered_context, 32)
        location = Location.unknown(unregistered_context)
        block = Block([i32, i32], [location, location])

        op = OperationBuilder("dialect.use", location).add_operands(block.arguments).build()
        ref = block.append_operation(op)

        assert ref.operands == block.arguments
        assert [use.owner for use in block.argument(1).uses] == [ref]
        block.close()

    def test_uses_start_with_the_latest_user(self, unregistered_context):
        i32 = IntegerType.signless(unregistered_context, 32)
        location = Location.unknown(unregistered_context)
        block = Block([i32], [location])
        value = block.argument(0)

        first = block.append_operation(
            OperationBuilder("dialect.first", location).add_operands([value]).build()
        )
        second = block.append_operation(
            OperationBuilder("dialect.second", location).add_operands([value]).build()
        )

        assert [use.owner for use in value.uses] == [second, first]
        assert value.first_use.owner == second
        block.close()

    def test_result_type_inference(self, context):
        i32 = IntegerType.signless(context, 32)
        location = Location.unknown(context)
        block = Block([i32, i32], [location, location])

        op = (
            OperationBuilder("arith.addi", location)
            .add_operands(block.arguments)
            .enable_result_type_inference()
            .build()
        )
        ref = block.append_operation(op)

        assert ref.num_results == 1
        assert ref.result(0).type == i32
        block.close()

    def test_unregistered_op_is_not_built(self, bare_context):
        region = Region()
        builder = OperationBuilder("dialect.op1", Location.unknown(bare_context))
        builder.add_regions([region])

        assert builder.build() is None
        assert region.is_owned
        region.close()

    def test_built_only_once(self, unregistered_context):
        builder = OperationBuilder("dialect.op", Location.unknown(unregistered_context))
        op = builder.build()
        with pytest.raises(OwnershipError):
            builder.build()
        op.close()

    def test_regions_must_be_standalone(self, unregistered_context):
        location = Location.unknown(unregistered_context)
        region = Region()
        op = OperationBuilder("dialect.outer", location).add_regions([region]).build()

        with pytest.raises(OwnershipError):
            OperationBuilder("dialect.other", location).add_regions([region])
        with pytest.raises(OwnershipError):
            OperationBuilder("dialect.other", location).add_regions([op.region(0)])
        op.close()

    def test_dropped_builder_allocates_nothing(self, unregistered_context):
        OperationBuilder("dialect.op", Location.unknown(unregistered_context)).add_results(
            [IntegerType.signless(unregistered_context, 8)]
        )
        assert unregistered_context.live_dependents() == []
