"""Tests for standalone and attached operations."""

import pytest

from mlirsafe.errors import DanglingReferenceError, OwnershipError
from mlirsafe.ir import (
    Attribute,
    FloatAttribute,
    FloatType,
    Location,
    Operation,
    OperationBuilder,
    OperationRef,
    WalkOrder,
)
from tests.conftest import (
    EMPTY_MODULE,
    NESTED_MLIR,
    TWO_OPS_MLIR,
    USE_DEF_MLIR,
    requires_mlir,
)

pytestmark = requires_mlir

SINGLE_OP_MLIR = """\
module {
  "dialect.op"() : () -> ()
}
"""


def _body_ops(module_op):
    return module_op.region(0).first_block.operations


def _find(root, name):
    found = []
    root.walk(lambda op: found.append(op) if op.name.value == name else None)
    return found[0]


class TestParse:
    def test_print(self, bare_context):
        op = Operation.parse(bare_context, "module {}", "test.mlir")
        assert str(op) == EMPTY_MODULE
        op.close()

    def test_location_records_filename(self, bare_context):
        op = Operation.parse(bare_context, "module {}", "test.mlir")
        assert op.location == Location.file_line_col(bare_context, "test.mlir", 1, 1)
        op.close()

    def test_invalid_source(self, bare_context):
        assert Operation.parse(bare_context, "module {") is None

    def test_verifier_runs_on_parse(self, context):
        bad = """\
func.func @bad(%arg0: f32) -> i32 {
  return %arg0 : f32
}
"""
        assert Operation.parse(context, bad) is None

    def test_name_and_context(self, unregistered_context):
        op = Operation.parse(unregistered_context, EMPTY_MODULE)
        assert op.name.value == "builtin.module"
        assert op.context == unregistered_context
        op.close()


class TestStructure:
    def test_parents(self, unregistered_context):
        module = Operation.parse(unregistered_context, SINGLE_OP_MLIR)
        child = module.region(0).first_block.first_operation

        assert module.parent_operation is None
        assert module.parent_block is None
        assert child.parent_operation == module
        assert child.parent_block == module.region(0).first_block
        module.close()

    def test_siblings(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        first = module.region(0).first_block.first_operation
        second = first.next_in_parent_block

        assert first.name.value == "dialect.op1"
        assert second.name.value == "dialect.op2"
        assert second.next_in_parent_block is None
        module.close()

    def test_regions(self, unregistered_context):
        module = Operation.parse(unregistered_context, EMPTY_MODULE)
        assert module.num_regions == 1
        assert module.first_region == module.region(0)
        assert len(module.regions) == 1
        with pytest.raises(IndexError, match="region_index 1 out of range"):
            module.region(1)
        module.close()

    def test_operands_and_results(self, unregistered_context):
        module = Operation.parse(unregistered_context, USE_DEF_MLIR)
        op1, op2, op3 = _body_ops(module)

        assert op1.num_results == 2
        assert [str(r.type) for r in op1.results] == ["i1", "i16"]
        assert op2.num_operands == 2
        assert op2.operands == op1.results
        assert op3.operand(0) == op1.result(0)
        module.close()

    def test_index_errors(self, unregistered_context):
        module = Operation.parse(unregistered_context, USE_DEF_MLIR)
        op1, _, op3 = _body_ops(module)

        with pytest.raises(IndexError, match="operand_index 1 out of range"):
            op3.operand(1)
        with pytest.raises(IndexError):
            op3.operand(-1)
        with pytest.raises(IndexError, match="result_index 2 out of range"):
            op1.result(2)
        module.close()

    def test_set_operand(self, unregistered_context):
        module = Operation.parse(unregistered_context, USE_DEF_MLIR)
        op1, _, op3 = _body_ops(module)

        op3.set_operand(0, op1.result(1))
        assert op3.operand(0) == op1.result(1)
        with pytest.raises(IndexError):
            op3.set_operand(1, op1.result(0))
        module.close()

    def test_references_dangle_after_close(self, unregistered_context):
        module = Operation.parse(unregistered_context, SINGLE_OP_MLIR)
        region = module.region(0)
        child = region.first_block.first_operation
        module.close()

        with pytest.raises(DanglingReferenceError):
            region.first_block
        with pytest.raises(DanglingReferenceError):
            child.name

    def test_refs_cannot_be_constructed(self):
        with pytest.raises(OwnershipError):
            OperationRef()


class TestVerifyAndClone:
    def test_verify(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        assert module.verify()
        module.close()

    def test_verify_fails_for_misplaced_op(self, context):
        op = OperationBuilder("func.return", Location.unknown(context)).build()
        assert not op.verify()
        op.close()

    def test_clone_is_independent(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        copy = module.clone()

        assert copy.is_owned
        assert copy != module
        assert str(copy) == str(module)

        module.close()
        assert copy.region(0).first_block.first_operation.name.value == "dialect.op1"
        copy.close()


class TestDetachAndMove:
    def test_remove_from_parent(self, unregistered_context):
        module = Operation.parse(unregistered_context, SINGLE_OP_MLIR)
        child = module.region(0).first_block.first_operation

        detached = child.remove_from_parent()
        assert isinstance(detached, Operation)
        assert detached.is_owned
        assert str(module) == EMPTY_MODULE
        assert str(detached) == '"dialect.op"() : () -> ()\n'

        detached.close()
        module.close()

    def test_remove_detached_op(self, unregistered_context):
        module = Operation.parse(unregistered_context, EMPTY_MODULE)
        # The root reference has no parent block.
        root = module.region(0).first_block.parent_operation
        with pytest.raises(OwnershipError):
            root.remove_from_parent()
        module.close()

    def test_erase(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        first = module.region(0).first_block.first_operation
        first.erase()
        assert [op.name.value for op in _body_ops(module)] == ["dialect.op2"]
        with pytest.raises(DanglingReferenceError):
            first.name
        module.close()

    def test_results_dangle_after_detached_op_is_closed(self, unregistered_context):
        module = Operation.parse(
            unregistered_context, 'module {\n  %0 = "dialect.op"() : () -> i32\n}\n'
        )
        op = module.region(0).first_block.first_operation
        value = op.result(0)

        op.remove_from_parent().close()
        with pytest.raises(DanglingReferenceError):
            value.type
        with pytest.raises(DanglingReferenceError):
            op.name
        module.close()

    def test_move_after_and_before(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        op1, op2 = _body_ops(module)

        op1.move_after(op2)
        assert [op.name.value for op in _body_ops(module)] == ["dialect.op2", "dialect.op1"]
        op1.move_before(op2)
        assert [op.name.value for op in _body_ops(module)] == ["dialect.op1", "dialect.op2"]
        module.close()

    def test_move_requires_attached_ops(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        op1, op2 = _body_ops(module)
        detached = op2.remove_from_parent()

        with pytest.raises(OwnershipError):
            op1.move_after(detached)
        detached.close()
        module.close()


class TestAttributes:
    def test_generic_access(self, unregistered_context):
        op = Operation.parse(
            unregistered_context, '"dialect.op"() {a = 1 : i32, b = "s"} : () -> ()'
        )
        assert op.num_attributes == 2
        assert op.attribute_at(0).name.value == "a"
        assert str(op.attribute("b")) == '"s"'
        assert op.attribute("missing") is None
        with pytest.raises(IndexError):
            op.attribute_at(2)

        op.set_attribute("c", Attribute.parse(unregistered_context, "unit"))
        assert op.num_attributes == 3
        assert op.remove_attribute("a")
        assert not op.remove_attribute("a")
        assert [named.name.value for named in op.attributes] == ["b", "c"]
        op.close()

    def test_inherent_and_discardable_are_separate(self, unregistered_context):
        op = Operation.parse(
            unregistered_context, '"dialect.op"() <{x = 1 : i32}> {y = 2 : i32} : () -> ()'
        )
        assert op.has_inherent_attribute("x")
        assert not op.has_inherent_attribute("y")
        assert str(op.inherent_attribute("x")) == "1 : i32"
        assert op.discardable_attribute("x") is None
        assert str(op.discardable_attribute("y")) == "2 : i32"
        assert op.num_discardable_attributes == 1
        assert op.discardable_attribute_at(0).name.value == "y"

        op.set_discardable_attribute("x", Attribute.parse(unregistered_context, "3 : i32"))
        assert str(op.inherent_attribute("x")) == "1 : i32"
        assert str(op.discardable_attribute("x")) == "3 : i32"

        assert op.remove_discardable_attribute("y")
        assert not op.remove_discardable_attribute("y")
        op.close()

    def test_registered_op_inherent_attribute(self, context):
        func = Operation.parse(context, NESTED_MLIR)
        constant = _find(func, "arith.constant")
        f32 = FloatType.f32(context)

        assert constant.has_inherent_attribute("value")
        assert str(constant.inherent_attribute("value")) == "0.000000e+00 : f32"

        constant.set_inherent_attribute("value", FloatAttribute.get(context, f32, 1.5))
        assert FloatAttribute.try_from(constant.inherent_attribute("value")).value == 1.5

        assert constant.remove_inherent_attribute("value")
        assert constant.inherent_attribute("value") is None
        assert not constant.remove_inherent_attribute("value")
        func.close()

    def test_registered_op_discardable_attribute(self, context):
        func = Operation.parse(context, NESTED_MLIR)
        constant = _find(func, "arith.constant")
        constant.set_discardable_attribute("my.tag", Attribute.parse(context, "unit"))

        assert constant.discardable_attribute("my.tag") is not None
        assert not constant.has_inherent_attribute("my.tag")
        assert constant.discardable_attribute("value") is None
        func.close()


class TestWalk:
    def test_post_order(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        names = []
        module.walk(lambda op: names.append(op.name.value))
        assert names == ["dialect.op1", "dialect.op2", "builtin.module"]
        module.close()

    def test_pre_order(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        names = []
        module.walk(lambda op: names.append(op.name.value), WalkOrder.PRE_ORDER)
        assert names == ["builtin.module", "dialect.op1", "dialect.op2"]
        module.close()

    def test_nested_regions(self, context):
        func = Operation.parse(context, NESTED_MLIR)
        names = []
        func.walk(lambda op: names.append(op.name.value), WalkOrder.PRE_ORDER)
        assert names.index("scf.if") < names.index("scf.yield")
        assert names.count("scf.yield") == 2
        func.close()

    def test_callback_error_stops_walk(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        visited = []

        def visit(op):
            visited.append(op.name.value)
            raise ValueError("stop")

        with pytest.raises(ValueError, match="stop"):
            module.walk(visit)
        assert visited == ["dialect.op1"]
        module.close()

    def test_visited_ops_are_references(self, unregistered_context):
        module = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        visited = []
        module.walk(visited.append)
        assert all(isinstance(op, OperationRef) for op in visited)
        module.close()
        with pytest.raises(DanglingReferenceError):
            visited[0].name
