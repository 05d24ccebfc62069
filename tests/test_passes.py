"""Tests for passes, the pass manager and LogicalResult."""

import logging

import pytest

from mlirsafe._capi import MlirLogicalResult
from mlirsafe.errors import MissingSymbolError, OwnershipError
from mlirsafe.ir import Module, Operation
from mlirsafe.passes import (
    LogicalResult,
    Pass,
    PassManager,
    create_canonicalizer_pass,
    create_cse_pass,
    create_symbol_dce_pass,
)
from tests.conftest import REDUNDANT_MLIR, requires_mlir


def _count(root, name):
    names = []
    root.walk(lambda op: names.append(op.name.value))
    return names.count(name)


class TestLogicalResult:
    """Polarity of the native result: zero means failure."""

    def test_from_raw(self):
        assert LogicalResult.from_raw(MlirLogicalResult(1)) is LogicalResult.SUCCESS
        assert LogicalResult.from_raw(MlirLogicalResult(0)) is LogicalResult.FAILURE
        assert LogicalResult.from_raw(MlirLogicalResult(5)) is LogicalResult.SUCCESS

    def test_to_raw(self):
        assert LogicalResult.SUCCESS.to_raw().value == 1
        assert LogicalResult.FAILURE.to_raw().value == 0

    def test_predicates(self):
        assert LogicalResult.SUCCESS.succeeded()
        assert not LogicalResult.SUCCESS.failed()
        assert LogicalResult.FAILURE.failed()
        assert not LogicalResult.FAILURE.succeeded()

    def test_truthiness(self):
        assert LogicalResult.SUCCESS
        assert not LogicalResult.FAILURE

    def test_from_bool(self):
        assert LogicalResult.from_bool(True) is LogicalResult.SUCCESS
        assert LogicalResult.from_bool(False) is LogicalResult.FAILURE


@requires_mlir
class TestPassManager:
    def test_add_pass_transfers_ownership(self, context):
        manager = PassManager(context)
        pass_ = create_canonicalizer_pass()
        manager.add_pass(pass_)

        assert pass_.is_transferred
        assert manager.num_passes == 1
        with pytest.raises(OwnershipError):
            manager.add_pass(pass_)
        manager.close()

    def test_empty_manager_is_truthy(self, context):
        manager = PassManager(context)
        assert manager
        assert manager.num_passes == 0
        manager.close()

    def test_only_passes_can_be_added(self, context):
        manager = PassManager(context)
        with pytest.raises(OwnershipError):
            manager.add_pass(object())
        manager.close()

    def test_cse_removes_redundant_op(self, context):
        module = Module.parse(context, REDUNDANT_MLIR)
        assert _count(module.operation, "arith.addi") == 2

        manager = PassManager(context)
        manager.add_pass(create_cse_pass())
        result = manager.run(module)

        assert result is LogicalResult.SUCCESS
        assert _count(module.operation, "arith.addi") == 1
        manager.close()
        module.close()

    def test_symbol_dce_keeps_public_functions(self, context):
        module = Module.parse(context, REDUNDANT_MLIR)
        manager = PassManager(context)
        manager.add_pass(create_symbol_dce_pass())

        assert manager.run(module.operation).succeeded()
        assert _count(module.operation, "func.func") == 1
        manager.close()
        module.close()

    def test_run_on_unregistered_op_fails(self, unregistered_context):
        op = Operation.parse(unregistered_context, '"dialect.op"() : () -> ()')
        manager = PassManager(unregistered_context)
        manager.add_pass(create_cse_pass())

        assert manager.run(op) is LogicalResult.FAILURE
        manager.close()
        op.close()

    def test_manager_blocks_context_close(self, bare_context):
        manager = PassManager(bare_context)
        with pytest.raises(OwnershipError):
            bare_context.close()
        manager.close()


@requires_mlir
class TestPass:
    def test_unknown_constructor(self):
        with pytest.raises(MissingSymbolError):
            Pass.from_raw_fn("mlirCreateTransformsNoSuchPass")

    def test_closing_unadded_pass_leaks(self, caplog):
        pass_ = create_cse_pass()
        with caplog.at_level(logging.WARNING, logger="mlirsafe.ownership"):
            pass_.close()
        assert "leaked" in caplog.text
        assert pass_.is_destroyed
