"""Tests for Module."""

import pytest

from mlirsafe.errors import DanglingReferenceError, OwnershipError
from mlirsafe.ir import Location, Module, Operation
from tests.conftest import EMPTY_MODULE, TWO_OPS_MLIR, requires_mlir

pytestmark = requires_mlir


class TestModule:
    def test_parse(self, bare_context):
        module = Module.parse(bare_context, "module {}")
        assert str(module) == EMPTY_MODULE
        assert module.context == bare_context
        assert module.operation.name.value == "builtin.module"
        module.close()

    def test_parse_invalid(self, bare_context):
        assert Module.parse(bare_context, "module {") is None

    def test_empty(self, bare_context):
        module = Module.empty(Location.unknown(bare_context))
        assert module.body.first_operation is None
        assert str(module) == EMPTY_MODULE
        module.close()

    def test_body_accepts_operations(self, unregistered_context):
        module = Module.empty(Location.unknown(unregistered_context))
        op = Operation.parse(unregistered_context, '"dialect.op"() : () -> ()')
        module.body.append_operation(op)

        assert op.is_transferred
        assert '"dialect.op"() : () -> ()' in str(module)
        assert module.body.parent_operation == module.operation
        module.close()

    def test_from_operation(self, unregistered_context):
        op = Operation.parse(unregistered_context, TWO_OPS_MLIR)
        module = Module.from_operation(op)

        assert op.is_transferred
        assert [o.name.value for o in module.body.operations] == ["dialect.op1", "dialect.op2"]
        module.close()
        assert not op.is_alive()

    def test_from_non_module_operation(self, unregistered_context):
        op = Operation.parse(unregistered_context, '"dialect.op"() : () -> ()')
        assert Module.from_operation(op) is None
        assert op.is_owned
        op.close()

    def test_from_attached_operation(self, unregistered_context):
        module = Module.parse(unregistered_context, TWO_OPS_MLIR)
        with pytest.raises(OwnershipError):
            Module.from_operation(module.operation)
        module.close()

    def test_references_dangle_after_close(self, bare_context):
        module = Module.parse(bare_context, "module {}")
        body = module.body
        module.close()
        with pytest.raises(DanglingReferenceError):
            body.first_operation

    def test_registered_with_context(self, bare_context):
        module = Module.parse(bare_context, "module {}")
        with pytest.raises(OwnershipError):
            bare_context.close()
        module.close()
