"""Tests for Context and DialectRegistry against the native library."""

import gc

import pytest

from mlirsafe.context import Context, ContextRef, DialectRegistry
from mlirsafe.errors import DanglingReferenceError, OwnershipError
from mlirsafe.ir import Operation, Type
from tests.conftest import EMPTY_MODULE, requires_mlir

pytestmark = requires_mlir


def _all_dialects_registry() -> DialectRegistry:
    registry = DialectRegistry()
    registry.register_all_dialects()
    return registry


class TestCreation:
    def test_new_context_only_has_builtin(self, bare_context):
        assert bare_context.num_registered_dialects() == 1
        assert bare_context.num_loaded_dialects() == 1

    def test_registry_registers_without_loading(self):
        with _all_dialects_registry() as registry:
            context = Context(registry)
        assert context.num_registered_dialects() > 1
        assert context.num_loaded_dialects() == 1
        context.close()

    def test_context_manager(self):
        with Context() as context:
            assert context.is_owned
        assert context.is_destroyed

    def test_threading_can_be_toggled(self):
        with Context(threading=True) as context:
            context.set_threading_enabled(False)
            context.set_threading_enabled(True)


class TestDialects:
    def test_append_dialect_registry(self, bare_context):
        with _all_dialects_registry() as registry:
            bare_context.append_dialect_registry(registry)
        assert bare_context.num_registered_dialects() > 1
        assert bare_context.num_loaded_dialects() == 1

    def test_load_all_available_dialects(self, bare_context):
        with _all_dialects_registry() as registry:
            bare_context.append_dialect_registry(registry)
        bare_context.load_all_available_dialects()
        assert bare_context.num_loaded_dialects() == bare_context.num_registered_dialects()

    def test_get_or_load_dialect(self, bare_context):
        assert bare_context.get_or_load_dialect("builtin").namespace == "builtin"
        assert bare_context.get_or_load_dialect("func") is None

        with _all_dialects_registry() as registry:
            bare_context.append_dialect_registry(registry)
        assert bare_context.get_or_load_dialect("func").namespace == "func"
        assert bare_context.num_loaded_dialects() > 1

    def test_is_registered_operation(self, bare_context):
        assert bare_context.is_registered_operation("builtin.module")
        assert not bare_context.is_registered_operation("func.func")

    def test_is_registered_operation_after_loading(self, context):
        assert context.is_registered_operation("func.func")
        assert not context.is_registered_operation("dialect.op")


class TestUnregisteredDialects:
    def test_disallowed_by_default(self, bare_context):
        assert not bare_context.allows_unregistered_dialects()

    def test_toggle(self, bare_context):
        bare_context.set_allow_unregistered_dialects(True)
        assert bare_context.allows_unregistered_dialects()
        bare_context.set_allow_unregistered_dialects(False)
        assert not bare_context.allows_unregistered_dialects()

    def test_parsing_unregistered_op_requires_permission(self, bare_context):
        source = '"dialect.op"() : () -> ()'
        assert Operation.parse(bare_context, source) is None
        bare_context.set_allow_unregistered_dialects(True)
        op = Operation.parse(bare_context, source)
        assert op is not None
        op.close()


class TestEquality:
    def test_equal_to_itself(self, bare_context):
        assert bare_context == bare_context

    def test_distinct_contexts_differ(self):
        first = Context()
        second = Context()
        assert first != second
        first.close()
        second.close()

    def test_reference_from_ir_equals_context(self, unregistered_context):
        op = Operation.parse(unregistered_context, EMPTY_MODULE)
        ref = op.context
        assert isinstance(ref, ContextRef)
        assert ref == unregistered_context
        assert ref.allows_unregistered_dialects()
        op.close()


class TestLifetime:
    def test_close_refused_while_ir_is_owned(self):
        context = Context()
        op = Operation.parse(context, EMPTY_MODULE)

        with pytest.raises(OwnershipError):
            context.close()
        assert context.live_dependents() == [op]

        op.close()
        context.close()
        assert context.is_destroyed

    def test_dropped_ir_does_not_block_close(self):
        context = Context()
        Operation.parse(context, EMPTY_MODULE)
        gc.collect()
        assert context.live_dependents() == []
        context.close()

    def test_interned_values_dangle_after_close(self):
        context = Context()
        i32 = Type.parse(context, "i32")
        context.close()
        with pytest.raises(DanglingReferenceError):
            str(i32)

    def test_interned_values_keep_context_alive(self):
        i32 = Type.parse(Context(), "i32")
        gc.collect()
        assert str(i32) == "i32"

    def test_registry_outlives_context_creation(self):
        registry = _all_dialects_registry()
        context = Context(registry)
        registry.close()
        assert context.get_or_load_dialect("arith") is not None
        context.close()
