import ctypes
import gc

import pytest

import mlirsafe._capi as _capi
from mlirsafe.context import Context, DialectRegistry
from mlirsafe.errors import LibraryNotFoundError


EMPTY_MODULE = """\
module {
}
"""

TWO_OPS_MLIR = """\
module {
  "dialect.op1"() : () -> ()
  "dialect.op2"() : () -> ()
}
"""

USE_DEF_MLIR = """\
module {
  %0:2 = "dialect.op1"() {"attribute name" = 42 : i32} : () -> (i1, i16)
  "dialect.op2"(%0#0, %0#1) : (i1, i16) -> ()
  "dialect.op3"(%0#0) : (i1) -> ()
}
"""

SIMPLE_MLIR = """\
func.func @add_mul(%arg0: f32, %arg1: f32, %arg2: f32) -> f32 {
  %0 = arith.addf %arg0, %arg1 : f32
  %1 = arith.mulf %0, %arg2 : f32
  return %1 : f32
}
"""

NESTED_MLIR = """\
func.func @nested(%cond: i1, %arg0: f32, %arg1: f32) -> f32 {
  %c0 = arith.constant 0.0 : f32
  %result = scf.if %cond -> f32 {
    %a = arith.addf %arg0, %arg1 : f32
    scf.yield %a : f32
  } else {
    scf.yield %c0 : f32
  }
  return %result : f32
}
"""

REDUNDANT_MLIR = """\
func.func @redundant(%arg0: i32) -> i32 {
  %0 = arith.addi %arg0, %arg0 : i32
  %1 = arith.addi %arg0, %arg0 : i32
  %2 = arith.muli %0, %1 : i32
  return %2 : i32
}
"""


def _native_library_available() -> bool:
    try:
        _capi.capi()
    except LibraryNotFoundError:
        return False
    return True


requires_mlir = pytest.mark.skipif(
    not _native_library_available(),
    reason="MLIR C API library not available (install mlir-python-bindings)",
)


def _close_after_gc(context: Context) -> None:
    # Let IR wrappers dropped by the test release their handles first.
    gc.collect()
    context.close()


@pytest.fixture
def bare_context():
    """A context with only the builtin dialect."""
    context = Context()
    yield context
    _close_after_gc(context)


@pytest.fixture
def unregistered_context():
    """A builtin-only context that accepts operations of unknown dialects."""
    context = Context()
    context.set_allow_unregistered_dialects(True)
    yield context
    _close_after_gc(context)


@pytest.fixture
def context():
    """A context with every upstream dialect loaded."""
    with DialectRegistry() as registry:
        registry.register_all_dialects()
        context = Context(registry)
    context.load_all_available_dialects()
    yield context
    _close_after_gc(context)


# -- Fakes for tests that never touch the native library -----------------


class FakeCAPI:
    """Stands in for ``mlirsafe._capi.CAPI`` and records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.results: dict[str, object] = {}

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def function(*args):
            self.calls.append((name, args))
            result = self.results.get(name)
            return result(*args) if callable(result) else result

        return function

    def called(self, name: str) -> list[tuple]:
        return [args for called_name, args in self.calls if called_name == name]


class FakeHandle(ctypes.Structure):
    _fields_ = [("ptr", ctypes.c_void_p)]


@pytest.fixture
def fake_capi(monkeypatch):
    fake = FakeCAPI()
    monkeypatch.setattr(_capi, "_CAPI", fake)
    yield fake
    # Finalizers of leftover fake wrappers must not reach the real library.
    gc.collect()
