"""Pass scheduling: passes, the pass manager and logical results."""

from __future__ import annotations

import enum
import logging

from mlirsafe._capi import MlirLogicalResult, MlirPass, capi
from mlirsafe.errors import OwnershipError
from mlirsafe.ownership import Owned

logger = logging.getLogger(__name__)


class LogicalResult(enum.Enum):
    """Outcome of verification or of a pass pipeline run."""

    SUCCESS = "success"
    FAILURE = "failure"

    @classmethod
    def from_raw(cls, raw: MlirLogicalResult) -> LogicalResult:
        return cls.SUCCESS if raw.value != 0 else cls.FAILURE

    @classmethod
    def from_bool(cls, succeeded: bool) -> LogicalResult:
        return cls.SUCCESS if succeeded else cls.FAILURE

    def to_raw(self) -> MlirLogicalResult:
        return MlirLogicalResult(1 if self is LogicalResult.SUCCESS else 0)

    def succeeded(self) -> bool:
        return self is LogicalResult.SUCCESS

    def failed(self) -> bool:
        return self is LogicalResult.FAILURE

    def __bool__(self) -> bool:
        return self.succeeded()


class Pass(Owned):
    """An opaque pass, owned until a :class:`PassManager` adopts it.

    The C API cannot destroy a pass that was never added to a manager, so
    closing one only logs the leak.
    """

    @classmethod
    def from_raw_fn(cls, symbol: str) -> Pass:
        """Create a pass by calling the native constructor *symbol*, e.g. ``"mlirCreateTransformsCSE"``."""
        create = capi().bind(symbol, MlirPass, [])
        return cls.from_raw(create())


def create_canonicalizer_pass() -> Pass:
    return Pass.from_raw_fn("mlirCreateTransformsCanonicalizer")


def create_cse_pass() -> Pass:
    return Pass.from_raw_fn("mlirCreateTransformsCSE")


def create_symbol_dce_pass() -> Pass:
    return Pass.from_raw_fn("mlirCreateTransformsSymbolDCE")


class PassManager(Owned):
    """Runs an append-only list of passes over an operation."""

    _destroy_fn = "mlirPassManagerDestroy"

    def __init__(self, context) -> None:
        self._adopt(capi().mlirPassManagerCreate(context.to_raw()), context._context_anchor())
        self._pass_count = 0

    def add_pass(self, pass_: Pass) -> None:
        """Append *pass_*; the manager takes ownership of it."""
        if not isinstance(pass_, Pass):
            raise OwnershipError(f"Expected a Pass, got {type(pass_).__name__}")
        raw_manager = self.to_raw()
        capi().mlirPassManagerAddOwnedPass(raw_manager, pass_._transfer(self))
        self._pass_count += 1

    @property
    def num_passes(self) -> int:
        return self._pass_count

    def run(self, operation) -> LogicalResult:
        """Run the pipeline on *operation* (an operation or a module).

        A failing pipeline is reported as :attr:`LogicalResult.FAILURE`.
        """
        from mlirsafe.ir.module import Module

        if isinstance(operation, Module):
            operation = operation.operation
        self._check_context(operation, "operation")
        raw = capi().mlirPassManagerRunOnOp(self.to_raw(), operation.to_raw())
        result = LogicalResult.from_raw(raw)
        logger.debug(
            "Ran %d pass(es) on %s: %s", self._pass_count, operation.name.value, result.value
        )
        return result
