"""Incremental construction of operations.

:class:`OperationBuilder` only collects Python objects.  Nothing native is
allocated until :meth:`OperationBuilder.build`, so a builder that is dropped
half-configured leaks nothing.
"""

from __future__ import annotations

import ctypes
import logging
from typing import Iterable

from mlirsafe._capi import MlirNamedAttribute, MlirRegion, MlirType, MlirValue, capi
from mlirsafe.errors import OwnershipError
from mlirsafe.ir.attributes import NamedAttribute
from mlirsafe.ir.location import Location
from mlirsafe.ir.operation import Operation
from mlirsafe.ir.region import Region
from mlirsafe.ir.types import Type
from mlirsafe.ir.value import Value
from mlirsafe.strings import StringRef

logger = logging.getLogger(__name__)


class OperationBuilder:
    """Accumulates the parts of an operation named *name* at *location*.

    Every ``add_*`` method returns the builder so calls can be chained::

        op = (
            OperationBuilder("dialect.op1", location)
            .add_results([i1, i16])
            .add_attributes([attr.with_name("attribute name")])
            .build()
        )
    """

    def __init__(self, name: str, location: Location) -> None:
        self.name = name
        self.location = location
        self._results: list[Type] = []
        self._operands: list[Value] = []
        self._regions: list[Region] = []
        self._attributes: list[NamedAttribute] = []
        self._infer_result_types = False
        self._built = False

    def add_results(self, types: Iterable[Type]) -> OperationBuilder:
        self._results.extend(types)
        return self

    def add_operands(self, values: Iterable[Value]) -> OperationBuilder:
        self._operands.extend(values)
        return self

    def add_regions(self, regions: Iterable[Region]) -> OperationBuilder:
        """Queue standalone *regions*; the built operation will own them."""
        for region in regions:
            if not isinstance(region, Region) or not region.is_owned:
                raise OwnershipError("Only standalone regions can be added to an operation")
            self._regions.append(region)
        return self

    def add_attributes(self, attributes: Iterable[NamedAttribute]) -> OperationBuilder:
        self._attributes.extend(attributes)
        return self

    def enable_result_type_inference(self) -> OperationBuilder:
        self._infer_result_types = True
        return self

    def _check_contexts(self) -> None:
        location = self.location
        for type in self._results:
            location._check_context(type, "result type")
        for value in self._operands:
            location._check_context(value, "operand")
        for attribute in self._attributes:
            location._check_context(attribute.name, "attribute name")
            location._check_context(attribute.attribute, "attribute")
        for region in self._regions:
            location._check_context(region, "region")

    def build(self) -> Operation | None:
        """Create the operation.

        Returns ``None`` when the operation is not registered and the context
        does not allow unregistered dialects; in that case nothing is created
        and queued regions stay owned by their wrappers.
        """
        if self._built:
            raise OwnershipError(f"Builder for {self.name} was already built")
        self._check_contexts()
        context = self.location.context
        if (
            not context.allows_unregistered_dialects()
            and not context.is_registered_operation(self.name)
        ):
            logger.debug("Not building unregistered operation %s", self.name)
            return None
        self._built = True

        lib = capi()
        name = StringRef(self.name)
        state = lib.mlirOperationStateGet(name.to_raw(), self.location.to_raw())
        state_ptr = ctypes.byref(state)
        # Arrays must stay referenced until mlirOperationCreate has copied them.
        keep_alive = [name]
        if self._results:
            array = (MlirType * len(self._results))(*(t.to_raw() for t in self._results))
            keep_alive.append(array)
            lib.mlirOperationStateAddResults(state_ptr, len(self._results), array)
        if self._operands:
            array = (MlirValue * len(self._operands))(*(v.to_raw() for v in self._operands))
            keep_alive.append(array)
            lib.mlirOperationStateAddOperands(state_ptr, len(self._operands), array)
        if self._attributes:
            array = (MlirNamedAttribute * len(self._attributes))(
                *(a.to_raw() for a in self._attributes)
            )
            keep_alive.append(array)
            lib.mlirOperationStateAddAttributes(state_ptr, len(self._attributes), array)
        if self._regions:
            array = (MlirRegion * len(self._regions))(*(r.to_raw() for r in self._regions))
            keep_alive.append(array)
            lib.mlirOperationStateAddOwnedRegions(state_ptr, len(self._regions), array)
        if self._infer_result_types:
            lib.mlirOperationStateEnableResultTypeInference(state_ptr)

        raw = lib.mlirOperationCreate(state_ptr)
        operation = Operation.try_from_raw(raw, self.location._context_anchor())
        for region in self._regions:
            region._transfer(operation)
        return operation
