from __future__ import annotations

import ctypes
from typing import TYPE_CHECKING, Sequence

from mlirsafe._capi import MlirLocation, capi
from mlirsafe.ownership import Borrowed
from mlirsafe.strings import StringRef, print_to_string

if TYPE_CHECKING:
    from mlirsafe.context import ContextRef
    from mlirsafe.ir.attributes import Attribute


class Location(Borrowed):
    """A source position, owned by its context.

    Equality is structural: two locations built from the same parts compare
    equal.
    """

    _equal_fn = "mlirLocationEqual"

    @classmethod
    def file_line_col(cls, context, filename: str, line: int, column: int) -> Location:
        raw = capi().mlirLocationFileLineColGet(
            context.to_raw(), StringRef(filename).to_raw(), line, column
        )
        return cls.from_raw(raw, context._interned_owner())

    @classmethod
    def call_site(cls, callee: Location, caller: Location) -> Location:
        callee._check_context(caller, "caller location")
        raw = capi().mlirLocationCallSiteGet(callee.to_raw(), caller.to_raw())
        return cls.from_raw(raw, callee._interned_owner())

    @classmethod
    def fused(
        cls, context, locations: Sequence[Location], metadata: Attribute | None = None
    ) -> Location:
        """Fuse *locations* into one, optionally tagged with *metadata*."""
        for location in locations:
            context._check_context(location, "fused location")
        if metadata is not None:
            context._check_context(metadata, "metadata")
        array = (MlirLocation * len(locations))(*(loc.to_raw() for loc in locations))
        raw_metadata = metadata.to_raw() if metadata is not None else capi().mlirAttributeGetNull()
        raw = capi().mlirLocationFusedGet(
            context.to_raw(), len(locations),
            ctypes.cast(array, ctypes.POINTER(MlirLocation)), raw_metadata,
        )
        return cls.from_raw(raw, context._interned_owner())

    @classmethod
    def name(cls, context, name: str, child: Location | None = None) -> Location:
        # A null child location means "no child".
        raw_child = child.to_raw() if child is not None else MlirLocation()
        raw = capi().mlirLocationNameGet(context.to_raw(), StringRef(name).to_raw(), raw_child)
        return cls.from_raw(raw, context._interned_owner())

    @classmethod
    def unknown(cls, context) -> Location:
        return cls.from_raw(capi().mlirLocationUnknownGet(context.to_raw()), context._interned_owner())

    @property
    def context(self) -> ContextRef:
        from mlirsafe.context import ContextRef

        return ContextRef.from_raw(capi().mlirLocationGetContext(self.to_raw()), self._anchor())

    def __str__(self) -> str:
        return print_to_string("mlirLocationPrint", self.to_raw())
