"""Types interned in a context, and their concrete variants.

A concrete variant is reached from an erased :class:`Type` with
``Variant.try_from(erased)``, which returns ``None`` unless the native
``mlirTypeIsA*`` predicate accepts the handle.  Variants carry no state
beyond the erased handle.
"""

from __future__ import annotations

import ctypes
from typing import TYPE_CHECKING, Sequence, TypeVar

from mlirsafe._capi import capi
from mlirsafe.ownership import Borrowed
from mlirsafe.strings import StringRef, print_to_string

if TYPE_CHECKING:
    from mlirsafe.context import ContextRef
    from mlirsafe.dialect import Dialect

TypeT = TypeVar("TypeT", bound="Type")


class Type(Borrowed):
    _equal_fn = "mlirTypeEqual"
    # Name of the ``mlirTypeIsA*`` predicate selecting this variant.
    _isa_fn: str | None = None

    @classmethod
    def parse(cls, context, text: str) -> Type | None:
        """Parse *text* (e.g. ``"i32"``), returning ``None`` on a syntax error."""
        raw = capi().mlirTypeParseGet(context.to_raw(), StringRef(text).to_raw())
        return Type.try_from_raw(raw, context._interned_owner())

    @classmethod
    def is_a(cls, other: Type) -> bool:
        if cls._isa_fn is None:
            return True
        return bool(getattr(capi(), cls._isa_fn)(other.to_raw()))

    @classmethod
    def try_from(cls: type[TypeT], other: Type) -> TypeT | None:
        """Reinterpret *other* as this variant if the native predicate allows it."""
        if not cls.is_a(other):
            return None
        return cls.from_raw(other.to_raw(), other._owner)

    def erase(self) -> Type:
        return Type.from_raw(self.to_raw(), self._owner)

    def downcast(self) -> Type:
        """Return the most specific known variant of this type."""
        for variant in _VARIANTS:
            if variant.is_a(self):
                return variant.from_raw(self.to_raw(), self._owner)
        return self.erase()

    @property
    def context(self) -> ContextRef:
        from mlirsafe.context import ContextRef

        return ContextRef.from_raw(capi().mlirTypeGetContext(self.to_raw()), self._anchor())

    @property
    def dialect(self) -> Dialect:
        from mlirsafe.dialect import Dialect

        return Dialect.from_raw(capi().mlirTypeGetDialect(self.to_raw()), self._interned_owner())

    def __str__(self) -> str:
        return print_to_string("mlirTypePrint", self.to_raw())


class IntegerType(Type):
    _isa_fn = "mlirTypeIsAInteger"

    @classmethod
    def signless(cls, context, bitwidth: int) -> IntegerType:
        raw = capi().mlirIntegerTypeGet(context.to_raw(), bitwidth)
        return cls.from_raw(raw, context._interned_owner())

    @classmethod
    def signed(cls, context, bitwidth: int) -> IntegerType:
        raw = capi().mlirIntegerTypeSignedGet(context.to_raw(), bitwidth)
        return cls.from_raw(raw, context._interned_owner())

    @classmethod
    def unsigned(cls, context, bitwidth: int) -> IntegerType:
        raw = capi().mlirIntegerTypeUnsignedGet(context.to_raw(), bitwidth)
        return cls.from_raw(raw, context._interned_owner())

    @property
    def bitwidth(self) -> int:
        return capi().mlirIntegerTypeGetWidth(self.to_raw())

    def is_signless(self) -> bool:
        return bool(capi().mlirIntegerTypeIsSignless(self.to_raw()))

    def is_signed(self) -> bool:
        return bool(capi().mlirIntegerTypeIsSigned(self.to_raw()))

    def is_unsigned(self) -> bool:
        return bool(capi().mlirIntegerTypeIsUnsigned(self.to_raw()))


class FloatType(Type):
    """``f32`` or ``f64``."""

    @classmethod
    def is_a(cls, other: Type) -> bool:
        raw = other.to_raw()
        return bool(capi().mlirTypeIsAF32(raw) or capi().mlirTypeIsAF64(raw))

    @classmethod
    def f32(cls, context) -> FloatType:
        return cls.from_raw(capi().mlirF32TypeGet(context.to_raw()), context._interned_owner())

    @classmethod
    def f64(cls, context) -> FloatType:
        return cls.from_raw(capi().mlirF64TypeGet(context.to_raw()), context._interned_owner())

    @property
    def bitwidth(self) -> int:
        return 32 if capi().mlirTypeIsAF32(self.to_raw()) else 64


class NoneType(Type):
    _isa_fn = "mlirTypeIsANone"

    @classmethod
    def get(cls, context) -> NoneType:
        return cls.from_raw(capi().mlirNoneTypeGet(context.to_raw()), context._interned_owner())


class IndexType(Type):
    _isa_fn = "mlirTypeIsAIndex"

    @classmethod
    def get(cls, context) -> IndexType:
        return cls.from_raw(capi().mlirIndexTypeGet(context.to_raw()), context._interned_owner())


class RankedTensorType(Type):
    _isa_fn = "mlirTypeIsARankedTensor"

    @classmethod
    def get(cls, shape: Sequence[int], element_type: Type) -> RankedTensorType:
        dims = (ctypes.c_int64 * len(shape))(*shape)
        raw = capi().mlirRankedTensorTypeGet(
            len(shape), dims, element_type.to_raw(), capi().mlirAttributeGetNull()
        )
        return cls.from_raw(raw, element_type._interned_owner())

    @property
    def rank(self) -> int:
        return capi().mlirShapedTypeGetRank(self.to_raw())

    def dim_size(self, dim: int) -> int:
        rank = self.rank
        if not 0 <= dim < rank:
            raise IndexError(f"dim {dim} out of range (tensor has rank {rank})")
        return capi().mlirShapedTypeGetDimSize(self.to_raw(), dim)

    @property
    def shape(self) -> list[int]:
        return [self.dim_size(i) for i in range(self.rank)]

    @property
    def element_type(self) -> Type:
        raw = capi().mlirShapedTypeGetElementType(self.to_raw())
        return Type.from_raw(raw, self._owner).downcast()


_VARIANTS: list[type[Type]] = [IntegerType, FloatType, NoneType, IndexType, RankedTensorType]
