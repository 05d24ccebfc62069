"""Attributes interned in a context, and their concrete variants.

Like types, concrete attribute variants are reached with
``Variant.try_from(erased)`` and share the erased handle.
"""

from __future__ import annotations

import ctypes
from typing import TYPE_CHECKING, Iterator, Sequence, TypeVar

from mlirsafe._capi import MlirNamedAttribute, MlirStringRef, capi
from mlirsafe.ir.identifier import Identifier
from mlirsafe.ir.types import IntegerType, RankedTensorType, Type
from mlirsafe.ownership import Borrowed, NativeHandle
from mlirsafe.strings import StringRef, decode, print_to_string

if TYPE_CHECKING:
    from mlirsafe.context import ContextRef
    from mlirsafe.dialect import Dialect

AttributeT = TypeVar("AttributeT", bound="Attribute")


class Attribute(Borrowed):
    _equal_fn = "mlirAttributeEqual"
    _isa_fn: str | None = None

    @classmethod
    def parse(cls, context, text: str) -> Attribute | None:
        """Parse *text* (e.g. ``"42 : i32"``), returning ``None`` on a syntax error."""
        raw = capi().mlirAttributeParseGet(context.to_raw(), StringRef(text).to_raw())
        return Attribute.try_from_raw(raw, context._interned_owner())

    @classmethod
    def is_a(cls, other: Attribute) -> bool:
        if cls._isa_fn is None:
            return True
        return bool(getattr(capi(), cls._isa_fn)(other.to_raw()))

    @classmethod
    def try_from(cls: type[AttributeT], other: Attribute) -> AttributeT | None:
        if not cls.is_a(other):
            return None
        return cls.from_raw(other.to_raw(), other._owner)

    def erase(self) -> Attribute:
        return Attribute.from_raw(self.to_raw(), self._owner)

    def downcast(self) -> Attribute:
        """Return the most specific known variant of this attribute."""
        for variant in _VARIANTS:
            if variant.is_a(self):
                return variant.from_raw(self.to_raw(), self._owner)
        return self.erase()

    @property
    def context(self) -> ContextRef:
        from mlirsafe.context import ContextRef

        return ContextRef.from_raw(capi().mlirAttributeGetContext(self.to_raw()), self._anchor())

    @property
    def type(self) -> Type:
        return Type.from_raw(capi().mlirAttributeGetType(self.to_raw()), self._owner)

    @property
    def dialect(self) -> Dialect:
        from mlirsafe.dialect import Dialect

        raw = capi().mlirAttributeGetDialect(self.to_raw())
        return Dialect.from_raw(raw, self._interned_owner())

    def with_name(self, name: str | Identifier) -> NamedAttribute:
        if not isinstance(name, Identifier):
            name = Identifier.get(self.context, name)
        return NamedAttribute(name, self)

    def __str__(self) -> str:
        return print_to_string("mlirAttributePrint", self.to_raw())


class BoolAttribute(Attribute):
    _isa_fn = "mlirAttributeIsABool"

    @classmethod
    def get(cls, context, value: bool) -> BoolAttribute:
        raw = capi().mlirBoolAttrGet(context.to_raw(), int(bool(value)))
        return cls.from_raw(raw, context._interned_owner())

    @property
    def value(self) -> bool:
        return bool(capi().mlirBoolAttrGetValue(self.to_raw()))


class IntegerAttribute(Attribute):
    _isa_fn = "mlirAttributeIsAInteger"

    @classmethod
    def get(cls, type: Type, value: int) -> IntegerAttribute:
        raw = capi().mlirIntegerAttrGet(type.to_raw(), value)
        return cls.from_raw(raw, type._interned_owner())

    def _integer_type(self) -> IntegerType | None:
        return IntegerType.try_from(self.type)

    @property
    def value(self) -> int:
        """The value read with the signedness of the attribute's type."""
        int_type = self._integer_type()
        if int_type is not None and int_type.is_unsigned():
            return self.value_unsigned
        return self.value_signed

    @property
    def value_signed(self) -> int:
        int_type = self._integer_type()
        if int_type is not None and int_type.is_signed():
            return capi().mlirIntegerAttrGetValueSInt(self.to_raw())
        return capi().mlirIntegerAttrGetValueInt(self.to_raw())

    @property
    def value_unsigned(self) -> int:
        int_type = self._integer_type()
        if int_type is not None and int_type.is_unsigned():
            return capi().mlirIntegerAttrGetValueUInt(self.to_raw())
        bitwidth = int_type.bitwidth if int_type is not None else 64
        return capi().mlirIntegerAttrGetValueInt(self.to_raw()) & ((1 << bitwidth) - 1)


class FloatAttribute(Attribute):
    _isa_fn = "mlirAttributeIsAFloat"

    @classmethod
    def get(cls, context, type: Type, value: float) -> FloatAttribute:
        raw = capi().mlirFloatAttrDoubleGet(context.to_raw(), type.to_raw(), value)
        return cls.from_raw(raw, context._interned_owner())

    @property
    def value(self) -> float:
        return capi().mlirFloatAttrGetValueDouble(self.to_raw())


class StringAttribute(Attribute):
    _isa_fn = "mlirAttributeIsAString"

    @classmethod
    def get(cls, context, value: str) -> StringAttribute:
        raw = capi().mlirStringAttrGet(context.to_raw(), StringRef(value).to_raw())
        return cls.from_raw(raw, context._interned_owner())

    @property
    def value(self) -> str:
        return decode(capi().mlirStringAttrGetValue(self.to_raw()))


class _DenseArrayAttribute(Attribute):
    _element_fn: str

    def __len__(self) -> int:
        return capi().mlirDenseArrayGetNumElements(self.to_raw())

    def __getitem__(self, index: int):
        size = len(self)
        if not 0 <= index < size:
            raise IndexError(f"index {index} out of range (array has {size} elements)")
        return getattr(capi(), self._element_fn)(self.to_raw(), index)

    def __iter__(self) -> Iterator:
        for index in range(len(self)):
            yield self[index]


class DenseI32ArrayAttribute(_DenseArrayAttribute):
    _isa_fn = "mlirAttributeIsADenseI32Array"
    _element_fn = "mlirDenseI32ArrayGetElement"

    @classmethod
    def get(cls, context, values: Sequence[int]) -> DenseI32ArrayAttribute:
        array = (ctypes.c_int32 * len(values))(*values)
        raw = capi().mlirDenseI32ArrayGet(context.to_raw(), len(values), array)
        return cls.from_raw(raw, context._interned_owner())


class DenseBoolArrayAttribute(_DenseArrayAttribute):
    _isa_fn = "mlirAttributeIsADenseBoolArray"
    _element_fn = "mlirDenseBoolArrayGetElement"

    @classmethod
    def get(cls, context, values: Sequence[bool]) -> DenseBoolArrayAttribute:
        array = (ctypes.c_int * len(values))(*(int(bool(v)) for v in values))
        raw = capi().mlirDenseBoolArrayGet(context.to_raw(), len(values), array)
        return cls.from_raw(raw, context._interned_owner())

    def __getitem__(self, index: int) -> bool:
        return bool(super().__getitem__(index))


def _string_refs(values: Sequence[str]) -> tuple[list[StringRef], ctypes.Array]:
    refs = [StringRef(value) for value in values]
    return refs, (MlirStringRef * len(refs))(*(ref.to_raw() for ref in refs))


class DenseElementsAttribute(Attribute):
    _isa_fn = "mlirAttributeIsADenseElements"

    @classmethod
    def strings(cls, shaped_type: Type, values: Sequence[str]) -> DenseElementsAttribute:
        """Build a dense attribute of *shaped_type* holding string *values*."""
        refs, array = _string_refs(values)
        raw = capi().mlirDenseElementsAttrStringGet(shaped_type.to_raw(), len(refs), array)
        return cls.from_raw(raw, shaped_type._interned_owner())

    def __len__(self) -> int:
        return capi().mlirElementsAttrGetNumElements(self.to_raw())


_NON_STRING_ELEMENT_PREDICATES = (
    "mlirTypeIsAInteger",
    "mlirTypeIsAIndex",
    "mlirTypeIsAF16",
    "mlirTypeIsABF16",
    "mlirTypeIsAF32",
    "mlirTypeIsAF64",
    "mlirTypeIsAComplex",
)


class DenseStringElementsAttribute(DenseElementsAttribute):
    """A one-dimensional tensor of strings, e.g. ``dense<["a", "b"]> : tensor<2x!foo.str>``."""

    @classmethod
    def is_a(cls, other: Attribute) -> bool:
        if not DenseElementsAttribute.is_a(other):
            return False
        shaped_type = capi().mlirAttributeGetType(other.to_raw())
        element_type = capi().mlirShapedTypeGetElementType(shaped_type)
        return not any(getattr(capi(), fn)(element_type) for fn in _NON_STRING_ELEMENT_PREDICATES)

    @classmethod
    def get(
        cls, context, values: Sequence[str], element_type: str | Type
    ) -> DenseStringElementsAttribute:
        """Build a ``tensor<Nx element_type>`` holding *values*.

        *element_type* may be given as text, parsed in *context*.  String
        elements cannot use integer or float element types.
        """
        if isinstance(element_type, str):
            parsed = Type.parse(context, element_type)
            if parsed is None:
                raise ValueError(f"Cannot parse element type: {element_type!r}")
            element_type = parsed
        shaped_type = RankedTensorType.get([len(values)], element_type)
        refs, array = _string_refs(values)
        raw = capi().mlirDenseElementsAttrStringGet(shaped_type.to_raw(), len(refs), array)
        return cls.from_raw(raw, context._interned_owner())

    def __getitem__(self, index: int) -> str:
        size = len(self)
        if not 0 <= index < size:
            raise IndexError(f"index {index} out of range (attribute has {size} elements)")
        return decode(capi().mlirDenseElementsAttrGetStringValue(self.to_raw(), index))

    def __iter__(self) -> Iterator[str]:
        for index in range(len(self)):
            yield self[index]


class NamedAttribute:
    """A transient ``(name, attribute)`` pair."""

    __slots__ = ("name", "attribute")

    def __init__(self, name: Identifier, attribute: Attribute) -> None:
        self.name = name
        self.attribute = attribute

    @classmethod
    def from_raw(cls, raw: MlirNamedAttribute, owner: NativeHandle | None) -> NamedAttribute:
        return cls(
            Identifier.from_raw(raw.name, owner),
            Attribute.from_raw(raw.attribute, owner),
        )

    def to_raw(self) -> MlirNamedAttribute:
        return MlirNamedAttribute(self.name.to_raw(), self.attribute.to_raw())

    def __iter__(self):
        yield self.name
        yield self.attribute

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NamedAttribute):
            return NotImplemented
        return self.name == other.name and self.attribute == other.attribute

    def __hash__(self) -> int:
        return hash((self.name, self.attribute))

    def __repr__(self) -> str:
        return f"NamedAttribute({self.name.value!r}, {str(self.attribute)!r})"


# Checked in order; more specific variants come first.
_VARIANTS: list[type[Attribute]] = [
    BoolAttribute,
    IntegerAttribute,
    FloatAttribute,
    StringAttribute,
    DenseI32ArrayAttribute,
    DenseBoolArrayAttribute,
    DenseStringElementsAttribute,
    DenseElementsAttribute,
]
