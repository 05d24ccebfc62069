"""ctypes declarations for the subset of the MLIR C API used by ``mlirsafe``.

Every opaque MLIR handle is a struct holding a single pointer.  Each handle
kind gets its own ``ctypes.Structure`` subclass so that ctypes rejects, at the
call boundary, a ``MlirType`` passed where a ``MlirValue`` is expected.

The shared library is resolved lazily on first use (see :func:`capi`) and
function prototypes are bound on first access from :data:`PROTOTYPES`.
"""

from __future__ import annotations

import ctypes
import importlib.util
import logging
from pathlib import Path

from mlirsafe.config import settings
from mlirsafe.errors import LibraryNotFoundError, MissingSymbolError

logger = logging.getLogger(__name__)


class _Handle(ctypes.Structure):
    _fields_ = [("ptr", ctypes.c_void_p)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(0x{self.ptr or 0:x})"


class MlirContext(_Handle):
    pass


class MlirDialectRegistry(_Handle):
    pass


class MlirDialect(_Handle):
    pass


class MlirDialectHandle(_Handle):
    pass


class MlirIdentifier(_Handle):
    pass


class MlirLocation(_Handle):
    pass


class MlirType(_Handle):
    pass


class MlirAttribute(_Handle):
    pass


class MlirOperation(_Handle):
    pass


class MlirRegion(_Handle):
    pass


class MlirBlock(_Handle):
    pass


class MlirValue(_Handle):
    pass


class MlirOpOperand(_Handle):
    pass


class MlirModule(_Handle):
    pass


class MlirPass(_Handle):
    pass


class MlirPassManager(_Handle):
    pass


class MlirStringRef(ctypes.Structure):
    # ``data`` is not guaranteed to be null-terminated, so it is declared as a
    # plain pointer and read with ``ctypes.string_at(data, length)``.
    _fields_ = [("data", ctypes.c_void_p), ("length", ctypes.c_size_t)]


class MlirLogicalResult(ctypes.Structure):
    _fields_ = [("value", ctypes.c_int8)]


class MlirNamedAttribute(ctypes.Structure):
    _fields_ = [("name", MlirIdentifier), ("attribute", MlirAttribute)]


class MlirOperationState(ctypes.Structure):
    _fields_ = [
        ("name", MlirStringRef),
        ("location", MlirLocation),
        ("nResults", ctypes.c_ssize_t),
        ("results", ctypes.POINTER(MlirType)),
        ("nOperands", ctypes.c_ssize_t),
        ("operands", ctypes.POINTER(MlirValue)),
        ("nRegions", ctypes.c_ssize_t),
        ("regions", ctypes.POINTER(MlirRegion)),
        ("nSuccessors", ctypes.c_ssize_t),
        ("successors", ctypes.POINTER(MlirBlock)),
        ("nAttributes", ctypes.c_ssize_t),
        ("attributes", ctypes.POINTER(MlirNamedAttribute)),
        ("enableResultTypeInference", ctypes.c_bool),
    ]


MlirStringCallback = ctypes.CFUNCTYPE(None, MlirStringRef, ctypes.c_void_p)

# Declared with an ``int`` return so that it is valid both for C API versions
# whose walk callback returns ``void`` and for those returning ``MlirWalkResult``.
MlirOperationWalkCallback = ctypes.CFUNCTYPE(ctypes.c_int, MlirOperation, ctypes.c_void_p)


def is_null(raw: ctypes.Structure) -> bool:
    """Return whether *raw* is the null handle of its kind."""
    return not raw.ptr


_bool = ctypes.c_bool
_intptr = ctypes.c_ssize_t
_str = MlirStringRef
_cb = MlirStringCallback
_void = None

PROTOTYPES: dict[str, tuple[object, list[object]]] = {
    # Context
    "mlirContextCreateWithThreading": (MlirContext, [_bool]),
    "mlirContextCreateWithRegistry": (MlirContext, [MlirDialectRegistry, _bool]),
    "mlirContextDestroy": (_void, [MlirContext]),
    "mlirContextEqual": (_bool, [MlirContext, MlirContext]),
    "mlirContextGetAllowUnregisteredDialects": (_bool, [MlirContext]),
    "mlirContextSetAllowUnregisteredDialects": (_void, [MlirContext, _bool]),
    "mlirContextGetNumRegisteredDialects": (_intptr, [MlirContext]),
    "mlirContextGetNumLoadedDialects": (_intptr, [MlirContext]),
    "mlirContextAppendDialectRegistry": (_void, [MlirContext, MlirDialectRegistry]),
    "mlirContextGetOrLoadDialect": (MlirDialect, [MlirContext, _str]),
    "mlirContextEnableMultithreading": (_void, [MlirContext, _bool]),
    "mlirContextLoadAllAvailableDialects": (_void, [MlirContext]),
    "mlirContextIsRegisteredOperation": (_bool, [MlirContext, _str]),
    # Dialect registry
    "mlirDialectRegistryCreate": (MlirDialectRegistry, []),
    "mlirDialectRegistryDestroy": (_void, [MlirDialectRegistry]),
    "mlirRegisterAllDialects": (_void, [MlirDialectRegistry]),
    # Dialect
    "mlirDialectGetContext": (MlirContext, [MlirDialect]),
    "mlirDialectEqual": (_bool, [MlirDialect, MlirDialect]),
    "mlirDialectGetNamespace": (_str, [MlirDialect]),
    # Dialect handle
    "mlirDialectHandleGetNamespace": (_str, [MlirDialectHandle]),
    "mlirDialectHandleInsertDialect": (_void, [MlirDialectHandle, MlirDialectRegistry]),
    "mlirDialectHandleRegisterDialect": (_void, [MlirDialectHandle, MlirContext]),
    "mlirDialectHandleLoadDialect": (MlirDialect, [MlirDialectHandle, MlirContext]),
    # Identifier
    "mlirIdentifierGet": (MlirIdentifier, [MlirContext, _str]),
    "mlirIdentifierGetContext": (MlirContext, [MlirIdentifier]),
    "mlirIdentifierEqual": (_bool, [MlirIdentifier, MlirIdentifier]),
    "mlirIdentifierStr": (_str, [MlirIdentifier]),
    # Location
    "mlirLocationFileLineColGet": (
        MlirLocation, [MlirContext, _str, ctypes.c_uint, ctypes.c_uint],
    ),
    "mlirLocationCallSiteGet": (MlirLocation, [MlirLocation, MlirLocation]),
    "mlirLocationFusedGet": (
        MlirLocation,
        [MlirContext, _intptr, ctypes.POINTER(MlirLocation), MlirAttribute],
    ),
    "mlirLocationNameGet": (MlirLocation, [MlirContext, _str, MlirLocation]),
    "mlirLocationUnknownGet": (MlirLocation, [MlirContext]),
    "mlirLocationGetContext": (MlirContext, [MlirLocation]),
    "mlirLocationEqual": (_bool, [MlirLocation, MlirLocation]),
    "mlirLocationPrint": (_void, [MlirLocation, _cb, ctypes.c_void_p]),
    # Type
    "mlirTypeParseGet": (MlirType, [MlirContext, _str]),
    "mlirTypeGetContext": (MlirContext, [MlirType]),
    "mlirTypeGetDialect": (MlirDialect, [MlirType]),
    "mlirTypeEqual": (_bool, [MlirType, MlirType]),
    "mlirTypePrint": (_void, [MlirType, _cb, ctypes.c_void_p]),
    "mlirTypeIsAInteger": (_bool, [MlirType]),
    "mlirIntegerTypeGet": (MlirType, [MlirContext, ctypes.c_uint]),
    "mlirIntegerTypeSignedGet": (MlirType, [MlirContext, ctypes.c_uint]),
    "mlirIntegerTypeUnsignedGet": (MlirType, [MlirContext, ctypes.c_uint]),
    "mlirIntegerTypeGetWidth": (ctypes.c_uint, [MlirType]),
    "mlirIntegerTypeIsSignless": (_bool, [MlirType]),
    "mlirIntegerTypeIsSigned": (_bool, [MlirType]),
    "mlirIntegerTypeIsUnsigned": (_bool, [MlirType]),
    "mlirTypeIsAF16": (_bool, [MlirType]),
    "mlirTypeIsABF16": (_bool, [MlirType]),
    "mlirTypeIsAComplex": (_bool, [MlirType]),
    "mlirTypeIsAF32": (_bool, [MlirType]),
    "mlirTypeIsAF64": (_bool, [MlirType]),
    "mlirF32TypeGet": (MlirType, [MlirContext]),
    "mlirF64TypeGet": (MlirType, [MlirContext]),
    "mlirTypeIsANone": (_bool, [MlirType]),
    "mlirNoneTypeGet": (MlirType, [MlirContext]),
    "mlirTypeIsAIndex": (_bool, [MlirType]),
    "mlirIndexTypeGet": (MlirType, [MlirContext]),
    "mlirTypeIsARankedTensor": (_bool, [MlirType]),
    "mlirRankedTensorTypeGet": (
        MlirType, [_intptr, ctypes.POINTER(ctypes.c_int64), MlirType, MlirAttribute],
    ),
    "mlirShapedTypeGetRank": (ctypes.c_int64, [MlirType]),
    "mlirShapedTypeGetDimSize": (ctypes.c_int64, [MlirType, _intptr]),
    "mlirShapedTypeGetElementType": (MlirType, [MlirType]),
    # Attribute
    "mlirAttributeParseGet": (MlirAttribute, [MlirContext, _str]),
    "mlirAttributeGetContext": (MlirContext, [MlirAttribute]),
    "mlirAttributeGetType": (MlirType, [MlirAttribute]),
    "mlirAttributeGetDialect": (MlirDialect, [MlirAttribute]),
    "mlirAttributeEqual": (_bool, [MlirAttribute, MlirAttribute]),
    "mlirAttributePrint": (_void, [MlirAttribute, _cb, ctypes.c_void_p]),
    "mlirAttributeGetNull": (MlirAttribute, []),
    "mlirAttributeIsABool": (_bool, [MlirAttribute]),
    "mlirBoolAttrGet": (MlirAttribute, [MlirContext, ctypes.c_int]),
    "mlirBoolAttrGetValue": (_bool, [MlirAttribute]),
    "mlirAttributeIsAInteger": (_bool, [MlirAttribute]),
    "mlirIntegerAttrGet": (MlirAttribute, [MlirType, ctypes.c_int64]),
    "mlirIntegerAttrGetValueInt": (ctypes.c_int64, [MlirAttribute]),
    "mlirIntegerAttrGetValueSInt": (ctypes.c_int64, [MlirAttribute]),
    "mlirIntegerAttrGetValueUInt": (ctypes.c_uint64, [MlirAttribute]),
    "mlirAttributeIsAFloat": (_bool, [MlirAttribute]),
    "mlirFloatAttrDoubleGet": (MlirAttribute, [MlirContext, MlirType, ctypes.c_double]),
    "mlirFloatAttrGetValueDouble": (ctypes.c_double, [MlirAttribute]),
    "mlirAttributeIsAString": (_bool, [MlirAttribute]),
    "mlirStringAttrGet": (MlirAttribute, [MlirContext, _str]),
    "mlirStringAttrGetValue": (_str, [MlirAttribute]),
    "mlirAttributeIsADenseI32Array": (_bool, [MlirAttribute]),
    "mlirDenseI32ArrayGet": (
        MlirAttribute, [MlirContext, _intptr, ctypes.POINTER(ctypes.c_int32)],
    ),
    "mlirDenseI32ArrayGetElement": (ctypes.c_int32, [MlirAttribute, _intptr]),
    "mlirAttributeIsADenseBoolArray": (_bool, [MlirAttribute]),
    "mlirDenseBoolArrayGet": (
        MlirAttribute, [MlirContext, _intptr, ctypes.POINTER(ctypes.c_int)],
    ),
    "mlirDenseBoolArrayGetElement": (_bool, [MlirAttribute, _intptr]),
    "mlirDenseArrayGetNumElements": (_intptr, [MlirAttribute]),
    "mlirAttributeIsADenseElements": (_bool, [MlirAttribute]),
    "mlirDenseElementsAttrStringGet": (
        MlirAttribute, [MlirType, _intptr, ctypes.POINTER(MlirStringRef)],
    ),
    "mlirDenseElementsAttrGetStringValue": (_str, [MlirAttribute, _intptr]),
    "mlirElementsAttrGetNumElements": (ctypes.c_int64, [MlirAttribute]),
    # Operation state / builder
    "mlirOperationStateGet": (MlirOperationState, [_str, MlirLocation]),
    "mlirOperationStateAddResults": (
        _void, [ctypes.POINTER(MlirOperationState), _intptr, ctypes.POINTER(MlirType)],
    ),
    "mlirOperationStateAddOperands": (
        _void, [ctypes.POINTER(MlirOperationState), _intptr, ctypes.POINTER(MlirValue)],
    ),
    "mlirOperationStateAddOwnedRegions": (
        _void, [ctypes.POINTER(MlirOperationState), _intptr, ctypes.POINTER(MlirRegion)],
    ),
    "mlirOperationStateAddAttributes": (
        _void,
        [ctypes.POINTER(MlirOperationState), _intptr, ctypes.POINTER(MlirNamedAttribute)],
    ),
    "mlirOperationStateEnableResultTypeInference": (
        _void, [ctypes.POINTER(MlirOperationState)],
    ),
    "mlirOperationCreate": (MlirOperation, [ctypes.POINTER(MlirOperationState)]),
    # Operation
    "mlirOperationCreateParse": (MlirOperation, [MlirContext, _str, _str]),
    "mlirOperationClone": (MlirOperation, [MlirOperation]),
    "mlirOperationDestroy": (_void, [MlirOperation]),
    "mlirOperationEqual": (_bool, [MlirOperation, MlirOperation]),
    "mlirOperationGetContext": (MlirContext, [MlirOperation]),
    "mlirOperationVerify": (_bool, [MlirOperation]),
    "mlirOperationGetName": (MlirIdentifier, [MlirOperation]),
    "mlirOperationGetLocation": (MlirLocation, [MlirOperation]),
    "mlirOperationGetParentOperation": (MlirOperation, [MlirOperation]),
    "mlirOperationGetBlock": (MlirBlock, [MlirOperation]),
    "mlirOperationRemoveFromParent": (_void, [MlirOperation]),
    "mlirOperationMoveAfter": (_void, [MlirOperation, MlirOperation]),
    "mlirOperationMoveBefore": (_void, [MlirOperation, MlirOperation]),
    "mlirOperationGetNextInBlock": (MlirOperation, [MlirOperation]),
    "mlirOperationGetNumOperands": (_intptr, [MlirOperation]),
    "mlirOperationGetOperand": (MlirValue, [MlirOperation, _intptr]),
    "mlirOperationSetOperand": (_void, [MlirOperation, _intptr, MlirValue]),
    "mlirOperationGetNumRegions": (_intptr, [MlirOperation]),
    "mlirOperationGetRegion": (MlirRegion, [MlirOperation, _intptr]),
    "mlirOperationGetFirstRegion": (MlirRegion, [MlirOperation]),
    "mlirOperationGetNumResults": (_intptr, [MlirOperation]),
    "mlirOperationGetResult": (MlirValue, [MlirOperation, _intptr]),
    "mlirOperationHasInherentAttributeByName": (_bool, [MlirOperation, _str]),
    "mlirOperationGetInherentAttributeByName": (MlirAttribute, [MlirOperation, _str]),
    "mlirOperationSetInherentAttributeByName": (
        _void, [MlirOperation, _str, MlirAttribute],
    ),
    "mlirOperationGetNumDiscardableAttributes": (_intptr, [MlirOperation]),
    "mlirOperationGetDiscardableAttribute": (MlirNamedAttribute, [MlirOperation, _intptr]),
    "mlirOperationGetDiscardableAttributeByName": (MlirAttribute, [MlirOperation, _str]),
    "mlirOperationSetDiscardableAttributeByName": (
        _void, [MlirOperation, _str, MlirAttribute],
    ),
    "mlirOperationRemoveDiscardableAttributeByName": (_bool, [MlirOperation, _str]),
    "mlirOperationGetNumAttributes": (_intptr, [MlirOperation]),
    "mlirOperationGetAttribute": (MlirNamedAttribute, [MlirOperation, _intptr]),
    "mlirOperationGetAttributeByName": (MlirAttribute, [MlirOperation, _str]),
    "mlirOperationSetAttributeByName": (_void, [MlirOperation, _str, MlirAttribute]),
    "mlirOperationRemoveAttributeByName": (_bool, [MlirOperation, _str]),
    "mlirOperationPrint": (_void, [MlirOperation, _cb, ctypes.c_void_p]),
    "mlirOperationWalk": (
        _void, [MlirOperation, MlirOperationWalkCallback, ctypes.c_void_p, ctypes.c_int],
    ),
    # Region
    "mlirRegionCreate": (MlirRegion, []),
    "mlirRegionDestroy": (_void, [MlirRegion]),
    "mlirRegionEqual": (_bool, [MlirRegion, MlirRegion]),
    "mlirRegionGetFirstBlock": (MlirBlock, [MlirRegion]),
    "mlirRegionAppendOwnedBlock": (_void, [MlirRegion, MlirBlock]),
    "mlirRegionInsertOwnedBlockAfter": (_void, [MlirRegion, MlirBlock, MlirBlock]),
    "mlirRegionInsertOwnedBlockBefore": (_void, [MlirRegion, MlirBlock, MlirBlock]),
    "mlirRegionGetNextInOperation": (MlirRegion, [MlirRegion]),
    # Block
    "mlirBlockCreate": (
        MlirBlock, [_intptr, ctypes.POINTER(MlirType), ctypes.POINTER(MlirLocation)],
    ),
    "mlirBlockDestroy": (_void, [MlirBlock]),
    "mlirBlockDetach": (_void, [MlirBlock]),
    "mlirBlockEqual": (_bool, [MlirBlock, MlirBlock]),
    "mlirBlockGetParentOperation": (MlirOperation, [MlirBlock]),
    "mlirBlockGetParentRegion": (MlirRegion, [MlirBlock]),
    "mlirBlockGetNextInRegion": (MlirBlock, [MlirBlock]),
    "mlirBlockGetFirstOperation": (MlirOperation, [MlirBlock]),
    "mlirBlockGetTerminator": (MlirOperation, [MlirBlock]),
    "mlirBlockAppendOwnedOperation": (_void, [MlirBlock, MlirOperation]),
    "mlirBlockInsertOwnedOperation": (_void, [MlirBlock, _intptr, MlirOperation]),
    "mlirBlockInsertOwnedOperationAfter": (
        _void, [MlirBlock, MlirOperation, MlirOperation],
    ),
    "mlirBlockInsertOwnedOperationBefore": (
        _void, [MlirBlock, MlirOperation, MlirOperation],
    ),
    "mlirBlockGetNumArguments": (_intptr, [MlirBlock]),
    "mlirBlockAddArgument": (MlirValue, [MlirBlock, MlirType, MlirLocation]),
    "mlirBlockGetArgument": (MlirValue, [MlirBlock, _intptr]),
    "mlirBlockPrint": (_void, [MlirBlock, _cb, ctypes.c_void_p]),
    # Value
    "mlirValueEqual": (_bool, [MlirValue, MlirValue]),
    "mlirValueIsABlockArgument": (_bool, [MlirValue]),
    "mlirValueIsAOpResult": (_bool, [MlirValue]),
    "mlirBlockArgumentGetOwner": (MlirBlock, [MlirValue]),
    "mlirBlockArgumentGetArgNumber": (_intptr, [MlirValue]),
    "mlirOpResultGetOwner": (MlirOperation, [MlirValue]),
    "mlirOpResultGetResultNumber": (_intptr, [MlirValue]),
    "mlirValueGetType": (MlirType, [MlirValue]),
    "mlirValueSetType": (_void, [MlirValue, MlirType]),
    "mlirValuePrint": (_void, [MlirValue, _cb, ctypes.c_void_p]),
    "mlirValueGetFirstUse": (MlirOpOperand, [MlirValue]),
    "mlirValueReplaceAllUsesOfWith": (_void, [MlirValue, MlirValue]),
    # OpOperand
    "mlirOpOperandIsNull": (_bool, [MlirOpOperand]),
    "mlirOpOperandGetValue": (MlirValue, [MlirOpOperand]),
    "mlirOpOperandGetOwner": (MlirOperation, [MlirOpOperand]),
    "mlirOpOperandGetOperandNumber": (ctypes.c_uint, [MlirOpOperand]),
    "mlirOpOperandGetNextUse": (MlirOpOperand, [MlirOpOperand]),
    # Module
    "mlirModuleCreateEmpty": (MlirModule, [MlirLocation]),
    "mlirModuleCreateParse": (MlirModule, [MlirContext, _str]),
    "mlirModuleGetContext": (MlirContext, [MlirModule]),
    "mlirModuleGetBody": (MlirBlock, [MlirModule]),
    "mlirModuleGetOperation": (MlirOperation, [MlirModule]),
    "mlirModuleFromOperation": (MlirModule, [MlirOperation]),
    "mlirModuleDestroy": (_void, [MlirModule]),
    # Passes
    "mlirPassManagerCreate": (MlirPassManager, [MlirContext]),
    "mlirPassManagerDestroy": (_void, [MlirPassManager]),
    "mlirPassManagerAddOwnedPass": (_void, [MlirPassManager, MlirPass]),
    "mlirPassManagerRunOnOp": (MlirLogicalResult, [MlirPassManager, MlirOperation]),
    "mlirCreateTransformsCanonicalizer": (MlirPass, []),
    "mlirCreateTransformsCSE": (MlirPass, []),
    "mlirCreateTransformsSymbolDCE": (MlirPass, []),
}


class CAPI:
    """Lazily-bound view of the MLIR C API exported by *library*.

    Attribute access returns the ctypes function with ``restype`` and
    ``argtypes`` taken from :data:`PROTOTYPES`.  Functions are bound once and
    cached on the instance.
    """

    def __init__(self, library: ctypes.CDLL) -> None:
        self._library = library

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            restype, argtypes = PROTOTYPES[name]
        except KeyError:
            raise MissingSymbolError(f"No prototype declared for {name}") from None
        function = self.bind(name, restype, argtypes)
        setattr(self, name, function)
        return function

    def bind(self, name: str, restype, argtypes: list) -> ctypes._CFuncPtr:
        """Bind *name* with an explicit prototype (for symbols outside the table)."""
        try:
            function = getattr(self._library, name)
        except AttributeError:
            raise MissingSymbolError(
                f"{name} is not exported by {self._library._name}"
            ) from None
        function.restype = restype
        function.argtypes = argtypes
        return function

    def has_symbol(self, name: str) -> bool:
        try:
            getattr(self._library, name)
        except AttributeError:
            return False
        return True


# Matches libMLIRPythonCAPI.so, libMLIRPythonCAPI.dylib and MLIRPythonCAPI.dll.
_BUNDLED_LIBRARY_PATTERN = "*MLIRPythonCAPI*"
_LIBRARY_SUFFIXES = (".so", ".dylib", ".dll")

_CAPI: CAPI | None = None


def find_library() -> Path:
    """Locate the shared library exporting the MLIR C API.

    ``settings.capi_library`` wins when set; otherwise the library bundled in
    the ``mlir`` package's ``_mlir_libs`` directory is used.
    """
    if settings.capi_library:
        path = Path(settings.capi_library)
        if not path.is_file():
            raise LibraryNotFoundError(
                f"MLIRSAFE_CAPI_LIBRARY points to a missing file: {path}"
            )
        return path

    spec = importlib.util.find_spec("mlir")
    if spec is None or not spec.submodule_search_locations:
        raise LibraryNotFoundError(
            "The `mlir` Python package is not installed and "
            "MLIRSAFE_CAPI_LIBRARY is not set"
        )
    for location in spec.submodule_search_locations:
        libs_dir = Path(location) / "_mlir_libs"
        candidates = sorted(
            path for path in libs_dir.glob(_BUNDLED_LIBRARY_PATTERN)
            if path.suffix in _LIBRARY_SUFFIXES or ".so." in path.name
        )
        if candidates:
            return candidates[0]
    raise LibraryNotFoundError(
        f"No {_BUNDLED_LIBRARY_PATTERN} library found in the `mlir` package"
    )


def capi() -> CAPI:
    """Return the process-wide C API view, loading the library on first use."""
    global _CAPI
    if _CAPI is None:
        path = find_library()
        logger.debug("Loading MLIR C API from %s", path)
        try:
            library = ctypes.CDLL(str(path))
        except OSError as exc:
            raise LibraryNotFoundError(f"Failed to load {path}: {exc}") from exc
        _CAPI = CAPI(library)
    return _CAPI
