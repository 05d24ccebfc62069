"""The MLIR context and dialect registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mlirsafe._capi import capi
from mlirsafe.errors import OwnershipError
from mlirsafe.ownership import Borrowed, DependentSet, Owned
from mlirsafe.strings import StringRef

if TYPE_CHECKING:
    from mlirsafe.dialect import Dialect

logger = logging.getLogger(__name__)


class DialectRegistry(Owned):
    """A namespace -> dialect constructor table, independent of any context."""

    _destroy_fn = "mlirDialectRegistryDestroy"

    def __init__(self) -> None:
        self._adopt(capi().mlirDialectRegistryCreate(), None)

    def register_all_dialects(self) -> None:
        """Insert every dialect built into the native library."""
        capi().mlirRegisterAllDialects(self.to_raw())


class _ContextMethods:
    """Queries shared by :class:`Context` and :class:`ContextRef`."""

    _equal_fn = "mlirContextEqual"

    def allows_unregistered_dialects(self) -> bool:
        return bool(capi().mlirContextGetAllowUnregisteredDialects(self.to_raw()))

    def set_allow_unregistered_dialects(self, allow: bool) -> None:
        capi().mlirContextSetAllowUnregisteredDialects(self.to_raw(), allow)

    def num_registered_dialects(self) -> int:
        return capi().mlirContextGetNumRegisteredDialects(self.to_raw())

    def num_loaded_dialects(self) -> int:
        return capi().mlirContextGetNumLoadedDialects(self.to_raw())

    def append_dialect_registry(self, registry: DialectRegistry) -> None:
        """Make the dialects of *registry* available for loading.

        The registry is copied; it remains owned by the caller.
        """
        capi().mlirContextAppendDialectRegistry(self.to_raw(), registry.to_raw())

    def get_or_load_dialect(self, name: str) -> Dialect | None:
        """Return the dialect *name*, loading it if registered but not loaded yet.

        Returns ``None`` if no dialect with that namespace is registered.
        """
        from mlirsafe.dialect import Dialect

        raw = capi().mlirContextGetOrLoadDialect(self.to_raw(), StringRef(name).to_raw())
        return Dialect.try_from_raw(raw, self._interned_owner())

    def set_threading_enabled(self, enabled: bool) -> None:
        capi().mlirContextEnableMultithreading(self.to_raw(), enabled)

    def load_all_available_dialects(self) -> None:
        capi().mlirContextLoadAllAvailableDialects(self.to_raw())

    def is_registered_operation(self, name: str) -> bool:
        """Whether *name* (e.g. ``"func.func"``) belongs to a loaded dialect."""
        name_ref = StringRef(name)
        return bool(capi().mlirContextIsRegisteredOperation(self.to_raw(), name_ref.to_raw()))


class Context(_ContextMethods, Owned):
    """Root arena owning dialects and every interned type, attribute and location.

    IR created in a context registers with it.  :meth:`close` refuses to
    destroy the context while any of that IR still owns native memory, since
    its later release would then touch freed memory.
    """

    _destroy_fn = "mlirContextDestroy"

    def __init__(self, registry: DialectRegistry | None = None, threading: bool = False) -> None:
        if registry is None:
            raw = capi().mlirContextCreateWithThreading(threading)
        else:
            raw = capi().mlirContextCreateWithRegistry(registry.to_raw(), threading)
        self._adopt(raw, None)
        logger.debug("Created %r (threading=%s)", self, threading)

    def _adopt(self, raw, context: Context | None) -> None:
        self._dependents = DependentSet()
        super()._adopt(raw, None)

    def _context_anchor(self) -> Context:
        return self

    def _track(self, item: Owned) -> None:
        self._dependents.add(item)

    def _discard(self, item: Owned) -> None:
        self._dependents.discard(item)

    def live_dependents(self) -> list[Owned]:
        """Owned IR objects created in this context that were not released yet."""
        return self._dependents.live()

    def close(self) -> None:
        if self.is_owned:
            live = self._dependents.live()
            if live:
                raise OwnershipError(
                    f"Cannot destroy context: {len(live)} object(s) created in it "
                    f"are still owned (first: {live[0]!r})"
                )
            logger.debug("Destroying %r", self)
        super().close()

    def __del__(self) -> None:
        if getattr(self, "_state", None) is None or not self.is_owned:
            return
        live = self._dependents.live()
        if live:
            logger.warning(
                "Leaking %r: %d object(s) created in it are still owned", self, len(live)
            )
            return
        self.close()


class ContextRef(_ContextMethods, Borrowed):
    """A context reached from one of its objects, e.g. ``operation.context``."""
