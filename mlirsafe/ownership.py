"""Owned and borrowed wrappers around native MLIR handles.

Every wrapper class implements exactly one of two capabilities:

* :class:`Owned` wrappers are responsible for releasing their handle.  The
  native destroy function runs at most once, from :meth:`Owned.close`, the
  context-manager exit or the finalizer, and never after the handle was
  *transferred* into a container that now owns it.
* :class:`Borrowed` wrappers never release anything.  Each one keeps a strong
  reference to the object it was obtained from (its *owner*) and refuses to
  hand out its raw handle once that owner is gone.  They cannot be created
  through their constructor, only through :meth:`Borrowed.from_raw`.

An owned wrapper moves through ``OWNED -> TRANSFERRED`` when a container
adopts it, or ``OWNED -> DESTROYED`` when it is closed.
"""

from __future__ import annotations

import enum
import logging
import weakref
from typing import TYPE_CHECKING, TypeVar

from mlirsafe._capi import capi, is_null
from mlirsafe.errors import DanglingReferenceError, OwnershipError

if TYPE_CHECKING:
    from mlirsafe.context import Context

logger = logging.getLogger(__name__)

OwnedT = TypeVar("OwnedT", bound="Owned")
BorrowedT = TypeVar("BorrowedT", bound="Borrowed")


class OwnershipState(enum.Enum):
    OWNED = "owned"
    TRANSFERRED = "transferred"
    DESTROYED = "destroyed"


class NodeToken:
    """Liveness flag shared by every reference to one native tree node."""

    __slots__ = ("alive", "__weakref__")

    def __init__(self) -> None:
        self.alive = True


# (kind, pointer) -> token of the node currently living at that address.
_node_tokens: weakref.WeakValueDictionary = weakref.WeakValueDictionary()


def _node_token(handle: NativeHandle) -> NodeToken:
    key = (handle._equal_fn, handle._raw.ptr)
    token = _node_tokens.get(key)
    if token is None:
        token = _node_tokens[key] = NodeToken()
    return token


def retire_node(handle: NativeHandle) -> None:
    """Invalidate every reference to the tree node behind *handle*.

    Called when the node leaves its container or is destroyed.  A node
    allocated later at the same address gets a fresh token.
    """
    token = _node_tokens.pop((handle._equal_fn, handle._raw.ptr), None)
    if token is not None:
        token.alive = False


class NativeHandle:
    """Common base: raw access, native equality and hashing."""

    # Name of the C function comparing two handles of this kind.
    _equal_fn: str | None = None
    # Operations, blocks and regions can be detached from their container
    # while references to them exist; those references carry a NodeToken.
    _tracks_node = False

    _raw: object

    def to_raw(self):
        raise NotImplementedError

    def is_alive(self) -> bool:
        raise NotImplementedError

    def _anchor(self) -> NativeHandle | None:
        """Object a borrowed reference derived from ``self`` must keep alive."""
        raise NotImplementedError

    def _context_anchor(self) -> Context | None:
        """The owning :class:`~mlirsafe.context.Context`, when known."""
        raise NotImplementedError

    def _interned_owner(self) -> NativeHandle | None:
        """Owner for context-interned values (types, attributes, ...) derived from ``self``."""
        context = self._context_anchor()
        return context if context is not None else self._anchor()

    def _parent_anchor(self) -> NativeHandle | None:
        """Owner for references to the parent or the siblings of ``self``."""
        raise NotImplementedError

    def _check_context(self, other: NativeHandle, what: str) -> None:
        """Raise :class:`OwnershipError` if *other* belongs to another context."""
        expected = self._context_anchor()
        actual = other._context_anchor()
        if expected is None or actual is None or expected is actual:
            return
        raise OwnershipError(f"{what} belongs to {actual!r}, not to {expected!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NativeHandle):
            return NotImplemented
        if self._equal_fn is None or self._equal_fn != other._equal_fn:
            return NotImplemented
        return bool(getattr(capi(), self._equal_fn)(self.to_raw(), other.to_raw()))

    def __hash__(self) -> int:
        return hash((self._equal_fn, self._raw.ptr))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} 0x{self._raw.ptr or 0:x}>"


class Owned(NativeHandle):
    """A wrapper responsible for destroying its native handle."""

    # Name of the C function releasing the handle, or ``None`` if the C API
    # has no way to release it.
    _destroy_fn: str | None = None

    _state: OwnershipState
    _new_owner: NativeHandle | None
    _context: Context | None

    @classmethod
    def from_raw(cls: type[OwnedT], raw, context: Context | None = None) -> OwnedT:
        """Take ownership of *raw*.

        *context* is the owning context; when given, the new wrapper is
        registered with it so that the context cannot be closed first.
        """
        self = cls.__new__(cls)
        self._adopt(raw, context)
        return self

    @classmethod
    def try_from_raw(cls: type[OwnedT], raw, context: Context | None = None) -> OwnedT | None:
        if is_null(raw):
            return None
        return cls.from_raw(raw, context)

    def _adopt(self, raw, context: Context | None) -> None:
        self._raw = raw
        self._state = OwnershipState.OWNED
        self._new_owner = None
        self._context = context
        if context is not None:
            context._track(self)

    @property
    def state(self) -> OwnershipState:
        return self._state

    @property
    def is_owned(self) -> bool:
        return self._state is OwnershipState.OWNED

    @property
    def is_transferred(self) -> bool:
        return self._state is OwnershipState.TRANSFERRED

    @property
    def is_destroyed(self) -> bool:
        return self._state is OwnershipState.DESTROYED

    def to_raw(self):
        if self._state is OwnershipState.TRANSFERRED:
            raise OwnershipError(
                f"{type(self).__name__} was moved into a container; "
                "use the reference returned by the insertion call"
            )
        if self._state is OwnershipState.DESTROYED:
            raise OwnershipError(f"{type(self).__name__} was already destroyed")
        return self._raw

    def is_alive(self) -> bool:
        if self._state is OwnershipState.OWNED:
            return True
        if self._state is OwnershipState.TRANSFERRED:
            return self._new_owner is None or self._new_owner.is_alive()
        return False

    def _anchor(self) -> NativeHandle:
        return self

    def _context_anchor(self) -> Context | None:
        return self._context

    def _parent_anchor(self) -> NativeHandle:
        return self

    def _transfer(self, new_owner: NativeHandle | None = None):
        """Give up ownership and return the raw handle.

        The native object now belongs to *new_owner*, which decides whether
        references obtained through this wrapper are still valid.
        """
        raw = self.to_raw()
        context = self._context
        self._untrack()
        self._state = OwnershipState.TRANSFERRED
        self._new_owner = new_owner
        holder = new_owner
        while isinstance(holder, Borrowed):
            holder = holder._owner
        if isinstance(holder, Owned):
            holder._bind_context(context)
        logger.debug("%r transferred to %r", self, new_owner)
        return raw

    def _bind_context(self, context: Context | None) -> None:
        """Register with *context* if this wrapper does not know its context yet.

        A standalone region or argument-less block only learns its context
        once operations are moved into it.
        """
        if context is None:
            return
        if self._state is OwnershipState.TRANSFERRED:
            if isinstance(self._new_owner, Owned):
                self._new_owner._bind_context(context)
            return
        if self._state is OwnershipState.OWNED and self._context is None:
            self._context = context
            context._track(self)

    def _untrack(self) -> None:
        if self._context is not None:
            self._context._discard(self)

    def _release(self) -> None:
        if self._destroy_fn is None:
            logger.warning(
                "%s has no native destructor; its handle is leaked", type(self).__name__
            )
            return
        getattr(capi(), self._destroy_fn)(self._raw)

    def close(self) -> None:
        """Destroy the native object.

        Closing twice is a no-op.  Closing a wrapper whose handle was moved
        into a container raises :class:`OwnershipError`: the container owns
        it now.
        """
        if self._state is OwnershipState.DESTROYED:
            return
        if self._state is OwnershipState.TRANSFERRED:
            raise OwnershipError(
                f"{type(self).__name__} is owned by {self._new_owner!r} and cannot be closed"
            )
        self._release()
        self._state = OwnershipState.DESTROYED
        self._untrack()
        if self._tracks_node:
            retire_node(self)

    def _close_if_owned(self) -> None:
        if getattr(self, "_state", None) is OwnershipState.OWNED:
            self.close()

    def __enter__(self: OwnedT) -> OwnedT:
        return self

    def __exit__(self, *exc_info) -> None:
        self._close_if_owned()

    def __del__(self) -> None:
        self._close_if_owned()


class Borrowed(NativeHandle):
    """A reference into memory owned by someone else."""

    _owner: NativeHandle | None
    _token: NodeToken | None

    def __init__(self, *args, **kwargs) -> None:
        raise OwnershipError(
            f"{type(self).__name__} is a borrowed reference and cannot be constructed; "
            "obtain it from the object that owns it"
        )

    @classmethod
    def from_raw(cls: type[BorrowedT], raw, owner: NativeHandle | None) -> BorrowedT:
        """Wrap *raw* as a reference kept valid by *owner*.

        *owner* is ``None`` only for handles with static lifetime.
        """
        self = object.__new__(cls)
        self._raw = raw
        self._owner = owner
        self._token = _node_token(self) if cls._tracks_node else None
        return self

    @classmethod
    def try_from_raw(cls: type[BorrowedT], raw, owner: NativeHandle | None) -> BorrowedT | None:
        if is_null(raw):
            return None
        return cls.from_raw(raw, owner)

    def to_raw(self):
        if self._token is not None and not self._token.alive:
            raise DanglingReferenceError(
                f"{type(self).__name__} refers to a node that was detached or destroyed"
            )
        if self._owner is not None and not self._owner.is_alive():
            raise DanglingReferenceError(
                f"{type(self).__name__} outlived its owner {self._owner!r}"
            )
        return self._raw

    def is_alive(self) -> bool:
        if self._token is not None and not self._token.alive:
            return False
        return self._owner is None or self._owner.is_alive()

    def _anchor(self) -> NativeHandle | None:
        # Values, uses and nested nodes reached through a tree node die with it.
        return self if self._tracks_node else self._owner

    def _parent_anchor(self) -> NativeHandle | None:
        return self._owner

    def _reattach(self, owner: NativeHandle) -> None:
        """Point this reference at *owner*, the new owner of its node."""
        self._owner = owner
        if self._tracks_node:
            self._token = _node_token(self)

    def _context_anchor(self) -> Context | None:
        if self._owner is None:
            return None
        return self._owner._context_anchor()


class DependentSet:
    """Weakly-held set of owned wrappers registered with a context."""

    def __init__(self) -> None:
        self._refs: dict[int, weakref.ref] = {}

    def add(self, item: Owned) -> None:
        self._refs[id(item)] = weakref.ref(item)

    def discard(self, item: Owned) -> None:
        ref = self._refs.get(id(item))
        if ref is not None and ref() is item:
            del self._refs[id(item)]

    def live(self) -> list[Owned]:
        items = []
        for key, ref in list(self._refs.items()):
            item = ref()
            if item is None or not item.is_owned:
                del self._refs[key]
            else:
                items.append(item)
        return items

    def __len__(self) -> int:
        return len(self.live())
