"""Text crossing the native boundary in both directions.

Inbound text is wrapped in a :class:`StringRef`, which keeps the encoded
buffer alive for as long as the native side may read it.  Outbound text is
pushed by the native printers in chunks through a single module-level
callback, which forwards them to a :class:`StringReader`.
"""

from __future__ import annotations

import codecs
import ctypes
import io
from typing import Protocol

from mlirsafe._capi import MlirStringCallback, MlirStringRef, capi
from mlirsafe.errors import PrintError


def _view(buffer: ctypes.Array, length: int) -> MlirStringRef:
    raw = MlirStringRef(ctypes.cast(buffer, ctypes.c_void_p), length)
    # The raw struct may outlive its StringRef when passed straight to a call.
    raw._buffer = buffer
    return raw


class StringRef:
    """A borrowed ``(data, length)`` view of UTF-8 text.

    Built from Python text the wrapper owns the encoded buffer.  Built from a
    foreign ``MlirStringRef`` (see :meth:`from_raw`) it only points into
    memory owned by the native library, so it must be decoded before that
    memory goes away.
    """

    __slots__ = ("_buffer", "_raw")

    def __init__(self, text: str | bytes = "") -> None:
        data = text.encode("utf-8") if isinstance(text, str) else bytes(text)
        # Sized explicitly so no terminator is appended.
        self._buffer = ctypes.create_string_buffer(data, max(len(data), 1))
        self._raw = _view(self._buffer, len(data))

    @classmethod
    def null_terminated(cls, text: str | bytes) -> StringRef:
        """Build a view whose buffer carries a trailing NUL past ``length``.

        Operation and module parsing read the source as a C string even though
        the transport type carries an explicit length.
        """
        data = text.encode("utf-8") if isinstance(text, str) else bytes(text)
        if b"\0" in data:
            raise ValueError("source text must not contain NUL bytes")
        self = cls.__new__(cls)
        self._buffer = ctypes.create_string_buffer(data)
        self._raw = _view(self._buffer, len(data))
        return self

    @classmethod
    def from_raw(cls, raw: MlirStringRef) -> StringRef:
        self = cls.__new__(cls)
        self._buffer = None
        self._raw = raw
        return self

    def to_raw(self) -> MlirStringRef:
        return self._raw

    def to_bytes(self) -> bytes:
        if not self._raw.length:
            return b""
        return ctypes.string_at(self._raw.data, self._raw.length)

    def __len__(self) -> int:
        return self._raw.length

    def __str__(self) -> str:
        return self.to_bytes().decode("utf-8")

    def __repr__(self) -> str:
        return f"StringRef({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StringRef):
            return self.to_bytes() == other.to_bytes()
        if isinstance(other, str):
            return str(self) == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_bytes())


def decode(raw: MlirStringRef) -> str:
    """Copy a foreign string into a Python ``str``."""
    return str(StringRef.from_raw(raw))


class TextSink(Protocol):
    def write(self, text: str) -> object: ...


class StringReader:
    """Collects the chunks pushed by a native print call into *sink*.

    Chunk boundaries are arbitrary, so a multi-byte UTF-8 sequence may be
    split across two callbacks; an incremental decoder joins them.  Any
    exception raised while handling a chunk is held until the native call
    returns (see :meth:`raise_pending`).
    """

    def __init__(self, sink: TextSink | None = None) -> None:
        self.sink = sink if sink is not None else io.StringIO()
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._error: BaseException | None = None

    def feed(self, chunk: bytes) -> None:
        if self._error is not None:
            return
        try:
            text = self._decoder.decode(chunk)
            if text:
                self.sink.write(text)
        except BaseException as exc:  # must not unwind into native frames
            self._error = exc

    def finish(self) -> None:
        if self._error is None:
            try:
                tail = self._decoder.decode(b"", final=True)
                if tail:
                    self.sink.write(tail)
            except BaseException as exc:
                self._error = exc
        self.raise_pending()

    def raise_pending(self) -> None:
        if self._error is not None:
            error, self._error = self._error, None
            raise PrintError(f"Failed to collect printed text: {error!r}") from error

    def getvalue(self) -> str:
        return self.sink.getvalue()

    def user_data(self) -> tuple[ctypes.c_void_p, ctypes.py_object]:
        """Return the opaque pointer handed to native code, plus its keep-alive cell."""
        cell = ctypes.py_object(self)
        return ctypes.cast(ctypes.pointer(cell), ctypes.c_void_p), cell


def _reader_from(user_data: int):
    return ctypes.cast(user_data, ctypes.POINTER(ctypes.py_object)).contents.value


# Failures of callbacks that could not reach their reader; print_with
# reports the ones raised during its own native call.
_lost_errors: list[BaseException] = []


@MlirStringCallback
def _print_callback(chunk, user_data):
    try:
        reader = _reader_from(user_data)
    except BaseException as exc:  # must not unwind into native frames
        _lost_errors.append(exc)
        return
    if chunk.length:
        reader.feed(ctypes.string_at(chunk.data, chunk.length))


def print_with(print_fn: str, raw, sink: TextSink | None = None) -> StringReader:
    """Run the native printer *print_fn* on *raw*, writing into *sink*."""
    reader = StringReader(sink)
    user_data, _cell = reader.user_data()
    start = len(_lost_errors)
    getattr(capi(), print_fn)(raw, _print_callback, user_data)
    lost = _lost_errors[start:]
    del _lost_errors[start:]
    if lost:
        raise PrintError(f"Printed text was dropped: {lost[0]!r}") from lost[0]
    reader.finish()
    return reader


def print_to_string(print_fn: str, raw) -> str:
    return print_with(print_fn, raw).getvalue()
