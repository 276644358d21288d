from __future__ import annotations

from typing import BinaryIO, Iterable, List, Optional, Protocol


class ByteReader(Protocol):
    def read_byte(self) -> Optional[int]:
        """Return the next byte, or None once the input is exhausted."""


class ByteWriter(Protocol):
    def write_byte(self, value: int) -> None:
        """Accept one byte; raise OSError if it cannot be written."""


class BytesSource:
    """In-memory input that yields its bytes once, then reports EOF."""

    def __init__(self, data: Iterable[int] = b"") -> None:
        self._data = bytes(data)
        self._position = 0

    def read_byte(self) -> Optional[int]:
        if self._position >= len(self._data):
            return None
        value = self._data[self._position]
        self._position += 1
        return value

    @property
    def remaining(self) -> int:
        return len(self._data) - self._position


class ByteSink:
    def __init__(self) -> None:
        self._buffer = bytearray()

    def write_byte(self, value: int) -> None:
        if not 0 <= value <= 255:
            raise ValueError(f"Byte value out of range 0-255: {value}")
        self._buffer.append(value)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)


class StreamReader:
    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def read_byte(self) -> Optional[int]:
        chunk = self.stream.read(1)
        if not chunk:
            return None
        return chunk[0]


class StreamWriter:
    def __init__(self, stream: BinaryIO, flush: bool = True) -> None:
        self.stream = stream
        self.flush = flush

    def write_byte(self, value: int) -> None:
        self.stream.write(bytes((value,)))
        if self.flush:
            self.stream.flush()


def from_text(data: str) -> List[int]:
    values = [ord(ch) for ch in data]
    for ch, value in zip(data, values):
        if value > 255:
            raise ValueError(f"Character {ch!r} does not fit in a byte")
    return values


__all__ = [
    "ByteReader",
    "ByteSink",
    "ByteWriter",
    "BytesSource",
    "StreamReader",
    "StreamWriter",
    "from_text",
]
