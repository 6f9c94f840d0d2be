"""Binary encoder and decoders.

Encoding rules:

- ``int`` and ``long`` are zigzag-encoded varints: 7 bits per byte, least
  significant group first, high bit set on every byte but the last.
- ``float`` and ``double`` are little-endian IEEE-754.
- ``bytes`` and ``string`` carry a ``long`` length prefix.
- arrays and maps are sequences of blocks, each a ``long`` item count
  followed by the items, terminated by a zero count. A negative count is
  followed by the ``long`` byte size of the block.
"""

import io
import math
import struct
import warnings
from dataclasses import dataclass
from typing import BinaryIO, Optional

from avrokit.config import CodecConfig
from avrokit.exceptions import (
    IllegalStateException,
    IntOverflowException,
    InvalidBoolException,
    InvalidBoolWarning,
    InvalidStringLengthException,
    LongOverflowException,
    NegativeBytesLengthException,
    UnexpectedEOFException,
)
from avrokit.logging import get_logger
from avrokit.serialization.api import Decoder, Encoder

_logger = get_logger("binary")

INT_MIN = -(1 << 31)
INT_MAX = (1 << 31) - 1
LONG_MIN = -(1 << 63)
LONG_MAX = (1 << 63) - 1

MAX_INT_BYTES = 5
MAX_LONG_BYTES = 10

_FLOAT = struct.Struct("<f")
_DOUBLE = struct.Struct("<d")

STREAM_CHUNK_SIZE = 64 * 1024


@dataclass
class DataBlock:
    """One container file block.

    Attributes:
        data: The block payload, already decompressed.
        num_entries: Number of values the block holds.
        block_size: Size of ``data`` in bytes.
        remaining: Number of values not read yet.
    """

    data: bytes
    num_entries: int
    block_size: int = -1
    remaining: int = -1

    def __post_init__(self):
        if self.block_size < 0:
            self.block_size = len(self.data)
        if self.remaining < 0:
            self.remaining = self.num_entries


def _zigzag(value: int) -> int:
    return (value << 1) ^ (value >> 63)


def _unzigzag(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer as a base-128 varint."""
    out = bytearray()
    while value & ~0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def encode_long(value: int) -> bytes:
    """Zigzag-encode a 64-bit signed integer."""
    if not LONG_MIN <= value <= LONG_MAX:
        raise LongOverflowException(f"Value {value} does not fit in a long")
    return encode_varint(_zigzag(value))


def encode_int(value: int) -> bytes:
    """Zigzag-encode a 32-bit signed integer."""
    if not INT_MIN <= value <= INT_MAX:
        raise IntOverflowException(f"Value {value} does not fit in an int")
    return encode_varint(_zigzag(value))


class _BinaryDecoderBase(Decoder):
    """Primitive decoding on top of ``_read`` and ``_read_byte``."""

    def __init__(self, config: Optional[CodecConfig] = None):
        self._config = config or CodecConfig()

    @property
    def strict_booleans(self) -> bool:
        return self._config.strict_booleans

    def _read(self, n: int) -> bytes:
        raise NotImplementedError

    def _read_byte(self) -> int:
        raise NotImplementedError

    def _read_varint(self, max_bytes: int, overflow) -> int:
        value = 0
        shift = 0
        for _ in range(max_bytes):
            b = self._read_byte()
            value |= (b & 0x7F) << shift
            if not b & 0x80:
                return value
            shift += 7
        raise overflow()

    def read_null(self) -> None:
        return None

    def read_boolean(self) -> bool:
        b = self._read_byte()
        if b == 0:
            return False
        if b == 1:
            return True
        if self._config.strict_booleans:
            raise InvalidBoolException(b)
        _logger.warning("Invalid bool byte 0x%02x at position %d, decoding as True", b, self.tell() - 1)
        warnings.warn(f"Invalid bool value: 0x{b:02x}", InvalidBoolWarning, stacklevel=2)
        return True

    def read_int(self) -> int:
        value = self._read_varint(MAX_INT_BYTES, IntOverflowException)
        return _unzigzag(value & 0xFFFFFFFF)

    def read_long(self) -> int:
        value = self._read_varint(MAX_LONG_BYTES, LongOverflowException)
        return _unzigzag(value & 0xFFFFFFFFFFFFFFFF)

    def read_float(self) -> float:
        return _FLOAT.unpack(self._read(4))[0]

    def read_double(self) -> float:
        return _DOUBLE.unpack(self._read(8))[0]

    def read_bytes(self) -> bytes:
        length = self.read_long()
        if length < 0:
            raise NegativeBytesLengthException(length)
        return self._read(length)

    def read_string(self) -> str:
        length = self.read_long()
        if length < 0:
            raise InvalidStringLengthException(length)
        return self._read(length).decode("utf-8", "surrogateescape")

    def read_fixed(self, size: int) -> bytes:
        return self._read(size)

    def read_enum(self) -> int:
        return self.read_int()

    def _read_block_count(self) -> int:
        count = self.read_long()
        if count < 0:
            # Byte size of the block; only needed for skipping.
            self.read_long()
            count = -count
        return count

    def read_array_start(self) -> int:
        return self._read_block_count()

    def array_next(self) -> int:
        return self._read_block_count()

    def read_map_start(self) -> int:
        return self._read_block_count()

    def map_next(self) -> int:
        return self._read_block_count()


class BinaryDecoder(_BinaryDecoderBase):
    """Decoder over an in-memory buffer.

    Args:
        data: The encoded bytes.
        config: Decoding options.
    """

    def __init__(self, data: bytes = b"", config: Optional[CodecConfig] = None):
        super().__init__(config)
        self._buffer = memoryview(bytes(data))
        self._pos = 0

    def _read(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._buffer):
            raise UnexpectedEOFException(
                f"Unexpected end of input: need {n} bytes at position {self._pos}, "
                f"{len(self._buffer) - self._pos} available"
            )
        data = self._buffer[self._pos:end].tobytes()
        self._pos = end
        return data

    def _read_byte(self) -> int:
        if self._pos >= len(self._buffer):
            raise UnexpectedEOFException(
                f"Unexpected end of input at position {self._pos}"
            )
        b = self._buffer[self._pos]
        self._pos += 1
        return b

    def tell(self) -> int:
        return self._pos

    def seek(self, position: int) -> None:
        if position < 0:
            raise ValueError(f"Negative position: {position}")
        self._pos = position

    def remaining(self) -> int:
        """Number of bytes left after the current position."""
        return max(len(self._buffer) - self._pos, 0)

    def set_block(self, block: DataBlock) -> None:
        """Redirect the decoder to the payload of ``block`` at position 0."""
        self._buffer = memoryview(block.data)[:block.block_size]
        self._pos = 0


class StreamBinaryDecoder(_BinaryDecoderBase):
    """Decoder over a binary file-like object.

    ``tell()`` reports the number of bytes consumed since the decoder was
    created; ``seek()`` is only available when the stream is seekable.
    """

    def __init__(self, stream: BinaryIO, config: Optional[CodecConfig] = None):
        super().__init__(config)
        self._stream = stream
        self._consumed = 0
        self._origin = stream.tell() if _is_seekable(stream) else 0

    @property
    def stream(self) -> BinaryIO:
        return self._stream

    def _read(self, n: int) -> bytes:
        if n == 0:
            return b""
        chunks = []
        needed = n
        while needed > 0:
            chunk = self._stream.read(min(needed, STREAM_CHUNK_SIZE))
            if not chunk:
                raise UnexpectedEOFException(
                    f"Unexpected end of stream: need {n} bytes, got {n - needed}"
                )
            chunks.append(chunk)
            needed -= len(chunk)
            self._consumed += len(chunk)
        return b"".join(chunks)

    def _read_byte(self) -> int:
        return self._read(1)[0]

    def tell(self) -> int:
        return self._consumed

    def seek(self, position: int) -> None:
        if not _is_seekable(self._stream):
            raise IllegalStateException("Stream is not seekable")
        if position < 0:
            raise ValueError(f"Negative position: {position}")
        self._stream.seek(self._origin + position)
        self._consumed = position


def _is_seekable(stream) -> bool:
    seekable = getattr(stream, "seekable", None)
    return bool(seekable and seekable())


class BinaryEncoder(Encoder):
    """Encoder writing to a binary stream.

    Args:
        stream: Destination. Defaults to a new ``io.BytesIO``, whose
            contents are available through :meth:`getvalue`.
        config: Encoding options. ``max_block_items`` limits the number of
            items written per array/map block.
    """

    def __init__(self, stream: Optional[BinaryIO] = None, config: Optional[CodecConfig] = None):
        self._stream = stream if stream is not None else io.BytesIO()
        self._config = config or CodecConfig()
        self._written = 0

    @property
    def stream(self) -> BinaryIO:
        return self._stream

    @property
    def max_block_items(self) -> Optional[int]:
        return self._config.max_block_items

    @property
    def config(self) -> CodecConfig:
        return self._config

    def tell(self) -> int:
        """Number of bytes written through this encoder."""
        return self._written

    def getvalue(self) -> bytes:
        """Return everything written so far (in-memory streams only)."""
        getvalue = getattr(self._stream, "getvalue", None)
        if getvalue is None:
            raise IllegalStateException("Encoder stream is not an in-memory buffer")
        return getvalue()

    def _write(self, data: bytes) -> None:
        self._stream.write(data)
        self._written += len(data)

    def write_null(self) -> None:
        pass

    def write_boolean(self, value: bool) -> None:
        self._write(b"\x01" if value else b"\x00")

    def write_int(self, value: int) -> None:
        self._write(encode_int(value))

    def write_long(self, value: int) -> None:
        self._write(encode_long(value))

    def write_float(self, value: float) -> None:
        try:
            data = _FLOAT.pack(value)
        except OverflowError:
            data = _FLOAT.pack(math.copysign(math.inf, value))
        self._write(data)

    def write_double(self, value: float) -> None:
        self._write(_DOUBLE.pack(value))

    def write_bytes(self, value: bytes) -> None:
        self.write_long(len(value))
        self._write(bytes(value))

    def write_string(self, value: str) -> None:
        self.write_bytes(value.encode("utf-8", "surrogateescape"))

    def write_fixed(self, value: bytes) -> None:
        self._write(bytes(value))

    def write_enum(self, index: int) -> None:
        self.write_int(index)

    def _write_block_start(self, count: int, byte_length: Optional[int]) -> None:
        if count <= 0:
            raise ValueError(f"Block item count must be positive, got {count}")
        if byte_length is None:
            self.write_long(count)
        else:
            self.write_long(-count)
            self.write_long(byte_length)

    def write_array_start(self, count: int, byte_length: Optional[int] = None) -> None:
        self._write_block_start(count, byte_length)

    def write_array_end(self) -> None:
        self.write_long(0)

    def write_map_start(self, count: int, byte_length: Optional[int] = None) -> None:
        self._write_block_start(count, byte_length)

    def write_map_end(self) -> None:
        self.write_long(0)

    def flush(self) -> None:
        flush = getattr(self._stream, "flush", None)
        if flush is not None:
            flush()
