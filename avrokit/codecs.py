"""Block compression codecs for container files.

A container file names its codec in the ``avro.codec`` metadata entry.
Every block's payload is passed through the codec's :meth:`Codec.compress`
on write and :meth:`Codec.decompress` on read; the block's byte size and
sync marker always describe the compressed form.
"""

import zlib
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from avrokit.exceptions import AvroValueException, UnsupportedCodecException


NULL_CODEC = "null"
DEFLATE_CODEC = "deflate"


class Codec(ABC):
    """A block compression codec."""

    name: str = ""

    @abstractmethod
    def compress(self, data: bytes) -> bytes:
        """Compress one block payload."""
        pass

    @abstractmethod
    def decompress(self, data: bytes) -> bytes:
        """Decompress one block payload."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class NullCodec(Codec):
    """Stores blocks as-is."""

    name = NULL_CODEC

    def compress(self, data: bytes) -> bytes:
        return bytes(data)

    def decompress(self, data: bytes) -> bytes:
        return bytes(data)


class DeflateCodec(Codec):
    """Raw deflate (RFC 1951) without zlib header or checksum."""

    name = DEFLATE_CODEC

    def __init__(self, level: int = zlib.Z_DEFAULT_COMPRESSION):
        if level != zlib.Z_DEFAULT_COMPRESSION and not 0 <= level <= 9:
            raise ValueError(f"Invalid deflate level: {level}")
        self._level = level

    @property
    def level(self) -> int:
        return self._level

    def compress(self, data: bytes) -> bytes:
        compressor = zlib.compressobj(self._level, zlib.DEFLATED, -zlib.MAX_WBITS)
        return compressor.compress(data) + compressor.flush()

    def decompress(self, data: bytes) -> bytes:
        try:
            return zlib.decompress(data, -zlib.MAX_WBITS)
        except zlib.error as e:
            raise AvroValueException(f"Corrupt deflate block: {e}", cause=e)

    def __repr__(self) -> str:
        return f"DeflateCodec(level={self._level})"


_CODECS: Dict[str, Callable[[], Codec]] = {
    NULL_CODEC: NullCodec,
    DEFLATE_CODEC: DeflateCodec,
}


def register_codec(name: str, factory: Callable[[], Codec]) -> None:
    """Make a codec available under ``name`` for readers and writers.

    Args:
        name: Value of the ``avro.codec`` metadata entry.
        factory: Zero-argument callable returning a :class:`Codec`.
    """
    if not name:
        raise ValueError("Codec name must not be empty")
    _CODECS[name] = factory


def is_registered(name: str) -> bool:
    return name in _CODECS or name == ""


def codec_names() -> List[str]:
    return sorted(_CODECS)


def get_codec(name: str) -> Codec:
    """Look up a codec by its ``avro.codec`` name.

    An empty name means the file predates the codec entry and is
    uncompressed.

    Raises:
        UnsupportedCodecException: If no codec is registered under ``name``.
    """
    if name == "":
        name = NULL_CODEC
    factory = _CODECS.get(name)
    if factory is None:
        raise UnsupportedCodecException(name)
    return factory()
