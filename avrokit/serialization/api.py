"""Serialization API interfaces.

This module defines the interfaces of the avrokit serialization layer:

- :class:`Decoder` / :class:`Encoder` read and write the primitive binary
  encoding (varints, floats, length-prefixed bytes, collection blocks).
- :class:`DatumReader` / :class:`DatumWriter` walk a schema and drive a
  decoder or encoder to read or write whole values.

Example:
    Writing and reading one value::

        from avrokit.schema import parse_schema
        from avrokit.serialization import BinaryDecoder, BinaryEncoder
        from avrokit.serialization.generic import GenericDatumReader, GenericDatumWriter

        schema = parse_schema('{"type": "array", "items": "long"}')
        encoder = BinaryEncoder()
        GenericDatumWriter(schema).write([1, 2, 3], encoder)

        decoder = BinaryDecoder(encoder.getvalue())
        assert GenericDatumReader(schema).read(decoder) == [1, 2, 3]
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class Decoder(ABC):
    """Interface for reading the binary encoding.

    Every read consumes bytes from the current position. Reading past the
    end of the input raises
    :class:`~avrokit.exceptions.UnexpectedEOFException`.
    """

    @abstractmethod
    def read_null(self) -> None:
        """Read a null value. Consumes no bytes."""
        pass

    @abstractmethod
    def read_boolean(self) -> bool:
        """Read a one-byte boolean.

        Returns:
            False for 0x00, True for any other byte.
        """
        pass

    @abstractmethod
    def read_int(self) -> int:
        """Read a zigzag varint that fits in 32 bits.

        Raises:
            IntOverflowException: If the varint does not end within 5 bytes.
        """
        pass

    @abstractmethod
    def read_long(self) -> int:
        """Read a zigzag varint that fits in 64 bits.

        Raises:
            LongOverflowException: If the varint does not end within 10 bytes.
        """
        pass

    @abstractmethod
    def read_float(self) -> float:
        """Read a 4-byte little-endian IEEE-754 float."""
        pass

    @abstractmethod
    def read_double(self) -> float:
        """Read an 8-byte little-endian IEEE-754 double."""
        pass

    @abstractmethod
    def read_bytes(self) -> bytes:
        """Read a long length followed by that many raw bytes."""
        pass

    @abstractmethod
    def read_string(self) -> str:
        """Read a long length followed by that many UTF-8 bytes."""
        pass

    @abstractmethod
    def read_fixed(self, size: int) -> bytes:
        """Read exactly ``size`` raw bytes."""
        pass

    @abstractmethod
    def read_enum(self) -> int:
        """Read an enum index."""
        pass

    @abstractmethod
    def read_array_start(self) -> int:
        """Read the item count of the first array block.

        Returns:
            The number of items in the block; 0 ends the array.
        """
        pass

    @abstractmethod
    def array_next(self) -> int:
        """Read the item count of the next array block; 0 ends the array."""
        pass

    @abstractmethod
    def read_map_start(self) -> int:
        """Read the entry count of the first map block; 0 ends the map."""
        pass

    @abstractmethod
    def map_next(self) -> int:
        """Read the entry count of the next map block; 0 ends the map."""
        pass

    @abstractmethod
    def tell(self) -> int:
        """Return the current read position."""
        pass

    @abstractmethod
    def seek(self, position: int) -> None:
        """Move the read position."""
        pass


class Encoder(ABC):
    """Interface for writing the binary encoding."""

    @abstractmethod
    def write_null(self) -> None:
        pass

    @abstractmethod
    def write_boolean(self, value: bool) -> None:
        pass

    @abstractmethod
    def write_int(self, value: int) -> None:
        """Write a zigzag varint.

        Raises:
            IntOverflowException: If the value does not fit in 32 bits.
        """
        pass

    @abstractmethod
    def write_long(self, value: int) -> None:
        """Write a zigzag varint.

        Raises:
            LongOverflowException: If the value does not fit in 64 bits.
        """
        pass

    @abstractmethod
    def write_float(self, value: float) -> None:
        pass

    @abstractmethod
    def write_double(self, value: float) -> None:
        pass

    @abstractmethod
    def write_bytes(self, value: bytes) -> None:
        pass

    @abstractmethod
    def write_string(self, value: str) -> None:
        pass

    @abstractmethod
    def write_fixed(self, value: bytes) -> None:
        """Write raw bytes without a length prefix."""
        pass

    @abstractmethod
    def write_enum(self, index: int) -> None:
        pass

    @abstractmethod
    def write_array_start(self, count: int, byte_length: Optional[int] = None) -> None:
        """Start a block of ``count`` array items.

        Args:
            count: Number of items that follow in this block.
            byte_length: Encoded size of the items. When given, the block is
                written with a negative count followed by this size.
        """
        pass

    @abstractmethod
    def write_array_end(self) -> None:
        """Terminate an array with a zero-count block."""
        pass

    @abstractmethod
    def write_map_start(self, count: int, byte_length: Optional[int] = None) -> None:
        """Start a block of ``count`` map entries."""
        pass

    @abstractmethod
    def write_map_end(self) -> None:
        """Terminate a map with a zero-count block."""
        pass


class DatumReader(ABC):
    """Reads whole values described by a schema from a :class:`Decoder`."""

    @abstractmethod
    def set_schema(self, schema: Any) -> None:
        """Set the schema values are read with."""
        pass

    @abstractmethod
    def read(self, decoder: Decoder, destination: Any = None) -> Any:
        """Read one value.

        Args:
            decoder: Source of the encoded bytes.
            destination: Optional object (or class) to decode into. Which
                destinations are accepted depends on the implementation.

        Returns:
            The decoded value.

        Raises:
            SchemaNotSetException: If no schema was set.
        """
        pass


class DatumWriter(ABC):
    """Writes whole values described by a schema to an :class:`Encoder`."""

    @abstractmethod
    def set_schema(self, schema: Any) -> None:
        """Set the schema values are written with."""
        pass

    @abstractmethod
    def write(self, value: Any, encoder: Encoder) -> None:
        """Write one value.

        Raises:
            SchemaNotSetException: If no schema was set.
        """
        pass
