"""Object container files.

A container file is a header followed by blocks::

    header:  magic "Obj\\x01", metadata map<bytes>, 16-byte sync marker
    block:   long count, long size, <size bytes of encoded values>, sync

The metadata holds the writer's schema under ``avro.schema`` and the block
codec under ``avro.codec``. The sync marker after every block lets the
reader detect corruption.

Example:
    Writing and reading back::

        with DataFileWriter.open("people.avro", schema) as writer:
            writer.write({"name": "Ada", "age": 36})

        with DataFileReader.open("people.avro") as reader:
            for person in reader:
                print(person.get("name"))
"""

import io
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Dict, Iterator, Optional, Union

from avrokit import codecs
from avrokit.config import SYNC_SIZE, DataFileConfig
from avrokit.exceptions import (
    AvroException,
    BlockNotFinishedException,
    ConfigurationException,
    FramingException,
    IllegalStateException,
    InvalidBlockSizeException,
    InvalidSchemaException,
    InvalidSyncException,
    NotAvroFileException,
    UnexpectedEOFException,
)
from avrokit.logging import get_logger
from avrokit.schema import Schema, must_parse_schema, parse_schema
from avrokit.schema_prepared import prepare
from avrokit.serialization.api import DatumReader, DatumWriter
from avrokit.serialization.binary import BinaryDecoder, BinaryEncoder, DataBlock, StreamBinaryDecoder
from avrokit.serialization import generic
from avrokit.serialization.generic import GenericDatumReader, GenericDatumWriter, GenericRecord
from avrokit.serialization.specific import SpecificDatumReader, SpecificDatumWriter

_logger = get_logger("datafile")

MAGIC = b"Obj\x01"
SCHEMA_KEY = "avro.schema"
CODEC_KEY = "avro.codec"
RESERVED_META_PREFIX = "avro."
MAX_BLOCK_SIZE = (1 << 31) - 1

HEADER_SCHEMA = prepare(must_parse_schema("""
{"type": "record", "name": "org.apache.avro.file.Header",
 "fields": [
   {"name": "magic", "type": {"type": "fixed", "name": "Magic", "size": 4}},
   {"name": "meta", "type": {"type": "map", "values": "bytes"}},
   {"name": "sync", "type": {"type": "fixed", "name": "Sync", "size": 16}}
 ]
}
"""))


@dataclass
class Header:
    """The container file header."""

    magic: bytes = MAGIC
    meta: Dict[str, bytes] = field(default_factory=dict)
    sync: bytes = b""


class ReaderState(Enum):
    """Lifecycle of a :class:`DataFileReader`."""
    UNOPENED = "UNOPENED"
    HEADER_READ = "HEADER_READ"
    BLOCK_ACTIVE = "BLOCK_ACTIVE"
    BLOCK_EXHAUSTED = "BLOCK_EXHAUSTED"
    CLOSED = "CLOSED"


class WriterState(Enum):
    """Lifecycle of a :class:`DataFileWriter`."""
    OPEN = "OPEN"
    BUFFERING = "BUFFERING"
    FLUSHED = "FLUSHED"
    CLOSED = "CLOSED"


def read_header(decoder) -> Header:
    """Decode a container header.

    The magic is checked before anything else is decoded.

    Raises:
        NotAvroFileException: If the magic does not match or the header
            cannot be decoded.
        UnexpectedEOFException: If the input ends inside the header.
    """
    magic = decoder.read_fixed(len(MAGIC))
    if magic != MAGIC:
        raise NotAvroFileException(f"Not an Avro data file: bad magic {magic!r}")
    _, meta_field, sync_field = HEADER_SCHEMA.fields
    try:
        meta = generic.read_value(meta_field.type, decoder)
        sync = generic.read_value(sync_field.type, decoder)
    except UnexpectedEOFException:
        raise
    except AvroException as e:
        raise NotAvroFileException(f"Invalid container header: {e}", cause=e) from e
    return Header(magic, meta, sync)


class DataFileReader:
    """Reads the values of a container file.

    Args:
        stream: Binary stream positioned at the start of the file.
        datum_reader: Reader for the values. By default values are read
            generically, or into the destination passed to :meth:`next`.
        config: Decoding options.

    The reader can be iterated; a framing error (bad sync marker, invalid
    block size, truncated block) stops it, after which :meth:`has_next`
    returns False and :attr:`err` holds the error.
    """

    def __init__(
        self,
        stream: BinaryIO,
        datum_reader: Optional[DatumReader] = None,
        config: Optional[DataFileConfig] = None,
    ):
        self._stream = stream
        self._owns_stream = False
        self._config = config or DataFileConfig()
        self._state = ReaderState.UNOPENED
        self._err: Optional[AvroException] = None
        self._block: Optional[DataBlock] = None

        codec_config = self._config.codec_config
        self._decoder = StreamBinaryDecoder(stream, codec_config)
        self._block_decoder = BinaryDecoder(b"", codec_config)

        self._header = read_header(self._decoder)
        schema_text = self._header.meta.get(SCHEMA_KEY)
        if schema_text is None:
            raise InvalidSchemaException(f"Container header has no {SCHEMA_KEY} entry")
        self._schema = parse_schema(schema_text.decode("utf-8"))
        self._codec_name = self._header.meta.get(CODEC_KEY, b"").decode("utf-8") or codecs.NULL_CODEC
        self._codec = codecs.get_codec(self._codec_name)

        self._datum_reader = datum_reader
        if datum_reader is not None:
            datum_reader.set_schema(self._schema)
        self._generic_reader = GenericDatumReader(self._schema)
        self._specific_reader: Optional[SpecificDatumReader] = None

        self._state = ReaderState.HEADER_READ
        _logger.debug("Opened container file (codec=%s, schema=%s)", self._codec_name, self._schema.full_name)
        self._load_block_or_stop()

    @classmethod
    def open(cls, path: str, datum_reader: Optional[DatumReader] = None,
             config: Optional[DataFileConfig] = None) -> "DataFileReader":
        """Open the container file at ``path``. The reader closes the file."""
        stream = open(path, "rb")
        try:
            reader = cls(stream, datum_reader, config)
        except Exception:
            stream.close()
            raise
        reader._owns_stream = True
        return reader

    @property
    def schema(self) -> Schema:
        """The writer's schema, from the header."""
        return self._schema

    @property
    def header(self) -> Header:
        return self._header

    @property
    def metadata(self) -> Dict[str, bytes]:
        """All metadata entries of the header."""
        return dict(self._header.meta)

    def get_meta(self, key: str) -> Optional[bytes]:
        return self._header.meta.get(key)

    @property
    def codec(self) -> str:
        """Name of the block codec."""
        return self._codec_name

    @property
    def sync(self) -> bytes:
        return self._header.sync

    @property
    def state(self) -> ReaderState:
        return self._state

    @property
    def block(self) -> Optional[DataBlock]:
        """The block being read, if any."""
        return self._block

    @property
    def err(self) -> Optional[AvroException]:
        """The error that stopped the reader, if any."""
        return self._err

    def _check_open(self) -> None:
        if self._state == ReaderState.CLOSED:
            raise IllegalStateException("DataFileReader is closed")

    def _stop(self, error: AvroException) -> None:
        self._err = error
        self._block = None
        _logger.debug("Container reader stopped: %s", error)

    def _load_block(self) -> bool:
        """Read the next block from the stream.

        Returns:
            False at the end of the stream.
        """
        self._block = None
        start = self._decoder.tell()
        try:
            count = self._decoder.read_long()
        except UnexpectedEOFException:
            if self._decoder.tell() == start:
                self._state = ReaderState.BLOCK_EXHAUSTED
                return False
            raise
        if count < 0:
            raise FramingException(f"Negative block count: {count}")
        size = self._decoder.read_long()
        if size < 0 or size > MAX_BLOCK_SIZE:
            raise InvalidBlockSizeException(size)
        raw = self._decoder.read_fixed(size)
        sync = self._decoder.read_fixed(SYNC_SIZE)
        if sync != self._header.sync:
            raise InvalidSyncException(self._header.sync, sync)

        data = self._codec.decompress(raw) if size else b""
        block = DataBlock(data, count, len(data))
        self._block_decoder.set_block(block)
        self._block = block
        self._state = ReaderState.BLOCK_ACTIVE
        _logger.debug("Loaded block: %d entries, %d bytes (%d on disk)", count, len(data), size)
        return True

    def _load_block_or_stop(self) -> bool:
        try:
            return self._load_block()
        except AvroException as e:
            self._stop(e)
            return False

    def _advance(self) -> bool:
        while True:
            block = self._block
            if block is None:
                return False
            if block.remaining > 0:
                return True
            self._state = ReaderState.BLOCK_EXHAUSTED
            position = self._block_decoder.tell()
            if position < block.block_size:
                self._stop(BlockNotFinishedException(position, block.block_size))
                return False
            if not self._load_block_or_stop():
                return False

    def has_next(self) -> bool:
        """Whether another value can be read."""
        if self._err is not None or self._state == ReaderState.CLOSED:
            return False
        return self._advance()

    def next(self, destination: Any = None) -> Any:
        """Read the next value.

        Args:
            destination: Object or class to decode a record into; see
                :class:`~avrokit.serialization.specific.SpecificDatumReader`.

        Raises:
            StopIteration: At the end of the file.
            FramingException: If the file is corrupt. The reader stops.
            AvroValueException: If the value is malformed. The value is
                skipped; :meth:`skip_block` drops the rest of its block.
        """
        self._check_open()
        if not self.has_next():
            if self._err is not None:
                raise self._err
            raise StopIteration
        try:
            return self._read_datum(destination)
        except FramingException as e:
            self._stop(e)
            raise
        finally:
            if self._block is not None:
                self._block.remaining -= 1

    def _read_datum(self, destination: Any) -> Any:
        if self._datum_reader is not None:
            return self._datum_reader.read(self._block_decoder, destination)
        if destination is None or isinstance(destination, GenericRecord):
            return self._generic_reader.read(self._block_decoder, destination)
        if self._specific_reader is None:
            self._specific_reader = SpecificDatumReader(self._schema)
        return self._specific_reader.read(self._block_decoder, destination)

    def next_block(self) -> bool:
        """Move to the next block.

        Returns:
            False at the end of the file.

        Raises:
            BlockNotFinishedException: If the current block was not read to
                its end. Use :meth:`skip_block` to drop it instead.
        """
        self._check_open()
        if self._err is not None:
            raise self._err
        block = self._block
        if block is not None:
            position = self._block_decoder.tell()
            if position < block.block_size:
                raise BlockNotFinishedException(position, block.block_size)
        self._state = ReaderState.BLOCK_EXHAUSTED
        if not self._load_block_or_stop() and self._err is not None:
            raise self._err
        return self._block is not None

    def skip_block(self) -> bool:
        """Drop the unread rest of the current block and move to the next one."""
        self._check_open()
        block = self._block
        if block is not None:
            _logger.debug("Skipping %d unread entries", block.remaining)
            block.remaining = 0
            self._block_decoder.seek(block.block_size)
        return self.next_block()

    def close(self) -> None:
        """Close the reader, and the file if the reader opened it."""
        if self._state == ReaderState.CLOSED:
            return
        self._state = ReaderState.CLOSED
        self._block = None
        if self._owns_stream:
            self._stream.close()

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        return self.next()

    def __enter__(self) -> "DataFileReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class DataFileWriter:
    """Writes values into a container file.

    Values are buffered into the current block. :meth:`flush` writes the
    block out; :meth:`close` flushes, writes an empty end block and
    releases the writer.

    Args:
        stream: Binary stream to write the file to.
        schema: Schema of the values, as a :class:`Schema` or JSON text.
        datum_writer: Writer for the values. Defaults to a specific datum
            writer (which also accepts generic values).
        codec: Block codec name. Defaults to the configured codec.
        sync: 16-byte sync marker. Defaults to the configured marker, or
            random bytes.
        metadata: Extra header entries. Keys starting with ``avro.`` are
            reserved.
        config: Writer options.
    """

    def __init__(
        self,
        stream: BinaryIO,
        schema: Union[Schema, str, dict],
        datum_writer: Optional[DatumWriter] = None,
        codec: Optional[str] = None,
        sync: Optional[bytes] = None,
        metadata: Optional[Dict[str, Union[str, bytes]]] = None,
        config: Optional[DataFileConfig] = None,
    ):
        self._config = config or DataFileConfig()
        self._stream = stream
        self._owns_stream = False

        if not isinstance(schema, Schema):
            schema = parse_schema(schema)
        self._schema = schema

        self._codec_name = codec or self._config.codec or codecs.NULL_CODEC
        self._codec = codecs.get_codec(self._codec_name)

        if sync is None:
            sync = self._config.sync_marker or os.urandom(SYNC_SIZE)
        if len(sync) != SYNC_SIZE:
            raise ConfigurationException(f"Sync marker must be {SYNC_SIZE} bytes, got {len(sync)}")
        self._sync = bytes(sync)

        if datum_writer is None:
            if self._config.prepare_schema:
                datum_writer = SpecificDatumWriter(schema)
            else:
                datum_writer = GenericDatumWriter(schema)
        else:
            datum_writer.set_schema(schema)
        self._datum_writer = datum_writer

        meta = {
            SCHEMA_KEY: str(schema).encode("utf-8"),
            CODEC_KEY: self._codec_name.encode("utf-8"),
        }
        for key, value in (metadata or {}).items():
            if key.startswith(RESERVED_META_PREFIX):
                raise ConfigurationException(f"Metadata key {key!r} is reserved")
            meta[key] = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        self._meta = meta

        self._codec_config = self._config.codec_config
        self._encoder = BinaryEncoder(stream, self._codec_config)
        SpecificDatumWriter(HEADER_SCHEMA).write(Header(MAGIC, meta, self._sync), self._encoder)

        self._block_buffer = io.BytesIO()
        self._block_count = 0
        self._blocks_written = 0
        self._state = WriterState.OPEN

    @classmethod
    def open(cls, path: str, schema: Union[Schema, str, dict], **kwargs) -> "DataFileWriter":
        """Create the container file at ``path``. The writer closes the file."""
        stream = open(path, "wb")
        try:
            writer = cls(stream, schema, **kwargs)
        except Exception:
            stream.close()
            raise
        writer._owns_stream = True
        return writer

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def sync(self) -> bytes:
        return self._sync

    @property
    def codec(self) -> str:
        return self._codec_name

    @property
    def metadata(self) -> Dict[str, bytes]:
        return dict(self._meta)

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def pending(self) -> int:
        """Number of values buffered in the current block."""
        return self._block_count

    @property
    def blocks_written(self) -> int:
        return self._blocks_written

    def _check_open(self) -> None:
        if self._state == WriterState.CLOSED:
            raise IllegalStateException("DataFileWriter is closed")

    def write(self, value: Any) -> None:
        """Append one value to the current block.

        The value is encoded completely before it is added; a value that
        fails to encode leaves the block unchanged.
        """
        self._check_open()
        encoder = BinaryEncoder(config=self._codec_config)
        self._datum_writer.write(value, encoder)
        self._block_buffer.write(encoder.getvalue())
        self._block_count += 1
        self._state = WriterState.BUFFERING

    def flush(self) -> None:
        """Write the buffered values as one block. Does nothing if none are buffered."""
        self._check_open()
        if self._block_count > 0:
            self._write_block()

    def _write_block(self) -> None:
        data = self._codec.compress(self._block_buffer.getvalue())
        self._encoder.write_long(self._block_count)
        self._encoder.write_long(len(data))
        self._encoder.write_fixed(data)
        self._encoder.write_fixed(self._sync)
        self._encoder.flush()
        _logger.debug("Flushed block: %d entries, %d bytes", self._block_count, len(data))

        self._block_buffer = io.BytesIO()
        self._block_count = 0
        self._blocks_written += 1
        self._state = WriterState.FLUSHED

    def close(self) -> None:
        """Flush, write the empty end block and release the writer.

        Closing twice is a no-op.
        """
        if self._state == WriterState.CLOSED:
            return
        self.flush()
        self._write_block()
        if self._owns_stream:
            self._stream.close()
        self._state = WriterState.CLOSED
        self._datum_writer = None
        self._encoder = None
        self._block_buffer = None

    def __enter__(self) -> "DataFileWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
