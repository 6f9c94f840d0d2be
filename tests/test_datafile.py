"""Unit tests for avrokit.datafile module."""

import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

from avrokit.config import CodecConfig, DataFileConfig
from avrokit.datafile import (
    HEADER_SCHEMA,
    MAGIC,
    DataFileReader,
    DataFileWriter,
    Header,
    ReaderState,
    WriterState,
)
from avrokit.exceptions import (
    AvroException,
    BlockNotFinishedException,
    ConfigurationException,
    FieldDoesNotExistException,
    IllegalStateException,
    InvalidBlockSizeException,
    InvalidSchemaException,
    InvalidSyncException,
    NotAvroFileException,
    UnexpectedEOFException,
    UnsupportedCodecException,
)
from avrokit.serialization.binary import BinaryEncoder, encode_long
from avrokit.serialization.generic import GenericDatumReader, GenericRecord
from avrokit.serialization.specific import SpecificDatumWriter

SYNC = b"\xaa" * 16


@dataclass
class Person:
    name: str = ""
    age: int = 0
    email: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)


def _people(count):
    return [
        {"name": f"person-{i}", "age": i, "email": None, "tags": [str(i)], "scores": {"s": float(i)}}
        for i in range(count)
    ]


def _write_file(schema, records, flush_every=None, **kwargs):
    buffer = io.BytesIO()
    kwargs.setdefault("sync", SYNC)
    with DataFileWriter(buffer, schema, **kwargs) as writer:
        for i, record in enumerate(records, 1):
            writer.write(record)
            if flush_every and i % flush_every == 0:
                writer.flush()
    return buffer.getvalue()


def _raw_header(meta, sync=SYNC):
    encoder = BinaryEncoder()
    SpecificDatumWriter(HEADER_SCHEMA).write(Header(MAGIC, meta, sync), encoder)
    return encoder.getvalue()


class TestDataFileWriter:
    """Tests for DataFileWriter."""

    def test_header(self, person_schema):
        data = _write_file(person_schema, [])
        assert data.startswith(MAGIC)
        reader = DataFileReader(io.BytesIO(data))
        assert reader.sync == SYNC
        assert reader.codec == "null"
        assert reader.schema.to_json() == person_schema.to_json()
        assert reader.metadata["avro.codec"] == b"null"

    def test_empty_file_ends_with_empty_block(self, person_schema):
        data = _write_file(person_schema, [])
        assert data.endswith(b"\x00\x00" + SYNC)

    def test_block_layout(self, person_schema, person_dict):
        data = _write_file(person_schema, [person_dict])
        encoder = BinaryEncoder()
        SpecificDatumWriter(person_schema).write(person_dict, encoder)
        payload = encoder.getvalue()
        block = encode_long(1) + encode_long(len(payload)) + payload + SYNC
        assert data.endswith(block + b"\x00\x00" + SYNC)

    def test_states(self, person_schema, person_dict, buffer):
        writer = DataFileWriter(buffer, person_schema)
        assert writer.state == WriterState.OPEN
        writer.write(person_dict)
        assert writer.state == WriterState.BUFFERING
        assert writer.pending == 1
        writer.flush()
        assert writer.state == WriterState.FLUSHED
        assert writer.pending == 0
        writer.close()
        assert writer.state == WriterState.CLOSED
        assert writer.blocks_written == 2

    def test_flush_without_pending_writes_nothing(self, person_schema, buffer):
        writer = DataFileWriter(buffer, person_schema)
        size = len(buffer.getvalue())
        writer.flush()
        assert len(buffer.getvalue()) == size
        assert writer.blocks_written == 0

    def test_double_close(self, person_schema, buffer):
        writer = DataFileWriter(buffer, person_schema)
        writer.close()
        size = len(buffer.getvalue())
        writer.close()
        assert len(buffer.getvalue()) == size

    def test_write_after_close(self, person_schema, person_dict, buffer):
        writer = DataFileWriter(buffer, person_schema)
        writer.close()
        with pytest.raises(IllegalStateException):
            writer.write(person_dict)
        with pytest.raises(IllegalStateException):
            writer.flush()

    def test_failed_write_leaves_block_unchanged(self, person_schema, person_dict, buffer):
        writer = DataFileWriter(buffer, person_schema)
        writer.write(person_dict)
        broken = dict(person_dict)
        del broken["age"]
        with pytest.raises(FieldDoesNotExistException):
            writer.write(broken)
        assert writer.pending == 1
        writer.close()
        assert len(list(DataFileReader(io.BytesIO(buffer.getvalue())))) == 1

    @pytest.mark.parametrize("field_name,value", [("name", None), ("age", "7"), ("scores", {"s": None})])
    def test_mistyped_value_raises_avro_exception(self, person_schema, person_dict, buffer, field_name, value):
        writer = DataFileWriter(buffer, person_schema)
        person_dict[field_name] = value
        with pytest.raises(AvroException):
            writer.write(person_dict)
        assert writer.pending == 0
        writer.close()
        assert list(DataFileReader(io.BytesIO(buffer.getvalue()))) == []


    def test_schema_as_json_text(self, buffer):
        schema_text = (
            '{"type": "record", "name": "Point", "fields": '
            '[{"name": "x", "type": "int"}, {"name": "y", "type": "int"}]}'
        )
        with DataFileWriter(buffer, schema_text) as writer:
            writer.write({"x": 1, "y": 2})
        records = list(DataFileReader(io.BytesIO(buffer.getvalue())))
        assert records[0].to_dict() == {"x": 1, "y": 2}

    def test_metadata(self, person_schema):
        data = _write_file(person_schema, [], metadata={"created_by": "tests", "raw": b"\x00\x01"})
        reader = DataFileReader(io.BytesIO(data))
        assert reader.get_meta("created_by") == b"tests"
        assert reader.get_meta("raw") == b"\x00\x01"
        assert reader.get_meta("missing") is None

    def test_reserved_metadata_key(self, person_schema, buffer):
        with pytest.raises(ConfigurationException):
            DataFileWriter(buffer, person_schema, metadata={"avro.custom": "x"})

    def test_invalid_sync_size(self, person_schema, buffer):
        with pytest.raises(ConfigurationException):
            DataFileWriter(buffer, person_schema, sync=b"short")

    def test_unknown_codec(self, person_schema, buffer):
        with pytest.raises(UnsupportedCodecException):
            DataFileWriter(buffer, person_schema, codec="snappy")

    def test_random_sync_by_default(self, person_schema):
        first = DataFileWriter(io.BytesIO(), person_schema)
        second = DataFileWriter(io.BytesIO(), person_schema)
        assert len(first.sync) == 16
        assert first.sync != second.sync

    def test_config_sync_and_codec(self, person_schema, buffer):
        config = DataFileConfig(codec="deflate", sync_marker=b"\x01" * 16)
        writer = DataFileWriter(buffer, person_schema, config=config)
        assert writer.sync == b"\x01" * 16
        assert writer.codec == "deflate"

    def test_unprepared_writer_takes_generic_values(self, person_schema, person_dict, buffer):
        config = DataFileConfig(prepare_schema=False)
        with DataFileWriter(buffer, person_schema, config=config) as writer:
            writer.write(person_dict)
        assert next(iter(DataFileReader(io.BytesIO(buffer.getvalue())))).get("age") == 36

    def test_logs_flushes(self, person_schema, person_dict, buffer, caplog):
        caplog.set_level(logging.DEBUG, logger="avrokit")
        with DataFileWriter(buffer, person_schema) as writer:
            writer.write(person_dict)
        assert any("Flushed block: 1 entries" in r.getMessage() for r in caplog.records)


class TestDataFileRoundTrip:
    """Tests for writing and reading back container files."""

    def test_generic(self, person_schema):
        records = _people(5)
        result = list(DataFileReader(io.BytesIO(_write_file(person_schema, records))))
        assert all(isinstance(r, GenericRecord) for r in result)
        assert [r.to_dict() for r in result] == records

    def test_specific(self, person_schema):
        people = [Person(**p) for p in _people(3)]
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, people)))
        result = []
        while reader.has_next():
            result.append(reader.next(Person))
        assert result == people
        assert reader.err is None

    def test_fill_destination(self, person_schema):
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, _people(2))))
        target = Person()
        assert reader.next(target) is target
        assert target.name == "person-0"
        reader.next(target)
        assert target.name == "person-1"

    def test_deflate(self, person_schema):
        records = _people(50)
        plain = _write_file(person_schema, records)
        compressed = _write_file(person_schema, records, codec="deflate")
        assert len(compressed) < len(plain)
        reader = DataFileReader(io.BytesIO(compressed))
        assert reader.codec == "deflate"
        assert [r.to_dict() for r in reader] == records

    def test_many_blocks(self, person_schema):
        records = _people(7)
        data = _write_file(person_schema, records, flush_every=3)
        assert [r.to_dict() for r in DataFileReader(io.BytesIO(data))] == records

    def test_many_blocks_deflate(self, person_schema):
        records = _people(7)
        data = _write_file(person_schema, records, flush_every=2, codec="deflate")
        assert [r.to_dict() for r in DataFileReader(io.BytesIO(data))] == records

    def test_max_block_items_in_collections(self, person_schema):
        record = {"name": "a", "age": 1, "email": None, "tags": list("abcdefg"), "scores": {}}
        config = DataFileConfig(codec_config=CodecConfig(max_block_items=2))
        data = _write_file(person_schema, [record], config=config)
        assert next(iter(DataFileReader(io.BytesIO(data)))).get("tags") == list("abcdefg")

    def test_recursive(self, node_schema):
        value = {"value": 1, "next": {"value": 2, "next": None}}
        result = list(DataFileReader(io.BytesIO(_write_file(node_schema, [value]))))
        assert result[0].to_dict() == value

    def test_explicit_datum_reader(self, person_schema):
        datum_reader = GenericDatumReader()
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, _people(1))), datum_reader)
        assert datum_reader.schema is reader.schema
        assert reader.next().get("name") == "person-0"

    def test_files_on_disk(self, person_schema, tmp_path):
        path = str(tmp_path / "people.avro")
        with DataFileWriter.open(path, person_schema, codec="deflate") as writer:
            for record in _people(4):
                writer.write(record)
        with DataFileReader.open(path) as reader:
            assert len(list(reader)) == 4
            stream = reader._stream
        assert stream.closed


class TestDataFileReader:
    """Tests for DataFileReader framing and state."""

    def test_empty_file(self, person_schema):
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, [])))
        assert reader.has_next() is False
        assert reader.err is None
        assert list(reader) == []

    def test_header_only(self, person_schema):
        header = _raw_header({"avro.schema": str(person_schema).encode()})
        reader = DataFileReader(io.BytesIO(header))
        assert reader.has_next() is False
        assert reader.err is None

    def test_states(self, person_schema):
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, _people(1))))
        assert reader.state == ReaderState.BLOCK_ACTIVE
        reader.next()
        assert reader.has_next() is False
        assert reader.state == ReaderState.BLOCK_EXHAUSTED
        reader.close()
        assert reader.state == ReaderState.CLOSED
        reader.close()

    def test_next_after_close(self, person_schema):
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, _people(1))))
        reader.close()
        assert reader.has_next() is False
        with pytest.raises(IllegalStateException):
            reader.next()

    def test_next_at_end(self, person_schema):
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, [])))
        with pytest.raises(StopIteration):
            reader.next()

    def test_not_avro(self):
        with pytest.raises(NotAvroFileException):
            DataFileReader(io.BytesIO(b"NOPE" + b"\x00" + b"\x00" * 16))

    @pytest.mark.parametrize("data", [b"hello", b"NOPE", b"Obj\x02" + b"\x00" * 17])
    def test_short_input_with_bad_magic(self, data):
        with pytest.raises(NotAvroFileException):
            DataFileReader(io.BytesIO(data))

    def test_truncated_after_magic(self):
        with pytest.raises(UnexpectedEOFException):
            DataFileReader(io.BytesIO(MAGIC + b"\x00" + b"\xaa" * 4))

    def test_empty_input(self):
        with pytest.raises(UnexpectedEOFException):
            DataFileReader(io.BytesIO(b""))

    def test_missing_schema(self):
        with pytest.raises(InvalidSchemaException):
            DataFileReader(io.BytesIO(_raw_header({"avro.codec": b"null"})))

    def test_unsupported_codec(self, person_schema):
        header = _raw_header({"avro.schema": str(person_schema).encode(), "avro.codec": b"snappy"})
        with pytest.raises(UnsupportedCodecException):
            DataFileReader(io.BytesIO(header))

    def test_missing_codec_means_null(self, person_schema):
        header = _raw_header({"avro.schema": str(person_schema).encode()})
        assert DataFileReader(io.BytesIO(header)).codec == "null"

    def test_corrupt_sync(self, person_schema):
        data = bytearray(_write_file(person_schema, _people(2), flush_every=1))
        header_sync = data.find(SYNC)
        first_block_sync = data.find(SYNC, header_sync + 16)
        second_block_sync = data.find(SYNC, first_block_sync + 16)
        data[second_block_sync] ^= 0xFF

        reader = DataFileReader(io.BytesIO(bytes(data)))
        assert reader.next().get("name") == "person-0"
        assert reader.has_next() is False
        assert isinstance(reader.err, InvalidSyncException)
        with pytest.raises(InvalidSyncException):
            reader.next()

    def test_corrupt_sync_in_iteration(self, person_schema):
        data = bytearray(_write_file(person_schema, _people(1)))
        data[-20] ^= 0xFF
        with pytest.raises(InvalidSyncException):
            list(DataFileReader(io.BytesIO(bytes(data))))

    def test_invalid_block_size(self, person_schema):
        data = _write_file(person_schema, [])[:-18] + encode_long(1) + encode_long(-1)
        reader = DataFileReader(io.BytesIO(data))
        assert reader.has_next() is False
        assert isinstance(reader.err, InvalidBlockSizeException)

    def test_truncated_block(self, person_schema):
        data = _write_file(person_schema, _people(1))[:-20]
        reader = DataFileReader(io.BytesIO(data))
        assert reader.has_next() is False
        assert isinstance(reader.err, UnexpectedEOFException)

    def test_block_not_finished(self, person_schema):
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, _people(2))))
        reader.next()
        with pytest.raises(BlockNotFinishedException) as exc_info:
            reader.next_block()
        assert exc_info.value.position < exc_info.value.block_size
        assert reader.err is None
        assert reader.next().get("name") == "person-1"

    def test_skip_block(self, person_schema):
        data = _write_file(person_schema, _people(3), flush_every=2)
        reader = DataFileReader(io.BytesIO(data))
        assert reader.next().get("name") == "person-0"
        assert reader.skip_block() is True
        assert reader.next().get("name") == "person-2"
        assert reader.has_next() is False

    def test_next_block_after_full_read(self, person_schema):
        data = _write_file(person_schema, _people(2), flush_every=1)
        reader = DataFileReader(io.BytesIO(data))
        reader.next()
        assert reader.next_block() is True
        assert reader.block.num_entries == 1
        assert reader.next().get("name") == "person-1"

    def test_block_counts(self, person_schema):
        reader = DataFileReader(io.BytesIO(_write_file(person_schema, _people(3))))
        assert reader.block.num_entries == 3
        assert reader.block.remaining == 3
        reader.next()
        assert reader.block.remaining == 2
