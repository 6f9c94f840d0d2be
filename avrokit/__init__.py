"""avrokit: Avro binary encoding, schemas and container files."""

from avrokit.codecs import Codec, DeflateCodec, NullCodec, get_codec, register_codec
from avrokit.config import CodecConfig, DataFileConfig
from avrokit.datafile import DataFileReader, DataFileWriter, Header
from avrokit.exceptions import (
    AvroException,
    AvroValueException,
    BindingException,
    ConfigurationException,
    FramingException,
    IllegalStateException,
    InvalidSchemaException,
    SchemaParseException,
)
from avrokit.logging import configure_logging, get_logger
from avrokit.protocol import Message, Protocol, parse_protocol
from avrokit.schema import (
    Schema,
    SchemaField,
    SchemaRegistry,
    SchemaType,
    must_parse_schema,
    parse_schema,
    parse_schema_file,
)
from avrokit.schema_prepared import prepare
from avrokit.serialization import (
    BinaryDecoder,
    BinaryEncoder,
    DefaultFieldResolver,
    GenericDatumReader,
    GenericDatumWriter,
    GenericEnum,
    GenericRecord,
    MappingFieldResolver,
    SpecificDatumReader,
    SpecificDatumWriter,
    StreamBinaryDecoder,
)

__all__ = [
    "Codec",
    "DeflateCodec",
    "NullCodec",
    "get_codec",
    "register_codec",
    "CodecConfig",
    "DataFileConfig",
    "DataFileReader",
    "DataFileWriter",
    "Header",
    "AvroException",
    "AvroValueException",
    "BindingException",
    "ConfigurationException",
    "FramingException",
    "IllegalStateException",
    "InvalidSchemaException",
    "SchemaParseException",
    "configure_logging",
    "get_logger",
    "Message",
    "Protocol",
    "parse_protocol",
    "Schema",
    "SchemaField",
    "SchemaRegistry",
    "SchemaType",
    "must_parse_schema",
    "parse_schema",
    "parse_schema_file",
    "prepare",
    "BinaryDecoder",
    "BinaryEncoder",
    "DefaultFieldResolver",
    "GenericDatumReader",
    "GenericDatumWriter",
    "GenericEnum",
    "GenericRecord",
    "MappingFieldResolver",
    "SpecificDatumReader",
    "SpecificDatumWriter",
    "StreamBinaryDecoder",
]

__version__ = "0.1.0"
