"""avrokit serialization package."""

from avrokit.serialization.api import (
    Decoder,
    Encoder,
    DatumReader,
    DatumWriter,
)
from avrokit.serialization.binary import (
    BinaryDecoder,
    BinaryEncoder,
    DataBlock,
    StreamBinaryDecoder,
)
from avrokit.serialization.binding import (
    DefaultFieldResolver,
    FieldResolver,
    MappingFieldResolver,
)
from avrokit.serialization.generic import (
    GenericDatumReader,
    GenericDatumWriter,
    GenericEnum,
    GenericRecord,
)
from avrokit.serialization.specific import (
    SpecificDatumReader,
    SpecificDatumWriter,
)

__all__ = [
    "Decoder",
    "Encoder",
    "DatumReader",
    "DatumWriter",
    "BinaryDecoder",
    "BinaryEncoder",
    "DataBlock",
    "StreamBinaryDecoder",
    "DefaultFieldResolver",
    "FieldResolver",
    "MappingFieldResolver",
    "GenericDatumReader",
    "GenericDatumWriter",
    "GenericEnum",
    "GenericRecord",
    "SpecificDatumReader",
    "SpecificDatumWriter",
]
