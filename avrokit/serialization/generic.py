"""Generic datum reader and writer.

The generic strategy needs no Python classes: records are read into
:class:`GenericRecord` objects, enums into :class:`GenericEnum` objects,
arrays into lists and maps into dicts. The writer accepts the same types,
and plain dicts for records.
"""

import enum
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Optional

from avrokit.exceptions import (
    AvroValueException,
    FieldDoesNotExistException,
    InvalidEnumIndexException,
    InvalidFixedSizeException,
    InvalidUnionValueException,
    SchemaNotSetException,
    UnionTypeOverflowException,
)
from avrokit.schema import (
    EnumSchema,
    FixedSchema,
    RecordSchema,
    Schema,
    SchemaField,
    SchemaType,
    UnionSchema,
    check_dispatch,
)
from avrokit.serialization.api import DatumReader, DatumWriter, Decoder, Encoder


class GenericRecord:
    """A record read or written without a dedicated Python class.

    Values are kept by field name and are only checked against the schema
    when the record is written.
    """

    def __init__(self, schema: Optional[RecordSchema] = None, fields: Dict[str, Any] = None):
        self._schema = schema
        self._fields: Dict[str, Any] = dict(fields) if fields else {}

    @property
    def schema(self) -> Optional[RecordSchema]:
        """Get the schema of this record."""
        return self._schema

    def get(self, name: str, default: Any = None) -> Any:
        """Get a field value, or ``default`` if it was never set."""
        return self._fields.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._fields[name] = value

    def has(self, name: str) -> bool:
        """Check whether a value was set for the field."""
        return name in self._fields

    def field_names(self) -> List[str]:
        return list(self._fields)

    def items(self):
        return self._fields.items()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict, converting nested records and enums too."""
        return {name: _plain(value) for name, value in self._fields.items()}

    def __getitem__(self, name: str) -> Any:
        return self._fields[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self._fields[name] = value

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenericRecord):
            return False
        if (self._schema is None) != (other._schema is None):
            return False
        if self._schema is not None and self._schema.full_name != other._schema.full_name:
            return False
        return self._fields == other._fields

    def __repr__(self) -> str:
        name = self._schema.full_name if self._schema is not None else "?"
        return f"GenericRecord({name}, {self._fields!r})"


def _plain(value: Any) -> Any:
    if isinstance(value, GenericRecord):
        return value.to_dict()
    if isinstance(value, GenericEnum):
        return value.get()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


class GenericEnum:
    """An enum value: the symbol list plus the index of the current symbol."""

    def __init__(self, symbols: List[str], index: int = 0):
        self._symbols = list(symbols)
        self._symbol_index = {s: i for i, s in enumerate(self._symbols)}
        if not 0 <= index < len(self._symbols):
            raise InvalidEnumIndexException(index, len(self._symbols))
        self._index = index

    @property
    def symbols(self) -> List[str]:
        return self._symbols

    @property
    def index(self) -> int:
        return self._index

    def get(self) -> str:
        """Return the current symbol."""
        return self._symbols[self._index]

    def set(self, symbol: str) -> None:
        """Make ``symbol`` the current symbol.

        Raises:
            ValueError: If ``symbol`` is not one of the symbols.
        """
        index = self._symbol_index.get(symbol)
        if index is None:
            raise ValueError(f"Unknown enum symbol {symbol!r}, expected one of {self._symbols}")
        self._index = index

    def __eq__(self, other: object) -> bool:
        if isinstance(other, GenericEnum):
            return self._symbols == other._symbols and self._index == other._index
        if isinstance(other, str):
            return self.get() == other
        return False

    def __hash__(self) -> int:
        return hash((tuple(self._symbols), self._index))

    def __str__(self) -> str:
        return self.get()

    def __repr__(self) -> str:
        return f"GenericEnum({self.get()!r})"


# Helpers shared with the specific strategy


def read_enum_index(decoder: Decoder, schema: EnumSchema) -> int:
    index = decoder.read_enum()
    if not 0 <= index < len(schema.symbols):
        raise InvalidEnumIndexException(index, len(schema.symbols))
    return index


def read_union_index(decoder: Decoder, schema: UnionSchema) -> int:
    index = decoder.read_long()
    if not 0 <= index < len(schema.types):
        raise UnionTypeOverflowException(index, len(schema.types))
    return index


def read_array(decoder: Decoder, read_item: Callable[[], Any]) -> List[Any]:
    items = []
    count = decoder.read_array_start()
    while count:
        for _ in range(count):
            items.append(read_item())
        count = decoder.array_next()
    return items


def read_map(decoder: Decoder, read_value: Callable[[], Any]) -> Dict[str, Any]:
    entries = {}
    count = decoder.read_map_start()
    while count:
        for _ in range(count):
            key = decoder.read_string()
            entries[key] = read_value()
        count = decoder.map_next()
    return entries


def _blocks(items: List[Any], max_items: Optional[int]) -> Iterable[List[Any]]:
    if not max_items:
        yield items
        return
    for start in range(0, len(items), max_items):
        yield items[start:start + max_items]


def write_array(encoder: Encoder, items: Iterable[Any], write_item: Callable[[Any], None]) -> None:
    items = list(items)
    if items:
        for block in _blocks(items, getattr(encoder, "max_block_items", None)):
            encoder.write_array_start(len(block))
            for item in block:
                write_item(item)
    encoder.write_array_end()


def write_map(encoder: Encoder, entries: Mapping, write_value: Callable[[Any], None]) -> None:
    items = list(entries.items())
    if items:
        for block in _blocks(items, getattr(encoder, "max_block_items", None)):
            encoder.write_map_start(len(block))
            for key, value in block:
                encoder.write_string(key)
                write_value(value)
    encoder.write_map_end()


def enum_index_for(schema: EnumSchema, value: Any) -> int:
    """Return the index to write for an enum value.

    Accepts a :class:`GenericEnum`, a symbol string or an ``enum.Enum``
    member whose name is a symbol.
    """
    if isinstance(value, GenericEnum):
        symbol = value.get()
    elif isinstance(value, enum.Enum):
        symbol = value.name
    else:
        symbol = value
    index = schema.index_of(symbol) if isinstance(symbol, str) else -1
    if index < 0:
        raise AvroValueException(
            f"{value!r} is not a symbol of enum {schema.full_name}: {schema.symbols}"
        )
    return index


def checked(schema: Schema, value: Any) -> Any:
    """Return ``value`` as it is written for the primitive ``schema``.

    Ints are widened for float and double. Out-of-range ints pass through
    so the encoder reports the overflow.

    Raises:
        AvroValueException: If the value has the wrong type.
    """
    if schema.validate(value):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        if schema.type in (SchemaType.INT, SchemaType.LONG):
            return value
        if schema.type in (SchemaType.FLOAT, SchemaType.DOUBLE):
            try:
                return float(value)
            except OverflowError as e:
                raise AvroValueException(f"{value!r} is not a valid {schema.name} value", cause=e) from e
    raise AvroValueException(f"{value!r} is not a valid {schema.name} value")


def write_null_value(schema: Schema, value: Any, encoder: Encoder) -> None:
    checked(schema, value)
    encoder.write_null()


def union_branch_for(schema: UnionSchema, value: Any) -> int:
    index = schema.branch_for(value)
    if index < 0:
        raise InvalidUnionValueException(
            f"Value {value!r} matches no branch of union {schema}"
        )
    return index


def fixed_bytes(schema: FixedSchema, value: Any) -> bytes:
    data = bytes(value)
    if len(data) != schema.size:
        raise InvalidFixedSizeException(
            f"Fixed {schema.full_name} needs {schema.size} bytes, got {len(data)}"
        )
    return data


def field_default(schema_field: SchemaField) -> Any:
    """The value written for a field missing from the source."""
    if not schema_field.has_default:
        raise FieldDoesNotExistException(schema_field.name)
    default = schema_field.default
    kind = schema_field.type.type
    if isinstance(default, str) and kind in (SchemaType.BYTES, SchemaType.FIXED):
        # JSON defaults of bytes types are strings of code points 0-255.
        return default.encode("latin-1")
    if kind == SchemaType.UNION and default is not None:
        branch = schema_field.type.types[0]
        if isinstance(default, str) and branch.type in (SchemaType.BYTES, SchemaType.FIXED):
            return default.encode("latin-1")
    return default


# Generic traversal


def _read_record(schema: RecordSchema, decoder: Decoder) -> GenericRecord:
    record = GenericRecord(schema)
    _fill_record(record, schema, decoder)
    return record


def _fill_record(record: GenericRecord, schema: RecordSchema, decoder: Decoder) -> None:
    for f in schema.fields:
        record.set(f.name, read_value(f.type, decoder))


def _read_union(schema: UnionSchema, decoder: Decoder) -> Any:
    return read_value(schema.types[read_union_index(decoder, schema)], decoder)


_READERS: Dict[SchemaType, Callable[[Any, Decoder], Any]] = check_dispatch({
    SchemaType.NULL: lambda s, d: d.read_null(),
    SchemaType.BOOLEAN: lambda s, d: d.read_boolean(),
    SchemaType.INT: lambda s, d: d.read_int(),
    SchemaType.LONG: lambda s, d: d.read_long(),
    SchemaType.FLOAT: lambda s, d: d.read_float(),
    SchemaType.DOUBLE: lambda s, d: d.read_double(),
    SchemaType.BYTES: lambda s, d: d.read_bytes(),
    SchemaType.STRING: lambda s, d: d.read_string(),
    SchemaType.FIXED: lambda s, d: d.read_fixed(s.size),
    SchemaType.ENUM: lambda s, d: GenericEnum(s.symbols, read_enum_index(d, s)),
    SchemaType.ARRAY: lambda s, d: read_array(d, lambda: read_value(s.items, d)),
    SchemaType.MAP: lambda s, d: read_map(d, lambda: read_value(s.values, d)),
    SchemaType.UNION: _read_union,
    SchemaType.RECORD: _read_record,
    SchemaType.RECURSIVE: lambda s, d: _read_record(s.actual, d),
}, "GenericDatumReader")


def read_value(schema: Schema, decoder: Decoder) -> Any:
    """Read one value of ``schema`` generically."""
    return _READERS[schema.type](schema, decoder)


def _write_record(schema: RecordSchema, value: Any, encoder: Encoder) -> None:
    if isinstance(value, GenericRecord):
        source = dict(value.items())
    elif isinstance(value, Mapping):
        source = value
    else:
        raise AvroValueException(
            f"Cannot write {type(value).__name__} as record {schema.full_name}"
        )
    for f in schema.fields:
        if f.name in source:
            field_value = source[f.name]
        else:
            field_value = field_default(f)
        write_value(f.type, field_value, encoder)


def _write_union(schema: UnionSchema, value: Any, encoder: Encoder) -> None:
    index = union_branch_for(schema, value)
    encoder.write_long(index)
    write_value(schema.types[index], value, encoder)


_WRITERS: Dict[SchemaType, Callable[[Any, Any, Encoder], None]] = check_dispatch({
    SchemaType.NULL: write_null_value,
    SchemaType.BOOLEAN: lambda s, v, e: e.write_boolean(checked(s, v)),
    SchemaType.INT: lambda s, v, e: e.write_int(checked(s, v)),
    SchemaType.LONG: lambda s, v, e: e.write_long(checked(s, v)),
    SchemaType.FLOAT: lambda s, v, e: e.write_float(checked(s, v)),
    SchemaType.DOUBLE: lambda s, v, e: e.write_double(checked(s, v)),
    SchemaType.BYTES: lambda s, v, e: e.write_bytes(checked(s, v)),
    SchemaType.STRING: lambda s, v, e: e.write_string(checked(s, v)),
    SchemaType.FIXED: lambda s, v, e: e.write_fixed(fixed_bytes(s, v)),
    SchemaType.ENUM: lambda s, v, e: e.write_enum(enum_index_for(s, v)),
    SchemaType.ARRAY: lambda s, v, e: write_array(e, v, lambda item: write_value(s.items, item, e)),
    SchemaType.MAP: lambda s, v, e: write_map(e, v, lambda item: write_value(s.values, item, e)),
    SchemaType.UNION: _write_union,
    SchemaType.RECORD: _write_record,
    SchemaType.RECURSIVE: lambda s, v, e: _write_record(s.actual, v, e),
}, "GenericDatumWriter")


def write_value(schema: Schema, value: Any, encoder: Encoder) -> None:
    """Write one value of ``schema`` generically."""
    _WRITERS[schema.type](schema, value, encoder)


class GenericDatumReader(DatumReader):
    """Reads values into generic containers.

    Args:
        schema: Schema of the values. May also be set later with
            :meth:`set_schema`.
    """

    def __init__(self, schema: Optional[Schema] = None):
        self._schema = schema

    @property
    def schema(self) -> Optional[Schema]:
        return self._schema

    def set_schema(self, schema: Schema) -> None:
        self._schema = schema

    def read(self, decoder: Decoder, destination: Any = None) -> Any:
        """Read one value.

        Args:
            decoder: Source of the encoded bytes.
            destination: A :class:`GenericRecord` to fill in place when the
                schema is a record. Ignored otherwise.
        """
        if self._schema is None:
            raise SchemaNotSetException()
        schema = self._schema
        if schema.type == SchemaType.RECURSIVE:
            schema = schema.actual
        if isinstance(destination, GenericRecord) and schema.type == SchemaType.RECORD:
            if destination.schema is None:
                destination._schema = schema
            _fill_record(destination, schema, decoder)
            return destination
        return read_value(schema, decoder)


class GenericDatumWriter(DatumWriter):
    """Writes generic values: GenericRecord or dict for records, GenericEnum
    or symbol strings for enums, lists for arrays, dicts for maps."""

    def __init__(self, schema: Optional[Schema] = None):
        self._schema = schema

    @property
    def schema(self) -> Optional[Schema]:
        return self._schema

    def set_schema(self, schema: Schema) -> None:
        self._schema = schema

    def write(self, value: Any, encoder: Encoder) -> None:
        if self._schema is None:
            raise SchemaNotSetException()
        write_value(self._schema, value, encoder)
