"""Specific datum reader and writer.

The specific strategy reads records into instances of ordinary Python
classes and writes such instances back. The schema is prepared on
:meth:`set_schema`, and the binding of each record to each class is
computed once and cached on the prepared record (see
:mod:`avrokit.schema_prepared`), so it is shared by all readers and
writers using the same prepared schema.

Example:
    >>> @dataclass
    ... class Point:
    ...     x: int
    ...     y: int
    >>> schema = parse_schema('{"type": "record", "name": "Point", "fields": '
    ...                       '[{"name": "x", "type": "int"}, {"name": "y", "type": "int"}]}')
    >>> encoder = BinaryEncoder()
    >>> SpecificDatumWriter(schema).write(Point(1, 2), encoder)
    >>> SpecificDatumReader(schema).read(BinaryDecoder(encoder.getvalue()), Point)
    Point(x=1, y=2)
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from avrokit.exceptions import (
    AvroValueException,
    FieldBindingException,
    FieldDoesNotExistException,
    SchemaNotSetException,
)
from avrokit.schema import RecordSchema, Schema, SchemaType, check_dispatch
from avrokit.schema_prepared import PreparedRecordSchema, RecordPlan, prepare
from avrokit.serialization import generic
from avrokit.serialization.api import DatumReader, DatumWriter, Decoder, Encoder
from avrokit.serialization.binding import (
    ANY,
    DEFAULT_RESOLVER,
    FieldResolver,
    TypeHint,
    build_record_plan,
    hint_for,
)
from avrokit.serialization.generic import GenericEnum, GenericRecord


_SCALAR_CLASSES = (bool, int, float, str, bytes, bytearray)
_MISSING = object()


class _SpecificBinding:
    """State shared by the specific reader and writer.

    Args:
        schema: Schema of the values; prepared on assignment.
        resolver: Maps schema field names to attribute names.
        record_types: Record name (simple or full) to class, for records
            whose class cannot be taken from an annotation.
    """

    def __init__(
        self,
        schema: Optional[Schema] = None,
        resolver: Optional[FieldResolver] = None,
        record_types: Optional[Dict[str, type]] = None,
    ):
        self._resolver = resolver or DEFAULT_RESOLVER
        self._record_types: Dict[str, type] = dict(record_types or {})
        self._schema: Optional[Schema] = None
        if schema is not None:
            self.set_schema(schema)

    @property
    def schema(self) -> Optional[Schema]:
        """The prepared schema."""
        return self._schema

    @property
    def resolver(self) -> FieldResolver:
        return self._resolver

    def set_schema(self, schema: Schema) -> None:
        self._schema = prepare(schema)

    def register_record_type(self, name: str, cls: type) -> None:
        """Bind the record called ``name`` to ``cls``."""
        self._record_types[name] = cls

    def plan_for(self, schema: RecordSchema, shape: type) -> RecordPlan:
        """Return the plan binding ``schema`` to ``shape``, building it once."""

        def builder() -> RecordPlan:
            return build_record_plan(schema, shape, self._resolver, read_value, write_value)

        if isinstance(schema, PreparedRecordSchema):
            return schema.plan_cache.get_or_build((shape, self._resolver), builder)
        return builder()

    def record_class_for(self, schema: RecordSchema, hint: TypeHint) -> type:
        """Pick the class a record is decoded into.

        Raises:
            FieldBindingException: If neither the hint nor the registered
                record types name a class.
        """
        cls = hint.cls
        if cls is not None and hint.container is None and cls not in _SCALAR_CLASSES and cls is not object:
            return cls
        if hint.forward is not None:
            cls = self._record_types.get(hint.forward)
            if cls is not None:
                return cls
        cls = self._record_types.get(schema.full_name) or self._record_types.get(schema.name)
        if cls is None:
            raise FieldBindingException(
                f"No class bound to record {schema.full_name}: annotate the attribute "
                f"or register the class in record_types"
            )
        return cls


# Reading


def _read_enum(schema, hint: TypeHint, decoder: Decoder, binding: _SpecificBinding) -> Any:
    index = generic.read_enum_index(decoder, schema)
    symbol = schema.symbols[index]
    if hint.is_enum():
        try:
            return hint.cls[symbol]
        except KeyError as e:
            raise FieldBindingException(
                f"{hint.cls.__name__} has no member for enum symbol {symbol}", cause=e
            ) from e
    if hint.cls is str:
        return symbol
    return GenericEnum(schema.symbols, index)


def _read_union(schema, hint: TypeHint, decoder: Decoder, binding: _SpecificBinding) -> Any:
    index = generic.read_union_index(decoder, schema)
    return read_value(schema.types[index], hint, decoder, binding)


def _read_record(schema, hint: TypeHint, decoder: Decoder, binding: _SpecificBinding) -> Any:
    if hint.cls is GenericRecord:
        return generic.read_value(schema, decoder)
    cls = binding.record_class_for(schema, hint)
    plan = binding.plan_for(schema, cls)
    obj = plan.new_instance()
    fill_record(plan, obj, decoder, binding)
    return obj


def fill_record(plan: RecordPlan, obj: Any, decoder: Decoder, binding: _SpecificBinding) -> Any:
    """Decode the fields of one record into ``obj``."""
    for field_plan in plan.fields:
        object.__setattr__(obj, field_plan.attribute, field_plan.decode(decoder, binding))
    return obj


_READERS: Dict[SchemaType, Callable[..., Any]] = check_dispatch({
    SchemaType.NULL: lambda s, h, d, b: d.read_null(),
    SchemaType.BOOLEAN: lambda s, h, d, b: d.read_boolean(),
    SchemaType.INT: lambda s, h, d, b: d.read_int(),
    SchemaType.LONG: lambda s, h, d, b: d.read_long(),
    SchemaType.FLOAT: lambda s, h, d, b: d.read_float(),
    SchemaType.DOUBLE: lambda s, h, d, b: d.read_double(),
    SchemaType.BYTES: lambda s, h, d, b: d.read_bytes(),
    SchemaType.STRING: lambda s, h, d, b: d.read_string(),
    SchemaType.FIXED: lambda s, h, d, b: d.read_fixed(s.size),
    SchemaType.ENUM: _read_enum,
    SchemaType.ARRAY: lambda s, h, d, b: generic.read_array(
        d, lambda: read_value(s.items, h.item_hint, d, b)
    ),
    SchemaType.MAP: lambda s, h, d, b: generic.read_map(
        d, lambda: read_value(s.values, h.item_hint, d, b)
    ),
    SchemaType.UNION: _read_union,
    SchemaType.RECORD: _read_record,
    SchemaType.RECURSIVE: lambda s, h, d, b: _read_record(s.actual, h, d, b),
}, "SpecificDatumReader")


def read_value(schema: Schema, hint: TypeHint, decoder: Decoder, binding: _SpecificBinding) -> Any:
    """Read one value of ``schema``, shaped by the attribute hint."""
    return _READERS[schema.type](schema, hint, decoder, binding)


# Writing


def _write_record(schema, value: Any, encoder: Encoder, binding: _SpecificBinding) -> None:
    if isinstance(value, (GenericRecord, Mapping)):
        generic.write_value(schema, value, encoder)
        return
    if value is None or isinstance(value, _SCALAR_CLASSES):
        raise AvroValueException(f"Cannot write {value!r} as record {schema.full_name}")
    shape = type(value)
    plan = binding.plan_for(schema, shape)
    for field_plan in plan.fields:
        field_value = getattr(value, field_plan.attribute, _MISSING)
        if field_value is _MISSING:
            raise FieldDoesNotExistException(field_plan.name, shape.__qualname__)
        field_plan.encode(field_value, encoder, binding)


def _write_union(schema, value: Any, encoder: Encoder, binding: _SpecificBinding) -> None:
    index = generic.union_branch_for(schema, value)
    encoder.write_long(index)
    write_value(schema.types[index], value, encoder, binding)


_WRITERS: Dict[SchemaType, Callable[..., None]] = check_dispatch({
    SchemaType.NULL: lambda s, v, e, b: generic.write_null_value(s, v, e),
    SchemaType.BOOLEAN: lambda s, v, e, b: e.write_boolean(generic.checked(s, v)),
    SchemaType.INT: lambda s, v, e, b: e.write_int(generic.checked(s, v)),
    SchemaType.LONG: lambda s, v, e, b: e.write_long(generic.checked(s, v)),
    SchemaType.FLOAT: lambda s, v, e, b: e.write_float(generic.checked(s, v)),
    SchemaType.DOUBLE: lambda s, v, e, b: e.write_double(generic.checked(s, v)),
    SchemaType.BYTES: lambda s, v, e, b: e.write_bytes(generic.checked(s, v)),
    SchemaType.STRING: lambda s, v, e, b: e.write_string(generic.checked(s, v)),
    SchemaType.FIXED: lambda s, v, e, b: e.write_fixed(generic.fixed_bytes(s, v)),
    SchemaType.ENUM: lambda s, v, e, b: e.write_enum(generic.enum_index_for(s, v)),
    SchemaType.ARRAY: lambda s, v, e, b: generic.write_array(
        e, v, lambda item: write_value(s.items, item, e, b)
    ),
    SchemaType.MAP: lambda s, v, e, b: generic.write_map(
        e, v, lambda item: write_value(s.values, item, e, b)
    ),
    SchemaType.UNION: _write_union,
    SchemaType.RECORD: _write_record,
    SchemaType.RECURSIVE: lambda s, v, e, b: _write_record(s.actual, v, e, b),
}, "SpecificDatumWriter")


def write_value(schema: Schema, value: Any, encoder: Encoder, binding: _SpecificBinding) -> None:
    """Write one value of ``schema`` from a Python object."""
    _WRITERS[schema.type](schema, value, encoder, binding)


class SpecificDatumReader(_SpecificBinding, DatumReader):
    """Reads records into instances of Python classes.

    The destination of :meth:`read` may be an instance, which is filled in
    place, or a class, which is instantiated without calling its
    ``__init__`` (dataclass defaults are applied). Nested records are
    instantiated from the annotation of the attribute holding them
    (``Optional[X]``, ``List[X]`` and ``Dict[str, X]`` are unwrapped), or
    from ``record_types``.
    """

    def read(self, decoder: Decoder, destination: Any = None) -> Any:
        if self._schema is None:
            raise SchemaNotSetException()
        schema = self._schema
        if schema.type == SchemaType.RECURSIVE:
            schema = schema.actual

        if schema.type != SchemaType.RECORD:
            hint = hint_for(destination) if isinstance(destination, type) else ANY
            return read_value(schema, hint, decoder, self)

        if destination is None:
            cls = self.record_class_for(schema, ANY)
            obj = None
        elif isinstance(destination, type):
            cls = destination
            obj = None
        else:
            cls = type(destination)
            obj = destination

        if cls is GenericRecord:
            return generic.GenericDatumReader(schema).read(decoder, obj)
        plan = self.plan_for(schema, cls)
        if obj is None:
            obj = plan.new_instance()
        return fill_record(plan, obj, decoder, self)


class SpecificDatumWriter(_SpecificBinding, DatumWriter):
    """Writes instances of Python classes (and generic values) as records."""

    def write(self, value: Any, encoder: Encoder) -> None:
        if self._schema is None:
            raise SchemaNotSetException()
        write_value(self._schema, value, encoder, self)
