"""Schema model and parser.

A schema is a graph of nodes, one class per kind. Named types (records,
enums, fixed) are collected in a :class:`SchemaRegistry` while parsing;
a reference to a record by name becomes a :class:`RecursiveSchema` that
resolves through that registry, which is how self-referencing and
mutually-referencing records are represented without cycles in the parsed
graph.

Example:
    >>> schema = parse_schema('''
    ... {"type": "record", "name": "Node", "fields": [
    ...     {"name": "value", "type": "long"},
    ...     {"name": "next", "type": ["null", "Node"]}
    ... ]}''')
    >>> schema.fields[1].type.types[1].actual is schema
    True
"""

import enum
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from avrokit.exceptions import (
    InvalidFixedSizeException,
    InvalidSchemaException,
    NestedUnionException,
    SchemaParseException,
    UnknownSchemaTypeException,
)
from avrokit.logging import get_logger

_logger = get_logger("schema")


class SchemaType(IntEnum):
    """Kind of a schema node."""

    RECORD = 0
    ENUM = 1
    ARRAY = 2
    MAP = 3
    UNION = 4
    FIXED = 5
    STRING = 6
    BYTES = 7
    INT = 8
    LONG = 9
    FLOAT = 10
    DOUBLE = 11
    BOOLEAN = 12
    NULL = 13
    RECURSIVE = 14


INT_MIN = -(1 << 31)
INT_MAX = (1 << 31) - 1
LONG_MIN = -(1 << 63)
LONG_MAX = (1 << 63) - 1

RESERVED_PROPS = frozenset(
    ["aliases", "doc", "fields", "items", "name", "namespace", "size", "symbols", "type", "values"]
)
RESERVED_FIELD_PROPS = frozenset(["aliases", "default", "doc", "name", "type"])


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT = _NoDefault()

_PRIMITIVE_PY_TYPES = (bool, int, float, str, bytes, bytearray, memoryview)


def make_full_name(name: str, namespace: Optional[str]) -> str:
    """Qualify ``name`` with ``namespace`` unless it is already dotted."""
    if namespace and "." not in name:
        return f"{namespace}.{name}"
    return name


class Schema:
    """Base class of all schema nodes.

    Attributes:
        props: Custom (non-reserved) properties of the definition.
    """

    type: SchemaType

    def __init__(self, props: Optional[Dict[str, Any]] = None):
        self.props: Dict[str, Any] = dict(props) if props else {}

    @property
    def name(self) -> str:
        return self.type.name.lower()

    @property
    def full_name(self) -> str:
        return self.name

    def prop(self, key: str, default: Any = None) -> Any:
        """Return a custom property, or ``default`` if it is not set."""
        return self.props.get(key, default)

    def validate(self, value: Any) -> bool:
        """Check whether ``value`` can be written with this schema."""
        raise NotImplementedError

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        """Render the schema as a JSON-compatible tree.

        Args:
            names: Full names of the named types already rendered. Such
                types are rendered by name only. Updated in place.
        """
        raise NotImplementedError

    def __str__(self) -> str:
        return json.dumps(self.to_json())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.full_name!r})"


class PrimitiveSchema(Schema):
    """Base class of the leaf schemas."""

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        if self.props:
            return {"type": self.name, **self.props}
        return self.name


class NullSchema(PrimitiveSchema):
    type = SchemaType.NULL

    def validate(self, value: Any) -> bool:
        return value is None


class BooleanSchema(PrimitiveSchema):
    type = SchemaType.BOOLEAN

    def validate(self, value: Any) -> bool:
        return isinstance(value, bool)


class IntSchema(PrimitiveSchema):
    type = SchemaType.INT

    def validate(self, value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool) and INT_MIN <= value <= INT_MAX


class LongSchema(PrimitiveSchema):
    type = SchemaType.LONG

    def validate(self, value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool) and LONG_MIN <= value <= LONG_MAX


class FloatSchema(PrimitiveSchema):
    type = SchemaType.FLOAT

    def validate(self, value: Any) -> bool:
        return isinstance(value, float)


class DoubleSchema(PrimitiveSchema):
    type = SchemaType.DOUBLE

    def validate(self, value: Any) -> bool:
        return isinstance(value, float)


class BytesSchema(PrimitiveSchema):
    type = SchemaType.BYTES

    def validate(self, value: Any) -> bool:
        return isinstance(value, (bytes, bytearray, memoryview))


class StringSchema(PrimitiveSchema):
    type = SchemaType.STRING

    def validate(self, value: Any) -> bool:
        return isinstance(value, str)


PRIMITIVE_SCHEMAS = {
    "null": NullSchema,
    "boolean": BooleanSchema,
    "int": IntSchema,
    "long": LongSchema,
    "float": FloatSchema,
    "double": DoubleSchema,
    "bytes": BytesSchema,
    "string": StringSchema,
}


class NamedSchema(Schema):
    """Base class of records, enums and fixed types.

    Attributes:
        namespace: Effective namespace, or None.
        doc: Documentation string, or None.
        aliases: Alternative names.
    """

    def __init__(
        self,
        name: str,
        namespace: Optional[str] = None,
        doc: Optional[str] = None,
        aliases: Optional[List[str]] = None,
        props: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(props)
        if "." in name:
            namespace, name = name.rsplit(".", 1)
        self._name = name
        self.namespace = namespace or None
        self.doc = doc
        self.aliases = list(aliases) if aliases else []

    @property
    def name(self) -> str:
        return self._name

    @property
    def full_name(self) -> str:
        return make_full_name(self._name, self.namespace)

    def _render_header(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type.name.lower(), "name": self._name}
        if self.namespace:
            out["namespace"] = self.namespace
        if self.doc is not None:
            out["doc"] = self.doc
        if self.aliases:
            out["aliases"] = list(self.aliases)
        return out

    def _already_rendered(self, names: Set[str]) -> bool:
        if self.full_name in names:
            return True
        names.add(self.full_name)
        return False


@dataclass
class SchemaField:
    """A field of a record schema.

    ``default`` is :data:`NO_DEFAULT` when the definition has none, which
    is different from a default of ``null`` (``None``).
    """

    name: str
    type: Schema
    default: Any = NO_DEFAULT
    doc: Optional[str] = None
    props: Dict[str, Any] = field(default_factory=dict)
    index: int = -1

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    def prop(self, key: str, default: Any = None) -> Any:
        return self.props.get(key, default)

    def to_json(self, names: Optional[Set[str]] = None) -> Dict[str, Any]:
        if names is None:
            names = set()
        out: Dict[str, Any] = {"name": self.name, "type": self.type.to_json(names)}
        if self.doc is not None:
            out["doc"] = self.doc
        if self.has_default:
            out["default"] = self.default
        out.update(self.props)
        return out

    def __repr__(self) -> str:
        return f"SchemaField(name={self.name!r}, type={self.type!r})"


class RecordSchema(NamedSchema):
    """A record: an ordered list of named, typed fields."""

    type = SchemaType.RECORD

    def __init__(
        self,
        name: str,
        namespace: Optional[str] = None,
        fields: Optional[List[SchemaField]] = None,
        doc: Optional[str] = None,
        aliases: Optional[List[str]] = None,
        props: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(name, namespace, doc, aliases, props)
        self._fields: List[SchemaField] = []
        self._fields_by_name: Dict[str, SchemaField] = {}
        if fields:
            self.set_fields(fields)

    @property
    def fields(self) -> List[SchemaField]:
        return self._fields

    def set_fields(self, fields: List[SchemaField]) -> None:
        by_name: Dict[str, SchemaField] = {}
        for i, f in enumerate(fields):
            if f.name in by_name:
                raise InvalidSchemaException(
                    f"Duplicate field {f.name!r} in record {self.full_name}"
                )
            f.index = i
            by_name[f.name] = f
        self._fields = list(fields)
        self._fields_by_name = by_name

    def field(self, name: str) -> Optional[SchemaField]:
        """Return the field called ``name``, or None."""
        return self._fields_by_name.get(name)

    def validate(self, value: Any) -> bool:
        from avrokit.serialization.generic import GenericEnum, GenericRecord

        if isinstance(value, GenericRecord):
            if value.schema is not None and value.schema.full_name != self.full_name:
                return False
            return self._validate_entries(dict(value.items()), require_all=False)
        if isinstance(value, Mapping):
            return self._validate_entries(value, require_all=True)
        if value is None or isinstance(value, _PRIMITIVE_PY_TYPES):
            return False
        if isinstance(value, (list, tuple, GenericEnum, enum.Enum)):
            return False
        return True

    def _validate_entries(self, entries: Dict[str, Any], require_all: bool) -> bool:
        for key, val in entries.items():
            f = self._fields_by_name.get(key)
            if f is None or not f.type.validate(val):
                return False
        if require_all:
            for f in self._fields:
                if f.name not in entries and not f.has_default:
                    return False
        return True

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        if names is None:
            names = set()
        if self._already_rendered(names):
            return self.full_name
        out = self._render_header()
        out["fields"] = [f.to_json(names) for f in self._fields]
        out.update(self.props)
        return out


class EnumSchema(NamedSchema):
    """An enumeration of symbols, encoded by index."""

    type = SchemaType.ENUM

    def __init__(
        self,
        name: str,
        symbols: List[str],
        namespace: Optional[str] = None,
        doc: Optional[str] = None,
        aliases: Optional[List[str]] = None,
        props: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(name, namespace, doc, aliases, props)
        self.symbols = list(symbols)
        self._index = {symbol: i for i, symbol in enumerate(self.symbols)}

    def index_of(self, symbol: str) -> int:
        """Return the index of ``symbol``, or -1."""
        return self._index.get(symbol, -1)

    def validate(self, value: Any) -> bool:
        from avrokit.serialization.generic import GenericEnum

        if isinstance(value, GenericEnum):
            return value.symbols == self.symbols
        if isinstance(value, enum.Enum):
            return value.name in self._index
        if isinstance(value, str):
            return value in self._index
        return False

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        if names is None:
            names = set()
        if self._already_rendered(names):
            return self.full_name
        out = self._render_header()
        out["symbols"] = list(self.symbols)
        out.update(self.props)
        return out


class FixedSchema(NamedSchema):
    """A fixed number of raw bytes."""

    type = SchemaType.FIXED

    def __init__(
        self,
        name: str,
        size: int,
        namespace: Optional[str] = None,
        aliases: Optional[List[str]] = None,
        props: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(name, namespace, None, aliases, props)
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise InvalidFixedSizeException(f"Invalid Fixed type size: {size!r}")
        self.size = size

    def validate(self, value: Any) -> bool:
        return isinstance(value, (bytes, bytearray, memoryview)) and len(value) == self.size

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        if names is None:
            names = set()
        if self._already_rendered(names):
            return self.full_name
        out = self._render_header()
        out["size"] = self.size
        out.update(self.props)
        return out


class ArraySchema(Schema):
    type = SchemaType.ARRAY

    def __init__(self, items: Schema, props: Optional[Dict[str, Any]] = None):
        super().__init__(props)
        self.items = items

    def validate(self, value: Any) -> bool:
        if not isinstance(value, (list, tuple)):
            return False
        return all(self.items.validate(item) for item in value)

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        if names is None:
            names = set()
        return {"type": "array", "items": self.items.to_json(names), **self.props}


class MapSchema(Schema):
    """A map with string keys."""

    type = SchemaType.MAP

    def __init__(self, values: Schema, props: Optional[Dict[str, Any]] = None):
        super().__init__(props)
        self.values = values

    def validate(self, value: Any) -> bool:
        if not isinstance(value, Mapping):
            return False
        return all(
            isinstance(k, str) and self.values.validate(v) for k, v in value.items()
        )

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        if names is None:
            names = set()
        return {"type": "map", "values": self.values.to_json(names), **self.props}


class UnionSchema(Schema):
    """A choice between exactly two branches."""

    type = SchemaType.UNION

    def __init__(self, types: List[Schema]):
        super().__init__()
        for t in types:
            if t.type == SchemaType.UNION:
                raise NestedUnionException()
        if len(types) != 2:
            raise InvalidSchemaException(
                f"Union must have exactly 2 branches, got {len(types)}"
            )
        self.types = list(types)

    def branch_for(self, value: Any) -> int:
        """Return the index of the first branch ``value`` is valid for, or -1."""
        for i, t in enumerate(self.types):
            if t.validate(value):
                return i
        return -1

    def nullable_branch(self) -> Optional[Schema]:
        """Return the non-null branch of a ``null + X`` union, or None."""
        first, second = self.types
        if first.type == SchemaType.NULL:
            return second
        if second.type == SchemaType.NULL:
            return first
        return None

    def validate(self, value: Any) -> bool:
        return self.branch_for(value) >= 0

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        if names is None:
            names = set()
        return [t.to_json(names) for t in self.types]


class RecursiveSchema(Schema):
    """A reference to a record by full name, resolved through a registry."""

    type = SchemaType.RECURSIVE

    def __init__(self, full_name: str, registry: "SchemaRegistry"):
        super().__init__()
        self._full_name = full_name
        self._registry = registry

    @property
    def name(self) -> str:
        return self._full_name.rsplit(".", 1)[-1]

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def actual(self) -> RecordSchema:
        """The record this reference points to."""
        schema = self._registry.get(self._full_name)
        if schema is None:
            raise UnknownSchemaTypeException(self._full_name)
        return schema

    def validate(self, value: Any) -> bool:
        return self.actual.validate(value)

    def to_json(self, names: Optional[Set[str]] = None) -> Any:
        return self._full_name


class SchemaRegistry:
    """The named types defined while parsing, keyed by full name."""

    def __init__(self):
        self._schemas: Dict[str, NamedSchema] = {}

    def register(self, schema: NamedSchema) -> None:
        """Add a named type.

        Raises:
            InvalidSchemaException: If the full name is already defined.
        """
        full_name = schema.full_name
        if full_name in self._schemas:
            raise InvalidSchemaException(f"Redefined named type: {full_name}")
        self._schemas[full_name] = schema

    def get(self, full_name: str) -> Optional[NamedSchema]:
        return self._schemas.get(full_name)

    def lookup(self, name: str, namespace: Optional[str]) -> Optional[NamedSchema]:
        """Resolve a name as written in a definition."""
        schema = self._schemas.get(make_full_name(name, namespace))
        if schema is None and namespace:
            schema = self._schemas.get(name)
        return schema

    def names(self) -> List[str]:
        return list(self._schemas)

    def __contains__(self, full_name: str) -> bool:
        return full_name in self._schemas

    def __iter__(self) -> Iterator[NamedSchema]:
        return iter(list(self._schemas.values()))

    def __len__(self) -> int:
        return len(self._schemas)

    def __repr__(self) -> str:
        return f"SchemaRegistry({self.names()})"


class _SchemaParser:
    def __init__(self, registry: SchemaRegistry):
        self._registry = registry

    def parse(self, node: Any, namespace: Optional[str]) -> Schema:
        if node is None:
            return NullSchema()
        if isinstance(node, str):
            return self._parse_name(node, namespace)
        if isinstance(node, list):
            return self._parse_union(node, namespace)
        if isinstance(node, dict):
            return self._parse_definition(node, namespace)
        raise InvalidSchemaException(f"Invalid schema definition: {node!r}")

    def _parse_name(self, name: str, namespace: Optional[str]) -> Schema:
        primitive = PRIMITIVE_SCHEMAS.get(name)
        if primitive is not None:
            return primitive()
        schema = self._registry.lookup(name, namespace)
        if schema is None:
            raise UnknownSchemaTypeException(name)
        if isinstance(schema, RecordSchema):
            return RecursiveSchema(schema.full_name, self._registry)
        return schema

    def _parse_union(self, branches: List[Any], namespace: Optional[str]) -> Schema:
        types = []
        for branch in branches:
            if isinstance(branch, list):
                raise NestedUnionException()
            types.append(self.parse(branch, namespace))
        return UnionSchema(types)

    def _parse_definition(self, node: Dict[str, Any], namespace: Optional[str]) -> Schema:
        if "type" not in node:
            raise InvalidSchemaException(f"Schema definition without a type: {node!r}")
        type_name = node["type"]
        if not isinstance(type_name, str):
            # {"type": [...]} or {"type": {...}}
            return self.parse(type_name, namespace)

        props = {k: v for k, v in node.items() if k not in RESERVED_PROPS}
        primitive = PRIMITIVE_SCHEMAS.get(type_name)
        if primitive is not None:
            return primitive(props)
        if type_name == "array":
            if "items" not in node:
                raise InvalidSchemaException("Array schema without items")
            return ArraySchema(self.parse(node["items"], namespace), props)
        if type_name == "map":
            if "values" not in node:
                raise InvalidSchemaException("Map schema without values")
            return MapSchema(self.parse(node["values"], namespace), props)
        if type_name == "enum":
            return self._parse_enum(node, namespace, props)
        if type_name == "fixed":
            return self._parse_fixed(node, namespace, props)
        if type_name in ("record", "error"):
            return self._parse_record(node, namespace, props)
        return self._parse_name(type_name, namespace)

    def _named_args(self, node: Dict[str, Any], namespace: Optional[str]) -> Dict[str, Any]:
        name = node.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidSchemaException(f"Named schema without a name: {node!r}")
        explicit = node.get("namespace")
        if explicit is not None and not isinstance(explicit, str):
            raise InvalidSchemaException(f"Invalid namespace: {explicit!r}")
        doc = node.get("doc")
        aliases = node.get("aliases") or []
        if not isinstance(aliases, list):
            raise InvalidSchemaException(f"Invalid aliases: {aliases!r}")
        return {
            "name": name,
            "namespace": explicit if explicit is not None else namespace,
            "aliases": aliases,
            "doc": doc,
        }

    def _parse_enum(self, node, namespace, props) -> Schema:
        args = self._named_args(node, namespace)
        symbols = node.get("symbols")
        if not isinstance(symbols, list) or not all(isinstance(s, str) for s in symbols):
            raise InvalidSchemaException(f"Enum {args['name']} needs a list of string symbols")
        if len(set(symbols)) != len(symbols):
            raise InvalidSchemaException(f"Enum {args['name']} has duplicate symbols")
        schema = EnumSchema(args["name"], symbols, args["namespace"], args["doc"], args["aliases"], props)
        self._registry.register(schema)
        return schema

    def _parse_fixed(self, node, namespace, props) -> Schema:
        args = self._named_args(node, namespace)
        size = node.get("size")
        if isinstance(size, float) and size.is_integer():
            size = int(size)
        schema = FixedSchema(args["name"], size, args["namespace"], args["aliases"], props)
        self._registry.register(schema)
        return schema

    def _parse_record(self, node, namespace, props) -> Schema:
        args = self._named_args(node, namespace)
        raw_fields = node.get("fields")
        if not isinstance(raw_fields, list):
            raise InvalidSchemaException(f"Record {args['name']} needs a list of fields")
        schema = RecordSchema(
            args["name"], args["namespace"], doc=args["doc"], aliases=args["aliases"], props=props
        )
        # Registered before the fields so they can refer back to the record.
        self._registry.register(schema)
        fields = [self._parse_field(f, schema.namespace) for f in raw_fields]
        schema.set_fields(fields)
        return schema

    def _parse_field(self, node: Any, namespace: Optional[str]) -> SchemaField:
        if not isinstance(node, dict):
            raise InvalidSchemaException(f"Invalid record field: {node!r}")
        name = node.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidSchemaException("Schema field name missing")
        if "type" not in node:
            raise InvalidSchemaException(f"Schema field {name} has no type")
        field_type = self.parse(node["type"], namespace)
        default = node.get("default", NO_DEFAULT)
        if default is not NO_DEFAULT:
            default = _convert_default(field_type, default)
        props = {k: v for k, v in node.items() if k not in RESERVED_FIELD_PROPS}
        return SchemaField(name, field_type, default, node.get("doc"), props)


def _convert_default(field_type: Schema, default: Any) -> Any:
    if isinstance(default, bool) or not isinstance(default, (int, float)):
        return default
    if field_type.type in (SchemaType.INT, SchemaType.LONG):
        return int(default)
    if field_type.type in (SchemaType.FLOAT, SchemaType.DOUBLE):
        return float(default)
    return default


def parse_schema(
    schema: Union[str, bytes, dict, list],
    registry: Optional[SchemaRegistry] = None,
    namespace: Optional[str] = None,
) -> Schema:
    """Parse a schema definition.

    Args:
        schema: JSON text, an already-decoded JSON tree, or a bare type name
            such as ``"string"``.
        registry: Registry of named types to resolve names against and to
            add new definitions to. A fresh one is used if omitted.
        namespace: Enclosing namespace for names that do not carry one.

    Returns:
        The root schema node.

    Raises:
        SchemaParseException: If the definition is invalid.
        InvalidFixedSizeException: If a fixed type has an invalid size.
    """
    if registry is None:
        registry = SchemaRegistry()
    if isinstance(schema, bytes):
        schema = schema.decode("utf-8")
    if isinstance(schema, str):
        text = schema.strip()
        if text[:1] in ("{", "[", '"'):
            try:
                schema = json.loads(text)
            except json.JSONDecodeError as e:
                raise InvalidSchemaException(f"Schema is not valid JSON: {e}", cause=e)
        else:
            schema = text
    parsed = _SchemaParser(registry).parse(schema, namespace)
    _logger.debug("Parsed schema %s (%d named types)", parsed.full_name, len(registry))
    return parsed


def parse_schema_file(path: str, registry: Optional[SchemaRegistry] = None) -> Schema:
    """Parse the schema definition stored in the file at ``path``."""
    with open(path, "r", encoding="utf-8") as f:
        return parse_schema(f.read(), registry)


def must_parse_schema(schema: Union[str, dict, list]) -> Schema:
    """Parse a schema that is known to be valid, such as a hard-coded one.

    Raises:
        InvalidSchemaException: Wrapping whatever made the schema invalid.
    """
    try:
        return parse_schema(schema)
    except InvalidSchemaException:
        raise
    except (SchemaParseException, InvalidFixedSizeException) as e:
        raise InvalidSchemaException(f"Invalid built-in schema: {e}", cause=e) from e


def get_full_name(schema: Schema) -> str:
    """Return the namespace-qualified name of a named schema, or the type name."""
    return schema.full_name


def resolve(schema: Schema) -> Schema:
    """Follow a :class:`RecursiveSchema` to the record it names."""
    if isinstance(schema, RecursiveSchema):
        return schema.actual
    return schema


def check_dispatch(table: Dict[SchemaType, Any], owner: str) -> Dict[SchemaType, Any]:
    """Verify that a per-kind dispatch table handles every :class:`SchemaType`."""
    missing = [t.name for t in SchemaType if t not in table]
    if missing:
        raise TypeError(f"{owner} does not handle schema types: {', '.join(missing)}")
    return table
