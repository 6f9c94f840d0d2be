"""Unit tests for avrokit.serialization.specific and binding modules."""

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

from avrokit.exceptions import (
    AvroValueException,
    FieldBindingException,
    FieldDoesNotExistException,
    SchemaNotSetException,
)
from avrokit.schema import parse_schema
from avrokit.schema_prepared import prepare
from avrokit.serialization.binary import BinaryDecoder, BinaryEncoder
from avrokit.serialization.binding import (
    ANY,
    DefaultFieldResolver,
    MappingFieldResolver,
    TypeHint,
    attribute_hints,
    attribute_names,
    hint_for,
)
from avrokit.serialization.generic import GenericDatumWriter, GenericEnum, GenericRecord
from avrokit.serialization.specific import SpecificDatumReader, SpecificDatumWriter


@dataclass
class Person:
    name: str = ""
    age: int = 0
    email: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)


@dataclass
class Node:
    value: int = 0
    next: Optional["Node"] = None


@dataclass
class Parent:
    name: str = ""
    child: Optional["Child"] = None


@dataclass
class Child:
    name: str = ""
    parent: Optional[Parent] = None


@dataclass
class Point:
    x: int = 0
    y: int = 0


@dataclass
class Shape:
    points: List[Point] = field(default_factory=list)
    anchors: Dict[str, Point] = field(default_factory=dict)


class Suit(enum.Enum):
    HEARTS = 1
    SPADES = 2


@dataclass
class Card:
    suit: Suit = Suit.HEARTS


class Slotted:
    __slots__ = ("x", "y")


class Annotated:
    x: int
    y: int


POINT_SCHEMA = {
    "type": "record", "name": "Point",
    "fields": [{"name": "x", "type": "int"}, {"name": "y", "type": "int"}],
}

SHAPE_SCHEMA = {
    "type": "record", "name": "Shape",
    "fields": [
        {"name": "points", "type": {"type": "array", "items": POINT_SCHEMA}},
        {"name": "anchors", "type": {"type": "map", "values": "Point"}},
    ],
}

CARD_SCHEMA = {
    "type": "record", "name": "Card",
    "fields": [{"name": "suit", "type": {"type": "enum", "name": "Suit", "symbols": ["HEARTS", "SPADES"]}}],
}

FAMILY_SCHEMA = {
    "type": "record", "name": "Parent",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "child", "type": ["null", {
            "type": "record", "name": "Child",
            "fields": [
                {"name": "name", "type": "string"},
                {"name": "parent", "type": ["null", "Parent"]},
            ],
        }]},
    ],
}


def _write(schema, value, writer=None):
    encoder = BinaryEncoder()
    (writer or SpecificDatumWriter(schema)).write(value, encoder)
    return encoder.getvalue()


def _read(schema, data, destination=None, reader=None):
    return (reader or SpecificDatumReader(schema)).read(BinaryDecoder(data), destination)


class TestSpecificRoundTrip:
    """Tests for reading and writing dataclasses."""

    def test_person(self, person_schema):
        person = Person("Ada", 36, "ada@example.com", ["math"], {"analysis": 9.5})
        assert _read(person_schema, _write(person_schema, person), Person) == person

    def test_same_bytes_as_generic(self, person_schema, person_dict):
        encoder = BinaryEncoder()
        GenericDatumWriter(person_schema).write(person_dict, encoder)
        person = Person(**person_dict)
        assert _write(person_schema, person) == encoder.getvalue()

    def test_fill_instance_in_place(self, person_schema):
        data = _write(person_schema, Person("Ada", 36))
        target = Person("old", 1, "x@y", ["t"])
        result = _read(person_schema, data, target)
        assert result is target
        assert target == Person("Ada", 36)

    def test_recursive(self, node_schema):
        chain = Node(1, Node(2, Node(3)))
        result = _read(node_schema, _write(node_schema, chain), Node)
        assert result == chain
        assert isinstance(result.next.next, Node)

    def test_co_recursive(self):
        schema = parse_schema(FAMILY_SCHEMA)
        family = Parent("p", Child("c", Parent("gp")))
        result = _read(schema, _write(schema, family), Parent)
        assert result == family
        assert isinstance(result.child, Child)
        assert isinstance(result.child.parent, Parent)

    def test_nested_collections(self):
        schema = parse_schema(SHAPE_SCHEMA)
        shape = Shape([Point(0, 0), Point(1, 2)], {"origin": Point(0, 0)})
        result = _read(schema, _write(schema, shape), Shape)
        assert result == shape
        assert isinstance(result.anchors["origin"], Point)

    def test_slotted_class(self):
        schema = parse_schema(POINT_SCHEMA)
        point = Slotted()
        point.x, point.y = 3, 4
        result = _read(schema, _write(schema, point), Slotted)
        assert (result.x, result.y) == (3, 4)

    def test_annotated_class(self):
        schema = parse_schema(POINT_SCHEMA)
        point = Annotated()
        point.x, point.y = 5, 6
        result = _read(schema, _write(schema, point), Annotated)
        assert isinstance(result, Annotated)
        assert (result.x, result.y) == (5, 6)

    def test_generic_record_destination(self, person_schema, person_dict):
        data = _write(person_schema, person_dict)
        assert isinstance(_read(person_schema, data, GenericRecord), GenericRecord)
        target = GenericRecord()
        assert _read(person_schema, data, target) is target
        assert target.get("name") == "Ada"

    def test_writer_accepts_dict(self, person_schema, person_dict):
        assert _read(person_schema, _write(person_schema, person_dict), Person).name == "Ada"


class TestEnums:
    """Tests for enum binding."""

    def test_python_enum(self):
        schema = parse_schema(CARD_SCHEMA)
        result = _read(schema, _write(schema, Card(Suit.SPADES)), Card)
        assert result.suit is Suit.SPADES

    def test_string_annotation(self):
        @dataclass
        class StringCard:
            suit: str = ""

        schema = parse_schema(CARD_SCHEMA)
        result = _read(schema, _write(schema, StringCard("SPADES")), StringCard)
        assert result.suit == "SPADES"

    def test_unannotated_gives_generic_enum(self):
        class LooseCard:
            suit = None

        schema = parse_schema(CARD_SCHEMA)
        result = _read(schema, _write(schema, Card(Suit.SPADES)), LooseCard)
        assert isinstance(result.suit, GenericEnum)
        assert result.suit.get() == "SPADES"

    def test_enum_missing_member(self):
        class Small(enum.Enum):
            HEARTS = 1

        @dataclass
        class SmallCard:
            suit: Small = Small.HEARTS

        schema = parse_schema(CARD_SCHEMA)
        with pytest.raises(FieldBindingException):
            _read(schema, _write(schema, Card(Suit.SPADES)), SmallCard)

    def test_enum_root_with_class_destination(self):
        schema = parse_schema({"type": "enum", "name": "Suit", "symbols": ["HEARTS", "SPADES"]})
        assert _read(schema, b"\x02", Suit) is Suit.SPADES


class TestFieldResolution:
    """Tests for field name resolution."""

    def test_case_flip(self):
        schema = parse_schema({
            "type": "record", "name": "Point",
            "fields": [{"name": "X", "type": "int"}, {"name": "Y", "type": "int"}],
        })
        assert _read(schema, _write(schema, Point(1, 2)), Point) == Point(1, 2)

    def test_avro_fields_attribute(self):
        @dataclass
        class Renamed:
            __avro_fields__ = {"x": "horizontal", "y": "vertical"}

            horizontal: int = 0
            vertical: int = 0

        schema = parse_schema(POINT_SCHEMA)
        assert _read(schema, _write(schema, Renamed(7, 8)), Renamed) == Renamed(7, 8)

    def test_mapping_resolver(self):
        @dataclass
        class Pixel:
            col: int = 0
            y: int = 0

        schema = parse_schema(POINT_SCHEMA)
        resolver = MappingFieldResolver({"x": "col"})
        data = _write(schema, Pixel(4, 5), SpecificDatumWriter(schema, resolver=resolver))
        result = _read(schema, data, Pixel, SpecificDatumReader(schema, resolver=resolver))
        assert result == Pixel(4, 5)

    def test_mapping_resolver_equality(self):
        assert MappingFieldResolver({"x": "col"}) == MappingFieldResolver({"x": "col"})
        assert hash(MappingFieldResolver({"x": "col"})) == hash(MappingFieldResolver({"x": "col"}))
        assert MappingFieldResolver({"x": "col"}) != MappingFieldResolver({"x": "row"})
        assert MappingFieldResolver({"x": "col"}) != MappingFieldResolver({"x": "col"}, fallback=None)

    def test_mapping_resolver_without_fallback(self):
        resolver = MappingFieldResolver({"x": "col"}, fallback=None)
        assert resolver.resolve(Point, "x") == "col"
        assert resolver.resolve(Point, "y") is None

    def test_default_resolver(self):
        resolver = DefaultFieldResolver()
        assert resolver.resolve(Point, "x") == "x"
        assert resolver.resolve(Point, "X") == "x"
        assert resolver.resolve(Point, "z") is None
        assert resolver == DefaultFieldResolver()

    def test_missing_attribute(self, person_schema):
        with pytest.raises(FieldDoesNotExistException) as exc_info:
            _read(person_schema, _write(person_schema, Person("a")), Point)
        assert exc_info.value.field == "name"

    def test_incompatible_annotation(self):
        @dataclass
        class Wrong:
            x: str = ""
            y: int = 0

        schema = parse_schema(POINT_SCHEMA)
        with pytest.raises(FieldBindingException):
            _read(schema, _write(schema, Point(1, 2)), Wrong)

    def test_bool_annotation_for_int_field(self):
        @dataclass
        class Flags:
            x: bool = False
            y: int = 0

        schema = parse_schema(POINT_SCHEMA)
        with pytest.raises(FieldBindingException):
            _write(schema, Flags(True, 0))

    def test_attribute_names(self):
        assert attribute_names(Person) == ("name", "age", "email", "tags", "scores")
        assert attribute_names(Slotted) == ("x", "y")


class TestTypeHints:
    """Tests for annotation normalization."""

    def test_optional(self):
        assert hint_for(Optional[int]) == TypeHint(cls=int)

    def test_list_and_dict(self):
        assert hint_for(List[Point]) == TypeHint(container=list, item=TypeHint(cls=Point))
        assert hint_for(Dict[str, int]) == TypeHint(container=dict, item=TypeHint(cls=int))

    def test_forward_reference(self):
        assert attribute_hints(Node)["next"] == TypeHint(cls=Node)
        assert attribute_hints(Parent)["child"] == TypeHint(cls=Child)

    def test_string_annotation(self):
        class Holder:
            points: "List[Point]"
            label: "str"

        hints = attribute_hints(Holder)
        assert hints["points"] == TypeHint(container=list, item=TypeHint(cls=Point))
        assert hints["label"] == TypeHint(cls=str)

    def test_unresolvable_forward_reference(self):
        class Dangling:
            ref: "Optional['Nowhere']"  # noqa: F821
            other: "Missing"  # noqa: F821

        hints = attribute_hints(Dangling)
        assert hints["ref"] == TypeHint(forward="Nowhere")
        assert hints["other"] == TypeHint(forward="Missing")

    def test_bare_string_is_forward(self):
        assert hint_for("Node") == TypeHint(forward="Node")

    def test_inherited_annotations(self):
        @dataclass
        class Point3(Point):
            z: int = 0

        assert set(attribute_hints(Point3)) == {"x", "y", "z"}

    def test_any(self):
        assert hint_for(None) == ANY


class TestRecordTypes:
    """Tests for record classes registered by name."""

    def test_array_root(self):
        schema = parse_schema({"type": "array", "items": POINT_SCHEMA})
        data = _write(schema, [Point(1, 2), Point(3, 4)])
        reader = SpecificDatumReader(schema, record_types={"Point": Point})
        assert _read(schema, data, reader=reader) == [Point(1, 2), Point(3, 4)]

    def test_register_record_type(self):
        schema = parse_schema(POINT_SCHEMA)
        reader = SpecificDatumReader(schema)
        reader.register_record_type("Point", Point)
        assert _read(schema, _write(schema, Point(1, 2)), reader=reader) == Point(1, 2)

    def test_unbound_record(self):
        schema = parse_schema(POINT_SCHEMA)
        with pytest.raises(FieldBindingException):
            _read(schema, _write(schema, Point(1, 2)))


class TestPlanSharing:
    """Tests for plan caching on prepared schemas."""

    def test_reader_and_writer_share_plan(self):
        prepared = prepare(parse_schema(POINT_SCHEMA))
        data = _write(prepared, Point(1, 2))
        _read(prepared, data, Point)
        _read(prepared, data, Point)
        assert prepared.plan_cache.build_count == 1

    def test_resolver_is_part_of_key(self):
        prepared = prepare(parse_schema(POINT_SCHEMA))
        data = _write(prepared, Point(1, 2))
        _read(prepared, data, Point, SpecificDatumReader(prepared, resolver=MappingFieldResolver({})))
        assert prepared.plan_cache.build_count == 2

    def test_equal_mapping_resolvers_share_plan(self):
        prepared = prepare(parse_schema(POINT_SCHEMA))
        data = _write(prepared, Point(1, 2))
        for _ in range(3):
            reader = SpecificDatumReader(prepared, resolver=MappingFieldResolver({"x": "x"}))
            assert _read(prepared, data, Point, reader) == Point(1, 2)
        assert prepared.plan_cache.build_count == 2

    def test_set_schema_prepares(self):
        reader = SpecificDatumReader()
        reader.set_schema(parse_schema(POINT_SCHEMA))
        assert hasattr(reader.schema, "plan_cache")


class TestSpecificErrors:
    """Tests for error paths."""

    def test_schema_not_set(self):
        with pytest.raises(SchemaNotSetException):
            SpecificDatumWriter().write(Point(), BinaryEncoder())
        with pytest.raises(SchemaNotSetException):
            SpecificDatumReader().read(BinaryDecoder(b""))

    def test_none_as_record(self):
        with pytest.raises(AvroValueException):
            _write(parse_schema(POINT_SCHEMA), None)

    def test_scalar_as_record(self):
        with pytest.raises(AvroValueException):
            _write(parse_schema(POINT_SCHEMA), 42)

    def test_object_missing_attribute(self):
        class Half:
            x = 1

        with pytest.raises(FieldDoesNotExistException):
            _write(parse_schema(POINT_SCHEMA), Half())
