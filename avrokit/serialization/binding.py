"""Binding of record fields to Python class attributes.

The specific datum reader and writer move record fields in and out of
ordinary Python objects (dataclasses, slotted classes, plain annotated
classes). This module decides which attribute holds which schema field
and what Python type the attribute is declared with, and turns that into
a :class:`~avrokit.schema_prepared.RecordPlan`.

Field names are resolved by a :class:`FieldResolver`. The default one
matches the exact name first, then the name with its first letter's case
flipped (``Name`` -> ``name``). A class can pin names explicitly::

    @dataclass
    class Person:
        __avro_fields__ = {"FullName": "name"}

        name: str
        age: int
"""

import collections.abc
import dataclasses
import enum
import functools
import re
import sys
import types
import typing
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from avrokit.exceptions import FieldBindingException, FieldDoesNotExistException
from avrokit.schema import RecordSchema, Schema, SchemaType
from avrokit.schema_prepared import FieldPlan, RecordPlan

AVRO_FIELDS_ATTR = "__avro_fields__"

_UNION_TYPES = tuple(
    t for t in (typing.Union, getattr(types, "UnionType", None)) if t is not None
)
_SEQUENCE_ORIGINS = (
    list,
    tuple,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Iterable,
)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)
_FORWARD_NAME = re.compile(r"""^(?:typing\.)?(?:Optional\[)?\s*['"]?([A-Za-z_]\w*)['"]?\s*\]?$""")


@dataclasses.dataclass(frozen=True)
class TypeHint:
    """What an attribute annotation says about the values it holds.

    Attributes:
        cls: The declared class, if the annotation names one.
        container: ``list`` or ``dict`` for collection annotations.
        item: Hint for the items (lists) or values (dicts).
        forward: Class name of a forward reference that could not be
            resolved yet.
    """

    cls: Optional[type] = None
    container: Optional[type] = None
    item: Optional["TypeHint"] = None
    forward: Optional[str] = None

    @property
    def item_hint(self) -> "TypeHint":
        return self.item if self.item is not None else ANY

    def is_enum(self) -> bool:
        return isinstance(self.cls, type) and issubclass(self.cls, enum.Enum)


ANY = TypeHint()


class FieldResolver(ABC):
    """Maps schema field names to attribute names of a destination class."""

    @abstractmethod
    def resolve(self, shape: type, field_name: str) -> Optional[str]:
        """Return the attribute of ``shape`` that holds ``field_name``, or None."""
        pass


class DefaultFieldResolver(FieldResolver):
    """Resolves by the class's ``__avro_fields__`` mapping, then the exact
    name, then the name with the case of its first letter flipped."""

    def resolve(self, shape: type, field_name: str) -> Optional[str]:
        explicit = getattr(shape, AVRO_FIELDS_ATTR, None)
        if explicit and field_name in explicit:
            return explicit[field_name]
        candidates = attribute_names(shape)
        if field_name in candidates:
            return field_name
        if field_name:
            flipped = field_name[0].swapcase() + field_name[1:]
            if flipped in candidates:
                return flipped
        return None

    def __eq__(self, other: object) -> bool:
        return type(other) is DefaultFieldResolver

    def __hash__(self) -> int:
        return hash(DefaultFieldResolver)

    def __repr__(self) -> str:
        return "DefaultFieldResolver()"


DEFAULT_RESOLVER = DefaultFieldResolver()


class MappingFieldResolver(FieldResolver):
    """Resolves through an explicit ``{field name: attribute}`` mapping.

    Args:
        mapping: Field name to attribute name.
        fallback: Resolver for names missing from the mapping. Defaults to
            :class:`DefaultFieldResolver`; pass None to disable.
    """

    def __init__(self, mapping: Mapping[str, str], fallback: Optional[FieldResolver] = DEFAULT_RESOLVER):
        self._mapping = dict(mapping)
        self._fallback = fallback

    def resolve(self, shape: type, field_name: str) -> Optional[str]:
        attribute = self._mapping.get(field_name)
        if attribute is not None:
            return attribute
        if self._fallback is not None:
            return self._fallback.resolve(shape, field_name)
        return None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MappingFieldResolver):
            return NotImplemented
        return self._mapping == other._mapping and self._fallback == other._fallback

    def __hash__(self) -> int:
        return hash((frozenset(self._mapping.items()), self._fallback))

    def __repr__(self) -> str:
        return f"MappingFieldResolver({self._mapping!r})"


def attribute_names(shape: type) -> Tuple[str, ...]:
    """The attributes a class declares: dataclass fields, annotations across
    the MRO, ``__slots__`` and plain class attributes."""
    names: Dict[str, None] = {}
    if dataclasses.is_dataclass(shape):
        for f in dataclasses.fields(shape):
            names[f.name] = None
    for klass in reversed(shape.__mro__):
        if klass is object:
            continue
        for name in _own_annotations(klass):
            names[name] = None
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name not in ("__dict__", "__weakref__"):
                names[name] = None
        for name, value in klass.__dict__.items():
            if name.startswith("__") or callable(value):
                continue
            if isinstance(value, (property, classmethod, staticmethod, types.MemberDescriptorType)):
                continue
            names[name] = None
    return tuple(names)


def _own_annotations(klass: type) -> Dict[str, Any]:
    annotations = klass.__dict__.get("__annotations__")
    if annotations is None and sys.version_info >= (3, 10):
        # Not inherited from bases on 3.10+; evaluated lazily on 3.14+.
        annotations = getattr(klass, "__annotations__", None)
    return dict(annotations) if isinstance(annotations, dict) else {}


Namespaces = Tuple[Dict[str, Any], Dict[str, Any]]


def _namespaces(klass: type) -> Namespaces:
    module = sys.modules.get(klass.__module__)
    return (vars(module) if module is not None else {}), {klass.__name__: klass}


def attribute_hints(shape: type) -> Dict[str, TypeHint]:
    """Type hints of the annotated attributes of ``shape``.

    String annotations are resolved against the module of the class that
    declares them. Names that are not defined yet are kept as forward
    references.
    """
    hints: Dict[str, TypeHint] = {}
    for klass in reversed(shape.__mro__):
        if klass is object:
            continue
        namespaces = _namespaces(klass)
        for name, annotation in _own_annotations(klass).items():
            hints[name] = hint_for(annotation, namespaces)
    return hints


def _resolve_annotation(text: str, namespaces: Namespaces) -> Any:
    globalns, localns = namespaces
    holder = types.SimpleNamespace(__annotations__={"value": text})
    try:
        return typing.get_type_hints(holder, globalns=globalns, localns=localns)["value"]
    except NameError:
        return text


def hint_for(annotation: Any, namespaces: Optional[Namespaces] = None) -> TypeHint:
    """Normalize an annotation to a :class:`TypeHint`.

    ``Optional[X]`` unwraps to X, and ``List[X]`` and ``Dict[str, X]``
    become container hints. String annotations are resolved in
    ``namespaces`` (globals, locals); those that cannot be resolved become
    forward references by class name.
    """
    if annotation is None or annotation is Any:
        return ANY
    if isinstance(annotation, typing.ForwardRef):
        annotation = annotation.__forward_arg__
    if isinstance(annotation, str):
        resolved = _resolve_annotation(annotation, namespaces) if namespaces is not None else annotation
        if not isinstance(resolved, str):
            return hint_for(resolved, namespaces)
        match = _FORWARD_NAME.match(annotation.strip())
        return TypeHint(forward=match.group(1)) if match else ANY

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin in _UNION_TYPES:
        branches = [a for a in args if a is not type(None)]
        if len(branches) == 1:
            return hint_for(branches[0], namespaces)
        return ANY
    if origin in _SEQUENCE_ORIGINS:
        item = hint_for(args[0], namespaces) if args else ANY
        return TypeHint(container=list, item=item)
    if origin in _MAPPING_ORIGINS:
        item = hint_for(args[1], namespaces) if len(args) == 2 else ANY
        return TypeHint(container=dict, item=item)
    if annotation in (list, tuple):
        return TypeHint(container=list, item=ANY)
    if annotation is dict:
        return TypeHint(container=dict, item=ANY)
    if isinstance(annotation, type):
        return TypeHint(cls=annotation)
    return ANY


_PRIMITIVE_CLASSES = {
    SchemaType.BOOLEAN: (bool,),
    SchemaType.INT: (int,),
    SchemaType.LONG: (int,),
    SchemaType.FLOAT: (float,),
    SchemaType.DOUBLE: (float,),
    SchemaType.BYTES: (bytes, bytearray),
    SchemaType.STRING: (str,),
    SchemaType.FIXED: (bytes, bytearray),
}
_SCALAR_CLASSES = (bool, int, float, str, bytes, bytearray)


def is_compatible(schema: Schema, hint: TypeHint) -> bool:
    """Whether an attribute declared as ``hint`` can hold values of ``schema``."""
    kind = schema.type
    if hint == ANY or hint.forward is not None or kind == SchemaType.NULL:
        return True
    if kind == SchemaType.UNION:
        return any(is_compatible(t, hint) for t in schema.types if t.type != SchemaType.NULL)
    if kind == SchemaType.ARRAY:
        if hint.container is dict or hint.cls in _SCALAR_CLASSES:
            return False
        return hint.container is None or is_compatible(schema.items, hint.item_hint)
    if kind == SchemaType.MAP:
        if hint.container is list or hint.cls in _SCALAR_CLASSES:
            return False
        return hint.container is None or is_compatible(schema.values, hint.item_hint)
    if hint.container is not None:
        return False
    if kind in (SchemaType.RECORD, SchemaType.RECURSIVE):
        return hint.cls not in _SCALAR_CLASSES and not hint.is_enum()
    if kind == SchemaType.ENUM:
        return hint.cls is str or hint.is_enum() or hint.cls not in _SCALAR_CLASSES
    allowed = _PRIMITIVE_CLASSES[kind]
    if hint.cls is None or hint.cls is object:
        return True
    if hint.cls is bool and bool not in allowed:
        return False
    return issubclass(hint.cls, allowed)


def dataclass_defaults(shape: type):
    """``(name, default, is_factory)`` for every dataclass field with a default."""
    if not dataclasses.is_dataclass(shape):
        return ()
    defaults = []
    for f in dataclasses.fields(shape):
        if f.default is not dataclasses.MISSING:
            defaults.append((f.name, f.default, False))
        elif f.default_factory is not dataclasses.MISSING:
            defaults.append((f.name, f.default_factory, True))
    return tuple(defaults)


def build_record_plan(
    schema: RecordSchema,
    shape: type,
    resolver: FieldResolver,
    read_value: Callable[..., Any],
    write_value: Callable[..., None],
) -> RecordPlan:
    """Bind every field of ``schema`` to an attribute of ``shape``.

    ``read_value(schema, hint, decoder, binding)`` and
    ``write_value(schema, value, encoder, binding)`` are the traversal
    functions the per-field closures delegate to.

    Raises:
        FieldDoesNotExistException: If a field has no attribute.
        FieldBindingException: If an attribute's declared type cannot hold
            the field's values.
    """
    hints = attribute_hints(shape)
    plans = []
    for schema_field in schema.fields:
        attribute = resolver.resolve(shape, schema_field.name)
        if attribute is None:
            raise FieldDoesNotExistException(schema_field.name, shape.__qualname__)
        hint = hints.get(attribute, ANY)
        if not is_compatible(schema_field.type, hint):
            raise FieldBindingException(
                f"{shape.__qualname__}.{attribute} is declared as {_describe(hint)} "
                f"and cannot hold {schema_field.type.name} values of field {schema_field.name}"
            )
        plans.append(
            FieldPlan(
                name=schema_field.name,
                attribute=attribute,
                schema=schema_field.type,
                hint=hint,
                decode=functools.partial(read_value, schema_field.type, hint),
                encode=functools.partial(write_value, schema_field.type),
            )
        )
    return RecordPlan(shape, tuple(plans), dataclass_defaults(shape))


def _describe(hint: TypeHint) -> str:
    if hint.container is not None:
        return f"{hint.container.__name__}[{_describe(hint.item_hint)}]"
    if hint.cls is not None:
        return hint.cls.__name__
    return hint.forward or "Any"
