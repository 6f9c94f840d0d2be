"""Prepared schemas.

:func:`prepare` copies a schema graph into a form optimized for repeated
encoding and decoding into Python classes. Every record of the copy is a
:class:`PreparedRecordSchema` that owns a :class:`RecordPlanCache`: the
binding of the record's fields to the attributes of a destination class is
computed once per class and reused by every reader and writer sharing the
prepared schema, across threads.

Recursive references are replaced by the prepared record they point to,
so the prepared graph of a self-referencing record contains a cycle.
"""

import dataclasses
import threading
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from avrokit.logging import get_logger
from avrokit.schema import (
    ArraySchema,
    MapSchema,
    RecordSchema,
    Schema,
    SchemaField,
    SchemaType,
    UnionSchema,
)

_logger = get_logger("schema")


@dataclasses.dataclass(frozen=True)
class FieldPlan:
    """How one schema field is bound to a destination attribute.

    Attributes:
        name: Schema field name.
        attribute: Attribute of the destination class.
        schema: Prepared schema of the field.
        hint: Type information taken from the attribute's annotation.
        decode: ``decode(decoder, binding)`` reads the field's value.
        encode: ``encode(value, encoder, binding)`` writes the field's value.
    """

    name: str
    attribute: str
    schema: Schema
    hint: Any
    decode: Callable[..., Any]
    encode: Callable[..., None]


@dataclasses.dataclass(frozen=True)
class RecordPlan:
    """The binding of a record schema to a destination class."""

    shape: type
    fields: Tuple[FieldPlan, ...]
    defaults: Tuple[Tuple[str, Any, bool], ...] = ()

    def new_instance(self) -> Any:
        """Create an instance of the shape without calling ``__init__``.

        Dataclass defaults and default factories are applied.
        """
        obj = self.shape.__new__(self.shape)
        for name, default, is_factory in self.defaults:
            object.__setattr__(obj, name, default() if is_factory else default)
        return obj


class RecordPlanCache:
    """Thread-safe get-or-build cache of record plans keyed by shape.

    Lookups of a published plan take no lock. Building takes the lock and
    re-checks, so each shape is built at most once and no caller ever sees
    a partially built plan.
    """

    def __init__(self, record_name: str = ""):
        self._record_name = record_name
        self._plans: Dict[Hashable, RecordPlan] = {}
        self._lock = threading.Lock()
        self._build_count = 0

    @property
    def build_count(self) -> int:
        """Number of plans built so far."""
        return self._build_count

    def get(self, shape: Hashable) -> Optional[RecordPlan]:
        return self._plans.get(shape)

    def get_or_build(self, shape: Hashable, builder: Callable[[], RecordPlan]) -> RecordPlan:
        """Return the plan for ``shape``, building it with ``builder`` if needed.

        If ``builder`` raises, nothing is cached and the error propagates.
        """
        plan = self._plans.get(shape)
        if plan is not None:
            return plan
        with self._lock:
            plan = self._plans.get(shape)
            if plan is None:
                plan = builder()
                plans = dict(self._plans)
                plans[shape] = plan
                self._plans = plans
                self._build_count += 1
                _logger.debug("Built record plan for %s bound to %s", self._record_name, shape)
        return plan

    def __len__(self) -> int:
        return len(self._plans)


class PreparedRecordSchema(RecordSchema):
    """A record schema carrying a plan cache."""

    def __init__(self, source: RecordSchema):
        super().__init__(
            source.name,
            source.namespace,
            doc=source.doc,
            aliases=source.aliases,
            props=source.props,
        )
        self.plan_cache = RecordPlanCache(self.full_name)


class _PrepareJob:
    def __init__(self):
        # id(original node) -> prepared node; originals stay alive for the job.
        self._seen: Dict[int, Schema] = {}

    def prepare(self, schema: Schema) -> Schema:
        seen = self._seen.get(id(schema))
        if seen is not None:
            return seen

        kind = schema.type
        if kind == SchemaType.RECURSIVE:
            output = self.prepare(schema.actual)
        elif kind == SchemaType.RECORD:
            if isinstance(schema, PreparedRecordSchema):
                return schema
            return self._prepare_record(schema)
        elif kind == SchemaType.UNION:
            output = UnionSchema([self.prepare(t) for t in schema.types])
        elif kind == SchemaType.ARRAY:
            output = ArraySchema(self.prepare(schema.items), schema.props)
        elif kind == SchemaType.MAP:
            output = MapSchema(self.prepare(schema.values), schema.props)
        else:
            return schema
        self._seen[id(schema)] = output
        return output

    def _prepare_record(self, schema: RecordSchema) -> PreparedRecordSchema:
        output = PreparedRecordSchema(schema)
        # Published before the fields so references back to it stop here.
        self._seen[id(schema)] = output
        output.set_fields([
            SchemaField(f.name, self.prepare(f.type), f.default, f.doc, dict(f.props))
            for f in schema.fields
        ])
        return output


def prepare(schema: Schema) -> Schema:
    """Return a prepared copy of ``schema``.

    Records become :class:`PreparedRecordSchema` nodes; enum, fixed and
    primitive nodes are shared with the input. Preparing an already
    prepared record returns it unchanged.
    """
    return _PrepareJob().prepare(schema)


def is_prepared(schema: Schema) -> bool:
    return isinstance(schema, PreparedRecordSchema)
