"""Protocol definitions.

A protocol declares a set of named types and the messages exchanged with
them::

    {"protocol": "Mail", "namespace": "example.proto",
     "types": [{"type": "record", "name": "Message", "fields": [...]}],
     "messages": {"send": {"request": [{"name": "message", "type": "Message"}],
                           "response": "string"}}}

All types share one :class:`~avrokit.schema.SchemaRegistry`, so a type can
refer to the types declared before it, and message signatures can refer
to any of them.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from avrokit.exceptions import InvalidSchemaException
from avrokit.logging import get_logger
from avrokit.schema import NO_DEFAULT, NullSchema, Schema, SchemaField, SchemaRegistry, parse_schema

_logger = get_logger("protocol")


@dataclass
class Message:
    """One message of a protocol.

    Attributes:
        name: Message name.
        request: Parameters, in declaration order.
        response: Schema of the response; null for one-way messages.
        errors: Schemas of the errors the message may raise.
        doc: Documentation string, or None.
        one_way: Whether the message expects no response.
    """

    name: str
    request: List[SchemaField] = field(default_factory=list)
    response: Schema = field(default_factory=NullSchema)
    errors: List[Schema] = field(default_factory=list)
    doc: Optional[str] = None
    one_way: bool = False


class Protocol:
    """A parsed protocol."""

    def __init__(
        self,
        name: str,
        namespace: Optional[str],
        types: List[Schema],
        messages: Dict[str, Message],
        registry: SchemaRegistry,
        doc: Optional[str] = None,
    ):
        self.name = name
        self.namespace = namespace
        self.types = types
        self.messages = messages
        self.doc = doc
        self._registry = registry

    def get_schema(self, name: str) -> Optional[Schema]:
        """Return the named type called ``name``, or None.

        The name may be fully qualified or relative to the protocol's
        namespace.
        """
        return self._registry.lookup(name, self.namespace)

    @property
    def type_registry(self) -> SchemaRegistry:
        """Registry holding every named type of the protocol."""
        return self._registry

    def __repr__(self) -> str:
        return (
            f"Protocol(name={self.name!r}, namespace={self.namespace!r}, "
            f"types={[t.full_name for t in self.types]}, messages={list(self.messages)})"
        )


def parse_protocol(text: Union[str, bytes, dict]) -> Protocol:
    """Parse a protocol definition.

    Raises:
        InvalidSchemaException: If the definition is not a valid protocol.
        SchemaParseException: If one of its types is invalid.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    if isinstance(text, str):
        try:
            definition = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidSchemaException(f"Protocol is not valid JSON: {e}", cause=e) from e
    else:
        definition = text
    if not isinstance(definition, dict):
        raise InvalidSchemaException(f"Protocol must be a JSON object, got {type(definition).__name__}")

    name = definition.get("protocol")
    if not isinstance(name, str) or not name:
        raise InvalidSchemaException("Protocol has no name")
    namespace = definition.get("namespace") or None

    registry = SchemaRegistry()
    raw_types = definition.get("types", [])
    if not isinstance(raw_types, list):
        raise InvalidSchemaException("Protocol types must be a list")
    types = [parse_schema(t, registry, namespace) for t in raw_types]

    raw_messages = definition.get("messages", {})
    if not isinstance(raw_messages, dict):
        raise InvalidSchemaException("Protocol messages must be an object")
    messages = {
        message_name: _parse_message(message_name, body, registry, namespace)
        for message_name, body in raw_messages.items()
    }

    _logger.debug("Parsed protocol %s (%d types, %d messages)", name, len(types), len(messages))
    return Protocol(name, namespace, types, messages, registry, definition.get("doc"))


def _parse_message(name: str, body: Any, registry: SchemaRegistry, namespace: Optional[str]) -> Message:
    if not isinstance(body, dict):
        raise InvalidSchemaException(f"Message {name} must be an object")
    raw_request = body.get("request", [])
    if not isinstance(raw_request, list):
        raise InvalidSchemaException(f"Request of message {name} must be a list")

    request = []
    for index, param in enumerate(raw_request):
        if not isinstance(param, dict) or "name" not in param or "type" not in param:
            raise InvalidSchemaException(f"Invalid parameter of message {name}: {param!r}")
        request.append(
            SchemaField(
                name=param["name"],
                type=parse_schema(param["type"], registry, namespace),
                default=param.get("default", NO_DEFAULT),
                doc=param.get("doc"),
                index=index,
            )
        )

    response = parse_schema(body.get("response", "null"), registry, namespace)
    errors = [parse_schema(e, registry, namespace) for e in body.get("errors", [])]
    one_way = bool(body.get("one-way", False))
    if one_way and not isinstance(response, NullSchema):
        raise InvalidSchemaException(f"One-way message {name} must have a null response")
    return Message(name, request, response, errors, body.get("doc"), one_way)
