"""Shared pytest fixtures for avrokit tests."""

import io

import pytest

from avrokit.schema import parse_schema


PERSON_SCHEMA = """
{"type": "record", "name": "Person", "namespace": "example.avro",
 "fields": [
   {"name": "name", "type": "string"},
   {"name": "age", "type": "int"},
   {"name": "email", "type": ["null", "string"], "default": null},
   {"name": "tags", "type": {"type": "array", "items": "string"}},
   {"name": "scores", "type": {"type": "map", "values": "double"}}
 ]
}
"""

NODE_SCHEMA = """
{"type": "record", "name": "Node",
 "fields": [
   {"name": "value", "type": "long"},
   {"name": "next", "type": ["null", "Node"]}
 ]
}
"""


@pytest.fixture
def person_schema():
    """Parse the Person record schema."""
    return parse_schema(PERSON_SCHEMA)


@pytest.fixture
def node_schema():
    """Parse the self-referencing Node record schema."""
    return parse_schema(NODE_SCHEMA)


@pytest.fixture
def person_dict():
    """A Person record as a plain dict."""
    return {
        "name": "Ada",
        "age": 36,
        "email": "ada@example.com",
        "tags": ["math", "engines"],
        "scores": {"analysis": 9.5},
    }


@pytest.fixture
def buffer():
    """Create an empty in-memory binary stream."""
    return io.BytesIO()

