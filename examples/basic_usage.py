"""Basic usage example for avrokit container files.

This example demonstrates how to:
- Parse a schema
- Write records to a container file with a compression codec
- Read the records back and inspect the file's metadata
"""

import io
import logging

from avrokit import DataFileConfig, DataFileReader, DataFileWriter, configure_logging, parse_schema

SCHEMA = """
{
  "type": "record",
  "name": "Reading",
  "namespace": "example.sensors",
  "fields": [
    {"name": "sensor", "type": "string"},
    {"name": "timestamp", "type": "long"},
    {"name": "value", "type": "double"},
    {"name": "unit", "type": ["null", "string"], "default": null}
  ]
}
"""


def main():
    configure_logging(logging.DEBUG)

    schema = parse_schema(SCHEMA)
    config = DataFileConfig(codec="deflate")
    buffer = io.BytesIO()

    # Write a few readings; blocks are flushed on close
    print("Writing readings...")
    with DataFileWriter(buffer, schema, config=config, metadata={"origin": "greenhouse"}) as writer:
        for i in range(5):
            writer.write({
                "sensor": f"t-{i % 2}",
                "timestamp": 1700000000 + i,
                "value": 20.0 + i / 2,
                "unit": "celsius" if i % 2 else None,
            })
        print(f"  pending before close: {writer.pending}")

    print(f"File size: {len(buffer.getvalue())} bytes")

    # Read them back
    buffer.seek(0)
    with DataFileReader(buffer) as reader:
        print(f"Codec: {reader.codec}")
        print(f"Origin: {reader.get_meta('origin').decode('utf-8')}")
        for record in reader:
            print(f"  {record['sensor']} @ {record['timestamp']}: {record['value']} {record['unit'] or ''}")


if __name__ == "__main__":
    main()
