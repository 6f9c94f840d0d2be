"""Generic records example.

Demonstrates encoding and decoding values without dedicated Python
classes:
- GenericRecord and plain dicts for records
- Arrays of nested records
- Reading into an existing record
"""

from avrokit import (
    BinaryDecoder,
    BinaryEncoder,
    GenericDatumReader,
    GenericDatumWriter,
    GenericRecord,
    parse_schema,
)

SCHEMA = {
    "type": "record",
    "name": "TestRecord",
    "fields": [
        {"name": "value", "type": "int"},
        {
            "name": "rec",
            "type": {
                "type": "array",
                "items": {
                    "type": "record",
                    "name": "TestRecord2",
                    "fields": [
                        {"name": "stringValue", "type": "string"},
                        {"name": "intValue", "type": "int"},
                    ],
                },
            },
        },
    ],
}


def main():
    schema = parse_schema(SCHEMA)
    nested = schema.fields[1].type.items

    record = GenericRecord(schema)
    record.set("value", 3)
    record.set("rec", [
        GenericRecord(nested, {"stringValue": "Hello", "intValue": 1}),
        # A dict works wherever a record is expected
        {"stringValue": "World", "intValue": 2},
    ])

    encoder = BinaryEncoder()
    GenericDatumWriter(schema).write(record, encoder)
    data = encoder.getvalue()
    print(f"Encoded {len(data)} bytes: {data.hex()}")

    decoded = GenericDatumReader(schema).read(BinaryDecoder(data))
    print(f"value = {decoded['value']}")
    for item in decoded["rec"]:
        print(f"  {item['stringValue']} {item['intValue']}")

    # Fill an existing record in place
    target = GenericRecord(schema)
    GenericDatumReader(schema).read(BinaryDecoder(data), target)
    print(f"Filled in place: {target.to_dict()}")


if __name__ == "__main__":
    main()
