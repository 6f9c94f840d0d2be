"""Specific records example.

Demonstrates reading and writing ordinary Python classes:
- Dataclasses bound to record schemas
- Nested records resolved from attribute annotations
- Python enums bound to enum schemas
- Renaming fields with ``__avro_fields__``
"""

import enum
import io
from dataclasses import dataclass, field
from typing import List, Optional

from avrokit import DataFileReader, DataFileWriter, SpecificDatumReader, parse_schema

SCHEMA = """
{
  "type": "record",
  "name": "Employee",
  "namespace": "example.hr",
  "fields": [
    {"name": "FullName", "type": "string"},
    {"name": "level", "type": {"type": "enum", "name": "Level", "symbols": ["JUNIOR", "SENIOR", "LEAD"]}},
    {"name": "manager", "type": ["null", "Employee"], "default": null},
    {"name": "skills", "type": {"type": "array", "items": "string"}}
  ]
}
"""


class Level(enum.Enum):
    JUNIOR = 0
    SENIOR = 1
    LEAD = 2


@dataclass
class Employee:
    __avro_fields__ = {"FullName": "name"}

    name: str = ""
    level: Level = Level.JUNIOR
    manager: Optional["Employee"] = None
    skills: List[str] = field(default_factory=list)


def main():
    schema = parse_schema(SCHEMA)
    lead = Employee("Grace", Level.LEAD, None, ["compilers"])
    staff = [
        lead,
        Employee("Alan", Level.SENIOR, lead, ["cryptanalysis", "logic"]),
        Employee("Edsger", Level.JUNIOR, lead, []),
    ]

    buffer = io.BytesIO()
    with DataFileWriter(buffer, schema) as writer:
        for employee in staff:
            writer.write(employee)

    buffer.seek(0)
    reader = DataFileReader(buffer, SpecificDatumReader(schema))
    while reader.has_next():
        employee = reader.next(Employee)
        manager = employee.manager.name if employee.manager else "-"
        print(f"{employee.name:<8} {employee.level.name:<7} manager={manager:<6} skills={employee.skills}")
    reader.close()


if __name__ == "__main__":
    main()
