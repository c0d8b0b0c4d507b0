# tutorsync/sheets/schema.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from tutorsync.naming import BOOKINGS, INQUIRIES, MANUAL_MATCHES


@dataclass(frozen=True)
class Column:
    label: str
    field: str
    # extra record fields to try, in order, when `field` is empty
    fallbacks: tuple[str, ...] = field(default=())
    default: str = ""


ColumnSchema = tuple[Column, ...]

ID_COLUMN = Column("ID", "id")

# Canonical columns per known module.
# Keep these orders stable; existing sheets were written with them.
MANUAL_MATCH_COLUMNS: ColumnSchema = (
    ID_COLUMN,
    Column("Parent Name", "parentName", ("name",)),
    Column("Phone Number", "phoneNumber", ("phone",)),
    Column("Subject", "subject"),
    Column("Grade Level", "gradeLevel"),
    Column("Status", "status", default="Pending"),
    Column("Date Added", "dateAdded", ("createdAt",)),
)

INQUIRY_COLUMNS: ColumnSchema = (
    ID_COLUMN,
    Column("Name", "name", ("parentName",)),
    Column("Email", "email"),
    Column("Phone", "phone", ("phoneNumber",)),
    Column("Subject", "subject"),
    Column("Message", "message"),
    Column("Date", "date", ("createdAt",)),
    Column("Status", "status", default="Pending"),
)

BOOKING_COLUMNS: ColumnSchema = (
    ID_COLUMN,
    Column("Parent Name", "parentName", ("name",)),
    Column("Child Name", "childName"),
    Column("Email", "email"),
    Column("Phone", "phone", ("phoneNumber",)),
    Column("Date", "date"),
    Column("Time", "time"),
    Column("Topic", "topic"),
    Column("Status", "status", default="Pending"),
)

FIXED_SCHEMAS: dict[str, ColumnSchema] = {
    MANUAL_MATCHES: MANUAL_MATCH_COLUMNS,
    INQUIRIES: INQUIRY_COLUMNS,
    BOOKINGS: BOOKING_COLUMNS,
}

# Used when an unknown collection has neither a header row nor a sample record.
FALLBACK_COLUMNS: ColumnSchema = (ID_COLUMN, Column("Data", "data"))

_CAMEL_BOUNDARY = re.compile(r"([A-Z])")
_WORD_SPLIT = re.compile(r"[^0-9A-Za-z]+")


def titleize(key: str) -> str:
    """parentName -> Parent Name, first_name -> First Name"""
    words = [w[0].upper() + _CAMEL_BOUNDARY.sub(r" \1", w[1:]) for w in _WORD_SPLIT.split(key) if w]
    return re.sub(r"\s+", " ", " ".join(words)).strip()


def camelize(label: str) -> str:
    """Parent Name -> parentName. Inverse of titleize for camelCase keys."""
    words = [w for w in _WORD_SPLIT.split(label.strip()) if w]
    if not words:
        return ""
    head = words[0].lower()
    return head + "".join(w[:1].upper() + w[1:].lower() for w in words[1:])


def header_key(label: str) -> str:
    """Comparison key shared by header labels and record fields.

    "First Name", "first_name", "E-mail" and "eMail" all reduce to letters and
    digits only, lower-cased. camelize() keeps that key intact.
    """
    return re.sub(r"[^0-9a-z]+", "", str(label).lower())


def header_labels(schema: Sequence[Column]) -> list[str]:
    return [c.label for c in schema]


def fixed_schema(module: str) -> Optional[ColumnSchema]:
    return FIXED_SCHEMAS.get(module)


def schema_from_labels(labels: Sequence[str], fields: Iterable[str] = ()) -> ColumnSchema:
    """Builds a dynamic schema from a header row. Column A is always the id.

    A label keeps the name of an existing field with the same header_key;
    otherwise the field is the camelized label.
    """
    known: dict[str, str] = {}
    for name in fields:
        key = header_key(name)
        if key and name != "id":
            known.setdefault(key, name)

    cols = [ID_COLUMN]
    for label in list(labels)[1:]:
        label = str(label or "").strip()
        cols.append(Column(label, known.get(header_key(label)) or camelize(label)))
    return tuple(cols)


def schema_from_record(sample: dict) -> ColumnSchema:
    cols = [ID_COLUMN]
    for key in sample:
        if key == "id":
            continue
        cols.append(Column(titleize(key), key))
    return tuple(cols)
