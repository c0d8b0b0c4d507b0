# tutorsync/sheets/codec.py

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from tutorsync.naming import normalize_module
from tutorsync.sheets.schema import (
    FALLBACK_COLUMNS,
    Column,
    ColumnSchema,
    fixed_schema,
    header_key,
    schema_from_labels,
    schema_from_record,
)

# label fragment -> record fields tried when no field matches the header
_ALIASES: list[tuple[str, tuple[str, ...]]] = [
    ("name", ("name", "parentName")),
    ("phone", ("phone", "phoneNumber")),
    ("date", ("date", "createdAt")),
]


def to_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def _first_present(record: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for k in keys:
        v = record.get(k)
        if v is not None and v != "":
            return v
    return None


def _cell_at(row: Sequence[Any], i: int) -> str:
    if i >= len(row):
        return ""
    v = row[i]
    return "" if v is None else str(v)


def is_blank_row(row: Optional[Sequence[Any]]) -> bool:
    return not row or all(not str(c if c is not None else "").strip() for c in row)


def derive_schema(collection: str, sample: Optional[Mapping[str, Any]] = None) -> ColumnSchema:
    """Schema for a sheet that has no header yet.

    Known modules always get their fixed columns. Anything else is laid out from
    the sample record's own fields (id first), or ID/Data when there is nothing
    to sample.
    """
    fixed = fixed_schema(normalize_module(collection))
    if fixed is not None:
        return fixed
    if sample:
        return schema_from_record(dict(sample))
    return FALLBACK_COLUMNS


def resolve_schema(
    collection: str,
    header: Optional[Sequence[Any]] = None,
    sample: Optional[Mapping[str, Any]] = None,
    fields: Optional[Iterable[str]] = None,
) -> ColumnSchema:
    """An existing header row wins over anything derived.

    `fields` are the record field names already in use for the collection;
    header labels map onto them so edits land on the existing field. Defaults
    to the sample's fields.
    """
    fixed = fixed_schema(normalize_module(collection))
    if fixed is not None:
        return fixed
    if not is_blank_row(header):
        if fields is None:
            fields = list(sample or ())
        return schema_from_labels([_cell_at(header, i) for i in range(len(header))], fields)
    return derive_schema(collection, sample)


def _dynamic_cell(column: Column, record: Mapping[str, Any], by_key: dict[str, str]) -> Any:
    if column.field in record:
        return record.get(column.field)
    key = header_key(column.label)
    if key in by_key:
        return record.get(by_key[key])

    label = column.label.lower()
    for fragment, fields in _ALIASES:
        if fragment in label:
            return _first_present(record, fields)
    return None


def encode(collection: str, record: Mapping[str, Any], schema: Optional[Sequence[Column]] = None) -> list[str]:
    record_id = to_cell(record.get("id"))
    fixed = fixed_schema(normalize_module(collection))

    if fixed is not None:
        row = []
        for col in fixed:
            if col.field == "id":
                row.append(record_id)
                continue
            value = _first_present(record, (col.field,) + col.fallbacks)
            row.append(to_cell(value) if value is not None else col.default)
        return row

    if schema:
        by_key = {header_key(k): k for k in record}
        row = []
        for col in schema:
            if col.field == "id":
                row.append(record_id)
            else:
                row.append(to_cell(_dynamic_cell(col, record, by_key)))
        return row

    return [record_id, json.dumps(dict(record), default=str)]


def decode(collection: str, row: Optional[Sequence[Any]], schema: Optional[Sequence[Column]] = None) -> Optional[dict]:
    """Maps a row back to a record; None for an empty or all-blank row.

    Fields the schema doesn't know about are not recoverable.
    """
    if is_blank_row(row):
        return None

    record_id = _cell_at(row, 0).strip()
    fixed = fixed_schema(normalize_module(collection))

    if fixed is not None:
        out: dict[str, Any] = {"id": record_id}
        for i, col in enumerate(fixed):
            if col.field == "id":
                continue
            out[col.field] = _cell_at(row, i) or col.default
        return out

    if schema:
        out = {"id": record_id}
        for i, col in enumerate(schema):
            if i == 0 or not col.field or col.field == "id":
                continue
            out[col.field] = _cell_at(row, i)
        return out

    return {"id": record_id, "rawData": [_cell_at(row, i) for i in range(1, len(row))]}
