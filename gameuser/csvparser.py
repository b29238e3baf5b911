"""Parser for design-config CSV tables into lists of dataclass records.

The first row is the header. Each column is matched to a dataclass field by
the field's ``csv`` metadata, or by its lower-cased name; a ``csv`` value of
``"-"`` excludes the field. Scalar cells are parsed as str, int, float or
bool; dataclass, list and dict fields are read from JSON in the cell.
Empty cells keep the field's default.
"""

import csv
import dataclasses
import io
import json
import re
import types
import typing
from typing import Any, Union, get_args, get_origin

_INT_RE = re.compile(r"[+-]?[0-9]+", re.ASCII)
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}
_NAMED_TYPES = {
    "int": int,
    "str": str,
    "float": float,
    "bool": bool,
    "list": list,
    "dict": dict,
    "Any": Any,
    "typing.Any": Any,
}


class CSVParseError(ValueError):
    """Raised when CSV data cannot be mapped onto the target records."""


def _optional_inner(tp: Any) -> Any:
    """Return X for Optional[X] / X | None, else None."""
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(tp) if arg is not type(None)]
        if len(args) == 1 and len(get_args(tp)) == 2:
            return args[0]
    return None


def _normalise(key: str) -> str:
    return key.replace("_", "").lower()


def _init_fields(cls: type) -> list[dataclasses.Field]:
    return [f for f in dataclasses.fields(cls) if f.init]


def _field_type(f: dataclasses.Field) -> Any:
    """Return the declared type of a field, resolving simple names given as text."""
    tp = f.type
    if isinstance(tp, str):
        resolved = _NAMED_TYPES.get(tp.strip())
        if resolved is None:
            raise CSVParseError(f"unsupported field type: {tp!r}")
        return resolved
    return tp


def _field_types(cls: type) -> dict[str, Any]:
    return {f.name: _field_type(f) for f in _init_fields(cls)}


def _has_default(f: dataclasses.Field) -> bool:
    return (
        f.default is not dataclasses.MISSING
        or f.default_factory is not dataclasses.MISSING
    )


def _zero(tp: Any) -> Any:
    if _optional_inner(tp) is not None:
        return None
    origin = get_origin(tp) or tp
    zeros = {bool: False, int: 0, float: 0.0, str: "", list: [], dict: {}}
    if origin in zeros:
        return type(zeros[origin])() if origin in (list, dict) else zeros[origin]
    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        return _build(tp, {})
    return None


def _build(cls: type, values: dict[str, Any]) -> Any:
    kwargs = {}
    for f in _init_fields(cls):
        if f.name in values:
            kwargs[f.name] = values[f.name]
        elif not _has_default(f):
            kwargs[f.name] = _zero(_field_type(f))
    return cls(**kwargs)


def _from_json(data: Any, tp: Any) -> Any:
    if data is None:
        return _zero(tp)
    inner = _optional_inner(tp)
    if inner is not None:
        return _from_json(data, inner)
    if tp is Any or tp is typing.Any:
        return data
    if tp is bool:
        if not isinstance(data, bool):
            raise CSVParseError(f"cannot read {data!r} as bool")
        return data
    if tp is int:
        if isinstance(data, bool) or not isinstance(data, (int, float)):
            raise CSVParseError(f"cannot read {data!r} as int")
        if isinstance(data, float) and not data.is_integer():
            raise CSVParseError(f"cannot read {data!r} as int")
        return int(data)
    if tp is float:
        if isinstance(data, bool) or not isinstance(data, (int, float)):
            raise CSVParseError(f"cannot read {data!r} as float")
        return float(data)
    if tp is str:
        if not isinstance(data, str):
            raise CSVParseError(f"cannot read {data!r} as string")
        return data
    origin = get_origin(tp) or tp
    args = get_args(tp)
    if origin is list:
        if not isinstance(data, list):
            raise CSVParseError(f"cannot read {type(data).__name__} as list")
        elem = args[0] if args else Any
        return [_from_json(element, elem) for element in data]
    if origin is dict:
        if not isinstance(data, dict):
            raise CSVParseError(f"cannot read {type(data).__name__} as object")
        key_type, value_type = args if args else (str, Any)
        result = {}
        for key, value in data.items():
            if key_type is int:
                if not _INT_RE.fullmatch(key):
                    raise CSVParseError(f"cannot read key {key!r} as int")
                key = int(key)
            result[key] = _from_json(value, value_type)
        return result
    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        if not isinstance(data, dict):
            raise CSVParseError(f"cannot read {type(data).__name__} as {tp.__name__}")
        hints = _field_types(tp)
        by_key = {
            _normalise(f.metadata.get("json", f.name)): f for f in _init_fields(tp)
        }
        values = {}
        for key, value in data.items():
            f = by_key.get(_normalise(key))
            if f is not None:
                values[f.name] = _from_json(value, hints.get(f.name, Any))
        return _build(tp, values)
    raise CSVParseError(f"unsupported field type: {tp!r}")


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise CSVParseError(f"failed to parse int: invalid syntax {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise CSVParseError(f"failed to parse int: value out of range {text!r}")
    return value


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text:
        raise CSVParseError(f"failed to parse float: invalid syntax {text!r}")
    try:
        return float(text)
    except ValueError:
        raise CSVParseError(f"failed to parse float: invalid syntax {text!r}") from None


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise CSVParseError(f"failed to parse bool: invalid syntax {text!r}")


class CSVParser:
    """Maps CSV text onto a list of dataclass instances."""

    def unmarshal_string(self, csv_data: str, dest_type: type) -> list[Any]:
        """Parse ``csv_data`` into a list of ``dest_type`` records."""
        if not (isinstance(dest_type, type) and dataclasses.is_dataclass(dest_type)):
            raise CSVParseError("dest must be a dataclass type")

        records = self._read_records(csv_data)
        if not records:
            raise CSVParseError("empty CSV data")

        headers, *rows = records
        columns = self._field_map(dest_type)

        result = []
        for number, row in enumerate(rows, start=1):
            values = {}
            for header, cell in zip(headers, row):
                f = columns.get(header)
                if f is None or cell == "":
                    continue
                try:
                    values[f.name] = self._parse_cell(cell, _field_type(f))
                except CSVParseError as exc:
                    raise CSVParseError(
                        f"error parsing row {number}: error setting field {f.name}: {exc}"
                    ) from exc
            result.append(_build(dest_type, values))
        return result

    @staticmethod
    def _read_records(csv_data: str) -> list[list[str]]:
        reader = csv.reader(io.StringIO(csv_data), strict=True)
        records: list[list[str]] = []
        try:
            for row in reader:
                if not row:
                    continue
                if records and len(row) != len(records[0]):
                    raise CSVParseError(
                        f"failed to parse CSV: record on line {reader.line_num}: "
                        "wrong number of fields"
                    )
                records.append(row)
        except csv.Error as exc:
            raise CSVParseError(f"failed to parse CSV: {exc}") from exc
        return records

    @staticmethod
    def _field_map(dest_type: type) -> dict[str, dataclasses.Field]:
        columns = {}
        for f in _init_fields(dest_type):
            if f.name.startswith("_"):
                continue
            tag = f.metadata.get("csv") or f.name.lower()
            if tag == "-":
                continue
            columns[tag] = f
        return columns

    def _parse_cell(self, text: str, tp: Any) -> Any:
        inner = _optional_inner(tp)
        if inner is not None:
            return self._parse_cell(text, inner)
        if tp is bool:
            return _parse_bool(text)
        if tp is int:
            return _parse_int(text)
        if tp is float:
            return _parse_float(text)
        if tp is str:
            return text
        origin = get_origin(tp) or tp
        if origin in (list, dict) or (
            isinstance(tp, type) and dataclasses.is_dataclass(tp)
        ):
            try:
                data = json.loads(text)
            except json.JSONDecodeError as exc:
                raise CSVParseError(f"failed to parse JSON: {exc}") from exc
            return _from_json(data, tp)
        raise CSVParseError(f"unsupported field type: {tp!r}")