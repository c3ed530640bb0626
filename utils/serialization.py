"""
Conversion of ORM rows and payloads into JSON-safe, camelCase dicts.
Key conversion uses Pydantic's alias generator so responses match request schemas.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from pydantic.alias_generators import to_camel


def to_jsonable(value: Any) -> Any:
    """Recursively make a value safe for JSON columns and responses."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


def dict_keys_to_camel(obj: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase for API responses."""
    if isinstance(obj, dict):
        return {to_camel(k): dict_keys_to_camel(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [dict_keys_to_camel(x) for x in obj]
    return obj


def row_to_dict(row: Any, fields: Iterable[str] | None = None) -> dict[str, Any]:
    """Snapshot mapped columns of an ORM row (snake_case, JSON-safe)."""
    names = list(fields) if fields is not None else [c.key for c in row.__table__.columns]
    return {name: to_jsonable(getattr(row, name)) for name in names}


def row_to_response(row: Any, fields: Iterable[str] | None = None) -> dict[str, Any]:
    return dict_keys_to_camel(row_to_dict(row, fields))
