"""Shared utilities for the backend."""
from utils.clock import hours_from_now, utcnow
from utils.serialization import dict_keys_to_camel, row_to_dict, row_to_response, to_jsonable

__all__ = [
    "hours_from_now",
    "utcnow",
    "dict_keys_to_camel",
    "row_to_dict",
    "row_to_response",
    "to_jsonable",
]
