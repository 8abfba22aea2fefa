"""Type aliases for JSON payloads and query parameters."""

from __future__ import annotations

from typing import Dict, List, TypeAlias, Union

# Containers stay ``object``-typed: recursive aliases trip pydantic schema generation.
JSONPrimitive: TypeAlias = Union[str, int, float, bool, None]
JSONValue: TypeAlias = Union[JSONPrimitive, Dict[str, object], List[object]]
JSONDict: TypeAlias = Dict[str, JSONValue]

# Pairs rather than a mapping so ``tags`` can repeat within one request.
QueryParams: TypeAlias = List[tuple[str, str]]

__all__ = ["JSONPrimitive", "JSONValue", "JSONDict", "QueryParams"]
