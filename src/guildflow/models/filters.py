"""Event filter models for GuildFlow event triggers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from guildflow.errors import InvalidFilterError

_MISSING = object()


def _same_value(actual: Any, expected: Any) -> bool:
    """Compare by value without letting booleans equal numbers."""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return bool(actual == expected)


def _as_mapping(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return data


def resolve_path(data: Any, path: str) -> Any:
    """Walk a dotted path through nested mappings.

    Args:
        data: Event, mapping, or any value to walk.
        path: Dotted key path such as "payload.status".

    Returns:
        The resolved value, or a sentinel when any segment is missing.
    """
    current = _as_mapping(data)
    for part in path.split("."):
        current = _as_mapping(current)
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


class PathFilter(BaseModel):
    """Generic filter: every dotted path must resolve to the expected value."""

    kind: Literal["path"] = "path"
    conditions: dict[str, Any] = Field(default_factory=dict)

    def matches(self, data: Any) -> bool:
        """Check an event (or raw emitted data) against the conditions."""
        for path, expected in self.conditions.items():
            actual = resolve_path(data, path)
            if actual is _MISSING or not _same_value(actual, expected):
                return False
        return True

    def to_config(self) -> dict[str, Any]:
        return dict(self.conditions)


class RecordFilter(BaseModel):
    """Structured filter for database change events."""

    kind: Literal["record"] = "record"
    table: str | None = None
    operation: Literal["INSERT", "UPDATE", "DELETE"] | None = None
    fields: dict[str, Any] = Field(default_factory=dict)

    def matches(self, data: Any) -> bool:
        """Check table, operation and top-level record fields."""
        if isinstance(data, BaseModel):
            table = getattr(data, "table", None)
            operation = getattr(data, "operation", None)
            record = getattr(data, "payload", None)
        else:
            table = operation = None
            record = data

        if self.table is not None and table != self.table:
            return False
        if self.operation is not None and operation != self.operation:
            return False
        if not isinstance(record, Mapping):
            return not self.fields

        return all(
            key in record and _same_value(record[key], expected)
            for key, expected in self.fields.items()
        )

    def to_config(self) -> dict[str, Any]:
        return self.model_dump()


EventFilter = PathFilter | RecordFilter


def build_filter(raw: Any = None) -> EventFilter:
    """Build a filter from its configuration.

    Plain mappings are dotted-path conditions; mappings with
    ``kind: "record"`` are structured record filters. A mapping whose only
    key is ``filter`` is unwrapped.

    Raises:
        InvalidFilterError: If the configuration cannot be interpreted.
    """
    if raw is None:
        return PathFilter()
    if isinstance(raw, PathFilter | RecordFilter):
        return raw
    if not isinstance(raw, Mapping):
        msg = f"Event filter must be a mapping, got {type(raw).__name__}"
        raise InvalidFilterError(msg)

    if set(raw) == {"filter"} and isinstance(raw["filter"], Mapping | None):
        return build_filter(raw["filter"])

    try:
        if raw.get("kind") == "record":
            return RecordFilter.model_validate(raw)
        if raw.get("kind") == "path":
            return PathFilter.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid event filter: {e.errors()[0]['msg']}"
        raise InvalidFilterError(msg, context={"filter": dict(raw)}) from e

    return PathFilter(conditions=dict(raw))
