"""Pagination settings, retry settings, total-count hints and fetch statistics."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from .errors import ConfigError


@dataclass(frozen=True)
class Retry:
    """Retry policy for HTTP requests to a source."""

    max_attempts: int
    max_delay_secs: int
    min_delay_secs: int


@dataclass(frozen=True)
class LimitOffset:
    """``?limit=N&offset=M`` style pagination."""

    limit_param: str
    offset_param: str


@dataclass(frozen=True)
class PageNumber:
    """``?page=N&per_page=M`` style pagination."""

    page_param: str
    per_page_param: str


@dataclass(frozen=True)
class PageOnly:
    """``?page=N`` style pagination with a server-chosen page size."""

    page_param: str


@dataclass(frozen=True)
class Cursor:
    """Cursor-token pagination with an optional page-size parameter."""

    cursor_param: str
    page_size_param: str | None = None


@dataclass(frozen=True)
class DefaultPagination:
    """No pagination: a single request returns everything."""


Pagination = Union[LimitOffset, PageNumber, PageOnly, Cursor, DefaultPagination]

_KINDS: dict[str, type] = {
    "limit_offset": LimitOffset,
    "page_number": PageNumber,
    "page_only": PageOnly,
    "cursor": Cursor,
    "default": DefaultPagination,
}
_KIND_OF = {cls: kind for kind, cls in _KINDS.items()}

# Required and optional string fields of each pagination kind.
_FIELDS: dict[type, tuple[tuple[str, ...], tuple[str, ...]]] = {
    LimitOffset: (("limit_param", "offset_param"), ()),
    PageNumber: (("page_param", "per_page_param"), ()),
    PageOnly: (("page_param",), ()),
    Cursor: (("cursor_param",), ("page_size_param",)),
    DefaultPagination: ((), ()),
}


@dataclass(frozen=True)
class ItemsHint:
    """The pointer locates the total item count; pages = ceil(items / per_page)."""

    pointer: str


@dataclass(frozen=True)
class PagesHint:
    """The pointer locates the total page count directly."""

    pointer: str


TotalHint = Union[ItemsHint, PagesHint]


def _string_field(kind: str, data: Mapping[str, Any], name: str) -> str:
    value = data[name]
    if not isinstance(value, str):
        raise ConfigError(
            f"pagination '{kind}': field '{name}' must be a string, got {value!r}"
        )
    return value


def parse_pagination(data: Mapping[str, Any]) -> Pagination:
    """Build a pagination setting from a mapping tagged by its ``kind`` key.

    Unknown keys are ignored; a missing or mistyped field raises ConfigError.
    """
    if not isinstance(data, Mapping):
        raise ConfigError(f"pagination must be a mapping, got {type(data).__name__}")
    if "kind" not in data:
        raise ConfigError("pagination is missing field 'kind'")
    kind = data["kind"]
    cls = _KINDS.get(kind) if isinstance(kind, str) else None
    if cls is None:
        expected = ", ".join(_KINDS)
        raise ConfigError(f"unknown pagination kind {kind!r}, expected one of: {expected}")

    required, optional = _FIELDS[cls]
    kwargs: dict[str, str | None] = {}
    for name in required:
        if name not in data:
            raise ConfigError(f"pagination '{kind}' is missing field '{name}'")
        kwargs[name] = _string_field(kind, data, name)
    for name in optional:
        if data.get(name) is None:
            kwargs[name] = None
        else:
            kwargs[name] = _string_field(kind, data, name)
    return cls(**kwargs)


def pagination_to_dict(pagination: Pagination) -> dict[str, Any]:
    """Return the tagged mapping form of *pagination*, the inverse of parse_pagination."""
    cls = type(pagination)
    kind = _KIND_OF.get(cls)
    if kind is None:
        raise ConfigError(f"not a pagination setting: {pagination!r}")
    required, optional = _FIELDS[cls]
    out: dict[str, Any] = {"kind": kind}
    for name in required + optional:
        out[name] = getattr(pagination, name)
    return out


def _array_index(segment: str) -> int | None:
    if not segment.isdigit() or not segment.isascii():
        return None
    if len(segment) > 1 and segment.startswith("0"):
        return None
    return int(segment)


def json_pointer(value: Any, pointer: str) -> Any:
    """Look up *pointer* (RFC 6901) in a decoded JSON value.

    Returns None when the pointer is malformed or does not resolve.
    """
    if pointer == "":
        return value
    if not pointer.startswith("/"):
        return None
    current = value
    for raw in pointer[1:].split("/"):
        segment = raw.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list):
            index = _array_index(segment)
            if index is None or index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


@dataclass
class FetchStats:
    """Counts of fetched pages, failed pages and items."""

    success_count: int = 0
    error_count: int = 0
    total_items: int = 0

    def add_page(self, page: int, items: int) -> None:
        """Record a successfully written page holding *items* items."""
        self.success_count += 1
        self.total_items += items

    def add_error(self, page: int) -> None:
        """Record a page that could not be fetched or written."""
        self.error_count += 1