"""Error hierarchy shared by every part of apitap."""

from __future__ import annotations

import json

import httpx
import jinja2


class ApitapError(Exception):
    """Base class for all apitap errors."""

    prefix = ""

    def __init__(self, message: object = "") -> None:
        self.message = str(message)
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.prefix}{self.message}"


class ConfigError(ApitapError):
    """Invalid or incomplete configuration."""

    prefix = "Configuration error: "


class PaginationError(ApitapError):
    """Pagination is misconfigured or failed."""

    prefix = "Pagination error: "


class WriterError(ApitapError):
    """A destination writer failed."""

    prefix = "Writer error: "


class PipelineError(ApitapError):
    """A pipeline step failed."""

    prefix = "Pipeline error: "


class UnsupportedSinkError(ApitapError):
    """The requested sink type is not supported."""

    prefix = "Unsupported sink: "


class MergeError(ApitapError):
    """Merging rows into the destination failed."""

    prefix = "Merge Error: "


class DataTypeError(ApitapError):
    """A value had an unexpected data type."""

    prefix = "Data Type Error: "


class PoisonError(ApitapError):
    """Shared state was left unusable by an earlier failure."""

    prefix = "Poison Error: "


class IoError(ApitapError):
    """An operating-system level I/O failure."""

    prefix = "I/O error: "


class JsonError(ApitapError):
    """JSON could not be parsed or produced."""

    prefix = "JSON serialization error: "


class HttpError(ApitapError):
    """An HTTP request failed."""

    prefix = "HTTP request failed: "


class TemplateError(ApitapError):
    """A SQL template could not be loaded or rendered."""

    prefix = "Template error: "


class UrlParseError(ApitapError):
    """A URL could not be parsed."""

    prefix = "URL parse error: "


def wrap_exception(exc: BaseException) -> ApitapError:
    """Convert a foreign exception into the matching ApitapError.

    ApitapError instances are returned unchanged; the original exception
    is kept as ``__cause__`` of the new one.
    """
    if isinstance(exc, ApitapError):
        return exc
    if isinstance(exc, httpx.InvalidURL):
        cls: type[ApitapError] = UrlParseError
    elif isinstance(exc, httpx.HTTPError):
        cls = HttpError
    elif isinstance(exc, jinja2.TemplateError):
        cls = TemplateError
    elif isinstance(exc, json.JSONDecodeError):
        cls = JsonError
    elif isinstance(exc, OSError):
        cls = IoError
    else:
        cls = ApitapError
    wrapped = cls(str(exc))
    wrapped.__cause__ = exc
    return wrapped