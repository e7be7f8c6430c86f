import json

import httpx
import jinja2
import pytest

from apitap.errors import (
    ApitapError,
    ConfigError,
    HttpError,
    IoError,
    JsonError,
    MergeError,
    PaginationError,
    PipelineError,
    PoisonError,
    TemplateError,
    UnsupportedSinkError,
    UrlParseError,
    WriterError,
    wrap_exception,
)


def test_error_display():
    assert str(ConfigError("missing url")) == "Configuration error: missing url"


def test_writer_error_contains_prefix():
    assert "Writer error" in str(WriterError("connection failed"))


def test_config_error_display():
    err = ConfigError("missing configuration")
    assert str(err) == "Configuration error: missing configuration"


def test_writer_error_display():
    assert str(WriterError("connection failed")) == "Writer error: connection failed"


def test_pipeline_error_display():
    err = PipelineError("failed to process data")
    assert str(err) == "Pipeline error: failed to process data"


def test_pagination_error_display():
    assert str(PaginationError("invalid cursor")) == "Pagination error: invalid cursor"


def test_unsupported_sink_display():
    assert str(UnsupportedSinkError("mysql")) == "Unsupported sink: mysql"


def test_merge_error_display():
    err = MergeError("duplicate keys detected")
    assert str(err) == "Merge Error: duplicate keys detected"


def test_poison_error_display():
    assert str(PoisonError("lock poisoned")) == "Poison Error: lock poisoned"


def test_io_error_from_conversion():
    wrapped = wrap_exception(FileNotFoundError("file not found"))
    assert isinstance(wrapped, IoError)
    assert "I/O error" in str(wrapped)


def test_serde_json_error_from_conversion():
    with pytest.raises(json.JSONDecodeError) as info:
        json.loads("{invalid json}")
    wrapped = wrap_exception(info.value)
    assert isinstance(wrapped, JsonError)
    assert "JSON serialization error" in str(wrapped)


def test_url_parse_error_from_conversion():
    wrapped = wrap_exception(httpx.InvalidURL("not a valid url"))
    assert isinstance(wrapped, UrlParseError)
    assert "URL parse error" in str(wrapped)


def test_error_debug_format():
    assert "ConfigError" in repr(ConfigError("debug test"))


def test_multiple_error_types_in_chain():
    err = ConfigError("first error")

    def do_something():
        raise err

    def handle_error():
        do_something()

    with pytest.raises(ApitapError) as info:
        handle_error()
    assert info.value is err
    assert "Configuration error" in str(err)


def test_error_contains_provides_context():
    err_str = str(WriterError("Database connection timeout after 30 seconds"))
    assert "Writer error" in err_str
    assert "connection timeout" in err_str


def test_subclasses_are_caught_as_base():
    err = PipelineError("boom")
    assert isinstance(err, ApitapError)
    assert err.message == "boom"
    assert str(err) == "Pipeline error: boom"


def test_wrap_keeps_apitap_error_unchanged():
    err = WriterError("x")
    assert wrap_exception(err) is err


def test_wrap_http_error_keeps_cause():
    original = httpx.ConnectError("refused")
    wrapped = wrap_exception(original)
    assert isinstance(wrapped, HttpError)
    assert str(wrapped) == "HTTP request failed: refused"
    assert wrapped.__cause__ is original


def test_wrap_template_not_found():
    wrapped = wrap_exception(jinja2.TemplateNotFound("missing.sql"))
    assert isinstance(wrapped, TemplateError)
    assert str(wrapped) == "Template error: missing.sql"


def test_wrap_unknown_exception_uses_base():
    wrapped = wrap_exception(KeyError("k"))
    assert type(wrapped) is ApitapError
    assert "k" in str(wrapped)