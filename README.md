# apitap

Building blocks for pulling JSON out of REST APIs and preparing it for a
warehouse load:

- **SQL module templates** (`apitap.templating`) rendered with Jinja. A
  template declares where its rows come from with `{{ use_source("...") }}`
  and where they go with `{{ sink(name="...") }}`; both names are captured
  while rendering.
- **An HTTP client builder** (`apitap.httpclient`) with default headers,
  bearer authentication, timeouts and connection pooling.
- **Pagination settings** (`apitap.pagination`): tagged pagination kinds,
  retry policy, total-count hints, a JSON pointer lookup and fetch statistics.
- **Paginated fetching** (`apitap.fetcher`) over limit/offset and page-number
  APIs, for plain JSON and NDJSON responses.
- **Logging setup** (`apitap.logsetup`) in human-readable or JSON form.
- **Errors** (`apitap.errors`): one exception hierarchy for all of the above.

Install with `pip install .`; the test dependencies are in the `test` extra.

## SQL module templates

Put one or more `.sql` files under a directory (sub-directories are fine, and
the extension is matched case-insensitively; symbolic links are skipped):

```sql
-- pipelines/users.sql
{{ sink(name="postgres_sink") }}
SELECT id, name, email FROM {{ use_source("api_users") }}
```

Discover and render them:

```python
from apitap.templating import (
    RenderCapture,
    build_env_with_captures,
    list_sql_templates,
    render_one,
)

capture = RenderCapture()
env = build_env_with_captures("pipelines", capture)

for name in list_sql_templates("pipelines"):   # sorted, "/"-separated paths
    rendered = render_one(env, capture, name)
    print(rendered.name, rendered.capture.source, rendered.capture.sink)
    print(rendered.sql)
```

`sink()` renders as an empty string; `use_source()` renders as the name it was
given. `render_one` clears the capture before each render, so a template that
calls neither function comes back with empty `source` and `sink`. A missing or
broken template raises `apitap.errors.TemplateError`.

## HTTP client

```python
from apitap.httpclient import Http

http = (
    Http("https://api.example.com/users")
    .header("Accept", "application/json")
    .bearer_auth("token")
    .param("status", "active")
)

client = http.build_client()   # an httpx.AsyncClient with the default headers
print(http.get_url())          # https://api.example.com/users?status=active
```

Headers with invalid names or values are left out of the client; a bearer
token with invalid characters is left out with a logged warning. The client
uses a 30 s request timeout, a 10 s connect timeout and keeps up to 10 idle
connections for 90 s. A `page` parameter is never folded into the URL returned
by `get_url()`.

## Pagination settings

Pagination is described by a mapping tagged with `kind`, as it appears in a
YAML or JSON configuration:

```python
from apitap.pagination import parse_pagination, pagination_to_dict

pagination = parse_pagination(
    {"kind": "limit_offset", "limit_param": "limit", "offset_param": "offset"}
)
assert pagination_to_dict(pagination)["kind"] == "limit_offset"
```

The kinds are `limit_offset` (`LimitOffset`), `page_number` (`PageNumber`),
`page_only` (`PageOnly`), `cursor` (`Cursor`, with an optional
`page_size_param`) and `default` (`DefaultPagination`). A missing `kind`, an
unknown kind or a missing or non-string field raises `ConfigError`.

`json_pointer(value, "/data/0")` looks up an RFC 6901 pointer in decoded JSON
and returns `None` when it does not resolve. `Retry(max_attempts,
max_delay_secs, min_delay_secs)` is the retry policy; `ItemsHint` and
`PagesHint` point at a total item or page count; `FetchStats` holds
`success_count`, `error_count` and `total_items`.

## Fetching pages

Supply a `PageWriter` subclass that receives the records, then let a
`PaginatedFetcher` walk the pages:

```python
import asyncio

from apitap.fetcher import PageWriter, PaginatedFetcher
from apitap.httpclient import Http
from apitap.pagination import Retry


class PrintingWriter(PageWriter):
    async def write_page(self, page_number, data, write_mode):
        print(page_number, len(data))

    async def write_page_stream(self, stream, write_mode):
        async for record in stream:
            print(record)


async def main():
    client = Http("https://api.example.com/users").build_client()
    fetcher = PaginatedFetcher(client, "https://api.example.com/users", 5)
    fetcher = fetcher.with_limit_offset("limit", "offset")
    retry = Retry(max_attempts=3, max_delay_secs=60, min_delay_secs=1)
    stats = await fetcher.fetch_limit_offset(
        50, "/data", None, None, PrintingWriter(), "merge", retry
    )
    print(stats.total_items)
    await client.aclose()


asyncio.run(main())
```

- `ndjson_stream_qs` sends one GET and returns an async iterator over its
  items. A content type mentioning `ndjson` is read line by line; anything
  else is decoded as one JSON document. The optional JSON pointer selects the
  records and arrays are flattened. Transport failures, 429 and 5xx replies
  are retried up to `max_attempts` times in total, the wait doubling from
  `min_delay_secs` up to `max_delay_secs`.
- Limit/offset fetching streams all pages to `write_page_stream` as one
  stream, requesting until a page comes back empty.
- Page-number fetching calls `begin()`, reads page 1, and, given an
  `ItemsHint` or `PagesHint` that resolves in that first response, fetches the
  remaining pages concurrently (at most `concurrency` at once) and writes them
  through `write_page` in batches of `with_batch_size(n)` items (256 by
  default). Without a usable hint it walks pages 2, 3, … through
  `write_page_stream` until one is empty. It finishes with `commit()`.
- Failures on individual later pages are passed to `on_page_error` rather
  than raised. `FetchStats` counts the pages and items that went through
  `write_page_stream`, and page 1 when it was written directly; pages fetched
  concurrently are not counted, and `error_count` is not updated by the
  fetcher.
- Writing an unconfigured pagination kind raises `PaginationError`.

## Logging

```python
from apitap.logsetup import init_tracing, init_tracing_with

init_tracing_with("warn,apitap.fetcher=debug", use_json=True)
```

`init_tracing_with` installs a handler on the root logger writing to standard
output, and returns it; calling it again replaces that handler. Levels are
`trace`, `debug`, `info`, `warn`/`warning`, `error` and `off`, optionally per
logger as `name=level`. With no level it reads the `LOG_LEVEL` environment
variable, then uses `info`. `init_tracing()` takes the level from
`APITAP_LOG_LEVEL` and switches to JSON output (`JsonFormatter`) when
`APITAP_LOG_FORMAT` is `json`.

## Errors

Every failure is raised as a subclass of `apitap.errors.ApitapError`:
`ConfigError`, `PaginationError`, `WriterError`, `PipelineError`,
`UnsupportedSinkError`, `MergeError`, `DataTypeError`, `PoisonError`,
`IoError`, `JsonError`, `HttpError`, `TemplateError` and `UrlParseError`.
Their messages carry a fixed prefix such as `Configuration error: ...` or
`Pagination error: ...`. `wrap_exception(exc)` turns an httpx, Jinja, JSON or
OS error into the matching class, keeping the original as `__cause__`.

## What this package does not do

There is no command to run and no end-to-end pipeline. The package does not
read a pipeline configuration file, does not execute the rendered SQL, and has
no warehouse writers: loading records anywhere is up to your `PageWriter`.