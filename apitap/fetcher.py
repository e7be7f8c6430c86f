"""Fetching JSON from paginated HTTP APIs and handing it to page writers."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Any

import httpx

from .errors import ApitapError, JsonError, PaginationError, wrap_exception
from .logsetup import TRACE
from .pagination import (
    DefaultPagination,
    FetchStats,
    ItemsHint,
    LimitOffset,
    PageNumber,
    PagesHint,
    Pagination,
    Retry,
    TotalHint,
    json_pointer,
)

logger = logging.getLogger(__name__)

_DEFAULT_BATCH_SIZE = 256


# ------------------------------------------------------------------ helpers


class _ItemStream:
    """Async iterator over decoded JSON items that owns its HTTP response."""

    def __init__(
        self, items: AsyncIterator[Any], response: httpx.Response | None = None
    ) -> None:
        self._items = items
        self._response = response

    def __aiter__(self) -> _ItemStream:
        return self

    async def __anext__(self) -> Any:
        return await self._items.__anext__()

    async def aclose(self) -> None:
        """Stop iteration and release the underlying response."""
        await self._items.aclose()  # type: ignore[attr-defined]
        if self._response is not None:
            await self._response.aclose()


async def _iterate(items: Iterable[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


async def _close(stream: Any) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


def _decode(data: str | bytes) -> Any:
    try:
        return json.loads(data)
    except ValueError as exc:
        raise JsonError(str(exc)) from exc


def _lookup(value: Any, pointer: str) -> tuple[bool, Any]:
    """Resolve *pointer*, telling a JSON null apart from a missing location."""
    if pointer == "":
        return True, value
    inner = json_pointer(value, pointer)
    if inner is not None:
        return True, inner
    if not pointer.startswith("/"):
        return False, None
    parent_pointer, _, raw = pointer.rpartition("/")
    parent = json_pointer(value, parent_pointer)
    segment = raw.replace("~1", "/").replace("~0", "~")
    if isinstance(parent, dict):
        return segment in parent, None
    if isinstance(parent, list) and segment.isascii() and segment.isdigit():
        if (segment == "0" or not segment.startswith("0")) and int(segment) < len(parent):
            return True, None
    return False, None


def _as_count(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return None


def _is_retryable(status: int) -> bool:
    return status == 429 or status >= 500


def _backoff(retry: Retry, attempt: int) -> float:
    delay = retry.min_delay_secs * (2**attempt)
    return float(max(0, min(max(delay, retry.min_delay_secs), retry.max_delay_secs)))


async def _send_once(
    client: httpx.AsyncClient, url: str, params: list[tuple[str, str]]
) -> httpx.Response:
    try:
        request = client.build_request("GET", url, params=params)
        return await client.send(request, stream=True)
    except httpx.TransportError:
        raise
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise wrap_exception(exc) from exc


async def _send_with_retry(
    client: httpx.AsyncClient,
    url: str,
    params: list[tuple[str, str]],
    retry: Retry,
) -> httpx.Response:
    """GET *url*, retrying transport failures, 429 and 5xx replies.

    ``retry.max_attempts`` is the total number of attempts; the wait between
    them doubles from ``min_delay_secs`` up to ``max_delay_secs``.
    """
    attempts = max(1, retry.max_attempts)
    for attempt in range(attempts - 1):
        try:
            response = await _send_once(client, url, params)
        except httpx.TransportError as exc:
            logger.debug("request to %s failed (attempt %d): %s", url, attempt + 1, exc)
        else:
            if not _is_retryable(response.status_code):
                return response
            logger.debug(
                "request to %s got status %d (attempt %d), retrying",
                url,
                response.status_code,
                attempt + 1,
            )
            await response.aclose()
        await asyncio.sleep(_backoff(retry, attempt))
    try:
        return await _send_once(client, url, params)
    except httpx.TransportError as exc:
        raise wrap_exception(exc) from exc


async def _ndjson_items(
    response: httpx.Response, data_path: str | None
) -> AsyncIterator[Any]:
    try:
        async for line in response.aiter_lines():
            trimmed = line.strip()
            if not trimmed:
                continue
            logger.log(TRACE, "ndjson line of length %d", len(trimmed))
            value = _decode(trimmed)
            if data_path is not None:
                found, inner = _lookup(value, data_path)
                if found:
                    if isinstance(inner, list):
                        for item in inner:
                            yield item
                    elif inner is not None:
                        yield inner
                    continue
            if isinstance(value, list):
                for item in value:
                    yield item
            else:
                yield value
    except httpx.HTTPError as exc:
        raise wrap_exception(exc) from exc
    finally:
        await response.aclose()


# ---------------------------------------------------------------- streaming


async def ndjson_stream_qs(
    client: httpx.AsyncClient,
    url: str,
    query: Iterable[tuple[str, str]],
    data_path: str | None,
    retry: Retry,
) -> AsyncIterator[Any]:
    """Send a GET request and return an async iterator over its JSON items.

    A response whose content type mentions ``ndjson`` is read line by line;
    any other response is decoded as one JSON document. *data_path* is a JSON
    pointer to drill into; arrays are flattened into their elements.
    """
    params = [(str(k), str(v)) for k, v in query]
    response = await _send_with_retry(client, url, params, retry)
    logger.debug("http response received from %s: status %d", url, response.status_code)

    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        await response.aclose()
        raise wrap_exception(exc) from exc

    content_type = response.headers.get("content-type", "")
    if "ndjson" in content_type:
        return _ItemStream(_ndjson_items(response, data_path), response)

    try:
        body = await response.aread()
    except httpx.HTTPError as exc:
        raise wrap_exception(exc) from exc
    finally:
        await response.aclose()

    value = _decode(body)
    target = value if data_path is None else json_pointer(value, data_path)
    if isinstance(target, list):
        items = target
    elif target is None:
        items = []
    else:
        items = [target]
    logger.debug("parsed %d JSON response items", len(items))
    return _ItemStream(_iterate(items))


# ------------------------------------------------------------------ writers


class PageWriter(ABC):
    """Destination for fetched pages of JSON items."""

    @abstractmethod
    async def write_page(self, page_number: int, data: list[Any], write_mode: Any) -> None:
        """Write one batch of items belonging to *page_number*."""

    async def write_page_stream(self, stream: AsyncIterator[Any], write_mode: Any) -> None:
        """Write a stream of items; the default releases the stream unread."""
        await _close(stream)

    async def on_page_error(self, page_number: int, error: str) -> None:
        """Report a page that could not be fetched or written."""
        logger.error("error fetching page %d: %s", page_number, error)

    async def begin(self) -> None:
        """Called before the first page is written."""
        logger.debug("%s: begin", type(self).__name__)

    async def commit(self) -> None:
        """Called after the last page is written."""
        logger.debug("%s: commit", type(self).__name__)


async def _report(writer: PageWriter, page: int, exc: BaseException) -> None:
    try:
        await writer.on_page_error(page, str(exc))
    except ApitapError as report_exc:
        logger.debug("on_page_error for page %d failed: %s", page, report_exc)


# ------------------------------------------------------------------ fetcher


class PaginatedFetcher:
    """Fetches all pages of a paginated JSON API."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, concurrency: int) -> None:
        self.client = client
        self.base_url = str(base_url)
        self.concurrency = concurrency
        self.pagination: Pagination = DefaultPagination()
        self.batch_size = _DEFAULT_BATCH_SIZE

    def with_limit_offset(self, limit_param: str, offset_param: str) -> PaginatedFetcher:
        """Use limit/offset pagination; returns self."""
        self.pagination = LimitOffset(str(limit_param), str(offset_param))
        return self

    def with_page_number(self, page_param: str, per_page_param: str) -> PaginatedFetcher:
        """Use page/per-page pagination; returns self."""
        self.pagination = PageNumber(str(page_param), str(per_page_param))
        return self

    def with_batch_size(self, n: int) -> PaginatedFetcher:
        """Set how many items are written at once (at least 1); returns self."""
        self.batch_size = max(1, n)
        return self

    async def limit_offset_stream(
        self,
        limit: int,
        data_path: str | None,
        extra_params: Sequence[tuple[str, str]] | None,
        retry: Retry,
    ) -> AsyncIterator[Any]:
        """Return one stream over every page, stopping at the first empty page."""
        if not isinstance(self.pagination, LimitOffset):
            raise PaginationError(f"limit/offset pagination not configured: {self.pagination!r}")
        return self._limit_offset_pages(
            self.pagination, limit, data_path, list(extra_params or ()), retry
        )

    async def _limit_offset_pages(
        self,
        pagination: LimitOffset,
        limit: int,
        data_path: str | None,
        extra_params: list[tuple[str, str]],
        retry: Retry,
    ) -> AsyncIterator[Any]:
        offset = 0
        while True:
            query = [
                *extra_params,
                (pagination.limit_param, str(limit)),
                (pagination.offset_param, str(offset)),
            ]
            page = await ndjson_stream_qs(self.client, self.base_url, query, data_path, retry)
            count = 0
            try:
                async for item in page:
                    count += 1
                    yield item
            finally:
                await _close(page)
            if count == 0:
                return
            offset += limit

    async def fetch_limit_offset(
        self,
        limit: int,
        data_path: str | None,
        extra_params: Sequence[tuple[str, str]] | None,
        total_hint: TotalHint | None,
        writer: PageWriter,
        write_mode: Any,
        retry: Retry,
    ) -> FetchStats:
        """Stream every limit/offset page into *writer* as a single stream."""
        stats = FetchStats()
        stream = await self.limit_offset_stream(limit, data_path, extra_params, retry)
        await self._write_streamed_page(1, stream, writer, stats, write_mode)
        return stats

    async def fetch_page_number(
        self,
        per_page: int,
        data_path: str | None,
        total_hint: TotalHint | None,
        writer: PageWriter,
        write_mode: Any,
        retry: Retry,
    ) -> FetchStats:
        """Fetch page/per-page pages into *writer*.

        With a total hint the remaining pages are fetched concurrently;
        otherwise pages are fetched in order until one is empty.
        """
        if not isinstance(self.pagination, PageNumber):
            raise PaginationError(f"expected page-number pagination, got {self.pagination!r}")
        page_param = self.pagination.page_param
        per_page_param = self.pagination.per_page_param

        await writer.begin()

        first_params = [(page_param, "1"), (per_page_param, str(per_page))]
        try:
            response = await self.client.get(self.base_url, params=first_params)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise wrap_exception(exc) from exc
        first_json = _decode(response.content)

        stats = FetchStats()

        wrote_first = False
        if data_path is not None:
            items = json_pointer(first_json, data_path)
            if isinstance(items, list):
                await writer.write_page(1, list(items), write_mode)
                stats.add_page(1, len(items))
                wrote_first = True
        if not wrote_first:
            stream = await ndjson_stream_qs(
                self.client, self.base_url, first_params, data_path, retry
            )
            await self._write_streamed_page(1, stream, writer, stats, write_mode)

        total_pages: int | None = None
        if isinstance(total_hint, ItemsHint):
            total_items = _as_count(json_pointer(first_json, total_hint.pointer))
            if total_items is not None:
                if per_page < 1:
                    raise PaginationError("per_page must be positive to compute total pages")
                total_pages = (total_items + per_page - 1) // per_page
        elif isinstance(total_hint, PagesHint):
            total_pages = _as_count(json_pointer(first_json, total_hint.pointer))

        if total_pages is not None:
            limiter = asyncio.Semaphore(max(1, self.concurrency))

            async def run(page: int) -> None:
                async with limiter:
                    await self._fetch_page_batched(
                        page, per_page, data_path, writer, write_mode, retry
                    )

            await asyncio.gather(*(run(page) for page in range(2, total_pages + 1)))
        else:
            page = 2
            while True:
                query = [(page_param, str(page)), (per_page_param, str(per_page))]
                try:
                    stream = await ndjson_stream_qs(
                        self.client, self.base_url, query, data_path, retry
                    )
                except ApitapError as exc:
                    await _report(writer, page, exc)
                    break
                wrote = await self._write_streamed_page(page, stream, writer, stats, write_mode)
                if wrote == 0:
                    break
                page += 1

        await writer.commit()
        return stats

    async def _fetch_page_batched(
        self,
        page: int,
        per_page: int,
        data_path: str | None,
        writer: PageWriter,
        write_mode: Any,
        retry: Retry,
    ) -> None:
        assert isinstance(self.pagination, PageNumber)
        query = [
            (self.pagination.page_param, str(page)),
            (self.pagination.per_page_param, str(per_page)),
        ]
        try:
            stream = await ndjson_stream_qs(self.client, self.base_url, query, data_path, retry)
        except ApitapError as exc:
            await _report(writer, page, exc)
            return

        buffer: list[Any] = []
        try:
            try:
                async for item in stream:
                    buffer.append(item)
                    if len(buffer) == self.batch_size:
                        batch, buffer = buffer, []
                        try:
                            await writer.write_page(page, batch, write_mode)
                        except ApitapError as exc:
                            await _report(writer, page, exc)
                        logger.log(TRACE, "wrote batch for page %d", page)
            except ApitapError as exc:
                await _report(writer, page, exc)
        finally:
            await _close(stream)

        if buffer:
            try:
                await writer.write_page(page, buffer, write_mode)
            except ApitapError as exc:
                await _report(writer, page, exc)
            else:
                logger.info(
                    "wrote page remainder: page %d, %d items, source %s",
                    page,
                    len(buffer),
                    self.base_url,
                )

    async def _write_streamed_page(
        self,
        page: int,
        stream: AsyncIterator[Any],
        writer: PageWriter,
        stats: FetchStats,
        write_mode: Any,
    ) -> int:
        count = 0

        async def counted() -> AsyncIterator[Any]:
            nonlocal count
            async for item in stream:
                count += 1
                yield item

        counted_stream = counted()
        try:
            await writer.write_page_stream(counted_stream, write_mode)
        finally:
            await counted_stream.aclose()
            await _close(stream)
        stats.add_page(page, count)
        return count