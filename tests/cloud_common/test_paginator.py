"""
Tests for the auto-pagination engine.

Tests cover:
- Argument parsing (query, callback, limits)
- Lazily fetched streams and early termination
- Result and API call caps
- Collected runs with and without callbacks
- Paginator.extend / streamify
"""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from cloud_common.paginator import (
    PaginatedStream,
    Paginator,
    create_limiter,
    paginator,
    parse_arguments,
    run,
    run_as_stream,
)


class PagedSource:
    """Paged method over fixed pages, following ``pageToken``."""

    def __init__(self, pages, error_on_page=None):
        self.pages = pages
        self.error_on_page = error_on_page
        self.queries = []

    async def __call__(self, query):
        self.queries.append(dict(query))
        index = int(query.get("pageToken", 0))
        if index == self.error_on_page:
            raise RuntimeError(f"page {index} failed")
        await asyncio.sleep(0)
        next_query = None
        if index + 1 < len(self.pages):
            next_query = {**query, "pageToken": str(index + 1)}
        return self.pages[index], next_query, {"page": index}

    @property
    def calls(self):
        return len(self.queries)


class EndlessSource:
    """Paged method that always has another page."""

    def __init__(self, page_size):
        self.page_size = page_size
        self.calls = 0
        self.queries = []

    async def __call__(self, query):
        self.calls += 1
        self.queries.append(dict(query))
        start = (self.calls - 1) * self.page_size
        items = list(range(start, start + self.page_size))
        return items, {**query, "pageToken": str(self.calls)}


class TestParseArguments:
    """Tests for parse_arguments."""

    def test_no_arguments(self):
        parsed = parse_arguments(())

        assert parsed.query == {}
        assert parsed.callback is None
        assert parsed.auto_paginate is True
        assert parsed.max_api_calls == -1
        assert parsed.max_results == -1
        assert parsed.stream_options == {}

    def test_max_results_wins_over_page_size(self):
        parsed = parse_arguments(({"maxResults": 10, "pageSize": 20},))

        assert parsed.max_results == 10

    def test_page_size_used_without_max_results(self):
        assert parse_arguments(({"pageSize": 20},)).max_results == 20

    def test_zero_max_results_falls_back_to_page_size(self):
        assert parse_arguments(({"maxResults": 0, "pageSize": 7},)).max_results == 7

    def test_max_api_calls_removed_from_query(self):
        parsed = parse_arguments(({"maxApiCalls": 3, "prefix": "a"},))

        assert parsed.max_api_calls == 3
        assert parsed.query == {"prefix": "a"}

    def test_query_copied(self):
        query = {"maxApiCalls": 3, "nested": {"a": 1}}

        parsed = parse_arguments((query,))

        assert query == {"maxApiCalls": 3, "nested": {"a": 1}}
        assert parsed.query["nested"] is not query["nested"]

    def test_stream_options_exclude_paging_keys(self):
        parsed = parse_arguments(
            ({"autoPaginate": True, "maxResults": 5, "pageSize": 5, "prefix": "p"},)
        )

        assert parsed.stream_options == {"prefix": "p"}

    def test_callback_first(self):
        callback = MagicMock()

        parsed = parse_arguments((callback,))

        assert parsed.callback is callback
        assert parsed.query == {}

    def test_callback_last(self):
        callback = MagicMock()

        parsed = parse_arguments(({"prefix": "a"}, callback))

        assert parsed.callback is callback
        assert parsed.query == {"prefix": "a"}

    def test_both_callable_last_wins(self):
        first, last = MagicMock(), MagicMock()

        parsed = parse_arguments((first, last))

        assert parsed.callback is last
        assert parsed.query == {}

    def test_callback_with_limit_disables_auto_pagination(self):
        parsed = parse_arguments(({"maxResults": 5}, MagicMock()))

        assert parsed.auto_paginate is False

    def test_callback_with_auto_paginate_false(self):
        parsed = parse_arguments(({"autoPaginate": False}, MagicMock()))

        assert parsed.auto_paginate is False

    def test_limit_without_callback_keeps_auto_pagination(self):
        assert parse_arguments(({"maxResults": 5},)).auto_paginate is True

    def test_awaited_with_limit_disables_auto_pagination(self):
        assert parse_arguments(({"maxResults": 5},), awaited=True).auto_paginate is False

    def test_callback_without_limit_keeps_auto_pagination(self):
        assert parse_arguments(({"prefix": "a"}, MagicMock())).auto_paginate is True


class TestPaginatedStream:
    """Tests for PaginatedStream."""

    @pytest.mark.asyncio
    async def test_push_and_read(self):
        stream = PaginatedStream()
        stream.push(1)
        stream.push(2)
        stream.push_eof()

        assert [item async for item in stream] == [1, 2]

    @pytest.mark.asyncio
    async def test_push_after_end_refused(self):
        stream = PaginatedStream()
        stream.end()

        assert stream.push(1) is False
        assert [item async for item in stream] == []

    @pytest.mark.asyncio
    async def test_destroy_raises_error_on_read(self):
        stream = PaginatedStream()
        stream.push(1)

        stream.destroy(RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await stream.__anext__()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_scheduled_fetch_runs_on_read(self):
        stream = PaginatedStream()
        fetched = []

        async def fetch(value):
            fetched.append(value)
            stream.push(value)
            stream.push_eof()

        stream.schedule(fetch, "x")

        assert fetched == []
        assert [item async for item in stream] == ["x"]
        assert fetched == ["x"]

    @pytest.mark.asyncio
    async def test_aclose_ends(self):
        stream = PaginatedStream()
        stream.push(1)

        await stream.aclose()

        assert stream.ended
        assert [item async for item in stream] == []


class TestCreateLimiter:
    """Tests for create_limiter."""

    def test_first_request_counts(self):
        async def fetch(query):
            pass

        limiter = create_limiter(fetch, max_api_calls=1)

        limiter.make_request({})
        limiter.make_request({})

        assert limiter.requests_made == 2
        assert limiter.stream._eof is True

    def test_unlimited(self):
        async def fetch(query):
            pass

        limiter = create_limiter(fetch)
        for _ in range(10):
            limiter.make_request({})

        assert limiter.stream._eof is False


class TestRunAsStream:
    """Tests for run_as_stream."""

    @pytest.mark.asyncio
    async def test_follows_next_query(self):
        source = PagedSource([[1, 2], [3, 4], [5]])

        items = [item async for item in run_as_stream(parse_arguments(()), source)]

        assert items == [1, 2, 3, 4, 5]
        assert [q.get("pageToken") for q in source.queries] == [None, "1", "2"]

    @pytest.mark.asyncio
    async def test_nothing_requested_before_first_read(self):
        source = PagedSource([[1]])

        stream = run_as_stream(parse_arguments(()), source)
        await asyncio.sleep(0)

        assert source.calls == 0
        assert [item async for item in stream] == [1]

    @pytest.mark.asyncio
    async def test_next_page_fetched_when_buffer_drained(self):
        """Only one page is ever buffered; the next is requested once it is consumed."""
        source = PagedSource([[1, 2], [3]])
        stream = run_as_stream(parse_arguments(({"highWaterMark": 1},)), source)

        assert await stream.__anext__() == 1
        assert await stream.__anext__() == 2
        assert source.calls == 1

        assert await stream.__anext__() == 3
        assert source.calls == 2
        assert source.queries[0] == {"highWaterMark": 1}

    @pytest.mark.asyncio
    async def test_max_results_truncates_and_stops(self):
        """maxResults 10 over pages of 20: ten items, one request."""
        source = EndlessSource(page_size=20)

        items = [
            item
            async for item in run_as_stream(
                parse_arguments(({"maxResults": 10, "pageSize": 20},)), source
            )
        ]

        assert items == list(range(10))
        assert source.calls == 1
        assert source.queries[0] == {"maxResults": 10, "pageSize": 20}

    @pytest.mark.asyncio
    async def test_max_results_spanning_pages(self):
        source = EndlessSource(page_size=3)

        parsed = parse_arguments(({"maxResults": 7},))

        items = [item async for item in run_as_stream(parsed, source)]

        assert items == list(range(7))
        assert source.calls == 3

    @pytest.mark.asyncio
    async def test_consumer_ends_early(self):
        """Ending after the second item stops without fetching another page."""
        source = PagedSource([["a", "b", "c"], ["d"]])
        stream = run_as_stream(parse_arguments(()), source)
        received = []

        async for item in stream:
            received.append(item)
            if item == "b":
                stream.end()

        assert received == ["a", "b"]
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_max_api_calls(self):
        source = EndlessSource(page_size=2)

        items = [
            item
            async for item in run_as_stream(parse_arguments(({"maxApiCalls": 2},)), source)
        ]

        assert items == [0, 1, 2, 3]
        assert source.calls == 2
        assert "maxApiCalls" not in source.queries[0]

    @pytest.mark.asyncio
    async def test_page_error_terminates_stream(self):
        source = PagedSource([[1, 2], [3]], error_on_page=1)
        stream = run_as_stream(parse_arguments(()), source)

        assert await stream.__anext__() == 1
        assert await stream.__anext__() == 2
        with pytest.raises(RuntimeError, match="page 1 failed"):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_empty_results(self):
        async def empty(query):
            return None, None

        assert [item async for item in run_as_stream(parse_arguments(()), empty)] == []


class TestRun:
    """Tests for run."""

    @pytest.mark.asyncio
    async def test_collects_all_pages(self):
        source = PagedSource([[1], [2], [3]])

        assert await run(parse_arguments(()), source) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_error_discards_partial_results(self):
        source = PagedSource([[1], [2]], error_on_page=1)

        with pytest.raises(RuntimeError):
            await run(parse_arguments(()), source)

    @pytest.mark.asyncio
    async def test_without_auto_pagination_returns_raw_tuple(self):
        source = PagedSource([[1], [2]])

        result = await run(parse_arguments(({"autoPaginate": False},), awaited=True), source)

        assert result == ([1], {"autoPaginate": False, "pageToken": "1"}, {"page": 0})
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_callback_receives_results(self):
        callback = MagicMock()
        source = PagedSource([[1], [2]])

        assert await run(parse_arguments((callback,)), source) is None

        callback.assert_called_once_with(None, [1, 2])

    @pytest.mark.asyncio
    async def test_callback_receives_spread_tuple(self):
        callback = MagicMock()
        source = PagedSource([[1], [2]])

        await run(parse_arguments(({"maxResults": 1}, callback)), source)

        callback.assert_called_once_with(
            None, [1], {"maxResults": 1, "pageToken": "1"}, {"page": 0}
        )

    @pytest.mark.asyncio
    async def test_callback_receives_error(self):
        callback = MagicMock()
        source = PagedSource([[1]], error_on_page=0)

        await run(parse_arguments((callback,)), source)

        (err,) = callback.call_args.args
        assert isinstance(err, RuntimeError)

    @pytest.mark.asyncio
    async def test_raising_callback_logged(self, caplog):
        callback = MagicMock(side_effect=KeyError("items"))
        source = PagedSource([[1], [2]])

        with caplog.at_level(logging.ERROR, logger="cloud_common.utils.callbacks"):
            assert await run(parse_arguments((callback,)), source) is None

        callback.assert_called_once_with(None, [1, 2])
        assert caplog.records[0].message == "Callback raised an exception"


class Bucket:
    """Resource with a paged listing method."""

    def __init__(self, pages):
        self.source = PagedSource(pages)

    async def get_files(self, query=None):
        return await self.source(query or {})

    get_files_stream = paginator.streamify("get_files")


paginator.extend(Bucket, "get_files")


class TestPaginator:
    """Tests for Paginator.extend and streamify."""

    def test_original_kept(self):
        assert hasattr(Bucket, "get_files_")
        assert Bucket.get_files.__name__ == "get_files"

    @pytest.mark.asyncio
    async def test_awaited_call_paginates(self):
        bucket = Bucket([["a"], ["b"]])

        assert await bucket.get_files() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_awaited_call_with_limit_returns_single_page(self):
        bucket = Bucket([["a"], ["b"]])

        files, next_query, response = await bucket.get_files({"maxResults": 1})

        assert files == ["a"]
        assert next_query == {"maxResults": 1, "pageToken": "1"}
        assert response == {"page": 0}

    @pytest.mark.asyncio
    async def test_callback_call_returns_task(self):
        bucket = Bucket([["a"], ["b"]])
        callback = MagicMock()

        task = bucket.get_files(callback)
        assert isinstance(task, asyncio.Future)
        await task

        callback.assert_called_once_with(None, ["a", "b"])

    @pytest.mark.asyncio
    async def test_stream_method(self):
        bucket = Bucket([["a", "b"], ["c"]])

        items = [item async for item in bucket.get_files_stream()]

        assert items == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_stream_method_with_limit(self):
        bucket = Bucket([["a", "b"], ["c"]])

        items = [item async for item in bucket.get_files_stream({"maxResults": 2})]

        assert items == ["a", "b"]
        assert bucket.source.calls == 1

    def test_extend_accepts_several_names(self):
        class Topic:
            async def get_subscriptions(self, query):
                return [], None

            async def get_snapshots(self, query):
                return [], None

        Paginator().extend(Topic, ["get_subscriptions", "get_snapshots"])

        assert hasattr(Topic, "get_subscriptions_")
        assert hasattr(Topic, "get_snapshots_")
