"""Tests for callbackify, promisify and invoke_callback."""

import asyncio
import logging
from unittest.mock import Mock

import pytest

from cloud_common.utils.callbacks import callbackify, invoke_callback, promisify


@callbackify
async def add(a, b):
    return a + b


@callbackify
async def divmod_async(a, b):
    return divmod(a, b)


@callbackify
async def fail(message):
    raise ValueError(message)


class TestCallbackify:
    """Tests for callbackify."""

    @pytest.mark.asyncio
    async def test_without_callback_returns_coroutine(self):
        assert await add(1, 2) == 3

    @pytest.mark.asyncio
    async def test_callback_receives_result(self):
        callback = Mock()

        task = add(1, 2, callback)
        await task

        callback.assert_called_once_with(None, 3)

    @pytest.mark.asyncio
    async def test_tuple_result_spread(self):
        callback = Mock()

        await divmod_async(7, 2, callback)

        callback.assert_called_once_with(None, 3, 1)

    @pytest.mark.asyncio
    async def test_error_passed_to_callback(self):
        callback = Mock()

        await fail("nope", callback)

        (err,), _ = callback.call_args
        assert isinstance(err, ValueError)
        assert str(err) == "nope"

    @pytest.mark.asyncio
    async def test_raising_callback_logged_not_raised(self, caplog):
        callback = Mock(side_effect=RuntimeError("boom"))

        with caplog.at_level(logging.ERROR, logger="cloud_common.utils.callbacks"):
            task = add(1, 2, callback)
            await task

        assert task.exception() is None
        callback.assert_called_once_with(None, 3)
        (record,) = caplog.records
        assert record.levelno == logging.ERROR
        assert record.exc_info[0] is RuntimeError

    @pytest.mark.asyncio
    async def test_class_argument_not_treated_as_callback(self):
        @callbackify
        async def name_of(cls):
            return cls.__name__

        assert await name_of(ValueError) == "ValueError"

    @pytest.mark.asyncio
    async def test_preserves_metadata(self):
        assert add.__name__ == "add"


def legacy_lookup(key, callback):
    if key == "missing":
        callback(KeyError(key))
    elif key == "pair":
        callback(None, "a", "b")
    else:
        callback(None, key.upper())


def legacy_later(key, callback):
    asyncio.get_running_loop().call_soon(callback, None, key)


class TestPromisify:
    """Tests for promisify."""

    @pytest.mark.asyncio
    async def test_single_value(self):
        assert await promisify(legacy_lookup)("abc") == "ABC"

    @pytest.mark.asyncio
    async def test_several_values_as_tuple(self):
        assert await promisify(legacy_lookup)("pair") == ("a", "b")

    @pytest.mark.asyncio
    async def test_error_raised(self):
        with pytest.raises(KeyError):
            await promisify(legacy_lookup)("missing")

    @pytest.mark.asyncio
    async def test_deferred_callback(self):
        assert await promisify(legacy_later)("later") == "later"

    @pytest.mark.asyncio
    async def test_second_callback_ignored(self):
        def twice(callback):
            callback(None, 1)
            callback(None, 2)

        assert await promisify(twice)() == 1


class TestInvokeCallback:
    """Tests for invoke_callback."""

    def test_arguments_passed(self):
        callback = Mock()

        invoke_callback(callback, None, "a", "b")

        callback.assert_called_once_with(None, "a", "b")

    def test_exception_logged(self, caplog):
        def broken(err, value):
            raise ValueError(value)

        with caplog.at_level(logging.ERROR, logger="cloud_common.utils.callbacks"):
            invoke_callback(broken, None, "oops")

        (record,) = caplog.records
        assert record.operation.endswith("broken")
        assert str(record.exc_info[1]) == "oops"
