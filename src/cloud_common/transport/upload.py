"""Multipart uploads fed from a RequestStream's writable side."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import aiohttp

from cloud_common.errors.normalizer import handle_resp
from cloud_common.transport.http_client import build_request_kwargs, response_head
from cloud_common.transport.stream import RequestStream
from cloud_common.types import RequestOptions

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_REQ_OPTS: RequestOptions = {
    "method": "POST",
    "qs": {"uploadType": "multipart"},
    "timeout": None,
}


async def _count_progress(stream: RequestStream) -> AsyncIterator[bytes]:
    bytes_written = 0
    async for chunk in stream.iter_written():
        bytes_written += len(chunk)
        stream.emit("progress", {"bytes_written": bytes_written})
        yield chunk


def build_upload_request(options: dict[str, Any]) -> RequestOptions:
    """Merge caller request options over the multipart upload defaults."""
    request = options.get("request") or {}
    return {
        **DEFAULT_UPLOAD_REQ_OPTS,
        **request,
        "qs": {**DEFAULT_UPLOAD_REQ_OPTS["qs"], **(request.get("qs") or {})},
    }


def make_writable_stream(
    stream: RequestStream,
    options: dict[str, Any],
    on_complete: Callable[[Any], None] | None = None,
) -> asyncio.Task:
    """
    Upload what the caller writes to ``stream`` as a multipart request.

    The first part is the JSON ``options["metadata"]``; the second is the
    written data, typed by ``metadata["contentType"]``. The request is
    authenticated through ``options["factory"]`` (an
    AuthenticatedRequestFactory) and sent once, without retries.

    On failure the stream is destroyed with the error. On success the stream
    emits ``response`` and ``on_complete`` receives the parsed body.
    """
    factory = options["factory"]
    metadata = options.get("metadata") or {}
    req_opts = build_upload_request(options)

    async def upload() -> None:
        try:
            authenticated = await factory.authenticate(req_opts)
            session = await factory.get_session()

            kwargs = build_request_kwargs(authenticated)
            kwargs.pop("json", None)

            with aiohttp.MultipartWriter("related") as writer:
                writer.append(json.dumps(metadata), {"Content-Type": "application/json"})
                writer.append(
                    _count_progress(stream),
                    {"Content-Type": metadata.get("contentType") or "application/octet-stream"},
                )
            kwargs["data"] = writer

            logger.debug(
                "Starting multipart upload",
                extra={"api_url": authenticated.get("uri")},
            )

            async with session.request(**kwargs) as response:
                head = response_head(response)
                head.body = await response.read()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            stream.destroy(e)
            return

        parsed = handle_resp(None, head, head.body)
        if parsed.err is not None:
            stream.destroy(parsed.err)
            return

        stream.emit("response", head)
        if on_complete is not None:
            on_complete(parsed.body)

    task = asyncio.ensure_future(upload())
    stream.set_abort(task.cancel)
    return task


__all__ = ["make_writable_stream", "build_upload_request", "DEFAULT_UPLOAD_REQ_OPTS"]
