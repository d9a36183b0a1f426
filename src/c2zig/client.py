"""Streaming chat client built on a shared :class:`httpx.AsyncClient`."""

from __future__ import annotations

import logging
from typing import Callable

import httpx

from .config import ChatConfig
from .errors import RequestFailed
from .request import RequestDescriptor, build_request
from .stream import decode_stream

logger = logging.getLogger(__name__)


class ChatStreamClient:
    """Issues one streamed chat request per call and decodes the reply."""

    # generation can stream for minutes; callers wrap the call if they need a deadline
    _TIMEOUT = httpx.Timeout(None)

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(timeout=self._TIMEOUT)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def open(self, descriptor: RequestDescriptor) -> httpx.Response:
        """Send *descriptor* and return the response with its body unread.

        Raises :class:`RequestFailed` for transport errors and non-2xx
        statuses; the body is read into the error before the response is
        closed.
        """
        request = self._client.build_request(
            descriptor.method,
            descriptor.url,
            headers=descriptor.headers,
            json=descriptor.body,
        )
        logger.info("Sending %s request to %s (model %s)", descriptor.method, descriptor.url, descriptor.body.get("model"))
        try:
            resp = await self._client.send(request, stream=True)
        except httpx.RequestError as exc:
            logger.error("Failed to reach upstream: %s", exc)
            raise RequestFailed(None, str(exc)) from exc

        if not resp.is_success:
            try:
                body = (await resp.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                body = ""
            finally:
                await resp.aclose()
            logger.error("Upstream returned %s: %s", resp.status_code, body)
            raise RequestFailed(resp.status_code, body)
        return resp

    async def complete(self, config: ChatConfig, on_update: Callable[[str], None] | None = None) -> str:
        """Run one request/decode cycle for *config* and return the final text."""
        resp = await self.open(build_request(config))
        try:
            text = await decode_stream(resp.aiter_bytes(), on_update)
        finally:
            await resp.aclose()
        logger.info("Stream finished with %d characters", len(text))
        return text
