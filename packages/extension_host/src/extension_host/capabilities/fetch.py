"""HTTP ``fetch`` proxied through the privileged bridge."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from extension_host.bridge.models import HttpRequest, HttpResponse
from extension_host.capabilities.buffer import Buffer
from extension_host.errors import FetchError

if TYPE_CHECKING:
    from extension_host.bridge.protocol import PrivilegedBridge

logger = logging.getLogger(__name__)


class FetchResponse:
    """Response object mirroring the runtime's fetch API."""

    def __init__(self, response: HttpResponse) -> None:
        self._response = response
        self.status = response.status
        self.status_text = response.status_text
        self.headers = httpx.Headers(response.headers)
        self.url = response.url
        self.body_used = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300  # noqa: PLR2004

    async def text(self) -> str:
        self.body_used = True
        return self._response.body_text

    async def json(self) -> Any:
        self.body_used = True
        return json.loads(self._response.body_text)

    async def array_buffer(self) -> Buffer:
        self.body_used = True
        return Buffer.from_(self._response.body_text)

    def clone(self) -> FetchResponse:
        return FetchResponse(self._response)


def _body(value: Any) -> str | bytes | None:
    if value is None or isinstance(value, (str, bytes)):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class Fetch:
    """Callable ``fetch`` bound to one bridge."""

    def __init__(self, bridge: PrivilegedBridge) -> None:
        self._bridge = bridge

    async def __call__(self, url: Any, options: dict[str, Any] | None = None, **kwargs: Any) -> FetchResponse:
        opts = {**(options or {}), **kwargs}
        target = getattr(url, "href", None) or getattr(url, "url", None) or str(url)
        headers = {str(k): str(v) for k, v in dict(opts.get("headers") or {}).items()}
        request = HttpRequest(
            url=target,
            method=str(opts.get("method") or "GET").upper(),
            headers=headers,
            body=_body(opts.get("body")),
        )
        response = await self._bridge.http_request(request)
        if response.status == 0:
            logger.warning("fetch %s %s failed: %s", request.method, target, response.status_text)
            msg = f"fetch failed: {response.status_text or target}"
            raise FetchError(msg)
        return FetchResponse(response)
