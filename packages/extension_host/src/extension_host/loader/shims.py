"""Stand-ins for third-party packages bundles commonly leave external."""

from __future__ import annotations

import json
import logging
import re
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from extension_host.capabilities.buffer import Buffer
from extension_host.errors import AbortError, FetchError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from extension_host.capabilities.fetch import Fetch, FetchResponse

logger = logging.getLogger(__name__)

REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})

_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "u": 0, "g": 0, "y": 0}


class RE2:
    """Regex engine fallback compiled with :mod:`re`."""

    def __init__(self, pattern: Any, flags: str = "") -> None:
        source = getattr(pattern, "source", None) or getattr(pattern, "pattern", None) or str(pattern)
        compiled_flags = 0
        for flag in flags or "":
            compiled_flags |= _FLAGS.get(flag, 0)
        self.source = source
        self.flags = flags or ""
        self.global_ = "g" in self.flags
        self._regex = re.compile(source, compiled_flags)

    @property
    def pattern(self) -> str:
        return self.source

    def test(self, text: str) -> bool:
        return self._regex.search(text) is not None

    def exec(self, text: str) -> list[str] | None:
        match = self._regex.search(text)
        if match is None:
            return None
        return [match.group(0), *match.groups()]

    def match(self, text: str) -> list[str] | None:
        if self.global_:
            found = [m.group(0) for m in self._regex.finditer(text)]
            return found or None
        return self.exec(text)

    def replace(self, text: str, replacement: str | Callable[..., str]) -> str:
        count = 0 if self.global_ else 1
        if callable(replacement):
            return self._regex.sub(lambda m: str(replacement(m.group(0), *m.groups())), text, count=count)
        return self._regex.sub(replacement, text, count=count)

    def split(self, text: str) -> list[str]:
        return self._regex.split(text)

    def search(self, text: str) -> int:
        match = self._regex.search(text)
        return match.start() if match is not None else -1


class _Statement:
    def run(self, *_: Any) -> dict[str, Any]:
        return {"changes": 0, "last_insert_rowid": 0}

    def get(self, *_: Any) -> None:
        return None

    def all(self, *_: Any) -> list[Any]:
        return []

    def iterate(self, *_: Any) -> Iterator[Any]:
        return iter(())

    def bind(self, *_: Any) -> _Statement:
        return self

    def pluck(self, *_: Any) -> _Statement:
        return self


class Database:
    """Embedded database stand-in; statements never return rows."""

    def __init__(self, filename: str = ":memory:", options: Any = None) -> None:
        self.name = filename
        self.open = True
        logger.info("better-sqlite3 is not available in the sandbox; %s opens as an empty database", filename)

    def prepare(self, sql: str) -> _Statement:
        return _Statement()

    def exec(self, sql: str) -> Database:
        return self

    def pragma(self, *_: Any, **__: Any) -> list[Any]:
        return []

    def transaction(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        return fn

    def close(self) -> None:
        self.open = False


def node_fetch_module(fetch: Fetch) -> Callable[..., Any]:
    """Callable ``node-fetch`` export delegating to the fetch bridge."""

    async def node_fetch(url: Any, options: dict[str, Any] | None = None, **kwargs: Any) -> FetchResponse:
        return await fetch(url, options, **kwargs)

    node_fetch.default = node_fetch
    node_fetch.AbortError = AbortError
    node_fetch.FetchError = FetchError
    node_fetch.is_redirect = lambda code: code in REDIRECT_CODES
    return node_fetch


def undici_module(fetch: Fetch) -> SimpleNamespace:
    """``undici`` with ``fetch`` and ``request`` on the fetch bridge."""

    async def request(url: Any, options: dict[str, Any] | None = None, **kwargs: Any) -> SimpleNamespace:
        response = await fetch(url, options, **kwargs)
        body_text = await response.text()

        async def text() -> str:
            return body_text

        async def as_json() -> Any:
            return json.loads(body_text)

        async def array_buffer() -> Buffer:
            return Buffer.from_(body_text)

        return SimpleNamespace(
            status_code=response.status,
            headers=dict(response.headers),
            body=SimpleNamespace(text=text, json=as_json, array_buffer=array_buffer),
        )

    module = SimpleNamespace(
        fetch=fetch,
        request=request,
        Agent=object,
        ProxyAgent=object,
        set_global_dispatcher=lambda *_: None,
        get_global_dispatcher=lambda: None,
    )
    module.default = module
    return module


def third_party_modules(fetch: Fetch) -> dict[str, Any]:
    regex = SimpleNamespace(RE2=RE2, default=RE2)
    return {
        "re2": regex,
        "better-sqlite3": SimpleNamespace(Database=Database, default=Database),
        "node-fetch": node_fetch_module(fetch),
        "undici": undici_module(fetch),
    }
