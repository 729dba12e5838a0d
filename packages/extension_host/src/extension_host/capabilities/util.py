"""util, url, and querystring helpers."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any
from urllib.parse import parse_qsl, quote, unquote, urlencode, urljoin, urlsplit

logger = logging.getLogger(__name__)

PROMISIFY_CUSTOM = "__promisify__"
_FORMAT_TOKEN = re.compile(r"%[sdifjoO%]")


def promisify(fn: Any) -> Any:
    """Wrap a callback-last function into a coroutine function.

    Callbacks reporting two results (``exec``-style) resolve to
    ``{"stdout": ..., "stderr": ...}``.
    """
    custom = getattr(fn, PROMISIFY_CUSTOM, None)
    if custom is not None:
        return custom

    async def wrapper(*args: Any) -> Any:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        def callback(err: Any = None, *results: Any) -> None:
            if future.done():
                return
            if err:
                future.set_exception(err if isinstance(err, BaseException) else RuntimeError(str(err)))
                return
            if len(results) <= 1:
                future.set_result(results[0] if results else None)
            elif len(results) == 2:  # noqa: PLR2004
                future.set_result({"stdout": results[0], "stderr": results[1]})
            else:
                future.set_result(list(results))

        fn(*args, callback)
        return await future

    return wrapper


def callbackify(fn: Any) -> Any:
    """Inverse of :func:`promisify` for coroutine functions."""

    def wrapper(*args: Any) -> None:
        *call_args, callback = args

        async def run() -> None:
            try:
                result = await fn(*call_args)
            except Exception as exc:  # noqa: BLE001 - delivered to the callback
                callback(exc)
                return
            callback(None, result)

        asyncio.ensure_future(run())

    return wrapper


def inspect(value: Any, options: Any = None) -> str:
    if isinstance(value, str):
        return repr(value)
    try:
        return json.dumps(value, default=repr)
    except (TypeError, ValueError):
        return repr(value)


def format_message(template: Any = "", *args: Any) -> str:
    """printf-style formatting with ``%s``, ``%d``, ``%i``, ``%f``, ``%j``, ``%o``."""
    if not isinstance(template, str):
        return " ".join(inspect(item) if not isinstance(item, str) else item for item in (template, *args))
    remaining = list(args)

    def substitute(match: re.Match[str]) -> str:
        token = match.group(0)
        if token == "%%":
            return "%"
        if not remaining:
            return token
        value = remaining.pop(0)
        if token == "%s":
            return value if isinstance(value, str) else inspect(value)
        if token in {"%d", "%i"}:
            try:
                return str(int(value))
            except (TypeError, ValueError):
                return "NaN"
        if token == "%f":
            try:
                return str(float(value))
            except (TypeError, ValueError):
                return "NaN"
        return inspect(value)

    text = _FORMAT_TOKEN.sub(substitute, template)
    if remaining:
        text = " ".join([text, *(item if isinstance(item, str) else inspect(item) for item in remaining)])
    return text


def deprecate(fn: Any, message: str, code: str | None = None) -> Any:
    warned = False

    def wrapper(*args: Any, **kwargs: Any) -> Any:
        nonlocal warned
        if not warned:
            warned = True
            logger.warning("DeprecationWarning: %s", message)
        return fn(*args, **kwargs)

    return wrapper


def is_deep_strict_equal(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


class Url:
    """WHATWG-style URL built on :mod:`urllib.parse`."""

    def __init__(self, url: str, base: str | None = None) -> None:
        full = urljoin(base, url) if base else url
        parts = urlsplit(full)
        if not parts.scheme:
            msg = f"Invalid URL: {url}"
            raise ValueError(msg)
        self.href = full
        self.protocol = f"{parts.scheme}:"
        self.hostname = parts.hostname or ""
        self.port = str(parts.port) if parts.port else ""
        self.host = self.hostname + (f":{self.port}" if self.port else "")
        self.pathname = parts.path or ("/" if parts.netloc else "")
        self.search = f"?{parts.query}" if parts.query else ""
        self.hash = f"#{parts.fragment}" if parts.fragment else ""
        self.username = parts.username or ""
        self.password = parts.password or ""
        self.origin = f"{parts.scheme}://{self.host}" if self.host else "null"
        self.search_params = dict(parse_qsl(parts.query, keep_blank_values=True))

    def __str__(self) -> str:
        return self.href

    def to_string(self) -> str:
        return self.href


def file_url_to_path(url: Any) -> str:
    text = url.href if isinstance(url, Url) else str(url)
    return unquote(urlsplit(text).path) if text.startswith("file:") else text


def path_to_file_url(path: str) -> Url:
    return Url("file://" + quote(path))


class QueryString:
    """querystring module."""

    def parse(self, text: str, sep: str = "&", eq: str = "=") -> dict[str, Any]:
        result: dict[str, Any] = {}
        for pair in text.split(sep):
            if not pair:
                continue
            key, _, value = pair.partition(eq)
            key, value = unquote(key.replace("+", " ")), unquote(value.replace("+", " "))
            if key in result:
                existing = result[key]
                result[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
            else:
                result[key] = value
        return result

    def stringify(self, data: dict[str, Any], sep: str = "&", eq: str = "=") -> str:
        if sep == "&" and eq == "=":
            return urlencode(data, doseq=True, quote_via=quote)
        pairs = []
        for key, value in data.items():
            values = value if isinstance(value, list) else [value]
            pairs.extend(f"{quote(str(key))}{eq}{quote(str(item))}" for item in values)
        return sep.join(pairs)

    def escape(self, text: str) -> str:
        return quote(text, safe="")

    def unescape(self, text: str) -> str:
        return unquote(text)

    decode = parse
    encode = stringify
