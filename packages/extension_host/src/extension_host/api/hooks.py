"""Data hooks of the utilities surface.

Every hook reads the owning extension's services from context, so state,
storage and requests stay scoped to the mounted instance.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from extension_host.bridge.models import ExecRequest
from extension_host.capabilities.abort import AbortController
from extension_host.errors import ExecError, StoreQuotaError, error_message
from extension_host.storage import CACHE_PREFIX
from extension_host.ui.contexts import use_services
from extension_host.ui.feedback import ToastStyle
from extension_host.ui.renderer import use_effect, use_memo, use_ref, use_state

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from extension_host.services import ExtensionServices

logger = logging.getLogger(__name__)

FETCH_PAGE_SIZE = 20
CACHED_PROMISE_PAGE_SIZE = 10


@dataclass
class AsyncState:
    """Result of the promise-backed hooks."""

    data: Any
    is_loading: bool
    error: BaseException | None
    revalidate: Callable[[], Any]
    mutate: Callable[..., Awaitable[Any]]
    pagination: dict[str, Any] | None = None


@dataclass
class FormHandle:
    """Result of :func:`use_form`."""

    values: dict[str, Any]
    errors: dict[str, str]
    item_props: dict[str, dict[str, Any]]
    handle_submit: Callable[[dict[str, Any] | None], Any]
    set_value: Callable[[str, Any], None]
    set_validation_error: Callable[[str, str], None]
    reset: Callable[..., None]
    focus: Callable[[str], None]


@dataclass
class FrecencyResult:
    data: list[Any]
    visit_item: Callable[[Any], Awaitable[None]]
    reset_ranking: Callable[[Any], Awaitable[None]]


@dataclass
class StoredValue:
    """Result of :func:`use_local_storage`."""

    value: Any
    set_value: Callable[[Any], Awaitable[None]]
    remove_value: Callable[[], Awaitable[None]]
    is_loading: bool = False


@dataclass
class AIState:
    data: str
    is_loading: bool
    error: str | None
    revalidate: Callable[[], None]


def _merge(options: dict[str, Any] | None, kwargs: dict[str, Any]) -> dict[str, Any]:
    return {**(options or {}), **kwargs}


def _deps_key(values: Any) -> str:
    return json.dumps(values, default=repr, sort_keys=True)


async def _resolve(value: Any) -> Any:
    return await value if inspect.isawaitable(value) else value


@dataclass
class _Page:
    data: Any
    has_more: bool = False
    cursor: Any = None
    paginated: bool = False


def _as_page(result: Any, *, require_has_more: bool) -> _Page:
    if isinstance(result, dict) and "data" in result:
        marker = "has_more" in result or "hasMore" in result
        if marker or not require_has_more:
            has_more = result.get("has_more", result.get("hasMore", False))
            return _Page(result["data"], bool(has_more), result.get("cursor"), paginated=True)
    return _Page(result)


def use_promise(
    fn: Callable[..., Any],
    args: list[Any] | tuple[Any, ...] | None = None,
    options: dict[str, Any] | None = None,
    **kwargs: Any,
) -> AsyncState:
    """Run ``fn(*args)`` on mount and whenever ``args`` change."""
    services = use_services()
    opts = _merge(options, kwargs)
    data, set_data = use_state(opts.get("initial_data"))
    is_loading, set_loading = use_state(opts.get("execute") is not False)
    error, set_error = use_state(None)
    latest = use_ref(None)
    latest.current = {"fn": fn, "args": list(args or []), "options": opts, "data": data}
    generation = use_ref(0)

    async def run(token: int) -> None:
        current = latest.current
        try:
            result = await _resolve(current["fn"](*current["args"]))
        except Exception as exc:  # noqa: BLE001 - exposed through the error state
            if token != generation.current:
                return
            set_error(exc)
            set_loading(False)
            services.call(current["options"].get("on_error"), exc)
            toast = current["options"].get("failure_toast_options")
            if isinstance(toast, dict):
                await show_failure_toast(services, exc, toast)
            return
        if token != generation.current:
            return
        set_data(result)
        set_loading(False)
        services.call(current["options"].get("on_data"), result)

    def execute() -> Any:
        current = latest.current
        if current["options"].get("execute") is False:
            return None
        abortable = current["options"].get("abortable")
        if abortable is not None:
            if abortable.current is not None:
                abortable.current.abort()
            abortable.current = AbortController()
        generation.current += 1
        set_loading(True)
        set_error(None)
        services.call(current["options"].get("on_will_execute"), current["args"])
        return services.spawn(run(generation.current), phase="effect")

    def start() -> None:
        execute()

    use_effect(start, (opts.get("execute") is not False, _deps_key(latest.current["args"])))

    async def mutate(async_update: Any = None, mutate_options: dict[str, Any] | None = None, **mutate_kwargs: Any) -> Any:
        mo = _merge(mutate_options, mutate_kwargs)
        previous = latest.current["data"]
        optimistic = mo.get("optimistic_update")
        if optimistic is not None:
            set_data(optimistic(previous))
        if async_update is None:
            execute()
            return previous
        try:
            result = await _resolve(async_update)
        except Exception:
            rollback = mo.get("rollback_on_error")
            if callable(rollback):
                set_data(rollback(previous))
            elif rollback is not False and optimistic is not None:
                set_data(previous)
            raise
        if mo.get("should_revalidate_after"):
            execute()
        else:
            set_data(result)
        return result

    return AsyncState(data=data, is_loading=is_loading, error=error, revalidate=execute, mutate=mutate)


def _use_paged_loader(
    services: ExtensionServices,
    load_page: Callable[[int, Any], Awaitable[_Page]],
    deps_key: str,
    opts: dict[str, Any],
    page_size: int,
) -> tuple[AsyncState, bool]:
    data, set_data = use_state(opts.get("initial_data"))
    is_loading, set_loading = use_state(opts.get("execute") is not False)
    error, set_error = use_state(None)
    page, set_page = use_state(0)
    cursor, set_cursor = use_state(None)
    has_more, set_has_more = use_state(True)
    paginated, set_paginated = use_state(False)
    latest = use_ref(None)
    latest.current = {"load": load_page, "options": opts}
    generation = use_ref(0)

    async def fetch(page_number: int, page_cursor: Any, token: int) -> None:
        current = latest.current
        try:
            result = await current["load"](page_number, page_cursor)
        except Exception as exc:  # noqa: BLE001 - exposed through the error state
            if token == generation.current:
                set_error(exc)
                set_loading(False)
                services.call(current["options"].get("on_error"), exc)
            return
        if token != generation.current:
            return
        set_has_more(result.has_more)
        set_cursor(result.cursor)
        if result.paginated:
            set_paginated(True)
            if page_number == 0:
                set_data(result.data)
            else:
                set_data(
                    lambda previous: [*previous, *result.data]
                    if isinstance(previous, list) and isinstance(result.data, list)
                    else result.data,
                )
        else:
            set_data(result.data)
        set_loading(False)
        services.call(current["options"].get("on_data"), result.data)

    def load(page_number: int, page_cursor: Any) -> Any:
        if latest.current["options"].get("execute") is False:
            return None
        generation.current += 1
        set_loading(True)
        set_error(None)
        return services.spawn(fetch(page_number, page_cursor, generation.current), phase="effect")

    def revalidate() -> Any:
        set_page(0)
        set_cursor(None)
        return load(0, None)

    def start() -> None:
        set_data(latest.current["options"].get("initial_data"))
        revalidate()

    use_effect(start, (deps_key, opts.get("execute") is not False))

    def on_load_more() -> None:
        if has_more and not is_loading:
            set_page(page + 1)
            load(page + 1, cursor)

    async def mutate(async_update: Any = None, *_: Any, **__: Any) -> Any:
        if async_update is None:
            revalidate()
            return data
        result = await _resolve(async_update)
        set_data(result)
        return result

    pagination = {"page": page, "page_size": page_size, "has_more": has_more, "on_load_more": on_load_more}
    state = AsyncState(
        data=data,
        is_loading=is_loading,
        error=error,
        revalidate=revalidate,
        mutate=mutate,
        pagination=pagination,
    )
    return state, paginated


def use_fetch(url: str | Callable[[dict[str, Any]], str], options: dict[str, Any] | None = None, **kwargs: Any) -> AsyncState:
    """Fetch JSON through the fetch bridge, accumulating paginated pages."""
    services = use_services()
    opts = _merge(options, kwargs)

    async def load_page(page: int, cursor: Any) -> _Page:
        target = url({"page": page, "cursor": cursor, "last_item": None}) if callable(url) else url
        body = opts.get("body")
        if body is not None and not isinstance(body, (str, bytes)):
            body = json.dumps(body)
        response = await services.fetch(target, method=opts.get("method"), headers=opts.get("headers"), body=body)
        if not response.ok:
            msg = f"HTTP {response.status}"
            raise RuntimeError(msg)
        parse = opts.get("parse_response")
        parsed = await _resolve(parse(response)) if parse is not None else await response.json()
        map_result = opts.get("map_result")
        return _as_page(map_result(parsed) if map_result is not None else parsed, require_has_more=False)

    key = url if isinstance(url, str) else "function"
    state, _ = _use_paged_loader(services, load_page, key, opts, FETCH_PAGE_SIZE)
    return state


use_stream_json = use_fetch


def use_cached_promise(
    fn: Callable[..., Any],
    args: list[Any] | tuple[Any, ...] | None = None,
    options: dict[str, Any] | None = None,
    **kwargs: Any,
) -> AsyncState:
    """Like :func:`use_promise`; ``fn(*args)`` may return a page loader."""
    services = use_services()
    opts = _merge(options, kwargs)
    call_args = list(args or [])

    async def load_page(page: int, cursor: Any) -> _Page:
        outer = fn(*call_args)
        if callable(outer):
            result = await _resolve(outer({"page": page, "cursor": cursor, "last_item": None}))
            return _as_page(result, require_has_more=False)
        return _as_page(await _resolve(outer), require_has_more=True)

    state, paginated = _use_paged_loader(services, load_page, _deps_key(call_args), opts, CACHED_PROMISE_PAGE_SIZE)
    if not paginated:
        state.pagination = None
    return state


def use_cached_state(key: str, initial_value: Any = None) -> tuple[Any, Callable[[Any], None]]:
    """State persisted in the durable store under ``sc-cache-<key>``."""
    services = use_services()
    storage_key = f"{CACHE_PREFIX}{key}"

    def load() -> Any:
        raw = services.store.get(storage_key)
        if raw is None:
            return initial_value
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return initial_value

    value, set_state = use_state(load)

    def set_value(new_value: Any) -> None:
        def update(previous: Any) -> Any:
            resolved = new_value(previous) if callable(new_value) else new_value
            try:
                services.store.set(storage_key, json.dumps(resolved))
            except (StoreQuotaError, TypeError) as exc:
                logger.warning("Could not persist cached state %s: %s", key, exc)
            return resolved

        set_state(update)

    return value, use_memo(lambda: set_value, (storage_key,))


def use_local_storage(key: str, initial_value: Any = None) -> StoredValue:
    """State mirrored into the extension's LocalStorage namespace."""
    services = use_services()
    storage_key = services.local_storage.prefix + key

    def load() -> Any:
        raw = services.store.get(storage_key)
        if raw is None:
            return initial_value
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw

    value, set_state = use_state(load)

    async def set_value(new_value: Any) -> None:
        set_state(new_value)
        await services.local_storage.set_item(key, new_value)

    async def remove_value() -> None:
        set_state(None)
        await services.local_storage.remove_item(key)

    return StoredValue(value=value, set_value=set_value, remove_value=remove_value)


def use_form(
    on_submit: Callable[[dict[str, Any]], Any],
    initial_values: dict[str, Any] | None = None,
    validation: dict[str, Callable[[Any], str | None]] | None = None,
) -> FormHandle:
    """Controlled form values with per-field validation."""
    services = use_services()
    values, set_values = use_state(lambda: dict(initial_values or {}))
    errors, set_errors = use_state(dict)
    rules = validation or {}

    def set_value(field_id: str, value: Any) -> None:
        set_values(lambda previous: {**previous, field_id: value})
        set_errors(lambda previous: {k: v for k, v in previous.items() if k != field_id})

    def set_validation_error(field_id: str, message: str) -> None:
        set_errors(lambda previous: {**previous, field_id: message})

    def validate(current: dict[str, Any]) -> bool:
        found = {}
        for field_id, rule in rules.items():
            message = rule(current.get(field_id))
            if message:
                found[field_id] = message
        set_errors(found)
        return not found

    def handle_submit(submitted: dict[str, Any] | None = None) -> Any:
        current = submitted if submitted is not None else values
        if not validate(current):
            return None
        return services.call(on_submit, current)

    def reset(new_values: dict[str, Any] | None = None) -> None:
        set_values(dict(new_values if new_values is not None else initial_values or {}))
        set_errors({})

    def focus(field_id: str) -> None:
        logger.debug("Ignoring focus request for %s", field_id)

    def on_blur(field_id: str) -> Callable[[], None]:
        def blur() -> None:
            rule = rules.get(field_id)
            message = rule(values.get(field_id)) if rule is not None else None
            if message:
                set_validation_error(field_id, message)

        return blur

    item_props = {
        field_id: {
            "id": field_id,
            "value": values.get(field_id),
            "on_change": lambda value, field_id=field_id: set_value(field_id, value),
            "error": errors.get(field_id),
            "on_blur": on_blur(field_id),
        }
        for field_id in dict.fromkeys([*(initial_values or {}), *rules, *values])
    }
    return FormHandle(
        values=values,
        errors=errors,
        item_props=item_props,
        handle_submit=handle_submit,
        set_value=set_value,
        set_validation_error=set_validation_error,
        reset=reset,
        focus=focus,
    )


def use_exec(
    command: str,
    args: list[str] | None = None,
    options: dict[str, Any] | None = None,
    **kwargs: Any,
) -> AsyncState:
    """Run a command through the bridge; non-zero exits with stderr fail."""
    services = use_services()
    opts = _merge(options, kwargs)
    argv = [str(arg) for arg in args or []]

    async def run() -> Any:
        shell = opts.get("shell")
        if shell:
            line = " ".join([command, *argv])
            request = ExecRequest(
                file=shell if isinstance(shell, str) else "/bin/zsh",
                args=("-lc", line),
                cwd=opts.get("cwd"),
                env=dict(opts.get("env") or {}),
                input=opts.get("input"),
            )
        else:
            request = ExecRequest(
                file=command,
                args=tuple(argv),
                cwd=opts.get("cwd"),
                env=dict(opts.get("env") or {}),
                input=opts.get("input"),
            )
        result = await services.bridge.exec(request)
        if result.exit_code != 0 and result.stderr:
            raise ExecError(result.stderr, code=result.exit_code, stdout=result.stdout, stderr=result.stderr, cmd=command)
        parse_output = opts.get("parse_output")
        if parse_output is not None:
            return parse_output({"stdout": result.stdout, "stderr": result.stderr, "exit_code": result.exit_code})
        return result.stdout

    return use_promise(
        run,
        [],
        initial_data=opts.get("initial_data"),
        execute=opts.get("execute"),
        on_data=opts.get("on_data"),
        on_error=opts.get("on_error"),
    )


def use_sql(database_path: str, query: str, options: dict[str, Any] | None = None) -> AsyncState:
    """SQLite queries are not mediated; always resolves to no rows."""

    async def run() -> list[Any]:
        logger.warning("use_sql is not supported; returning no rows for %s", database_path)
        return []

    return use_promise(run, [], execute=(options or {}).get("execute"))


def use_ai(prompt: str, options: dict[str, Any] | None = None, **kwargs: Any) -> AIState:
    """Stream an AI answer into state, aborting the previous request."""
    services = use_services()
    opts = _merge(options, kwargs)
    data, set_data = use_state("")
    is_loading, set_loading = use_state(False)
    error, set_error = use_state(None)
    abort_ref = use_ref(None)
    prompt_ref = use_ref(prompt)
    prompt_ref.current = prompt
    stream = opts.get("stream") is not False
    execute = opts.get("execute") is not False

    def run() -> None:
        if not prompt_ref.current:
            return
        if abort_ref.current is not None:
            abort_ref.current.abort()
        controller = AbortController()
        abort_ref.current = controller
        set_loading(True)
        set_error(None)
        set_data("")
        if services.ai is None:
            set_error("AI is not available")
            set_loading(False)
            return
        request = services.ai.ask(
            prompt_ref.current,
            model=opts.get("model"),
            creativity=opts.get("creativity"),
            signal=controller.signal,
        )
        if stream:
            request.on("data", lambda chunk: None if controller.signal.aborted else set_data(lambda text: text + chunk))

        async def wait() -> None:
            try:
                full_text = await request
            except Exception as exc:  # noqa: BLE001 - exposed through the error state
                if not controller.signal.aborted:
                    set_error(error_message(exc, "AI request failed"))
                    set_loading(False)
                return
            if not controller.signal.aborted:
                if not stream:
                    set_data(full_text)
                set_loading(False)

        services.spawn(wait(), phase="stream")

    def start() -> Callable[[], None]:
        if execute:
            run()

        def cancel() -> None:
            if abort_ref.current is not None:
                abort_ref.current.abort()

        return cancel

    use_effect(start, (execute, opts.get("model"), repr(opts.get("creativity")), stream))
    return AIState(data=data, is_loading=is_loading, error=error, revalidate=run)


def use_frecency_sorting(data: Any, options: dict[str, Any] | None = None) -> FrecencyResult:
    """Visit tracking is not persisted; items keep their given order."""

    def sort() -> list[Any]:
        if data is None:
            return []
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            return list(data["data"])
        if isinstance(data, (list, tuple)):
            return list(data)
        logger.warning("use_frecency_sorting expected a list, got %s", type(data).__name__)
        return []

    async def visit_item(item: Any) -> None:
        return None

    async def reset_ranking(item: Any) -> None:
        return None

    return FrecencyResult(data=use_memo(sort, (id(data),)), visit_item=visit_item, reset_ranking=reset_ranking)


def get_favicon(url: str | dict[str, Any], options: dict[str, Any] | None = None) -> str:
    opts = options or {}
    raw = url.get("url", "") if isinstance(url, dict) else str(url)
    hostname = urlsplit(raw).hostname if "://" in raw else None
    if not hostname:
        return opts.get("fallback") or ""
    return f"https://www.google.com/s2/favicons?domain={hostname}&sz={opts.get('size') or 64}"


async def run_apple_script(services: ExtensionServices, script: str, *_: Any, **__: Any) -> str:
    """Run a script through the bridge; failures yield an empty string."""
    try:
        return await services.bridge.run_apple_script(script)
    except Exception:  # noqa: BLE001 - scripts fail soft
        logger.exception("AppleScript failed for %s", services.ext_id)
        return ""


async def show_failure_toast(
    services: ExtensionServices,
    error: Any,
    options: dict[str, Any] | None = None,
    **kwargs: Any,
) -> Any:
    opts = _merge(options, kwargs)
    if isinstance(error, BaseException):
        message = error_message(error, type(error).__name__)
    else:
        message = str(error)
    return await services.show_toast(
        style=ToastStyle.FAILURE,
        title=opts.get("title") or "Error",
        message=opts.get("message") or message,
        primary_action=opts.get("primary_action"),
    )
