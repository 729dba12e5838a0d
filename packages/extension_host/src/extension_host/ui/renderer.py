"""Function-component renderer with hooks.

Each flush re-renders the whole tree from the root element. Component
instances (fibers) are identified by their path of ``(key, type)`` segments,
so state survives re-renders while the same component stays at the same
position. Fibers that a pass does not reach are unmounted and their effect
cleanups run, deepest first.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from extension_host.ui.element import Context, ContextProvider, Element

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)

MAX_RERENDERS = 25

_ids = itertools.count(1)
_active: ContextVar[tuple[Renderer, Fiber] | None] = ContextVar("extension_host_active_fiber", default=None)


def _same(a: Any, b: Any) -> bool:
    """Identity for objects, value equality for immutable primitives."""
    if a is b:
        return True
    if type(a) is not type(b):
        return False
    if isinstance(a, (str, int, float, bool, bytes, tuple, frozenset)):
        try:
            return bool(a == b)
        except (TypeError, ValueError):
            return False
    return False


def _deps_changed(previous: tuple[Any, ...] | None, current: tuple[Any, ...] | None) -> bool:
    if previous is None or current is None:
        return True
    if len(previous) != len(current):
        return True
    return any(not _same(old, new) for old, new in zip(previous, current, strict=True))


class Ref:
    """Mutable box that survives re-renders."""

    __slots__ = ("current",)

    def __init__(self, current: Any = None) -> None:
        self.current = current

    def __repr__(self) -> str:
        return f"Ref({self.current!r})"


@dataclass
class _StateHook:
    value: Any
    setter: Callable[[Any], None] | None = None


@dataclass
class _MemoHook:
    deps: tuple[Any, ...] | None
    value: Any


@dataclass
class _EffectHook:
    deps: tuple[Any, ...] | None = None
    cleanup: Callable[[], Any] | None = None
    pending: Callable[[], Any] | None = None
    ran: bool = False


@dataclass
class Fiber:
    """One mounted component instance."""

    type: Any
    path: tuple[Any, ...]
    hooks: list[Any] = field(default_factory=list)
    hook_index: int = 0
    contexts: dict[Context, Any] = field(default_factory=dict)
    alive: bool = True


@dataclass
class HostNode:
    """Rendered primitive; containers publish their view model as props."""

    type: str
    props: dict[str, Any] = field(default_factory=dict)
    children: list[HostNode | str] = field(default_factory=list)

    def walk(self) -> Iterator[HostNode]:
        yield self
        for child in self.children:
            if isinstance(child, HostNode):
                yield from child.walk()

    def find(self, type_: str) -> HostNode | None:
        """Return the first node of ``type_`` in depth-first order."""
        return next((node for node in self.walk() if node.type == type_), None)

    def find_all(self, type_: str) -> list[HostNode]:
        return [node for node in self.walk() if node.type == type_]

    def text(self) -> str:
        parts: list[str] = []
        for child in self.children:
            parts.append(child if isinstance(child, str) else child.text())
        return "".join(parts)


class Renderer:
    """Renders one element tree and owns its component state."""

    def __init__(self, *, on_error: Callable[[BaseException, str], None] | None = None) -> None:
        self._root: Element | None = None
        self._fibers: dict[tuple[Any, ...], Fiber] = {}
        self._effects: list[tuple[Fiber, _EffectHook]] = []
        self._tasks: set[asyncio.Future[Any]] = set()
        self._on_error = on_error
        self._dirty = False
        self._scheduled = False
        self._flushing = False
        self.host_root = HostNode("root")
        self.render_count = 0

    @property
    def mounted(self) -> bool:
        return self._root is not None

    @property
    def pending(self) -> bool:
        return self._dirty or self._scheduled

    def render(self, element: Element) -> HostNode:
        """Mount or update the tree rooted at ``element`` synchronously."""
        self._root = element
        self._dirty = True
        self.flush()
        return self.host_root

    def schedule(self) -> None:
        """Request a re-render on the next loop iteration."""
        self._dirty = True
        if self._flushing or self._scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._scheduled = True
        loop.call_soon(self._scheduled_flush)

    def _scheduled_flush(self) -> None:
        self._scheduled = False
        if not self._dirty or self._root is None:
            return
        try:
            self.flush()
        except Exception as exc:
            if self._on_error is None:
                raise
            self._on_error(exc, "render")

    def flush(self) -> None:
        """Re-render until no state update remains pending."""
        if self._root is None or self._flushing:
            return
        self._flushing = True
        try:
            passes = 0
            while self._dirty:
                passes += 1
                if passes > MAX_RERENDERS:
                    msg = "Too many re-renders; a component updates state on every render"
                    raise RuntimeError(msg)
                self._dirty = False
                self._render_pass()
                self._run_effects()
        finally:
            self._flushing = False

    async def drain(self) -> None:
        """Wait until every async effect has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def unmount(self) -> None:
        """Tear down every component, running effect cleanups."""
        self._root = None
        self._dirty = False
        stale = sorted(self._fibers.values(), key=lambda fiber: len(fiber.path), reverse=True)
        self._fibers.clear()
        self._effects.clear()
        for fiber in stale:
            self._unmount_fiber(fiber)
        for task in list(self._tasks):
            task.cancel()
        self.host_root = HostNode("root")

    def _render_pass(self) -> None:
        self.render_count += 1
        visited: set[tuple[Any, ...]] = set()
        host = HostNode("root")
        self._effects = []
        self._visit(self._root, ("root",), {}, host, visited)
        stale = [path for path in self._fibers if path not in visited]
        for path in sorted(stale, key=len, reverse=True):
            self._unmount_fiber(self._fibers.pop(path))
        self.host_root = host

    @staticmethod
    def _segment(node: Any, index: int) -> Any:
        if isinstance(node, Element) and node.key is not None:
            return node.key
        return index

    def _visit(
        self,
        node: Any,
        path: tuple[Any, ...],
        contexts: dict[Context, Any],
        host: HostNode,
        visited: set[tuple[Any, ...]],
    ) -> None:
        if node is None or isinstance(node, bool):
            return
        if isinstance(node, (str, int, float)):
            host.children.append(str(node))
            return
        if isinstance(node, (list, tuple)):
            for index, child in enumerate(node):
                self._visit(child, (*path, self._segment(child, index)), contexts, host, visited)
            return
        if not isinstance(node, Element):
            msg = f"Objects are not valid as a child: {node!r}"
            raise TypeError(msg)

        element_type = node.type
        path = (*path, (node.key, element_type))
        children = node.props.get("children")

        if isinstance(element_type, ContextProvider):
            scoped = {**contexts, element_type.context: node.props.get("value", element_type.context.default)}
            self._visit(children, path, scoped, host, visited)
            return
        if isinstance(element_type, str):
            child_host = HostNode(element_type, {k: v for k, v in node.props.items() if k != "children"})
            host.children.append(child_host)
            self._visit(children, path, contexts, child_host, visited)
            return
        if not callable(element_type):
            msg = f"Element type is invalid: {element_type!r}"
            raise TypeError(msg)

        fiber = self._fibers.get(path)
        if fiber is None:
            fiber = Fiber(type=element_type, path=path)
            self._fibers[path] = fiber
        visited.add(path)
        fiber.contexts = contexts
        fiber.hook_index = 0
        token = _active.set((self, fiber))
        try:
            output = element_type(**node.props)
        finally:
            _active.reset(token)
        self._visit(output, path, contexts, host, visited)

    def _queue_effect(self, fiber: Fiber, hook: _EffectHook) -> None:
        self._effects.append((fiber, hook))

    def _run_effects(self) -> None:
        queued, self._effects = self._effects, []
        ordered = sorted(queued, key=lambda item: len(item[0].path), reverse=True)
        for fiber, hook in ordered:
            if not fiber.alive or hook.pending is None:
                continue
            if hook.cleanup is not None:
                cleanup, hook.cleanup = hook.cleanup, None
                cleanup()
            effect, hook.pending = hook.pending, None
            result = effect()
            if inspect.isawaitable(result):
                self._track(result)
                result = None
            hook.cleanup = result if callable(result) else None

    def _track(self, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(future: asyncio.Future[Any]) -> None:
            self._tasks.discard(future)
            if future.cancelled():
                return
            exc = future.exception()
            if exc is None:
                return
            if self._on_error is not None:
                self._on_error(exc, "effect")
            else:
                logger.error("Async effect failed: %s", exc)

        task.add_done_callback(done)

    def _unmount_fiber(self, fiber: Fiber) -> None:
        fiber.alive = False
        for hook in fiber.hooks:
            if isinstance(hook, _EffectHook) and hook.cleanup is not None:
                cleanup, hook.cleanup = hook.cleanup, None
                try:
                    cleanup()
                except Exception:  # noqa: BLE001 - unmount must reach every fiber
                    logger.exception("Effect cleanup failed during unmount")


def _current() -> tuple[Renderer, Fiber]:
    active = _active.get()
    if active is None:
        msg = "Hooks can only be called inside the body of a component"
        raise RuntimeError(msg)
    return active


def _hook(factory: Callable[[], Any]) -> tuple[Renderer, Fiber, Any]:
    renderer, fiber = _current()
    index = fiber.hook_index
    fiber.hook_index += 1
    if index >= len(fiber.hooks):
        fiber.hooks.append(factory())
    return renderer, fiber, fiber.hooks[index]


def use_state(initial: Any = None) -> tuple[Any, Callable[[Any], None]]:
    """Component-local state; the setter accepts a value or an updater."""
    renderer, fiber, hook = _hook(lambda: _StateHook(initial() if callable(initial) else initial))
    if hook.setter is None:

        def set_value(value: Any) -> None:
            next_value = value(hook.value) if callable(value) else value
            if _same(next_value, hook.value):
                return
            hook.value = next_value
            if fiber.alive:
                renderer.schedule()

        hook.setter = set_value
    return hook.value, hook.setter


def use_reducer(reducer: Callable[[Any, Any], Any], initial: Any) -> tuple[Any, Callable[[Any], None]]:
    value, set_value = use_state(initial)
    dispatch = use_memo(lambda: (lambda action: set_value(lambda current: reducer(current, action))), ())
    return value, dispatch


def use_ref(initial: Any = None) -> Ref:
    _, _, hook = _hook(lambda: Ref(initial))
    return hook


def use_memo(factory: Callable[[], Any], deps: tuple[Any, ...] | list[Any] | None = None) -> Any:
    current = tuple(deps) if deps is not None else None
    _, _, hook = _hook(lambda: _MemoHook(deps=None, value=None))
    if hook.deps is None or _deps_changed(hook.deps, current):
        hook.value = factory()
        hook.deps = current
    return hook.value


def use_force_update() -> Callable[[], None]:
    """Return a callable that schedules a re-render of the calling component."""
    _, set_tick = use_state(0)
    return use_memo(lambda: (lambda: set_tick(lambda tick: tick + 1)), ())


def use_callback(fn: Callable[..., Any], deps: tuple[Any, ...] | list[Any] | None = None) -> Callable[..., Any]:
    return use_memo(lambda: fn, deps)


def use_effect(effect: Callable[[], Any], deps: tuple[Any, ...] | list[Any] | None = None) -> None:
    """Run ``effect`` after the render commits when ``deps`` change.

    The effect may return a cleanup callable or a coroutine; coroutines are
    scheduled as tasks and have no cleanup.
    """
    renderer, fiber, hook = _hook(_EffectHook)
    current = tuple(deps) if deps is not None else None
    if not hook.ran or current is None or _deps_changed(hook.deps, current):
        hook.pending = effect
        hook.deps = current
        hook.ran = True
        renderer._queue_effect(fiber, hook)


use_layout_effect = use_effect


def use_context(context: Context) -> Any:
    _, fiber = _current()
    return fiber.contexts.get(context, context.default)


def use_id() -> str:
    return use_ref(f":r{next(_ids)}:").current
