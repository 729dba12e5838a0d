"""Element model shared by host components and bundle code."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True, eq=False)
class Element:
    """Immutable description of a component to render."""

    type: Any
    props: dict[str, Any]
    key: str | None = None

    @property
    def children(self) -> Any:
        return self.props.get("children")


class Context:
    """Value propagated to every descendant of its provider."""

    def __init__(self, default: Any = None, name: str = "Context") -> None:
        self.default = default
        self.name = name
        self.Provider = ContextProvider(self)

    def __repr__(self) -> str:
        return f"<Context {self.name}>"


class ContextProvider:
    """Element type that binds a context value for its subtree."""

    def __init__(self, context: Context) -> None:
        self.context = context

    def __repr__(self) -> str:
        return f"<{self.context.name}.Provider>"


def create_element(type_: Any, props: dict[str, Any] | None = None, *children: Any) -> Element:
    """Build an element; positional children override ``props["children"]``."""
    attrs = dict(props or {})
    key = attrs.pop("key", None)
    if len(children) == 1:
        attrs["children"] = children[0]
    elif children:
        attrs["children"] = tuple(children)
    return Element(type_, attrs, None if key is None else str(key))


def create_context(default: Any = None, name: str = "Context") -> Context:
    return Context(default, name)


def Fragment(children: Any = None, **_: Any) -> Any:  # noqa: N802 - component name
    """Group children without adding a host node."""
    return children


def is_valid_element(value: Any) -> bool:
    return isinstance(value, Element)


def clone_element(element: Element, props: dict[str, Any] | None = None, *children: Any) -> Element:
    attrs = {**element.props, **(props or {})}
    key = attrs.pop("key", element.key)
    if children:
        attrs["children"] = children[0] if len(children) == 1 else tuple(children)
    return replace(element, props=attrs, key=None if key is None else str(key))


def flatten_children(children: Any) -> list[Any]:
    """Flatten nested child sequences, dropping empty slots."""
    if children is None or isinstance(children, bool):
        return []
    if isinstance(children, (list, tuple)):
        flat: list[Any] = []
        for child in children:
            flat.extend(flatten_children(child))
        return flat
    return [children]
