"""Form container, its fields and the per-form value state."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from extension_host.ui.actions import render_active_actions, use_action_keys, use_actions_controller
from extension_host.ui.contexts import FormContext, NavigationContext, ServicesContext
from extension_host.ui.dropdown import DropdownItem, DropdownSection, collect_options
from extension_host.ui.element import Element, create_element
from extension_host.ui.renderer import use_context, use_force_update, use_ref

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.ui.keyboard import KeyEvent

logger = logging.getLogger(__name__)


class FormState:
    """Values and validation errors of one mounted form.

    Owned by the Form instance and handed to fields and submit actions
    through context, so two forms never share values.
    """

    def __init__(self, initial: dict[str, Any] | None = None, on_change: Callable[[], None] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})
        self._errors: dict[str, str] = {}
        self._on_change = on_change

    def values(self) -> dict[str, Any]:
        return dict(self._values)

    def errors(self) -> dict[str, str]:
        return dict(self._errors)

    def get(self, field_id: str, default: Any = None) -> Any:
        return self._values.get(field_id, default)

    def declare(self, field_id: str, value: Any, default: Any) -> Any:
        """Record a field's controlled value or default and return its current value."""
        if value is not None:
            self._values[field_id] = value
        elif field_id not in self._values:
            self._values[field_id] = default
        return self._values[field_id]

    def set_value(self, field_id: str, value: Any) -> None:
        self._values[field_id] = value
        self._errors.pop(field_id, None)
        self._changed()

    def set_error(self, field_id: str, error: str | None) -> None:
        if error:
            self._errors[field_id] = error
        else:
            self._errors.pop(field_id, None)
        self._changed()

    def reset(self, values: dict[str, Any] | None = None) -> None:
        self._values = dict(values or {})
        self._errors.clear()
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


def _field(kind: str, default: Any) -> Callable[..., Element]:
    def field(
        id: str = "",  # noqa: A002 - extension prop name
        title: str | None = None,
        value: Any = None,
        default_value: Any = None,
        on_change: Callable[[Any], Any] | None = None,
        error: str | None = None,
        info: str | None = None,
        placeholder: str | None = None,
        children: Any = None,
        **extra: Any,
    ) -> Element:
        form: FormState | None = use_context(FormContext)
        services = use_context(ServicesContext)
        options = collect_options(children) if kind in {"dropdown", "tag-picker"} else []
        if default_value is not None:
            fallback = default_value
        elif kind == "dropdown" and options:
            fallback = options[0]["value"]
        else:
            fallback = list(default) if isinstance(default, list) else default
        current = form.declare(id, value, fallback) if form is not None else (value if value is not None else fallback)

        def set_value(new_value: Any) -> None:
            if form is not None:
                form.set_value(id, new_value)
            if on_change is None:
                return
            if services is not None:
                services.call(on_change, new_value)
            else:
                on_change(new_value)

        props: dict[str, Any] = {
            "id": id,
            "kind": kind,
            "title": title,
            "value": current,
            "error": error or (form.errors().get(id) if form is not None else None),
            "info": info,
            "placeholder": placeholder,
            "set_value": set_value,
        }
        if kind in {"dropdown", "tag-picker"}:
            props["options"] = options
        if kind == "checkbox":
            props["label"] = extra.get("label")
        if kind == "date-picker":
            props["type"] = extra.get("type") or DatePickerType.DATE_TIME.value
        return create_element("form-field", props)

    field.__name__ = f"Form{kind.title().replace('-', '')}"
    return field


class DatePickerType(str, Enum):
    DATE = "date"
    DATE_TIME = "date_time"

    Date = "date"
    DateTime = "date_time"


def _description(title: str | None = None, text: str = "", **_: Any) -> Element:
    return create_element("form-description", {"title": title, "text": text})


def _separator(**_: Any) -> Element:
    return create_element("form-separator", {})


def _link_accessory(target: str = "", text: str = "", **_: Any) -> Element:
    return create_element("form-link-accessory", {"target": target, "text": text})


def Form(  # noqa: N802 - component name
    children: Any = None,
    actions: Element | None = None,
    navigation_title: str | None = None,
    is_loading: bool = False,
    enable_drafts: bool = False,
    draft_values: dict[str, Any] | None = None,
    search_bar_accessory: Element | None = None,
    **_: Any,
) -> Element:
    """Form view; ``cmd+enter`` submits through the primary action."""
    navigation = use_context(NavigationContext)
    force_update = use_force_update()
    state_ref = use_ref(None)
    if state_ref.current is None:
        state_ref.current = FormState(draft_values if enable_drafts or draft_values else None, on_change=force_update)
    state: FormState = state_ref.current
    controller = use_actions_controller()

    def on_key(event: KeyEvent) -> None:
        key = event.normalized_key
        if key == "enter" and event.meta and not event.repeat:
            event.prevent_default()
            controller.run_primary()
        elif key == "escape" and navigation is not None:
            event.prevent_default()
            event.stop_propagation()
            navigation.pop()

    use_action_keys(controller, on_key)
    return create_element(
        FormContext.Provider,
        {"value": state},
        create_element(
            "form",
            {
                "navigation_title": navigation_title,
                "is_loading": is_loading,
                "values": state.values(),
                "errors": state.errors(),
                "actions": controller.view_model(),
            },
            create_element("hidden", {}, render_active_actions(controller, actions, "__form_actions")),
            None if is_loading else children,
        ),
    )


Form.TextField = _field("text-field", "")
Form.TextArea = _field("text-area", "")
Form.PasswordField = _field("password-field", "")
Form.Checkbox = _field("checkbox", False)
Form.Dropdown = _field("dropdown", "")
Form.Dropdown.Item = DropdownItem
Form.Dropdown.Section = DropdownSection
Form.DatePicker = _field("date-picker", None)
Form.DatePicker.Type = DatePickerType
Form.TagPicker = _field("tag-picker", [])
Form.TagPicker.Item = DropdownItem
Form.FilePicker = _field("file-picker", [])
Form.Description = _description
Form.Separator = _separator
Form.LinkAccessory = _link_accessory
