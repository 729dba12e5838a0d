"""Context values threaded through one mounted extension's subtree."""

from __future__ import annotations

from typing import TYPE_CHECKING

from extension_host.ui.element import create_context
from extension_host.ui.renderer import use_context

if TYPE_CHECKING:
    from extension_host.services import ExtensionServices
    from extension_host.ui.keyboard import KeyboardHub
    from extension_host.ui.navigation import Navigation

ServicesContext = create_context(None, "Services")
NavigationContext = create_context(None, "Navigation")
KeyboardContext = create_context(None, "Keyboard")

# Nearest container registry that action elements report into.
ActionRegistryContext = create_context(None, "ActionRegistry")
ActionSectionContext = create_context(None, "ActionSection")

ItemRegistryContext = create_context(None, "ItemRegistry")
ItemSectionContext = create_context(None, "ItemSection")

FormContext = create_context(None, "Form")

MenuBarRegistryContext = create_context(None, "MenuBarRegistry")
MenuBarSectionContext = create_context(None, "MenuBarSection")


def use_services() -> ExtensionServices:
    services = use_context(ServicesContext)
    if services is None:
        msg = "Host components must be rendered inside an extension view"
        raise RuntimeError(msg)
    return services


def use_navigation() -> Navigation:
    navigation = use_context(NavigationContext)
    if navigation is None:
        msg = "use_navigation must be called inside an extension view"
        raise RuntimeError(msg)
    return navigation


def use_keyboard() -> KeyboardHub | None:
    return use_context(KeyboardContext)
