"""Host components, the renderer they run in, and their registries."""

from extension_host.ui.actions import Action, ActionPanel, ActionsController
from extension_host.ui.detail import Detail
from extension_host.ui.dropdown import Dropdown
from extension_host.ui.element import Element, Fragment, create_context, create_element
from extension_host.ui.feedback import Alert, Toast, ToastCenter, ToastStyle
from extension_host.ui.form import Form
from extension_host.ui.grid import Grid
from extension_host.ui.keyboard import KeyboardHub, KeyEvent, Shortcut, matches_shortcut
from extension_host.ui.list import List
from extension_host.ui.menubar import MenuBarExtra, MenuBarRouter
from extension_host.ui.navigation import Navigation
from extension_host.ui.registry import Registration, Registry
from extension_host.ui.renderer import HostNode, Renderer

__all__ = [
    "Action",
    "ActionPanel",
    "ActionsController",
    "Alert",
    "Detail",
    "Dropdown",
    "Element",
    "Form",
    "Fragment",
    "Grid",
    "HostNode",
    "KeyEvent",
    "KeyboardHub",
    "List",
    "MenuBarExtra",
    "MenuBarRouter",
    "Navigation",
    "Registration",
    "Registry",
    "Renderer",
    "Shortcut",
    "Toast",
    "ToastCenter",
    "ToastStyle",
    "create_context",
    "create_element",
    "matches_shortcut",
]
