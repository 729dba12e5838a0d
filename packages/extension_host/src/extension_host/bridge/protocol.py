"""Boundary of the trusted process that performs real I/O."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.bridge.models import (
        AiEvent,
        Application,
        ExecRequest,
        ExecResult,
        FileStat,
        HttpRequest,
        HttpResponse,
        TrayUpdate,
    )


class PrivilegedBridge(Protocol):
    """Operations the sandbox delegates to the privileged host process."""

    # Filesystem, read-only access to bundled assets.
    def file_exists(self, path: str) -> bool: ...

    def read_file(self, path: str) -> str | None: ...

    def read_file_bytes(self, path: str) -> bytes | None: ...

    def stat(self, path: str) -> FileStat | None: ...

    def list_dir(self, path: str) -> list[str]: ...

    # Process execution.
    def exec_sync(self, request: ExecRequest) -> ExecResult: ...

    async def exec(self, request: ExecRequest) -> ExecResult: ...

    async def run_apple_script(self, script: str) -> str: ...

    # Network.
    async def http_request(self, request: HttpRequest) -> HttpResponse: ...

    # Desktop integration.
    async def trash(self, paths: list[str]) -> None: ...

    async def open_url(self, target: str, application: str | None = None) -> None: ...

    def clipboard_write(self, text: str) -> None: ...

    def clipboard_read(self) -> str: ...

    async def get_applications(self) -> list[Application]: ...

    async def get_frontmost_application(self) -> Application | None: ...

    async def get_selected_text(self) -> str: ...

    async def pick_color(self) -> str | None: ...

    def get_appearance(self) -> str: ...

    def close_main_window(self) -> None: ...

    def show_hud(self, title: str) -> None: ...

    async def launch_command(self, payload: dict[str, Any]) -> None: ...

    # Streaming AI.
    def ai_available(self) -> bool: ...

    async def ai_ask(self, request_id: str, prompt: str, options: dict[str, Any]) -> None: ...

    def ai_cancel(self, request_id: str) -> None: ...

    def subscribe_ai(self, handler: Callable[[AiEvent], None]) -> Callable[[], None]: ...

    # Menu bar tray.
    def update_menu_bar(self, update: TrayUpdate) -> None: ...

    def remove_menu_bar(self, ext_id: str) -> None: ...

    def subscribe_menu_bar_clicks(self, handler: Callable[[str, str], None]) -> Callable[[], None]: ...
