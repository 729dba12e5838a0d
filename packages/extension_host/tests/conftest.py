from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import pytest

from extension_host.bridge.models import AiEvent, Application, ExecRequest, ExecResult, FileStat, HttpResponse
from extension_host.capabilities.fs import FileStore
from extension_host.capabilities.paths import CommandResolver
from extension_host.config.settings import Settings
from extension_host.context import ExecutionContext, LaunchOptions
from extension_host.storage import MemoryStore
from extension_host.ui.menubar import MenuBarRouter
from extension_host.view import ExtensionView

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.bridge.models import HttpRequest, TrayUpdate

_PROBE = re.compile(r"command -v -- (\S+)")


class FakeBridge:
    """In-memory bridge that records every privileged call."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.commands: dict[str, str] = {}
        self.exec_requests: list[ExecRequest] = []
        self.exec_handler: Callable[[ExecRequest], ExecResult] | None = None
        self.responses: dict[str, HttpResponse] = {}
        self.http_requests: list[HttpRequest] = []
        self.clipboard = ""
        self.opened: list[tuple[str, str | None]] = []
        self.trashed: list[str] = []
        self.huds: list[str] = []
        self.launched: list[dict[str, Any]] = []
        self.closed_main_window = 0
        self.applications = [Application(name="Safari", path="/Applications/Safari.app", bundle_id="com.apple.Safari")]
        self.frontmost: Application | None = None
        self.ai_enabled = True
        self.ai_requests: list[tuple[str, str, dict[str, Any]]] = []
        self.ai_cancelled: list[str] = []
        self._ai_handlers: list[Callable[[AiEvent], None]] = []
        self.tray: dict[str, TrayUpdate] = {}
        self.tray_removed: list[str] = []
        self._click_handlers: list[Callable[[str, str], None]] = []

    # Filesystem

    def file_exists(self, path: str) -> bool:
        return path in self.files

    def read_file(self, path: str) -> str | None:
        return self.files.get(path)

    def read_file_bytes(self, path: str) -> bytes | None:
        text = self.files.get(path)
        return text.encode("utf-8") if text is not None else None

    def stat(self, path: str) -> FileStat | None:
        if path in self.files:
            return FileStat(size=len(self.files[path]))
        return None

    def list_dir(self, path: str) -> list[str]:
        prefix = path.rstrip("/") + "/"
        return sorted({key[len(prefix) :].split("/")[0] for key in self.files if key.startswith(prefix)})

    # Processes

    def _run(self, request: ExecRequest) -> ExecResult:
        self.exec_requests.append(request)
        if request.args[:1] == ("-lc",):
            probe = _PROBE.search(request.args[1])
            if probe is not None:
                return ExecResult(stdout=self.commands.get(probe.group(1), ""))
        if self.exec_handler is not None:
            return self.exec_handler(request)
        return ExecResult()

    def exec_sync(self, request: ExecRequest) -> ExecResult:
        return self._run(request)

    async def exec(self, request: ExecRequest) -> ExecResult:
        return self._run(request)

    async def run_apple_script(self, script: str) -> str:
        return f"ran:{script}"

    # Network

    async def http_request(self, request: HttpRequest) -> HttpResponse:
        self.http_requests.append(request)
        return self.responses.get(request.url, HttpResponse(status=404, status_text="Not Found", url=request.url))

    # Desktop

    async def trash(self, paths: list[str]) -> None:
        self.trashed.extend(paths)

    async def open_url(self, target: str, application: str | None = None) -> None:
        self.opened.append((target, application))

    def clipboard_write(self, text: str) -> None:
        self.clipboard = text

    def clipboard_read(self) -> str:
        return self.clipboard

    async def get_applications(self) -> list[Application]:
        return list(self.applications)

    async def get_frontmost_application(self) -> Application | None:
        return self.frontmost

    async def get_selected_text(self) -> str:
        return "selected"

    async def pick_color(self) -> str | None:
        return "#ff0000"

    def get_appearance(self) -> str:
        return "light"

    def close_main_window(self) -> None:
        self.closed_main_window += 1

    def show_hud(self, title: str) -> None:
        self.huds.append(title)

    async def launch_command(self, payload: dict[str, Any]) -> None:
        self.launched.append(payload)

    # AI

    def ai_available(self) -> bool:
        return self.ai_enabled

    async def ai_ask(self, request_id: str, prompt: str, options: dict[str, Any]) -> None:
        self.ai_requests.append((request_id, prompt, options))

    def ai_cancel(self, request_id: str) -> None:
        self.ai_cancelled.append(request_id)

    def subscribe_ai(self, handler: Callable[[AiEvent], None]) -> Callable[[], None]:
        self._ai_handlers.append(handler)
        return lambda: self._ai_handlers.remove(handler)

    def emit_ai(self, request_id: str, kind: str, data: str = "") -> None:
        for handler in list(self._ai_handlers):
            handler(AiEvent(request_id=request_id, kind=kind, data=data))

    # Menu bar

    def update_menu_bar(self, update: TrayUpdate) -> None:
        self.tray[update.ext_id] = update

    def remove_menu_bar(self, ext_id: str) -> None:
        self.tray.pop(ext_id, None)
        self.tray_removed.append(ext_id)

    def subscribe_menu_bar_clicks(self, handler: Callable[[str, str], None]) -> Callable[[], None]:
        self._click_handlers.append(handler)
        return lambda: self._click_handlers.remove(handler)

    def click_menu_bar(self, ext_id: str, item_id: str) -> None:
        for handler in list(self._click_handlers):
            handler(ext_id, item_id)


@pytest.fixture(autouse=True)
def _clear_host_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in [
        "EXTENSION_HOST_SYSTEM_PATH",
        "EXTENSION_HOST_HOME",
        "EXTENSION_HOST_SUPPORT_PATH",
        "EXTENSION_HOST_STATE_FILE",
        "EXTENSION_HOST_STORE_QUOTA_BYTES",
        "EXTENSION_HOST_SETTLE_DELAY_MS",
        "EXTENSION_HOST_SHELL",
        "EXTENSION_HOST_LOG_LEVEL",
        "EXTENSION_HOST_COMMON_BIN_DIRS",
        "EXTENSION_HOST_API_VERSION",
    ]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def bridge() -> FakeBridge:
    return FakeBridge()


@pytest.fixture
def settings() -> Settings:
    return Settings(home_dir="/Users/tester", settle_delay_ms=10)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_view(bridge: FakeBridge, settings: Settings, store: MemoryStore) -> Callable[..., ExtensionView]:
    files = FileStore(store)
    resolver = CommandResolver(bridge, shell=settings.shell, common_dirs=settings.common_bin_dirs)
    router = MenuBarRouter(bridge)

    def build(
        code: str,
        *,
        mode: str = "view",
        name: str = "demo",
        command: str = "main",
        launch: LaunchOptions | None = None,
        preferences: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> ExtensionView:
        context = ExecutionContext(
            extension_name=name,
            command_name=command,
            assets_path="/ext/demo/assets",
            command_mode=mode,
            extension_path="/ext/demo",
            preferences=preferences or {},
        )
        return ExtensionView(
            code,
            context,
            bridge,
            launch=launch,
            store=store,
            files=files,
            resolver=resolver,
            settings=settings,
            menu_bar_router=router,
            **kwargs,
        )

    return build
