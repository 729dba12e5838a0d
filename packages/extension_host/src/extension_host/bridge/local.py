"""Bridge implementation that performs real I/O in the current process."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import subprocess
import webbrowser
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from extension_host.bridge.models import (
    Application,
    ExecRequest,
    ExecResult,
    FileStat,
    HttpRequest,
    HttpResponse,
    TrayUpdate,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.bridge.models import AiEvent

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 30.0


class LocalBridge:
    """Privileged bridge backed by subprocess, httpx, and the local disk.

    Desktop-only services (clipboard, tray, frontmost app) are kept in memory
    so the bridge is usable headless. AI streaming is not available.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        trash_dir: str | Path | None = None,
        appearance: str = "dark",
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT, follow_redirects=True)
        self._trash_dir = Path(trash_dir) if trash_dir else Path.home() / ".Trash"
        self._appearance = appearance
        self._clipboard = ""
        self._menu_bar: dict[str, TrayUpdate] = {}
        self._click_handlers: list[Callable[[str, str], None]] = []
        self.opened: list[str] = []
        self.huds: list[str] = []

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def file_exists(self, path: str) -> bool:
        return Path(path).exists()

    def read_file(self, path: str) -> str | None:
        """Read ``path`` as UTF-8; undecodable content raises ``UnicodeDecodeError``."""
        data = self.read_file_bytes(path)
        return data.decode("utf-8") if data is not None else None

    def read_file_bytes(self, path: str) -> bytes | None:
        try:
            return Path(path).read_bytes()
        except OSError:
            return None

    def stat(self, path: str) -> FileStat | None:
        try:
            info = Path(path).stat()
        except OSError:
            return None
        is_dir = Path(path).is_dir()
        return FileStat(size=info.st_size, is_file=not is_dir, is_directory=is_dir, mtime=info.st_mtime)

    def list_dir(self, path: str) -> list[str]:
        try:
            return sorted(entry.name for entry in Path(path).iterdir())
        except OSError:
            return []

    def _process_env(self, request: ExecRequest) -> dict[str, str]:
        env = dict(os.environ)
        env.update(request.env)
        return env

    def exec_sync(self, request: ExecRequest) -> ExecResult:
        try:
            completed = subprocess.run(  # noqa: S603 - arguments are mediated by the host
                [request.file, *request.args],
                cwd=request.cwd or None,
                env=self._process_env(request),
                input=request.input,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            return ExecResult(stderr=str(exc), exit_code=127)
        return ExecResult(stdout=completed.stdout, stderr=completed.stderr, exit_code=completed.returncode)

    async def exec(self, request: ExecRequest) -> ExecResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                request.file,
                *request.args,
                cwd=request.cwd or None,
                env=self._process_env(request),
                stdin=asyncio.subprocess.PIPE if request.input is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return ExecResult(stderr=str(exc), exit_code=127)
        stdin = request.input.encode() if request.input is not None else None
        stdout, stderr = await proc.communicate(stdin)
        return ExecResult(
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            exit_code=proc.returncode or 0,
        )

    async def run_apple_script(self, script: str) -> str:
        result = await self.exec(ExecRequest(file="/usr/bin/osascript", args=("-e", script)))
        if result.exit_code != 0:
            raise RuntimeError(result.stderr.strip() or "osascript failed")
        return result.stdout.rstrip("\n")

    async def http_request(self, request: HttpRequest) -> HttpResponse:
        try:
            response = await self._client.request(
                request.method.upper(),
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.HTTPError as exc:
            logger.warning("HTTP request to %s failed: %s", request.url, exc)
            return HttpResponse(status=0, status_text=str(exc), url=request.url)
        return HttpResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            body_text=response.text,
            url=str(response.url),
        )

    def _trash_target(self, source: Path) -> Path:
        target = self._trash_dir / source.name
        counter = 2
        while target.exists():
            target = self._trash_dir / f"{source.stem} {counter}{source.suffix}"
            counter += 1
        return target

    async def trash(self, paths: list[str]) -> None:
        self._trash_dir.mkdir(parents=True, exist_ok=True)
        for path in paths:
            source = Path(path)
            if not source.exists():
                continue
            target = self._trash_target(source)
            await asyncio.to_thread(shutil.move, str(source), str(target))
            logger.debug("Trashed %s to %s", source, target)

    async def open_url(self, target: str, application: str | None = None) -> None:
        self.opened.append(target)
        if application is None:
            await asyncio.to_thread(webbrowser.open, target)

    def clipboard_write(self, text: str) -> None:
        self._clipboard = text

    def clipboard_read(self) -> str:
        return self._clipboard

    async def get_applications(self) -> list[Application]:
        apps_dir = Path("/Applications")
        if not apps_dir.is_dir():
            return []
        return [
            Application(name=entry.stem, path=str(entry))
            for entry in sorted(apps_dir.iterdir())
            if entry.suffix == ".app"
        ]

    async def get_frontmost_application(self) -> Application | None:
        return None

    async def get_selected_text(self) -> str:
        return ""

    async def pick_color(self) -> str | None:
        return None

    def get_appearance(self) -> str:
        return self._appearance

    def close_main_window(self) -> None:
        logger.debug("close_main_window requested")

    def show_hud(self, title: str) -> None:
        self.huds.append(title)

    async def launch_command(self, payload: dict[str, Any]) -> None:
        logger.info("launch_command requested: %s", payload)

    def ai_available(self) -> bool:
        return False

    async def ai_ask(self, request_id: str, prompt: str, options: dict[str, Any]) -> None:
        msg = "AI is not available"
        raise RuntimeError(msg)

    def ai_cancel(self, request_id: str) -> None:
        return None

    def subscribe_ai(self, handler: Callable[[AiEvent], None]) -> Callable[[], None]:
        return lambda: None

    def update_menu_bar(self, update: TrayUpdate) -> None:
        self._menu_bar[update.ext_id] = update

    def remove_menu_bar(self, ext_id: str) -> None:
        self._menu_bar.pop(ext_id, None)

    def menu_bar(self, ext_id: str) -> TrayUpdate | None:
        """Return the last tray state pushed for ``ext_id``."""
        return self._menu_bar.get(ext_id)

    def subscribe_menu_bar_clicks(self, handler: Callable[[str, str], None]) -> Callable[[], None]:
        self._click_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._click_handlers:
                self._click_handlers.remove(handler)

        return unsubscribe

    def click_menu_bar_item(self, ext_id: str, item_id: str) -> None:
        """Deliver a tray click to subscribers."""
        for handler in list(self._click_handlers):
            handler(ext_id, item_id)
