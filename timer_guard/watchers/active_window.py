import sys
import time
from collections.abc import Callable
from typing import Any, cast

import psutil

if sys.platform == "win32":
    import pywintypes  # pyright: ignore[reportMissingImports]
    import win32gui  # pyright: ignore[reportMissingImports]
    import win32process  # pyright: ignore[reportMissingImports]
else:  # pragma: no cover
    pywintypes = cast("Any", None)
    win32gui = cast("Any", None)
    win32process = cast("Any", None)


def get_active_app() -> dict[str, str | None]:
    """Return the foreground application on Windows."""
    if sys.platform != "win32":
        return {"active_app": None, "title": None}

    hwnd = win32gui.GetForegroundWindow()
    if not hwnd:
        return {"active_app": None, "title": None}

    try:
        title = win32gui.GetWindowText(hwnd)
        _, pid = win32process.GetWindowThreadProcessId(hwnd)
    except pywintypes.error:
        return {"active_app": None, "title": None}

    try:
        process = psutil.Process(pid)
        process_name = process.name()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return {"active_app": None, "title": None}
    return {"active_app": process_name, "title": title}


FrontmostListener = Callable[[str | None], None]


class ForegroundAppMonitor:
    """前面アプリの識別子（プロセス名）を返す.

    Pull via :meth:`frontmost_app_id` is the baseline. Listeners registered
    with :meth:`add_listener` are called from :meth:`poll` whenever the
    frontmost identifier changed since the previous poll.
    """

    def __init__(
        self, source: Callable[[], dict[str, str | None]] = get_active_app
    ) -> None:
        self._source = source
        self._listeners: list[FrontmostListener] = []
        self._last_seen: str | None = None

    def frontmost_app_id(self) -> str | None:
        app_id = self._source().get("active_app")
        if app_id is None:
            return None
        return app_id.strip() or None

    def add_listener(self, listener: FrontmostListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: FrontmostListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def poll(self) -> bool:
        """Notify listeners if the frontmost app changed. Returns True on change."""
        current = self.frontmost_app_id()
        if current == self._last_seen:
            return False
        self._last_seen = current
        for listener in list(self._listeners):
            listener(current)
        return True


if __name__ == "__main__":  # pragma: no cover
    # テスト実行
    monitor = ForegroundAppMonitor()
    for _ in range(3):
        print(monitor.frontmost_app_id())
        time.sleep(1)
