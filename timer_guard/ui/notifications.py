import platform
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from timer_guard.errors import NotificationDeliveryError
from timer_guard.logger import logger

if sys.platform == "win32":
    from win10toast import ToastNotifier  # type: ignore[import-untyped, unused-ignore]

APP_NAME = "ClickUp Timer Guard"
MISSING_TIMER_TITLE = "Start your ClickUp timer"
MISSING_TIMER_BODY = "You are actively working, but no ClickUp timer is running."
TEST_TITLE = "ClickUp Timer Guard Test"
TEST_BODY = "This is a test notification from Timer Guard."


class NotificationLevel(Enum):
    """Notification severity levels used by the service."""

    INFO = "info"
    WARNING = "warning"
    URGENT = "urgent"


@dataclass
class NotificationConfig:
    """Configuration for :class:`NotificationService`."""

    toast_duration: int = 5


def apple_script_string_literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class NotificationService:
    """Desktop notification service with history tracking.

    Windows uses a ``win10toast`` toast, macOS ``osascript`` and Linux
    ``notify-send`` when it is installed. Anything else records the
    notification as undelivered.
    """

    def __init__(self, config: NotificationConfig | None = None) -> None:
        self.platform = platform.system()
        self.config = config or NotificationConfig()
        self._history: list[dict[str, Any]] = []

    def notify(
        self,
        title: str,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
    ) -> bool:
        """通知を表示して履歴に記録する。表示できたら True."""
        try:
            delivered = self._deliver(title, message)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"通知の表示に失敗しました: {e}")
            delivered = False

        self._history.append(
            {
                "title": title,
                "message": message,
                "level": level.value,
                "timestamp": time.time(),
                "delivered": delivered,
            },
        )
        return delivered

    def present(self, title: str, body: str) -> None:
        """Show a notification or raise :class:`NotificationDeliveryError`."""
        if not self.notify(title, body, NotificationLevel.WARNING):
            msg = f"Notification could not be delivered on {self.platform}."
            raise NotificationDeliveryError(msg)

    def _deliver(self, title: str, message: str) -> bool:
        if self.platform == "Windows":
            notifier = ToastNotifier()
            return bool(
                notifier.show_toast(  # pyright: ignore[reportUnknownMemberType]
                    title,
                    message,
                    duration=self.config.toast_duration,
                    threaded=True,
                )
            )
        if self.platform == "Darwin":
            script = (
                f"display notification {apple_script_string_literal(message)} "
                f"with title {apple_script_string_literal(title)}"
            )
            result = subprocess.run(  # noqa: S603
                ["/usr/bin/osascript", "-e", script],
                capture_output=True,
                check=False,
                timeout=10,
            )
            return result.returncode == 0
        notify_send = shutil.which("notify-send")
        if notify_send is None:
            return False
        result = subprocess.run(  # noqa: S603
            [notify_send, "--app-name", APP_NAME, title, message],
            capture_output=True,
            check=False,
            timeout=10,
        )
        return result.returncode == 0

    def get_notification_history(self) -> list[dict[str, Any]]:
        """Return a copy of the notification history."""
        return list(self._history)

