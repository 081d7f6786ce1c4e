import re
from importlib.metadata import PackageNotFoundError, version

import requests

from timer_guard.logger import logger

RELEASES_URL = "https://api.github.com/repos/{repo}/releases/latest"
HTTP_OK = 200


def current_version() -> str:
    try:
        return version("timer-guard")
    except PackageNotFoundError:
        return "0.0.0"


def version_key(value: str) -> tuple[int, ...]:
    """"1.10.2" のような文字列を数値比較用のタプルにする."""
    return tuple(int(part) for part in re.findall(r"\d+", value))


class AppUpdater:
    """GitHub の最新リリースと現在のバージョンを比較する."""

    def __init__(
        self,
        repo: str = "MeinhartThomas/ClickUpTimerGuard",
        installed_version: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.repo = repo
        self.installed_version = installed_version or current_version()
        self.timeout = timeout
        self.update_status = ""
        self.has_update = False
        self.latest_release_url: str | None = None

    def check_for_updates(self, *, automatic: bool = False) -> bool:
        """Return True when a newer release exists.

        Automatic checks only publish a status line when an update is found.
        """
        if not automatic:
            self.update_status = "Checking for updates..."
        self.has_update = False
        self.latest_release_url = None

        try:
            response = requests.get(
                RELEASES_URL.format(repo=self.repo),
                headers={"Accept": "application/vnd.github.v3+json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Update check failed: {e}")
            if not automatic:
                self.update_status = f"Update check failed: {e}"
            return False

        if response.status_code != HTTP_OK:
            if not automatic:
                self.update_status = "Failed to fetch updates. Please try again later."
            return False

        try:
            payload = response.json()
            tag_name = payload["tag_name"]
            release_url = payload["html_url"]
        except (ValueError, KeyError, TypeError):
            if not automatic:
                self.update_status = "Failed to parse update information."
            return False

        latest = str(tag_name).lstrip("vV")
        if version_key(self.installed_version) < version_key(latest):
            self.has_update = True
            self.latest_release_url = str(release_url)
            self.update_status = f"Update available: {latest}"
            logger.info(self.update_status)
            return True

        if not automatic:
            self.update_status = f"App is up to date ({self.installed_version})."
        return False
