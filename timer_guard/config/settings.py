"""User settings for Timer Guard, persisted as JSON.

Environment (optionally from ``.env.local`` in the repository root):

- ``TIMER_GUARD_SETTINGS_PATH``: settings file location
  (default ``~/.timer_guard/settings.json``)
"""

import json
import os
import re
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from timer_guard.logger import logger
from timer_guard.model.models import FRONTMOST_SENTINEL

REPO_ROOT = Path(__file__).resolve().parent.parent.parent

MIN_POLL_INTERVAL_SECONDS = 15.0
DEFAULT_WORK_APP_IDS = ("Code.exe", "chrome.exe", "msedge.exe", "brave.exe")

_SEPARATORS = re.compile(r"[\n,]")


def load_local_env() -> None:
    load_dotenv(dotenv_path=REPO_ROOT / ".env.local", override=False)


def parse_work_app_ids(raw: str) -> list[str]:
    """改行またはカンマ区切りの識別子を順序を保って重複なしで返す."""
    seen: list[str] = []
    for part in _SEPARATORS.split(raw):
        app_id = part.strip()
        if app_id and app_id != FRONTMOST_SENTINEL and app_id not in seen:
            seen.append(app_id)
    return seen


class AppSettings(BaseModel):
    """設定値のモデル."""

    poll_interval_seconds: float = 45.0
    activity_window_seconds: float = 90.0
    work_app_ids_raw: str = "\n".join(DEFAULT_WORK_APP_IDS)
    clickup_team_id: str = ""
    clickup_user_id: str = ""

    @field_validator("poll_interval_seconds", "activity_window_seconds")
    @classmethod
    def seconds_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            msg = "seconds must be positive"
            raise ValueError(msg)
        return v

    @field_validator("clickup_team_id", "clickup_user_id")
    @classmethod
    def strip_identity(cls, v: str) -> str:
        return v.strip()

    @property
    def work_app_ids(self) -> frozenset[str]:
        return frozenset(parse_work_app_ids(self.work_app_ids_raw))

    @property
    def effective_poll_interval(self) -> float:
        return max(MIN_POLL_INTERVAL_SECONDS, self.poll_interval_seconds)

    def add_work_app_id(self, app_id: str) -> bool:
        """識別子を追加する。追加した場合 True."""
        normalized = app_id.strip()
        if not normalized or normalized == FRONTMOST_SENTINEL:
            return False

        existing = parse_work_app_ids(self.work_app_ids_raw)
        if normalized in existing:
            return False

        existing.append(normalized)
        self.work_app_ids_raw = "\n".join(existing)
        return True


def default_settings_path() -> Path:
    configured = os.getenv("TIMER_GUARD_SETTINGS_PATH")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".timer_guard" / "settings.json"


class SettingsStore:
    """Holds the live :class:`AppSettings` and writes it back on every change."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_settings_path()
        self.settings = self._load()

    def _load(self) -> AppSettings:
        if not self.path.exists():
            return AppSettings()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return AppSettings.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"設定ファイルを読み込めません ({self.path}): {e}")
            return AppSettings()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            self.settings.model_dump_json(indent=2), encoding="utf-8"
        )

    def update(self, **changes: Any) -> AppSettings:
        """Validate ``changes`` against the current values and persist them."""
        merged = self.settings.model_dump() | changes
        self.settings = AppSettings.model_validate(merged)
        self.save()
        return self.settings

    def add_work_app_id(self, app_id: str) -> bool:
        added = self.settings.add_work_app_id(app_id)
        if added:
            self.save()
        return added

    def fill_identity(self, team_id: str, user_id: str) -> None:
        """空欄のフィールドだけ解決済みの値で埋める."""
        changes: dict[str, str] = {}
        if not self.settings.clickup_team_id:
            changes["clickup_team_id"] = team_id
        if not self.settings.clickup_user_id:
            changes["clickup_user_id"] = user_id
        if not changes:
            return
        try:
            self.update(**changes)
        except OSError as e:
            # 保存できなくてもメモリ上の値は使い続ける
            logger.warning(f"設定ファイルに保存できません ({self.path}): {e}")
