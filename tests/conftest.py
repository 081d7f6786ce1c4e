from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from timer_guard.api.clickup import ClickUpAPIClient
from timer_guard.config.settings import SettingsStore
from timer_guard.core.guard_controller import GuardController
from timer_guard.core.reminder_engine import ReminderEngine
from timer_guard.model.models import ClickUpIdentity
from timer_guard.watchers.active_window import ForegroundAppMonitor


class FakeClock:
    """テスト用の時計（手動で進める）"""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeActivity:
    def __init__(self, active: bool = True) -> None:
        self.active = active
        self.windows: list[float] = []

    def is_user_recently_active(self, window_seconds: float) -> bool:
        self.windows.append(window_seconds)
        return self.active


class FakeForeground(ForegroundAppMonitor):
    def __init__(self, app_id: str | None = "Code.exe") -> None:
        self.app_id = app_id
        super().__init__(source=lambda: {"active_app": self.app_id, "title": ""})


class FakeTokenStore:
    def __init__(self, token: str | None = "pk_test_token") -> None:
        self.token = token
        self.load_calls = 0

    def load_token(self) -> str | None:
        self.load_calls += 1
        return self.token

    def save_token(self, token: str) -> None:
        self.token = token

    def delete_token(self) -> None:
        self.token = None


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 10, 0, 0))


@pytest.fixture
def activity():
    return FakeActivity(active=True)


@pytest.fixture
def foreground():
    return FakeForeground("Code.exe")


@pytest.fixture
def token_store():
    return FakeTokenStore()


@pytest.fixture
def settings_store(tmp_path):
    return SettingsStore(path=tmp_path / "settings.json")


@pytest.fixture
def identity():
    return ClickUpIdentity(team_id="9001", user_id="42")


@pytest.fixture
def clickup_client(identity):
    """ClickUpクライアントのモック（タイマー停止中）"""
    client = Mock(spec=ClickUpAPIClient)
    client.resolve_identity_async = AsyncMock(return_value=identity)
    client.has_running_timer_async = AsyncMock(return_value=False)
    return client


@pytest.fixture
def notifier():
    """通知サービスのモック"""
    mock = Mock()
    mock.present = Mock()
    return mock


@pytest.fixture
def engine():
    return ReminderEngine()


@pytest.fixture
def make_controller(
    settings_store, activity, foreground, clickup_client, token_store, engine, notifier, clock
):
    """共通のフェイクで GuardController を組み立てるファクトリ"""

    def _make(**overrides) -> GuardController:
        kwargs = {
            "settings_store": settings_store,
            "activity_monitor": activity,
            "foreground_monitor": foreground,
            "clickup_client": clickup_client,
            "token_store": token_store,
            "reminder_engine": engine,
            "notifier": notifier,
            "clock": clock,
        }
        kwargs.update(overrides)
        return GuardController(**kwargs)

    return _make


@pytest.fixture
def controller(make_controller):
    return make_controller()
