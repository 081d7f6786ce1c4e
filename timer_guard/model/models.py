__all__ = [
    "FRONTMOST_SENTINEL",
    "ClickUpIdentity",
    "GuardStatus",
    "ReminderDecision",
    "ReminderInput",
    "ReminderState",
    "WorkContext",
]


from dataclasses import dataclass
from datetime import datetime
from enum import Enum

FRONTMOST_SENTINEL = "-"


@dataclass(frozen=True)
class ReminderInput:
    """1回のチェックで評価する入力."""

    is_active_work_context: bool
    timer_running: bool


class ReminderDecision(Enum):
    """Outcome of a single engine evaluation."""

    NOTIFY = "notify"
    NO_ACTION = "no_action"
    SNOOZED = "snoozed"


class ReminderState(Enum):
    """Tagged view of the engine's debounce and snooze fields."""

    IDLE = "idle"
    REMINDED = "reminded"
    SNOOZED = "snoozed"


@dataclass(frozen=True)
class ClickUpIdentity:
    team_id: str
    user_id: str

    def describe(self) -> str:
        return f"Team {self.team_id} / User {self.user_id}"


@dataclass(frozen=True)
class WorkContext:
    """前面アプリと入力状況の組み合わせ."""

    frontmost_app_id: str
    recently_active: bool
    is_work_app: bool

    @property
    def is_active(self) -> bool:
        return self.recently_active and self.is_work_app


@dataclass
class GuardStatus:
    """Snapshot published by the controller after every state change."""

    last_check_description: str = "Not checked yet"
    last_error_message: str | None = None
    current_frontmost_app_id: str = FRONTMOST_SENTINEL
    is_active_work_context: bool = False
    is_timer_running: bool = False
    is_snooze_active: bool = False
    snoozed_until: datetime | None = None
    clear_snooze_title: str = "Clear Snooze"
    identity_description: str = "Not resolved"
    has_token: bool = False
