"""Debounced reminder decisions with snooze support."""

from datetime import datetime

from timer_guard.model.models import ReminderDecision, ReminderInput, ReminderState


class ReminderEngine:
    """作業中なのにタイマーが動いていない区間ごとに1回だけ通知を許可する.

    The engine keeps two pieces of state: a debounce flag that is set once a
    reminder fired and cleared whenever the situation stops needing one, and an
    optional absolute snooze deadline. It never raises.
    """

    def __init__(self) -> None:
        self.has_shown_reminder_for_current_context = False
        self.snoozed_until: datetime | None = None

    def evaluate(self, reminder_input: ReminderInput, now: datetime) -> ReminderDecision:
        """入力と現在時刻から通知判定を返す."""
        if self.is_snoozed(now):
            return ReminderDecision.SNOOZED

        if not reminder_input.is_active_work_context:
            self.has_shown_reminder_for_current_context = False
            return ReminderDecision.NO_ACTION

        if reminder_input.timer_running:
            self.has_shown_reminder_for_current_context = False
            return ReminderDecision.NO_ACTION

        if self.has_shown_reminder_for_current_context:
            return ReminderDecision.NO_ACTION

        self.has_shown_reminder_for_current_context = True
        return ReminderDecision.NOTIFY

    def snooze(self, until: datetime) -> None:
        # a later snooze replaces the earlier one
        self.snoozed_until = until

    def clear_snooze(self) -> None:
        self.snoozed_until = None

    def is_snoozed(self, now: datetime) -> bool:
        return self.snoozed_until is not None and now < self.snoozed_until

    def state(self, now: datetime) -> ReminderState:
        if self.is_snoozed(now):
            return ReminderState.SNOOZED
        if self.has_shown_reminder_for_current_context:
            return ReminderState.REMINDED
        return ReminderState.IDLE
