"""Polling scheduler that ties activity, ClickUp status and reminders together.

One background task runs :meth:`GuardController.run_check` and then sleeps for
``max(15, poll_interval_seconds)``, re-reading the interval every iteration.
All cycles, including on-demand ones, are serialized through one lock so the
reminder engine only ever has a single writer.
"""

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from datetime import datetime, time, timedelta

from timer_guard.api.clickup import ClickUpAPIClient
from timer_guard.config.settings import AppSettings, SettingsStore
from timer_guard.core.reminder_engine import ReminderEngine
from timer_guard.core.token_store import SecureTokenStore
from timer_guard.errors import GuardError, NotificationDeliveryError
from timer_guard.logger import logger
from timer_guard.model.models import (
    FRONTMOST_SENTINEL,
    ClickUpIdentity,
    GuardStatus,
    ReminderDecision,
    ReminderInput,
)
from timer_guard.ui.notifications import (
    MISSING_TIMER_BODY,
    MISSING_TIMER_TITLE,
    TEST_BODY,
    TEST_TITLE,
    NotificationService,
)
from timer_guard.watchers.active_window import ForegroundAppMonitor
from timer_guard.watchers.idle import ActivityMonitor
from timer_guard.watchers.work_context import evaluate_work_context

FRONTMOST_POLL_SECONDS = 1.0
NO_TOKEN_MESSAGE = "No ClickUp token configured"

StatusListener = Callable[[GuardStatus], None]


def format_clock(value: datetime) -> str:
    return value.strftime("%H:%M")


def remaining_snooze_label(until: datetime, now: datetime) -> str:
    """残り時間を "1h 30m" / "2h" / "5m" 形式で返す（最小 1m）."""
    remaining = max(0, int((until - now).total_seconds()))
    if remaining >= 3600:
        hours = remaining // 3600
        minutes = (remaining % 3600) // 60
        if minutes == 0:
            return f"{hours}h"
        return f"{hours}h {minutes}m"
    minutes = max(1, remaining // 60)
    return f"{minutes}m"


class GuardController:
    """タイマー未開始リマインダーの司令塔."""

    def __init__(
        self,
        settings_store: SettingsStore | None = None,
        activity_monitor: ActivityMonitor | None = None,
        foreground_monitor: ForegroundAppMonitor | None = None,
        clickup_client: ClickUpAPIClient | None = None,
        token_store: SecureTokenStore | None = None,
        reminder_engine: ReminderEngine | None = None,
        notifier: NotificationService | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings_store = settings_store or SettingsStore()
        self.activity_monitor = activity_monitor or ActivityMonitor()
        self.foreground_monitor = foreground_monitor or ForegroundAppMonitor()
        self.clickup_client = clickup_client or ClickUpAPIClient()
        self.token_store = token_store or SecureTokenStore()
        self.reminder_engine = reminder_engine or ReminderEngine()
        self.notifier = notifier or NotificationService()
        self.clock = clock
        self._sleep = sleep

        self.status = GuardStatus()
        self._listeners: list[StatusListener] = []
        self._check_lock = asyncio.Lock()
        self._scheduler_task: asyncio.Task[None] | None = None
        self._frontmost_task: asyncio.Task[None] | None = None

        try:
            self.status.has_token = bool(self.token_store.load_token())
        except GuardError as e:
            self.status.last_error_message = str(e)

    @property
    def settings(self) -> AppSettings:
        return self.settings_store.settings

    # ------------------------------------------------------------------
    # Status publishing
    def snapshot(self) -> GuardStatus:
        return dataclasses.replace(self.status)

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # ------------------------------------------------------------------
    # Scheduler lifecycle
    @property
    def is_running(self) -> bool:
        return self._scheduler_task is not None and not self._scheduler_task.done()

    def effective_interval(self) -> float:
        return self.settings.effective_poll_interval

    async def start(self) -> None:
        """Start (or restart) the poll loop; the first cycle runs immediately."""
        await self.stop()
        self.foreground_monitor.add_listener(self._on_frontmost_changed)
        loop = asyncio.get_running_loop()
        self._frontmost_task = loop.create_task(self._watch_frontmost())
        self._scheduler_task = loop.create_task(self._run_loop())
        logger.info(f"スケジューラを開始 (間隔: {self.effective_interval()}秒)")

    async def stop(self) -> None:
        self.foreground_monitor.remove_listener(self._on_frontmost_changed)
        tasks = [t for t in (self._scheduler_task, self._frontmost_task) if t]
        self._scheduler_task = None
        self._frontmost_task = None
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"バックグラウンドタスクが異常終了: {result!r}")
        if tasks:
            logger.info("スケジューラを停止しました")

    async def check_now(self) -> GuardStatus:
        """Run one extra cycle without touching the background loop's sleep."""
        await self.run_check()
        return self.snapshot()

    async def _run_loop(self) -> None:
        while True:
            await self.run_check()
            await self._sleep(self.effective_interval())

    async def _watch_frontmost(self) -> None:
        while True:
            try:
                self.foreground_monitor.poll()
            except Exception:
                logger.exception("前面アプリの取得に失敗")
            await asyncio.sleep(FRONTMOST_POLL_SECONDS)

    def _on_frontmost_changed(self, _app_id: str | None) -> None:
        self._refresh_frontmost_state()
        self._publish()

    # ------------------------------------------------------------------
    # One cycle
    async def run_check(self) -> None:
        async with self._check_lock:
            await self._run_check_locked()

    async def _run_check_locked(self) -> None:
        self.status.last_error_message = None
        now = self.clock()
        self._refresh_snooze_state(now)

        try:
            self._refresh_frontmost_state()
            token = self.token_store.load_token()
            self.status.has_token = bool(token)
            if not token:
                self.status.is_timer_running = False
                self.status.last_check_description = NO_TOKEN_MESSAGE
                logger.info(NO_TOKEN_MESSAGE)
                return

            identity = await self._resolve_and_apply_identity(token)
            running = await self.clickup_client.has_running_timer_async(
                token, identity
            )
            self.status.is_timer_running = running

            decision = self.reminder_engine.evaluate(
                ReminderInput(
                    is_active_work_context=self.status.is_active_work_context,
                    timer_running=running,
                ),
                now,
            )
            logger.info(
                f"check: app={self.status.current_frontmost_app_id} "
                f"active={self.status.is_active_work_context} "
                f"timer={running} decision={decision.value}"
            )
            if decision is ReminderDecision.NOTIFY:
                await self._send_notification(MISSING_TIMER_TITLE, MISSING_TIMER_BODY)

            self.status.last_check_description = f"Last check: {format_clock(now)}"
        except GuardError as e:
            self._record_failure(now, e)
        except Exception as e:
            logger.exception("チェック中に予期しないエラー")
            self._record_failure(now, e)
        finally:
            self._publish()

    def _record_failure(self, now: datetime, error: Exception) -> None:
        logger.warning(f"チェック失敗: {error}")
        self.status.last_error_message = str(error)
        self.status.last_check_description = f"Last check failed: {format_clock(now)}"

    async def _resolve_and_apply_identity(self, token: str) -> ClickUpIdentity:
        identity = await self.clickup_client.resolve_identity_async(
            token,
            self.settings.clickup_team_id,
            self.settings.clickup_user_id,
        )
        self.status.identity_description = identity.describe()
        # ユーザーが入力した値は上書きしない
        self.settings_store.fill_identity(identity.team_id, identity.user_id)
        return identity

    async def _send_notification(self, title: str, body: str) -> None:
        try:
            await asyncio.to_thread(self.notifier.present, title, body)
        except NotificationDeliveryError as e:
            logger.warning(f"通知失敗: {e}")
            self.status.last_error_message = str(e)
        else:
            logger.info(f"通知を送信: {title}")

    def _refresh_frontmost_state(self) -> None:
        context = evaluate_work_context(
            self.activity_monitor, self.foreground_monitor, self.settings
        )
        self.status.current_frontmost_app_id = context.frontmost_app_id
        self.status.is_active_work_context = context.is_active

    def _refresh_snooze_state(self, now: datetime | None = None) -> None:
        now = now or self.clock()
        snoozed_until = self.reminder_engine.snoozed_until
        self.status.snoozed_until = snoozed_until
        if snoozed_until is not None and now < snoozed_until:
            self.status.is_snooze_active = True
            label = remaining_snooze_label(snoozed_until, now)
            self.status.clear_snooze_title = f"Clear Snooze ({label})"
        else:
            self.status.is_snooze_active = False
            self.status.clear_snooze_title = "Clear Snooze"

    # ------------------------------------------------------------------
    # Snooze
    def snooze_minutes(self, minutes: int) -> datetime:
        until = self.clock() + timedelta(minutes=minutes)
        self._apply_snooze(until, f"Snoozed until {format_clock(until)}")
        return until

    def snooze_hours(self, hours: int) -> datetime:
        until = self.clock() + timedelta(hours=hours)
        self._apply_snooze(until, f"Snoozed until {format_clock(until)}")
        return until

    def snooze_rest_of_day(self) -> datetime:
        now = self.clock()
        until = datetime.combine(now.date() + timedelta(days=1), time.min, now.tzinfo)
        self._apply_snooze(until, "Snoozed until end of day")
        return until

    def _apply_snooze(self, until: datetime, description: str) -> None:
        self.reminder_engine.snooze(until)
        self._refresh_snooze_state()
        self.status.last_check_description = description
        logger.info(description)
        self._publish()

    def clear_snooze(self) -> None:
        self.reminder_engine.clear_snooze()
        self._refresh_snooze_state()
        self._publish()

    # ------------------------------------------------------------------
    # Settings / credentials
    def add_current_frontmost_app_to_work_context(self) -> bool:
        app_id = (
            self.foreground_monitor.frontmost_app_id()
            or self.status.current_frontmost_app_id
        ).strip()

        if not app_id or app_id == FRONTMOST_SENTINEL:
            self.status.last_error_message = "No active app identifier is available."
            self._publish()
            return False

        added = self.settings_store.add_work_app_id(app_id)
        if added:
            self.status.last_error_message = None
            self.status.last_check_description = f"Added {app_id} to work app IDs"
        else:
            self.status.last_check_description = f"{app_id} is already in work app IDs"
        self._refresh_frontmost_state()
        self._publish()
        return added

    def persist_token(self, token: str) -> bool:
        try:
            self.token_store.save_token(token.strip())
        except GuardError as e:
            self.status.last_error_message = str(e)
            self._publish()
            return False
        self.status.has_token = bool(token.strip())
        self.status.last_error_message = None
        self._publish()
        return True

    def delete_token(self) -> bool:
        try:
            self.token_store.delete_token()
        except GuardError as e:
            self.status.last_error_message = str(e)
            self._publish()
            return False
        self.status.has_token = False
        self.status.last_error_message = None
        self._publish()
        return True

    async def load_identity(self) -> ClickUpIdentity | None:
        self.status.last_error_message = None
        self.status.identity_description = "Resolving..."
        try:
            token = self.token_store.load_token()
            if not token:
                self.status.identity_description = "Not resolved"
                self.status.last_error_message = NO_TOKEN_MESSAGE
                return None
            identity = await self._resolve_and_apply_identity(token)
        except GuardError as e:
            self.status.identity_description = "Not resolved"
            self.status.last_error_message = str(e)
            return None
        else:
            self.status.last_check_description = (
                f"Identity loaded: {format_clock(self.clock())}"
            )
            return identity
        finally:
            self._publish()

    async def send_test_notification(self) -> None:
        self.status.last_error_message = None
        await self._send_notification(TEST_TITLE, TEST_BODY)
        self.status.last_check_description = (
            f"Sent test notification at {format_clock(self.clock())}"
        )
        self._publish()
