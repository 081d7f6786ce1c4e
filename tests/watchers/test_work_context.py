from timer_guard.config.settings import AppSettings
from timer_guard.watchers.work_context import evaluate_work_context


class TestWorkContext:
    """作業コンテキスト判定のテスト"""

    def test_active_in_work_app(self, activity, foreground):
        context = evaluate_work_context(activity, foreground, AppSettings())

        assert context.frontmost_app_id == "Code.exe"
        assert context.is_active is True

    def test_idle_user_is_not_working(self, activity, foreground):
        activity.active = False

        context = evaluate_work_context(activity, foreground, AppSettings())

        assert context.is_work_app is True
        assert context.is_active is False

    def test_non_work_app(self, activity, foreground):
        foreground.app_id = "spotify.exe"

        assert evaluate_work_context(activity, foreground, AppSettings()).is_active is False

    def test_missing_frontmost_never_matches(self, activity, foreground):
        foreground.app_id = None
        settings = AppSettings(work_app_ids_raw="-\nCode.exe")

        context = evaluate_work_context(activity, foreground, settings)

        assert context.frontmost_app_id == "-"
        assert context.is_active is False

    def test_window_comes_from_settings(self, activity, foreground):
        evaluate_work_context(activity, foreground, AppSettings(activity_window_seconds=30))

        assert activity.windows == [30]
