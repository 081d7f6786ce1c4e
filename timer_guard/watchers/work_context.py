from timer_guard.config.settings import AppSettings
from timer_guard.model.models import FRONTMOST_SENTINEL, WorkContext
from timer_guard.watchers.active_window import ForegroundAppMonitor
from timer_guard.watchers.idle import ActivityMonitor


def evaluate_work_context(
    activity: ActivityMonitor,
    foreground: ForegroundAppMonitor,
    settings: AppSettings,
) -> WorkContext:
    """入力があり、かつ前面アプリが作業用アプリなら作業中とみなす.

    Window and work-app set are read from ``settings`` on every call.
    """
    frontmost = foreground.frontmost_app_id() or FRONTMOST_SENTINEL
    recently_active = activity.is_user_recently_active(
        settings.activity_window_seconds
    )
    return WorkContext(
        frontmost_app_id=frontmost,
        recently_active=recently_active,
        is_work_app=frontmost in settings.work_app_ids,
    )
