"""FastAPI app exposing Timer Guard controls (status, snooze, token, settings)."""

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ValidationError, field_validator, model_validator

from timer_guard.config.settings import load_local_env
from timer_guard.core.guard_controller import GuardController
from timer_guard.core.updater import AppUpdater
from timer_guard.logger import logger
from timer_guard.model.models import GuardStatus

# グローバルな状態管理
STATE: dict[str, Any] = {
    "controller": None,
    "updater": None,
    "logs": deque(maxlen=100),  # ログを保存 (最大100件)
}

# --- ロギング ---


def log_message(message: str) -> None:
    """ロガーに出力し、ログキューにも追加する."""
    logger.info(message)
    STATE["logs"].append(message)


def _record_status(status: GuardStatus) -> None:
    line = status.last_check_description
    if status.last_error_message:
        line = f"{line} | error={status.last_error_message}"
    if not STATE["logs"] or STATE["logs"][-1] != line:
        STATE["logs"].append(line)


def create_controller() -> GuardController:
    load_local_env()
    controller = GuardController()
    controller.add_status_listener(_record_status)
    return controller


# --- アプリケーションのライフサイクル ---


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """起動時にスケジューラを開始し、終了時に停止する."""
    if STATE["controller"] is None:
        STATE["controller"] = create_controller()
    if STATE["updater"] is None:
        STATE["updater"] = AppUpdater()
    controller: GuardController = STATE["controller"]
    await controller.start()
    log_message("Timer Guard started")
    try:
        yield
    finally:
        await controller.stop()
        log_message("Timer Guard stopped")


app = FastAPI(
    title="ClickUp Timer Guard",
    description="Reminds you to start a ClickUp timer while you work",
    lifespan=lifespan,
)


# --- Pydanticモデル定義 ---


class SnoozeRequest(BaseModel):
    """スヌーズ要求。minutes / hours / rest_of_day のいずれか1つ."""

    minutes: int | None = None
    hours: int | None = None
    rest_of_day: bool = False

    @field_validator("minutes", "hours")
    @classmethod
    def must_be_positive(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            msg = "snooze length must be positive"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def exactly_one_choice(self) -> "SnoozeRequest":
        chosen = [self.minutes is not None, self.hours is not None, self.rest_of_day]
        if sum(chosen) != 1:
            msg = "choose exactly one of minutes, hours, rest_of_day"
            raise ValueError(msg)
        return self


class TokenUpdate(BaseModel):
    token: str

    @field_validator("token")
    @classmethod
    def token_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            msg = "token must not be empty"
            raise ValueError(msg)
        return v.strip()


class SettingsUpdate(BaseModel):
    poll_interval_seconds: float | None = None
    activity_window_seconds: float | None = None
    work_app_ids_raw: str | None = None
    clickup_team_id: str | None = None
    clickup_user_id: str | None = None


def _controller() -> GuardController:
    controller: GuardController | None = STATE["controller"]
    if controller is None:
        raise HTTPException(status_code=503, detail="Controller not running")
    return controller


def _status_payload(controller: GuardController) -> dict[str, Any]:
    status = asdict(controller.snapshot())
    if status["snoozed_until"] is not None:
        status["snoozed_until"] = status["snoozed_until"].isoformat()
    status["scheduler_running"] = controller.is_running
    status["poll_interval_seconds"] = controller.effective_interval()
    return status


# --- APIエンドポイント定義 ---


@app.get("/status")
async def get_status() -> dict[str, Any]:
    """現在の状態を取得する."""
    return _status_payload(_controller())


@app.post("/check")
async def check_now() -> dict[str, Any]:
    """定期チェックとは別に1回チェックを実行する."""
    controller = _controller()
    await controller.check_now()
    return _status_payload(controller)


@app.post("/snooze")
async def snooze(req: SnoozeRequest) -> dict[str, Any]:
    controller = _controller()
    if req.minutes is not None:
        until = controller.snooze_minutes(req.minutes)
    elif req.hours is not None:
        until = controller.snooze_hours(req.hours)
    else:
        until = controller.snooze_rest_of_day()
    log_message(f"Snoozed until {until.isoformat()}")
    return {"ok": True, "snoozed_until": until.isoformat()}


@app.post("/snooze/clear")
async def clear_snooze() -> dict[str, Any]:
    controller = _controller()
    controller.clear_snooze()
    log_message("Snooze cleared")
    return _status_payload(controller)


@app.put("/token")
async def put_token(req: TokenUpdate) -> dict[str, Any]:
    controller = _controller()
    ok = controller.persist_token(req.token)
    if not ok:
        raise HTTPException(status_code=500, detail=controller.status.last_error_message)
    log_message("Token saved")
    return {"ok": True}


@app.delete("/token")
async def delete_token() -> dict[str, Any]:
    controller = _controller()
    ok = controller.delete_token()
    if not ok:
        raise HTTPException(status_code=500, detail=controller.status.last_error_message)
    log_message("Token deleted")
    return {"ok": True}


@app.post("/identity/load")
async def load_identity() -> dict[str, Any]:
    controller = _controller()
    identity = await controller.load_identity()
    if identity is None:
        raise HTTPException(status_code=502, detail=controller.status.last_error_message)
    return {"ok": True, "team_id": identity.team_id, "user_id": identity.user_id}


@app.get("/settings")
async def get_settings() -> dict[str, Any]:
    settings = _controller().settings
    return {**settings.model_dump(), "work_app_ids": sorted(settings.work_app_ids)}


@app.put("/settings")
async def put_settings(req: SettingsUpdate) -> dict[str, Any]:
    controller = _controller()
    changes = req.model_dump(exclude_none=True)
    try:
        settings = controller.settings_store.update(**changes)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    log_message(f"Settings updated: {sorted(changes)}")
    return {**settings.model_dump(), "work_app_ids": sorted(settings.work_app_ids)}


@app.post("/work-apps/current")
async def add_current_work_app() -> dict[str, Any]:
    controller = _controller()
    added = controller.add_current_frontmost_app_to_work_context()
    return {"ok": True, "added": added, **_status_payload(controller)}


@app.post("/notifications/test")
async def send_test_notification() -> dict[str, Any]:
    controller = _controller()
    await controller.send_test_notification()
    return _status_payload(controller)


@app.post("/updates/check")
async def check_for_updates() -> dict[str, Any]:
    updater: AppUpdater | None = STATE["updater"]
    if updater is None:
        raise HTTPException(status_code=503, detail="Updater not available")
    has_update = await asyncio.to_thread(updater.check_for_updates)
    return {
        "has_update": has_update,
        "status": updater.update_status,
        "latest_release_url": updater.latest_release_url,
        "current_version": updater.installed_version,
    }


@app.get("/api/logs")
async def get_logs() -> dict[str, Any]:
    return {"logs": list(STATE["logs"])}
