"""ClickUp REST API client: running-timer lookup and identity resolution."""

import asyncio
import os
import socket
from typing import Any
from urllib.parse import urlsplit

import requests
from urllib3.exceptions import NameResolutionError

from timer_guard.errors import (
    BadStatusCodeError,
    CannotReachHostError,
    CannotResolveHostError,
    ClickUpAPIError,
    InvalidResponseError,
    MissingTeamIDError,
    MissingUserIDError,
    UnauthorizedError,
)
from timer_guard.model.models import ClickUpIdentity

DEFAULT_BASE_URL = "https://api.clickup.com/api/v2"
HTTP_UNAUTHORIZED = 401
HTTP_OK_MIN = 200
HTTP_OK_MAX = 300


def lossy_id(value: Any) -> str | None:
    """IDは文字列でも整数でも来るので文字列に揃える."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    return None


def normalized_or_fallback(value: str | None, fallback: str | None) -> str | None:
    normalized = value.strip() if value else ""
    if normalized:
        return normalized
    return fallback


def _is_name_resolution_failure(error: BaseException) -> bool:
    """Walk the urllib3/requests wrapping chain looking for a DNS failure."""
    seen: set[int] = set()
    pending: list[BaseException] = [error]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, NameResolutionError | socket.gaierror):
            return True
        candidates = [
            getattr(current, "reason", None),
            current.__cause__,
            current.__context__,
            *current.args,
        ]
        pending.extend(c for c in candidates if isinstance(c, BaseException))
    return False


class ClickUpAPIClient:
    """ClickUp API v2 クライアント."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        """初期化

        Args:
            base_url: APIのベースURL（未指定なら CLICKUP_API_URL か既定値）
            timeout: リクエストごとのタイムアウト(秒)
            session: 共有する requests セッション

        """
        resolved = base_url or os.getenv("CLICKUP_API_URL") or DEFAULT_BASE_URL
        self.base_url = resolved.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.host = urlsplit(self.base_url).hostname or "ClickUp API host"

    # ------------------------------------------------------------------
    # Public API
    def has_running_timer(self, token: str, identity: ClickUpIdentity) -> bool:
        data = self._get(
            f"team/{identity.team_id}/time_entries/current",
            token,
            params={"assignee": identity.user_id},
        )
        return self.decode_has_running_timer(data)

    def resolve_identity(
        self,
        token: str,
        preferred_team_id: str | None = None,
        preferred_user_id: str | None = None,
    ) -> ClickUpIdentity:
        """チームIDとユーザーIDを決定する.

        Both overrides present means no network call at all. Otherwise each
        override still wins over what the API reports for its field.
        """
        manual_team_id = normalized_or_fallback(preferred_team_id, None)
        manual_user_id = normalized_or_fallback(preferred_user_id, None)
        if manual_team_id and manual_user_id:
            return ClickUpIdentity(team_id=manual_team_id, user_id=manual_user_id)

        user = self._fetch_user(token)
        user_id = normalized_or_fallback(manual_user_id, lossy_id(user.get("id")))
        team_from_profile = self._first_profile_team_id(user)
        team_from_endpoint = self._fetch_first_team_id(token)
        team_id = normalized_or_fallback(
            manual_team_id, team_from_profile or team_from_endpoint
        )

        if not user_id:
            raise MissingUserIDError
        if not team_id:
            raise MissingTeamIDError
        return ClickUpIdentity(team_id=team_id, user_id=user_id)

    async def has_running_timer_async(
        self, token: str, identity: ClickUpIdentity
    ) -> bool:
        return await asyncio.to_thread(self.has_running_timer, token, identity)

    async def resolve_identity_async(
        self,
        token: str,
        preferred_team_id: str | None = None,
        preferred_user_id: str | None = None,
    ) -> ClickUpIdentity:
        return await asyncio.to_thread(
            self.resolve_identity, token, preferred_team_id, preferred_user_id
        )

    # ------------------------------------------------------------------
    # Decoding
    @staticmethod
    def decode_has_running_timer(payload: Any) -> bool:
        if not isinstance(payload, dict):
            raise InvalidResponseError
        entry = payload.get("data")
        if entry is None:
            return False
        if not isinstance(entry, dict) or lossy_id(entry.get("id")) is None:
            raise InvalidResponseError
        return True

    @staticmethod
    def _first_profile_team_id(user: dict[str, Any]) -> str | None:
        teams = user.get("teams")
        if not isinstance(teams, list) or not teams:
            return None
        first = teams[0]
        if not isinstance(first, dict):
            return None
        direct = lossy_id(first.get("id"))
        if direct is not None:
            return direct
        nested = first.get("team")
        if isinstance(nested, dict):
            return lossy_id(nested.get("id"))
        return None

    def _fetch_user(self, token: str) -> dict[str, Any]:
        payload = self._get("user", token)
        if not isinstance(payload, dict):
            raise InvalidResponseError
        user = payload.get("user")
        return user if isinstance(user, dict) else {}

    def _fetch_first_team_id(self, token: str) -> str | None:
        payload = self._get("team", token)
        if not isinstance(payload, dict) or not isinstance(payload.get("teams"), list):
            raise InvalidResponseError
        teams = payload["teams"]
        if not teams or not isinstance(teams[0], dict):
            return None
        return lossy_id(teams[0].get("id"))

    # ------------------------------------------------------------------
    # Transport
    def _get(
        self, path: str, token: str, params: dict[str, str] | None = None
    ) -> Any:
        url = f"{self.base_url}/{path}"
        headers = {"Authorization": token, "Accept": "application/json"}
        try:
            response = self.session.get(
                url, headers=headers, params=params, timeout=self.timeout
            )
        except requests.exceptions.ConnectionError as e:
            if _is_name_resolution_failure(e):
                raise CannotResolveHostError(self.host) from e
            raise CannotReachHostError(self.host) from e
        except requests.exceptions.Timeout as e:
            raise CannotReachHostError(self.host) from e
        except requests.RequestException as e:
            msg = f"Request to {self.host} failed: {e}"
            raise ClickUpAPIError(msg) from e

        status_code = int(getattr(response, "status_code", 0))
        if status_code == HTTP_UNAUTHORIZED:
            raise UnauthorizedError(status_code)
        if not HTTP_OK_MIN <= status_code < HTTP_OK_MAX:
            raise BadStatusCodeError(status_code)

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError from e
