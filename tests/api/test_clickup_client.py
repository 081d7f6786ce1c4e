import socket
from unittest.mock import Mock

import pytest
import requests
from urllib3.exceptions import MaxRetryError, NameResolutionError, NewConnectionError

from timer_guard.api.clickup import ClickUpAPIClient, lossy_id
from timer_guard.errors import (
    BadStatusCodeError,
    CannotReachHostError,
    CannotResolveHostError,
    InvalidResponseError,
    MissingTeamIDError,
    MissingUserIDError,
    UnauthorizedError,
)
from timer_guard.model.models import ClickUpIdentity


def make_response(status_code: int = 200, payload=None, json_error: bool = False) -> Mock:
    response = Mock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = requests.JSONDecodeError("bad", "doc", 0)
    else:
        response.json.return_value = payload
    return response


def route(responses: dict[str, Mock]):
    """URL末尾のパスでレスポンスを返し分ける"""

    def _get(url, **_kwargs):
        for suffix, response in responses.items():
            if url.endswith(suffix):
                return response
        msg = f"unexpected url {url}"
        raise AssertionError(msg)

    return _get


class TestClickUpAPIClient:
    """ClickUp APIクライアントのテスト"""

    @pytest.fixture
    def session(self):
        return Mock(spec=requests.Session)

    @pytest.fixture
    def client(self, session):
        return ClickUpAPIClient(base_url="https://api.clickup.com/api/v2/", session=session)

    def test_initialization(self, client):
        assert client.base_url == "https://api.clickup.com/api/v2"
        assert client.host == "api.clickup.com"
        assert client.timeout == 15.0

    def test_running_timer_request(self, client, session):
        session.get.return_value = make_response(payload={"data": {"id": "123"}})

        assert client.has_running_timer("pk_token", ClickUpIdentity("9001", "42")) is True

        session.get.assert_called_once_with(
            "https://api.clickup.com/api/v2/team/9001/time_entries/current",
            headers={"Authorization": "pk_token", "Accept": "application/json"},
            params={"assignee": "42"},
            timeout=15.0,
        )

    @pytest.mark.parametrize(
        ("payload", "expected"),
        [({"data": None}, False), ({}, False), ({"data": {"id": 77}}, True)],
    )
    def test_decode_running_timer(self, payload, expected):
        assert ClickUpAPIClient.decode_has_running_timer(payload) is expected

    @pytest.mark.parametrize("payload", [[], "x", {"data": {"duration": 1}}, {"data": 5}])
    def test_decode_running_timer_invalid(self, payload):
        with pytest.raises(InvalidResponseError):
            ClickUpAPIClient.decode_has_running_timer(payload)

    def test_identity_overrides_skip_network(self, client, session):
        identity = client.resolve_identity("pk", " 9001 ", "42")

        assert identity == ClickUpIdentity("9001", "42")
        session.get.assert_not_called()

    def test_identity_from_profile(self, client, session):
        session.get.side_effect = route(
            {
                "/user": make_response(payload={"user": {"id": 42, "teams": [{"id": "555"}]}}),
                "/team": make_response(payload={"teams": [{"id": "666"}]}),
            }
        )

        assert client.resolve_identity("pk") == ClickUpIdentity("555", "42")

    def test_identity_nested_profile_team(self, client, session):
        session.get.side_effect = route(
            {
                "/user": make_response(
                    payload={"user": {"id": "42", "teams": [{"team": {"id": 321}}]}}
                ),
                "/team": make_response(payload={"teams": []}),
            }
        )

        assert client.resolve_identity("pk").team_id == "321"

    def test_identity_team_endpoint_fallback(self, client, session):
        session.get.side_effect = route(
            {
                "/user": make_response(payload={"user": {"id": 42}}),
                "/team": make_response(payload={"teams": [{"id": 666}]}),
            }
        )

        assert client.resolve_identity("pk") == ClickUpIdentity("666", "42")

    def test_identity_partial_override(self, client, session):
        session.get.side_effect = route(
            {
                "/user": make_response(payload={"user": {"id": 42, "teams": [{"id": "555"}]}}),
                "/team": make_response(payload={"teams": [{"id": "666"}]}),
            }
        )

        assert client.resolve_identity("pk", "111", "") == ClickUpIdentity("111", "42")

    def test_identity_missing_user(self, client, session):
        session.get.side_effect = route(
            {
                "/user": make_response(payload={"user": None}),
                "/team": make_response(payload={"teams": [{"id": "666"}]}),
            }
        )

        with pytest.raises(MissingUserIDError):
            client.resolve_identity("pk")

    def test_identity_missing_team(self, client, session):
        session.get.side_effect = route(
            {
                "/user": make_response(payload={"user": {"id": 42}}),
                "/team": make_response(payload={"teams": []}),
            }
        )

        with pytest.raises(MissingTeamIDError):
            client.resolve_identity("pk")

    def test_unauthorized(self, client, session):
        session.get.return_value = make_response(status_code=401, payload={})

        with pytest.raises(UnauthorizedError) as exc_info:
            client.has_running_timer("pk", ClickUpIdentity("1", "2"))
        assert exc_info.value.status_code == 401

    def test_bad_status(self, client, session):
        session.get.return_value = make_response(status_code=503, payload={})

        with pytest.raises(BadStatusCodeError, match="HTTP 503"):
            client.has_running_timer("pk", ClickUpIdentity("1", "2"))

    def test_invalid_json(self, client, session):
        session.get.return_value = make_response(json_error=True)

        with pytest.raises(InvalidResponseError):
            client.has_running_timer("pk", ClickUpIdentity("1", "2"))

    def test_name_resolution_failure(self, client, session):
        """DNS解決失敗は CannotResolveHostError に分類"""
        dns_error = NameResolutionError("api.clickup.com", Mock(), socket.gaierror(-2, "Name or service not known"))
        wrapped = MaxRetryError(Mock(), "/api/v2/user", reason=dns_error)
        session.get.side_effect = requests.exceptions.ConnectionError(wrapped)

        with pytest.raises(CannotResolveHostError) as exc_info:
            client.resolve_identity("pk")
        assert "Could not resolve api.clickup.com" in str(exc_info.value)

    def test_connection_refused(self, client, session):
        refused = NewConnectionError(Mock(), "Connection refused")
        wrapped = MaxRetryError(Mock(), "/api/v2/user", reason=refused)
        session.get.side_effect = requests.exceptions.ConnectionError(wrapped)

        with pytest.raises(CannotReachHostError):
            client.resolve_identity("pk")

    def test_timeout(self, client, session):
        session.get.side_effect = requests.exceptions.ReadTimeout("slow")

        with pytest.raises(CannotReachHostError, match="Could not connect"):
            client.has_running_timer("pk", ClickUpIdentity("1", "2"))

    @pytest.mark.asyncio
    async def test_async_wrapper(self, client, session):
        session.get.return_value = make_response(payload={"data": None})

        assert await client.has_running_timer_async("pk", ClickUpIdentity("1", "2")) is False

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("12", "12"), (12, "12"), (True, None), (None, None), (1.5, None)],
    )
    def test_lossy_id(self, value, expected):
        assert lossy_id(value) == expected
