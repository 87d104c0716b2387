"""Tests for the engine REST client; the HTTP session is replaced by a mock."""

from unittest.mock import MagicMock

import pytest
import requests

from engine_test_executor.config import ExecutorConfig
from engine_test_executor.engine_client import CSRF_HEADER, EngineClient
from engine_test_executor.exceptions import ConfigError, EngineError, PollTransportError, SubmissionError


def _response(status_code=200, reason="OK", headers=None, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.headers = headers or {}
    response.content = b"" if body is None else b"{}"
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def client():
    c = EngineClient("https://engine:8444/", "admin", "secret", timeout=3)
    c.session = MagicMock()
    return c


class TestSession:
    def test_auth_and_tls(self):
        c = EngineClient("https://engine:8444", "admin", "secret")
        assert c.session.auth == ("admin", "secret")
        assert c.session.verify is False
        assert c.session.headers["Accept"] == "application/json"

    def test_anonymous(self):
        c = EngineClient("https://engine:8444", verify_tls=True)
        assert c.session.auth is None
        assert c.session.verify is True

    def test_from_config_requires_url(self):
        with pytest.raises(ConfigError):
            EngineClient.from_config(ExecutorConfig())

    def test_csrf_token_is_sent_back(self, client):
        assert client._headers() == {}
        client._remember_csrf(_response(headers={CSRF_HEADER: "tok-1"}))
        client._remember_csrf(_response(headers={}))
        assert client._headers() == {CSRF_HEADER: "tok-1"}


class TestSubmitTest:
    def test_accepted_with_relative_location(self, client):
        client.session.post.return_value = _response(202, "Accepted", headers={"Location": "/api/test/status/abc"})

        location = client.submit_test("10")

        assert location == "https://engine:8444/api/test/status/abc"
        client.session.post.assert_called_once_with("https://engine:8444/api/test/10", headers={}, timeout=3)

    def test_absolute_location_is_kept(self, client):
        client.session.post.return_value = _response(202, headers={"Location": "https://other:9000/s/1"})
        assert client.submit_test("10") == "https://other:9000/s/1"

    def test_rejected(self, client):
        client.session.post.return_value = _response(404, "Not Found")

        with pytest.raises(SubmissionError, match="Unexpected response status: 404 Not Found"):
            client.submit_test("10")

    def test_missing_location(self, client):
        client.session.post.return_value = _response(202, "Accepted")

        with pytest.raises(SubmissionError, match="location"):
            client.submit_test("10")

    def test_connection_failure(self, client):
        client.session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(SubmissionError, match="refused"):
            client.submit_test("10")


class TestCheckStatus:
    def test_completed(self, client):
        client.session.get.return_value = _response(body={"state": "COMPLETED", "results": []})
        assert client.check_status("https://engine:8444/s/1") == {"state": "COMPLETED", "results": []}

    def test_engine_error_message(self, client):
        client.session.get.return_value = _response(
            500, "Server Error", headers={"Content-Type": "application/json;charset=UTF-8"},
            body={"error": {"messages": ["Route is stopped", "other"]}},
        )

        with pytest.raises(PollTransportError, match="^Error: Route is stopped$"):
            client.check_status("https://engine:8444/s/1")

    def test_non_json_error(self, client):
        client.session.get.return_value = _response(503, "Service Unavailable", headers={"Content-Type": "text/html"})

        with pytest.raises(PollTransportError, match="^Unexpected status response: 503 Service Unavailable$"):
            client.check_status("https://engine:8444/s/1")

    def test_json_error_without_messages(self, client):
        client.session.get.return_value = _response(
            500, "Server Error", headers={"Content-Type": "application/json"}, body={"error": {}},
        )

        with pytest.raises(PollTransportError, match="Unexpected status response: 500"):
            client.check_status("https://engine:8444/s/1")

    def test_invalid_json(self, client):
        client.session.get.return_value = _response(body=ValueError("Expecting value"))

        with pytest.raises(PollTransportError, match="not valid JSON"):
            client.check_status("https://engine:8444/s/1")

    def test_not_an_object(self, client):
        client.session.get.return_value = _response(body=["COMPLETED"])

        with pytest.raises(PollTransportError, match="not a JSON object"):
            client.check_status("https://engine:8444/s/1")

    def test_timeout(self, client):
        client.session.get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(PollTransportError, match="read timed out"):
            client.check_status("https://engine:8444/s/1")


    def test_timeout_is_capped_by_client_timeout(self, client):
        client.session.get.return_value = _response(body={"state": "RUNNING"})

        client.check_status("https://engine:8444/s/1", timeout=0.3)
        client.check_status("https://engine:8444/s/1", timeout=30)
        client.check_status("https://engine:8444/s/1")

        assert [c.kwargs["timeout"] for c in client.session.get.call_args_list] == [0.3, 3, 3]


class TestGetComponents:
    def test_tree(self, client):
        client.session.get.return_value = _response(body={"data": {"childComponents": []}})
        assert client.get_components() == {"data": {"childComponents": []}}
        assert client.session.get.call_args[0][0] == "https://engine:8444/api/components"

    def test_failure(self, client):
        client.session.get.return_value = _response(401, "Unauthorized")

        with pytest.raises(EngineError, match="401 Unauthorized"):
            client.get_components()
