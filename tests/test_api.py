"""Tests for the PRTG API primitives."""

import json
from collections.abc import Iterator
from unittest.mock import MagicMock, Mock

import httpx
import pytest
from pytest_httpx import HTTPXMock, IteratorStream

from prtg_datasource import api
from prtg_datasource.api import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    DateParseError,
    DecodeError,
    InvalidQueryError,
    InvalidURL,
    NetworkError,
    PrtgApiAuthError,
    PrtgApiError,
)
from prtg_datasource.const import USER_AGENT
from prtg_datasource.models import Credentials, DataSourceSettings, Endpoint

from .conftest import API_TOKEN, BASE_URL, FakeClock

STATUS_URL = f"{BASE_URL}/api/status.json?apitoken={API_TOKEN}"
HTTP_NOT_FOUND = 404
HTTP_SERVER_ERROR = 500


class TestErrorTaxonomy:
    """Tests for the exception hierarchy."""

    def test_all_errors_share_base(self) -> None:
        """Test that every error is a PrtgApiError."""
        errors = [
            InvalidURL("x"),
            InvalidQueryError("x"),
            NetworkError("x"),
            AuthenticationError("x"),
            AuthorizationError("x"),
            BackendError(500),
            DecodeError("x", "body"),
            DateParseError("x"),
        ]
        for error in errors:
            assert isinstance(error, PrtgApiError)

    def test_auth_errors_share_auth_base(self) -> None:
        """Test that 401 and 403 errors are both auth errors."""
        assert issubclass(AuthenticationError, PrtgApiAuthError)
        assert issubclass(AuthorizationError, PrtgApiAuthError)
        assert not issubclass(BackendError, PrtgApiAuthError)

    def test_backend_error_carries_status(self) -> None:
        """Test that BackendError keeps the status and a default message."""
        error = BackendError(HTTP_SERVER_ERROR)
        assert error.status == HTTP_SERVER_ERROR
        assert str(error) == "Unexpected status code: 500"

    def test_decode_error_carries_snippet(self) -> None:
        """Test that DecodeError keeps the body snippet."""
        error = DecodeError("Failed to decode JSON response", "<html>")
        assert error.snippet == "<html>"
        assert "<html>" in str(error)

    def test_date_parse_error_names_value(self) -> None:
        """Test that DateParseError names the offending string."""
        error = DateParseError("not-a-date")
        assert error.value == "not-a-date"
        assert str(error) == "Failed to parse time 'not-a-date'"


class TestBuildUrl:
    """Tests for build_url function."""

    def test_token_auth(self) -> None:
        """Test that the API token is the only auth parameter."""
        url = api.build_url(BASE_URL, Endpoint.STATUS, Credentials(api_token="tok"))
        assert url == f"{BASE_URL}/api/status.json?apitoken=tok"

    def test_password_auth(self) -> None:
        """Test that username and password are sent in user mode."""
        credentials = Credentials(username="admin", password="secret")
        url = httpx.URL(api.build_url(BASE_URL, Endpoint.STATUS, credentials))
        assert url.params["username"] == "admin"
        assert url.params["password"] == "secret"
        assert "passhash" not in url.params
        assert "apitoken" not in url.params

    def test_passhash_auth(self) -> None:
        """Test that the password hash is sent instead of the password."""
        credentials = Credentials(username="admin", passhash="12345")
        url = httpx.URL(api.build_url(BASE_URL, Endpoint.STATUS, credentials))
        assert url.params["passhash"] == "12345"
        assert "password" not in url.params

    def test_auth_params_come_first(self) -> None:
        """Test that auth parameters precede endpoint parameters."""
        url = api.build_url(
            BASE_URL,
            Endpoint.SENSORS,
            Credentials(api_token="tok"),
            {"content": "sensors", "count": "50000"},
        )
        assert url.startswith(
            f"{BASE_URL}/api/table.json?apitoken=tok&content=sensors&count=50000"
        )

    def test_caller_cannot_override_auth(self) -> None:
        """Test that a caller supplied auth parameter is dropped."""
        url = httpx.URL(
            api.build_url(
                BASE_URL,
                Endpoint.CHANNEL_VALUES,
                Credentials(api_token="tok"),
                {"apitoken": "evil", "username": "mallory", "id": "5"},
            )
        )
        assert url.params.get_list("apitoken") == ["tok"]
        assert "username" not in url.params
        assert url.params["id"] == "5"

    def test_base_path_is_kept(self) -> None:
        """Test that a base URL with a path prefix keeps it."""
        url = api.build_url(
            "https://prtg.example.com/monitoring/",
            Endpoint.STATUS,
            Credentials(api_token="tok"),
        )
        assert url.startswith("https://prtg.example.com/monitoring/api/status.json?")

    def test_endpoint_paths(self) -> None:
        """Test that logical endpoints map to the backend paths."""
        credentials = Credentials(api_token="tok")
        details = api.build_url(
            BASE_URL, Endpoint.SENSOR_DETAILS, credentials, {"id": "1"}
        )
        historic = api.build_url(
            BASE_URL,
            Endpoint.HISTORIC_DATA,
            credentials,
            {"id": "1", "avg": "0", "sdate": "a", "edate": "b"},
        )
        assert httpx.URL(details).path == "/api/getsensordetails.json"
        assert httpx.URL(historic).path == "/api/historicdata.json"

    @pytest.mark.parametrize("base_url", ["ftp://prtg.example.com", "prtg.example.com"])
    def test_invalid_base_url(self, base_url: str) -> None:
        """Test that a non http(s) base URL raises InvalidURL."""
        with pytest.raises(InvalidURL, match="Invalid URL"):
            api.build_url(base_url, Endpoint.STATUS, Credentials(api_token="tok"))

    def test_missing_required_param(self) -> None:
        """Test that a missing required parameter raises InvalidQueryError."""
        with pytest.raises(InvalidQueryError, match="avg"):
            api.build_url(
                BASE_URL,
                Endpoint.HISTORIC_DATA,
                Credentials(api_token="tok"),
                {"id": "1", "sdate": "a", "edate": "b"},
            )

    def test_blank_required_param(self) -> None:
        """Test that a blank id counts as missing."""
        with pytest.raises(InvalidQueryError, match="id"):
            api.build_url(
                BASE_URL,
                Endpoint.SENSOR_DETAILS,
                Credentials(api_token="tok"),
                {"id": "  "},
            )


class TestRedactUrl:
    """Tests for redact_url function."""

    def test_redacts_token(self) -> None:
        """Test that the API token is hidden."""
        redacted = api.redact_url(f"{BASE_URL}/api/status.json?apitoken=secret")
        assert "secret" not in redacted
        assert httpx.URL(redacted).params["apitoken"] == api.REDACTED

    def test_keeps_username_and_params(self) -> None:
        """Test that the username and other parameters stay readable."""
        redacted = api.redact_url(
            f"{BASE_URL}/api/table.json?username=admin&passhash=999&id=7"
        )
        params = httpx.URL(redacted).params
        assert params["username"] == "admin"
        assert params["passhash"] == api.REDACTED
        assert params["id"] == "7"


class TestCreateHeaders:
    """Tests for create_headers function."""

    def test_create_headers(self) -> None:
        """Test that headers carry the user agent and accept both formats."""
        headers = api.create_headers()
        assert headers["user-agent"] == USER_AGENT
        assert "application/json" in headers["accept"]
        assert "text/xml" in headers["accept"]


class TestStatusHelpers:
    """Tests for status classification helpers."""

    def test_is_auth_error(self) -> None:
        """Test that only 401 is an authentication error."""
        assert api.is_auth_error(401)
        assert not api.is_auth_error(403)

    def test_is_forbidden_error(self) -> None:
        """Test that only 403 is a forbidden error."""
        assert api.is_forbidden_error(403)
        assert not api.is_forbidden_error(401)

    def test_validate_status_ok(self) -> None:
        """Test that 200 passes."""
        api.validate_status(200)

    def test_validate_status_unauthorized(self) -> None:
        """Test that 401 raises AuthenticationError."""
        with pytest.raises(AuthenticationError, match="HTTP 401"):
            api.validate_status(401)

    def test_validate_status_forbidden(self) -> None:
        """Test that 403 raises AuthorizationError with a permission hint."""
        with pytest.raises(AuthorizationError, match="verify API token"):
            api.validate_status(403)

    @pytest.mark.parametrize("status", [201, 302, 404, 500, 503])
    def test_validate_status_other(self, status: int) -> None:
        """Test that every other status raises BackendError."""
        with pytest.raises(BackendError) as exc_info:
            api.validate_status(status)
        assert exc_info.value.status == status


class TestCreateSessionClient:
    """Tests for create_session_client function."""

    def test_client_uses_settings(self, settings: DataSourceSettings) -> None:
        """Test that the client gets default headers and the timeout."""
        client = api.create_session_client(settings)
        try:
            assert client.headers["user-agent"] == USER_AGENT
            assert client.timeout == httpx.Timeout(settings.request_timeout)
        finally:
            client.close()


class TestExecuteRequest:
    """Tests for execute_request function."""

    def test_returns_body_and_headers(self, httpx_mock: HTTPXMock) -> None:
        """Test that a 200 response returns the body and headers."""
        httpx_mock.add_response(json={"Version": "24.1"})

        with httpx.Client() as session:
            body, headers = api.execute_request(session, STATUS_URL)

        assert json.loads(body) == {"Version": "24.1"}
        assert headers["content-type"] == "application/json"
        request = httpx_mock.get_request()
        assert request is not None
        assert request.method == "GET"

    def test_unauthorized(self, httpx_mock: HTTPXMock) -> None:
        """Test that HTTP 401 raises AuthenticationError."""
        httpx_mock.add_response(status_code=401)

        with httpx.Client() as session, pytest.raises(AuthenticationError):
            api.execute_request(session, STATUS_URL)

    def test_forbidden(self, httpx_mock: HTTPXMock) -> None:
        """Test that HTTP 403 raises AuthorizationError."""
        httpx_mock.add_response(status_code=403, text="Forbidden")

        with httpx.Client() as session, pytest.raises(AuthorizationError):
            api.execute_request(session, STATUS_URL)

    def test_not_found(self, httpx_mock: HTTPXMock) -> None:
        """Test that HTTP 404 raises BackendError with the status."""
        httpx_mock.add_response(status_code=HTTP_NOT_FOUND)

        with httpx.Client() as session, pytest.raises(BackendError) as exc_info:
            api.execute_request(session, STATUS_URL)
        assert exc_info.value.status == HTTP_NOT_FOUND

    def test_connection_refused(self, httpx_mock: HTTPXMock) -> None:
        """Test that a connection failure raises NetworkError."""
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        with (
            httpx.Client() as session,
            pytest.raises(NetworkError, match="Connection refused"),
        ):
            api.execute_request(session, STATUS_URL)

    def test_timeout(self, httpx_mock: HTTPXMock) -> None:
        """Test that a timeout raises NetworkError."""
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

        with httpx.Client() as session, pytest.raises(NetworkError):
            api.execute_request(session, STATUS_URL)

    def test_body_read_failure(self) -> None:
        """Test that a failing body read raises NetworkError."""
        response = MagicMock()
        response.status_code = 200
        response.iter_bytes.side_effect = httpx.ReadError("connection reset")
        session = MagicMock(spec=httpx.Client)
        session.stream.return_value.__enter__.return_value = response

        with pytest.raises(NetworkError, match="Failed to read response body"):
            api.execute_request(session, STATUS_URL)

    def test_passes_timeout(self) -> None:
        """Test that the deadline is handed to the transport."""
        response = Mock()
        response.status_code = 200
        response.iter_bytes.return_value = [b"{}"]
        response.headers = httpx.Headers({"content-type": "application/json"})
        session = MagicMock(spec=httpx.Client)
        session.stream.return_value.__enter__.return_value = response

        body, _ = api.execute_request(session, STATUS_URL, timeout=3.0)

        assert body == b"{}"
        session.stream.assert_called_once_with("GET", STATUS_URL, timeout=3.0)

    def test_slow_body_exceeds_deadline(
        self, httpx_mock: HTTPXMock, clock: FakeClock
    ) -> None:
        """Test that a body trickling in past the deadline raises NetworkError."""

        def trickle() -> Iterator[bytes]:
            for byte in b'{"a":12}':
                clock.advance(0.4)
                yield bytes([byte])

        httpx_mock.add_response(
            stream=IteratorStream(trickle()),
            headers={"content-type": "application/json"},
        )

        with (
            httpx.Client() as session,
            pytest.raises(NetworkError, match="1s deadline"),
        ):
            api.execute_request(session, STATUS_URL, timeout=1.0, clock=clock)

    def test_slow_body_within_deadline(
        self, httpx_mock: HTTPXMock, clock: FakeClock
    ) -> None:
        """Test that a chunked body finishing before the deadline is returned."""

        def chunks() -> Iterator[bytes]:
            for part in (b'{"a":', b"12}"):
                clock.advance(0.4)
                yield part

        httpx_mock.add_response(
            stream=IteratorStream(chunks()),
            headers={"content-type": "application/json"},
        )

        with httpx.Client() as session:
            body, _ = api.execute_request(
                session, STATUS_URL, timeout=1.0, clock=clock
            )

        assert json.loads(body) == {"a": 12}
