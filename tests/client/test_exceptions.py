"""Unit tests for the client exception hierarchy."""

import pytest

from client.exceptions import (
    APIError,
    BadRequestError,
    ConflictError,
    ConnectionError,
    FleetSimClientError,
    NotFoundError,
    ServerError,
    TimeoutError,
    ValidationError,
)


class TestHierarchy:
    """Tests for inheritance between client exceptions."""

    @pytest.mark.parametrize(
        "error_class",
        [BadRequestError, NotFoundError, ConflictError, ValidationError, ServerError],
    )
    def test_api_errors(self, error_class):
        assert issubclass(error_class, APIError)
        assert issubclass(error_class, FleetSimClientError)

    def test_transport_errors(self):
        assert issubclass(ConnectionError, FleetSimClientError)
        assert issubclass(TimeoutError, FleetSimClientError)
        assert not issubclass(ConnectionError, APIError)

    def test_builtins_are_not_shadowed_in_hierarchy(self):
        import builtins

        assert not issubclass(ConnectionError, builtins.ConnectionError)
        assert not issubclass(TimeoutError, builtins.TimeoutError)


class TestFleetSimClientError:
    def test_message(self):
        error = FleetSimClientError("something broke")

        assert error.message == "something broke"
        assert str(error) == "something broke"


class TestConnectionError:
    def test_str_includes_url(self):
        cause = OSError("refused")
        error = ConnectionError("Failed to connect", url="http://test/health", cause=cause)

        assert str(error) == "Failed to connect (url: http://test/health)"
        assert error.cause is cause

    def test_str_without_url(self):
        assert str(ConnectionError("Failed to connect")) == "Failed to connect"


class TestTimeoutError:
    def test_attributes(self):
        error = TimeoutError("timed out", timeout=5.0, url="http://test")

        assert error.timeout == 5.0
        assert error.url == "http://test"


class TestAPIError:
    def test_str_includes_status(self):
        error = APIError("teapot", status_code=418)

        assert str(error) == "[418] teapot"
        assert error.error_type is None
        assert error.details is None

    @pytest.mark.parametrize(
        "error_class, status_code",
        [
            (BadRequestError, 400),
            (NotFoundError, 404),
            (ConflictError, 409),
            (ValidationError, 422),
        ],
    )
    def test_fixed_status_codes(self, error_class, status_code):
        error = error_class(
            "nope",
            error_type="Simulation Not Active",
            details={"suggestion": "start a run"},
            response_body={"detail": "nope"},
        )

        assert error.status_code == status_code
        assert error.error_type == "Simulation Not Active"
        assert error.details == {"suggestion": "start a run"}
        assert error.response_body == {"detail": "nope"}

    def test_server_error_takes_status(self):
        error = ServerError("down", status_code=503)

        assert error.status_code == 503
        assert str(error) == "[503] down"
