from http import HTTPStatus

import pytest

from ai_connect.local_server.callback import (
    resolve_callback,
    route_request,
    split_request_target,
)
from ai_connect.local_server.target import RedirectTarget
from ai_connect.models.errors import URLParseError


@pytest.fixture
def target():
    return RedirectTarget.parse("http://localhost:8765/callback")


class TestSplitRequestTarget:
    def test_origin_form(self):
        assert split_request_target("/callback?code=abc") == ("/callback", "code=abc")

    def test_origin_form_without_query(self):
        assert split_request_target("/callback") == ("/callback", "")

    def test_absolute_form(self):
        # Act
        path, query = split_request_target("http://localhost:8765/callback?code=abc")

        # Assert
        assert path == "/callback"
        assert query == "code=abc"


class TestRouteRequest:
    def test_valid_callback(self, target):
        # Act
        outcome = route_request(target, "GET", "/callback?code=abc&state=xyz")

        # Assert
        assert outcome.status is HTTPStatus.OK
        assert outcome.is_terminal
        assert outcome.response.code == "abc"
        assert outcome.response.state == "xyz"

    def test_wrong_method(self, target):
        # Act
        outcome = route_request(target, "POST", "/callback?code=abc")

        # Assert
        assert outcome.status is HTTPStatus.METHOD_NOT_ALLOWED
        assert not outcome.is_terminal

    def test_wrong_path(self, target):
        # Act
        outcome = route_request(target, "GET", "/favicon.ico")

        # Assert
        assert outcome.status is HTTPStatus.NOT_FOUND
        assert not outcome.is_terminal

    def test_percent_encoded_path_is_a_different_path(self, target):
        # Act
        outcome = route_request(target, "GET", "/call%62ack?code=abc")

        # Assert
        assert outcome.status is HTTPStatus.NOT_FOUND
        assert not outcome.is_terminal

    def test_trailing_slash_is_a_different_path(self, target):
        # Act
        outcome = route_request(target, "GET", "/callback/?code=abc")

        # Assert
        assert outcome.status is HTTPStatus.NOT_FOUND

    def test_missing_code(self, target):
        # Act
        outcome = route_request(target, "GET", "/callback?error=access_denied")

        # Assert
        assert outcome.status is HTTPStatus.BAD_REQUEST
        assert not outcome.is_terminal

    def test_legacy_fragment_state(self, target):
        # Act
        outcome = route_request(target, "GET", "/callback?code=abc%23xyz")

        # Assert
        assert outcome.response.code == "abc"
        assert outcome.response.state == "xyz"


class TestResolveCallback:
    def test_unbuildable_callback_url_is_terminal(self, target, monkeypatch):
        # Arrange
        def broken(self, query):
            raise URLParseError("broken")

        monkeypatch.setattr(RedirectTarget, "build_callback_url", broken)

        # Act
        outcome = resolve_callback(target, "code=abc")

        # Assert
        assert outcome.status is HTTPStatus.INTERNAL_SERVER_ERROR
        assert isinstance(outcome.error, URLParseError)
        assert outcome.is_terminal
