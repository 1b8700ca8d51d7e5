import json
import time

import pytest
from pydantic import ValidationError

from ai_connect.models.tokens import TokenResponse


class TestTokenResponse:
    def test_minimal_response(self):
        # Act
        token = TokenResponse.model_validate_json('{"access_token": "tok"}')

        # Assert
        assert token.access_token == "tok"
        assert token.refresh_token is None
        assert token.token_type is None
        assert token.scope is None
        assert token.expires_in is None
        assert token.extra == {}

    def test_unknown_fields_are_preserved(self):
        # Arrange
        body = {
            "access_token": "tok",
            "refresh_token": "ref",
            "expires_in": 3600,
            "id_token": "header.payload.sig",
            "account": {"uuid": "acc-1", "email": "user@example.com"},
        }

        # Act
        token = TokenResponse.model_validate(body)

        # Assert
        assert token.extra == {
            "id_token": "header.payload.sig",
            "account": {"uuid": "acc-1", "email": "user@example.com"},
        }

    def test_unknown_fields_round_trip_through_serialization(self):
        # Arrange
        body = '{"access_token": "tok", "organization": {"id": 7}, "flags": [1, 2]}'

        # Act
        serialized = json.loads(TokenResponse.model_validate_json(body).model_dump_json())

        # Assert
        assert serialized["organization"] == {"id": 7}
        assert serialized["flags"] == [1, 2]
        assert serialized["access_token"] == "tok"
        assert serialized["refresh_token"] is None

    def test_calculate_expires_at(self):
        # Arrange
        token = TokenResponse(access_token="tok", expires_in=60)
        no_expiry = TokenResponse(access_token="tok")

        # Act
        expires_at = token.calculate_expires_at()

        # Assert
        assert expires_at is not None
        assert time.time() + 55 < expires_at <= time.time() + 60
        assert no_expiry.calculate_expires_at() is None

    def test_negative_expires_in_is_rejected(self):
        # Act & Assert
        with pytest.raises(ValidationError):
            TokenResponse.model_validate({"access_token": "tok", "expires_in": -5})
