# backend/tests/unit/core/test_auth_and_config.py
from datetime import timedelta

from fastapi import HTTPException
import jwt
import pytest

from coursebook.auth import create_access_token, decode_access_token, get_current_user_id
from coursebook.core.config import Settings, settings
from coursebook.middleware.prometheus_middleware import normalize_path


class TestAccessTokens:
    def test_round_trip(self):
        token = create_access_token("01HUSER0000000000000000000")

        assert decode_access_token(token)["sub"] == "01HUSER0000000000000000000"
        assert get_current_user_id(token) == "01HUSER0000000000000000000"

    def test_missing_token(self):
        with pytest.raises(HTTPException) as exc_info:
            get_current_user_id(None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Not authenticated"

    def test_expired_token(self):
        token = create_access_token("someone", expires_delta=timedelta(seconds=-5))

        with pytest.raises(HTTPException) as exc_info:
            get_current_user_id(token)

        assert exc_info.value.detail == "Could not validate credentials"

    def test_wrong_signature(self):
        token = jwt.encode({"sub": "someone"}, "another-secret", algorithm="HS256")

        with pytest.raises(HTTPException) as exc_info:
            get_current_user_id(token)

        assert exc_info.value.status_code == 401

    def test_token_without_subject(self):
        token = jwt.encode(
            {"role": "trainer"}, settings.secret_key.get_secret_value(), algorithm="HS256"
        )

        with pytest.raises(HTTPException):
            get_current_user_id(token)


class TestSettings:
    def test_defaults(self):
        config = Settings()

        assert config.conflict_window_minutes == 60
        assert config.allocation_max_attempts == 2
        assert config.enforce_conflicts_on_bulk
        assert config.enforce_conflicts_on_reschedule

    def test_production_requires_real_secret(self):
        with pytest.raises(ValueError, match="SECRET_KEY must be set in production"):
            Settings(environment="production")

    def test_production_with_secret(self):
        config = Settings(environment="production", secret_key="a-real-secret")

        assert config.secret_key.get_secret_value() == "a-real-secret"

    def test_sqlite_detection(self):
        assert Settings(database_url="sqlite:///./x.db").is_sqlite
        assert not Settings(database_url="postgresql://u:p@localhost/db").is_sqlite

    def test_sqlite_engine_waits_for_the_write_lock(self):
        from coursebook.database import _build_engine_kwargs

        kwargs = _build_engine_kwargs("sqlite:///./x.db")

        assert kwargs["connect_args"]["timeout"] == settings.sqlite_busy_timeout_seconds
        assert kwargs["connect_args"]["check_same_thread"] is False


class TestNormalizePath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/api/v1/courses", "/api/v1/courses"),
            (
                "/api/v1/courses/schedule/01HZX3K9V8T5M2N4P6Q7R8S9T0",
                "/api/v1/courses/schedule/:id",
            ),
            ("/api/v1/courses/42/enroll", "/api/v1/courses/:id/enroll"),
            ("/health", "/health"),
        ],
    )
    def test_id_segments_are_collapsed(self, raw, expected):
        assert normalize_path(raw) == expected
