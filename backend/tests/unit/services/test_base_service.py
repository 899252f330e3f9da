# backend/tests/unit/services/test_base_service.py
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from coursebook.core.exceptions import ServiceException, ValidationException
from coursebook.services.base import BaseService


class _SampleService(BaseService):
    @BaseService.measure_operation("sample")
    def sample(self, fail: bool = False) -> str:
        if fail:
            raise ValidationException("nope")
        return "ok"


@pytest.fixture(autouse=True)
def _reset_metrics():
    BaseService._class_metrics.pop("_SampleService", None)
    yield
    BaseService._class_metrics.pop("_SampleService", None)


class TestTransaction:
    def test_commits_on_success(self):
        session = MagicMock()

        with BaseService(session).transaction():
            pass

        session.commit.assert_called_once()
        session.rollback.assert_not_called()

    def test_database_errors_become_service_exceptions(self):
        session = MagicMock()
        error = OperationalError("UPDATE", {}, Exception("disk I/O error"))

        with pytest.raises(ServiceException, match="Database operation failed") as exc_info:
            with BaseService(session).transaction():
                raise error

        assert exc_info.value.__cause__ is error
        session.rollback.assert_called_once()

    def test_domain_errors_roll_back_and_propagate(self):
        session = MagicMock()

        with pytest.raises(ValidationException):
            with BaseService(session).transaction():
                raise ValidationException("bad input")

        session.rollback.assert_called_once()
        session.commit.assert_not_called()


class TestMeasureOperation:
    def test_counts_successes_and_failures(self):
        service = _SampleService(MagicMock())

        assert service.sample() == "ok"
        with pytest.raises(ValidationException):
            service.sample(fail=True)

        metrics = service.get_metrics()["sample"]
        assert metrics["count"] == 2
        assert metrics["success_count"] == 1
        assert metrics["failure_count"] == 1
        assert metrics["avg_time"] >= 0

    def test_wrapper_keeps_function_name(self):
        assert _SampleService.sample.__name__ == "sample"

    def test_no_metrics_before_first_call(self):
        assert _SampleService(MagicMock()).get_metrics() == {}
