import pytest
from sqlalchemy.exc import OperationalError

from booking_engine.core.exceptions import ServiceException
from booking_engine.monitoring.prometheus_metrics import prometheus_metrics
from booking_engine.services.base import BaseService


class _Probe(BaseService):
    @BaseService.measure_operation("probe")
    def probe(self, fail: bool = False) -> str:
        if fail:
            raise ValueError("nope")
        return "ok"


@pytest.fixture
def probe(unit_db):
    service = _Probe(unit_db)
    service.reset_metrics()
    yield service
    service.reset_metrics()


def test_measure_operation_records_outcomes(probe):
    assert probe.probe() == "ok"
    with pytest.raises(ValueError):
        probe.probe(fail=True)

    metrics = probe.get_metrics()["probe"]
    assert metrics["count"] == 2
    assert metrics["success_count"] == 1
    assert metrics["failure_count"] == 1
    assert b"booking_engine_service_operations_total" in prometheus_metrics.get_metrics()


def test_transaction_wraps_database_errors(probe):
    with pytest.raises(ServiceException):
        with probe.transaction():
            raise OperationalError("UPDATE bookings", {}, Exception("database is locked"))


def test_transaction_reraises_domain_errors(probe):
    with pytest.raises(KeyError):
        with probe.transaction():
            raise KeyError("missing")
