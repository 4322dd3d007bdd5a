"""
Prometheus metrics for the booking engine.

Service timings are fed by ``BaseService.measure_operation``; the
reservation lock and lifecycle manager record their own outcomes.
"""

from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "booking_engine_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "booking_engine_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "booking_engine_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

reservation_lock_operations_total = Counter(
    "booking_engine_reservation_lock_operations_total",
    "Reservation lock operations by action and outcome",
    ["action", "outcome"],
    registry=REGISTRY,
)

reservation_lock_wait_seconds = Histogram(
    "booking_engine_reservation_lock_wait_seconds",
    "Time spent acquiring the reservation lock",
    ["outcome"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

booking_transitions_total = Counter(
    "booking_engine_booking_transitions_total",
    "Booking lifecycle transitions",
    ["transition", "outcome"],
    registry=REGISTRY,
)

collaborator_dispatch_total = Counter(
    "booking_engine_collaborator_dispatch_total",
    "Post-commit collaborator calls",
    ["collaborator", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_reservation_lock(action: str, outcome: str) -> None:
        reservation_lock_operations_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def observe_lock_wait(outcome: str, duration: float) -> None:
        reservation_lock_wait_seconds.labels(outcome=outcome).observe(max(duration, 0.0))

    @staticmethod
    def record_booking_transition(transition: str, outcome: str) -> None:
        booking_transitions_total.labels(transition=transition, outcome=outcome).inc()

    @staticmethod
    def record_collaborator_dispatch(collaborator: str, status: str) -> None:
        collaborator_dispatch_total.labels(collaborator=collaborator, status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
