from pybreaker import CircuitBreaker

from .config import settings

# Guards the multi-row writes of the booking lifecycle
booking_circuit_breaker = CircuitBreaker(
    fail_max=settings.BREAKER_FAIL_MAX,
    reset_timeout=settings.BREAKER_RESET_SECONDS,
    name="booking_service_breaker",
)
