from pybreaker import CircuitBreaker

from .config import NOTIFY_BREAKER_FAIL_MAX, NOTIFY_BREAKER_RESET_TIMEOUT

# Guards the outbound notification channels (email / SMS / Telegram)
notification_circuit_breaker = CircuitBreaker(
    fail_max=NOTIFY_BREAKER_FAIL_MAX,
    reset_timeout=NOTIFY_BREAKER_RESET_TIMEOUT,
    name="notification_channel_breaker",
)
