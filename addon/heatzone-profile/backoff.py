"""Reconnect delay policy for the MQTT health check."""


class ReconnectBackoff:
    """Exponential delay between broker reconnect attempts.

    `max_attempts=0` keeps retrying forever.
    """

    def __init__(
        self,
        base_delay_s: float = 30.0,
        max_delay_s: float = 300.0,
        multiplier: float = 2.0,
        max_attempts: int = 0,
    ):
        self.base_delay_s = base_delay_s
        self.max_delay_s = max_delay_s
        self.multiplier = multiplier
        self.max_attempts = max_attempts
        self.failures = 0

    @property
    def delay_s(self) -> float:
        """Delay before the next attempt."""
        delay = self.base_delay_s * (self.multiplier ** self.failures)
        return min(delay, self.max_delay_s)

    @property
    def exhausted(self) -> bool:
        return 0 < self.max_attempts <= self.failures

    def record_failure(self) -> float:
        """Counts a failed attempt and returns the delay before the next."""
        self.failures += 1
        return self.delay_s

    def reset(self) -> None:
        self.failures = 0
