"""Exponential backoff shared by the gateway adapters and the engine."""


def backoff_delay(attempt: int, base: float, cap: float | None = None) -> float:
    """Delay before retry number ``attempt`` (0-based): base * 2**attempt."""
    delay = base * (2**attempt)
    if cap is not None:
        delay = min(delay, cap)
    return delay
