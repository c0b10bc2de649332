from datetime import UTC, datetime


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(tz=UTC)


def elapsed_ms(start: float, end: float) -> float:
    """Milliseconds between two time.perf_counter() readings."""
    return (end - start) * 1000
