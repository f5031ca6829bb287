"""Time utilities: every timestamp leaving the normalizer is epoch milliseconds."""

import time

# Below this value an epoch is taken to be in seconds (year 2286 in seconds,
# early 1970 in milliseconds).
SECONDS_THRESHOLD = 10_000_000_000


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000


def _parse_epoch(value: int | float | str) -> int | float:
    # Integers stay exact; float only for fractional values
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return float(value)
    if isinstance(value, int):
        return value
    return float(value)


def _scale(value: int | float, factor: int) -> int:
    if isinstance(value, int):
        return value * factor
    return round(value * factor)


def seconds_to_ms(value: int | float | str) -> int:
    """Convert an epoch in seconds (number or numeric string) to milliseconds."""
    return _scale(_parse_epoch(value), 1000)


def coerce_epoch_ms(value: int | float | str) -> int:
    """Normalize an epoch of unknown unit to milliseconds.

    Values below SECONDS_THRESHOLD are treated as seconds, anything at or
    above it is passed through as milliseconds. Integer input is never
    routed through float, so large values keep every digit.
    """
    numeric = _parse_epoch(value)
    if numeric < SECONDS_THRESHOLD:
        return _scale(numeric, 1000)
    return _scale(numeric, 1)
