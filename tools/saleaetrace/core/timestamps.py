"""
Timestamp conversion shared by the binary and CSV readers.
"""

import math


NS_PER_SECOND = 1e9


def seconds_to_ns(seconds: float) -> int:
    """
    Convert seconds to integer nanoseconds.

    Rounds half away from zero, so 0.5ns becomes 1 and -0.5ns becomes -1.

    Raises:
        ValueError: If seconds is NaN or infinite.
    """
    scaled = seconds * NS_PER_SECOND
    if not math.isfinite(scaled):
        raise ValueError(f"Cannot convert {seconds!r} seconds to nanoseconds")

    magnitude = abs(scaled)
    whole = math.floor(magnitude)
    if magnitude - whole >= 0.5:
        whole += 1
    return int(whole) if scaled >= 0 else -int(whole)
