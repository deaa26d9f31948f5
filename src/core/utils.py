import math


def format_time(seconds: float) -> str:
    """
    Format a playback position as M:SS (minutes are not wrapped into hours).
    Negative, NaN and infinite values render as 0:00.
    """
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        seconds = 0.0
    total = int(math.floor(seconds))
    m = total // 60
    s = total % 60
    return f"{m}:{s:02d}"


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
