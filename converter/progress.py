"""
Progress extraction from external tool output.

yt-dlp reports download progress as:
    [download]  42.0% of   10.00MiB at  1.20MiB/s ETA 00:07

ffmpeg announces the input length once and then reports the encoded position:
    Duration: 00:03:25.42, start: 0.000000, bitrate: 1411 kb/s
    size=     512kB time=00:00:21.33 bitrate= 196.6kbits/s speed=42.6x

Every function here is pure and never raises on odd input: a line that does
not parse is "no signal" and the caller keeps its previous progress value.
"""

import math
import re
import time
from typing import Callable, Optional

DOWNLOAD_PERCENT_PATTERN = re.compile(r"\[download\].*?(\d+(?:[.,]\d+)?)%")
ELAPSED_PATTERN = re.compile(r"time=\s*(\S+)")
DURATION_PATTERN = re.compile(r"Duration:\s*([^,\s]+)")
TIME_FIELD_PATTERN = re.compile(r"\d+(?:[.,]\d+)?")


def parse_download_percent(line: str) -> Optional[int]:
    """
    Extract the percentage from a yt-dlp ``[download]`` line.

    Returns:
        int in 0..100, or None when the line has no usable marker
    """
    if not line:
        return None
    match = DOWNLOAD_PERCENT_PATTERN.search(line)
    if not match:
        return None
    try:
        value = float(match.group(1).replace(",", "."))
    except ValueError:
        return None
    if value < 0 or value > 100:
        return None
    return int(value)


def parse_time_to_seconds(token: str) -> float:
    """
    Convert ``HH:MM:SS[.frac]``, ``MM:SS[.frac]`` or ``SS[.frac]`` to seconds.

    Both ``.`` and ``,`` work as decimal separator. Anything unparseable
    (``N/A``, empty, garbage) yields 0.0.

    Example:
        >>> parse_time_to_seconds("01:02:03")
        3723.0
    """
    if not token:
        return 0.0
    parts = token.strip().split(":")
    if len(parts) > 3 or not all(TIME_FIELD_PATTERN.fullmatch(part) for part in parts):
        return 0.0
    values = [float(part.replace(",", ".")) for part in parts]

    seconds = 0.0
    for weight, value in zip((3600, 60, 1)[-len(values):], values):
        seconds += weight * value
    return seconds


def parse_elapsed_seconds(line: str) -> Optional[float]:
    """Position reported by an ffmpeg ``time=`` token, None when the line has none."""
    match = ELAPSED_PATTERN.search(line or "")
    if not match:
        return None
    return parse_time_to_seconds(match.group(1))


def parse_duration_seconds(line: str) -> float:
    """Total length from an ffmpeg ``Duration:`` line; 0.0 when absent."""
    match = DURATION_PATTERN.search(line or "")
    if not match:
        return 0.0
    return parse_time_to_seconds(match.group(1))


def percent_complete(elapsed: float, total: float) -> Optional[int]:
    """Whole percent, halves rounded up, capped at 100. None without a usable total."""
    if elapsed is None or total is None:
        return None
    if not (math.isfinite(elapsed) and math.isfinite(total)) or total <= 0:
        return None
    return min(100, math.floor(100 * max(0.0, elapsed) / total + 0.5))


class Throttle:
    """Lets an update through at most once per ``interval`` seconds."""

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last = clock()

    def ready(self) -> bool:
        now = self._clock()
        if now - self._last >= self.interval:
            self._last = now
            return True
        return False
