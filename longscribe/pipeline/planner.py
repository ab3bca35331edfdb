import logging
from typing import List

from ..core.errors import ConfigurationError
from ..core.models import Window

logger = logging.getLogger("Longscribe.Planner")


def plan_windows(total_duration: float, window_length: float, overlap: float) -> List[Window]:
    """
    Split a recording into ordered, overlapping time windows.

    Windows start every `window_length - overlap` seconds. When the audio left
    after a window is no longer than the overlap, that window is stretched to
    the end of the recording instead of planning a sliver window that would
    mostly repeat its predecessor.

    Raises:
        ConfigurationError: If the duration is not positive or the overlap
            leaves no forward progress.
    """
    if total_duration <= 0:
        raise ConfigurationError(f"Cannot plan windows for a duration of {total_duration}s")
    if window_length <= 0:
        raise ConfigurationError(f"Chunk length must be positive, got {window_length}s")
    if overlap < 0:
        raise ConfigurationError(f"Overlap cannot be negative, got {overlap}s")

    if total_duration <= window_length:
        return [Window(index=0, start_seconds=0.0, end_seconds=float(total_duration))]

    step = window_length - overlap
    if step <= 0:
        raise ConfigurationError(
            f"Overlap ({overlap}s) must be shorter than the chunk length ({window_length}s)"
        )

    windows: List[Window] = []
    while True:
        start = len(windows) * step
        end = start + window_length
        if total_duration - end <= overlap:
            end = total_duration
        windows.append(Window(index=len(windows), start_seconds=float(start), end_seconds=float(end)))
        if end >= total_duration:
            break

    logger.debug(f"Planned {len(windows)} windows of {window_length:.0f}s with {overlap:.0f}s overlap")
    return windows
