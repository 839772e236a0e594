"""
Filename hint parsing.

Operators encode a known violation and where it happens in the video
filename, e.g. ``Collision_between_two_LH_machines_at_01.11_min.mp4``.
Supported conventions, tried in order (first match wins):

1. ``<label>_at_<MM>.<SS> min``
2. ``<label>_at_<HH>_<MM>_<SS>``
3. ``<label> at <HH>_<MM>_<SS>``

Each may carry a leading numeric prefix such as an upload timestamp
(``1760000000000_No_Helmet_at_00_00_05.mp4``).
"""

import re
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilenameHint:
    """Violation label and timestamp claimed by a filename."""
    violation_label: Optional[str] = None
    timestamp_seconds: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.violation_label is not None and self.timestamp_seconds is not None


NO_HINT = FilenameHint()


def _minutes_seconds(groups: Tuple[str, ...]) -> int:
    minutes, seconds = groups
    return int(minutes) * 60 + int(seconds)


def _hours_minutes_seconds(groups: Tuple[str, ...]) -> int:
    hours, minutes, seconds = groups
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds)


# (name, pattern, timestamp converter)
FILENAME_PATTERNS: List[Tuple[str, re.Pattern, Callable[[Tuple[str, ...]], int]]] = [
    (
        "minutes_dot_seconds",
        re.compile(r"^(?:\d+_)?(.+?)_at_(\d{1,2})\.(\d{2})[\s_]?min", re.IGNORECASE),
        _minutes_seconds,
    ),
    (
        "underscore_hms",
        re.compile(r"^(?:\d+_)?(.+?)_at_(\d{2})_(\d{2})_(\d{2})", re.IGNORECASE),
        _hours_minutes_seconds,
    ),
    (
        "spaced_at_hms",
        re.compile(r"^(?:\d+_)?(.+?)\s+at\s+(\d{2})_(\d{2})_(\d{2})", re.IGNORECASE),
        _hours_minutes_seconds,
    ),
]


def normalize_label(raw: str) -> str:
    """Underscores become spaces; surrounding whitespace is dropped."""
    return raw.replace("_", " ").strip()


def parse_filename(filename: Optional[str]) -> FilenameHint:
    """
    Extract a violation label and timestamp from a filename.

    Returns NO_HINT (both fields None) when no convention matches or the
    captured label is blank.
    """
    if not filename:
        return NO_HINT

    for name, pattern, to_seconds in FILENAME_PATTERNS:
        match = pattern.match(filename)
        if not match:
            continue

        label = normalize_label(match.group(1))
        if not label:
            continue

        seconds = to_seconds(match.groups()[1:])
        logger.info(f"Parsed filename ({name}) - Violation: \"{label}\", Time: {seconds}s")
        return FilenameHint(violation_label=label, timestamp_seconds=seconds)

    return NO_HINT
