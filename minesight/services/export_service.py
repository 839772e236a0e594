"""
CSV export of violation logs.
"""

import csv
import io
from typing import Iterable

from minesight.models import Violation

EXPORT_COLUMNS = [
    "timestamp",
    "violation",
    "confidence",
    "frame",
    "severity",
    "detection_method",
    "source_name",
    "video_path",
]


def violations_to_csv(violations: Iterable[Violation]) -> str:
    """Header row plus one row per violation."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for v in violations:
        writer.writerow([
            v.detected_at.strftime("%Y-%m-%d %H:%M:%S") if v.detected_at else "",
            v.violation_type,
            f"{v.confidence * 100:.1f}%",
            v.frame_number,
            v.severity,
            v.detection_method,
            v.source_name or "",
            v.video_path or "",
        ])
    return buffer.getvalue()
