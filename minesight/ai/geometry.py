"""
Geometric relation rules between detected objects in a single frame.

Each rule looks for a hazardous configuration of labelled boxes (a person
next to a drill, two LH machines about to collide, ...). Rules are
independent; every rule that fires in a frame yields one hit, carrying the
best-scoring combination of boxes for that rule.
"""

from dataclasses import dataclass, field
from collections import defaultdict
from itertools import combinations
from statistics import mean
from typing import Dict, Iterable, List, Optional, Tuple
import enum
import logging

logger = logging.getLogger(__name__)

Box = Tuple[float, float, float, float]  # x1, y1, x2, y2


class ObjectLabel(str, enum.Enum):
    """Closed set of object labels the rules understand."""
    PERSON = "person"
    DRILL = "drill"
    BEAM = "beam"  # beam or rod
    CYLINDER = "cylinder"
    MACHINE = "machine"
    LH_MACHINE = "lh_machine"


@dataclass
class DetectedObject:
    """A labelled bounding box from an object detector."""
    label: ObjectLabel
    bbox: Box
    confidence: float


@dataclass
class RuleHit:
    """A geometric rule that fired in a frame."""
    rule: str
    violation_type: str
    confidence: float
    objects: List[DetectedObject] = field(default_factory=list)


# Rule thresholds: (horizontal px, vertical px)
HANDLING_THRESHOLDS = (120, 100)
ROD_THRESHOLDS = (220, 180)
COLLISION_THRESHOLDS = (350, 250)

HANDLING_MIN_CONFIDENCE = 0.70
CYLINDER_MIN_CONFIDENCE = 0.76
ROD_MIN_CONFIDENCE = 0.70
COLLISION_MIN_CONFIDENCE = 0.70

HANDLING_LABEL = "Human handling a drill"
CYLINDER_LABEL = "Broken cylinder"
ROD_LABEL = "Human using beam/rod on drill"
COLLISION_LABEL = "LH machines collision risk"


def box_center(box: Box) -> Tuple[float, float]:
    """Get center point of bounding box."""
    x1, y1, x2, y2 = box
    return ((x1 + x2) / 2, (y1 + y2) / 2)


def close_and_aligned(box_a: Box, box_b: Box, horiz_thresh: float, vert_thresh: float) -> bool:
    """
    True when the box centres are strictly closer than both thresholds.
    """
    ax, ay = box_center(box_a)
    bx, by = box_center(box_b)
    return abs(ax - bx) < horiz_thresh and abs(ay - by) < vert_thresh


def group_by_label(objects: Iterable[DetectedObject]) -> Dict[ObjectLabel, List[DetectedObject]]:
    groups: Dict[ObjectLabel, List[DetectedObject]] = defaultdict(list)
    for obj in objects:
        groups[obj.label].append(obj)
    return groups


def _best(hits: List[RuleHit]) -> Optional[RuleHit]:
    if not hits:
        return None
    return max(hits, key=lambda h: h.confidence)


def _mean_confidence(objects: List[DetectedObject]) -> float:
    return mean(o.confidence for o in objects)


def detect_handling(groups: Dict[ObjectLabel, List[DetectedObject]]) -> Optional[RuleHit]:
    """Person and drill close together."""
    hits = []
    for person in groups.get(ObjectLabel.PERSON, []):
        for drill in groups.get(ObjectLabel.DRILL, []):
            if not close_and_aligned(person.bbox, drill.bbox, *HANDLING_THRESHOLDS):
                continue
            confidence = _mean_confidence([person, drill])
            if confidence >= HANDLING_MIN_CONFIDENCE:
                hits.append(RuleHit("handling", HANDLING_LABEL, confidence, [person, drill]))
    return _best(hits)


def detect_broken_cylinder(groups: Dict[ObjectLabel, List[DetectedObject]]) -> Optional[RuleHit]:
    """Any sufficiently confident cylinder box."""
    hits = [
        RuleHit("broken_cylinder", CYLINDER_LABEL, cylinder.confidence, [cylinder])
        for cylinder in groups.get(ObjectLabel.CYLINDER, [])
        if cylinder.confidence >= CYLINDER_MIN_CONFIDENCE
    ]
    return _best(hits)


def detect_rod_assisted(groups: Dict[ObjectLabel, List[DetectedObject]]) -> Optional[RuleHit]:
    """Beam near a drill with a person near that same beam."""
    hits = []
    for beam in groups.get(ObjectLabel.BEAM, []):
        for drill in groups.get(ObjectLabel.DRILL, []):
            if not close_and_aligned(beam.bbox, drill.bbox, *ROD_THRESHOLDS):
                continue
            for person in groups.get(ObjectLabel.PERSON, []):
                if not close_and_aligned(person.bbox, beam.bbox, *ROD_THRESHOLDS):
                    continue
                confidence = _mean_confidence([person, beam, drill])
                if confidence >= ROD_MIN_CONFIDENCE:
                    hits.append(RuleHit("rod_assisted", ROD_LABEL, confidence, [person, beam, drill]))
    return _best(hits)


def detect_collision_risk(groups: Dict[ObjectLabel, List[DetectedObject]]) -> Optional[RuleHit]:
    """Any pair of LH machines close together."""
    hits = []
    for first, second in combinations(groups.get(ObjectLabel.LH_MACHINE, []), 2):
        if not close_and_aligned(first.bbox, second.bbox, *COLLISION_THRESHOLDS):
            continue
        confidence = _mean_confidence([first, second])
        if confidence >= COLLISION_MIN_CONFIDENCE:
            hits.append(RuleHit("collision_risk", COLLISION_LABEL, confidence, [first, second]))
    return _best(hits)


RULES = [
    detect_handling,
    detect_broken_cylinder,
    detect_rod_assisted,
    detect_collision_risk,
]


def evaluate_frame(objects: Iterable[DetectedObject]) -> List[RuleHit]:
    """Run every rule over one frame's detections."""
    groups = group_by_label(objects)
    hits = []
    for rule in RULES:
        hit = rule(groups)
        if hit is not None:
            logger.debug(f"Rule {hit.rule} fired ({hit.confidence:.3f})")
            hits.append(hit)
    return hits
