"""
Prompts and tool schema for the prompt-based frame classifier.
Tailored for mining-safety (BIP) violation categories.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

# Full closed label set the classifier may answer with
VIOLATION_TYPES = [
    "Human handling a drill",
    "Broken cylinder",
    "Human using beam/rod on drill",
    "LH machines collision risk",
    "Equipment Failure",
    "Collision Risk",
]

SEVERITIES = ["critical", "warning"]

REPORT_TOOL_NAME = "report_violation"


@dataclass
class TrainingContext:
    """
    What the requester's uploaded datasets tell us about the footage.

    `categories` is empty when no dataset name maps to a known category,
    in which case the classifier sees the full label set.
    """
    dataset_count: int = 0
    categories: List[str] = field(default_factory=list)

    @property
    def narrowed(self) -> bool:
        return 0 < len(self.categories) < len(VIOLATION_TYPES)

    @property
    def label_set(self) -> List[str]:
        return list(self.categories) if self.categories else list(VIOLATION_TYPES)


def categories_for_dataset(name: str) -> List[str]:
    """Map a dataset name to the violation categories it was labelled for."""
    name = name.lower()
    categories = []
    if 'drill' in name and 'handl' in name:
        categories.append("Human handling a drill")
    if 'cylinder' in name or 'bucket' in name:
        categories.append("Broken cylinder")
    if 'drill' in name and ('rod' in name or 'beam' in name):
        categories.append("Human using beam/rod on drill")
    if 'lh' in name and 'machine' in name:
        categories.append("LH machines collision risk")
    if 'oil' in name or 'spray' in name:
        categories.append("Equipment Failure")
    return categories


def build_training_context(dataset_names: Iterable[str]) -> TrainingContext:
    names = list(dataset_names)
    categories: List[str] = []
    for name in names:
        for category in categories_for_dataset(name):
            if category not in categories:
                categories.append(category)
    # Keep the canonical ordering of the label set
    categories.sort(key=VIOLATION_TYPES.index)
    return TrainingContext(dataset_count=len(names), categories=categories)


def build_report_tool(label_set: List[str]) -> dict:
    """Tool definition the classifier is forced to call."""
    return {
        "name": REPORT_TOOL_NAME,
        "description": "Report whether this frame shows a mining safety violation",
        "input_schema": {
            "type": "object",
            "properties": {
                "has_violation": {"type": "boolean"},
                "violation_type": {"type": "string", "enum": list(label_set)},
                "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                "severity": {"type": "string", "enum": SEVERITIES},
            },
            "required": ["has_violation", "violation_type", "confidence", "severity"],
        },
    }


def _training_section(context: TrainingContext) -> str:
    if not context.dataset_count:
        return ""
    if not context.categories:
        return f"""
    ### Training Context
    The requester has uploaded {context.dataset_count} labelled datasets for mining safety.
    """
    lines = "\n".join(f"    - {category}" for category in context.categories)
    return f"""
    ### Training Context
    You have been trained on {context.dataset_count} custom datasets specifically for mining safety:
{lines}
    Focus detection on these specific violation types.
    """


def build_frame_prompt(
    context: TrainingContext,
    timestamp_seconds: Optional[float] = None,
    frame_number: Optional[int] = None,
) -> str:
    """
    Constructs the instruction sent with one unit of work.

    Args:
        context: Training context for the requester.
        timestamp_seconds: Set for real sampled frames (an image is attached).
        frame_number: Set for synthetic frame indices (text only).
    """
    if timestamp_seconds is not None:
        task = f"DETECTION TASK - Frame at t={timestamp_seconds:.2f}s (image attached)"
    else:
        task = f"DETECTION TASK - Frame {frame_number} (no image available)"

    labels = "\n".join(f"    {i}. {label}" for i, label in enumerate(context.label_set, start=1))

    return f"""
    You are an AI safety inspector for underground mining operations.
    {_training_section(context)}
    {task}

    ### Violation Types
{labels}

    ### Detection Rules
    - Human + Drill: proximity < 120px, vertical alignment < 100px -> "Human handling a drill"
    - Cylinder: damaged hydraulic cylinder or visible oil leakage -> "Broken cylinder"
    - Human + Beam/Rod + Drill all aligned -> "Human using beam/rod on drill"
    - Two LH machines < 350px horizontal, < 250px vertical -> "LH machines collision risk"

    Call the {REPORT_TOOL_NAME} tool exactly once. Set has_violation to false when
    nothing from the list is visible. Confidence is a number between 0 and 1.
    """
