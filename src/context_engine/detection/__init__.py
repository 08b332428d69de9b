"""Best-effort technology stack detection for saved file sets."""

from context_engine.detection.rules import DetectionRule, DetectionState
from context_engine.detection.tech_stack import TechStackDetector, detect_tech_stack

__all__ = [
    "DetectionRule",
    "DetectionState",
    "TechStackDetector",
    "detect_tech_stack",
]
