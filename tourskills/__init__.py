"""Behavior-tree skills for a tour-guide robot: point-of-interest navigation, motor faults, touch and localization health."""

__version__ = "0.1.0"

__all__ = [
    "gotopoi",
    "localization",
    "motors",
    "skill",
    "touch",
]