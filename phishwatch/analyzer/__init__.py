"""Analyzer modules for PhishWatch."""

from .baseline import BaselineManager
from .detector import PhishingDetector
from .false_positive import FalsePositiveFilter

__all__ = [
    "BaselineManager",
    "FalsePositiveFilter",
    "PhishingDetector",
]
