"""Look-alike domain discovery."""

from .predictor import DomainPredictor, PredictedDomain

__all__ = ["DomainPredictor", "PredictedDomain"]
