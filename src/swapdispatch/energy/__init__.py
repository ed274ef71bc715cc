"""Energy model and learned consumption rates."""

from .consumption import ConsumptionLearner, InMemoryRateStore
from .model import EnergyModel

__all__ = ["EnergyModel", "ConsumptionLearner", "InMemoryRateStore"]
