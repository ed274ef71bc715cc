"""Trip scheduling: leg planning and the fleet simulation loop."""

from .legs import LegPlan, LegPlanner, Outcome, attempt, drive_minutes
from .scheduler import ResumePlan, TripScheduler, TruckState

__all__ = [
    "LegPlan",
    "LegPlanner",
    "Outcome",
    "attempt",
    "drive_minutes",
    "ResumePlan",
    "TripScheduler",
    "TruckState",
]
