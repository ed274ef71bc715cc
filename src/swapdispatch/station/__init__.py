"""Battery-swap station: battery pool and tariff-aware swap policy."""

from .battery_pool import BatteryPool
from .tariff import (
    PricePeriod,
    SwapPolicy,
    next_lower_price_start,
    should_defer_swap,
    should_swap_early,
)

__all__ = [
    "BatteryPool",
    "PricePeriod",
    "SwapPolicy",
    "should_swap_early",
    "should_defer_swap",
    "next_lower_price_start",
]
