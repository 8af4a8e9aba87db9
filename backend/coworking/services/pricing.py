"""
Price lookup by tier with fallback formulas.

week  -> week price, else day price x WEEK_PRICE_MULTIPLIER
month -> month price, else week price x MONTH_PRICE_MULTIPLIER

The month fallback uses the stored week price, not the derived one, so a
resource priced by the day only has no month price.
"""

from coworking.core.config import Settings
from coworking.core.errors import InvalidInput


def resolve_price(prices: dict[str, float], tier: str, settings: Settings) -> float:
    day = prices.get("day", 0.0)
    week = prices.get("week", 0.0)
    month = prices.get("month", 0.0)

    if tier == "day":
        return day
    if tier == "week":
        return week or day * settings.WEEK_PRICE_MULTIPLIER
    if tier == "month":
        return month or week * settings.MONTH_PRICE_MULTIPLIER
    raise InvalidInput(f"Unknown tier: {tier}")
