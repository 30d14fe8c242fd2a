"""
Pricing Engine - price needed to hit a target gross margin.

Suggested price = cost / (1 - target_margin), target_margin as decimal
(0.75 for 75%).

The suggested increase is capped at MAX_INCREASE_PCT (12%) per item; the
capped flag marks items that need more than one step. Lost profit to target is
always measured at the full target margin (see price_at_target_margin).
"""

import logging
import math
from typing import List, Sequence, Tuple

from menu_models import AnalysisConfig, ItemMarginRow, PriceSuggestion
from menu_stats import round2

logger = logging.getLogger(__name__)

DEFAULT_TARGET_MARGIN = 0.75
# Max % we suggest raising a price in one step; items needing more are flagged as capped
MAX_INCREASE_PCT = 12
# Flag as caution when the suggested increase exceeds this %
CAUTION_INCREASE_PCT = 15


def is_valid_target_margin(target_margin: float) -> bool:
    """Target margins must lie in [0, 1)."""
    try:
        target_margin = float(target_margin)
    except (TypeError, ValueError):
        return False
    return math.isfinite(target_margin) and 0 <= target_margin < 1


def price_at_target_margin(cost: float, target_margin: float) -> float:
    """Uncapped price at which `target_margin` is achieved exactly (0 if undefined)."""
    if not (math.isfinite(cost) and cost > 0) or not is_valid_target_margin(target_margin):
        return 0.0
    return cost / (1 - target_margin)


def _unchanged_price(cost: float, current_price: float, target_margin: float) -> PriceSuggestion:
    return PriceSuggestion(
        current_price=current_price,
        cost=cost,
        current_margin_pct=0.0,
        target_margin_pct=round2(target_margin * 100) if math.isfinite(target_margin) else 0.0,
        suggested_price=current_price,
        suggested_margin_pct=0.0,
        increase_pct=0.0,
        capped=False,
        caution=False,
    )


def suggest_price(cost: float,
                  current_price: float,
                  target_margin: float = DEFAULT_TARGET_MARGIN) -> PriceSuggestion:
    """
    Capped price suggestion for one item.

    Args:
        cost: Cost per serving.
        current_price: Price the item sells at today.
        target_margin: Desired gross margin as decimal, in [0, 1).

    Returns:
        PriceSuggestion. When cost is zero/unknown or the target margin is
        out of range the suggestion leaves the price unchanged.
    """
    cost = float(cost)
    current_price = float(current_price)
    target_margin = float(target_margin)

    if not math.isfinite(cost) or cost <= 0:
        return _unchanged_price(cost, current_price, target_margin)
    if not is_valid_target_margin(target_margin) or not math.isfinite(current_price):
        logger.warning("Cannot price at target margin %r for price %r; leaving price unchanged",
                       target_margin, current_price)
        return _unchanged_price(cost, current_price, target_margin)

    raw_suggested = cost / (1 - target_margin)
    max_price = current_price * (1 + MAX_INCREASE_PCT / 100)
    capped = raw_suggested > max_price
    suggested_price = round2(max_price) if capped else round2(raw_suggested)

    suggested_margin_pct = (suggested_price - cost) / suggested_price * 100 if suggested_price > 0 else 0.0
    current_margin_pct = (current_price - cost) / current_price * 100 if current_price > 0 else 0.0
    increase_pct = (suggested_price - current_price) / current_price * 100 if current_price > 0 else 0.0

    return PriceSuggestion(
        current_price=current_price,
        cost=cost,
        current_margin_pct=round2(current_margin_pct),
        target_margin_pct=round2(target_margin * 100),
        suggested_price=suggested_price,
        suggested_margin_pct=round2(suggested_margin_pct),
        increase_pct=round2(increase_pct),
        capped=capped,
        caution=increase_pct > CAUTION_INCREASE_PCT,
    )


def suggest_prices(rows: Sequence[ItemMarginRow],
                   config: AnalysisConfig) -> List[Tuple[ItemMarginRow, PriceSuggestion]]:
    """Suggestion for every row that has a price, using per-item target overrides."""
    out = []
    for row in rows:
        price = config.menu_price_overrides.get(row.item_name, row.price)
        if price is None:
            continue
        out.append((row, suggest_price(row.cost_per_serving, price, config.target_margin_for(row.item_name))))
    return out
