"""
Profit Leak Report - how much the worst-margin items cost against target.

Steps:
1. Keep items with revenue and a defined margin.
2. Take the bottom 20% by gross margin (ties with the cutoff item included).
3. For each, compare current contribution with contribution at the
   uncapped target-margin price -> estimated lost profit per month.
4. Tag high-volume items (>= 60th volume percentile) or operator-marked
   items as strategic candidates (possible loss leaders); the rest are to_fix.

Nothing here raises on odd data: empty or degenerate inputs give a
zero-valued report with an explanatory message.
"""

import logging
from datetime import datetime, timezone
from typing import AbstractSet, List, Mapping, Optional, Sequence

import pandas as pd

from menu_models import (
    ItemMarginRow,
    LeakItemRole,
    ProfitLeakItem,
    ProfitLeakReport,
    ProfitLeakSummary,
)
from menu_stats import bottom_cutoff_index, percentile, round0, round2
from pricing_engine import (
    DEFAULT_TARGET_MARGIN,
    is_valid_target_margin,
    price_at_target_margin,
    suggest_price,
)

logger = logging.getLogger(__name__)

BOTTOM_PCT = 20
# Volume percentile at or above which a low-margin item may be an intentional loss leader
STRATEGIC_VOLUME_PCT = 60

LEAK_COLUMNS = [
    "item_name",
    "role",
    "current_margin_pct",
    "target_margin_pct",
    "units_sold",
    "revenue",
    "cost_per_serving",
    "current_price",
    "suggested_price",
    "price_at_target",
    "capped",
    "current_contribution",
    "potential_contribution",
    "estimated_lost_profit_per_month",
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _empty_report(message: str) -> ProfitLeakReport:
    return ProfitLeakReport(
        summary=ProfitLeakSummary(message=message),
        items=(),
        generated_at=_now_iso(),
    )


def _effective_price(row: ItemMarginRow, menu_price_overrides: Mapping[str, float]) -> float:
    price = menu_price_overrides.get(row.item_name)
    if price is None:
        price = row.price
    if price is None:
        price = row.revenue / row.units_sold if row.units_sold > 0 else 0.0
    return float(price)


def build_profit_leak_report(rows: Sequence[ItemMarginRow],
                             target_margin: float = DEFAULT_TARGET_MARGIN,
                             per_item_target_margin: Optional[Mapping[str, float]] = None,
                             strategic_item_names: Optional[AbstractSet[str]] = None,
                             menu_price_overrides: Optional[Mapping[str, float]] = None,
                             currency: str = "$") -> ProfitLeakReport:
    """
    Identify bottom-margin items and estimate profit lost versus target margin.

    potential_contribution is always (price_at_target - cost) x units. With no
    usable target price (zero cost, target outside [0, 1)) price_at_target is
    0, so the value is -cost x units and the lost profit clamps to 0.

    An item is a strategic candidate when it is in `strategic_item_names` OR
    sells at or above the 60th volume percentile. Passing names adds to the
    volume rule; it does not switch it off.

    Args:
        rows: Margin rows from compute_margins (prices may already be overridden).
        target_margin: Default target gross margin as decimal (0.75 for 75%).
        per_item_target_margin: item_name -> target margin override (decimal).
        strategic_item_names: Items always treated as strategic (operator-marked loss leaders).
        menu_price_overrides: item_name -> current menu price, wins over row.price.
        currency: Symbol used in the summary message.

    Returns:
        ProfitLeakReport with per-item rows and a role-split summary.
    """
    per_item_target_margin = per_item_target_margin or {}
    strategic_item_names = strategic_item_names or frozenset()
    menu_price_overrides = menu_price_overrides or {}

    with_margin = [r for r in rows if r.revenue > 0 and r.gross_margin_pct.is_defined]
    if not with_margin:
        return _empty_report("No items with margin data.")

    ordered = sorted(with_margin, key=lambda r: r.gross_margin_pct.value)
    cutoff_index = bottom_cutoff_index(len(ordered), BOTTOM_PCT)
    margin_threshold = ordered[cutoff_index].gross_margin_pct.value
    bottom_items = [r for r in ordered if r.gross_margin_pct.value <= margin_threshold]

    volumes = sorted(r.units_sold for r in with_margin)
    volume_at_strategic = percentile(volumes, STRATEGIC_VOLUME_PCT)

    items: List[ProfitLeakItem] = []
    lost_by_role = {LeakItemRole.TO_FIX: 0.0, LeakItemRole.STRATEGIC_CANDIDATE: 0.0}
    for r in bottom_items:
        price = _effective_price(r, menu_price_overrides)
        target = per_item_target_margin.get(r.item_name, target_margin)
        suggestion = suggest_price(r.cost_per_serving, price, target)
        price_at_target = price_at_target_margin(r.cost_per_serving, target)

        potential_contribution = (price_at_target - r.cost_per_serving) * r.units_sold
        lost = max(0.0, potential_contribution - r.contribution_margin)

        if r.item_name in strategic_item_names or r.units_sold >= volume_at_strategic:
            role = LeakItemRole.STRATEGIC_CANDIDATE
        else:
            role = LeakItemRole.TO_FIX
        lost_by_role[role] += lost

        items.append(ProfitLeakItem(
            item_name=r.item_name,
            current_margin_pct=r.gross_margin_pct.value,
            units_sold=r.units_sold,
            revenue=r.revenue,
            cost_per_serving=r.cost_per_serving,
            current_contribution=r.contribution_margin,
            current_price=round2(price),
            target_margin_pct=suggestion.target_margin_pct,
            suggested_price=suggestion.suggested_price,
            price_at_target=round2(price_at_target),
            potential_contribution=round2(potential_contribution),
            estimated_lost_profit_per_month=round2(lost),
            capped=suggestion.capped,
            role=role,
        ))

    total_lost = lost_by_role[LeakItemRole.TO_FIX] + lost_by_role[LeakItemRole.STRATEGIC_CANDIDATE]
    to_fix_count = sum(1 for i in items if i.role == LeakItemRole.TO_FIX)

    message = (
        f"You're losing approximately {currency}{round0(total_lost):,}/month on "
        f"{len(items)} SKU(s) by pricing below target margin."
    )
    if not is_valid_target_margin(target_margin):
        logger.warning("Target margin %r is outside [0, 1); lost profit not estimated", target_margin)
        message += f" Target margin {target_margin!r} is outside 0-100%, so no lost profit was estimated for it."

    return ProfitLeakReport(
        summary=ProfitLeakSummary(
            bottom_margin_skus=len(items),
            estimated_lost_profit_per_month=round2(total_lost),
            lost_from_items_to_fix=round2(lost_by_role[LeakItemRole.TO_FIX]),
            lost_from_strategic_candidates=round2(lost_by_role[LeakItemRole.STRATEGIC_CANDIDATE]),
            items_to_fix_count=to_fix_count,
            strategic_candidate_count=len(items) - to_fix_count,
            message=message,
        ),
        items=tuple(items),
        generated_at=_now_iso(),
    )


def leak_report_to_frame(report: ProfitLeakReport) -> pd.DataFrame:
    """Leak items as a table, worst loss first."""
    if not report.items:
        return pd.DataFrame(columns=LEAK_COLUMNS)
    df = pd.DataFrame([item.to_dict() for item in report.items], columns=LEAK_COLUMNS)
    return df.sort_values("estimated_lost_profit_per_month", ascending=False).reset_index(drop=True)
