"""
Margin Engine - per-item revenue, cost and gross margin from POS sales.

Every downstream stage (quadrants, profit leaks, pricing) reads the
ItemMarginRow list produced here.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from menu_models import ItemMarginRow, MarginPct, SalesRecord
from menu_stats import round2

logger = logging.getLogger(__name__)

MARGIN_COLUMNS = [
    "item_name",
    "units_sold",
    "revenue",
    "cost_per_serving",
    "total_cost",
    "gross_margin_pct",
    "contribution_margin",
    "price",
]


def aggregate_sales(records: Sequence[SalesRecord]) -> pd.DataFrame:
    """
    Sum units and revenue per item name.

    Names are trimmed but not case-folded, so "Burger" and "burger " stay
    separate items. Rows keep the order in which each name first appears.
    """
    if not records:
        return pd.DataFrame(columns=["item_name", "units_sold", "revenue"])

    sales = pd.DataFrame({
        "item_name": [r.item_name.strip() for r in records],
        "units_sold": [float(r.units_sold) for r in records],
        "revenue": [float(r.revenue) for r in records],
    })
    return (
        sales
        .groupby("item_name", sort=False)[["units_sold", "revenue"]]
        .sum()
        .reset_index()
    )


def compute_margins(records: Sequence[SalesRecord],
                    item_cost_map: Optional[Mapping[str, float]] = None) -> List[ItemMarginRow]:
    """
    Join aggregated sales with cost per serving and compute margins.

    Items without an entry in `item_cost_map` are costed at 0, which inflates
    their margin. Zero revenue gives a 0% margin rather than an undefined one.
    """
    item_cost_map = item_cost_map or {}
    sales = aggregate_sales(records)

    rows = []
    missing_cost = []
    for item_name, units_sold, revenue in sales.itertuples(index=False, name=None):
        units_sold = float(units_sold)
        revenue = float(revenue)
        if item_name not in item_cost_map:
            missing_cost.append(item_name)
        cost = float(item_cost_map.get(item_name, 0.0))

        total_cost = round2(cost * units_sold)
        raw_contribution = revenue - cost * units_sold
        gross_margin_pct = round2(raw_contribution / revenue * 100) if revenue > 0 else 0.0

        rows.append(ItemMarginRow(
            item_name=item_name,
            units_sold=units_sold,
            revenue=revenue,
            cost_per_serving=cost,
            total_cost=total_cost,
            gross_margin_pct=MarginPct.defined(gross_margin_pct),
            contribution_margin=round2(revenue - total_cost),
            price=round2(revenue / units_sold) if units_sold > 0 else None,
        ))

    if missing_cost:
        logger.info("%d item(s) have no recipe cost and are treated as zero-cost: %s",
                    len(missing_cost), ", ".join(missing_cost[:10]))
    return rows


def apply_menu_prices(rows: Iterable[ItemMarginRow],
                      menu_price_overrides: Optional[Mapping[str, float]] = None) -> List[ItemMarginRow]:
    """Fresh rows with `price` taken from the menu price list where one is set."""
    menu_price_overrides = menu_price_overrides or {}
    out = []
    for row in rows:
        override = menu_price_overrides.get(row.item_name)
        out.append(replace(row, price=float(override)) if override is not None else row)
    return out


def margin_rows_to_frame(rows: Sequence[ItemMarginRow]) -> pd.DataFrame:
    """Tabular view of the margin rows (undefined margins become NaN)."""
    if not rows:
        return pd.DataFrame(columns=MARGIN_COLUMNS)
    df = pd.DataFrame([row.to_dict() for row in rows], columns=MARGIN_COLUMNS)
    df["gross_margin_pct"] = df["gross_margin_pct"].astype(float)
    return df


def category_margins(rows: Sequence[ItemMarginRow],
                     item_categories: Optional[Mapping[str, str]] = None) -> pd.DataFrame:
    """
    Revenue and contribution rolled up by menu category.

    Items without a category land in "Uncategorized". Returns columns:
    category, revenue, contribution, margin_pct.
    """
    item_categories = item_categories or {}
    if not rows:
        return pd.DataFrame(columns=["category", "revenue", "contribution", "margin_pct"])

    df = pd.DataFrame({
        "category": [item_categories.get(r.item_name) or "Uncategorized" for r in rows],
        "revenue": [r.revenue for r in rows],
        "contribution": [r.contribution_margin for r in rows],
    })
    cat = (
        df.groupby("category", sort=False)
        .agg(revenue=("revenue", "sum"), contribution=("contribution", "sum"))
        .reset_index()
    )
    cat["margin_pct"] = np.where(
        cat["revenue"] > 0,
        cat["contribution"] / cat["revenue"].where(cat["revenue"] > 0, 1.0) * 100,
        0.0,
    )
    return cat


def summarize_margins(rows: Sequence[ItemMarginRow]) -> Dict[str, Any]:
    """Menu-wide totals for the summary block."""
    total_revenue = sum(r.revenue for r in rows)
    total_cost = sum(r.total_cost for r in rows)
    total_contribution = sum(r.contribution_margin for r in rows)
    return {
        "item_count": len(rows),
        "total_units_sold": sum(r.units_sold for r in rows),
        "total_revenue": round2(total_revenue),
        "total_cost": round2(total_cost),
        "total_contribution": round2(total_contribution),
        "overall_margin_pct": round2(total_contribution / total_revenue * 100) if total_revenue > 0 else 0.0,
        "items_without_cost": sum(1 for r in rows if r.cost_per_serving <= 0),
    }
