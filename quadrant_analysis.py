"""
Quadrant Classifier - split menu items by volume and margin medians.
"""

from typing import Dict, List, Sequence

from menu_models import ItemMarginRow, Quadrant, QuadrantItem
from menu_stats import median


def run_quadrant_analysis(rows: Sequence[ItemMarginRow]) -> List[QuadrantItem]:
    """
    Tag every row with its quadrant relative to the medians of this row set.

    Volume median is taken over items that sold something; margin median over
    items with a defined margin. Ties count as "high", so an item sitting on
    both medians is high volume / high margin.
    """
    vol_median = median(r.units_sold for r in rows if r.units_sold > 0)
    margin_median = median(r.gross_margin_pct.value for r in rows if r.gross_margin_pct.is_defined)

    items = []
    for r in rows:
        high_volume = r.units_sold >= vol_median
        high_margin = r.gross_margin_pct.is_defined and r.gross_margin_pct.value >= margin_median
        items.append(QuadrantItem(
            item_name=r.item_name,
            quadrant=Quadrant.from_flags(high_volume, high_margin),
            units_sold=r.units_sold,
            revenue=r.revenue,
            gross_margin_pct=r.gross_margin_pct,
            contribution_margin=r.contribution_margin,
        ))
    return items


def quadrant_counts(items: Sequence[QuadrantItem]) -> Dict[str, int]:
    counts = {q.value: 0 for q in Quadrant}
    for item in items:
        counts[item.quadrant.value] += 1
    return counts
