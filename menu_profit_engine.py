# %% [markdown]
# # Menu Profit Engine
#
# Menu profitability from POS sales + recipe costs:
#
# - Recipe cost per serving
# - Per-item margins and contribution
# - Volume x margin quadrants (Star / Plowhorse / Puzzle / Dog)
# - Profit leak report (bottom 20% margin items vs target margin)
# - Capped price suggestions
#
# `run_full_analysis()` is pure: it takes records + recipes + config and
# returns a results dict. Writing files is left to the export helpers.


# %%
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from cost_calculator import build_item_cost_map
from margin_engine import (
    apply_menu_prices,
    category_margins,
    compute_margins,
    margin_rows_to_frame,
    summarize_margins,
)
from menu_models import AnalysisConfig, Ingredient, MenuItem, ProfitLeakReport, Recipe, SalesRecord
from pricing_engine import suggest_prices
from profit_leak_report import build_profit_leak_report, leak_report_to_frame
from quadrant_analysis import quadrant_counts, run_quadrant_analysis

logger = logging.getLogger(__name__)

# %% [markdown]
# ## 1. CONFIG – Master Settings
#
# Copy and override per client; the engine never reads this dict directly,
# callers pass it (or a copy) into run_full_analysis().


# %%
CONFIG = {
    "currency": "$",

    # Target gross margin (decimal). 0.75 = 75% GP, typical for food
    "default_target_margin": 0.75,
    # item_name -> target margin override, e.g. {"Draft Beer": 0.80}
    "per_item_target_margin": {},
    # item_name -> current menu price (wins over average realised price)
    "menu_price_overrides": {},
    # Items the operator has confirmed are deliberate loss leaders
    "strategic_item_names": [],

    # Report meta
    "restaurant_name": "Demo Kitchen",
    "period_label": "Last 30 days",
    "engine_version": "v1.0",

    # Input files for run_analysis.py
    "sales_path": "data/sales.csv",
    "recipe_book_path": "data/recipes.json",
}

# %% [markdown]
# ## 2. Data Validation


# %%
def validate_sales_records(records: Sequence[SalesRecord]) -> dict:
    """
    Checks sales records for issues that weaken the analysis.

    Never blocks the run; the core degrades gracefully on any input.

    Returns:
        {
            "valid": bool,
            "errors": [issues that make results meaningless],
            "warnings": [issues that may affect quality],
            "summary": {key counts}
        }
    """
    errors = []
    warnings = []
    summary = {}

    if not records:
        errors.append("CRITICAL: no sales records supplied")
        return {"valid": False, "errors": errors, "warnings": warnings, "summary": summary}

    summary["sales_lines"] = len(records)
    summary["distinct_items"] = len({r.item_name.strip() for r in records})

    blank_names = sum(1 for r in records if not r.item_name.strip())
    if blank_names:
        warnings.append(f"WARNING: {blank_names} records have a blank item name")

    zero_units = sum(1 for r in records if r.units_sold == 0)
    if zero_units:
        warnings.append(f"WARNING: {zero_units} records have zero units sold")

    negative = sum(1 for r in records if r.units_sold < 0 or r.revenue < 0)
    if negative:
        warnings.append(f"WARNING: {negative} records have negative units or revenue (refunds/voids?)")

    bad_numbers = sum(
        1 for r in records if not (np.isfinite(r.units_sold) and np.isfinite(r.revenue))
    )
    if bad_numbers:
        warnings.append(f"WARNING: {bad_numbers} records have non-numeric units or revenue")

    # Same item under different casing usually means a messy POS export
    by_folded = {}
    for r in records:
        by_folded.setdefault(r.item_name.strip().lower(), set()).add(r.item_name.strip())
    case_variants = [names for names in by_folded.values() if len(names) > 1]
    if case_variants:
        examples = ", ".join(" / ".join(sorted(v)) for v in case_variants[:3])
        warnings.append(
            f"WARNING: {len(case_variants)} item(s) appear with different casing and are analysed separately: {examples}"
        )

    return {"valid": not errors, "errors": errors, "warnings": warnings, "summary": summary}


# %% [markdown]
# ## 3. Full Analysis


# %%
def _price_list(config: dict, menu_items: Optional[Iterable[MenuItem]]) -> Dict[str, float]:
    prices = {m.name: m.price for m in (menu_items or []) if m.price is not None}
    prices.update(config.get("menu_price_overrides") or {})
    return prices


def run_full_analysis(records: Sequence[SalesRecord],
                      recipes: Sequence[Recipe],
                      ingredients: Sequence[Ingredient],
                      config: dict = CONFIG,
                      menu_items: Optional[Sequence[MenuItem]] = None) -> dict:
    """
    Run the full menu profit analysis and return all result objects.

    Args:
        records: Canonical POS sales lines.
        recipes: Recipes keyed by menu item name.
        ingredients: Ingredient master list.
        config: Configuration dictionary (defaults to module `CONFIG`).
        menu_items: Optional price list; prices feed the menu price overrides,
            categories feed the category table.

    Returns:
        A dictionary with keys: item_costs, margin_rows, margin_df,
        summary_metrics, category_df, quadrant_items, quadrant_counts,
        leak_report, leak_df, price_suggestions, data_quality, config
    """
    price_list = _price_list(config, menu_items)
    analysis_config = AnalysisConfig.from_dict({**config, "menu_price_overrides": price_list})
    data_quality = validate_sales_records(records)

    item_costs = build_item_cost_map(recipes, ingredients)
    margin_rows = apply_menu_prices(
        compute_margins(records, item_costs),
        analysis_config.menu_price_overrides,
    )

    item_categories = {m.name: m.category for m in (menu_items or []) if m.category}

    leak_report = build_profit_leak_report(
        margin_rows,
        target_margin=analysis_config.default_target_margin,
        per_item_target_margin=analysis_config.per_item_target_margin,
        strategic_item_names=analysis_config.strategic_item_names,
        menu_price_overrides=analysis_config.menu_price_overrides,
        currency=config.get("currency", "$"),
    )
    quadrant_items = run_quadrant_analysis(margin_rows)

    summary_metrics = summarize_margins(margin_rows)
    summary_metrics["target_margin_pct"] = analysis_config.default_target_margin * 100
    summary_metrics["estimated_lost_profit_per_month"] = leak_report.summary.estimated_lost_profit_per_month

    return {
        "item_costs": item_costs,
        "margin_rows": margin_rows,
        "margin_df": margin_rows_to_frame(margin_rows),
        "summary_metrics": summary_metrics,
        "category_df": category_margins(margin_rows, item_categories),
        "quadrant_items": quadrant_items,
        "quadrant_counts": quadrant_counts(quadrant_items),
        "leak_report": leak_report,
        "leak_df": leak_report_to_frame(leak_report),
        "price_suggestions": suggest_prices(margin_rows, analysis_config),
        "data_quality": data_quality,
        "config": analysis_config,
    }


# %% [markdown]
# ## 4. Exports (JSON / Excel / Markdown)


# %%
def results_to_json_dict(results: dict) -> Dict[str, Any]:
    """Plain-data view of run_full_analysis() output, ready for json.dumps."""
    config = results["config"]
    return {
        "summary_metrics": results["summary_metrics"],
        "item_costs": results["item_costs"],
        "margins": [row.to_dict() for row in results["margin_rows"]],
        "quadrants": [item.to_dict() for item in results["quadrant_items"]],
        "quadrant_counts": results["quadrant_counts"],
        "profit_leak_report": results["leak_report"].to_dict(),
        "price_suggestions": [
            {"item_name": row.item_name, **suggestion.to_dict()}
            for row, suggestion in results["price_suggestions"]
        ],
        "data_quality": results["data_quality"],
        "config": {
            "default_target_margin": config.default_target_margin,
            "per_item_target_margin": dict(config.per_item_target_margin),
            "menu_price_overrides": dict(config.menu_price_overrides),
            "strategic_item_names": sorted(config.strategic_item_names),
        },
    }


def write_results_json(results: dict, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(results_to_json_dict(results), f, indent=2)


def _price_suggestions_frame(results: dict) -> pd.DataFrame:
    rows = [
        {"item_name": row.item_name, **suggestion.to_dict()}
        for row, suggestion in results["price_suggestions"]
    ]
    return pd.DataFrame(rows)


def export_results_to_excel(results: dict, path: str) -> None:
    """
    Write key result tables into a multi-sheet Excel file.

    Args:
        results: Dictionary returned by run_full_analysis().
        path: File path where the Excel workbook will be saved.
    """
    quadrant_df = pd.DataFrame([item.to_dict() for item in results["quadrant_items"]])
    summary_df = pd.DataFrame(list(results["summary_metrics"].items()), columns=["metric", "value"])

    with pd.ExcelWriter(path) as writer:
        def _write_if_df(df, sheet_name: str):
            if isinstance(df, pd.DataFrame) and not df.empty:
                df.to_excel(writer, sheet_name=sheet_name, index=False)

        _write_if_df(summary_df, "Summary")
        _write_if_df(results["margin_df"], "Item_Margins")
        _write_if_df(results["leak_df"], "Profit_Leaks")
        _write_if_df(quadrant_df, "Quadrants")
        _write_if_df(_price_suggestions_frame(results), "Price_Suggestions")
        _write_if_df(results["category_df"], "Category_Margins")


def to_markdown_table(df: pd.DataFrame, cols: list, index: bool = False) -> str:
    if df.empty:
        return pd.DataFrame(columns=cols).to_markdown(index=index)
    return df[cols].to_markdown(index=index)


def format_leak_report_markdown(report: ProfitLeakReport, currency: str = "$") -> str:
    """Short markdown summary of the profit leak report for hand-off to a report writer."""
    s = report.summary
    lines = [
        "## Profit Leaks",
        "",
        s.message,
        "",
        f"- Items to fix: {s.items_to_fix_count} ({currency}{s.lost_from_items_to_fix:,.2f}/month)",
        f"- Possible loss leaders: {s.strategic_candidate_count} "
        f"({currency}{s.lost_from_strategic_candidates:,.2f}/month)",
        "",
    ]
    if report.items:
        cols = ["item_name", "role", "current_margin_pct", "current_price",
                "suggested_price", "estimated_lost_profit_per_month"]
        lines.append(to_markdown_table(leak_report_to_frame(report), cols))
    return "\n".join(lines)


def top_leaks(results: dict, n: int = 5) -> List[dict]:
    """Largest leaks first, as plain dicts."""
    return results["leak_df"].head(n).to_dict(orient="records")
