"""
Loaders for canonical sales tables and recipe books.

Sales tables must already use the canonical column names
(item_name, units_sold, revenue, optional timestamp). Mapping POS-specific
headers onto these names is done upstream.
"""

import json
import re
from typing import List, Tuple

import pandas as pd

from menu_models import Ingredient, MenuItem, Recipe, SalesRecord

REQUIRED_SALES_COLUMNS = ["item_name", "units_sold", "revenue"]

_MONEY_CHARS = re.compile(r"[$,£€]")


def read_any_table(path: str) -> pd.DataFrame:
    """Read CSV/Excel with robust encoding handling and error reporting."""
    if path.lower().endswith((".xlsx", ".xls")):
        return pd.read_excel(path)
    try:
        # UTF-8 with BOM first (Excel exports)
        return pd.read_csv(path, encoding="utf-8-sig", on_bad_lines="warn")
    except UnicodeDecodeError:
        print(f"⚠️  UTF-8 decode failed, trying latin-1 encoding for {path}")
        return pd.read_csv(path, encoding="latin-1", on_bad_lines="warn")
    except Exception as e:
        raise ValueError(f"Failed to read {path}: {str(e)}")


def parse_number(series: pd.Series) -> pd.Series:
    """'$1,200.50' -> 1200.5; anything unparsable -> 0."""
    if pd.api.types.is_numeric_dtype(series):
        return series.astype(float).fillna(0.0)
    cleaned = series.astype(str).str.replace(_MONEY_CHARS, "", regex=True).str.strip()
    return pd.to_numeric(cleaned, errors="coerce").fillna(0.0)


def sales_records_from_frame(df: pd.DataFrame) -> Tuple[List[SalesRecord], List[str]]:
    """
    Convert a canonical sales DataFrame into SalesRecords.

    Returns:
        (records, errors). When required columns are missing, records is
        empty and errors says which columns to add.
    """
    errors = []
    if len(df) == 0:
        return [], ["Sales table must have a header row and at least one data row."]

    missing = [c for c in REQUIRED_SALES_COLUMNS if c not in df.columns]
    if missing:
        errors.append(
            f"Sales table missing required columns: {missing}. "
            f"Available columns: {list(df.columns)}"
        )
        return [], errors

    names = df["item_name"].fillna("").astype(str).str.strip()
    units = parse_number(df["units_sold"])
    revenue = parse_number(df["revenue"])
    if "timestamp" in df.columns:
        timestamps = df["timestamp"].astype(object).where(df["timestamp"].notna(), None)
    else:
        timestamps = pd.Series([None] * len(df), index=df.index)

    records = []
    for name, u, rev, ts in zip(names, units, revenue, timestamps):
        if not name:
            continue
        records.append(SalesRecord(
            item_name=name,
            units_sold=float(u),
            revenue=float(rev),
            timestamp=str(ts).strip() if ts is not None and str(ts).strip() else None,
        ))
    return records, errors


def load_sales_records(path: str) -> Tuple[List[SalesRecord], List[str]]:
    """Read a canonical sales CSV/Excel file into SalesRecords plus an error list."""
    return sales_records_from_frame(read_any_table(path))


def _parse_entries(path: str, section: str, entries: list, parse) -> list:
    parsed = []
    for i, entry in enumerate(entries):
        try:
            parsed.append(parse(entry))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Failed to read {path}: {section}[{i}] is invalid ({type(e).__name__}: {e})")
    return parsed


def load_recipe_book(path: str) -> Tuple[List[Ingredient], List[Recipe], List[MenuItem]]:
    """
    Load ingredients, recipes and (optionally) the menu price list from JSON.

    Expected shape:
        {
            "ingredients": [{"id", "name", "unit_type", "cost_per_unit"}],
            "recipes": [{"menu_item_name", "lines": [{"ingredient_id", "quantity"}]}],
            "menu_items": [{"name", "price", "category"}]
        }

    Raises ValueError naming the file and the offending entry when the file
    cannot be read or an entry is malformed (missing id, unknown unit, bad number).
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to read {path}: {str(e)}")
    if not isinstance(data, dict):
        raise ValueError(f"Failed to read {path}: expected a JSON object at the top level")

    ingredients = _parse_entries(path, "ingredients", data.get("ingredients") or [], Ingredient.from_dict)
    recipes = _parse_entries(path, "recipes", data.get("recipes") or [], Recipe.from_dict)
    menu_items = _parse_entries(path, "menu_items", data.get("menu_items") or [], MenuItem.from_dict)
    return ingredients, recipes, menu_items
