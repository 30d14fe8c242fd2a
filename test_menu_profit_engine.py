"""
End-to-end tests: loaders, full analysis, exports and the command-line runner.
"""

import json
import sys
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent))

import menu_profit_engine as engine
import run_analysis
from menu_data_loader import load_recipe_book, load_sales_records, sales_records_from_frame
from menu_models import AnalysisConfig, Ingredient, MenuItem, Recipe, RecipeLine, SalesRecord, UnitType


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ingredients():
    return [
        Ingredient("beef", "ground beef (raw)", UnitType.OZ, 0.42),
        Ingredient("bun", "bun", UnitType.EACH, 0.28),
        Ingredient("fish", "white fish (raw)", UnitType.OZ, 0.32),
        Ingredient("tortilla", "tortillas", UnitType.EACH, 0.06),
        Ingredient("potato", "potato", UnitType.OZ, 0.05),
    ]


@pytest.fixture
def recipes():
    return [
        Recipe("Burger", (RecipeLine("beef", 6), RecipeLine("bun", 1))),
        Recipe("Fish Tacos", (RecipeLine("fish", 5), RecipeLine("tortilla", 3))),
        Recipe("Fries", (RecipeLine("potato", 8),)),
    ]


@pytest.fixture
def sales():
    return [
        SalesRecord("Burger", 120, 1440.0, "2024-01-01"),
        SalesRecord("Fish Tacos", 40, 440.0, "2024-01-01"),
        SalesRecord("Fries", 200, 900.0, "2024-01-02"),
        SalesRecord("Soda", 150, 450.0, "2024-01-02"),
        SalesRecord("Burger", 30, 360.0, "2024-01-03"),
    ]


@pytest.fixture
def recipe_book_path(tmp_path):
    book = {
        "ingredients": [
            {"id": "beef", "name": "ground beef (raw)", "unit_type": "oz", "cost_per_unit": 0.42},
            {"id": "bun", "name": "bun", "unit_type": "each", "cost_per_unit": 0.28},
        ],
        "recipes": [
            {"menu_item_name": "Burger", "lines": [
                {"ingredient_id": "beef", "quantity": 6},
                {"ingredient_id": "bun", "quantity": 1},
            ]},
        ],
        "menu_items": [{"name": "Burger", "price": 13.0, "category": "Mains"}],
    }
    path = tmp_path / "recipes.json"
    path.write_text(json.dumps(book), encoding="utf-8")
    return path


@pytest.fixture
def sales_csv_path(tmp_path):
    path = tmp_path / "sales.csv"
    pd.DataFrame({
        "item_name": ["Burger", "Burger", "Soda", ""],
        "units_sold": [10, 5, 30, 1],
        "revenue": ["$120.00", "$60.00", "$1,050.00", "$3.00"],
        "timestamp": ["2024-01-01", None, "2024-01-02", "2024-01-02"],
    }).to_csv(path, index=False)
    return path


# =============================================================================
# LOADERS
# =============================================================================

class TestLoaders:

    def test_sales_money_strings_and_blank_names(self, sales_csv_path):
        records, errors = load_sales_records(str(sales_csv_path))

        assert errors == []
        assert len(records) == 3
        assert records[2].revenue == 1050.0
        assert records[0].timestamp == "2024-01-01"
        assert records[1].timestamp is None

    def test_missing_columns_reported(self):
        records, errors = sales_records_from_frame(pd.DataFrame({"item_name": ["Burger"], "qty": [1]}))

        assert records == []
        assert len(errors) == 1
        assert "units_sold" in errors[0] and "revenue" in errors[0]

    def test_empty_table_reported(self):
        records, errors = sales_records_from_frame(pd.DataFrame(columns=["item_name", "units_sold", "revenue"]))
        assert records == []
        assert errors

    def test_unparsable_numbers_become_zero(self):
        df = pd.DataFrame({"item_name": ["Burger"], "units_sold": ["lots"], "revenue": ["n/a"]})
        records, _ = sales_records_from_frame(df)
        assert (records[0].units_sold, records[0].revenue) == (0.0, 0.0)

    def test_recipe_book(self, recipe_book_path):
        ingredients, recipes, menu_items = load_recipe_book(str(recipe_book_path))

        assert [i.unit_type for i in ingredients] == [UnitType.OZ, UnitType.EACH]
        assert recipes[0].lines[0] == RecipeLine("beef", 6.0)
        assert menu_items == [MenuItem("Burger", price=13.0, category="Mains")]

    def test_bad_recipe_book_raises_value_error(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Failed to read"):
            load_recipe_book(str(path))

    @pytest.mark.parametrize("ingredient", [
        {"name": "Flour", "unit_type": "oz", "cost_per_unit": 0.1},
        {"id": "flour", "name": "Flour", "unit_type": "kg", "cost_per_unit": 0.1},
        {"id": "flour", "name": "Flour", "unit_type": "oz", "cost_per_unit": "abc"},
    ], ids=["missing_id", "unknown_unit", "bad_cost"])
    def test_malformed_ingredient_names_the_entry(self, tmp_path, ingredient):
        path = tmp_path / "recipes.json"
        path.write_text(json.dumps({"ingredients": [ingredient]}), encoding="utf-8")

        with pytest.raises(ValueError, match=r"Failed to read .*ingredients\[0\]"):
            load_recipe_book(str(path))

    def test_malformed_recipe_line(self, tmp_path):
        path = tmp_path / "recipes.json"
        book = {"recipes": [{"menu_item_name": "Burger", "lines": [{"quantity": 6}]}]}
        path.write_text(json.dumps(book), encoding="utf-8")

        with pytest.raises(ValueError, match=r"recipes\[0\]"):
            load_recipe_book(str(path))


# =============================================================================
# FULL ANALYSIS
# =============================================================================

class TestFullAnalysis:

    def test_result_keys(self, sales, recipes, ingredients):
        results = engine.run_full_analysis(sales, recipes, ingredients)
        expected = {
            "item_costs", "margin_rows", "margin_df", "summary_metrics", "category_df",
            "quadrant_items", "quadrant_counts", "leak_report", "leak_df",
            "price_suggestions", "data_quality", "config",
        }
        assert expected <= set(results)

    def test_costs_flow_into_margins(self, sales, recipes, ingredients):
        results = engine.run_full_analysis(sales, recipes, ingredients)
        rows = {r.item_name: r for r in results["margin_rows"]}

        assert results["item_costs"]["Burger"] == 2.80
        assert rows["Burger"].units_sold == 150
        assert rows["Burger"].total_cost == 420.0
        assert rows["Soda"].cost_per_serving == 0

    def test_menu_items_set_prices_and_categories(self, sales, recipes, ingredients):
        menu = [MenuItem("Burger", price=13.0, category="Mains"), MenuItem("Fries", category="Sides")]
        results = engine.run_full_analysis(sales, recipes, ingredients, menu_items=menu)
        rows = {r.item_name: r for r in results["margin_rows"]}

        assert rows["Burger"].price == 13.0
        assert set(results["category_df"]["category"]) == {"Mains", "Sides", "Uncategorized"}

    def test_config_overrides_are_passed_by_value(self, sales, recipes, ingredients):
        config = engine.CONFIG.copy()
        config["default_target_margin"] = 0.7
        config["strategic_item_names"] = ["Fish Tacos"]
        results = engine.run_full_analysis(sales, recipes, ingredients, config=config)

        assert isinstance(results["config"], AnalysisConfig)
        assert results["config"].default_target_margin == 0.7
        assert "Fish Tacos" in results["config"].strategic_item_names
        assert engine.CONFIG["default_target_margin"] == 0.75

    def test_repeat_runs_match(self, sales, recipes, ingredients):
        first = engine.run_full_analysis(sales, recipes, ingredients)
        second = engine.run_full_analysis(sales, recipes, ingredients)

        assert first["margin_rows"] == second["margin_rows"]
        assert first["quadrant_items"] == second["quadrant_items"]
        assert first["leak_report"] == second["leak_report"]

    def test_empty_sales(self, recipes, ingredients):
        results = engine.run_full_analysis([], recipes, ingredients)

        assert results["margin_rows"] == []
        assert results["leak_report"].summary.message == "No items with margin data."
        assert results["data_quality"]["valid"] is False


class TestValidation:

    def test_case_variants_warned(self):
        dq = engine.validate_sales_records([SalesRecord("Burger", 10, 100), SalesRecord("burger ", 5, 50)])

        assert dq["valid"] is True
        assert any("casing" in w for w in dq["warnings"])

    def test_refunds_warned(self):
        dq = engine.validate_sales_records([SalesRecord("Burger", -1, -12.0)])
        assert any("negative" in w for w in dq["warnings"])


# =============================================================================
# EXPORTS
# =============================================================================

class TestExports:

    def test_json_round_trip(self, sales, recipes, ingredients, tmp_path):
        results = engine.run_full_analysis(sales, recipes, ingredients)
        path = tmp_path / "results.json"
        engine.write_results_json(results, str(path))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["summary_metrics"]["item_count"] == 4
        assert {m["item_name"] for m in data["margins"]} == {"Burger", "Fish Tacos", "Fries", "Soda"}
        assert sum(data["quadrant_counts"].values()) == 4

    def test_markdown_summary(self, sales, recipes, ingredients):
        results = engine.run_full_analysis(sales, recipes, ingredients)
        text = engine.format_leak_report_markdown(results["leak_report"])

        assert text.startswith("## Profit Leaks")
        assert results["leak_report"].summary.message in text

    def test_excel_workbook(self, sales, recipes, ingredients, tmp_path):
        results = engine.run_full_analysis(sales, recipes, ingredients)
        path = tmp_path / "report.xlsx"
        engine.export_results_to_excel(results, str(path))

        sheets = pd.read_excel(path, sheet_name=None)
        assert {"Summary", "Item_Margins", "Profit_Leaks", "Quadrants"} <= set(sheets)


class TestCommandLine:

    def test_writes_outputs(self, sales_csv_path, recipe_book_path, tmp_path):
        out_dir = tmp_path / "out"
        code = run_analysis.main([
            "--sales", str(sales_csv_path),
            "--recipes", str(recipe_book_path),
            "--output-dir", str(out_dir),
            "--no-excel",
        ])

        assert code == 0
        for name in ["item_margins.csv", "profit_leaks.csv", "results.json", "profit_leaks.md"]:
            assert (out_dir / name).exists()

    def test_malformed_recipe_book_reports_error(self, sales_csv_path, tmp_path, capsys):
        bad_book = tmp_path / "bad.json"
        bad_book.write_text(json.dumps({"ingredients": [{"id": "flour", "unit_type": "kg"}]}), encoding="utf-8")

        code = run_analysis.main([
            "--sales", str(sales_csv_path),
            "--recipes", str(bad_book),
            "--output-dir", str(tmp_path / "out"),
            "--no-excel",
        ])

        assert code == 1
        assert "Failed to read" in capsys.readouterr().out
        assert not (tmp_path / "out").exists()

    def test_missing_inputs(self, tmp_path):
        code = run_analysis.main(["--sales", str(tmp_path / "nope.csv"), "--recipes", str(tmp_path / "nope.json")])
        assert code == 2
