import argparse
import logging
import os
import sys

import menu_profit_engine as engine
from menu_data_loader import load_recipe_book, load_sales_records


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Menu profitability and profit leak report")
    parser.add_argument("--sales", default=engine.CONFIG["sales_path"],
                        help="CSV/Excel with item_name, units_sold, revenue columns")
    parser.add_argument("--recipes", default=engine.CONFIG["recipe_book_path"],
                        help="JSON recipe book (ingredients, recipes, menu_items)")
    parser.add_argument("--target-margin", type=float, default=engine.CONFIG["default_target_margin"],
                        help="Target gross margin as decimal, e.g. 0.75")
    parser.add_argument("--strategic", action="append", default=[],
                        help="Item name to treat as a deliberate loss leader (repeatable)")
    parser.add_argument("--output-dir", default="output")
    parser.add_argument("--no-excel", action="store_true", help="Skip the Excel workbook")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Run the menu profit engine on local files and save outputs."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = engine.CONFIG.copy()
    config["default_target_margin"] = args.target_margin
    config["strategic_item_names"] = list(config.get("strategic_item_names") or []) + args.strategic

    missing = [p for p in (args.sales, args.recipes) if not os.path.exists(p)]
    if missing:
        print(f"❌ Input files not found: {', '.join(missing)}")
        return 2

    try:
        records, errors = load_sales_records(args.sales)
        ingredients, recipes, menu_items = load_recipe_book(args.recipes)
    except ValueError as e:
        print(f"❌ {e}")
        return 1
    if errors:
        print("❌ Could not read sales data:")
        for error in errors:
            print(f"  • {error}")
        return 1

    results = engine.run_full_analysis(records, recipes, ingredients, config=config, menu_items=menu_items)

    dq = results["data_quality"]
    if dq["warnings"]:
        print("\n⚠️  WARNINGS (analysis will proceed but quality may be affected):\n")
        for warning in dq["warnings"]:
            print(f"  • {warning}")

    print("\nSummary metrics:")
    for key, value in results["summary_metrics"].items():
        print(f"  • {key}: {value}")

    print("\n" + results["leak_report"].summary.message)
    for leak in engine.top_leaks(results):
        print(f"  • {leak['item_name']} [{leak['role']}]: "
              f"{config['currency']}{leak['estimated_lost_profit_per_month']:,.2f}/month")

    os.makedirs(args.output_dir, exist_ok=True)
    results["margin_df"].to_csv(os.path.join(args.output_dir, "item_margins.csv"), index=False)
    results["leak_df"].to_csv(os.path.join(args.output_dir, "profit_leaks.csv"), index=False)
    engine.write_results_json(results, os.path.join(args.output_dir, "results.json"))
    with open(os.path.join(args.output_dir, "profit_leaks.md"), "w", encoding="utf-8") as f:
        f.write(engine.format_leak_report_markdown(results["leak_report"], config["currency"]))
    if not args.no_excel:
        engine.export_results_to_excel(results, os.path.join(args.output_dir, "menu_profit_report.xlsx"))

    print(f"\nWrote outputs to ./{args.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
