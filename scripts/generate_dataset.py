"""
Warehouse Dataset Generator
Writes the customer, product and sales source CSVs to the raw zone.
"""

import argparse

from warehouse_analytics.config import configure_logging
from warehouse_analytics.data import DataGenerator


def main():
    parser = argparse.ArgumentParser(description="Generate synthetic warehouse source files")
    parser.add_argument("--output-dir", default=None, help="Target directory (default: DATA_RAW_PATH)")
    parser.add_argument("--customers", type=int, default=1000)
    parser.add_argument("--products", type=int, default=300)
    parser.add_argument("--orders", type=int, default=5000)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    configure_logging()

    print("=" * 60)
    print("Warehouse Dataset Generator")
    print("=" * 60 + "\n")

    generator = DataGenerator(output_dir=args.output_dir, seed=args.seed)
    data = generator.generate_all(
        n_customers=args.customers,
        n_products=args.products,
        n_orders=args.orders,
    )

    total = 0
    for table_name, df in data.items():
        total += df.height
        print(f"   {table_name}: {df.height:,} rows")

    print(f"\nTotal: {total:,} rows -> {generator.output_dir}\n")


if __name__ == "__main__":
    main()
