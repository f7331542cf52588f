"""
Synthetic Data Generator

Generates warehouse source files for testing and development:
- Customer dimension with demographics
- Product dimension across categories with unit cost
- Sales fact lines referencing both dimensions

Files are written as CSV in the column order the bulk loader expects, using
the file names configured for the raw zone.
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import polars as pl
import structlog
from faker import Faker

from warehouse_analytics.config import get_settings
from warehouse_analytics.database.models import load_columns

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("Bikes", ["Mountain Bikes", "Road Bikes", "Touring Bikes"]),
    ("Components", ["Handlebars", "Wheels", "Frames", "Brakes", "Chains"]),
    ("Clothing", ["Jerseys", "Caps", "Gloves", "Socks", "Shorts"]),
    ("Accessories", ["Helmets", "Bottles and Cages", "Tires and Tubes", "Locks"]),
]

# Unit cost range per category
COST_RANGES = {
    "Bikes": (300, 2200),
    "Components": (20, 800),
    "Clothing": (5, 60),
    "Accessories": (2, 40),
}

PRODUCT_LINES = ["Mountain", "Road", "Touring", "Other Sales"]
COUNTRIES = ["Australia", "Canada", "France", "Germany", "United Kingdom", "United States"]
MARITAL_STATUSES = ["Married", "Single"]
GENDERS = ["Male", "Female", "n/a"]

SHIPPING_DAYS = 7
DUE_DAYS = 12


# =============================================================================
# GENERATORS
# =============================================================================

class CustomerGenerator:
    """Generate customer dimension rows"""

    def __init__(self, fake: Faker, rng: np.random.Generator):
        self.fake = fake
        self.rng = rng

    def generate(self, n: int = 1000) -> pl.DataFrame:
        keys = np.arange(1, n + 1)
        return pl.DataFrame({
            "customer_key": keys,
            "customer_id": keys + 11000,
            "customer_number": [f"AW{k + 11000:08d}" for k in keys],
            "first_name": [self.fake.first_name() for _ in range(n)],
            "last_name": [self.fake.last_name() for _ in range(n)],
            "country": self.rng.choice(COUNTRIES, n),
            "marital_status": self.rng.choice(MARITAL_STATUSES, n),
            "gender": self.rng.choice(GENDERS, n, p=[0.48, 0.48, 0.04]),
            "birthdate": [
                self.fake.date_between(start_date="-80y", end_date="-17y") for _ in range(n)
            ],
            "create_date": [
                self.fake.date_between(start_date="-5y", end_date="-1y") for _ in range(n)
            ],
        })


class ProductGenerator:
    """Generate product dimension rows"""

    def __init__(self, fake: Faker, rng: np.random.Generator):
        self.fake = fake
        self.rng = rng

    def generate(self, n: int = 300) -> pl.DataFrame:
        products = []
        for key in range(1, n + 1):
            category_index = int(self.rng.integers(len(CATEGORIES)))
            category, subcategories = CATEGORIES[category_index]
            subcategory = subcategories[int(self.rng.integers(len(subcategories)))]
            low, high = COST_RANGES[category]

            products.append({
                "product_key": key,
                "product_id": 200 + key,
                "product_number": f"{category[:2].upper()}-{self.fake.bothify('?###').upper()}",
                "product_name": f"{self.fake.word().title()} {subcategory} {key}",
                "category_id": f"{category[:2].upper()}_{subcategory[:2].upper()}",
                "category": category,
                "subcategory": subcategory,
                "maintenance": "Yes" if self.rng.random() < 0.4 else "No",
                "cost": int(self.rng.integers(low, high + 1)),
                "product_line": PRODUCT_LINES[int(self.rng.integers(len(PRODUCT_LINES)))],
                "start_date": self.fake.date_between(start_date="-6y", end_date="-3y"),
            })
        return pl.DataFrame(products)


class SalesGenerator:
    """Generate sales fact lines; an order holds one to four distinct products"""

    def __init__(
        self,
        customers_df: pl.DataFrame,
        products_df: pl.DataFrame,
        fake: Faker,
        rng: np.random.Generator,
    ):
        self.customer_keys = customers_df["customer_key"].to_list()
        self.product_keys = products_df["product_key"].to_list()
        self.costs = dict(zip(self.product_keys, products_df["cost"].to_list()))
        self.fake = fake
        self.rng = rng

    def generate(
        self,
        n_orders: int = 5000,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> pl.DataFrame:
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=3 * 365)

        lines: List[dict] = []
        for i in range(n_orders):
            order_number = f"SO{43697 + i}"
            customer_key = int(self.rng.choice(self.customer_keys))
            order_date = self.fake.date_between(start_date=start_date, end_date=end_date)

            n_lines = int(self.rng.choice([1, 2, 3, 4], p=[0.55, 0.25, 0.15, 0.05]))
            n_lines = min(n_lines, len(self.product_keys))
            for product_key in self.rng.choice(self.product_keys, n_lines, replace=False):
                product_key = int(product_key)
                quantity = int(self.rng.choice([1, 2, 3], p=[0.85, 0.10, 0.05]))
                # Markup over unit cost
                price = max(1, int(round(self.costs[product_key] * self.rng.uniform(1.1, 1.8))))

                lines.append({
                    "order_number": order_number,
                    "product_key": product_key,
                    "customer_key": customer_key,
                    "order_date": order_date,
                    "shipping_date": order_date + timedelta(days=SHIPPING_DAYS),
                    "due_date": order_date + timedelta(days=DUE_DAYS),
                    "sales_amount": price * quantity,
                    "quantity": quantity,
                    "price": price,
                })

        return pl.DataFrame(lines)


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class DataGenerator:
    """Main data generator orchestrator"""

    def __init__(self, output_dir: Optional[str] = None, seed: int = 42):
        self.output_dir = Path(output_dir or get_settings().data_lake.raw_path)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.rng = np.random.default_rng(seed)

    def generate_all(
        self,
        n_customers: int = 1000,
        n_products: int = 300,
        n_orders: int = 5000,
        save: bool = True,
    ) -> Dict[str, pl.DataFrame]:
        """Generate the three warehouse tables, keyed by table name"""
        logger.info(
            "Generating synthetic warehouse data",
            customers=n_customers,
            products=n_products,
            orders=n_orders,
        )

        customers_df = CustomerGenerator(self.fake, self.rng).generate(n_customers)
        products_df = ProductGenerator(self.fake, self.rng).generate(n_products)
        sales_df = SalesGenerator(customers_df, products_df, self.fake, self.rng).generate(n_orders)

        data = {
            "dim_customers": customers_df,
            "dim_products": products_df,
            "fact_sales": sales_df,
        }

        if save:
            self._save_data(data)

        return data

    def _save_data(self, data: Dict[str, pl.DataFrame]) -> Dict[str, Path]:
        """Write each table as CSV in load column order"""
        table_files = get_settings().data_lake.table_files
        paths = {}
        for table_name, df in data.items():
            path = self.output_dir / table_files[table_name]
            columns = [name for name, _ in load_columns(table_name)]
            df.select(columns).write_csv(path)
            paths[table_name] = path
            logger.info("Saved source file", table=table_name, rows=df.height, path=str(path))
        return paths
