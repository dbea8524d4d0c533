"""
Read-only access to the relational shopping store.

The four tables are read in full, ordered by primary key, with pandas over a
SQLAlchemy engine. `seed_demo_data` creates the schema and loads the small
demo catalogue used for local runs.
"""

from datetime import datetime, timedelta
from typing import List, Tuple

import pandas as pd
from pandas.errors import DatabaseError
from sqlalchemy import (
    Column, DateTime, ForeignKey, Integer, MetaData, Numeric, String, Table,
    create_engine, func, select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from entities import Customer, Order, OrderItem, Product
from errors import ConfigurationError, SourceUnavailable
from log_config import get_logger

logger = get_logger("source")

metadata = MetaData()

customers_table = Table(
    "customers", metadata,
    Column("id", Integer, primary_key=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
)

products_table = Table(
    "products", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("category", String(100), nullable=False),
    Column("price", Numeric(10, 2), nullable=False),
)

orders_table = Table(
    "orders", metadata,
    Column("id", Integer, primary_key=True),
    Column("customer_id", Integer, ForeignKey("customers.id"), nullable=False),
    Column("order_date", DateTime, nullable=False),
)

order_items_table = Table(
    "order_items", metadata,
    Column("id", Integer, primary_key=True),
    Column("order_id", Integer, ForeignKey("orders.id"), nullable=False),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(10, 2), nullable=False),
)


class RelationalSource:
    """Bulk reads of the four shopping entities."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "RelationalSource":
        try:
            engine = create_engine(database_url, pool_pre_ping=True)
        except (ArgumentError, ImportError) as e:
            raise ConfigurationError(f"invalid DATABASE_URL {database_url!r}: {e}") from e
        return cls(engine)

    def _read(self, table: Table, parse_dates=None) -> pd.DataFrame:
        query = select(table).order_by(table.c.id)
        try:
            df = pd.read_sql(query, self.engine, parse_dates=parse_dates)
        except (SQLAlchemyError, DatabaseError) as e:
            raise SourceUnavailable(f"could not read table '{table.name}': {e}") from e
        logger.debug(f"Read {len(df)} rows from {table.name}")
        return df

    def fetch_customers(self) -> List[Customer]:
        df = self._read(customers_table)
        return [
            Customer(id=int(r.id), first_name=str(r.first_name), last_name=str(r.last_name))
            for r in df.itertuples(index=False)
        ]

    def fetch_products(self) -> List[Product]:
        df = self._read(products_table)
        return [
            Product(id=int(r.id), name=str(r.name), category=str(r.category), price=float(r.price))
            for r in df.itertuples(index=False)
        ]

    def fetch_orders(self) -> List[Order]:
        df = self._read(orders_table, parse_dates=["order_date"])
        return [
            Order(id=int(r.id), customer_id=int(r.customer_id), date=r.order_date.to_pydatetime())
            for r in df.itertuples(index=False)
        ]

    def fetch_order_items(self) -> List[OrderItem]:
        df = self._read(order_items_table)
        return [
            OrderItem(
                id=int(r.id),
                order_id=int(r.order_id),
                product_id=int(r.product_id),
                quantity=int(r.quantity),
                unit_price=float(r.unit_price),
            )
            for r in df.itertuples(index=False)
        ]

    def fetch_all(self) -> Tuple[List[Customer], List[Product], List[Order], List[OrderItem]]:
        customers = self.fetch_customers()
        products = self.fetch_products()
        orders = self.fetch_orders()
        order_items = self.fetch_order_items()
        logger.info(
            f"Loaded {len(customers)} customers, {len(products)} products, "
            f"{len(orders)} orders, {len(order_items)} order items"
        )
        return customers, products, orders, order_items


def seed_demo_data(engine: Engine) -> bool:
    """Create the schema and load the demo rows. Returns False if customers already exist."""
    metadata.create_all(engine)
    with engine.begin() as conn:
        if conn.execute(select(func.count()).select_from(customers_table)).scalar():
            logger.info("Demo data already present, skipping seed")
            return False

        now = datetime.now()
        conn.execute(customers_table.insert(), [
            {"id": 1, "first_name": "John", "last_name": "Doe"},
            {"id": 2, "first_name": "Jane", "last_name": "Doe"},
            {"id": 3, "first_name": "Michael", "last_name": "Smith"},
            {"id": 4, "first_name": "Michelle", "last_name": "Johnson"},
            {"id": 5, "first_name": "Chris", "last_name": "Evans"},
        ])
        conn.execute(products_table.insert(), [
            {"id": 1, "name": "Laptop", "category": "Electronics", "price": 999.99},
            {"id": 2, "name": "Smartphone", "category": "Electronics", "price": 699.99},
            {"id": 3, "name": "Tablet", "category": "Electronics", "price": 299.99},
            {"id": 4, "name": "Headphones", "category": "Accessories", "price": 199.99},
            {"id": 5, "name": "Smartwatch", "category": "Accessories", "price": 249.99},
        ])
        conn.execute(orders_table.insert(), [
            {"id": i, "customer_id": i, "order_date": now - timedelta(days=12 - 2 * i)}
            for i in range(1, 6)
        ])
        conn.execute(order_items_table.insert(), [
            {"id": 1, "order_id": 1, "product_id": 1, "quantity": 1, "unit_price": 999.99},
            {"id": 2, "order_id": 2, "product_id": 2, "quantity": 1, "unit_price": 699.99},
            {"id": 3, "order_id": 3, "product_id": 3, "quantity": 1, "unit_price": 299.99},
            {"id": 4, "order_id": 4, "product_id": 4, "quantity": 2, "unit_price": 199.99},
            {"id": 5, "order_id": 5, "product_id": 5, "quantity": 1, "unit_price": 249.99},
        ])
    logger.info("Seeded demo shopping data")
    return True
