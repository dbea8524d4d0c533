"""
Purchase-likelihood scoring from learned customer/product factors.

Both trainers (ml_pipeline_sklearn, ml_pipeline_spark) produce a
FactorScoringModel; it is built once after training and reused for every
(customer, product) pair.
"""

import math
from typing import Dict, Iterable

import numpy as np
import pandas as pd

from entities import Customer, Order, OrderItem
from errors import ScoringError


def extract_purchases(customers: Iterable[Customer],
                      orders: Iterable[Order],
                      order_items: Iterable[OrderItem]) -> pd.DataFrame:
    """One (customer_id, product_id, label=1) row per purchased order item."""
    customer_ids = pd.DataFrame({"customer_id": [c.id for c in customers]}, dtype="int64")
    orders_df = pd.DataFrame(
        [(o.id, o.customer_id) for o in orders], columns=["order_id", "customer_id"]
    ).astype("int64")
    items_df = pd.DataFrame(
        [(oi.order_id, oi.product_id) for oi in order_items], columns=["order_id", "product_id"]
    ).astype("int64")
    df = (
        items_df.merge(orders_df, on="order_id", how="inner")
        .merge(customer_ids, on="customer_id", how="inner")
    )
    df["label"] = 1
    return df[["customer_id", "product_id", "label"]].astype("int64").reset_index(drop=True)


class FactorScoringModel:
    """Scores a pair as the dot product of its customer and product factors."""

    def __init__(self, customer_index: Dict[int, int], product_index: Dict[int, int],
                 customer_factors: np.ndarray, product_factors: np.ndarray):
        customer_factors = np.asarray(customer_factors, dtype=float)
        product_factors = np.asarray(product_factors, dtype=float)
        if customer_factors.ndim != 2 or product_factors.ndim != 2:
            raise ScoringError("factor matrices must be two-dimensional")
        if customer_factors.shape[1] != product_factors.shape[1]:
            raise ScoringError(
                f"factor rank mismatch: {customer_factors.shape[1]} != {product_factors.shape[1]}"
            )
        if len(customer_index) != customer_factors.shape[0] or len(product_index) != product_factors.shape[0]:
            raise ScoringError("index sizes do not match factor rows")
        self.customer_index = dict(customer_index)
        self.product_index = dict(product_index)
        self.customer_factors = customer_factors
        self.product_factors = product_factors

    @property
    def rank(self) -> int:
        return self.customer_factors.shape[1]

    def score(self, customer_id: int, product_id: int) -> float:
        # ids never seen in training have no factors to score with
        row = self.customer_index.get(customer_id)
        col = self.product_index.get(product_id)
        if row is None or col is None:
            return math.nan
        return float(self.customer_factors[row] @ self.product_factors[col])

    __call__ = score
