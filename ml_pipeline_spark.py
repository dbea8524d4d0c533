# ml_pipeline_spark.py

import numpy as np
import pandas as pd
from pyspark.ml.recommendation import ALS
from pyspark.sql import SparkSession

from errors import ScoringError
from log_config import get_logger, set_level
from relational_source import RelationalSource
from scoring import FactorScoringModel, extract_purchases
from settings import Settings

logger = get_logger("train.spark")


def _factors_to_index(factors_df: pd.DataFrame):
    factors_df = factors_df.sort_values("id").reset_index(drop=True)
    index = {int(i): pos for pos, i in enumerate(factors_df["id"])}
    matrix = np.array(factors_df["features"].tolist(), dtype=float)
    return index, matrix


def train_spark_scoring_model(purchases: pd.DataFrame, rank=100, iterations=20,
                              regularization=0.025, alpha=0.01, seed=42) -> FactorScoringModel:
    if purchases.empty:
        raise ScoringError("cannot train a scoring model without purchase history")

    # 1) Start SparkSession (clean each run)
    spark = SparkSession.builder \
        .appName("NextPurchaseALS") \
        .master("local[*]") \
        .config("spark.driver.host", "127.0.0.1") \
        .getOrCreate()

    try:
        # 2) Purchase counts as implicit confidence
        counts = (
            purchases.groupby(["customer_id", "product_id"])["label"]
            .sum()
            .reset_index()
            .rename(columns={"label": "purchases"})
        )
        counts["purchases"] = counts["purchases"].astype(float)
        df = spark.createDataFrame(counts)

        # 3) Implicit-feedback ALS
        als = ALS(
            userCol="customer_id",
            itemCol="product_id",
            ratingCol="purchases",
            rank=rank,
            maxIter=iterations,
            regParam=regularization,
            alpha=alpha,
            implicitPrefs=True,
            nonnegative=True,
            coldStartStrategy="nan",
            seed=seed,
        )
        model = als.fit(df)

        # 4) Pull the learned factors back to the driver
        customer_index, customer_factors = _factors_to_index(model.userFactors.toPandas())
        product_index, product_factors = _factors_to_index(model.itemFactors.toPandas())
    finally:
        # 5) Stop Spark
        spark.stop()

    logger.info(
        f"Trained ALS scoring model: {len(customer_index)} customers, "
        f"{len(product_index)} products, rank={rank}"
    )
    return FactorScoringModel(customer_index, product_index, customer_factors, product_factors)


def main():
    settings = Settings.from_env()
    set_level(settings.log_level)

    source = RelationalSource.from_url(settings.database_url)
    customers, products, orders, order_items = source.fetch_all()
    purchases = extract_purchases(customers, orders, order_items)

    model = train_spark_scoring_model(
        purchases,
        rank=settings.mf_rank,
        iterations=settings.mf_iterations,
        regularization=settings.mf_regularization,
        alpha=settings.mf_alpha,
    )
    for customer in customers:
        scored = [(model.score(customer.id, p.id), p.name) for p in products]
        scored = [s for s in scored if not np.isnan(s[0])]
        if scored:
            best = max(scored, key=lambda s: s[0])
            print(f"customer {customer.id}: {best[1]} ({best[0]:.3f})")


if __name__ == "__main__":
    main()
