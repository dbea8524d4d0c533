# ml_pipeline_sklearn.py

import pandas as pd
from sklearn.decomposition import NMF

from errors import ScoringError
from log_config import get_logger, set_level
from relational_source import RelationalSource
from scoring import FactorScoringModel, extract_purchases
from settings import Settings

logger = get_logger("train.sklearn")


def purchase_matrix(purchases: pd.DataFrame) -> pd.DataFrame:
    """Binary customer x product matrix: 1 where the customer ever bought the product."""
    return purchases.pivot_table(
        index="customer_id", columns="product_id", values="label",
        aggfunc="max", fill_value=0,
    ).sort_index().sort_index(axis=1)


def train_scoring_model(purchases: pd.DataFrame, rank=100, iterations=20,
                        regularization=0.025, random_state=42) -> FactorScoringModel:
    if purchases.empty:
        raise ScoringError("cannot train a scoring model without purchase history")

    # ── 1) One-class implicit feedback matrix ────────────────
    matrix = purchase_matrix(purchases)
    n_customers, n_products = matrix.shape

    # ── 2) Clamp rank to what the matrix can support ─────────
    effective_rank = min(rank, n_customers, n_products)
    if effective_rank < rank:
        logger.info(f"Rank {rank} clamped to {effective_rank} for a {n_customers}x{n_products} matrix")

    # ── 3) Factorize ──────────────────────────────────────────
    nmf = NMF(
        n_components=effective_rank,
        init="nndsvda",
        max_iter=iterations,
        alpha_W=regularization,
        alpha_H="same",
        l1_ratio=0.0,
        random_state=random_state,
    )
    customer_factors = nmf.fit_transform(matrix.to_numpy(dtype=float))
    product_factors = nmf.components_.T
    logger.info(
        f"Trained NMF scoring model: {n_customers} customers, {n_products} products, "
        f"rank={effective_rank}, reconstruction_err={nmf.reconstruction_err_:.4f}"
    )

    return FactorScoringModel(
        customer_index={int(cid): i for i, cid in enumerate(matrix.index)},
        product_index={int(pid): j for j, pid in enumerate(matrix.columns)},
        customer_factors=customer_factors,
        product_factors=product_factors,
    )


def main():
    settings = Settings.from_env()
    set_level(settings.log_level)

    # ── 1) Load purchase history ──────────────────────────────
    source = RelationalSource.from_url(settings.database_url)
    customers, products, orders, order_items = source.fetch_all()
    purchases = extract_purchases(customers, orders, order_items)

    # ── 2) Train ──────────────────────────────────────────────
    model = train_scoring_model(
        purchases,
        rank=settings.mf_rank,
        iterations=settings.mf_iterations,
        regularization=settings.mf_regularization,
    )

    # ── 3) Top product per customer ───────────────────────────
    rows = []
    for customer in customers:
        for product in products:
            rows.append((customer.id, product.id, model.score(customer.id, product.id)))
    scores = pd.DataFrame(rows, columns=["customer_id", "product_id", "score"]).dropna()
    if scores.empty:
        print("No scorable customer/product pairs.")
        return
    top = scores.loc[scores.groupby("customer_id")["score"].idxmax()]
    print(top.to_string(index=False))


if __name__ == "__main__":
    main()
