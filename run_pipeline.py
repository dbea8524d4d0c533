# run_pipeline.py

import sys

from sqlalchemy.exc import SQLAlchemyError

from errors import ConfigurationError, ScoringError, Sql2GraphError
from graph_migration import NODE_LABELS, MigrationEngine
from graph_sink import Neo4jGraphSink
from log_config import get_logger, set_level
from recommendations import RecommendationSelector
from relational_source import RelationalSource, seed_demo_data
from scoring import extract_purchases
from settings import Settings

logger = get_logger("pipeline")


def train_oracle(settings, customers, orders, order_items):
    purchases = extract_purchases(customers, orders, order_items)
    logger.info(f"Training {settings.scoring_backend} scoring model on {len(purchases)} purchases")
    if settings.scoring_backend == "spark":
        try:
            from ml_pipeline_spark import train_spark_scoring_model
        except ImportError as e:
            raise ConfigurationError(
                f"SCORING_BACKEND=spark needs pyspark; install with `pip install .[spark]` ({e})"
            ) from e
        return train_spark_scoring_model(
            purchases,
            rank=settings.mf_rank,
            iterations=settings.mf_iterations,
            regularization=settings.mf_regularization,
            alpha=settings.mf_alpha,
        )
    from ml_pipeline_sklearn import train_scoring_model
    return train_scoring_model(
        purchases,
        rank=settings.mf_rank,
        iterations=settings.mf_iterations,
        regularization=settings.mf_regularization,
    )


def run(settings: Settings, source: RelationalSource, sink):
    """Full migration, then full recommendation, against an open sink."""
    # ── 1) Read the relational store once ────────────────────
    customers, products, orders, order_items = source.fetch_all()

    # ── 2) Structural migration ───────────────────────────────
    sink.ensure_constraints(NODE_LABELS)
    engine = MigrationEngine(
        sink,
        relationship_mode=settings.relationship_write_mode,
        missing_endpoint_policy=settings.missing_endpoint_policy,
    )
    result = engine.migrate(customers, products, orders, order_items)

    # ── 3) Recompute recommendations ─────────────────────────
    selector = RecommendationSelector(sink)
    if settings.replace_recommendations:
        selector.clear()
    try:
        model = train_oracle(settings, customers, orders, order_items)
    except ScoringError as e:
        logger.warning(f"No scoring model, recommendations skipped: {e}")
        return result, {}
    recommendations = selector.recommend(customers, products, model.score)
    return result, recommendations


def main():
    try:
        settings = Settings.from_env()
        set_level(settings.log_level)
        source = RelationalSource.from_url(settings.database_url)
        with Neo4jGraphSink.from_settings(settings) as sink:
            run(settings, source, sink)
    except Sql2GraphError as e:
        logger.error(f"Pipeline failed: {e}")
        sys.exit(1)
    print("Done. Data migration and recommendations completed.")


def seed_main():
    try:
        settings = Settings.from_env()
        set_level(settings.log_level)
        source = RelationalSource.from_url(settings.database_url)
        seeded = seed_demo_data(source.engine)
    except (Sql2GraphError, SQLAlchemyError) as e:
        logger.error(f"Seeding failed: {e}")
        sys.exit(1)
    if seeded:
        print(f"Seeded demo data into {settings.database_url}")
    else:
        print("Demo data already present.")


if __name__ == "__main__":
    main()
