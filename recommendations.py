"""
Next-purchase recommendations.

For every customer, every product is scored and the highest score wins; on a
tie the earliest product in the given ordering wins. One RECOMMENDED_NEXT edge
is created per customer with a winner. Edges are always created, never
merged, so previous recommendations must be cleared (see `clear`) before a
re-run or they accumulate.
"""

import math
from typing import Callable, Dict, Optional, Sequence, Tuple

from entities import Customer, NodeRef, Product, RelationshipWriteMode, WriteOutcome
from graph_migration import CUSTOMER, PRODUCT
from log_config import get_logger

logger = get_logger("recommendations")

RECOMMENDED_NEXT = "RECOMMENDED_NEXT"

ScoreFn = Callable[[int, int], float]


def best_product(customer: Customer, products: Sequence[Product],
                 score_fn: ScoreFn) -> Tuple[Optional[Product], Optional[float]]:
    """Arg-max over products; nan scores are never selected."""
    winner, best = None, None
    for product in products:
        score = float(score_fn(customer.id, product.id))
        if math.isnan(score):
            continue
        if best is None or score > best:
            winner, best = product, score
    return winner, best


class RecommendationSelector:
    def __init__(self, sink):
        self.sink = sink

    def clear(self) -> int:
        """Remove every previously written recommendation edge."""
        deleted = self.sink.delete_relationships(RECOMMENDED_NEXT)
        logger.info(f"Removed {deleted} previous {RECOMMENDED_NEXT} edges")
        return deleted

    def recommend(self, customers: Sequence[Customer], products: Sequence[Product],
                  score_fn: ScoreFn) -> Dict[Customer, Product]:
        recommendations = {}
        scoring_failures = 0
        unscored = 0

        for customer in customers:
            try:
                winner, score = best_product(customer, products, score_fn)
            except Exception as e:  # the scoring oracle is opaque
                scoring_failures += 1
                logger.warning(f"Scoring failed for customer {customer.id}, no recommendation written: {e}")
                continue
            if winner is None:
                unscored += 1
                continue

            outcome = self.sink.create_relationship(
                RECOMMENDED_NEXT,
                NodeRef(CUSTOMER, customer.id),
                NodeRef(PRODUCT, winner.id),
                attributes={"score": score},
                mode=RelationshipWriteMode.CREATE,
            )
            if outcome is WriteOutcome.MISSING_ENDPOINT:
                logger.warning(
                    f"Skipped {RECOMMENDED_NEXT} for customer {customer.id}: "
                    f"customer or product {winner.id} not in graph"
                )
                continue
            recommendations[customer] = winner

        logger.info(
            f"Recommendations: {len(recommendations)} written, {unscored} without a scorable product, "
            f"{scoring_failures} scoring failures"
        )
        return recommendations
