"""Tests for RecommendationSelector."""

import math

import pytest

from entities import Customer, Product
from errors import ScoringError
from graph_migration import MigrationEngine
from recommendations import RecommendationSelector, best_product

CUSTOMERS = [Customer(1, "Ann", "Lee"), Customer(2, "Bo", "Kim")]
PRODUCTS = [Product(101, "A", "Books", 10.0), Product(102, "B", "Games", 20.0)]


def _seed(graph, customers=CUSTOMERS, products=PRODUCTS):
    MigrationEngine(graph).migrate(customers, products, [], [])


def _table_scores(table):
    return lambda customer_id, product_id: table[(customer_id, product_id)]


class TestRecommendationSelector:

    def test_picks_highest_score_per_customer(self, graph):
        _seed(graph)
        scores = _table_scores({(1, 101): 0.9, (1, 102): 0.2, (2, 101): 0.1, (2, 102): 0.8})

        mapping = RecommendationSelector(graph).recommend(CUSTOMERS, PRODUCTS, scores)

        assert {c.id: p.id for c, p in mapping.items()} == {1: 101, 2: 102}
        edges = graph.edges_of("RECOMMENDED_NEXT")
        assert len(edges) == 2
        assert {(e["start"], e["end"]) for e in edges} == {
            (("Customer", 1), ("Product", 101)),
            (("Customer", 2), ("Product", 102)),
        }
        assert edges[0]["props"]["score"] == 0.9

    def test_tie_goes_to_first_product(self, graph):
        _seed(graph)
        flat = lambda customer_id, product_id: 0.5

        first = RecommendationSelector(graph).recommend(CUSTOMERS, PRODUCTS, flat)
        again = RecommendationSelector(graph).recommend(CUSTOMERS, PRODUCTS, flat)
        reversed_order = RecommendationSelector(graph).recommend(CUSTOMERS, PRODUCTS[::-1], flat)

        assert {c.id: p.id for c, p in first.items()} == {1: 101, 2: 101}
        assert first == again
        assert {c.id: p.id for c, p in reversed_order.items()} == {1: 102, 2: 102}

    def test_empty_catalog_writes_nothing(self, graph):
        _seed(graph, products=[])

        mapping = RecommendationSelector(graph).recommend(CUSTOMERS, [], lambda c, p: 1.0)

        assert mapping == {}
        assert graph.edges_of("RECOMMENDED_NEXT") == []

    def test_scoring_failure_skips_only_that_customer(self, graph):
        _seed(graph)

        def flaky(customer_id, product_id):
            if customer_id == 1 and product_id == 102:
                raise ScoringError("oracle unavailable")
            return 1.0 / product_id

        mapping = RecommendationSelector(graph).recommend(CUSTOMERS, PRODUCTS, flaky)

        assert {c.id: p.id for c, p in mapping.items()} == {2: 101}
        assert len(graph.edges_of("RECOMMENDED_NEXT")) == 1

    def test_nan_scores_are_ignored(self, graph):
        _seed(graph)
        scores = _table_scores({
            (1, 101): math.nan, (1, 102): 0.1,
            (2, 101): math.nan, (2, 102): math.nan,
        })

        mapping = RecommendationSelector(graph).recommend(CUSTOMERS, PRODUCTS, scores)

        assert {c.id: p.id for c, p in mapping.items()} == {1: 102}

    def test_rerun_without_clear_accumulates_edges(self, graph):
        _seed(graph)
        selector = RecommendationSelector(graph)
        selector.recommend(CUSTOMERS, PRODUCTS, lambda c, p: 1.0)
        selector.recommend(CUSTOMERS, PRODUCTS, lambda c, p: 1.0)

        assert len(graph.edges_of("RECOMMENDED_NEXT")) == 4

    def test_clear_then_recommend_replaces_edges(self, graph):
        _seed(graph)
        selector = RecommendationSelector(graph)
        selector.recommend(CUSTOMERS, PRODUCTS, lambda c, p: p)

        assert selector.clear() == 2
        selector.recommend(CUSTOMERS, PRODUCTS, lambda c, p: -p)

        edges = graph.edges_of("RECOMMENDED_NEXT")
        assert len(edges) == 2
        assert all(e["end"] == ("Product", 101) for e in edges)

    def test_customer_missing_from_graph_is_skipped(self, graph):
        _seed(graph, customers=CUSTOMERS[:1])

        mapping = RecommendationSelector(graph).recommend(CUSTOMERS, PRODUCTS, lambda c, p: 1.0)

        assert [c.id for c in mapping] == [1]


def test_best_product_returns_none_without_products():
    assert best_product(CUSTOMERS[0], [], lambda c, p: 1.0) == (None, None)


def test_best_product_handles_negative_scores():
    winner, score = best_product(CUSTOMERS[0], PRODUCTS, lambda c, p: -float(p))
    assert winner.id == 101
    assert score == pytest.approx(-101.0)
