"""Shared fixtures: an in-memory stand-in for the Neo4j sink."""

from datetime import datetime

import pytest

from entities import Customer, Order, OrderItem, Product, RelationshipWriteMode, WriteOutcome


class InMemoryGraphSink:
    """Mirrors Neo4jGraphSink's write semantics without a database."""

    def __init__(self):
        self.nodes = {}
        self.edges = []
        self.calls = []

    def ensure_constraints(self, labels):
        self.calls.append(("ensure_constraints", tuple(labels)))

    def upsert_node(self, label, key, attributes, create_only=True):
        self.calls.append(("upsert_node", label, key))
        props = {k: v for k, v in attributes.items() if k != "id"}
        if (label, key) in self.nodes:
            if not create_only:
                self.nodes[(label, key)].update(props)
            return WriteOutcome.EXISTING
        self.nodes[(label, key)] = {"id": key, **props}
        return WriteOutcome.CREATED

    def create_relationship(self, rel_type, from_ref, to_ref, attributes=None, key=None,
                            mode=RelationshipWriteMode.MERGE):
        self.calls.append(("create_relationship", rel_type, from_ref, to_ref))
        start = (from_ref.label, from_ref.key)
        end = (to_ref.label, to_ref.key)
        if start not in self.nodes or end not in self.nodes:
            return WriteOutcome.MISSING_ENDPOINT
        key = dict(key or {})
        if mode is RelationshipWriteMode.MERGE:
            for edge in self.edges:
                if (edge["type"], edge["start"], edge["end"]) == (rel_type, start, end) and \
                        all(edge["props"].get(k) == v for k, v in key.items()):
                    return WriteOutcome.EXISTING
        self.edges.append({
            "type": rel_type, "start": start, "end": end,
            "props": {**key, **(attributes or {})},
        })
        return WriteOutcome.CREATED

    def delete_relationships(self, rel_type):
        before = len(self.edges)
        self.edges = [e for e in self.edges if e["type"] != rel_type]
        return before - len(self.edges)

    # helpers for assertions
    def count_nodes(self, label):
        return sum(1 for (lbl, _) in self.nodes if lbl == label)

    def edges_of(self, rel_type):
        return [e for e in self.edges if e["type"] == rel_type]


@pytest.fixture
def graph():
    return InMemoryGraphSink()


@pytest.fixture
def shop():
    """Two customers, three products, three orders, four order items."""
    customers = [Customer(1, "John", "Doe"), Customer(2, "Jane", "Roe")]
    products = [
        Product(10, "Laptop", "Electronics", 999.99),
        Product(20, "Headphones", "Accessories", 199.99),
        Product(30, "Tablet", "Electronics", 299.99),
    ]
    orders = [
        Order(100, 1, datetime(2024, 3, 1, 10, 0)),
        Order(101, 2, datetime(2024, 3, 2, 11, 30)),
        Order(102, 1, datetime(2024, 3, 5, 9, 15)),
    ]
    order_items = [
        OrderItem(1000, 100, 10, 1, 999.99),
        OrderItem(1001, 100, 20, 2, 199.99),
        OrderItem(1002, 101, 30, 1, 299.99),
        OrderItem(1003, 102, 20, 1, 189.99),
    ]
    return customers, products, orders, order_items
