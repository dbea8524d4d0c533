"""
Relational -> graph migration.

Stages run strictly in order, because later stages match nodes written by
earlier ones:

    1. Customer nodes
    2. Product nodes
    3. Order nodes, then Customer -PLACED-> Order
    4. OrderItem nodes, then Order -CONTAINS-> Product

Nodes are merged on `id` and only populated on creation, so repeated runs
leave curated graph attributes alone. The OrderItem node is written on its
own; the CONTAINS edge links the Order straight to the Product and carries
the item's quantity and unit price.
"""

from typing import Sequence

from entities import (
    Customer, MigrationResult, NodeRef, Order, OrderItem, Product,
    RelationshipWriteMode, WriteOutcome,
)
from errors import MigrationError, MissingEndpointError, Sql2GraphError
from log_config import get_logger

logger = get_logger("migration")

CUSTOMER = "Customer"
PRODUCT = "Product"
ORDER = "Order"
ORDER_ITEM = "OrderItem"
PLACED = "PLACED"
CONTAINS = "CONTAINS"

NODE_LABELS = (CUSTOMER, PRODUCT, ORDER, ORDER_ITEM)


def customer_attributes(customer):
    return {"firstName": customer.first_name, "lastName": customer.last_name}


def product_attributes(product):
    return {"name": product.name, "category": product.category, "price": product.price}


class MigrationEngine:
    def __init__(self, sink,
                 relationship_mode: RelationshipWriteMode = RelationshipWriteMode.MERGE,
                 missing_endpoint_policy: str = "skip"):
        if missing_endpoint_policy not in ("skip", "fail"):
            raise ValueError(f"unknown missing endpoint policy: {missing_endpoint_policy!r}")
        self.sink = sink
        self.relationship_mode = relationship_mode
        self.missing_endpoint_policy = missing_endpoint_policy

    def migrate(self, customers: Sequence[Customer], products: Sequence[Product],
                orders: Sequence[Order], order_items: Sequence[OrderItem]) -> MigrationResult:
        result = MigrationResult()
        stages = (
            ("customers", lambda: self._migrate_customers(customers, result)),
            ("products", lambda: self._migrate_products(products, result)),
            ("orders", lambda: self._migrate_orders(orders, result)),
            ("order_items", lambda: self._migrate_order_items(order_items, result)),
        )
        for stage, run in stages:
            try:
                run()
            except Sql2GraphError as e:
                logger.error(f"Stage '{stage}' failed; progress so far: {result.as_dict()}")
                raise MigrationError(stage, result, e) from e
            logger.info(f"Stage '{stage}' done: {result.as_dict()}")
        return result

    # ── stages ───────────────────────────────────────────────

    def _migrate_customers(self, customers, result):
        counts = result.node_counts(CUSTOMER)
        for customer in customers:
            counts.record(self.sink.upsert_node(CUSTOMER, customer.id, customer_attributes(customer)))

    def _migrate_products(self, products, result):
        counts = result.node_counts(PRODUCT)
        for product in products:
            counts.record(self.sink.upsert_node(PRODUCT, product.id, product_attributes(product)))

    def _migrate_orders(self, orders, result):
        nodes = result.node_counts(ORDER)
        edges = result.relationship_counts(PLACED)
        for order in orders:
            nodes.record(self.sink.upsert_node(ORDER, order.id, {"date": order.date}))
            edges.record(self._relate(
                PLACED, NodeRef(CUSTOMER, order.customer_id), NodeRef(ORDER, order.id),
            ))

    def _migrate_order_items(self, order_items, result):
        nodes = result.node_counts(ORDER_ITEM)
        edges = result.relationship_counts(CONTAINS)
        for item in order_items:
            attributes = {"quantity": item.quantity, "unitPrice": item.unit_price}
            nodes.record(self.sink.upsert_node(ORDER_ITEM, item.id, attributes))
            edges.record(self._relate(
                CONTAINS, NodeRef(ORDER, item.order_id), NodeRef(PRODUCT, item.product_id),
                attributes=attributes, key={"orderItemId": item.id},
            ))

    def _relate(self, rel_type, from_ref, to_ref, attributes=None, key=None) -> WriteOutcome:
        outcome = self.sink.create_relationship(
            rel_type, from_ref, to_ref, attributes=attributes, key=key, mode=self.relationship_mode,
        )
        if outcome is WriteOutcome.MISSING_ENDPOINT:
            if self.missing_endpoint_policy == "fail":
                raise MissingEndpointError(rel_type, from_ref, to_ref)
            logger.warning(
                f"Skipped {rel_type} {from_ref.label}:{from_ref.key} -> "
                f"{to_ref.label}:{to_ref.key}: endpoint node not found"
            )
        return outcome
