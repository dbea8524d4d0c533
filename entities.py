"""
Shared shapes for the relational rows and the graph writes derived from them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict


@dataclass(frozen=True)
class Customer:
    id: int
    first_name: str
    last_name: str


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    category: str
    price: float


@dataclass(frozen=True)
class Order:
    id: int
    customer_id: int
    date: datetime


@dataclass(frozen=True)
class OrderItem:
    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: float


@dataclass(frozen=True)
class NodeRef:
    """A graph node addressed by label and primary key."""
    label: str
    key: int


class WriteOutcome(Enum):
    CREATED = "created"
    EXISTING = "existing"
    MISSING_ENDPOINT = "missing_endpoint"


class RelationshipWriteMode(Enum):
    MERGE = "merge"
    CREATE = "create"


@dataclass
class WriteCounts:
    created: int = 0
    existing: int = 0
    skipped: int = 0

    def record(self, outcome: WriteOutcome):
        if outcome is WriteOutcome.CREATED:
            self.created += 1
        elif outcome is WriteOutcome.EXISTING:
            self.existing += 1
        else:
            self.skipped += 1


@dataclass
class MigrationResult:
    nodes: Dict[str, WriteCounts] = field(default_factory=dict)
    relationships: Dict[str, WriteCounts] = field(default_factory=dict)

    def node_counts(self, label: str) -> WriteCounts:
        return self.nodes.setdefault(label, WriteCounts())

    def relationship_counts(self, rel_type: str) -> WriteCounts:
        return self.relationships.setdefault(rel_type, WriteCounts())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "nodes": {k: vars(v).copy() for k, v in self.nodes.items()},
            "relationships": {k: vars(v).copy() for k, v in self.relationships.items()},
        }
