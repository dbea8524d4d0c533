"""
Neo4j write access for the migration.

One driver and one session are acquired by `open()` and released by
`close()`; use the sink as a context manager so the session is released on
every exit path. Every statement runs in its own write transaction with a
per-call timeout, and the driver retries transient failures up to
`max_retry_time` seconds.
"""

import re
from typing import Any, Dict, Iterable, Optional

from neo4j import GraphDatabase, unit_of_work
from neo4j.exceptions import AuthError, Neo4jError, ServiceUnavailable, SessionExpired
from neo4j.exceptions import ConfigurationError as DriverConfigurationError

from entities import NodeRef, RelationshipWriteMode, WriteOutcome
from errors import ConfigurationError, GraphSinkUnavailable, GraphWriteError
from log_config import get_logger

logger = get_logger("graph")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _identifier(name):
    # labels, types and property keys cannot be query parameters
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"invalid graph identifier: {name!r}")
    return name


class Neo4jGraphSink:
    """Idempotent node upserts and relationship writes against Neo4j."""

    def __init__(self, uri="bolt://localhost:7687", user="neo4j", password="password",
                 database="neo4j", call_timeout=30.0, max_retry_time=15.0):
        self.uri = uri
        self.user = user
        self.password = password
        self.database = database
        self.call_timeout = call_timeout
        self.max_retry_time = max_retry_time
        self.driver = None
        self._session = None

    @classmethod
    def from_settings(cls, settings):
        return cls(
            uri=settings.neo4j_uri,
            user=settings.neo4j_user,
            password=settings.neo4j_password,
            database=settings.neo4j_database,
            call_timeout=settings.graph_call_timeout,
            max_retry_time=settings.graph_max_retry_time,
        )

    # ── lifecycle ────────────────────────────────────────────

    def open(self):
        if self._session is not None:
            return self
        try:
            self.driver = GraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
                connection_timeout=self.call_timeout or 30.0,
                max_transaction_retry_time=self.max_retry_time,
            )
            self.driver.verify_connectivity()
        except (DriverConfigurationError, ValueError) as e:
            self.close()
            raise ConfigurationError(f"invalid Neo4j connection settings for {self.uri!r}: {e}") from e
        except (ServiceUnavailable, AuthError) as e:
            self.close()
            raise GraphSinkUnavailable(f"cannot connect to Neo4j at {self.uri}: {e}") from e
        self._session = self.driver.session(database=self.database)
        logger.info(f"Connected to Neo4j at {self.uri} (database={self.database})")
        return self

    def close(self):
        if self._session is not None:
            self._session.close()
            self._session = None
        if self.driver is not None:
            self.driver.close()
            self.driver = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ── statement execution ──────────────────────────────────

    def _run(self, query, parameters):
        if self._session is None:
            raise GraphSinkUnavailable("graph sink is not open")

        @unit_of_work(timeout=self.call_timeout)
        def work(tx):
            result = tx.run(query, parameters)
            records = list(result)
            return records, result.consume().counters

        try:
            return self._session.execute_write(work)
        except (ServiceUnavailable, SessionExpired, AuthError) as e:
            raise GraphSinkUnavailable(f"lost connection to Neo4j: {e}") from e
        except Neo4jError as e:
            raise GraphWriteError(f"statement failed: {e}") from e

    # ── write API ────────────────────────────────────────────

    def ensure_constraints(self, labels: Iterable[str]):
        """Uniqueness constraints on the `id` key of every migrated label."""
        for label in labels:
            label = _identifier(label)
            self._run(
                f"CREATE CONSTRAINT {label.lower()}_id IF NOT EXISTS "
                f"FOR (n:{label}) REQUIRE n.id IS UNIQUE",
                {},
            )

    def upsert_node(self, label: str, key: int, attributes: Dict[str, Any],
                    create_only: bool = True) -> WriteOutcome:
        label = _identifier(label)
        props = {_identifier(k): v for k, v in attributes.items() if k != "id"}
        set_clause = "ON CREATE SET n += $props" if create_only else "SET n += $props"
        _, counters = self._run(
            f"MERGE (n:{label} {{id: $id}}) {set_clause}",
            {"id": key, "props": props},
        )
        return WriteOutcome.CREATED if counters.nodes_created else WriteOutcome.EXISTING

    def create_relationship(self, rel_type: str, from_ref: NodeRef, to_ref: NodeRef,
                            attributes: Optional[Dict[str, Any]] = None,
                            key: Optional[Dict[str, Any]] = None,
                            mode: RelationshipWriteMode = RelationshipWriteMode.MERGE) -> WriteOutcome:
        """
        Connect two existing nodes.

        In MERGE mode the `key` properties identify the edge, so re-running
        the same write matches the existing edge instead of adding another.
        CREATE mode always adds a new edge.
        """
        rel_type = _identifier(rel_type)
        key = {_identifier(k): v for k, v in (key or {}).items()}
        props = {_identifier(k): v for k, v in (attributes or {}).items()}
        parameters = {"from_id": from_ref.key, "to_id": to_ref.key}

        query = (
            f"MATCH (a:{_identifier(from_ref.label)} {{id: $from_id}}) "
            f"MATCH (b:{_identifier(to_ref.label)} {{id: $to_id}}) "
        )
        if mode is RelationshipWriteMode.MERGE:
            pattern = ", ".join(f"{k}: $key_{k}" for k in key)
            parameters.update({f"key_{k}": v for k, v in key.items()})
            rel = f"[r:{rel_type} {{{pattern}}}]" if pattern else f"[r:{rel_type}]"
            query += f"MERGE (a)-{rel}->(b) ON CREATE SET r += $props "
        else:
            props = {**key, **props}
            query += f"CREATE (a)-[r:{rel_type}]->(b) SET r += $props "
        query += "RETURN count(r) AS matched"
        parameters["props"] = props

        records, counters = self._run(query, parameters)
        if not records or not records[0]["matched"]:
            return WriteOutcome.MISSING_ENDPOINT
        return WriteOutcome.CREATED if counters.relationships_created else WriteOutcome.EXISTING

    def delete_relationships(self, rel_type: str) -> int:
        _, counters = self._run(f"MATCH ()-[r:{_identifier(rel_type)}]->() DELETE r", {})
        return counters.relationships_deleted
