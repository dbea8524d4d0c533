"""
Runtime configuration, read from the environment (and a local .env file).
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from entities import RelationshipWriteMode
from errors import ConfigurationError
from log_config import LEVELS

MISSING_ENDPOINT_POLICIES = ("skip", "fail")
SCORING_BACKENDS = ("sklearn", "spark")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class Settings:
    database_url: str = "sqlite:///shopping.db"
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"
    neo4j_database: str = "neo4j"
    graph_call_timeout: float = 30.0
    graph_max_retry_time: float = 15.0
    relationship_write_mode: RelationshipWriteMode = RelationshipWriteMode.MERGE
    missing_endpoint_policy: str = "skip"
    replace_recommendations: bool = True
    scoring_backend: str = "sklearn"
    mf_rank: int = 100
    mf_iterations: int = 20
    mf_regularization: float = 0.025
    mf_alpha: float = 0.01
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        if environ is None:
            load_dotenv()
            environ = os.environ
        defaults = cls()

        def get(name, default):
            value = environ.get(name)
            return default if value is None or value.strip() == "" else value.strip()

        settings = cls(
            database_url=get("DATABASE_URL", defaults.database_url),
            neo4j_uri=get("NEO4J_URI", defaults.neo4j_uri),
            neo4j_user=get("NEO4J_USER", get("NEO4J_USERNAME", defaults.neo4j_user)),
            neo4j_password=get("NEO4J_PASSWORD", defaults.neo4j_password),
            neo4j_database=get("NEO4J_DATABASE", defaults.neo4j_database),
            graph_call_timeout=_number("GRAPH_CALL_TIMEOUT", get("GRAPH_CALL_TIMEOUT", defaults.graph_call_timeout), float),
            graph_max_retry_time=_number("GRAPH_MAX_RETRY_TIME", get("GRAPH_MAX_RETRY_TIME", defaults.graph_max_retry_time), float),
            relationship_write_mode=_choice(
                "RELATIONSHIP_WRITE_MODE",
                get("RELATIONSHIP_WRITE_MODE", defaults.relationship_write_mode.value),
                [m.value for m in RelationshipWriteMode],
            ),
            missing_endpoint_policy=_choice(
                "MISSING_ENDPOINT_POLICY",
                get("MISSING_ENDPOINT_POLICY", defaults.missing_endpoint_policy),
                MISSING_ENDPOINT_POLICIES,
            ),
            replace_recommendations=_flag(
                "REPLACE_RECOMMENDATIONS", get("REPLACE_RECOMMENDATIONS", "true")
            ),
            scoring_backend=_choice(
                "SCORING_BACKEND", get("SCORING_BACKEND", defaults.scoring_backend), SCORING_BACKENDS
            ),
            mf_rank=_number("MF_RANK", get("MF_RANK", defaults.mf_rank), int),
            mf_iterations=_number("MF_ITERATIONS", get("MF_ITERATIONS", defaults.mf_iterations), int),
            mf_regularization=_number("MF_REGULARIZATION", get("MF_REGULARIZATION", defaults.mf_regularization), float),
            mf_alpha=_number("MF_ALPHA", get("MF_ALPHA", defaults.mf_alpha), float),
            log_level=_choice("LOG_LEVEL", get("LOG_LEVEL", defaults.log_level), [lvl.lower() for lvl in LEVELS]).upper(),
        )
        settings.relationship_write_mode = RelationshipWriteMode(settings.relationship_write_mode)

        if settings.graph_call_timeout <= 0:
            raise ConfigurationError("GRAPH_CALL_TIMEOUT must be positive")
        if settings.mf_rank < 1 or settings.mf_iterations < 1:
            raise ConfigurationError("MF_RANK and MF_ITERATIONS must be at least 1")
        return settings


def _number(name, value, kind):
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a {kind.__name__}, got {value!r}") from None


def _choice(name, value, allowed):
    value = str(value).lower()
    if value not in allowed:
        raise ConfigurationError(f"{name} must be one of {', '.join(allowed)}, got {value!r}")
    return value


def _flag(name, value):
    value = str(value).lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")
