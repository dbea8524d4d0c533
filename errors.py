"""Exceptions raised across the migration pipeline."""


class Sql2GraphError(Exception):
    pass


class ConfigurationError(Sql2GraphError):
    pass


class SourceUnavailable(Sql2GraphError):
    """The relational store could not be reached."""


class GraphSinkUnavailable(Sql2GraphError):
    """The graph database could not be reached or rejected our credentials."""


class GraphWriteError(Sql2GraphError):
    """A single graph statement failed."""


class MissingEndpointError(Sql2GraphError):
    def __init__(self, rel_type, from_ref, to_ref):
        super().__init__(
            f"cannot create {rel_type}: endpoint missing "
            f"({from_ref.label} {from_ref.key} -> {to_ref.label} {to_ref.key})"
        )
        self.rel_type = rel_type
        self.from_ref = from_ref
        self.to_ref = to_ref


class MigrationError(Sql2GraphError):
    """A migration stage failed; carries the counts reached before the failure."""

    def __init__(self, stage, result, cause):
        super().__init__(f"migration failed during stage '{stage}': {cause}")
        self.stage = stage
        self.result = result
        self.cause = cause


class ScoringError(Sql2GraphError):
    pass
