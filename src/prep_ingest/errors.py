"""Exceptions that end a run instead of a single bundle."""


class IngestError(Exception):
    """Base class for every error raised by the ingestion engine."""


class ConfigError(IngestError):
    pass


class SchemaInitError(IngestError):
    pass


class TransportError(IngestError):
    """The database is unreachable, timed out, or failed at the protocol level."""


class InvariantBreach(IngestError):
    """The engine's own bookkeeping disagrees with the database."""

    def __init__(self, message: str, **context):
        self.context = context
        if context:
            details = ", ".join(f"{k}={v!r}" for k, v in sorted(context.items()))
            message = f"{message} ({details})"
        super().__init__(message)


class SourceUnavailable(IngestError):
    """The content source as a whole cannot be read or downloaded."""
