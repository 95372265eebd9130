"""
Exception hierarchy for the metrics subsystem.
"""


class MetricsError(Exception):
    """Base class for all metrics errors."""


class ConfigurationError(MetricsError):
    """Missing or invalid reporter settings. Disables reporting only."""


class QueryFailure(MetricsError):
    """A host statistics query failed or returned an unusable payload."""


class TransmissionFailure(MetricsError):
    """Sending a report tick to the Graphite collector failed."""
