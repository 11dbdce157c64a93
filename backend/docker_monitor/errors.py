"""
Error types raised by the status monitor.

Whole-pass failures (MalformedObservation, SourceUnavailable) abort a
reconciliation pass and leave tracked state untouched. Per-metric failures
never escape the sampler. Health probe problems are recorded on the probe
result instead of being raised.
"""

from typing import Optional


class StatusError(Exception):
    """Base class for compose-status errors"""


class MalformedObservation(StatusError):
    """An observed unit is missing its project or display name"""

    def __init__(self, message: str, container_id: Optional[str] = None):
        super().__init__(message)
        self.container_id = container_id


class SourceUnavailable(StatusError):
    """The container runtime could not be listed"""


class PersistenceFailure(StatusError):
    """The resume file could not be read or written"""


class MetricSampleUnavailable(StatusError):
    """A single host metric could not be read this cycle"""
