"""
Error taxonomy of the telemetry pipeline.

None of these conditions is fatal to the processing loop: each one is counted,
logged and surfaced to listeners as a PipelineEvent.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors"""


class InvalidSnapshot(PipelineError):
    """Malformed, out-of-range or out-of-order snapshot. The snapshot is dropped."""


class ScoringUnavailable(PipelineError):
    """The scoring function failed, timed out or returned an unusable value"""


class CorrelationUnavailable(PipelineError):
    """The log index is empty or the correlation query failed"""


class QueueOverflow(PipelineError):
    """A bounded ingestion queue is full and rejects new items"""
