"""Domain errors and failure typing."""

from tripqa.common.constants import ACTION_EXCLUDED, ACTION_FLAGGED, ACTION_RETAINED


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class FatalError(PipelineError):
    """Raised when a run must stop before anything else is persisted."""

    error_code = "FATAL_ERROR"


class SourceError(FatalError):
    """Raised when a required input file is missing or unreadable."""

    error_code = "SOURCE_ERROR"


class FlushError(FatalError):
    """Raised when an output batch could not be persisted."""

    error_code = "FLUSH_ERROR"


class RowError(Exception):
    """Per-row issue carried into a quality log entry.

    Instances are built by the trip engine for their ``issue_type``,
    ``action`` and message; they are not raised across the row boundary.
    The base code also labels unexpected exceptions caught inside it.
    """

    issue_type = "ROW_PROCESSING_ERROR"
    action = ACTION_EXCLUDED


class ValidationError(RowError):
    issue_type = "FIELD_PARSE_ERROR"
    action = ACTION_RETAINED


class IntegrityError(RowError):
    issue_type = "DUPLICATE_TRIP"


class RangeWarning(RowError):
    issue_type = "RANGE_WARNING"
    action = ACTION_FLAGGED
