"""Work item validation, batch validation and snapshot refresh."""

from adosync.validation.orchestrator import (
    ValidationResult,
    WorkItemValidator,
    friendly_message,
    is_valid_identifier,
    is_valid_record,
)
from adosync.validation.refresh import (
    DEFAULT_VISIBLE_FIELDS,
    RefreshResult,
    WorkItemRefresher,
    WorkItemSnapshot,
    split_acceptance_criteria,
)

__all__ = [
    "DEFAULT_VISIBLE_FIELDS",
    "RefreshResult",
    "ValidationResult",
    "WorkItemRefresher",
    "WorkItemSnapshot",
    "WorkItemValidator",
    "friendly_message",
    "is_valid_identifier",
    "is_valid_record",
    "split_acceptance_criteria",
]
