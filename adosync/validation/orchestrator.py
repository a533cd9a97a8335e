"""Work item validation on top of AzureDevOpsClient.

WorkItemValidator runs a structural check on the identifier before any
network call, fetches the work item, checks the returned record, and turns
every failure into a ValidationResult instead of an exception.

Batch validation runs in fixed-size groups: requests inside a group overlap,
groups run one after another. This keeps at most ``batch_size`` requests in
flight, which stays under Azure DevOps rate limiting.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from adosync.config.settings import DEFAULT_BATCH_SIZE
from adosync.integrations.azure_devops import AzureDevOpsClient
from adosync.integrations.errors import DomainError, ErrorCode
from adosync.models import WorkItemIdentifier, WorkItemRecord

logger = logging.getLogger(__name__)

# Organization and project names: letters, digits, whitespace, "_", "." and "-"
NAME_PATTERN = re.compile(r"^[A-Za-z0-9\s_.\-]+$")

FRIENDLY_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_PAT: (
        "Your Personal Access Token is invalid or expired. "
        "Please update your credentials in the plugin settings."
    ),
    ErrorCode.WORK_ITEM_NOT_FOUND: (
        "The work item could not be found. It may have been deleted "
        "or you may not have permission to access it."
    ),
    ErrorCode.INSUFFICIENT_PERMISSIONS: (
        "You don't have permission to access this work item. "
        "Please check with your Azure DevOps administrator."
    ),
    ErrorCode.RATE_LIMIT_EXCEEDED: (
        "Too many requests to Azure DevOps. Please wait a moment and try again."
    ),
    ErrorCode.NETWORK_ERROR: (
        "Unable to connect to Azure DevOps. "
        "Please check your internet connection and try again."
    ),
    ErrorCode.INVALID_PBI_INFO: (
        "The work item URL appears to be invalid or incomplete. "
        "Please check the URL and try again."
    ),
    ErrorCode.INVALID_PBI_DATA: (
        "The work item data from Azure DevOps is incomplete. "
        "This may be a temporary issue - please try again."
    ),
}

DEFAULT_FRIENDLY_MESSAGE = "An unexpected error occurred while validating the work item."


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one work item.

    Exactly one of ``data`` and ``error`` is set.
    """

    is_valid: bool
    data: WorkItemRecord | None = None
    error: DomainError | None = None

    @classmethod
    def ok(cls, record: WorkItemRecord) -> ValidationResult:
        return cls(is_valid=True, data=record)

    @classmethod
    def fail(cls, error: DomainError) -> ValidationResult:
        return cls(is_valid=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "data": self.data.to_dict() if self.data else None,
            "error": self.error.to_dict() if self.error else None,
        }


def is_valid_identifier(identifier: Any) -> bool:
    """Structural check that needs no network access."""
    if not isinstance(identifier, WorkItemIdentifier):
        return False

    for name in (identifier.organization, identifier.project):
        if not isinstance(name, str) or not name.strip():
            return False
        if not NAME_PATTERN.match(name):
            return False

    work_item_id = identifier.work_item_id
    if isinstance(work_item_id, bool) or not isinstance(work_item_id, int) or work_item_id <= 0:
        return False

    source_url = identifier.source_url
    return isinstance(source_url, str) and bool(source_url.strip())


def is_valid_record(record: Any) -> bool:
    """Check that a fetched record carries the minimally required fields."""
    if not isinstance(record, WorkItemRecord):
        return False
    if isinstance(record.id, bool) or not isinstance(record.id, int) or record.id <= 0:
        return False
    if not isinstance(record.title, str) or not record.title.strip():
        return False
    return isinstance(record.state, str) and bool(record.state.strip())


def friendly_message(error: DomainError) -> str:
    """Map an error to a user-actionable sentence."""
    message = FRIENDLY_MESSAGES.get(error.code)
    if message:
        return message
    return error.user_message or DEFAULT_FRIENDLY_MESSAGE


class WorkItemValidator:
    """Validates work items against Azure DevOps.

    Attributes:
        _client: AzureDevOpsClient used for fetching
        _batch_size: Maximum number of concurrent requests in validate_batch
    """

    def __init__(self, client: AzureDevOpsClient, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self._client = client
        self._batch_size = max(1, batch_size)

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def validate(self, identifier: WorkItemIdentifier, pat: str) -> ValidationResult:
        """Validate one work item.

        The structural check always runs first; when it fails no request is
        issued.

        Returns:
            ValidationResult with the record, or with a DomainError
        """
        if not is_valid_identifier(identifier):
            return ValidationResult.fail(
                DomainError.create(
                    ErrorCode.INVALID_PBI_INFO, "Invalid work item information structure"
                )
            )

        try:
            record = await self._client.fetch_work_item(identifier, pat)
        except DomainError as e:
            logger.debug("Validation of %s failed: %s", identifier.display_id, e.code.value)
            return ValidationResult.fail(e)
        except Exception as e:
            logger.warning(
                "Unexpected error validating %s: %s", identifier.display_id, type(e).__name__
            )
            return ValidationResult.fail(
                DomainError.create(
                    ErrorCode.VALIDATION_ERROR, f"Work item validation failed: {e}"
                )
            )

        if not is_valid_record(record):
            return ValidationResult.fail(
                DomainError.create(
                    ErrorCode.INVALID_PBI_DATA, "Retrieved work item data is incomplete or invalid"
                )
            )

        return ValidationResult.ok(record)

    async def exists(self, identifier: WorkItemIdentifier, pat: str) -> bool:
        """Return whether the work item exists and is accessible."""
        result = await self.validate(identifier, pat)
        return result.is_valid

    async def validate_batch(
        self,
        identifiers: Sequence[WorkItemIdentifier],
        pat: str,
    ) -> list[ValidationResult]:
        """Validate several work items, preserving input order.

        Groups of ``batch_size`` run concurrently; each group is awaited in
        full before the next one starts.
        """
        results: list[ValidationResult] = []
        for start in range(0, len(identifiers), self._batch_size):
            group = identifiers[start : start + self._batch_size]
            group_results = await asyncio.gather(
                *(self.validate(identifier, pat) for identifier in group)
            )
            results.extend(group_results)
        return results


__all__ = [
    "NAME_PATTERN",
    "FRIENDLY_MESSAGES",
    "ValidationResult",
    "WorkItemValidator",
    "friendly_message",
    "is_valid_identifier",
    "is_valid_record",
]
