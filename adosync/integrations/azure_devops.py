"""Azure DevOps REST API client.

Fetches a single work item and checks PAT validity against the
organization's project list.

API endpoints (api-version 7.1):
    GET {base}/{organization}/{project}/_apis/wit/workitems/{id}
    GET {base}/{organization}/_apis/projects

Authentication:
    HTTP Basic with an empty username and the PAT as password. The PAT is
    stripped to [A-Za-z0-9] first because copy-pasted tokens regularly carry
    invisible characters that turn a valid PAT into a 401.

Resource Management:
    The client can share an injected httpx.AsyncClient for connection
    pooling, or create one per request. Use it as an async context manager
    to close a client it owns:

        async with AzureDevOpsClient() as client:
            record = await client.fetch_work_item(identifier, pat)
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from adosync import API_VERSION
from adosync.config.settings import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS
from adosync.integrations.errors import DomainError, ErrorCode, truncate_detail
from adosync.integrations.sanitize import extract_acceptance_criteria, sanitize_html
from adosync.models import WorkItemIdentifier, WorkItemRecord
from adosync.security.cipher import base64_encode

logger = logging.getLogger(__name__)

_NON_ALPHANUMERIC_PATTERN = re.compile(r"[^A-Za-z0-9]")

# Azure DevOps field reference names
FIELD_TITLE = "System.Title"
FIELD_STATE = "System.State"
FIELD_DESCRIPTION = "System.Description"
FIELD_ACCEPTANCE_CRITERIA = "Microsoft.VSTS.Common.AcceptanceCriteria"
FIELD_ASSIGNED_TO = "System.AssignedTo"
FIELD_CREATED_BY = "System.CreatedBy"
FIELD_CHANGED_BY = "System.ChangedBy"
FIELD_CREATED_DATE = "System.CreatedDate"
FIELD_CHANGED_DATE = "System.ChangedDate"
FIELD_WORK_ITEM_TYPE = "System.WorkItemType"
FIELD_TAGS = "System.Tags"
FIELD_AREA_PATH = "System.AreaPath"
FIELD_ITERATION_PATH = "System.IterationPath"
FIELD_BOARD_COLUMN = "System.BoardColumn"
FIELD_BOARD_COLUMN_DONE = "System.BoardColumnDone"

UNKNOWN = "Unknown"
UNTITLED = "Untitled Work Item"


def sanitize_pat(pat: str) -> str:
    """Remove every character outside [A-Za-z0-9] from a PAT."""
    return _NON_ALPHANUMERIC_PATTERN.sub("", pat or "")


def build_auth_header(pat: str) -> str:
    """Build the ``Authorization`` header value for a PAT.

    Returns:
        ``"Basic " + base64(":" + sanitized_pat)``
    """
    clean_pat = sanitize_pat(pat)
    removed = len(pat or "") - len(clean_pat)
    if removed:
        logger.warning("Sanitized %d invalid characters from PAT", removed)
    return f"Basic {base64_encode(':' + clean_pat)}"


class AzureDevOpsClient:
    """Client for the Azure DevOps work item REST API.

    Only this class raises DomainError; callers above it convert the
    exception into a result.

    Attributes:
        base_url: Base URL without trailing slash (Azure DevOps or a proxy)
        timeout_seconds: Hard upper bound for one request
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client
        self._owns_client = False

    async def __aenter__(self) -> AzureDevOpsClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it. Safe to call twice."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            self._owns_client = False

    def _headers(self, pat: str) -> dict[str, str]:
        return {
            "Authorization": build_auth_header(pat),
            "Accept": "application/json",
        }

    def work_item_url(self, identifier: WorkItemIdentifier) -> str:
        """Build the work item endpoint, percent-encoding organization and project."""
        org = quote(identifier.organization, safe="")
        project = quote(identifier.project, safe="")
        return f"{self.base_url}/{org}/{project}/_apis/wit/workitems/{identifier.work_item_id}"

    def projects_url(self, organization: str) -> str:
        return f"{self.base_url}/{quote(organization, safe='')}/_apis/projects"

    async def _get(self, url: str, pat: str) -> httpx.Response:
        """Issue a GET bounded by timeout_seconds.

        Uses the shared client when one was injected, otherwise a short-lived
        client. The httpx timeout covers each phase; asyncio.wait_for bounds
        the request as a whole.

        Raises:
            TimeoutError: If no response arrived within timeout_seconds
            httpx.HTTPError: For transport-level failures
        """
        kwargs: dict[str, Any] = {
            "headers": self._headers(pat),
            "params": {"api-version": API_VERSION},
            "timeout": httpx.Timeout(self.timeout_seconds),
        }

        if self._http_client is not None:
            return await asyncio.wait_for(
                self._http_client.get(url, **kwargs), timeout=self.timeout_seconds
            )

        async with httpx.AsyncClient() as client:
            return await asyncio.wait_for(client.get(url, **kwargs), timeout=self.timeout_seconds)

    async def check_credential(self, pat: str, organization: str) -> bool:
        """Check a PAT by listing the organization's projects.

        Never raises: any failure, including network errors, yields False.

        Returns:
            True only for a 2xx response
        """
        try:
            response = await self._get(self.projects_url(organization), pat)
        except Exception as e:
            # Exception messages may echo request data; log the type only
            logger.debug("PAT check failed for %s: %s", organization, type(e).__name__)
            return False

        logger.debug("PAT check for %s returned %d", organization, response.status_code)
        return response.is_success

    async def fetch_work_item(self, identifier: WorkItemIdentifier, pat: str) -> WorkItemRecord:
        """Fetch one work item and transform it into a WorkItemRecord.

        Raises:
            DomainError: NETWORK_ERROR on timeout or transport failure, the
                status-mapped code on a non-2xx response, API_ERROR when the
                body is not a JSON object
        """
        url = self.work_item_url(identifier)
        log_context = {"work_item": identifier.display_id}
        logger.debug("Fetching work item %s", identifier.display_id)

        try:
            response = await self._get(url, pat)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise DomainError.create(
                ErrorCode.NETWORK_ERROR,
                f"Request timed out after {self.timeout_seconds:g} seconds",
            ) from e
        except httpx.HTTPError as e:
            raise DomainError.create(
                ErrorCode.NETWORK_ERROR,
                f"Network request failed: {type(e).__name__}",
            ) from e

        if not response.is_success:
            error = DomainError.from_status(response.status_code, _error_detail(response))
            logger.warning(
                "Work item request failed: status=%d code=%s",
                response.status_code,
                error.code.value,
                extra=log_context,
            )
            raise error

        try:
            payload = response.json()
        except ValueError as e:
            raise DomainError.create(
                ErrorCode.API_ERROR, "Failed to parse work item response as JSON"
            ) from e

        if not isinstance(payload, dict):
            raise DomainError.create(
                ErrorCode.API_ERROR,
                f"Unexpected work item payload type: {type(payload).__name__}",
            )

        return transform_work_item(payload)


def _error_detail(response: httpx.Response) -> str:
    """Extract a short error detail from an Azure DevOps error body."""
    try:
        body = response.json()
    except ValueError:
        return "Unable to parse error response"

    if isinstance(body, dict):
        message = body.get("message")
        if not message and isinstance(body.get("error"), dict):
            message = body["error"].get("message")
        if isinstance(message, str) and message:
            return truncate_detail(message)
    return "Unknown API error"


def _text(fields: dict[str, Any], name: str, default: str) -> str:
    value = fields.get(name)
    if value is None:
        return default
    text = str(value)
    return text if text.strip() else default


def _identity(fields: dict[str, Any], name: str) -> str | None:
    """Read an identity field, which is an object with displayName or a plain string."""
    value = fields.get(name)
    if isinstance(value, dict):
        display_name = value.get("displayName") or value.get("uniqueName")
        return str(display_name) if display_name else None
    if isinstance(value, str) and value.strip():
        # Older API versions return "Display Name <user@domain>"
        return value.split("<", 1)[0].strip() or value.strip()
    return None


def _timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _tags(value: Any) -> tuple[str, ...]:
    if not isinstance(value, str):
        return ()
    tags: list[str] = []
    for tag in value.split(";"):
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


def _work_item_id(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0


def transform_work_item(payload: dict[str, Any]) -> WorkItemRecord:
    """Convert a raw work item payload into a WorkItemRecord.

    The payload is untrusted: every field is type-checked on read and
    missing values fall back to stable placeholders. An unusable id becomes
    0, which WorkItemValidator then rejects as INVALID_PBI_DATA.
    """
    fields = payload.get("fields")
    if not isinstance(fields, dict):
        fields = {}

    created_at = _timestamp(fields.get(FIELD_CREATED_DATE))
    modified_at = _timestamp(fields.get(FIELD_CHANGED_DATE)) or created_at
    now = datetime.now(UTC)

    return WorkItemRecord(
        id=_work_item_id(payload.get("id")),
        title=_text(fields, FIELD_TITLE, UNTITLED),
        state=_text(fields, FIELD_STATE, UNKNOWN),
        description=sanitize_html(_text(fields, FIELD_DESCRIPTION, "")),
        acceptance_criteria=tuple(
            extract_acceptance_criteria(_text(fields, FIELD_ACCEPTANCE_CRITERIA, ""))
        ),
        assignee=_identity(fields, FIELD_ASSIGNED_TO),
        creator=_identity(fields, FIELD_CREATED_BY) or UNKNOWN,
        changed_by=_identity(fields, FIELD_CHANGED_BY) or UNKNOWN,
        created_at=created_at or now,
        modified_at=modified_at or now,
        work_item_type=_text(fields, FIELD_WORK_ITEM_TYPE, UNKNOWN),
        tags=_tags(fields.get(FIELD_TAGS)),
        area_path=_text(fields, FIELD_AREA_PATH, ""),
        iteration_path=_text(fields, FIELD_ITERATION_PATH, ""),
        board_column=_text(fields, FIELD_BOARD_COLUMN, ""),
        board_column_done=fields.get(FIELD_BOARD_COLUMN_DONE) is True,
    )


__all__ = [
    "AzureDevOpsClient",
    "build_auth_header",
    "sanitize_pat",
    "transform_work_item",
]
