"""Builders for Azure DevOps payloads and mock-transport clients."""

from collections.abc import Callable
from typing import Any

import httpx

from adosync.integrations.azure_devops import AzureDevOpsClient

VALID_PAT = "abcdefghijklmnopqrstuvwxyz0123456789ABCDEFGHIJKLMNOP"
WORK_ITEM_URL = "https://dev.azure.com/myorg/My%20Project/_workitems/edit/42"


def make_payload(work_item_id: Any = 42, **fields: Any) -> dict[str, Any]:
    """Build a work item REST payload; keyword fields override the defaults.

    Field names use underscores for dots, e.g. ``System_Title="x"``.
    """
    base_fields: dict[str, Any] = {
        "System.Title": "Implement login",
        "System.State": "Active",
        "System.WorkItemType": "Product Backlog Item",
        "System.Description": "<div>Users can <b>log in</b>.</div>",
        "Microsoft.VSTS.Common.AcceptanceCriteria": (
            "<ul><li>Login form shown</li><li>Errors displayed</li></ul>"
        ),
        "System.AssignedTo": {"displayName": "Alex Doe", "uniqueName": "alex@example.com"},
        "System.CreatedBy": {"displayName": "Sam Roe"},
        "System.ChangedBy": {"displayName": "Kim Poe"},
        "System.CreatedDate": "2026-01-05T10:00:00Z",
        "System.ChangedDate": "2026-02-01T08:30:00Z",
        "System.Tags": "auth; ui; auth",
        "System.AreaPath": "My Project\\Web",
        "System.IterationPath": "My Project\\Sprint 4",
        "System.BoardColumn": "Doing",
        "System.BoardColumnDone": True,
    }
    for name, value in fields.items():
        key = name.replace("_", ".")
        if value is None:
            base_fields.pop(key, None)
        else:
            base_fields[key] = value
    return {"id": work_item_id, "fields": base_fields}


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    base_url: str = "https://dev.azure.com",
) -> AzureDevOpsClient:
    """AzureDevOpsClient whose HTTP traffic is answered by handler."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AzureDevOpsClient(base_url, http_client=http_client)
