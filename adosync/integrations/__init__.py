"""Azure DevOps integration: REST client, error taxonomy and HTML sanitization."""

from adosync.integrations.azure_devops import (
    AzureDevOpsClient,
    build_auth_header,
    sanitize_pat,
    transform_work_item,
)
from adosync.integrations.errors import DomainError, ErrorCode
from adosync.integrations.sanitize import extract_acceptance_criteria, sanitize_html

__all__ = [
    "AzureDevOpsClient",
    "DomainError",
    "ErrorCode",
    "build_auth_header",
    "extract_acceptance_criteria",
    "sanitize_html",
    "sanitize_pat",
    "transform_work_item",
]
