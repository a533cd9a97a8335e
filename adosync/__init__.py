"""adosync - Azure DevOps work item sync service.

This package provides the service layer that sits between a canvas widget
and the Azure DevOps REST API: PAT protection, work item URL parsing,
typed error classification and validated refresh.
"""

__version__ = "0.1.0"
API_VERSION = "7.1"

__all__ = [
    "__version__",
    "API_VERSION",
]
