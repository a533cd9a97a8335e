"""Domain models shared across adosync.

- WorkItemIdentifier: canonical (organization, project, id) resolved from a URL
- WorkItemRecord: immutable, sanitized view of one Azure DevOps work item

Both are frozen dataclasses. Refreshing a work item builds a new record
instead of mutating the existing one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class WorkItemIdentifier:
    """Canonical identity of a work item.

    ``source_url`` is kept for display and for re-parsing, but does not take
    part in equality: two URL shapes that point at the same work item compare
    equal.

    Attributes:
        organization: Azure DevOps organization name (percent-decoded)
        project: Project name (percent-decoded, may contain spaces)
        work_item_id: Positive numeric work item id
        source_url: The trimmed URL the identifier was parsed from
    """

    organization: str
    project: str
    work_item_id: int
    source_url: str = field(default="", compare=False)

    @property
    def display_id(self) -> str:
        """Human-readable reference like ``myorg/My Project#42``."""
        return f"{self.organization}/{self.project}#{self.work_item_id}"


@dataclass(frozen=True)
class WorkItemRecord:
    """Sanitized work item fields ready for rendering.

    Attributes:
        id: Work item id
        title: Work item title
        state: Workflow state (e.g. "Active")
        description: Plain-text description with HTML removed
        acceptance_criteria: Acceptance criteria, one entry per criterion
        assignee: Display name of the assignee, None when unassigned
        creator: Display name of the creator
        changed_by: Display name of the last editor
        created_at: Creation timestamp
        modified_at: Last modification timestamp
        work_item_type: Type name (e.g. "Product Backlog Item")
        tags: Unique tags in source order
        area_path: Area path
        iteration_path: Iteration path
        board_column: Kanban board column
        board_column_done: Whether the item sits in the "done" split of its column
    """

    id: int
    title: str
    state: str
    description: str
    acceptance_criteria: tuple[str, ...]
    assignee: str | None
    creator: str
    changed_by: str
    created_at: datetime
    modified_at: datetime
    work_item_type: str
    tags: tuple[str, ...] = ()
    area_path: str = ""
    iteration_path: str = ""
    board_column: str = ""
    board_column_done: bool = False

    @property
    def last_updated(self) -> datetime:
        return self.modified_at

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (camelCase keys)."""
        return {
            "id": self.id,
            "title": self.title,
            "state": self.state,
            "description": self.description,
            "acceptanceCriteria": list(self.acceptance_criteria),
            "assignedTo": self.assignee,
            "creator": self.creator,
            "changedBy": self.changed_by,
            "createdDate": self.created_at.isoformat(),
            "modifiedDate": self.modified_at.isoformat(),
            "workItemType": self.work_item_type,
            "tags": list(self.tags),
            "areaPath": self.area_path,
            "iterationPath": self.iteration_path,
            "boardColumn": self.board_column,
            "boardColumnDone": self.board_column_done,
        }


__all__ = [
    "WorkItemIdentifier",
    "WorkItemRecord",
]
