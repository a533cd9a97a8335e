"""Load and refresh work items for a rendering layer.

A WorkItemSnapshot is what a renderer displays: the identifier, the fetched
record, when it was fetched, and the display preferences in force at that
time. Snapshots are immutable; refreshing returns a new one.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from adosync.config.store import ConfigStore, ResolvedConfig
from adosync.integrations.errors import DomainError, ErrorCode
from adosync.models import WorkItemIdentifier, WorkItemRecord
from adosync.parsing.url_parser import parse_work_item_url
from adosync.utils.errors import NotConfiguredError
from adosync.validation.orchestrator import WorkItemValidator

logger = logging.getLogger(__name__)

# Fields shown when the user never chose any
DEFAULT_VISIBLE_FIELDS: dict[str, bool] = {
    "showType": True,
    "showState": True,
    "showDesc": True,
    "showTags": True,
    "showArea": True,
    "showIteration": True,
    "showAssigned": True,
    "showChanged": True,
    "showDone": False,
}


def split_acceptance_criteria(criteria: Iterable[str], pattern: str = "") -> list[str]:
    """Split acceptance criteria into display items.

    Without a pattern every non-blank line is one item. With a pattern the
    joined text is split on regex matches. An invalid pattern yields the
    joined text as a single item.
    """
    text = "\n".join(criteria)
    if not pattern:
        return [line for line in text.split("\n") if line.strip()]

    try:
        regex = re.compile(pattern)
    except re.error as e:
        logger.warning("Invalid acceptance criteria pattern %r: %s", pattern, e)
        return [text]

    # re.split also returns capture groups, which may be None
    return [part for part in regex.split(text) if part and part.strip()]


@dataclass(frozen=True)
class WorkItemSnapshot:
    """A fetched work item together with the preferences used to render it."""

    identifier: WorkItemIdentifier
    record: WorkItemRecord
    refreshed_at: datetime
    ac_pattern: str = ""
    visible_fields: dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_VISIBLE_FIELDS))

    def acceptance_items(self) -> list[str]:
        return split_acceptance_criteria(self.record.acceptance_criteria, self.ac_pattern)

    def is_visible(self, name: str) -> bool:
        return self.visible_fields.get(name, DEFAULT_VISIBLE_FIELDS.get(name, False))


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of load() or refresh(); exactly one of snapshot and error is set."""

    is_valid: bool
    snapshot: WorkItemSnapshot | None = None
    error: DomainError | None = None


class WorkItemRefresher:
    """Resolves URLs into snapshots and keeps them up to date.

    Attributes:
        _config_store: Source of the organization, PAT and preferences
        _validator: Validator used for every fetch
    """

    def __init__(self, config_store: ConfigStore, validator: WorkItemValidator) -> None:
        self._config_store = config_store
        self._validator = validator

    async def _require_config(self) -> ResolvedConfig:
        config = await self._config_store.retrieve()
        if config is None or not config.pat:
            raise NotConfiguredError(
                "Azure DevOps is not configured. Run 'adosync configure' first."
            )
        return config

    async def _fetch(
        self, identifier: WorkItemIdentifier, config: ResolvedConfig
    ) -> RefreshResult:
        result = await self._validator.validate(identifier, config.pat)
        if not result.is_valid or result.data is None:
            return RefreshResult(is_valid=False, error=result.error)

        snapshot = WorkItemSnapshot(
            identifier=identifier,
            record=result.data,
            refreshed_at=datetime.now(UTC),
            ac_pattern=config.ac_pattern,
            visible_fields=dict(config.visible_fields or DEFAULT_VISIBLE_FIELDS),
        )
        return RefreshResult(is_valid=True, snapshot=snapshot)

    async def load(self, url: str) -> RefreshResult:
        """Parse a work item URL and fetch the item it points at.

        Raises:
            NotConfiguredError: If no usable configuration is stored
        """
        parsed = parse_work_item_url(url)
        if not parsed.is_valid or parsed.data is None:
            return RefreshResult(
                is_valid=False,
                error=DomainError.create(ErrorCode.INVALID_PBI_INFO, parsed.error or "Invalid URL"),
            )

        identifier = parsed.data
        await self._config_store.store_last_base_url(identifier.source_url)
        config = await self._require_config()

        logger.info("Loading work item %s", identifier.display_id)
        return await self._fetch(identifier, config)

    async def refresh(self, snapshot: WorkItemSnapshot) -> RefreshResult:
        """Fetch the snapshot's work item again with the current configuration.

        Raises:
            NotConfiguredError: If no usable configuration is stored
        """
        config = await self._require_config()
        logger.info("Refreshing work item %s", snapshot.identifier.display_id)
        return await self._fetch(snapshot.identifier, config)


__all__ = [
    "DEFAULT_VISIBLE_FIELDS",
    "RefreshResult",
    "WorkItemRefresher",
    "WorkItemSnapshot",
    "split_acceptance_criteria",
]
