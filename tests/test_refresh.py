"""Tests for adosync.validation.refresh module."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from adosync.integrations.azure_devops import AzureDevOpsClient, transform_work_item
from adosync.integrations.errors import DomainError, ErrorCode
from adosync.utils.errors import NotConfiguredError
from adosync.validation.orchestrator import WorkItemValidator
from adosync.validation.refresh import (
    DEFAULT_VISIBLE_FIELDS,
    WorkItemRefresher,
    split_acceptance_criteria,
)
from tests.helpers.azure import WORK_ITEM_URL, make_payload


@pytest.fixture
def mock_client():
    """AzureDevOpsClient mock returning a complete record."""
    client = MagicMock(spec=AzureDevOpsClient)
    client.fetch_work_item = AsyncMock(return_value=transform_work_item(make_payload()))
    return client


@pytest.fixture
def refresher(config_store, mock_client):
    """Refresher over the in-memory config store and the mock client."""
    return WorkItemRefresher(config_store, WorkItemValidator(mock_client))


class TestSplitAcceptanceCriteria:
    """Tests for split_acceptance_criteria."""

    def test_no_pattern_splits_lines(self):
        """Without a pattern each non-blank line is an item."""
        criteria = ["First", "", "Second\nThird", "  "]

        assert split_acceptance_criteria(criteria) == ["First", "Second", "Third"]

    def test_pattern_splits_joined_text(self):
        """A regex splits the joined text."""
        criteria = ["AC1: log in AC2: log out"]

        assert split_acceptance_criteria(criteria, r"AC\d:") == [" log in ", " log out"]

    def test_capture_groups_ignored_when_empty(self):
        """Empty capture groups do not produce items."""
        assert split_acceptance_criteria(["a;b"], r"(x)?;") == ["a", "b"]

    def test_invalid_pattern_yields_joined_text(self):
        """An invalid regex returns the joined text as one item."""
        assert split_acceptance_criteria(["one", "two"], "([") == ["one\ntwo"]

    def test_empty(self):
        """No criteria, no items."""
        assert split_acceptance_criteria([]) == []


class TestLoad:
    """Tests for WorkItemRefresher.load."""

    @pytest.mark.asyncio
    async def test_load_success(self, refresher, config_store, valid_pat):
        """A valid URL with stored config yields a snapshot."""
        await config_store.store(
            "myorg", pat=valid_pat, ac_pattern="x", visible_fields={"showTags": False}
        )

        result = await refresher.load(WORK_ITEM_URL)

        assert result.is_valid
        snapshot = result.snapshot
        assert snapshot.identifier.work_item_id == 42
        assert snapshot.identifier.project == "My Project"
        assert snapshot.record.title == "Implement login"
        assert snapshot.ac_pattern == "x"
        assert snapshot.visible_fields == {"showTags": False}
        assert snapshot.is_visible("showTags") is False
        assert snapshot.is_visible("showState") is True

    @pytest.mark.asyncio
    async def test_load_passes_decrypted_pat(self, refresher, config_store, mock_client, valid_pat):
        """The client receives the decrypted PAT."""
        await config_store.store("myorg", pat=valid_pat)

        await refresher.load(WORK_ITEM_URL)

        _, pat = mock_client.fetch_work_item.call_args.args
        assert pat == valid_pat

    @pytest.mark.asyncio
    async def test_load_remembers_url(self, refresher, config_store, valid_pat):
        """The loaded URL is stored as the last base URL."""
        await config_store.store("myorg", pat=valid_pat)

        await refresher.load(WORK_ITEM_URL)

        assert (await config_store.retrieve()).last_base_url == WORK_ITEM_URL

    @pytest.mark.asyncio
    async def test_default_visible_fields(self, refresher, config_store, valid_pat):
        """Without stored preferences the defaults apply."""
        await config_store.store("myorg", pat=valid_pat)

        result = await refresher.load(WORK_ITEM_URL)

        assert result.snapshot.visible_fields == DEFAULT_VISIBLE_FIELDS

    @pytest.mark.asyncio
    async def test_invalid_url(self, refresher, mock_client):
        """An unparseable URL is INVALID_PBI_INFO carrying the parser message."""
        result = await refresher.load("https://github.com/o/r/issues/1")

        assert not result.is_valid
        assert result.error.code is ErrorCode.INVALID_PBI_INFO
        assert "dev.azure.com" in result.error.message
        mock_client.fetch_work_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_configured(self, refresher):
        """Without stored config NotConfiguredError is raised."""
        with pytest.raises(NotConfiguredError):
            await refresher.load(WORK_ITEM_URL)

    @pytest.mark.asyncio
    async def test_remote_failure(self, refresher, config_store, mock_client, valid_pat):
        """Remote errors come back in the result."""
        await config_store.store("myorg", pat=valid_pat)
        mock_client.fetch_work_item.side_effect = DomainError.from_status(403)

        result = await refresher.load(WORK_ITEM_URL)

        assert not result.is_valid
        assert result.snapshot is None
        assert result.error.code is ErrorCode.INSUFFICIENT_PERMISSIONS


class TestRefresh:
    """Tests for WorkItemRefresher.refresh."""

    @pytest.mark.asyncio
    async def test_refresh_returns_new_snapshot(
        self, refresher, config_store, mock_client, valid_pat
    ):
        """Refreshing builds a new snapshot and leaves the old one untouched."""
        await config_store.store("myorg", pat=valid_pat)
        original = (await refresher.load(WORK_ITEM_URL)).snapshot
        mock_client.fetch_work_item.return_value = transform_work_item(
            make_payload(System_State="Closed")
        )

        refreshed = (await refresher.refresh(original)).snapshot

        assert refreshed is not original
        assert refreshed.record.state == "Closed"
        assert original.record.state == "Active"
        assert refreshed.identifier == original.identifier
        assert refreshed.refreshed_at >= original.refreshed_at

    @pytest.mark.asyncio
    async def test_refresh_picks_up_new_preferences(self, refresher, config_store, valid_pat):
        """Refresh applies the current configuration."""
        await config_store.store("myorg", pat=valid_pat)
        original = (await refresher.load(WORK_ITEM_URL)).snapshot

        await config_store.store("myorg", ac_pattern=";", visible_fields={"showDesc": False})
        refreshed = (await refresher.refresh(original)).snapshot

        assert refreshed.ac_pattern == ";"
        assert refreshed.visible_fields == {"showDesc": False}
        assert original.ac_pattern == ""

    @pytest.mark.asyncio
    async def test_refresh_after_clear(self, refresher, config_store, valid_pat):
        """Refreshing without config raises NotConfiguredError."""
        await config_store.store("myorg", pat=valid_pat)
        original = (await refresher.load(WORK_ITEM_URL)).snapshot
        await config_store.clear()

        with pytest.raises(NotConfiguredError):
            await refresher.refresh(original)

    @pytest.mark.asyncio
    async def test_acceptance_items_use_pattern(self, refresher, config_store, valid_pat):
        """Snapshot acceptance items follow the stored pattern."""
        await config_store.store("myorg", pat=valid_pat)

        snapshot = (await refresher.load(WORK_ITEM_URL)).snapshot

        assert snapshot.acceptance_items() == ["Login form shown", "Errors displayed"]
