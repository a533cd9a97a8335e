"""Tests for adosync.validation.orchestrator module."""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from adosync.integrations.azure_devops import AzureDevOpsClient, transform_work_item
from adosync.integrations.errors import DomainError, ErrorCode
from adosync.models import WorkItemIdentifier
from adosync.validation.orchestrator import (
    FRIENDLY_MESSAGES,
    WorkItemValidator,
    friendly_message,
    is_valid_identifier,
    is_valid_record,
)
from tests.helpers.azure import VALID_PAT, make_client, make_payload


def _identifier(work_item_id=42, organization="myorg", project="My Project", url=None):
    return WorkItemIdentifier(
        organization=organization,
        project=project,
        work_item_id=work_item_id,
        source_url=url or f"https://dev.azure.com/{organization}/p/_workitems/edit/{work_item_id}",
    )


@pytest.fixture
def mock_client():
    """AzureDevOpsClient mock returning a complete record."""
    client = MagicMock(spec=AzureDevOpsClient)
    client.fetch_work_item = AsyncMock(return_value=transform_work_item(make_payload()))
    return client


class TestIsValidIdentifier:
    """Tests for the structural identifier check."""

    def test_valid(self):
        """A well-formed identifier passes."""
        assert is_valid_identifier(_identifier()) is True

    def test_names_with_dots_dashes_underscores(self):
        """Dots, dashes, underscores and spaces are allowed."""
        assert is_valid_identifier(_identifier(organization="my.org-1", project="A_B c")) is True

    @pytest.mark.parametrize(
        "identifier",
        [
            _identifier(work_item_id=0),
            _identifier(work_item_id=-1),
            _identifier(organization=""),
            _identifier(project="   "),
            _identifier(project="bad/project"),
            _identifier(organization="org(1)"),
            WorkItemIdentifier("myorg", "proj", 1, source_url=""),
        ],
    )
    def test_invalid(self, identifier):
        """Malformed identifiers fail."""
        assert is_valid_identifier(identifier) is False

    def test_wrong_type(self):
        """Anything that is not a WorkItemIdentifier fails."""
        assert is_valid_identifier({"organization": "o"}) is False
        assert is_valid_identifier(None) is False


class TestIsValidRecord:
    """Tests for the fetched record check."""

    def test_complete_record(self):
        """A transformed full payload passes."""
        assert is_valid_record(transform_work_item(make_payload())) is True

    def test_zero_id(self):
        """An unusable id fails."""
        assert is_valid_record(transform_work_item(make_payload(work_item_id="x"))) is False

    def test_blank_title(self):
        """A whitespace-only title fails."""
        record = transform_work_item(make_payload())
        blank = replace(record, title="  ")

        assert is_valid_record(blank) is False

    def test_wrong_type(self):
        """Non-records fail."""
        assert is_valid_record({"id": 1}) is False


class TestValidate:
    """Tests for WorkItemValidator.validate."""

    @pytest.mark.asyncio
    async def test_success(self, mock_client):
        """A valid item yields the record."""
        result = await WorkItemValidator(mock_client).validate(_identifier(), VALID_PAT)

        assert result.is_valid
        assert result.error is None
        assert result.data.id == 42

    @pytest.mark.asyncio
    async def test_structural_failure_skips_network(self, mock_client):
        """An invalid identifier never reaches the client."""
        result = await WorkItemValidator(mock_client).validate(_identifier(work_item_id=0), VALID_PAT)

        assert not result.is_valid
        assert result.data is None
        assert result.error.code is ErrorCode.INVALID_PBI_INFO
        mock_client.fetch_work_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_domain_error_passes_through(self, mock_client):
        """Client DomainErrors are returned unchanged."""
        error = DomainError.from_status(404, "gone")
        mock_client.fetch_work_item.side_effect = error

        result = await WorkItemValidator(mock_client).validate(_identifier(), VALID_PAT)

        assert result.error is error

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_validation_error(self, mock_client):
        """Any other exception becomes a retryable VALIDATION_ERROR."""
        mock_client.fetch_work_item.side_effect = RuntimeError("kaboom")

        result = await WorkItemValidator(mock_client).validate(_identifier(), VALID_PAT)

        assert result.error.code is ErrorCode.VALIDATION_ERROR
        assert result.error.retryable is True
        assert "kaboom" in result.error.message

    @pytest.mark.asyncio
    async def test_incomplete_record_is_invalid_data(self, mock_client):
        """A record without a usable id is INVALID_PBI_DATA."""
        mock_client.fetch_work_item.return_value = transform_work_item({"fields": {}})

        result = await WorkItemValidator(mock_client).validate(_identifier(), VALID_PAT)

        assert result.error.code is ErrorCode.INVALID_PBI_DATA

    @pytest.mark.asyncio
    async def test_end_to_end_with_http(self):
        """Validation over a mock transport maps 401 to INVALID_PAT."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "expired"})

        result = await WorkItemValidator(make_client(handler)).validate(_identifier(), VALID_PAT)

        assert result.error.code is ErrorCode.INVALID_PAT

    @pytest.mark.asyncio
    async def test_exists(self, mock_client):
        """exists mirrors validate's outcome."""
        validator = WorkItemValidator(mock_client)

        assert await validator.exists(_identifier(), VALID_PAT) is True
        mock_client.fetch_work_item.side_effect = DomainError.from_status(404)
        assert await validator.exists(_identifier(), VALID_PAT) is False


class TestValidateBatch:
    """Tests for WorkItemValidator.validate_batch."""

    @pytest.mark.asyncio
    async def test_order_preserved_and_concurrency_bounded(self):
        """Five items run in groups of at most three, results in input order."""
        in_flight = 0
        max_in_flight = 0
        started: list[int] = []

        async def fetch(identifier, pat):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            started.append(identifier.work_item_id)
            # Later items finish first to prove ordering is by input
            await asyncio.sleep(0.01 * (10 - identifier.work_item_id))
            in_flight -= 1
            return transform_work_item(make_payload(work_item_id=identifier.work_item_id))

        client = MagicMock(spec=AzureDevOpsClient)
        client.fetch_work_item = AsyncMock(side_effect=fetch)
        identifiers = [_identifier(work_item_id=i) for i in range(1, 6)]

        results = await WorkItemValidator(client).validate_batch(identifiers, VALID_PAT)

        assert [r.data.id for r in results] == [1, 2, 3, 4, 5]
        assert max_in_flight == 3
        assert set(started[:3]) == {1, 2, 3}

    @pytest.mark.asyncio
    async def test_failures_do_not_abort_batch(self, mock_client):
        """One failing item leaves the others valid."""

        async def fetch(identifier, pat):
            if identifier.work_item_id == 2:
                raise DomainError.from_status(404)
            return transform_work_item(make_payload(work_item_id=identifier.work_item_id))

        mock_client.fetch_work_item.side_effect = fetch
        identifiers = [_identifier(work_item_id=i) for i in (1, 2, 3)]

        results = await WorkItemValidator(mock_client).validate_batch(identifiers, VALID_PAT)

        assert [r.is_valid for r in results] == [True, False, True]
        assert results[1].error.code is ErrorCode.WORK_ITEM_NOT_FOUND

    @pytest.mark.asyncio
    async def test_empty_batch(self, mock_client):
        """No identifiers, no results."""
        assert await WorkItemValidator(mock_client).validate_batch([], VALID_PAT) == []

    def test_batch_size_at_least_one(self, mock_client):
        """A non-positive batch size becomes 1."""
        assert WorkItemValidator(mock_client, batch_size=0).batch_size == 1


class TestFriendlyMessage:
    """Tests for friendly_message."""

    @pytest.mark.parametrize("code", list(FRIENDLY_MESSAGES))
    def test_fixed_sentences(self, code):
        """Mapped codes use their fixed sentence."""
        error = DomainError.create(code, "diagnostic")

        assert friendly_message(error) == FRIENDLY_MESSAGES[code]

    def test_mapped_codes(self):
        """Exactly the user-actionable codes have fixed sentences."""
        assert set(FRIENDLY_MESSAGES) == {
            ErrorCode.INVALID_PAT,
            ErrorCode.WORK_ITEM_NOT_FOUND,
            ErrorCode.INSUFFICIENT_PERMISSIONS,
            ErrorCode.RATE_LIMIT_EXCEEDED,
            ErrorCode.NETWORK_ERROR,
            ErrorCode.INVALID_PBI_INFO,
            ErrorCode.INVALID_PBI_DATA,
        }

    def test_falls_back_to_user_message(self):
        """Other codes use the error's user message."""
        error = DomainError.create(ErrorCode.SERVER_ERROR, "diag", user_message="Try later")

        assert friendly_message(error) == "Try later"
