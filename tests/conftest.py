"""Shared pytest fixtures for adosync tests."""

from typing import Any

import pytest

from adosync.config.storage import InMemoryStorage
from adosync.config.store import ConfigStore
from adosync.models import WorkItemIdentifier
from adosync.security.cipher import CredentialCipher
from tests.helpers.azure import VALID_PAT, WORK_ITEM_URL, make_payload

# Enable pytest-asyncio for async test support
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
def valid_pat() -> str:
    """A token with the 52-character Azure DevOps PAT format."""
    return VALID_PAT


@pytest.fixture
def storage() -> InMemoryStorage:
    """Empty in-memory key-value storage."""
    return InMemoryStorage()


@pytest.fixture
def cipher(storage: InMemoryStorage) -> CredentialCipher:
    """Credential cipher backed by the in-memory storage."""
    return CredentialCipher(storage)


@pytest.fixture
def config_store(storage: InMemoryStorage, cipher: CredentialCipher) -> ConfigStore:
    """Config store sharing storage with the cipher."""
    return ConfigStore(storage, cipher)


@pytest.fixture
def identifier() -> WorkItemIdentifier:
    """Identifier of work item 42 in myorg/My Project."""
    return WorkItemIdentifier(
        organization="myorg",
        project="My Project",
        work_item_id=42,
        source_url=WORK_ITEM_URL,
    )


@pytest.fixture
def work_item_payload() -> dict[str, Any]:
    """A complete work item REST payload."""
    return make_payload()
