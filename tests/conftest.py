from __future__ import annotations

import pytest

from catalog_svc._bootstrap import build_components
from catalog_svc.catalog import CatalogShareStore, CatalogStore, PermissionResolver
from catalog_svc.config import Config
from catalog_svc.directory import InMemoryEntryDirectory, InMemoryUserDirectory
from catalog_svc.ids import is_valid_id


class RecordingNotifier:
    """Collects notifications instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict]] = []

    async def notify(self, user_id: str, kind: str, payload: dict) -> None:
        self.sent.append((user_id, kind, payload))


async def token_is_user_id(credential: str | None) -> str | None:
    """Socket auth callback for hub tests: the credential is the user id."""
    return credential if is_valid_id(credential) else None


@pytest.fixture
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def alice(users) -> str:
    return users.add_user("alice", name="Alice")


@pytest.fixture
def bob(users) -> str:
    return users.add_user("bob", name="Bob")


@pytest.fixture
def carol(users) -> str:
    return users.add_user("carol", name="Carol")


@pytest.fixture
def entries() -> InMemoryEntryDirectory:
    return InMemoryEntryDirectory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def catalogs() -> CatalogStore:
    return CatalogStore()


@pytest.fixture
def shares() -> CatalogShareStore:
    return CatalogShareStore()


@pytest.fixture
def resolver(catalogs, shares) -> PermissionResolver:
    return PermissionResolver(catalogs, shares)


@pytest.fixture
def components(users, entries, notifier):
    return build_components(Config(), users=users, entries=entries, notifier=notifier)


@pytest.fixture
def service(components):
    return components.service


@pytest.fixture
def hub(service):
    """A hub wired to the service's broadcaster."""
    return service.broadcaster.initialize(service.resolver, token_is_user_id)
