"""
Shared fixtures for branchpilot tests.

Provides a controllable clock, an in-memory forge with its pool, and a
minimal configuration matching a three-repository organization.
"""

from typing import Any
from unittest.mock import AsyncMock

import pytest

from branchpilot.branches.catalog import StaticRepositoryCatalog
from branchpilot.branches.retry import RateLimitRetryController
from branchpilot.cache.webhook_dedup import WebhookDeduplicator
from branchpilot.config.models import BranchesConfig, Config
from branchpilot.github.auth import StaticCredentialStore
from branchpilot.service import BranchService
from tests.fixtures.forge import FakeForge, FakeForgePool


class FakeClock:
    """Monotonic clock advanced explicitly by tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """
    Controllable time source.

    Why: TTL behaviour must be tested at exact boundaries without sleeping
    What: Provides a callable returning a float that only moves when told
    How: Tests call clock.advance(seconds)
    """
    return FakeClock()


@pytest.fixture
def forge() -> FakeForge:
    """In-memory forge for the ``acme`` organization."""
    return FakeForge()


@pytest.fixture
def forge_pool(forge: FakeForge) -> FakeForgePool:
    """Pool handing out the in-memory forge."""
    return FakeForgePool(forge)


@pytest.fixture
def config_data() -> dict[str, Any]:
    """Raw configuration for an organization with three repositories."""
    return {
        "github": {"organization": "acme", "token": "ghp_test"},
        "catalog": {"repositories": ["api", "web", "worker"]},
        "branches": {"required_checks": ["build", "tests"]},
    }


@pytest.fixture
def config(config_data: dict[str, Any]) -> Config:
    """Validated configuration."""
    return Config(**config_data)


@pytest.fixture
def branch_settings(config: Config) -> BranchesConfig:
    """Branch settings of the test configuration."""
    return config.branches


@pytest.fixture
def credential_store() -> StaticCredentialStore:
    """Per-user tokens; only ``dana`` has one."""
    return StaticCredentialStore({"dana": "ghp_dana"})


@pytest.fixture
def service(
    config: Config,
    forge: FakeForge,
    credential_store: StaticCredentialStore,
    clock: FakeClock,
) -> BranchService:
    """
    Branch service over the in-memory forge.

    Why: Service and webhook tests exercise the full wiring without HTTP
    What: Static catalog from the config, fake forge pool, fake-clock dedup
    How: Retry backoff sleeps are an AsyncMock so no real time passes
    """
    return BranchService(
        config,
        StaticRepositoryCatalog(config.catalog.repositories),
        FakeForgePool(forge, credential_store),
        deduplicator=WebhookDeduplicator(
            ttl=config.webhooks.dedup_ttl_seconds, clock=clock
        ),
        retry_controller=RateLimitRetryController(
            max_attempts=config.search.max_attempts,
            backoff_seconds=config.search.backoff_seconds,
            sleep=AsyncMock(),
        ),
    )
