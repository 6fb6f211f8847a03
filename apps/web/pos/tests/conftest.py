"""Shared fixtures for POS tests."""

from datetime import UTC, datetime, timedelta

from django.apps import apps

import pytest

from orderhub_schemas import AccessToken, POSProvider

from apps.web.pos.adapters import (
    MockPOSAdapter,
    POSRegistry,
    SkyTabAdapter,
    SkyTabClient,
)
from apps.web.pos.services import POSService
from apps.web.pos.tests.helpers import SKYTAB_LOCATION_GUID


@pytest.fixture
def skytab_client() -> SkyTabClient:
    """SkyTab client with a valid cached token and no retry delay."""
    client = SkyTabClient(
        api_key="test-key",
        api_secret="test-secret",
        max_retries=1,
        retry_base_delay=0,
    )
    client._token = AccessToken(
        value="test-token", expires_at=datetime.now(UTC) + timedelta(hours=1)
    )
    return client


@pytest.fixture
def skytab_adapter(skytab_client: SkyTabClient) -> SkyTabAdapter:
    return SkyTabAdapter(skytab_client, location_guid=SKYTAB_LOCATION_GUID)


@pytest.fixture
def mock_adapter() -> MockPOSAdapter:
    return MockPOSAdapter()


@pytest.fixture
def pos_service(
    monkeypatch: pytest.MonkeyPatch,
    mock_adapter: MockPOSAdapter,
    skytab_adapter: SkyTabAdapter,
) -> POSService:
    """Swap the process-wide POSService for one backed by test adapters."""
    registry = POSRegistry()
    registry.register(POSProvider.MOCK, mock_adapter)
    registry.register(POSProvider.SKYTAB, skytab_adapter)
    service = POSService(registry)
    monkeypatch.setattr(apps.get_app_config("pos"), "service", service)
    return service
