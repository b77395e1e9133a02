"""Pytest configuration and fixtures for livebox-cli tests."""

from collections.abc import Iterator

import httpx
import pytest

from livebox_cli.client import RpcClient
from livebox_cli.nat import NatRuleRepository
from livebox_cli.session import Session
from tests.fake_livebox import BASE_URL, FakeLivebox, make_rule


@pytest.fixture
def fake_device() -> FakeLivebox:
    """Fake device with two forwarding rules."""
    device = FakeLivebox()
    device.add_rule(make_rule("ssh", "2222", "22", "192.168.1.10", enable=False))
    device.add_rule(make_rule("web", "8080", "80", "192.168.1.20", protocol="6,17"))
    return device


@pytest.fixture
def transport(fake_device: FakeLivebox) -> httpx.MockTransport:
    return httpx.MockTransport(fake_device.handler)


@pytest.fixture
def session(transport: httpx.MockTransport) -> Iterator[Session]:
    """Logged-in session, released at teardown if the test did not."""
    live = Session.login(BASE_URL, "admin", "secret", transport=transport)
    yield live
    if live.active:
        live.logout()


@pytest.fixture
def client(session: Session) -> RpcClient:
    return RpcClient(session)


@pytest.fixture
def repository(client: RpcClient) -> NatRuleRepository:
    return NatRuleRepository(client)
