"""Test fixtures: in-memory virtualization backend and API client."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from wolgate import services
from wolgate.config import Settings
from wolgate.services.backend import BackendClient, DomainRef, DomainState
from wolgate.services.listener import WolListener


def domain_xml(*macs: str, name: str = "vm") -> str:
    """Minimal libvirt domain definition with one interface per MAC."""
    interfaces = "".join(
        f"<interface type='network'><mac address='{mac}'/>"
        f"<source network='default'/></interface>"
        for mac in macs
    )
    return (
        f"<domain type='kvm'><name>{name}</name>"
        f"<devices><disk type='file' device='disk'/>{interfaces}</devices></domain>"
    )


class FakeBackend:
    """In-memory VirtBackend that records every call it receives."""

    def __init__(self):
        self.domains: list[DomainRef] = []
        self.configs: dict[str, str | Exception] = {}
        self.states: dict[str, DomainState | Exception] = {}
        self.start_errors: dict[str, Exception] = {}
        self.list_error: Exception | None = None
        self.calls: list[tuple[str, str | None]] = []
        self.started: list[str] = []
        self.closed = False

    def add_domain(
        self,
        name: str,
        *macs: str,
        state: DomainState = DomainState.SHUTOFF,
        config: str | Exception | None = None,
    ) -> DomainRef:
        ref = DomainRef(name=name, uuid=f"uuid-{name}")
        self.domains.append(ref)
        self.configs[name] = config if config is not None else domain_xml(*macs, name=name)
        self.states[name] = state
        return ref

    def list_domains(self) -> list[DomainRef]:
        self.calls.append(("list_domains", None))
        if self.list_error is not None:
            raise self.list_error
        return list(self.domains)

    def get_domain_config(self, domain: DomainRef) -> str:
        self.calls.append(("get_domain_config", domain.name))
        config = self.configs[domain.name]
        if isinstance(config, Exception):
            raise config
        return config

    def get_domain_state(self, domain: DomainRef) -> DomainState:
        self.calls.append(("get_domain_state", domain.name))
        state = self.states[domain.name]
        if isinstance(state, Exception):
            raise state
        return state

    def start_domain(self, domain: DomainRef) -> None:
        self.calls.append(("start_domain", domain.name))
        if domain.name in self.start_errors:
            raise self.start_errors[domain.name]
        self.started.append(domain.name)

    def close(self) -> None:
        self.closed = True


class CountingFactory:
    """Backend factory that counts connects and can fail the first N."""

    def __init__(self, backend: FakeBackend, failures: list[Exception] | None = None):
        self.backend = backend
        self.failures = list(failures or [])
        self.connects = 0

    def __call__(self) -> FakeBackend:
        self.connects += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.backend


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def backend_factory(fake_backend):
    return CountingFactory(fake_backend)


@pytest.fixture
def backend_client(backend_factory):
    return BackendClient(backend_factory, timeout=2.0)


@pytest.fixture
def listener(backend_client):
    """Unbound listener; tests feed datagrams through handle_datagram()."""
    return WolListener(backend_client, host="127.0.0.1", port=0)


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, libvirt_uri="test:///default")


@pytest_asyncio.fixture
async def client(test_settings):
    """Async test client for the status API, without registered services."""
    from wolgate.main import create_app

    app = create_app(test_settings)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def registered(monkeypatch, listener, backend_client):
    """Register the test listener/backend client as the service singletons."""
    monkeypatch.setattr(services, "_listener", listener)
    monkeypatch.setattr(services, "_backend_client", backend_client)
    return listener
