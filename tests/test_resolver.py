"""Tests for domain directory building and MAC resolution."""

import logging

import pytest

from wolgate.exceptions import BackendConnectionError, DomainConfigError
from wolgate.services.backend import DomainState
from wolgate.services.resolver import Domain, DomainDirectory, build_directory, resolve_domain
from wolgate.utils.mac import MacAddress

MAC_X = MacAddress.parse("52:54:00:00:00:0a")
MAC_Y = MacAddress.parse("52:54:00:00:00:0b")
MAC_Z = MacAddress.parse("52:54:00:00:00:0c")


@pytest.fixture
def two_domains(fake_backend):
    fake_backend.add_domain("vm-a", str(MAC_X))
    fake_backend.add_domain("vm-b", str(MAC_Y))
    return fake_backend


async def _resolve(backend_client, mac):
    async with backend_client.session() as session:
        return await resolve_domain(session, mac)


class TestResolve:
    @pytest.mark.asyncio
    async def test_each_mac_resolves_to_owner(self, two_domains, backend_client):
        a = await _resolve(backend_client, MAC_X)
        b = await _resolve(backend_client, MAC_Y)
        assert a.name == "vm-a"
        assert b.name == "vm-b"

    @pytest.mark.asyncio
    async def test_unknown_mac_is_no_match(self, two_domains, backend_client):
        assert await _resolve(backend_client, MAC_Z) is None

    @pytest.mark.asyncio
    async def test_match_is_case_insensitive(self, fake_backend, backend_client):
        fake_backend.add_domain("vm-upper", "52:54:00:AB:CD:EF")
        domain = await _resolve(backend_client, MacAddress.parse("52:54:00:ab:cd:ef"))
        assert domain.name == "vm-upper"

    @pytest.mark.asyncio
    async def test_domain_with_several_interfaces(self, fake_backend, backend_client):
        fake_backend.add_domain("vm-multi", str(MAC_X), str(MAC_Z))
        domain = await _resolve(backend_client, MAC_Z)
        assert domain.name == "vm-multi"
        assert domain.macs == frozenset({MAC_X, MAC_Z})

    @pytest.mark.asyncio
    async def test_inactive_domains_are_discoverable(self, fake_backend, backend_client):
        fake_backend.add_domain("vm-off", str(MAC_X), state=DomainState.SHUTOFF)
        domain = await _resolve(backend_client, MAC_X)
        assert domain.name == "vm-off"

    @pytest.mark.asyncio
    async def test_resolution_does_not_fetch_state(self, two_domains, backend_client):
        await _resolve(backend_client, MAC_X)
        assert not any(call[0] == "get_domain_state" for call in two_domains.calls)

    @pytest.mark.asyncio
    async def test_fresh_directory_per_resolution(self, two_domains, backend_client):
        await _resolve(backend_client, MAC_X)
        two_domains.add_domain("vm-new", str(MAC_Z))
        domain = await _resolve(backend_client, MAC_Z)
        assert domain.name == "vm-new"
        assert [c for c in two_domains.calls if c[0] == "list_domains"] == [("list_domains", None)] * 2


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_malformed_config_does_not_block_others(self, fake_backend, backend_client):
        fake_backend.add_domain("vm-b", config="<domain><devices>")
        fake_backend.add_domain("vm-a", str(MAC_X))

        domain = await _resolve(backend_client, MAC_X)
        assert domain.name == "vm-a"

    @pytest.mark.asyncio
    async def test_config_fetch_failure_skips_domain(self, fake_backend, backend_client, caplog):
        fake_backend.add_domain(
            "vm-b", config=DomainConfigError("Failed to get domain XML: gone", domain="vm-b")
        )
        fake_backend.add_domain("vm-a", str(MAC_X))

        with caplog.at_level(logging.WARNING, logger="wolgate.services.resolver"):
            domain = await _resolve(backend_client, MAC_X)

        assert domain.name == "vm-a"
        assert "Skipping domain vm-b" in caplog.text

    @pytest.mark.asyncio
    async def test_all_domains_still_enumerated_after_failure(self, fake_backend, backend_client):
        fake_backend.add_domain("vm-b", config="not xml")
        fake_backend.add_domain("vm-a", str(MAC_X))

        async with backend_client.session() as session:
            directory = await build_directory(session)

        assert [d.name for d in directory.domains] == ["vm-a"]
        assert ("get_domain_config", "vm-a") in fake_backend.calls

    @pytest.mark.asyncio
    async def test_list_failure_aborts_resolution(self, fake_backend, backend_client):
        fake_backend.list_error = BackendConnectionError("Failed to list domains: broken pipe")
        with pytest.raises(BackendConnectionError):
            await _resolve(backend_client, MAC_X)


class TestDuplicateMacs:
    @pytest.mark.asyncio
    async def test_first_enumerated_domain_wins(self, fake_backend, backend_client, caplog):
        fake_backend.add_domain("vm-first", str(MAC_X))
        fake_backend.add_domain("vm-second", str(MAC_X))

        with caplog.at_level(logging.WARNING, logger="wolgate.services.resolver"):
            domain = await _resolve(backend_client, MAC_X)

        assert domain.name == "vm-first"
        assert "claimed by both vm-first and vm-second" in caplog.text

    def test_directory_lookup_order(self, fake_backend):
        first = fake_backend.add_domain("one")
        second = fake_backend.add_domain("two")
        directory = DomainDirectory([
            Domain(ref=first, macs=frozenset({MAC_X})),
            Domain(ref=second, macs=frozenset({MAC_X, MAC_Y})),
        ])
        assert directory.lookup(MAC_X).name == "one"
        assert directory.lookup(MAC_Y).name == "two"
        assert len(directory) == 2
