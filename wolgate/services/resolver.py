"""MAC -> domain resolution over a freshly built domain directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from wolgate.exceptions import DomainConfigError
from wolgate.services.backend import BackendSession, DomainRef
from wolgate.services.domain_xml import extract_mac_addresses
from wolgate.utils.mac import MacAddress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Domain:
    """Point-in-time snapshot of one domain and its interface MACs."""

    ref: DomainRef
    macs: frozenset[MacAddress] = field(default_factory=frozenset)

    @property
    def name(self) -> str:
        return self.ref.name


class DomainDirectory:
    """Domains in backend enumeration order, indexed by MAC.

    When several domains claim the same MAC, the first one enumerated owns
    it; later claims are logged and ignored.
    """

    def __init__(self, domains: list[Domain] | None = None):
        self._domains: list[Domain] = []
        self._by_mac: dict[MacAddress, Domain] = {}
        for domain in domains or []:
            self.add(domain)

    def add(self, domain: Domain) -> None:
        self._domains.append(domain)
        for mac in domain.macs:
            owner = self._by_mac.get(mac)
            if owner is None:
                self._by_mac[mac] = domain
            elif owner.ref != domain.ref:
                logger.warning(
                    "MAC %s is claimed by both %s and %s, using %s",
                    mac, owner.name, domain.name, owner.name,
                )

    def lookup(self, mac: MacAddress) -> Domain | None:
        return self._by_mac.get(mac)

    @property
    def domains(self) -> list[Domain]:
        return list(self._domains)

    def __len__(self) -> int:
        return len(self._domains)


async def build_directory(session: BackendSession) -> DomainDirectory:
    """Enumerate all domains (any state) and index their interface MACs.

    A domain whose configuration cannot be fetched or parsed is skipped.
    BackendConnectionError propagates and aborts the whole build.
    """
    directory = DomainDirectory()
    for ref in await session.list_domains():
        try:
            xml = await session.get_domain_config(ref)
            macs = extract_mac_addresses(xml)
        except DomainConfigError as e:
            logger.warning("Skipping domain %s: %s", ref.name, e.message)
            continue
        for mac in macs:
            logger.debug("Domain %s has MAC %s", ref.name, mac)
        directory.add(Domain(ref=ref, macs=frozenset(macs)))
    return directory


async def resolve_domain(session: BackendSession, mac: MacAddress) -> Domain | None:
    """Find the domain owning mac. Returns None if no domain matches."""
    logger.info("Searching for VM with MAC address: %s", mac)
    directory = await build_directory(session)
    domain = directory.lookup(mac)
    if domain is not None:
        logger.info("Found VM with matching MAC address: %s (%s)", mac, domain.ref.uuid)
    return domain
