"""libvirt implementation of the VirtBackend capability."""

from __future__ import annotations

import logging
from typing import Any

from wolgate.exceptions import (
    BackendConnectionError,
    DomainConfigError,
    DomainStateError,
    StartDomainError,
)
from wolgate.services.backend import DomainRef, DomainState

logger = logging.getLogger(__name__)


def _libvirt():
    # Imported lazily: the bindings need the system libvirt library
    import libvirt

    return libvirt


class LibvirtBackend:
    """Blocking libvirt connection; run its methods off the event loop."""

    def __init__(self, conn: Any):
        self._conn = conn

    @classmethod
    def open(cls, uri: str) -> LibvirtBackend:
        """Connect to the hypervisor at uri (e.g. qemu:///system)."""
        libvirt = _libvirt()
        logger.info("Attempting to connect to libvirt URI: %s", uri)
        try:
            conn = libvirt.open(uri)
        except libvirt.libvirtError as e:
            raise BackendConnectionError(f"Libvirt connection error: {e}") from e
        if conn is None:
            raise BackendConnectionError(f"Libvirt connection error: cannot open {uri}")

        try:
            hostname = conn.getHostname()
        except libvirt.libvirtError:
            hostname = "N/A"
        logger.info("Successfully connected to libvirt host: %s", hostname)
        return cls(conn)

    def _connection_lost(self) -> bool:
        libvirt = _libvirt()
        try:
            return not self._conn.isAlive()
        except libvirt.libvirtError:
            return True

    def _check_connection(self, e: Exception) -> None:
        """Raise BackendConnectionError if e came from a dead connection."""
        if self._connection_lost():
            raise BackendConnectionError(f"Libvirt connection lost: {e}") from e

    def list_domains(self) -> list[DomainRef]:
        libvirt = _libvirt()
        try:
            # flags=0: active and inactive domains
            domains = self._conn.listAllDomains(0)
            return [DomainRef(name=d.name(), uuid=d.UUIDString(), handle=d) for d in domains]
        except libvirt.libvirtError as e:
            raise BackendConnectionError(f"Failed to list domains: {e}") from e

    def get_domain_config(self, domain: DomainRef) -> str:
        libvirt = _libvirt()
        try:
            return domain.handle.XMLDesc(0)
        except libvirt.libvirtError as e:
            self._check_connection(e)
            raise DomainConfigError(
                f"Failed to get domain XML: {e}", domain=domain.name
            ) from e

    def get_domain_state(self, domain: DomainRef) -> DomainState:
        libvirt = _libvirt()
        try:
            state, _reason = domain.handle.state()
        except libvirt.libvirtError as e:
            self._check_connection(e)
            raise DomainStateError(
                f"Failed to get domain state: {e}", domain=domain.name
            ) from e
        return DomainState.from_libvirt(state)

    def start_domain(self, domain: DomainRef) -> None:
        libvirt = _libvirt()
        try:
            domain.handle.create()
        except libvirt.libvirtError as e:
            self._check_connection(e)
            raise StartDomainError(
                f"Failed to start domain: {e}", domain=domain.name
            ) from e

    def close(self) -> None:
        self._conn.close()
