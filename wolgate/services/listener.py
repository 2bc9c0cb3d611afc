"""UDP listener that receives magic packets and wakes the matching domain."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from wolgate.exceptions import BackendConnectionError, ListenerBindError, NotMagicPacket
from wolgate.services.backend import BackendClient
from wolgate.services.dispatcher import DispatchOutcome, dispatch
from wolgate.services.resolver import resolve_domain
from wolgate.utils.mac import MacAddress
from wolgate.utils.wol import parse_magic_packet

logger = logging.getLogger(__name__)

MAX_INFLIGHT = 64  # concurrent datagram handlers


@dataclass
class WakeRecord:
    mac: str
    domain: str | None
    outcome: str
    source: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ListenerStats:
    received: int = 0
    filtered: int = 0
    dropped: int = 0
    rejected: int = 0
    backend_errors: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)
    last_wake: WakeRecord | None = None

    def count(self, outcome: DispatchOutcome) -> None:
        self.outcomes[outcome.value] = self.outcomes.get(outcome.value, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.last_wake is not None:
            data["last_wake"]["timestamp"] = self.last_wake.timestamp.isoformat()
        return data


class _WolProtocol(asyncio.DatagramProtocol):
    def __init__(self, listener: WolListener):
        self._listener = listener

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._listener.datagram_received(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.warning("UDP receive error: %s", exc)


class WolListener:
    """Listens for WOL magic packets and starts the libvirt domain they target.

    Every datagram is handled in its own task. A handler never raises, so a
    bad packet or backend failure cannot affect later datagrams.
    """

    def __init__(
        self,
        backend: BackendClient,
        host: str = "127.0.0.1",
        port: int = 9,
        allowed_subnets: list[str] | None = None,
        dry_run: bool = False,
    ):
        self._backend = backend
        self._host = host
        self._port = port
        self._allowed = [
            ipaddress.ip_network(s, strict=False) for s in (allowed_subnets or [])
        ]
        self._dry_run = dry_run
        self._transport: asyncio.DatagramTransport | None = None
        self._tasks: set[asyncio.Task] = set()
        self.stats = ListenerStats()

    @property
    def is_listening(self) -> bool:
        return self._transport is not None

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); reflects the real port when configured with 0."""
        if self._transport is not None:
            sockname = self._transport.get_extra_info("sockname")
            return sockname[0], sockname[1]
        return self._host, self._port

    async def start(self) -> None:
        """Bind the UDP socket. Raises ListenerBindError on failure."""
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _WolProtocol(self),
                local_addr=(self._host, self._port),
            )
        except OSError as e:
            raise ListenerBindError(
                f"Socket bind error on {self._host}:{self._port}: {e}"
            ) from e
        self._transport = transport
        host, port = self.address
        logger.info("Listening for WOL packets on %s:%s", host, port)

    async def stop(self) -> None:
        """Close the socket and wait for in-flight handlers."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("WOL listener stopped")

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self.stats.received += 1
        logger.debug("Received %d bytes from %s:%s", len(data), addr[0], addr[1])

        if len(self._tasks) >= MAX_INFLIGHT:
            self.stats.dropped += 1
            logger.warning("Too many datagrams in flight, dropping packet from %s", addr[0])
            return

        task = asyncio.create_task(self.handle_datagram(data, addr))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _source_allowed(self, host: str) -> bool:
        if not self._allowed:
            return True
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            return False
        return any(ip in net for net in self._allowed)

    async def handle_datagram(
        self, data: bytes, addr: tuple[str, int]
    ) -> DispatchOutcome | None:
        """Parse -> resolve -> dispatch one datagram.

        Returns the dispatch outcome, or None when the datagram was filtered,
        rejected or the backend failed.
        """
        source = addr[0]
        if not self._source_allowed(source):
            self.stats.filtered += 1
            logger.debug("Ignoring datagram from %s (not in allowed subnets)", source)
            return None

        try:
            mac = parse_magic_packet(data)
        except NotMagicPacket as e:
            self.stats.rejected += 1
            logger.debug("Received invalid WOL packet from %s: %s", source, e.message)
            return None

        logger.info("Received valid WOL packet for MAC %s from %s", mac, source)
        try:
            outcome, domain_name = await self._wake(mac)
        except BackendConnectionError as e:
            self.stats.backend_errors += 1
            logger.error("Backend unavailable, dropping WOL request for %s: %s", mac, e.message)
            return None
        except Exception:
            self.stats.backend_errors += 1
            logger.exception("Unexpected error handling WOL request for %s", mac)
            return None

        self.stats.count(outcome)
        self.stats.last_wake = WakeRecord(
            mac=str(mac), domain=domain_name, outcome=outcome.value, source=source,
        )
        return outcome

    async def _wake(self, mac: MacAddress) -> tuple[DispatchOutcome, str | None]:
        async with self._backend.session() as session:
            domain = await resolve_domain(session, mac)
            if domain is None:
                logger.warning("No VM found with MAC address: %s", mac)
                return DispatchOutcome.NO_MATCH, None
            outcome = await dispatch(session, domain, dry_run=self._dry_run)
            return outcome, domain.name
