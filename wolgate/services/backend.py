"""Virtualization backend capability and the shared connection wrapper."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable, Protocol, TypeVar

from wolgate.exceptions import BackendConnectionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DomainState(str, Enum):
    RUNNING = "running"
    SHUTOFF = "shutoff"
    SHUTDOWN = "shutdown"
    CRASHED = "crashed"
    PAUSED = "paused"
    OTHER = "other"

    @classmethod
    def from_libvirt(cls, code: int) -> DomainState:
        """Map a libvirt virDomainState code; unknown codes become OTHER."""
        return _LIBVIRT_STATES.get(code, cls.OTHER)


# VIR_DOMAIN_* codes; NOSTATE(0), BLOCKED(2) and PMSUSPENDED(7) fall into OTHER
_LIBVIRT_STATES: dict[int, DomainState] = {
    1: DomainState.RUNNING,
    3: DomainState.PAUSED,
    4: DomainState.SHUTDOWN,
    5: DomainState.SHUTOFF,
    6: DomainState.CRASHED,
}


@dataclass(frozen=True)
class DomainRef:
    """Backend handle of one domain."""

    name: str
    uuid: str
    handle: Any = field(default=None, compare=False, repr=False)


class VirtBackend(Protocol):
    """Blocking capability the gateway needs from a virtualization backend.

    Implementations raise BackendConnectionError for connection-level
    failures and the per-domain errors from wolgate.exceptions otherwise.
    """

    def list_domains(self) -> list[DomainRef]: ...

    def get_domain_config(self, domain: DomainRef) -> str: ...

    def get_domain_state(self, domain: DomainRef) -> DomainState: ...

    def start_domain(self, domain: DomainRef) -> None: ...

    def close(self) -> None: ...


class BackendSession:
    """Async view of a connected backend; every call is bounded by a timeout."""

    def __init__(self, backend: VirtBackend, timeout: float):
        self._backend = backend
        self._timeout = timeout

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        """Run func in a worker thread, bounded by the session timeout.

        A timeout abandons the await, not the thread: the blocking call may
        still complete afterwards. A start_domain that times out can
        therefore still boot the domain.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            raise BackendConnectionError(
                f"Backend call {func.__name__} timed out after {self._timeout}s"
            ) from None

    async def list_domains(self) -> list[DomainRef]:
        return await self._call(self._backend.list_domains)

    async def get_domain_config(self, domain: DomainRef) -> str:
        return await self._call(self._backend.get_domain_config, domain)

    async def get_domain_state(self, domain: DomainRef) -> DomainState:
        return await self._call(self._backend.get_domain_state, domain)

    async def start_domain(self, domain: DomainRef) -> None:
        await self._call(self._backend.start_domain, domain)


class BackendClient:
    """Owns the single backend connection; reconnects after failures.

    Access is serialized: one session at a time, acquired with
    ``async with client.session() as session``.
    """

    def __init__(self, connect: Callable[[], VirtBackend], timeout: float = 10.0):
        self._connect = connect
        self._timeout = timeout
        self._backend: VirtBackend | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._backend is not None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BackendSession]:
        async with self._lock:
            backend = await self._ensure_connected()
            try:
                yield BackendSession(backend, self._timeout)
            except BackendConnectionError:
                await self._disconnect()
                raise

    async def close(self) -> None:
        async with self._lock:
            await self._disconnect()

    async def _ensure_connected(self) -> VirtBackend:
        if self._backend is not None:
            return self._backend
        try:
            backend = await asyncio.wait_for(
                asyncio.to_thread(self._connect), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            raise BackendConnectionError(
                f"Backend connect timed out after {self._timeout}s"
            ) from None
        self._backend = backend
        logger.info("Connected to virtualization backend")
        return backend

    async def _disconnect(self) -> None:
        backend, self._backend = self._backend, None
        if backend is None:
            return
        try:
            await asyncio.wait_for(asyncio.to_thread(backend.close), timeout=self._timeout)
        except Exception as e:
            logger.debug("Error while closing backend connection: %s", e)
        logger.info("Backend connection dropped, will reconnect on next request")
