"""Gateway services: singleton registry."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Callable

from wolgate.config import Settings

if TYPE_CHECKING:
    from wolgate.services.backend import BackendClient, VirtBackend
    from wolgate.services.listener import WolListener

logger = logging.getLogger(__name__)

_backend_client: BackendClient | None = None
_listener: WolListener | None = None


async def init_services(
    settings: Settings,
    backend_factory: Callable[[], VirtBackend] | None = None,
) -> None:
    """Create the backend client and bind the WOL listener.

    Raises ListenerBindError if the listen address cannot be bound.
    """
    global _backend_client, _listener

    from wolgate.services.backend import BackendClient
    from wolgate.services.libvirt_backend import LibvirtBackend
    from wolgate.services.listener import WolListener

    if backend_factory is None:
        backend_factory = partial(LibvirtBackend.open, settings.libvirt_uri)

    _backend_client = BackendClient(
        backend_factory, timeout=settings.backend_timeout_seconds
    )
    _listener = WolListener(
        _backend_client,
        host=settings.listen_host,
        port=settings.listen_port,
        allowed_subnets=settings.allowed_subnets,
        dry_run=settings.is_dev_mode,
    )
    if settings.is_dev_mode:
        logger.warning("Dev mode: start requests are logged but not executed")
    await _listener.start()


async def shutdown_services() -> None:
    """Stop the listener and close the backend connection."""
    global _backend_client, _listener
    if _listener:
        await _listener.stop()
        _listener = None
    if _backend_client:
        await _backend_client.close()
        _backend_client = None


def get_listener() -> WolListener:
    if _listener is None:
        raise RuntimeError("Services not initialized, call init_services() first")
    return _listener


def get_backend_client() -> BackendClient:
    if _backend_client is None:
        raise RuntimeError("Services not initialized, call init_services() first")
    return _backend_client
