"""Gateway status: listener address, backend connection and counters."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from wolgate.schemas.system import ListenerStatsOut, StatusResponse
from wolgate.services import get_backend_client, get_listener

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
async def gateway_status(request: Request):
    try:
        listener = get_listener()
        backend = get_backend_client()
    except RuntimeError:
        raise HTTPException(503, "WOL listener not initialized")

    settings = request.app.state.settings
    host, port = listener.address
    return StatusResponse(
        listen_address=f"{host}:{port}",
        listening=listener.is_listening,
        libvirt_uri=settings.libvirt_uri,
        backend_connected=backend.connected,
        dev_mode=settings.is_dev_mode,
        stats=ListenerStatsOut(**listener.stats.to_dict()),
    )
