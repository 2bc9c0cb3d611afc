"""Health and status schemas."""

from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
    service: str = "wolgate"
    listening: bool = False


class WakeRecordOut(BaseModel):
    """Most recent handled WOL request."""
    mac: str
    domain: str | None = None
    outcome: str
    source: str
    timestamp: datetime


class ListenerStatsOut(BaseModel):
    """Counters since process start."""
    received: int = 0
    filtered: int = 0
    dropped: int = 0
    rejected: int = 0
    backend_errors: int = 0
    outcomes: dict[str, int] = {}
    last_wake: WakeRecordOut | None = None


class StatusResponse(BaseModel):
    """Gateway status."""
    listen_address: str
    listening: bool
    libvirt_uri: str
    backend_connected: bool
    dev_mode: bool
    stats: ListenerStatsOut
