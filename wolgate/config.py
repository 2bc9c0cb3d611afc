"""wolgate configuration: Pydantic BaseSettings loaded from .env."""

from __future__ import annotations

import ipaddress
import json
from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Gateway settings; every field can be set as WOLGATE_<NAME>."""

    app_name: str = "wolgate"
    log_level: str = "INFO"

    # Mode: prod = issue start requests, dev = log them only
    mode: str = "prod"

    # WOL listener (UDP)
    listen_host: str = "127.0.0.1"
    listen_port: int = 9
    allowed_subnets: Annotated[list[str], NoDecode] = []  # empty = accept any source

    # Virtualization backend
    libvirt_uri: str = "qemu:///system"
    backend_timeout_seconds: float = 10.0

    # Optional HTTP status API
    http_enabled: bool = False
    http_host: str = "127.0.0.1"
    http_port: int = 8009

    @property
    def is_dev_mode(self) -> bool:
        return self.mode == "dev"

    @property
    def listen_address(self) -> str:
        return f"{self.listen_host}:{self.listen_port}"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WOLGATE_",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value} (expected one of {', '.join(LOG_LEVELS)})")
        return level

    @field_validator("allowed_subnets", mode="before")
    @classmethod
    def assemble_allowed_subnets(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return [s.strip() for s in value.split(",") if s.strip()]
        return value

    @field_validator("allowed_subnets")
    @classmethod
    def validate_allowed_subnets(cls, value: list[str]) -> list[str]:
        for subnet in value:
            # strict=False: "127.0.0.1/8" is accepted as 127.0.0.0/8
            ipaddress.ip_network(subnet, strict=False)
        return value

    @field_validator("listen_port", "http_port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        if not 0 <= value <= 65535:
            raise ValueError(f"Port out of range: {value}")
        return value

    @field_validator("backend_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("backend_timeout_seconds must be positive")
        return value


def parse_address(address: str) -> tuple[str, int]:
    """Split "HOST:PORT" (or "[v6]:PORT") into host and port."""
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Invalid listen address (expected HOST:PORT): {address}")
    port_num = int(port)
    if port_num > 65535:
        raise ValueError(f"Port out of range: {port_num}")
    return host.strip("[]"), port_num


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
