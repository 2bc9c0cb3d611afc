"""MAC address value type."""

from __future__ import annotations

from dataclasses import dataclass

MAC_ADDR_LEN = 6


@dataclass(frozen=True)
class MacAddress:
    """Six octets; compares on the octets, prints as lower-case colon hex."""

    octets: bytes

    def __post_init__(self) -> None:
        if len(self.octets) != MAC_ADDR_LEN:
            raise ValueError(
                f"MAC address must be {MAC_ADDR_LEN} bytes, got {len(self.octets)}"
            )

    @classmethod
    def parse(cls, value: str) -> MacAddress:
        """
        Parse a MAC address string.

        Accepts "aa:bb:cc:dd:ee:ff", "AA-BB-CC-DD-EE-FF" and bare "aabbccddeeff".
        Each colon/dash separated part must be exactly two hex digits.
        """
        text = value.strip()
        for sep in (":", "-"):
            if sep in text:
                parts = text.split(sep)
                if len(parts) != MAC_ADDR_LEN or any(len(p) != 2 for p in parts):
                    raise ValueError(f"Invalid MAC address: {value}")
                text = "".join(parts)
                break

        if len(text) != MAC_ADDR_LEN * 2:
            raise ValueError(f"Invalid MAC address: {value}")
        try:
            return cls(bytes.fromhex(text))
        except ValueError:
            raise ValueError(f"Invalid MAC address: {value}") from None

    def __str__(self) -> str:
        return ":".join(f"{b:02x}" for b in self.octets)
