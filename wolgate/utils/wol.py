"""Wake-on-LAN (WOL) magic packet parsing and sending."""

import socket

from wolgate.exceptions import NotMagicPacket
from wolgate.utils.mac import MAC_ADDR_LEN, MacAddress

SYNC_STREAM = b"\xff" * 6
MAC_REPETITIONS = 16
# 6 sync bytes + 16 * 6 MAC bytes; anything after is the optional password
MAGIC_PACKET_MIN_SIZE = len(SYNC_STREAM) + MAC_REPETITIONS * MAC_ADDR_LEN
PASSWORD_LENGTHS = (0, 4, 6)


def parse_magic_packet(data: bytes) -> MacAddress:
    """
    Validate a datagram payload as a magic packet and return its target MAC.

    Layout: 6x 0xFF, then the target MAC repeated 16 times. Trailing bytes
    (the SecureOn password some senders append) are ignored.

    Raises:
        NotMagicPacket: payload does not match the layout.
    """
    if len(data) < MAGIC_PACKET_MIN_SIZE:
        raise NotMagicPacket(
            f"Packet too short for WOL: {len(data)} bytes, "
            f"expected at least {MAGIC_PACKET_MIN_SIZE}"
        )

    if data[: len(SYNC_STREAM)] != SYNC_STREAM:
        raise NotMagicPacket("Packet does not start with 6 FF bytes (sync stream)")

    start = len(SYNC_STREAM)
    target = data[start : start + MAC_ADDR_LEN]
    for i in range(1, MAC_REPETITIONS):
        offset = start + i * MAC_ADDR_LEN
        if data[offset : offset + MAC_ADDR_LEN] != target:
            raise NotMagicPacket(f"MAC address repetition check failed at repetition {i}")

    return MacAddress(bytes(target))


def build_magic_packet(mac: MacAddress, password: bytes = b"") -> bytes:
    """Build a magic packet for mac, optionally with a 4 or 6 byte password."""
    if len(password) not in PASSWORD_LENGTHS:
        raise ValueError(f"WOL password must be 4 or 6 bytes, got {len(password)}")
    return SYNC_STREAM + mac.octets * MAC_REPETITIONS + password


def send_wol(mac_address: str, broadcast: str = "255.255.255.255", port: int = 9) -> None:
    """
    Send a Wake-on-LAN magic packet.

    Args:
        mac_address: MAC address in format "AA:BB:CC:DD:EE:FF" or "AA-BB-CC-DD-EE-FF"
        broadcast: Broadcast address (default: 255.255.255.255)
        port: UDP port (default: 9)
    """
    packet = build_magic_packet(MacAddress.parse(mac_address))

    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.sendto(packet, (broadcast, port))
