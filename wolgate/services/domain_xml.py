"""MAC address extraction from libvirt domain XML."""

from __future__ import annotations

import xml.etree.ElementTree as ET

from wolgate.exceptions import DomainConfigError
from wolgate.utils.mac import MacAddress


def extract_mac_addresses(xml: str) -> list[MacAddress]:
    """
    Return the MAC of every <devices>/<interface> in a domain definition.

    A domain without interfaces yields an empty list. Malformed XML, a
    missing <devices> element, an interface without <mac address=...> or an
    unparseable address raise DomainConfigError.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise DomainConfigError(f"Failed to parse domain XML: {e}") from e

    devices = root.find("devices")
    if devices is None:
        raise DomainConfigError("Domain XML has no <devices> element")

    macs: list[MacAddress] = []
    for iface in devices.findall("interface"):
        mac_el = iface.find("mac")
        address = mac_el.get("address") if mac_el is not None else None
        if not address:
            raise DomainConfigError(
                f"Interface of type {iface.get('type', '?')!r} has no MAC address"
            )
        try:
            macs.append(MacAddress.parse(address))
        except ValueError as e:
            raise DomainConfigError(str(e)) from e
    return macs
