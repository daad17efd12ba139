"""MAC address normalization, validation and vendor lookup.

Vendor dumps render hardware addresses in several styles:
- D-Link:  00-11-22-33-44-55
- OLT/Cisco: 0011.2233.4455
- Linux/IEEE: 00:11:22:33:44:55

Everything stored or compared by this project uses the canonical
lower-case colon form produced by ``normalize_mac``.
"""
import re
from types import MappingProxyType
from typing import Optional

_SEPARATORS = re.compile(r"[-:.]")
_HEX12 = re.compile(r"[0-9a-f]{12}")
_CANONICAL = re.compile(r"([0-9a-f]{2}:){5}[0-9a-f]{2}")

# Built-in OUI database, keyed by the first three octets (upper case)
OUI_VENDORS = MappingProxyType({
    # === D-LINK ===
    "00:11:22": "D-Link",
    "00:17:9A": "D-Link",
    "00:1B:11": "D-Link",
    "00:1C:F0": "D-Link",
    "00:1E:58": "D-Link",
    "00:14:A9": "D-Link",

    # === VIRTUAL MACHINES ===
    "00:50:56": "VMware",
    "00:0C:29": "VMware",
    "08:00:27": "Oracle VirtualBox",
    "52:54:00": "QEMU/KVM",
    "00:15:5D": "Microsoft Hyper-V",

    # === CISCO ===
    "00:25:90": "Cisco",
    "00:26:0A": "Cisco",
    "00:0F:34": "Cisco",
    "00:1A:30": "Cisco",
    "70:72:CF": "Cisco",
    "00:04:96": "Cisco",
    "00:30:96": "Cisco",
    "00:08:2F": "Cisco",
    "00:60:5C": "Cisco",
    "00:90:0B": "Cisco",
    "00:A0:24": "Cisco",
    "00:E0:1E": "Cisco",
    "40:55:39": "Cisco",

    # === HUAWEI ===
    "00:1D:71": "Huawei",
    "00:25:9E": "Huawei",
    "4C:54:99": "Huawei",
    "00:E0:FC": "Huawei",
    "00:46:70": "Huawei",
    "28:6E:D4": "Huawei",
    "6C:92:BF": "Huawei",

    # === HP ===
    "00:03:0F": "HP",
    "00:08:02": "HP",
    "00:0B:CD": "HP",
    "00:11:85": "HP",
    "00:13:21": "HP",
    "00:15:60": "HP",
    "00:16:35": "HP",
    "00:17:A4": "HP",
    "00:18:71": "HP",
    "00:19:BB": "HP",
    "00:1A:4B": "HP",
    "00:1B:78": "HP",
    "00:1C:C4": "HP",
    "00:1E:0B": "HP",
    "00:1F:29": "HP",
    "00:21:5A": "HP",
    "00:22:64": "HP",
    "00:23:7D": "HP",
    "00:24:81": "HP",
    "00:25:B3": "HP",

    # === WORKSTATIONS ===
    "00:1B:21": "Intel",
    "00:23:24": "Dell",
    "00:14:22": "Dell",
    "3C:15:C2": "Apple",
    "A4:D1:D2": "Apple",
})

# Substrings of vendor names, checked in order
_CLIENT_TYPE_RULES = (
    ("network_device", ("cisco", "d-link", "huawei", "hp", "juniper", "aruba")),
    ("virtual_machine", ("vmware", "virtualbox", "qemu", "hyper-v")),
    ("computer", ("intel", "dell", "apple", "lenovo", "asus")),
)


def normalize_mac(raw: Optional[str]) -> Optional[str]:
    """Normalize a MAC address to ``xx:xx:xx:xx:xx:xx``.

    Separators ``:``, ``-`` and ``.`` are accepted in any position.

    Returns:
        The canonical form, or None when the input is not 12 hex digits
    """
    if not raw or not isinstance(raw, str):
        return None

    clean = _SEPARATORS.sub("", raw.strip()).lower()
    if not _HEX12.fullmatch(clean):
        return None

    return ":".join(clean[i:i + 2] for i in range(0, 12, 2))


def is_valid_mac(address: Optional[str]) -> bool:
    """True only for the canonical lower-case colon form."""
    if not address:
        return False
    return bool(_CANONICAL.fullmatch(address))


def get_mac_vendor(address: Optional[str]) -> Optional[str]:
    """
    Look up the vendor for a canonical MAC address.

    Args:
        address: MAC address in format xx:xx:xx:xx:xx:xx

    Returns:
        Vendor name, "Unknown" for an unlisted OUI, None for an invalid address
    """
    if not is_valid_mac(address):
        return None

    oui = address[:8].upper()
    return OUI_VENDORS.get(oui, "Unknown")


def detect_client_type(vendor: Optional[str]) -> str:
    """Classify the attached client from its vendor name."""
    if not vendor or vendor == "Unknown":
        return "unknown"

    vendor_lower = vendor.lower()
    for client_type, needles in _CLIENT_TYPE_RULES:
        if any(needle in vendor_lower for needle in needles):
            return client_type

    return "device"
