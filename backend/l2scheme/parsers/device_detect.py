"""Content sniffing for configuration dumps."""
import re

OLT_TOKENS = ("epon bind-onu", "interface epon", "hostname olt", "epon sla upstream")
OLT_SUBINTERFACE = re.compile(r"epon\d+/\d+:\d+")

DLINK_TOKENS = ("dgs-", "des-", "d-link corporation")
DLINK_CREATE_VLAN = re.compile(r"create vlan \S+ tag")

CISCO_TOKENS = ("cisco",)
CISCO_IOS = re.compile(r"\bios\b")


def detect_device_type(config_text: str) -> str:
    """Return "OLT", "D-Link", "Cisco" or "Unknown" for a config dump."""
    content = (config_text or "").lower()

    if any(token in content for token in OLT_TOKENS) or OLT_SUBINTERFACE.search(content):
        return "OLT"

    if any(token in content for token in DLINK_TOKENS) or DLINK_CREATE_VLAN.search(content):
        return "D-Link"

    if any(token in content for token in CISCO_TOKENS) or CISCO_IOS.search(content):
        return "Cisco"

    return "Unknown"
