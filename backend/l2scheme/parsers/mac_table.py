"""MAC address table (fdb) parsers.

Each dialect turns a raw ``show fdb`` / ``show mac address-table`` dump
into a list of MacTableEntry records. Parsers are pure: they never touch
the database and skip malformed rows instead of failing.

Narrow D-Link (``show fdb``):

    Command: show fdb
    VLAN ID  MAC Address         Port        Type
    ------- ----------------- ----------- ------------
    1        00-11-22-33-44-55   1          Dynamic

Wide D-Link switch:

    VID  VLAN Name                        MAC Address       Port Type
    ---- -------------------------------- ----------------- ---- ---------
    80   80                               00-14-A9-26-5C-31 25   Dynamic

OLT:

    Mac Address Table (Total 2)
    Vlan    Mac Address       Type       Ports
    14      0011.2233.4455    DYNAMIC    epon0/1:1

Cisco-like:

    VLAN    MAC Address       Type      Ports
    ----    -----------       --------  -----
    1       0011.2233.4455    DYNAMIC   Gi1/0/1
"""
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional

from l2scheme.parsers.records import MacTableEntry
from l2scheme.utils.mac_utils import get_mac_vendor, is_valid_mac, normalize_mac

logger = logging.getLogger(__name__)

DASH_RUN = re.compile(r"-{4,}")
MULTI_DASH_SEPARATOR = re.compile(r"-+(\s+-+)+")
PORT_WORD = re.compile(r"\bPort\b")
DOTTED_MAC = re.compile(r"\b[0-9a-fA-F]{4}\.[0-9a-fA-F]{4}\.[0-9a-fA-F]{4}\b")
OLT_NOISE = ("--More--", "CTRL+C", "\x1b[", "[K", "[D")


def _make_entry(vlan_token: str, mac_token: str, port: str, learning_method: str,
                line: str, device_info: Optional[Dict[str, Any]]) -> Optional[MacTableEntry]:
    """Build an entry, or None when the VLAN or MAC token is not usable."""
    if not vlan_token.isdigit():
        return None

    mac_address = normalize_mac(mac_token)
    if not is_valid_mac(mac_address):
        return None

    return MacTableEntry(
        vlan_id=int(vlan_token),
        mac_address=mac_address,
        port=port,
        learning_method=learning_method.lower(),
        vendor=get_mac_vendor(mac_address),
        device_info=device_info,
        raw_line=line,
    )


class DLinkFdbParser:
    """Narrow D-Link ``show fdb`` output: ``vlan mac port type``."""

    format_name = "dlink"

    def parse(self, text: str, device_info: Optional[Dict[str, Any]] = None) -> List[MacTableEntry]:
        entries: List[MacTableEntry] = []
        in_table = False

        for line in (text or "").splitlines():
            line = line.strip()

            if not in_table:
                if DASH_RUN.search(line):
                    in_table = True
                continue

            if not line or line.startswith("Command:"):
                continue

            parts = line.split()
            if len(parts) < 4:
                continue

            entry = _make_entry(parts[0], parts[1], parts[2], parts[3], line, device_info)
            if entry is None:
                logger.debug(f"Skipping fdb row: {line}")
                continue
            entries.append(entry)

        return entries


class DLinkSwitchFdbParser:
    """Wide D-Link output with ``VID`` and ``VLAN Name`` columns.

    VLAN names may contain spaces, so the MAC column is located by content
    rather than by position.
    """

    format_name = "dlink_switch"

    def parse(self, text: str, device_info: Optional[Dict[str, Any]] = None) -> List[MacTableEntry]:
        entries: List[MacTableEntry] = []
        in_table = False

        for line in (text or "").splitlines():
            line = line.strip()

            if not in_table:
                if MULTI_DASH_SEPARATOR.fullmatch(line):
                    in_table = True
                continue

            parts = line.split()
            if len(parts) < 4:
                continue

            mac_index = self._find_mac_column(parts)
            if mac_index is None or mac_index + 2 >= len(parts):
                continue

            port, learning_method = parts[mac_index + 1], parts[mac_index + 2]
            if port.upper() == "CPU" or learning_method.lower() == "self":
                continue

            entry = _make_entry(parts[0], parts[mac_index], port, learning_method, line, device_info)
            if entry is not None:
                entries.append(entry)

        return entries

    @staticmethod
    def _find_mac_column(parts: List[str]) -> Optional[int]:
        for index in range(1, len(parts)):
            if is_valid_mac(normalize_mac(parts[index])):
                return index
        return None


class OltFdbParser:
    """OLT ``show mac address-table``: ``vlan mac type port``.

    The whole dump is scanned; header and banner rows fall out because their
    first token is not a VLAN number. Pager prompts and terminal escape
    fragments are dropped before tokenizing.
    """

    format_name = "olt"

    def parse(self, text: str, device_info: Optional[Dict[str, Any]] = None) -> List[MacTableEntry]:
        entries: List[MacTableEntry] = []

        for line in (text or "").splitlines():
            if any(noise in line for noise in OLT_NOISE):
                continue
            line = line.strip()

            entry = self._parse_row(line, device_info)
            if entry is not None:
                entries.append(entry)

        return entries

    @staticmethod
    def _parse_row(line: str, device_info: Optional[Dict[str, Any]]) -> Optional[MacTableEntry]:
        parts = line.split()
        if len(parts) < 4:
            return None
        return _make_entry(parts[0], parts[1], parts[3], parts[2], line, device_info)


class CiscoFdbParser(OltFdbParser):
    """Cisco-like table with the OLT row layout, body after a ``----`` line."""

    format_name = "cisco"

    def parse(self, text: str, device_info: Optional[Dict[str, Any]] = None) -> List[MacTableEntry]:
        entries: List[MacTableEntry] = []
        in_table = False

        for line in (text or "").splitlines():
            line = line.strip()

            if "----" in line:
                in_table = True
                continue
            if not in_table or not line:
                continue

            entry = self._parse_row(line, device_info)
            if entry is not None:
                entries.append(entry)

        return entries


PARSERS = {
    DLinkFdbParser.format_name: DLinkFdbParser(),
    DLinkSwitchFdbParser.format_name: DLinkSwitchFdbParser(),
    OltFdbParser.format_name: OltFdbParser(),
    CiscoFdbParser.format_name: CiscoFdbParser(),
}

# Order tried when detection fails or the detected dialect yields nothing
FALLBACK_ORDER = ("olt", "dlink_switch", "dlink")


def detect_mac_table_format(text: str) -> Optional[str]:
    """Sniff the dialect of an fdb dump; returns a PARSERS key or None."""
    content = text or ""
    lines = content.splitlines()

    if "Mac Address Table (Total" in content or DOTTED_MAC.search(content):
        return "olt"

    if any("VID" in line and "VLAN Name" in line for line in lines):
        return "dlink_switch"

    if "Command: show fdb" in content or any(
        "Type" in line and PORT_WORD.search(line) and "MAC Address" in line for line in lines
    ):
        return "dlink"

    if any("VLAN" in line and "MAC Address" in line and "Ports" in line for line in lines):
        return "cisco"

    return None


def parse_generic_mac_table(text: str, device_info: Optional[Dict[str, Any]] = None) -> List[MacTableEntry]:
    """Parse an fdb dump of any supported dialect."""
    detected = detect_mac_table_format(text)

    if detected:
        entries = PARSERS[detected].parse(text, device_info)
        if entries:
            logger.debug(f"Parsed {len(entries)} fdb entries as {detected}")
            return entries

    for format_name in FALLBACK_ORDER:
        if format_name == detected:
            continue
        entries = PARSERS[format_name].parse(text, device_info)
        if entries:
            logger.debug(f"Parsed {len(entries)} fdb entries as {format_name} (fallback)")
            return entries

    logger.warning("No fdb dialect produced any entries")
    return []


def parse_with_topology_context(
    text: str,
    device_info: Optional[Dict[str, Any]] = None,
    port_mappings: Optional[Mapping[str, Any]] = None,
) -> List[MacTableEntry]:
    """
    Parse an fdb dump and annotate each entry with what is known about its port.

    Args:
        text: Raw fdb dump
        device_info: Opaque device context copied into every entry
        port_mappings: Port token -> mapping with ``port_type``,
            ``description``, ``mode`` and ``native_vlan`` attributes

    Returns:
        Parsed entries, annotated where the port token is known
    """
    entries = parse_generic_mac_table(text, device_info)

    if port_mappings:
        for entry in entries:
            mapping = port_mappings.get(entry.port)
            if mapping is None:
                continue
            entry.port_type = mapping.port_type
            entry.port_description = mapping.description
            entry.port_mode = mapping.mode
            entry.native_vlan = mapping.native_vlan

    return entries


def analyze_mac_patterns(entries: List[MacTableEntry]) -> Dict[str, Any]:
    """Summarize parsed entries by vendor, VLAN, port and learning method."""
    return {
        "total_macs": len(entries),
        "unique_macs": len({entry.mac_address for entry in entries}),
        "vendors": dict(Counter(entry.vendor or "Unknown" for entry in entries)),
        "vlans": dict(Counter(entry.vlan_id for entry in entries)),
        "ports": dict(Counter(entry.port for entry in entries)),
        "learning_methods": dict(Counter(entry.learning_method or "unknown" for entry in entries)),
    }
