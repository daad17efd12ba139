"""D-Link switch configuration parser.

Understands the CLI-style dump produced by ``show config`` / saved
configuration files of DGS/DES switches:

    #  DGS-3120-24SC Gigabit Ethernet Switch
    #  Firmware: Build 4.04.017
    config snmp system_name sw-core-01
    config ports 1-4 description Uplink
    config ports 5-8 speed auto state enable
    create vlan mgmt tag 100
    config vlan mgmt add tagged 25-28
    config vlan default add untagged 1-24
"""
import logging
import re
from typing import Dict, List, Optional

from l2scheme.core.config import get_settings
from l2scheme.parsers.records import (
    DeviceInfo,
    ParsedConfig,
    PortInfo,
    VlanAssignment,
    VlanInfo,
)
from l2scheme.utils.port_utils import parse_port_range

logger = logging.getLogger(__name__)

MODEL_PATTERN = re.compile(r"((?:DGS|DES)-\S+)", re.IGNORECASE)
FIRMWARE_PATTERN = re.compile(r"Build\s+(\S+)")
SYSTEM_NAME_PATTERN = re.compile(r"^config snmp system_name\s+(.+)$")
PORTS_PATTERN = re.compile(r"^config ports\s+([0-9,\-]+)\s+(.+)$")
CREATE_VLAN_PATTERN = re.compile(r"^create vlan\s+(\S+)\s+tag\s+(\d+)")
VLAN_MEMBER_PATTERN = re.compile(
    r"^config vlan\s+(vlanid\s+)?(\S+)\s+(add\s+tagged|add\s+untagged|delete)\s+([0-9,\-]+)"
)

# Fiber combo ports on the 28-port models
FIBER_PORTS = range(21, 25)


def _strip_quotes(value: str) -> str:
    return value.strip().strip('"').strip("'").strip()


class DLinkConfigParser:
    """Line-oriented parser for D-Link switch configuration dumps."""

    def __init__(self, default_port_count: Optional[int] = None):
        if default_port_count is None:
            default_port_count = get_settings().dlink_default_port_count
        self.default_port_count = default_port_count

    def parse(self, config_text: str, device_ip: str) -> ParsedConfig:
        """
        Parse a configuration dump.

        Args:
            config_text: Raw configuration text
            device_ip: Management IP of the device the dump belongs to

        Returns:
            ParsedConfig with device, ports, VLANs and port/VLAN assignments
        """
        lines = [line.strip() for line in (config_text or "").splitlines()]
        result = ParsedConfig(device=DeviceInfo(ip=device_ip))

        self._parse_device_info(lines, result)
        self._parse_ports(lines, result)
        self._parse_vlans(lines, result)

        # VLAN membership may reach past the default port table
        known = {port.port_number for port in result.ports}
        extra = {a.port_number for a in result.assignments} - known
        if extra:
            result.ports.extend(self._new_port(number) for number in extra)
            result.ports.sort(key=lambda port: port.port_number)

        logger.debug(
            f"D-Link config {device_ip}: {len(result.ports)} ports, "
            f"{len(result.vlans)} VLANs, {len(result.assignments)} assignments"
        )
        return result

    def _parse_device_info(self, lines: List[str], result: ParsedConfig) -> None:
        device = result.device

        for line in lines:
            if "Gigabit Ethernet Switch" in line or "Fast Ethernet Switch" in line:
                match = MODEL_PATTERN.search(line)
                if match and not device.model:
                    device.model = match.group(1)
                    result.directives_matched += 1

            if "Firmware: Build" in line:
                match = FIRMWARE_PATTERN.search(line)
                if match:
                    device.firmware = match.group(1)
                    result.directives_matched += 1

            match = SYSTEM_NAME_PATTERN.match(line)
            if match:
                device.hostname = _strip_quotes(match.group(1)) or None

        if not device.hostname:
            device.hostname = f"DLink_{device.ip.replace('.', '_')}"
        device.device_type = device.model or "D-Link Switch"

    def _new_port(self, port_number: int) -> PortInfo:
        return PortInfo(
            port_number=port_number,
            port_name=f"Port{port_number}",
            port_type="fiber" if port_number in FIBER_PORTS else "ethernet",
            description="",
            status="up",
            speed="auto",
            duplex="auto",
        )

    def _parse_ports(self, lines: List[str], result: ParsedConfig) -> None:
        ports: Dict[int, PortInfo] = {}

        for line in lines:
            match = PORTS_PATTERN.match(line)
            if not match:
                continue

            port_numbers = parse_port_range(match.group(1))
            if not port_numbers:
                continue
            result.directives_matched += 1

            params, description = self._split_description(match.group(2))

            for port_number in port_numbers:
                port = ports.get(port_number)
                if port is None:
                    port = ports[port_number] = self._new_port(port_number)

                if description is not None:
                    port.description = description
                self._apply_port_params(port, params)

        for port_number in range(1, self.default_port_count + 1):
            if port_number not in ports:
                ports[port_number] = self._new_port(port_number)

        result.ports = [ports[number] for number in sorted(ports)]

    @staticmethod
    def _split_description(rest: str):
        """Split ``<param> <value> ... description <text>`` into both halves."""
        if rest.startswith("description "):
            return [], _strip_quotes(rest[len("description "):])

        head, sep, tail = rest.partition(" description ")
        if sep:
            return head.split(), _strip_quotes(tail)
        return rest.split(), None

    @staticmethod
    def _param_value(params: List[str], key: str) -> Optional[str]:
        # Values are looked up by keyword: some keys
        # (capability_advertised, ...) take several values
        if key not in params:
            return None
        index = params.index(key)
        return params[index + 1] if index + 1 < len(params) else None

    @classmethod
    def _apply_port_params(cls, port: PortInfo, params: List[str]) -> None:
        speed = cls._param_value(params, "speed")
        if speed is not None:
            port.speed = speed
            if speed.endswith("_full"):
                port.duplex = "full"
            elif speed.endswith("_half"):
                port.duplex = "half"

        state = cls._param_value(params, "state")
        if state is not None:
            port.status = "up" if state == "enable" else "down"

    def _parse_vlans(self, lines: List[str], result: ParsedConfig) -> None:
        vlans: Dict[int, VlanInfo] = {}
        names: Dict[str, int] = {}
        assignments: List[VlanAssignment] = []

        for line in lines:
            match = CREATE_VLAN_PATTERN.match(line)
            if match:
                name, vlan_id = match.group(1), int(match.group(2))
                names[name] = vlan_id
                vlans[vlan_id] = VlanInfo(
                    vlan_id=vlan_id,
                    name=name,
                    description=f"VLAN {vlan_id}",
                )
                result.directives_matched += 1
                continue

            match = VLAN_MEMBER_PATTERN.match(line)
            if not match:
                continue

            by_id, vlan_ref, action, port_range = match.groups()
            vlan_id = self._resolve_vlan_id(vlan_ref, names, by_id is not None)
            if vlan_id is None:
                logger.debug(f"Unresolvable VLAN reference skipped: {line}")
                continue
            result.directives_matched += 1

            if vlan_id not in vlans:
                vlans[vlan_id] = VlanInfo(
                    vlan_id=vlan_id,
                    name="default" if vlan_ref == "default" else f"VLAN{vlan_id}",
                    description=f"VLAN {vlan_id}",
                )

            port_numbers = parse_port_range(port_range)
            if action == "delete":
                removed = set(port_numbers)
                assignments = [
                    a for a in assignments
                    if not (a.vlan_id == vlan_id and a.port_number in removed)
                ]
                continue

            untagged = action.endswith("untagged")
            for port_number in port_numbers:
                assignments.append(VlanAssignment(
                    port_number=port_number,
                    vlan_id=vlan_id,
                    mode="untagged" if untagged else "tagged",
                    native_vlan=untagged,
                ))

        result.vlans = [vlans[vlan_id] for vlan_id in sorted(vlans)]
        result.assignments = assignments

    @staticmethod
    def _resolve_vlan_id(ref: str, names: Dict[str, int], by_id: bool) -> Optional[int]:
        if by_id:
            return int(ref) if ref.isdigit() else None
        if ref == "default":
            return 1
        if ref in names:
            return names[ref]
        if ref.isdigit():
            return int(ref)
        return None
