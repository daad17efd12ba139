"""OLT (Optical Line Terminal) configuration parser.

Supports the interface-block dialect of EPON OLTs:

    hostname OLT-Center
    version 10.1.0F build 53305
    interface GigaEthernet0/1
     description uplink
     switchport mode trunk
     switchport trunk vlan-allowed 14,18,100-110
     switchport pvid 14
    interface EPON0/1
     epon bind-onu mac 1234.5678.9abc 5
    interface EPON0/1:5
     description subscriber-5
     epon sla upstream pir 100000 cir 1000
     epon onu port 1 ctc vlan mode tag 14

Indented lines configure the interface opened by the last unindented
``interface`` line; any other unindented line closes it.
"""
import logging
import re
from typing import Dict, List, Optional

from l2scheme.parsers.records import (
    DeviceInfo,
    EponPort,
    OnuBinding,
    ParsedConfig,
    PortInfo,
    Subscriber,
    VlanAssignment,
    VlanInfo,
)
from l2scheme.utils.mac_utils import normalize_mac
from l2scheme.utils.port_utils import parse_vlan_list

logger = logging.getLogger(__name__)

INTERFACE_PATTERN = re.compile(
    r"^interface\s+((TGigaEthernet|GigaEthernet|EPON)(\d+)/(\d+)(?::(\d+))?)\s*$",
    re.IGNORECASE,
)
VERSION_PATTERN = re.compile(r"version\s+(\S+)\s+build\s+(\S+)")
BIND_ONU_PATTERN = re.compile(r"epon bind-onu mac\s+(\S+)\s+(\d+)")
ONU_VLAN_PATTERN = re.compile(r"epon onu port 1 ctc vlan mode tag\s+(\d+)")
SLA_PATTERN = re.compile(r"epon sla (upstream|downstream) pir\s+(\d+)")
MODE_PATTERN = re.compile(r"switchport mode\s+(\S+)")
ALLOWED_PATTERN = re.compile(r"switchport trunk vlan-allowed\s+(?:add\s+)?(.+)")
PVID_PATTERN = re.compile(r"switchport pvid\s+(\d+)")

PORT_DEFAULTS = {
    # kind: (port_type, speed, duplex)
    "GIGAETHERNET": ("ethernet", "1G", "full"),
    "TGIGAETHERNET": ("fiber", "10G", "full"),
    "EPON": ("EPON", "1000M", "full"),
}

# Slot, port and subscriber id must fit two decimal digits each
OLT_FIELD_LIMIT = 100


def encode_olt_port_number(kind: str, slot: int, port: int, sub_id: Optional[int] = None) -> int:
    """Derive a numeric port id that is unique per interface on one OLT.

    Compact encoding (kept whenever every field fits its decimal digit):
        GigaEthernet<s>/<p>     -> s*10 + p
        TGigaEthernet<s>/<p>    -> 50 + s*10 + p
        EPON<s>/<p>             -> 100 + s*10 + p
        EPON<s>/<p>:<id>        -> 1000 + s*100 + p*10 + id

    A port above 9, a subscriber id above 9, or a slot that would spill
    into the next range switches to a widened encoding with two decimal
    digits per field, placed in its own range:
        GigaEthernet  -> 10000 + s*100 + p
        TGigaEthernet -> 20000 + s*100 + p
        EPON          -> 30000 + s*100 + p
        EPON sub      -> 100000 + s*10000 + p*100 + id

    Two digits per field is the limit: slot, port and subscriber id must
    be below OLT_FIELD_LIMIT, otherwise ValueError is raised.
    """
    kind = kind.upper()

    fields = (slot, port) if sub_id is None else (slot, port, sub_id)
    if any(value >= OLT_FIELD_LIMIT for value in fields):
        raise ValueError(f"{kind} fields {fields} exceed the OLT port numbering limit of {OLT_FIELD_LIMIT - 1}")

    if kind == "EPON" and sub_id is not None:
        if port <= 9 and sub_id <= 9 and slot <= 89:
            return 1000 + slot * 100 + port * 10 + sub_id
        return 100000 + slot * 10000 + port * 100 + sub_id

    if kind == "EPON":
        if port <= 9 and slot <= 89:
            return 100 + slot * 10 + port
        return 30000 + slot * 100 + port

    if kind == "TGIGAETHERNET":
        if port <= 9 and slot <= 4:
            return 50 + slot * 10 + port
        return 20000 + slot * 100 + port

    if port <= 9 and slot <= 4:
        return slot * 10 + port
    return 10000 + slot * 100 + port


class OltConfigParser:
    """Interface-block scanner for EPON OLT configuration dumps."""

    def parse(self, config_text: str, device_ip: str) -> ParsedConfig:
        """
        Parse an OLT configuration dump.

        Args:
            config_text: Raw configuration text (indentation is significant)
            device_ip: Management IP of the OLT

        Returns:
            ParsedConfig including EPON trunk ports and subscribers
        """
        raw_lines = (config_text or "").splitlines()
        result = ParsedConfig(device=DeviceInfo(ip=device_ip))

        self._parse_device_info(config_text or "", raw_lines, result)
        self._parse_interfaces(raw_lines, result)
        self._link_onu_bindings(result)
        self._collect_vlans(result)

        logger.debug(
            f"OLT config {device_ip}: {len(result.ports)} ports, "
            f"{len(result.subscribers)} subscribers, {len(result.vlans)} VLANs"
        )
        return result

    def _parse_device_info(self, content: str, lines: List[str], result: ParsedConfig) -> None:
        device = result.device

        for raw in lines:
            line = raw.strip()
            if line.startswith("hostname "):
                device.hostname = line[len("hostname "):].strip() or None
                result.directives_matched += 1
                continue

            match = VERSION_PATTERN.search(line)
            if match and not device.firmware:
                device.firmware = f"{match.group(1)} build {match.group(2)}"
                result.directives_matched += 1

        if "OLT" in content or (device.hostname and "OLT" in device.hostname):
            device.model = "OLT_EPON"

        if not device.hostname:
            device.hostname = f"OLT_{device.ip.replace('.', '_')}"
        device.device_type = device.model or "OLT"

    def _parse_interfaces(self, lines: List[str], result: ParsedConfig) -> None:
        port: Optional[PortInfo] = None
        epon_port: Optional[EponPort] = None
        subscriber: Optional[Subscriber] = None

        for raw in lines:
            if not raw.strip():
                continue

            if not raw[0].isspace():
                port = epon_port = subscriber = None
                match = INTERFACE_PATTERN.match(raw.strip())
                if not match:
                    continue

                try:
                    port, epon_port, subscriber = self._open_interface(match, result)
                except ValueError as e:
                    logger.warning(f"Skipping interface {match.group(1)}: {e}")
                    continue
                result.directives_matched += 1
                continue

            if port is None:
                continue

            line = raw.strip()
            if self._apply_interface_config(line, port):
                result.directives_matched += 1
            if epon_port is not None and self._apply_epon_config(line, epon_port):
                result.directives_matched += 1
            if subscriber is not None and self._apply_subscriber_config(line, subscriber, port):
                result.directives_matched += 1

    def _open_interface(self, match, result: ParsedConfig):
        name, kind, slot, number, sub_id = match.groups()
        kind = kind.upper()
        slot, number = int(slot), int(number)

        if sub_id is not None:
            sub_id = int(sub_id)
            parent = name.split(":", 1)[0]
            port = PortInfo(
                port_number=encode_olt_port_number(kind, slot, number, sub_id),
                port_name=name,
                port_type="EPON_ACCESS",
                description="Subscriber Access Port",
                speed="auto",
                duplex="auto",
                mode="access",
                epon_parent=parent,
                subscriber_id=sub_id,
            )
            subscriber = Subscriber(
                interface_name=name,
                port_name=parent,
                subscriber_id=sub_id,
            )
            result.ports.append(port)
            result.subscribers.append(subscriber)
            return port, None, subscriber

        port_type, speed, duplex = PORT_DEFAULTS[kind]
        port = PortInfo(
            port_number=encode_olt_port_number(kind, slot, number),
            port_name=name,
            port_type=port_type,
            description=None,
            speed=speed,
            duplex=duplex,
        )
        result.ports.append(port)

        if kind != "EPON":
            return port, None, None

        port.description = "EPON Port"
        port.mode = "trunk"
        epon_port = EponPort(port_name=name, port_number=port.port_number)
        result.epon_ports.append(epon_port)
        return port, epon_port, None

    @staticmethod
    def _apply_interface_config(line: str, port: PortInfo) -> bool:
        if line.startswith("description "):
            port.description = line[len("description "):].strip()
            return True

        match = MODE_PATTERN.search(line)
        if match:
            port.mode = match.group(1)
            return True

        match = ALLOWED_PATTERN.search(line)
        if match:
            port.allowed_vlans = parse_vlan_list(match.group(1))
            return True

        match = PVID_PATTERN.search(line)
        if match:
            port.native_vlan = int(match.group(1))
            return True

        return False

    @staticmethod
    def _apply_epon_config(line: str, epon_port: EponPort) -> bool:
        match = BIND_ONU_PATTERN.search(line)
        if match:
            onu_id = int(match.group(2))
            epon_port.subscribers.append(OnuBinding(
                mac_address=normalize_mac(match.group(1)),
                onu_id=onu_id,
                interface_name=f"{epon_port.port_name}:{onu_id}",
            ))
            return True

        match = ALLOWED_PATTERN.search(line)
        if match:
            epon_port.vlans = parse_vlan_list(match.group(1))
            return True

        return False

    @staticmethod
    def _apply_subscriber_config(line: str, subscriber: Subscriber, port: PortInfo) -> bool:
        if line.startswith("description "):
            subscriber.description = line[len("description "):].strip()
            return True

        match = ONU_VLAN_PATTERN.search(line)
        if match:
            subscriber.vlan = int(match.group(1))
            port.native_vlan = subscriber.vlan
            return True

        match = SLA_PATTERN.search(line)
        if match:
            if match.group(1) == "upstream":
                subscriber.bandwidth_up = int(match.group(2))
            else:
                subscriber.bandwidth_down = int(match.group(2))
            return True

        if "switchport port-security" in line:
            subscriber.port_security = True
            return True

        return False

    @staticmethod
    def _link_onu_bindings(result: ParsedConfig) -> None:
        bindings: Dict[str, str] = {}
        for epon_port in result.epon_ports:
            for binding in epon_port.subscribers:
                if binding.mac_address:
                    bindings[binding.interface_name.upper()] = binding.mac_address

        for subscriber in result.subscribers:
            subscriber.mac_address = bindings.get(subscriber.interface_name.upper())

    @staticmethod
    def _collect_vlans(result: ParsedConfig) -> None:
        vlan_ids = set()
        assignments: List[VlanAssignment] = []

        for port in result.ports:
            for vlan_id in port.allowed_vlans:
                vlan_ids.add(vlan_id)
                assignments.append(VlanAssignment(
                    port_number=port.port_number,
                    vlan_id=vlan_id,
                    mode="tagged",
                ))
            if port.native_vlan:
                vlan_ids.add(port.native_vlan)
                assignments.append(VlanAssignment(
                    port_number=port.port_number,
                    vlan_id=port.native_vlan,
                    mode="untagged",
                    native_vlan=True,
                ))

        for subscriber in result.subscribers:
            if subscriber.vlan:
                vlan_ids.add(subscriber.vlan)

        result.vlans = [
            VlanInfo(
                vlan_id=vlan_id,
                name=f"VLAN{vlan_id}",
                description=f"Auto-detected VLAN {vlan_id}",
            )
            for vlan_id in sorted(vlan_ids)
        ]
        result.assignments = assignments
