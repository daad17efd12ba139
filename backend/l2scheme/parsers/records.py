"""Typed records produced by the config and MAC-table parsers."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class DeviceInfo:
    """Device identity extracted from a configuration dump."""
    ip: str
    hostname: Optional[str] = None
    model: Optional[str] = None
    firmware: Optional[str] = None
    serial_number: Optional[str] = None
    hardware_version: Optional[str] = None
    device_type: Optional[str] = None  # "D-Link Switch", "OLT"


@dataclass
class PortInfo:
    port_number: int
    port_name: str
    port_type: str = "ethernet"  # ethernet, fiber, EPON, EPON_ACCESS
    description: Optional[str] = None
    status: str = "up"
    speed: str = "auto"
    duplex: str = "auto"
    mode: Optional[str] = None  # trunk, access, hybrid
    allowed_vlans: List[int] = field(default_factory=list)
    native_vlan: Optional[int] = None
    qinq_enabled: bool = False
    epon_parent: Optional[str] = None
    subscriber_id: Optional[int] = None

    @property
    def is_subscriber_port(self) -> bool:
        return self.port_type == "EPON_ACCESS"


@dataclass
class VlanInfo:
    vlan_id: int
    name: str
    description: Optional[str] = None
    type: str = "standard"


@dataclass
class VlanAssignment:
    """Port membership in a VLAN, keyed by port number until persisted."""
    port_number: int
    vlan_id: int
    mode: str  # tagged, untagged
    native_vlan: bool = False
    qinq_enabled: bool = False
    outer_vlan: Optional[int] = None
    inner_vlan: Optional[int] = None


@dataclass
class OnuBinding:
    mac_address: Optional[str]
    onu_id: int
    interface_name: str


@dataclass
class EponPort:
    port_name: str
    port_number: int
    port_type: str = "EPON"
    mode: str = "trunk"
    vlans: List[int] = field(default_factory=list)
    subscribers: List[OnuBinding] = field(default_factory=list)


@dataclass
class Subscriber:
    """ONU subscriber sub-interface of an OLT (e.g. EPON0/1:5)."""
    interface_name: str
    port_name: str
    subscriber_id: int
    description: Optional[str] = None
    mac_address: Optional[str] = None
    vlan: Optional[int] = None
    bandwidth_up: Optional[int] = None
    bandwidth_down: Optional[int] = None
    port_security: bool = False


@dataclass
class ParsedConfig:
    """Everything one configuration dump describes."""
    device: DeviceInfo
    ports: List[PortInfo] = field(default_factory=list)
    vlans: List[VlanInfo] = field(default_factory=list)
    assignments: List[VlanAssignment] = field(default_factory=list)
    subscribers: List[Subscriber] = field(default_factory=list)
    epon_ports: List[EponPort] = field(default_factory=list)
    # Count of recognized directives; 0 means the dialect did not fit
    directives_matched: int = 0


@dataclass
class MacTableEntry:
    """One row of an fdb dump.

    ``port`` is the raw port token; it is resolved to a stored port by the
    import service. ``is_source`` and ``hop_count`` are filled in by
    topology analysis, never by a parser.
    """
    vlan_id: int
    mac_address: str
    port: str
    learning_method: str
    vendor: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None
    raw_line: str = ""
    description: Optional[str] = None
    client_type: Optional[str] = None
    # Filled from port mappings by parse_with_topology_context
    port_type: Optional[str] = None
    port_description: Optional[str] = None
    port_mode: Optional[str] = None
    native_vlan: Optional[int] = None
    is_source: Optional[bool] = None
    hop_count: Optional[int] = None
