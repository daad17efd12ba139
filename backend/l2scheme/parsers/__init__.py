"""Vendor text parsers for configuration and fdb dumps."""
from .device_detect import detect_device_type
from .dlink_config import DLinkConfigParser
from .mac_table import (
    PARSERS,
    CiscoFdbParser,
    DLinkFdbParser,
    DLinkSwitchFdbParser,
    OltFdbParser,
    analyze_mac_patterns,
    detect_mac_table_format,
    parse_generic_mac_table,
    parse_with_topology_context,
)
from .olt_config import OltConfigParser, encode_olt_port_number

__all__ = [
    "detect_device_type",
    "DLinkConfigParser",
    "OltConfigParser",
    "encode_olt_port_number",
    "PARSERS",
    "DLinkFdbParser",
    "DLinkSwitchFdbParser",
    "OltFdbParser",
    "CiscoFdbParser",
    "detect_mac_table_format",
    "parse_generic_mac_table",
    "parse_with_topology_context",
    "analyze_mac_patterns",
]
