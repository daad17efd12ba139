"""Pydantic schemas for API request/response."""
import ipaddress
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def validate_ip(v: str) -> str:
    """Reject anything that is not an IPv4/IPv6 address."""
    try:
        return str(ipaddress.ip_address(v.strip()))
    except ValueError:
        raise ValueError(f"Invalid IP address: {v}")


# Import Schemas
class ConfigImportRequest(BaseModel):
    config_text: str = Field(..., min_length=1)
    device_ip: str = Field(..., min_length=7, max_length=45)
    device_type: str = Field(default="auto", pattern="^(auto|olt|dlink)$")

    @field_validator("device_ip")
    @classmethod
    def check_ip(cls, v):
        return validate_ip(v)


class MacTableImportRequest(BaseModel):
    mac_table_text: str = Field(..., min_length=1)
    device_ip: str = Field(..., min_length=7, max_length=45)
    format: str = Field(default="auto", pattern="^(auto|dlink|dlink_switch|olt|cisco)$")

    @field_validator("device_ip")
    @classmethod
    def check_ip(cls, v):
        return validate_ip(v)


class DirectoryImportResponse(BaseModel):
    devices: List[Dict[str, Any]]
    mac_tables: List[Dict[str, Any]]
    errors: List[Dict[str, Any]]
    total_mac_entries: int


# Device Schemas
class DeviceResponse(BaseModel):
    id: int
    ip_address: str
    hostname: str
    device_type: str
    firmware_version: Optional[str] = None
    serial_number: Optional[str] = None
    hardware_version: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeviceListResponse(BaseModel):
    items: List[DeviceResponse]
    total: int


class PortResponse(BaseModel):
    id: int
    port_number: int
    port_name: str
    port_type: Optional[str] = None
    description: Optional[str] = None
    admin_state: Optional[str] = None
    oper_state: Optional[str] = None
    speed: Optional[str] = None
    duplex: Optional[str] = None
    mode: Optional[str] = None
    native_vlan: Optional[int] = None
    epon_parent: Optional[str] = None
    subscriber_id: Optional[int] = None

    class Config:
        from_attributes = True


class DeviceStatsResponse(BaseModel):
    id: int
    hostname: str
    device_type: str
    total_ports: int
    total_vlans: int
    total_macs: int
    source_macs: int
    transit_macs: int


# VLAN Schemas
class VlanResponse(BaseModel):
    id: int
    vlan_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    mac_count: int = 0

    class Config:
        from_attributes = True


# MAC Schemas
class MacSightingResponse(BaseModel):
    id: int
    mac_address: str
    vlan_id: int
    device_id: int
    device_ip: Optional[str] = None
    device_hostname: Optional[str] = None
    port_id: Optional[int] = None
    port_number: Optional[int] = None
    port_name: Optional[str] = None
    vendor: Optional[str] = None
    client_type: Optional[str] = None
    learning_method: Optional[str] = None
    is_source: Optional[bool] = None
    hop_count: Optional[int] = None
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None


class MacStatsResponse(BaseModel):
    total_sightings: int
    unique_macs: int
    source_sightings: int
    transit_sightings: int
    unanalyzed_sightings: int
    by_client_type: Dict[str, int]
    by_vlan: Dict[int, int]
