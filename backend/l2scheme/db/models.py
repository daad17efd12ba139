"""Database models for L2 Scheme."""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from l2scheme.db.database import Base


class Device(Base):
    """Switch or OLT, identified by its management IP."""

    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    ip_address: Mapped[str] = mapped_column(String(45), unique=True, nullable=False)
    hostname: Mapped[str] = mapped_column(String(255), nullable=False)
    device_type: Mapped[str] = mapped_column(
        String(100), default="D-Link Switch"
    )  # D-Link Switch, DGS-xxxx, OLT, OLT_EPON
    firmware_version: Mapped[Optional[str]] = mapped_column(String(100))
    serial_number: Mapped[Optional[str]] = mapped_column(String(100))
    hardware_version: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    ports: Mapped[list["Port"]] = relationship(
        "Port", back_populates="device", cascade="all, delete-orphan"
    )
    vlan_assignments: Mapped[list["PortVlanAssignment"]] = relationship(
        "PortVlanAssignment", back_populates="device", cascade="all, delete-orphan"
    )
    mac_sightings: Mapped[list["MacSighting"]] = relationship(
        "MacSighting", back_populates="device", cascade="all, delete-orphan"
    )


class Port(Base):
    """Device port. OLT subscriber sub-interfaces are ports of their own."""

    __tablename__ = "device_ports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    device_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False
    )
    port_number: Mapped[int] = mapped_column(Integer, nullable=False)
    port_name: Mapped[str] = mapped_column(String(100), nullable=False)
    port_type: Mapped[str] = mapped_column(
        String(20), default="ethernet"
    )  # ethernet, fiber, EPON, EPON_ACCESS
    description: Mapped[Optional[str]] = mapped_column(String(255))
    admin_state: Mapped[str] = mapped_column(String(20), default="up")
    oper_state: Mapped[str] = mapped_column(String(20), default="unknown")
    speed: Mapped[Optional[str]] = mapped_column(String(50))
    duplex: Mapped[Optional[str]] = mapped_column(String(20))
    mode: Mapped[Optional[str]] = mapped_column(String(20))  # trunk, access, hybrid
    native_vlan: Mapped[Optional[int]] = mapped_column(Integer)
    qinq_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    # EPON subscriber ports point back at their trunk (e.g. "EPON0/1")
    epon_parent: Mapped[Optional[str]] = mapped_column(String(100))
    subscriber_id: Mapped[Optional[int]] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    device: Mapped["Device"] = relationship("Device", back_populates="ports")
    vlan_assignments: Mapped[list["PortVlanAssignment"]] = relationship(
        "PortVlanAssignment", back_populates="port", cascade="all, delete-orphan"
    )
    mac_sightings: Mapped[list["MacSighting"]] = relationship(
        "MacSighting", back_populates="port"
    )

    __table_args__ = (
        UniqueConstraint("device_id", "port_number", name="uq_device_ports_number"),
        Index("ix_device_ports_device_name", "device_id", "port_name"),
    )


class Vlan(Base):
    """VLAN metadata, shared across devices."""

    __tablename__ = "vlans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    vlan_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(20), default="standard")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class PortVlanAssignment(Base):
    """Port membership in a VLAN (tagged or untagged)."""

    __tablename__ = "device_vlans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    device_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False
    )
    port_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("device_ports.id", ondelete="CASCADE"), nullable=False
    )
    vlan_id: Mapped[int] = mapped_column(Integer, nullable=False)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)  # tagged, untagged
    native_vlan: Mapped[bool] = mapped_column(Boolean, default=False)
    qinq_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    outer_vlan: Mapped[Optional[int]] = mapped_column(Integer)
    inner_vlan: Mapped[Optional[int]] = mapped_column(Integer)

    # Relationships
    device: Mapped["Device"] = relationship("Device", back_populates="vlan_assignments")
    port: Mapped["Port"] = relationship("Port", back_populates="vlan_assignments")

    __table_args__ = (
        UniqueConstraint(
            "device_id", "port_id", "vlan_id", "mode", name="uq_device_vlans_mode"
        ),
        Index("ix_device_vlans_vlan", "vlan_id"),
    )


class MacSighting(Base):
    """A MAC address learned on one device port within one VLAN."""

    __tablename__ = "mac_addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    mac_address: Mapped[str] = mapped_column(String(17), nullable=False, index=True)
    vlan_id: Mapped[int] = mapped_column(Integer, nullable=False)
    device_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False
    )
    port_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("device_ports.id", ondelete="SET NULL")
    )
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    description: Mapped[Optional[str]] = mapped_column(String(255))
    client_type: Mapped[Optional[str]] = mapped_column(
        String(50)
    )  # network_device, virtual_machine, computer, device, unknown
    learning_method: Mapped[str] = mapped_column(String(20), default="dynamic")
    first_seen: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_seen: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    # NULL until the VLAN has been analyzed
    is_source: Mapped[Optional[bool]] = mapped_column(Boolean)
    hop_count: Mapped[Optional[int]] = mapped_column(Integer)

    # Relationships
    device: Mapped["Device"] = relationship("Device", back_populates="mac_sightings")
    port: Mapped[Optional["Port"]] = relationship("Port", back_populates="mac_sightings")

    __table_args__ = (
        UniqueConstraint(
            "mac_address", "device_id", "port_id", "vlan_id", name="uq_mac_sighting"
        ),
        Index("ix_mac_addresses_vlan_mac", "vlan_id", "mac_address"),
        Index("ix_mac_addresses_device_port_vlan", "device_id", "port_id", "vlan_id"),
    )
