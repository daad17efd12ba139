"""Device API endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from l2scheme.api.schemas import (
    DeviceListResponse,
    DeviceResponse,
    DeviceStatsResponse,
    PortResponse,
)
from l2scheme.db.database import get_db
from l2scheme.db.models import Device, Port
from l2scheme.services.import_service import ImportService

router = APIRouter()


@router.get("", response_model=DeviceListResponse)
def list_devices(
    device_type: str = Query(None, description="Filter by device type substring"),
    db: Session = Depends(get_db),
):
    """List imported devices."""
    query = db.query(Device)
    if device_type:
        query = query.filter(Device.device_type.ilike(f"%{device_type}%"))

    devices = query.order_by(Device.ip_address).all()
    return DeviceListResponse(
        items=[DeviceResponse.model_validate(d) for d in devices],
        total=len(devices),
    )


@router.get("/by-ip/{ip}/stats", response_model=DeviceStatsResponse)
def get_device_stats(ip: str, db: Session = Depends(get_db)):
    """Port, VLAN and source/transit MAC counters for one device."""
    stats = ImportService(db).get_import_stats(ip)
    if stats is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return stats


@router.get("/{device_id}", response_model=DeviceResponse)
def get_device(device_id: int, db: Session = Depends(get_db)):
    """Get a single device."""
    device = db.query(Device).filter(Device.id == device_id).first()
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


@router.get("/{device_id}/ports", response_model=List[PortResponse])
def get_device_ports(device_id: int, db: Session = Depends(get_db)):
    """List a device's ports ordered by port number."""
    device = db.query(Device).filter(Device.id == device_id).first()
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")

    return (
        db.query(Port)
        .filter(Port.device_id == device_id)
        .order_by(Port.port_number)
        .all()
    )
