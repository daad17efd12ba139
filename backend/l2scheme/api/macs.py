"""MAC address API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from l2scheme.api.schemas import MacSightingResponse, MacStatsResponse
from l2scheme.db.database import get_db
from l2scheme.db.models import Device, MacSighting, Port
from l2scheme.utils.mac_utils import get_mac_vendor, normalize_mac

logger = logging.getLogger(__name__)

router = APIRouter()


def sighting_to_response(sighting: MacSighting, device: Device, port: Optional[Port]) -> MacSightingResponse:
    """Flatten a sighting and its device/port into the API shape."""
    return MacSightingResponse(
        id=sighting.id,
        mac_address=sighting.mac_address,
        vlan_id=sighting.vlan_id,
        device_id=device.id,
        device_ip=device.ip_address,
        device_hostname=device.hostname,
        port_id=port.id if port else None,
        port_number=port.port_number if port else None,
        port_name=port.port_name if port else None,
        vendor=get_mac_vendor(sighting.mac_address),
        client_type=sighting.client_type,
        learning_method=sighting.learning_method,
        is_source=sighting.is_source,
        hop_count=sighting.hop_count,
        first_seen=sighting.first_seen,
        last_seen=sighting.last_seen,
    )


def query_sightings(db: Session):
    return (
        db.query(MacSighting, Device, Port)
        .join(Device, MacSighting.device_id == Device.id)
        .outerjoin(Port, MacSighting.port_id == Port.id)
    )


@router.get("/search/{mac}", response_model=List[MacSightingResponse])
def search_mac(mac: str, db: Session = Depends(get_db)):
    """All sightings of one MAC address, source first."""
    mac_address = normalize_mac(mac)
    if not mac_address:
        raise HTTPException(status_code=400, detail=f"Invalid MAC address: {mac}")

    rows = (
        query_sightings(db)
        .filter(MacSighting.mac_address == mac_address)
        .order_by(MacSighting.vlan_id, MacSighting.is_source.desc(), Device.ip_address)
        .all()
    )
    return [sighting_to_response(s, d, p) for s, d, p in rows]


@router.get("/stats", response_model=MacStatsResponse)
def get_mac_stats(db: Session = Depends(get_db)):
    """Sighting counters across all devices."""
    total = db.query(func.count(MacSighting.id)).scalar()
    unique = db.query(func.count(func.distinct(MacSighting.mac_address))).scalar()
    sources = db.query(func.count(MacSighting.id)).filter(MacSighting.is_source.is_(True)).scalar()
    transit = db.query(func.count(MacSighting.id)).filter(MacSighting.is_source.is_(False)).scalar()

    by_client_type = {
        client_type or "unknown": count
        for client_type, count in db.query(MacSighting.client_type, func.count(MacSighting.id))
        .group_by(MacSighting.client_type)
        .all()
    }
    by_vlan = dict(
        db.query(MacSighting.vlan_id, func.count(MacSighting.id))
        .group_by(MacSighting.vlan_id)
        .all()
    )

    return MacStatsResponse(
        total_sightings=total,
        unique_macs=unique,
        source_sightings=sources,
        transit_sightings=transit,
        unanalyzed_sightings=total - sources - transit,
        by_client_type=by_client_type,
        by_vlan=by_vlan,
    )
