"""VLAN API endpoints."""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from l2scheme.api.macs import query_sightings, sighting_to_response
from l2scheme.api.schemas import MacSightingResponse, VlanResponse
from l2scheme.db.database import get_db
from l2scheme.db.models import Device, MacSighting, Vlan
from l2scheme.services.topology_analyzer import TopologyAnalyzer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[VlanResponse])
def list_vlans(db: Session = Depends(get_db)):
    """List known VLANs with their sighting counts."""
    counts = dict(
        db.query(MacSighting.vlan_id, func.count(MacSighting.id))
        .group_by(MacSighting.vlan_id)
        .all()
    )
    vlans = db.query(Vlan).order_by(Vlan.vlan_id).all()

    return [
        VlanResponse(
            id=vlan.id,
            vlan_id=vlan.vlan_id,
            name=vlan.name,
            description=vlan.description,
            type=vlan.type,
            mac_count=counts.get(vlan.vlan_id, 0),
        )
        for vlan in vlans
    ]


@router.get("/{vlan_id}/topology")
def get_vlan_topology(vlan_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Sightings of a VLAN grouped by device and port."""
    return TopologyAnalyzer(db).get_vlan_topology_with_path(vlan_id)


@router.post("/{vlan_id}/analyze")
def analyze_vlan(vlan_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Re-run source/transit classification for every MAC of a VLAN."""
    try:
        topology = TopologyAnalyzer(db).analyze_vlan_topology(vlan_id)
    except Exception as e:
        logger.error(f"Topology analysis failed for VLAN {vlan_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Topology analysis failed: {e}")

    return {
        "vlan_id": vlan_id,
        "macs_analyzed": len(topology),
        "sources_identified": sum(
            1 for entry in topology if any(loc["is_source"] for loc in entry["locations"])
        ),
        "topology": topology,
    }


@router.get("/{vlan_id}/macs", response_model=List[MacSightingResponse])
def get_vlan_macs(vlan_id: int, db: Session = Depends(get_db)):
    """All sightings in a VLAN."""
    rows = (
        query_sightings(db)
        .filter(MacSighting.vlan_id == vlan_id)
        .order_by(MacSighting.mac_address, Device.ip_address)
        .all()
    )
    return [sighting_to_response(s, d, p) for s, d, p in rows]
