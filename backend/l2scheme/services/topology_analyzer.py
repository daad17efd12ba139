"""Topology Analyzer - source vs transit classification of MAC sightings.

Without live neighbor discovery the analyzer relies on port heuristics.
For every (mac, vlan) key:

1. Annotate each sighting with its port population: how many sightings
   share the same (device, port, vlan). Uplinks carry many addresses,
   edge ports few.
2. Candidate edge ports are subscriber access ports: OLT EPON interfaces,
   and ports whose mode is access/untagged.
3. The source is the candidate (or, without candidates, any sighting) with
   the smallest population; ties fall to the lowest device IP, then port
   number, then sighting id.
4. The source gets ``is_source=True, hop_count=0``; every other sighting
   is transit. Transit hop_count follows the configured policy.
"""
import ipaddress
import logging
import re
import threading
from collections import defaultdict
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from l2scheme.core.config import get_settings
from l2scheme.db.models import Device, MacSighting, Port, PortVlanAssignment, Vlan
from l2scheme.utils.port_utils import determine_port_mode, get_native_vlan

logger = logging.getLogger(__name__)

HOP_COUNT_POLICIES = ("none", "population")

EPON_PORT_NAME = re.compile(r"epon[\d\-/:]")

# Analysis of one VLAN must not interleave with another pass over the same VLAN
_vlan_locks: Dict[int, threading.Lock] = {}
_vlan_locks_guard = threading.Lock()


def get_vlan_lock(vlan_id: int) -> threading.Lock:
    """Return the process-wide lock serializing analysis of one VLAN."""
    with _vlan_locks_guard:
        lock = _vlan_locks.get(vlan_id)
        if lock is None:
            lock = _vlan_locks[vlan_id] = threading.Lock()
        return lock


@dataclass
class SightingView:
    """A MAC sighting joined with its device and port."""
    id: int
    mac_address: str
    vlan_id: int
    device_id: int
    device_ip: str
    device_hostname: Optional[str]
    device_type: Optional[str]
    port_id: Optional[int]
    port_number: Optional[int]
    port_name: Optional[str]
    port_type: Optional[str]
    port_mode: Optional[str]
    native_vlan: Optional[int]
    port_mac_count: int
    ip_address: Optional[str] = None
    description: Optional[str] = None
    client_type: Optional[str] = None
    learning_method: Optional[str] = None
    last_seen: Optional[datetime] = None
    is_source: Optional[bool] = None
    hop_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_subscriber_access_port(view: SightingView) -> bool:
    """True when the sighting's port is a recognized edge port."""
    device_type = (view.device_type or "").lower()
    hostname = (view.device_hostname or "").lower()
    port_type = (view.port_type or "").lower()
    port_name = (view.port_name or "").lower()

    # OLT EPON interfaces (epon0/1:1 ... epon0/8:64)
    if "olt" in device_type or "olt" in hostname:
        if "epon" in port_type or EPON_PORT_NAME.search(port_name):
            return True

    return view.port_mode in ("access", "untagged")


def _ip_sort_key(ip: Optional[str]):
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return (1, 0, ip or "")
    return (0, address.version, int(address))


def _selection_key(view: SightingView):
    return (
        view.port_mac_count,
        _ip_sort_key(view.device_ip),
        view.port_number is None,
        view.port_number or 0,
        view.id,
    )


def select_source(views: Sequence[SightingView]) -> Optional[SightingView]:
    """Pick the edge sighting of one (mac, vlan) key."""
    if not views:
        return None

    candidates = [view for view in views if is_subscriber_access_port(view)]
    return min(candidates or views, key=_selection_key)


def classify_sightings(views: Sequence[SightingView], hop_count_policy: str = "none") -> List[SightingView]:
    """
    Mark exactly one sighting as source and the rest as transit.

    Args:
        views: All sightings of one MAC address within one VLAN
        hop_count_policy: "none" leaves transit hop_count NULL; "population"
            sets it to the dense rank (from 1) of the transit sighting's port
            population among all transit sightings

    Returns:
        New views with is_source and hop_count filled in, input order kept
    """
    if hop_count_policy not in HOP_COUNT_POLICIES:
        raise ValueError(f"Unknown hop_count policy: {hop_count_policy}")

    source = select_source(views)
    if source is None:
        return []

    ranks: Dict[int, int] = {}
    if hop_count_policy == "population":
        populations = sorted({v.port_mac_count for v in views if v.id != source.id})
        ranks = {count: rank for rank, count in enumerate(populations, start=1)}

    classified = []
    for view in views:
        if view.id == source.id:
            classified.append(replace(view, is_source=True, hop_count=0))
        else:
            classified.append(replace(view, is_source=False, hop_count=ranks.get(view.port_mac_count)))
    return classified


class TopologyAnalyzer:
    """Classifies stored MAC sightings and writes the result back."""

    def __init__(self, db: Session, hop_count_policy: Optional[str] = None):
        self.db = db
        policy = (hop_count_policy or get_settings().hop_count_policy).lower()
        if policy not in HOP_COUNT_POLICIES:
            raise ValueError(f"Unknown hop_count policy: {policy}")
        self.hop_count_policy = policy

    def _port_populations(self, vlan_id: int) -> Dict[tuple, int]:
        rows = (
            self.db.query(MacSighting.device_id, MacSighting.port_id, func.count(MacSighting.id))
            .filter(MacSighting.vlan_id == vlan_id)
            .group_by(MacSighting.device_id, MacSighting.port_id)
            .all()
        )
        return {(device_id, port_id): count for device_id, port_id, count in rows}

    def _assignments_by_port(self, port_ids: List[int]) -> Dict[int, List[PortVlanAssignment]]:
        grouped: Dict[int, List[PortVlanAssignment]] = defaultdict(list)
        if not port_ids:
            return grouped

        assignments = (
            self.db.query(PortVlanAssignment)
            .filter(PortVlanAssignment.port_id.in_(port_ids))
            .order_by(PortVlanAssignment.id)
            .all()
        )
        for assignment in assignments:
            grouped[assignment.port_id].append(assignment)
        return grouped

    def _load_sightings(self, mac_address: str, vlan_id: int, populations: Optional[Dict[tuple, int]] = None):
        """Load sightings with device (required) and port (optional)."""
        rows = (
            self.db.query(MacSighting, Device, Port)
            .join(Device, MacSighting.device_id == Device.id)
            .outerjoin(Port, MacSighting.port_id == Port.id)
            .filter(MacSighting.mac_address == mac_address, MacSighting.vlan_id == vlan_id)
            .order_by(MacSighting.id)
            .all()
        )
        if not rows:
            return [], {}

        if populations is None:
            populations = self._port_populations(vlan_id)

        unresolved_modes = [port.id for _, _, port in rows if port is not None and not port.mode]
        assignments = self._assignments_by_port(unresolved_modes)

        views = []
        sightings = {}
        for sighting, device, port in rows:
            port_mode = None
            native_vlan = None
            if port is not None:
                port_mode = port.mode or determine_port_mode(assignments.get(port.id, []))
                native_vlan = port.native_vlan
                if native_vlan is None:
                    native_vlan = get_native_vlan(assignments.get(port.id, []))

            views.append(SightingView(
                id=sighting.id,
                mac_address=sighting.mac_address,
                vlan_id=sighting.vlan_id,
                device_id=device.id,
                device_ip=device.ip_address,
                device_hostname=device.hostname,
                device_type=device.device_type,
                port_id=port.id if port is not None else None,
                port_number=port.port_number if port is not None else None,
                port_name=port.port_name if port is not None else None,
                port_type=port.port_type if port is not None else None,
                port_mode=port_mode,
                native_vlan=native_vlan,
                port_mac_count=populations.get((sighting.device_id, sighting.port_id), 1),
                ip_address=sighting.ip_address,
                description=sighting.description,
                client_type=sighting.client_type,
                learning_method=sighting.learning_method,
                last_seen=sighting.last_seen,
            ))
            sightings[sighting.id] = sighting

        return views, sightings

    def _classify_mac(self, mac_address: str, vlan_id: int,
                      populations: Optional[Dict[tuple, int]] = None) -> List[Dict[str, Any]]:
        views, sightings = self._load_sightings(mac_address, vlan_id, populations)
        if not views:
            return []

        classified = classify_sightings(views, self.hop_count_policy)
        for view in classified:
            sighting = sightings[view.id]
            sighting.is_source = view.is_source
            sighting.hop_count = view.hop_count
        self.db.flush()

        return [view.to_dict() for view in classified]

    def analyze_mac_location(self, mac_address: str, vlan_id: int) -> List[Dict[str, Any]]:
        """
        Classify every sighting of one MAC address in one VLAN.

        Args:
            mac_address: Canonical MAC address
            vlan_id: VLAN to analyze within

        Returns:
            List of location dicts; empty when the MAC has no sightings
        """
        try:
            locations = self._classify_mac(mac_address, vlan_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return locations

    def analyze_vlan_topology(self, vlan_id: int) -> List[Dict[str, Any]]:
        """
        Classify every MAC address ever sighted in a VLAN.

        Returns:
            ``[{mac_address, locations: [...]}]`` sorted by MAC address
        """
        with get_vlan_lock(vlan_id):
            mac_rows = (
                self.db.query(MacSighting.mac_address)
                .filter(MacSighting.vlan_id == vlan_id)
                .distinct()
                .order_by(MacSighting.mac_address)
                .all()
            )
            if not mac_rows:
                return []

            populations = self._port_populations(vlan_id)
            topology = []
            try:
                for (mac_address,) in mac_rows:
                    locations = self._classify_mac(mac_address, vlan_id, populations)
                    topology.append({"mac_address": mac_address, "locations": locations})
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        sources = sum(
            1 for entry in topology for loc in entry["locations"] if loc["is_source"]
        )
        logger.info(f"VLAN {vlan_id}: analyzed {len(topology)} MACs, {sources} sources")
        return topology

    def get_vlan_topology_with_path(self, vlan_id: int) -> Dict[str, Any]:
        """Group a VLAN's sightings by device and port for display."""
        rows = (
            self.db.query(MacSighting, Device, Port)
            .join(Device, MacSighting.device_id == Device.id)
            .join(Port, MacSighting.port_id == Port.id)
            .filter(MacSighting.vlan_id == vlan_id)
            .all()
        )
        vlan = self.db.query(Vlan).filter(Vlan.vlan_id == vlan_id).first()

        devices: Dict[int, Dict[str, Any]] = {}
        ports: Dict[int, Dict[str, Any]] = {}

        for sighting, device, port in rows:
            if device.id not in devices:
                devices[device.id] = {
                    "device_id": device.id,
                    "hostname": device.hostname,
                    "ip_address": device.ip_address,
                    "device_type": device.device_type,
                    "ports": [],
                }
            if port.id not in ports:
                ports[port.id] = {
                    "port_id": port.id,
                    "port_number": port.port_number,
                    "port_name": port.port_name,
                    "port_description": port.description,
                    "mac_addresses": [],
                }
                devices[device.id]["ports"].append(ports[port.id])

            ports[port.id]["mac_addresses"].append({
                "mac_address": sighting.mac_address,
                "ip_address": sighting.ip_address,
                "description": sighting.description,
                "client_type": sighting.client_type,
                "is_source": sighting.is_source,
                "hop_count": sighting.hop_count,
                "last_seen": sighting.last_seen,
            })

        ordered = sorted(devices.values(), key=lambda d: _ip_sort_key(d["ip_address"]))
        for device in ordered:
            device["ports"].sort(key=lambda p: p["port_number"])
            for port in device["ports"]:
                port["mac_addresses"].sort(key=lambda m: m["mac_address"])

        return {
            "vlan_id": vlan_id,
            "vlan_name": vlan.name if vlan and vlan.name else f"VLAN{vlan_id}",
            "vlan_description": vlan.description if vlan and vlan.description else "",
            "devices": ordered,
        }
