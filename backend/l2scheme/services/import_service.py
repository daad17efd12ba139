"""Import Service - persists parsed configuration and fdb dumps.

Config import upserts device, VLANs, ports and port/VLAN assignments and
commits once, so a failed import never leaves a device with ports but no
VLANs. MAC-table import resolves every row to a stored port, upserts the
sightings and then re-runs topology analysis for each VLAN it touched.

Every public method returns a result dict; failures are logged, rolled back
and reported, never raised.
"""
import ipaddress
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from l2scheme.core.config import get_settings
from l2scheme.db.models import Device, MacSighting, Port, PortVlanAssignment, Vlan
from l2scheme.parsers import (
    PARSERS,
    DLinkConfigParser,
    OltConfigParser,
    detect_device_type,
    parse_with_topology_context,
)
from l2scheme.parsers.records import MacTableEntry, ParsedConfig
from l2scheme.services.topology_analyzer import TopologyAnalyzer
from l2scheme.utils.mac_utils import detect_client_type
from l2scheme.utils import port_utils

logger = logging.getLogger(__name__)


@dataclass
class PortMapping:
    """What the fdb import needs to know about one stored port."""
    id: int
    port_number: int
    port_name: str
    port_type: Optional[str]
    description: Optional[str]
    mode: str
    native_vlan: Optional[int]
    vlans: List[Dict[str, Any]] = field(default_factory=list)


def ip_from_filename(path: Path) -> Optional[str]:
    """``192_168_1_10.mac`` -> ``192.168.1.10``; None when the stem is no IP."""
    candidate = path.stem.replace("_", ".")
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


class ImportService:
    """Imports configuration and MAC-table dumps into the database."""

    def __init__(self, db: Session, hop_count_policy: Optional[str] = None):
        self.db = db
        self.hop_count_policy = hop_count_policy

    # =========================================================================
    # CONFIGURATION IMPORT
    # =========================================================================

    def import_config(self, config_text: str, device_ip: str, device_type: str = "auto") -> Dict[str, Any]:
        """
        Import a switch or OLT configuration dump.

        Args:
            config_text: Raw configuration text
            device_ip: Management IP of the device
            device_type: "olt", "dlink" or "auto" to sniff the content

        Returns:
            Dict with success, device_id, message and stats
        """
        kind = (device_type or "auto").lower()

        if kind == "auto":
            detected = detect_device_type(config_text)
            logger.info(f"Detected device type for {device_ip}: {detected}")
            if detected == "OLT":
                kind = "olt"
            elif detected == "D-Link":
                kind = "dlink"
            elif detected == "Cisco":
                return {
                    "success": False,
                    "error": "Cisco configuration import is not supported",
                    "message": f"Failed to import configuration for {device_ip}",
                }
            else:
                return self._import_unknown_config(config_text, device_ip)

        if kind == "olt":
            return self.import_olt_config(config_text, device_ip)
        if kind == "dlink":
            return self.import_dlink_config(config_text, device_ip)

        return {
            "success": False,
            "error": f"Unsupported device type: {device_type}",
            "message": f"Failed to import configuration for {device_ip}",
        }

    def _import_unknown_config(self, config_text: str, device_ip: str) -> Dict[str, Any]:
        """Best-guess import: the first dialect that recognizes anything wins."""
        attempts = (
            ("OLT", OltConfigParser()),
            ("D-Link", DLinkConfigParser()),
        )
        for label, parser in attempts:
            try:
                parsed = parser.parse(config_text, device_ip)
            except Exception as e:
                logger.debug(f"{label} parse of {device_ip} failed: {e}")
                continue
            if parsed.directives_matched > 0:
                logger.info(f"Unknown config for {device_ip} parsed as {label}")
                return self._persist_config(parsed, device_ip, label)

        logger.warning(f"Unrecognized configuration format for {device_ip}")
        return {
            "success": False,
            "error": "Unrecognized configuration format",
            "message": f"Failed to import configuration for {device_ip}",
        }

    def import_dlink_config(self, config_text: str, device_ip: str) -> Dict[str, Any]:
        """Import a D-Link switch configuration."""
        try:
            parsed = DLinkConfigParser().parse(config_text, device_ip)
        except Exception as e:
            logger.error(f"Error parsing D-Link config for {device_ip}: {e}", exc_info=True)
            return {
                "success": False,
                "error": str(e),
                "message": f"Failed to import configuration for {device_ip}",
            }
        return self._persist_config(parsed, device_ip, "D-Link")

    def import_olt_config(self, config_text: str, device_ip: str) -> Dict[str, Any]:
        """Import an EPON OLT configuration."""
        try:
            parsed = OltConfigParser().parse(config_text, device_ip)
        except Exception as e:
            logger.error(f"Error parsing OLT config for {device_ip}: {e}", exc_info=True)
            return {
                "success": False,
                "error": str(e),
                "message": f"Failed to import configuration for {device_ip}",
            }
        return self._persist_config(parsed, device_ip, "OLT")

    def _persist_config(self, parsed: ParsedConfig, device_ip: str, label: str) -> Dict[str, Any]:
        try:
            device = self._upsert_device(parsed, device_ip)
            self._upsert_vlans(parsed)
            ports = self._upsert_ports(device, parsed)
            assignments = self._upsert_assignments(device, ports, parsed)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error importing configuration for {device_ip}: {e}", exc_info=True)
            return {
                "success": False,
                "error": str(e),
                "message": f"Failed to import configuration for {device_ip}",
            }

        logger.info(
            f"Imported {label} config {device_ip} (ID: {device.id}): "
            f"{len(ports)} ports, {len(parsed.vlans)} VLANs, {assignments} assignments"
        )
        return {
            "success": True,
            "device_id": device.id,
            "message": f"Successfully imported configuration for {device_ip}",
            "stats": {
                "device_type": label,
                "vlans_imported": len(parsed.vlans),
                "ports_imported": len(ports),
                "assignments_imported": assignments,
                "subscribers": len(parsed.subscribers),
                "device_info": {
                    "hostname": parsed.device.hostname,
                    "model": parsed.device.model,
                    "firmware": parsed.device.firmware,
                    "device_type": parsed.device.device_type,
                },
            },
        }

    def _upsert_device(self, parsed: ParsedConfig, device_ip: str) -> Device:
        info = parsed.device
        device = self.db.query(Device).filter(Device.ip_address == device_ip).first()
        if device is None:
            device = Device(ip_address=device_ip)
            self.db.add(device)

        device.hostname = info.hostname or f"device-{device_ip}"
        device.device_type = info.device_type or device.device_type
        device.firmware_version = info.firmware
        device.serial_number = info.serial_number
        device.hardware_version = info.hardware_version
        device.description = f"Imported from configuration on {datetime.utcnow().isoformat()}"
        self.db.flush()
        return device

    def _upsert_vlans(self, parsed: ParsedConfig) -> None:
        if not parsed.vlans:
            return

        ids = [vlan.vlan_id for vlan in parsed.vlans]
        existing = {
            vlan.vlan_id: vlan
            for vlan in self.db.query(Vlan).filter(Vlan.vlan_id.in_(ids)).all()
        }
        for info in parsed.vlans:
            vlan = existing.get(info.vlan_id)
            if vlan is None:
                vlan = existing[info.vlan_id] = Vlan(vlan_id=info.vlan_id)
                self.db.add(vlan)
            vlan.name = info.name
            vlan.description = info.description or f"VLAN {info.vlan_id}"
            vlan.type = info.type
        self.db.flush()

    def _upsert_ports(self, device: Device, parsed: ParsedConfig) -> Dict[int, Port]:
        existing = {
            port.port_number: port
            for port in self.db.query(Port).filter(Port.device_id == device.id).all()
        }
        ports: Dict[int, Port] = {}

        for info in parsed.ports:
            port = existing.get(info.port_number)
            if port is None:
                port = existing[info.port_number] = Port(
                    device_id=device.id, port_number=info.port_number
                )
                self.db.add(port)

            port.port_name = info.port_name or f"port{info.port_number}"
            port.port_type = info.port_type or "ethernet"
            port.description = info.description or None
            port.admin_state = info.status or "up"
            port.speed = info.speed
            port.duplex = info.duplex
            port.mode = info.mode
            port.native_vlan = info.native_vlan
            port.qinq_enabled = info.qinq_enabled
            port.epon_parent = info.epon_parent
            port.subscriber_id = info.subscriber_id
            ports[info.port_number] = port

        self.db.flush()
        return ports

    def _upsert_assignments(self, device: Device, ports: Dict[int, Port], parsed: ParsedConfig) -> int:
        existing = {
            (a.port_id, a.vlan_id, a.mode): a
            for a in self.db.query(PortVlanAssignment)
            .filter(PortVlanAssignment.device_id == device.id)
            .all()
        }
        count = 0

        for info in parsed.assignments:
            port = ports.get(info.port_number)
            if port is None:
                logger.warning(
                    f"Assignment of VLAN {info.vlan_id} to unknown port "
                    f"{info.port_number} on {device.ip_address} skipped"
                )
                continue

            key = (port.id, info.vlan_id, info.mode)
            assignment = existing.get(key)
            if assignment is None:
                assignment = existing[key] = PortVlanAssignment(
                    device_id=device.id,
                    port_id=port.id,
                    vlan_id=info.vlan_id,
                    mode=info.mode,
                )
                self.db.add(assignment)

            assignment.native_vlan = info.native_vlan
            assignment.qinq_enabled = info.qinq_enabled
            assignment.outer_vlan = info.outer_vlan
            assignment.inner_vlan = info.inner_vlan
            count += 1

        self.db.flush()
        return count

    # =========================================================================
    # MAC TABLE IMPORT
    # =========================================================================

    def import_mac_table(self, mac_table_text: str, device_ip: str, fdb_format: str = "auto") -> Dict[str, Any]:
        """
        Import an fdb dump for a device whose configuration is already stored.

        Args:
            mac_table_text: Raw MAC table text
            device_ip: Management IP of the device the table was taken from
            fdb_format: "auto", "dlink", "dlink_switch", "olt" or "cisco"

        Returns:
            Import summary with stats, per-VLAN topology results and
            failed_entries when some rows could not be attributed to a port
        """
        device = self.db.query(Device).filter(Device.ip_address == device_ip).first()
        if device is None:
            logger.warning(f"MAC table import for unknown device {device_ip}")
            return {
                "success": False,
                "error": f"Device {device_ip} not found",
                "message": f"Import the configuration of {device_ip} before its MAC table",
            }

        fdb_format = (fdb_format or "auto").lower()
        if fdb_format != "auto" and fdb_format not in PARSERS:
            return {
                "success": False,
                "error": f"Unsupported MAC table format: {fdb_format}",
                "message": f"Failed to import MAC table for {device_ip}",
            }

        try:
            port_mappings = self.get_port_mappings(device.id)
            device_info = {
                "id": device.id,
                "ip_address": device.ip_address,
                "hostname": device.hostname,
                "device_type": device.device_type,
            }

            if fdb_format == "auto":
                entries = parse_with_topology_context(mac_table_text, device_info, port_mappings)
            else:
                entries = PARSERS[fdb_format].parse(mac_table_text, device_info)

            if not entries:
                return {
                    "success": False,
                    "message": "No MAC entries found in the provided table",
                    "stats": {
                        "entries_processed": 0,
                        "entries_imported": 0,
                        "entries_failed": 0,
                        "vlans_analyzed": 0,
                        "device_ip": device_ip,
                        "device_hostname": device.hostname,
                    },
                }

            imported, failed_entries, vlan_ids = self._store_sightings(device, entries, port_mappings)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error importing MAC table for {device_ip}: {e}", exc_info=True)
            return {
                "success": False,
                "error": str(e),
                "message": f"Failed to import MAC table for {device_ip}",
            }

        topology_results = self._analyze_vlans(sorted(vlan_ids))

        logger.info(
            f"Imported MAC table {device_ip}: {imported}/{len(entries)} entries, "
            f"{len(failed_entries)} failed, {len(vlan_ids)} VLANs analyzed"
        )
        result = {
            "success": True,
            "message": f"Successfully imported MAC table for {device_ip}",
            "stats": {
                "entries_processed": len(entries),
                "entries_imported": imported,
                "entries_failed": len(failed_entries),
                "vlans_analyzed": len(vlan_ids),
                "device_ip": device_ip,
                "device_hostname": device.hostname,
            },
            "topology_analysis": topology_results,
        }
        if failed_entries:
            result["failed_entries"] = failed_entries
        return result

    def _resolve_port_id(self, device_id: int, token: str, port_mappings: Dict[str, PortMapping]) -> Optional[int]:
        """Mapping key, then exact port number, then port name."""
        mapping = port_mappings.get(token)
        if mapping is not None:
            return mapping.id

        query = self.db.query(Port.id).filter(Port.device_id == device_id)
        if token.isdigit():
            row = query.filter(Port.port_number == int(token)).first()
            if row:
                return row[0]

        row = query.filter(Port.port_name == token).first()
        if row:
            return row[0]

        # OLT fdb dumps print interface names in lower case
        row = query.filter(func.lower(Port.port_name) == token.lower()).first()
        return row[0] if row else None

    def _store_sightings(self, device: Device, entries: List[MacTableEntry],
                         port_mappings: Dict[str, PortMapping]):
        now = datetime.utcnow()
        imported = 0
        failed_entries: List[Dict[str, str]] = []
        vlan_ids = set()
        known_vlans = {row[0] for row in self.db.query(Vlan.vlan_id).all()}
        sightings: Dict[tuple, MacSighting] = {}

        for entry in entries:
            port_id = self._resolve_port_id(device.id, entry.port, port_mappings)
            if port_id is None:
                logger.warning(f"Port {entry.port} not found on {device.ip_address} for {entry.mac_address}")
                failed_entries.append({
                    "mac": entry.mac_address,
                    "reason": f"Port {entry.port} not found on device {device.ip_address}",
                })
                continue

            if entry.vlan_id not in known_vlans:
                self.db.add(Vlan(
                    vlan_id=entry.vlan_id,
                    name=f"VLAN{entry.vlan_id}",
                    description=f"Auto-detected VLAN {entry.vlan_id}",
                ))
                known_vlans.add(entry.vlan_id)

            key = (entry.mac_address, device.id, port_id, entry.vlan_id)
            sighting = sightings.get(key)
            if sighting is None:
                sighting = (
                    self.db.query(MacSighting)
                    .filter(
                        MacSighting.mac_address == entry.mac_address,
                        MacSighting.device_id == device.id,
                        MacSighting.port_id == port_id,
                        MacSighting.vlan_id == entry.vlan_id,
                    )
                    .first()
                )
            if sighting is None:
                sighting = MacSighting(
                    mac_address=entry.mac_address,
                    device_id=device.id,
                    port_id=port_id,
                    vlan_id=entry.vlan_id,
                    first_seen=now,
                )
                self.db.add(sighting)
            sightings[key] = sighting

            sighting.last_seen = now
            sighting.learning_method = entry.learning_method or "dynamic"
            if entry.description:
                sighting.description = entry.description
            sighting.client_type = entry.client_type or detect_client_type(entry.vendor)

            imported += 1
            vlan_ids.add(entry.vlan_id)

        self.db.flush()
        return imported, failed_entries, vlan_ids

    def _analyze_vlans(self, vlan_ids: List[int]) -> List[Dict[str, Any]]:
        results = []
        try:
            analyzer = TopologyAnalyzer(self.db, self.hop_count_policy)
        except ValueError as e:
            logger.error(f"Topology analysis unavailable: {e}")
            return [
                {"vlan_id": vlan_id, "analysis_complete": False, "error": str(e)}
                for vlan_id in vlan_ids
            ]

        for vlan_id in vlan_ids:
            try:
                topology = analyzer.analyze_vlan_topology(vlan_id)
                results.append({
                    "vlan_id": vlan_id,
                    "analysis_complete": True,
                    "mac_sources_identified": sum(
                        1 for entry in topology
                        if any(loc["is_source"] for loc in entry["locations"])
                    ),
                })
            except Exception as e:
                logger.error(f"Topology analysis failed for VLAN {vlan_id}: {e}", exc_info=True)
                results.append({
                    "vlan_id": vlan_id,
                    "analysis_complete": False,
                    "error": str(e),
                })
        return results

    # =========================================================================
    # PORT MAPPINGS
    # =========================================================================

    def get_port_mappings(self, device_id: int) -> Dict[str, PortMapping]:
        """
        Build the port lookup used to resolve fdb port tokens.

        Keys are the port number as text and, when different, the port name.
        """
        ports = self.db.query(Port).filter(Port.device_id == device_id).all()
        assignments: Dict[int, List[PortVlanAssignment]] = {}
        for assignment in (
            self.db.query(PortVlanAssignment)
            .filter(PortVlanAssignment.device_id == device_id)
            .order_by(PortVlanAssignment.id)
            .all()
        ):
            assignments.setdefault(assignment.port_id, []).append(assignment)

        mappings: Dict[str, PortMapping] = {}
        for port in ports:
            port_vlans = assignments.get(port.id, [])
            mapping = PortMapping(
                id=port.id,
                port_number=port.port_number,
                port_name=port.port_name,
                port_type=port.port_type,
                description=port.description,
                mode=self.determine_port_mode(port_vlans),
                native_vlan=self.get_native_vlan(port_vlans),
                vlans=[
                    {"vlan_id": a.vlan_id, "mode": a.mode, "native_vlan": a.native_vlan}
                    for a in port_vlans
                ],
            )
            mappings[str(port.port_number)] = mapping
            if port.port_name and port.port_name != str(port.port_number):
                mappings[port.port_name] = mapping

        return mappings

    @staticmethod
    def determine_port_mode(vlans) -> str:
        return port_utils.determine_port_mode(vlans)

    @staticmethod
    def get_native_vlan(vlans) -> Optional[int]:
        return port_utils.get_native_vlan(vlans)

    # =========================================================================
    # BULK IMPORT AND STATS
    # =========================================================================

    def import_from_directory(self, data_dir: Optional[str] = None) -> Dict[str, Any]:
        """
        Import every dump under ``<data_dir>/configs`` then ``<data_dir>/macs``.

        File stems carry the device IP with underscores for dots
        (``192_168_1_10.cfg``, ``192_168_1_10.mac``).
        """
        base = Path(data_dir or get_settings().data_dir)
        summary: Dict[str, Any] = {
            "devices": [],
            "mac_tables": [],
            "errors": [],
            "total_mac_entries": 0,
        }

        for path in self._list_files(base / "configs"):
            device_ip = ip_from_filename(path)
            if device_ip is None:
                summary["errors"].append({"file": path.name, "error": "File name is not an IP address"})
                continue

            result = self.import_config(path.read_text(encoding="utf-8", errors="replace"), device_ip)
            if result["success"]:
                summary["devices"].append({
                    "file": path.name,
                    "device_ip": device_ip,
                    "device_id": result["device_id"],
                })
            else:
                summary["errors"].append({"file": path.name, "error": result.get("error") or result["message"]})

        for path in self._list_files(base / "macs"):
            device_ip = ip_from_filename(path)
            if device_ip is None:
                summary["errors"].append({"file": path.name, "error": "File name is not an IP address"})
                continue

            result = self.import_mac_table(path.read_text(encoding="utf-8", errors="replace"), device_ip)
            if result["success"]:
                imported = result["stats"]["entries_imported"]
                summary["mac_tables"].append({
                    "file": path.name,
                    "device_ip": device_ip,
                    "entries_imported": imported,
                })
                summary["total_mac_entries"] += imported
            else:
                summary["errors"].append({"file": path.name, "error": result.get("error") or result["message"]})

        logger.info(
            f"Directory import {base}: {len(summary['devices'])} configs, "
            f"{len(summary['mac_tables'])} MAC tables, {len(summary['errors'])} errors"
        )
        return summary

    @staticmethod
    def _list_files(directory: Path) -> List[Path]:
        if not directory.is_dir():
            logger.warning(f"Import directory not found: {directory}")
            return []
        return sorted(path for path in directory.iterdir() if path.is_file())

    def get_import_stats(self, device_ip: str) -> Optional[Dict[str, Any]]:
        """Port, VLAN and MAC counters for one device, or None if unknown."""
        device = self.db.query(Device).filter(Device.ip_address == device_ip).first()
        if device is None:
            return None

        def count_macs(*criteria) -> int:
            return (
                self.db.query(func.count(MacSighting.id))
                .filter(MacSighting.device_id == device.id, *criteria)
                .scalar()
            )

        return {
            "id": device.id,
            "hostname": device.hostname,
            "device_type": device.device_type,
            "total_ports": self.db.query(func.count(Port.id)).filter(Port.device_id == device.id).scalar(),
            "total_vlans": (
                self.db.query(func.count(func.distinct(PortVlanAssignment.vlan_id)))
                .filter(PortVlanAssignment.device_id == device.id)
                .scalar()
            ),
            "total_macs": count_macs(),
            "source_macs": count_macs(MacSighting.is_source.is_(True)),
            "transit_macs": count_macs(MacSighting.is_source.is_(False)),
        }
