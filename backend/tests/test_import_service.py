"""Tests for the import pipeline."""
from pathlib import Path

import pytest

from l2scheme.db.models import Device, MacSighting, Port, PortVlanAssignment, Vlan
from l2scheme.services.import_service import ImportService, ip_from_filename


@pytest.fixture
def service(db_session):
    return ImportService(db_session, hop_count_policy="none")


class TestConfigImport:
    def test_dlink_auto_detect(self, service, db_session, dlink_config):
        result = service.import_config(dlink_config, "10.0.0.2")

        assert result["success"] is True
        assert result["stats"]["device_type"] == "D-Link"
        assert result["stats"]["ports_imported"] == 28
        assert result["stats"]["vlans_imported"] == 3
        assert result["stats"]["assignments_imported"] == 13

        device = db_session.query(Device).filter(Device.id == result["device_id"]).one()
        assert device.hostname == "sw-access-01"
        assert device.device_type == "DGS-3120-24SC"
        assert device.firmware_version == "4.04.017"
        assert db_session.query(Port).filter(Port.device_id == device.id).count() == 28

    def test_olt_auto_detect(self, service, db_session, olt_config):
        result = service.import_config(olt_config, "10.0.1.1")

        assert result["success"] is True
        assert result["stats"]["device_type"] == "OLT"
        assert result["stats"]["subscribers"] == 2
        assert result["stats"]["ports_imported"] == 5

        subscriber = db_session.query(Port).filter(Port.port_name == "EPON0/1:5").one()
        assert subscriber.port_type == "EPON_ACCESS"
        assert subscriber.epon_parent == "EPON0/1"
        assert subscriber.native_vlan == 14

    def test_reimport_updates_in_place(self, service, db_session, dlink_config):
        first = service.import_config(dlink_config, "10.0.0.2")
        second = service.import_config(
            dlink_config.replace("description Uplink", "description Core"), "10.0.0.2"
        )

        assert first["device_id"] == second["device_id"]
        assert db_session.query(Device).count() == 1
        assert db_session.query(Port).count() == 28
        assert db_session.query(PortVlanAssignment).count() == 13
        port = db_session.query(Port).filter(Port.port_number == 1).one()
        assert port.description == "Core"

    def test_cisco_is_not_supported(self, service, db_session):
        result = service.import_config("Cisco IOS Software\nhostname core\n", "10.0.0.3")

        assert result["success"] is False
        assert "not supported" in result["error"]
        assert db_session.query(Device).count() == 0

    def test_unknown_format_falls_back(self, service):
        text = "config ports 1-2 description Edge\n"
        result = service.import_config(text, "10.0.0.4")
        assert result["success"] is True
        assert result["stats"]["device_type"] == "D-Link"

    def test_unrecognized_format_fails(self, service, db_session):
        result = service.import_config("just some text\n", "10.0.0.5")
        assert result["success"] is False
        assert db_session.query(Device).count() == 0

    def test_explicit_dialect(self, service, olt_config):
        assert service.import_config(olt_config, "10.0.1.1", device_type="olt")["stats"]["device_type"] == "OLT"
        assert service.import_dlink_config("config ports 1 state enable\n", "10.0.0.6")["success"]

    def test_failure_rolls_back_everything(self, service, db_session, dlink_config, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(service, "_upsert_assignments", boom)
        result = service.import_config(dlink_config, "10.0.0.2")

        assert result["success"] is False
        assert result["error"] == "disk full"
        assert db_session.query(Device).count() == 0
        assert db_session.query(Port).count() == 0
        assert db_session.query(Vlan).count() == 0


class TestMacTableImport:
    def test_device_must_exist(self, service, dlink_fdb):
        result = service.import_mac_table(dlink_fdb, "10.9.9.9")

        assert result["success"] is False
        assert "not found" in result["error"]
        assert "message" in result

    def test_import_and_analyze(self, service, db_session, dlink_config, dlink_fdb):
        service.import_config(dlink_config, "10.0.0.2")
        result = service.import_mac_table(dlink_fdb, "10.0.0.2")

        assert result["success"] is True
        stats = result["stats"]
        assert stats["entries_processed"] == 3
        assert stats["entries_imported"] == 3
        assert stats["entries_failed"] == 0
        assert stats["vlans_analyzed"] == 2
        assert stats["device_hostname"] == "sw-access-01"
        assert "failed_entries" not in result

        assert [t["vlan_id"] for t in result["topology_analysis"]] == [1, 200]
        assert all(t["analysis_complete"] for t in result["topology_analysis"])

        sighting = (
            db_session.query(MacSighting)
            .filter(MacSighting.mac_address == "00:50:56:aa:bb:01")
            .one()
        )
        assert sighting.client_type == "virtual_machine"
        assert sighting.is_source is True
        assert sighting.hop_count == 0

    def test_unresolved_ports_are_reported(self, service, db_session, olt_config, olt_fdb):
        service.import_config(olt_config, "10.0.1.1")
        result = service.import_mac_table(olt_fdb, "10.0.1.1")

        assert result["success"] is True
        assert result["stats"]["entries_imported"] == 2
        assert result["stats"]["entries_failed"] == 1
        assert result["failed_entries"] == [
            {"mac": "00:11:22:33:44:55", "reason": "Port g0/1 not found on device 10.0.1.1"}
        ]

        sighting = (
            db_session.query(MacSighting)
            .filter(MacSighting.mac_address == "12:34:56:78:9a:bc")
            .one()
        )
        assert sighting.port.port_name == "EPON0/1:5"
        assert sighting.is_source is True

    def test_missing_vlan_rows_are_created(self, service, db_session, dlink_switch_fdb):
        service.import_config("config ports 1-28 state enable\n", "10.0.0.7", device_type="dlink")
        service.import_mac_table(dlink_switch_fdb, "10.0.0.7")

        vlan = db_session.query(Vlan).filter(Vlan.vlan_id == 80).one()
        assert vlan.name == "VLAN80"

    def test_existing_vlan_is_kept(self, service, db_session, dlink_config, dlink_fdb):
        service.import_config(dlink_config, "10.0.0.2")
        service.import_mac_table(dlink_fdb, "10.0.0.2")
        assert db_session.query(Vlan).filter(Vlan.vlan_id == 200).one().name == "users"

    def test_reimport_upserts_sightings(self, service, db_session, dlink_config, dlink_fdb):
        service.import_config(dlink_config, "10.0.0.2")
        service.import_mac_table(dlink_fdb, "10.0.0.2")
        service.import_mac_table(dlink_fdb, "10.0.0.2")
        assert db_session.query(MacSighting).count() == 3

    def test_explicit_format(self, service, dlink_config, dlink_fdb):
        service.import_config(dlink_config, "10.0.0.2")
        result = service.import_mac_table(dlink_fdb, "10.0.0.2", fdb_format="dlink")
        assert result["stats"]["entries_imported"] == 3

    def test_unknown_format_name(self, service, dlink_config, dlink_fdb):
        service.import_config(dlink_config, "10.0.0.2")
        result = service.import_mac_table(dlink_fdb, "10.0.0.2", fdb_format="juniper")
        assert result["success"] is False

    def test_empty_table(self, service, dlink_config):
        service.import_config(dlink_config, "10.0.0.2")
        result = service.import_mac_table("nothing to see\n", "10.0.0.2")

        assert result["success"] is False
        assert result["stats"]["entries_processed"] == 0

    def test_analysis_failure_is_captured_per_vlan(self, service, dlink_config, dlink_fdb, monkeypatch):
        from l2scheme.services.topology_analyzer import TopologyAnalyzer

        real_analyze = TopologyAnalyzer.analyze_vlan_topology

        def flaky(self, vlan_id):
            if vlan_id == 1:
                raise RuntimeError("lock timeout")
            return real_analyze(self, vlan_id)

        monkeypatch.setattr(TopologyAnalyzer, "analyze_vlan_topology", flaky)
        service.import_config(dlink_config, "10.0.0.2")
        result = service.import_mac_table(dlink_fdb, "10.0.0.2")

        assert result["success"] is True
        assert result["topology_analysis"][0] == {
            "vlan_id": 1, "analysis_complete": False, "error": "lock timeout"
        }
        assert result["topology_analysis"][1]["analysis_complete"] is True


class TestPortMappings:
    def test_keys_and_modes(self, service, db_session, dlink_config):
        device_id = service.import_config(dlink_config, "10.0.0.2")["device_id"]
        mappings = service.get_port_mappings(device_id)

        assert mappings["5"].mode == "access"
        assert mappings["5"].native_vlan == 200
        assert mappings["25"].mode == "trunk"
        assert mappings["12"].mode == "unknown"
        assert mappings["Port5"] is mappings["5"]

    def test_olt_names(self, service, olt_config):
        device_id = service.import_config(olt_config, "10.0.1.1")["device_id"]
        mappings = service.get_port_mappings(device_id)
        assert mappings["EPON0/1:5"] is mappings["1015"]


class TestDirectoryImport:
    def test_filename_to_ip(self):
        assert ip_from_filename(Path("192_168_1_10.mac")) == "192.168.1.10"
        assert ip_from_filename(Path("readme.txt")) is None

    def test_imports_configs_then_macs(self, service, tmp_path, dlink_config, dlink_fdb):
        (tmp_path / "configs").mkdir()
        (tmp_path / "macs").mkdir()
        (tmp_path / "configs" / "10_0_0_2.cfg").write_text(dlink_config)
        (tmp_path / "configs" / "notes.txt").write_text("hello")
        (tmp_path / "macs" / "10_0_0_2.mac").write_text(dlink_fdb)
        (tmp_path / "macs" / "10_0_0_99.mac").write_text(dlink_fdb)

        summary = service.import_from_directory(str(tmp_path))

        assert [d["device_ip"] for d in summary["devices"]] == ["10.0.0.2"]
        assert [m["device_ip"] for m in summary["mac_tables"]] == ["10.0.0.2"]
        assert summary["total_mac_entries"] == 3
        assert sorted(e["file"] for e in summary["errors"]) == ["10_0_0_99.mac", "notes.txt"]

    def test_missing_directories(self, service, tmp_path):
        summary = service.import_from_directory(str(tmp_path))
        assert summary == {"devices": [], "mac_tables": [], "errors": [], "total_mac_entries": 0}


def test_import_stats(service, dlink_config, dlink_fdb):
    assert service.get_import_stats("10.0.0.2") is None

    service.import_config(dlink_config, "10.0.0.2")
    service.import_mac_table(dlink_fdb, "10.0.0.2")
    stats = service.get_import_stats("10.0.0.2")

    assert stats["total_ports"] == 28
    # VLAN 1 only loses ports, so it has no assignment on this device
    assert stats["total_vlans"] == 2
    assert stats["total_macs"] == 3
    assert stats["source_macs"] == 3
    assert stats["transit_macs"] == 0
