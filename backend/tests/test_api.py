"""
API tests: import endpoints, device/VLAN/MAC queries.
"""
import pytest

from l2scheme.core.config import get_settings


@pytest.fixture
def imported(client, dlink_config, olt_config, dlink_fdb, olt_fdb):
    """D-Link switch and OLT with their MAC tables loaded through the API."""
    for ip, text in (("10.0.0.2", dlink_config), ("10.0.1.1", olt_config)):
        response = client.post("/api/import/config", json={"config_text": text, "device_ip": ip})
        assert response.status_code == 200

    for ip, text in (("10.0.0.2", dlink_fdb), ("10.0.1.1", olt_fdb)):
        response = client.post("/api/import/mac-table", json={"mac_table_text": text, "device_ip": ip})
        assert response.status_code == 200


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root(client):
    assert client.get("/").json()["docs"] == "/docs"


class TestImportEndpoints:
    def test_import_config(self, client, dlink_config):
        response = client.post(
            "/api/import/config",
            json={"config_text": dlink_config, "device_ip": "10.0.0.2", "device_type": "dlink"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["stats"]["ports_imported"] == 28

    def test_invalid_ip(self, client, dlink_config):
        response = client.post(
            "/api/import/config", json={"config_text": dlink_config, "device_ip": "10.0.0.256"}
        )
        assert response.status_code == 422

    def test_invalid_device_type(self, client, dlink_config):
        response = client.post(
            "/api/import/config",
            json={"config_text": dlink_config, "device_ip": "10.0.0.2", "device_type": "cisco"},
        )
        assert response.status_code == 422

    def test_unsupported_config(self, client):
        response = client.post(
            "/api/import/config",
            json={"config_text": "Cisco IOS Software\n", "device_ip": "10.0.0.3"},
        )
        assert response.status_code == 400
        assert "not supported" in response.json()["detail"]

    def test_mac_table_for_unknown_device(self, client, dlink_fdb):
        response = client.post(
            "/api/import/mac-table", json={"mac_table_text": dlink_fdb, "device_ip": "10.9.9.9"}
        )
        assert response.status_code == 404

    def test_empty_mac_table(self, client, dlink_config):
        client.post("/api/import/config", json={"config_text": dlink_config, "device_ip": "10.0.0.2"})
        response = client.post(
            "/api/import/mac-table", json={"mac_table_text": "no rows", "device_ip": "10.0.0.2"}
        )
        assert response.status_code == 400

    def test_mac_table_with_failures(self, client, olt_config, olt_fdb):
        client.post("/api/import/config", json={"config_text": olt_config, "device_ip": "10.0.1.1"})
        response = client.post(
            "/api/import/mac-table",
            json={"mac_table_text": olt_fdb, "device_ip": "10.0.1.1", "format": "olt"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["stats"]["entries_failed"] == 1
        assert [t["vlan_id"] for t in data["topology_analysis"]] == [14, 18]

    def test_directory(self, client, tmp_path, dlink_config, monkeypatch):
        (tmp_path / "configs").mkdir()
        (tmp_path / "configs" / "10_0_0_2.cfg").write_text(dlink_config)
        monkeypatch.setattr(get_settings(), "data_dir", str(tmp_path))

        response = client.post("/api/import/directory")

        assert response.status_code == 200
        data = response.json()
        assert data["devices"][0]["device_ip"] == "10.0.0.2"
        assert data["total_mac_entries"] == 0

    def test_directory_ignores_client_path(self, client, tmp_path, dlink_config, monkeypatch):
        elsewhere = tmp_path / "elsewhere"
        (elsewhere / "configs").mkdir(parents=True)
        (elsewhere / "configs" / "10_0_0_2.cfg").write_text(dlink_config)
        monkeypatch.setattr(get_settings(), "data_dir", str(tmp_path / "data"))

        response = client.post("/api/import/directory", json={"data_dir": str(elsewhere)})

        assert response.status_code == 200
        assert response.json()["devices"] == []
        assert client.get("/api/devices").json()["total"] == 0


class TestDeviceEndpoints:
    def test_list(self, client, imported):
        data = client.get("/api/devices").json()

        assert data["total"] == 2
        assert [d["ip_address"] for d in data["items"]] == ["10.0.0.2", "10.0.1.1"]

    def test_filter_by_type(self, client, imported):
        data = client.get("/api/devices", params={"device_type": "olt"}).json()
        assert [d["hostname"] for d in data["items"]] == ["OLT-Center"]

    def test_detail_and_ports(self, client, imported):
        device_id = client.get("/api/devices").json()["items"][1]["id"]

        assert client.get(f"/api/devices/{device_id}").json()["device_type"] == "OLT_EPON"

        ports = client.get(f"/api/devices/{device_id}/ports").json()
        assert [p["port_number"] for p in ports] == [1, 51, 101, 1015, 100112]
        assert ports[3]["port_type"] == "EPON_ACCESS"

    def test_not_found(self, client):
        assert client.get("/api/devices/999").status_code == 404
        assert client.get("/api/devices/999/ports").status_code == 404
        assert client.get("/api/devices/by-ip/10.9.9.9/stats").status_code == 404

    def test_stats(self, client, imported):
        data = client.get("/api/devices/by-ip/10.0.0.2/stats").json()

        assert data["hostname"] == "sw-access-01"
        assert data["total_ports"] == 28
        assert data["total_macs"] == 3
        assert data["source_macs"] == 3


class TestVlanEndpoints:
    def test_list(self, client, imported):
        vlans = {v["vlan_id"]: v for v in client.get("/api/vlans").json()}

        assert vlans[200]["name"] == "users"
        assert vlans[200]["mac_count"] == 2
        assert vlans[102]["mac_count"] == 0

    def test_topology(self, client, imported):
        data = client.get("/api/vlans/14/topology").json()

        assert data["vlan_name"] == "VLAN14"
        assert [d["ip_address"] for d in data["devices"]] == ["10.0.1.1"]
        port = data["devices"][0]["ports"][0]
        assert port["port_name"] == "EPON0/1:5"
        assert port["mac_addresses"][0]["is_source"] is True

    def test_topology_of_empty_vlan(self, client):
        data = client.get("/api/vlans/4000/topology").json()
        assert data["devices"] == []

    def test_analyze(self, client, imported):
        data = client.post("/api/vlans/200/analyze").json()

        assert data["vlan_id"] == 200
        assert data["macs_analyzed"] == 2
        assert data["sources_identified"] == 2

    def test_macs(self, client, imported):
        macs = client.get("/api/vlans/200/macs").json()
        assert [m["mac_address"] for m in macs] == ["00:1b:21:00:00:02", "00:50:56:aa:bb:01"]
        assert macs[1]["vendor"] == "VMware"


class TestMacEndpoints:
    def test_search_any_notation(self, client, imported):
        for notation in ("00-50-56-AA-BB-01", "0050.56aa.bb01", "00:50:56:aa:bb:01"):
            results = client.get(f"/api/macs/search/{notation}").json()
            assert len(results) == 1
            assert results[0]["device_ip"] == "10.0.0.2"
            assert results[0]["port_number"] == 6
            assert results[0]["is_source"] is True

    def test_search_invalid(self, client):
        assert client.get("/api/macs/search/not-a-mac").status_code == 400

    def test_search_unknown(self, client, imported):
        assert client.get("/api/macs/search/02:00:00:00:00:01").json() == []

    def test_stats(self, client, imported):
        data = client.get("/api/macs/stats").json()

        assert data["total_sightings"] == 5
        assert data["unique_macs"] == 5
        assert data["source_sightings"] == 5
        assert data["transit_sightings"] == 0
        assert data["unanalyzed_sightings"] == 0
        assert data["by_vlan"] == {"1": 1, "14": 1, "18": 1, "200": 2}
