#!/usr/bin/env python3
"""
Tests for the frontend deployment address endpoint
"""

from fastapi.testclient import TestClient

from deployer.api import FALLBACK_CONTRACTS, create_app
from deployer.manifest import Manifest, ManifestStore


class TestDeploymentEndpoint:
    """Test class for GET /api/deployment"""

    def test_serves_latest_manifest(self, tmp_path):
        store = ManifestStore(str(tmp_path))
        store.write(Manifest(
            network="sepolia",
            timestamp="2026-10-19T04:18:00.123Z",
            deployer="0xabc",
            contracts={"SilicaToken": "0x01"},
        ))
        client = TestClient(create_app(store, "sepolia"))

        response = client.get("/api/deployment")

        assert response.status_code == 200
        assert response.json() == {
            "network": "sepolia",
            "timestamp": "2026-10-19T04:18:00.123Z",
            "deployer": "0xabc",
            "contracts": {"SilicaToken": "0x01"},
        }

    def test_fallback_when_not_deployed(self, tmp_path):
        client = TestClient(create_app(ManifestStore(str(tmp_path)), "hardhat"))

        body = client.get("/api/deployment").json()

        assert body["fallback"] is True
        assert body["network"] == "hardhat"
        assert body["contracts"] == FALLBACK_CONTRACTS

    def test_malformed_manifest_is_a_server_error(self, tmp_path):
        (tmp_path / "mainnet-latest.json").write_text("[]")
        client = TestClient(create_app(ManifestStore(str(tmp_path)), "mainnet"))

        response = client.get("/api/deployment")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to load deployment addresses"}

    def test_network_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NEXT_PUBLIC_NETWORK", "sepolia")
        monkeypatch.setenv("DEPLOYMENTS_DIR", str(tmp_path))
        client = TestClient(create_app())
        assert client.get("/api/deployment").json()["network"] == "sepolia"
