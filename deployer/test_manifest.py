#!/usr/bin/env python3
"""
Tests for the manifest store
"""

import json
import os
from unittest.mock import patch

import pytest

from deployer.errors import ManifestIOError
from deployer.manifest import Manifest, ManifestStore, utc_timestamp


def make_manifest(network="sepolia", timestamp="2026-10-19T04:18:00.123Z", **contracts):
    return Manifest(
        network=network,
        timestamp=timestamp,
        deployer="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
        contracts=contracts or {"SilicaToken": "0x01", "SilicaTreasury": "0x02"},
        chain_id=11155111,
        constructor_args={"SilicaToken": [], "SilicaTreasury": ["0x01"]},
    )


class TestManifestStore:
    """Test class for ManifestStore"""

    def setup_method(self):
        self.manifest = make_manifest()

    def test_write_creates_snapshot_and_latest(self, tmp_path):
        store = ManifestStore(str(tmp_path / "deployments"))
        snapshot, latest = store.write(self.manifest)

        assert os.path.basename(snapshot) == "sepolia-2026-10-19T04-18-00.123Z.json"
        assert os.path.basename(latest) == "sepolia-latest.json"
        with open(snapshot) as f:
            snapshot_data = json.load(f)
        with open(latest) as f:
            latest_data = json.load(f)
        assert snapshot_data == latest_data
        assert latest_data["contracts"] == {"SilicaToken": "0x01", "SilicaTreasury": "0x02"}
        assert latest_data["chainId"] == 11155111
        assert set(latest_data) >= {"network", "timestamp", "deployer", "contracts"}

    def test_read_returns_latest(self, tmp_path):
        store = ManifestStore(str(tmp_path))
        store.write(self.manifest)
        newer = make_manifest(timestamp="2026-10-20T00:00:00.000Z", SilicaToken="0x09")
        store.write(newer)

        loaded = store.read("sepolia")
        assert loaded == newer
        assert len(store.history("sepolia")) == 2

    def test_read_missing_network_returns_none(self, tmp_path):
        assert ManifestStore(str(tmp_path)).read("mainnet") is None

    def test_read_malformed_manifest(self, tmp_path):
        (tmp_path / "hardhat-latest.json").write_text("{not json")
        with pytest.raises(ManifestIOError):
            ManifestStore(str(tmp_path)).read("hardhat")

    def test_read_manifest_missing_fields(self, tmp_path):
        (tmp_path / "hardhat-latest.json").write_text(json.dumps({"network": "hardhat"}))
        with pytest.raises(ManifestIOError, match="missing fields"):
            ManifestStore(str(tmp_path)).read("hardhat")

    def test_failed_snapshot_leaves_previous_latest(self, tmp_path):
        """A crash while writing the snapshot must not touch "latest" """
        store = ManifestStore(str(tmp_path))
        store.write(self.manifest)
        original_write = store._atomic_write

        def crash_on_snapshot(path, payload):
            if not path.endswith("-latest.json"):
                raise OSError("disk full")
            original_write(path, payload)

        newer = make_manifest(timestamp="2026-10-21T00:00:00.000Z", SilicaToken="0x09")
        with patch.object(store, "_atomic_write", side_effect=crash_on_snapshot):
            with pytest.raises(ManifestIOError, match="disk full"):
                store.write(newer)

        assert store.read("sepolia") == self.manifest
        assert not [name for name in os.listdir(tmp_path) if name.endswith(".tmp")]

    def test_interrupted_atomic_write_cleans_up(self, tmp_path):
        store = ManifestStore(str(tmp_path))
        store.write(self.manifest)

        with patch("deployer.manifest.os.replace", side_effect=OSError("interrupted")):
            with pytest.raises(ManifestIOError):
                store.write(make_manifest(timestamp="2026-10-22T00:00:00.000Z"))

        assert store.read("sepolia") == self.manifest
        assert sorted(os.listdir(tmp_path)) == [
            "sepolia-2026-10-19T04-18-00.123Z.json", "sepolia-latest.json",
        ]

    def test_snapshots_are_never_overwritten(self, tmp_path):
        store = ManifestStore(str(tmp_path))
        store.write(self.manifest)
        with pytest.raises(ManifestIOError, match="already exists"):
            store.write(self.manifest)

    def test_history_ignores_other_networks(self, tmp_path):
        store = ManifestStore(str(tmp_path))
        store.write(self.manifest)
        store.write(make_manifest(network="sepolia-fork"))
        store.write(make_manifest(network="mainnet"))

        history = store.history("sepolia")
        assert [os.path.basename(p) for p in history] == ["sepolia-2026-10-19T04-18-00.123Z.json"]
        assert ManifestStore(str(tmp_path / "missing")).history("sepolia") == []


class TestManifest:
    def test_dict_round_trip_keeps_extensions(self):
        manifest = make_manifest()
        manifest.parameters = {"SilicaTimelock": [86400, [], []]}
        data = manifest.to_dict()
        assert data["constructorArgs"]["SilicaTreasury"] == ["0x01"]
        assert Manifest.from_dict(data) == manifest

    def test_minimal_document(self):
        manifest = Manifest.from_dict({
            "network": "hardhat", "timestamp": "t", "deployer": "0x0", "contracts": {},
        })
        assert manifest.chain_id is None
        assert manifest.to_dict() == {"network": "hardhat", "timestamp": "t", "deployer": "0x0", "contracts": {}}

    def test_utc_timestamp_format(self):
        stamp = utc_timestamp()
        assert len(stamp) == len("2026-10-19T04:18:00.123Z")
        assert stamp[10] == "T" and stamp.endswith("Z")
