"""
Manifest store: the durable address book of a completed deployment run.

Layout under the deployments directory:
    <network>-<ISO8601 timestamp>.json   immutable snapshot, one per run
    <network>-latest.json                pointer read by the frontend and scripts

The snapshot is written first; "latest" is swapped in with ``os.replace``
only once the snapshot is on disk, so readers never see a partial manifest.
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .errors import ManifestIOError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("network", "timestamp", "deployer", "contracts")


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-01-02T03:04:05.678Z"""
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


@dataclass
class Manifest:
    network: str
    timestamp: str
    deployer: str
    contracts: Dict[str, str]
    chain_id: Optional[int] = None
    constructor_args: Dict[str, List[Any]] = field(default_factory=dict)
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'network': self.network,
            'timestamp': self.timestamp,
            'deployer': self.deployer,
            'contracts': dict(self.contracts),
        }
        if self.chain_id is not None:
            data['chainId'] = self.chain_id
        if self.constructor_args:
            data['constructorArgs'] = self.constructor_args
        if self.parameters:
            data['parameters'] = self.parameters
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        missing = [key for key in REQUIRED_FIELDS if key not in data]
        if missing:
            raise ManifestIOError(f"Manifest is missing fields: {missing}")
        if not isinstance(data['contracts'], dict):
            raise ManifestIOError("Manifest 'contracts' must be a mapping")
        return cls(
            network=data['network'],
            timestamp=data['timestamp'],
            deployer=data['deployer'],
            contracts=dict(data['contracts']),
            chain_id=data.get('chainId'),
            constructor_args=dict(data.get('constructorArgs', {})),
            parameters=dict(data.get('parameters', {})),
        )


class ManifestStore:
    """Reads and writes manifests under a deployments directory"""

    def __init__(self, root: str = "deployments"):
        self.root = root

    def latest_path(self, network: str) -> str:
        return os.path.join(self.root, f"{network}-latest.json")

    def snapshot_path(self, network: str, timestamp: str) -> str:
        return os.path.join(self.root, f"{network}-{timestamp.replace(':', '-')}.json")

    def _atomic_write(self, path: str, payload: Dict[str, Any]):
        fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".manifest-", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def write(self, manifest: Manifest) -> Tuple[str, str]:
        """
        Persist the snapshot, then swap the "latest" pointer.

        Returns:
            (snapshot path, latest path)

        Raises:
            ManifestIOError: either write failed; "latest" is untouched when
                the snapshot could not be written
        """
        payload = manifest.to_dict()
        snapshot = self.snapshot_path(manifest.network, manifest.timestamp)
        latest = self.latest_path(manifest.network)

        try:
            os.makedirs(self.root, exist_ok=True)
            if os.path.exists(snapshot):
                raise ManifestIOError(f"Snapshot already exists: {snapshot}")
            self._atomic_write(snapshot, payload)
            logger.info(f"Deployment snapshot saved to {snapshot}")
            self._atomic_write(latest, payload)
            logger.info(f"Latest deployment pointer updated: {latest}")
        except OSError as e:
            raise ManifestIOError(f"Could not persist manifest for {manifest.network}: {e}") from e

        return snapshot, latest

    def read(self, network: str) -> Optional[Manifest]:
        """
        Load the latest manifest for a network.

        Returns:
            The manifest, or None when the network has never been deployed
        """
        path = self.latest_path(network)
        if not os.path.exists(path):
            logger.info(f"No deployment manifest for {network} at {path}")
            return None
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ManifestIOError(f"Could not read {path}: {e}") from e
        if not isinstance(data, dict):
            raise ManifestIOError(f"{path} does not contain a manifest object")
        return Manifest.from_dict(data)

    def history(self, network: str) -> List[str]:
        """Snapshot paths for a network, oldest first"""
        if not os.path.isdir(self.root):
            return []
        pattern = re.compile(rf"^{re.escape(network)}-\d{{4}}-\d{{2}}-\d{{2}}T.*\.json$")
        return sorted(
            os.path.join(self.root, name)
            for name in os.listdir(self.root)
            if pattern.match(name)
        )
