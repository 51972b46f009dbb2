"""
Deployment address lookup for the frontend.

Serves ``<network>-latest.json`` for the network named by NEXT_PUBLIC_NETWORK.
When nothing has been deployed yet a fallback payload with Hardhat's default
local addresses is returned, flagged with ``"fallback": true``.
"""

import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .errors import ManifestIOError
from .manifest import ManifestStore, utc_timestamp

logger = logging.getLogger(__name__)

HARDHAT_DEFAULT_DEPLOYER = '0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266'

FALLBACK_CONTRACTS = {
    'SilicaToken': '0x5FbDB2315678afecb367f032d93F642f64180aa3',
    'SilicaTimelock': '0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0',
    'SilicaTreasury': '0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512',
    'SilicaAIOracle': '0x5FC8d32690cc91D4c39d9d3abcBD16989F875707',
    'SilicaAIController': '0xDc64a140Aa3E981100a9becA4E685f962f0cF6C9',
    'SilicaModelRegistry': '0x0165878A594ca255338adfa4d48449f69242Eb8F',
    'SilicaExecutionEngine': '0xa513E6E4b8f2a923D98304ec87F64353C4D5C853',
}


def fallback_payload(network: str) -> Dict[str, Any]:
    return {
        'network': network,
        'timestamp': utc_timestamp(),
        'deployer': HARDHAT_DEFAULT_DEPLOYER,
        'contracts': dict(FALLBACK_CONTRACTS),
        'fallback': True,
    }


def create_app(store: Optional[ManifestStore] = None, network: Optional[str] = None) -> FastAPI:
    store = store or ManifestStore(os.getenv("DEPLOYMENTS_DIR", "deployments"))
    network = network or os.getenv("NEXT_PUBLIC_NETWORK", "hardhat")

    app = FastAPI(title="Silica deployment addresses")

    @app.get("/api/deployment")
    def deployment():
        """Latest deployment manifest for the configured network"""
        try:
            manifest = store.read(network)
        except ManifestIOError as e:
            logger.error(f"Error serving deployment addresses: {e}")
            return JSONResponse(status_code=500, content={'error': 'Failed to load deployment addresses'})

        if manifest is None:
            return fallback_payload(network)
        return manifest.to_dict()

    return app


app = create_app()
