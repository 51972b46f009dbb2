"""
Deployment configuration loaded from the environment (and an optional .env file).

The target network is always explicit: every stage receives a ``DeployConfig``
rather than reading a global network selection.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

KNOWN_CHAIN_IDS = {
    "hardhat": 31337,
    "localhost": 31337,
    "sepolia": 11155111,
    "mainnet": 1,
}

DEFAULT_RPC_URLS = {
    "hardhat": "http://localhost:8545",
    "localhost": "http://localhost:8545",
    "sepolia": "https://sepolia.infura.io/v3/{infura_key}",
    "mainnet": "https://mainnet.infura.io/v3/{infura_key}",
}

# Timelock minimum delay per network, in seconds
TIMELOCK_DELAYS = {
    "mainnet": 172800,
}
DEFAULT_TIMELOCK_DELAY = 86400

ETHERSCAN_API_URLS = {
    "mainnet": "https://api.etherscan.io/api",
    "sepolia": "https://api-sepolia.etherscan.io/api",
}


@dataclass(frozen=True)
class DeployConfig:
    network: str
    rpc_url: str
    private_key: Optional[str]
    expected_chain_id: Optional[int]
    deployments_dir: str = "deployments"
    artifacts_dir: str = "artifacts"
    confirmation_timeout: float = 120.0
    verify_delay: float = 5.0
    min_delay: int = DEFAULT_TIMELOCK_DELAY
    min_deployer_balance_eth: float = 0.0
    etherscan_api_key: Optional[str] = None
    etherscan_api_url: Optional[str] = None
    slack_webhook: Optional[str] = None
    log_file: str = "deployer.log"

    @classmethod
    def from_env(cls, network: str) -> "DeployConfig":
        """
        Build configuration for a network.

        ``<NETWORK>_RPC_URL`` wins over ``RPC_URL``; ``CHAIN_ID`` overrides the
        expected chain id of known networks.
        """
        if not network:
            raise ConfigurationError("A target network is required")

        prefix = network.upper()
        infura_key = os.getenv("INFURA_API_KEY", "")
        default_rpc = DEFAULT_RPC_URLS.get(network, "http://localhost:8545").format(infura_key=infura_key)
        rpc_url = os.getenv(f"{prefix}_RPC_URL") or os.getenv("RPC_URL") or default_rpc

        chain_id_env = os.getenv("CHAIN_ID")

        try:
            expected_chain_id = int(chain_id_env) if chain_id_env else KNOWN_CHAIN_IDS.get(network)
            return cls(
                network=network,
                rpc_url=rpc_url,
                private_key=os.getenv("PRIVATE_KEY"),
                expected_chain_id=expected_chain_id,
                deployments_dir=os.getenv("DEPLOYMENTS_DIR", "deployments"),
                artifacts_dir=os.getenv("ARTIFACTS_DIR", "artifacts"),
                confirmation_timeout=float(os.getenv("CONFIRMATION_TIMEOUT", "120")),
                verify_delay=float(os.getenv("VERIFY_DELAY", "5")),
                min_delay=int(os.getenv("TIMELOCK_MIN_DELAY", str(TIMELOCK_DELAYS.get(network, DEFAULT_TIMELOCK_DELAY)))),
                min_deployer_balance_eth=float(os.getenv("MIN_DEPLOYER_BALANCE_ETH", "0")),
                etherscan_api_key=os.getenv("ETHERSCAN_API_KEY"),
                etherscan_api_url=os.getenv("ETHERSCAN_API_URL", ETHERSCAN_API_URLS.get(network)),
                slack_webhook=os.getenv("SLACK_WEBHOOK"),
                log_file=os.getenv("LOG_FILE", "deployer.log"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e
