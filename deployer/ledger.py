#!/usr/bin/env python3
"""
Ledger client: the RPC-style handle the deployer drives.

``LedgerClient`` is the contract every stage is written against.
``Web3LedgerClient`` implements it over a JSON-RPC endpoint with locally
signed transactions and Hardhat compilation artifacts.
"""

import glob
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from .errors import ConfigurationError, ConfirmationTimeout, PreflightError, SubmissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    """A deployed component: which artifact it was built from and where it lives"""
    artifact: str
    address: str


@dataclass(frozen=True)
class PendingHandle:
    """A submitted, not yet confirmed, transaction"""
    tx_hash: str
    description: str


@dataclass(frozen=True)
class Confirmation:
    """Outcome of waiting for a transaction"""
    success: bool
    tx_hash: str
    address: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None


class LedgerClient(ABC):
    """Transactional interface to the remote network"""

    @property
    @abstractmethod
    def deployer_address(self) -> str:
        ...

    @abstractmethod
    def submit_create(self, artifact: str, args: Sequence[Any]) -> PendingHandle:
        """Submit a creation transaction. Raises SubmissionError when rejected."""

    @abstractmethod
    def submit_call(self, target: Target, action: str, args: Sequence[Any]) -> PendingHandle:
        """Submit a state-changing call. Raises SubmissionError when rejected."""

    @abstractmethod
    def await_confirmation(self, handle: PendingHandle, timeout: float) -> Confirmation:
        """Block until the transaction is included. Raises ConfirmationTimeout."""

    @abstractmethod
    def query_state(self, target: Target, query: str, args: Sequence[Any]) -> Any:
        """Read-only call. Raises SubmissionError when the read fails."""

    @abstractmethod
    def chain_id(self) -> int:
        ...

    @abstractmethod
    def balance(self) -> int:
        """Deployer balance in wei"""

    @abstractmethod
    def has_code(self, address: str) -> bool:
        ...


class ArtifactStore:
    """Reads Hardhat compilation output (ABI, bytecode, build info)."""

    def __init__(self, root: str):
        self.root = root
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _path(self, name: str) -> str:
        matches = [
            path for path in glob.glob(os.path.join(self.root, "**", f"{name}.json"), recursive=True)
            if os.sep + "build-info" + os.sep not in path
        ]
        if not matches:
            raise ConfigurationError(f"No compiled artifact for '{name}' under {self.root}")
        return sorted(matches)[0]

    def load(self, name: str) -> Dict[str, Any]:
        if name not in self._cache:
            with open(self._path(name), 'r') as f:
                self._cache[name] = json.load(f)
        return self._cache[name]

    def abi(self, name: str) -> List[Dict[str, Any]]:
        return self.load(name)['abi']

    def bytecode(self, name: str) -> str:
        return self.load(name)['bytecode']

    def build_info(self, name: str) -> Dict[str, Any]:
        """The solc input/version the artifact was compiled from"""
        artifact_path = self._path(name)
        dbg_path = artifact_path[:-len(".json")] + ".dbg.json"
        try:
            with open(dbg_path, 'r') as f:
                build_info_ref = json.load(f)['buildInfo']
            with open(os.path.join(os.path.dirname(dbg_path), build_info_ref), 'r') as f:
                return json.load(f)
        except (OSError, KeyError, ValueError) as e:
            raise ConfigurationError(f"No build info for '{name}': {e}") from e


class Web3LedgerClient(LedgerClient):
    """LedgerClient backed by a web3 HTTP provider and a local signing key"""

    def __init__(self, rpc_url: str, private_key: str, artifacts: ArtifactStore,
                 poll_latency: float = 0.5):
        if not private_key:
            raise PreflightError("PRIVATE_KEY not found in environment")

        self.rpc_url = rpc_url
        self.artifacts = artifacts
        self.poll_latency = poll_latency

        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        if not self.w3.is_connected():
            raise PreflightError(f"Could not connect to RPC URL: {rpc_url}")
        logger.info(f"Connected to blockchain at {rpc_url}")

        self.account = self.w3.eth.account.from_key(private_key)
        self._chain_id: Optional[int] = None

    @property
    def deployer_address(self) -> str:
        return self.account.address

    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.w3.eth.chain_id
        return self._chain_id

    def balance(self) -> int:
        return self.w3.eth.get_balance(self.account.address)

    def has_code(self, address: str) -> bool:
        return len(self.w3.eth.get_code(self.w3.to_checksum_address(address))) > 0

    def _contract(self, target: Target):
        return self.w3.eth.contract(
            address=self.w3.to_checksum_address(target.address),
            abi=self.artifacts.abi(target.artifact),
        )

    def _tx_params(self) -> Dict[str, Any]:
        return {
            'from': self.account.address,
            'nonce': self.w3.eth.get_transaction_count(self.account.address, 'pending'),
            'gasPrice': self.w3.eth.gas_price,
            'chainId': self.chain_id(),
        }

    def _send(self, tx: Dict[str, Any], description: str) -> PendingHandle:
        signed_tx = self.account.sign_transaction(tx)
        tx_hash = self.w3.to_hex(self.w3.eth.send_raw_transaction(signed_tx.raw_transaction))
        logger.info(f"Submitted {description}: {tx_hash}")
        return PendingHandle(tx_hash=tx_hash, description=description)

    def submit_create(self, artifact: str, args: Sequence[Any]) -> PendingHandle:
        try:
            factory = self.w3.eth.contract(
                abi=self.artifacts.abi(artifact),
                bytecode=self.artifacts.bytecode(artifact),
            )
            tx = factory.constructor(*args).build_transaction(self._tx_params())
            return self._send(tx, f"create {artifact}")
        except (Web3Exception, ValueError, KeyError, OSError, requests.RequestException) as e:
            raise SubmissionError(f"Creating {artifact} rejected: {e}") from e

    def submit_call(self, target: Target, action: str, args: Sequence[Any]) -> PendingHandle:
        try:
            contract = self._contract(target)
            tx = getattr(contract.functions, action)(*args).build_transaction(self._tx_params())
            return self._send(tx, f"{target.artifact}.{action}")
        except (Web3Exception, ValueError, KeyError, OSError, requests.RequestException) as e:
            raise SubmissionError(f"{target.artifact}.{action} rejected: {e}") from e

    def await_confirmation(self, handle: PendingHandle, timeout: float) -> Confirmation:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                handle.tx_hash, timeout=timeout, poll_latency=self.poll_latency
            )
        except TimeExhausted as e:
            raise ConfirmationTimeout(handle.tx_hash, timeout) from e
        except (Web3Exception, requests.RequestException) as e:
            raise SubmissionError(f"{handle.description}: {e}") from e

        if receipt['status'] != 1:
            return Confirmation(
                success=False, tx_hash=handle.tx_hash,
                block_number=receipt['blockNumber'], error="transaction reverted",
            )
        return Confirmation(
            success=True, tx_hash=handle.tx_hash,
            address=receipt.get('contractAddress'), block_number=receipt['blockNumber'],
        )

    def query_state(self, target: Target, query: str, args: Sequence[Any]) -> Any:
        try:
            contract = self._contract(target)
            return getattr(contract.functions, query)(*args).call()
        except (Web3Exception, ValueError, KeyError, OSError, requests.RequestException) as e:
            raise SubmissionError(f"{target.artifact}.{query} read failed: {e}") from e
