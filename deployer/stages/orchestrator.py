#!/usr/bin/env python3
"""
Deployment orchestrator: deploys components one at a time, in resolved order.

Each deployment waits for confirmation before the next is submitted, since a
later constructor may need an earlier address. The first failure stops the
run; confirmed records are kept and reported so an operator can pick up from
there, and no manifest is produced for the run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from web3 import Web3

from ..descriptors import ComponentDescriptor, deployment_parameters, resolve_args
from ..errors import DeploymentError, ManifestIOError, PreflightError
from ..ledger import LedgerClient
from ..manifest import Manifest, utc_timestamp
from ..resolver import resolve_order

logger = logging.getLogger(__name__)

PENDING = "pending"
CONFIRMED = "confirmed"
FAILED = "failed"


@dataclass
class DeploymentRecord:
    """One component's deployment within a run"""
    component: str
    artifact: str
    constructor_args: List[Any]
    status: str = PENDING
    address: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    def confirm(self, address: str):
        if self.status != PENDING:
            raise ValueError(f"{self.component} is already {self.status}")
        self.address = address
        self.status = CONFIRMED

    def fail(self, error: str):
        if self.status != PENDING:
            raise ValueError(f"{self.component} is already {self.status}")
        self.error = error
        self.status = FAILED


@dataclass(frozen=True)
class ProgressEvent:
    component: str
    address: str
    tx_hash: Optional[str]


@dataclass
class DeploymentReport:
    network: str
    deployer: str
    order: List[str]
    records: List[DeploymentRecord] = field(default_factory=list)
    not_attempted: List[str] = field(default_factory=list)
    chain_id: Optional[int] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def confirmed(self) -> List[DeploymentRecord]:
        return [r for r in self.records if r.status == CONFIRMED]

    @property
    def failed(self) -> Optional[DeploymentRecord]:
        return next((r for r in self.records if r.status == FAILED), None)

    @property
    def complete(self) -> bool:
        return len(self.confirmed) == len(self.order)

    def addresses(self) -> Dict[str, str]:
        return {r.component: r.address for r in self.confirmed}

    def constructor_args(self) -> Dict[str, List[Any]]:
        return {r.component: list(r.constructor_args) for r in self.confirmed}

    def to_manifest(self) -> Manifest:
        """Manifest for a fully confirmed run. Incomplete runs never get one."""
        if not self.complete:
            raise ManifestIOError(
                f"Refusing to build a manifest: {len(self.confirmed)} of "
                f"{len(self.order)} components confirmed"
            )
        return Manifest(
            network=self.network,
            timestamp=utc_timestamp(),
            deployer=self.deployer,
            contracts=self.addresses(),
            chain_id=self.chain_id,
            constructor_args=self.constructor_args(),
            parameters=self.parameters,
        )


class DeploymentOrchestrator:
    def __init__(self, ledger: LedgerClient, network: str,
                 confirmation_timeout: float = 120.0,
                 expected_chain_id: Optional[int] = None,
                 min_balance_eth: float = 0.0,
                 on_progress: Optional[Callable[[ProgressEvent], None]] = None):
        self.ledger = ledger
        self.network = network
        self.confirmation_timeout = confirmation_timeout
        self.expected_chain_id = expected_chain_id
        self.min_balance_eth = min_balance_eth
        self.on_progress = on_progress

    def preflight(self) -> int:
        """
        Read-only checks before the first submission.

        Returns:
            The connected chain id

        Raises:
            PreflightError: wrong chain or insufficient deployer balance
        """
        chain_id = self.ledger.chain_id()
        logger.info(f"Chain ID: {chain_id}")
        if self.expected_chain_id is not None and chain_id != self.expected_chain_id:
            raise PreflightError(
                f"Connected to chain {chain_id}, but {self.network} expects {self.expected_chain_id}"
            )

        balance = self.ledger.balance()
        logger.info(f"Deploying from account: {self.ledger.deployer_address}")
        logger.info(f"Deployer balance: {Web3.from_wei(balance, 'ether')} ETH")
        if balance < Web3.to_wei(self.min_balance_eth, 'ether'):
            raise PreflightError(
                f"Deployer has less than {self.min_balance_eth} ETH; not enough for a complete deployment"
            )
        return chain_id

    def run(self, descriptors: Sequence[ComponentDescriptor]) -> DeploymentReport:
        """
        Deploy every component in dependency order.

        Raises:
            ConfigurationError: malformed or cyclic descriptor set (no remote calls made)
            PreflightError: pre-flight check failed (nothing submitted)
        """
        order = resolve_order(descriptors)
        chain_id = self.preflight()

        deployer = self.ledger.deployer_address
        report = DeploymentReport(
            network=self.network,
            deployer=deployer,
            order=[d.name for d in order],
            chain_id=chain_id,
            parameters=deployment_parameters(order),
        )
        addresses: Dict[str, str] = {}

        for index, descriptor in enumerate(order):
            args = resolve_args(descriptor.args, addresses, deployer)
            record = DeploymentRecord(descriptor.name, descriptor.artifact_name, args)
            report.records.append(record)
            logger.info(f"Deploying {descriptor.name}...")

            try:
                handle = self.ledger.submit_create(descriptor.artifact_name, args)
                record.tx_hash = handle.tx_hash
                confirmation = self.ledger.await_confirmation(handle, self.confirmation_timeout)
            except DeploymentError as e:
                record.fail(str(e))
            else:
                if confirmation.success and confirmation.address:
                    record.confirm(confirmation.address)
                else:
                    record.fail(confirmation.error or "receipt carries no contract address")

            if record.status == FAILED:
                report.not_attempted = [d.name for d in order[index + 1:]]
                logger.error(f"Deployment of {descriptor.name} failed: {record.error}")
                logger.error(
                    f"Run aborted: {len(report.confirmed)} confirmed, 1 failed, "
                    f"{len(report.not_attempted)} not attempted"
                )
                return report

            addresses[descriptor.name] = record.address
            logger.info(f"{descriptor.name} deployed to: {record.address}")
            if self.on_progress is not None:
                self.on_progress(ProgressEvent(descriptor.name, record.address, record.tx_hash))

        logger.info(f"All {len(order)} components deployed to {self.network}")
        return report
