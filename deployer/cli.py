#!/usr/bin/env python3
"""
Command line entry points: deploy, wire, verify and status.

Every command logs each attempted step with a timestamp and exits non-zero
when a step could not be completed.
"""

import argparse
import logging
import sys
from typing import List

from .config import DeployConfig
from .descriptors import ComponentDescriptor, silica_components
from .errors import DeploymentError
from .ledger import ArtifactStore, LedgerClient, Web3LedgerClient
from .logging_setup import configure_logging
from .manifest import Manifest, ManifestStore
from .notifications import SlackNotifier
from .stages.orchestrator import DeploymentOrchestrator, DeploymentReport
from .stages.verification import EtherscanVerifier, VerificationDriver
from .stages.wiring import ActionOutcome, WiringEngine, summarize

logger = logging.getLogger(__name__)


def build_ledger(config: DeployConfig) -> LedgerClient:
    return Web3LedgerClient(config.rpc_url, config.private_key, ArtifactStore(config.artifacts_dir))


def components(config: DeployConfig) -> List[ComponentDescriptor]:
    return silica_components(min_delay=config.min_delay)


def _load_manifest(config: DeployConfig) -> Manifest:
    manifest = ManifestStore(config.deployments_dir).read(config.network)
    if manifest is None:
        raise DeploymentError(
            f"No deployment manifest for {config.network}. "
            f"Make sure you have deployed contracts to {config.network} first."
        )
    return manifest


def _log_outcomes(title: str, outcomes: List[ActionOutcome]) -> bool:
    logger.info(f"=== {title} ===")
    for outcome in outcomes:
        log = logger.info if outcome.ok else logger.error
        log(str(outcome))
    return all(outcome.ok for outcome in outcomes)


def _log_report(report: DeploymentReport):
    logger.info("=== Deployment steps ===")
    for record in report.records:
        detail = record.address if record.address else record.error
        logger.info(f"{record.component}: {record.status} ({detail})")
    for name in report.not_attempted:
        logger.info(f"{name}: not attempted")


def cmd_deploy(config: DeployConfig) -> int:
    notifier = SlackNotifier(config.slack_webhook)
    descriptors = components(config)
    ledger = build_ledger(config)

    orchestrator = DeploymentOrchestrator(
        ledger,
        config.network,
        confirmation_timeout=config.confirmation_timeout,
        expected_chain_id=config.expected_chain_id,
        min_balance_eth=config.min_deployer_balance_eth,
    )
    report = orchestrator.run(descriptors)
    _log_report(report)

    if not report.complete:
        notifier.send(
            f"Deployment to {config.network} aborted at {report.failed.component}",
            {"Confirmed": len(report.confirmed), "Not attempted": len(report.not_attempted)},
        )
        return 1

    snapshot, _ = ManifestStore(config.deployments_dir).write(report.to_manifest())
    logger.info(f"Deployment info saved to {snapshot}")

    outcomes = WiringEngine(ledger, config.confirmation_timeout).run(descriptors, report.addresses())
    wired = _log_outcomes("Wiring", outcomes)

    notifier.send(f"Deployment to {config.network} finished", summarize(outcomes))
    return 0 if wired else 1


def cmd_wire(config: DeployConfig) -> int:
    manifest = _load_manifest(config)
    ledger = build_ledger(config)
    outcomes = WiringEngine(ledger, config.confirmation_timeout).run(components(config), manifest.contracts)
    return 0 if _log_outcomes("Wiring", outcomes) else 1


def cmd_verify(config: DeployConfig) -> int:
    manifest = _load_manifest(config)
    service = EtherscanVerifier(
        config.etherscan_api_url,
        config.etherscan_api_key,
        ArtifactStore(config.artifacts_dir),
        chain_id=manifest.chain_id,
    )
    outcomes = VerificationDriver(service, delay=config.verify_delay).run(manifest, components(config))
    return 0 if _log_outcomes("Verification", outcomes) else 1


def cmd_status(config: DeployConfig) -> int:
    manifest = _load_manifest(config)
    ledger = build_ledger(config)
    logger.info(f"Deployment of {manifest.timestamp} by {manifest.deployer}")

    healthy = True
    for name, address in manifest.contracts.items():
        if ledger.has_code(address):
            logger.info(f"{name} at {address}: code present")
        else:
            logger.error(f"{name} at {address}: no code found")
            healthy = False
    return 0 if healthy else 1


COMMANDS = {
    "deploy": (cmd_deploy, "Deploy, record and wire all components"),
    "wire": (cmd_wire, "Re-run wiring against the latest deployment"),
    "verify": (cmd_verify, "Verify the latest deployment's sources"),
    "status": (cmd_status, "Check that every recorded address holds code"),
}


def build_parser():
    p = argparse.ArgumentParser(prog="silica-deploy")
    sub = p.add_subparsers(dest="cmd")
    for name, (func, help_text) in COMMANDS.items():
        s = sub.add_parser(name, help=help_text)
        s.add_argument("network", help="Target network, e.g. hardhat, sepolia, mainnet")
        s.set_defaults(func=func)
    return p


def main(argv=None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    if not hasattr(args, "func"):
        p.print_help()
        return 2

    try:
        config = DeployConfig.from_env(args.network)
    except DeploymentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    configure_logging(config.log_file)

    try:
        return args.func(config)
    except DeploymentError as e:
        logger.error(f"{args.cmd} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
