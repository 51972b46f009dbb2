#!/usr/bin/env python3
"""
Verification driver: resubmits each deployed component to a source
verification service.

Components are verified one by one with a pause between calls to respect the
service's rate limit. A failure is recorded and the driver continues with the
next component.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from eth_abi import encode
from eth_abi.exceptions import EncodingError

from ..descriptors import ComponentDescriptor, resolve_args
from ..errors import ConfigurationError, DeploymentError, VerificationFailure
from ..ledger import ArtifactStore
from ..manifest import Manifest
from .wiring import FAILED, VERIFIED, ActionOutcome, summarize

logger = logging.getLogger(__name__)


class EtherscanVerifier:
    """Etherscan-compatible verification API client"""

    def __init__(self, api_url: str, api_key: str, artifacts: ArtifactStore,
                 chain_id: Optional[int] = None, poll_interval: float = 5.0, max_polls: int = 12,
                 session: Optional[requests.Session] = None, sleep: Callable[[float], None] = time.sleep):
        if not api_url:
            raise ConfigurationError("No verification API URL configured for this network")
        if not api_key:
            raise ConfigurationError("ETHERSCAN_API_KEY not found in environment")
        self.api_url = api_url
        self.api_key = api_key
        self.artifacts = artifacts
        self.chain_id = chain_id
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.session = session or requests.Session()
        self.sleep = sleep

    def _params(self, **extra) -> Dict[str, Any]:
        params = {'apikey': self.api_key, 'module': 'contract', **extra}
        if self.chain_id is not None:
            params['chainid'] = self.chain_id
        return params

    def encode_constructor_args(self, artifact: str, constructor_args: Sequence[Any]) -> str:
        abi = self.artifacts.abi(artifact)
        constructor = next((entry for entry in abi if entry.get('type') == 'constructor'), None)
        if constructor is None or not constructor.get('inputs'):
            return ""
        types = [item['type'] for item in constructor['inputs']]
        return encode(types, list(constructor_args)).hex()

    def verify(self, address: str, constructor_args: Sequence[Any], artifact: str):
        """
        Submit a contract for verification and wait for the verdict.

        Raises:
            VerificationFailure: the artifact or arguments could not be prepared,
                the service rejected the submission or never
                reached a verdict
        """
        try:
            compiled = self.artifacts.load(artifact)
            build_info = self.artifacts.build_info(artifact)
            payload = self._params(
                action='verifysourcecode',
                contractaddress=address,
                sourceCode=json.dumps(build_info['input']),
                codeformat='solidity-standard-json-input',
                contractname=f"{compiled['sourceName']}:{compiled['contractName']}",
                compilerversion=f"v{build_info['solcLongVersion']}",
                constructorArguements=self.encode_constructor_args(artifact, constructor_args),
            )
        except (EncodingError, KeyError, TypeError, ValueError, OSError) as e:
            raise VerificationFailure(f"Could not prepare {artifact} for verification: {e}") from e

        try:
            response = self.session.post(self.api_url, data=payload, timeout=30)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise VerificationFailure(f"Verification request failed: {e}") from e

        result = str(body.get('result', ''))
        if body.get('status') != '1':
            if 'already verified' in result.lower():
                return
            raise VerificationFailure(result or "verification rejected")

        self._wait_for_verdict(result)

    def _wait_for_verdict(self, guid: str):
        for _ in range(self.max_polls):
            self.sleep(self.poll_interval)
            try:
                response = self.session.get(
                    self.api_url, params=self._params(action='checkverifystatus', guid=guid), timeout=30
                )
                response.raise_for_status()
                result = str(response.json().get('result', ''))
            except (requests.RequestException, ValueError) as e:
                raise VerificationFailure(f"Status check failed: {e}") from e

            if result.lower().startswith('pending'):
                continue
            if result.startswith('Pass') or 'already verified' in result.lower():
                return
            raise VerificationFailure(result)

        raise VerificationFailure(f"No verdict after {self.max_polls} status checks (guid {guid})")


class VerificationDriver:
    def __init__(self, service, delay: float = 5.0, sleep: Callable[[float], None] = time.sleep):
        self.service = service
        self.delay = delay
        self.sleep = sleep

    def _constructor_args(self, name: str, manifest: Manifest,
                          descriptors: Dict[str, ComponentDescriptor]) -> List[Any]:
        if name in manifest.constructor_args:
            return list(manifest.constructor_args[name])
        if name in descriptors:
            return resolve_args(descriptors[name].args, manifest.contracts, manifest.deployer)
        raise ConfigurationError(f"No constructor arguments recorded or derivable for {name}")

    def run(self, manifest: Manifest,
            descriptors: Optional[Sequence[ComponentDescriptor]] = None) -> List[ActionOutcome]:
        """
        Verify every component listed in a manifest.

        Constructor arguments come from the manifest when recorded there,
        otherwise they are re-derived from the descriptor set.

        Returns:
            One outcome per manifest entry, in manifest order
        """
        by_name = {d.name: d for d in descriptors or ()}
        logger.info(f"Verifying contracts on {manifest.network}...")

        outcomes: List[ActionOutcome] = []
        for index, (name, address) in enumerate(manifest.contracts.items()):
            if index:
                self.sleep(self.delay)

            label = f"verify {name} at {address}"
            artifact = by_name[name].artifact_name if name in by_name else name
            try:
                args = self._constructor_args(name, manifest, by_name)
                self.service.verify(address, args, artifact)
            except DeploymentError as e:
                logger.error(f"Error verifying {name}: {e}")
                outcomes.append(ActionOutcome(label, FAILED, str(e)))
                continue
            logger.info(f"{name} verified successfully")
            outcomes.append(ActionOutcome(label, VERIFIED))

        counts = summarize(outcomes)
        logger.info(
            f"Verification process completed - verified: {counts.get(VERIFIED, 0)}, "
            f"failed: {counts.get(FAILED, 0)}"
        )
        return outcomes
