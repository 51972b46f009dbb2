"""
Wiring engine: post-deployment permission and linkage actions.

Actions run in declaration order, each as its own transaction. An action with
a declared state check is skipped when the check already holds, which keeps
re-runs against a partially wired system safe. A failed action is recorded
and the engine moves on to the next one.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..descriptors import ComponentDescriptor, Query, WiringAction, resolve_arg, resolve_args
from ..errors import ConfigurationError, ConfirmationTimeout, DeploymentError
from ..ledger import LedgerClient, Target
from ..resolver import validate, wiring_actions

logger = logging.getLogger(__name__)

APPLIED = "applied"
ALREADY_SATISFIED = "already-satisfied"
VERIFIED = "verified"
FAILED = "failed"


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one wiring action or verification attempt"""
    action: str
    outcome: str
    reason: Optional[str] = None
    tx_hash: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome != FAILED

    def __str__(self) -> str:
        if self.reason:
            return f"{self.action}: {self.outcome} ({self.reason})"
        return f"{self.action}: {self.outcome}"


def summarize(outcomes: Sequence[ActionOutcome]) -> Dict[str, int]:
    """Count outcomes by kind"""
    return dict(Counter(o.outcome for o in outcomes))


def _same(actual: Any, expected: Any) -> bool:
    # Addresses come back checksummed; compare them case-insensitively
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.lower() == expected.lower()
    return actual == expected


class WiringEngine:
    def __init__(self, ledger: LedgerClient, confirmation_timeout: float = 120.0):
        self.ledger = ledger
        self.confirmation_timeout = confirmation_timeout
        self._components: Dict[str, ComponentDescriptor] = {}
        self._addresses: Dict[str, str] = {}

    def run(self, descriptors: Sequence[ComponentDescriptor], addresses: Dict[str, str]) -> List[ActionOutcome]:
        """
        Execute every declared wiring action.

        Args:
            descriptors: the component descriptor set
            addresses: confirmed address per component

        Returns:
            One outcome per action, in declaration order

        Raises:
            ConfigurationError: malformed descriptors, or a component has no address
        """
        self._components = validate(descriptors)
        missing = [name for name in self._components if name not in addresses]
        if missing:
            raise ConfigurationError(f"No deployed address for: {', '.join(missing)}")
        self._addresses = dict(addresses)

        actions = wiring_actions(descriptors)
        logger.info(f"Setting up {len(actions)} connections between contracts...")
        outcomes = [self._execute(action) for action in actions]

        counts = summarize(outcomes)
        logger.info(
            f"Wiring finished - applied: {counts.get(APPLIED, 0)}, "
            f"already satisfied: {counts.get(ALREADY_SATISFIED, 0)}, failed: {counts.get(FAILED, 0)}"
        )
        return outcomes

    def _target(self, component: str) -> Target:
        return Target(self._components[component].artifact_name, self._addresses[component])

    def _query(self, query: Query) -> Any:
        shape = self._components[query.component].shape(query.capability)
        args = resolve_args(query.args, self._addresses, self.ledger.deployer_address, self._query)
        return self.ledger.query_state(self._target(query.component), shape.function, args)

    def _resolve(self, arg: Any) -> Any:
        return resolve_arg(arg, self._addresses, self.ledger.deployer_address, self._query)

    def _already_holds(self, action: WiringAction, args: List[Any]) -> bool:
        check = action.check
        shape = self._components[action.target].shape(check.capability)
        check_args = args if check.args is None else [self._resolve(arg) for arg in check.args]

        value = self.ledger.query_state(self._target(action.target), shape.function, check_args)
        expected = self._resolve(check.expect)
        try:
            if check.field is not None:
                value = value[check.field]
            if check.contains:
                return any(_same(item, expected) for item in value)
        except (TypeError, IndexError) as e:
            raise ConfigurationError(f"{shape.function} returned an unexpected shape: {value!r}") from e
        return _same(value, expected)

    def _execute(self, action: WiringAction) -> ActionOutcome:
        label = action.describe()
        shape = self._components[action.target].shape(action.kind)
        try:
            args = [self._resolve(arg) for arg in action.args]
            if action.check is not None and self._already_holds(action, args):
                logger.info(f"{label}: already satisfied")
                return ActionOutcome(label, ALREADY_SATISFIED)

            handle = self.ledger.submit_call(self._target(action.target), shape.function, args)
            confirmation = self.ledger.await_confirmation(handle, self.confirmation_timeout)
        except ConfirmationTimeout as e:
            logger.warning(f"{label}: inconclusive, {e}")
            return ActionOutcome(label, FAILED, f"inconclusive: {e}", e.tx_hash)
        except DeploymentError as e:
            logger.error(f"{label}: failed, {e}")
            return ActionOutcome(label, FAILED, str(e))

        if not confirmation.success:
            logger.error(f"{label}: failed, {confirmation.error}")
            return ActionOutcome(label, FAILED, confirmation.error, confirmation.tx_hash)

        logger.info(f"{label}: applied ({confirmation.tx_hash})")
        return ActionOutcome(label, APPLIED, tx_hash=confirmation.tx_hash)
