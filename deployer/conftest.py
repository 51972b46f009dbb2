"""
Shared fixtures: an in-memory ledger that records every call it receives.
"""

import pytest

from deployer.errors import ConfirmationTimeout, SubmissionError
from deployer.ledger import Confirmation, LedgerClient, PendingHandle

DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


def role(name):
    return name.encode()


def _grant(role_name):
    def apply(ledger, target, args):
        ledger.set_state(target.address, "hasRole", (role(role_name), args[0]), True)
    return apply


def _append(query):
    def apply(ledger, target, args):
        current = list(ledger.query_state_value(target.address, query, ()))
        current.append(args[0])
        ledger.set_state(target.address, query, (), current)
    return apply


EFFECTS = {
    "grantRole": lambda ledger, target, args: ledger.set_state(target.address, "hasRole", (args[0], args[1]), True),
    "addAIController": _grant("AI_CONTROLLER_ROLE"),
    "setAIController": _grant("AI_CONTROLLER_ROLE"),
    "addOracleProvider": _grant("ORACLE_PROVIDER_ROLE"),
    "addModelCreator": _grant("MODEL_CREATOR_ROLE"),
    "addAsset": lambda ledger, target, args: ledger.set_state(
        target.address, "assets", (args[0],), (args[1], args[2], True)),
    "addSymbol": _append("getAllSymbols"),
    "addInsightType": _append("getAllInsightTypes"),
}

DEFAULTS = {
    "hasRole": False,
    "assets": ("", "", False),
    "getAllSymbols": [],
    "getAllInsightTypes": [],
}


class FakeLedger(LedgerClient):
    """
    Deterministic ledger double.

    Contract addresses are handed out sequentially. Failures are injected per
    artifact (creation) or per function name (calls).
    """

    def __init__(self, chain_id=31337, balance=10 ** 21):
        self.calls = []
        self.state = {}
        self.reject_create = set()
        self.timeout_create = set()
        self.revert_create = set()
        self.reject_call = set()
        self.timeout_call = set()
        self.revert_call = set()
        self._chain_id = chain_id
        self._balance = balance
        self._pending = {}
        self._counter = 0

    @property
    def deployer_address(self):
        return DEPLOYER

    def chain_id(self):
        self.calls.append(("chain_id",))
        return self._chain_id

    def balance(self):
        self.calls.append(("balance",))
        return self._balance

    def has_code(self, address):
        return any(kind == "create" and addr == address for kind, addr, _, _ in self._pending.values())

    def set_state(self, address, query, args, value):
        self.state[(address, query, tuple(args))] = value

    def query_state_value(self, address, query, args):
        if query.endswith("_ROLE") and not args:
            return role(query)
        return self.state.get((address, query, tuple(args)), DEFAULTS.get(query))

    def _handle(self, kind, address, description, payload):
        self._counter += 1
        tx_hash = f"0x{self._counter:064x}"
        self._pending[tx_hash] = (kind, address, description, payload)
        return PendingHandle(tx_hash, description)

    def submit_create(self, artifact, args):
        self.calls.append(("create", artifact, list(args)))
        if artifact in self.reject_create:
            raise SubmissionError(f"Creating {artifact} rejected: insufficient funds")
        address = f"0x{len([c for c in self.calls if c[0] == 'create']):040x}"
        return self._handle("create", address, artifact, None)

    def submit_call(self, target, action, args):
        self.calls.append(("call", target.artifact, action, list(args)))
        if action in self.reject_call:
            raise SubmissionError(f"{target.artifact}.{action} rejected: execution reverted")
        return self._handle("call", target.address, action, (target, list(args)))

    def await_confirmation(self, handle, timeout):
        kind, address, description, payload = self._pending[handle.tx_hash]
        if kind == "create":
            if description in self.timeout_create:
                raise ConfirmationTimeout(handle.tx_hash, timeout)
            if description in self.revert_create:
                return Confirmation(False, handle.tx_hash, error="transaction reverted")
            return Confirmation(True, handle.tx_hash, address=address, block_number=self._counter)

        if description in self.timeout_call:
            raise ConfirmationTimeout(handle.tx_hash, timeout)
        if description in self.revert_call:
            return Confirmation(False, handle.tx_hash, error="transaction reverted")
        target, args = payload
        effect = EFFECTS.get(description)
        if effect is not None:
            effect(self, target, args)
        return Confirmation(True, handle.tx_hash, block_number=self._counter)

    def query_state(self, target, query, args):
        self.calls.append(("query", target.artifact, query, list(args)))
        return self.query_state_value(target.address, query, args)

    def mutating_calls(self):
        return [c for c in self.calls if c[0] in ("create", "call")]


@pytest.fixture
def ledger():
    return FakeLedger()
