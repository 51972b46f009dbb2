#!/usr/bin/env python3
"""
Component descriptors for the Silica protocol deployment.

A descriptor names a deployable component, the constructor arguments it needs
(literal values or references to other components' addresses) and the wiring
actions that run once every component is on chain. Each component also
declares its capabilities: the exact call shapes the wiring engine may use
against it.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import ConfigurationError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class Literal:
    """A literal argument value"""
    value: Any


@dataclass(frozen=True)
class Ref:
    """The confirmed address of another component"""
    component: str


@dataclass(frozen=True)
class Deployer:
    """The deploying account's address"""


@dataclass(frozen=True)
class Query:
    """A value read from a deployed component (role identifiers and the like)"""
    component: str
    capability: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class CallShape:
    """A fixed, known function signature exposed by a component"""
    function: str
    arity: int


@dataclass(frozen=True)
class StateCheck:
    """
    Read that tells whether a wiring action already holds.

    Args:
        capability: read-only capability on the action's target
        args: query arguments; None reuses the action's own arguments
        expect: value the query must return (argument specs are resolved)
        field: index into a struct-shaped result before comparing
        contains: the result is a collection that must contain ``expect``
    """
    capability: str
    args: Optional[Tuple[Any, ...]] = None
    expect: Any = True
    field: Optional[int] = None
    contains: bool = False


@dataclass(frozen=True)
class WiringAction:
    """One permission or linkage mutation on a deployed component"""
    target: str
    kind: str
    args: Tuple[Any, ...] = ()
    check: Optional[StateCheck] = None

    def describe(self) -> str:
        rendered = ", ".join(describe_arg(arg) for arg in self.args)
        return f"{self.target}.{self.kind}({rendered})"


@dataclass(frozen=True)
class ComponentDescriptor:
    """Static metadata for one deployable component"""
    name: str
    args: Tuple[Any, ...] = ()
    interface: Dict[str, CallShape] = field(default_factory=dict)
    interface_version: str = "1"
    wiring: Tuple[WiringAction, ...] = ()
    artifact: Optional[str] = None

    @property
    def artifact_name(self) -> str:
        return self.artifact or self.name

    def references(self) -> List[str]:
        """Components whose addresses the constructor needs"""
        return [arg.component for arg in self.args if isinstance(arg, Ref)]

    def shape(self, capability: str) -> CallShape:
        try:
            return self.interface[capability]
        except KeyError:
            raise ConfigurationError(
                f"{self.name} (interface v{self.interface_version}) "
                f"does not declare capability '{capability}'"
            ) from None


def describe_arg(arg: Any) -> str:
    if isinstance(arg, Ref):
        return f"@{arg.component}"
    if isinstance(arg, Deployer):
        return "@deployer"
    if isinstance(arg, Query):
        return f"{arg.component}.{arg.capability}()"
    if isinstance(arg, Literal):
        return repr(arg.value)
    return repr(arg)


def resolve_arg(arg: Any, addresses: Dict[str, str], deployer: str,
                query: Optional[Callable[[Query], Any]] = None) -> Any:
    """Turn an argument descriptor into the concrete value sent to the ledger."""
    if isinstance(arg, Literal):
        return arg.value
    if isinstance(arg, Ref):
        if arg.component not in addresses:
            raise ConfigurationError(f"No confirmed address for '{arg.component}'")
        return addresses[arg.component]
    if isinstance(arg, Deployer):
        return deployer
    if isinstance(arg, Query):
        if query is None:
            raise ConfigurationError(f"Query {describe_arg(arg)} is only allowed in wiring actions")
        return query(arg)
    # Bare python values are accepted as literals
    return arg


def resolve_args(args: Sequence[Any], addresses: Dict[str, str], deployer: str,
                 query: Optional[Callable[[Query], Any]] = None) -> List[Any]:
    return [resolve_arg(arg, addresses, deployer, query) for arg in args]


# --- Silica protocol component set ---

ACCESS_CONTROL = {
    "has_role": CallShape("hasRole", 2),
    "grant_role": CallShape("grantRole", 2),
    "default_admin_role": CallShape("DEFAULT_ADMIN_ROLE", 0),
}

HAS_ROLE = StateCheck("has_role")


def silica_components(min_delay: int = 86400) -> List[ComponentDescriptor]:
    """
    The Silica component set in declaration order.

    Args:
        min_delay: timelock minimum delay in seconds (48h on mainnet, 24h elsewhere)

    Returns:
        List of component descriptors
    """
    controller = Ref("SilicaAIController")

    token = ComponentDescriptor(
        name="SilicaToken",
        interface={
            **ACCESS_CONTROL,
            "ai_controller_role": CallShape("AI_CONTROLLER_ROLE", 0),
            "add_ai_controller": CallShape("addAIController", 1),
        },
        wiring=(
            WiringAction(
                "SilicaToken", "add_ai_controller", (controller,),
                StateCheck("has_role", (Query("SilicaToken", "ai_controller_role"), controller)),
            ),
        ),
    )

    def timelock_role(capability):
        return Query("SilicaTimelock", capability)

    timelock = ComponentDescriptor(
        name="SilicaTimelock",
        args=(Literal(min_delay), Literal([]), Literal([])),
        interface={
            **ACCESS_CONTROL,
            "proposer_role": CallShape("PROPOSER_ROLE", 0),
            "executor_role": CallShape("EXECUTOR_ROLE", 0),
        },
        wiring=(
            WiringAction("SilicaTimelock", "grant_role",
                         (timelock_role("proposer_role"), controller), HAS_ROLE),
            WiringAction("SilicaTimelock", "grant_role",
                         (timelock_role("executor_role"), Literal(ZERO_ADDRESS)), HAS_ROLE),
            WiringAction("SilicaTimelock", "grant_role",
                         (timelock_role("default_admin_role"), Ref("SilicaTimelock")), HAS_ROLE),
        ),
    )

    treasury = ComponentDescriptor(
        name="SilicaTreasury",
        args=(Ref("SilicaTimelock"),),
        interface={
            **ACCESS_CONTROL,
            "ai_controller_role": CallShape("AI_CONTROLLER_ROLE", 0),
            "set_ai_controller": CallShape("setAIController", 1),
            "add_asset": CallShape("addAsset", 3),
            "assets": CallShape("assets", 1),
        },
        wiring=(
            WiringAction(
                "SilicaTreasury", "set_ai_controller", (controller,),
                StateCheck("has_role", (Query("SilicaTreasury", "ai_controller_role"), controller)),
            ),
            WiringAction(
                "SilicaTreasury", "add_asset",
                (Literal(ZERO_ADDRESS), Literal("Ethereum"), Literal("native")),
                StateCheck("assets", (Literal(ZERO_ADDRESS),), expect=True, field=2),
            ),
            WiringAction(
                "SilicaTreasury", "add_asset",
                (Ref("SilicaToken"), Literal("Silica"), Literal("governance")),
                StateCheck("assets", (Ref("SilicaToken"),), expect=True, field=2),
            ),
        ),
    )

    symbols = ("ETH/USD", "BTC/USD")
    insight_types = ("market_prediction", "treasury_management", "governance_proposal")
    oracle = ComponentDescriptor(
        name="SilicaAIOracle",
        interface={
            **ACCESS_CONTROL,
            "oracle_provider_role": CallShape("ORACLE_PROVIDER_ROLE", 0),
            "add_oracle_provider": CallShape("addOracleProvider", 1),
            "add_symbol": CallShape("addSymbol", 1),
            "all_symbols": CallShape("getAllSymbols", 0),
            "add_insight_type": CallShape("addInsightType", 1),
            "all_insight_types": CallShape("getAllInsightTypes", 0),
        },
        wiring=(
            WiringAction(
                "SilicaAIOracle", "add_oracle_provider", (controller,),
                StateCheck("has_role", (Query("SilicaAIOracle", "oracle_provider_role"), controller)),
            ),
        ) + tuple(
            WiringAction("SilicaAIOracle", "add_symbol", (Literal(symbol),),
                         StateCheck("all_symbols", (), expect=symbol, contains=True))
            for symbol in symbols
        ) + tuple(
            WiringAction("SilicaAIOracle", "add_insight_type", (Literal(kind),),
                         StateCheck("all_insight_types", (), expect=kind, contains=True))
            for kind in insight_types
        ),
    )

    ai_controller = ComponentDescriptor(
        name="SilicaAIController",
        args=(Ref("SilicaToken"), Ref("SilicaTreasury")),
    )

    def model_creator(account):
        return WiringAction(
            "SilicaModelRegistry", "add_model_creator", (account,),
            StateCheck("has_role", (Query("SilicaModelRegistry", "model_creator_role"), account)),
        )

    registry = ComponentDescriptor(
        name="SilicaModelRegistry",
        interface={
            **ACCESS_CONTROL,
            "model_creator_role": CallShape("MODEL_CREATOR_ROLE", 0),
            "add_model_creator": CallShape("addModelCreator", 1),
        },
        wiring=(model_creator(controller), model_creator(Ref("SilicaExecutionEngine"))),
    )

    engine = ComponentDescriptor(
        name="SilicaExecutionEngine",
        args=(Ref("SilicaModelRegistry"), Ref("SilicaToken"), Ref("SilicaTreasury")),
    )

    return [token, timelock, treasury, oracle, ai_controller, registry, engine]


def deployment_parameters(descriptors: Sequence[ComponentDescriptor]) -> Dict[str, List[Any]]:
    """Literal constructor parameters per component, recorded in the manifest"""
    return {
        d.name: [arg.value for arg in d.args if isinstance(arg, Literal)]
        for d in descriptors
        if any(isinstance(arg, Literal) for arg in d.args)
    }
