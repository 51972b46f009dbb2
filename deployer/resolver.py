"""
Dependency resolution for component descriptor sets.

Orders descriptors so that every component is deployed after the components
its constructor references. Everything here runs before the first remote call.
"""

import logging
from typing import Any, Dict, Iterable, List, Sequence

from .descriptors import ComponentDescriptor, Query, Ref, WiringAction
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _check_arg(arg: Any, owner: str, by_name: Dict[str, ComponentDescriptor], allow_query: bool):
    if isinstance(arg, Ref):
        if arg.component not in by_name:
            raise ConfigurationError(f"{owner} references unknown component '{arg.component}'")
    elif isinstance(arg, Query):
        if not allow_query:
            raise ConfigurationError(f"{owner} uses a query in constructor arguments")
        if arg.component not in by_name:
            raise ConfigurationError(f"{owner} queries unknown component '{arg.component}'")
        shape = by_name[arg.component].shape(arg.capability)
        if shape.arity != len(arg.args):
            raise ConfigurationError(
                f"{owner}: {arg.component}.{arg.capability} takes {shape.arity} "
                f"argument(s), got {len(arg.args)}"
            )
        for inner in arg.args:
            _check_arg(inner, owner, by_name, allow_query)


def _check_action(action: WiringAction, by_name: Dict[str, ComponentDescriptor]):
    label = action.describe()
    target = by_name.get(action.target)
    if target is None:
        raise ConfigurationError(f"{label} targets unknown component '{action.target}'")

    shape = target.shape(action.kind)
    if shape.arity != len(action.args):
        raise ConfigurationError(
            f"{label}: {shape.function} takes {shape.arity} argument(s), got {len(action.args)}"
        )
    for arg in action.args:
        _check_arg(arg, label, by_name, allow_query=True)

    if action.check is not None:
        check_args = action.args if action.check.args is None else action.check.args
        check_shape = target.shape(action.check.capability)
        if check_shape.arity != len(check_args):
            raise ConfigurationError(
                f"{label}: check {check_shape.function} takes {check_shape.arity} "
                f"argument(s), got {len(check_args)}"
            )
        for arg in check_args:
            _check_arg(arg, label, by_name, allow_query=True)
        _check_arg(action.check.expect, label, by_name, allow_query=True)


def validate(descriptors: Sequence[ComponentDescriptor]) -> Dict[str, ComponentDescriptor]:
    """
    Check a descriptor set for structural errors.

    Returns:
        Mapping of component name to descriptor

    Raises:
        ConfigurationError: duplicate names, unknown references, undeclared
            capabilities or arity mismatches
    """
    by_name: Dict[str, ComponentDescriptor] = {}
    for descriptor in descriptors:
        if not descriptor.name:
            raise ConfigurationError("Component descriptor without a name")
        if descriptor.name in by_name:
            raise ConfigurationError(f"Duplicate component name '{descriptor.name}'")
        by_name[descriptor.name] = descriptor

    for descriptor in descriptors:
        for arg in descriptor.args:
            _check_arg(arg, descriptor.name, by_name, allow_query=False)
        for action in descriptor.wiring:
            _check_action(action, by_name)

    return by_name


def _find_cycle(remaining: List[ComponentDescriptor], by_name: Dict[str, ComponentDescriptor]) -> List[str]:
    """Walk references from the first blocked descriptor until a name repeats."""
    pending = {d.name for d in remaining}
    path: List[str] = []
    current = remaining[0].name
    while current not in path:
        path.append(current)
        current = next(ref for ref in by_name[current].references() if ref in pending)
    return path[path.index(current):] + [current]


def resolve_order(descriptors: Sequence[ComponentDescriptor]) -> List[ComponentDescriptor]:
    """
    Topologically sort descriptors by constructor references.

    Among several ready descriptors the one declared first wins, so the order
    is deterministic for a given input.

    Raises:
        ConfigurationError: the set is malformed or contains a reference cycle
    """
    by_name = validate(descriptors)

    ordered: List[ComponentDescriptor] = []
    placed = set()
    remaining = list(descriptors)
    while remaining:
        ready = next(
            (d for d in remaining if all(ref in placed for ref in d.references())),
            None,
        )
        if ready is None:
            cycle = _find_cycle(remaining, by_name)
            raise ConfigurationError(f"Reference cycle: {' -> '.join(cycle)}")
        ordered.append(ready)
        placed.add(ready.name)
        remaining.remove(ready)

    logger.info(f"Deployment order: {', '.join(d.name for d in ordered)}")
    return ordered


def wiring_actions(descriptors: Iterable[ComponentDescriptor]) -> List[WiringAction]:
    """All wiring actions in declaration order"""
    return [action for descriptor in descriptors for action in descriptor.wiring]
