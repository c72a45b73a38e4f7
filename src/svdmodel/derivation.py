# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Resolution of 'derivedFrom' references in the draft device tree.

Peripherals are resolved first, in topological order of their references. Registers are resolved
afterwards so that registers copied into derived peripherals are resolved in their new scope.
Attributes set on the deriving element win over those of the derivation target.
"""

from __future__ import annotations

import copy
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ._nodes import (
    ChildNode,
    ClusterNode,
    DeviceNode,
    PeripheralNode,
    RegisterNode,
    iter_children,
    rebase_path,
)
from .builder import propagate_defaults
from .errors import SvdCycleError, SvdMissingReferenceError
from .path import NodePath

log = logging.getLogger(__name__)


def resolve_derivations(device: DeviceNode) -> None:
    """
    Merge every 'derivedFrom' target into the elements deriving from it, in place.

    :param device: Draft device.
    :raises SvdMissingReferenceError: If a reference names an element that does not exist.
    :raises SvdCycleError: If a chain of references is circular.
    """
    peripheral_count = _resolve_peripherals(device)
    register_count = _resolve_registers(device)

    log.debug(
        f"Resolved {peripheral_count} derived peripherals and {register_count} derived registers"
    )


def exclude_peripherals(device: DeviceNode, names: Iterable[str]) -> None:
    """
    Remove the peripherals with the given names from the draft device.

    A name matches a peripheral by its name. Instances of a peripheral array match both by
    their own name (e.g. "TIMER1") and by the declared name of the array (e.g. "TIMER%s").
    Must run after array expansion.
    """
    excluded = set(names)
    if not excluded:
        return

    known = {p.name for p in device.peripherals} | {
        p.array_name for p in device.peripherals if p.array_name is not None
    }
    unknown = excluded - known
    for name in sorted(unknown):
        log.warning(f"Excluded peripheral '{name}' does not exist in {device.name}")

    device.peripherals = [
        p
        for p in device.peripherals
        if p.name not in excluded and p.array_name not in excluded
    ]


def topo_sort_derived_peripherals(
    peripherals: Sequence[PeripheralNode],
) -> List[PeripheralNode]:
    """
    Topologically sort the peripherals based on 'derivedFrom' attributes using Kahn's algorithm.
    The returned list has the property that the peripheral at index i does not derive from
    any of the peripherals at indices (i + 1)..

    :param peripherals: Peripherals to sort. Every reference must name one of the peripherals.
    :raises SvdCycleError: If the references between the peripherals are circular.
    :return: Peripherals topologically sorted based on the 'derivedFrom' attribute.
    """

    sorted_peripherals: List[PeripheralNode] = []
    no_dep_peripherals: List[PeripheralNode] = []
    dep_graph: Dict[str, List[PeripheralNode]] = defaultdict(list)

    for peripheral in peripherals:
        if peripheral.derived_from is not None:
            dep_graph[peripheral.derived_from].append(peripheral)
        else:
            no_dep_peripherals.append(peripheral)

    # Pop from the front to keep the declaration order among independent peripherals
    no_dep_peripherals.reverse()

    while no_dep_peripherals:
        peripheral = no_dep_peripherals.pop()
        sorted_peripherals.append(peripheral)
        # Each peripheral has a maximum of one in-edge since they can only derive from one
        # peripheral. Therefore, once they are encountered here they have no remaining dependencies.
        no_dep_peripherals.extend(reversed(dep_graph.pop(peripheral.name, [])))

    if dep_graph:
        remaining = [p for p in peripherals if p.derived_from in dep_graph]
        raise SvdCycleError(_find_peripheral_cycle(remaining))

    return sorted_peripherals


def _find_peripheral_cycle(remaining: Sequence[PeripheralNode]) -> List[NodePath]:
    """Follow the references from one of the unsorted peripherals until a name repeats."""
    by_name = {p.name: p for p in remaining}
    chain: List[PeripheralNode] = []
    current = remaining[0]

    while not any(p is current for p in chain):
        chain.append(current)
        assert current.derived_from is not None
        current = by_name[current.derived_from]

    start = next(i for i, p in enumerate(chain) if p is current)
    return [p.path for p in chain[start:]] + [current.path]


def _resolve_peripherals(device: DeviceNode) -> int:
    by_name = {p.name: p for p in device.peripherals}

    for peripheral in device.peripherals:
        if peripheral.derived_from is None:
            continue
        if peripheral.derived_from not in by_name:
            raise SvdMissingReferenceError(peripheral.path, peripheral.derived_from)

    count = 0

    for peripheral in topo_sort_derived_peripherals(device.peripherals):
        if peripheral.derived_from is None:
            continue

        _merge_peripheral(peripheral, by_name[peripheral.derived_from])
        propagate_defaults(peripheral, device.props)
        count += 1

    return count


def _merge_peripheral(derived: PeripheralNode, base: PeripheralNode) -> None:
    if derived.base_address is None:
        derived.base_address = base.base_address
    if derived.description is None:
        derived.description = base.description
    if derived.group_name is None:
        derived.group_name = base.group_name
    if derived.version is None:
        derived.version = base.version

    derived.props = derived.props.inherit(base.props)

    if derived.address_blocks is None and base.address_blocks is not None:
        derived.address_blocks = list(base.address_blocks)

    if derived.children is None and base.children is not None:
        derived.children = copy.deepcopy(base.children)
        for child in derived.children:
            rebase_path(child, derived.path.join(child.name))

    derived.derived_from = None


# Visit states used while resolving register references
_VISITING = 1
_DONE = 2


def _resolve_registers(device: DeviceNode) -> int:
    scopes: Dict[int, List[ChildNode]] = {}
    derived: List[RegisterNode] = []

    for peripheral in device.peripherals:
        stack: List[Union[PeripheralNode, ClusterNode]] = [peripheral]
        while stack:
            parent = stack.pop()
            siblings = iter_children(parent)
            for child in siblings:
                if isinstance(child, ClusterNode):
                    stack.append(child)
                elif child.derived_from is not None:
                    scopes[id(child)] = siblings
                    derived.append(child)

    state: Dict[int, int] = {}
    targets: Dict[int, RegisterNode] = {}

    for register in derived:
        chain: List[RegisterNode] = []
        current = register

        while current.derived_from is not None and state.get(id(current)) != _DONE:
            if state.get(id(current)) == _VISITING:
                start = next(i for i, n in enumerate(chain) if n is current)
                raise SvdCycleError([n.path for n in chain[start:]] + [current.path])

            state[id(current)] = _VISITING
            chain.append(current)

            target = _lookup_register(device, scopes[id(current)], current)
            targets[id(current)] = target
            current = target

        for node in reversed(chain):
            _merge_register(node, targets[id(node)])
            state[id(node)] = _DONE

    return len(derived)


def _lookup_register(
    device: DeviceNode, siblings: Sequence[ChildNode], register: RegisterNode
) -> RegisterNode:
    """
    Find the target of a register reference, first among the siblings of the register and
    then as a dotted path starting at a peripheral.
    """
    assert register.derived_from is not None
    reference = register.derived_from

    for sibling in siblings:
        if sibling.name == reference and isinstance(sibling, RegisterNode):
            return sibling

    target = _lookup_path(device, reference)
    if target is None:
        raise SvdMissingReferenceError(register.path, reference)

    return target


def _lookup_path(device: DeviceNode, reference: str) -> Optional[RegisterNode]:
    try:
        parts: Tuple[str, ...] = NodePath.from_reference(reference).parts
    except ValueError:
        return None

    peripheral = next((p for p in device.peripherals if p.name == parts[0]), None)
    if peripheral is None or len(parts) < 2:
        return None

    node: Union[PeripheralNode, ChildNode] = peripheral
    for part in parts[1:]:
        if isinstance(node, RegisterNode):
            return None
        node = next((c for c in iter_children(node) if c.name == part), None)  # type: ignore
        if node is None:
            return None

    return node if isinstance(node, RegisterNode) else None


def _merge_register(derived: RegisterNode, base: RegisterNode) -> None:
    if derived.offset is None:
        derived.offset = base.offset
    if derived.description is None:
        derived.description = base.description

    derived.props = derived.props.inherit(base.effective_props)

    if derived.fields is None and base.fields is not None:
        derived.fields = copy.deepcopy(base.fields)
        for field in derived.fields:
            field.path = derived.path.join(field.name)

    derived.derived_from = None
