# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Linking of elements that are alternate interpretations of the same address region.

Links are symmetric and transitive within a scope: if B alternates A and C alternates A, then
A, B and C are all linked to each other. Peripherals link to peripherals, clusters to sibling
clusters and registers to sibling registers.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Union

from ._nodes import (
    ClusterNode,
    DeviceNode,
    DraftNode,
    PeripheralNode,
    RegisterNode,
    iter_children,
)
from .errors import SvdMissingReferenceError

log = logging.getLogger(__name__)


def resolve_alternates(device: DeviceNode) -> None:
    """
    Fill in the alternates of every element in the draft device.

    :param device: Draft device with arrays expanded.
    :raises SvdMissingReferenceError: If an alternate reference names no element in its scope.
    """
    count = _link_scope(device.peripherals)

    stack: List[Union[PeripheralNode, ClusterNode]] = list(device.peripherals)
    while stack:
        parent = stack.pop()
        children = iter_children(parent)
        count += _link_scope(children)
        stack.extend(c for c in children if isinstance(c, ClusterNode))

    log.debug(f"Linked {count} alternate elements")


def _link_scope(nodes: Sequence[DraftNode]) -> int:
    """Link the alternates among a set of sibling elements, returning the number of links."""
    by_name: Dict[str, DraftNode] = {node.name: node for node in nodes}
    groups = _UnionFind()
    count = 0

    for node in nodes:
        if node.alternate is None:
            continue

        target = by_name.get(node.alternate)
        if target is None or type(target) is not type(node):
            raise SvdMissingReferenceError(node.path, node.alternate, kind=_kind(node))

        if target is not node:
            groups.union(node.name, target.name)
            count += 1

    for members in groups.groups().values():
        for name in members:
            by_name[name].alternates = set(members) - {name}

    return count


def _kind(node: DraftNode) -> str:
    if isinstance(node, PeripheralNode):
        return "alternatePeripheral"
    if isinstance(node, RegisterNode):
        return "alternateRegister"
    return "alternateCluster"


class _UnionFind:
    """Disjoint sets of element names."""

    def __init__(self) -> None:
        self._parent: Dict[str, str] = {}

    def find(self, name: str) -> str:
        root = self._parent.setdefault(name, name)
        while root != self._parent[root]:
            root = self._parent[root]
        # Path compression
        while name != root:
            self._parent[name], name = root, self._parent[name]
        return root

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self._parent[root_b] = root_a

    def groups(self) -> Dict[str, List[str]]:
        result: Dict[str, List[str]] = {}
        for name in self._parent:
            result.setdefault(self.find(name), []).append(name)
        return result
