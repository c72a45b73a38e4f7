# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Mutable draft representation of a device used while the device is being resolved.

The draft tree is produced by the builder and then transformed in place by each resolution
stage. Attributes that may be inherited through 'derivedFrom' are Optional, where None means
that the attribute was not given on the element.
"""

from __future__ import annotations

import dataclasses as dc
from typing import Dict, List, Optional, Set, Union

from .bindings import Access, BitRange, DimensionSpec, RegisterProperties
from .device import AddressBlock, Interrupt
from .path import NodePath


@dc.dataclass
class FieldNode:
    """Draft of a field element."""

    name: str
    path: NodePath
    bit_range: Optional[BitRange] = None
    access: Optional[Access] = None
    description: Optional[str] = None
    enums: Dict[str, int] = dc.field(default_factory=dict)
    dim: Optional[DimensionSpec] = None


@dc.dataclass
class _ContainerNode:
    """Attributes common to peripheral, cluster and register drafts."""

    name: str
    path: NodePath
    description: Optional[str] = None

    # Register properties given on the element itself
    props: RegisterProperties = RegisterProperties()

    # Register properties inherited from the ancestors of the element
    defaults: RegisterProperties = RegisterProperties()

    dim: Optional[DimensionSpec] = None
    derived_from: Optional[str] = None

    # Name of the element given in the alternate* element, if any
    alternate: Optional[str] = None

    # Names of linked alternate siblings, filled in by the alternate resolver
    alternates: Set[str] = dc.field(default_factory=set)

    # Absolute address, filled in by the address calculator
    address: Optional[int] = None

    @property
    def effective_props(self) -> RegisterProperties:
        """Register properties of the element after inheriting from its ancestors."""
        return self.props.inherit(self.defaults)


@dc.dataclass
class RegisterNode(_ContainerNode):
    """Draft of a register element."""

    offset: Optional[int] = None

    # None if the register has no fields element
    fields: Optional[List[FieldNode]] = None


@dc.dataclass
class ClusterNode(_ContainerNode):
    """Draft of a cluster element."""

    offset: Optional[int] = None
    children: List[ChildNode] = dc.field(default_factory=list)

    # Number of bytes spanned by the cluster, filled in by the address calculator
    size: int = 0


@dc.dataclass
class PeripheralNode(_ContainerNode):
    """Draft of a peripheral element."""

    base_address: Optional[int] = None
    group_name: Optional[str] = None
    version: Optional[str] = None

    # None if the peripheral has no addressBlock elements
    address_blocks: Optional[List[AddressBlock]] = None
    interrupts: List[Interrupt] = dc.field(default_factory=list)

    # Declared name of the peripheral array this peripheral is an instance of
    array_name: Optional[str] = None

    # None if the peripheral has no registers element
    children: Optional[List[ChildNode]] = None


@dc.dataclass
class DeviceNode:
    """Draft of the device element."""

    name: str
    path: NodePath
    version: Optional[str] = None
    vendor: Optional[str] = None
    description: Optional[str] = None
    address_unit_bits: int = 8
    width: Optional[int] = None
    props: RegisterProperties = RegisterProperties()
    peripherals: List[PeripheralNode] = dc.field(default_factory=list)


ChildNode = Union[ClusterNode, RegisterNode]
DraftNode = Union[PeripheralNode, ClusterNode, RegisterNode]


def iter_children(node: Union[PeripheralNode, ClusterNode]) -> List[ChildNode]:
    """:return: Direct register/cluster children of the node, or an empty list."""
    return node.children if node.children is not None else []


def rebase_path(node: Union[DraftNode, FieldNode], path: NodePath) -> None:
    """Move the node and all its descendants to a new path."""
    node.path = path

    if isinstance(node, RegisterNode):
        for field in node.fields or ():
            rebase_path(field, path.join(field.name))
    elif isinstance(node, (ClusterNode, PeripheralNode)):
        for child in iter_children(node):
            rebase_path(child, path.join(child.name))
