# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Address calculation and validation of the draft device tree, and conversion of the draft into
the immutable device model.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, NamedTuple, Optional, Tuple

from ._device import NameMap
from ._nodes import (
    ChildNode,
    ClusterNode,
    DeviceNode,
    DraftNode,
    FieldNode,
    PeripheralNode,
    RegisterNode,
    iter_children,
)
from .bindings import Access
from .device import Cluster, Device, Field, Interrupt, Peripheral, Register, RegisterUnion
from .errors import SvdOverlapError, SvdSchemaError

log = logging.getLogger(__name__)


def calculate_addresses(device: DeviceNode, *, ignore_overlaps: bool = False) -> None:
    """
    Compute the absolute address of every peripheral, cluster and register in the draft device
    and check that no two sibling elements overlap, unless they are alternates of each other.

    :param device: Draft device with alternates resolved.
    :param ignore_overlaps: Log overlapping elements as warnings instead of raising an error.
    :raises SvdSchemaError: If an address, size or reset value is missing, or a field does not
                            fit in its register.
    :raises SvdOverlapError: If two sibling elements overlap.
    """
    visit_order: List[DraftNode] = []
    queue: Deque[Tuple[int, DraftNode]] = deque()

    for peripheral in device.peripherals:
        if peripheral.base_address is None:
            raise SvdSchemaError(peripheral.path, "Peripheral has no base address")
        queue.append((peripheral.base_address, peripheral))

    # Breadth first, so that the parent address is always known before its children
    while queue:
        address, node = queue.popleft()
        node.address = address
        visit_order.append(node)

        if isinstance(node, RegisterNode):
            continue

        for child in iter_children(node):
            if child.offset is None:
                raise SvdSchemaError(child.path, "Element has no address offset")
            queue.append((address + child.offset, child))

    # Children are visited after their parents, so walking backwards sizes clusters bottom-up
    for node in reversed(visit_order):
        if isinstance(node, RegisterNode):
            _check_register(node)
        elif isinstance(node, ClusterNode):
            node.size = _cluster_size(node)

    _check_overlaps(
        _peripheral_extents(device.peripherals), ignore_overlaps=ignore_overlaps
    )
    for node in visit_order:
        if not isinstance(node, RegisterNode):
            _check_overlaps(
                _child_extents(iter_children(node)), ignore_overlaps=ignore_overlaps
            )

    log.debug(f"Calculated addresses of {len(visit_order)} elements")


def freeze_device(device: DeviceNode) -> Device:
    """
    Convert the resolved draft device into the immutable device model.

    :param device: Draft device with addresses calculated.
    :return: Immutable device.
    """
    peripherals = NameMap((p.name, _freeze_peripheral(p)) for p in device.peripherals)

    return Device(
        name=device.name,
        version=device.version,
        vendor=device.vendor,
        description=device.description,
        address_unit_bits=device.address_unit_bits,
        width=device.width,
        properties=device.props,
        peripherals=peripherals,
        interrupts=_collect_interrupts(peripherals.values()),
    )


def register_size(node: RegisterNode) -> int:
    """:return: Bit width of the register, inherited if not set on the register itself."""
    size = node.effective_props.size
    if size is None:
        raise SvdSchemaError(node.path, "Register has no size, and no size is inherited")
    if size <= 0:
        raise SvdSchemaError(node.path, f"Invalid register size {size}")
    return size


def register_access(node: RegisterNode) -> Access:
    """
    :return: Access of the register. Without an explicit or inherited access, the access shared by
             all of the register's fields is used, falling back to read-write.
    """
    access = node.effective_props.access
    if access is not None:
        return access

    field_access = {field.access for field in node.fields or ()}
    if len(field_access) == 1:
        (shared,) = field_access
        if shared is not None:
            return shared

    return Access.READ_WRITE


def _check_register(node: RegisterNode) -> None:
    size = register_size(node)

    if node.effective_props.reset_value is None:
        raise SvdSchemaError(
            node.path, "Register has no reset value, and no reset value is inherited"
        )

    for field in node.fields or ():
        assert field.bit_range is not None
        if field.bit_range.msb >= size:
            raise SvdSchemaError(
                field.path,
                f"Field bits {field.bit_range.msb}:{field.bit_range.offset} do not fit in "
                f"the {size} bit register",
            )


def _address(node: DraftNode) -> int:
    assert node.address is not None
    return node.address


def _span_end(node: ChildNode) -> int:
    """:return: The address directly after the last byte occupied by the element."""
    if isinstance(node, RegisterNode):
        return _address(node) + (register_size(node) + 7) // 8

    return _address(node) + node.size


def _cluster_size(node: ClusterNode) -> int:
    """:return: Number of bytes from the cluster address to the end of its last descendant."""
    end = max((_span_end(child) for child in node.children), default=_address(node))
    return end - _address(node)


class _Extent(NamedTuple):
    """Address range occupied by an element."""

    node: DraftNode
    address_range: range


def _peripheral_extents(peripherals: Iterable[PeripheralNode]) -> List[_Extent]:
    extents: List[_Extent] = []

    for peripheral in peripherals:
        address = _address(peripheral)

        if peripheral.address_blocks:
            for block in peripheral.address_blocks:
                extents.append(_Extent(peripheral, block.address_range(address)))
            continue

        children = iter_children(peripheral)
        if children:
            start = min(_address(c) for c in children)
            end = max(_span_end(c) for c in children)
            extents.append(_Extent(peripheral, range(start, end)))

    return extents


def _child_extents(children: Iterable[ChildNode]) -> List[_Extent]:
    return [_Extent(child, range(_address(child), _span_end(child))) for child in children]


def _check_overlaps(extents: List[_Extent], *, ignore_overlaps: bool) -> None:
    """Sweep over the extents in address order, comparing each to the ones still open."""
    active: List[_Extent] = []

    for extent in sorted(
        (e for e in extents if len(e.address_range) > 0),
        key=lambda e: (e.address_range.start, e.address_range.stop),
    ):
        start = extent.address_range.start
        active = [a for a in active if a.address_range.stop > start]

        for other in active:
            if other.node is extent.node or extent.node.name in other.node.alternates:
                continue

            error = SvdOverlapError(
                other.node.path,
                other.address_range,
                extent.node.path,
                extent.address_range,
            )
            if not ignore_overlaps:
                raise error
            log.warning(str(error))

        active.append(extent)


def _freeze_peripheral(node: PeripheralNode) -> Peripheral:
    return Peripheral(
        name=node.name,
        path=node.path,
        resolved_address=_address(node),
        description=node.description,
        group_name=node.group_name,
        version=node.version,
        alternate_peripheral=node.alternate,
        alternates=frozenset(node.alternates),
        address_blocks=tuple(node.address_blocks or ()),
        interrupts=tuple(node.interrupts),
        properties=node.effective_props,
        registers=_freeze_children(iter_children(node)),
    )


def _freeze_children(children: Iterable[ChildNode]) -> NameMap[RegisterUnion]:
    frozen: List[Tuple[str, RegisterUnion]] = []

    for child in children:
        if isinstance(child, RegisterNode):
            frozen.append((child.name, _freeze_register(child)))
        else:
            frozen.append((child.name, _freeze_cluster(child)))

    return NameMap(frozen)


def _freeze_cluster(node: ClusterNode) -> Cluster:
    assert node.offset is not None

    return Cluster(
        name=node.name,
        path=node.path,
        offset=node.offset,
        resolved_address=_address(node),
        size=node.size,
        description=node.description,
        alternate_cluster=node.alternate,
        alternates=frozenset(node.alternates),
        registers=_freeze_children(node.children),
    )


def _freeze_register(node: RegisterNode) -> Register:
    assert node.offset is not None

    props = node.effective_props
    size = register_size(node)
    access = register_access(node)
    reset_value = props.reset_value
    assert reset_value is not None
    reset_mask = props.reset_mask if props.reset_mask is not None else (1 << size) - 1

    return Register(
        name=node.name,
        path=node.path,
        offset=node.offset,
        resolved_address=_address(node),
        size=size,
        access=access,
        reset_value=reset_value,
        reset_mask=reset_mask,
        protection=props.protection,
        description=node.description,
        alternate_register=node.alternate,
        alternates=frozenset(node.alternates),
        fields=NameMap((f.name, _freeze_field(f, access)) for f in node.fields or ()),
    )


def _freeze_field(node: FieldNode, default_access: Access) -> Field:
    assert node.bit_range is not None

    return Field(
        name=node.name,
        path=node.path,
        bit_range=node.bit_range,
        access=node.access if node.access is not None else default_access,
        description=node.description,
        enums=NameMap(node.enums.items()),
    )


def _collect_interrupts(peripherals: Iterable[Peripheral]) -> NameMap[Interrupt]:
    """Gather the interrupts of all peripherals, keeping the first definition of each name."""
    interrupts: Dict[str, Interrupt] = {}

    for peripheral in peripherals:
        for interrupt in peripheral.interrupts:
            existing: Optional[Interrupt] = interrupts.get(interrupt.name)
            if existing is None:
                interrupts[interrupt.name] = interrupt
            elif existing.value == interrupt.value:
                log.debug(
                    f"Interrupt {interrupt.name} is shared by {existing.peripheral} "
                    f"and {interrupt.peripheral}"
                )
            else:
                log.warning(
                    f"Interrupt {interrupt.name} of {interrupt.peripheral} has value "
                    f"{interrupt.value}, but was already defined by {existing.peripheral} "
                    f"with value {existing.value}; keeping the first definition"
                )

    return NameMap(interrupts.items())

