# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Construction of the draft device tree from the SVD element bindings.

The builder copies what is written in the document into draft nodes and propagates inherited
register properties (size, access, protection, reset value and reset mask) down the tree.
It does not resolve 'derivedFrom' references, expand arrays or link alternates; those markers are
left on the draft nodes for the later stages.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, TypeVar, Union

from . import bindings
from ._bindings import normalize_text
from ._nodes import (
    ChildNode,
    ClusterNode,
    DeviceNode,
    FieldNode,
    PeripheralNode,
    RegisterNode,
    iter_children,
)
from .bindings import AddressBlockUsage, DimensionSpec, RegisterProperties
from .device import AddressBlock, Interrupt
from .errors import SvdSchemaError
from .path import NodePath

log = logging.getLogger(__name__)

T = TypeVar("T")


def build_device(element: bindings.DeviceElement) -> DeviceNode:
    """
    Build the draft device tree.

    :param element: Root element of the SVD document.
    :raises SvdSchemaError: If a required element is missing or a value is malformed.
    :return: Draft device with inherited register properties propagated.
    """
    name = _read(None, lambda: element.name)
    if not name:
        raise SvdSchemaError(None, "Device is missing the required 'name' element")

    name = name.strip()
    path = NodePath(name)
    address_unit_bits = _read(path, lambda: element.address_unit_bits)

    if address_unit_bits is not None and address_unit_bits != 8:
        raise SvdSchemaError(
            path,
            f"addressUnitBits is {address_unit_bits}, only byte-addressable devices are supported",
        )

    device = DeviceNode(
        name=name,
        path=path,
        version=_read(path, lambda: element.version),
        vendor=_read(path, lambda: element.vendor),
        description=normalize_text(_read(path, lambda: element.description)),
        width=_read(path, lambda: element.width),
        props=_read(path, lambda: element.register_properties),
    )

    seen: Dict[str, PeripheralNode] = {}

    for peripheral_element in element.peripherals:
        peripheral = _build_peripheral(peripheral_element, device.path)
        if peripheral.name in seen:
            raise SvdSchemaError(
                peripheral.path, f"Duplicate peripheral name '{peripheral.name}'"
            )
        seen[peripheral.name] = peripheral
        device.peripherals.append(peripheral)

    for peripheral in device.peripherals:
        propagate_defaults(peripheral, device.props)

    log.debug(f"Built {len(device.peripherals)} peripherals for device {device.name}")

    return device


def propagate_defaults(
    node: Union[PeripheralNode, ChildNode], defaults: RegisterProperties
) -> None:
    """
    Set the inherited register properties of the node and all its descendants.

    :param node: Root of the subtree to update.
    :param defaults: Effective register properties of the parent of node.
    """
    stack: List[Union[PeripheralNode, ChildNode]] = [node]
    node.defaults = defaults

    while stack:
        parent = stack.pop()
        if isinstance(parent, RegisterNode):
            continue

        parent_props = parent.effective_props
        for child in iter_children(parent):
            child.defaults = parent_props
            stack.append(child)


def _build_peripheral(
    element: bindings.PeripheralElement, parent_path: NodePath
) -> PeripheralNode:
    name = _required_name(element, parent_path, "peripheral")
    path = parent_path.join(name)
    derived_from = _read(path, lambda: element.derived_from)
    base_address = _read(path, lambda: element.base_address)

    if base_address is None and derived_from is None:
        raise SvdSchemaError(path, "Peripheral is missing the required 'baseAddress' element")

    address_blocks: Optional[List[AddressBlock]] = None
    for block_element in element.address_blocks:
        if address_blocks is None:
            address_blocks = []
        address_blocks.append(_build_address_block(block_element, path))

    interrupts = [_build_interrupt(e, path, name) for e in element.interrupts]

    children: Optional[List[ChildNode]] = None
    child_elements = element.registers
    if child_elements is not None:
        children = _build_children(child_elements, path)

    return PeripheralNode(
        name=name,
        path=path,
        description=normalize_text(_read(path, lambda: element.description)),
        props=_read(path, lambda: element.register_properties),
        dim=_dimension(element, path),
        derived_from=derived_from,
        alternate=_read(path, lambda: element.alternate_peripheral),
        base_address=base_address,
        group_name=_read(path, lambda: element.group_name),
        version=_read(path, lambda: element.version),
        address_blocks=address_blocks,
        interrupts=interrupts,
        children=children,
    )


def _build_children(
    elements: Iterable[Union[bindings.RegisterElement, bindings.ClusterElement]],
    parent_path: NodePath,
) -> List[ChildNode]:
    children: List[ChildNode] = []
    seen: Dict[str, ChildNode] = {}

    for element in elements:
        child: ChildNode
        if isinstance(element, bindings.ClusterElement):
            child = _build_cluster(element, parent_path)
        else:
            child = _build_register(element, parent_path)

        if child.name in seen:
            raise SvdSchemaError(child.path, f"Duplicate element name '{child.name}'")
        seen[child.name] = child
        children.append(child)

    return children


def _build_cluster(element: bindings.ClusterElement, parent_path: NodePath) -> ClusterNode:
    name = _required_name(element, parent_path, "cluster")
    path = parent_path.join(name)

    if _read(path, lambda: element.derived_from) is not None:
        raise SvdSchemaError(
            path, "'derivedFrom' is only supported on peripherals and registers"
        )

    offset = _read(path, lambda: element.offset)
    if offset is None:
        raise SvdSchemaError(path, "Cluster is missing the required 'addressOffset' element")

    return ClusterNode(
        name=name,
        path=path,
        description=normalize_text(_read(path, lambda: element.description)),
        props=_read(path, lambda: element.register_properties),
        dim=_dimension(element, path),
        alternate=_read(path, lambda: element.alternate_cluster),
        offset=offset,
        children=_build_children(element.registers, path),
    )


def _build_register(
    element: bindings.RegisterElement, parent_path: NodePath
) -> RegisterNode:
    name = _required_name(element, parent_path, "register")
    path = parent_path.join(name)
    derived_from = _read(path, lambda: element.derived_from)
    offset = _read(path, lambda: element.offset)

    if offset is None and derived_from is None:
        raise SvdSchemaError(
            path, "Register is missing the required 'addressOffset' element"
        )

    fields: Optional[List[FieldNode]] = None
    field_elements = element.fields
    if field_elements is not None:
        fields = []
        seen: Dict[str, FieldNode] = {}
        for field_element in field_elements:
            field = _build_field(field_element, path)
            if field.name in seen:
                raise SvdSchemaError(field.path, f"Duplicate field name '{field.name}'")
            seen[field.name] = field
            fields.append(field)

    return RegisterNode(
        name=name,
        path=path,
        description=normalize_text(_read(path, lambda: element.description)),
        props=_read(path, lambda: element.register_properties),
        dim=_dimension(element, path),
        derived_from=derived_from,
        alternate=_read(path, lambda: element.alternate_register),
        offset=offset,
        fields=fields,
    )


def _build_field(element: bindings.FieldElement, parent_path: NodePath) -> FieldNode:
    name = _required_name(element, parent_path, "field")
    path = parent_path.join(name)

    if _read(path, lambda: element.derived_from) is not None:
        raise SvdSchemaError(
            path, "'derivedFrom' is only supported on peripherals and registers"
        )

    bit_range = _read(path, lambda: element.bit_range)
    if bit_range is None:
        raise SvdSchemaError(path, "Field is missing a bit range")
    if bit_range.offset < 0 or bit_range.width <= 0:
        raise SvdSchemaError(path, f"Invalid field bit range {bit_range}")

    enums: Dict[str, int] = {}
    enumeration = _read(path, lambda: element.enumerated_values)
    if enumeration is not None:
        enums = _build_enums(enumeration, path)

    return FieldNode(
        name=name,
        path=path,
        bit_range=bit_range,
        access=_read(path, lambda: element.access),
        description=normalize_text(_read(path, lambda: element.description)),
        enums=enums,
        dim=_dimension(element, path),
    )


def _build_enums(enumeration: bindings.Enumeration, path: NodePath) -> Dict[str, int]:
    enums: Dict[str, int] = {}

    for enum_element in enumeration.enums:
        name = _read(path, lambda: enum_element.name)
        try:
            value = enum_element.value
        except ValueError:
            # Values with "do not care" bits, like #1x0, cannot be mapped to a single number
            log.warning(
                f"{path}: skipping enumerated value '{name}' with unsupported value "
                f"'{enum_element.findtext('value')}'"
            )
            continue

        if value is None:
            # Default enumerated values do not need a value
            continue
        if not name:
            raise SvdSchemaError(path, "Enumerated value is missing the required 'name'")
        if name in enums:
            raise SvdSchemaError(path, f"Duplicate enumerated value name '{name}'")

        enums[name] = value

    return enums


def _build_address_block(element: bindings.AddressBlock, path: NodePath) -> AddressBlock:
    offset = _read(path, lambda: element.offset)
    size = _read(path, lambda: element.size)
    if offset is None or size is None:
        raise SvdSchemaError(path, "Address block requires both 'offset' and 'size'")

    usage = _read(path, lambda: element.usage)

    return AddressBlock(
        offset=offset,
        size=size,
        usage=usage if usage is not None else AddressBlockUsage.REGISTER,
        protection=_read(path, lambda: element.protection),
    )


def _build_interrupt(
    element: bindings.Interrupt, path: NodePath, peripheral_name: str
) -> Interrupt:
    name = _read(path, lambda: element.name)
    value = _read(path, lambda: element.value)
    if not name or value is None:
        raise SvdSchemaError(path, "Interrupt requires both 'name' and 'value'")

    return Interrupt(
        name=name,
        value=value,
        description=normalize_text(_read(path, lambda: element.description)),
        peripheral=peripheral_name,
    )


def _dimension(
    element: bindings.DimElementGroupMixin, path: NodePath
) -> Optional[DimensionSpec]:
    """Get the dimensions of the element as written in the document, if any."""
    length = _read(path, lambda: element.dim)
    step = _read(path, lambda: element.dim_increment)

    if length is None and step is None:
        return None
    if length is None or step is None:
        raise SvdSchemaError(path, "Both 'dim' and 'dimIncrement' must be given for arrays")
    if length < 1:
        raise SvdSchemaError(path, f"Invalid dim value {length}")

    return DimensionSpec(
        length=length, step=step, index=_read(path, lambda: element.dim_index)
    )


def _required_name(
    element: Union[
        bindings.PeripheralElement,
        bindings.ClusterElement,
        bindings.RegisterElement,
        bindings.FieldElement,
    ],
    parent_path: NodePath,
    kind: str,
) -> str:
    name = _read(parent_path, lambda: element.name)
    if not name:
        raise SvdSchemaError(
            parent_path, f"A {kind} element is missing the required 'name' element"
        )
    return name.strip()


def _read(path: Optional[NodePath], getter: Callable[[], T]) -> T:
    """Read a value from an element binding, reporting malformed values as schema errors."""
    try:
        return getter()
    except ValueError as e:
        raise SvdSchemaError(path, f"Malformed value: {e}") from e

