# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
"Low-level" read-only Python representation of the subset of the SVD format understood by the
library. Each type of element in the SVD XML tree is represented by a class in this module.
The class properties correspond more or less directly to the XML elements/attributes.

Every inheritable property is exposed as an Optional value, where None means that the element
is absent from the document. Defaults are never filled in at this level.

Based on CMSIS-SVD schema v1.3.9.
"""

from __future__ import annotations

import enum
import typing
from dataclasses import dataclass, fields
from typing import Iterator, NamedTuple, Optional, Union

from lxml import objectify
from lxml.objectify import StringElement

from ._bindings import (
    SELF_CLASS,
    Attr,
    BindingRegistry,
    CaseInsensitiveStrEnum,
    Elem,
    SvdElement,
    SvdIntElement,
    get_binding_elem_props,
    iter_element_children,
    make_enum_wrapper,
    to_int,
)

# Container for classes that represent elements in the SVD XML tree.
BINDING_REGISTRY = BindingRegistry()

# Alias for the BINDING_REGISTRY.add for convenience.
binding = BINDING_REGISTRY.add

# Alias for the BINDING_REGISTRY.bindings for convenience.
BINDINGS = BINDING_REGISTRY.bindings

# Utility function for the parse module
get_binding_elem_props = get_binding_elem_props


@enum.unique
class Access(CaseInsensitiveStrEnum):
    """
    Access rights for a given register or field.
    See "accessType" in the SVD schema.
    """

    # Read access is permitted. Write operations have an undefined result.
    READ_ONLY = "read-only"
    # Write access is permitted. Read operations have an undefined result.
    WRITE_ONLY = "write-only"
    # Read and write accesses are permitted.
    READ_WRITE = "read-write"
    # Only the first write after reset has an effect. Read operations have an undefined results.
    WRITE_ONCE = "writeOnce"
    # Only the first write after reset has an effect. Read access is permitted.
    READ_WRITE_ONCE = "read-writeOnce"

    @property
    def readable(self) -> bool:
        return self in (Access.READ_ONLY, Access.READ_WRITE, Access.READ_WRITE_ONCE)


AccessElement = make_enum_wrapper(Access)


@enum.unique
class AddressBlockUsage(CaseInsensitiveStrEnum):
    """
    Defined usage type of a peripheral address block.
    See "addressBlockType" in the SVD schema.
    """

    REGISTER = "registers"
    BUFFER = "buffer"
    RESERVED = "reserved"


AddressBlockUsageElement = make_enum_wrapper(AddressBlockUsage)


@enum.unique
class Protection(CaseInsensitiveStrEnum):
    """
    Security privilege required to access an address region.
    See "protectionStringType" in the SVD schema.
    """

    # Secure permission required for access
    SECURE = "s"
    # Non-secure or secure permission required for access
    NON_SECURE = "n"
    # Privileged permission required for access
    PRIVILEGED = "p"


ProtectionElement = make_enum_wrapper(Protection)


@binding
class AddressBlock(SvdElement):
    """Address range mapped to a peripheral."""

    TAG: str = "addressBlock"

    # Start address of the address block, relative to the peripheral base address.
    offset: Elem[Optional[int]] = Elem("offset", SvdIntElement, default=None)

    # Number of address unit bits covered by the address block.
    size: Elem[Optional[int]] = Elem("size", SvdIntElement, default=None)

    # Address block usage. See AddressBlockUsage for possible values.
    usage: Elem[Optional[AddressBlockUsage]] = Elem(
        "usage", AddressBlockUsageElement, default=None
    )

    # Protection level for the address block.
    protection: Elem[Optional[Protection]] = Elem(
        "protection", ProtectionElement, default=None
    )


class DerivedMixin(objectify.ObjectifiedElement):
    """Common functionality for elements that contain a SVD 'derivedFrom' attribute."""

    # Name of the element that this element is derived from.
    derived_from: Attr[Optional[str]] = Attr("derivedFrom", default=None)


@binding
class EnumeratedValue(SvdElement):
    """Value definition for a field."""

    TAG: str = "enumeratedValue"

    # Name of the enumerated value.
    name: Elem[Optional[str]] = Elem("name", StringElement, default=None)

    # Value of the enumerated value.
    value: Elem[Optional[int]] = Elem("value", SvdIntElement, default=None)


@binding
class Enumeration(SvdElement):
    """Container for enumerated values."""

    TAG: str = "enumeratedValues"

    @property
    def enums(self) -> Iterator[EnumeratedValue]:
        """Iterate over all enumerated values."""
        it = iter_element_children(self, EnumeratedValue.TAG)
        return typing.cast(Iterator[EnumeratedValue], it)

    # (internal) Enumerated values
    _enumerated_values: Elem[EnumeratedValue] = Elem("enumeratedValue", EnumeratedValue)


@binding
class Interrupt(SvdElement):
    """Peripheral interrupt description."""

    TAG: str = "interrupt"

    # Name of the interrupt.
    name: Elem[Optional[str]] = Elem("name", StringElement, default=None)

    # Description of the interrupt.
    description: Elem[Optional[str]] = Elem("description", StringElement, default=None)

    # Interrupt number.
    value: Elem[Optional[int]] = Elem("value", SvdIntElement, default=None)


class BitRange(NamedTuple):
    """Bit range of a field."""

    # Bit offset of the field.
    offset: int

    # Bit width of the field.
    width: int

    @property
    def msb(self) -> int:
        """Most significant bit covered by the range."""
        return self.offset + self.width - 1

    @property
    def mask(self) -> int:
        """Bitmask of the range."""
        return ((1 << self.width) - 1) << self.offset


@dataclass(frozen=True)
class DimensionSpec:
    """Dimensions of a repeated SVD element, as written in the document."""

    # Number of times the element is repeated.
    length: int

    # Address increment between each element.
    step: int

    # Raw dimIndex text, if given.
    index: Optional[str] = None


class DimElementGroupMixin(objectify.ObjectifiedElement):
    """Common functionality for elements that contain a SVD 'dimElementGroup'."""

    # Raw dim value, if the element is repeated.
    dim: Elem[Optional[int]] = Elem("dim", SvdIntElement, default=None)

    # Raw dimIncrement value, if the element is repeated.
    dim_increment: Elem[Optional[int]] = Elem(
        "dimIncrement", SvdIntElement, default=None
    )

    # Index specification of the element, if it is repeated.
    dim_index: Elem[Optional[str]] = Elem("dimIndex", StringElement, default=None)


@binding
class FieldElement(SvdElement, DimElementGroupMixin, DerivedMixin):
    """SVD field element."""

    TAG: str = "field"

    # Name of the field.
    name: Elem[Optional[str]] = Elem("name", StringElement, default=None)

    # Description of the field.
    description: Elem[Optional[str]] = Elem("description", StringElement, default=None)

    # Access rights of the field.
    access: Elem[Optional[Access]] = Elem("access", AccessElement, default=None)

    # Permitted values of the field.
    enumerated_values: Elem[Optional[Enumeration]] = Elem(
        "enumeratedValues", Enumeration, default=None
    )

    @property
    def bit_range(self) -> Optional[BitRange]:
        """
        Bit range of the field, if given in any of the three styles permitted by the schema.
        :return: Tuple of the field's bit offset and bit width.
        """

        if self._lsb is not None and self._msb is not None:
            return BitRange(offset=self._lsb, width=self._msb - self._lsb + 1)

        if self._bit_offset is not None:
            width = self._bit_width if self._bit_width is not None else 1
            return BitRange(offset=self._bit_offset, width=width)

        if self._bit_range is not None:
            msb_string, lsb_string = self._bit_range.strip()[1:-1].split(":")
            msb, lsb = to_int(msb_string), to_int(lsb_string)
            return BitRange(offset=lsb, width=msb - lsb + 1)

        return None

    # (internal) Least significant bit of the field, if specified in the bitRangeLsbMsbStyle style.
    _lsb: Elem[Optional[int]] = Elem("lsb", SvdIntElement, default=None)

    # (internal) Most significant bit of the field, if specified in the bitRangeLsbMsbStyle style.
    _msb: Elem[Optional[int]] = Elem("msb", SvdIntElement, default=None)

    # (internal) Bit offset of the field, if specified in the bitRangeOffsetWidthStyle style.
    _bit_offset: Elem[Optional[int]] = Elem("bitOffset", SvdIntElement, default=None)

    # (internal) Bit width of the field, if specified in the bitRangeOffsetWidthStyle style.
    _bit_width: Elem[Optional[int]] = Elem("bitWidth", SvdIntElement, default=None)

    # (internal) Bit range of the field, given in the form "[msb:lsb]", if specified in the
    # bitRangePattern style.
    _bit_range: Elem[Optional[str]] = Elem("bitRange", StringElement, default=None)

    def __repr__(self) -> str:
        return super()._repr(props={"name": self.name})


@binding
class FieldsElement(SvdElement):
    """Container for SVD field elements."""

    TAG: str = "fields"

    # Field elements.
    field: Elem[FieldElement] = Elem("field", FieldElement)


@dataclass(frozen=True)
class RegisterProperties:
    """Common SVD device/peripheral/cluster/register level properties."""

    # Size of the register in bits.
    size: Optional[int] = None

    # Access rights of the register.
    access: Optional[Access] = None

    # Protection level of the register.
    protection: Optional[Protection] = None

    # Reset value of the register.
    reset_value: Optional[int] = None

    # Reset mask of the register.
    reset_mask: Optional[int] = None

    def inherit(self, base_props: Optional[RegisterProperties]) -> RegisterProperties:
        """
        Get a copy of these properties where each property that is not set is taken from
        base_props.
        """
        if base_props is None:
            return self

        return RegisterProperties(
            **{
                f.name: (
                    getattr(self, f.name)
                    if getattr(self, f.name) is not None
                    else getattr(base_props, f.name)
                )
                for f in fields(self)
            }
        )


class RegisterPropertiesGroupMixin(objectify.ObjectifiedElement):
    """Common functionality for elements that contain a SVD 'registerPropertiesGroup'."""

    @property
    def register_properties(self) -> RegisterProperties:
        """Register properties specified in the element itself."""
        return RegisterProperties(
            size=self._size,
            access=self._access,
            protection=self._protection,
            reset_value=self._reset_value,
            reset_mask=self._reset_mask,
        )

    _size: Elem[Optional[int]] = Elem("size", SvdIntElement, default=None)
    _access: Elem[Optional[Access]] = Elem("access", AccessElement, default=None)
    _protection: Elem[Optional[Protection]] = Elem(
        "protection", ProtectionElement, default=None
    )
    _reset_value: Elem[Optional[int]] = Elem("resetValue", SvdIntElement, default=None)
    _reset_mask: Elem[Optional[int]] = Elem("resetMask", SvdIntElement, default=None)


@binding
class RegisterElement(
    SvdElement,
    DimElementGroupMixin,
    RegisterPropertiesGroupMixin,
    DerivedMixin,
):
    """SVD register element."""

    TAG: str = "register"

    # Name of the register.
    name: Elem[Optional[str]] = Elem("name", StringElement, default=None)

    # Description of the register.
    description: Elem[Optional[str]] = Elem("description", StringElement, default=None)

    # Name of a different register that corresponds to this register.
    alternate_register: Elem[Optional[str]] = Elem(
        "alternateRegister", StringElement, default=None
    )

    # Address offset of the register, relative to the parent element.
    offset: Elem[Optional[int]] = Elem("addressOffset", SvdIntElement, default=None)

    @property
    def fields(self) -> Optional[Iterator[FieldElement]]:
        """Iterator over the fields of the register, or None if there is no fields element."""
        if self._fields is None:
            return None
        it = iter_element_children(self._fields, FieldElement.TAG)
        return typing.cast(Iterator[FieldElement], it)

    # (internal) Fields of the register.
    _fields: Elem[Optional[FieldsElement]] = Elem("fields", FieldsElement, default=None)

    def __repr__(self) -> str:
        return super()._repr(props={"name": self.name})


@binding
class ClusterElement(
    SvdElement,
    DimElementGroupMixin,
    RegisterPropertiesGroupMixin,
    DerivedMixin,
):
    """SVD cluster element."""

    TAG: str = "cluster"

    # Name of the cluster.
    name: Elem[Optional[str]] = Elem("name", StringElement, default=None)

    # Description of the cluster.
    description: Elem[Optional[str]] = Elem("description", StringElement, default=None)

    # Name of a different cluster that corresponds to this cluster.
    alternate_cluster: Elem[Optional[str]] = Elem(
        "alternateCluster", StringElement, default=None
    )

    # Address offset of the cluster, relative to the parent element.
    offset: Elem[Optional[int]] = Elem("addressOffset", SvdIntElement, default=None)

    @property
    def registers(self) -> Iterator[Union[RegisterElement, ClusterElement]]:
        """Iterator over the registers and clusters that are direct children of this cluster."""
        it = iter_element_children(self, RegisterElement.TAG, ClusterElement.TAG)
        return typing.cast(Iterator[Union[RegisterElement, ClusterElement]], it)

    # (internal) Register elements in the cluster.
    _register: Elem[Optional[RegisterElement]] = Elem(
        "register", RegisterElement, default=None
    )

    # (internal) Cluster elements in the cluster.
    _cluster: Elem[Optional[ClusterElement]] = Elem("cluster", SELF_CLASS, default=None)

    def __repr__(self) -> str:
        return super()._repr(props={"name": self.name})


@binding
class RegistersElement(SvdElement):
    """Container for SVD register/cluster elements."""

    TAG: str = "registers"

    # Cluster elements in the container.
    cluster: Elem[Optional[ClusterElement]] = Elem(
        "cluster", ClusterElement, default=None
    )

    # Register elements in the container.
    register: Elem[Optional[RegisterElement]] = Elem(
        "register", RegisterElement, default=None
    )


@binding
class PeripheralElement(
    SvdElement,
    DimElementGroupMixin,
    RegisterPropertiesGroupMixin,
    DerivedMixin,
):
    """SVD peripheral element."""

    TAG: str = "peripheral"

    # Name of the peripheral.
    name: Elem[Optional[str]] = Elem("name", StringElement, default=None)

    # Version of the peripheral.
    version: Elem[Optional[str]] = Elem("version", StringElement, default=None)

    # Description of the peripheral.
    description: Elem[Optional[str]] = Elem("description", StringElement, default=None)

    # Name of the group that the peripheral belongs to.
    group_name: Elem[Optional[str]] = Elem("groupName", StringElement, default=None)

    # Base address of the peripheral.
    base_address: Elem[Optional[int]] = Elem(
        "baseAddress", SvdIntElement, default=None
    )

    # Name of a different peripheral that corresponds to this peripheral.
    alternate_peripheral: Elem[Optional[str]] = Elem(
        "alternatePeripheral", StringElement, default=None
    )

    @property
    def interrupts(self) -> Iterator[Interrupt]:
        """Iterator over the interrupts of the peripheral."""
        it = iter_element_children(self, Interrupt.TAG)
        return typing.cast(Iterator[Interrupt], it)

    @property
    def address_blocks(self) -> Iterator[AddressBlock]:
        """Iterator over the address blocks of the peripheral."""
        it = iter_element_children(self, AddressBlock.TAG)
        return typing.cast(Iterator[AddressBlock], it)

    @property
    def registers(self) -> Optional[Iterator[Union[RegisterElement, ClusterElement]]]:
        """
        Iterator over the registers and clusters that are direct children of this peripheral,
        or None if there is no registers element.
        """
        if self._registers is None:
            return None
        it = iter_element_children(
            self._registers, RegisterElement.TAG, ClusterElement.TAG
        )
        return typing.cast(Iterator[Union[RegisterElement, ClusterElement]], it)

    # (internal) Interrupt elements in the peripheral.
    _interrupts: Elem[Optional[Interrupt]] = Elem("interrupt", Interrupt, default=None)

    # (internal) Address block elements in the peripheral.
    _address_blocks: Elem[Optional[AddressBlock]] = Elem(
        "addressBlock", AddressBlock, default=None
    )

    # (internal) Register/cluster container.
    _registers: Elem[Optional[RegistersElement]] = Elem(
        "registers", RegistersElement, default=None
    )

    def __repr__(self) -> str:
        props = {"name": self.name}

        if (derived_from := self.derived_from) is not None:
            props["derived_from"] = derived_from

        return super()._repr(props=props)


@binding
class PeripheralsElement(SvdElement):
    """Container for SVD peripheral elements."""

    TAG: str = "peripherals"

    # Peripheral elements in the container.
    peripheral: Elem[Optional[PeripheralElement]] = Elem(
        "peripheral", PeripheralElement, default=None
    )


@binding
class DeviceElement(SvdElement, RegisterPropertiesGroupMixin):
    """SVD device element."""

    TAG: str = "device"

    # Name of the device.
    name: Elem[Optional[str]] = Elem("name", StringElement, default=None)

    # Version of the device.
    version: Elem[Optional[str]] = Elem("version", StringElement, default=None)

    # Full device vendor name.
    vendor: Elem[Optional[str]] = Elem("vendor", StringElement, default=None)

    # Description of the device.
    description: Elem[Optional[str]] = Elem("description", StringElement, default=None)

    # Number of data bits selected by each address.
    address_unit_bits: Elem[Optional[int]] = Elem(
        "addressUnitBits", SvdIntElement, default=None
    )

    # Width of the maximum data transfer supported by the device.
    width: Elem[Optional[int]] = Elem("width", SvdIntElement, default=None)

    @property
    def peripherals(self) -> Iterator[PeripheralElement]:
        """Iterate over all peripherals in the device"""
        it = iter_element_children(self._peripherals, PeripheralElement.TAG)
        return typing.cast(Iterator[PeripheralElement], it)

    # (internal) Peripheral elements in the device.
    _peripherals: Elem[Optional[PeripheralsElement]] = Elem(
        "peripherals", PeripheralsElement, default=None
    )
