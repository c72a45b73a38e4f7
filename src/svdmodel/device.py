# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
High level representation of a SVD device.

Every object in this module is immutable and fully resolved: 'derivedFrom' references are
merged in, arrays are expanded into individually named instances, alternates are linked and
every peripheral, cluster and register carries its absolute address.
A Device is built once per call to svdmodel.parse() and never changes afterwards.

Containers follow the structure of the SVD document and support the Mapping protocol, e.g.
device["UART0"]["CONFIG"]["ENABLE"] is the field ENABLE of the register CONFIG in the
peripheral UART0. Children can also be accessed by declaration position.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    FrozenSet,
    Iterator,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from typing_extensions import TypeGuard

from ._device import NameMap, svd_element_repr
from .bindings import (
    Access,
    AddressBlockUsage,
    BitRange,
    Protection,
    RegisterProperties,
)
from .errors import SvdError
from .path import NodePath

# Union of the element types that can be children of a peripheral or cluster
RegisterUnion = Union["Cluster", "Register"]


@dataclass(frozen=True)
class AddressBlock:
    """Address range mapped to a peripheral."""

    # Start address of the address block, relative to the peripheral base address.
    offset: int

    # Number of bytes covered by the address block.
    size: int

    # Address block usage.
    usage: AddressBlockUsage

    # Protection level for the address block.
    protection: Optional[Protection] = None

    def address_range(self, base_address: int) -> range:
        """:return: The absolute range of addresses covered when placed at base_address."""
        start = base_address + self.offset
        return range(start, start + self.size)


@dataclass(frozen=True)
class Interrupt:
    """Interrupt line of a peripheral."""

    # Name of the interrupt.
    name: str

    # Interrupt number.
    value: int

    # Description of the interrupt.
    description: Optional[str] = None

    # Name of the peripheral that declared the interrupt.
    peripheral: Optional[str] = None


@dataclass(frozen=True)
class Field:
    """Bit field of a register."""

    name: str
    path: NodePath
    bit_range: BitRange
    access: Access
    description: Optional[str] = None
    enums: NameMap[int] = NameMap()
    bitband_addresses: Optional[Tuple[int, ...]] = None

    @property
    def bit_offset(self) -> int:
        """Bit offset of the field."""
        return self.bit_range.offset

    @property
    def bit_width(self) -> int:
        """Bit width of the field."""
        return self.bit_range.width

    @property
    def mask(self) -> int:
        """Bitmask of the field."""
        return self.bit_range.mask

    def __repr__(self) -> str:
        return svd_element_repr(
            self.__class__,
            str(self.path),
            kv_props={"bits": f"{self.bit_range.msb}:{self.bit_range.offset}"},
        )


@dataclass(frozen=True, eq=True)
class Register(Mapping[str, Field]):
    """
    Register instance.
    A Register corresponds to either a SVD register element without dimensions, or one
    instance of an expanded register array.
    """

    name: str
    path: NodePath

    # Address offset relative to the parent peripheral or cluster.
    offset: int

    # Absolute address of the register.
    resolved_address: int

    # Bit width of the register.
    size: int
    access: Access
    reset_value: int
    reset_mask: int
    protection: Optional[Protection] = None
    description: Optional[str] = None

    # Name of the register given in the alternateRegister element, if any.
    alternate_register: Optional[str] = None

    # Names of the sibling registers that share the address of this register.
    alternates: FrozenSet[str] = frozenset()

    fields: NameMap[Field] = NameMap()

    # Bit-band alias address of each bit in the register, indexed by bit position.
    # Only set when bit-band generation is enabled and the register is in a bit-band region.
    bitband_addresses: Optional[Tuple[int, ...]] = None

    @property
    def byte_size(self) -> int:
        """Number of bytes occupied by the register."""
        return (self.size + 7) // 8

    @property
    def address_range(self) -> range:
        """Range of absolute addresses covered by the register."""
        return range(self.resolved_address, self.resolved_address + self.byte_size)

    def bitband_address(self, bit: int) -> int:
        """
        :param bit: Bit position within the register.
        :raises SvdError: If the register has no bit-band alias addresses.
        :return: Alias address of the given bit.
        """
        if self.bitband_addresses is None:
            raise SvdError(f"{self!r} is not located in a bit-band region")
        return self.bitband_addresses[bit]

    def __getitem__(self, name: Union[str, int]) -> Field:  # type: ignore[override]
        return self.fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __repr__(self) -> str:
        return svd_element_repr(
            self.__class__, str(self.path), address=self.resolved_address
        )


@dataclass(frozen=True, eq=True)
class Cluster(Mapping[str, RegisterUnion]):
    """
    Group of registers.
    A Cluster corresponds to either a SVD cluster element without dimensions, or one
    instance of an expanded cluster array.
    """

    name: str
    path: NodePath

    # Address offset relative to the parent peripheral or cluster.
    offset: int

    # Absolute address of the cluster.
    resolved_address: int

    # Number of bytes spanned by the cluster and its descendants.
    size: int
    description: Optional[str] = None
    alternate_cluster: Optional[str] = None
    alternates: FrozenSet[str] = frozenset()
    registers: NameMap[RegisterUnion] = NameMap()

    @property
    def address_range(self) -> range:
        """Range of absolute addresses spanned by the cluster."""
        return range(self.resolved_address, self.resolved_address + self.size)

    def iter_registers(self) -> Iterator[Register]:
        """Iterate over all registers in the cluster in pre-order."""
        return _iter_registers(self.registers)

    def __getitem__(self, name: Union[str, int]) -> RegisterUnion:  # type: ignore[override]
        return self.registers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.registers)

    def __len__(self) -> int:
        return len(self.registers)

    def __repr__(self) -> str:
        return svd_element_repr(
            self.__class__,
            str(self.path),
            address=self.resolved_address,
            length=len(self),
        )


@dataclass(frozen=True, eq=True)
class Peripheral(Mapping[str, RegisterUnion]):
    """Device peripheral, with all registers and clusters fully resolved."""

    name: str
    path: NodePath

    # Absolute base address of the peripheral.
    resolved_address: int
    description: Optional[str] = None
    group_name: Optional[str] = None
    version: Optional[str] = None
    alternate_peripheral: Optional[str] = None
    alternates: FrozenSet[str] = frozenset()
    address_blocks: Tuple[AddressBlock, ...] = ()
    interrupts: Tuple[Interrupt, ...] = ()

    # Register properties that apply to registers in the peripheral by default.
    properties: RegisterProperties = RegisterProperties()
    registers: NameMap[RegisterUnion] = NameMap()

    @property
    def base_address(self) -> int:
        """Base address of the peripheral."""
        return self.resolved_address

    @property
    def address_ranges(self) -> Tuple[range, ...]:
        """
        Absolute address ranges occupied by the peripheral.
        These are the address blocks of the peripheral, or the span of its registers if the
        peripheral has no address blocks.
        """
        if self.address_blocks:
            return tuple(b.address_range(self.resolved_address) for b in self.address_blocks)

        spans = [node.address_range for node in self.registers.values()]
        spans = [s for s in spans if len(s) > 0]
        if not spans:
            return ()
        return (range(min(s.start for s in spans), max(s.stop for s in spans)),)

    def iter_registers(self) -> Iterator[Register]:
        """Iterate over all registers in the peripheral in pre-order."""
        return _iter_registers(self.registers)

    def __getitem__(self, name: Union[str, int]) -> RegisterUnion:  # type: ignore[override]
        return self.registers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.registers)

    def __len__(self) -> int:
        return len(self.registers)

    def __repr__(self) -> str:
        return svd_element_repr(
            self.__class__, str(self.path), address=self.resolved_address
        )


@dataclass(frozen=True, eq=True)
class Device(Mapping[str, Peripheral]):
    """Representation of a SVD device."""

    name: str
    version: Optional[str] = None
    vendor: Optional[str] = None
    description: Optional[str] = None
    address_unit_bits: int = 8
    width: Optional[int] = None

    # Register properties that apply to registers in the device by default.
    properties: RegisterProperties = RegisterProperties()

    # Peripherals in declaration order, indexed by name.
    peripherals: NameMap[Peripheral] = NameMap()

    # Interrupts of all peripherals in declaration order, indexed by name.
    interrupts: NameMap[Interrupt] = NameMap()

    def iter_registers(self) -> Iterator[Register]:
        """Iterate over all registers in the device."""
        for peripheral in self.peripherals.values():
            yield from peripheral.iter_registers()

    def find(
        self, path: Union[str, NodePath]
    ) -> Union[Peripheral, Cluster, Register, Field]:
        """
        Look up an element by path.

        :param path: Dotted path like "UART0.CONFIG.ENABLE", or a NodePath starting at the device.
        :raises KeyError: If no element exists at the path.
        :return: The element at the given path.
        """
        if isinstance(path, NodePath):
            parts = path.parts[1:] if path.parts[:1] == (self.name,) else path.parts
        else:
            parts = NodePath.from_reference(path).parts

        if not parts:
            raise KeyError(str(path))

        node: Union[Device, Peripheral, Cluster, Register, Field] = self
        for part in parts:
            if isinstance(node, Field) or part not in node:
                raise KeyError(str(path))
            node = node[part]

        return node  # type: ignore[return-value]

    def __getitem__(self, name: Union[str, int]) -> Peripheral:  # type: ignore[override]
        return self.peripherals[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.peripherals)

    def __len__(self) -> int:
        return len(self.peripherals)

    def __repr__(self) -> str:
        return svd_element_repr(self.__class__, self.name, length=len(self))


def is_cluster(node: RegisterUnion) -> TypeGuard[Cluster]:
    """True if the node is a cluster, i.e. contains other registers."""
    return isinstance(node, Cluster)


def is_register(node: RegisterUnion) -> TypeGuard[Register]:
    """True if the node is a register, i.e. contains fields."""
    return isinstance(node, Register)


def _iter_registers(nodes: NameMap[RegisterUnion]) -> Iterator[Register]:
    """Pre-order iteration over the registers below the given nodes."""
    stack = list(nodes.values())[::-1]

    while stack:
        node = stack.pop()
        if is_register(node):
            yield node
        else:
            stack.extend(list(node.registers.values())[::-1])
