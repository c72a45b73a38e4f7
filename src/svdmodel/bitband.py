# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Bit-band alias address generation.

In a bit-band region every bit of the addressable region is mapped to its own 32-bit word in
the alias region:

    alias_address = alias_base + (address - addressable_base) * 32 + bit * 4
"""

from __future__ import annotations

import dataclasses as dc
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from ._device import NameMap
from .device import Cluster, Device, Field, Peripheral, Register, RegisterUnion
from .errors import SvdBitBandConfigError

log = logging.getLogger(__name__)

# Number of alias bytes per byte in the addressable region
ALIAS_BYTES_PER_BYTE = 32

# Number of alias bytes per bit in the addressable region
ALIAS_BYTES_PER_BIT = 4

ADDRESS_SPACE_END = 1 << 32


class BitBandRegion(NamedTuple):
    """Pair of a bit-addressable region and the alias region that it is mapped to."""

    # Start address of the bit-addressable region.
    addressable_base: int

    # Number of bytes in the bit-addressable region.
    addressable_size: int

    # Start address of the alias region.
    alias_base: int

    def contains(self, address: int) -> bool:
        """True if the address is inside the bit-addressable region."""
        return self.addressable_base <= address < self.addressable_base + self.addressable_size

    def alias_address(self, address: int, bit: int) -> int:
        """:return: Alias address of a bit at the given byte address."""
        byte_offset = address - self.addressable_base
        return self.alias_base + byte_offset * ALIAS_BYTES_PER_BYTE + bit * ALIAS_BYTES_PER_BIT


def to_regions(regions: Iterable[Sequence[int]]) -> List[BitBandRegion]:
    """
    Convert configured regions, given either as BitBandRegion objects or as plain
    (addressable_base, addressable_size, alias_base) tuples, to BitBandRegion objects.

    :raises SvdBitBandConfigError: If an entry does not have exactly three items.
    """
    result = []
    for region in regions:
        try:
            result.append(BitBandRegion._make(region))
        except TypeError as e:
            raise SvdBitBandConfigError(
                region, "expected (addressable_base, addressable_size, alias_base)"
            ) from e
    return result


def validate_regions(regions: Iterable[BitBandRegion]) -> None:
    """
    Check that every bit-band region is usable.

    :raises SvdBitBandConfigError: If a region is empty, misaligned, or its alias region does not
                                   fit in the 32-bit address space.
    """
    for region in regions:
        if region.addressable_size <= 0:
            raise SvdBitBandConfigError(region, "addressable_size must be positive")
        if region.addressable_base < 0 or region.alias_base < 0:
            raise SvdBitBandConfigError(region, "base addresses must not be negative")
        if region.addressable_base % ALIAS_BYTES_PER_BIT != 0:
            raise SvdBitBandConfigError(region, "addressable_base must be word aligned")
        if region.alias_base % ALIAS_BYTES_PER_BIT != 0:
            raise SvdBitBandConfigError(region, "alias_base must be word aligned")

        alias_end = region.alias_base + region.addressable_size * ALIAS_BYTES_PER_BYTE
        if alias_end > ADDRESS_SPACE_END:
            raise SvdBitBandConfigError(
                region, f"alias region ends at {alias_end:#x}, outside the 32-bit address space"
            )


def apply_bitband(device: Device, regions: Sequence[BitBandRegion]) -> Device:
    """
    Attach bit-band alias addresses to every register located in one of the regions.

    :param device: Resolved device.
    :param regions: Validated bit-band regions.
    :return: Copy of the device where registers in a bit-band region have alias addresses.
    """
    hits: Dict[BitBandRegion, int] = {region: 0 for region in regions}

    peripherals = NameMap(
        (name, _apply_peripheral(peripheral, regions, hits))
        for name, peripheral in device.peripherals.items()
    )

    for region, count in hits.items():
        if count == 0:
            log.warning(f"Bit-band region {region} does not contain any registers")

    log.debug(f"Generated bit-band addresses for {sum(hits.values())} registers")

    return dc.replace(device, peripherals=peripherals)


def _find_region(
    regions: Sequence[BitBandRegion], address: int
) -> Optional[BitBandRegion]:
    return next((r for r in regions if r.contains(address)), None)


def _apply_peripheral(
    peripheral: Peripheral,
    regions: Sequence[BitBandRegion],
    hits: Dict[BitBandRegion, int],
) -> Peripheral:
    return dc.replace(
        peripheral, registers=_apply_children(peripheral.registers, regions, hits)
    )


def _apply_children(
    children: NameMap[RegisterUnion],
    regions: Sequence[BitBandRegion],
    hits: Dict[BitBandRegion, int],
) -> NameMap[RegisterUnion]:
    updated = []

    for name, child in children.items():
        if isinstance(child, Cluster):
            child = dc.replace(
                child, registers=_apply_children(child.registers, regions, hits)
            )
        else:
            child = _apply_register(child, regions, hits)
        updated.append((name, child))

    return NameMap(updated)


def _apply_register(
    register: Register,
    regions: Sequence[BitBandRegion],
    hits: Dict[BitBandRegion, int],
) -> Register:
    region = _find_region(regions, register.resolved_address)
    if region is None:
        return register

    hits[region] += 1

    addresses = _alias_addresses(region, register.resolved_address, range(register.size))
    fields = NameMap(
        (name, _apply_field(field, addresses)) for name, field in register.fields.items()
    )

    return dc.replace(register, bitband_addresses=addresses, fields=fields)


def _apply_field(field: Field, register_addresses: Tuple[int, ...]) -> Field:
    bits = range(field.bit_offset, field.bit_offset + field.bit_width)
    return dc.replace(field, bitband_addresses=tuple(register_addresses[b] for b in bits))


def _alias_addresses(region: BitBandRegion, address: int, bits: range) -> Tuple[int, ...]:
    return tuple(region.alias_address(address, bit) for bit in bits)
