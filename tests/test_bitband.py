# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

import logging

import pytest

import svdmodel
from svdmodel import BitBandRegion, Config

from conftest import make_peripheral, make_svd

PERIPHERAL_REGION = BitBandRegion(
    addressable_base=0x4000_0000,
    addressable_size=0x10_0000,
    alias_base=0x4200_0000,
)

REGISTERS = """
<register>
  <name>STATUS</name>
  <addressOffset>0x10</addressOffset>
  <size>8</size>
  <fields>
    <field><name>FLAGS</name><bitOffset>3</bitOffset><bitWidth>2</bitWidth></field>
  </fields>
</register>
"""

BITBAND_CONFIG = Config(enable_bitband=True, bitband_regions=[PERIPHERAL_REGION])


def test_alias_address_formula(parse_registers):
    register = parse_registers(REGISTERS, config=BITBAND_CONFIG)["STATUS"]

    assert register.resolved_address == 0x4000_0010
    assert register.bitband_address(3) == 0x4200_020C
    assert register.bitband_addresses == tuple(
        0x4200_0000 + 0x10 * 32 + bit * 4 for bit in range(8)
    )
    assert register["FLAGS"].bitband_addresses == (0x4200_020C, 0x4200_0210)


def test_registers_outside_regions(parse_svd):
    peripherals = make_peripheral(REGISTERS) + make_peripheral(
        REGISTERS, name="FAR", base_address=0x5000_0000
    )
    device = parse_svd(peripherals, config=BITBAND_CONFIG)

    far = device["FAR"]["STATUS"]
    assert far.bitband_addresses is None
    assert far["FLAGS"].bitband_addresses is None
    with pytest.raises(svdmodel.SvdError):
        far.bitband_address(0)

    assert device["P0"]["STATUS"].bitband_addresses is not None


def test_registers_in_clusters(parse_registers):
    registers = f"""
    <cluster>
      <name>C</name>
      <addressOffset>0x100</addressOffset>
      {REGISTERS}
    </cluster>
    """
    register = parse_registers(registers, config=BITBAND_CONFIG)["C"]["STATUS"]

    assert register.resolved_address == 0x4000_0110
    assert register.bitband_address(0) == 0x4200_0000 + 0x110 * 32


def test_bitband_disabled_by_default(parse_registers):
    register = parse_registers(REGISTERS)["STATUS"]
    assert register.bitband_addresses is None


def test_regions_ignored_when_disabled(parse_registers):
    config = Config(enable_bitband=False, bitband_regions=[PERIPHERAL_REGION])
    assert parse_registers(REGISTERS, config=config)["STATUS"].bitband_addresses is None


def test_enabled_without_regions(parse_registers):
    config = Config(enable_bitband=True)
    assert parse_registers(REGISTERS, config=config)["STATUS"].bitband_addresses is None


def test_unused_region_is_logged(parse_registers, caplog):
    caplog.set_level(logging.WARNING, logger="svdmodel")
    unused = BitBandRegion(
        addressable_base=0x2000_0000, addressable_size=0x1000, alias_base=0x2200_0000
    )
    config = Config(enable_bitband=True, bitband_regions=[PERIPHERAL_REGION, unused])

    parse_registers(REGISTERS, config=config)

    assert "does not contain any registers" in caplog.text


@pytest.mark.parametrize(
    "region",
    [
        # Misaligned alias base
        BitBandRegion(0x4000_0000, 0x1000, 0x4200_0002),
        # Misaligned addressable base
        BitBandRegion(0x4000_0001, 0x1000, 0x4200_0000),
        BitBandRegion(0x4000_0000, 0, 0x4200_0000),
        BitBandRegion(-4, 0x1000, 0x4200_0000),
        # Alias region past the end of the address space
        BitBandRegion(0x4000_0000, 0x100, 0xFFFF_F000),
    ],
)
def test_invalid_regions(region):
    config = Config(enable_bitband=True, bitband_regions=[region])

    # Regions are checked before the document is read
    with pytest.raises(svdmodel.SvdBitBandConfigError):
        svdmodel.parse(b"not xml", config)

    with pytest.raises(svdmodel.SvdBitBandConfigError):
        svdmodel.parse(make_svd(make_peripheral(REGISTERS)), config)


def test_region_helpers():
    assert PERIPHERAL_REGION.contains(0x4000_0000)
    assert PERIPHERAL_REGION.contains(0x400F_FFFF)
    assert not PERIPHERAL_REGION.contains(0x4010_0000)
    assert PERIPHERAL_REGION.alias_address(0x4000_0010, 3) == 0x4200_020C


def test_regions_as_tuples(parse_registers):
    config = Config(enable_bitband=True, bitband_regions=[(0x4000_0000, 0x10_0000, 0x4200_0000)])

    register = parse_registers(REGISTERS, config=config)["STATUS"]

    assert register.bitband_address(3) == 0x4200_020C


@pytest.mark.parametrize("region", [(0x4000_0000, 0x1000), 0x4000_0000])
def test_malformed_region_tuple(region):
    config = Config(enable_bitband=True, bitband_regions=[region])

    with pytest.raises(svdmodel.SvdBitBandConfigError):
        svdmodel.parse(make_svd(make_peripheral(REGISTERS)), config)
