# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

import pytest

import svdmodel
from svdmodel import Access

from conftest import make_peripheral

BASE_REGISTERS = """
<register>
  <name>CTRL</name>
  <description>Control register</description>
  <addressOffset>0x0</addressOffset>
  <size>16</size>
  <access>read-only</access>
  <resetValue>0x5</resetValue>
  <fields>
    <field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>
  </fields>
</register>
"""


def test_register_overrides_and_inherits(parse_registers):
    registers = (
        BASE_REGISTERS
        + """
    <register derivedFrom="CTRL">
      <name>CTRL2</name>
      <addressOffset>0x4</addressOffset>
      <resetValue>0x7</resetValue>
    </register>
    """
    )
    peripheral = parse_registers(registers)
    derived = peripheral["CTRL2"]

    assert derived.reset_value == 0x7
    assert derived.size == 16
    assert derived.access == Access.READ_ONLY
    assert derived.description == "Control register"
    assert derived.resolved_address == 0x4000_0004
    assert list(derived.fields) == ["EN"]
    assert derived["EN"].path == "TEST/P0/CTRL2/EN"


def test_register_keeps_own_fields(parse_registers):
    registers = (
        BASE_REGISTERS
        + """
    <register derivedFrom="CTRL">
      <name>CTRL2</name>
      <addressOffset>0x4</addressOffset>
      <fields>
        <field><name>MODE</name><bitOffset>1</bitOffset><bitWidth>2</bitWidth></field>
      </fields>
    </register>
    """
    )
    assert list(parse_registers(registers)["CTRL2"].fields) == ["MODE"]


def test_transitive_derivation_matches_flattened(parse_registers):
    registers = (
        BASE_REGISTERS
        + """
    <register derivedFrom="CTRL">
      <name>MID</name>
      <addressOffset>0x4</addressOffset>
      <size>32</size>
    </register>
    <register derivedFrom="MID">
      <name>LAST</name>
      <addressOffset>0x8</addressOffset>
      <resetValue>0x9</resetValue>
    </register>
    <register>
      <name>FLAT</name>
      <description>Control register</description>
      <addressOffset>0xC</addressOffset>
      <size>32</size>
      <access>read-only</access>
      <resetValue>0x9</resetValue>
      <fields>
        <field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>
      </fields>
    </register>
    """
    )
    peripheral = parse_registers(registers)
    last, flat = peripheral["LAST"], peripheral["FLAT"]

    def summary(register):
        return (
            register.size,
            register.access,
            register.reset_value,
            register.reset_mask,
            register.description,
            [(f.name, f.bit_range, f.access) for f in register.fields.values()],
        )

    assert summary(last) == summary(flat)


def test_derivation_order_does_not_matter(parse_registers):
    registers = """
    <register derivedFrom="B">
      <name>A</name>
      <addressOffset>0x0</addressOffset>
    </register>
    <register>
      <name>B</name>
      <addressOffset>0x4</addressOffset>
      <resetValue>0x3</resetValue>
    </register>
    """
    assert parse_registers(registers)["A"].reset_value == 0x3


def test_register_derived_by_path(parse_svd):
    other = """
    <register derivedFrom="P0.CTRL">
      <name>COPY</name>
      <addressOffset>0x0</addressOffset>
    </register>
    """
    device = parse_svd(
        make_peripheral(BASE_REGISTERS)
        + make_peripheral(other, name="P1", base_address=0x4000_1000)
    )

    assert device["P1"]["COPY"].reset_value == 0x5
    assert device["P1"]["COPY"]["EN"].path == "TEST/P1/COPY/EN"


def test_register_in_cluster_derived_by_path(parse_svd):
    registers = """
    <cluster>
      <name>C</name>
      <addressOffset>0x100</addressOffset>
      <register>
        <name>INNER</name>
        <addressOffset>0x0</addressOffset>
        <resetValue>0x11</resetValue>
      </register>
    </cluster>
    <register derivedFrom="P0.C.INNER">
      <name>OUTER</name>
      <addressOffset>0x0</addressOffset>
    </register>
    """
    device = parse_svd(make_peripheral(registers))
    assert device["P0"]["OUTER"].reset_value == 0x11


def test_peripheral_derivation(parse_svd):
    derived = """
    <peripheral derivedFrom="P0">
      <name>P1</name>
      <baseAddress>0x40001000</baseAddress>
    </peripheral>
    """
    base = make_peripheral(BASE_REGISTERS, extra="<groupName>GRP</groupName>")
    device = parse_svd(base + derived)
    p0, p1 = device["P0"], device["P1"]

    assert p1.group_name == "GRP"
    assert p1.address_blocks == p0.address_blocks
    assert p1["CTRL"].resolved_address == 0x4000_1000
    assert p1["CTRL"].path == "TEST/P1/CTRL"
    assert p1["CTRL"]["EN"].path == "TEST/P1/CTRL/EN"
    assert p1["CTRL"].reset_value == p0["CTRL"].reset_value
    assert p1.interrupts == ()


def test_peripheral_derivation_chain(parse_svd):
    peripherals = make_peripheral(BASE_REGISTERS) + """
    <peripheral derivedFrom="P1">
      <name>P2</name>
      <baseAddress>0x40002000</baseAddress>
    </peripheral>
    <peripheral derivedFrom="P0">
      <name>P1</name>
      <baseAddress>0x40001000</baseAddress>
      <size>8</size>
    </peripheral>
    """
    device = parse_svd(peripherals)

    assert list(device) == ["P0", "P2", "P1"]
    assert device["P2"]["CTRL"].resolved_address == 0x4000_2000
    assert device["P2"]["CTRL"].size == 16
    assert device["P2"].properties.size == 8


def test_peripheral_properties_reach_copied_registers(parse_svd):
    base = make_peripheral(
        "<register><name>R</name><addressOffset>0</addressOffset></register>"
    )
    derived = """
    <peripheral derivedFrom="P0">
      <name>P1</name>
      <baseAddress>0x40001000</baseAddress>
      <resetValue>0x1</resetValue>
    </peripheral>
    """
    device = parse_svd(base + derived)

    assert device["P0"]["R"].reset_value == 0
    assert device["P1"]["R"].reset_value == 1


def test_copied_register_derivations_resolve_in_new_scope(parse_svd):
    registers = """
    <register>
      <name>A</name>
      <addressOffset>0x0</addressOffset>
      <resetValue>0x1</resetValue>
    </register>
    <register derivedFrom="A">
      <name>B</name>
      <addressOffset>0x4</addressOffset>
    </register>
    """
    derived = """
    <peripheral derivedFrom="P0">
      <name>P1</name>
      <baseAddress>0x40001000</baseAddress>
    </peripheral>
    """
    device = parse_svd(make_peripheral(registers) + derived)

    assert device["P1"]["B"].reset_value == 0x1
    assert device["P1"]["B"].resolved_address == 0x4000_1004


def test_peripheral_cycle(parse_svd):
    peripherals = """
    <peripheral derivedFrom="P1">
      <name>P0</name>
      <baseAddress>0x40000000</baseAddress>
    </peripheral>
    <peripheral derivedFrom="P0">
      <name>P1</name>
      <baseAddress>0x40001000</baseAddress>
    </peripheral>
    """
    with pytest.raises(svdmodel.SvdCycleError) as exc_info:
        parse_svd(peripherals)

    assert {str(p) for p in exc_info.value.cycle} == {"TEST/P0", "TEST/P1"}
    assert isinstance(exc_info.value, svdmodel.SvdResolutionError)


def test_register_cycle(parse_registers):
    registers = """
    <register derivedFrom="B">
      <name>A</name>
      <addressOffset>0x0</addressOffset>
    </register>
    <register derivedFrom="A">
      <name>B</name>
      <addressOffset>0x4</addressOffset>
    </register>
    """
    with pytest.raises(svdmodel.SvdCycleError) as exc_info:
        parse_registers(registers)

    assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]


def test_register_derived_from_itself(parse_registers):
    registers = """
    <register derivedFrom="A">
      <name>A</name>
      <addressOffset>0x0</addressOffset>
    </register>
    """
    with pytest.raises(svdmodel.SvdCycleError):
        parse_registers(registers)


def test_missing_peripheral(parse_svd):
    peripheral = """
    <peripheral derivedFrom="NOPE">
      <name>P0</name>
      <baseAddress>0x40000000</baseAddress>
    </peripheral>
    """
    with pytest.raises(svdmodel.SvdMissingReferenceError) as exc_info:
        parse_svd(peripheral)

    assert exc_info.value.reference == "NOPE"
    assert exc_info.value.path == "TEST/P0"


@pytest.mark.parametrize("reference", ["NOPE", "P0.NOPE", "P0.CTRL.EN", "NOPE.CTRL"])
def test_missing_register(parse_registers, reference):
    registers = (
        BASE_REGISTERS
        + f"""
    <register derivedFrom="{reference}">
      <name>R</name>
      <addressOffset>0x4</addressOffset>
    </register>
    """
    )
    with pytest.raises(svdmodel.SvdMissingReferenceError):
        parse_registers(registers)


def test_derived_register_inherits_offset(parse_registers):
    registers = BASE_REGISTERS + """
    <register derivedFrom="CTRL">
      <name>CTRL2</name>
    </register>
    """
    with pytest.raises(svdmodel.SvdOverlapError):
        parse_registers(registers)


def test_excluded_peripheral_can_be_derived_from(parse_svd):
    derived = """
    <peripheral derivedFrom="P0">
      <name>P1</name>
      <baseAddress>0x40001000</baseAddress>
    </peripheral>
    """
    config = svdmodel.Config(exclude_peripherals=["P0"])
    device = parse_svd(make_peripheral(BASE_REGISTERS) + derived, config=config)

    assert list(device) == ["P1"]
    assert list(device["P1"]) == ["CTRL"]


def test_alternate_of_excluded_peripheral(parse_svd):
    alternate = make_peripheral(
        "", name="P1", extra="<alternatePeripheral>P0</alternatePeripheral>"
    )
    config = svdmodel.Config(exclude_peripherals=["P0"])

    with pytest.raises(svdmodel.SvdMissingReferenceError):
        parse_svd(make_peripheral(BASE_REGISTERS) + alternate, config=config)


@pytest.mark.parametrize(
    "excluded, remaining",
    [
        (["T1"], ["P0", "T0"]),
        (["T%s"], ["P0"]),
    ],
)
def test_exclude_peripheral_array(parse_svd, excluded, remaining):
    timers = make_peripheral(
        "<register><name>R</name><addressOffset>0x0</addressOffset></register>",
        name="T%s",
        base_address=0x5000_0000,
        extra="<dim>2</dim><dimIncrement>0x1000</dimIncrement>",
    )
    config = svdmodel.Config(exclude_peripherals=excluded)

    device = parse_svd(make_peripheral(BASE_REGISTERS) + timers, config=config)

    assert list(device) == remaining
