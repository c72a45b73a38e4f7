# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

import dataclasses
import logging

import pytest

import svdmodel
from svdmodel import Access, AddressBlockUsage

from conftest import make_peripheral, make_svd

CTRL_REGISTER = """
<register>
  <name>CTRL</name>
  <description>Control register</description>
  <addressOffset>0x0</addressOffset>
  <size>32</size>
  <fields>
    <field>
      <name>EN</name>
      <bitOffset>0</bitOffset>
      <bitWidth>1</bitWidth>
    </field>
  </fields>
</register>
"""


def test_minimal_device():
    device = svdmodel.parse(make_svd(make_peripheral(CTRL_REGISTER)))

    register = device.peripherals[0].registers[0]
    assert register.resolved_address == 0x4000_0000
    assert register.fields[0].bit_range == (0, 1)

    assert device.name == "TEST"
    assert device.vendor == "Test Vendor"
    assert device.version == "1.0"
    assert device.width == 32
    assert device.address_unit_bits == 8
    assert device.description == "Device used in tests"


def test_device_without_description():
    content = make_svd(make_peripheral(CTRL_REGISTER)).replace(
        b"<description>Device used in tests</description>", b""
    )
    assert svdmodel.parse(content).description is None


def test_device_model_is_frozen():
    device = svdmodel.parse(make_svd(make_peripheral(CTRL_REGISTER)))
    register = device["P0"]["CTRL"]

    with pytest.raises(dataclasses.FrozenInstanceError):
        register.size = 16  # type: ignore
    with pytest.raises(dataclasses.FrozenInstanceError):
        register["EN"].access = Access.READ_ONLY  # type: ignore
    with pytest.raises(dataclasses.FrozenInstanceError):
        device.name = "OTHER"  # type: ignore
    with pytest.raises(TypeError):
        device["P0"].registers["NEW"] = register  # type: ignore


def test_parse_is_deterministic():
    content = make_svd(
        make_peripheral(CTRL_REGISTER, name="P0")
        + make_peripheral(CTRL_REGISTER, name="P1", base_address=0x4000_1000)
    )

    first = svdmodel.parse(content)
    second = svdmodel.parse(content)

    assert first == second
    assert list(first) == list(second) == ["P0", "P1"]


def test_parse_accepts_text():
    content = make_svd(make_peripheral(CTRL_REGISTER))
    assert svdmodel.parse(content.decode("utf-8")) == svdmodel.parse(content)


def test_parse_file(tmp_path):
    svd_file = tmp_path / "test.svd"
    svd_file.write_bytes(make_svd(make_peripheral(CTRL_REGISTER)))

    device = svdmodel.parse_file(svd_file)
    assert device["P0"]["CTRL"]["EN"].bit_width == 1


def test_parse_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        svdmodel.parse_file(tmp_path / "missing.svd")


def test_navigation():
    device = svdmodel.parse(make_svd(make_peripheral(CTRL_REGISTER)))

    peripheral = device["P0"]
    register = peripheral["CTRL"]
    field = register["EN"]

    assert device.find("P0") is peripheral
    assert device.find("P0.CTRL") is register
    assert device.find("P0.CTRL.EN") is field
    assert device.find(svdmodel.NodePath("TEST/P0/CTRL/EN")) is field
    assert field.path == "TEST/P0/CTRL/EN"
    assert list(device.iter_registers()) == [register]

    with pytest.raises(KeyError):
        device.find("P0.NOPE")
    with pytest.raises(KeyError):
        device.find("P0.CTRL.EN.MORE")


def test_register_and_peripheral_attributes():
    device = svdmodel.parse(make_svd(make_peripheral(CTRL_REGISTER)))
    peripheral = device["P0"]
    register = peripheral["CTRL"]

    assert peripheral.base_address == 0x4000_0000
    assert peripheral.address_blocks == (
        svdmodel.AddressBlock(offset=0, size=0x1000, usage=AddressBlockUsage.REGISTER),
    )
    assert peripheral.address_ranges == (range(0x4000_0000, 0x4000_1000),)

    assert register.description == "Control register"
    assert register.size == 32
    assert register.byte_size == 4
    assert register.access == Access.READ_WRITE
    assert register.reset_value == 0
    assert register.reset_mask == 0xFFFF_FFFF
    assert register.address_range == range(0x4000_0000, 0x4000_0004)
    assert register["EN"].access == Access.READ_WRITE


def test_iter_registers_pre_order():
    registers = """
    <register><name>A</name><addressOffset>0x0</addressOffset></register>
    <cluster>
      <name>C</name>
      <addressOffset>0x10</addressOffset>
      <register><name>B</name><addressOffset>0x0</addressOffset></register>
      <register><name>D</name><addressOffset>0x4</addressOffset></register>
    </cluster>
    <register><name>E</name><addressOffset>0x20</addressOffset></register>
    """
    device = svdmodel.parse(make_svd(make_peripheral(registers)))

    assert [r.name for r in device.iter_registers()] == ["A", "B", "D", "E"]
    assert [r.path for r in device["P0"].iter_registers()][1] == "TEST/P0/C/B"
    assert svdmodel.is_cluster(device["P0"]["C"])
    assert svdmodel.is_register(device["P0"]["A"])


def test_malformed_xml():
    with pytest.raises(svdmodel.SvdXmlError):
        svdmodel.parse(b"<device><name>TEST</name>")


def test_root_must_be_device():
    with pytest.raises(svdmodel.SvdSchemaError):
        svdmodel.parse(b"<?xml version='1.0'?><something/>")


def test_unsupported_address_unit_bits():
    content = make_svd(make_peripheral(CTRL_REGISTER)).replace(
        b"<addressUnitBits>8</addressUnitBits>", b"<addressUnitBits>16</addressUnitBits>"
    )
    with pytest.raises(svdmodel.SvdSchemaError, match="addressUnitBits"):
        svdmodel.parse(content)


INTERRUPT_PERIPHERALS = """
<peripheral>
  <name>UART0</name>
  <baseAddress>0x40000000</baseAddress>
  <interrupt><name>UART0</name><value>2</value></interrupt>
  <registers>
    <register><name>R</name><addressOffset>0</addressOffset></register>
  </registers>
</peripheral>
<peripheral>
  <name>SPI0</name>
  <baseAddress>0x40001000</baseAddress>
  <interrupt><name>UART0</name><value>{shared_value}</value></interrupt>
  <interrupt><name>SPI0</name><description>SPI  interrupt</description><value>3</value></interrupt>
  <registers>
    <register><name>R</name><addressOffset>0</addressOffset></register>
  </registers>
</peripheral>
"""


def test_interrupts_are_collected():
    device = svdmodel.parse(make_svd(INTERRUPT_PERIPHERALS.format(shared_value=2)))

    assert list(device.interrupts) == ["UART0", "SPI0"]
    assert device.interrupts["UART0"].peripheral == "UART0"
    assert device.interrupts["SPI0"].value == 3
    assert device.interrupts["SPI0"].description == "SPI interrupt"
    assert [i.name for i in device["SPI0"].interrupts] == ["UART0", "SPI0"]


def test_conflicting_interrupt_keeps_first(caplog):
    caplog.set_level(logging.WARNING, logger="svdmodel")

    device = svdmodel.parse(make_svd(INTERRUPT_PERIPHERALS.format(shared_value=5)))

    assert device.interrupts["UART0"].value == 2
    assert "UART0" in caplog.text
