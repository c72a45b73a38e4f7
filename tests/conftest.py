# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Callable, Optional

import pytest

import svdmodel

DEFAULT_DEVICE_PROPS = """
  <size>32</size>
  <access>read-write</access>
  <resetValue>0x00000000</resetValue>
  <resetMask>0xFFFFFFFF</resetMask>
"""

DEVICE_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<device schemaVersion="1.3">
  <vendor>Test Vendor</vendor>
  <name>TEST</name>
  <version>1.0</version>
  <description>Device used in tests</description>
  <addressUnitBits>8</addressUnitBits>
  <width>32</width>
  {device_props}
  <peripherals>
    {peripherals}
  </peripherals>
</device>
"""

SvdFactory = Callable[..., bytes]
SvdParser = Callable[..., svdmodel.Device]


def make_svd(peripherals: str, device_props: str = DEFAULT_DEVICE_PROPS) -> bytes:
    """Wrap peripheral elements in a device document."""
    return DEVICE_TEMPLATE.format(
        peripherals=peripherals, device_props=device_props
    ).encode("utf-8")


def make_peripheral(
    registers: str,
    name: str = "P0",
    base_address: int = 0x4000_0000,
    extra: str = "",
) -> str:
    """Create a peripheral element with a single address block of 0x1000 bytes."""
    return f"""
    <peripheral>
      <name>{name}</name>
      <baseAddress>{base_address:#x}</baseAddress>
      {extra}
      <addressBlock>
        <offset>0</offset>
        <size>0x1000</size>
        <usage>registers</usage>
      </addressBlock>
      <registers>
        {registers}
      </registers>
    </peripheral>
    """


@pytest.fixture
def svd() -> SvdFactory:
    return make_svd


@pytest.fixture
def peripheral() -> Callable[..., str]:
    return make_peripheral


@pytest.fixture
def parse_svd() -> SvdParser:
    def parse(
        peripherals: str,
        config: Optional[svdmodel.Config] = None,
        device_props: str = DEFAULT_DEVICE_PROPS,
    ) -> svdmodel.Device:
        content = make_svd(peripherals, device_props=device_props)
        return svdmodel.parse(content, config if config is not None else svdmodel.Config())

    return parse


@pytest.fixture
def parse_registers(parse_svd: SvdParser) -> Callable[..., svdmodel.Peripheral]:
    """Parse a single peripheral P0 at 0x40000000 with the given registers element content."""

    def parse(registers: str, **kwargs) -> svdmodel.Peripheral:
        return parse_svd(make_peripheral(registers), **kwargs)["P0"]

    return parse
