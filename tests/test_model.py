# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

import dataclasses

import pytest

from svdmodel import NameMap, NodePath, RegisterProperties
from svdmodel._device import DuplicateNameError
from svdmodel.bindings import Access


def test_name_map_order_and_lookup():
    names = NameMap([("B", 2), ("A", 1)])

    assert list(names) == ["B", "A"]
    assert names["A"] == 1
    assert names[0] == 2
    assert names[-1] == 1
    assert "A" in names
    assert "C" not in names
    assert len(names) == 2

    with pytest.raises(KeyError):
        names["C"]


def test_name_map_rejects_duplicates():
    with pytest.raises(DuplicateNameError) as exc_info:
        NameMap([("A", 1), ("A", 2)])

    assert exc_info.value.name == "A"


def test_name_map_equality_is_ordered():
    assert NameMap([("A", 1), ("B", 2)]) == NameMap([("A", 1), ("B", 2)])
    assert NameMap([("A", 1), ("B", 2)]) != NameMap([("B", 2), ("A", 1)])
    assert NameMap([("A", 1)]) == {"A": 1}


def test_node_path():
    path = NodePath("DEV", "P0/CTRL")

    assert path.parts == ("DEV", "P0", "CTRL")
    assert path.name == "CTRL"
    assert path.parent == "DEV/P0"
    assert path.join("EN") == NodePath("DEV/P0/CTRL/EN")
    assert path[1:] == "P0/CTRL"
    assert str(path) == "DEV/P0/CTRL"
    assert NodePath.from_reference("P0.C.R").parts == ("P0", "C", "R")
    assert hash(path) == hash(NodePath("DEV/P0/CTRL"))

    with pytest.raises(ValueError):
        NodePath("DEV//P0")
    with pytest.raises(ValueError):
        NodePath.from_reference("P0..R")


def test_register_properties_inherit():
    base = RegisterProperties(size=32, access=Access.READ_WRITE, reset_value=0)
    props = RegisterProperties(size=16)

    merged = props.inherit(base)

    assert merged == dataclasses.replace(base, size=16)
    assert props.inherit(None) is props
