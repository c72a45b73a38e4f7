# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Expansion of dimensioned SVD elements into individually named instances.
"""

from __future__ import annotations

import copy
import dataclasses as dc
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from ._nodes import (
    ClusterNode,
    DeviceNode,
    FieldNode,
    PeripheralNode,
    RegisterNode,
    rebase_path,
)
from .bindings import DimensionSpec
from .errors import SvdDimensionMismatchError, SvdSchemaError
from .path import NodePath

log = logging.getLogger(__name__)

PLACEHOLDER = "%s"

N = TypeVar("N", PeripheralNode, ClusterNode, RegisterNode, FieldNode)

_NUMERIC_RANGE = re.compile(r"(\d+)\s*-\s*(\d+)")
_LETTER_RANGE = re.compile(r"([A-Z])\s*-\s*([A-Z])")


def expand_arrays(device: DeviceNode) -> None:
    """
    Replace every dimensioned element in the draft device by its instances, in place.

    :param device: Draft device with all 'derivedFrom' references resolved.
    :raises SvdDimensionMismatchError: If the index list of an element does not match its dim.
    :raises SvdSchemaError: If an instance name collides with a sibling.
    """
    count = 0

    device.peripherals, expanded = _expand_all(device.peripherals, device.path)
    count += expanded

    stack: List[Union[PeripheralNode, ClusterNode, RegisterNode]] = list(device.peripherals)

    while stack:
        node = stack.pop()

        if isinstance(node, RegisterNode):
            if node.fields is not None:
                node.fields, expanded = _expand_all(node.fields, node.path)
                count += expanded
            continue

        if node.children is not None:
            node.children, expanded = _expand_all(node.children, node.path)
            count += expanded
            stack.extend(node.children)

    log.debug(f"Expanded {count} arrays")


def dim_index_tokens(dim: DimensionSpec, path: Optional[NodePath] = None) -> List[str]:
    """
    Get the index token of each instance of a dimensioned element.

    The index is either a comma separated list of tokens, a numeric range such as "3-6" or a
    letter range such as "A-D". Without an index the tokens are 0..dim-1.

    :param dim: Dimensions of the element.
    :param path: Path of the element, used in error messages.
    :raises SvdDimensionMismatchError: If the number of tokens differs from the dim value.
    :return: List of index tokens.
    """
    if dim.index is None:
        return [str(i) for i in range(dim.length)]

    text = dim.index.strip()

    if (match := _NUMERIC_RANGE.fullmatch(text)) is not None:
        start, end = int(match[1]), int(match[2])
        tokens = [str(i) for i in range(start, end + 1)]
    elif (match := _LETTER_RANGE.fullmatch(text)) is not None:
        start, end = ord(match[1]), ord(match[2])
        tokens = [chr(c) for c in range(start, end + 1)]
    else:
        tokens = [token.strip() for token in text.split(",")]
        if any(not token for token in tokens):
            raise SvdDimensionMismatchError(path, f"Malformed dimIndex '{dim.index}'")

    if len(tokens) != dim.length:
        raise SvdDimensionMismatchError(
            path,
            f"dimIndex '{dim.index}' has {len(tokens)} entries, but dim is {dim.length}",
        )

    return tokens


def instance_name(template: str, token: str) -> str:
    """
    Get the name of one instance of a dimensioned element.
    A trailing "[%s]" is replaced by "_<token>", other placeholders by the token itself.
    """
    if template.endswith(f"[{PLACEHOLDER}]"):
        return f"{template[:-4]}_{token}"
    return template.replace(PLACEHOLDER, token)


def _expand_all(nodes: Sequence[N], parent_path: NodePath) -> Tuple[List[N], int]:
    result: List[N] = []
    seen: Dict[str, N] = {}
    count = 0

    for node in nodes:
        if node.dim is None:
            instances = [node]
        else:
            instances = _expand(node, parent_path)
            count += 1

        for instance in instances:
            if instance.name in seen:
                raise SvdSchemaError(
                    instance.path, f"Duplicate element name '{instance.name}' after expansion"
                )
            seen[instance.name] = instance
            result.append(instance)

    return result, count


def _expand(node: N, parent_path: NodePath) -> List[N]:
    dim = node.dim
    assert dim is not None

    tokens = dim_index_tokens(dim, node.path)

    if dim.length > 1 and PLACEHOLDER not in node.name:
        raise SvdDimensionMismatchError(
            node.path, f"Element with dim {dim.length} has no '{PLACEHOLDER}' in its name"
        )

    instances: List[N] = []

    for i, token in enumerate(tokens):
        instance = copy.deepcopy(node)
        instance.name = instance_name(node.name, token)
        instance.dim = None
        rebase_path(instance, parent_path.join(instance.name))
        _shift(instance, i * dim.step)

        if not isinstance(instance, FieldNode) and instance.alternate is not None:
            instance.alternate = instance_name(instance.alternate, token)
        if isinstance(instance, PeripheralNode):
            instance.array_name = node.name
            instance.interrupts = [
                dc.replace(interrupt, peripheral=instance.name)
                for interrupt in instance.interrupts
            ]

        instances.append(instance)

    return instances


def _shift(
    node: Union[PeripheralNode, ClusterNode, RegisterNode, FieldNode], amount: int
) -> None:
    """Move an element instance by the given amount of bytes, or bits for fields."""
    if isinstance(node, FieldNode):
        if node.bit_range is not None:
            node.bit_range = node.bit_range._replace(offset=node.bit_range.offset + amount)
    elif isinstance(node, PeripheralNode):
        if node.base_address is not None:
            node.base_address += amount
    elif node.offset is not None:
        node.offset += amount

