# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Various internal functionality used by the device module.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
    Union,
    overload,
)

ItemT = TypeVar("ItemT")


class DuplicateNameError(KeyError):
    """Raised by NameMap when two items share a name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)


class NameMap(Mapping[str, ItemT]):
    """
    Read-only mapping of named SVD elements that preserves declaration order.

    Items can be looked up either by name or by their position in declaration order, so
    both device["UART0"] and device.peripherals[0] work.
    Names must be unique; constructing a NameMap with duplicate names is an error.
    """

    __slots__ = ("_items", "_order")

    def __init__(self, items: Iterable[Tuple[str, ItemT]] = ()) -> None:
        """
        :param items: (name, item) pairs in declaration order.
        :raises DuplicateNameError: If two items have the same name.
        """
        storage: Dict[str, ItemT] = {}
        for name, item in items:
            if name in storage:
                raise DuplicateNameError(name)
            storage[name] = item

        self._items: Mapping[str, ItemT] = MappingProxyType(storage)
        self._order: Tuple[str, ...] = tuple(storage)

    @overload
    def __getitem__(self, key: str, /) -> ItemT:
        ...

    @overload
    def __getitem__(self, key: int, /) -> ItemT:
        ...

    def __getitem__(self, key: Union[str, int], /) -> ItemT:
        if isinstance(key, int):
            return self._items[self._order[key]]
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, key: Any) -> bool:
        return key in self._items

    def __eq__(self, other: Any) -> bool:
        """Two NameMaps are equal if they contain equal items in the same order."""
        if isinstance(other, NameMap):
            return list(self.items()) == list(other.items())
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self.items()))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(self._order)})"


def svd_element_repr(
    klass: type,
    name: str,
    /,
    *,
    address: Optional[int] = None,
    length: Optional[int] = None,
    kv_props: Mapping[Any, Any] = MappingProxyType({}),
) -> str:
    """
    Common pretty print function for SVD elements.

    :param klass: Class of the element.
    :param name: Name of the element.
    :param address: Address of the element.
    :param length: Number of child elements.
    :param kv_props: Additional keyword arguments to include in the pretty print.

    :return: Pretty printed string representing the element.
    """

    address_str: str = f" @ 0x{address:08x}" if address is not None else ""
    length_str: str = f"<{length}>" if length is not None else ""

    if kv_props:
        props_str = f" ({', '.join(f'{k}: {v!s}' for k, v in kv_props.items())})"
    else:
        props_str = ""

    return f"[{name}{length_str}{address_str}{props_str} {{{klass.__name__}}}]"
