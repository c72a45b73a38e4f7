# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Classes for refererencing SVD elements based on name.
"""

from __future__ import annotations

from itertools import chain
from typing import Any, List, Optional, Sequence, Tuple, Union, overload

from typing_extensions import Self


class NodePath(Sequence[str]):
    """
    Name chain of an SVD element, from the device down to the element itself.
    A NodePath like "DEVICE/UART0/CONFIG" refers to the element named "CONFIG" inside the
    peripheral "UART0" of the device "DEVICE".

    Paths are used to report the location of errors and to look up elements referenced by
    'derivedFrom' attributes.
    """

    __slots__ = "_parts"

    SEPARATOR = "/"

    def __init__(self, *parts: Union[str, Sequence[str]]) -> None:
        """
        :param parts: Path segments. Strings are split on the path separator.
        """
        split_parts: List[str] = []

        for part in parts:
            if isinstance(part, str):
                split_parts.extend(part.split(self.SEPARATOR))
            elif isinstance(part, NodePath):
                split_parts.extend(part.parts)
            else:
                sub_parts = (p.split(self.SEPARATOR) for p in part)
                split_parts.extend(chain.from_iterable(sub_parts))

        if any(not p for p in split_parts):
            raise ValueError(f"Invalid {self.__class__.__name__} parts: {parts}")

        self._parts: Tuple[str, ...] = tuple(split_parts)

    @classmethod
    def from_reference(cls, reference: str) -> Self:
        """
        Create a path from a dotted SVD element reference such as "UART0.CONFIG.MODE".

        :param reference: Reference string as written in a 'derivedFrom' attribute.
        :return: Path with one part per dot-separated name.
        """
        names = [name.strip() for name in reference.split(".")]
        if not names or any(not name for name in names):
            raise ValueError(f"Invalid element reference '{reference}'")
        return cls(*names)

    @property
    def parts(self) -> Tuple[str, ...]:
        """:return: Path components."""
        return self._parts

    @property
    def name(self) -> str:
        """:return: Name of the element pointed to by the path."""
        return self._parts[-1]

    @property
    def parent(self) -> Optional[NodePath]:
        """:return: Path to the parent element of this path, if it exists."""
        if len(self._parts) <= 1:
            return None
        return NodePath(*self._parts[:-1])

    def join(self, *other: Union[str, Sequence[str]]) -> Self:
        """:return: The path resulting from appending other to the end of this path."""
        return self.__class__(*self._parts, *other)

    @overload
    def __getitem__(self, item: int, /) -> str:
        ...

    @overload
    def __getitem__(self, item: slice, /) -> NodePath:
        ...

    def __getitem__(self, item: Union[int, slice], /) -> Union[str, NodePath]:
        if isinstance(item, slice):
            return self.__class__(*self._parts[item])
        return self._parts[item]

    def __len__(self) -> int:
        return len(self._parts)

    def __hash__(self) -> int:
        return hash(self._parts)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, NodePath):
            return self._parts == other._parts
        if isinstance(other, str):
            return str(self) == other
        return NotImplemented

    def __str__(self) -> str:
        return self.SEPARATOR.join(self._parts)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)!r})"
