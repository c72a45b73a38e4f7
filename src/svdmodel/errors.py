# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from typing import Any, Optional, Sequence, Tuple, Union

from .path import NodePath

PathLike = Union[str, NodePath]


class SvdError(Exception):
    """Base class for errors raised by the library."""

    ...


class SvdXmlError(SvdError):
    """Raised when the SVD document is not well-formed XML."""

    ...


class SvdSchemaError(SvdError, ValueError):
    """
    Raised when an element in the SVD document is missing required information that cannot be
    inherited from elsewhere, or contains a malformed value.
    """

    def __init__(self, path: Optional[PathLike], explanation: str) -> None:
        self.path = path
        location = f"{path}: " if path is not None else ""
        super().__init__(f"{location}{explanation}")


class SvdDimensionMismatchError(SvdSchemaError):
    """Raised when the dimension index list of an element does not agree with its dimension."""

    ...


class SvdResolutionError(SvdError):
    """Base class for errors raised when resolving references between SVD elements."""

    ...


class SvdMissingReferenceError(SvdResolutionError, LookupError):
    """Raised when a 'derivedFrom' or alternate reference names a nonexistent element."""

    def __init__(self, path: PathLike, reference: str, kind: str = "derivedFrom") -> None:
        self.path = path
        self.reference = reference
        super().__init__(
            f"{path}: element '{reference}' referenced in '{kind}' was not found"
        )


class SvdCycleError(SvdResolutionError):
    """Raised when a chain of 'derivedFrom' references is circular."""

    def __init__(self, cycle: Sequence[PathLike]) -> None:
        self.cycle: Tuple[PathLike, ...] = tuple(cycle)
        chain = " -> ".join(str(p) for p in self.cycle)
        super().__init__(f"Circular 'derivedFrom' chain: {chain}")


class SvdValidationError(SvdError):
    """Base class for errors raised when validating the resolved device."""

    ...


class SvdOverlapError(SvdValidationError):
    """Raised when the address ranges of two sibling elements overlap."""

    def __init__(
        self,
        first: PathLike,
        first_range: range,
        second: PathLike,
        second_range: range,
    ) -> None:
        self.first = first
        self.first_range = first_range
        self.second = second
        self.second_range = second_range
        super().__init__(
            f"Element addresses for \"{first}\" ({_range_str(first_range)}) and "
            f"\"{second}\" ({_range_str(second_range)}) overlap"
        )


class SvdBitBandConfigError(SvdValidationError, ValueError):
    """Raised when a configured bit-band region is invalid."""

    def __init__(self, region: Any, explanation: str) -> None:
        self.region = region
        super().__init__(f"Invalid bit-band region {region!r}: {explanation}")


def _range_str(address_range: range) -> str:
    return f"{address_range.start:#x}-{address_range.stop:#x}"
